"""
Failover example.

Shows the preferred backend moving to Mailgun once SendGrid starts failing,
and a configuration loaded from YAML.
"""

import asyncio
import tempfile
from pathlib import Path

from mailrelay import Config, MailService, Message
from mailrelay.providers import MockMailgunBackend, MockSendGridBackend

CONFIG_YAML = """
retry:
  max_retries: 1
  base_delay: 50ms
circuit_breaker:
  failure_threshold: 2
  reset_timeout: 5s
rate_limit:
  max_requests: 50
  window: 10s
"""


async def failover_example():
    """Demonstrate backend fallback and breaker state"""
    print("Failover Example")
    print("=" * 30)

    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "mailrelay.yaml"
        path.write_text(CONFIG_YAML)
        config = Config.from_file(path)

    sendgrid = MockSendGridBackend(failure_rate=1.0)
    mailgun = MockMailgunBackend(failure_rate=0.0)

    async with MailService([sendgrid, mailgun], config) as service:
        for i in range(3):
            outcome = await service.send(Message(
                id=f"failover-{i}",
                recipient="user@example.com",
                sender="noreply@myapp.com",
                subject="Failover",
                body="Delivered by whichever backend is healthy.",
            ))
            print(f"  - failover-{i}: success={outcome.success} backend={outcome.backend} "
                  f"preferred={service.preferred_backend}")

        for backend in service.get_stats().backends:
            print(f"  - {backend.name}: {backend.circuit_state.value}")

        print()
        print(service.metrics.export().decode())


if __name__ == "__main__":
    asyncio.run(failover_example())
