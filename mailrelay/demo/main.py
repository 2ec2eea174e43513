"""
mailrelay Demo Application

This demo walks through the resilience features of the mail service using
the simulated SendGrid and Mailgun backends:
- Direct sends with automatic fallback
- Idempotent resends
- Background delivery through the priority queue
- Circuit breaker and rate limiter statistics
"""

import argparse
import asyncio
import logging
import sys
from datetime import timedelta

from mailrelay.core.config import Config, RateLimitConfig, RetryConfig
from mailrelay.core.types import Message
from mailrelay.service import MailService


def _message(message_id: str) -> Message:
    return Message(
        id=message_id,
        recipient="user@example.com",
        sender="noreply@myapp.com",
        subject="Test Email",
        body="This is a test email from the resilient mail service.",
    )


async def run_demo(message_count: int = 3) -> int:
    """Run the demo steps. Returns a process exit code."""
    print("mailrelay Demo Application")
    print("=" * 50)
    print()

    config = Config(
        retry=RetryConfig(base_delay=timedelta(milliseconds=200), max_delay=timedelta(seconds=2)),
        rate_limit=RateLimitConfig(max_requests=20, window=timedelta(seconds=10)),
    )

    try:
        service = MailService.new(config)
        await service.start()
        print("✓ Created mail service with simulated backends")
        print(f"  - Preferred backend: {service.preferred_backend}")
        print(f"  - Max retries: {config.retry.max_retries}")
        print(f"  - Rate limit: {config.rate_limit.max_requests} / {config.rate_limit.window}")
        print()
    except Exception as e:
        print(f"✗ Error creating mail service: {e}")
        return 1

    print("Step 1: Direct Send")
    print("-" * 40)

    outcome = await service.send(_message("demo-email-1"))
    if outcome.success:
        print("✓ Message sent")
        print(f"  - Backend: {outcome.backend}")
        print(f"  - Receipt: {outcome.receipt}")
        print(f"  - Duration: {outcome.duration * 1000:.2f}ms")
    else:
        print(f"✗ Send failed: {outcome.error}")
    print()

    print("Step 2: Idempotent Resend")
    print("-" * 40)

    duplicate = await service.send(_message("demo-email-1"))
    if outcome.success and duplicate.receipt == outcome.receipt:
        print("✓ Duplicate send returned the cached outcome")
        print(f"  - Receipt: {duplicate.receipt}")
    else:
        print(f"  - Resend outcome: success={duplicate.success}, receipt={duplicate.receipt}")
    print()

    print("Step 3: Attempt History")
    print("-" * 40)

    for attempt in service.get_attempts("demo-email-1"):
        print(f"  - {attempt.id}: {attempt.status.value}"
              + (f" ({attempt.error})" if attempt.error else ""))
    print()

    print("Step 4: Background Queue")
    print("-" * 40)

    for i in range(message_count):
        await service.send_async(_message(f"queued-email-{i + 1}"), priority=i)
    print(f"✓ Queued {message_count} messages")

    await service.wait_for_queue()
    print("✓ Queue drained")
    print()

    print("Step 5: Service Statistics")
    print("-" * 40)

    stats = service.get_stats()
    for backend in stats.backends:
        print(f"  - {backend.name}: circuit {backend.circuit_state.value}, "
              f"{backend.failure_count} consecutive failures")
    print(f"  - Rate limiter: {stats.rate_limiter['current_requests']}"
          f"/{stats.rate_limiter['max_requests']} requests in window")
    print(f"  - Idempotency records: {stats.idempotency['record_count']}")
    print(f"  - Queue: {stats.queue.to_dict()}")
    print()

    await service.close()
    print("Demo completed successfully!")

    return 0


def main() -> None:
    """Console entry point."""
    parser = argparse.ArgumentParser(description="mailrelay demo")
    parser.add_argument("--messages", type=int, default=3, help="number of messages to queue")
    parser.add_argument("--verbose", action="store_true", help="show service logs")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        exit_code = asyncio.run(run_demo(args.messages))
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nDemo interrupted by user")
        sys.exit(1)


if __name__ == "__main__":
    main()
