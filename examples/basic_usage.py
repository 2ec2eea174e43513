"""
Basic mailrelay usage example.

This example demonstrates the fundamental operations:
- Creating a service with the simulated backends
- Sending a message
- Reading attempts and statistics
"""

import asyncio

from mailrelay import MailService, Message


async def basic_example():
    """Demonstrate basic mailrelay usage"""
    print("Basic mailrelay Example")
    print("=" * 30)

    async with MailService.new() as service:
        print("✓ Created mail service")

        message = Message(
            id="basic-example-1",
            recipient="user@example.com",
            sender="noreply@myapp.com",
            subject="Welcome",
            body="Thanks for signing up.",
        )

        outcome = await service.send(message)
        if outcome.success:
            print(f"✓ Sent via {outcome.backend}: {outcome.receipt}")
        else:
            print(f"✗ Send failed: {outcome.error}")

        attempts = service.get_attempts(message.id)
        print(f"✓ {len(attempts)} backend attempt(s) recorded")

        print(f"✓ Stats: {service.get_stats().to_dict()}")


if __name__ == "__main__":
    asyncio.run(basic_example())
