"""
Tests for data types, errors, simulated backends and metrics.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from mailrelay.circuit import CircuitState
from mailrelay.core.config import MetricConfig
from mailrelay.core.types import AttemptStatus, DeliveryAttempt, Message, SendOutcome
from mailrelay.errors import (
    AllBackendsExhaustedError,
    AttemptStateError,
    BackendFailureError,
    ErrorCode,
)
from mailrelay.metrics import MetricsCollector
from mailrelay.providers import MockMailgunBackend, MockSendGridBackend, SimulatedBackend


MESSAGE = Message(
    id="test-email-1",
    recipient="test@example.com",
    sender="sender@example.com",
    subject="Test Email",
    body="This is a test email.",
)


class TestDeliveryAttempt:
    """Test attempt lifecycle"""

    def test_single_terminal_transition(self):
        attempt = DeliveryAttempt(message_id="m1", backend="SendGrid", sequence=1)
        assert attempt.status == AttemptStatus.IN_FLIGHT

        attempt.fail("timeout", 0.2)

        assert attempt.is_terminal
        assert attempt.error == "timeout"
        with pytest.raises(AttemptStateError):
            attempt.succeed()

    def test_to_dict(self):
        attempt = DeliveryAttempt(message_id="m1", backend="SendGrid", sequence=2)
        attempt.succeed(0.1)

        data = attempt.to_dict()

        assert data['id'] == "m1-SendGrid-2"
        assert data['status'] == "succeeded"
        assert data['duration'] == 0.1


class TestErrors:
    """Test error types"""

    def test_backend_failure(self):
        error = BackendFailureError("SendGrid", "quota exceeded")

        assert str(error) == "quota exceeded"
        assert error.to_dict()['error'] == ErrorCode.BACKEND_FAILURE.value
        assert error.details['backend'] == "SendGrid"

    def test_exhausted_uses_last_error_message(self):
        assert str(AllBackendsExhaustedError(RuntimeError("boom"))) == "boom"
        assert str(AllBackendsExhaustedError()) == "All backends failed"


class TestSimulatedBackends:
    """Test simulated providers"""

    @pytest.mark.asyncio
    async def test_sendgrid_success(self):
        backend = MockSendGridBackend(failure_rate=0.0, latency=timedelta(0))

        outcome = await backend.deliver(MESSAGE)

        assert backend.name == "SendGrid"
        assert outcome.success
        assert outcome.receipt.startswith("sg_")
        assert outcome.backend == "SendGrid"

    @pytest.mark.asyncio
    async def test_sendgrid_raises_on_failure(self):
        backend = MockSendGridBackend(failure_rate=1.0, latency=timedelta(0))

        with pytest.raises(BackendFailureError) as exc_info:
            await backend.deliver(MESSAGE)
        assert exc_info.value.backend == "SendGrid"

    @pytest.mark.asyncio
    async def test_mailgun_reports_failure(self):
        backend = MockMailgunBackend(failure_rate=1.0, latency=timedelta(0))

        outcome = await backend.deliver(MESSAGE)

        assert not outcome.success
        assert outcome.error == "Mailgun service temporarily overloaded"

    @pytest.mark.asyncio
    async def test_mailgun_receipt_format(self):
        backend = MockMailgunBackend(failure_rate=0.0, latency=timedelta(0))

        outcome = await backend.deliver(MESSAGE)

        assert outcome.receipt.startswith("mg_")
        prefix, millis, suffix = outcome.receipt.split("_")
        assert millis.isdigit()
        assert len(suffix) == 9

    def test_failure_rate_clamped(self):
        backend = SimulatedBackend("Test")

        backend.set_failure_rate(2.0)
        assert backend.failure_rate == 1.0

        backend.set_failure_rate(-1.0)
        assert backend.failure_rate == 0.0

    @pytest.mark.asyncio
    async def test_latency_applied(self):
        backend = SimulatedBackend("Test", failure_rate=0.0, latency=timedelta(milliseconds=20),
                                   jitter=timedelta(0))

        with patch("mailrelay.providers.mock.asyncio.sleep") as sleep:
            await backend.deliver(MESSAGE)

        sleep.assert_awaited_once_with(0.02)


class TestMetricsCollector:
    """Test Prometheus metrics"""

    def test_records_sends(self):
        metrics = MetricsCollector()

        metrics.record_send("sent", 0.2)
        metrics.record_send("failed")
        exported = metrics.export()

        assert b'mailrelay_sends_total{status="sent"} 1.0' in exported
        assert b'mailrelay_sends_total{status="failed"} 1.0' in exported
        assert b'mailrelay_send_duration_seconds_count 1.0' in exported

    def test_circuit_state_gauge(self):
        metrics = MetricsCollector()

        metrics.set_circuit_state("SendGrid", CircuitState.OPEN)

        assert b'mailrelay_circuit_state{backend="SendGrid"} 2.0' in metrics.export()

    def test_rate_limit_wait_ignores_zero(self):
        metrics = MetricsCollector()

        metrics.record_rate_limit_wait(0.0)
        metrics.record_rate_limit_wait(0.5)

        assert b'mailrelay_rate_limit_waits_total 1.0' in metrics.export()

    def test_custom_namespace(self):
        metrics = MetricsCollector(MetricConfig(namespace="relay"))
        metrics.record_queue_drop()

        assert b'relay_queue_dropped_total 1.0' in metrics.export()

    def test_disabled_is_noop(self):
        metrics = MetricsCollector(MetricConfig(enabled=False))

        metrics.record_send("sent", 0.1)
        metrics.record_backend_attempt("SendGrid", "failed")
        metrics.set_circuit_state("SendGrid", CircuitState.OPEN)
        metrics.record_queue_drop()

        assert b'mailrelay_' not in metrics.export()

    def test_independent_registries(self):
        first = MetricsCollector()
        second = MetricsCollector()

        first.record_send("sent")

        assert b'mailrelay_sends_total{status="sent"} 1.0' not in second.export()

    def test_outcome_to_dict(self):
        outcome = SendOutcome(success=True, receipt="sg_1", backend="SendGrid")
        assert outcome.to_dict()['receipt'] == "sg_1"
