"""
Prometheus metrics integration for mailrelay.

This module collects delivery, circuit breaker, rate limiter and queue
metrics on a private registry so several services can coexist in one
process.
"""

import logging
from typing import Optional

from prometheus_client import (
    CollectorRegistry, Counter, Gauge, Histogram, generate_latest,
)

from ..circuit import CircuitState, StateTransition
from ..core.config import MetricConfig


logger = logging.getLogger(__name__)

CIRCUIT_STATE_VALUES = {
    CircuitState.CLOSED: 0,
    CircuitState.HALF_OPEN: 1,
    CircuitState.OPEN: 2,
}


class MetricsCollector:
    """Main metrics collector for mail service operations."""

    def __init__(self, config: Optional[MetricConfig] = None):
        """
        Initialize metrics collector.

        Args:
            config: Metrics configuration
        """
        self.config = config or MetricConfig()
        self.registry = CollectorRegistry()

        if not self.config.enabled:
            logger.info("Metrics collection disabled")
            return

        self._init_prometheus_metrics()

        logger.info("Metrics collector initialized")

    def _init_prometheus_metrics(self):
        ns = self.config.namespace

        self.sends = Counter(
            f'{ns}_sends_total',
            'Total number of logical sends by outcome',
            ['status'],
            registry=self.registry
        )

        self.send_duration = Histogram(
            f'{ns}_send_duration_seconds',
            'Duration of logical sends in seconds',
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
            registry=self.registry
        )

        self.backend_attempts = Counter(
            f'{ns}_backend_attempts_total',
            'Total number of backend delivery attempts',
            ['backend', 'status'],
            registry=self.registry
        )

        self.circuit_state = Gauge(
            f'{ns}_circuit_state',
            'Circuit breaker state per backend (0 closed, 1 half-open, 2 open)',
            ['backend'],
            registry=self.registry
        )

        self.rate_limit_waits = Counter(
            f'{ns}_rate_limit_waits_total',
            'Number of sends delayed by the rate limiter',
            registry=self.registry
        )

        self.queue_dropped = Counter(
            f'{ns}_queue_dropped_total',
            'Queued messages dropped after exhausting their attempts',
            registry=self.registry
        )

    def record_send(self, status: str, duration: Optional[float] = None) -> None:
        """Record a logical send; status is sent, failed or duplicate."""
        if not self.config.enabled:
            return

        self.sends.labels(status=status).inc()
        if duration is not None:
            self.send_duration.observe(duration)

        logger.debug(f"Recorded send: {status}")

    def record_backend_attempt(self, backend: str, status: str) -> None:
        if not self.config.enabled:
            return

        self.backend_attempts.labels(backend=backend, status=status).inc()

    def record_circuit_transition(self, transition: StateTransition) -> None:
        """Breaker on_state_change hook."""
        self.set_circuit_state(transition.name, transition.to_state)

    def set_circuit_state(self, backend: str, state: CircuitState) -> None:
        if not self.config.enabled:
            return

        self.circuit_state.labels(backend=backend).set(CIRCUIT_STATE_VALUES[state])

    def record_rate_limit_wait(self, waited: float) -> None:
        if not self.config.enabled or waited <= 0:
            return

        self.rate_limit_waits.inc()
        logger.debug(f"Recorded rate limit wait: {waited:.3f}s")

    def record_queue_drop(self) -> None:
        if not self.config.enabled:
            return

        self.queue_dropped.inc()

    def export(self) -> bytes:
        """Prometheus text exposition of all collected metrics."""
        return generate_latest(self.registry)
