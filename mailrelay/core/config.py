"""
Configuration module for mailrelay.

Each section validates itself on construction and raises ConfigurationError
for values the resilience components cannot work with.
"""

from datetime import timedelta
from typing import Any, Dict, Optional, Union
from dataclasses import dataclass, field, fields
from pathlib import Path

from ..errors import ConfigurationError
from ..util.config import coerce_duration, get_config_value, load_config_file


def _require_positive(name: str, value: Union[int, float]) -> None:
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive", name, value)


def _require_positive_duration(name: str, value: timedelta) -> None:
    if not isinstance(value, timedelta):
        raise ConfigurationError(f"{name} must be a timedelta", name, value)
    if value <= timedelta(0):
        raise ConfigurationError(f"{name} must be positive", name, value)


@dataclass
class RetryConfig:
    """Retry and backoff settings for a logical send"""
    max_retries: int = 3
    base_delay: timedelta = field(default_factory=lambda: timedelta(seconds=1))
    max_delay: timedelta = field(default_factory=lambda: timedelta(seconds=30))
    backoff_multiplier: float = 2.0

    def __post_init__(self):
        if self.max_retries < 0:
            raise ConfigurationError("max_retries cannot be negative", "max_retries", self.max_retries)
        _require_positive_duration("base_delay", self.base_delay)
        _require_positive_duration("max_delay", self.max_delay)
        if self.backoff_multiplier < 1:
            raise ConfigurationError(
                "backoff_multiplier must be >= 1", "backoff_multiplier", self.backoff_multiplier
            )


@dataclass
class RateLimitConfig:
    """Global sliding window limit"""
    max_requests: int = 10
    window: timedelta = field(default_factory=lambda: timedelta(minutes=1))

    def __post_init__(self):
        _require_positive("max_requests", self.max_requests)
        _require_positive_duration("window", self.window)


@dataclass
class CircuitBreakerConfig:
    """Per-backend circuit breaker settings"""
    failure_threshold: int = 5
    reset_timeout: timedelta = field(default_factory=lambda: timedelta(seconds=60))

    def __post_init__(self):
        _require_positive("failure_threshold", self.failure_threshold)
        _require_positive_duration("reset_timeout", self.reset_timeout)


@dataclass
class IdempotencyConfig:
    """Duplicate suppression settings"""
    enabled: bool = True
    ttl: timedelta = field(default_factory=lambda: timedelta(hours=24))
    sweep_interval: timedelta = field(default_factory=lambda: timedelta(minutes=5))

    def __post_init__(self):
        _require_positive_duration("ttl", self.ttl)
        _require_positive_duration("sweep_interval", self.sweep_interval)


@dataclass
class QueueConfig:
    """Background work queue timing"""
    poll_interval: timedelta = field(default_factory=lambda: timedelta(seconds=1))
    item_delay: timedelta = field(default_factory=lambda: timedelta(milliseconds=100))
    retry_base_delay: timedelta = field(default_factory=lambda: timedelta(seconds=1))

    def __post_init__(self):
        _require_positive_duration("poll_interval", self.poll_interval)
        _require_positive_duration("retry_base_delay", self.retry_base_delay)
        if self.item_delay < timedelta(0):
            raise ConfigurationError("item_delay cannot be negative", "item_delay", self.item_delay)


@dataclass
class MetricConfig:
    """Configuration for metrics collection."""
    enabled: bool = True
    namespace: str = "mailrelay"


_DURATION_FIELDS = {
    'base_delay', 'max_delay', 'window', 'reset_timeout', 'ttl',
    'sweep_interval', 'poll_interval', 'item_delay', 'retry_base_delay',
}


def _build_section(section_cls, name: str, data: Optional[Dict[str, Any]]):
    if data is None:
        return section_cls()
    if not isinstance(data, dict):
        raise ConfigurationError(f"Section '{name}' must be a mapping", name, data)

    known = {f.name for f in fields(section_cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown keys in section '{name}': {', '.join(sorted(unknown))}", name
        )

    values = {}
    for key, value in data.items():
        if key in _DURATION_FIELDS:
            try:
                value = coerce_duration(value)
            except ValueError as e:
                raise ConfigurationError(str(e), f"{name}.{key}", value)
        values[key] = value

    try:
        return section_cls(**values)
    except TypeError as e:
        raise ConfigurationError(str(e), name) from e


@dataclass
class Config:
    """Configuration for the mail service"""
    retry: RetryConfig = field(default_factory=RetryConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    circuit_breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    idempotency: IdempotencyConfig = field(default_factory=IdempotencyConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    metrics: MetricConfig = field(default_factory=MetricConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create configuration from nested dictionaries, one per section"""
        sections = {
            'retry': RetryConfig,
            'rate_limit': RateLimitConfig,
            'circuit_breaker': CircuitBreakerConfig,
            'idempotency': IdempotencyConfig,
            'queue': QueueConfig,
            'metrics': MetricConfig,
        }
        unknown = set(data) - set(sections)
        if unknown:
            raise ConfigurationError(f"Unknown configuration sections: {', '.join(sorted(unknown))}")

        return cls(**{
            name: _build_section(section_cls, name, data.get(name))
            for name, section_cls in sections.items()
        })

    @classmethod
    def from_file(cls, file_path: Union[str, Path]) -> "Config":
        """Create configuration from a YAML or JSON file"""
        return cls.from_dict(load_config_file(file_path))

    @classmethod
    def from_env(cls, prefix: str = "MAILRELAY_") -> "Config":
        """Create configuration from environment variables"""
        defaults = cls()

        def env(key, default, cast_type):
            return get_config_value(key, default, cast_type, env_prefix=prefix)

        return cls(
            retry=RetryConfig(
                max_retries=env("MAX_RETRIES", defaults.retry.max_retries, int),
                base_delay=env("RETRY_BASE_DELAY", defaults.retry.base_delay, timedelta),
                max_delay=env("RETRY_MAX_DELAY", defaults.retry.max_delay, timedelta),
                backoff_multiplier=env("BACKOFF_MULTIPLIER", defaults.retry.backoff_multiplier, float),
            ),
            rate_limit=RateLimitConfig(
                max_requests=env("RATE_LIMIT_MAX_REQUESTS", defaults.rate_limit.max_requests, int),
                window=env("RATE_LIMIT_WINDOW", defaults.rate_limit.window, timedelta),
            ),
            circuit_breaker=CircuitBreakerConfig(
                failure_threshold=env("FAILURE_THRESHOLD", defaults.circuit_breaker.failure_threshold, int),
                reset_timeout=env("RESET_TIMEOUT", defaults.circuit_breaker.reset_timeout, timedelta),
            ),
            idempotency=IdempotencyConfig(
                enabled=env("IDEMPOTENCY_ENABLED", defaults.idempotency.enabled, bool),
                ttl=env("IDEMPOTENCY_TTL", defaults.idempotency.ttl, timedelta),
                sweep_interval=env("IDEMPOTENCY_SWEEP_INTERVAL", defaults.idempotency.sweep_interval, timedelta),
            ),
            queue=QueueConfig(
                poll_interval=env("QUEUE_POLL_INTERVAL", defaults.queue.poll_interval, timedelta),
                item_delay=env("QUEUE_ITEM_DELAY", defaults.queue.item_delay, timedelta),
                retry_base_delay=env("QUEUE_RETRY_BASE_DELAY", defaults.queue.retry_base_delay, timedelta),
            ),
            metrics=MetricConfig(
                enabled=env("METRICS_ENABLED", defaults.metrics.enabled, bool),
                namespace=env("METRICS_NAMESPACE", defaults.metrics.namespace, str),
            ),
        )
