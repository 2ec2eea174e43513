"""
Tests for configuration loading and validation.
"""

import json
from datetime import timedelta

import pytest

from mailrelay.core.config import (
    CircuitBreakerConfig,
    Config,
    QueueConfig,
    RateLimitConfig,
    RetryConfig,
)
from mailrelay.errors import ConfigurationError
from mailrelay.util import coerce_duration, get_config_value, parse_duration_string


class TestDefaults:
    """Test default configuration values"""

    def test_defaults(self):
        config = Config()

        assert config.retry.max_retries == 3
        assert config.retry.base_delay == timedelta(seconds=1)
        assert config.retry.max_delay == timedelta(seconds=30)
        assert config.retry.backoff_multiplier == 2.0
        assert config.rate_limit.max_requests == 10
        assert config.rate_limit.window == timedelta(minutes=1)
        assert config.circuit_breaker.failure_threshold == 5
        assert config.circuit_breaker.reset_timeout == timedelta(seconds=60)
        assert config.idempotency.enabled
        assert config.idempotency.ttl == timedelta(hours=24)
        assert config.metrics.namespace == "mailrelay"


class TestValidation:
    """Test invalid configurations are rejected"""

    def test_negative_retries(self):
        with pytest.raises(ConfigurationError) as exc_info:
            RetryConfig(max_retries=-1)
        assert exc_info.value.config_key == "max_retries"

    def test_backoff_multiplier_below_one(self):
        with pytest.raises(ConfigurationError):
            RetryConfig(backoff_multiplier=0.5)

    def test_zero_rate_limit(self):
        with pytest.raises(ConfigurationError):
            RateLimitConfig(max_requests=0)

    def test_zero_window(self):
        with pytest.raises(ConfigurationError):
            RateLimitConfig(window=timedelta(0))

    def test_zero_threshold(self):
        with pytest.raises(ConfigurationError):
            CircuitBreakerConfig(failure_threshold=0)

    def test_negative_item_delay(self):
        with pytest.raises(ConfigurationError):
            QueueConfig(item_delay=timedelta(milliseconds=-1))

    def test_zero_item_delay_allowed(self):
        assert QueueConfig(item_delay=timedelta(0)).item_delay == timedelta(0)


class TestFromDict:
    """Test building configuration from mappings and files"""

    def test_from_dict_with_duration_strings(self):
        config = Config.from_dict({
            'retry': {'max_retries': 1, 'base_delay': '250ms', 'max_delay': 2},
            'rate_limit': {'window': '10s'},
            'idempotency': {'ttl': '1h'},
        })

        assert config.retry.max_retries == 1
        assert config.retry.base_delay == timedelta(milliseconds=250)
        assert config.retry.max_delay == timedelta(seconds=2)
        assert config.rate_limit.window == timedelta(seconds=10)
        assert config.rate_limit.max_requests == 10
        assert config.idempotency.ttl == timedelta(hours=1)

    def test_unknown_section(self):
        with pytest.raises(ConfigurationError):
            Config.from_dict({'smtp': {}})

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError):
            Config.from_dict({'retry': {'attempts': 3}})

    def test_bad_duration(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Config.from_dict({'rate_limit': {'window': 'soon'}})
        assert exc_info.value.config_key == "rate_limit.window"

    def test_wrong_value_type(self):
        """Test a mistyped value is reported as a configuration error"""
        with pytest.raises(ConfigurationError) as exc_info:
            Config.from_dict({'retry': {'max_retries': "3"}})
        assert exc_info.value.config_key == "retry"

    def test_from_yaml_file(self, tmp_path):
        path = tmp_path / "mailrelay.yaml"
        path.write_text(
            "circuit_breaker:\n"
            "  failure_threshold: 2\n"
            "  reset_timeout: 5m\n"
            "metrics:\n"
            "  enabled: false\n"
        )

        config = Config.from_file(path)

        assert config.circuit_breaker.failure_threshold == 2
        assert config.circuit_breaker.reset_timeout == timedelta(minutes=5)
        assert not config.metrics.enabled

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "mailrelay.json"
        path.write_text(json.dumps({'queue': {'poll_interval': 0.5}}))

        config = Config.from_file(path)

        assert config.queue.poll_interval == timedelta(seconds=0.5)

    def test_empty_yaml_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert Config.from_file(path) == Config()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config.from_file(tmp_path / "missing.yaml")


class TestFromEnv:
    """Test environment configuration"""

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("MAILRELAY_MAX_RETRIES", "5")
        monkeypatch.setenv("MAILRELAY_RATE_LIMIT_WINDOW", "30s")
        monkeypatch.setenv("MAILRELAY_IDEMPOTENCY_ENABLED", "false")
        monkeypatch.setenv("MAILRELAY_FAILURE_THRESHOLD", "not-a-number")

        config = Config.from_env()

        assert config.retry.max_retries == 5
        assert config.rate_limit.window == timedelta(seconds=30)
        assert not config.idempotency.enabled
        assert config.circuit_breaker.failure_threshold == 5

    def test_queue_and_sweep_from_env(self, monkeypatch):
        monkeypatch.setenv("MAILRELAY_QUEUE_POLL_INTERVAL", "250ms")
        monkeypatch.setenv("MAILRELAY_QUEUE_ITEM_DELAY", "0")
        monkeypatch.setenv("MAILRELAY_QUEUE_RETRY_BASE_DELAY", "2s")
        monkeypatch.setenv("MAILRELAY_IDEMPOTENCY_SWEEP_INTERVAL", "1m")
        monkeypatch.setenv("MAILRELAY_METRICS_NAMESPACE", "relay")

        config = Config.from_env()

        assert config.queue.poll_interval == timedelta(milliseconds=250)
        assert config.queue.item_delay == timedelta(0)
        assert config.queue.retry_base_delay == timedelta(seconds=2)
        assert config.idempotency.sweep_interval == timedelta(minutes=1)
        assert config.metrics.namespace == "relay"

    def test_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("RELAY_RATE_LIMIT_MAX_REQUESTS", "42")

        assert Config.from_env(prefix="RELAY_").rate_limit.max_requests == 42


class TestDurationParsing:
    """Test duration helpers"""

    @pytest.mark.parametrize("text,expected", [
        ("250ms", timedelta(milliseconds=250)),
        ("30s", timedelta(seconds=30)),
        ("5m", timedelta(minutes=5)),
        ("2h", timedelta(hours=2)),
        ("1d", timedelta(days=1)),
    ])
    def test_parse_duration_string(self, text, expected):
        assert parse_duration_string(text) == expected

    def test_invalid_duration(self):
        with pytest.raises(ValueError):
            parse_duration_string("5 weeks")

    def test_coerce_duration(self):
        assert coerce_duration(timedelta(seconds=3)) == timedelta(seconds=3)
        assert coerce_duration(1.5) == timedelta(seconds=1.5)
        assert coerce_duration("2") == timedelta(seconds=2)
        with pytest.raises(ValueError):
            coerce_duration(True)

    def test_get_config_value_default(self, monkeypatch):
        monkeypatch.delenv("MAILRELAY_SOMETHING", raising=False)
        assert get_config_value("something", 7, int) == 7
