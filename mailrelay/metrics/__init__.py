"""
Metrics module initialization
"""

from .collector import MetricsCollector, CIRCUIT_STATE_VALUES
from ..core.config import MetricConfig

__all__ = [
    "MetricsCollector",
    "MetricConfig",
    "CIRCUIT_STATE_VALUES",
]
