"""
Utility helpers for mailrelay.
"""

from .config import (
    get_config_value,
    parse_duration_string,
    coerce_duration,
    load_config_file,
)

__all__ = [
    'get_config_value',
    'parse_duration_string',
    'coerce_duration',
    'load_config_file',
]
