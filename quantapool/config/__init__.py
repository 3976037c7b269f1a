"""
QuantaPool Configuration

Loads pool deployment parameters from TOML.
Environment variables override TOML values.
"""

from .loader import (
    LedgerConfig,
    PoolConfig,
    load_config,
    parse_amount,
)

__all__ = [
    "LedgerConfig",
    "PoolConfig",
    "load_config",
    "parse_amount",
]
