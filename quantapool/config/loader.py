"""
QuantaPool TOML Configuration Loader

Loads pool deployment parameters from a TOML file with environment variable
overrides. Same shape as every other config in the project: dataclass +
``from_dict`` + ``from_file`` + ``apply_env`` + ``validate``.

Environment variable mapping:
    [pool] min_deposit              → QUANTAPOOL_MIN_DEPOSIT
    [pool] withdrawal_delay_blocks  → QUANTAPOOL_WITHDRAWAL_DELAY_BLOCKS
    [pool] network_name             → QUANTAPOOL_NETWORK_NAME
    [pool] deposit_endpoint         → QUANTAPOOL_DEPOSIT_ENDPOINT
    [pool] with_registry            → QUANTAPOOL_WITH_REGISTRY
    [ledger] virtual_offset         → QUANTAPOOL_VIRTUAL_OFFSET

Amounts are given either as integers in base units or as decimal strings in
whole tokens ("1.5" is 1.5 * 10**18 base units).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional, Union

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from eth_utils import is_address

from ..constants import (
    BEACON_DEPOSIT_ADDRESS,
    MIN_DEPOSIT,
    QUANTAPOOL_CONFIG_FILE,
    QUANTAPOOL_NETWORK_NAME,
    SHARE_DECIMALS,
    SHARE_TOKEN_NAME,
    SHARE_TOKEN_SYMBOL,
    VIRTUAL_OFFSET,
    WEI,
    WITHDRAWAL_DELAY_BLOCKS,
)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("1", "true", "yes", "on")


def parse_amount(value: Union[int, str]) -> int:
    """
    Convert a config amount to base units.

    Integers are taken as base units; strings as whole-token decimals.
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid amount: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        for suffix in (" QRL", " stQRL"):
            if text.endswith(suffix):
                text = text[: -len(suffix)].strip()
        try:
            scaled = Decimal(text) * WEI
        except InvalidOperation:
            raise ConfigurationError(f"Invalid amount: {value!r}") from None
        if scaled != scaled.to_integral_value():
            raise ConfigurationError(f"Amount {value!r} has more than 18 decimals")
        return int(scaled)
    raise ConfigurationError(f"Invalid amount: {value!r}")


@dataclass
class LedgerConfig:
    """[ledger] section."""
    name: str = SHARE_TOKEN_NAME
    symbol: str = SHARE_TOKEN_SYMBOL
    decimals: int = SHARE_DECIMALS
    virtual_offset: int = VIRTUAL_OFFSET

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerConfig":
        return cls(
            name=data.get("name", SHARE_TOKEN_NAME),
            symbol=data.get("symbol", SHARE_TOKEN_SYMBOL),
            decimals=data.get("decimals", SHARE_DECIMALS),
            virtual_offset=data.get("virtual_offset", VIRTUAL_OFFSET),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("QUANTAPOOL_VIRTUAL_OFFSET"):
            self.virtual_offset = int(v)

    def validate(self) -> None:
        if not self.name or not self.symbol:
            raise ConfigurationError("Ledger name and symbol cannot be empty")
        if not 0 <= self.decimals <= 18:
            raise ConfigurationError(f"decimals must be 0-18, got {self.decimals}")
        if self.virtual_offset <= 0:
            raise ConfigurationError("virtual_offset must be positive")


@dataclass
class PoolConfig:
    """
    Pool deployment configuration.

    Attributes:
        network_name: Label of the target network (logging only)
        min_deposit: Smallest accepted deposit in base units
        withdrawal_delay_blocks: Blocks between request and claim
        deposit_endpoint: Address of the validator deposit endpoint
        with_registry: Deploy and wire a validator registry
        ledger: Share ledger parameters
    """
    network_name: str = str(QUANTAPOOL_NETWORK_NAME)
    min_deposit: int = MIN_DEPOSIT
    withdrawal_delay_blocks: int = WITHDRAWAL_DELAY_BLOCKS
    deposit_endpoint: str = BEACON_DEPOSIT_ADDRESS
    with_registry: bool = True
    ledger: LedgerConfig = field(default_factory=LedgerConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PoolConfig":
        pool_data = data.get("pool", {})
        return cls(
            network_name=pool_data.get("network_name", str(QUANTAPOOL_NETWORK_NAME)),
            min_deposit=parse_amount(pool_data.get("min_deposit", MIN_DEPOSIT)),
            withdrawal_delay_blocks=pool_data.get("withdrawal_delay_blocks", WITHDRAWAL_DELAY_BLOCKS),
            deposit_endpoint=pool_data.get("deposit_endpoint", BEACON_DEPOSIT_ADDRESS),
            with_registry=pool_data.get("with_registry", True),
            ledger=LedgerConfig.from_dict(data.get("ledger", {})),
        )

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> "PoolConfig":
        """
        Load configuration from a TOML file.

        A missing file yields the defaults (with environment overrides).
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            try:
                raw = tomli.load(f)
            except tomli.TOMLDecodeError as e:
                raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    def apply_env(self) -> None:
        """Apply environment variable overrides."""
        if v := os.environ.get("QUANTAPOOL_NETWORK_NAME"):
            self.network_name = v
        if v := os.environ.get("QUANTAPOOL_MIN_DEPOSIT"):
            self.min_deposit = parse_amount(int(v) if v.isdigit() else v)
        if v := os.environ.get("QUANTAPOOL_WITHDRAWAL_DELAY_BLOCKS"):
            self.withdrawal_delay_blocks = int(v)
        if v := os.environ.get("QUANTAPOOL_DEPOSIT_ENDPOINT"):
            self.deposit_endpoint = v
        if v := os.environ.get("QUANTAPOOL_WITH_REGISTRY"):
            self.with_registry = v.strip().lower() in _TRUE_VALUES
        self.ledger.apply_env()

    def validate(self) -> bool:
        """
        Validate all parameters.

        Raises:
            ConfigurationError: on invalid config
        """
        if self.min_deposit <= 0:
            raise ConfigurationError("min_deposit must be positive")
        if self.withdrawal_delay_blocks < 0:
            raise ConfigurationError("withdrawal_delay_blocks cannot be negative")
        if not is_address(self.deposit_endpoint):
            raise ConfigurationError(f"Invalid deposit_endpoint: {self.deposit_endpoint}")
        self.ledger.validate()
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pool": {
                "network_name": self.network_name,
                "min_deposit": self.min_deposit,
                "withdrawal_delay_blocks": self.withdrawal_delay_blocks,
                "deposit_endpoint": self.deposit_endpoint,
                "with_registry": self.with_registry,
            },
            "ledger": {
                "name": self.ledger.name,
                "symbol": self.ledger.symbol,
                "decimals": self.ledger.decimals,
                "virtual_offset": self.ledger.virtual_offset,
            },
        }


def load_config(path: Optional[str] = None) -> PoolConfig:
    """
    Load pool configuration.

    Resolution order:
        1. Explicit *path* argument
        2. QUANTAPOOL_CONFIG_FILE from the environment or .env
        3. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("QUANTAPOOL_CONFIG_FILE", str(QUANTAPOOL_CONFIG_FILE))
    return PoolConfig.from_file(path)
