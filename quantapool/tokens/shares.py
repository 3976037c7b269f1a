"""
Share Ledger (stQRL)

Liquid claim token of the pool. Balances are denominated in *shares*, which
never change under rewards or losses; the value a share stands for moves with
the exchange rate ``total_pooled_value / total_shares``.

  - ERC-20–style interface over shares (transfer, approve, transfer_from)
  - Conversion math with a virtual offset on both sides
  - Mint / burn / pooled-value updates restricted to one controller, bound once
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from ..constants import (
    MAX_ALLOWANCE,
    RATE_PRECISION,
    SHARE_DECIMALS,
    SHARE_TOKEN_NAME,
    SHARE_TOKEN_SYMBOL,
    VIRTUAL_OFFSET,
    ZERO_ADDRESS,
)
from ..contracts.base import (
    Chain,
    PausableContract,
    external,
    normalize_address,
    require_nonzero_address,
    short,
)
from ..exceptions import (
    AlreadySetError,
    ConfigurationError,
    InsufficientAllowanceError,
    InsufficientSharesError,
    NegativeAmountError,
    NotConfiguredError,
    NotControllerError,
    ZeroAmountError,
    ZeroSharesError,
)
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransferEvent:
    """Emitted on every share movement, including mint (from zero) and burn (to zero)."""
    sender: str
    recipient: str
    shares: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Transfer",
            "from": self.sender,
            "to": self.recipient,
            "shares": str(self.shares),
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class ApprovalEvent:
    owner: str
    spender: str
    shares: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Approval",
            "owner": self.owner,
            "spender": self.spender,
            "shares": str(self.shares),
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class SharesMintedEvent:
    recipient: str
    value: int
    shares: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "SharesMinted",
            "to": self.recipient,
            "value": str(self.value),
            "shares": str(self.shares),
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class SharesBurnedEvent:
    account: str
    shares: int
    value: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "SharesBurned",
            "from": self.account,
            "shares": str(self.shares),
            "value": str(self.value),
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class TotalPooledValueUpdatedEvent:
    """Audit trail of every pooled-value overwrite."""
    old_value: int
    new_value: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "TotalPooledValueUpdated",
            "oldValue": str(self.old_value),
            "newValue": str(self.new_value),
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class ControllerSetEvent:
    controller: str
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ControllerSet",
            "controller": self.controller,
            "blockNumber": self.block_number,
        }


# ══════════════════════════════════════════════════════════════════════
#  SHARE LEDGER
# ══════════════════════════════════════════════════════════════════════

class ShareLedger(PausableContract):
    """
    Share ledger of the pool.

    Conversions (floor division, O = virtual offset):

        shares = value  * (total_shares + O) // (total_pooled_value + O)
        value  = shares * (total_pooled_value + O) // (total_shares + O)

    ``total_pooled_value`` is whatever the controller last asserted; the ledger
    holds no value itself.
    """

    def __init__(
        self,
        chain: Chain,
        owner: str,
        name: str = SHARE_TOKEN_NAME,
        symbol: str = SHARE_TOKEN_SYMBOL,
        decimals: int = SHARE_DECIMALS,
        virtual_offset: int = VIRTUAL_OFFSET,
    ):
        if not name:
            raise ConfigurationError("Token name cannot be empty")
        if not symbol:
            raise ConfigurationError("Token symbol cannot be empty")
        if decimals < 0 or decimals > 18:
            raise ConfigurationError(f"Decimals must be 0-18, got {decimals}")
        if virtual_offset <= 0:
            raise ConfigurationError("Virtual offset must be positive")

        super().__init__(chain, owner)
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.virtual_offset = virtual_offset
        self.controller: Optional[str] = None

        self.total_shares = 0
        self.total_pooled_value = 0
        self._shares: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}  # (owner, spender)

        logger.info(f"Share ledger deployed: {symbol} ({name}) at {self.address}")

    # ── Read-only views ───────────────────────────────────────────────

    @property
    def total_supply(self) -> int:
        return self.total_shares

    def shares_of(self, account: str) -> int:
        return self._shares.get(normalize_address(account), 0)

    def balance_of(self, account: str) -> int:
        """Share balance (shares are the token unit)."""
        return self.shares_of(account)

    def value_of(self, account: str) -> int:
        """Current value of an account's shares."""
        return self.shares_to_value(self.shares_of(account))

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((normalize_address(owner), normalize_address(spender)), 0)

    def holders(self) -> Dict[str, int]:
        return {account: shares for account, shares in self._shares.items() if shares > 0}

    # ── Conversion math ───────────────────────────────────────────────

    def value_to_shares(self, value: int, total_pooled_value: Optional[int] = None) -> int:
        """
        Shares that *value* buys at the current rate.

        Args:
            value: Amount in base units
            total_pooled_value: Use this pooled value instead of the stored one
                (previews of a not-yet-applied sync)
        """
        pooled = self.total_pooled_value if total_pooled_value is None else total_pooled_value
        return value * (self.total_shares + self.virtual_offset) // (pooled + self.virtual_offset)

    def shares_to_value(self, shares: int, total_pooled_value: Optional[int] = None) -> int:
        """Value that *shares* redeem for at the current rate."""
        pooled = self.total_pooled_value if total_pooled_value is None else total_pooled_value
        return shares * (pooled + self.virtual_offset) // (self.total_shares + self.virtual_offset)

    def exchange_rate(self) -> int:
        """Value of 10**18 shares."""
        return self.shares_to_value(RATE_PRECISION)

    # ── Guards ────────────────────────────────────────────────────────

    def _require_controller(self, sender: str) -> None:
        if self.controller is None:
            raise NotConfiguredError("controller")
        if normalize_address(sender) != self.controller:
            raise NotControllerError(sender)

    # ── Admin ─────────────────────────────────────────────────────────

    @external
    def set_controller(self, sender: str, controller: str) -> None:
        """Bind the pool controller. Can happen exactly once."""
        self._require_owner(sender)
        if self.controller is not None:
            raise AlreadySetError("controller")
        self.controller = require_nonzero_address(controller, "controller")
        self._emit(ControllerSetEvent(self.controller, self.chain.block_number))
        logger.info(f"{self.symbol} controller bound to {self.controller}")

    # ── Controller-only supply operations ─────────────────────────────

    @external
    def mint_shares(self, sender: str, to: str, value: int) -> int:
        """
        Mint shares for *value* at the pre-mutation rate.

        The pooled value is NOT updated here; the controller does it afterwards
        so that a depositor's own funds never move the price they pay.

        Returns:
            Number of shares minted
        """
        self._require_controller(sender)
        self._require_not_paused()
        if value <= 0:
            raise ZeroAmountError("mint value")
        to = require_nonzero_address(to, "mint recipient")

        shares = self.value_to_shares(value)
        if shares == 0:
            raise ZeroSharesError(f"Value {value} mints zero shares at the current rate")

        self.total_shares += shares
        self._shares[to] = self._shares.get(to, 0) + shares

        block = self.chain.block_number
        self._emit(SharesMintedEvent(to, value, shares, block))
        self._emit(TransferEvent(ZERO_ADDRESS, to, shares, block))
        logger.debug(f"Minted {shares} {self.symbol} to {short(to)} for {value}")
        return shares

    @external
    def burn_shares(self, sender: str, account: str, shares: int) -> int:
        """
        Burn *shares* from *account* and return their value at the current rate.

        The caller must reuse the returned value when it updates the pooled
        value, so both sides of the books round the same way.
        """
        self._require_controller(sender)
        self._require_not_paused()
        if shares <= 0:
            raise ZeroAmountError("burn shares")
        account = require_nonzero_address(account, "burn account")

        balance = self._shares.get(account, 0)
        if shares > balance:
            raise InsufficientSharesError(shares, balance)

        value = self.shares_to_value(shares)
        self._shares[account] = balance - shares
        self.total_shares -= shares

        block = self.chain.block_number
        self._emit(SharesBurnedEvent(account, shares, value, block))
        self._emit(TransferEvent(account, ZERO_ADDRESS, shares, block))
        logger.debug(f"Burned {shares} {self.symbol} from {short(account)} for {value}")
        return value

    @external
    def update_total_pooled_value(self, sender: str, new_value: int) -> None:
        """Overwrite the pooled value. Controller only, no other checks."""
        self._require_controller(sender)
        if new_value < 0:
            raise NegativeAmountError("pooled value", new_value)
        old_value = self.total_pooled_value
        self.total_pooled_value = new_value
        self._emit(TotalPooledValueUpdatedEvent(old_value, new_value, self.chain.block_number))
        logger.debug(f"Pooled value {old_value} → {new_value}")

    # ── ERC-20 operations over shares ─────────────────────────────────

    def _move_shares(self, sender: str, recipient: str, shares: int) -> None:
        balance = self._shares.get(sender, 0)
        if balance < shares:
            raise InsufficientSharesError(shares, balance)
        self._shares[sender] = balance - shares
        self._shares[recipient] = self._shares.get(recipient, 0) + shares
        self._emit(TransferEvent(sender, recipient, shares, self.chain.block_number))

    @external
    def transfer(self, sender: str, recipient: str, shares: int) -> bool:
        self._require_not_paused()
        if shares <= 0:
            raise ZeroAmountError("transfer shares")
        sender = normalize_address(sender)
        recipient = require_nonzero_address(recipient, "recipient")
        self._move_shares(sender, recipient, shares)
        logger.debug(f"Transfer: {short(sender)} → {short(recipient)} {shares} {self.symbol}")
        return True

    @external
    def approve(self, owner: str, spender: str, shares: int) -> bool:
        self._require_not_paused()
        if shares < 0:
            raise NegativeAmountError("allowance", shares)
        owner = normalize_address(owner)
        spender = require_nonzero_address(spender, "spender")
        self._allowances[(owner, spender)] = shares
        self._emit(ApprovalEvent(owner, spender, shares, self.chain.block_number))
        logger.debug(f"Approve: {short(owner)} → {short(spender)} allowance={shares}")
        return True

    @external
    def transfer_from(self, spender: str, owner: str, recipient: str, shares: int) -> bool:
        """Move *owner*'s shares using *spender*'s allowance."""
        self._require_not_paused()
        if shares <= 0:
            raise ZeroAmountError("transfer shares")
        spender = normalize_address(spender)
        owner = require_nonzero_address(owner, "owner")
        recipient = require_nonzero_address(recipient, "recipient")

        allowed = self._allowances.get((owner, spender), 0)
        if allowed < shares:
            raise InsufficientAllowanceError(shares, allowed)

        self._move_shares(owner, recipient, shares)
        if allowed != MAX_ALLOWANCE:
            self._allowances[(owner, spender)] = allowed - shares
        logger.debug(
            f"transferFrom: spender={short(spender)} {short(owner)} → {short(recipient)} {shares}"
        )
        return True

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "controller": self.controller,
            "owner": self.owner,
            "paused": self.paused,
            "totalShares": str(self.total_shares),
            "totalPooledValue": str(self.total_pooled_value),
            "exchangeRate": str(self.exchange_rate()),
            "virtualOffset": self.virtual_offset,
            "holders": len(self.holders()),
        }

    def __repr__(self) -> str:
        return (
            f"<ShareLedger {self.symbol} shares={self.total_shares} "
            f"pooled={self.total_pooled_value}>"
        )
