"""
Host Ledger Model

The pool contracts run on a host ledger that serializes every state-changing
call into one total order. This module models that host:

- ``Chain``: block height, native balances, deployed contracts, atomic call
  frames with snapshot/revert, and side-channel balance changes that execute
  no contract code (validator reward sweeps, exited principal, penalties).
- ``Contract``: base class for everything deployed on a ``Chain``. Provides the
  admin capability (``owner``), an event log, and the ``external`` /
  ``nonreentrant`` entry-point decorators.

Every ``@external`` call either completes with all writes kept, or raises and
leaves every contract and every native balance exactly as before the call,
including writes made by nested calls into other contracts.
"""

import copy
import functools
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

from eth_utils import is_address, keccak, to_checksum_address

from ..constants import ZERO_ADDRESS
from ..exceptions import (
    ContractPausedError,
    InsufficientFundsError,
    InvalidAddressError,
    NegativeAmountError,
    NotOwnerError,
    ReentrantCallError,
    TransferFailedError,
    ZeroAddressError,
    ZeroAmountError,
)
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  ADDRESSES
# ══════════════════════════════════════════════════════════════════════

def normalize_address(address: str) -> str:
    """Return the checksummed form of a 20-byte hex address."""
    if not isinstance(address, str) or not is_address(address):
        raise InvalidAddressError(f"Not a valid address: {address!r}")
    return to_checksum_address(address)


def require_nonzero_address(address: str, what: str = "address") -> str:
    """Normalize *address* and reject the zero address."""
    normalized = normalize_address(address)
    if normalized == to_checksum_address(ZERO_ADDRESS):
        raise ZeroAddressError(what)
    return normalized


def short(address: str) -> str:
    """Shortened address for log lines."""
    return f"{address[:10]}…{address[-4:]}"


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class OwnershipTransferredEvent:
    contract: str
    previous_owner: str
    new_owner: str
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "OwnershipTransferred",
            "contract": self.contract,
            "previousOwner": self.previous_owner,
            "newOwner": self.new_owner,
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class PausedEvent:
    contract: str
    account: str
    paused: bool
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Paused" if self.paused else "Unpaused",
            "contract": self.contract,
            "account": self.account,
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class ValueTransfer:
    """One native value movement recorded by the chain."""
    sender: str
    recipient: str
    amount: int
    block_number: int
    side_channel: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.sender,
            "to": self.recipient,
            "amount": str(self.amount),
            "blockNumber": self.block_number,
            "sideChannel": self.side_channel,
        }


# ══════════════════════════════════════════════════════════════════════
#  CHAIN
# ══════════════════════════════════════════════════════════════════════

class Chain:
    """
    In-process host ledger.

    Usage:

        chain = Chain()
        chain.set_balance(alice, 100 * WEI)
        pool = deploy_pool(chain, owner=admin)
        pool.controller.deposit(alice, 10 * WEI)
        chain.mine(128)
    """

    def __init__(self, block_number: int = 0):
        self.block_number = block_number
        self._balances: Dict[str, int] = {}
        self._contracts: Dict[str, "Contract"] = {}
        self._transfers: List[ValueTransfer] = []
        self._deploy_nonce = 0
        self._depth = 0

    # ── Blocks ────────────────────────────────────────────────────────

    def mine(self, blocks: int = 1) -> int:
        """Advance the block height by *blocks*. Returns the new height."""
        if blocks < 0:
            raise NegativeAmountError("blocks", blocks)
        self.block_number += blocks
        return self.block_number

    @property
    def call_depth(self) -> int:
        return self._depth

    # ── Contracts ─────────────────────────────────────────────────────

    def deploy_address(self, label: str) -> str:
        """Derive a fresh deterministic address for a new contract."""
        self._deploy_nonce += 1
        digest = keccak(text=f"{label}:{self._deploy_nonce}")
        return to_checksum_address(digest[-20:])

    def register(self, contract: "Contract") -> None:
        if contract.address in self._contracts:
            raise InvalidAddressError(f"Address {contract.address} already has code")
        self._contracts[contract.address] = contract
        logger.debug(f"[DEPLOY] {type(contract).__name__} at {contract.address}")

    def get_contract(self, address: str) -> "Contract":
        normalized = normalize_address(address)
        contract = self._contracts.get(normalized)
        if contract is None:
            raise InvalidAddressError(f"No contract deployed at {normalized}")
        return contract

    def is_contract(self, address: str) -> bool:
        return normalize_address(address) in self._contracts

    # ── Native balances ───────────────────────────────────────────────

    def balance_of(self, address: str) -> int:
        return self._balances.get(normalize_address(address), 0)

    def set_balance(self, address: str, amount: int) -> None:
        """Genesis-style allocation, used to fund accounts before a scenario."""
        if amount < 0:
            raise NegativeAmountError("balance", amount)
        self._balances[normalize_address(address)] = amount

    @property
    def transfers(self) -> List[ValueTransfer]:
        return list(self._transfers)

    def credit(self, address: str, amount: int) -> None:
        """
        Increase a balance without executing any code on the recipient.

        This is how consensus-layer reward sweeps and exited principal reach
        the controller: no call, no hook, only a larger balance.
        """
        if amount <= 0:
            raise ZeroAmountError("credit amount")
        normalized = normalize_address(address)
        with self.atomic():
            self._balances[normalized] = self._balances.get(normalized, 0) + amount
            self._transfers.append(
                ValueTransfer(ZERO_ADDRESS, normalized, amount, self.block_number, True)
            )
        logger.info(f"[CREDIT] {short(normalized)} +{amount} at block {self.block_number}")

    def debit(self, address: str, amount: int) -> None:
        """Decrease a balance without executing code (penalties, simulated losses)."""
        if amount <= 0:
            raise ZeroAmountError("debit amount")
        normalized = normalize_address(address)
        balance = self._balances.get(normalized, 0)
        if balance < amount:
            raise InsufficientFundsError(amount, balance)
        with self.atomic():
            self._balances[normalized] = balance - amount
            self._transfers.append(
                ValueTransfer(normalized, ZERO_ADDRESS, amount, self.block_number, True)
            )
        logger.warning(f"[DEBIT] {short(normalized)} -{amount} at block {self.block_number}")

    def move_value(self, sender: str, recipient: str, amount: int) -> None:
        """
        Move native value between accounts without running recipient code.

        Payable entry points use this to take the attached value from the caller.
        """
        if amount < 0:
            raise NegativeAmountError("transfer amount", amount)
        if amount == 0:
            return
        src = normalize_address(sender)
        dst = normalize_address(recipient)
        balance = self._balances.get(src, 0)
        if balance < amount:
            raise InsufficientFundsError(amount, balance)
        self._balances[src] = balance - amount
        self._balances[dst] = self._balances.get(dst, 0) + amount
        self._transfers.append(ValueTransfer(src, dst, amount, self.block_number))

    def send_value(self, sender: str, recipient: str, amount: int) -> None:
        """
        Transfer native value and run the recipient's ``receive`` hook.

        The hook may call back into any contract. If it raises, the transfer
        fails with ``TransferFailedError`` and the enclosing frame rolls back.
        """
        with self.atomic():
            self.move_value(sender, recipient, amount)
            dst = normalize_address(recipient)
            contract = self._contracts.get(dst)
            if contract is None:
                return
            try:
                contract.receive(normalize_address(sender), amount)
            except Exception as e:
                raise TransferFailedError(
                    f"Value transfer of {amount} to {dst} failed: {e}"
                ) from e

    # ── Atomic frames ─────────────────────────────────────────────────

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """
        Run a block of work as one all-or-nothing frame.

        Frames nest; each frame restores its own entry state when an exception
        escapes it, so a failed inner call never leaves partial writes behind.
        """
        snapshot = self._take_snapshot()
        self._depth += 1
        try:
            yield
        except BaseException:
            self._restore_snapshot(snapshot)
            raise
        finally:
            self._depth -= 1

    def _take_snapshot(self) -> Dict[str, Any]:
        return {
            "balances": dict(self._balances),
            "transfers": len(self._transfers),
            "contracts": {
                address: contract._snapshot_state()
                for address, contract in self._contracts.items()
            },
        }

    def _restore_snapshot(self, snapshot: Dict[str, Any]) -> None:
        self._balances = snapshot["balances"]
        del self._transfers[snapshot["transfers"]:]
        states = snapshot["contracts"]
        # Contracts deployed inside the failed frame disappear with it
        for address in list(self._contracts):
            if address not in states:
                del self._contracts[address]
        for address, state in states.items():
            self._contracts[address]._restore_state(state)

    def __repr__(self) -> str:
        return f"<Chain block={self.block_number} contracts={len(self._contracts)}>"


# ══════════════════════════════════════════════════════════════════════
#  ENTRY-POINT DECORATORS
# ══════════════════════════════════════════════════════════════════════

def external(fn: Callable) -> Callable:
    """Run a contract entry point inside an atomic frame."""
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        with self.chain.atomic():
            return fn(self, *args, **kwargs)
    return wrapper


def nonreentrant(fn: Callable) -> Callable:
    """
    Reject any call into this contract while a guarded call is still running.

    One busy flag per contract instance, shared by every guarded entry point.
    """
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        if self._entered:
            raise ReentrantCallError(
                f"{type(self).__name__}.{fn.__name__} called while "
                f"{type(self).__name__} is busy"
            )
        self._entered = True
        try:
            return fn(self, *args, **kwargs)
        finally:
            self._entered = False
    return wrapper


# ══════════════════════════════════════════════════════════════════════
#  CONTRACT BASE
# ══════════════════════════════════════════════════════════════════════

class Contract:
    """
    Base class for contracts deployed on a ``Chain``.

    Contract state must only hold plain data, or references to the ``Chain``
    and to other ``Contract`` objects; everything else is deep-copied when a
    frame is snapshotted.
    """

    def __init__(self, chain: Chain, owner: str, address: Optional[str] = None):
        self.chain = chain
        self.address = normalize_address(address) if address else chain.deploy_address(
            type(self).__name__
        )
        self.owner = require_nonzero_address(owner, "owner")
        self._entered = False
        self._events: List[Any] = []
        chain.register(self)

    # ── Snapshot support ──────────────────────────────────────────────

    def _snapshot_state(self) -> Dict[str, Any]:
        return {
            key: value if isinstance(value, (Chain, Contract)) else copy.deepcopy(value)
            for key, value in vars(self).items()
        }

    def _restore_state(self, state: Dict[str, Any]) -> None:
        self.__dict__.clear()
        self.__dict__.update(state)

    # ── Value ─────────────────────────────────────────────────────────

    @property
    def balance(self) -> int:
        return self.chain.balance_of(self.address)

    def receive(self, sender: str, value: int) -> None:
        """Hook run when plain value is sent here. Rejects by default."""
        raise TransferFailedError(f"{type(self).__name__} does not accept plain transfers")

    # ── Events ────────────────────────────────────────────────────────

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    def _emit(self, event: Any) -> None:
        self._events.append(event)

    # ── Admin capability ──────────────────────────────────────────────

    def _require_owner(self, sender: str) -> None:
        if normalize_address(sender) != self.owner:
            raise NotOwnerError(sender)

    @external
    def transfer_ownership(self, sender: str, new_owner: str) -> None:
        self._require_owner(sender)
        new_owner = require_nonzero_address(new_owner, "new owner")
        previous = self.owner
        self.owner = new_owner
        self._emit(OwnershipTransferredEvent(
            contract=self.address,
            previous_owner=previous,
            new_owner=new_owner,
            block_number=self.chain.block_number,
        ))
        logger.info(
            f"{type(self).__name__} ownership transferred: {short(previous)} → {short(new_owner)}"
        )


class PausableContract(Contract):
    """Contract with an owner-controlled pause switch."""

    def __init__(self, chain: Chain, owner: str, address: Optional[str] = None):
        super().__init__(chain, owner, address)
        self.paused = False

    def _require_not_paused(self) -> None:
        if self.paused:
            raise ContractPausedError(type(self).__name__)

    @external
    def pause(self, sender: str) -> None:
        self._require_owner(sender)
        self.paused = True
        self._emit(PausedEvent(self.address, normalize_address(sender), True, self.chain.block_number))
        logger.warning(f"{type(self).__name__} PAUSED at block {self.chain.block_number}")

    @external
    def unpause(self, sender: str) -> None:
        self._require_owner(sender)
        self.paused = False
        self._emit(PausedEvent(self.address, normalize_address(sender), False, self.chain.block_number))
        logger.info(f"{type(self).__name__} unpaused at block {self.chain.block_number}")
