"""
Validator Deposit Endpoint

In-process stand-in for the consensus-layer deposit contract that lives at
``BEACON_DEPOSIT_ADDRESS``. The pool treats it as an opaque service with a fixed
call shape:

    deposit(pubkey[2592], withdrawal_credentials[32], signature[4595], deposit_data_root[32])

with exactly one validator stake attached. Accepted deposits are appended to an
incremental Merkle tree whose root and count are exposed the same way the real
endpoint exposes them (count as 8 little-endian bytes).
"""

import hashlib
from dataclasses import dataclass
from typing import Any, Dict, List

from ..constants import BEACON_DEPOSIT_ADDRESS, DEPOSIT_CONTRACT_TREE_DEPTH, VALIDATOR_STAKE
from ..exceptions import BelowMinimumError, ValidationError
from ..logger import get_logger
from ..validator.types import (
    DepositDataRoot,
    DepositSignature,
    ValidatorPubkey,
    WithdrawalCredentials,
)
from .base import Chain, Contract, external, nonreentrant, normalize_address, short

logger = get_logger(__name__)

MAX_DEPOSIT_COUNT = 2 ** DEPOSIT_CONTRACT_TREE_DEPTH - 1


def _hash(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def _zero_hashes(depth: int) -> List[bytes]:
    hashes = [b"\x00" * 32]
    for _ in range(depth - 1):
        hashes.append(_hash(hashes[-1] + hashes[-1]))
    return hashes


ZERO_HASHES = _zero_hashes(DEPOSIT_CONTRACT_TREE_DEPTH)


@dataclass(frozen=True)
class DepositEvent:
    depositor: str
    pubkey: ValidatorPubkey
    withdrawal_credentials: WithdrawalCredentials
    amount: int
    deposit_data_root: DepositDataRoot
    index: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "DepositEvent",
            "depositor": self.depositor,
            "pubkey": self.pubkey.hex_prefixed(),
            "withdrawalCredentials": self.withdrawal_credentials.hex_prefixed(),
            "amount": str(self.amount),
            "depositDataRoot": self.deposit_data_root.hex_prefixed(),
            "index": self.index,
            "blockNumber": self.block_number,
        }


class BeaconDepositContract(Contract):
    """Deposit endpoint accepting exactly one validator stake per call."""

    def __init__(self, chain: Chain, owner: str, address: str = BEACON_DEPOSIT_ADDRESS):
        super().__init__(chain, owner, address)
        self.deposit_count = 0
        self._branch: List[bytes] = [b"\x00" * 32] * DEPOSIT_CONTRACT_TREE_DEPTH
        self.total_deposited = 0

    @external
    @nonreentrant
    def deposit(
        self,
        sender: str,
        value: int,
        pubkey,
        withdrawal_credentials,
        signature,
        deposit_data_root,
    ) -> int:
        """
        Accept one validator deposit.

        Returns:
            Index of the deposit in the tree
        """
        pubkey = ValidatorPubkey.coerce(pubkey)
        withdrawal_credentials = WithdrawalCredentials.coerce(withdrawal_credentials)
        DepositSignature.coerce(signature)
        deposit_data_root = DepositDataRoot.coerce(deposit_data_root)

        if value < VALIDATOR_STAKE:
            raise BelowMinimumError(VALIDATOR_STAKE, value)
        if value != VALIDATOR_STAKE:
            raise ValidationError(f"Deposit must be exactly {VALIDATOR_STAKE}, got {value}")
        if self.deposit_count >= MAX_DEPOSIT_COUNT:
            raise ValidationError("Deposit tree is full")

        sender = normalize_address(sender)
        self.chain.move_value(sender, self.address, value)

        index = self.deposit_count
        self._insert_leaf(bytes(deposit_data_root))
        self.total_deposited += value

        self._emit(DepositEvent(
            depositor=sender,
            pubkey=pubkey,
            withdrawal_credentials=withdrawal_credentials,
            amount=value,
            deposit_data_root=deposit_data_root,
            index=index,
            block_number=self.chain.block_number,
        ))
        logger.info(f"[DEPOSIT] #{index} from {short(sender)} amount {value}")
        return index

    def _insert_leaf(self, node: bytes) -> None:
        self.deposit_count += 1
        size = self.deposit_count
        for height in range(DEPOSIT_CONTRACT_TREE_DEPTH):
            if size & 1:
                self._branch[height] = node
                return
            node = _hash(self._branch[height] + node)
            size //= 2

    # ── Views ─────────────────────────────────────────────────────────

    def get_deposit_count(self) -> bytes:
        """Deposit count as 8 little-endian bytes."""
        return self.deposit_count.to_bytes(8, "little")

    def get_deposit_root(self) -> bytes:
        node = b"\x00" * 32
        size = self.deposit_count
        for height in range(DEPOSIT_CONTRACT_TREE_DEPTH):
            if size & 1:
                node = _hash(self._branch[height] + node)
            else:
                node = _hash(node + ZERO_HASHES[height])
            size //= 2
        return _hash(node + self.get_deposit_count() + b"\x00" * 24)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "depositCount": self.deposit_count,
            "depositRoot": "0x" + self.get_deposit_root().hex(),
            "totalDeposited": str(self.total_deposited),
        }
