"""
QuantaPool Validator Types

Lifecycle status, fixed-length byte parameters of the validator deposit call,
and the per-validator record kept by the registry.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional

from eth_utils import keccak

from ..constants import (
    DEPOSIT_DATA_ROOT_LENGTH,
    PUBKEY_LENGTH,
    SIGNATURE_LENGTH,
    WITHDRAWAL_CREDENTIALS_LENGTH,
)
from ..exceptions import InvalidLengthError, MalformedBytesError


class ValidatorStatus(IntEnum):
    """Validator lifecycle status."""
    NONE = 0              # Unknown id
    PENDING = 1           # Registered, waiting for activation
    ACTIVE = 2            # Validating
    EXITING = 3           # Exit requested, still validating
    EXITED = 4            # Fully exited
    SLASHED = 5           # Penalized and removed


# ══════════════════════════════════════════════════════════════════════
#  FIXED-LENGTH BYTE PARAMETERS
# ══════════════════════════════════════════════════════════════════════

class FixedBytes(bytes):
    """
    ``bytes`` whose length is checked at construction.

    Subclasses set ``length`` and ``label``. Accepts raw bytes or a hex string
    (with or without ``0x``). Anything else, or bad hex, raises
    ``MalformedBytesError``; a value of the wrong length raises
    ``InvalidLengthError``. An instance is proof of well-formedness wherever it
    is passed.
    """
    length = 0
    label = "bytes"

    def __new__(cls, value=b""):
        if isinstance(value, str):
            try:
                value = bytes.fromhex(value[2:] if value.startswith("0x") else value)
            except ValueError as e:
                raise MalformedBytesError(cls.label, str(e)) from e
        elif not isinstance(value, (bytes, bytearray, memoryview)):
            raise MalformedBytesError(cls.label, f"expected bytes or hex string, got {type(value).__name__}")
        obj = super().__new__(cls, value)
        if len(obj) != cls.length:
            raise InvalidLengthError(cls.label, cls.length, len(obj))
        return obj

    @classmethod
    def coerce(cls, value) -> "FixedBytes":
        """Return *value* as this type, validating length if it is not one already."""
        if isinstance(value, cls):
            return value
        return cls(value)

    def hex_prefixed(self) -> str:
        return "0x" + self.hex()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(0x{self[:4].hex()}…, {len(self)} bytes)"


class ValidatorPubkey(FixedBytes):
    """Dilithium validator public key (the registry credential)."""
    length = PUBKEY_LENGTH
    label = "pubkey"

    @property
    def credential_hash(self) -> bytes:
        """keccak-256 content hash, the registry's duplicate index key."""
        return keccak(bytes(self))


class WithdrawalCredentials(FixedBytes):
    length = WITHDRAWAL_CREDENTIALS_LENGTH
    label = "withdrawal_credentials"


class DepositSignature(FixedBytes):
    length = SIGNATURE_LENGTH
    label = "signature"


class DepositDataRoot(FixedBytes):
    length = DEPOSIT_DATA_ROOT_LENGTH
    label = "deposit_data_root"


# ══════════════════════════════════════════════════════════════════════
#  VALIDATOR RECORD
# ══════════════════════════════════════════════════════════════════════

@dataclass
class ValidatorRecord:
    """
    A validator tracked by the registry.

    Attributes:
        validator_id: Registry id (starts at 1, 0 means "does not exist")
        pubkey: Validator credential
        status: Current lifecycle status
        registered_block: Block of registration
        activated_block: Block of activation, if activated
        exited_block: Block the exit completed, if exited
        slashed_block: Block of slashing, if slashed
    """
    validator_id: int
    pubkey: ValidatorPubkey
    status: ValidatorStatus = ValidatorStatus.PENDING
    registered_block: int = 0
    activated_block: Optional[int] = None
    exited_block: Optional[int] = None
    slashed_block: Optional[int] = None

    @property
    def is_validating(self) -> bool:
        """Still part of the validating set (counted as active)."""
        return self.status in (ValidatorStatus.ACTIVE, ValidatorStatus.EXITING)

    @property
    def credential_hash(self) -> bytes:
        return self.pubkey.credential_hash

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.validator_id,
            "pubkey": self.pubkey.hex_prefixed(),
            "status": self.status.name,
            "registeredBlock": self.registered_block,
            "activatedBlock": self.activated_block,
            "exitedBlock": self.exited_block,
            "slashedBlock": self.slashed_block,
        }
