"""
QuantaPool Validator Registry

Tracks every validator the pool funds through its lifecycle:

    register ──> PENDING ──activate──> ACTIVE ──request_exit──> EXITING ──mark_exited──> EXITED
                                         │                         │
                                         └───────mark_slashed──────┴──> SLASHED

Mutations are restricted to the registry owner and the bound pool controller.
Credentials are unique, enforced through a keccak-256 content-hash index.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from ..contracts.base import (
    Chain,
    Contract,
    external,
    normalize_address,
    require_nonzero_address,
)
from ..exceptions import (
    AlreadySetError,
    DuplicateCredentialError,
    InvalidTransitionError,
    UnauthorizedError,
    ValidatorNotFoundError,
)
from ..logger import get_logger
from .types import ValidatorPubkey, ValidatorRecord, ValidatorStatus

logger = get_logger(__name__)


@dataclass(frozen=True)
class ValidatorRegisteredEvent:
    validator_id: int
    credential_hash: bytes
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ValidatorRegistered",
            "validatorId": self.validator_id,
            "credentialHash": "0x" + self.credential_hash.hex(),
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class ValidatorStatusChangedEvent:
    validator_id: int
    old_status: ValidatorStatus
    new_status: ValidatorStatus
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ValidatorStatusChanged",
            "validatorId": self.validator_id,
            "oldStatus": self.old_status.name,
            "newStatus": self.new_status.name,
            "blockNumber": self.block_number,
        }


class ValidatorRegistry(Contract):
    """
    Registry of pool validators.

    Counters are maintained incrementally:

    - ``active_count``: validators still in the validating set (ACTIVE or EXITING)
    - ``pending_count``: registered, not yet activated
    - ``exited_count`` / ``slashed_count``: terminal states
    """

    def __init__(self, chain: Chain, owner: str):
        super().__init__(chain, owner)
        self.controller: Optional[str] = None
        self.next_id = 1
        self._validators: Dict[int, ValidatorRecord] = {}
        self._by_credential: Dict[bytes, int] = {}

        self.pending_count = 0
        self.active_count = 0
        self.exiting_count = 0
        self.exited_count = 0
        self.slashed_count = 0

        logger.info(f"Validator registry deployed at {self.address}")

    # ── Access control ────────────────────────────────────────────────

    def _require_operator(self, sender: str) -> None:
        sender = normalize_address(sender)
        if sender != self.owner and sender != self.controller:
            raise UnauthorizedError(sender, "owner or controller")

    @external
    def set_controller(self, sender: str, controller: str) -> None:
        """Bind the pool controller. Can happen exactly once."""
        self._require_owner(sender)
        if self.controller is not None:
            raise AlreadySetError("controller")
        self.controller = require_nonzero_address(controller, "controller")
        logger.info(f"Registry controller bound to {self.controller}")

    # ── Lookups ───────────────────────────────────────────────────────

    @property
    def total_validators(self) -> int:
        return len(self._validators)

    def _get(self, validator_id: int) -> ValidatorRecord:
        record = self._validators.get(validator_id)
        if record is None:
            raise ValidatorNotFoundError(f"Validator {validator_id} does not exist")
        return record

    def get_validator(self, validator_id: int) -> ValidatorRecord:
        return self._get(validator_id)

    def get_validator_by_credential(self, pubkey) -> ValidatorRecord:
        pubkey = ValidatorPubkey.coerce(pubkey)
        validator_id = self._by_credential.get(pubkey.credential_hash)
        if validator_id is None:
            raise ValidatorNotFoundError("No validator registered with this credential")
        return self._validators[validator_id]

    def get_status(self, validator_id: int) -> ValidatorStatus:
        """Status of *validator_id*, ``NONE`` for unknown ids."""
        record = self._validators.get(validator_id)
        return record.status if record else ValidatorStatus.NONE

    def is_registered(self, pubkey) -> bool:
        return ValidatorPubkey.coerce(pubkey).credential_hash in self._by_credential

    def get_validators_by_status(self, status: ValidatorStatus) -> List[ValidatorRecord]:
        return [v for v in self._validators.values() if v.status == status]

    def get_stats(self) -> Dict[str, int]:
        return {
            "total": self.total_validators,
            "pending": self.pending_count,
            "active": self.active_count,
            "exiting": self.exiting_count,
            "exited": self.exited_count,
            "slashed": self.slashed_count,
        }

    # ── Transitions ───────────────────────────────────────────────────

    def _transition(
        self,
        record: ValidatorRecord,
        allowed: Iterable[ValidatorStatus],
        new_status: ValidatorStatus,
        action: str,
    ) -> ValidatorStatus:
        old_status = record.status
        if old_status not in allowed:
            raise InvalidTransitionError(record.validator_id, old_status, action)
        record.status = new_status
        self._emit(ValidatorStatusChangedEvent(
            record.validator_id, old_status, new_status, self.chain.block_number
        ))
        return old_status

    @external
    def register(self, sender: str, pubkey) -> int:
        """
        Register a new validator in PENDING state.

        Args:
            sender: Owner or controller
            pubkey: 2592-byte credential

        Returns:
            The new validator id
        """
        self._require_operator(sender)
        pubkey = ValidatorPubkey.coerce(pubkey)
        key = pubkey.credential_hash
        if key in self._by_credential:
            raise DuplicateCredentialError(
                f"Credential already registered as validator {self._by_credential[key]}"
            )

        validator_id = self.next_id
        self.next_id += 1
        self._validators[validator_id] = ValidatorRecord(
            validator_id=validator_id,
            pubkey=pubkey,
            registered_block=self.chain.block_number,
        )
        self._by_credential[key] = validator_id
        self.pending_count += 1

        self._emit(ValidatorRegisteredEvent(validator_id, key, self.chain.block_number))
        logger.info(f"Registered validator #{validator_id} at block {self.chain.block_number}")
        return validator_id

    def _activate(self, record: ValidatorRecord) -> None:
        self._transition(record, (ValidatorStatus.PENDING,), ValidatorStatus.ACTIVE, "activate")
        record.activated_block = self.chain.block_number
        self.pending_count -= 1
        self.active_count += 1

    @external
    def activate(self, sender: str, validator_id: int) -> None:
        self._require_operator(sender)
        self._activate(self._get(validator_id))
        logger.info(f"Activated validator #{validator_id} at block {self.chain.block_number}")

    @external
    def batch_activate(self, sender: str, validator_ids: Iterable[int]) -> int:
        """
        Activate every PENDING id in *validator_ids*.

        Unknown ids and ids in any other status are skipped.

        Returns:
            Number of validators activated
        """
        self._require_operator(sender)
        activated = 0
        for validator_id in validator_ids:
            record = self._validators.get(validator_id)
            if record is None or record.status != ValidatorStatus.PENDING:
                continue
            self._activate(record)
            activated += 1
        logger.info(f"Batch activation: {activated} validator(s) activated")
        return activated

    @external
    def request_exit(self, sender: str, validator_id: int) -> None:
        self._require_operator(sender)
        record = self._get(validator_id)
        self._transition(record, (ValidatorStatus.ACTIVE,), ValidatorStatus.EXITING, "request exit")
        self.exiting_count += 1
        logger.info(f"Exit requested for validator #{validator_id}")

    @external
    def mark_exited(self, sender: str, validator_id: int) -> None:
        self._require_operator(sender)
        record = self._get(validator_id)
        self._transition(record, (ValidatorStatus.EXITING,), ValidatorStatus.EXITED, "mark exited")
        record.exited_block = self.chain.block_number
        self.exiting_count -= 1
        self.active_count -= 1
        self.exited_count += 1
        logger.info(f"Validator #{validator_id} exited at block {self.chain.block_number}")

    @external
    def mark_slashed(self, sender: str, validator_id: int) -> None:
        """Slash an ACTIVE or EXITING validator. Leaves the validating set exactly once."""
        self._require_operator(sender)
        record = self._get(validator_id)
        old_status = self._transition(
            record,
            (ValidatorStatus.ACTIVE, ValidatorStatus.EXITING),
            ValidatorStatus.SLASHED,
            "mark slashed",
        )
        record.slashed_block = self.chain.block_number
        if old_status == ValidatorStatus.EXITING:
            self.exiting_count -= 1
        self.active_count -= 1
        self.slashed_count += 1
        logger.warning(
            f"Validator #{validator_id} SLASHED at block {self.chain.block_number} "
            f"(was {old_status.name})"
        )

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "owner": self.owner,
            "controller": self.controller,
            "stats": self.get_stats(),
            "validators": [v.to_dict() for v in self._validators.values()],
        }
