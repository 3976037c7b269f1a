"""
Validator Registry Test Suite

Coverage:
  - Fixed-length credential types
  - Registration and duplicate detection
  - Lifecycle transitions and counters (activate, exit, slash)
  - batch_activate skipping rules
  - Access control
"""

import pytest
from eth_utils import keccak, to_checksum_address

from quantapool.constants import PUBKEY_LENGTH
from quantapool.contracts.base import Chain
from quantapool.exceptions import (
    AlreadySetError,
    DuplicateCredentialError,
    InvalidLengthError,
    InvalidTransitionError,
    MalformedBytesError,
    UnauthorizedError,
    ValidationError,
    ValidatorNotFoundError,
)
from quantapool.validator import (
    DepositDataRoot,
    DepositSignature,
    ValidatorPubkey,
    ValidatorRegisteredEvent,
    ValidatorRegistry,
    ValidatorStatus,
    ValidatorStatusChangedEvent,
    WithdrawalCredentials,
)


ADMIN = to_checksum_address("0x" + "ad" * 20)
CONTROLLER = to_checksum_address("0x" + "cc" * 20)
ALICE = to_checksum_address("0x" + "a1" * 20)


def make_pubkey(seed: int) -> bytes:
    return bytes([seed % 256]) * PUBKEY_LENGTH


def make_registry(chain=None) -> ValidatorRegistry:
    registry = ValidatorRegistry(chain or Chain(), ADMIN)
    registry.set_controller(ADMIN, CONTROLLER)
    return registry


def register_active(registry: ValidatorRegistry, seed: int) -> int:
    validator_id = registry.register(CONTROLLER, make_pubkey(seed))
    registry.activate(CONTROLLER, validator_id)
    return validator_id


# ══════════════════════════════════════════════════════════════════════
#  FIXED-LENGTH TYPES
# ══════════════════════════════════════════════════════════════════════

class TestFixedBytes:
    """Length-checked byte parameters."""

    def test_pubkey_exact_length(self):
        pubkey = ValidatorPubkey(make_pubkey(1))
        assert len(pubkey) == 2592
        assert pubkey.credential_hash == keccak(make_pubkey(1))

    @pytest.mark.parametrize("length", [0, 2591, 2593])
    def test_pubkey_wrong_length(self, length):
        with pytest.raises(InvalidLengthError) as exc:
            ValidatorPubkey(b"\x01" * length)
        assert exc.value.expected == 2592
        assert exc.value.actual == length

    def test_other_lengths(self):
        assert len(WithdrawalCredentials(b"\x00" * 32)) == 32
        assert len(DepositSignature(b"\x00" * 4595)) == 4595
        assert len(DepositDataRoot(b"\x00" * 32)) == 32
        with pytest.raises(InvalidLengthError):
            DepositSignature(b"\x00" * 4594)
        with pytest.raises(InvalidLengthError):
            WithdrawalCredentials(b"\x00" * 33)

    def test_from_hex(self):
        root = DepositDataRoot("0x" + "ab" * 32)
        assert root == b"\xab" * 32
        assert root.hex_prefixed() == "0x" + "ab" * 32

    def test_coerce_passthrough(self):
        root = DepositDataRoot(b"\x01" * 32)
        assert DepositDataRoot.coerce(root) is root

    def test_bad_hex_rejected(self):
        with pytest.raises(MalformedBytesError) as exc:
            ValidatorPubkey("0x" + "zz" * PUBKEY_LENGTH)
        assert exc.value.what == "pubkey"
        assert isinstance(exc.value, ValidationError)
        with pytest.raises(MalformedBytesError):
            DepositDataRoot("0x" + "a" * 63)

    @pytest.mark.parametrize("value", [PUBKEY_LENGTH, None, [1, 2, 3]])
    def test_non_bytes_rejected(self, value):
        with pytest.raises(MalformedBytesError):
            ValidatorPubkey(value)

    def test_bytearray_accepted(self):
        assert ValidatorPubkey(bytearray(make_pubkey(1))) == make_pubkey(1)


# ══════════════════════════════════════════════════════════════════════
#  REGISTRATION
# ══════════════════════════════════════════════════════════════════════

class TestRegister:
    """register()."""

    def test_ids_start_at_one(self):
        registry = make_registry()
        assert registry.register(CONTROLLER, make_pubkey(1)) == 1
        assert registry.register(CONTROLLER, make_pubkey(2)) == 2
        assert registry.get_status(0) == ValidatorStatus.NONE
        assert registry.get_status(1) == ValidatorStatus.PENDING

    def test_owner_can_register(self):
        registry = make_registry()
        assert registry.register(ADMIN, make_pubkey(1)) == 1

    def test_stranger_cannot_register(self):
        registry = make_registry()
        with pytest.raises(UnauthorizedError):
            registry.register(ALICE, make_pubkey(1))
        assert registry.total_validators == 0

    def test_duplicate_rejected(self):
        registry = make_registry()
        registry.register(CONTROLLER, make_pubkey(1))
        with pytest.raises(DuplicateCredentialError):
            registry.register(CONTROLLER, make_pubkey(1))
        assert registry.total_validators == 1
        assert registry.next_id == 2

    def test_wrong_length_rejected(self):
        registry = make_registry()
        with pytest.raises(InvalidLengthError):
            registry.register(CONTROLLER, b"\x01" * 100)

    def test_lookup_by_credential(self):
        registry = make_registry()
        validator_id = registry.register(CONTROLLER, make_pubkey(7))
        record = registry.get_validator_by_credential(make_pubkey(7))
        assert record.validator_id == validator_id
        assert registry.is_registered(make_pubkey(7))
        assert not registry.is_registered(make_pubkey(8))
        with pytest.raises(ValidatorNotFoundError):
            registry.get_validator_by_credential(make_pubkey(8))

    def test_unknown_id(self):
        registry = make_registry()
        with pytest.raises(ValidatorNotFoundError):
            registry.get_validator(1)

    def test_record_and_event(self):
        chain = Chain(block_number=10)
        registry = make_registry(chain)
        validator_id = registry.register(CONTROLLER, make_pubkey(3))
        record = registry.get_validator(validator_id)
        assert record.registered_block == 10
        assert record.activated_block is None
        d = record.to_dict()
        assert d["status"] == "PENDING"
        assert d["pubkey"].startswith("0x0303")
        event = registry.events[-1]
        assert isinstance(event, ValidatorRegisteredEvent)
        assert event.credential_hash == keccak(make_pubkey(3))


class TestSetController:

    def test_set_once(self):
        registry = make_registry()
        with pytest.raises(AlreadySetError):
            registry.set_controller(ADMIN, ALICE)

    def test_only_owner(self):
        registry = ValidatorRegistry(Chain(), ADMIN)
        with pytest.raises(UnauthorizedError):
            registry.set_controller(ALICE, CONTROLLER)


# ══════════════════════════════════════════════════════════════════════
#  LIFECYCLE
# ══════════════════════════════════════════════════════════════════════

class TestLifecycle:
    """State machine transitions and counters."""

    def test_full_exit_path(self):
        chain = Chain()
        registry = make_registry(chain)
        validator_id = registry.register(CONTROLLER, make_pubkey(1))
        assert registry.pending_count == 1

        chain.mine(5)
        registry.activate(CONTROLLER, validator_id)
        record = registry.get_validator(validator_id)
        assert record.status == ValidatorStatus.ACTIVE
        assert record.activated_block == 5
        assert registry.pending_count == 0
        assert registry.active_count == 1

        registry.request_exit(CONTROLLER, validator_id)
        assert record.status == ValidatorStatus.EXITING
        assert record.is_validating
        assert registry.active_count == 1
        assert registry.exiting_count == 1

        chain.mine(10)
        registry.mark_exited(CONTROLLER, validator_id)
        assert record.status == ValidatorStatus.EXITED
        assert record.exited_block == 15
        assert not record.is_validating
        assert registry.active_count == 0
        assert registry.exiting_count == 0
        assert registry.exited_count == 1

    def test_status_change_events(self):
        registry = make_registry()
        validator_id = register_active(registry, 1)
        event = registry.events[-1]
        assert isinstance(event, ValidatorStatusChangedEvent)
        assert event.old_status == ValidatorStatus.PENDING
        assert event.new_status == ValidatorStatus.ACTIVE
        assert event.to_dict()["newStatus"] == "ACTIVE"
        assert validator_id == 1

    def test_activate_twice_rejected(self):
        registry = make_registry()
        validator_id = register_active(registry, 1)
        with pytest.raises(InvalidTransitionError) as exc:
            registry.activate(CONTROLLER, validator_id)
        assert exc.value.current == ValidatorStatus.ACTIVE
        assert registry.active_count == 1

    def test_exit_requires_active(self):
        registry = make_registry()
        validator_id = registry.register(CONTROLLER, make_pubkey(1))
        with pytest.raises(InvalidTransitionError):
            registry.request_exit(CONTROLLER, validator_id)

    def test_mark_exited_requires_exiting(self):
        registry = make_registry()
        validator_id = register_active(registry, 1)
        with pytest.raises(InvalidTransitionError):
            registry.mark_exited(CONTROLLER, validator_id)

    def test_slash_from_active(self):
        chain = Chain()
        registry = make_registry(chain)
        validator_id = register_active(registry, 1)
        register_active(registry, 2)
        chain.mine(3)
        registry.mark_slashed(CONTROLLER, validator_id)
        record = registry.get_validator(validator_id)
        assert record.status == ValidatorStatus.SLASHED
        assert record.slashed_block == 3
        assert registry.active_count == 1
        assert registry.slashed_count == 1

    def test_slash_from_exiting(self):
        registry = make_registry()
        validator_id = register_active(registry, 1)
        register_active(registry, 2)
        registry.request_exit(CONTROLLER, validator_id)
        registry.mark_slashed(CONTROLLER, validator_id)
        assert registry.active_count == 1
        assert registry.exiting_count == 0
        assert registry.slashed_count == 1

    def test_slash_decrements_exactly_once(self):
        registry = make_registry()
        validator_id = register_active(registry, 1)
        registry.mark_slashed(CONTROLLER, validator_id)
        with pytest.raises(InvalidTransitionError):
            registry.mark_slashed(CONTROLLER, validator_id)
        assert registry.active_count == 0

    @pytest.mark.parametrize("setup", ["pending", "exited"])
    def test_slash_rejected_outside_validating_set(self, setup):
        registry = make_registry()
        validator_id = registry.register(CONTROLLER, make_pubkey(1))
        if setup == "exited":
            registry.activate(CONTROLLER, validator_id)
            registry.request_exit(CONTROLLER, validator_id)
            registry.mark_exited(CONTROLLER, validator_id)
        with pytest.raises(InvalidTransitionError):
            registry.mark_slashed(CONTROLLER, validator_id)

    def test_stranger_cannot_transition(self):
        registry = make_registry()
        validator_id = registry.register(CONTROLLER, make_pubkey(1))
        with pytest.raises(UnauthorizedError):
            registry.activate(ALICE, validator_id)
        assert registry.get_status(validator_id) == ValidatorStatus.PENDING


class TestBatchActivate:
    """batch_activate()."""

    def test_activates_pending_and_skips_rest(self):
        registry = make_registry()
        first = registry.register(CONTROLLER, make_pubkey(1))
        second = registry.register(CONTROLLER, make_pubkey(2))
        third = register_active(registry, 3)
        count = registry.batch_activate(CONTROLLER, [first, second, third, 99])
        assert count == 2
        assert registry.active_count == 3
        assert registry.pending_count == 0

    def test_empty_batch(self):
        registry = make_registry()
        assert registry.batch_activate(ADMIN, []) == 0


class TestRegistryViews:

    def test_stats(self):
        registry = make_registry()
        registry.register(CONTROLLER, make_pubkey(1))
        active = register_active(registry, 2)
        exiting = register_active(registry, 3)
        registry.request_exit(CONTROLLER, exiting)
        slashed = register_active(registry, 4)
        registry.mark_slashed(CONTROLLER, slashed)
        assert registry.get_stats() == {
            "total": 4,
            "pending": 1,
            "active": 2,
            "exiting": 1,
            "exited": 0,
            "slashed": 1,
        }
        assert [v.validator_id for v in registry.get_validators_by_status(ValidatorStatus.ACTIVE)] == [active]

    def test_to_dict(self):
        registry = make_registry()
        register_active(registry, 1)
        d = registry.to_dict()
        assert d["controller"] == CONTROLLER
        assert d["validators"][0]["status"] == "ACTIVE"
