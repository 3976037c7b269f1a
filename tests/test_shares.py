"""
Share Ledger Test Suite

Coverage:
  - Deployment and metadata
  - Conversion math with the virtual offset
  - Controller-only mint / burn / pooled-value updates
  - Transfer, approve, transfer_from over shares
  - Pause switch, set-once controller, ownership transfer
"""

import pytest
from eth_utils import to_checksum_address

from quantapool.constants import MAX_ALLOWANCE, RATE_PRECISION, VIRTUAL_OFFSET, WEI, ZERO_ADDRESS
from quantapool.contracts.base import Chain, OwnershipTransferredEvent, PausedEvent
from quantapool.exceptions import (
    AlreadySetError,
    ConfigurationError,
    ContractPausedError,
    InsufficientAllowanceError,
    InsufficientSharesError,
    NegativeAmountError,
    NotConfiguredError,
    NotControllerError,
    NotOwnerError,
    ZeroAddressError,
    ZeroAmountError,
    ZeroSharesError,
)
from quantapool.tokens.shares import (
    ApprovalEvent,
    ShareLedger,
    SharesBurnedEvent,
    SharesMintedEvent,
    TotalPooledValueUpdatedEvent,
    TransferEvent,
)


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

ADMIN = to_checksum_address("0x" + "ad" * 20)
CONTROLLER = to_checksum_address("0x" + "cc" * 20)
ALICE = to_checksum_address("0x" + "a1" * 20)
BOB = to_checksum_address("0x" + "b2" * 20)
CAROL = to_checksum_address("0x" + "c3" * 20)


def make_ledger(chain=None, **kwargs) -> ShareLedger:
    """Ledger owned by ADMIN with CONTROLLER bound."""
    ledger = ShareLedger(chain or Chain(), ADMIN, **kwargs)
    ledger.set_controller(ADMIN, CONTROLLER)
    return ledger


def deposit(ledger: ShareLedger, to: str, value: int) -> int:
    """Controller-style deposit: mint at the old rate, then grow pooled value."""
    previous = ledger.total_pooled_value
    shares = ledger.mint_shares(CONTROLLER, to, value)
    ledger.update_total_pooled_value(CONTROLLER, previous + value)
    return shares


# ══════════════════════════════════════════════════════════════════════
#  DEPLOYMENT
# ══════════════════════════════════════════════════════════════════════

class TestLedgerDeploy:
    """Deployment and basic properties."""

    def test_metadata(self):
        ledger = make_ledger()
        assert ledger.name == "Staked QRL"
        assert ledger.symbol == "stQRL"
        assert ledger.decimals == 18
        assert ledger.virtual_offset == VIRTUAL_OFFSET
        assert ledger.total_supply == 0
        assert ledger.total_pooled_value == 0

    def test_empty_name_raises(self):
        with pytest.raises(ConfigurationError, match="name cannot be empty"):
            ShareLedger(Chain(), ADMIN, name="")

    def test_invalid_decimals_raises(self):
        with pytest.raises(ConfigurationError, match="Decimals"):
            ShareLedger(Chain(), ADMIN, decimals=19)

    def test_non_positive_offset_raises(self):
        with pytest.raises(ConfigurationError, match="offset"):
            ShareLedger(Chain(), ADMIN, virtual_offset=0)

    def test_zero_owner_raises(self):
        with pytest.raises(ZeroAddressError):
            ShareLedger(Chain(), ZERO_ADDRESS)

    def test_to_dict(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, 10 * WEI)
        d = ledger.to_dict()
        assert d["symbol"] == "stQRL"
        assert d["totalShares"] == str(10 * WEI)
        assert d["totalPooledValue"] == str(10 * WEI)
        assert d["controller"] == CONTROLLER
        assert d["holders"] == 1
        assert d["paused"] is False

    def test_repr(self):
        assert "stQRL" in repr(make_ledger())


class TestSetController:
    """Controller binding."""

    def test_set_once(self):
        ledger = make_ledger()
        assert ledger.controller == CONTROLLER
        with pytest.raises(AlreadySetError):
            ledger.set_controller(ADMIN, BOB)
        assert ledger.controller == CONTROLLER

    def test_only_owner(self):
        ledger = ShareLedger(Chain(), ADMIN)
        with pytest.raises(NotOwnerError):
            ledger.set_controller(ALICE, CONTROLLER)
        assert ledger.controller is None

    def test_zero_controller_rejected(self):
        ledger = ShareLedger(Chain(), ADMIN)
        with pytest.raises(ZeroAddressError):
            ledger.set_controller(ADMIN, ZERO_ADDRESS)

    def test_mint_before_controller_bound(self):
        ledger = ShareLedger(Chain(), ADMIN)
        with pytest.raises(NotConfiguredError):
            ledger.mint_shares(CONTROLLER, ALICE, WEI)

    def test_lowercase_controller_accepted(self):
        ledger = ShareLedger(Chain(), ADMIN)
        ledger.set_controller(ADMIN, CONTROLLER.lower())
        ledger.mint_shares(CONTROLLER.lower(), ALICE, WEI)
        assert ledger.shares_of(ALICE) == WEI


# ══════════════════════════════════════════════════════════════════════
#  CONVERSIONS
# ══════════════════════════════════════════════════════════════════════

class TestConversions:
    """value_to_shares / shares_to_value with the virtual offset."""

    def test_empty_ledger_is_one_to_one(self):
        ledger = make_ledger()
        assert ledger.value_to_shares(100 * WEI) == 100 * WEI
        assert ledger.shares_to_value(100 * WEI) == 100 * WEI
        assert ledger.exchange_rate() == RATE_PRECISION

    def test_formula_uses_offset_on_both_sides(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, 100 * WEI)
        ledger.update_total_pooled_value(CONTROLLER, 150 * WEI)
        expected = 10 * WEI * (100 * WEI + VIRTUAL_OFFSET) // (150 * WEI + VIRTUAL_OFFSET)
        assert ledger.value_to_shares(10 * WEI) == expected
        expected_value = 10 * WEI * (150 * WEI + VIRTUAL_OFFSET) // (100 * WEI + VIRTUAL_OFFSET)
        assert ledger.shares_to_value(10 * WEI) == expected_value

    def test_pooled_override(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, 100 * WEI)
        assert ledger.value_to_shares(WEI, total_pooled_value=200 * WEI) == pytest.approx(WEI // 2, abs=10)
        # Override does not touch stored state
        assert ledger.total_pooled_value == 100 * WEI

    def test_round_trip_within_rounding(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, 100 * WEI)
        ledger.update_total_pooled_value(CONTROLLER, 137 * WEI + 12345)
        for v in (1, 999, WEI, 7 * WEI + 3, 1234 * WEI):
            back = ledger.shares_to_value(ledger.value_to_shares(v))
            assert back <= v
            assert v - back <= 2

    def test_conversion_floors(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, 3)
        ledger.update_total_pooled_value(CONTROLLER, 4)
        # 1 * (3 + 1000) // (4 + 1000) == 0
        assert ledger.value_to_shares(1) == 0

    def test_exchange_rate_tracks_pooled_value(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, 100 * WEI)
        ledger.update_total_pooled_value(CONTROLLER, 150 * WEI)
        assert ledger.exchange_rate() == pytest.approx(3 * WEI // 2, abs=100)

    def test_value_of_account(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, 100 * WEI)
        ledger.update_total_pooled_value(CONTROLLER, 150 * WEI)
        assert ledger.value_of(ALICE) == ledger.shares_to_value(100 * WEI)
        assert ledger.value_of(BOB) == 0


# ══════════════════════════════════════════════════════════════════════
#  MINT / BURN / UPDATE
# ══════════════════════════════════════════════════════════════════════

class TestMint:
    """mint_shares()."""

    def test_mint_uses_pre_mutation_rate(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, 100 * WEI)
        ledger.update_total_pooled_value(CONTROLLER, 200 * WEI)
        quoted = ledger.value_to_shares(50 * WEI)
        minted = ledger.mint_shares(CONTROLLER, BOB, 50 * WEI)
        assert minted == quoted
        # Pooled value untouched by the mint itself
        assert ledger.total_pooled_value == 200 * WEI

    def test_mint_updates_supply_and_balance(self):
        ledger = make_ledger()
        shares = ledger.mint_shares(CONTROLLER, ALICE, 5 * WEI)
        assert shares == 5 * WEI
        assert ledger.total_shares == 5 * WEI
        assert ledger.shares_of(ALICE) == 5 * WEI

    def test_mint_events(self):
        ledger = make_ledger()
        ledger.mint_shares(CONTROLLER, ALICE, 5 * WEI)
        minted = [e for e in ledger.events if isinstance(e, SharesMintedEvent)]
        transfers = [e for e in ledger.events if isinstance(e, TransferEvent)]
        assert minted[-1].shares == 5 * WEI
        assert transfers[-1].sender == ZERO_ADDRESS
        assert transfers[-1].recipient == ALICE
        assert minted[-1].to_dict()["event"] == "SharesMinted"

    def test_only_controller(self):
        ledger = make_ledger()
        with pytest.raises(NotControllerError):
            ledger.mint_shares(ALICE, ALICE, WEI)

    def test_zero_value(self):
        ledger = make_ledger()
        with pytest.raises(ZeroAmountError):
            ledger.mint_shares(CONTROLLER, ALICE, 0)

    def test_zero_recipient(self):
        ledger = make_ledger()
        with pytest.raises(ZeroAddressError):
            ledger.mint_shares(CONTROLLER, ZERO_ADDRESS, WEI)

    def test_dust_guard(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, 100 * WEI)
        ledger.update_total_pooled_value(CONTROLLER, 10 ** 40)
        with pytest.raises(ZeroSharesError):
            ledger.mint_shares(CONTROLLER, BOB, 1)
        assert ledger.shares_of(BOB) == 0

    def test_paused(self):
        ledger = make_ledger()
        ledger.pause(ADMIN)
        with pytest.raises(ContractPausedError):
            ledger.mint_shares(CONTROLLER, ALICE, WEI)


class TestBurn:
    """burn_shares()."""

    def test_burn_returns_value_at_current_rate(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, 100 * WEI)
        ledger.update_total_pooled_value(CONTROLLER, 150 * WEI)
        quoted = ledger.shares_to_value(50 * WEI)
        value = ledger.burn_shares(CONTROLLER, ALICE, 50 * WEI)
        assert value == quoted
        assert ledger.total_shares == 50 * WEI
        assert ledger.shares_of(ALICE) == 50 * WEI
        # Pooled value is the caller's responsibility
        assert ledger.total_pooled_value == 150 * WEI

    def test_burn_more_than_balance(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, 10 * WEI)
        with pytest.raises(InsufficientSharesError) as exc:
            ledger.burn_shares(CONTROLLER, ALICE, 10 * WEI + 1)
        assert exc.value.required == 10 * WEI + 1
        assert exc.value.available == 10 * WEI
        assert ledger.shares_of(ALICE) == 10 * WEI

    def test_burn_zero(self):
        ledger = make_ledger()
        with pytest.raises(ZeroAmountError):
            ledger.burn_shares(CONTROLLER, ALICE, 0)

    def test_only_controller(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, 10 * WEI)
        with pytest.raises(NotControllerError):
            ledger.burn_shares(ALICE, ALICE, WEI)

    def test_burn_events(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, 10 * WEI)
        ledger.burn_shares(CONTROLLER, ALICE, 4 * WEI)
        burned = [e for e in ledger.events if isinstance(e, SharesBurnedEvent)]
        assert burned[-1].shares == 4 * WEI
        assert ledger.events[-1].recipient == ZERO_ADDRESS


class TestUpdatePooledValue:
    """update_total_pooled_value()."""

    def test_overwrite_and_event(self):
        ledger = make_ledger()
        ledger.update_total_pooled_value(CONTROLLER, 42)
        ledger.update_total_pooled_value(CONTROLLER, 7)
        assert ledger.total_pooled_value == 7
        event = ledger.events[-1]
        assert isinstance(event, TotalPooledValueUpdatedEvent)
        assert (event.old_value, event.new_value) == (42, 7)

    def test_only_controller(self):
        ledger = make_ledger()
        with pytest.raises(NotControllerError):
            ledger.update_total_pooled_value(ADMIN, 1)

    def test_allowed_while_paused(self):
        ledger = make_ledger()
        ledger.pause(ADMIN)
        ledger.update_total_pooled_value(CONTROLLER, 5)
        assert ledger.total_pooled_value == 5

    def test_negative_rejected(self):
        ledger = make_ledger()
        ledger.update_total_pooled_value(CONTROLLER, 9)
        with pytest.raises(NegativeAmountError) as exc:
            ledger.update_total_pooled_value(CONTROLLER, -1)
        assert exc.value.actual == -1
        assert ledger.total_pooled_value == 9


class TestSupplyInvariant:
    """Sum of balances equals total shares across mint/burn/transfer sequences."""

    def test_sum_of_balances(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, 100 * WEI)
        deposit(ledger, BOB, 37 * WEI + 11)
        ledger.update_total_pooled_value(CONTROLLER, 151 * WEI)
        deposit(ledger, CAROL, 3 * WEI)
        ledger.transfer(ALICE, BOB, 12 * WEI)
        ledger.burn_shares(CONTROLLER, BOB, 5 * WEI)
        ledger.update_total_pooled_value(CONTROLLER, 90 * WEI)
        ledger.burn_shares(CONTROLLER, CAROL, ledger.shares_of(CAROL))
        assert sum(ledger.holders().values()) == ledger.total_shares
        assert CAROL not in ledger.holders()

    def test_balances_unchanged_by_rate_moves(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, 100 * WEI)
        before = ledger.shares_of(ALICE)
        ledger.update_total_pooled_value(CONTROLLER, 300 * WEI)
        ledger.update_total_pooled_value(CONTROLLER, 10 * WEI)
        assert ledger.shares_of(ALICE) == before


# ══════════════════════════════════════════════════════════════════════
#  TRANSFERS & ALLOWANCES
# ══════════════════════════════════════════════════════════════════════

class TestTransfer:
    """transfer()."""

    def test_basic_transfer(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, 100 * WEI)
        assert ledger.transfer(ALICE, BOB, 30 * WEI) is True
        assert ledger.shares_of(ALICE) == 70 * WEI
        assert ledger.shares_of(BOB) == 30 * WEI
        assert ledger.total_shares == 100 * WEI

    def test_insufficient(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, WEI)
        with pytest.raises(InsufficientSharesError):
            ledger.transfer(ALICE, BOB, WEI + 1)

    def test_zero_amount(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, WEI)
        with pytest.raises(ZeroAmountError):
            ledger.transfer(ALICE, BOB, 0)

    def test_zero_target(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, WEI)
        with pytest.raises(ZeroAddressError):
            ledger.transfer(ALICE, ZERO_ADDRESS, 1)

    def test_paused(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, WEI)
        ledger.pause(ADMIN)
        with pytest.raises(ContractPausedError):
            ledger.transfer(ALICE, BOB, 1)
        ledger.unpause(ADMIN)
        ledger.transfer(ALICE, BOB, 1)
        assert ledger.shares_of(BOB) == 1

    def test_event(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, WEI)
        ledger.transfer(ALICE, BOB, 10)
        event = ledger.events[-1]
        assert isinstance(event, TransferEvent)
        assert event.to_dict() == {
            "event": "Transfer",
            "from": ALICE,
            "to": BOB,
            "shares": "10",
            "blockNumber": 0,
        }


class TestAllowance:
    """approve() / transfer_from()."""

    def test_approve_and_transfer_from(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, 100 * WEI)
        ledger.approve(ALICE, BOB, 40 * WEI)
        assert ledger.allowance(ALICE, BOB) == 40 * WEI
        ledger.transfer_from(BOB, ALICE, CAROL, 25 * WEI)
        assert ledger.shares_of(CAROL) == 25 * WEI
        assert ledger.allowance(ALICE, BOB) == 15 * WEI

    def test_insufficient_allowance(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, 100 * WEI)
        ledger.approve(ALICE, BOB, WEI)
        with pytest.raises(InsufficientAllowanceError):
            ledger.transfer_from(BOB, ALICE, CAROL, WEI + 1)
        assert ledger.allowance(ALICE, BOB) == WEI

    def test_unlimited_allowance_not_decremented(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, 100 * WEI)
        ledger.approve(ALICE, BOB, MAX_ALLOWANCE)
        ledger.transfer_from(BOB, ALICE, CAROL, 10 * WEI)
        assert ledger.allowance(ALICE, BOB) == MAX_ALLOWANCE

    def test_failed_transfer_from_keeps_allowance(self):
        ledger = make_ledger()
        deposit(ledger, ALICE, WEI)
        ledger.approve(ALICE, BOB, 10 * WEI)
        with pytest.raises(InsufficientSharesError):
            ledger.transfer_from(BOB, ALICE, CAROL, 2 * WEI)
        assert ledger.allowance(ALICE, BOB) == 10 * WEI

    def test_approve_event(self):
        ledger = make_ledger()
        ledger.approve(ALICE, BOB, 5)
        assert isinstance(ledger.events[-1], ApprovalEvent)

    def test_approve_paused(self):
        ledger = make_ledger()
        ledger.pause(ADMIN)
        with pytest.raises(ContractPausedError):
            ledger.approve(ALICE, BOB, 5)

    def test_negative_allowance_rejected(self):
        ledger = make_ledger()
        ledger.approve(ALICE, BOB, 5)
        with pytest.raises(NegativeAmountError):
            ledger.approve(ALICE, BOB, -1)
        assert ledger.allowance(ALICE, BOB) == 5


# ══════════════════════════════════════════════════════════════════════
#  ADMIN
# ══════════════════════════════════════════════════════════════════════

class TestLedgerAdmin:
    """Pause switch and ownership."""

    def test_pause_only_owner(self):
        ledger = make_ledger()
        with pytest.raises(NotOwnerError):
            ledger.pause(ALICE)
        assert ledger.paused is False

    def test_pause_event(self):
        ledger = make_ledger()
        ledger.pause(ADMIN)
        event = ledger.events[-1]
        assert isinstance(event, PausedEvent)
        assert event.to_dict()["event"] == "Paused"

    def test_transfer_ownership(self):
        ledger = make_ledger()
        ledger.transfer_ownership(ADMIN, ALICE)
        assert ledger.owner == ALICE
        assert isinstance(ledger.events[-1], OwnershipTransferredEvent)
        with pytest.raises(NotOwnerError):
            ledger.pause(ADMIN)
        ledger.pause(ALICE)
        assert ledger.paused

    def test_transfer_ownership_to_zero(self):
        ledger = make_ledger()
        with pytest.raises(ZeroAddressError):
            ledger.transfer_ownership(ADMIN, ZERO_ADDRESS)
        assert ledger.owner == ADMIN
