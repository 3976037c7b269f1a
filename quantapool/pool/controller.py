"""
Pool Controller

Orchestrates the pool: takes deposits, mints shares, queues and pays
withdrawals, detects rewards and losses from its own balance, and funds
validators out of the deposit buffer.

Balance model
-------------

The controller's native balance is::

    balance = buffered + (withdrawal_reserve - reserve_advanced)
              + (side-channel credits not yet synced)
              - (side-channel debits not yet synced)

and stake forwarded to the deposit endpoint is tracked in ``deployed_stake``.
``sync_rewards`` treats ``balance + deployed_stake`` as the observed value of
the pool, subtracts the reserve, and books the difference against the ledger's
pooled value as a reward or a loss. No oracle is involved.

A claim is paid out of the reserve and the burned shares' backing refills it,
so pooled value and observed value drop together. When the backing is not in
the buffer (it sits in deployed stake) the refill is recorded in
``reserve_advanced`` and repaid when a validator's principal comes back.
Principal of an exiting validator that reappears on the balance is settled by
the next sync instead of being booked as a reward.

Every state-changing entry point runs atomically and rejects reentry.
"""

from typing import Any, Dict, List, Optional, Tuple

from ..constants import (
    BEACON_DEPOSIT_ADDRESS,
    MIN_DEPOSIT,
    VALIDATOR_STAKE,
    WITHDRAWAL_DELAY_BLOCKS,
)
from ..contracts.base import (
    Chain,
    PausableContract,
    external,
    nonreentrant,
    normalize_address,
    require_nonzero_address,
    short,
)
from ..exceptions import (
    AlreadyProcessedError,
    AlreadySetError,
    BelowMinimumError,
    ConfigurationError,
    ExceedsRecoverableError,
    InsufficientBufferError,
    InsufficientReserveError,
    InsufficientSharesError,
    NotConfiguredError,
    NotYetClaimableError,
    RequestNotFoundError,
    ValidatorNotFoundError,
    ZeroAmountError,
)
from ..logger import get_logger
from ..validator.types import (
    DepositDataRoot,
    DepositSignature,
    ValidatorPubkey,
    ValidatorStatus,
    WithdrawalCredentials,
)
from .events import (
    CollaboratorSetEvent,
    DepositedEvent,
    EmergencyWithdrawalEvent,
    LossDetectedEvent,
    MinDepositUpdatedEvent,
    ReserveFundedEvent,
    RewardsSyncedEvent,
    ValidatorExitedEvent,
    ValidatorExitRequestedEvent,
    ValidatorFundedEvent,
    WithdrawalCancelledEvent,
    WithdrawalClaimedEvent,
    WithdrawalRequestedEvent,
)
from .types import (
    CanFund,
    PoolStatus,
    QueueStatus,
    RequestCount,
    RewardStats,
    ValidatorAllocation,
    WithdrawalRequest,
    WithdrawalRequestView,
)
from .withdrawals import WithdrawalQueue

logger = get_logger(__name__)


class PoolController(PausableContract):
    """
    Deposit pool and withdrawal queue.

    Args:
        chain: Host ledger
        owner: Admin identity
        min_deposit: Smallest accepted deposit
        withdrawal_delay: Blocks between a withdrawal request and its claim
        deposit_endpoint: Address of the validator deposit endpoint
    """

    def __init__(
        self,
        chain: Chain,
        owner: str,
        min_deposit: int = MIN_DEPOSIT,
        withdrawal_delay: int = WITHDRAWAL_DELAY_BLOCKS,
        deposit_endpoint: str = BEACON_DEPOSIT_ADDRESS,
    ):
        if min_deposit <= 0:
            raise ConfigurationError("Minimum deposit must be positive")
        if withdrawal_delay < 0:
            raise ConfigurationError("Withdrawal delay cannot be negative")

        super().__init__(chain, owner)
        self.ledger: Optional[str] = None
        self.validator_registry: Optional[str] = None
        self.deposit_endpoint = require_nonzero_address(deposit_endpoint, "deposit endpoint")

        self.min_deposit = min_deposit
        self.withdrawal_delay = withdrawal_delay

        self.buffered = 0
        self.withdrawal_reserve = 0
        self.reserve_advanced = 0
        self.deployed_stake = 0
        self.total_withdrawal_shares = 0

        self.total_rewards = 0
        self.total_losses = 0
        self.last_sync_block = 0

        self.validator_count = 0
        self._allocations: Dict[int, ValidatorAllocation] = {}
        self._queue = WithdrawalQueue()

        logger.info(
            f"Pool controller deployed at {self.address} "
            f"(min deposit {min_deposit}, withdrawal delay {withdrawal_delay} blocks)"
        )

    # ══════════════════════════════════════════════════════════════════
    #  COLLABORATORS
    # ══════════════════════════════════════════════════════════════════

    def _ledger(self):
        if self.ledger is None:
            raise NotConfiguredError("ledger")
        return self.chain.get_contract(self.ledger)

    def _registry(self):
        if self.validator_registry is None:
            return None
        return self.chain.get_contract(self.validator_registry)

    def _endpoint(self):
        if not self.chain.is_contract(self.deposit_endpoint):
            raise NotConfiguredError("deposit endpoint")
        return self.chain.get_contract(self.deposit_endpoint)

    def receive(self, sender: str, value: int) -> None:
        """Plain transfers are accepted and recognized as rewards at the next sync."""
        logger.debug(f"[RECEIVE] {value} from {short(sender)}")

    # ══════════════════════════════════════════════════════════════════
    #  REWARD SYNC
    # ══════════════════════════════════════════════════════════════════

    def _observed_value(self, in_flight: int = 0) -> int:
        return self.balance - in_flight + self.deployed_stake

    def _inferred_pooled(self, in_flight: int = 0) -> int:
        return max(self._observed_value(in_flight) - self.withdrawal_reserve, 0)

    def _sync_rewards(self, in_flight: int = 0) -> int:
        """
        Reconcile observed value against the ledger's pooled value.

        Args:
            in_flight: Value attached to the current call, excluded from the
                observation so it is never booked as a reward

        Returns:
            Signed change applied to the pooled value (0 on a no-op)
        """
        ledger = self._ledger()
        previous = ledger.total_pooled_value
        inferred = self._inferred_pooled(in_flight)
        if inferred > previous and self._settle_returned_principal(inferred - previous):
            inferred = self._inferred_pooled(in_flight)
        block = self.chain.block_number
        self.last_sync_block = block

        if inferred > previous:
            reward = inferred - previous
            self.total_rewards += reward
            ledger.update_total_pooled_value(self.address, inferred)
            self._emit(RewardsSyncedEvent(reward, inferred, block))
            logger.info(f"[SYNC] reward +{reward} at block {block}, pooled now {inferred}")
        elif inferred < previous:
            loss = previous - inferred
            self.total_losses += loss
            ledger.update_total_pooled_value(self.address, inferred)
            self._emit(LossDetectedEvent(loss, inferred, block))
            logger.warning(f"[SYNC] loss -{loss} at block {block}, pooled now {inferred}")
        return inferred - previous

    def _settle_returned_principal(self, surplus: int) -> int:
        """
        Release exiting validators whose principal is covered by *surplus*.

        Allocations are settled in funding order, each only when the whole
        stake unit is present. Returns the principal released.
        """
        settled = 0
        for allocation in self._allocations.values():
            if not allocation.forwarded or allocation.exited:
                continue
            if allocation.amount > surplus - settled:
                continue
            if not self._is_exiting(allocation):
                continue
            self._release_allocation(allocation)
            settled += allocation.amount
            logger.info(f"[SYNC] principal of validator #{allocation.validator_id} returned")
        return settled

    @external
    @nonreentrant
    def sync_rewards(self, sender: Optional[str] = None) -> int:
        """Reconcile the pooled value with the observed balance. Callable by anyone."""
        return self._sync_rewards()

    # ══════════════════════════════════════════════════════════════════
    #  DEPOSITS
    # ══════════════════════════════════════════════════════════════════

    @external
    @nonreentrant
    def deposit(self, sender: str, value: int) -> int:
        """
        Deposit *value* and mint shares to *sender*.

        Shares are priced at the rate before this deposit lands: pending rewards
        are synced first, then shares are minted, then the pooled value grows
        by exactly *value*.

        Returns:
            Number of shares minted
        """
        ledger = self._ledger()
        if value < self.min_deposit:
            raise BelowMinimumError(self.min_deposit, value)
        self._require_not_paused()
        sender = require_nonzero_address(sender, "depositor")

        self.chain.move_value(sender, self.address, value)
        self._sync_rewards(in_flight=value)

        previous = ledger.total_pooled_value
        shares = ledger.mint_shares(self.address, sender, value)
        self.buffered += value
        ledger.update_total_pooled_value(self.address, previous + value)

        self._emit(DepositedEvent(sender, value, shares, self.chain.block_number))
        logger.info(f"Deposit: {short(sender)} {value} → {shares} shares")
        return shares

    def preview_deposit(self, value: int) -> int:
        """Shares a deposit of *value* would mint right now."""
        ledger = self._ledger()
        return ledger.value_to_shares(value, self._inferred_pooled())

    # ══════════════════════════════════════════════════════════════════
    #  WITHDRAWALS
    # ══════════════════════════════════════════════════════════════════

    @external
    @nonreentrant
    def request_withdrawal(self, sender: str, shares: int) -> Tuple[int, int]:
        """
        Queue a withdrawal of *shares*.

        The shares stay in the sender's balance until the claim burns them, but
        they are locked against further requests.

        Returns:
            (request id, quoted value)
        """
        if shares <= 0:
            raise ZeroAmountError("withdrawal shares")
        ledger = self._ledger()
        sender = normalize_address(sender)

        self._sync_rewards()

        balance = ledger.shares_of(sender)
        locked = self._queue.locked_shares(sender)
        if balance < locked + shares:
            raise InsufficientSharesError(shares, max(balance - locked, 0))

        value = ledger.shares_to_value(shares)
        block = self.chain.block_number
        request_id = self._queue.append(sender, WithdrawalRequest(shares, value, block))
        self.total_withdrawal_shares += shares

        self._emit(WithdrawalRequestedEvent(sender, request_id, shares, value, block))
        logger.info(
            f"Withdrawal #{request_id} requested by {short(sender)}: {shares} shares ≈ {value} "
            f"(claimable at block {block + self.withdrawal_delay})"
        )
        return request_id, value

    @external
    @nonreentrant
    def claim_withdrawal(self, sender: str) -> int:
        """
        Claim the sender's oldest pending withdrawal.

        The shares are burned now and paid at the current rate from the
        liquid part of the reserve. All bookkeeping completes before the value
        leaves the controller.

        Returns:
            Value paid out
        """
        ledger = self._ledger()
        sender = normalize_address(sender)

        request = self._queue.head(sender)
        if request is None:
            raise RequestNotFoundError(f"No pending withdrawal request for {sender}")
        request_id = self._queue.cursor(sender)

        claimable_block = request.request_block + self.withdrawal_delay
        if self.chain.block_number < claimable_block:
            raise NotYetClaimableError(request.request_block, claimable_block, self.chain.block_number)

        self._sync_rewards()

        shares = request.shares
        value = ledger.burn_shares(self.address, sender, shares)
        available = self.available_reserve()
        if available < value:
            raise InsufficientReserveError(value, available)

        # The reserve pays and the burned backing refills it, so the reserve
        # total is unchanged and pooled value drops by exactly what leaves.
        refill = min(value, self.buffered)
        self.buffered -= refill
        self.reserve_advanced += value - refill
        self.total_withdrawal_shares -= shares
        request.claimed = True
        self._queue.advance(sender)
        ledger.update_total_pooled_value(self.address, max(ledger.total_pooled_value - value, 0))
        self._emit(WithdrawalClaimedEvent(sender, request_id, shares, value, self.chain.block_number))

        self.chain.send_value(self.address, sender, value)

        logger.info(f"Withdrawal #{request_id} claimed by {short(sender)}: {shares} shares → {value}")
        return value

    @external
    @nonreentrant
    def cancel_withdrawal(self, sender: str, request_id: int) -> None:
        """Cancel a pending request. Its shares are released, nothing is burned or paid."""
        self._ledger()
        sender = normalize_address(sender)
        request = self._queue.get_pending(sender, request_id)

        self._sync_rewards()

        shares = request.shares
        request.shares = 0
        request.cancelled = True
        self.total_withdrawal_shares -= shares
        self._queue.advance(sender)

        self._emit(WithdrawalCancelledEvent(sender, request_id, shares, self.chain.block_number))
        logger.info(f"Withdrawal #{request_id} cancelled by {short(sender)}: {shares} shares released")

    # ══════════════════════════════════════════════════════════════════
    #  VALIDATOR FUNDING
    # ══════════════════════════════════════════════════════════════════

    def _allocate_stake(self, forwarded: bool) -> ValidatorAllocation:
        if self.buffered < VALIDATOR_STAKE:
            raise InsufficientBufferError(VALIDATOR_STAKE, self.buffered)
        self.buffered -= VALIDATOR_STAKE
        self.validator_count += 1
        allocation = ValidatorAllocation(
            validator_id=self.validator_count,
            amount=VALIDATOR_STAKE,
            forwarded=forwarded,
            funded_block=self.chain.block_number,
        )
        self._allocations[allocation.validator_id] = allocation
        if forwarded:
            self.deployed_stake += VALIDATOR_STAKE
        return allocation

    def _emit_funded(self, allocation: ValidatorAllocation) -> None:
        self._emit(ValidatorFundedEvent(
            allocation.validator_id,
            allocation.registry_id,
            allocation.amount,
            allocation.forwarded,
            self.chain.block_number,
        ))

    @external
    @nonreentrant
    def fund_validator(
        self,
        sender: str,
        pubkey,
        withdrawal_credentials,
        signature,
        deposit_data_root,
    ) -> int:
        """
        Fund one validator from the buffer through the deposit endpoint.

        All four byte parameters are length-checked before anything is
        forwarded. When a registry is bound, the credential is registered
        there too.

        Returns:
            The controller's validator id
        """
        self._require_owner(sender)
        pubkey = ValidatorPubkey.coerce(pubkey)
        withdrawal_credentials = WithdrawalCredentials.coerce(withdrawal_credentials)
        signature = DepositSignature.coerce(signature)
        deposit_data_root = DepositDataRoot.coerce(deposit_data_root)
        endpoint = self._endpoint()

        self._sync_rewards()

        allocation = self._allocate_stake(forwarded=True)
        registry = self._registry()
        if registry is not None:
            allocation.registry_id = registry.register(self.address, pubkey)
        self._emit_funded(allocation)

        endpoint.deposit(
            self.address,
            VALIDATOR_STAKE,
            pubkey,
            withdrawal_credentials,
            signature,
            deposit_data_root,
        )

        logger.info(
            f"Funded validator #{allocation.validator_id} with {VALIDATOR_STAKE} "
            f"(buffer left {self.buffered})"
        )
        return allocation.validator_id

    @external
    @nonreentrant
    def fund_validator_simple(self, sender: str) -> int:
        """Test-mode funding: allocates one stake unit, makes no external call."""
        self._require_owner(sender)
        self._ledger()
        self._sync_rewards()
        allocation = self._allocate_stake(forwarded=False)
        self._emit_funded(allocation)
        logger.info(f"Allocated validator #{allocation.validator_id} (test mode, funds stay on controller)")
        return allocation.validator_id

    def _is_exiting(self, allocation: ValidatorAllocation) -> bool:
        if allocation.exiting:
            return True
        status = self._registry_status(allocation)
        return status == ValidatorStatus.EXITING

    def _registry_status(self, allocation: ValidatorAllocation) -> Optional[ValidatorStatus]:
        registry = self._registry()
        if registry is None or allocation.registry_id is None:
            return None
        return registry.get_status(allocation.registry_id)

    def _release_allocation(self, allocation: ValidatorAllocation, strict: bool = False) -> None:
        """
        Return an allocation's stake to the buffer, repaying reserve advances first.

        With *strict*, the registry transition to EXITED must succeed; otherwise
        it is applied only to validators the registry shows as EXITING.
        """
        status = self._registry_status(allocation)
        if status is not None and status != ValidatorStatus.SLASHED:
            if strict or status == ValidatorStatus.EXITING:
                self._registry().mark_exited(self.address, allocation.registry_id)

        allocation.exited = True
        if allocation.forwarded:
            self.deployed_stake -= allocation.amount
        repaid = min(allocation.amount, self.reserve_advanced)
        self.reserve_advanced -= repaid
        self.buffered += allocation.amount - repaid

        self._emit(ValidatorExitedEvent(allocation.validator_id, allocation.amount, self.chain.block_number))
        logger.info(
            f"Validator #{allocation.validator_id} exited, {allocation.amount - repaid} returned to buffer"
            + (f", {repaid} repaid to reserve" if repaid else "")
        )

    @external
    @nonreentrant
    def request_validator_exit(self, sender: str, validator_id: int) -> None:
        """
        Flag a funded validator as exiting.

        From then on its principal is recognized by ``sync_rewards`` when it
        reappears on the balance. The registry, when bound, moves the
        validator from ACTIVE to EXITING.
        """
        self._require_owner(sender)
        allocation = self.get_allocation(validator_id)
        if allocation.exited or allocation.exiting:
            raise AlreadyProcessedError(f"Validator {validator_id} is already exiting")

        allocation.exiting = True
        if self._registry_status(allocation) == ValidatorStatus.ACTIVE:
            self._registry().request_exit(self.address, allocation.registry_id)

        self._emit(ValidatorExitRequestedEvent(validator_id, self.chain.block_number))
        logger.info(f"Validator #{validator_id} flagged as exiting")

    @external
    @nonreentrant
    def mark_validator_exited(self, sender: str, validator_id: int) -> None:
        """
        Release an exited validator's stake back into the buffer.

        Needed when the returned principal is short of a full stake unit (a
        slashed validator), since sync only settles complete units. Call it
        after the principal has been credited, otherwise the next sync books
        the missing part as a loss.
        """
        self._require_owner(sender)
        allocation = self.get_allocation(validator_id)
        if allocation.exited:
            raise AlreadyProcessedError(f"Validator {validator_id} already marked exited")
        self._release_allocation(allocation, strict=True)

    def get_allocation(self, validator_id: int) -> ValidatorAllocation:
        allocation = self._allocations.get(validator_id)
        if allocation is None:
            raise ValidatorNotFoundError(f"Validator {validator_id} was never funded by this pool")
        return allocation

    # ══════════════════════════════════════════════════════════════════
    #  ADMIN
    # ══════════════════════════════════════════════════════════════════

    @external
    @nonreentrant
    def fund_reserve(self, sender: str, value: int) -> None:
        """Top up the withdrawal reserve with *value* from the admin."""
        self._require_owner(sender)
        if value <= 0:
            raise ZeroAmountError("reserve top-up")
        self._ledger()
        sender = normalize_address(sender)

        self.chain.move_value(sender, self.address, value)
        self.withdrawal_reserve += value
        self._sync_rewards()

        self._emit(ReserveFundedEvent(sender, value, self.withdrawal_reserve, self.chain.block_number))
        logger.info(f"Reserve funded with {value}, reserve now {self.withdrawal_reserve}")

    @external
    def set_ledger(self, sender: str, ledger: str) -> None:
        self._require_owner(sender)
        if self.ledger is not None:
            raise AlreadySetError("ledger")
        self.ledger = require_nonzero_address(ledger, "ledger")
        self._emit(CollaboratorSetEvent("ledger", self.ledger, self.chain.block_number))
        logger.info(f"Ledger bound to {self.ledger}")

    @external
    def set_validator_registry(self, sender: str, registry: str) -> None:
        self._require_owner(sender)
        if self.validator_registry is not None:
            raise AlreadySetError("validator registry")
        self.validator_registry = require_nonzero_address(registry, "validator registry")
        self._emit(CollaboratorSetEvent("registry", self.validator_registry, self.chain.block_number))
        logger.info(f"Validator registry bound to {self.validator_registry}")

    @external
    def set_min_deposit(self, sender: str, min_deposit: int) -> None:
        self._require_owner(sender)
        if min_deposit <= 0:
            raise ZeroAmountError("minimum deposit")
        old_value = self.min_deposit
        self.min_deposit = min_deposit
        self._emit(MinDepositUpdatedEvent(old_value, min_deposit, self.chain.block_number))
        logger.info(f"Minimum deposit {old_value} → {min_deposit}")

    def available_reserve(self) -> int:
        """Reserve that is liquid on the controller and can pay claims now."""
        return self.withdrawal_reserve - self.reserve_advanced

    def recoverable_excess(self) -> int:
        """Balance not accounted for by pooled value or reserve."""
        pooled = self._ledger().total_pooled_value
        return max(self._observed_value() - (pooled + self.withdrawal_reserve), 0)

    @external
    @nonreentrant
    def emergency_withdraw(self, sender: str, to: str, amount: int) -> None:
        """
        Move value that is neither pooled nor reserved out of the controller.

        No sync runs first, so unsynced rewards count as recoverable.
        """
        self._require_owner(sender)
        to = require_nonzero_address(to, "recipient")
        if amount <= 0:
            raise ZeroAmountError("withdrawal amount")
        recoverable = self.recoverable_excess()
        if amount > recoverable:
            raise ExceedsRecoverableError(amount, recoverable)

        self._emit(EmergencyWithdrawalEvent(to, amount, self.chain.block_number))
        self.chain.send_value(self.address, to, amount)
        logger.warning(f"Emergency withdrawal of {amount} to {short(to)}")

    # ══════════════════════════════════════════════════════════════════
    #  VIEWS
    # ══════════════════════════════════════════════════════════════════

    def get_withdrawal_request(self, user: str, request_id: int) -> WithdrawalRequestView:
        user = normalize_address(user)
        request = self._queue.get(user, request_id)
        claimable_block = request.request_block + self.withdrawal_delay
        blocks_remaining = 0 if request.processed else max(claimable_block - self.chain.block_number, 0)
        can_claim = (
            not request.processed
            and request_id == self._queue.cursor(user)
            and blocks_remaining == 0
        )
        return WithdrawalRequestView(
            shares=request.shares,
            value=request.value_at_request,
            request_block=request.request_block,
            can_claim=can_claim,
            blocks_remaining=blocks_remaining,
            claimed=request.claimed,
        )

    def get_withdrawal_request_count(self, user: str) -> RequestCount:
        user = normalize_address(user)
        return RequestCount(self._queue.count(user), self._queue.pending_count(user))

    def get_withdrawal_requests(self, user: str) -> List[WithdrawalRequest]:
        return self._queue.requests_of(normalize_address(user))

    def get_pool_status(self) -> PoolStatus:
        ledger = self._ledger()
        return PoolStatus(
            total_pooled=ledger.total_pooled_value,
            total_shares=ledger.total_shares,
            buffered=self.buffered,
            validator_count=self.validator_count,
            pending_withdrawal_shares=self.total_withdrawal_shares,
            reserve=self.withdrawal_reserve,
            exchange_rate=ledger.exchange_rate(),
        )

    def get_reward_stats(self) -> RewardStats:
        return RewardStats(
            total_rewards=self.total_rewards,
            total_losses=self.total_losses,
            net_rewards=self.total_rewards - self.total_losses,
            last_sync_block=self.last_sync_block,
        )

    def can_fund_validator(self) -> CanFund:
        return CanFund(self.buffered >= VALIDATOR_STAKE, self.buffered)

    def get_queue_status(self) -> QueueStatus:
        pending = self.buffered
        return QueueStatus(
            pending=pending,
            threshold=VALIDATOR_STAKE,
            remaining=max(VALIDATOR_STAKE - pending, 0),
            validators_ready=pending // VALIDATOR_STAKE,
        )

    def get_tvl(self) -> int:
        """Pooled value plus reserve."""
        return self._ledger().total_pooled_value + self.withdrawal_reserve

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "owner": self.owner,
            "paused": self.paused,
            "ledger": self.ledger,
            "validatorRegistry": self.validator_registry,
            "depositEndpoint": self.deposit_endpoint,
            "minDeposit": str(self.min_deposit),
            "withdrawalDelay": self.withdrawal_delay,
            "buffered": str(self.buffered),
            "withdrawalReserve": str(self.withdrawal_reserve),
            "reserveAdvanced": str(self.reserve_advanced),
            "deployedStake": str(self.deployed_stake),
            "totalWithdrawalShares": str(self.total_withdrawal_shares),
            "validatorCount": self.validator_count,
            "rewardStats": self.get_reward_stats().to_dict(),
            "validators": [a.to_dict() for a in self._allocations.values()],
        }

    def __repr__(self) -> str:
        return (
            f"<PoolController buffered={self.buffered} reserve={self.withdrawal_reserve} "
            f"validators={self.validator_count}>"
        )
