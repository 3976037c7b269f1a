"""
QuantaPool Pool Types

Withdrawal request record and the read-only view tuples returned by the
controller.
"""

from dataclasses import dataclass
from typing import Any, Dict, NamedTuple, Optional


@dataclass
class WithdrawalRequest:
    """
    One queued withdrawal.

    ``shares`` stay in the owner's balance until the claim burns them.
    ``value_at_request`` is the quote at request time; the claim pays the value
    at claim time instead.
    """
    shares: int
    value_at_request: int
    request_block: int
    claimed: bool = False
    cancelled: bool = False

    @property
    def processed(self) -> bool:
        return self.claimed or self.cancelled

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shares": str(self.shares),
            "valueAtRequest": str(self.value_at_request),
            "requestBlock": self.request_block,
            "claimed": self.claimed,
            "cancelled": self.cancelled,
        }


@dataclass
class ValidatorAllocation:
    """
    One stake unit taken out of the buffer.

    ``forwarded`` is True when the stake went to the deposit endpoint (and is
    therefore tracked as deployed principal), False for test-mode allocations
    that leave the funds on the controller.
    ``exiting`` is set by the controller when the validator was asked to exit.
    """
    validator_id: int
    amount: int
    forwarded: bool
    funded_block: int
    registry_id: Optional[int] = None
    exiting: bool = False
    exited: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "validatorId": self.validator_id,
            "amount": str(self.amount),
            "forwarded": self.forwarded,
            "fundedBlock": self.funded_block,
            "registryId": self.registry_id,
            "exiting": self.exiting,
            "exited": self.exited,
        }


class WithdrawalRequestView(NamedTuple):
    shares: int
    value: int
    request_block: int
    can_claim: bool
    blocks_remaining: int
    claimed: bool


class RequestCount(NamedTuple):
    total: int
    pending: int


class PoolStatus(NamedTuple):
    total_pooled: int
    total_shares: int
    buffered: int
    validator_count: int
    pending_withdrawal_shares: int
    reserve: int
    exchange_rate: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalPooled": str(self.total_pooled),
            "totalShares": str(self.total_shares),
            "buffered": str(self.buffered),
            "validatorCount": self.validator_count,
            "pendingWithdrawalShares": str(self.pending_withdrawal_shares),
            "reserve": str(self.reserve),
            "exchangeRate": str(self.exchange_rate),
        }


class RewardStats(NamedTuple):
    total_rewards: int
    total_losses: int
    net_rewards: int
    last_sync_block: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalRewards": str(self.total_rewards),
            "totalLosses": str(self.total_losses),
            "netRewards": str(self.net_rewards),
            "lastSyncBlock": self.last_sync_block,
        }


class CanFund(NamedTuple):
    possible: bool
    buffered: int


class QueueStatus(NamedTuple):
    pending: int
    threshold: int
    remaining: int
    validators_ready: int
