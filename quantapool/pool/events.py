"""
Pool controller events.

Frozen records appended to the controller's event log; ``to_dict`` gives the
external camelCase shape.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class DepositedEvent:
    user: str
    value: int
    shares: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Deposited",
            "user": self.user,
            "value": str(self.value),
            "shares": str(self.shares),
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class WithdrawalRequestedEvent:
    user: str
    request_id: int
    shares: int
    value: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "WithdrawalRequested",
            "user": self.user,
            "requestId": self.request_id,
            "shares": str(self.shares),
            "value": str(self.value),
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class WithdrawalClaimedEvent:
    user: str
    request_id: int
    shares: int
    value: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "WithdrawalClaimed",
            "user": self.user,
            "requestId": self.request_id,
            "shares": str(self.shares),
            "value": str(self.value),
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class WithdrawalCancelledEvent:
    user: str
    request_id: int
    shares: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "WithdrawalCancelled",
            "user": self.user,
            "requestId": self.request_id,
            "shares": str(self.shares),
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class RewardsSyncedEvent:
    reward: int
    new_total_pooled: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "RewardsSynced",
            "reward": str(self.reward),
            "newTotalPooled": str(self.new_total_pooled),
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class LossDetectedEvent:
    loss: int
    new_total_pooled: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "LossDetected",
            "loss": str(self.loss),
            "newTotalPooled": str(self.new_total_pooled),
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class ValidatorFundedEvent:
    validator_id: int
    registry_id: Optional[int]
    amount: int
    forwarded: bool
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ValidatorFunded",
            "validatorId": self.validator_id,
            "registryId": self.registry_id,
            "amount": str(self.amount),
            "forwarded": self.forwarded,
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class ValidatorExitedEvent:
    validator_id: int
    released: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ValidatorExited",
            "validatorId": self.validator_id,
            "released": str(self.released),
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class ValidatorExitRequestedEvent:
    validator_id: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ValidatorExitRequested",
            "validatorId": self.validator_id,
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class ReserveFundedEvent:
    sender: str
    amount: int
    new_reserve: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ReserveFunded",
            "from": self.sender,
            "amount": str(self.amount),
            "newReserve": str(self.new_reserve),
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class EmergencyWithdrawalEvent:
    recipient: str
    amount: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "EmergencyWithdrawal",
            "to": self.recipient,
            "amount": str(self.amount),
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class MinDepositUpdatedEvent:
    old_value: int
    new_value: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "MinDepositUpdated",
            "oldValue": str(self.old_value),
            "newValue": str(self.new_value),
            "blockNumber": self.block_number,
        }


@dataclass(frozen=True)
class CollaboratorSetEvent:
    """Ledger or registry address bound on the controller."""
    role: str
    address: str
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "LedgerSet" if self.role == "ledger" else "ValidatorRegistrySet",
            "address": self.address,
            "blockNumber": self.block_number,
        }
