"""
QuantaPool Pool Module

Deposit pool controller, withdrawal queue, and deployment wiring.
"""

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
from .withdrawals import WithdrawalQueue
from .controller import PoolController
from .deploy import PoolDeployment, deploy_pool

__all__ = [
    'CanFund',
    'PoolStatus',
    'QueueStatus',
    'RequestCount',
    'RewardStats',
    'ValidatorAllocation',
    'WithdrawalRequest',
    'WithdrawalRequestView',
    'CollaboratorSetEvent',
    'DepositedEvent',
    'EmergencyWithdrawalEvent',
    'LossDetectedEvent',
    'MinDepositUpdatedEvent',
    'ReserveFundedEvent',
    'RewardsSyncedEvent',
    'ValidatorExitedEvent',
    'ValidatorExitRequestedEvent',
    'ValidatorFundedEvent',
    'WithdrawalCancelledEvent',
    'WithdrawalClaimedEvent',
    'WithdrawalRequestedEvent',
    'WithdrawalQueue',
    'PoolController',
    'PoolDeployment',
    'deploy_pool',
]
