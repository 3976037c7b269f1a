"""
QuantaPool Validator Module

Validator credentials, lifecycle status and the registry contract.
"""

from .types import (
    DepositDataRoot,
    DepositSignature,
    FixedBytes,
    ValidatorPubkey,
    ValidatorRecord,
    ValidatorStatus,
    WithdrawalCredentials,
)
from .registry import (
    ValidatorRegisteredEvent,
    ValidatorRegistry,
    ValidatorStatusChangedEvent,
)

__all__ = [
    'DepositDataRoot',
    'DepositSignature',
    'FixedBytes',
    'ValidatorPubkey',
    'ValidatorRecord',
    'ValidatorStatus',
    'WithdrawalCredentials',
    'ValidatorRegisteredEvent',
    'ValidatorRegistry',
    'ValidatorStatusChangedEvent',
]
