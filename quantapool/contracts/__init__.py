"""
QuantaPool Contracts Module

Host ledger model and the external validator deposit endpoint.
"""

from .base import (
    Chain,
    Contract,
    OwnershipTransferredEvent,
    PausableContract,
    PausedEvent,
    ValueTransfer,
    external,
    nonreentrant,
    normalize_address,
    require_nonzero_address,
)
from .deposit_endpoint import BeaconDepositContract, DepositEvent

__all__ = [
    'Chain',
    'Contract',
    'OwnershipTransferredEvent',
    'PausableContract',
    'PausedEvent',
    'ValueTransfer',
    'external',
    'nonreentrant',
    'normalize_address',
    'require_nonzero_address',
    'BeaconDepositContract',
    'DepositEvent',
]
