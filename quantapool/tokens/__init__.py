"""
QuantaPool Tokens Module

The stQRL share ledger.
"""

from .shares import (
    ApprovalEvent,
    ControllerSetEvent,
    ShareLedger,
    SharesBurnedEvent,
    SharesMintedEvent,
    TotalPooledValueUpdatedEvent,
    TransferEvent,
)

__all__ = [
    'ApprovalEvent',
    'ControllerSetEvent',
    'ShareLedger',
    'SharesBurnedEvent',
    'SharesMintedEvent',
    'TotalPooledValueUpdatedEvent',
    'TransferEvent',
]
