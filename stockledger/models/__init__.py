"""
Stockledger Models.

Core models for material stock:
- Material: Stocked item with on-hand quantity cache
- Movement: Immutable ledger of changes
- Reservation: Soft holds against orders (+ ReservationHistory)
- AuditEntry: Secondary audit of orchestrated operations
"""

from stockledger.models.audit import AuditEntry
from stockledger.models.enums import (
    MovementKind,
    OperationType,
    ReservationAction,
    ReservationStatus,
)
from stockledger.models.material import Material
from stockledger.models.movement import Movement
from stockledger.models.reservation import Reservation, ReservationHistory

__all__ = [
    'MovementKind',
    'ReservationStatus',
    'ReservationAction',
    'OperationType',
    'Material',
    'Movement',
    'Reservation',
    'ReservationHistory',
    'AuditEntry',
]
