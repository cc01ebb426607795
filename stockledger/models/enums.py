"""
Enums for Stockledger models.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class MovementKind(models.TextChoices):
    """Kind of ledger movement. Sign of delta follows the kind."""
    SPEND = 'spend', _('Spend')                               # delta < 0
    ADD = 'add', _('Add')                                     # delta > 0
    ADJUST_INCREASE = 'adjust_increase', _('Adjust (increase)')
    ADJUST_DECREASE = 'adjust_decrease', _('Adjust (decrease)')


class ReservationStatus(models.TextChoices):
    """
    Reservation lifecycle status.

    ACTIVE is the only non-terminal state. A reservation leaves it exactly once.
    """
    ACTIVE = 'active', _('Active')           # Holding stock
    FULFILLED = 'fulfilled', _('Fulfilled')  # Converted into a spend
    CANCELLED = 'cancelled', _('Cancelled')  # Released explicitly
    EXPIRED = 'expired', _('Expired')        # Released by the expiry sweep


class ReservationAction(models.TextChoices):
    """Entries of the reservation history."""
    CREATED = 'created', _('Created')
    UPDATED = 'updated', _('Updated')
    CANCELLED = 'cancelled', _('Cancelled')
    FULFILLED = 'fulfilled', _('Fulfilled')
    EXPIRED = 'expired', _('Expired')


class OperationType(models.TextChoices):
    """Orchestrated warehouse operations recorded in the audit log."""
    SPEND = 'spend', _('Spend')
    ADD = 'add', _('Add')
    ADJUST = 'adjust', _('Adjust')
    RESERVE = 'reserve', _('Reserve')
    UNRESERVE = 'unreserve', _('Unreserve')
