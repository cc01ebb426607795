"""
Warehouse operations — workflows composed from transactions and reservations.

Each operation kind is its own frozen dataclass carrying only the fields it
needs and knowing how to apply itself. execute() runs a list of them in order
as one unit of work and writes an AuditEntry per operation.

Usage:
    from stockledger import warehouse
    from stockledger.services.operations import Reserve, Spend

    warehouse.execute([
        Reserve(material_id=1, quantity=20, order_id=42, reason='Flyers'),
        Spend(material_id=2, quantity=3, reason='Test print', order_id=42),
    ])
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, NamedTuple

from django.db import DatabaseError, transaction
from django.db.models import Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from stockledger.db import unit_of_work
from stockledger.exceptions import ValidationError
from stockledger.models.audit import AuditEntry
from stockledger.models.enums import OperationType, ReservationStatus
from stockledger.models.material import Material, material_pk
from stockledger.models.reservation import Reservation
from stockledger.rounding import to_units
from stockledger.services.reservations import DEFAULT_EXPIRY, StockReservations, lock_reservation
from stockledger.services.transactions import StockTransactions, reserved_quantity

logger = logging.getLogger('stockledger')


class _Outcome(NamedTuple):
    old_quantity: int
    new_quantity: int
    reservation_ids: tuple[int, ...] = ()


def _on_hand(material_id) -> int:
    return Material.objects.resolve(material_id).quantity


def _material_key(material):
    """Material instance or pk (int or numeric string) -> int pk; anything else as given."""
    pk = material_pk(material)
    try:
        return int(pk)
    except (TypeError, ValueError):
        return pk


# ══════════════════════════════════════════════════════════════
# OPERATIONS
# ══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Spend:
    """Spend stock; with reservation_id, spend by fulfilling that reservation."""

    material_id: int
    quantity: Any
    reason: str
    order_id: int | None = None
    user: Any = None
    reservation_id: int | None = None
    metadata: dict = field(default_factory=dict)

    operation_type: ClassVar[str] = OperationType.SPEND

    def apply(self) -> _Outcome:
        if self.reservation_id is not None:
            locked = lock_reservation(self.reservation_id)
            if (locked.material_id != _material_key(self.material_id)
                    or locked.quantity != to_units(self.quantity)):
                raise ValidationError(
                    'RESERVATION_MISMATCH',
                    reservation_id=locked.pk,
                    material_id=self.material_id,
                    quantity=self.quantity,
                )
            change = StockReservations.fulfill(locked, user=self.user, reason=self.reason)
        else:
            change = StockTransactions.spend(
                self.material_id, self.quantity, self.reason,
                order_id=self.order_id, user=self.user,
            )
        return _Outcome(change.old_quantity, change.new_quantity)

    def audited_quantity(self) -> int:
        return to_units(self.quantity)


@dataclass(frozen=True)
class Add:
    material_id: int
    quantity: Any
    reason: str
    order_id: int | None = None
    user: Any = None
    metadata: dict = field(default_factory=dict)

    operation_type: ClassVar[str] = OperationType.ADD

    def apply(self) -> _Outcome:
        change = StockTransactions.add(
            self.material_id, self.quantity, self.reason,
            order_id=self.order_id, user=self.user,
        )
        return _Outcome(change.old_quantity, change.new_quantity)

    def audited_quantity(self) -> int:
        return to_units(self.quantity)


@dataclass(frozen=True)
class Adjust:
    """Set on-hand to new_quantity (inventory count)."""

    material_id: int
    new_quantity: Any
    reason: str
    user: Any = None
    metadata: dict = field(default_factory=dict)

    operation_type: ClassVar[str] = OperationType.ADJUST
    order_id: ClassVar[None] = None

    def apply(self) -> _Outcome:
        result = StockTransactions.adjust(
            self.material_id, self.new_quantity, self.reason, user=self.user
        )
        return _Outcome(result.old_quantity, result.new_quantity)

    def audited_quantity(self) -> int:
        return to_units(self.new_quantity)


@dataclass(frozen=True)
class Reserve:
    """Hold stock for an order. On-hand quantity is unchanged."""

    material_id: int
    quantity: Any
    order_id: int | None
    reason: str = 'Reservation'
    user: Any = None
    expires_at: datetime | None | object = DEFAULT_EXPIRY
    metadata: dict = field(default_factory=dict)

    operation_type: ClassVar[str] = OperationType.RESERVE

    def apply(self) -> _Outcome:
        reservation = StockReservations.reserve(
            self.material_id, self.quantity,
            order_id=self.order_id,
            expires_at=self.expires_at,
            user=self.user,
            notes=self.reason,
        )
        on_hand = _on_hand(self.material_id)
        return _Outcome(on_hand, on_hand, (reservation.pk,))

    def audited_quantity(self) -> int:
        return to_units(self.quantity)


@dataclass(frozen=True)
class Unreserve:
    """Cancel every ACTIVE reservation of one material for one order."""

    material_id: int
    order_id: int
    reason: str = 'Reservation released'
    user: Any = None
    metadata: dict = field(default_factory=dict)

    operation_type: ClassVar[str] = OperationType.UNRESERVE

    def apply(self) -> _Outcome:
        if self.order_id is None:
            raise ValidationError('ORDER_REQUIRED')
        pks = list(
            Reservation.objects.filter(
                material_id=self.material_id,
                order_id=self.order_id,
                status=ReservationStatus.ACTIVE,
            ).values_list('pk', flat=True)
        )
        for pk in pks:
            StockReservations.cancel(pk, reason=self.reason, user=self.user)
        on_hand = _on_hand(self.material_id)
        return _Outcome(on_hand, on_hand, tuple(pks))

    def audited_quantity(self) -> int:
        return 0


# ══════════════════════════════════════════════════════════════
# RESULTS
# ══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class OperationResult:
    success: bool
    material_id: int
    old_quantity: int
    new_quantity: int
    operation: Any
    timestamp: datetime
    reservation_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class ReservationRequest:
    material_id: int
    quantity: Any
    order_id: int
    reason: str = 'Reservation'


@dataclass(frozen=True)
class Requirement:
    material_id: int
    quantity: Any


@dataclass(frozen=True)
class Shortfall:
    material_id: int
    required: int
    available: int
    shortfall: int


@dataclass(frozen=True)
class AvailabilityReport:
    available: bool
    unavailable: list[Shortfall]


# ══════════════════════════════════════════════════════════════
# SERVICE
# ══════════════════════════════════════════════════════════════


class WarehouseOperations:
    """Atomic multi-step warehouse workflows with audit trail."""

    @classmethod
    def execute(cls, operations) -> list[OperationResult]:
        """
        Run operations in order as one unit of work.

        Any failure rolls back every operation of the call (reservations
        included) and propagates unchanged.
        """
        operations = list(operations)
        with unit_of_work('warehouse.execute'):
            results = [cls._perform(operation) for operation in operations]

        logger.info(
            "stock.operations.executed",
            extra={
                "operations": len(results),
                "materials": [r.material_id for r in results],
            },
        )
        return results

    @classmethod
    def _perform(cls, operation) -> OperationResult:
        outcome = operation.apply()
        result = OperationResult(
            success=True,
            material_id=operation.material_id,
            old_quantity=outcome.old_quantity,
            new_quantity=outcome.new_quantity,
            operation=operation,
            timestamp=timezone.now(),
            reservation_ids=outcome.reservation_ids,
        )
        cls._audit(operation, result)
        return result

    @classmethod
    def _audit(cls, operation, result: OperationResult) -> None:
        """
        Write the AuditEntry in its own savepoint.

        A failure here is logged and swallowed: the primary operation already
        succeeded and must be reported as such.
        """
        metadata = dict(operation.metadata)
        if result.reservation_ids:
            metadata['reservation_ids'] = list(result.reservation_ids)
        reservation_id = getattr(operation, 'reservation_id', None)
        if reservation_id is not None:
            metadata['reservation_id'] = reservation_id

        try:
            with transaction.atomic():
                AuditEntry.objects.create(
                    operation_type=operation.operation_type,
                    material_id=operation.material_id,
                    quantity=operation.audited_quantity(),
                    old_quantity=result.old_quantity,
                    new_quantity=result.new_quantity,
                    reason=operation.reason,
                    order_id=operation.order_id,
                    user=operation.user,
                    metadata=metadata,
                )
        except DatabaseError:
            logger.exception(
                "stock.audit.failed",
                extra={
                    "operation": operation.operation_type,
                    "material_id": operation.material_id,
                },
            )

    # ──────────────────────────────────────────────────────────
    # Workflows
    # ──────────────────────────────────────────────────────────

    @classmethod
    def reserve_materials(cls, requests, user=None) -> list[OperationResult]:
        """
        One reservation per request, no stock deduction.

        Atomic batch: if one request can't be reserved, the reservations
        already created by this call are rolled back.
        """
        return cls.execute([
            Reserve(
                material_id=req.material_id,
                quantity=req.quantity,
                order_id=req.order_id,
                reason=req.reason,
                user=user,
            )
            for req in requests
        ])

    @classmethod
    def unreserve_materials(cls, material_ids, order_id, user=None) -> list[OperationResult]:
        """Cancel all active reservations of those materials for the order."""
        if order_id is None:
            raise ValidationError('ORDER_REQUIRED')
        return cls.execute([
            Unreserve(material_id=material_id, order_id=order_id, user=user)
            for material_id in material_ids
        ])

    @classmethod
    def reserve_and_spend(cls, material_id, quantity, order_id, reason,
                          user=None) -> list[OperationResult]:
        """
        Hold then commit in one unit of work.

        The reservation is fulfilled by the spend, so it does not linger as
        an active hold after the stock has left.
        """
        with unit_of_work('warehouse.reserve_and_spend'):
            reserved = cls._perform(Reserve(
                material_id=material_id,
                quantity=quantity,
                order_id=order_id,
                reason=f"Reserve: {reason}",
                user=user,
            ))
            spent = cls._perform(Spend(
                material_id=material_id,
                quantity=quantity,
                reason=f"Spend: {reason}",
                order_id=order_id,
                user=user,
                reservation_id=reserved.reservation_ids[0],
            ))
        return [reserved, spent]

    @classmethod
    def spend_material(cls, material_id, quantity, reason, order_id=None,
                       user=None) -> OperationResult:
        return cls.execute([Spend(material_id, quantity, reason, order_id=order_id, user=user)])[0]

    @classmethod
    def add_material(cls, material_id, quantity, reason, order_id=None,
                     user=None) -> OperationResult:
        return cls.execute([Add(material_id, quantity, reason, order_id=order_id, user=user)])[0]

    @classmethod
    def adjust_stock(cls, material_id, new_quantity, reason, user=None) -> OperationResult:
        return cls.execute([Adjust(material_id, new_quantity, reason, user=user)])[0]

    # ──────────────────────────────────────────────────────────
    # Queries
    # ──────────────────────────────────────────────────────────

    @classmethod
    def check_availability(cls, requirements) -> AvailabilityReport:
        """
        Check every requirement against on hand - active reservations.

        Reports ALL shortfalls, not just the first. A missing material is a
        shortfall with 0 available.
        """
        unavailable = []
        requirements = [(_material_key(req.material_id), req.quantity) for req in requirements]
        ids = {key for key, _ in requirements if isinstance(key, int)}
        on_hand = dict(Material.objects.filter(pk__in=ids).values_list('pk', 'quantity'))

        for material_id, quantity in requirements:
            required = to_units(quantity)
            if material_id not in on_hand:
                unavailable.append(Shortfall(material_id, required, 0, required))
                continue

            available = max(0, on_hand[material_id] - reserved_quantity(material_id))
            if available < required:
                unavailable.append(Shortfall(
                    material_id, required, available, required - available
                ))

        return AvailabilityReport(available=not unavailable, unavailable=unavailable)

    @classmethod
    def operation_history(cls, material=None, order_id=None, limit=100):
        """Audit entries, newest first."""
        qs = AuditEntry.objects.select_related('material', 'user')
        if material is not None:
            qs = qs.filter(material_id=material_pk(material))
        if order_id is not None:
            qs = qs.filter(order_id=order_id)
        return qs[:limit]

    @classmethod
    def reserved_for_order(cls, order_id) -> int:
        """Total quantity currently held for an order."""
        return Reservation.objects.for_order(order_id).active().aggregate(
            t=Coalesce(Sum('quantity'), 0)
        )['t']
