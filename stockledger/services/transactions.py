"""
Stock transactions — the only path that changes on-hand quantity.

spend, add, return, adjust, bulk variants and the availability check.
All mutating methods run under one unit of work and lock the material
row (select_for_update) before reading its quantity.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from django.db.models import Sum
from django.db.models.functions import Coalesce

from stockledger.conf import stockledger_settings
from stockledger.db import unit_of_work
from stockledger.exceptions import InsufficientStock, ValidationError
from stockledger.models.enums import MovementKind
from stockledger.models.material import Material, material_pk
from stockledger.models.movement import Movement
from stockledger.models.reservation import Reservation
from stockledger.rounding import positive_units, to_decimal, to_units

logger = logging.getLogger('stockledger')


@dataclass(frozen=True)
class QuantityChange:
    """Result of spend/add/return."""

    old_quantity: int
    new_quantity: int


@dataclass(frozen=True)
class Adjustment:
    """Result of adjust()."""

    old_quantity: int
    new_quantity: int
    delta: int


@dataclass(frozen=True)
class Availability:
    """Result of check_availability()."""

    available: bool
    current_quantity: int
    reserved_quantity: int
    available_quantity: int
    material_name: str


@dataclass(frozen=True)
class SupplierDelivery:
    """Delivery paperwork attached to an inbound movement."""

    supplier_id: int | None = None
    delivery_number: str = ''
    invoice_number: str = ''
    delivery_date: date | None = None
    notes: str = ''


@dataclass(frozen=True)
class StockItem:
    """One line of a bulk operation."""

    material: Any
    quantity: Any
    reason: str


@dataclass(frozen=True)
class BulkResult:
    """Per-item result of a bulk operation, in caller order."""

    material_id: int
    old_quantity: int
    new_quantity: int


def _require_reason(reason: str) -> None:
    if not reason or not str(reason).strip():
        raise ValidationError('REASON_REQUIRED')


def reserved_quantity(material) -> int:
    """Sum of active, non-expired reservations for a material."""
    return Reservation.objects.filter(
        material_id=material_pk(material)
    ).active().aggregate(
        t=Coalesce(Sum('quantity'), 0)
    )['t']


class StockTransactions:
    """State-changing stock methods."""

    @classmethod
    def spend(cls, material, quantity, reason, order_id=None, user=None,
              check_min_quantity=False) -> QuantityChange:
        """
        Stock exit.

        The quantity is rounded UP before any check: spending 10.3 takes 11.

        Raises:
            NotFound('MATERIAL_NOT_FOUND'): If the material doesn't exist
            InsufficientStock: If on-hand quantity would go negative
            ValidationError: If quantity <= 0 or reason is empty

        Concurrency:
            - Runs under one unit of work
            - Uses select_for_update() on Material
            - Verifies quantity after lock
        """
        units = positive_units(quantity)
        _require_reason(reason)

        with unit_of_work('spend'):
            locked = Material.objects.lock(material)
            old_quantity = locked.quantity
            new_quantity = old_quantity - units

            if new_quantity < 0:
                raise InsufficientStock(
                    'INSUFFICIENT_STOCK',
                    material_id=locked.pk,
                    material_name=locked.name,
                    available=old_quantity,
                    requested=units,
                )

            Movement.objects.create(
                material=locked,
                kind=MovementKind.SPEND,
                delta=-units,
                reason=reason,
                order_id=order_id,
                user=user,
            )

            if check_min_quantity and locked.min_quantity is not None \
                    and new_quantity < locked.min_quantity:
                logger.warning(
                    "stock.spend.below_minimum",
                    extra={
                        "material_id": locked.pk,
                        "material": locked.name,
                        "new_quantity": new_quantity,
                        "min_quantity": locked.min_quantity,
                    },
                )

            logger.info(
                "stock.spend",
                extra={
                    "material_id": locked.pk,
                    "material": locked.name,
                    "qty": units,
                    "old_quantity": old_quantity,
                    "new_quantity": new_quantity,
                    "reason": reason,
                    "order_id": order_id,
                },
            )
            return QuantityChange(old_quantity, new_quantity)

    @classmethod
    def add(cls, material, quantity, reason, order_id=None, user=None,
            supplier: SupplierDelivery | None = None) -> QuantityChange:
        """
        Stock entry.

        Rounded up like every other quantity. No upper bound: max_quantity
        is informational and inbound stock is never refused.

        Raises:
            NotFound('MATERIAL_NOT_FOUND'): If the material doesn't exist
            ValidationError: If quantity <= 0 or reason is empty
        """
        units = positive_units(quantity)
        _require_reason(reason)
        supplier = supplier or SupplierDelivery()

        with unit_of_work('add'):
            locked = Material.objects.lock(material)
            old_quantity = locked.quantity

            Movement.objects.create(
                material=locked,
                kind=MovementKind.ADD,
                delta=units,
                reason=reason,
                order_id=order_id,
                user=user,
                supplier_id=supplier.supplier_id,
                delivery_number=supplier.delivery_number,
                invoice_number=supplier.invoice_number,
                delivery_date=supplier.delivery_date,
                delivery_notes=supplier.notes,
            )

            new_quantity = old_quantity + units
            logger.info(
                "stock.add",
                extra={
                    "material_id": locked.pk,
                    "material": locked.name,
                    "qty": units,
                    "old_quantity": old_quantity,
                    "new_quantity": new_quantity,
                    "reason": reason,
                },
            )
            return QuantityChange(old_quantity, new_quantity)

    @classmethod
    def return_stock(cls, material, quantity, reason='', order_id=None,
                     user=None) -> QuantityChange:
        """
        Return material to stock, reversing an earlier spend.

        Same as add() with a return-flavored default reason.
        """
        return cls.add(
            material,
            quantity,
            reason or stockledger_settings.DEFAULT_RETURN_REASON,
            order_id=order_id,
            user=user,
        )

    @classmethod
    def adjust(cls, material, new_quantity, reason, user=None) -> Adjustment:
        """
        Inventory count correction: set on-hand to an absolute value.

        The target is rounded up. Records adjust_increase or adjust_decrease;
        nothing is recorded when the count already matches.

        Raises:
            NotFound('MATERIAL_NOT_FOUND'): If the material doesn't exist
            ValidationError: If the target is negative or reason is empty
        """
        if to_decimal(new_quantity) < 0:
            raise ValidationError('INVALID_QUANTITY', requested=new_quantity)
        target = to_units(new_quantity)
        _require_reason(reason)

        with unit_of_work('adjust'):
            locked = Material.objects.lock(material)
            old_quantity = locked.quantity
            delta = target - old_quantity

            if delta == 0:
                return Adjustment(old_quantity, target, 0)

            Movement.objects.create(
                material=locked,
                kind=MovementKind.ADJUST_INCREASE if delta > 0 else MovementKind.ADJUST_DECREASE,
                delta=delta,
                reason=reason,
                user=user,
            )
            logger.info(
                "stock.adjust",
                extra={
                    "material_id": locked.pk,
                    "material": locked.name,
                    "old_quantity": old_quantity,
                    "new_quantity": target,
                    "delta": delta,
                    "reason": reason,
                },
            )
            return Adjustment(old_quantity, target, delta)

    @classmethod
    def check_availability(cls, material, required_quantity) -> Availability:
        """
        Can required_quantity be taken without touching other reservations?

        available_quantity = on hand - active, non-expired reservations.
        Read-only, no locking.

        Raises:
            NotFound('MATERIAL_NOT_FOUND'): If the material doesn't exist
        """
        found = Material.objects.resolve(material)
        required = to_units(required_quantity)
        reserved = reserved_quantity(found)
        available_quantity = found.quantity - reserved

        return Availability(
            available=available_quantity >= required,
            current_quantity=found.quantity,
            reserved_quantity=reserved,
            available_quantity=available_quantity,
            material_name=found.name,
        )

    @classmethod
    def bulk_spend(cls, items, order_id=None, user=None) -> list[BulkResult]:
        """
        Spend several materials all-or-nothing.

        Items are processed in the given order. The first failure rolls back
        every item of the batch and propagates unchanged.
        """
        results = []
        with unit_of_work('bulk_spend'):
            for item in items:
                change = cls.spend(
                    item.material,
                    item.quantity,
                    item.reason,
                    order_id=order_id,
                    user=user,
                )
                results.append(BulkResult(
                    material_pk(item.material), change.old_quantity, change.new_quantity
                ))
        return results

    @classmethod
    def bulk_add(cls, items, user=None) -> list[BulkResult]:
        """Add several materials all-or-nothing, in the given order."""
        results = []
        with unit_of_work('bulk_add'):
            for item in items:
                change = cls.add(item.material, item.quantity, item.reason, user=user)
                results.append(BulkResult(
                    material_pk(item.material), change.old_quantity, change.new_quantity
                ))
        return results
