"""
Order line-item hooks — what the order workflow calls when a line changes.

A line item of ``line_quantity`` units of a product holds, per component
material, ``ceil(per_unit * line_quantity)`` units. The line keeps the
returned reservation ids and passes them back on every later call.

Line items created before reservations existed carry no ids: stock was
deducted when they were added, so those are settled with spend/return
instead of reservation changes.
"""

import logging

from stockledger.adapters import get_bom_backend
from stockledger.db import unit_of_work
from stockledger.models.enums import ReservationStatus
from stockledger.models.reservation import Reservation
from stockledger.rounding import to_decimal, to_units
from stockledger.services.operations import ReservationRequest, WarehouseOperations
from stockledger.services.reservations import StockReservations, lock_reservation
from stockledger.services.transactions import StockTransactions

logger = logging.getLogger('stockledger')


def _needs(product, line_quantity) -> dict[int, int]:
    """{material_id: units} for line_quantity units of product, zeros dropped."""
    line_quantity = to_decimal(line_quantity)
    needs = {}
    for component in get_bom_backend().components(product):
        units = to_units(to_decimal(component.per_unit) * line_quantity)
        if units > 0:
            needs[component.material_id] = needs.get(component.material_id, 0) + units
    return needs


class LineItemStock:
    """Reservation bookkeeping for order line items."""

    @classmethod
    def hold(cls, product, line_quantity, order_id, user=None) -> list[int]:
        """
        Reserve the materials for a new line item.

        All components are reserved in one batch: if one doesn't fit,
        none is held and InsufficientStock propagates.

        Returns:
            Reservation ids, one per component material
        """
        needs = _needs(product, line_quantity)
        if not needs:
            return []

        results = WarehouseOperations.reserve_materials(
            [
                ReservationRequest(
                    material_id=material_id,
                    quantity=units,
                    order_id=order_id,
                    reason='Reserved for order line item',
                )
                for material_id, units in needs.items()
            ],
            user=user,
        )
        return [pk for result in results for pk in result.reservation_ids]

    @classmethod
    def release(cls, reservation_ids, product, line_quantity, order_id, user=None) -> None:
        """
        Undo a line item: cancel its reservations, or return legacy stock.
        """
        reason = f"Line item removed from order #{order_id}"
        with unit_of_work('line_item.release'):
            if reservation_ids:
                for pk in reservation_ids:
                    StockReservations.cancel(pk, reason=reason, user=user)
                return

            for material_id, units in _needs(product, line_quantity).items():
                StockTransactions.return_stock(
                    material_id, units, reason=reason, order_id=order_id, user=user,
                )

        logger.info(
            "stock.line_item.legacy_returned",
            extra={"order_id": order_id, "product": str(product)},
        )

    @classmethod
    def resize(cls, reservation_ids, product, old_quantity, new_quantity,
               order_id, user=None) -> list[int]:
        """
        Bring a line item's holds in line with its new quantity.

        Per material, the target is ceil(per_unit * new_quantity). Missing
        units are reserved; surplus units are released newest reservation
        first, shrinking the last one touched instead of cancelling it when
        only part of it is surplus.

        Returns:
            The line item's reservation ids that are still active
        """
        if to_decimal(new_quantity) == to_decimal(old_quantity):
            return list(reservation_ids)

        with unit_of_work('line_item.resize'):
            if not reservation_ids:
                cls._resize_legacy(product, old_quantity, new_quantity, order_id, user)
                return []

            held = list(
                Reservation.objects.select_for_update()
                .filter(pk__in=reservation_ids, status=ReservationStatus.ACTIVE)
                .order_by('-created_at', '-pk')
            )
            needs = _needs(product, new_quantity)
            materials = set(needs) | {r.material_id for r in held}

            to_reserve = []
            for material_id in materials:
                mine = [r for r in held if r.material_id == material_id]
                surplus = sum(r.quantity for r in mine) - needs.get(material_id, 0)
                if surplus < 0:
                    to_reserve.append(ReservationRequest(
                        material_id=material_id,
                        quantity=-surplus,
                        order_id=order_id,
                        reason='Line item quantity increased',
                    ))
                    continue
                for reservation in mine:
                    if surplus <= 0:
                        break
                    if reservation.quantity <= surplus:
                        StockReservations.cancel(
                            reservation, reason='Line item quantity decreased', user=user,
                        )
                        surplus -= reservation.quantity
                    else:
                        StockReservations.update(
                            reservation, quantity=reservation.quantity - surplus, user=user,
                        )
                        surplus = 0

            new_ids = []
            if to_reserve:
                results = WarehouseOperations.reserve_materials(to_reserve, user=user)
                new_ids = [pk for result in results for pk in result.reservation_ids]

            still_active = list(
                Reservation.objects.filter(
                    pk__in=reservation_ids, status=ReservationStatus.ACTIVE,
                ).order_by('pk').values_list('pk', flat=True)
            )

        logger.info(
            "stock.line_item.resized",
            extra={
                "order_id": order_id,
                "old_quantity": str(old_quantity),
                "new_quantity": str(new_quantity),
            },
        )
        return still_active + new_ids

    @classmethod
    def _resize_legacy(cls, product, old_quantity, new_quantity, order_id, user):
        before = _needs(product, old_quantity)
        after = _needs(product, new_quantity)
        for material_id in set(before) | set(after):
            delta = after.get(material_id, 0) - before.get(material_id, 0)
            if delta > 0:
                StockTransactions.spend(
                    material_id, delta, 'Line item quantity increased',
                    order_id=order_id, user=user,
                )
            elif delta < 0:
                StockTransactions.return_stock(
                    material_id, -delta, reason='Line item quantity decreased',
                    order_id=order_id, user=user,
                )

    @classmethod
    def commit(cls, reservation_ids, user=None) -> list:
        """
        Turn a line item's holds into stock deductions (order confirmed).

        Active holds are fulfilled. Holds that lapsed before confirmation
        (swept to EXPIRED, or still ACTIVE past expires_at) no longer guard
        any stock, so their quantity is spent directly for the order.

        All or nothing: one hold that can't be committed rolls back the
        others.

        Raises:
            InvalidStatus('INVALID_STATUS'): If a hold was cancelled or fulfilled
            InsufficientStock: If on-hand stock no longer covers a hold

        Returns:
            QuantityChange per committed reservation
        """
        changes = []
        with unit_of_work('line_item.commit'):
            for pk in reservation_ids:
                locked = lock_reservation(pk)
                lapsed = locked.status == ReservationStatus.EXPIRED or (
                    locked.status == ReservationStatus.ACTIVE and locked.is_expired
                )
                if not lapsed:
                    changes.append(StockReservations.fulfill(locked, user=user))
                    continue

                changes.append(StockTransactions.spend(
                    locked.material_id,
                    locked.quantity,
                    f"Reservation #{locked.pk} lapsed, spent on order confirmation",
                    order_id=locked.order_id,
                    user=user,
                ))
                logger.warning(
                    "stock.line_item.lapsed_hold_spent",
                    extra={"reservation_id": locked.pk, "order_id": locked.order_id},
                )
        return changes
