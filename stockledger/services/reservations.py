"""
Stock reservations — reservation lifecycle (reserve, update, cancel, fulfill, expire).

All mutating methods use one unit of work with row locking:
the Material row while availability is checked, the Reservation row while
its status changes.
"""

import logging
from datetime import timedelta

from django.utils import timezone

from stockledger.conf import stockledger_settings
from stockledger.db import unit_of_work
from stockledger.exceptions import InsufficientStock, InvalidStatus, NotFound
from stockledger.models.enums import ReservationAction, ReservationStatus
from stockledger.models.material import Material, material_pk
from stockledger.models.reservation import Reservation, ReservationHistory
from stockledger.rounding import positive_units
from stockledger.services.transactions import (
    QuantityChange,
    StockTransactions,
    reserved_quantity,
)

logger = logging.getLogger('stockledger')

# Sentinel: "use RESERVATION_TTL_HOURS". Pass expires_at=None for no expiry.
DEFAULT_EXPIRY = object()


def _reservation_pk(reservation) -> int:
    return getattr(reservation, 'pk', reservation)


def lock_reservation(reservation) -> Reservation:
    pk = _reservation_pk(reservation)
    try:
        return Reservation.objects.select_for_update().get(pk=pk)
    except (Reservation.DoesNotExist, ValueError, TypeError):
        raise NotFound('RESERVATION_NOT_FOUND', reservation_id=pk) from None


def default_expiry():
    """now + RESERVATION_TTL_HOURS, or None when the TTL is 0."""
    hours = stockledger_settings.RESERVATION_TTL_HOURS
    if not hours:
        return None
    return timezone.now() + timedelta(hours=hours)


class StockReservations:
    """Reservation lifecycle methods."""

    @classmethod
    def reserve(cls, material, quantity, order_id=None, expires_at=DEFAULT_EXPIRY,
                user=None, notes='') -> Reservation:
        """
        Hold quantity of a material for an order. No stock is deducted.

        Args:
            expires_at: Omit for the default TTL (24h), pass a datetime for an
                explicit expiry or None to hold until cancelled/fulfilled.

        Raises:
            NotFound('MATERIAL_NOT_FOUND'): If the material doesn't exist
            InsufficientStock: If quantity > on hand - active reservations
            ValidationError: If quantity <= 0

        Concurrency:
            - Locks the material row, so concurrent reservations and spends
              on the same material serialize on the availability check
        """
        units = positive_units(quantity)
        if expires_at is DEFAULT_EXPIRY:
            expires_at = default_expiry()

        with unit_of_work('reserve'):
            locked = Material.objects.lock(material)
            available = locked.quantity - reserved_quantity(locked)

            if units > available:
                raise InsufficientStock(
                    'INSUFFICIENT_STOCK',
                    material_id=locked.pk,
                    material_name=locked.name,
                    available=max(0, available),
                    requested=units,
                )

            reservation = Reservation.objects.create(
                material=locked,
                order_id=order_id,
                quantity=units,
                status=ReservationStatus.ACTIVE,
                expires_at=expires_at,
                reserved_by=user,
                notes=notes,
            )
            reservation.log(ReservationAction.CREATED, user=user, reason=notes)

            logger.info(
                "stock.reservation.created",
                extra={
                    "reservation_id": reservation.pk,
                    "material_id": locked.pk,
                    "qty": units,
                    "order_id": order_id,
                    "expires_at": str(expires_at),
                },
            )
            return reservation

    @classmethod
    def update(cls, reservation, quantity=None, expires_at=DEFAULT_EXPIRY,
               notes=None, user=None) -> Reservation:
        """
        Change quantity, expiry or notes of an ACTIVE reservation.

        Growing a reservation re-checks availability (excluding the
        reservation's own current quantity); shrinking always succeeds.

        Raises:
            NotFound('RESERVATION_NOT_FOUND')
            InvalidStatus: If the reservation is terminal
            InsufficientStock: If the increase doesn't fit
        """
        with unit_of_work('reservation.update'):
            locked = lock_reservation(reservation)
            if locked.status != ReservationStatus.ACTIVE:
                raise InvalidStatus(
                    'INVALID_STATUS',
                    reservation_id=locked.pk,
                    current=locked.status,
                    expected=ReservationStatus.ACTIVE,
                )

            fields = ['updated_at']
            if quantity is not None:
                units = positive_units(quantity)
                if units > locked.quantity:
                    material = Material.objects.lock(locked.material_id)
                    held_elsewhere = reserved_quantity(material)
                    if locked.is_active:
                        held_elsewhere -= locked.quantity
                    available = material.quantity - held_elsewhere
                    if units > available:
                        raise InsufficientStock(
                            'INSUFFICIENT_STOCK',
                            material_id=material.pk,
                            material_name=material.name,
                            available=max(0, available),
                            requested=units,
                        )
                locked.quantity = units
                fields.append('quantity')
            if expires_at is not DEFAULT_EXPIRY:
                locked.expires_at = expires_at
                fields.append('expires_at')
            if notes is not None:
                locked.notes = notes
                fields.append('notes')

            locked.save(update_fields=fields)
            locked.log(ReservationAction.UPDATED, user=user)
            logger.info(
                "stock.reservation.updated",
                extra={"reservation_id": locked.pk, "fields": fields},
            )
            return locked

    @classmethod
    def cancel(cls, reservation, reason='', user=None) -> Reservation:
        """
        Release a reservation. No stock effect.

        Transition: ACTIVE -> CANCELLED

        Cancelling a reservation that is already terminal is a logical no-op:
        cancellation races between concurrent line-item deletes are expected.
        The no-op is logged and the reservation is returned unchanged.

        Raises:
            NotFound('RESERVATION_NOT_FOUND')
        """
        with unit_of_work('reservation.cancel'):
            locked = lock_reservation(reservation)

            if locked.status != ReservationStatus.ACTIVE:
                logger.info(
                    "stock.reservation.cancel_noop",
                    extra={"reservation_id": locked.pk, "status": locked.status},
                )
                return locked

            reason = reason or 'Manual cancellation'
            locked.status = ReservationStatus.CANCELLED
            locked.resolved_at = timezone.now()
            locked.save(update_fields=['status', 'resolved_at', 'updated_at'])
            locked.log(ReservationAction.CANCELLED, user=user, reason=reason)

            logger.info(
                "stock.reservation.cancelled",
                extra={"reservation_id": locked.pk, "reason": reason},
            )
            return locked

    @classmethod
    def fulfill(cls, reservation, user=None, reason=None) -> QuantityChange:
        """
        Convert a reservation into a permanent deduction.

        1. Locks the reservation and validates it is ACTIVE and not expired
        2. Spends the reserved quantity through StockTransactions.spend()
           (so a Movement is always recorded)
        3. Transition: ACTIVE -> FULFILLED

        Raises:
            NotFound('RESERVATION_NOT_FOUND')
            InvalidStatus('INVALID_STATUS'): If the reservation is terminal
            InvalidStatus('RESERVATION_EXPIRED'): If it lapsed before the sweep
            InsufficientStock: If on-hand stock no longer covers it
        """
        with unit_of_work('reservation.fulfill'):
            locked = lock_reservation(reservation)

            if locked.status != ReservationStatus.ACTIVE:
                raise InvalidStatus(
                    'INVALID_STATUS',
                    reservation_id=locked.pk,
                    current=locked.status,
                    expected=ReservationStatus.ACTIVE,
                )
            if locked.is_expired:
                raise InvalidStatus('RESERVATION_EXPIRED', reservation_id=locked.pk)

            change = StockTransactions.spend(
                locked.material_id,
                locked.quantity,
                reason or f"Reservation #{locked.pk} fulfilled",
                order_id=locked.order_id,
                user=user,
            )

            locked.status = ReservationStatus.FULFILLED
            locked.resolved_at = timezone.now()
            locked.save(update_fields=['status', 'resolved_at', 'updated_at'])
            locked.log(ReservationAction.FULFILLED, user=user, reason='Reservation fulfilled')

            logger.info(
                "stock.reservation.fulfilled",
                extra={"reservation_id": locked.pk, "qty": locked.quantity},
            )
            return change

    @classmethod
    def cleanup_expired(cls) -> int:
        """
        Expire all ACTIVE reservations past expires_at, in batches.

        Returns:
            Number of reservations expired

        Concurrency:
            - Each batch runs under its own unit of work
            - Uses select_for_update() with SKIP LOCKED
            - Safe for multiple instances; a second run finds nothing
        """
        now = timezone.now()
        total = 0
        batch_size = stockledger_settings.EXPIRED_BATCH_SIZE

        while True:
            with unit_of_work('reservation.cleanup_expired'):
                batch_ids = list(
                    Reservation.objects.select_for_update(skip_locked=True)
                    .expired()
                    .values_list('pk', flat=True)[:batch_size]
                )

                if not batch_ids:
                    break

                Reservation.objects.filter(pk__in=batch_ids).update(
                    status=ReservationStatus.EXPIRED,
                    resolved_at=now,
                    updated_at=now,
                )
                ReservationHistory.objects.bulk_create([
                    ReservationHistory(
                        reservation_id=pk,
                        action=ReservationAction.EXPIRED,
                        reason='Expired automatically',
                        created_at=now,
                    )
                    for pk in batch_ids
                ])
                total += len(batch_ids)

        if total:
            logger.info(
                "stock.reservations.expired",
                extra={"expired": total},
            )
        return total

    @classmethod
    def available_quantity(cls, material) -> int:
        """
        On hand minus active reservations, floored at 0.

        Raises:
            NotFound('MATERIAL_NOT_FOUND')
        """
        found = Material.objects.resolve(material)
        return max(0, found.quantity - reserved_quantity(found))

    @classmethod
    def for_material(cls, material, include_terminal=False):
        """Reservations of a material, newest first."""
        qs = Reservation.objects.filter(material_id=material_pk(material))
        if not include_terminal:
            qs = qs.filter(status=ReservationStatus.ACTIVE)
        return qs.select_related('material')

    @classmethod
    def for_order(cls, order_id, include_terminal=False):
        """Reservations of an order, newest first."""
        qs = Reservation.objects.for_order(order_id)
        if not include_terminal:
            qs = qs.filter(status=ReservationStatus.ACTIVE)
        return qs.select_related('material')
