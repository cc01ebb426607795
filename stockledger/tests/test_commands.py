"""
Tests for management commands and admin actions.
"""

from io import StringIO
from unittest import mock

import pytest
from django.contrib import admin
from django.core.management import call_command

from stockledger import stock
from stockledger.admin import ReservationAdmin
from stockledger.models import Reservation, ReservationStatus
from stockledger.services.reservations import StockReservations


pytestmark = pytest.mark.django_db


class TestCleanupExpiredReservationsCommand:
    """Tests for `manage.py cleanup_expired_reservations`."""

    def test_expires_lapsed(self, paper, past):
        stock.reserve(paper, 10, order_id=1, expires_at=past)
        stock.reserve(paper, 10, order_id=2, expires_at=None)
        out = StringIO()

        call_command('cleanup_expired_reservations', stdout=out)

        assert '1 reservation(s) expired' in out.getvalue()
        assert Reservation.objects.filter(status=ReservationStatus.EXPIRED).count() == 1

    def test_dry_run_changes_nothing(self, paper, past):
        stock.reserve(paper, 10, order_id=1, expires_at=past)
        out = StringIO()

        call_command('cleanup_expired_reservations', '--dry-run', stdout=out)

        assert '1 reservation(s) would expire' in out.getvalue()
        assert Reservation.objects.get().status == ReservationStatus.ACTIVE


class TestReservationAdminCancel:
    """Tests for the admin "cancel" action."""

    def test_cancels_active_only(self, paper, user, rf):
        active = stock.reserve(paper, 10, order_id=1)
        done = stock.reserve(paper, 5, order_id=1)
        stock.fulfill(done)
        request = rf.post('/')
        request.user = user
        model_admin = ReservationAdmin(Reservation, admin.site)

        with mock.patch.object(model_admin, 'message_user') as message_user:
            model_admin.cancel_reservations(request, Reservation.objects.all())

        active.refresh_from_db()
        done.refresh_from_db()
        assert active.status == ReservationStatus.CANCELLED
        assert done.status == ReservationStatus.FULFILLED
        assert active.history.last().changed_by == user
        assert '1 reservation(s) cancelled.' in str(message_user.call_args[0][1])

    def test_noop_cancel_not_counted(self, paper, user, rf):
        reservation = stock.reserve(paper, 10, order_id=1)
        request = rf.post('/')
        request.user = user
        model_admin = ReservationAdmin(Reservation, admin.site)
        cancel = StockReservations.cancel

        def fulfilled_meanwhile(target, **kwargs):
            stock.fulfill(target)
            return cancel(target, **kwargs)

        with mock.patch.object(StockReservations, 'cancel', side_effect=fulfilled_meanwhile):
            with mock.patch.object(model_admin, 'message_user') as message_user:
                model_admin.cancel_reservations(request, Reservation.objects.all())

        reservation.refresh_from_db()
        assert reservation.status == ReservationStatus.FULFILLED
        assert '0 reservation(s) cancelled.' in str(message_user.call_args[0][1])
