"""
Tests for warehouse operations: atomic workflows and the audit trail.
"""

import logging
from unittest import mock

import pytest
from django.db import DatabaseError

from stockledger import stock, warehouse
from stockledger.exceptions import InsufficientStock, NotFound, ValidationError
from stockledger.models import AuditEntry, Movement, OperationType, Reservation, ReservationStatus
from stockledger.services.operations import (
    Add,
    Adjust,
    Requirement,
    ReservationRequest,
    Reserve,
    Spend,
    Unreserve,
)


pytestmark = pytest.mark.django_db


class TestExecute:
    """Tests for warehouse.execute() with explicit operations."""

    def test_mixed_operations_in_order(self, paper, toner, user):
        results = warehouse.execute([
            Add(paper.pk, 200, 'Delivery', user=user),
            Spend(paper.pk, 50, 'Order #3', order_id=3, user=user),
            Adjust(toner.pk, 18, 'Count', user=user),
        ])

        assert [(r.old_quantity, r.new_quantity) for r in results] == [
            (1000, 1200), (1200, 1150), (20, 18),
        ]
        assert all(r.success for r in results)
        assert results[1].operation.order_id == 3

    def test_failure_rolls_back_everything(self, paper, toner):
        with pytest.raises(InsufficientStock):
            warehouse.execute([
                Reserve(paper.pk, 100, order_id=1),
                Spend(paper.pk, 10, 'Order #1', order_id=1),
                Spend(toner.pk, 999, 'Order #1', order_id=1),
            ])

        paper.refresh_from_db()
        assert paper.quantity == 1000
        assert not Reservation.objects.exists()
        assert not Movement.objects.exists()
        assert not AuditEntry.objects.exists()

    def test_unreserve_requires_order(self, paper):
        with pytest.raises(ValidationError) as exc:
            warehouse.execute([Unreserve(paper.pk, order_id=None)])

        assert exc.value.code == 'ORDER_REQUIRED'

    def test_spend_reservation_of_other_material_rejected(self, paper, toner):
        reservation = stock.reserve(toner, 5, order_id=1)

        with pytest.raises(ValidationError) as exc:
            warehouse.execute([
                Spend(paper.pk, 5, 'Order #1', order_id=1, reservation_id=reservation.pk),
            ])

        assert exc.value.code == 'RESERVATION_MISMATCH'
        toner.refresh_from_db()
        assert toner.quantity == 20
        assert Reservation.objects.get().status == ReservationStatus.ACTIVE
        assert not AuditEntry.objects.exists()

    def test_spend_reservation_quantity_must_match(self, toner):
        reservation = stock.reserve(toner, 5, order_id=1)

        with pytest.raises(ValidationError):
            warehouse.execute([
                Spend(toner.pk, 3, 'Order #1', order_id=1, reservation_id=reservation.pk),
            ])

        assert not Movement.objects.exists()

    def test_spend_through_reservation(self, toner):
        reservation = stock.reserve(toner, 5, order_id=1)

        result = warehouse.execute([
            Spend(toner.pk, 4.2, 'Order #1', order_id=1, reservation_id=reservation.pk),
        ])[0]

        assert (result.old_quantity, result.new_quantity) == (20, 15)
        assert AuditEntry.objects.get().material == toner


class TestReserveMaterials:
    """Tests for warehouse.reserve_materials()."""

    def test_one_reservation_per_request(self, paper, toner):
        results = warehouse.reserve_materials([
            ReservationRequest(paper.pk, 120, order_id=8),
            ReservationRequest(toner.pk, 2.5, order_id=8),
        ])

        assert len(results) == 2
        reservations = Reservation.objects.filter(order_id=8)
        assert sorted(reservations.values_list('quantity', flat=True)) == [3, 120]
        assert {pk for r in results for pk in r.reservation_ids} == set(
            reservations.values_list('pk', flat=True)
        )
        # No stock moved
        assert results[0].old_quantity == results[0].new_quantity == 1000
        assert not Movement.objects.exists()

    def test_batch_rolls_back_on_shortfall(self, paper, toner):
        with pytest.raises(InsufficientStock):
            warehouse.reserve_materials([
                ReservationRequest(paper.pk, 120, order_id=8),
                ReservationRequest(toner.pk, 21, order_id=8),
            ])

        assert not Reservation.objects.exists()
        assert stock.available_quantity(paper) == 1000

    def test_unknown_material(self, paper):
        with pytest.raises(NotFound):
            warehouse.reserve_materials([ReservationRequest(777777, 1, order_id=8)])


class TestUnreserveMaterials:
    """Tests for warehouse.unreserve_materials()."""

    def test_cancels_active_for_order_only(self, paper, toner):
        stock.reserve(paper, 100, order_id=1)
        stock.reserve(paper, 50, order_id=1)
        stock.reserve(toner, 3, order_id=1)
        other = stock.reserve(paper, 10, order_id=2)

        results = warehouse.unreserve_materials([paper.pk], order_id=1)

        assert len(results[0].reservation_ids) == 2
        assert stock.available_quantity(paper) == 990
        assert Reservation.objects.get(pk=other.pk).status == ReservationStatus.ACTIVE
        assert Reservation.objects.filter(
            material=toner, status=ReservationStatus.ACTIVE
        ).count() == 1

    def test_nothing_to_cancel(self, paper):
        results = warehouse.unreserve_materials([paper.pk], order_id=1)

        assert results[0].reservation_ids == ()

    def test_order_required(self, paper):
        with pytest.raises(ValidationError):
            warehouse.unreserve_materials([paper.pk], order_id=None)


class TestReserveAndSpend:
    """Tests for warehouse.reserve_and_spend()."""

    def test_hold_then_commit(self, paper, user):
        reserved, spent = warehouse.reserve_and_spend(
            paper.pk, 40, order_id=12, reason='Proof run', user=user,
        )

        assert reserved.operation.reason == 'Reserve: Proof run'
        assert spent.operation.reason == 'Spend: Proof run'
        assert (spent.old_quantity, spent.new_quantity) == (1000, 960)
        reservation = Reservation.objects.get(pk=reserved.reservation_ids[0])
        assert reservation.status == ReservationStatus.FULFILLED
        assert stock.available_quantity(paper) == 960
        assert paper.movements.get().delta == -40

    def test_insufficient_leaves_nothing(self, toner):
        with pytest.raises(InsufficientStock):
            warehouse.reserve_and_spend(toner.pk, 25, order_id=12, reason='Big run')

        assert not Reservation.objects.exists()
        toner.refresh_from_db()
        assert toner.quantity == 20


class TestCheckAvailability:
    """Tests for warehouse.check_availability()."""

    def test_all_available(self, paper, toner):
        report = warehouse.check_availability([
            Requirement(paper.pk, 500),
            Requirement(toner.pk, 20),
        ])

        assert report.available is True
        assert report.unavailable == []

    def test_reports_every_shortfall(self, paper, toner, vinyl):
        stock.reserve(paper, 900, order_id=1)

        report = warehouse.check_availability([
            Requirement(paper.pk, 150),
            Requirement(toner.pk, 5),
            Requirement(vinyl.pk, 50.5),
            Requirement(999999, 1),
        ])

        assert report.available is False
        shortfalls = {s.material_id: s for s in report.unavailable}
        assert set(shortfalls) == {paper.pk, vinyl.pk, 999999}
        assert shortfalls[paper.pk].available == 100
        assert shortfalls[paper.pk].shortfall == 50
        assert shortfalls[vinyl.pk].required == 51
        assert shortfalls[vinyl.pk].shortfall == 1
        assert shortfalls[999999].available == 0

    def test_string_material_ids(self, paper, toner):
        stock.reserve(paper, 900, order_id=1)

        report = warehouse.check_availability([
            Requirement(str(paper.pk), 150),
            Requirement(str(toner.pk), 5),
            Requirement('not-a-material', 1),
        ])

        shortfalls = {s.material_id: s for s in report.unavailable}
        assert set(shortfalls) == {paper.pk, 'not-a-material'}
        assert shortfalls[paper.pk].available == 100
        assert shortfalls['not-a-material'].available == 0


class TestAuditTrail:
    """Every orchestrated operation leaves an AuditEntry."""

    def test_spend_is_audited(self, paper, user):
        warehouse.spend_material(paper.pk, 25, 'Order #4', order_id=4, user=user)

        entry = AuditEntry.objects.get()
        assert entry.operation_type == OperationType.SPEND
        assert entry.material == paper
        assert entry.quantity == 25
        assert (entry.old_quantity, entry.new_quantity) == (1000, 975)
        assert entry.order_id == 4
        assert entry.user == user
        assert entry.reason == 'Order #4'

    def test_add_and_adjust_are_audited(self, paper):
        warehouse.add_material(paper.pk, 10, 'Delivery')
        warehouse.adjust_stock(paper.pk, 900, 'Count')

        types = list(
            AuditEntry.objects.order_by('pk').values_list('operation_type', flat=True)
        )
        assert types == [OperationType.ADD, OperationType.ADJUST]
        adjust = AuditEntry.objects.get(operation_type=OperationType.ADJUST)
        assert (adjust.old_quantity, adjust.new_quantity) == (1010, 900)

    def test_reservation_ids_in_metadata(self, paper):
        reserved, spent = warehouse.reserve_and_spend(
            paper.pk, 5, order_id=2, reason='Sample',
        )

        reserve_entry = AuditEntry.objects.get(operation_type=OperationType.RESERVE)
        spend_entry = AuditEntry.objects.get(operation_type=OperationType.SPEND)
        assert reserve_entry.metadata['reservation_ids'] == list(reserved.reservation_ids)
        assert spend_entry.metadata['reservation_id'] == reserved.reservation_ids[0]

    def test_caller_metadata_kept(self, paper):
        warehouse.execute([Add(paper.pk, 1, 'Web order', metadata={'source': 'website'})])

        assert AuditEntry.objects.get().metadata == {'source': 'website'}

    def test_operation_history(self, paper, toner):
        warehouse.spend_material(paper.pk, 1, 'a', order_id=1)
        warehouse.spend_material(toner.pk, 1, 'b', order_id=1)
        warehouse.spend_material(paper.pk, 1, 'c', order_id=2)

        assert [e.reason for e in warehouse.operation_history(material=paper)] == ['c', 'a']
        assert [e.reason for e in warehouse.operation_history(order_id=1)] == ['b', 'a']
        assert len(warehouse.operation_history(limit=2)) == 2

    def test_audit_failure_does_not_mask_success(self, paper, caplog):
        with mock.patch.object(
            AuditEntry.objects, 'create', side_effect=DatabaseError('audit table locked')
        ):
            with caplog.at_level(logging.ERROR, logger='stockledger'):
                result = warehouse.spend_material(paper.pk, 30, 'Order #5')

        assert result.success
        assert result.new_quantity == 970
        paper.refresh_from_db()
        assert paper.quantity == 970
        assert paper.movements.count() == 1
        assert not AuditEntry.objects.exists()
        assert any(r.message == 'stock.audit.failed' for r in caplog.records)

    def test_reserved_for_order(self, paper, toner):
        stock.reserve(paper, 100, order_id=3)
        stock.reserve(toner, 2, order_id=3)
        cancelled = stock.reserve(paper, 7, order_id=3)
        stock.cancel(cancelled)

        assert warehouse.reserved_for_order(3) == 102
