"""
Tests for order line-item hooks and the bill-of-materials backend.
"""

from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

import pytest
from django.core.exceptions import ImproperlyConfigured

from stockledger import line_items, stock, warehouse
from stockledger.adapters import get_bom_backend, reset_bom_backend
from stockledger.adapters.static_bom import StaticBillOfMaterials
from stockledger.exceptions import InsufficientStock, InvalidStatus
from stockledger.models import Movement, Reservation, ReservationStatus
from stockledger.protocols import BillOfMaterials, Component


pytestmark = pytest.mark.django_db


@pytest.fixture
def bom(settings, paper, toner):
    """Static BOM: an A5 flyer takes half a sheet and 1% of a toner cartridge."""
    reset_bom_backend()
    settings.STOCKLEDGER = {
        'BOM_COMPONENTS': {
            'flyer-a5': [(paper.pk, '0.5'), (toner.pk, '0.01')],
            'poster-a1': [(paper.pk, 2)],
            'digital-proof': [],
        },
    }
    yield
    reset_bom_backend()


def active_quantities(order_id):
    return sorted(
        Reservation.objects.filter(order_id=order_id, status=ReservationStatus.ACTIVE)
        .values_list('material__name', 'quantity')
    )


class TestBillOfMaterials:
    """Tests for the static backend and its loader."""

    def test_static_backend_implements_protocol(self):
        backend = StaticBillOfMaterials({'card': [(1, '0.04'), (2, 1)]})

        assert isinstance(backend, BillOfMaterials)
        assert backend.components('card') == [
            Component(material_id=1, per_unit=Decimal('0.04')),
            Component(material_id=2, per_unit=Decimal('1')),
        ]
        assert backend.components('unknown') == []

    def test_product_object_keyed_by_sku(self):
        backend = StaticBillOfMaterials({'card': [(1, 1)]})

        assert backend.components(SimpleNamespace(sku='card')) == [Component(1, Decimal('1'))]

    def test_loader_uses_settings(self, bom, paper):
        backend = get_bom_backend()

        assert isinstance(backend, StaticBillOfMaterials)
        assert backend.components('poster-a1') == [Component(paper.pk, Decimal('2'))]
        assert get_bom_backend() is backend

    def test_loader_requires_backend(self, settings):
        reset_bom_backend()
        settings.STOCKLEDGER = {'BOM_BACKEND': ''}

        with pytest.raises(ImproperlyConfigured):
            get_bom_backend()

    def test_loader_bad_path(self, settings):
        reset_bom_backend()
        settings.STOCKLEDGER = {'BOM_BACKEND': 'stockledger.adapters.missing.Backend'}

        with pytest.raises(ImproperlyConfigured):
            get_bom_backend()

    def test_loader_rejects_non_protocol(self, settings):
        reset_bom_backend()
        settings.STOCKLEDGER = {'BOM_BACKEND': 'collections.OrderedDict'}

        with pytest.raises(ImproperlyConfigured):
            get_bom_backend()


class TestHold:
    """Tests for line_items.hold()."""

    def test_hold_rounds_each_component_up(self, bom, paper, toner):
        ids = line_items.hold('flyer-a5', 101, order_id=1)

        assert len(ids) == 2
        assert active_quantities(1) == [('SRA3 Coated 300g', 51), ('Toner K', 2)]
        assert stock.available_quantity(paper) == 949
        assert not Movement.objects.exists()

    def test_hold_product_object(self, bom):
        ids = line_items.hold(SimpleNamespace(sku='poster-a1'), 3, order_id=2)

        assert Reservation.objects.get(pk=ids[0]).quantity == 6

    def test_hold_product_without_materials(self, bom):
        assert line_items.hold('digital-proof', 10, order_id=1) == []
        assert line_items.hold('not-in-catalog', 10, order_id=1) == []

    def test_hold_is_all_or_nothing(self, bom, paper):
        stock.reserve(paper, 990, order_id=99)

        with pytest.raises(InsufficientStock):
            line_items.hold('flyer-a5', 100, order_id=1)

        assert active_quantities(1) == []

    def test_hold_is_audited(self, bom):
        line_items.hold('flyer-a5', 10, order_id=4)

        assert warehouse.operation_history(order_id=4).count() == 2


class TestRelease:
    """Tests for line_items.release()."""

    def test_release_cancels_reservations(self, bom, paper):
        ids = line_items.hold('flyer-a5', 100, order_id=1)

        line_items.release(ids, 'flyer-a5', 100, order_id=1)

        assert active_quantities(1) == []
        assert stock.available_quantity(paper) == 1000
        assert not Movement.objects.exists()

    def test_release_twice_is_harmless(self, bom, paper):
        ids = line_items.hold('flyer-a5', 100, order_id=1)
        line_items.release(ids, 'flyer-a5', 100, order_id=1)

        line_items.release(ids, 'flyer-a5', 100, order_id=1)

        paper.refresh_from_db()
        assert paper.quantity == 1000

    def test_release_legacy_item_returns_stock(self, bom, paper, toner):
        line_items.release([], 'flyer-a5', 100, order_id=1)

        paper.refresh_from_db()
        toner.refresh_from_db()
        assert paper.quantity == 1050
        assert toner.quantity == 21
        reasons = set(Movement.objects.values_list('reason', flat=True))
        assert reasons == {'Line item removed from order #1'}


class TestResize:
    """Tests for line_items.resize()."""

    def test_increase_reserves_the_difference(self, bom):
        ids = line_items.hold('flyer-a5', 100, order_id=1)

        new_ids = line_items.resize(ids, 'flyer-a5', 100, 300, order_id=1)

        assert len(new_ids) == 4
        assert set(ids) < set(new_ids)
        assert warehouse.reserved_for_order(1) == 150 + 3

    def test_decrease_shrinks_reservation(self, bom):
        ids = line_items.hold('flyer-a5', 300, order_id=1)

        new_ids = line_items.resize(ids, 'flyer-a5', 300, 100, order_id=1)

        assert new_ids == sorted(ids)
        assert active_quantities(1) == [('SRA3 Coated 300g', 50), ('Toner K', 1)]

    def test_decrease_cancels_newest_first(self, bom):
        ids = line_items.hold('flyer-a5', 100, order_id=1)
        grown = line_items.resize(ids, 'flyer-a5', 100, 300, order_id=1)

        shrunk = line_items.resize(grown, 'flyer-a5', 300, 100, order_id=1)

        assert shrunk == sorted(ids)
        assert active_quantities(1) == [('SRA3 Coated 300g', 50), ('Toner K', 1)]

    def test_resize_to_zero_cancels_all(self, bom, paper):
        ids = line_items.hold('flyer-a5', 100, order_id=1)

        assert line_items.resize(ids, 'flyer-a5', 100, 0, order_id=1) == []
        assert stock.available_quantity(paper) == 1000

    def test_unchanged_quantity(self, bom):
        ids = line_items.hold('flyer-a5', 100, order_id=1)

        assert line_items.resize(ids, 'flyer-a5', 100, 100, order_id=1) == ids

    def test_increase_beyond_stock_keeps_old_holds(self, bom, paper):
        ids = line_items.hold('poster-a1', 100, order_id=1)

        with pytest.raises(InsufficientStock):
            line_items.resize(ids, 'poster-a1', 100, 600, order_id=1)

        assert active_quantities(1) == [('SRA3 Coated 300g', 200)]

    def test_legacy_item_spends_and_returns(self, bom, paper):
        assert line_items.resize([], 'poster-a1', 10, 25, order_id=1) == []
        paper.refresh_from_db()
        assert paper.quantity == 970

        line_items.resize([], 'poster-a1', 25, 5, order_id=1)
        paper.refresh_from_db()
        assert paper.quantity == 1010


class TestCommit:
    """Tests for line_items.commit()."""

    def test_commit_fulfils_every_hold(self, bom, paper, toner, user):
        ids = line_items.hold('flyer-a5', 100, order_id=1)

        changes = line_items.commit(ids, user=user)

        assert len(changes) == 2
        paper.refresh_from_db()
        toner.refresh_from_db()
        assert paper.quantity == 950
        assert toner.quantity == 19
        assert set(
            Reservation.objects.filter(pk__in=ids).values_list('status', flat=True)
        ) == {ReservationStatus.FULFILLED}
        assert Movement.objects.filter(order_id=1).count() == 2

    def test_commit_is_all_or_nothing(self, bom, paper):
        ids = line_items.hold('flyer-a5', 100, order_id=1)
        stock.cancel(ids[-1])

        with pytest.raises(InvalidStatus):
            line_items.commit(ids)

        paper.refresh_from_db()
        assert paper.quantity == 1000
        assert not Movement.objects.exists()

    def test_commit_spends_swept_hold(self, bom, paper, past):
        ids = line_items.hold('poster-a1', 10, order_id=1)
        Reservation.objects.filter(pk__in=ids).update(expires_at=past)
        stock.cleanup_expired()

        changes = line_items.commit(ids)

        assert [(c.old_quantity, c.new_quantity) for c in changes] == [(1000, 980)]
        movement = Movement.objects.get()
        assert movement.delta == -20
        assert movement.order_id == 1
        assert Reservation.objects.get(pk=ids[0]).status == ReservationStatus.EXPIRED

    def test_commit_spends_lapsed_hold_before_sweep(self, bom, paper, toner, past):
        ids = line_items.hold('flyer-a5', 100, order_id=1)
        Reservation.objects.filter(pk=ids[0]).update(expires_at=past)

        line_items.commit(ids)

        paper.refresh_from_db()
        toner.refresh_from_db()
        assert paper.quantity == 950
        assert toner.quantity == 19
        assert Reservation.objects.get(pk=ids[1]).status == ReservationStatus.FULFILLED

    def test_commit_lapsed_hold_without_stock_rolls_back(self, bom, paper, past):
        ids = line_items.hold('poster-a1', 10, order_id=1)
        Reservation.objects.filter(pk__in=ids).update(expires_at=past)
        stock.spend(paper, 990, reason='Walk-in job')

        with pytest.raises(InsufficientStock):
            line_items.commit(ids)

        paper.refresh_from_db()
        assert paper.quantity == 10


class FractionalCatalog:
    """Catalog backend that reports per-unit usage as floats."""

    def __init__(self, material_id):
        self.material_id = material_id

    def components(self, product):
        return [Component(self.material_id, per_unit=0.5)]


class TestFloatPerUnit:
    """A backend may report fractional per-unit usage as a float."""

    @pytest.fixture
    def catalog(self, paper):
        with mock.patch(
            'stockledger.services.line_items.get_bom_backend',
            return_value=FractionalCatalog(paper.pk),
        ):
            yield

    def test_hold(self, catalog, paper):
        ids = line_items.hold('flyer', 3, order_id=1)

        assert Reservation.objects.get(pk=ids[0]).quantity == 2

    def test_resize_and_release(self, catalog, paper):
        ids = line_items.hold('flyer', 3, order_id=1)

        ids = line_items.resize(ids, 'flyer', 3, 10, order_id=1)
        assert warehouse.reserved_for_order(1) == 5

        line_items.release(ids, 'flyer', 10, order_id=1)
        assert stock.available_quantity(paper) == 1000
