"""
Stock queries — read-only operations over Material and the Movement ledger.

All methods are classmethods and use no locking.
"""

from dataclasses import dataclass
from datetime import timedelta

from django.db.models import Count, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from stockledger.models.material import Material, material_pk
from stockledger.models.movement import Movement


@dataclass(frozen=True)
class MovementSummary:
    material_id: int
    material_name: str
    current_quantity: int
    total_in: int
    total_out: int
    net_change: int
    transactions: int


class StockQueries:
    """Read-only stock query methods."""

    @classmethod
    def get_material(cls, material) -> Material:
        """
        Raises:
            NotFound('MATERIAL_NOT_FOUND')
        """
        return Material.objects.resolve(material)

    @classmethod
    def list_materials(cls, include_inactive: bool = False, include_empty: bool = True):
        """List materials with filters."""
        qs = Material.objects.all()

        if not include_inactive:
            qs = qs.filter(is_active=True)

        if not include_empty:
            qs = qs.filter(quantity__gt=0)

        return qs

    @classmethod
    def movements(cls, material=None, order_id=None, user=None, kind=None,
                  since=None, until=None, reason=None):
        """
        Ledger entries, newest first.

        Args:
            material: Material or pk (None = all)
            order_id: Only movements of this order
            user: Only movements by this user
            kind: MovementKind value
            since/until: Inclusive datetime bounds on created_at
            reason: Case-insensitive substring of the reason
        """
        qs = Movement.objects.select_related('material', 'user')

        if material is not None:
            qs = qs.filter(material_id=material_pk(material))
        if order_id is not None:
            qs = qs.filter(order_id=order_id)
        if user is not None:
            qs = qs.filter(user=user)
        if kind is not None:
            qs = qs.filter(kind=kind)
        if since is not None:
            qs = qs.filter(created_at__gte=since)
        if until is not None:
            qs = qs.filter(created_at__lte=until)
        if reason:
            qs = qs.filter(reason__icontains=reason)

        return qs.order_by('-created_at', '-pk')

    @classmethod
    def movement_summary(cls, material, days: int = 30) -> MovementSummary:
        """
        In/out totals for one material over the last `days` days.

        Raises:
            NotFound('MATERIAL_NOT_FOUND')
        """
        found = Material.objects.resolve(material)
        since = timezone.now() - timedelta(days=days)

        totals = Movement.objects.filter(
            material=found, created_at__gte=since
        ).aggregate(
            transactions=Count('pk'),
            total_in=Coalesce(Sum('delta', filter=Q(delta__gt=0)), 0),
            total_out=Coalesce(Sum('quantity', filter=Q(delta__lt=0)), 0),
            net_change=Coalesce(Sum('delta'), 0),
        )

        return MovementSummary(
            material_id=found.pk,
            material_name=found.name,
            current_quantity=found.quantity,
            total_in=totals['total_in'],
            total_out=totals['total_out'],
            net_change=totals['net_change'],
            transactions=totals['transactions'],
        )

    @classmethod
    def movement_stats(cls, since=None, until=None, material=None) -> dict:
        """Aggregate ledger statistics for a period."""
        qs = cls.movements(material=material, since=since, until=until).order_by()
        return qs.aggregate(
            total_moves=Count('pk'),
            total_incoming=Coalesce(Sum('delta', filter=Q(delta__gt=0)), 0),
            total_outgoing=Coalesce(Sum('quantity', filter=Q(delta__lt=0)), 0),
            unique_materials=Count('material', distinct=True),
            unique_users=Count('user', distinct=True),
        )

    @classmethod
    def ledger_balance(cls, material) -> int:
        """
        Sum of all deltas for a material.

        Use for integrity audits: for a material whose stock only ever entered
        through the ledger, this equals Material.quantity.
        """
        return Movement.objects.filter(material_id=material_pk(material)).aggregate(
            t=Coalesce(Sum('delta'), 0)
        )['t']
