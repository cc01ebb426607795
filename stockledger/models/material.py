"""
Material model — a stocked item with its on-hand quantity.
"""

from django.db import models
from django.db.models import Sum
from django.db.models.functions import Coalesce
from django.utils.translation import gettext_lazy as _

from stockledger.exceptions import NotFound


def material_pk(material) -> int:
    """Accept a Material instance or a primary key."""
    return getattr(material, 'pk', material)


class MaterialManager(models.Manager):
    """Manager with helper methods for Material lookups."""

    def resolve(self, material) -> 'Material':
        """
        Fetch a material by instance or pk.

        Raises:
            NotFound('MATERIAL_NOT_FOUND')
        """
        pk = material_pk(material)
        try:
            return self.get(pk=pk)
        except (self.model.DoesNotExist, ValueError, TypeError):
            raise NotFound('MATERIAL_NOT_FOUND', material_id=pk) from None

    def lock(self, material) -> 'Material':
        """
        Fetch and row-lock a material (SELECT ... FOR UPDATE).

        Must be called inside transaction.atomic().

        Raises:
            NotFound('MATERIAL_NOT_FOUND')
        """
        pk = material_pk(material)
        try:
            return self.select_for_update().get(pk=pk)
        except (self.model.DoesNotExist, ValueError, TypeError):
            raise NotFound('MATERIAL_NOT_FOUND', material_id=pk) from None


class Material(models.Model):
    """
    A stocked physical input (paper, substrate, consumable).

    Invariant: quantity >= 0. Enforced by the transaction engine before every
    write and backed by the PositiveIntegerField check at the database.

    quantity is a cache maintained by Movement.save(); never write it directly.
    Use stock.add()/spend()/adjust() so every change lands in the ledger.
    """

    name = models.CharField(max_length=200, verbose_name=_('Name'))
    unit = models.CharField(
        max_length=20,
        default='pcs',
        verbose_name=_('Unit'),
        help_text=_('Unit of measure, e.g. "sheet", "m²", "roll".'),
    )
    quantity = models.PositiveIntegerField(
        default=0,
        verbose_name=_('On hand'),
    )
    min_quantity = models.PositiveIntegerField(
        null=True,
        blank=True,
        verbose_name=_('Minimum'),
        help_text=_('Low-stock threshold. Empty = no alert.'),
    )
    max_quantity = models.PositiveIntegerField(
        null=True,
        blank=True,
        verbose_name=_('Maximum'),
    )
    is_active = models.BooleanField(default=True, verbose_name=_('Active'))
    metadata = models.JSONField(default=dict, blank=True, verbose_name=_('Metadata'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = MaterialManager()

    class Meta:
        verbose_name = _('Material')
        verbose_name_plural = _('Materials')
        ordering = ['name']

    @property
    def reserved(self) -> int:
        """
        Reserved quantity — sum of active, non-expired reservations.

        Expired reservations are ignored even while their status is still
        ACTIVE, so availability is right regardless of when the sweep runs.
        """
        return self.reservations.active().aggregate(
            total=Coalesce(Sum('quantity'), 0)
        )['total']

    @property
    def available(self) -> int:
        """Available for new reservations. Never negative."""
        return max(0, self.quantity - self.reserved)

    @property
    def is_below_minimum(self) -> bool:
        return self.min_quantity is not None and self.quantity < self.min_quantity

    def __str__(self) -> str:
        return f"{self.name} ({self.quantity} {self.unit})"
