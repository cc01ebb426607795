"""
AuditEntry model — secondary audit of orchestrated warehouse operations.

Independent of the Movement ledger: it records intent (reserve, unreserve)
as well as outcome, so a reservation/spend sequence can be traced end to end.
"""

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stockledger.models.enums import OperationType


class AuditEntry(models.Model):
    """One row per orchestrated operation. Append-only."""

    operation_type = models.CharField(
        max_length=20,
        choices=OperationType.choices,
        db_index=True,
        verbose_name=_('Operation'),
    )
    material = models.ForeignKey(
        'stockledger.Material',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Material'),
    )
    quantity = models.IntegerField(default=0, verbose_name=_('Quantity'))
    old_quantity = models.IntegerField(null=True, blank=True, verbose_name=_('Before'))
    new_quantity = models.IntegerField(null=True, blank=True, verbose_name=_('After'))
    reason = models.CharField(max_length=255, blank=True, default='', verbose_name=_('Reason'))
    order_id = models.PositiveIntegerField(null=True, blank=True, db_index=True, verbose_name=_('Order'))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('User'),
    )
    metadata = models.JSONField(default=dict, blank=True, verbose_name=_('Metadata'))
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        verbose_name = _('Audit entry')
        verbose_name_plural = _('Audit log')
        ordering = ['-created_at', '-pk']

    def __str__(self) -> str:
        return f"{self.operation_type} material={self.material_id} {self.old_quantity}→{self.new_quantity}"
