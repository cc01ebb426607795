"""
Movement model — Immutable ledger of quantity changes.
"""

from django.conf import settings
from django.db import models, transaction
from django.db.models import F
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stockledger.models.enums import MovementKind


class Movement(models.Model):
    """
    Immutable record of a quantity change.

    Rules:
    - NEVER update() or delete() a single movement
    - Corrections are new Movements (return, adjust)
    - Updates Material.quantity atomically on save()
    - Rows only disappear with their Material (administrative purge)

    This is the ONLY model that changes Material.quantity.
    """

    material = models.ForeignKey(
        'stockledger.Material',
        on_delete=models.CASCADE,
        related_name='movements',
        verbose_name=_('Material'),
    )
    kind = models.CharField(
        max_length=20,
        choices=MovementKind.choices,
        db_index=True,
        verbose_name=_('Kind'),
    )
    quantity = models.PositiveIntegerField(
        verbose_name=_('Quantity moved'),
        help_text=_('Always |delta|.'),
    )
    delta = models.IntegerField(
        verbose_name=_('Delta'),
        help_text=_('Positive = inbound, negative = consumption'),
    )
    reason = models.CharField(
        max_length=255,
        verbose_name=_('Reason'),
        help_text=_('Required. E.g. "Order #123", "Delivery 2024-05"'),
    )

    # External order (owned by the order system)
    order_id = models.PositiveIntegerField(null=True, blank=True, db_index=True, verbose_name=_('Order'))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('User'),
    )

    # Supplier delivery (inbound only)
    supplier_id = models.PositiveIntegerField(null=True, blank=True, verbose_name=_('Supplier'))
    delivery_number = models.CharField(max_length=100, blank=True, default='', verbose_name=_('Delivery number'))
    invoice_number = models.CharField(max_length=100, blank=True, default='', verbose_name=_('Invoice number'))
    delivery_date = models.DateField(null=True, blank=True, verbose_name=_('Delivery date'))
    delivery_notes = models.TextField(blank=True, default='', verbose_name=_('Delivery notes'))

    metadata = models.JSONField(default=dict, blank=True, verbose_name=_('Metadata'))
    created_at = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_('Date/Time'))

    class Meta:
        verbose_name = _('Movement')
        verbose_name_plural = _('Movements')
        ordering = ['created_at', 'pk']
        indexes = [
            models.Index(fields=['material', 'created_at'], name='stockledger_mv_mat_created'),
        ]

    def save(self, *args, **kwargs):
        """Save movement and update material cache atomically."""
        if self.pk:
            raise ValueError(
                "Movements are immutable. "
                "To correct, record a new movement."
            )

        if not self.reason:
            raise ValueError("Reason is required")

        if self.delta == 0:
            raise ValueError("Movement delta cannot be zero")

        self.quantity = abs(self.delta)

        with transaction.atomic():
            super().save(*args, **kwargs)

            # Import here to avoid circular import
            from stockledger.models.material import Material

            Material.objects.filter(pk=self.material_id).update(
                quantity=F('quantity') + self.delta,
                updated_at=timezone.now()
            )

    def delete(self, *args, **kwargs):
        """Prevent deletion — movements are immutable."""
        raise ValueError(
            "Movements are immutable. "
            "To reverse, record a return or an adjustment."
        )

    @property
    def has_delivery(self) -> bool:
        return bool(self.supplier_id or self.delivery_number or self.invoice_number)

    def __str__(self) -> str:
        signal = '+' if self.delta > 0 else ''
        return f"{signal}{self.delta} | {self.reason}"
