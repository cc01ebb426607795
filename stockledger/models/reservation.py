"""
Reservation model — Soft, time-bounded hold against a material.
"""

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stockledger.models.enums import ReservationAction, ReservationStatus


class ReservationQuerySet(models.QuerySet):
    """Lifecycle filters evaluated against the clock at query time."""

    def active(self):
        """
        ACTIVE and not expired.

        An ACTIVE reservation past its expires_at no longer holds stock,
        even before cleanup_expired() flips its status.
        """
        now = timezone.now()
        return self.filter(status=ReservationStatus.ACTIVE).filter(
            Q(expires_at__isnull=True) | Q(expires_at__gt=now)
        )

    def expired(self):
        """ACTIVE but past expires_at — candidates for the expiry sweep."""
        return self.filter(
            status=ReservationStatus.ACTIVE,
            expires_at__lt=timezone.now(),
        )

    def for_order(self, order_id):
        return self.filter(order_id=order_id)


class Reservation(models.Model):
    """
    Quantity hold for an order being built.

    LIFECYCLE:

    ┌────────────────────────────────────────────────────────────┐
    │                                                            │
    │                 fulfill()   ┌───────────┐                  │
    │            ┌──────────────► │ FULFILLED │  stock spent     │
    │            │                └───────────┘                  │
    │   ┌────────┴┐   cancel()    ┌───────────┐                  │
    │   │ ACTIVE  │ ────────────► │ CANCELLED │  no stock effect │
    │   └────────┬┘               └───────────┘                  │
    │            │   sweep        ┌───────────┐                  │
    │            └──────────────► │  EXPIRED  │  no stock effect │
    │                             └───────────┘                  │
    │                                                            │
    └────────────────────────────────────────────────────────────┘

    Terminal states never transition again.
    """

    material = models.ForeignKey(
        'stockledger.Material',
        on_delete=models.CASCADE,
        related_name='reservations',
        verbose_name=_('Material'),
    )
    order_id = models.PositiveIntegerField(null=True, blank=True, db_index=True, verbose_name=_('Order'))
    quantity = models.PositiveIntegerField(verbose_name=_('Reserved quantity'))

    status = models.CharField(
        max_length=20,
        choices=ReservationStatus.choices,
        default=ReservationStatus.ACTIVE,
        db_index=True,
        verbose_name=_('Status'),
    )
    expires_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        verbose_name=_('Expires at'),
        help_text=_('Empty = held until cancelled or fulfilled'),
    )
    reserved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Reserved by'),
    )
    notes = models.TextField(blank=True, default='', verbose_name=_('Notes'))

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)
    resolved_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_('Resolved at'),
        help_text=_('When it was fulfilled, cancelled or expired'),
    )

    objects = ReservationQuerySet.as_manager()

    class Meta:
        verbose_name = _('Reservation')
        verbose_name_plural = _('Reservations')
        ordering = ['-created_at', '-pk']
        indexes = [
            models.Index(fields=['status', 'expires_at'], name='stockledger_rs_status_exp'),
            models.Index(fields=['material', 'status'], name='stockledger_rs_mat_status'),
        ]

    @property
    def is_active(self) -> bool:
        """ACTIVE and either no expiry or expiry in the future."""
        if self.status != ReservationStatus.ACTIVE:
            return False
        if self.expires_at is None:
            return True
        return timezone.now() < self.expires_at

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return timezone.now() >= self.expires_at

    @property
    def is_terminal(self) -> bool:
        return self.status != ReservationStatus.ACTIVE

    def log(self, action, user=None, reason=''):
        """Append a history entry for this reservation."""
        return ReservationHistory.objects.create(
            reservation=self,
            action=action,
            changed_by=user,
            reason=reason,
        )

    def __str__(self) -> str:
        order = f" order #{self.order_id}" if self.order_id else ""
        return f"#{self.pk} {self.quantity}x {self.material_id}{order} [{self.status}]"


class ReservationHistory(models.Model):
    """Append-only trail of reservation transitions."""

    reservation = models.ForeignKey(
        Reservation,
        on_delete=models.CASCADE,
        related_name='history',
        verbose_name=_('Reservation'),
    )
    action = models.CharField(max_length=20, choices=ReservationAction.choices, verbose_name=_('Action'))
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Changed by'),
    )
    reason = models.CharField(max_length=255, blank=True, default='', verbose_name=_('Reason'))
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = _('Reservation history')
        verbose_name_plural = _('Reservation history')
        ordering = ['created_at', 'pk']

    def __str__(self) -> str:
        return f"#{self.reservation_id} {self.action}"
