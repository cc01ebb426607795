"""
Stockledger Admin.

Provides views for production debugging:
- Material: list + edit (quantity read-only, only the ledger changes it)
- Movement: read-only ledger (timestamp, delta, reason, delivery)
- Reservation: read-only with "cancel" action, history inline
- AuditEntry: read-only operation trail
"""

import logging

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from stockledger.exceptions import StockError
from stockledger.models import AuditEntry, Material, Movement, Reservation, ReservationHistory
from stockledger.models.enums import ReservationStatus

logger = logging.getLogger(__name__)


class ReadOnlyAdminMixin:
    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# =========================================================================
# MATERIAL ADMIN
# =========================================================================

@admin.register(Material)
class MaterialAdmin(admin.ModelAdmin):
    """Material admin — editable, except the quantity cache."""

    list_display = ['name', 'unit', 'quantity', 'reserved_display',
                    'available_display', 'min_quantity', 'is_active']
    list_filter = ['is_active', 'unit']
    search_fields = ['name']
    readonly_fields = ['quantity', 'created_at', 'updated_at']

    @admin.display(description=_('Reserved'))
    def reserved_display(self, obj):
        return obj.reserved

    @admin.display(description=_('Available'))
    def available_display(self, obj):
        return obj.available


# =========================================================================
# MOVEMENT ADMIN (read-only ledger)
# =========================================================================

@admin.register(Movement)
class MovementAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Movement admin — read-only. Immutable ledger."""

    list_display = ['created_at', 'material', 'kind', 'delta', 'reason', 'order_id', 'user']
    list_filter = ['kind', 'created_at']
    search_fields = ['reason', 'material__name', 'delivery_number', 'invoice_number']
    date_hierarchy = 'created_at'


# =========================================================================
# RESERVATION ADMIN (read-only with cancel action)
# =========================================================================

class ReservationHistoryInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = ReservationHistory
    extra = 0
    fields = ['created_at', 'action', 'reason', 'changed_by']
    readonly_fields = fields


@admin.register(Reservation)
class ReservationAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Reservation admin — read-only with cancel action."""

    list_display = ['id', 'material', 'order_id', 'quantity', 'status',
                    'expires_at', 'created_at']
    list_filter = ['status']
    search_fields = ['material__name', 'order_id']
    inlines = [ReservationHistoryInline]
    actions = ['cancel_reservations']

    @admin.action(description=_('Cancel selected reservations'))
    def cancel_reservations(self, request, queryset):
        from stockledger import stock

        count = 0
        for reservation in queryset.filter(status=ReservationStatus.ACTIVE):
            try:
                cancelled = stock.cancel(reservation, reason='Cancelled via admin', user=request.user)
                if cancelled.status == ReservationStatus.CANCELLED:
                    count += 1
            except StockError as exc:
                logger.warning("cancel_reservations: failed to cancel %s: %s", reservation.pk, exc)

        self.message_user(request, _('{count} reservation(s) cancelled.').format(count=count))


# =========================================================================
# AUDIT ADMIN
# =========================================================================

@admin.register(AuditEntry)
class AuditEntryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['created_at', 'operation_type', 'material', 'quantity',
                    'old_quantity', 'new_quantity', 'order_id', 'user']
    list_filter = ['operation_type']
    search_fields = ['reason']
    date_hierarchy = 'created_at'
