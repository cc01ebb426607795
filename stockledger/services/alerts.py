"""
Stock alerts — low-stock report for monitoring.

Usage:
    from stockledger.services.alerts import low_stock

    # Run periodically (celery beat, cron) or after stock changes
    for alert in low_stock():
        notify(alert.material.name, alert.level)
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from stockledger.conf import stockledger_settings
from stockledger.models.material import Material

logger = logging.getLogger('stockledger')

OUT_OF_STOCK = 'out_of_stock'
CRITICAL = 'critical'
LOW = 'low'


@dataclass(frozen=True)
class LowStockAlert:
    material: Material
    current_quantity: int
    min_quantity: int
    level: str


def alert_level(quantity: int, min_quantity: int, ratio: Decimal) -> str | None:
    """
    Classify a quantity against its minimum.

    out_of_stock: nothing left
    critical:     at or below the minimum
    low:          at or below minimum * ratio
    """
    if quantity <= 0:
        return OUT_OF_STOCK
    if quantity <= min_quantity:
        return CRITICAL
    if quantity <= min_quantity * ratio:
        return LOW
    return None


def low_stock(material=None) -> list[LowStockAlert]:
    """
    Active materials with a configured minimum that need attention.

    Args:
        material: Optional material (or pk) to check alone.

    Returns:
        Alerts ordered by material name.
    """
    ratio = Decimal(str(stockledger_settings.LOW_STOCK_RATIO))
    qs = Material.objects.filter(is_active=True, min_quantity__isnull=False)
    if material is not None:
        qs = qs.filter(pk=getattr(material, 'pk', material))

    alerts = []
    for item in qs.order_by('name'):
        level = alert_level(item.quantity, item.min_quantity, ratio)
        if level is None:
            continue
        alerts.append(LowStockAlert(item, item.quantity, item.min_quantity, level))
        logger.warning(
            "stock.alert.triggered",
            extra={
                "material_id": item.pk,
                "material": item.name,
                "quantity": item.quantity,
                "min_quantity": item.min_quantity,
                "level": level,
            },
        )

    return alerts
