"""
Stockledger configuration.

Usage in settings.py:
    STOCKLEDGER = {
        "RESERVATION_TTL_HOURS": 24,
        "EXPIRED_BATCH_SIZE": 200,
        "DEFAULT_RETURN_REASON": "Material returned",
        "LOW_STOCK_RATIO": "1.2",
        "BOM_BACKEND": "stockledger.adapters.static_bom.StaticBillOfMaterials",
        "BOM_COMPONENTS": {"flyer-a5": [(1, "0.5"), (7, "0.01")]},
    }
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from django.conf import settings


@dataclass
class StockledgerSettings:
    """Stockledger configuration settings."""

    # Default reservation lifetime for order line-item holds (0 = no expiration)
    RESERVATION_TTL_HOURS: int = 24

    # Batch size for cleanup_expired processing
    EXPIRED_BATCH_SIZE: int = 200

    # Reason recorded by return_stock() when the caller gives none
    DEFAULT_RETURN_REASON: str = 'Material returned'

    # "low" alert fires at or below min_quantity * LOW_STOCK_RATIO
    LOW_STOCK_RATIO: Decimal = Decimal('1.2')

    # Bill-of-materials backend (dotted path)
    BOM_BACKEND: str = 'stockledger.adapters.static_bom.StaticBillOfMaterials'

    # Components for the static BOM backend: {product_key: [(material_id, per_unit), ...]}
    BOM_COMPONENTS: dict[str, Any] = field(default_factory=dict)


def get_stockledger_settings() -> StockledgerSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "STOCKLEDGER", {})
    return StockledgerSettings(**{
        k: v for k, v in user_settings.items()
        if k in StockledgerSettings.__dataclass_fields__
    })


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_stockledger_settings(), name)


stockledger_settings = _LazySettings()
