"""
Static Bill of Materials — dictionary-backed adapter.

Components come from settings (or the constructor) instead of a catalog:

    STOCKLEDGER = {
        "BOM_BACKEND": "stockledger.adapters.static_bom.StaticBillOfMaterials",
        "BOM_COMPONENTS": {
            "flyer-a5": [(1, "0.5")],           # half an SRA3 sheet per flyer
            "business-card": [(2, "0.04"), (5, 1)],
        },
    }

Products are looked up by key; objects are keyed by their ``sku`` attribute,
falling back to ``str(product)``.
"""

from __future__ import annotations

from stockledger.conf import stockledger_settings
from stockledger.protocols.bom import Component
from stockledger.rounding import to_decimal


def product_key(product) -> str:
    return str(getattr(product, 'sku', None) or product)


class StaticBillOfMaterials:
    """
    Bill of materials from a static mapping.

    Implements the ``BillOfMaterials`` protocol. Suitable for:

    - Shops with a handful of stock-consuming products
    - Tests and local development without a catalog
    """

    def __init__(self, mapping: dict | None = None):
        source = mapping if mapping is not None else stockledger_settings.BOM_COMPONENTS
        self._mapping = {
            str(key): [
                Component(material_id=int(material_id), per_unit=to_decimal(per_unit))
                for material_id, per_unit in rows
            ]
            for key, rows in source.items()
        }

    def components(self, product) -> list[Component]:
        """Components for the product, empty when unknown."""
        return list(self._mapping.get(product_key(product), []))
