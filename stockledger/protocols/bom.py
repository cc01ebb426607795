"""
Bill of Materials Protocol — which materials a product consumes per unit.

Stockledger defines this protocol, the product catalog implements it.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class Component:
    """One material consumed by one unit of a product."""

    material_id: int
    per_unit: Decimal  # may be fractional: 0.5 sheet per A5 flyer


@runtime_checkable
class BillOfMaterials(Protocol):
    """
    Protocol for product → material lookups.

    Used by order line-item hooks to know what to reserve, and by the legacy
    fallback that returns stock for line items created before reservations.
    """

    def components(self, product) -> list[Component]:
        """
        Materials consumed by one unit of the product.

        Args:
            product: Product key or object, as understood by the backend

        Returns:
            List of Component (empty if the product consumes no stock)
        """
        ...
