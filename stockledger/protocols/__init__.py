"""
Stockledger Protocols.

Defines interfaces for external system integration.
"""

from stockledger.protocols.bom import BillOfMaterials, Component

__all__ = [
    "BillOfMaterials",
    "Component",
]
