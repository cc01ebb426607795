"""
Stockledger Adapters.

Loads the configured BillOfMaterials backend from settings.

Usage:
    from stockledger.adapters import get_bom_backend

    bom = get_bom_backend()
    bom.components("flyer-a5")

Settings:
    STOCKLEDGER = {
        "BOM_BACKEND": "catalog.adapters.bom.CatalogBillOfMaterials",
    }
"""

from __future__ import annotations

import logging
import threading

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from stockledger.conf import stockledger_settings
from stockledger.protocols.bom import BillOfMaterials

logger = logging.getLogger(__name__)


# Cached backend instance
_lock = threading.Lock()
_bom_backend: BillOfMaterials | None = None


def get_bom_backend() -> BillOfMaterials:
    """
    Return the configured bill-of-materials backend.

    Raises:
        ImproperlyConfigured: If BOM_BACKEND is empty, fails to import, or
            doesn't implement the protocol
    """
    global _bom_backend

    if _bom_backend is None:
        with _lock:
            if _bom_backend is None:  # double-checked
                backend_path = stockledger_settings.BOM_BACKEND

                if not backend_path:
                    raise ImproperlyConfigured(
                        "STOCKLEDGER['BOM_BACKEND'] must be configured. "
                        "Example: 'stockledger.adapters.static_bom.StaticBillOfMaterials'"
                    )

                try:
                    backend_class = import_string(backend_path)
                except ImportError as e:
                    raise ImproperlyConfigured(
                        f"Failed to import BOM backend '{backend_path}': {e}"
                    ) from e

                backend = backend_class()
                if not isinstance(backend, BillOfMaterials):
                    raise ImproperlyConfigured(
                        f"'{backend_path}' does not implement BillOfMaterials"
                    )
                _bom_backend = backend
                logger.debug("Loaded BOM backend: %s", backend_path)

    return _bom_backend


def reset_bom_backend() -> None:
    """Reset the cached backend. Useful for testing."""
    global _bom_backend
    _bom_backend = None


__all__ = [
    "get_bom_backend",
    "reset_bom_backend",
]
