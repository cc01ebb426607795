"""
Stockledger — material inventory ledger and reservations for print production.

Usage:
    from stockledger import stock, warehouse, StockError

    stock.add(paper, 500, reason='Delivery #88')
    stock.reserve(paper, 120, order_id=42)
    stock.available_quantity(paper)
    warehouse.reserve_and_spend(paper.pk, 30, order_id=42, reason='Proof run')
"""


def __getattr__(name):
    """Lazy import to avoid circular imports during app loading."""
    if name == 'stock':
        from stockledger.service import Stock
        return Stock
    elif name == 'warehouse':
        from stockledger.services.operations import WarehouseOperations
        return WarehouseOperations
    elif name == 'line_items':
        from stockledger.services.line_items import LineItemStock
        return LineItemStock
    elif name in ('StockError', 'NotFound', 'InsufficientStock', 'ValidationError',
                  'InvalidStatus', 'TransactionFailure'):
        from stockledger import exceptions
        return getattr(exceptions, name)
    elif name in ('Material', 'Movement', 'Reservation', 'ReservationHistory', 'AuditEntry',
                  'MovementKind', 'ReservationStatus', 'OperationType'):
        from stockledger import models
        return getattr(models, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'stock',
    'warehouse',
    'line_items',
    'StockError',
    'NotFound',
    'InsufficientStock',
    'ValidationError',
    'InvalidStatus',
    'TransactionFailure',
    'Material',
    'Movement',
    'Reservation',
    'ReservationHistory',
    'AuditEntry',
    'MovementKind',
    'ReservationStatus',
    'OperationType',
]

__version__ = '0.1.0'
