"""
Stock services — modular organization of stock operations.

    from stockledger.services import StockTransactions, StockReservations, WarehouseOperations
"""

from stockledger.services.line_items import LineItemStock
from stockledger.services.operations import WarehouseOperations
from stockledger.services.queries import StockQueries
from stockledger.services.reservations import StockReservations
from stockledger.services.transactions import StockTransactions

__all__ = [
    'StockQueries',
    'StockTransactions',
    'StockReservations',
    'WarehouseOperations',
    'LineItemStock',
]
