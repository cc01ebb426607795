"""
Stock Service — The single public interface for material stock.

Usage:
    from stockledger import stock, StockError

    stock.add(paper, 500, reason='Delivery #88')
    r = stock.reserve(paper, 120, order_id=42)
    stock.available_quantity(paper)  # on hand - 120
    stock.fulfill(r)

Multi-step workflows with an audit trail live in ``stockledger.warehouse``.
"""

from stockledger.services.queries import StockQueries
from stockledger.services.reservations import StockReservations
from stockledger.services.transactions import StockTransactions


class Stock(StockQueries, StockTransactions, StockReservations):
    """
    Single interface for stock operations.

    Parameter convention: (material, quantity, reason, ...)
    Every mutating method runs in its own unit of work and may be called
    inside an outer transaction.atomic() to be composed with others.
    """
