"""
Exceptions for Stockledger.

All errors are StockError subclasses with a structured code for programmatic
handling and a human-readable message suitable for direct display.
"""

from decimal import Decimal
from typing import Any


class StockError(Exception):
    """
    Structured exception for stock operations.

    Usage:
        try:
            stock.spend(paper, 10000, reason='Order #12')
        except InsufficientStock as e:
            print(f"Only {e.available} left of {e.material_name}")
        except StockError as e:
            log(e.code, e.as_dict())

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        data: Additional context data
    """

    default_code = 'STOCK_ERROR'

    _default_messages = {
        'STOCK_ERROR': 'Stock operation failed',
        'MATERIAL_NOT_FOUND': 'Material {material_id} not found',
        'RESERVATION_NOT_FOUND': 'Reservation {reservation_id} not found',
        'INSUFFICIENT_STOCK': (
            'Insufficient stock of "{material_name}": '
            'available {available}, requested {requested}'
        ),
        'INVALID_QUANTITY': 'Invalid quantity: {requested}',
        'REASON_REQUIRED': 'A reason is required',
        'ORDER_REQUIRED': 'An order id is required for this operation',
        'INVALID_STATUS': 'Reservation {reservation_id} is {current}, expected {expected}',
        'RESERVATION_EXPIRED': 'Reservation {reservation_id} has expired',
        'RESERVATION_MISMATCH': (
            'Reservation {reservation_id} does not hold {quantity} of material {material_id}'
        ),
        'TRANSACTION_FAILED': 'Stock transaction "{operation}" failed: {cause}',
    }

    def __init__(self, code: str | None = None, message: str | None = None, **data):
        self.code = code or self.default_code
        self.data = data
        self.message = message or self._render_message()
        super().__init__(self.message)

    def _render_message(self) -> str:
        template = self._default_messages.get(self.code, self.code)
        try:
            return template.format(**self.data)
        except (KeyError, IndexError):
            return template

    def as_dict(self) -> dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            'code': self.code,
            'message': self.message,
            'data': {
                k: str(v) if isinstance(v, Decimal) else v
                for k, v in self.data.items()
            }
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, data={self.data!r})"


class NotFound(StockError):
    """Referenced material or reservation does not exist."""

    default_code = 'MATERIAL_NOT_FOUND'


class InsufficientStock(StockError):
    """Requested quantity exceeds what is available."""

    default_code = 'INSUFFICIENT_STOCK'

    @property
    def available(self) -> int:
        """Shortcut for data['available']."""
        return self.data.get('available', 0)

    @property
    def requested(self) -> int:
        """Shortcut for data['requested']."""
        return self.data.get('requested', 0)

    @property
    def material_name(self) -> str:
        return self.data.get('material_name', '')


class ValidationError(StockError):
    """Malformed input: non-positive quantity, missing reason or order id."""

    default_code = 'INVALID_QUANTITY'


class InvalidStatus(StockError):
    """Reservation is not in a state that allows the transition."""

    default_code = 'INVALID_STATUS'


class TransactionFailure(StockError):
    """
    The store could not commit the unit of work.

    Always raised ``from`` the original database error, which stays
    available as ``__cause__``.
    """

    default_code = 'TRANSACTION_FAILED'
