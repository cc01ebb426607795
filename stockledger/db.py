"""
Unit of work — transaction.atomic() that reports store failures as TransactionFailure.

Nested units become savepoints; a failure anywhere rolls back the
outermost unit the caller opened. Domain errors (StockError) pass through
untouched, database errors are wrapped once with the original chained.
"""

import logging
from contextlib import contextmanager

from django.db import DatabaseError, transaction

from stockledger.exceptions import TransactionFailure

logger = logging.getLogger('stockledger')


@contextmanager
def unit_of_work(operation: str):
    """
    Run the block atomically.

    Raises:
        TransactionFailure: If the database rejects the unit (constraint
            violation, deadlock, serialization failure). ``__cause__`` holds
            the original error.
    """
    try:
        with transaction.atomic():
            yield
    except DatabaseError as exc:
        logger.error(
            "stock.transaction.failed",
            extra={"operation": operation, "error": repr(exc)},
        )
        raise TransactionFailure(
            'TRANSACTION_FAILED', operation=operation, cause=str(exc)
        ) from exc
