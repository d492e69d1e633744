"""Service layer for business logic."""

from ledger.services.transaction_service import TransactionService
from ledger.services.query_service import QueryService

__all__ = [
    "TransactionService",
    "QueryService",
]
