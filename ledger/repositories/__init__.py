"""Repository layer for data access."""

from ledger.repositories.transaction_repository import TransactionRepository
from ledger.repositories.tag_repository import TagRepository

__all__ = [
    "TransactionRepository",
    "TagRepository",
]
