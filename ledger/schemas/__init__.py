"""Pydantic schemas for API requests and responses."""

from ledger.schemas.transactions import (
    TagModel,
    SubmitTransactionRequest,
    ReceiptResponse,
)
from ledger.schemas.graphql import (
    TagFilterModel,
    TransactionsQueryVariables,
    GraphQLRequest,
)
from ledger.schemas.common import ErrorResponse

__all__ = [
    "TagModel",
    "SubmitTransactionRequest",
    "ReceiptResponse",
    "TagFilterModel",
    "TransactionsQueryVariables",
    "GraphQLRequest",
    "ErrorResponse",
]
