"""Pydantic schemas for the transactions query endpoint."""

from typing import List, Optional
from pydantic import BaseModel, Field


class TagFilterModel(BaseModel):
    """Transaction must carry tag `name` with one of `values`."""
    name: str
    values: List[str]


class TransactionsQueryVariables(BaseModel):
    """Variables of the transactions query."""
    tags: List[TagFilterModel] = Field(default_factory=list)
    ids: Optional[List[str]] = None
    first: int = 100
    order: str = "DESC"


class GraphQLRequest(BaseModel):
    """Request body of POST /graphql."""
    query: str = ""
    variables: TransactionsQueryVariables = Field(default_factory=TransactionsQueryVariables)
