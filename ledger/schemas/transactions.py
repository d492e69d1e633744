"""Pydantic schemas for transaction upload endpoints."""

from typing import List
from pydantic import BaseModel, Field


class TagModel(BaseModel):
    """A name/value tag."""
    name: str
    value: str


class SubmitTransactionRequest(BaseModel):
    """Signed upload envelope; data is base64."""
    data: str
    tags: List[TagModel] = Field(default_factory=list)
    owner: str
    nonce: int
    signature: str


class ReceiptResponse(BaseModel):
    """Response model for an accepted transaction."""
    id: str
    timestamp: int
