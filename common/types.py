"""Shared data type definitions (ChunkPayload, ChunkTransaction, Manifest, MutableReference, etc.)."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from common.constants import TAG_PROJECT_ID, TAG_WALLET_ADDRESS


@dataclass(frozen=True)
class Tag:
    """A single name/value tag attached to a ledger transaction."""
    name: str
    value: str

    def to_dict(self) -> dict:
        return {"name": self.name, "value": self.value}


@dataclass(frozen=True)
class DocumentKind:
    """
    Payload kind stored on the ledger.

    Attributes:
        name: Base Data-Type value (e.g. 'clay-project')
        id_tag: Tag carrying the logical id of documents of this kind
    """
    name: str
    id_tag: str

    @property
    def chunk_type(self) -> str:
        return f"{self.name}-chunk"

    @property
    def manifest_type(self) -> str:
        return f"{self.name}-manifest"


CLAY_PROJECT = DocumentKind(name="clay-project", id_tag=TAG_PROJECT_ID)
FOLDER_STRUCTURE = DocumentKind(name="folder-structure", id_tag=TAG_WALLET_ADDRESS)
USER_PROFILE = DocumentKind(name="user-profile", id_tag=TAG_WALLET_ADDRESS)


@dataclass(frozen=True)
class ChunkPayload:
    """
    One unit of transport: a window of the base64 form of a document.
    """
    data: str
    index: int
    total_chunks: int
    chunk_set_id: str


@dataclass(frozen=True)
class ChunkTransaction:
    """
    A ledger transaction as returned by the query interface.
    """
    transaction_id: str
    tags: Tuple[Tag, ...] = ()
    timestamp: int = 0

    def tag(self, name: str) -> Optional[str]:
        for tag in self.tags:
            if tag.name == name:
                return tag.value
        return None


@dataclass(frozen=True)
class Manifest:
    """
    Pointer document listing the transaction ids of one chunk set, index-aligned.
    """
    project_id: str
    project_name: str
    chunk_set_id: str
    total_chunks: int
    chunks: List[str]
    created_at: str


@dataclass
class MutableReference:
    """
    Local record mapping a logical id to its first and most recent transaction.
    """
    logical_id: str
    root_transaction_id: str
    latest_transaction_id: str
    name: str = ""
    author: str = ""
    updated_at: float = 0.0


@dataclass(frozen=True)
class ChunkUploadProgress:
    current_chunk: int
    total_chunks: int
    percentage: float


@dataclass(frozen=True)
class TagContext:
    """
    Caller-supplied identity of a document version, used to build tags.

    Attributes:
        logical_id: Stable id chosen by the caller (project id, wallet address)
        name: Human readable name (Project-Name tag)
        author: Author identifier, lower-cased when tagged
        folder: Optional folder, tagged only when non-empty
        root_transaction_id: Root of the version chain when updating
        extra: Additional caller tags appended after the canonical set
    """
    logical_id: str
    name: str = ""
    author: str = ""
    folder: str = ""
    root_transaction_id: Optional[str] = None
    extra: Tuple[Tag, ...] = field(default_factory=tuple)
