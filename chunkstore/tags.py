"""Builds the tag sets attached to chunk, manifest and document transactions."""

from datetime import datetime, timezone
from typing import Callable, List, Optional

from common.constants import (
    APP_NAME,
    DOCUMENT_VERSION,
    TAG_APP_NAME,
    TAG_AUTHOR,
    TAG_CHUNK_INDEX,
    TAG_CHUNK_SET_ID,
    TAG_CONTENT_TYPE,
    TAG_CREATED_AT,
    TAG_DATA_TYPE,
    TAG_FOLDER,
    TAG_PROJECT_NAME,
    TAG_ROOT_TX,
    TAG_TOTAL_CHUNKS,
    TAG_UPDATED_AT,
    TAG_VERSION,
)
from common.protocol import QueryFilter
from common.types import DocumentKind, Tag, TagContext


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


class TagBuilder:
    """
    Produces ordered tag lists for one document kind.

    Tag order is stable: identifying tags first, then chunk position,
    then the optional Folder and Root-TX tags, then caller extras.
    """

    def __init__(self, kind: DocumentKind, app_name: str = APP_NAME, clock: Optional[Callable[[], str]] = None):
        self.kind = kind
        self.app_name = app_name
        self._clock = clock or utc_now_iso

    def _identity(self, data_type: str, context: TagContext) -> List[Tag]:
        tags = [
            Tag(TAG_APP_NAME, self.app_name),
            Tag(TAG_DATA_TYPE, data_type),
            Tag(self.kind.id_tag, context.logical_id),
        ]
        if context.name:
            tags.append(Tag(TAG_PROJECT_NAME, context.name))
        if context.author:
            tags.append(Tag(TAG_AUTHOR, context.author.lower()))
        return tags

    def _optional(self, context: TagContext) -> List[Tag]:
        tags = []
        if context.folder:
            tags.append(Tag(TAG_FOLDER, context.folder))
        if context.root_transaction_id:
            tags.append(Tag(TAG_ROOT_TX, context.root_transaction_id))
        return tags

    def chunk_tags(self, context: TagContext, chunk_set_id: str, index: int, total_chunks: int) -> List[Tag]:
        """
        Tags for one chunk transaction.

        Args:
            context: Document identity
            chunk_set_id: Id shared by all chunks of the upload
            index: Zero-based chunk index
            total_chunks: Number of chunks in the set

        Returns:
            Ordered tag list
        """
        tags = self._identity(self.kind.chunk_type, context)
        tags.extend([
            Tag(TAG_CHUNK_SET_ID, chunk_set_id),
            Tag(TAG_CHUNK_INDEX, str(index)),
            Tag(TAG_TOTAL_CHUNKS, str(total_chunks)),
            Tag(TAG_CREATED_AT, self._clock()),
        ])
        tags.extend(self._optional(context))
        tags.extend(context.extra)
        return tags

    def manifest_tags(self, context: TagContext, chunk_set_id: str, total_chunks: int) -> List[Tag]:
        """Tags for the manifest of a chunk set (no Chunk-Index)."""
        now = self._clock()
        tags = [Tag(TAG_CONTENT_TYPE, 'application/json')]
        tags.extend(self._identity(self.kind.manifest_type, context))
        tags.extend([
            Tag(TAG_CHUNK_SET_ID, chunk_set_id),
            Tag(TAG_TOTAL_CHUNKS, str(total_chunks)),
            Tag(TAG_CREATED_AT, now),
        ])
        tags.extend(self._optional(context))
        if context.root_transaction_id:
            tags.append(Tag(TAG_UPDATED_AT, now))
        tags.extend(context.extra)
        return tags

    def document_tags(self, context: TagContext) -> List[Tag]:
        """Tags for a document small enough to be stored as a single transaction."""
        now = self._clock()
        tags = [Tag(TAG_CONTENT_TYPE, 'application/json')]
        tags.extend(self._identity(self.kind.name, context))
        tags.extend([
            Tag(TAG_VERSION, DOCUMENT_VERSION),
            Tag(TAG_CREATED_AT, now),
        ])
        tags.extend(self._optional(context))
        if context.root_transaction_id:
            tags.append(Tag(TAG_UPDATED_AT, now))
        tags.extend(context.extra)
        return tags

    def version_filters(self, logical_id: str, root_transaction_id: Optional[str] = None) -> List[QueryFilter]:
        """Query filters matching every stored version of a logical document."""
        filters = [
            QueryFilter(TAG_APP_NAME, [self.app_name]),
            QueryFilter(TAG_DATA_TYPE, [self.kind.name, self.kind.manifest_type]),
            QueryFilter(self.kind.id_tag, [logical_id]),
        ]
        if root_transaction_id:
            filters.append(QueryFilter(TAG_ROOT_TX, [root_transaction_id]))
        return filters
