"""Saving and loading versioned documents on the ledger."""

from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional

from common.constants import HISTORY_PAGE_SIZE, TAG_APP_NAME, TAG_AUTHOR, TAG_DATA_TYPE, TAG_PROJECT_NAME, TAG_ROOT_TX
from common.logging_config import get_logger
from common.protocol import ManifestBody, QueryFilter
from common.types import ChunkTransaction, DocumentKind, TagContext
from chunkstore.config import StoreConfig
from chunkstore.confirmation import ConfirmationWaiter, RetryPolicy
from chunkstore.encoding import ChunkDecoder, ChunkEncoder
from chunkstore.exceptions import CorruptPayloadError, TransactionNotFoundError
from chunkstore.ledger_client import ORDER_DESC
from chunkstore.locator import ChunkDownloader, ChunkLocator, ProgressCallback, parse_json_body
from chunkstore.reference_store import ReferenceStore
from chunkstore.tags import TagBuilder
from chunkstore.uploader import ChunkUploader, SignerQueue

logger = get_logger(__name__)


@dataclass(frozen=True)
class SaveResult:
    transaction_id: str
    root_transaction_id: str
    is_update: bool
    was_chunked: bool
    chunk_set_id: Optional[str] = None


@dataclass(frozen=True)
class LoadResult:
    document: str
    transaction_id: str
    was_chunked: bool
    chunk_set_id: Optional[str] = None


def root_of(versions: List[ChunkTransaction]) -> Optional[str]:
    """
    Root transaction of a version list ordered newest first.

    Later versions carry the root as a Root-TX tag; the first version has
    no such tag, so the oldest untagged version is the root.
    """
    for tx in versions:
        root = tx.tag(TAG_ROOT_TX)
        if root:
            return root
    untagged = [tx for tx in versions if not tx.tag(TAG_ROOT_TX)]
    if untagged:
        return untagged[-1].transaction_id
    return versions[-1].transaction_id if versions else None


class DocumentStore:
    """
    Versioned documents of one kind on an append-only ledger.

    Small documents go up as a single transaction. Larger ones are split
    into chunks and published through a manifest; the manifest id is then
    the version's transaction id. Every version after the first carries the
    root transaction id, so all versions can be found with one query.
    """

    def __init__(
        self,
        ledger,
        queue: SignerQueue,
        references: ReferenceStore,
        kind: DocumentKind,
        config: Optional[StoreConfig] = None,
        waiter: Optional[ConfirmationWaiter] = None,
        decoder: Optional[ChunkDecoder] = None,
    ):
        """
        Args:
            ledger: LedgerClient (or anything with query/fetch_data)
            queue: Signer queue used for every upload
            references: Reference namespace for this kind
            kind: Document kind stored here
            config: Client configuration
            waiter: When set, saves return only after the new version is queryable
            decoder: Chunk decoder (JSON validation by default)
        """
        self.ledger = ledger
        self.queue = queue
        self.references = references
        self.kind = kind
        self.config = config or StoreConfig()
        self.waiter = waiter
        self.tag_builder = TagBuilder(kind, app_name=self.config.app_name)
        self.encoder = ChunkEncoder(self.config.chunk_size)
        self.decoder = decoder or ChunkDecoder()
        self.uploader = ChunkUploader(
            queue,
            self.tag_builder,
            max_transaction_bytes=self.config.max_transaction_bytes,
            waiter=waiter if self.config.confirm_chunks else None,
        )
        self.locator = ChunkLocator(ledger, app_name=self.config.app_name, page_size=self.config.query_page_size)
        self.downloader = ChunkDownloader(ledger, concurrency=self.config.download_concurrency)

    @classmethod
    def with_confirmation(
        cls,
        ledger,
        queue: SignerQueue,
        references: ReferenceStore,
        kind: DocumentKind,
        config: Optional[StoreConfig] = None,
        policy: Optional[RetryPolicy] = None,
    ) -> 'DocumentStore':
        config = config or StoreConfig()
        policy = policy or RetryPolicy(
            max_attempts=config.confirmation_max_attempts,
            delay=config.confirmation_delay,
        )
        waiter = ConfirmationWaiter(ledger, TagBuilder(kind, app_name=config.app_name), policy)
        return cls(ledger, queue, references, kind, config=config, waiter=waiter)

    async def save(
        self,
        document: str,
        context: TagContext,
        on_progress: Optional[ProgressCallback] = None,
        on_uploaded: Optional[Callable[[str], None]] = None,
    ) -> SaveResult:
        """
        Upload a new version of a document.

        Args:
            document: Serialized document (JSON text)
            context: Identity and tagging information
            on_progress: Called after every uploaded chunk
            on_uploaded: Called with the new transaction id before confirmation

        Returns:
            SaveResult describing the new version

        Raises:
            UploadError: A chunk or the manifest could not be uploaded
            ConfirmationTimeoutError: Upload succeeded but never became queryable
        """
        root = context.root_transaction_id
        if not root:
            reference = self.references.get_reference(context.logical_id)
            root = reference.root_transaction_id if reference else None
        context = replace(context, root_transaction_id=root)

        data = document.encode('utf-8')
        chunk_set_id = None

        if len(data) < self.config.direct_upload_threshold:
            tags = self.tag_builder.document_tags(context)
            receipt = await self.queue.submit(data, tags)
            transaction_id = receipt['id']
            was_chunked = False
            logger.info(
                f"Uploaded {self.kind.name} {context.logical_id} as one transaction "
                f"({len(data) / 1024:.2f} KB) [tx_id={transaction_id}]"
            )
        else:
            payloads = self.encoder.encode(document)
            result = await self.uploader.upload_chunk_set(payloads, context, on_progress)
            transaction_id = result.manifest_id
            chunk_set_id = result.chunk_set_id
            was_chunked = True
            logger.info(
                f"Uploaded {self.kind.name} {context.logical_id} in {len(payloads)} chunks "
                f"({len(data) / 1024:.2f} KB) [manifest={transaction_id}]"
            )

        if on_uploaded:
            on_uploaded(transaction_id)

        if self.waiter is not None:
            transaction_id = await self.waiter.wait_for_transaction(transaction_id)

        root_transaction_id = root or transaction_id
        self.references.save_reference(
            context.logical_id,
            root_transaction_id,
            transaction_id,
            name=context.name,
            author=context.author,
        )

        return SaveResult(
            transaction_id=transaction_id,
            root_transaction_id=root_transaction_id,
            is_update=root is not None,
            was_chunked=was_chunked,
            chunk_set_id=chunk_set_id,
        )

    async def load(self, identifier: str, on_progress: Optional[ProgressCallback] = None) -> LoadResult:
        """
        Load the latest version of a logical document, or a specific transaction.

        Raises:
            TransactionNotFoundError: Nothing is stored under the identifier
            MissingChunksError: The chunk set is incomplete
            DownloadError: A chunk body could not be fetched
            CorruptPayloadError: The reassembled document is damaged
        """
        transaction_id = await self.resolve_latest(identifier)
        if transaction_id is None:
            raise TransactionNotFoundError(f"No {self.kind.name} found for {identifier}")

        raw = await self.ledger.fetch_data(transaction_id)
        body = parse_json_body(raw)

        if ManifestBody.looks_like_manifest(body):
            manifest = ManifestBody.from_dict(body).to_manifest()
            logger.info(
                f"Loading {manifest.total_chunks} chunks from manifest "
                f"[chunk_set_id={manifest.chunk_set_id}] [tx_id={transaction_id}]"
            )
            document = await self._download_chunk_set(
                manifest.chunk_set_id, manifest.total_chunks, manifest.chunks, on_progress
            )
            return LoadResult(document, transaction_id, was_chunked=True, chunk_set_id=manifest.chunk_set_id)

        metadata = body.get('metadata') if isinstance(body, dict) and 'chunk' in body else None
        if isinstance(metadata, dict) and metadata.get('chunkSetId'):
            chunk_set_id = metadata['chunkSetId']
            total_chunks = int(metadata.get('totalChunks') or 0)
            logger.info(f"Transaction {transaction_id} is a chunk, loading its whole set [chunk_set_id={chunk_set_id}]")
            document = await self._download_chunk_set(chunk_set_id, total_chunks, None, on_progress)
            return LoadResult(document, transaction_id, was_chunked=True, chunk_set_id=chunk_set_id)

        try:
            document = raw.decode('utf-8')
        except UnicodeDecodeError as e:
            raise CorruptPayloadError(
                f"Transaction {transaction_id} is not valid UTF-8 at byte {e.start}",
                truncation_offset=e.start,
                length=len(raw),
            ) from e
        self.decoder.validator.validate(document)
        return LoadResult(document, transaction_id, was_chunked=False)

    async def _download_chunk_set(
        self,
        chunk_set_id: str,
        total_chunks: int,
        manifest_chunk_ids: Optional[List[str]],
        on_progress: Optional[ProgressCallback],
    ) -> str:
        ids = await self.locator.resolve_chunk_set(
            chunk_set_id, total_chunks, manifest_chunk_ids, data_type=self.kind.chunk_type
        )
        chunks = await self.downloader.fetch_chunks(ids, on_progress)
        return self.decoder.decode(chunks, total_chunks)

    async def resolve_latest(self, identifier: str) -> Optional[str]:
        """
        Find the latest transaction of a logical id.

        The local reference wins. Without one the ledger is queried by the
        id tag and the newest result is remembered. An identifier that
        matches no logical id is tried as a transaction id.

        Returns:
            Transaction id, or None when nothing matches
        """
        reference = self.references.get_reference(identifier)
        if reference:
            logger.debug(f"Latest {identifier} from local reference [tx_id={reference.latest_transaction_id}]")
            return reference.latest_transaction_id

        versions = await self.history(identifier)
        if versions:
            latest = versions[0]
            self.references.save_reference(
                identifier,
                root_of(versions),
                latest.transaction_id,
                name=latest.tag(TAG_PROJECT_NAME) or "",
                author=latest.tag(TAG_AUTHOR) or "",
            )
            logger.info(f"Latest {identifier} from ledger query [tx_id={latest.transaction_id}]")
            return latest.transaction_id

        found = await self.ledger.query(ids=[identifier], first=1)
        if not found:
            return None

        tx = found[0]
        logger.info(f"{identifier} is a transaction id of {tx.tag(self.kind.id_tag) or 'an unknown document'}")
        return tx.transaction_id

    async def history(self, logical_id: str) -> List[ChunkTransaction]:
        """All stored versions of a logical document, newest first."""
        return await self.ledger.query(
            self.tag_builder.version_filters(logical_id),
            first=HISTORY_PAGE_SIZE,
            order=ORDER_DESC,
        )

    async def sync_references(self, author: str) -> int:
        """
        Rebuild local references for every document of an author.

        A reference is only replaced when the ledger knows a newer version
        than the one recorded locally.

        Returns:
            Number of references created or updated
        """
        filters = [
            QueryFilter(TAG_APP_NAME, [self.config.app_name]),
            QueryFilter(TAG_DATA_TYPE, [self.kind.name, self.kind.manifest_type]),
            QueryFilter(TAG_AUTHOR, [author.lower()]),
        ]
        found = await self.ledger.query(filters, first=HISTORY_PAGE_SIZE, order=ORDER_DESC)

        groups: Dict[str, List[ChunkTransaction]] = {}
        for tx in found:
            logical_id = tx.tag(self.kind.id_tag)
            if logical_id:
                groups.setdefault(logical_id, []).append(tx)

        updated = 0
        for logical_id, versions in groups.items():
            latest = versions[0]
            existing = self.references.get_reference(logical_id)
            if existing:
                if existing.latest_transaction_id == latest.transaction_id:
                    continue
                known_ids = [tx.transaction_id for tx in versions]
                if existing.latest_transaction_id not in known_ids and latest.timestamp <= existing.updated_at:
                    logger.debug(f"Local reference for {logical_id} is newer than the ledger, keeping it")
                    continue

            self.references.save_reference(
                logical_id,
                root_of(versions),
                latest.transaction_id,
                name=latest.tag(TAG_PROJECT_NAME) or "",
                author=latest.tag(TAG_AUTHOR) or "",
            )
            updated += 1

        logger.info(f"Synced {updated} reference(s) from {len(found)} transaction(s) [author={author.lower()}]")
        return updated
