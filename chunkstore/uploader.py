"""Sequential chunk uploads through a single signer, followed by a manifest."""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx

from common.constants import MAX_TRANSACTION_BYTES
from common.logging_config import get_logger
from common.protocol import ChunkBody, ManifestBody
from common.types import ChunkPayload, ChunkUploadProgress, Tag, TagContext
from chunkstore.exceptions import ChunkStoreError, LedgerUnavailableError, ReassemblyError, UploadError
from chunkstore.ledger_client import LedgerClient
from chunkstore.signer import FixedKeySigner
from chunkstore.tags import TagBuilder, utc_now_iso

logger = get_logger(__name__)

ProgressCallback = Callable[[ChunkUploadProgress], None]


class SignerQueue:
    """
    Single-worker queue that owns the signer.

    Every upload in the process goes through one worker task, so signatures
    and nonces are produced strictly in submission order even when several
    coroutines upload at once.
    """

    def __init__(self, signer: FixedKeySigner, ledger: LedgerClient):
        self.signer = signer
        self.ledger = ledger
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def public_key(self) -> str:
        return self.signer.public_key

    async def start(self) -> None:
        if self._worker is not None and not self._worker.done():
            return
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run(), name="SignerQueue")
        logger.debug(f"Signer queue started [public_key={self.signer.public_key}]")

    async def close(self) -> None:
        """Stop the worker; uploads still waiting fail with LedgerUnavailableError."""
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

        abandoned = 0
        while not self._queue.empty():
            _, _, future = self._queue.get_nowait()
            self._queue.task_done()
            if not future.done():
                future.set_exception(LedgerUnavailableError("Signer queue closed before the transaction was sent"))
                abandoned += 1
        self._queue = None
        logger.debug(f"Signer queue stopped [abandoned={abandoned}]")

    async def __aenter__(self) -> 'SignerQueue':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def submit(self, data: bytes, tags: List[Tag]) -> Dict[str, Any]:
        """
        Sign and upload one transaction, waiting for its turn.

        Returns:
            Ledger receipt with 'id' and 'timestamp'
        """
        await self.start()
        future = asyncio.get_running_loop().create_future()
        await self._queue.put((data, tags, future))
        return await future

    async def _run(self) -> None:
        while True:
            data, tags, future = await self._queue.get()
            try:
                if future.cancelled():
                    continue
                envelope = self.signer.sign(data, tags)
                receipt = await self.ledger.submit(envelope)
            except asyncio.CancelledError:
                if not future.done():
                    future.set_exception(LedgerUnavailableError("Signer queue closed while the transaction was in flight"))
                raise
            except Exception as e:
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(receipt)
            finally:
                self._queue.task_done()


@dataclass(frozen=True)
class ChunkSetUploadResult:
    chunk_set_id: str
    transaction_ids: Tuple[str, ...]
    manifest_id: str


class ManifestBuilder:
    """Uploads the manifest that lists a chunk set's transaction ids in index order."""

    def __init__(self, queue: SignerQueue, tag_builder: TagBuilder):
        self.queue = queue
        self.tag_builder = tag_builder

    async def upload_manifest(
        self,
        context: TagContext,
        chunk_set_id: str,
        transaction_ids: Sequence[str],
    ) -> str:
        manifest = ManifestBody(
            project_id=context.logical_id,
            project_name=context.name,
            chunk_set_id=chunk_set_id,
            total_chunks=len(transaction_ids),
            chunks=list(transaction_ids),
            created_at=utc_now_iso(),
        )
        tags = self.tag_builder.manifest_tags(context, chunk_set_id, len(transaction_ids))

        try:
            receipt = await self.queue.submit(manifest.to_json(), tags)
        except (ChunkStoreError, httpx.HTTPError) as e:
            logger.error(f"Manifest upload failed [chunk_set_id={chunk_set_id}]: {e}")
            raise UploadError(f"Manifest upload failed for chunk set {chunk_set_id}: {e}") from e

        logger.info(f"Uploaded manifest for {len(transaction_ids)} chunks [chunk_set_id={chunk_set_id}] [tx_id={receipt['id']}]")
        return receipt['id']


class ChunkUploader:
    """
    Uploads a chunk set one transaction at a time, in index order.

    A failed chunk aborts the set; no manifest is written, so readers never
    see the partial set.
    """

    def __init__(
        self,
        queue: SignerQueue,
        tag_builder: TagBuilder,
        max_transaction_bytes: int = MAX_TRANSACTION_BYTES,
        waiter=None,
    ):
        """
        Args:
            queue: Signer queue performing the uploads
            tag_builder: Tag builder for the document kind
            max_transaction_bytes: Ledger ceiling for one transaction body
            waiter: Optional ConfirmationWaiter; when set, the manifest is only
                written after every chunk is visible to queries
        """
        self.queue = queue
        self.tag_builder = tag_builder
        self.max_transaction_bytes = max_transaction_bytes
        self.waiter = waiter
        self.manifest_builder = ManifestBuilder(queue, tag_builder)

    @staticmethod
    def _check_chunk_set(payloads: Sequence[ChunkPayload]) -> None:
        if not payloads:
            raise ReassemblyError("Cannot upload an empty chunk set")
        chunk_set_id = payloads[0].chunk_set_id
        for position, payload in enumerate(payloads):
            if payload.index != position:
                raise ReassemblyError(f"Chunk at position {position} has index {payload.index}")
            if payload.total_chunks != len(payloads):
                raise ReassemblyError(
                    f"Chunk {position} declares {payload.total_chunks} chunks, set has {len(payloads)}"
                )
            if payload.chunk_set_id != chunk_set_id:
                raise ReassemblyError(f"Chunk {position} belongs to another chunk set")

    async def upload_chunk_set(
        self,
        payloads: Sequence[ChunkPayload],
        context: TagContext,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ChunkSetUploadResult:
        """
        Upload all chunks, then the manifest.

        Args:
            payloads: Output of ChunkEncoder.encode
            context: Document identity used for tags and chunk metadata
            on_progress: Called after every uploaded chunk

        Returns:
            Chunk set id, index-aligned chunk transaction ids and manifest id

        Raises:
            UploadError: A chunk or the manifest failed; chunk_index tells which
        """
        self._check_chunk_set(payloads)
        chunk_set_id = payloads[0].chunk_set_id
        total_chunks = len(payloads)
        transaction_ids: List[str] = []

        logger.info(f"Uploading {total_chunks} chunks for {context.logical_id} [chunk_set_id={chunk_set_id}]")

        for payload in payloads:
            body = ChunkBody(
                chunk=payload.data,
                chunk_index=payload.index,
                total_chunks=total_chunks,
                chunk_set_id=chunk_set_id,
                project_id=context.logical_id,
                project_name=context.name,
            ).to_json()

            if len(body) > self.max_transaction_bytes:
                raise UploadError(
                    f"Chunk {payload.index} body is {len(body)} bytes, over the "
                    f"{self.max_transaction_bytes} byte transaction limit",
                    chunk_index=payload.index,
                )

            tags = self.tag_builder.chunk_tags(context, chunk_set_id, payload.index, total_chunks)

            try:
                receipt = await self.queue.submit(body, tags)
            except (ChunkStoreError, httpx.HTTPError) as e:
                logger.error(
                    f"Chunk {payload.index + 1}/{total_chunks} failed, aborting upload "
                    f"[chunk_set_id={chunk_set_id}]: {e}"
                )
                raise UploadError(
                    f"Upload of chunk {payload.index} of {total_chunks} failed: {e}",
                    chunk_index=payload.index,
                ) from e

            transaction_ids.append(receipt['id'])
            logger.info(
                f"Uploaded chunk {payload.index + 1}/{total_chunks} ({len(body) / 1024:.2f} KB) "
                f"[chunk_set_id={chunk_set_id}] [tx_id={receipt['id']}]"
            )

            if on_progress:
                current = payload.index + 1
                on_progress(ChunkUploadProgress(
                    current_chunk=current,
                    total_chunks=total_chunks,
                    percentage=current / total_chunks * 100,
                ))

        if self.waiter is not None:
            await self.waiter.wait_for_chunk_set(chunk_set_id, total_chunks)

        manifest_id = await self.manifest_builder.upload_manifest(context, chunk_set_id, transaction_ids)

        return ChunkSetUploadResult(
            chunk_set_id=chunk_set_id,
            transaction_ids=tuple(transaction_ids),
            manifest_id=manifest_id,
        )
