"""Finding the transactions of a chunk set and downloading their bodies."""

import asyncio
import json
from typing import Callable, List, Optional, Sequence

import httpx

from common.constants import (
    APP_NAME,
    DOWNLOAD_CONCURRENCY,
    QUERY_PAGE_SIZE,
    TAG_APP_NAME,
    TAG_CHUNK_INDEX,
    TAG_CHUNK_SET_ID,
    TAG_DATA_TYPE,
)
from common.logging_config import get_logger
from common.protocol import ChunkBody, QueryFilter
from common.types import ChunkUploadProgress
from chunkstore.exceptions import ChunkStoreError, DownloadError, MissingChunksError
from chunkstore.ledger_client import ORDER_ASC

logger = get_logger(__name__)

ProgressCallback = Callable[[ChunkUploadProgress], None]


class ChunkLocator:
    """
    Maps a chunk set to its transaction ids in index order.

    A manifest gives the order directly. Without a usable one, the ledger is
    queried by Chunk-Set-ID and each result is placed by its Chunk-Index tag,
    since query results come back in no guaranteed order.
    """

    def __init__(self, ledger, app_name: str = APP_NAME, page_size: int = QUERY_PAGE_SIZE):
        self.ledger = ledger
        self.app_name = app_name
        self.page_size = page_size

    async def resolve_chunk_set(
        self,
        chunk_set_id: str,
        total_chunks: int,
        manifest_chunk_ids: Optional[Sequence[str]] = None,
        data_type: Optional[str] = None,
    ) -> List[str]:
        """
        Resolve the ordered transaction ids of a chunk set.

        Args:
            chunk_set_id: Id shared by the chunks
            total_chunks: Declared number of chunks
            manifest_chunk_ids: Id list from the manifest, if one was read
            data_type: Restrict the query to this Data-Type

        Returns:
            Transaction ids, position i holding chunk index i

        Raises:
            MissingChunksError: Some indices have no transaction
        """
        if manifest_chunk_ids is not None:
            if len(manifest_chunk_ids) == total_chunks and all(manifest_chunk_ids):
                logger.debug(f"Using manifest order for {total_chunks} chunks [chunk_set_id={chunk_set_id}]")
                return list(manifest_chunk_ids)
            logger.warning(
                f"Manifest lists {len(manifest_chunk_ids)} chunks but declares {total_chunks}, "
                f"falling back to tag query [chunk_set_id={chunk_set_id}]"
            )

        filters = [QueryFilter(TAG_APP_NAME, [self.app_name])]
        if data_type:
            filters.append(QueryFilter(TAG_DATA_TYPE, [data_type]))
        filters.append(QueryFilter(TAG_CHUNK_SET_ID, [chunk_set_id]))

        found = await self.ledger.query(filters, first=max(self.page_size, total_chunks), order=ORDER_ASC)

        slots: List[Optional[str]] = [None] * total_chunks
        for tx in found:
            raw_index = tx.tag(TAG_CHUNK_INDEX)
            try:
                index = int(raw_index)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring chunk with unreadable index {raw_index!r} [tx_id={tx.transaction_id}]")
                continue
            if not 0 <= index < total_chunks:
                logger.warning(f"Ignoring chunk index {index} outside 0..{total_chunks - 1} [tx_id={tx.transaction_id}]")
                continue
            if slots[index] is not None:
                logger.debug(f"Duplicate chunk index {index}, keeping {slots[index]} [tx_id={tx.transaction_id}]")
                continue
            slots[index] = tx.transaction_id

        found_count = sum(1 for slot in slots if slot is not None)
        if found_count != total_chunks:
            missing = [i for i, slot in enumerate(slots) if slot is None]
            logger.error(f"Missing chunk indices {missing} [chunk_set_id={chunk_set_id}]")
            raise MissingChunksError(found_count, total_chunks, chunk_set_id)

        return slots


class ChunkDownloader:
    """Fetches chunk bodies with bounded concurrency."""

    def __init__(self, ledger, concurrency: int = DOWNLOAD_CONCURRENCY):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.ledger = ledger
        self.concurrency = concurrency

    async def fetch_chunks(
        self,
        transaction_ids: Sequence[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[str]:
        """
        Download chunk bodies and return their data in slot order.

        Raises:
            DownloadError: Any chunk failed; the whole download is abandoned
        """
        total = len(transaction_ids)
        semaphore = asyncio.Semaphore(self.concurrency)
        results: List[Optional[str]] = [None] * total
        completed = 0

        async def fetch_one(index: int, transaction_id: str) -> None:
            nonlocal completed
            async with semaphore:
                try:
                    raw = await self.ledger.fetch_data(transaction_id)
                    body = ChunkBody.from_json(raw)
                except (ChunkStoreError, httpx.HTTPError) as e:
                    raise DownloadError(f"Failed to fetch chunk {index} [tx_id={transaction_id}]: {e}",
                                        chunk_index=index) from e
                except (ValueError, KeyError, TypeError) as e:
                    raise DownloadError(f"Chunk {index} has an unreadable body [tx_id={transaction_id}]: {e}",
                                        chunk_index=index) from e

            if body.chunk_index != index:
                logger.warning(
                    f"Chunk body says index {body.chunk_index} but was resolved to slot {index}, "
                    f"using slot [tx_id={transaction_id}]"
                )
            results[index] = body.chunk
            completed += 1
            logger.debug(f"Downloaded chunk {index + 1}/{total} [tx_id={transaction_id}]")
            if on_progress:
                on_progress(ChunkUploadProgress(
                    current_chunk=completed,
                    total_chunks=total,
                    percentage=completed / total * 100,
                ))

        tasks = [asyncio.create_task(fetch_one(i, tx_id)) for i, tx_id in enumerate(transaction_ids)]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        logger.info(f"Downloaded {total} chunks")
        return results


def parse_json_body(raw: bytes):
    """Parse a transaction body as JSON, returning None when it is not JSON."""
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        return None
