"""Polling until freshly written transactions show up in ledger queries."""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from common.constants import (
    CONFIRMATION_DELAY_SECONDS,
    CONFIRMATION_MAX_ATTEMPTS,
    QUERY_PAGE_SIZE,
    TAG_APP_NAME,
    TAG_CHUNK_INDEX,
    TAG_CHUNK_SET_ID,
    TAG_DATA_TYPE,
)
from common.logging_config import get_logger
from common.protocol import QueryFilter
from chunkstore.exceptions import ChunkStoreError, ConfirmationTimeoutError
from chunkstore.ledger_client import ORDER_ASC, ORDER_DESC
from chunkstore.tags import TagBuilder

logger = get_logger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class RetryPolicy:
    """
    How often and how patiently to poll.

    Attributes:
        max_attempts: Number of queries made before giving up
        delay: Seconds slept between two attempts
        sleep: Coroutine used for sleeping
    """
    max_attempts: int = CONFIRMATION_MAX_ATTEMPTS
    delay: float = CONFIRMATION_DELAY_SECONDS
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, compare=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay < 0:
            raise ValueError("delay must not be negative")

    @classmethod
    def immediate(cls, max_attempts: int) -> 'RetryPolicy':
        return cls(max_attempts=max_attempts, delay=0.0)


class ConfirmationWaiter:
    """Waits for uploads to become visible to tag queries."""

    def __init__(self, ledger, tag_builder: TagBuilder, policy: Optional[RetryPolicy] = None):
        self.ledger = ledger
        self.tag_builder = tag_builder
        self.policy = policy or RetryPolicy()

    async def _poll(self, description: str, check: Callable[[], Awaitable[Optional[T]]]) -> T:
        attempts = self.policy.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                result = await check()
            except ChunkStoreError as e:
                logger.debug(f"Confirmation query failed (attempt {attempt}/{attempts}) [{description}]: {e}")
                result = None

            if result is not None:
                logger.info(f"Confirmed after {attempt} attempt(s) [{description}]")
                return result

            logger.debug(f"Not visible yet (attempt {attempt}/{attempts}) [{description}]")
            if attempt < attempts:
                await self.policy.sleep(self.policy.delay)

        logger.warning(f"Confirmation timed out after {attempts} attempts [{description}]")
        raise ConfirmationTimeoutError(
            f"Transaction not visible after {attempts} attempts: {description}",
            attempts=attempts,
        )

    async def wait_for_visibility(
        self,
        logical_id: str,
        root_transaction_id: Optional[str] = None,
        data_types: Optional[Sequence[str]] = None,
    ) -> str:
        """
        Wait until the newest version of a logical document is queryable.

        Args:
            logical_id: Project id or wallet address
            root_transaction_id: Restrict to versions of this chain
            data_types: Data-Type values to accept (default: document and manifest)

        Returns:
            Id of the most recent matching transaction
        """
        filters = self.tag_builder.version_filters(logical_id, root_transaction_id)
        if data_types:
            filters = [
                QueryFilter(f.name, list(data_types)) if f.name == TAG_DATA_TYPE else f
                for f in filters
            ]

        async def check() -> Optional[str]:
            found = await self.ledger.query(filters, first=1, order=ORDER_DESC)
            return found[0].transaction_id if found else None

        return await self._poll(f"logical_id={logical_id}", check)

    async def wait_for_transaction(self, transaction_id: str) -> str:
        async def check() -> Optional[str]:
            found = await self.ledger.query(ids=[transaction_id], first=1)
            return found[0].transaction_id if found else None

        return await self._poll(f"tx_id={transaction_id}", check)

    async def wait_for_chunk_set(self, chunk_set_id: str, total_chunks: int) -> int:
        """
        Wait until every index of a chunk set is queryable.

        Returns:
            Number of distinct chunk indices seen
        """
        filters = [
            QueryFilter(TAG_APP_NAME, [self.tag_builder.app_name]),
            QueryFilter(TAG_DATA_TYPE, [self.tag_builder.kind.chunk_type]),
            QueryFilter(TAG_CHUNK_SET_ID, [chunk_set_id]),
        ]

        async def check() -> Optional[int]:
            found = await self.ledger.query(filters, first=max(QUERY_PAGE_SIZE, total_chunks), order=ORDER_ASC)
            indices = set()
            for tx in found:
                try:
                    index = int(tx.tag(TAG_CHUNK_INDEX))
                except (TypeError, ValueError):
                    continue
                if 0 <= index < total_chunks:
                    indices.add(index)
            return len(indices) if len(indices) == total_chunks else None

        return await self._poll(f"chunk_set_id={chunk_set_id}", check)
