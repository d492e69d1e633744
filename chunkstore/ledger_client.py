"""Async HTTP client for the ledger: submit transactions, tag queries, body fetches."""

import asyncio
import json
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx

from common.logging_config import get_logger
from common.protocol import QueryFilter, TransactionEnvelope, parse_receipt, tags_from_list
from common.types import ChunkTransaction
from chunkstore.config import StoreConfig
from chunkstore.exceptions import LedgerRejectedError, LedgerUnavailableError, TransactionNotFoundError
from chunkstore.query_cache import QueryCache

logger = get_logger(__name__)

ORDER_ASC = "ASC"
ORDER_DESC = "DESC"

TRANSACTIONS_QUERY = """
query Transactions($tags: [TagFilter!], $ids: [String!], $first: Int, $order: SortOrder) {
  transactions(tags: $tags, ids: $ids, first: $first, order: $order) {
    edges {
      node {
        id
        timestamp
        tags {
          name
          value
        }
      }
    }
  }
}
"""


class LedgerClient:
    """HTTP client for the ledger API with retry logic and error mapping."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_backoff_multiplier: float = 2.0,
        cache: Optional[QueryCache] = None,
        session: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize ledger client.

        Args:
            base_url: Ledger root URL (e.g. "http://localhost:8080")
            timeout: Request timeout in seconds
            max_retries: Retries after the first attempt on network errors and 5xx
            retry_backoff_multiplier: Delay before retry n is multiplier ** n seconds
            cache: Cache for immutable transaction bodies
            session: Preconfigured httpx.AsyncClient (tests inject mock transports)
            sleep: Coroutine used between retries
        """
        self.base_url = base_url
        self.max_retries = max_retries
        self.retry_backoff_multiplier = retry_backoff_multiplier
        self.cache = cache if cache is not None else QueryCache()
        self.session = session or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._sleep = sleep
        logger.info(f"Initialized LedgerClient [base_url={base_url}]")

    @classmethod
    def from_config(cls, config: StoreConfig, session: Optional[httpx.AsyncClient] = None) -> 'LedgerClient':
        return cls(
            base_url=config.ledger_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
            retry_backoff_multiplier=config.retry_backoff_multiplier,
            cache=QueryCache(default_ttl=config.cache_ttl, max_entries=config.cache_max_entries),
            session=session,
        )

    async def close(self) -> None:
        await self.session.aclose()

    async def __aenter__(self) -> 'LedgerClient':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _request_with_retry(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        """
        Make HTTP request, retrying 5xx responses and network failures.

        Returns:
            HTTP response (2xx or 4xx)

        Raises:
            LedgerUnavailableError: If retries are exhausted
        """
        request_id = str(uuid.uuid4())
        headers = kwargs.setdefault('headers', {})
        headers['X-Request-ID'] = request_id

        last_error: Optional[str] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = await self.session.request(method, endpoint, **kwargs)
            except httpx.TransportError as e:
                last_error = f"{type(e).__name__}: {e}"
                if attempt < self.max_retries:
                    delay = self.retry_backoff_multiplier ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{self.max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={request_id}]"
                    )
                    await self._sleep(delay)
                    continue
                logger.error(
                    f"Network error (max retries exceeded): {method} {endpoint} error={e} [request_id={request_id}]"
                )
                break

            if response.status_code >= 500:
                last_error = f"status={response.status_code}"
                if attempt < self.max_retries:
                    delay = self.retry_backoff_multiplier ** attempt
                    logger.warning(
                        f"Ledger error (attempt {attempt + 1}/{self.max_retries + 1}): "
                        f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={request_id}]"
                    )
                    await self._sleep(delay)
                    continue
                break

            logger.debug(f"Response received: {method} {endpoint} status={response.status_code} [request_id={request_id}]")
            return response

        raise LedgerUnavailableError(f"Ledger request failed: {method} {endpoint} ({last_error})")

    @staticmethod
    def _error_details(response: httpx.Response) -> tuple:
        try:
            body = response.json()
            return body.get('detail', response.text), body.get('code', 'UNKNOWN')
        except (json.JSONDecodeError, ValueError, AttributeError):
            return response.text or 'Unknown error', 'UNKNOWN'

    async def submit(self, envelope: TransactionEnvelope) -> Dict[str, Any]:
        """
        Submit a signed transaction.

        Args:
            envelope: Signed envelope

        Returns:
            Receipt dict with 'id' and 'timestamp'

        Raises:
            LedgerRejectedError: Ledger refused the transaction (bad signature, too large, ...)
            LedgerUnavailableError: Ledger unreachable
        """
        response = await self._request_with_retry('POST', '/tx', json=envelope.to_dict())
        if response.status_code >= 400:
            detail, code = self._error_details(response)
            raise LedgerRejectedError(f"Transaction rejected: {detail}", status_code=response.status_code, code=code)
        receipt = parse_receipt(response.json())
        logger.debug(f"Transaction accepted [tx_id={receipt['id']}] [bytes={len(envelope.data)}]")
        return receipt

    async def query(
        self,
        filters: Sequence[QueryFilter] = (),
        first: int = 100,
        order: str = ORDER_DESC,
        ids: Optional[Sequence[str]] = None,
    ) -> List[ChunkTransaction]:
        """
        Run a tag-filtered transaction search.

        Args:
            filters: Tag filters (AND across filters, OR across values)
            first: Page size
            order: "ASC" or "DESC" by recency
            ids: Restrict to these transaction ids

        Returns:
            Matching transactions with their tags
        """
        variables: Dict[str, Any] = {
            'tags': [f.to_dict() for f in filters],
            'first': first,
            'order': order,
        }
        if ids:
            variables['ids'] = list(ids)

        response = await self._request_with_retry(
            'POST', '/graphql', json={'query': TRANSACTIONS_QUERY, 'variables': variables}
        )
        if response.status_code >= 400:
            detail, code = self._error_details(response)
            raise LedgerRejectedError(f"Query rejected: {detail}", status_code=response.status_code, code=code)

        body = response.json()
        if body.get('errors'):
            message = '; '.join(str(err.get('message', err)) for err in body['errors'])
            raise LedgerRejectedError(f"Query failed: {message}", status_code=response.status_code, code='GRAPHQL_ERROR')

        edges = ((body.get('data') or {}).get('transactions') or {}).get('edges') or []
        return [
            ChunkTransaction(
                transaction_id=edge['node']['id'],
                tags=tuple(tags_from_list(edge['node'].get('tags'))),
                timestamp=int(edge['node'].get('timestamp') or 0),
            )
            for edge in edges
        ]

    async def fetch_data(self, transaction_id: str) -> bytes:
        """
        Fetch the raw body of a transaction.

        Raises:
            TransactionNotFoundError: Unknown or invalid id
        """
        cache_key = f"data:{transaction_id}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        response = await self._request_with_retry('GET', f'/tx/{transaction_id}/data')
        if response.status_code in (400, 404):
            raise TransactionNotFoundError(
                f"Transaction not found: {transaction_id}. It may not be indexed yet or the id is invalid."
            )
        if response.status_code >= 400:
            detail, code = self._error_details(response)
            raise LedgerRejectedError(f"Fetch failed: {detail}", status_code=response.status_code, code=code)

        data = response.content
        self.cache.set(cache_key, data)
        return data

    async def fetch_json(self, transaction_id: str) -> Any:
        return json.loads(await self.fetch_data(transaction_id))
