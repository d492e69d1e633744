"""Query service for the transactions search."""

import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from common.logging_config import get_logger
from ledger import config
from ledger.exceptions import InvalidQueryError
from ledger.repositories.tag_repository import TagRepository
from ledger.repositories.transaction_repository import TransactionRepository

logger = get_logger(__name__)

ORDERS = ("ASC", "DESC")


class QueryService:
    def __init__(self):
        self.tx_repo = TransactionRepository()
        self.tag_repo = TagRepository()

    def search(
        self,
        tag_filters: Sequence[Tuple[str, Sequence[str]]],
        ids: Optional[Sequence[str]] = None,
        first: int = 100,
        order: str = "DESC",
    ) -> List[Dict[str, Any]]:
        """
        Search visible transactions.

        Filters combine with AND across names and OR across the values of one
        name. Transactions still inside the visibility delay are not returned.

        Returns:
            Nodes with id, timestamp and ordered tags
        """
        order = order.upper()
        if order not in ORDERS:
            raise InvalidQueryError(f"order must be one of {', '.join(ORDERS)}, got {order}")
        if first < 1:
            raise InvalidQueryError("first must be at least 1")
        for name, values in tag_filters:
            if not values:
                raise InvalidQueryError(f"Tag filter {name} has no values")

        rows = self.tx_repo.search(
            tag_filters=tag_filters,
            ids=ids,
            first=min(first, config.MAX_QUERY_PAGE_SIZE),
            newest_first=order == "DESC",
            visible_before=time.time(),
        )
        tags = self.tag_repo.get_tags_for_transactions([row["tx_id"] for row in rows])

        logger.debug(f"Query matched {len(rows)} transaction(s) [filters={len(tag_filters)}] [order={order}]")
        return [
            {"id": row["tx_id"], "timestamp": row["timestamp"], "tags": tags[row["tx_id"]]}
            for row in rows
        ]
