"""Tag repository for database operations."""

from typing import Dict, List, Sequence, Tuple

from common.logging_config import get_logger
from ledger.database import get_db_connection

logger = get_logger(__name__)


class TagRepository:
    @staticmethod
    def add_tags(tx_id: str, tags: Sequence[Tuple[str, str]], conn=None) -> None:
        if not tags:
            return

        should_close = conn is None
        if conn is None:
            conn = get_db_connection().__enter__()

        try:
            cursor = conn.cursor()
            cursor.executemany(
                "INSERT INTO tags (tx_id, position, name, value) VALUES (?, ?, ?, ?)",
                [(tx_id, position, name, value) for position, (name, value) in enumerate(tags)]
            )
            if should_close:
                conn.commit()
        finally:
            if should_close:
                conn.close()

    @staticmethod
    def get_tags_for_transactions(tx_ids: Sequence[str], conn=None) -> Dict[str, List[Dict[str, str]]]:
        """
        Load the ordered tags of several transactions.

        Returns:
            Mapping of transaction id to its tag list
        """
        result: Dict[str, List[Dict[str, str]]] = {tx_id: [] for tx_id in tx_ids}
        if not tx_ids:
            return result

        should_close = conn is None
        if conn is None:
            conn = get_db_connection().__enter__()

        try:
            cursor = conn.cursor()
            placeholders = ','.join('?' for _ in tx_ids)
            cursor.execute(
                f"SELECT tx_id, name, value FROM tags WHERE tx_id IN ({placeholders}) ORDER BY tx_id, position",
                list(tx_ids)
            )
            for row in cursor.fetchall():
                result[row["tx_id"]].append({"name": row["name"], "value": row["value"]})
            return result
        finally:
            if should_close:
                conn.close()
