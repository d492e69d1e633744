"""Transaction repository for database operations."""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from common.logging_config import get_logger
from ledger.database import get_db_connection

logger = get_logger(__name__)


class TransactionRepository:
    @staticmethod
    def insert_transaction(
        tx_id: str,
        owner: str,
        nonce: int,
        signature: str,
        data: bytes,
        timestamp: int,
        visible_at: float,
        conn=None
    ) -> None:
        should_close = conn is None
        if conn is None:
            conn = get_db_connection().__enter__()

        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO transactions (tx_id, owner, nonce, signature, data, data_size, timestamp, visible_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (tx_id, owner, nonce, signature, data, len(data), timestamp, visible_at)
            )
            if should_close:
                conn.commit()
        finally:
            if should_close:
                conn.close()

    @staticmethod
    def get_data(tx_id: str) -> Optional[bytes]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT data FROM transactions WHERE tx_id = ?", (tx_id,))
            row = cursor.fetchone()
            return bytes(row["data"]) if row else None

    @staticmethod
    def get_last_nonce(owner: str, conn=None) -> Optional[int]:
        should_close = conn is None
        if conn is None:
            conn = get_db_connection().__enter__()

        try:
            cursor = conn.cursor()
            cursor.execute("SELECT nonce FROM owner_nonces WHERE owner = ?", (owner,))
            row = cursor.fetchone()
            return row["nonce"] if row else None
        finally:
            if should_close:
                conn.close()

    @staticmethod
    def set_last_nonce(owner: str, nonce: int, conn=None) -> None:
        should_close = conn is None
        if conn is None:
            conn = get_db_connection().__enter__()

        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO owner_nonces (owner, nonce) VALUES (?, ?)
                ON CONFLICT(owner) DO UPDATE SET nonce = excluded.nonce
                """,
                (owner, nonce)
            )
            if should_close:
                conn.commit()
        finally:
            if should_close:
                conn.close()

    @staticmethod
    def search(
        tag_filters: Sequence[Tuple[str, Sequence[str]]],
        ids: Optional[Sequence[str]],
        first: int,
        newest_first: bool,
        visible_before: float,
    ) -> List[Dict[str, Any]]:
        """
        Find visible transactions matching every tag filter.

        Args:
            tag_filters: (name, values) pairs; a transaction must carry each
                name with one of the listed values
            ids: Optional transaction id restriction
            first: Maximum number of results
            newest_first: Order by recency, newest first when True
            visible_before: Only transactions visible at this time are returned

        Returns:
            Rows with tx_id and timestamp
        """
        clauses = ["t.visible_at <= ?"]
        params: List[Any] = [visible_before]

        if ids:
            clauses.append(f"t.tx_id IN ({','.join('?' for _ in ids)})")
            params.extend(ids)

        for name, values in tag_filters:
            clauses.append(
                "EXISTS (SELECT 1 FROM tags g WHERE g.tx_id = t.tx_id AND g.name = ? "
                f"AND g.value IN ({','.join('?' for _ in values)}))"
            )
            params.append(name)
            params.extend(values)

        order = "DESC" if newest_first else "ASC"
        query = f"""
            SELECT t.tx_id, t.timestamp
            FROM transactions t
            WHERE {' AND '.join(clauses)}
            ORDER BY t.seq {order}
            LIMIT ?
        """
        params.append(first)

        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [{"tx_id": row["tx_id"], "timestamp": row["timestamp"]} for row in cursor.fetchall()]
