"""Shared pytest fixtures for all tests."""

import asyncio
import json
import random
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set

import httpx
import pytest

from common.protocol import QueryFilter, TransactionEnvelope
from common.types import ChunkTransaction
from chunkstore.exceptions import LedgerUnavailableError, TransactionNotFoundError
from chunkstore.ledger_client import ORDER_DESC, LedgerClient
from chunkstore.query_cache import QueryCache
from chunkstore.signer import FixedKeySigner
from cli.config import Config
from ledger.database import init_database


async def no_sleep(seconds: float) -> None:
    return None


class FakeLedger:
    """
    In-memory ledger with the LedgerClient interface.

    Knobs:
        shuffle: query results come back in random order
        withheld: transaction ids never returned by queries
        hidden_queries: number of queries a new transaction stays invisible for
        fail_submit_at: zero-based submit call that raises LedgerUnavailableError
        fail_fetch: transaction ids whose body fetch fails
    """

    def __init__(self, shuffle: bool = False, seed: int = 7):
        self.shuffle = shuffle
        self.withheld: Set[str] = set()
        self.hidden_queries = 0
        self.fail_submit_at: Optional[int] = None
        self.fail_fetch: Set[str] = set()
        self.submitted: List[TransactionEnvelope] = []
        self.query_calls = 0
        self.fetch_calls = 0
        self._bodies: Dict[str, bytes] = {}
        self._order: List[ChunkTransaction] = []
        self._visible_after: Dict[str, int] = {}
        self._random = random.Random(seed)

    async def submit(self, envelope: TransactionEnvelope) -> Dict:
        call = len(self.submitted)
        if self.fail_submit_at is not None and call == self.fail_submit_at:
            self.submitted.append(envelope)
            raise LedgerUnavailableError("ledger went away")
        self.submitted.append(envelope)
        tx_id = f"tx-{call:04d}"
        self._bodies[tx_id] = envelope.data
        self._order.append(ChunkTransaction(tx_id, tuple(envelope.tags), timestamp=1_700_000_000 + call))
        self._visible_after[tx_id] = self.query_calls + self.hidden_queries
        return {'id': tx_id, 'timestamp': 1_700_000_000 + call}

    async def query(
        self,
        filters: Sequence[QueryFilter] = (),
        first: int = 100,
        order: str = ORDER_DESC,
        ids: Optional[Sequence[str]] = None,
    ) -> List[ChunkTransaction]:
        self.query_calls += 1
        matches = []
        for tx in self._order:
            if tx.transaction_id in self.withheld:
                continue
            if self._visible_after[tx.transaction_id] >= self.query_calls:
                continue
            if ids and tx.transaction_id not in ids:
                continue
            if all(tx.tag(f.name) in f.values for f in filters):
                matches.append(tx)
        if order == ORDER_DESC:
            matches.reverse()
        matches = matches[:first]
        if self.shuffle:
            self._random.shuffle(matches)
        return matches

    async def fetch_data(self, transaction_id: str) -> bytes:
        self.fetch_calls += 1
        await asyncio.sleep(0)
        if transaction_id in self.fail_fetch:
            raise LedgerUnavailableError(f"fetch of {transaction_id} failed")
        if transaction_id not in self._bodies:
            raise TransactionNotFoundError(f"Transaction not found: {transaction_id}")
        return self._bodies[transaction_id]

    def put(self, tx_id: str, body: bytes, tags=(), hidden_for: int = 0) -> None:
        """Insert a transaction directly, bypassing signing."""
        self._bodies[tx_id] = body
        self._order.append(ChunkTransaction(tx_id, tuple(tags), timestamp=1_700_000_000 + len(self._order)))
        self._visible_after[tx_id] = self.query_calls + hidden_for

    def transactions(self) -> List[ChunkTransaction]:
        return list(self._order)


@pytest.fixture
def fake_ledger():
    return FakeLedger()


@pytest.fixture
def ledger_factory():
    """FakeLedger class, for tests that need non-default knobs."""
    return FakeLedger


@pytest.fixture
def signer():
    return FixedKeySigner.generate()


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .claystore directory
    """
    config_dir = tmp_path / '.claystore'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Args:
        temp_config_dir: Temporary config directory fixture

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def ledger_db(monkeypatch):
    """
    Create a temporary ledger database for each test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "ledger.db"
        monkeypatch.setattr("ledger.database.DATABASE_PATH", str(db_path))
        monkeypatch.setattr("ledger.config.DATABASE_PATH", str(db_path))
        init_database()
        yield db_path


@pytest.fixture
def asgi_ledger(ledger_db):
    """
    LedgerClient talking to the development ledger app in-process.
    """
    from ledger.main import app

    session = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://ledger")
    return LedgerClient(
        base_url="http://ledger",
        max_retries=0,
        cache=QueryCache(),
        session=session,
        sleep=no_sleep,
    )


@pytest.fixture
def sample_project(tmp_path):
    """
    Write a JSON project file large enough to be chunked.

    Returns:
        Path to the project file
    """
    objects = [
        {"id": f"obj-{i}", "type": "clay", "vertices": [[i, i * 0.5, -i]] * 20, "color": "#c8733a"}
        for i in range(600)
    ]
    path = tmp_path / 'castle.json'
    path.write_text(json.dumps({"name": "Castle", "objects": objects}))
    return path
