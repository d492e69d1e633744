"""
Local mutable references: logical id -> root and latest transaction.

Ledger transactions are immutable, so "the current version of project X"
is tracked client side. References are a cache; the ledger stays the source
of truth and DocumentStore.sync_references rebuilds them from tags.
"""

import json
import threading
import time
from dataclasses import asdict
from pathlib import Path
from typing import Callable, Dict, List, Optional

from common.constants import MAX_MUTABLE_REFERENCES, REFERENCE_EVICTION_COUNT
from common.logging_config import get_logger
from common.types import MutableReference
from chunkstore.exceptions import ReferenceStoreFullError

logger = get_logger(__name__)

Entries = Dict[str, Dict]


class InMemoryBackend:
    """
    Dict-backed storage for reference namespaces.

    Args:
        capacity: Optional entry limit per namespace; writes above it raise
            ReferenceStoreFullError
    """

    def __init__(self, capacity: Optional[int] = None):
        self.capacity = capacity
        self._data: Dict[str, Entries] = {}
        self._lock = threading.RLock()

    def load(self, namespace: str) -> Entries:
        with self._lock:
            return {key: dict(value) for key, value in self._data.get(namespace, {}).items()}

    def store(self, namespace: str, entries: Entries) -> None:
        if self.capacity is not None and len(entries) > self.capacity:
            raise ReferenceStoreFullError(
                f"Namespace {namespace} holds {len(entries)} entries, capacity is {self.capacity}"
            )
        with self._lock:
            self._data[namespace] = {key: dict(value) for key, value in entries.items()}


class JsonFileBackend:
    """
    JSON file storage, one top-level key per namespace.

    A missing or corrupted file is treated as empty.
    """

    def __init__(self, path: str):
        self._path = Path(path).expanduser()
        self._cache_lock = threading.RLock()
        self._file_lock = threading.Lock()
        self._cache: Dict[str, Entries] = {}
        self._load_from_disk()

    @property
    def path(self) -> Path:
        return self._path

    def _load_from_disk(self) -> bool:
        if not self._path.exists():
            logger.debug(f"Reference file not found at {self._path}, starting empty")
            return False

        try:
            with self._file_lock:
                with open(self._path, 'r') as f:
                    data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("top level is not an object")
        except (json.JSONDecodeError, ValueError, IOError) as e:
            logger.warning(f"Failed to load references from {self._path}: {e}, starting empty")
            with self._cache_lock:
                self._cache = {}
            return False

        with self._cache_lock:
            self._cache = data
        logger.info(f"References loaded from {self._path} ({len(data)} namespace(s))")
        return True

    def load(self, namespace: str) -> Entries:
        with self._cache_lock:
            return {key: dict(value) for key, value in self._cache.get(namespace, {}).items()}

    def store(self, namespace: str, entries: Entries) -> None:
        with self._cache_lock:
            self._cache[namespace] = {key: dict(value) for key, value in entries.items()}
            data = dict(self._cache)

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._file_lock:
                with open(self._path, 'w') as f:
                    json.dump(data, f, indent=2)
        except (IOError, OSError) as e:
            raise ReferenceStoreFullError(f"Failed to write references to {self._path}: {e}") from e

        logger.debug(f"References saved to {self._path} [namespace={namespace}]")


def lower_case_key(key: str) -> str:
    return key.lower()


class ReferenceStore:
    """
    One namespace of mutable references on top of a backend.

    The root transaction of a logical id never changes once recorded; only
    the latest pointer moves.
    """

    def __init__(
        self,
        backend,
        namespace: str,
        max_references: int = MAX_MUTABLE_REFERENCES,
        normalize_key: Optional[Callable[[str], str]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.backend = backend
        self.namespace = namespace
        self.max_references = max_references
        self._normalize = normalize_key or (lambda key: key)
        self._clock = clock
        self._lock = threading.RLock()

    def get_reference(self, logical_id: str) -> Optional[MutableReference]:
        entry = self.backend.load(self.namespace).get(self._normalize(logical_id))
        return MutableReference(**entry) if entry else None

    def save_reference(
        self,
        logical_id: str,
        root_transaction_id: str,
        latest_transaction_id: str,
        name: str = "",
        author: str = "",
    ) -> MutableReference:
        """
        Record the latest transaction of a logical id.

        Args:
            logical_id: Project id or wallet address
            root_transaction_id: First transaction of the chain
            latest_transaction_id: Most recent version
            name: Display name
            author: Author identifier

        Returns:
            The stored reference
        """
        key = self._normalize(logical_id)

        with self._lock:
            entries = self.backend.load(self.namespace)
            existing = entries.get(key)

            root = root_transaction_id
            if existing:
                if existing['root_transaction_id'] != root_transaction_id:
                    logger.warning(
                        f"Ignoring new root {root_transaction_id} for {key}, "
                        f"keeping {existing['root_transaction_id']}"
                    )
                root = existing['root_transaction_id']
                name = name or existing.get('name', '')
                author = author or existing.get('author', '')
            elif len(entries) >= self.max_references:
                self._evict_oldest(entries)

            reference = MutableReference(
                logical_id=key,
                root_transaction_id=root,
                latest_transaction_id=latest_transaction_id,
                name=name,
                author=author,
                updated_at=self._clock(),
            )
            entries[key] = asdict(reference)

            try:
                self.backend.store(self.namespace, entries)
            except ReferenceStoreFullError:
                logger.warning(f"Reference storage full, evicting oldest entries [namespace={self.namespace}]")
                self._evict_oldest(entries, keep=key)
                self.backend.store(self.namespace, entries)

        logger.debug(f"Saved reference {key} -> {latest_transaction_id} [root={root}]")
        return reference

    def _evict_oldest(self, entries: Dict[str, Dict], keep: Optional[str] = None) -> None:
        candidates = sorted(
            (k for k in entries if k != keep),
            key=lambda k: entries[k].get('updated_at', 0.0),
        )
        for key in candidates[:REFERENCE_EVICTION_COUNT]:
            del entries[key]
        logger.info(
            f"Evicted {min(len(candidates), REFERENCE_EVICTION_COUNT)} oldest references "
            f"[namespace={self.namespace}]"
        )

    def delete_reference(self, logical_id: str) -> bool:
        key = self._normalize(logical_id)
        with self._lock:
            entries = self.backend.load(self.namespace)
            if key not in entries:
                return False
            del entries[key]
            self.backend.store(self.namespace, entries)
        return True

    def all_references(self) -> List[MutableReference]:
        """All references, most recently updated first."""
        entries = self.backend.load(self.namespace)
        references = [MutableReference(**entry) for entry in entries.values()]
        return sorted(references, key=lambda ref: ref.updated_at, reverse=True)

    def find_by_name(self, name: str, author: Optional[str] = None) -> Optional[MutableReference]:
        for reference in self.all_references():
            if reference.name != name:
                continue
            if author and reference.author.lower() != author.lower():
                continue
            return reference
        return None
