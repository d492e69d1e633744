"""Tests for ReferenceStore and its backends."""

import json

import pytest

from chunkstore.exceptions import ReferenceStoreFullError
from chunkstore.reference_store import InMemoryBackend, JsonFileBackend, ReferenceStore, lower_case_key


class Ticker:
    """Clock advancing one second per call."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        self.now += 1
        return self.now


def make_store(backend=None, **kwargs):
    return ReferenceStore(backend or InMemoryBackend(), "clay-mutable-refs", clock=Ticker(), **kwargs)


class TestReferenceStore:

    def test_root_never_changes_across_updates(self):
        store = make_store()
        store.save_reference("castle", "tx-root", "tx-root", name="Castle")

        for i in range(1, 6):
            store.save_reference("castle", f"tx-{i}", f"tx-{i}")

        reference = store.get_reference("castle")
        assert reference.root_transaction_id == "tx-root"
        assert reference.latest_transaction_id == "tx-5"
        assert reference.name == "Castle"

    def test_missing_reference(self):
        assert make_store().get_reference("nothing") is None

    def test_delete(self):
        store = make_store()
        store.save_reference("castle", "r", "r")

        assert store.delete_reference("castle") is True
        assert store.delete_reference("castle") is False
        assert store.get_reference("castle") is None

    def test_full_namespace_evicts_twenty_oldest(self):
        store = make_store(max_references=100)
        for i in range(100):
            store.save_reference(f"p{i:03d}", f"r{i}", f"r{i}")

        store.save_reference("newest", "rn", "rn")

        remaining = {ref.logical_id for ref in store.all_references()}
        assert len(remaining) == 81
        assert "p000" not in remaining
        assert "p019" not in remaining
        assert "p020" in remaining
        assert "newest" in remaining

    def test_updating_existing_reference_does_not_evict(self):
        store = make_store(max_references=3)
        for name in ("a", "b", "c"):
            store.save_reference(name, name, name)

        store.save_reference("a", "a", "a2")

        assert len(store.all_references()) == 3

    def test_backend_capacity_triggers_eviction_and_retry(self):
        store = make_store(InMemoryBackend(capacity=25), max_references=1000)
        for i in range(25):
            store.save_reference(f"p{i}", f"r{i}", f"r{i}")

        store.save_reference("late", "rl", "rl")

        remaining = {ref.logical_id for ref in store.all_references()}
        assert "late" in remaining
        assert len(remaining) == 6

    def test_all_references_newest_first(self):
        store = make_store()
        store.save_reference("a", "a", "a")
        store.save_reference("b", "b", "b")
        store.save_reference("a", "a", "a2")

        assert [ref.logical_id for ref in store.all_references()] == ["a", "b"]

    def test_find_by_name_and_author(self):
        store = make_store()
        store.save_reference("p1", "r1", "r1", name="Castle", author="0xaaa")
        store.save_reference("p2", "r2", "r2", name="Castle", author="0xbbb")

        assert store.find_by_name("Castle", author="0xAAA").logical_id == "p1"
        assert store.find_by_name("Castle").logical_id == "p2"
        assert store.find_by_name("Tower") is None

    def test_lower_case_keys(self):
        store = make_store(normalize_key=lower_case_key)
        store.save_reference("0xABCdef", "r", "r")

        assert store.get_reference("0xabcDEF").logical_id == "0xabcdef"

    def test_namespaces_are_independent(self):
        backend = InMemoryBackend()
        projects = ReferenceStore(backend, "clay-mutable-refs")
        folders = ReferenceStore(backend, "folder_mutable_refs")
        projects.save_reference("same", "p", "p")

        assert folders.get_reference("same") is None


class TestJsonFileBackend:

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "references.json"
        make_store(JsonFileBackend(path)).save_reference("castle", "root", "latest", name="Castle")

        reloaded = make_store(JsonFileBackend(path)).get_reference("castle")

        assert reloaded.root_transaction_id == "root"
        assert reloaded.latest_transaction_id == "latest"
        assert json.loads(path.read_text())["clay-mutable-refs"]["castle"]["name"] == "Castle"

    def test_corrupted_file_starts_empty(self, tmp_path):
        path = tmp_path / "references.json"
        path.write_text("{not json")

        store = make_store(JsonFileBackend(path))

        assert store.all_references() == []
        store.save_reference("castle", "root", "root")
        assert make_store(JsonFileBackend(path)).get_reference("castle") is not None

    def test_non_object_file_starts_empty(self, tmp_path):
        path = tmp_path / "references.json"
        path.write_text("[1, 2, 3]")

        assert make_store(JsonFileBackend(path)).all_references() == []

    def test_unwritable_location_raises_full(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        backend = JsonFileBackend(blocker / "references.json")

        with pytest.raises(ReferenceStoreFullError):
            backend.store("ns", {"k": {"logical_id": "k"}})
