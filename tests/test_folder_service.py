"""Tests for FolderService."""

import pytest

from common.constants import TAG_WALLET_ADDRESS
from common.protocol import FolderStructureBody
from common.types import CLAY_PROJECT, FOLDER_STRUCTURE
from chunkstore.confirmation import RetryPolicy
from chunkstore.document_store import DocumentStore
from chunkstore.exceptions import ConfirmationTimeoutError
from chunkstore.folder_service import (
    STATUS_COMPLETE,
    STATUS_ERROR,
    STATUS_UPLOADING,
    STATUS_VERIFYING,
    FolderService,
)
from chunkstore.reference_store import InMemoryBackend, ReferenceStore, lower_case_key
from chunkstore.uploader import SignerQueue

WALLET = "0xAbCdEf0123"


def make_service(ledger, signer, policy=None):
    references = ReferenceStore(InMemoryBackend(), "folder_mutable_refs", normalize_key=lower_case_key)
    documents = DocumentStore.with_confirmation(
        ledger,
        SignerQueue(signer, ledger),
        references,
        FOLDER_STRUCTURE,
        policy=policy or RetryPolicy.immediate(3),
    )
    return FolderService(documents)


class StatusLog:

    def __init__(self):
        self.entries = []

    def __call__(self, status, detail):
        self.entries.append((status, detail))

    @property
    def statuses(self):
        return [status for status, _ in self.entries]


class TestFolderService:

    def test_requires_folder_structure_store(self, fake_ledger, signer):
        references = ReferenceStore(InMemoryBackend(), "clay-mutable-refs")
        documents = DocumentStore.with_confirmation(fake_ledger, SignerQueue(signer, fake_ledger), references, CLAY_PROJECT)

        with pytest.raises(ValueError):
            FolderService(documents)

    def test_requires_confirming_store(self, fake_ledger, signer):
        references = ReferenceStore(InMemoryBackend(), "folder_mutable_refs")
        documents = DocumentStore(fake_ledger, SignerQueue(signer, fake_ledger), references, FOLDER_STRUCTURE)

        with pytest.raises(ValueError):
            FolderService(documents)

    @pytest.mark.asyncio
    async def test_upload_reports_status_in_order(self, fake_ledger, signer):
        service = make_service(fake_ledger, signer)
        log = StatusLog()

        result = await service.upload(WALLET, ["sculptures", "buildings", "sculptures"], on_status=log)

        assert log.statuses == [STATUS_UPLOADING, STATUS_VERIFYING, STATUS_COMPLETE]
        assert log.entries[-1][1] == result.transaction_id

        body = FolderStructureBody.from_json(fake_ledger.submitted[0].data)
        assert body.folders == ["buildings", "sculptures"]
        assert body.wallet_address == WALLET.lower()
        assert {t.name: t.value for t in fake_ledger.submitted[0].tags}[TAG_WALLET_ADDRESS] == WALLET.lower()
        await service.documents.queue.close()

    @pytest.mark.asyncio
    async def test_unconfirmed_upload_reports_error(self, fake_ledger, signer):
        fake_ledger.withheld.add("tx-0000")
        service = make_service(fake_ledger, signer, policy=RetryPolicy.immediate(2))
        log = StatusLog()

        with pytest.raises(ConfirmationTimeoutError):
            await service.upload(WALLET, ["a"], on_status=log)

        assert log.statuses == [STATUS_UPLOADING, STATUS_VERIFYING, STATUS_ERROR]
        await service.documents.queue.close()

    @pytest.mark.asyncio
    async def test_download_without_folders(self, fake_ledger, signer):
        assert await make_service(fake_ledger, signer).download(WALLET) == []

    @pytest.mark.asyncio
    async def test_add_folders_merges_with_stored_list(self, fake_ledger, signer):
        service = make_service(fake_ledger, signer)
        await service.upload(WALLET, ["b"])

        folders = await service.add_folders(WALLET.upper().replace("0X", "0x"), ["a", "", "b"])

        assert folders == ["a", "b"]
        assert await service.download(WALLET) == ["a", "b"]
        await service.documents.queue.close()

    @pytest.mark.asyncio
    async def test_sync_resolves_from_ledger(self, fake_ledger, signer):
        service = make_service(fake_ledger, signer)
        await service.upload(WALLET, ["a"])
        latest = await service.upload(WALLET, ["a", "b"])

        other = make_service(fake_ledger, signer)
        assert await other.sync(WALLET) == latest.transaction_id
        assert await other.download(WALLET) == ["a", "b"]
        assert await make_service(fake_ledger, signer).sync("0xnobody") is None
        await service.documents.queue.close()


@pytest.mark.asyncio
async def test_round_trip_through_development_ledger(asgi_ledger, signer):
    service = make_service(asgi_ledger, signer)
    log = StatusLog()

    await service.add_folders(WALLET, ["castles"], on_status=log)
    await service.add_folders(WALLET, ["towers"], on_status=log)

    fresh = make_service(asgi_ledger, signer)
    assert await fresh.download(WALLET) == ["castles", "towers"]
    assert log.statuses == [STATUS_UPLOADING, STATUS_VERIFYING, STATUS_COMPLETE] * 2
    await service.documents.queue.close()
    await asgi_ledger.close()
