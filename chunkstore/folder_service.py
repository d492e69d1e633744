"""Per-wallet folder lists stored as versioned folder-structure documents."""

import time
from typing import Callable, Iterable, List, Optional

from common.logging_config import get_logger
from common.protocol import FolderStructureBody
from common.types import FOLDER_STRUCTURE, TagContext
from chunkstore.document_store import DocumentStore, SaveResult
from chunkstore.exceptions import ChunkStoreError, TransactionNotFoundError

logger = get_logger(__name__)

STATUS_UPLOADING = "uploading"
STATUS_VERIFYING = "verifying"
STATUS_COMPLETE = "complete"
STATUS_ERROR = "error"

StatusCallback = Callable[[str, str], None]


class FolderService:
    """
    Reads and writes the folder list of a wallet.

    Wallet addresses are compared lower-cased. Uploads are always confirmed
    before they are reported complete, because the folder list is re-read
    right after it is changed.
    """

    def __init__(self, documents: DocumentStore):
        if documents.kind != FOLDER_STRUCTURE:
            raise ValueError(f"FolderService needs a {FOLDER_STRUCTURE.name} store, got {documents.kind.name}")
        if documents.waiter is None:
            raise ValueError("FolderService needs a document store that confirms uploads")
        self.documents = documents

    async def upload(
        self,
        wallet_address: str,
        folders: Iterable[str],
        on_status: Optional[StatusCallback] = None,
    ) -> SaveResult:
        """
        Store a new version of a wallet's folder list.

        Args:
            wallet_address: Owner wallet
            folders: Folder names; stored sorted and de-duplicated
            on_status: Receives (status, detail) for each stage

        Returns:
            SaveResult of the confirmed upload
        """
        notify = on_status or (lambda status, detail: None)
        wallet = wallet_address.lower()
        body = FolderStructureBody(
            wallet_address=wallet,
            folders=sorted(set(folders)),
            updated_at=int(time.time() * 1000),
        )
        context = TagContext(logical_id=wallet, author=wallet)

        notify(STATUS_UPLOADING, f"{len(body.folders)} folder(s)")
        try:
            result = await self.documents.save(
                body.to_json().decode('utf-8'),
                context,
                on_uploaded=lambda tx_id: notify(STATUS_VERIFYING, tx_id),
            )
        except ChunkStoreError as e:
            logger.error(f"Folder structure upload failed [wallet={wallet}]: {e}")
            notify(STATUS_ERROR, str(e))
            raise

        notify(STATUS_COMPLETE, result.transaction_id)
        logger.info(f"Folder structure saved with {len(body.folders)} folder(s) [wallet={wallet}] [tx_id={result.transaction_id}]")
        return result

    async def download(self, wallet_address: str) -> List[str]:
        """Folder list of a wallet, empty when none was ever stored."""
        wallet = wallet_address.lower()
        try:
            loaded = await self.documents.load(wallet)
        except TransactionNotFoundError:
            logger.debug(f"No folder structure stored yet [wallet={wallet}]")
            return []
        return FolderStructureBody.from_json(loaded.document.encode('utf-8')).folders

    async def add_folders(
        self,
        wallet_address: str,
        names: Iterable[str],
        on_status: Optional[StatusCallback] = None,
    ) -> List[str]:
        folders = set(await self.download(wallet_address))
        folders.update(name for name in names if name)
        await self.upload(wallet_address, folders, on_status)
        return sorted(folders)

    async def sync(self, wallet_address: str) -> Optional[str]:
        """
        Drop the local reference and re-resolve the latest version from the ledger.

        Returns:
            Latest transaction id, or None when nothing is stored
        """
        wallet = wallet_address.lower()
        self.documents.references.delete_reference(wallet)
        return await self.documents.resolve_latest(wallet)
