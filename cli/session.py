"""Wires the storage client together for one CLI session."""

import time
from pathlib import Path
from typing import Optional

from common.constants import (
    FOLDER_REFERENCES_NAMESPACE,
    PROFILE_REFERENCES_NAMESPACE,
    PROJECT_REFERENCES_NAMESPACE,
)
from common.logging_config import get_logger
from common.types import CLAY_PROJECT, FOLDER_STRUCTURE, USER_PROFILE
from chunkstore.confirmation import ConfirmationWaiter, RetryPolicy
from chunkstore.document_store import DocumentStore
from chunkstore.folder_service import FolderService
from chunkstore.ledger_client import LedgerClient
from chunkstore.profile_service import ProfileService
from chunkstore.reference_store import JsonFileBackend, ReferenceStore, lower_case_key
from chunkstore.signer import FixedKeySigner
from chunkstore.tags import TagBuilder
from chunkstore.uploader import SignerQueue
from cli.config import Config

logger = get_logger(__name__)


class ClayStoreSession:
    """
    Ledger client, signer queue, reference stores and document stores
    sharing one event loop.
    """

    def __init__(
        self,
        config: Config,
        ledger: Optional[LedgerClient] = None,
        signer: Optional[FixedKeySigner] = None,
    ):
        """
        Args:
            config: CLI configuration
            ledger: Ledger client (built from config when omitted)
            signer: Signer (CLAYSTORE_SIGNER_KEY, config key or ephemeral when omitted)
        """
        self.config = config
        store_config = config.to_store_config()

        self.ledger = ledger or LedgerClient.from_config(store_config)
        # A restarted process reusing a fixed key must not reuse nonces
        self.signer = signer or FixedKeySigner.from_env(
            store_config.signer_key, start_nonce=int(time.time() * 1000)
        )
        self.queue = SignerQueue(self.signer, self.ledger)

        backend = JsonFileBackend(str(config.get_references_path()))
        project_refs = ReferenceStore(backend, PROJECT_REFERENCES_NAMESPACE)
        folder_refs = ReferenceStore(backend, FOLDER_REFERENCES_NAMESPACE, normalize_key=lower_case_key)
        profile_refs = ReferenceStore(backend, PROFILE_REFERENCES_NAMESPACE, normalize_key=lower_case_key)

        policy = RetryPolicy(
            max_attempts=store_config.confirmation_max_attempts,
            delay=store_config.confirmation_delay,
        )
        project_waiter = profile_waiter = None
        if config.confirm_uploads():
            project_waiter = ConfirmationWaiter(
                self.ledger, TagBuilder(CLAY_PROJECT, app_name=store_config.app_name), policy
            )
            profile_waiter = ConfirmationWaiter(
                self.ledger, TagBuilder(USER_PROFILE, app_name=store_config.app_name), policy
            )

        self.projects = DocumentStore(
            self.ledger, self.queue, project_refs, CLAY_PROJECT, store_config, waiter=project_waiter
        )
        self.folders = FolderService(DocumentStore.with_confirmation(
            self.ledger, self.queue, folder_refs, FOLDER_STRUCTURE, store_config, policy=policy
        ))
        self.profiles = ProfileService(DocumentStore(
            self.ledger, self.queue, profile_refs, USER_PROFILE, store_config, waiter=profile_waiter
        ))

        logger.info(
            f"Session ready [ledger={store_config.ledger_url}] [signer={self.signer.public_key}] "
            f"[references={config.get_references_path()}]"
        )

    @classmethod
    def from_default_config(cls) -> 'ClayStoreSession':
        return cls(Config(Path.home() / '.claystore' / 'config.json'))

    @property
    def wallet_address(self) -> Optional[str]:
        return self.config.get_wallet_address()

    async def close(self) -> None:
        await self.queue.close()
        await self.ledger.close()
