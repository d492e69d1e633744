"""User profiles stored as versioned user-profile documents, one per wallet."""

import json
import time
from typing import Dict, List, Optional

from common.constants import HISTORY_PAGE_SIZE, TAG_APP_NAME, TAG_DATA_TYPE, TAG_WALLET_ADDRESS
from common.logging_config import get_logger
from common.protocol import QueryFilter, UserProfileBody
from common.types import USER_PROFILE, TagContext
from chunkstore.document_store import DocumentStore, SaveResult
from chunkstore.exceptions import ChunkStoreError, TransactionNotFoundError
from chunkstore.ledger_client import ORDER_DESC
from chunkstore.locator import ProgressCallback

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class ProfileService:
    """
    Reads, writes and searches user profiles.

    Profiles are keyed by the lower-cased wallet address; the display name
    is also written as the Project-Name tag of every version.
    """

    def __init__(self, documents: DocumentStore):
        if documents.kind != USER_PROFILE:
            raise ValueError(f"ProfileService needs a {USER_PROFILE.name} store, got {documents.kind.name}")
        self.documents = documents

    async def upload(
        self,
        profile: UserProfileBody,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SaveResult:
        """
        Store a new version of a profile.

        The first version of a wallet's profile becomes its root; later
        uploads are chained to it through the reference store.

        Args:
            profile: Profile to store; wallet_address is required
            on_progress: Called after every uploaded chunk of a large profile

        Returns:
            SaveResult of the upload
        """
        wallet = profile.wallet_address.lower()
        if not wallet:
            raise ValueError("Profile has no wallet address")

        now = _now_ms()
        profile.wallet_address = wallet
        profile.id = profile.id or f"profile-{wallet}"
        profile.created_at = profile.created_at or now
        profile.updated_at = now

        context = TagContext(logical_id=wallet, name=profile.display_name, author=wallet)
        result = await self.documents.save(profile.to_json().decode('utf-8'), context, on_progress=on_progress)
        logger.info(
            f"Profile saved{' (chunked)' if result.was_chunked else ''} "
            f"[wallet={wallet}] [tx_id={result.transaction_id}]"
        )
        return result

    async def download(self, wallet_address: str) -> Optional[UserProfileBody]:
        """Latest profile of a wallet, None when none was ever stored."""
        wallet = wallet_address.lower()
        try:
            loaded = await self.documents.load(wallet)
        except TransactionNotFoundError:
            logger.debug(f"No profile stored yet [wallet={wallet}]")
            return None

        try:
            return UserProfileBody.from_json(loaded.document.encode('utf-8'))
        except (json.JSONDecodeError, ValueError, TypeError) as e:
            raise ChunkStoreError(f"Profile of {wallet} is not a valid profile document: {e}") from e

    async def update(self, wallet_address: str, **changes: str) -> UserProfileBody:
        """
        Apply field changes to a wallet's profile and store the result.

        Args:
            wallet_address: Owner wallet
            **changes: UserProfileBody attribute names and new values

        Returns:
            The stored profile
        """
        unknown = set(changes) - set(UserProfileBody.FIELDS.values())
        if unknown:
            raise ValueError(f"Unknown profile field(s): {', '.join(sorted(unknown))}")

        profile = await self.download(wallet_address) or UserProfileBody(wallet_address=wallet_address)
        for attr, value in changes.items():
            setattr(profile, attr, value)
        await self.upload(profile)
        return profile

    async def find_by_display_name(self, display_name: str) -> Optional[str]:
        """
        Wallet whose latest profile carries a display name, compared case-insensitively.

        Every wallet with a profile on the ledger is checked, newest
        activity first. A profile that cannot be read is skipped.

        Returns:
            Wallet address, or None when no profile matches
        """
        wanted = display_name.strip().lower()
        if not wanted:
            return None

        filters = [
            QueryFilter(TAG_APP_NAME, [self.documents.config.app_name]),
            QueryFilter(TAG_DATA_TYPE, [USER_PROFILE.name, USER_PROFILE.manifest_type]),
        ]
        found = await self.documents.ledger.query(filters, first=HISTORY_PAGE_SIZE, order=ORDER_DESC)

        wallets: Dict[str, None] = {}
        for tx in found:
            wallet = tx.tag(TAG_WALLET_ADDRESS)
            if wallet:
                wallets.setdefault(wallet.lower(), None)

        for wallet in wallets:
            try:
                profile = await self.download(wallet)
            except ChunkStoreError as e:
                logger.warning(f"Skipping unreadable profile [wallet={wallet}]: {e}")
                continue
            if profile and profile.display_name.lower() == wanted:
                logger.info(f"Display name {display_name!r} belongs to {wallet}")
                return wallet

        logger.debug(f"No profile with display name {display_name!r} among {len(wallets)} wallet(s)")
        return None

    def known_wallets(self) -> List[str]:
        """Wallets with a locally recorded profile reference."""
        return sorted(ref.logical_id for ref in self.documents.references.all_references())
