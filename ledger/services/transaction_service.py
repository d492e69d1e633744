"""Transaction service: signature checks, nonce ordering and storage."""

import base64
import binascii
import hashlib
import time
from typing import Dict, List, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from common.logging_config import get_logger
from common.protocol import signing_message
from common.types import Tag
from ledger import config
from ledger.database import get_db_connection
from ledger.exceptions import (
    InvalidEnvelopeError,
    InvalidSignatureError,
    NonceReplayError,
    TransactionNotFoundError,
    TransactionTooLargeError,
)
from ledger.repositories.tag_repository import TagRepository
from ledger.repositories.transaction_repository import TransactionRepository

logger = get_logger(__name__)


def transaction_id_for(signature: bytes) -> str:
    """Transaction id: unpadded base64url of the SHA-256 of the signature."""
    digest = hashlib.sha256(signature).digest()
    return base64.urlsafe_b64encode(digest).decode('ascii').rstrip('=')


class TransactionService:
    def __init__(self):
        self.tx_repo = TransactionRepository()
        self.tag_repo = TagRepository()

    def submit(
        self,
        data_b64: str,
        tags: List[Tuple[str, str]],
        owner: str,
        nonce: int,
        signature: str,
    ) -> Dict[str, int]:
        """
        Verify and store a signed transaction.

        Returns:
            Receipt with 'id' and 'timestamp'

        Raises:
            InvalidEnvelopeError: Body or key encoding is broken
            TransactionTooLargeError: Body above MAX_TRANSACTION_BYTES
            InvalidSignatureError: Signature does not match owner and content
            NonceReplayError: Nonce not above the owner's last accepted nonce
        """
        try:
            data = base64.b64decode(data_b64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidEnvelopeError(f"Transaction data is not valid base64: {e}") from e

        if len(data) > config.MAX_TRANSACTION_BYTES:
            raise TransactionTooLargeError(
                f"Transaction body is {len(data)} bytes, limit is {config.MAX_TRANSACTION_BYTES}"
            )

        try:
            public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(owner))
            signature_bytes = bytes.fromhex(signature)
        except ValueError as e:
            raise InvalidEnvelopeError(f"Owner key or signature is not valid hex: {e}") from e

        message = signing_message(data, [Tag(name, value) for name, value in tags], owner, nonce)
        try:
            public_key.verify(signature_bytes, message)
        except InvalidSignature as e:
            raise InvalidSignatureError(f"Signature does not verify for owner {owner[:16]}...") from e

        tx_id = transaction_id_for(signature_bytes)
        now = time.time()
        timestamp = int(now)

        with get_db_connection() as conn:
            try:
                last_nonce = self.tx_repo.get_last_nonce(owner, conn=conn)
                if last_nonce is not None and nonce <= last_nonce:
                    raise NonceReplayError(f"Nonce {nonce} is not above last accepted nonce {last_nonce}")

                self.tx_repo.insert_transaction(
                    tx_id=tx_id,
                    owner=owner,
                    nonce=nonce,
                    signature=signature,
                    data=data,
                    timestamp=timestamp,
                    visible_at=now + config.VISIBILITY_DELAY_SECONDS,
                    conn=conn
                )
                self.tag_repo.add_tags(tx_id, tags, conn=conn)
                self.tx_repo.set_last_nonce(owner, nonce, conn=conn)
                conn.commit()
            except Exception:
                conn.rollback()
                raise

        logger.info(f"Stored transaction ({len(data)} bytes, {len(tags)} tags) [tx_id={tx_id}] [nonce={nonce}]")
        return {"id": tx_id, "timestamp": timestamp}

    def get_data(self, tx_id: str) -> bytes:
        data = self.tx_repo.get_data(tx_id)
        if data is None:
            raise TransactionNotFoundError(f"Transaction not found: {tx_id}")
        return data
