"""Fixed-identity Ed25519 signer used for every ledger upload."""

import base64
import os
from typing import List, Optional

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, NoEncryption, PrivateFormat, PublicFormat

from common.logging_config import get_logger
from common.protocol import TransactionEnvelope, signing_message
from common.types import Tag

logger = get_logger(__name__)

SIGNER_KEY_ENV = "CLAYSTORE_SIGNER_KEY"


def decode_key(value: str) -> bytes:
    """
    Decode a private key given as hex, base64, or comma-separated byte values.
    """
    value = value.strip()
    if not value:
        raise ValueError("empty key")
    if ',' in value:
        return bytes(int(part.strip()) for part in value.split(','))
    try:
        return bytes.fromhex(value)
    except ValueError:
        pass
    padding = "=" * (-len(value) % 4)
    try:
        return base64.b64decode((value + padding).replace("-", "+").replace("_", "/"), validate=True)
    except ValueError as e:
        raise ValueError("signer key is not hex, base64 or a byte list") from e


class FixedKeySigner:
    """
    Signs upload envelopes with one application-owned key.

    The nonce advances by one per signature, so envelopes must be signed and
    submitted in order; SignerQueue is the only intended caller.
    """

    def __init__(self, private_key: Ed25519PrivateKey, start_nonce: int = 0):
        self._key = private_key
        self._nonce = start_nonce
        self.public_key = private_key.public_key().public_bytes(
            encoding=Encoding.Raw, format=PublicFormat.Raw
        ).hex()

    @classmethod
    def from_seed(cls, seed: str, start_nonce: int = 0) -> 'FixedKeySigner':
        raw = decode_key(seed)
        # 64-byte keys are seed + public key
        if len(raw) == 64:
            raw = raw[:32]
        if len(raw) != 32:
            raise ValueError(f"ed25519 seed must be 32 bytes (or 64-byte expanded key), got {len(raw)}")
        return cls(Ed25519PrivateKey.from_private_bytes(raw), start_nonce=start_nonce)

    @classmethod
    def generate(cls) -> 'FixedKeySigner':
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_env(cls, seed: Optional[str] = None, start_nonce: int = 0) -> 'FixedKeySigner':
        """
        Load the signer from an explicit seed or CLAYSTORE_SIGNER_KEY.

        Falls back to a throwaway key so local development works without setup.
        """
        seed = seed or os.environ.get(SIGNER_KEY_ENV)
        if seed:
            signer = cls.from_seed(seed, start_nonce=start_nonce)
            logger.info(f"Initialized fixed signer [public_key={signer.public_key}]")
            return signer
        signer = cls(Ed25519PrivateKey.generate(), start_nonce=start_nonce)
        logger.warning(f"No {SIGNER_KEY_ENV} set, using an ephemeral signer [public_key={signer.public_key}]")
        return signer

    @property
    def nonce(self) -> int:
        return self._nonce

    def export_seed(self) -> str:
        return self._key.private_bytes(
            encoding=Encoding.Raw, format=PrivateFormat.Raw, encryption_algorithm=NoEncryption()
        ).hex()

    def sign(self, data: bytes, tags: List[Tag]) -> TransactionEnvelope:
        """
        Build a signed envelope for one transaction.

        Args:
            data: Transaction body
            tags: Ordered tags

        Returns:
            Envelope carrying owner, nonce and hex signature
        """
        self._nonce += 1
        message = signing_message(data, tags, self.public_key, self._nonce)
        signature = self._key.sign(message).hex()
        return TransactionEnvelope(
            data=data,
            tags=list(tags),
            owner=self.public_key,
            nonce=self._nonce,
            signature=signature,
        )
