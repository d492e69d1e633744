"""Splitting documents into transport-safe chunks and reassembling them."""

import base64
import binascii
import json
import uuid
from typing import List, Optional, Protocol, Sequence, Union

from common.constants import DEFAULT_CHUNK_SIZE, LEGACY_CHUNK_LENGTH
from common.logging_config import get_logger
from common.types import ChunkPayload
from chunkstore.exceptions import CorruptPayloadError, EncodingError, ReassemblyError

logger = get_logger(__name__)

ChunkData = Union[str, bytes, None]


class ChunkEncoder:
    """
    Turns a document into an ordered list of base64 windows.

    The whole document is base64 encoded before it is cut, so a window
    boundary never falls inside a multi-byte UTF-8 character.
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = chunk_size

    def to_transport(self, document: str) -> str:
        try:
            raw = document.encode('utf-8')
        except UnicodeEncodeError as e:
            raise EncodingError(f"Document is not valid text at offset {e.start}: {e.reason}") from e
        return base64.b64encode(raw).decode('ascii')

    def encode(self, document: str) -> List[ChunkPayload]:
        """
        Split a document into chunk payloads.

        Args:
            document: Source text (typically serialized JSON)

        Returns:
            Payloads with contiguous zero-based indices sharing a fresh chunk set id
        """
        transport = self.to_transport(document)
        windows = [
            transport[i:i + self.chunk_size]
            for i in range(0, len(transport), self.chunk_size)
        ] or [""]

        chunk_set_id = str(uuid.uuid4())
        total_chunks = len(windows)

        logger.debug(
            f"Encoded {len(document)} chars into {total_chunks} chunks "
            f"({len(transport)} base64 chars) [chunk_set_id={chunk_set_id}]"
        )

        return [
            ChunkPayload(data=window, index=index, total_chunks=total_chunks, chunk_set_id=chunk_set_id)
            for index, window in enumerate(windows)
        ]


class PayloadValidator(Protocol):
    """Checks that a reassembled document has the expected structure."""

    def validate(self, document: str) -> None:
        ...


class JsonPayloadValidator:
    """Validates that the document parses as JSON."""

    CLOSING_TOKENS = ('}', ']')

    def validate(self, document: str) -> None:
        try:
            json.loads(document)
        except json.JSONDecodeError as e:
            offset = self.truncation_offset(document)
            logger.error(
                f"Reassembled document is not valid JSON: {e.msg} at {e.pos}; "
                f"last closing token at {offset} of {len(document)}"
            )
            raise CorruptPayloadError(
                f"Reassembled document is not valid JSON ({e.msg} at position {e.pos}); "
                f"last closing token at {offset} of {len(document)}",
                truncation_offset=offset,
                length=len(document),
            ) from e

    def truncation_offset(self, document: str) -> int:
        """Position of the last closing brace or bracket, -1 if there is none."""
        return max(document.rfind(token) for token in self.CLOSING_TOKENS)


class NullPayloadValidator:
    """Accepts any document."""

    def validate(self, document: str) -> None:
        return None


class LegacyChunkDecoder:
    """
    Decoder for chunk sets written by the first chunked uploader.

    Those sets were cut from the UTF-8 bytes and each window was base64
    encoded on its own, so every full chunk has exactly `sentinel_length`
    characters. Drop this class once no such sets remain readable.
    """

    def __init__(self, sentinel_length: int = LEGACY_CHUNK_LENGTH):
        self.sentinel_length = sentinel_length

    def matches(self, chunks: Sequence[str]) -> bool:
        if len(chunks) < 2 or len(chunks[0]) != self.sentinel_length:
            return False
        return all(len(chunk) == self.sentinel_length for chunk in chunks[:-1])

    def decode(self, chunks: Sequence[str]) -> bytes:
        decoded = []
        for index, chunk in enumerate(chunks):
            try:
                decoded.append(base64.b64decode(chunk, validate=True))
            except (binascii.Error, ValueError) as e:
                raise ReassemblyError(f"Legacy chunk {index} is not valid base64: {e}") from e
        return b''.join(decoded)


class ChunkDecoder:
    """
    Reassembles chunk data in index order and decodes it back to text.
    """

    def __init__(
        self,
        validator: Optional[PayloadValidator] = None,
        legacy: Optional[LegacyChunkDecoder] = None,
    ):
        self.validator = validator if validator is not None else JsonPayloadValidator()
        self.legacy = legacy if legacy is not None else LegacyChunkDecoder()

    def decode(self, ordered_chunks: Sequence[ChunkData], total_chunks: Optional[int] = None) -> str:
        """
        Decode an index-ordered chunk list.

        Args:
            ordered_chunks: Chunk data, slot i holding chunk index i
            total_chunks: Expected number of chunks, if known

        Returns:
            The original document

        Raises:
            ReassemblyError: Wrong chunk count, empty slot or invalid base64
            CorruptPayloadError: Decoded text fails validation
        """
        chunks = self._normalize(ordered_chunks, total_chunks)

        if self.legacy.matches(chunks):
            logger.info(f"Detected legacy chunk format ({len(chunks)} chunks), decoding each chunk individually")
            raw = self.legacy.decode(chunks)
        else:
            joined = ''.join(chunks)
            try:
                raw = base64.b64decode(joined, validate=True)
            except (binascii.Error, ValueError) as e:
                raise ReassemblyError(f"Reassembled data is not valid base64 ({len(joined)} chars): {e}") from e

        try:
            document = raw.decode('utf-8')
        except UnicodeDecodeError as e:
            raise CorruptPayloadError(
                f"Reassembled data is not valid UTF-8 at byte {e.start}",
                truncation_offset=e.start,
                length=len(raw),
            ) from e

        self.validator.validate(document)
        return document

    def _normalize(self, ordered_chunks: Sequence[ChunkData], total_chunks: Optional[int]) -> List[str]:
        if total_chunks is not None and len(ordered_chunks) != total_chunks:
            raise ReassemblyError(f"Expected {total_chunks} chunks, got {len(ordered_chunks)}")
        if not ordered_chunks:
            raise ReassemblyError("No chunks to reassemble")

        chunks: List[str] = []
        for index, chunk in enumerate(ordered_chunks):
            if isinstance(chunk, bytes):
                try:
                    chunk = chunk.decode('ascii')
                except UnicodeDecodeError as e:
                    raise ReassemblyError(f"Chunk {index} is not transport-safe text") from e
            if chunk is None or (chunk == '' and len(ordered_chunks) > 1):
                raise ReassemblyError(f"Chunk {index} is missing")
            chunks.append(chunk)
        return chunks
