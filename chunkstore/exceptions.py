"""Custom exception classes for the chunked storage layer."""

from typing import Optional


class ChunkStoreError(Exception):
    """
    Base exception class for all chunk storage errors.
    """
    pass


class EncodingError(ChunkStoreError):
    """
    Raised when a document cannot be converted to its transport-safe form.
    """
    pass


class ReassemblyError(ChunkStoreError):
    """
    Raised when a chunk list cannot be reassembled (wrong count, empty slot, bad base64).
    """
    pass


class UploadError(ChunkStoreError):
    """
    Raised when uploading a chunk or manifest fails.
    """

    def __init__(self, message: str, chunk_index: Optional[int] = None):
        super().__init__(message)
        self.chunk_index = chunk_index


class ConfirmationTimeoutError(ChunkStoreError):
    """
    Raised when a transaction never becomes queryable within the attempt budget.
    """

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


class MissingChunksError(ChunkStoreError):
    """
    Raised when fewer distinct chunk indices were found than the set declares.
    """

    def __init__(self, found: int, expected: int, chunk_set_id: str = ""):
        super().__init__(f"Missing chunks: found {found} of {expected}"
                         + (f" [chunk_set_id={chunk_set_id}]" if chunk_set_id else ""))
        self.found = found
        self.expected = expected
        self.chunk_set_id = chunk_set_id


class CorruptPayloadError(ChunkStoreError):
    """
    Raised when a reassembled document fails its structured-format check.

    Attributes:
        truncation_offset: Best guess of where the content was cut off, or -1
        length: Length of the decoded document
    """

    def __init__(self, message: str, truncation_offset: int = -1, length: int = 0):
        super().__init__(message)
        self.truncation_offset = truncation_offset
        self.length = length


class DownloadError(ChunkStoreError):
    """
    Raised when fetching a chunk body fails.
    """

    def __init__(self, message: str, chunk_index: Optional[int] = None):
        super().__init__(message)
        self.chunk_index = chunk_index


class LedgerUnavailableError(ChunkStoreError):
    """
    Raised when the ledger cannot be reached or keeps failing after retries.
    """
    pass


class TransactionNotFoundError(ChunkStoreError):
    """
    Raised when a transaction id is unknown to the ledger.
    """
    pass


class ReferenceStoreFullError(ChunkStoreError):
    """
    Raised when the reference backend refuses a write even after eviction.
    """
    pass


class LedgerRejectedError(ChunkStoreError):
    """
    Raised when the ledger answers a request with a client error.

    Attributes:
        status_code: HTTP status returned by the ledger
        code: Machine readable error code from the response body
    """

    def __init__(self, message: str, status_code: int = 400, code: str = "UNKNOWN"):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
