"""Custom exception classes for the development ledger."""


class LedgerException(Exception):
    """
    Base exception class for all ledger errors.
    """
    pass


class InvalidSignatureError(LedgerException):
    """
    Raised when a transaction signature does not verify against its owner key.
    """
    pass


class TransactionTooLargeError(LedgerException):
    """
    Raised when a transaction body exceeds the size ceiling.
    """
    pass


class NonceReplayError(LedgerException):
    """
    Raised when an owner submits a nonce that is not above its last accepted one.
    """
    pass


class TransactionNotFoundError(LedgerException):
    """
    Raised when a requested transaction does not exist.
    """
    pass


class InvalidQueryError(LedgerException):
    """
    Raised when a transactions query is malformed.
    """
    pass


class InvalidEnvelopeError(LedgerException):
    """
    Raised when an upload envelope cannot be decoded.
    """
    pass
