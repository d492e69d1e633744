"""Configuration settings for the chunked storage client."""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from common.constants import (
    APP_NAME,
    CONFIRMATION_DELAY_SECONDS,
    CONFIRMATION_MAX_ATTEMPTS,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_LEDGER_URL,
    DIRECT_UPLOAD_THRESHOLD_BYTES,
    DOWNLOAD_CONCURRENCY,
    LEDGER_MAX_RETRIES,
    LEDGER_RETRY_BACKOFF_MULTIPLIER,
    LEDGER_TIMEOUT_SECONDS,
    MAX_TRANSACTION_BYTES,
    QUERY_CACHE_MAX_ENTRIES,
    QUERY_CACHE_TTL_SECONDS,
    QUERY_PAGE_SIZE,
)

ENV_PREFIX = "CLAYSTORE_"


@dataclass(frozen=True)
class StoreConfig:
    """
    Tunables of the storage client.

    Every field can be overridden with a CLAYSTORE_<FIELD> environment
    variable (e.g. CLAYSTORE_CHUNK_SIZE=40960).
    """
    ledger_url: str = DEFAULT_LEDGER_URL
    app_name: str = APP_NAME
    chunk_size: int = DEFAULT_CHUNK_SIZE
    direct_upload_threshold: int = DIRECT_UPLOAD_THRESHOLD_BYTES
    max_transaction_bytes: int = MAX_TRANSACTION_BYTES
    confirmation_max_attempts: int = CONFIRMATION_MAX_ATTEMPTS
    confirmation_delay: float = CONFIRMATION_DELAY_SECONDS
    confirm_chunks: bool = False
    query_page_size: int = QUERY_PAGE_SIZE
    download_concurrency: int = DOWNLOAD_CONCURRENCY
    timeout: float = LEDGER_TIMEOUT_SECONDS
    max_retries: int = LEDGER_MAX_RETRIES
    retry_backoff_multiplier: float = LEDGER_RETRY_BACKOFF_MULTIPLIER
    cache_ttl: float = QUERY_CACHE_TTL_SECONDS
    cache_max_entries: int = QUERY_CACHE_MAX_ENTRIES
    signer_key: Optional[str] = None

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if self.confirmation_max_attempts < 1:
            raise ValueError("confirmation_max_attempts must be at least 1")
        if self.download_concurrency < 1:
            raise ValueError("download_concurrency must be at least 1")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> 'StoreConfig':
        """
        Build a config from environment variables, then apply explicit overrides.

        Args:
            environ: Mapping to read instead of os.environ
            **overrides: Field values that win over the environment

        Returns:
            StoreConfig instance
        """
        environ = os.environ if environ is None else environ
        values = {}
        for name, field_def in cls.__dataclass_fields__.items():
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is None:
                continue
            values[name] = _coerce(raw, field_def.default)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def _coerce(raw: str, default):
    if isinstance(default, bool):
        return raw.strip().lower() in ('1', 'true', 'yes', 'on')
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw
