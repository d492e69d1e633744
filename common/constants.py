"""Project-wide constants (chunk sizes, ledger limits, tag names, polling defaults)."""

APP_NAME: str = "GetClayed"

# Ledger limits
MAX_TRANSACTION_BYTES: int = 100 * 1024  # per-transaction body ceiling
DEFAULT_CHUNK_SIZE: int = 50 * 1024  # base64 characters per chunk
DIRECT_UPLOAD_THRESHOLD_BYTES: int = 90 * 1024  # below this a document is one transaction

# Chunks written by the first chunked uploader were 50 KiB of UTF-8 bytes,
# base64 encoded one by one, which always yields this many characters.
LEGACY_CHUNK_LENGTH: int = 68268

# Confirmation polling
CONFIRMATION_MAX_ATTEMPTS: int = 30
CONFIRMATION_DELAY_SECONDS: float = 2.0

# Query / download
QUERY_PAGE_SIZE: int = 100
HISTORY_PAGE_SIZE: int = 1000
DOWNLOAD_CONCURRENCY: int = 4
QUERY_CACHE_TTL_SECONDS: float = 60.0
QUERY_CACHE_MAX_ENTRIES: int = 256

# Mutable references
MAX_MUTABLE_REFERENCES: int = 100
REFERENCE_EVICTION_COUNT: int = 20
PROJECT_REFERENCES_NAMESPACE: str = "clay-mutable-refs"
FOLDER_REFERENCES_NAMESPACE: str = "folder_mutable_refs"
PROFILE_REFERENCES_NAMESPACE: str = "profile_mutable_refs"

# HTTP
DEFAULT_LEDGER_URL: str = "http://localhost:8080"
LEDGER_TIMEOUT_SECONDS: float = 30.0
LEDGER_MAX_RETRIES: int = 3
LEDGER_RETRY_BACKOFF_MULTIPLIER: float = 2.0

# Tag names
TAG_APP_NAME = "App-Name"
TAG_DATA_TYPE = "Data-Type"
TAG_CONTENT_TYPE = "Content-Type"
TAG_PROJECT_ID = "Project-ID"
TAG_PROJECT_NAME = "Project-Name"
TAG_WALLET_ADDRESS = "Wallet-Address"
TAG_AUTHOR = "Author"
TAG_CHUNK_SET_ID = "Chunk-Set-ID"
TAG_CHUNK_INDEX = "Chunk-Index"
TAG_TOTAL_CHUNKS = "Total-Chunks"
TAG_CREATED_AT = "Created-At"
TAG_UPDATED_AT = "Updated-At"
TAG_FOLDER = "Folder"
TAG_ROOT_TX = "Root-TX"
TAG_VERSION = "Version"

DOCUMENT_VERSION = "2.0"
