"""Configuration settings for the development ledger."""

import os

from common.constants import MAX_TRANSACTION_BYTES as DEFAULT_MAX_TRANSACTION_BYTES


DATABASE_PATH = os.environ.get("LEDGER_DATABASE_PATH", "./data/ledger.db")

LEDGER_HOST = os.environ.get("LEDGER_HOST", "127.0.0.1")

LEDGER_PORT = int(os.environ.get("LEDGER_PORT", "8080"))

MAX_TRANSACTION_BYTES = int(os.environ.get("LEDGER_MAX_TRANSACTION_BYTES", str(DEFAULT_MAX_TRANSACTION_BYTES)))

# Seconds a new transaction stays hidden from /graphql, like a gateway that has not indexed it yet
VISIBILITY_DELAY_SECONDS = float(os.environ.get("LEDGER_VISIBILITY_DELAY_SECONDS", "0"))

MAX_QUERY_PAGE_SIZE = 1000
