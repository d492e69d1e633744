"""Configuration management for the GetClayed storage CLI."""

import json
import os
import shutil
from pathlib import Path
from typing import Optional

from common.constants import DEFAULT_CHUNK_SIZE, DEFAULT_LEDGER_URL
from common.logging_config import get_logger
from chunkstore.config import StoreConfig

logger = get_logger(__name__)


class Config:
    """Manages CLI configuration stored in JSON file."""

    DEFAULT_CONFIG = {
        "ledger_url": os.environ.get("CLAYSTORE_LEDGER_URL", DEFAULT_LEDGER_URL),
        "timeout": 30,
        "max_retries": 3,
        "retry_backoff_multiplier": 2,
        "chunk_size": DEFAULT_CHUNK_SIZE,
        "confirm_uploads": True,
        "confirmation_max_attempts": 30,
        "confirmation_delay": 2.0,
        "wallet_address": None,
        "signer_key": None,
    }

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.claystore/config.json)
        """
        self.config_path = config_path
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            import tempfile
            self.config_path = Path(tempfile.gettempdir()) / '.claystore' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config = self.DEFAULT_CONFIG.copy()
                config.update(data)
                return config
            except (json.JSONDecodeError, IOError) as e:
                backup_path = self.config_path.with_suffix('.json.bak')
                logger.warning(f"Config file {self.config_path} is unreadable ({e}), backing up to {backup_path}")
                try:
                    shutil.copy(self.config_path, backup_path)
                except OSError as copy_error:
                    logger.warning(f"Could not back up config file: {copy_error}")
                return self.DEFAULT_CONFIG.copy()
        else:
            config = self.DEFAULT_CONFIG.copy()
            try:
                with open(self.config_path, 'w') as f:
                    json.dump(config, f, indent=2)
            except IOError as e:
                logger.warning(f"Could not write default config to {self.config_path}: {e}")
            return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except IOError as e:
            logger.warning(f"Could not save config to {self.config_path}: {e}")

    def get_ledger_url(self) -> str:
        return self.data.get('ledger_url') or DEFAULT_LEDGER_URL

    def get_timeout(self) -> int:
        """
        Get request timeout in seconds.

        Returns:
            Timeout value in seconds
        """
        return self.data.get('timeout', 30)

    def get_retry_config(self) -> dict:
        """
        Get retry configuration.

        Returns:
            Dictionary with 'max_retries' and 'retry_backoff_multiplier'
        """
        return {
            'max_retries': self.data.get('max_retries', 3),
            'retry_backoff_multiplier': self.data.get('retry_backoff_multiplier', 2),
        }

    def get_wallet_address(self) -> Optional[str]:
        """
        Get the wallet address used as author.

        Returns:
            Lower-cased wallet address or None if not set
        """
        wallet = self.data.get('wallet_address')
        return wallet.lower() if wallet else None

    def set_wallet_address(self, wallet: str) -> None:
        self.data['wallet_address'] = wallet.lower()
        self.save()

    def get_signer_key(self) -> Optional[str]:
        return self.data.get('signer_key')

    def confirm_uploads(self) -> bool:
        return bool(self.data.get('confirm_uploads', True))

    def get_references_path(self) -> Path:
        return self.config_path.parent / 'references.json'

    def to_store_config(self) -> StoreConfig:
        """
        Build the storage client configuration.

        Values from the file override CLAYSTORE_* environment variables.
        """
        retry = self.get_retry_config()
        defaults = StoreConfig.from_env()
        return StoreConfig.from_env(
            ledger_url=self.get_ledger_url(),
            timeout=float(self.get_timeout()),
            max_retries=int(retry['max_retries']),
            retry_backoff_multiplier=float(retry['retry_backoff_multiplier']),
            chunk_size=int(self.data.get('chunk_size') or defaults.chunk_size),
            confirmation_max_attempts=int(self.data.get('confirmation_max_attempts') or defaults.confirmation_max_attempts),
            confirmation_delay=float(self.data.get('confirmation_delay', defaults.confirmation_delay)),
            signer_key=self.get_signer_key(),
        )
