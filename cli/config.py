"""Configuration management for the file server CLI."""

import json
import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from common.constants import (
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
    DEFAULT_TIMEOUT_SECONDS,
    MAX_CHUNK_SIZE_BYTES,
    MAX_TRANSFER_SIZE_BYTES,
)
from common.types import TransferLimits

logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = Path.home() / '.fileserver' / 'config.json'


class Config:
    """Manages CLI configuration stored in JSON file."""

    DEFAULT_CONFIG = {
        "server_host": os.environ.get("FILESERVER_HOST", DEFAULT_SERVER_HOST),
        "server_port": int(os.environ.get("FILESERVER_PORT", str(DEFAULT_SERVER_PORT))),
        "timeout": DEFAULT_TIMEOUT_SECONDS,
        "transfer_timeout": None,
        "chunk_size": MAX_CHUNK_SIZE_BYTES,
        "max_transfer_size": MAX_TRANSFER_SIZE_BYTES,
        "download_dir": ".",
    }

    def __init__(self, config_path: Path = DEFAULT_CONFIG_PATH):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.fileserver/config.json)
        """
        self.config_path = Path(config_path)
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
            self.config_path = Path(tempfile.gettempdir()) / '.fileserver' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config = self.DEFAULT_CONFIG.copy()
                config.update(data)
                return config
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"Unreadable config {self.config_path}: {e}; using defaults")
                backup_path = self.config_path.with_suffix('.json.bak')
                try:
                    shutil.copy(self.config_path, backup_path)
                except OSError as copy_error:
                    logger.warning(f"Could not back up config: {copy_error}")
                return self.DEFAULT_CONFIG.copy()
        else:
            config = self.DEFAULT_CONFIG.copy()
            try:
                with open(self.config_path, 'w') as f:
                    json.dump(config, f, indent=2)
            except IOError as e:
                logger.warning(f"Could not write default config: {e}")
            return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except IOError as e:
            logger.warning(f"Could not save config: {e}")

    def get_target(self) -> str:
        """
        Get server address.

        Returns:
            Target string (e.g., "localhost:50051")
        """
        host = self.data.get('server_host', DEFAULT_SERVER_HOST)
        port = self.data.get('server_port', DEFAULT_SERVER_PORT)
        return f"{host}:{port}"

    def get_timeout(self) -> float:
        """
        Get deadline for unary calls and stream setup, in seconds.
        """
        return self.data.get('timeout', DEFAULT_TIMEOUT_SECONDS)

    def get_transfer_timeout(self) -> Optional[float]:
        """
        Get deadline for a whole upload or download, in seconds.

        Returns:
            Timeout in seconds, or None for no deadline
        """
        return self.data.get('transfer_timeout')

    def get_limits(self) -> TransferLimits:
        """
        Get chunk size and maximum transfer size.
        """
        return TransferLimits(
            chunk_size=self.data.get('chunk_size', MAX_CHUNK_SIZE_BYTES),
            max_transfer_size=self.data.get('max_transfer_size', MAX_TRANSFER_SIZE_BYTES),
        )

    def get_download_dir(self) -> Path:
        """
        Get directory downloads are written into.
        """
        return Path(self.data.get('download_dir', '.'))
