"""Configuration settings for the file server."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from common.constants import (
    DEFAULT_SERVER_PORT,
    MAX_CHUNK_SIZE_BYTES,
    MAX_TRANSFER_SIZE_BYTES,
)
from common.types import TransferLimits


FILESERVER_ROOT = os.environ.get("FILESERVER_ROOT", "./")

FILESERVER_HOST = os.environ.get("FILESERVER_HOST", "[::]")

FILESERVER_PORT = int(os.environ.get("FILESERVER_PORT", str(DEFAULT_SERVER_PORT)))

FILESERVER_CHUNK_SIZE = int(os.environ.get("FILESERVER_CHUNK_SIZE", str(MAX_CHUNK_SIZE_BYTES)))

FILESERVER_MAX_TRANSFER_SIZE = int(
    os.environ.get("FILESERVER_MAX_TRANSFER_SIZE", str(MAX_TRANSFER_SIZE_BYTES))
)


@dataclass(frozen=True)
class ServerConfig:
    """Resolved settings for one server process."""
    root: Path
    host: str = FILESERVER_HOST
    port: int = FILESERVER_PORT
    limits: TransferLimits = field(default_factory=TransferLimits)

    @property
    def listen_addr(self) -> str:
        return f"{self.host}:{self.port}"


def load_server_config(root: Optional[str] = None) -> ServerConfig:
    """
    Build server configuration from the environment.

    Args:
        root: Served directory; overrides FILESERVER_ROOT when given

    Returns:
        ServerConfig with an absolute root path
    """
    return ServerConfig(
        root=Path(root or FILESERVER_ROOT).resolve(),
        host=FILESERVER_HOST,
        port=FILESERVER_PORT,
        limits=TransferLimits(
            chunk_size=FILESERVER_CHUNK_SIZE,
            max_transfer_size=FILESERVER_MAX_TRANSFER_SIZE,
        ),
    )
