"""Shared data type definitions (FileListingEntry, TransferLimits, TransferResult, etc.)."""

from dataclasses import dataclass
from enum import Enum

from common.constants import MAX_CHUNK_SIZE_BYTES, MAX_TRANSFER_SIZE_BYTES


class TransferState(Enum):
    """Lifecycle of a single upload or download."""
    IDLE = "idle"
    METADATA_EXCHANGED = "metadata_exchanged"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


class StatusCode(str, Enum):
    """Outcome reported once at the end of an upload."""
    OK = "OK"
    FAILED = "FAILED"


@dataclass(frozen=True)
class TransferLimits:
    """
    Per-deployment sizing for the chunk pipelines.
    """
    chunk_size: int = MAX_CHUNK_SIZE_BYTES
    max_transfer_size: int = MAX_TRANSFER_SIZE_BYTES

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.max_transfer_size <= 0:
            raise ValueError(f"max_transfer_size must be positive, got {self.max_transfer_size}")


@dataclass(frozen=True)
class FileListingEntry:
    """
    One entry of a directory listing.
    """
    name: str
    size: int
    is_dir: bool


@dataclass(frozen=True)
class TransferResult:
    """
    Outcome of a finished transfer as observed by the receiving side.
    """
    filename: str
    declared_size: int
    received_bytes: int
    chunk_count: int
    status: StatusCode
    timestamp: str = ""

    @property
    def ok(self) -> bool:
        return self.status is StatusCode.OK
