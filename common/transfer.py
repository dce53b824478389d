"""Receiving side of a chunk stream: writes chunks to disk and tracks state."""

import logging
from pathlib import Path
from typing import BinaryIO, Optional, Union

from common.exceptions import ProtocolViolationError, TransferTooLargeError
from common.protocol import TransferMetadata
from common.types import StatusCode, TransferResult, TransferState

logger = logging.getLogger(__name__)


class ChunkWriter:
    """
    Accumulates an ordered chunk stream into a destination file.

    Follows Idle -> MetadataExchanged -> Streaming -> Completed/Failed.
    The destination is truncated when metadata is accepted and closed on
    every exit path when used as a context manager.

    Usage:
        with ChunkWriter(path) as writer:
            writer.begin(metadata)
            for chunk in stream:
                writer.write(chunk)
        result = writer.finish()
    """

    def __init__(
        self,
        destination: Union[str, Path],
        max_transfer_size: Optional[int] = None
    ):
        self.destination = Path(destination)
        self.max_transfer_size = max_transfer_size
        self.state = TransferState.IDLE
        self.metadata: Optional[TransferMetadata] = None
        self.received_bytes = 0
        self.chunk_count = 0
        self._file: Optional[BinaryIO] = None
        self._result: Optional[TransferResult] = None

    def begin(self, metadata: TransferMetadata) -> None:
        """
        Accept transfer metadata and open the destination for writing.
        
        Raises:
            ProtocolViolationError: If metadata was already exchanged
            TransferTooLargeError: If declared size exceeds the limit
            OSError: If the destination cannot be opened
        """
        if self.state is not TransferState.IDLE:
            raise ProtocolViolationError(
                f"Transfer metadata received twice for {self.destination.name}"
            )
        if self.max_transfer_size is not None and metadata.size > self.max_transfer_size:
            self.state = TransferState.FAILED
            raise TransferTooLargeError(
                f"Declared size {metadata.size} exceeds limit of {self.max_transfer_size} bytes"
            )
        self._file = open(self.destination, 'wb')
        self.metadata = metadata
        self.state = TransferState.METADATA_EXCHANGED

    def write(self, chunk: bytes) -> None:
        """
        Append one chunk to the destination.
        
        Raises:
            ProtocolViolationError: If no metadata was exchanged or the
                transfer already finished
            TransferTooLargeError: If the chunk pushes the transfer past the limit
            OSError: If the write fails
        """
        if self.state not in (TransferState.METADATA_EXCHANGED, TransferState.STREAMING):
            previous = self.state
            self._fail()
            raise ProtocolViolationError(
                f"Chunk received in state {previous.value} for {self.destination.name}"
            )
        if (self.max_transfer_size is not None
                and self.received_bytes + len(chunk) > self.max_transfer_size):
            self._fail()
            raise TransferTooLargeError(
                f"Transfer exceeds limit of {self.max_transfer_size} bytes"
            )
        self.state = TransferState.STREAMING
        self._file.write(chunk)
        self.received_bytes += len(chunk)
        self.chunk_count += 1

    def finish(self) -> TransferResult:
        """
        Close the destination and compare received bytes with the declared size.
        
        Returns:
            TransferResult with status OK when sizes match, FAILED otherwise.
            Received bytes are kept on disk either way.
        
        Raises:
            ProtocolViolationError: If called before metadata was exchanged
        """
        if self._result is not None:
            return self._result
        if self.metadata is None:
            self._fail()
            raise ProtocolViolationError(
                f"Transfer of {self.destination.name} ended without metadata"
            )

        self.close()
        declared = self.metadata.size
        if self.received_bytes == declared:
            status = StatusCode.OK
            self.state = TransferState.COMPLETED
        else:
            status = StatusCode.FAILED
            self.state = TransferState.FAILED
            logger.warning(
                f"Size mismatch for {self.destination.name}: "
                f"declared {declared}, received {self.received_bytes}"
            )

        self._result = TransferResult(
            filename=self.metadata.filename,
            declared_size=declared,
            received_bytes=self.received_bytes,
            chunk_count=self.chunk_count,
            status=status,
            timestamp=self.metadata.timestamp
        )
        return self._result

    def close(self) -> None:
        """Release the destination file handle."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def _fail(self) -> None:
        self.state = TransferState.FAILED
        self.close()

    def __enter__(self) -> 'ChunkWriter':
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None and self.state not in (TransferState.COMPLETED, TransferState.FAILED):
            self.state = TransferState.FAILED
        self.close()
        return False
