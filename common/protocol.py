"""Shared RPC/protocol message definitions (serialization formats)."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Tuple, Union
import json
import base64

from common.constants import (
    METADATA_FILENAME_KEY,
    METADATA_SIZE_KEY,
    METADATA_TIMESTAMP_KEY,
)
from common.exceptions import MetadataMissingError
from common.types import FileListingEntry, StatusCode


MetadataValue = Union[str, bytes]


def current_timestamp() -> str:
    """Return the current instant formatted for transfer metadata."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class TransferMetadata:
    """
    Out-of-band description of a chunk stream.

    Carried as invocation metadata on Upload and as the response header on
    Download, never inside the chunk messages themselves.
    """
    filename: str
    size: int
    timestamp: str = field(default_factory=current_timestamp)

    def to_grpc_metadata(self) -> Tuple[Tuple[str, MetadataValue], ...]:
        """Encode as gRPC metadata pairs."""
        return (
            (METADATA_FILENAME_KEY, self.filename.encode('utf-8')),
            (METADATA_SIZE_KEY, str(self.size)),
            (METADATA_TIMESTAMP_KEY, self.timestamp),
        )

    @classmethod
    def from_grpc_metadata(
        cls,
        pairs: Iterable[Tuple[str, MetadataValue]]
    ) -> 'TransferMetadata':
        """
        Decode from gRPC metadata pairs.

        Unrelated keys (user-agent and the like) are ignored.

        Raises:
            MetadataMissingError: If filename or size is absent or malformed
        """
        values = {}
        for key, value in pairs or ():
            values.setdefault(key.lower(), value)

        raw_filename = values.get(METADATA_FILENAME_KEY)
        raw_size = values.get(METADATA_SIZE_KEY)
        if raw_filename is None or raw_size is None:
            raise MetadataMissingError("Transfer metadata requires filename and size")

        try:
            if isinstance(raw_filename, bytes):
                filename = raw_filename.decode('utf-8')
            else:
                filename = raw_filename
        except UnicodeDecodeError as e:
            raise MetadataMissingError(f"Filename is not valid UTF-8: {e}")

        try:
            size = int(raw_size)
        except (TypeError, ValueError):
            raise MetadataMissingError(f"Invalid size in transfer metadata: {raw_size!r}")
        if size < 0:
            raise MetadataMissingError(f"Negative size in transfer metadata: {size}")

        timestamp = values.get(METADATA_TIMESTAMP_KEY, "")
        if isinstance(timestamp, bytes):
            timestamp = timestamp.decode('utf-8', errors='replace')

        return cls(filename=filename, size=size, timestamp=timestamp)


@dataclass
class Chunk:
    """A bounded piece of file content, one per stream message."""
    content: bytes
    
    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({
            'content': base64.b64encode(self.content).decode('ascii')
        }).encode('utf-8')
    
    @classmethod
    def from_json(cls, data: bytes) -> 'Chunk':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(content=base64.b64decode(obj['content']))


@dataclass
class UploadStatus:
    """Response message for Upload RPC."""
    code: StatusCode
    
    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({'code': self.code.value}).encode('utf-8')
    
    @classmethod
    def from_json(cls, data: bytes) -> 'UploadStatus':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(code=StatusCode(obj['code']))


@dataclass
class DownloadRequest:
    """Request message for Download RPC."""
    name: str
    
    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({'name': self.name}).encode('utf-8')
    
    @classmethod
    def from_json(cls, data: bytes) -> 'DownloadRequest':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(name=obj['name'])


@dataclass
class ListRequest:
    """Request message for List RPC."""
    pass
    
    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({}).encode('utf-8')
    
    @classmethod
    def from_json(cls, data: bytes) -> 'ListRequest':
        """Deserialize from JSON bytes."""
        return cls()


@dataclass
class ListResponse:
    """Response message for List RPC."""
    files: List[FileListingEntry]

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({
            'files': [
                {
                    'name': entry.name,
                    'size': entry.size,
                    'is_dir': entry.is_dir
                }
                for entry in self.files
            ]
        }).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'ListResponse':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(files=[
            FileListingEntry(
                name=entry['name'],
                size=entry['size'],
                is_dir=entry['is_dir']
            )
            for entry in obj['files']
        ])


@dataclass
class HelloRequest:
    """Request message for SayHello RPC (connectivity smoke test)."""
    name: str

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({'name': self.name}).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'HelloRequest':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(name=obj['name'])


@dataclass
class HelloReply:
    """Response message for SayHello RPC."""
    message: str

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({'message': self.message}).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'HelloReply':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(message=obj['message'])
