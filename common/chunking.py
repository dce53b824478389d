"""Splits byte streams into bounded chunks and joins them back."""

from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, Union

from common.constants import MAX_CHUNK_SIZE_BYTES


def iter_chunks(stream: BinaryIO, chunk_size: int = MAX_CHUNK_SIZE_BYTES) -> Iterator[bytes]:
    """
    Read a binary stream in pieces of at most chunk_size bytes.
    
    Args:
        stream: Open binary file-like object
        chunk_size: Maximum bytes per chunk
        
    Yields:
        Non-empty chunks in stream order; only the last may be shorter
        
    Raises:
        ValueError: If chunk_size is not positive
        OSError: If a read fails
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        yield chunk


def iter_file_chunks(
    path: Union[str, Path],
    chunk_size: int = MAX_CHUNK_SIZE_BYTES
) -> Iterator[bytes]:
    """
    Stream a file from disk in chunks. The file is closed when the
    generator is exhausted or closed.
    
    Raises:
        FileNotFoundError: If the file does not exist
        OSError: If a read fails
    """
    with open(path, 'rb') as f:
        yield from iter_chunks(f, chunk_size)


def join_chunks(chunks: Iterable[bytes]) -> bytes:
    """Concatenate chunks in arrival order."""
    return b''.join(chunks)


def count_chunks(size: int, chunk_size: int = MAX_CHUNK_SIZE_BYTES) -> int:
    """Number of chunk messages a file of the given size is sent as."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return -(-size // chunk_size)
