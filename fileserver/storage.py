"""Filesystem access confined to the served root directory."""

import os
from pathlib import Path
from typing import List, Union

from common.exceptions import InvalidFilenameError
from common.paths import base_name
from common.types import FileListingEntry


def resolve_in_root(root: Union[str, Path], name: str) -> Path:
    """
    Map a client-supplied filename to a path inside the served root.
    
    Args:
        root: Served directory
        name: Filename as sent by the client, possibly with path segments
        
    Returns:
        Absolute path of the target inside root
        
    Raises:
        InvalidFilenameError: If the name is unusable or resolves outside root
    """
    root_path = Path(root).resolve()
    target = (root_path / base_name(name)).resolve()
    if target.parent != root_path:
        raise InvalidFilenameError(f"Filename escapes served root: {name!r}")
    return target


def list_directory(root: Union[str, Path]) -> List[FileListingEntry]:
    """
    Snapshot the entries directly under root.
    
    Args:
        root: Served directory
        
    Returns:
        Entries sorted by name; empty list for an empty directory
        
    Raises:
        OSError: If the directory cannot be read
    """
    entries = []
    with os.scandir(root) as it:
        for entry in it:
            try:
                stat = entry.stat()
                is_dir = entry.is_dir()
            except OSError:
                # entry vanished between scandir and stat
                continue
            entries.append(FileListingEntry(
                name=entry.name,
                size=stat.st_size,
                is_dir=is_dir
            ))
    entries.sort(key=lambda e: e.name)
    return entries


def get_file_size(path: Union[str, Path]) -> int:
    """
    Get size of a file in bytes.
    
    Raises:
        OSError: If the file cannot be stat'ed
    """
    return Path(path).stat().st_size
