"""Utility functions for CLI output."""

from typing import List

from common.types import FileListingEntry


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.
    
    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).
    
    Args:
        size_bytes: File size in bytes
        
    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    
    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0
    
    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0
    
    return f"{size:.2f} PiB"


def format_listing(entries: List[FileListingEntry]) -> str:
    """One line per entry: directory flag, size and name."""
    if not entries:
        return "No files found"
    lines = ["files:"]
    for entry in entries:
        is_dir = "true" if entry.is_dir else "false"
        lines.append(f"isdir: {is_dir}\tsize: {format_file_size(entry.size)}\tname: {entry.name}")
    return "\n".join(lines)


def pluralize(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"
