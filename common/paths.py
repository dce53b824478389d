"""Filename sanitizing shared by server and client."""

from common.exceptions import InvalidFilenameError


def base_name(name: str) -> str:
    """
    Reduce a peer-supplied name to its final path component.

    Both '/' and '\\' count as separators regardless of platform.

    Raises:
        InvalidFilenameError: If nothing usable remains
    """
    if '\x00' in name:
        raise InvalidFilenameError(f"Filename contains NUL byte: {name!r}")
    candidate = name.replace('\\', '/').rstrip('/').rsplit('/', 1)[-1]
    if candidate in ('', '.', '..'):
        raise InvalidFilenameError(f"Invalid filename: {name!r}")
    return candidate
