"""Command request and response data types for CLI."""

from dataclasses import dataclass
from typing import Literal, Optional, Union


@dataclass(frozen=True)
class HelloCommand:
    """Greet the server."""

    name: str = "world"
    command: Literal["hello"] = "hello"


@dataclass(frozen=True)
class ListCommand:
    """List files in the server root."""

    command: Literal["list"] = "list"


@dataclass(frozen=True)
class UploadCommand:
    """Upload a local file."""

    path: str
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class DownloadCommand:
    """Download a file from the server root."""

    filename: str
    output_dir: Optional[str] = None
    command: Literal["download"] = "download"


CommandRequest = Union[HelloCommand, ListCommand, UploadCommand, DownloadCommand]


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a handled command, printed by the REPL."""

    success: bool
    message: str
