"""Command handler functions for CLI operations."""

from typing import Optional

from common.exceptions import (
    FileServerError,
    SizeMismatchError,
    TransferError,
)
from common.logging_config import get_logger
from cli.config import Config
from cli.fileserver_client import FileServerClient
from cli.models import (
    CommandRequest,
    CommandResult,
    DownloadCommand,
    HelloCommand,
    ListCommand,
    UploadCommand,
)
from cli.utils import format_file_size, format_listing, pluralize

logger = get_logger(__name__)


_client: Optional[FileServerClient] = None


def get_client() -> FileServerClient:
    """
    Get or create global FileServerClient instance.

    Returns:
        FileServerClient instance
    """
    global _client
    if _client is None:
        logger.debug("Creating new FileServerClient instance")
        _client = FileServerClient.from_config(Config())
    return _client


async def handle_hello(cmd: HelloCommand, client: Optional[FileServerClient] = None) -> CommandResult:
    """
    Handle 'hello' command.

    Args:
        cmd: HelloCommand with the name to greet with
        client: Optional FileServerClient for dependency injection (testing)

    Returns:
        Greeting or error message
    """
    if client is None:
        client = get_client()
    try:
        message = await client.say_hello(cmd.name)
    except TransferError as e:
        return CommandResult(False, f"Error: could not greet: {e}")
    return CommandResult(True, f"Greeting: {message}")


async def handle_list(cmd: ListCommand, client: Optional[FileServerClient] = None) -> CommandResult:
    """
    Handle 'list' command.

    Args:
        cmd: ListCommand
        client: Optional FileServerClient for dependency injection (testing)

    Returns:
        Formatted listing or error message
    """
    if client is None:
        client = get_client()
    try:
        entries = await client.list_files()
    except TransferError as e:
        return CommandResult(False, f"Error: could not list files: {e}")
    return CommandResult(True, format_listing(entries))


async def handle_upload(cmd: UploadCommand, client: Optional[FileServerClient] = None) -> CommandResult:
    """
    Handle 'upload' command.

    A size mismatch reported by the server is shown as a failed upload,
    transport and local I/O errors as errors.
    """
    if client is None:
        client = get_client()
    try:
        result = await client.upload(cmd.path)
    except FileNotFoundError:
        return CommandResult(False, f"Error: file not found: {cmd.path}")
    except (FileServerError, OSError) as e:
        logger.debug(f"Upload of {cmd.path} failed", exc_info=True)
        return CommandResult(False, f"Error: {e}")

    if not result.ok:
        return CommandResult(
            False,
            f"Upload of {result.filename} failed: server did not receive "
            f"{format_file_size(result.declared_size)}"
        )
    return CommandResult(
        True,
        f"Uploaded {result.filename} ({format_file_size(result.received_bytes)} "
        f"in {pluralize(result.chunk_count, 'chunk')})"
    )


async def handle_download(cmd: DownloadCommand, client: Optional[FileServerClient] = None) -> CommandResult:
    """
    Handle 'download' command.

    Args:
        cmd: DownloadCommand with remote filename and optional output directory
        client: Optional FileServerClient for dependency injection (testing)

    Returns:
        Success or error message
    """
    if client is None:
        client = get_client()
    try:
        result = await client.download(cmd.filename, cmd.output_dir)
    except SizeMismatchError as e:
        return CommandResult(False, f"Error: download of {cmd.filename} is corrupted: {e}")
    except (FileServerError, OSError) as e:
        logger.debug(f"Download of {cmd.filename} failed", exc_info=True)
        return CommandResult(False, f"Error: {e}")
    return CommandResult(
        True,
        f"Downloaded {result.filename} ({format_file_size(result.received_bytes)} "
        f"in {pluralize(result.chunk_count, 'chunk')})"
    )


async def dispatch_command(cmd_obj: CommandRequest, client: Optional[FileServerClient] = None) -> CommandResult:
    """Dispatch parsed command to appropriate handler."""
    if isinstance(cmd_obj, HelloCommand):
        return await handle_hello(cmd_obj, client)
    elif isinstance(cmd_obj, ListCommand):
        return await handle_list(cmd_obj, client)
    elif isinstance(cmd_obj, UploadCommand):
        return await handle_upload(cmd_obj, client)
    elif isinstance(cmd_obj, DownloadCommand):
        return await handle_download(cmd_obj, client)
    else:
        return CommandResult(False, f"Unknown command type: {type(cmd_obj)}")
