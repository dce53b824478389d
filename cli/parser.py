"""Command parser for CLI input."""

import shlex

from cli.models import (
    CommandRequest,
    DownloadCommand,
    HelloCommand,
    ListCommand,
    UploadCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a command object.

    Args:
        input_line: Raw user input from REPL or command line

    Returns:
        One of Hello/List/Upload/Download commands

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    return parse_tokens(tokens)


def parse_tokens(tokens: list[str]) -> CommandRequest:
    """Parse an already tokenized command (e.g. sys.argv[1:])."""
    command_name = tokens[0].lower()

    if command_name == "hello":
        return _parse_hello(tokens[1:])
    elif command_name == "list":
        return _parse_list(tokens[1:])
    elif command_name == "upload":
        return _parse_upload(tokens[1:])
    elif command_name == "download":
        return _parse_download(tokens[1:])
    else:
        raise ParseError(f"Unknown command: {tokens[0]}")


def _parse_hello(args: list[str]) -> HelloCommand:
    """Parse 'hello [name]' command."""
    if len(args) > 1:
        raise ParseError("hello takes at most 1 argument: [name]")
    if args:
        return HelloCommand(name=args[0])
    return HelloCommand()


def _parse_list(args: list[str]) -> ListCommand:
    """Parse 'list' command."""
    if args:
        raise ParseError("list takes no arguments")
    return ListCommand()


def _parse_upload(args: list[str]) -> UploadCommand:
    """Parse 'upload <path>' command."""
    if len(args) != 1:
        raise ParseError("upload requires exactly 1 argument: <path>")
    return UploadCommand(path=args[0])


def _parse_download(args: list[str]) -> DownloadCommand:
    """Parse 'download <filename> [output_dir]' command."""
    if len(args) < 1 or len(args) > 2:
        raise ParseError("download requires 1 or 2 arguments: <filename> [output_dir]")

    filename = args[0]
    output_dir = args[1] if len(args) > 1 else None

    return DownloadCommand(filename=filename, output_dir=output_dir)
