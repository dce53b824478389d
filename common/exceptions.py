"""Exception classes shared by the file server and its client."""

from typing import Optional


class FileServerError(Exception):
    """
    Base exception class for all file server errors.
    """
    pass


class MetadataMissingError(FileServerError):
    """
    Raised when a transfer stream lacks its filename/size/timestamp metadata.
    """
    pass


class InvalidFilenameError(FileServerError):
    """
    Raised when a client-supplied filename is empty or escapes the served root.
    """
    pass


class ProtocolViolationError(FileServerError):
    """
    Raised when a chunk arrives before the transfer metadata or after completion.
    """
    pass


class TransferTooLargeError(FileServerError):
    """
    Raised when a transfer exceeds the configured maximum transfer size.
    """
    pass


class SizeMismatchError(FileServerError):
    """
    Raised when a download ends with fewer or more bytes than its header declared.
    """

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result


class TransferError(FileServerError):
    """
    Raised when an RPC call to the file server fails.
    """

    def __init__(self, message: str, code=None, details: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.details = details
