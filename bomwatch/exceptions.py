"""Domain exceptions.

Transport failures are left as the underlying httpx/ftplib exceptions; these
cover the cases where bomwatch itself rejects input or data.
"""


class BomWatchError(Exception):
    """Base exception for all bomwatch errors."""


class InvalidFilenameError(BomWatchError, ValueError):
    """Raised when a radar image filename cannot be decoded."""

    def __init__(self, filename: str, reason: str = "") -> None:
        self.filename = filename
        message = f"{filename} is not a valid radar image file"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class TemplateError(BomWatchError, ValueError):
    """Raised when a current-conditions format string cannot be rendered."""


class RemoteFileNotFoundError(BomWatchError):
    """Raised when a file is missing from the radar FTP server."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"{path} not found on FTP server")


class LocationNotFoundError(BomWatchError):
    """Raised when a configured location id can't be resolved."""


class ParseError(BomWatchError):
    """Raised when an API response has unexpected structure."""
