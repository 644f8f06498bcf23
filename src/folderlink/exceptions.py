"""Exception hierarchy for the folderlink library.

Scan and validation outcomes are reported as ``ErrorKind`` tags on result
objects (see ``folderlink.models``). Exceptions are reserved for the
collaborators: configuration, transports, and misuse of the uploader.
"""

from __future__ import annotations


class FolderlinkError(Exception):
    """Base exception for all folderlink errors."""

    pass


class ConfigError(FolderlinkError):
    """Raised when a configuration value is missing or invalid."""

    pass


class TransportError(FolderlinkError):
    """Raised when a call to the remote asset store fails."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class UploadError(TransportError):
    """Raised when a batch upload is rejected by the asset store."""

    pass


class InsertionError(TransportError):
    """Raised when the rendered tree cannot be inserted into the document."""

    pass


class OperationInProgressError(FolderlinkError):
    """Raised when an operation is started while another one is running."""

    pass
