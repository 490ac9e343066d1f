"""Exception hierarchy for ZipDrop."""

from typing import Optional


class ZipDropError(Exception):
    """Base exception for all ZipDrop errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ZipDropError):
    """A file selection the user has to correct. ``file`` names the offending path when known."""

    def __init__(self, message: str, file: Optional[str] = None) -> None:
        super().__init__(message)
        self.file = file


class OperationError(ZipDropError):
    """I/O, codec or network failure."""
    pass


class CredentialsError(OperationError):
    """Credential check failed; the message is one of the user-facing categories."""
    pass


class NotConfiguredError(OperationError):
    """Remote mode was requested but no storage config is stored."""
    pass


class StoreError(OperationError):
    """The object store transport call failed before any HTTP status was received."""
    pass
