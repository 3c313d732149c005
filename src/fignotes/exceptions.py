"""Exception hierarchy for FigNotes."""

from typing import Optional


class FigNotesError(Exception):
    """Base exception for FigNotes errors"""
    pass


class TransientFetchFailure(FigNotesError):
    """Raised when the live comment fetch fails or returns malformed data.

    Recoverable: callers fall back to the stored snapshot.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class StorageWriteFailed(FigNotesError):
    """Raised when the key-value store rejects a write. Always fatal."""

    def __init__(self, key: str, cause: Optional[BaseException] = None):
        self.key = key
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Storage write failed for '{key}'{detail}")


class StorageReadFailure(FigNotesError):
    """Raised internally when stored data is unreadable. Never leaves the store."""
    pass


class InvalidMutationPayload(FigNotesError):
    """Raised when a mutation references a missing task or is malformed."""
    pass
