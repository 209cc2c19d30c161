"""Failure kinds reported by catalog operations.

None of these are raised out of the public API: operations return them
wrapped in ``Err``. Store implementations raise ``StoreError`` (or one of
the more specific kinds) and the manager converts at the call site.
"""

from __future__ import annotations

from enum import Enum


class LibraryError(Exception):
    """Base class for every catalog failure."""


class ConfigError(LibraryError):
    pass


class StoreError(LibraryError):
    """The database collaborator failed or returned something unusable."""


class FetchError(LibraryError):
    pass


class BorrowError(LibraryError):
    def __init__(self, book_id: str, message: str):
        super().__init__(message)
        self.book_id = book_id


class AlreadyBorrowed(BorrowError):
    def __init__(self, book_id: str):
        super().__init__(book_id, f"You have already borrowed book {book_id}")


class Unavailable(BorrowError):
    def __init__(self, book_id: str):
        super().__init__(book_id, f"Book {book_id} is currently borrowed by someone else")


class ReturnError(LibraryError):
    def __init__(self, book_id: str, message: str):
        super().__init__(message)
        self.book_id = book_id


class NotBorrowed(ReturnError):
    def __init__(self, book_id: str):
        super().__init__(book_id, f"Book {book_id} is not borrowed by you")


class ValidationError(LibraryError):
    def __init__(self, fields: tuple[str, ...], message: str | None = None):
        super().__init__(message or f"Missing required field(s): {', '.join(fields)}")
        self.fields = fields


class NotFoundError(LibraryError):
    def __init__(self, book_id: str):
        super().__init__(f"Book {book_id} not found")
        self.book_id = book_id


class BookOnLoanError(LibraryError):
    def __init__(self, book_id: str):
        super().__init__(f"Book {book_id} is on loan and cannot be deleted until it is returned")
        self.book_id = book_id


class ActionInProgress(LibraryError):
    def __init__(self, action: str, book_id: str):
        super().__init__(f"A {action} request for book {book_id} is already in progress")
        self.action = action
        self.book_id = book_id


class PermissionDenied(LibraryError):
    pass


class RecommendationError(LibraryError):
    pass


class SpeechErrorKind(Enum):
    NO_SPEECH = "no_speech"
    PERMISSION_DENIED = "permission_denied"
    NETWORK = "network"
    UNSUPPORTED = "unsupported"
    ALREADY_LISTENING = "already_listening"
    UNKNOWN = "unknown"


_SPEECH_MESSAGES: dict[SpeechErrorKind, str] = {
    SpeechErrorKind.NO_SPEECH: "No speech was detected. Please try again.",
    SpeechErrorKind.PERMISSION_DENIED: "Microphone access was denied.",
    SpeechErrorKind.NETWORK: "Voice search needs a network connection.",
    SpeechErrorKind.UNSUPPORTED: "Voice search is not supported in this environment.",
    SpeechErrorKind.ALREADY_LISTENING: "Voice search is already listening.",
    SpeechErrorKind.UNKNOWN: "Voice search failed. Please try again or use text search.",
}


class SpeechError(LibraryError):
    def __init__(self, kind: SpeechErrorKind, detail: str | None = None):
        super().__init__(_SPEECH_MESSAGES[kind])
        self.kind = kind
        self.detail = detail
