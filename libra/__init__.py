"""libra: library catalog client with borrow/return state, search and AI helpers."""

from .models import (
    ALL_GENRES,
    Book,
    BorrowRecord,
    ChatMessage,
    FilterState,
    NewBook,
    Recommendations,
    Role,
    User,
)
from .errors import (
    ActionInProgress,
    AlreadyBorrowed,
    BookOnLoanError,
    BorrowError,
    ConfigError,
    FetchError,
    LibraryError,
    NotBorrowed,
    NotFoundError,
    PermissionDenied,
    RecommendationError,
    ReturnError,
    SpeechError,
    SpeechErrorKind,
    StoreError,
    Unavailable,
    ValidationError,
)
from .filtering import filter_books, genre_options, matches
from .state import CatalogState, initial_state, reduce
from .store import CatalogStore, MemoryCatalogStore
from .manager import CatalogManager
from .result import Ok, Err, Result

__all__ = [
    # Models
    "ALL_GENRES", "Book", "BorrowRecord", "ChatMessage", "FilterState",
    "NewBook", "Recommendations", "Role", "User",
    # Errors
    "ActionInProgress", "AlreadyBorrowed", "BookOnLoanError", "BorrowError",
    "ConfigError", "FetchError", "LibraryError", "NotBorrowed",
    "NotFoundError", "PermissionDenied", "RecommendationError", "ReturnError",
    "SpeechError", "SpeechErrorKind", "StoreError", "Unavailable",
    "ValidationError",
    # Filtering
    "filter_books", "genre_options", "matches",
    # State
    "CatalogState", "initial_state", "reduce",
    # Store
    "CatalogStore", "MemoryCatalogStore",
    # Manager
    "CatalogManager",
    # Result
    "Ok", "Err", "Result",
]
