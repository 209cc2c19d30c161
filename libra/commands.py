"""Command dispatch.

Every user action is a command value. ``dispatch`` is the one place that
checks the caller's capability; nothing downstream looks at roles.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .chat import ChatAssistant
from .errors import LibraryError, PermissionDenied, SpeechError
from .manager import CatalogManager
from .models import NewBook, Role, User
from .recommend import Recommender, recommendation_inputs
from .result import Err, Ok, Result
from .voice import SpeechSession, VoiceSearch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadCatalog:
    pass


@dataclass(frozen=True)
class Search:
    term: str


@dataclass(frozen=True)
class VoiceResult:
    transcript: str


@dataclass(frozen=True)
class SelectGenre:
    genre: str


@dataclass(frozen=True)
class ToggleAvailableOnly:
    available_only: bool


@dataclass(frozen=True)
class Borrow:
    book_id: str


@dataclass(frozen=True)
class Return:
    book_id: str


@dataclass(frozen=True)
class AddBook:
    fields: NewBook


@dataclass(frozen=True)
class DeleteBook:
    book_id: str


@dataclass(frozen=True)
class Recommend:
    pass


@dataclass(frozen=True)
class Ask:
    question: str


type Command = (
    LoadCatalog
    | Search
    | VoiceResult
    | SelectGenre
    | ToggleAvailableOnly
    | Borrow
    | Return
    | AddBook
    | DeleteBook
    | Recommend
    | Ask
)

REQUIRED_ROLE: dict[type, Role] = {
    AddBook: Role.ADMIN,
    DeleteBook: Role.ADMIN,
}


def required_role(command: Command) -> Role:
    return REQUIRED_ROLE.get(type(command), Role.MEMBER)


@dataclass
class Library:
    """Everything one signed-in session works with."""

    manager: CatalogManager
    recommender: Recommender
    assistant: ChatAssistant

    def voice_search(
        self,
        session: SpeechSession | None,
        on_error: Callable[[SpeechError], None] | None = None,
    ) -> VoiceSearch:
        """A voice adapter whose transcripts become the search term."""
        return VoiceSearch(
            session,
            on_transcript=self.manager.set_search_term,
            on_error=on_error,
        )


async def dispatch(library: Library, user: User, command: Command) -> Result[Any, LibraryError]:
    if required_role(command) is Role.ADMIN and not user.is_admin:
        logger.info("User %s denied %s", user.id, type(command).__name__)
        return Err(PermissionDenied(f"{type(command).__name__} requires administrator access"))

    manager = library.manager
    result: Result[Any, LibraryError]
    match command:
        case LoadCatalog():
            result = await manager.load()
        case Search(term) | VoiceResult(term):
            result = Ok(manager.set_search_term(term))
        case SelectGenre(genre):
            result = Ok(manager.select_genre(genre))
        case ToggleAvailableOnly(flag):
            result = Ok(manager.set_available_only(flag))
        case Borrow(book_id):
            result = await manager.borrow(user.id, book_id)
        case Return(book_id):
            result = await manager.return_book(user.id, book_id)
        case AddBook(fields):
            result = await manager.add_book(fields)
        case DeleteBook(book_id):
            result = await manager.delete_book(book_id)
        case Recommend():
            borrowed, available = recommendation_inputs(manager.state)
            result = Ok(await library.recommender.recommend(borrowed, available))
        case Ask(question):
            result = Ok(await library.assistant.send(question))
        case _:
            raise TypeError(f"Unknown command: {type(command).__name__}")

    library.assistant.books = manager.books
    return result
