"""Catalog state container and its reducer.

``CatalogState`` is immutable. Every change goes through ``reduce(state,
action)``, which applies the transition and re-derives the filtered view and
the genre options in the same step, so there is never a state whose
``filtered_books`` disagrees with its ``books`` or ``filter``.

The ``check_*`` functions hold the per-book state machine
(Available -> Borrowed -> Available, delete terminal) and are consulted
before an action is issued; the reducer itself assumes the transition is
legal.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from .errors import (
    AlreadyBorrowed,
    BookOnLoanError,
    LibraryError,
    NotBorrowed,
    NotFoundError,
    Unavailable,
)
from .filtering import filter_books, genre_options
from .models import ALL_GENRES, Book, FilterState


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BooksLoaded:
    books: tuple[Book, ...]


@dataclass(frozen=True)
class BorrowsLoaded:
    book_ids: tuple[str, ...]


@dataclass(frozen=True)
class SearchChanged:
    term: str


@dataclass(frozen=True)
class GenreSelected:
    genre: str


@dataclass(frozen=True)
class AvailableOnlyToggled:
    available_only: bool


@dataclass(frozen=True)
class BookBorrowed:
    book_id: str


@dataclass(frozen=True)
class BookReturned:
    book_id: str


@dataclass(frozen=True)
class BookAdded:
    book: Book


@dataclass(frozen=True)
class BookDeleted:
    book_id: str


type Action = (
    BooksLoaded
    | BorrowsLoaded
    | SearchChanged
    | GenreSelected
    | AvailableOnlyToggled
    | BookBorrowed
    | BookReturned
    | BookAdded
    | BookDeleted
)


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CatalogState:
    books: tuple[Book, ...] = ()
    borrowed_ids: tuple[str, ...] = ()
    filter: FilterState = FilterState()
    filtered_books: tuple[Book, ...] = ()
    genres: tuple[str, ...] = (ALL_GENRES,)

    def find(self, book_id: str) -> Book | None:
        for book in self.books:
            if book.id == book_id:
                return book
        return None


def initial_state(books: tuple[Book, ...] = ()) -> CatalogState:
    return _derive(CatalogState(books=books))


def _derive(state: CatalogState) -> CatalogState:
    return replace(
        state,
        filtered_books=filter_books(state.books, state.filter),
        genres=genre_options(state.books),
    )


def _set_available(books: tuple[Book, ...], book_id: str, available: bool) -> tuple[Book, ...]:
    return tuple(
        replace(b, available=available) if b.id == book_id else b for b in books
    )


def reduce(state: CatalogState, action: Action) -> CatalogState:
    match action:
        case BooksLoaded(books):
            # Borrowed ids referring to books that vanished from the store are dropped.
            known = {b.id for b in books}
            new = replace(
                state,
                books=books,
                borrowed_ids=tuple(i for i in state.borrowed_ids if i in known),
            )
        case BorrowsLoaded(book_ids):
            borrowed = tuple(dict.fromkeys(book_ids))
            # A book on loan to this user is never available.
            books = state.books
            for book_id in borrowed:
                books = _set_available(books, book_id, False)
            new = replace(state, books=books, borrowed_ids=borrowed)
        case SearchChanged(term):
            new = replace(state, filter=replace(state.filter, search_term=term))
        case GenreSelected(genre):
            new = replace(state, filter=replace(state.filter, selected_genre=genre))
        case AvailableOnlyToggled(flag):
            new = replace(state, filter=replace(state.filter, available_only=flag))
        case BookBorrowed(book_id):
            borrowed = state.borrowed_ids
            if book_id not in borrowed:
                borrowed = (*borrowed, book_id)
            new = replace(
                state,
                books=_set_available(state.books, book_id, False),
                borrowed_ids=borrowed,
            )
        case BookReturned(book_id):
            new = replace(
                state,
                books=_set_available(state.books, book_id, True),
                borrowed_ids=tuple(i for i in state.borrowed_ids if i != book_id),
            )
        case BookAdded(book):
            new = replace(state, books=(*state.books, book))
        case BookDeleted(book_id):
            new = replace(
                state,
                books=tuple(b for b in state.books if b.id != book_id),
                borrowed_ids=tuple(i for i in state.borrowed_ids if i != book_id),
            )
        case _:
            raise TypeError(f"Unknown action: {type(action).__name__}")
    return _derive(new)


# ---------------------------------------------------------------------------
# Transition guards
# ---------------------------------------------------------------------------


def check_borrow(state: CatalogState, book_id: str) -> LibraryError | None:
    if book_id in state.borrowed_ids:
        return AlreadyBorrowed(book_id)
    book = state.find(book_id)
    if book is None:
        return NotFoundError(book_id)
    if not book.available:
        return Unavailable(book_id)
    return None


def check_return(state: CatalogState, book_id: str) -> LibraryError | None:
    if book_id not in state.borrowed_ids:
        return NotBorrowed(book_id)
    return None


def check_delete(state: CatalogState, book_id: str) -> LibraryError | None:
    book = state.find(book_id)
    if book is None:
        return NotFoundError(book_id)
    if not book.available:
        return BookOnLoanError(book_id)
    return None
