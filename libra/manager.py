"""Catalog State Manager: one per signed-in session.

Every external call is awaited first; only when it succeeds is the matching
action reduced into the state, and the new state is published with a single
assignment. Between two awaits the view is therefore always consistent.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from .errors import (
    ActionInProgress,
    BookOnLoanError,
    FetchError,
    LibraryError,
    NotFoundError,
    PermissionDenied,
    StoreError,
    Unavailable,
    ValidationError,
)
from .models import Book, NewBook
from .result import Err, Ok, Result
from .state import (
    Action,
    AvailableOnlyToggled,
    BookAdded,
    BookBorrowed,
    BookDeleted,
    BookReturned,
    BooksLoaded,
    BorrowsLoaded,
    CatalogState,
    GenreSelected,
    SearchChanged,
    check_borrow,
    check_delete,
    check_return,
    initial_state,
    reduce,
)
from .store import CatalogStore

logger = logging.getLogger(__name__)


class CatalogManager:
    def __init__(self, store: CatalogStore, user_id: str):
        self._store = store
        self.user_id = user_id
        self._state: CatalogState = initial_state()
        self._in_flight: set[tuple[str, str]] = set()
        # Bumped by every store-backed mutation; a load that overlaps one is redone.
        self._generation = 0

    @property
    def state(self) -> CatalogState:
        return self._state

    @property
    def books(self) -> tuple[Book, ...]:
        return self._state.books

    @property
    def filtered_books(self) -> tuple[Book, ...]:
        return self._state.filtered_books

    @property
    def borrowed_ids(self) -> tuple[str, ...]:
        return self._state.borrowed_ids

    @property
    def genres(self) -> tuple[str, ...]:
        return self._state.genres

    def _apply(self, *actions: Action) -> CatalogState:
        state = self._state
        for action in actions:
            state = reduce(state, action)
        self._state = state
        return state

    def _commit(self, action: Action) -> CatalogState:
        self._generation += 1
        return self._apply(action)

    @contextmanager
    def _exclusive(self, action: str, book_id: str) -> Iterator[ActionInProgress | None]:
        key = (action, book_id)
        if key in self._in_flight:
            yield ActionInProgress(action, book_id)
            return
        self._in_flight.add(key)
        try:
            yield None
        finally:
            self._in_flight.discard(key)

    def _check_caller(self, user_id: str) -> PermissionDenied | None:
        if user_id != self.user_id:
            return PermissionDenied(f"User {user_id} cannot act for session user {self.user_id}")
        return None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> Result[tuple[Book, ...], FetchError]:
        """Fetch the catalog and this user's active borrows.

        On failure the previous state is kept untouched. A fetch that overlaps a
        borrow, return, add or delete is discarded and repeated, so the rows
        never predate a mutation already applied locally.
        """
        while True:
            generation = self._generation
            try:
                books = await self._store.fetch_books()
                borrowed = await self._store.fetch_active_borrows(self.user_id)
            except Exception as e:
                logger.warning("Failed to fetch catalog: %s", e)
                return Err(FetchError(f"Failed to fetch books: {e}"))
            if generation == self._generation:
                break
            logger.debug("Catalog changed while loading; fetching again")

        state = self._apply(BooksLoaded(tuple(books)), BorrowsLoaded(tuple(borrowed)))
        logger.debug("Loaded %d books, %d borrowed", len(state.books), len(state.borrowed_ids))
        return Ok(state.books)

    async def _resync(self) -> None:
        match await self.load():
            case Err(e):
                logger.warning("Resync after rejected write failed: %s", e)
            case Ok(_):
                pass

    # ------------------------------------------------------------------
    # Borrow / return
    # ------------------------------------------------------------------

    async def borrow(self, user_id: str, book_id: str) -> Result[None, LibraryError]:
        if (denied := self._check_caller(user_id)) is not None:
            return Err(denied)
        with self._exclusive("borrow", book_id) as busy:
            if busy is not None:
                return Err(busy)
            if (rejected := check_borrow(self._state, book_id)) is not None:
                return Err(rejected)

            try:
                await self._store.borrow(user_id, book_id)
            except (Unavailable, NotFoundError) as e:
                # Another session got there first; the store is authoritative.
                logger.info("Borrow of %s rejected by store: %s", book_id, e)
                await self._resync()
                return Err(e)
            except LibraryError as e:
                logger.warning("Borrow of %s failed: %s", book_id, e)
                return Err(e)
            except Exception as e:
                logger.warning("Borrow of %s failed: %s", book_id, e)
                return Err(StoreError(f"Failed to borrow book: {e}"))

            self._commit(BookBorrowed(book_id))
            logger.info("User %s borrowed %s", user_id, book_id)
            return Ok(None)

    async def return_book(self, user_id: str, book_id: str) -> Result[None, LibraryError]:
        if (denied := self._check_caller(user_id)) is not None:
            return Err(denied)
        with self._exclusive("return", book_id) as busy:
            if busy is not None:
                return Err(busy)
            if (rejected := check_return(self._state, book_id)) is not None:
                return Err(rejected)

            try:
                await self._store.return_book(user_id, book_id)
            except LibraryError as e:
                logger.warning("Return of %s failed: %s", book_id, e)
                return Err(e)
            except Exception as e:
                logger.warning("Return of %s failed: %s", book_id, e)
                return Err(StoreError(f"Failed to return book: {e}"))

            self._commit(BookReturned(book_id))
            logger.info("User %s returned %s", user_id, book_id)
            return Ok(None)

    # ------------------------------------------------------------------
    # Administration (capability is checked by the command dispatcher)
    # ------------------------------------------------------------------

    async def add_book(self, fields: NewBook) -> Result[Book, LibraryError]:
        missing = fields.missing_fields()
        if missing:
            return Err(ValidationError(missing))
        if fields.rating is not None and not 1 <= fields.rating <= 5:
            return Err(ValidationError(("rating",), "Rating must be between 1 and 5"))

        try:
            book = await self._store.insert_book(fields)
        except LibraryError as e:
            logger.warning("Adding %r failed: %s", fields.title, e)
            return Err(e)
        except Exception as e:
            logger.warning("Adding %r failed: %s", fields.title, e)
            return Err(StoreError(f"Failed to add book: {e}"))

        self._commit(BookAdded(book))
        logger.info("Added book %s (%r)", book.id, book.title)
        return Ok(book)

    async def delete_book(self, book_id: str) -> Result[None, LibraryError]:
        with self._exclusive("delete", book_id) as busy:
            if busy is not None:
                return Err(busy)
            if (rejected := check_delete(self._state, book_id)) is not None:
                return Err(rejected)

            try:
                await self._store.delete_book(book_id)
            except BookOnLoanError as e:
                # Borrowed through another session since our last load.
                logger.info("Delete of %s rejected by store: %s", book_id, e)
                await self._resync()
                return Err(e)
            except NotFoundError as e:
                # Already gone upstream; drop our copy too.
                self._commit(BookDeleted(book_id))
                return Err(e)
            except LibraryError as e:
                logger.warning("Deleting %s failed: %s", book_id, e)
                return Err(e)
            except Exception as e:
                logger.warning("Deleting %s failed: %s", book_id, e)
                return Err(StoreError(f"Failed to delete book: {e}"))

            self._commit(BookDeleted(book_id))
            logger.info("Deleted book %s", book_id)
            return Ok(None)

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def set_search_term(self, term: str) -> CatalogState:
        return self._apply(SearchChanged(term))

    def select_genre(self, genre: str) -> CatalogState:
        return self._apply(GenreSelected(genre))

    def set_available_only(self, available_only: bool) -> CatalogState:
        return self._apply(AvailableOnlyToggled(available_only))
