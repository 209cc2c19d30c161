"""Database collaborator interface and an in-process implementation.

``CatalogStore`` is the boundary to the hosted database. Implementations
raise ``StoreError`` (or a more specific ``LibraryError``) on failure; the
``CatalogManager`` converts those into ``Err`` values.

The conditional operations (``borrow``, ``return_book`` and ``delete_book``)
are where cross-session races are settled: the store flips availability
only if the book is still available and reports ``Unavailable`` otherwise,
and it refuses to delete a book that has an active borrow record.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from .errors import BookOnLoanError, NotBorrowed, NotFoundError, StoreError, Unavailable
from .models import Book, BorrowRecord, NewBook

logger = logging.getLogger(__name__)


class CatalogStore(Protocol):
    async def fetch_books(self) -> list[Book]:
        """All books ordered by title ascending."""
        ...

    async def fetch_active_borrows(self, user_id: str) -> list[str]:
        """Book ids with an active borrow record owned by ``user_id``."""
        ...

    async def insert_book(self, fields: NewBook) -> Book: ...

    async def delete_book(self, book_id: str) -> None: ...

    async def borrow(self, user_id: str, book_id: str) -> BorrowRecord: ...

    async def return_book(self, user_id: str, book_id: str) -> BorrowRecord: ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _record_from_row(row: dict) -> BorrowRecord:
    returned = row.get("returned_at")
    return BorrowRecord(
        book_id=str(row["book_id"]),
        user_id=str(row["user_id"]),
        borrowed_at=datetime.fromisoformat(row["borrowed_at"]),
        returned_at=datetime.fromisoformat(returned) if returned else None,
    )


def _record_to_row(record: BorrowRecord) -> dict:
    return {
        "book_id": record.book_id,
        "user_id": record.user_id,
        "borrowed_at": record.borrowed_at.isoformat(),
        "returned_at": record.returned_at.isoformat() if record.returned_at else None,
    }


class MemoryCatalogStore:
    """A ``CatalogStore`` held in process memory.

    Shared between several ``CatalogManager`` instances it behaves like the
    hosted store does for concurrent sessions: the first borrow wins and the
    rest are told the book is unavailable.
    """

    def __init__(
        self,
        books: list[Book] | None = None,
        records: list[BorrowRecord] | None = None,
    ) -> None:
        self._books: dict[str, Book] = {b.id: b for b in books or []}
        self._records: list[BorrowRecord] = list(records or [])

    @classmethod
    def from_json(cls, path: str | Path) -> MemoryCatalogStore:
        """Seed a store from a JSON file with ``books`` and ``borrowed_books`` rows."""
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
            if isinstance(raw, list):
                raw = {"books": raw}
            books = [Book.from_row(row) for row in raw.get("books", [])]
            records = [_record_from_row(row) for row in raw.get("borrowed_books", [])]
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Could not load catalog from {path}: {e}") from e
        return cls(books, records)

    def save_json(self, path: str | Path) -> None:
        data = {
            "books": [b.to_row() for b in self._books.values()],
            "borrowed_books": [_record_to_row(r) for r in self._records],
        }
        Path(path).write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")

    @property
    def records(self) -> tuple[BorrowRecord, ...]:
        return tuple(self._records)

    async def fetch_books(self) -> list[Book]:
        return sorted(self._books.values(), key=lambda b: b.title)

    async def fetch_active_borrows(self, user_id: str) -> list[str]:
        return [r.book_id for r in self._records if r.user_id == user_id and r.active]

    async def insert_book(self, fields: NewBook) -> Book:
        book = Book.from_row({**fields.to_row(), "id": str(uuid.uuid4())})
        self._books[book.id] = book
        logger.debug("Inserted book %s (%r)", book.id, book.title)
        return book

    async def delete_book(self, book_id: str) -> None:
        if book_id not in self._books:
            raise NotFoundError(book_id)
        if any(r.book_id == book_id and r.active for r in self._records):
            raise BookOnLoanError(book_id)
        del self._books[book_id]

    async def borrow(self, user_id: str, book_id: str) -> BorrowRecord:
        book = self._books.get(book_id)
        if book is None:
            raise NotFoundError(book_id)
        if not book.available:
            raise Unavailable(book_id)
        record = BorrowRecord(book_id=book_id, user_id=user_id, borrowed_at=_now())
        self._books[book_id] = replace(book, available=False)
        self._records.append(record)
        return record

    async def return_book(self, user_id: str, book_id: str) -> BorrowRecord:
        for i, record in enumerate(self._records):
            if record.user_id == user_id and record.book_id == book_id and record.active:
                closed = replace(record, returned_at=_now())
                self._records[i] = closed
                book = self._books.get(book_id)
                if book is not None:
                    self._books[book_id] = replace(book, available=True)
                return closed
        raise NotBorrowed(book_id)
