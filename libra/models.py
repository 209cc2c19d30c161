"""Catalog domain types.

Every type here is a frozen dataclass. State changes produce new values
(``dataclasses.replace``) rather than mutating existing ones, so a reader
holding a ``Book`` never sees it change underneath them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

ALL_GENRES = "All"


class Role(Enum):
    MEMBER = "member"
    ADMIN = "admin"

    @classmethod
    def from_profile(cls, role: str | None) -> Role:
        """Map a profile ``role`` column to a capability; anything but "admin" is a member."""
        match role:
            case "admin":
                return cls.ADMIN
            case _:
                return cls.MEMBER


@dataclass(frozen=True)
class Book:
    id: str
    title: str
    author: str
    genre: str
    isbn: str
    available: bool = True
    description: str | None = None
    rating: float | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Book:
        """Build a Book from a ``books`` table row."""
        rating = row.get("rating")
        return cls(
            id=str(row["id"]),
            title=row["title"],
            author=row["author"],
            genre=row["genre"],
            isbn=row["isbn"],
            available=bool(row.get("available", True)),
            description=row.get("description"),
            rating=float(rating) if rating is not None else None,
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "genre": self.genre,
            "isbn": self.isbn,
            "available": self.available,
            "description": self.description,
            "rating": self.rating,
        }


@dataclass(frozen=True)
class NewBook:
    """Fields submitted through the add-book form."""

    title: str
    author: str
    genre: str
    isbn: str
    description: str | None = None
    rating: float | None = None

    REQUIRED = ("title", "author", "genre", "isbn")

    def missing_fields(self) -> tuple[str, ...]:
        return tuple(name for name in self.REQUIRED if not getattr(self, name).strip())

    def to_row(self) -> dict[str, Any]:
        return {
            "title": self.title.strip(),
            "author": self.author.strip(),
            "genre": self.genre.strip(),
            "isbn": self.isbn.strip(),
            "description": self.description or None,
            "rating": self.rating,
            "available": True,
        }


@dataclass(frozen=True)
class BorrowRecord:
    book_id: str
    user_id: str
    borrowed_at: datetime
    returned_at: datetime | None = None

    @property
    def active(self) -> bool:
        return self.returned_at is None


@dataclass(frozen=True)
class User:
    id: str
    name: str
    email: str = ""
    role: Role = Role.MEMBER

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True)
class FilterState:
    search_term: str = ""
    selected_genre: str = ALL_GENRES
    available_only: bool = False


@dataclass(frozen=True)
class Recommendations:
    books: tuple[Book, ...]
    is_backup: bool


@dataclass(frozen=True)
class ChatMessage:
    id: str
    content: str
    sender: str  # "user" or "bot"
    timestamp: datetime = field(default_factory=datetime.now)
