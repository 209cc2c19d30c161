"""Search/filter predicate over the catalog."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .models import ALL_GENRES, Book, FilterState


def matches(book: Book, filter_state: FilterState) -> bool:
    term = filter_state.search_term.lower()
    text_match = (
        term in book.title.lower()
        or term in book.author.lower()
        or term in book.genre.lower()
    )
    genre_match = (
        filter_state.selected_genre == ALL_GENRES
        or book.genre == filter_state.selected_genre
    )
    avail_match = not filter_state.available_only or book.available
    return text_match and genre_match and avail_match


def filter_books(books: Iterable[Book], filter_state: FilterState) -> tuple[Book, ...]:
    """Return the books satisfying ``matches``, in source order."""
    return tuple(b for b in books if matches(b, filter_state))


def genre_options(books: Sequence[Book]) -> tuple[str, ...]:
    """``"All"`` followed by each distinct genre in first-occurrence order."""
    # dict keys keep insertion order
    distinct = dict.fromkeys(b.genre for b in books)
    return (ALL_GENRES, *distinct)
