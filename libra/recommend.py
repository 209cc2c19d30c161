"""Recommendation Requestor.

Asks the language model for three titles from the available list, resolves
them back to catalog books, and falls back to the highest-rated available
books whenever nothing resolves. ``recommend`` never raises and never
touches catalog state.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from langfuse import observe

from .errors import RecommendationError
from .llm import TextGenerator
from .models import Book, Recommendations
from .prompt import render
from .result import Err, Ok, map_err
from .state import CatalogState

logger = logging.getLogger(__name__)

RECOMMENDATION_COUNT = 3
PROMPT_BOOK_LIMIT = 30


def recommendation_inputs(state: CatalogState) -> tuple[tuple[Book, ...], tuple[Book, ...]]:
    """Split the catalog into (borrowed by this user, available to borrow)."""
    mine = set(state.borrowed_ids)
    borrowed = tuple(b for b in state.books if b.id in mine)
    available = tuple(b for b in state.books if b.available and b.id not in mine)
    return borrowed, available


def build_prompt(borrowed: Sequence[Book], available: Sequence[Book]) -> str:
    return render(
        "recommend.md.j2",
        borrowed=list(borrowed),
        available=list(available[:PROMPT_BOOK_LIMIT]),
        count=RECOMMENDATION_COUNT,
    )


def parse_titles(text: str) -> list[str]:
    titles = [t.strip() for t in text.split(",")]
    return [t for t in titles if t][:RECOMMENDATION_COUNT]


def resolve_titles(titles: Sequence[str], available: Sequence[Book]) -> tuple[Book, ...]:
    """Map each title to the first book whose title contains it, or is contained by it."""
    resolved: list[Book] = []
    for title in titles:
        needle = title.lower()
        for book in available:
            hay = book.title.lower()
            if needle in hay or hay in needle:
                if book not in resolved:
                    resolved.append(book)
                break
    return tuple(resolved)


def fallback(available: Sequence[Book]) -> tuple[Book, ...]:
    """Top-rated available books; missing ratings count as 0, ties keep list order."""
    ranked = sorted(available, key=lambda b: b.rating or 0.0, reverse=True)
    return tuple(ranked[:RECOMMENDATION_COUNT])


class Recommender:
    def __init__(self, client: TextGenerator | None):
        self._client = client

    @observe(name="recommend", capture_input=False)
    async def recommend(
        self, borrowed: Sequence[Book], available: Sequence[Book]
    ) -> Recommendations:
        match await self._ask(borrowed, available):
            case Ok(books) if books:
                return Recommendations(books=books, is_backup=False)
            case Ok(_):
                logger.info("No recommended titles matched the catalog; using top-rated books")
            case Err(e):
                logger.warning("Recommendation request failed, using top-rated books: %s", e)
        return Recommendations(books=fallback(available), is_backup=True)

    async def _ask(
        self, borrowed: Sequence[Book], available: Sequence[Book]
    ) -> Ok[tuple[Book, ...]] | Err[RecommendationError]:
        if self._client is None:
            return Err(RecommendationError("No language model configured"))
        if not available:
            return Ok(())

        try:
            result = await self._client.generate_text(build_prompt(borrowed, available))
        except Exception as e:
            return Err(RecommendationError(f"Language model call raised: {e}"))

        match map_err(result, lambda e: RecommendationError(str(e))):
            case Ok(text):
                titles = parse_titles(text)
                logger.debug("Model suggested %s", titles)
                return Ok(resolve_titles(titles, available))
            case Err(e):
                return Err(e)
