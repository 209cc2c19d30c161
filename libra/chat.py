"""Library chat assistant."""

from __future__ import annotations

import itertools
import logging
from collections.abc import Sequence

from langfuse import observe

from .llm import TextGenerator
from .models import Book, ChatMessage
from .prompt import render
from .result import Err, Ok

logger = logging.getLogger(__name__)

GREETING = (
    "Hello! I'm your library assistant. I can help you find book summaries "
    "and recommendations. What book are you interested in?"
)
APOLOGY = (
    "I apologize, but I'm having trouble connecting to my knowledge base right "
    "now. Please try again later or check your API key."
)
EMPTY_REPLY = "I apologize, but I couldn't generate a response."
CONTEXT_BOOK_LIMIT = 10


def find_book(question: str, books: Sequence[Book]) -> Book | None:
    """First book whose title or author contains the whole question."""
    needle = question.lower()
    for book in books:
        if needle in book.title.lower() or needle in book.author.lower():
            return book
    return None


def build_prompt(question: str, books: Sequence[Book]) -> str:
    match find_book(question, books):
        case Book() as book:
            return render("chat_summary.md.j2", book=book)
        case None:
            return render(
                "chat_general.md.j2",
                question=question,
                books=list(books[:CONTEXT_BOOK_LIMIT]),
                more=len(books) > CONTEXT_BOOK_LIMIT,
            )


class ChatAssistant:
    """Single-turn question answering over the catalog, with a visible history."""

    def __init__(self, client: TextGenerator | None, books: Sequence[Book] = ()):
        self._client = client
        self.books: tuple[Book, ...] = tuple(books)
        self._ids = itertools.count(1)
        self._messages: list[ChatMessage] = [self._message(GREETING, "bot")]

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    def _message(self, content: str, sender: str) -> ChatMessage:
        return ChatMessage(id=str(next(self._ids)), content=content, sender=sender)

    @observe(name="chat", capture_input=False)
    async def send(self, text: str) -> ChatMessage | None:
        """Post ``text`` and return the bot's reply; blank input is ignored."""
        if not text.strip():
            return None
        self._messages.append(self._message(text, "user"))

        if self._client is None:
            reply = APOLOGY
        else:
            match await self._client.generate_text(build_prompt(text, self.books)):
                case Ok(content):
                    reply = content.strip() or EMPTY_REPLY
                case Err(e):
                    logger.warning("Chat request failed: %s", e)
                    reply = APOLOGY

        message = self._message(reply, "bot")
        self._messages.append(message)
        return message
