import pytest

from libra import Book, CatalogManager, MemoryCatalogStore


def make_books() -> list[Book]:
    return [
        Book(id="1", title="1984", author="George Orwell", genre="Fiction", isbn="9780451524935", rating=4.5),
        Book(id="2", title="Dune", author="Frank Herbert", genre="Science Fiction", isbn="9780441172719", rating=4.7),
        Book(id="3", title="Sapiens", author="Yuval Noah Harari", genre="History", isbn="9780062316097", rating=4.4),
        Book(id="4", title="Animal Farm", author="George Orwell", genre="Fiction", isbn="9780451526342"),
        Book(id="5", title="Foundation", author="Isaac Asimov", genre="Science Fiction", isbn="9780553293357", rating=4.7),
    ]


@pytest.fixture
def books() -> list[Book]:
    return make_books()


@pytest.fixture
def store(books: list[Book]) -> MemoryCatalogStore:
    return MemoryCatalogStore(books)


@pytest.fixture
def manager(store: MemoryCatalogStore) -> CatalogManager:
    return CatalogManager(store, "u1")


class FakeTextClient:
    """Stands in for AsyncLLMClient; records prompts and replays canned results."""

    def __init__(self, *results):
        self._results = list(results)
        self.prompts: list[str] = []

    async def generate_text(self, prompt: str):
        self.prompts.append(prompt)
        return self._results.pop(0)
