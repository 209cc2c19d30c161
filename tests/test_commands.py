import pytest
from conftest import FakeTextClient

from libra import (
    ChatMessage,
    Err,
    MemoryCatalogStore,
    NewBook,
    Ok,
    PermissionDenied,
    Recommendations,
    Role,
    User,
)
from libra.chat import ChatAssistant
from libra.commands import (
    AddBook,
    Ask,
    Borrow,
    DeleteBook,
    Library,
    LoadCatalog,
    Recommend,
    Return,
    Search,
    SelectGenre,
    ToggleAvailableOnly,
    VoiceResult,
    dispatch,
    required_role,
)
from libra.manager import CatalogManager
from libra.recommend import Recommender

MEMBER = User(id="u1", name="Reader")
ADMIN = User(id="u1", name="Librarian", role=Role.ADMIN)

NEW_BOOK = NewBook(title="Neuromancer", author="William Gibson", genre="Science Fiction", isbn="9780441569595")


def make_library(store: MemoryCatalogStore, *results) -> tuple[Library, FakeTextClient]:
    client = FakeTextClient(*results)
    library = Library(
        manager=CatalogManager(store, "u1"),
        recommender=Recommender(client),
        assistant=ChatAssistant(client),
    )
    return library, client


def test_required_roles() -> None:
    assert required_role(AddBook(NEW_BOOK)) is Role.ADMIN
    assert required_role(DeleteBook("1")) is Role.ADMIN
    assert required_role(Borrow("1")) is Role.MEMBER
    assert required_role(Recommend()) is Role.MEMBER


@pytest.mark.asyncio
async def test_member_cannot_administer(store: MemoryCatalogStore) -> None:
    library, _ = make_library(store)
    await dispatch(library, MEMBER, LoadCatalog())

    added = await dispatch(library, MEMBER, AddBook(NEW_BOOK))
    deleted = await dispatch(library, MEMBER, DeleteBook("1"))

    assert isinstance(added, Err)
    assert isinstance(added.error, PermissionDenied)
    assert isinstance(deleted, Err)
    assert isinstance(deleted.error, PermissionDenied)
    assert len(await store.fetch_books()) == 5


@pytest.mark.asyncio
async def test_admin_add_and_delete(store: MemoryCatalogStore) -> None:
    library, _ = make_library(store)
    await dispatch(library, ADMIN, LoadCatalog())

    match await dispatch(library, ADMIN, AddBook(NEW_BOOK)):
        case Ok(book):
            assert book in library.manager.books
            assert book in library.assistant.books
        case Err(e):
            pytest.fail(f"Expected Ok, got Err: {e}")

    assert await dispatch(library, ADMIN, DeleteBook(book.id)) == Ok(None)
    assert book not in library.manager.books


@pytest.mark.asyncio
async def test_filters_through_dispatch(store: MemoryCatalogStore) -> None:
    library, _ = make_library(store)
    await dispatch(library, MEMBER, LoadCatalog())

    await dispatch(library, MEMBER, SelectGenre("Fiction"))
    await dispatch(library, MEMBER, Borrow("1"))
    await dispatch(library, MEMBER, ToggleAvailableOnly(True))

    assert [b.title for b in library.manager.filtered_books] == ["Animal Farm"]

    await dispatch(library, MEMBER, Return("1"))
    await dispatch(library, MEMBER, Search("1984"))

    assert [b.title for b in library.manager.filtered_books] == ["1984"]


@pytest.mark.asyncio
async def test_voice_result_behaves_like_typed_search(store: MemoryCatalogStore) -> None:
    library, _ = make_library(store)
    await dispatch(library, MEMBER, LoadCatalog())

    match await dispatch(library, MEMBER, VoiceResult("orwell")):
        case Ok(state):
            assert state.filter.search_term == "orwell"
            assert [b.title for b in state.filtered_books] == ["1984", "Animal Farm"]
        case Err(e):
            pytest.fail(f"Expected Ok, got Err: {e}")


@pytest.mark.asyncio
async def test_voice_search_sets_search_term(store: MemoryCatalogStore) -> None:
    class Session:
        language = ""

        def start(self, listener) -> None:
            listener.on_transcript("herbert")

        def stop(self) -> None:
            pass

    library, _ = make_library(store)
    await dispatch(library, MEMBER, LoadCatalog())

    voice = library.voice_search(Session())
    assert voice.start() == Ok(None)

    assert library.manager.state.filter.search_term == "herbert"
    assert [b.title for b in library.manager.filtered_books] == ["Dune"]
    assert not voice.listening


@pytest.mark.asyncio
async def test_recommend_excludes_own_borrows(store: MemoryCatalogStore) -> None:
    library, client = make_library(store, Ok("Foundation"))
    await dispatch(library, MEMBER, LoadCatalog())
    await dispatch(library, MEMBER, Borrow("2"))

    match await dispatch(library, MEMBER, Recommend()):
        case Ok(Recommendations(books=books, is_backup=False)):
            assert [b.title for b in books] == ["Foundation"]
        case other:
            pytest.fail(f"Unexpected result: {other}")

    prompt = client.prompts[0]
    borrowed_section, available_section = prompt.split("Available books in library:")
    assert "Dune by Frank Herbert" in borrowed_section
    assert "Dune" not in available_section


@pytest.mark.asyncio
async def test_ask_returns_bot_message(store: MemoryCatalogStore) -> None:
    library, client = make_library(store, Ok("Dune is about spice."))
    await dispatch(library, MEMBER, LoadCatalog())

    match await dispatch(library, MEMBER, Ask("Dune")):
        case Ok(ChatMessage(content=content, sender="bot")):
            assert content == "Dune is about spice."
        case other:
            pytest.fail(f"Unexpected result: {other}")
    assert 'summary of the book "Dune"' in client.prompts[0]
