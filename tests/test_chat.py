import pytest
from conftest import FakeTextClient, make_books

from libra import Book, Err, Ok
from libra.chat import (
    APOLOGY,
    CONTEXT_BOOK_LIMIT,
    EMPTY_REPLY,
    GREETING,
    ChatAssistant,
    build_prompt,
    find_book,
)


def test_starts_with_greeting() -> None:
    assistant = ChatAssistant(None)

    [greeting] = assistant.messages
    assert greeting.sender == "bot"
    assert greeting.content == GREETING


@pytest.mark.asyncio
async def test_blank_question_is_ignored() -> None:
    client = FakeTextClient()
    assistant = ChatAssistant(client, make_books())

    assert await assistant.send("   ") is None
    assert len(assistant.messages) == 1
    assert client.prompts == []


@pytest.mark.asyncio
async def test_question_naming_a_book_asks_for_summary() -> None:
    client = FakeTextClient(Ok("  A desert planet...  "))
    assistant = ChatAssistant(client, make_books())

    reply = await assistant.send("dune")

    assert reply is not None
    assert reply.content == "A desert planet..."
    assert 'summary of the book "Dune" by Frank Herbert' in client.prompts[0]
    assert [m.sender for m in assistant.messages] == ["bot", "user", "bot"]


@pytest.mark.asyncio
async def test_general_question_lists_catalog() -> None:
    client = FakeTextClient(Ok("Try Dune."))
    assistant = ChatAssistant(client, make_books())

    await assistant.send("Something about deserts?")

    prompt = client.prompts[0]
    assert 'The user asked: "Something about deserts?"' in prompt
    assert '"1984" by George Orwell, "Dune" by Frank Herbert' in prompt
    assert "many more" not in prompt


def test_general_prompt_caps_book_list() -> None:
    catalog = [
        Book(id=str(i), title=f"Volume {i}", author="Anon", genre="Essays", isbn=str(i))
        for i in range(CONTEXT_BOOK_LIMIT + 2)
    ]

    prompt = build_prompt("anything good?", catalog)

    assert f'"Volume {CONTEXT_BOOK_LIMIT - 1}"' in prompt
    assert f'"Volume {CONTEXT_BOOK_LIMIT}"' not in prompt
    assert "and many more" in prompt


def test_find_book_by_author() -> None:
    book = find_book("orwell", make_books())

    assert book is not None
    assert book.title == "1984"


@pytest.mark.asyncio
async def test_failed_request_apologises() -> None:
    assistant = ChatAssistant(FakeTextClient(Err(ConnectionError("down"))), make_books())

    reply = await assistant.send("dune")

    assert reply is not None
    assert reply.content == APOLOGY


@pytest.mark.asyncio
async def test_without_model_apologises() -> None:
    reply = await ChatAssistant(None).send("hello")

    assert reply is not None
    assert reply.content == APOLOGY


@pytest.mark.asyncio
async def test_empty_reply_gets_placeholder() -> None:
    reply = await ChatAssistant(FakeTextClient(Ok("  ")), make_books()).send("dune")

    assert reply is not None
    assert reply.content == EMPTY_REPLY


@pytest.mark.asyncio
async def test_message_ids_are_unique() -> None:
    assistant = ChatAssistant(FakeTextClient(Ok("one"), Ok("two")))

    await assistant.send("first")
    await assistant.send("second")

    ids = [m.id for m in assistant.messages]
    assert len(ids) == 5
    assert len(set(ids)) == 5
