import json

import pytest

from libra import (
    BookOnLoanError,
    MemoryCatalogStore,
    NewBook,
    NotBorrowed,
    NotFoundError,
    StoreError,
    Unavailable,
)


@pytest.mark.asyncio
async def test_from_json_accepts_bare_list(tmp_path) -> None:
    path = tmp_path / "books.json"
    path.write_text(json.dumps([
        {"id": 7, "title": "Emma", "author": "Jane Austen", "genre": "Classic", "isbn": "1", "rating": "4"},
    ]))
    store = MemoryCatalogStore.from_json(path)
    [book] = await store.fetch_books()
    assert book.id == "7"
    assert book.rating == 4.0
    assert book.available is True


def test_from_json_reports_bad_file(tmp_path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    with pytest.raises(StoreError):
        MemoryCatalogStore.from_json(path)
    with pytest.raises(StoreError):
        MemoryCatalogStore.from_json(tmp_path / "missing.json")


@pytest.mark.asyncio
async def test_saved_catalog_keeps_active_borrows(tmp_path, books) -> None:
    store = MemoryCatalogStore(books)
    await store.borrow("u1", "1")
    await store.borrow("u1", "2")
    await store.return_book("u1", "2")
    path = tmp_path / "catalog.json"
    store.save_json(path)

    reloaded = MemoryCatalogStore.from_json(path)
    assert await reloaded.fetch_active_borrows("u1") == ["1"]
    assert {b.id: b.available for b in await reloaded.fetch_books()}["1"] is False
    await reloaded.return_book("u1", "1")
    assert await reloaded.fetch_active_borrows("u1") == []


@pytest.mark.asyncio
async def test_conditional_borrow_and_return(books) -> None:
    store = MemoryCatalogStore(books)
    record = await store.borrow("alice", "3")
    assert record.active
    with pytest.raises(Unavailable):
        await store.borrow("bob", "3")
    with pytest.raises(NotBorrowed):
        await store.return_book("bob", "3")
    closed = await store.return_book("alice", "3")
    assert closed.returned_at is not None
    assert await store.fetch_active_borrows("alice") == []


@pytest.mark.asyncio
async def test_insert_assigns_fresh_ids() -> None:
    store = MemoryCatalogStore()
    fields = NewBook(title=" Emma ", author="Jane Austen", genre="Classic", isbn="1")
    a = await store.insert_book(fields)
    b = await store.insert_book(fields)
    assert a.id != b.id
    assert a.title == "Emma"


@pytest.mark.asyncio
async def test_delete_refuses_book_on_loan(books) -> None:
    store = MemoryCatalogStore(books)
    await store.borrow("alice", "4")
    with pytest.raises(BookOnLoanError):
        await store.delete_book("4")
    await store.return_book("alice", "4")
    await store.delete_book("4")
    with pytest.raises(NotFoundError):
        await store.delete_book("4")
