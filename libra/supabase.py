"""Hosted database/auth collaborator over the Supabase HTTP API.

``SupabaseStore`` talks to PostgREST (``/rest/v1``) and ``AuthClient`` to
GoTrue (``/auth/v1``). Both take an ``httpx.AsyncClient`` so tests can pass
one built on ``httpx.MockTransport``.

Conditional writes carry their precondition in the query string
(``available=eq.true``, ``returned_at=is.null``) and ask for
``Prefer: return=representation``; an empty response body means the
precondition no longer held, which is how a lost borrow race is detected.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from .config import Settings
from .errors import BookOnLoanError, ConfigError, NotBorrowed, NotFoundError, StoreError, Unavailable
from .models import Book, BorrowRecord, NewBook, Role, User
from .result import Err, Ok, Result

logger = logging.getLogger(__name__)

_RETURN_ROWS = {"Prefer": "return=representation"}


def _headers(api_key: str, access_token: str | None) -> dict[str, str]:
    return {
        "apikey": api_key,
        "Authorization": f"Bearer {access_token or api_key}",
        "Content-Type": "application/json",
    }


def build_http_client(settings: Settings) -> Result[httpx.AsyncClient, ConfigError]:
    """An ``AsyncClient`` rooted at the project URL with auth headers and the configured timeout."""
    match (settings.supabase_url, settings.supabase_key):
        case (str(url), str(key)):
            return Ok(
                httpx.AsyncClient(
                    base_url=url.rstrip("/"),
                    headers=_headers(key, settings.access_token),
                    timeout=settings.http_timeout,
                )
            )
        case _:
            return Err(ConfigError("SUPABASE_URL and SUPABASE_ANON_KEY must both be set."))


class SupabaseStore:
    """``CatalogStore`` backed by the ``books`` and ``borrowed_books`` tables."""

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method, f"/rest/v1/{path}", params=params, json=json, headers=headers
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning("%s %s failed with %s", method, path, e.response.status_code)
            raise StoreError(
                f"{method} {path} returned {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise StoreError(f"{method} {path} failed: {e}") from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise StoreError(f"{method} {path} returned invalid JSON") from e

    async def fetch_books(self) -> list[Book]:
        rows = await self._request("GET", "books", params={"select": "*", "order": "title.asc"})
        try:
            return [Book.from_row(row) for row in rows or []]
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Malformed books row: {e}") from e

    async def fetch_active_borrows(self, user_id: str) -> list[str]:
        rows = await self._request(
            "GET",
            "borrowed_books",
            params={
                "select": "book_id",
                "user_id": f"eq.{user_id}",
                "returned_at": "is.null",
            },
        )
        return [str(row["book_id"]) for row in rows or []]

    async def insert_book(self, fields: NewBook) -> Book:
        rows = await self._request("POST", "books", json=fields.to_row(), headers=_RETURN_ROWS)
        match rows:
            case [row, *_]:
                return Book.from_row(row)
            case _:
                raise StoreError("Insert into books returned no row")

    async def delete_book(self, book_id: str) -> None:
        rows = await self._request(
            "DELETE",
            "books",
            params={"id": f"eq.{book_id}", "available": "eq.true"},
            headers=_RETURN_ROWS,
        )
        if rows:
            return
        # Nothing deleted: either the row is gone or it is out on loan.
        remaining = await self._request(
            "GET", "books", params={"select": "id", "id": f"eq.{book_id}"}
        )
        if remaining:
            raise BookOnLoanError(book_id)
        raise NotFoundError(book_id)

    async def borrow(self, user_id: str, book_id: str) -> BorrowRecord:
        flipped = await self._request(
            "PATCH",
            "books",
            params={"id": f"eq.{book_id}", "available": "eq.true"},
            json={"available": False},
            headers=_RETURN_ROWS,
        )
        if not flipped:
            raise Unavailable(book_id)

        borrowed_at = datetime.now(timezone.utc)
        try:
            await self._request(
                "POST",
                "borrowed_books",
                json={
                    "user_id": user_id,
                    "book_id": book_id,
                    "borrowed_at": borrowed_at.isoformat(),
                },
            )
        except StoreError:
            # Undo the flip so the book does not stay unavailable without a record.
            await self._request(
                "PATCH",
                "books",
                params={"id": f"eq.{book_id}"},
                json={"available": True},
            )
            raise
        return BorrowRecord(book_id=book_id, user_id=user_id, borrowed_at=borrowed_at)

    async def return_book(self, user_id: str, book_id: str) -> BorrowRecord:
        returned_at = datetime.now(timezone.utc)
        rows = await self._request(
            "PATCH",
            "borrowed_books",
            params={
                "user_id": f"eq.{user_id}",
                "book_id": f"eq.{book_id}",
                "returned_at": "is.null",
            },
            json={"returned_at": returned_at.isoformat()},
            headers=_RETURN_ROWS,
        )
        match rows:
            case [row, *_]:
                pass
            case _:
                raise NotBorrowed(book_id)

        try:
            await self._request(
                "PATCH",
                "books",
                params={"id": f"eq.{book_id}"},
                json={"available": True},
            )
        except StoreError:
            # Reopen the record so the borrow is still returnable.
            await self._request(
                "PATCH",
                "borrowed_books",
                params={
                    "user_id": f"eq.{user_id}",
                    "book_id": f"eq.{book_id}",
                    "returned_at": f"eq.{returned_at.isoformat()}",
                },
                json={"returned_at": None},
            )
            raise
        match row.get("borrowed_at"):
            case str(stamp):
                borrowed_at = datetime.fromisoformat(stamp)
            case _:
                borrowed_at = returned_at
        return BorrowRecord(
            book_id=book_id,
            user_id=user_id,
            borrowed_at=borrowed_at,
            returned_at=returned_at,
        )


class AuthClient:
    """Session lookup, sign-out and profile lookup against GoTrue + ``profiles``."""

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def get_user(self, access_token: str) -> Result[User, Exception]:
        auth = {"Authorization": f"Bearer {access_token}"}
        try:
            response = await self._client.get("/auth/v1/user", headers=auth)
            response.raise_for_status()
            account = response.json()

            profile_response = await self._client.get(
                "/rest/v1/profiles",
                params={"select": "name,role", "id": f"eq.{account['id']}"},
                headers=auth,
            )
            profile_response.raise_for_status()
            profiles = profile_response.json()
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.warning("Session lookup failed: %s", e)
            return Err(StoreError(f"Session lookup failed: {e}"))

        profile = profiles[0] if profiles else {}
        email = account.get("email") or ""
        return Ok(
            User(
                id=str(account["id"]),
                name=profile.get("name") or email,
                email=email,
                role=Role.from_profile(profile.get("role")),
            )
        )

    async def sign_out(self, access_token: str) -> Result[None, Exception]:
        try:
            response = await self._client.post(
                "/auth/v1/logout", headers={"Authorization": f"Bearer {access_token}"}
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Sign-out failed: %s", e)
            return Err(StoreError(f"Sign-out failed: {e}"))
        return Ok(None)
