import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any, TextIO

from libra.chat import ChatAssistant
from libra.commands import (
    AddBook,
    Ask,
    Borrow,
    Command,
    DeleteBook,
    Library,
    LoadCatalog,
    Recommend,
    Return,
    Search,
    SelectGenre,
    ToggleAvailableOnly,
    dispatch,
)
from libra.config import Settings
from libra.errors import LibraryError, StoreError
from libra.llm import AsyncLLMClient
from libra.manager import CatalogManager
from libra.models import Book, ChatMessage, NewBook, Recommendations, Role, User
from libra.recommend import Recommender
from libra.result import Err, Ok, unwrap_or
from libra.store import MemoryCatalogStore
from libra.supabase import AuthClient, SupabaseStore, build_http_client

logger = logging.getLogger("libra")


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def print_books(books: Sequence[Book], out: TextIO, borrowed: Sequence[str] = ()) -> None:
    if not books:
        print("No books found.", file=out)
        return
    print(f"  {'ID':<38} {'Title':<32} {'Author':<22} {'Genre':<14} {'Rating':>6}  Status", file=out)
    print(f"  {'─'*38} {'─'*32} {'─'*22} {'─'*14} {'─'*6}  {'─'*9}", file=out)
    for b in books:
        if b.id in borrowed:
            status = "Yours"
        else:
            status = "Available" if b.available else "Borrowed"
        rating = f"{b.rating:.1f}" if b.rating is not None else "—"
        print(
            f"  {b.id:<38} {b.title[:32]:<32} {b.author[:22]:<22} {b.genre[:14]:<14} {rating:>6}  {status}",
            file=out,
        )


def print_recommendations(recs: Recommendations, out: TextIO) -> None:
    if recs.is_backup:
        print("Using backup recommendations: highest rated available books.", file=out)
    else:
        print("AI recommendations:", file=out)
    for b in recs.books:
        print(f"  - {b.title} by {b.author} ({b.genre})", file=out)


def report(result: Ok[Any] | Err[LibraryError], success: str, out: TextIO) -> int:
    match result:
        case Ok(_):
            print(success, file=out)
            return 0
        case Err(e):
            print(f"Error: {e}", file=sys.stderr)
            return 1


# ---------------------------------------------------------------------------
# Session setup
# ---------------------------------------------------------------------------


async def open_session(
    args: argparse.Namespace, settings: Settings
) -> tuple[User, MemoryCatalogStore | SupabaseStore] | str:
    """Resolve the acting user and the store, or return an error message."""
    if args.data:
        try:
            store = MemoryCatalogStore.from_json(args.data)
        except StoreError as e:
            return str(e)
        role = Role.ADMIN if args.admin else Role.MEMBER
        return User(id=args.user, name=args.user, role=role), store

    match build_http_client(settings):
        case Err(e):
            return f"{e} (or pass --data FILE for a local catalog)"
        case Ok(http):
            pass
    if settings.access_token is None:
        await http.aclose()
        return "LIBRA_ACCESS_TOKEN must be set to act as a signed-in user."

    match await AuthClient(http).get_user(settings.access_token):
        case Err(e):
            await http.aclose()
            return f"Could not resolve session: {e}"
        case Ok(user):
            return user, SupabaseStore(http)


def build_library(settings: Settings, store: Any, user: User) -> Library:
    client_result = AsyncLLMClient.from_settings(settings)
    if isinstance(client_result, Err):
        logger.info("Language model disabled: %s", client_result.error)
    llm: AsyncLLMClient | None = unwrap_or(client_result, None)
    return Library(
        manager=CatalogManager(store, user.id),
        recommender=Recommender(llm),
        assistant=ChatAssistant(llm),
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def handle_books(library: Library, user: User, args: argparse.Namespace, out: TextIO) -> int:
    commands: list[Command] = []
    if args.search:
        commands.append(Search(args.search))
    if args.genre:
        commands.append(SelectGenre(args.genre))
    if args.available_only:
        commands.append(ToggleAvailableOnly(True))
    for command in commands:
        await dispatch(library, user, command)

    state = library.manager.state
    print(f"Genres: {', '.join(state.genres)}", file=out)
    print(f"Books ({len(state.filtered_books)} of {len(state.books)}):", file=out)
    print_books(state.filtered_books, out, state.borrowed_ids)
    if args.mine:
        mine = [b for b in state.books if b.id in state.borrowed_ids]
        print(f"\nMy borrowed books ({len(mine)}):", file=out)
        print_books(mine, out, state.borrowed_ids)
    return 0


async def handle_command(library: Library, user: User, args: argparse.Namespace, out: TextIO) -> int:
    match args.command:
        case "books":
            return await handle_books(library, user, args, out)
        case "borrow":
            result = await dispatch(library, user, Borrow(args.book_id))
            return report(result, "Book borrowed successfully!", out)
        case "return":
            result = await dispatch(library, user, Return(args.book_id))
            return report(result, "Book returned successfully!", out)
        case "add":
            fields = NewBook(
                title=args.title,
                author=args.author,
                genre=args.genre,
                isbn=args.isbn,
                description=args.description,
                rating=args.rating,
            )
            result = await dispatch(library, user, AddBook(fields))
            return report(result, f'"{args.title}" has been added to the library.', out)
        case "delete":
            result = await dispatch(library, user, DeleteBook(args.book_id))
            return report(result, f"Book {args.book_id} has been removed from the library.", out)
        case "recommend":
            match await dispatch(library, user, Recommend()):
                case Ok(Recommendations() as recs):
                    print_recommendations(recs, out)
                    return 0
                case _:
                    return 1
        case "ask":
            match await dispatch(library, user, Ask(args.question)):
                case Ok(ChatMessage() as reply):
                    print(reply.content, file=out)
                    return 0
                case _:
                    print("Please ask a question.", file=sys.stderr)
                    return 1
        case _:
            print(f"Unknown command: {args.command}", file=sys.stderr)
            return 1


async def run(args: argparse.Namespace, out: TextIO | None = None) -> int:
    out = out or sys.stdout
    match Settings.from_env():
        case Err(e):
            print(f"Configuration error: {e}", file=sys.stderr)
            return 1
        case Ok(settings):
            pass

    if args.command == "sign-out":
        return await handle_sign_out(settings, out)

    match await open_session(args, settings):
        case str(err):
            print(err, file=sys.stderr)
            return 1
        case (user, store):
            pass

    library = build_library(settings, store, user)
    try:
        match await dispatch(library, user, LoadCatalog()):
            case Err(e):
                # Stale-but-available: carry on with whatever we have.
                print(f"Warning: {e}", file=sys.stderr)
            case Ok(_):
                pass
        return await handle_command(library, user, args, out)
    finally:
        match store:
            case MemoryCatalogStore():
                store.save_json(args.data)
            case SupabaseStore():
                await store.aclose()


async def handle_sign_out(settings: Settings, out: TextIO) -> int:
    match build_http_client(settings):
        case Err(e):
            print(str(e), file=sys.stderr)
            return 1
        case Ok(http):
            pass
    async with http:
        if settings.access_token is None:
            print("Not signed in.", file=out)
            return 0
        return report(await AuthClient(http).sign_out(settings.access_token), "Signed out.", out)


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="libra",
        description="Search, borrow and manage books in the library catalog.",
    )
    parser.add_argument(
        "--data",
        type=Path,
        metavar="FILE",
        help="Use a local JSON catalog instead of the hosted database.",
    )
    parser.add_argument(
        "--user",
        default="local-user",
        help="User id to act as with --data (default: local-user).",
    )
    parser.add_argument(
        "--admin",
        action="store_true",
        help="Act with administrator access with --data.",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    books_parser = subparsers.add_parser("books", help="List the catalog.")
    books_parser.add_argument("--search", "-s", help="Match title, author or genre.")
    books_parser.add_argument("--genre", "-g", help="Only show this genre.")
    books_parser.add_argument(
        "--available-only",
        action="store_true",
        help="Hide books that are currently borrowed.",
    )
    books_parser.add_argument(
        "--mine",
        action="store_true",
        help="Also list the books you have borrowed.",
    )

    borrow_parser = subparsers.add_parser("borrow", help="Borrow a book.")
    borrow_parser.add_argument("book_id")

    return_parser = subparsers.add_parser("return", help="Return a borrowed book.")
    return_parser.add_argument("book_id")

    add_parser = subparsers.add_parser("add", help="Add a book (administrators only).")
    add_parser.add_argument("--title", required=True)
    add_parser.add_argument("--author", required=True)
    add_parser.add_argument("--genre", required=True)
    add_parser.add_argument("--isbn", required=True)
    add_parser.add_argument("--description")
    add_parser.add_argument("--rating", type=float, help="Rating from 1 to 5.")

    delete_parser = subparsers.add_parser("delete", help="Delete a book (administrators only).")
    delete_parser.add_argument("book_id")

    subparsers.add_parser("recommend", help="Suggest three books to read next.")

    ask_parser = subparsers.add_parser("ask", help="Ask the library assistant a question.")
    ask_parser.add_argument("question")

    subparsers.add_parser("sign-out", help="End the hosted session.")

    return parser


async def async_main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 1
    return await run(args)


def main() -> int:
    """Synchronous entry point for the console script."""
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        print("\nOperation cancelled by user.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
