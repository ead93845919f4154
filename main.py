"""CLI entry point for the bookmark manager.

Each subcommand activates the dashboard the same way the web view does: the
session gate runs first, then the snapshot is loaded and the change feed is
opened. Mutations go to the backend and are never applied locally.
"""

from __future__ import annotations

# Standard library imports (alphabetical within groups)
import argparse
import logging
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING

# Third-party imports
from dotenv import load_dotenv

# Internal imports
from bookmark_sync.config import DEFAULT_OAUTH_PROVIDER, StoreSettings
from bookmark_sync.dashboard import DashboardView
from bookmark_sync.gate import EntryView, RouteHistory
from bookmark_sync.html_writer import write_bookmark_html
from bookmark_sync.parser import parse_bookmark_html
from bookmark_sync.rest_store import RestStore

if TYPE_CHECKING:  # pragma: no cover
    from bookmark_sync.store import RemoteStore
    from bookmark_sync.sync import Collection

LOGGER = logging.getLogger("bookmark_sync")


def configure_logging(*, verbose: bool) -> None:
    """Configure root logging (debug when verbose).

    verbose: when True, sets DEBUG level; otherwise INFO.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage your bookmarks")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    login = commands.add_parser("login", help="Print the OAuth sign-in URL")
    login.add_argument("--provider", default=DEFAULT_OAUTH_PROVIDER)
    login.add_argument(
        "--origin",
        default="http://localhost:3000",
        help="Origin the provider redirects back to after sign-in",
    )
    commands.add_parser("logout", help="End the current session")
    commands.add_parser("list", help="Show your bookmarks, newest first")
    commands.add_parser("watch", help="Show your bookmarks and reprint them on every change")

    add = commands.add_parser("add", help="Add a bookmark")
    add.add_argument("title")
    add.add_argument("url")

    delete = commands.add_parser("delete", help="Delete a bookmark by id")
    delete.add_argument("bookmark_id")

    export = commands.add_parser("export", help="Write bookmarks to a Netscape HTML file")
    export.add_argument("path", type=Path)

    import_ = commands.add_parser("import", help="Add every link from a Netscape HTML file")
    import_.add_argument("path", type=Path)
    return parser.parse_args(argv)


def _build_store() -> RestStore:
    try:
        settings = StoreSettings.from_env()
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    return RestStore(settings)


def _open_dashboard(store: RemoteStore) -> DashboardView:
    view = DashboardView(store, RouteHistory())
    if not view.activate():
        msg = "Not signed in. Run 'login' and set SUPABASE_ACCESS_TOKEN."
        raise SystemExit(msg)
    if view.sync.last_error is not None:
        msg = f"Could not load bookmarks: {view.sync.last_error}"
        raise SystemExit(msg)
    return view


def _handle_login(args: argparse.Namespace, store: RemoteStore) -> None:
    entry = EntryView(store, RouteHistory())
    if entry.activate():
        print("Already signed in.")
        return
    print(entry.sign_in(args.provider, origin=args.origin))


def _handle_logout(store: RemoteStore) -> None:
    view = DashboardView(store, RouteHistory())
    view.request_sign_out()
    print("Signed out.")


def _handle_add(args: argparse.Namespace, view: DashboardView) -> None:
    view.set_title(args.title)
    view.set_url(args.url)
    if view.request_insert():
        print("Bookmark added.")
        return
    errors = [view.visible_error("title"), view.visible_error("url")]
    details = [e for e in errors if e]
    if view.last_error is not None:
        details.append(str(view.last_error))
    raise SystemExit("\n".join(details) or "Bookmark was not added.")


def _handle_delete(args: argparse.Namespace, view: DashboardView) -> None:
    if not view.request_delete(args.bookmark_id):
        raise SystemExit(str(view.last_error))
    print("Bookmark deleted.")


def _handle_import(path: Path, view: DashboardView) -> None:
    links = parse_bookmark_html(path)
    added = 0
    for link in links:
        view.set_title(link.title)
        view.set_url(link.url)
        if view.request_insert():
            added += 1
            continue
        reason = view.visible_error("title") or view.visible_error("url") or view.last_error
        LOGGER.warning("Skipped %s: %s", link.url, reason)
    print(f"Imported {added} of {len(links)} bookmarks.")


def _wait_for_interrupt() -> None:
    while True:
        time.sleep(1.0)


def _handle_watch(view: DashboardView) -> None:
    def _reprint(_collection: Collection) -> None:
        print(view.render(), flush=True)

    print(view.render(), flush=True)
    view.sync.add_listener(_reprint)
    try:
        _wait_for_interrupt()
    except KeyboardInterrupt:
        LOGGER.info("Stopped watching")
    finally:
        view.sync.remove_listener(_reprint)


def main(argv: list[str] | None = None) -> None:
    """Entry point for the bookmark CLI."""
    load_dotenv()
    args = _parse_args(argv)
    configure_logging(verbose=args.verbose)
    store = _build_store()

    if args.command == "login":  # Early dispatch
        _handle_login(args, store)
        return
    if args.command == "logout":  # Early dispatch
        _handle_logout(store)
        return

    view = _open_dashboard(store)
    try:
        if args.command == "list":
            print(view.render())
        elif args.command == "add":
            _handle_add(args, view)
        elif args.command == "delete":
            _handle_delete(args, view)
        elif args.command == "export":
            write_bookmark_html(view.bookmarks, args.path)
            print(f"Exported {len(view.bookmarks)} bookmarks to {args.path}")
        elif args.command == "import":
            _handle_import(args.path, view)
        elif args.command == "watch":
            _handle_watch(view)
    finally:
        view.deactivate()


if __name__ == "__main__":
    main(sys.argv[1:])
