"""Dashboard view controller: form state, mutation requests and list rendering.

Mutations are sent to the store only; the visible list changes when the
matching change event comes back through :class:`~bookmark_sync.sync.BookmarkSync`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

from .config import BOOKMARKS_TABLE, ENTRY_ROUTE
from .gate import check_session
from .models import BookmarkDraft, FieldState
from .store import MutationError
from .sync import BookmarkSync
from .validation import validate

if TYPE_CHECKING:  # pragma: no cover
    from .gate import Navigator
    from .store import RemoteStore
    from .sync import Collection

LOGGER = logging.getLogger(__name__)

FieldName = Literal["title", "url"]

EMPTY_MESSAGE = "No bookmarks yet. Add your first bookmark above!"


class DashboardView:
    """Protected bookmark list with an add form."""

    def __init__(self, store: RemoteStore, navigator: Navigator) -> None:
        """Create an inactive view; call :meth:`activate` to load data."""
        self._store = store
        self._navigator = navigator
        self.sync = BookmarkSync(store)
        self.title = FieldState()
        self.url = FieldState()
        self.last_error: MutationError | None = None

    @property
    def bookmarks(self) -> Collection:
        """Collection currently shown."""
        return self.sync.bookmarks

    def activate(self) -> bool:
        """Run the session gate, then load and subscribe. False if redirected."""
        session = check_session(self._store, self._navigator)
        if session is None:
            return False
        self.sync.start(session.user.id)
        return True

    def deactivate(self) -> None:
        """Release the change-feed subscription."""
        self.sync.teardown()

    # Form ----------------------------------------------------------------------
    def _field(self, name: FieldName) -> FieldState:
        return self.title if name == "title" else self.url

    def set_title(self, value: str) -> None:
        self._edit("title", value)

    def set_url(self, value: str) -> None:
        self._edit("url", value)

    def _edit(self, name: FieldName, value: str) -> None:
        field = self._field(name)
        field.value = value
        if field.touched:
            field.error = ""

    def blur(self, name: FieldName) -> None:
        """Mark a field as touched."""
        self._field(name).touched = True

    def visible_error(self, name: FieldName) -> str:
        """Error text to show inline; empty until the field is touched."""
        field = self._field(name)
        return field.error if field.touched else ""

    def validate_form(self) -> bool:
        result = validate(self.title.value, self.url.value)
        self.title.error = result.errors.get("title", "")
        self.url.error = result.errors.get("url", "")
        return result.is_valid

    # Mutations -------------------------------------------------------------------
    def request_insert(self) -> bool:
        """Validate and send the form contents as a new bookmark.

        Returns True when the insert was accepted by the store. The list itself
        is only updated by the resulting change event.
        """
        self.title.touched = True
        self.url.touched = True
        if not self.validate_form():
            return False
        user = self._store.get_current_user()
        if user is None:
            LOGGER.info("Insert requested without a signed-in user; ignoring")
            return False
        draft = BookmarkDraft(title=self.title.value, url=self.url.value, user_id=user.id)
        try:
            self._store.insert(BOOKMARKS_TABLE, draft)
        except MutationError as exc:
            self._record_failure("insert", exc)
            return False
        self.last_error = None
        self.title.reset()
        self.url.reset()
        return True

    def request_delete(self, bookmark_id: str) -> bool:
        """Ask the store to delete ``bookmark_id``; True when accepted."""
        try:
            self._store.delete(BOOKMARKS_TABLE, bookmark_id)
        except MutationError as exc:
            self._record_failure("delete", exc)
            return False
        self.last_error = None
        return True

    def request_sign_out(self) -> None:
        """Sign out, drop the subscription and return to the entry view."""
        self.sync.teardown()
        self._store.sign_out()
        self._navigator.redirect(ENTRY_ROUTE)

    def _record_failure(self, action: str, exc: MutationError) -> None:
        LOGGER.warning("Bookmark %s failed: %s", action, exc)
        self.last_error = exc

    # Rendering ------------------------------------------------------------------
    def render(self) -> str:
        """Plain-text listing of the visible collection."""
        items = self.bookmarks
        lines = [f"My Bookmarks ({len(items)})"]
        if not items:
            lines.append(EMPTY_MESSAGE)
        for record in items:
            lines.append(f"- {record.title} <{record.url}> [{record.id}]")
        if self.last_error is not None:
            lines.append(f"! {self.last_error}")
        return "\n".join(lines)
