"""Remote store boundary: protocol, error taxonomy, change feed and in-memory store.

The synchronisation core only talks to a ``RemoteStore``. ``InMemoryStore`` is a
complete in-process implementation used by the tests and for local runs;
``rest_store.RestStore`` talks to the hosted backend.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Protocol
from urllib.parse import urlencode

from .config import BOOKMARKS_TABLE
from .models import (
    Bookmark,
    BookmarkDraft,
    ChangeEvent,
    Inserted,
    Session,
    Updated,
    User,
    decode_change,
)

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Callable, Mapping

    ChangeCallback = Callable[[ChangeEvent], None]

LOGGER = logging.getLogger(__name__)


class BookmarkSyncError(Exception):
    """Base class for bookmark sync failures."""


class AuthRequiredError(BookmarkSyncError):
    """No authenticated session is available."""


class FetchError(BookmarkSyncError):
    """The snapshot read from the remote store failed."""


class MutationError(BookmarkSyncError):
    """An insert or delete request was rejected or could not be sent."""


class RemoteStore(Protocol):
    """Operations the synchronisation core and views consume."""

    def get_session(self) -> Session | None:
        """Return the current session, if any."""
        ...

    def get_current_user(self) -> User | None:
        """Return the authenticated user, if any."""
        ...

    def query(self, table: str, owner_id: str) -> list[Bookmark]:
        """Return all rows owned by ``owner_id`` ordered by ``created_at`` descending."""
        ...

    def insert(self, table: str, draft: BookmarkDraft) -> Bookmark:
        """Insert a row; the store assigns ``id`` and ``created_at``."""
        ...

    def delete(self, table: str, bookmark_id: str) -> None:
        """Delete a row by id."""
        ...

    def subscribe_changes(
        self, table: str, owner_id: str, callback: ChangeCallback,
    ) -> Subscription:
        """Deliver change events for rows owned by ``owner_id`` until unsubscribed."""
        ...

    def sign_in_with_oauth(self, provider: str, redirect_to: str | None = None) -> str:
        """Start an OAuth sign-in and return the provider authorize URL."""
        ...

    def sign_out(self) -> None:
        """End the current session."""
        ...


class Subscription:
    """Handle for one owner-filtered registration on a :class:`ChangeFeed`."""

    def __init__(self, feed: ChangeFeed, owner_id: str, callback: ChangeCallback) -> None:
        """Bind the callback to the feed; the handle starts active."""
        self._feed = feed
        self.owner_id = owner_id
        self._callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        """False once :meth:`unsubscribe` has been called."""
        return self._active

    def unsubscribe(self) -> None:
        """Stop delivery. Idempotent."""
        if not self._active:
            return
        self._active = False
        self._feed.remove(self)

    def deliver(self, event: ChangeEvent) -> None:
        """Invoke the callback unless the handle has been closed."""
        if self._active:
            self._callback(event)


class ChangeFeed:
    """Fan-out of decoded change payloads to owner-filtered subscriptions.

    A realtime transport pushes raw ``postgres_changes`` payloads into
    :meth:`dispatch`; events are delivered synchronously in arrival order.
    """

    def __init__(self, table: str = BOOKMARKS_TABLE) -> None:
        """Create an empty feed for ``table``."""
        self.table = table
        self._subscriptions: list[Subscription] = []

    def subscribe(self, owner_id: str, callback: ChangeCallback) -> Subscription:
        """Register ``callback`` for events on rows owned by ``owner_id``."""
        subscription = Subscription(self, owner_id, callback)
        self._subscriptions.append(subscription)
        LOGGER.debug("Subscribed to %s changes for owner %s", self.table, owner_id)
        return subscription

    def remove(self, subscription: Subscription) -> None:
        """Drop a subscription; unknown handles are ignored."""
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            LOGGER.debug(
                "Unsubscribed from %s changes for owner %s", self.table, subscription.owner_id,
            )

    @property
    def subscriber_count(self) -> int:
        """Number of active subscriptions."""
        return len(self._subscriptions)

    def dispatch(self, payload: Mapping[str, object]) -> int:
        """Decode one raw payload and deliver it; returns the delivery count.

        Malformed payloads are logged and dropped so one bad message does not
        stop the stream.
        """
        try:
            event = decode_change(payload)
        except ValueError as exc:
            LOGGER.warning("Dropping malformed %s change payload: %s", self.table, exc)
            return 0
        return self.publish(event, owner_id=_payload_owner(payload))

    def publish(self, event: ChangeEvent, owner_id: str | None = None) -> int:
        """Deliver an already-decoded event.

        ``owner_id`` of None (a DELETE carrying only the primary key) reaches
        every subscriber; removing an absent id is a no-op downstream.
        """
        if owner_id is None and isinstance(event, (Inserted, Updated)):
            owner_id = event.record.owner_id
        delivered = 0
        for subscription in list(self._subscriptions):
            if owner_id is not None and subscription.owner_id != owner_id:
                continue
            if not subscription.active:
                continue
            subscription.deliver(event)
            delivered += 1
        return delivered


def _payload_owner(payload: Mapping[str, object]) -> str | None:
    for key in ("new", "old"):
        row = payload.get(key)
        if isinstance(row, dict) and row.get("user_id") is not None:
            return str(row["user_id"])
    return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class InMemoryStore:
    """Process-local ``RemoteStore`` with auth, row ownership checks and a change feed."""

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        """Create an empty store; ``clock`` and ``id_factory`` assign new row fields."""
        self._rows: dict[str, Bookmark] = {}
        self._session: Session | None = None
        self._clock = clock
        self._id_factory = id_factory
        self.feed = ChangeFeed(BOOKMARKS_TABLE)

    # Auth ------------------------------------------------------------------
    def sign_in(self, user: User) -> Session:
        """Open a session for ``user`` directly (local runs and tests)."""
        self._session = Session(access_token=f"local-{user.id}", user=user)
        LOGGER.info("Signed in as %s", user.email or user.id)
        return self._session

    def get_session(self) -> Session | None:
        return self._session

    def get_current_user(self) -> User | None:
        return self._session.user if self._session else None

    def sign_in_with_oauth(self, provider: str, redirect_to: str | None = None) -> str:
        params = {"provider": provider}
        if redirect_to:
            params["redirect_to"] = redirect_to
        return f"memory://auth/authorize?{urlencode(params)}"

    def sign_out(self) -> None:
        self._session = None

    # Rows --------------------------------------------------------------------
    def seed(self, records: list[Bookmark]) -> None:
        """Load existing rows without emitting change events."""
        for record in records:
            self._rows[record.id] = record

    def query(self, table: str, owner_id: str) -> list[Bookmark]:
        self._check_table(table, FetchError)
        owned = [row for row in self._rows.values() if row.owner_id == owner_id]
        # Stable sort keeps insertion order for equal timestamps.
        return sorted(owned, key=lambda row: row.created_at, reverse=True)

    def insert(self, table: str, draft: BookmarkDraft) -> Bookmark:
        self._check_table(table, MutationError)
        self._require_owner(draft.user_id)
        record = Bookmark(
            id=self._id_factory(),
            title=draft.title,
            url=draft.url,
            owner_id=draft.user_id,
            created_at=self._clock(),
        )
        self._rows[record.id] = record
        self.feed.dispatch(
            {"eventType": "INSERT", "new": _row_payload(record), "old": {}},
        )
        return record

    def delete(self, table: str, bookmark_id: str) -> None:
        self._check_table(table, MutationError)
        record = self._rows.get(bookmark_id)
        if record is None:
            LOGGER.debug("Delete of unknown bookmark %s matched no rows", bookmark_id)
            return
        self._require_owner(record.owner_id)
        del self._rows[bookmark_id]
        self.feed.dispatch({"eventType": "DELETE", "new": {}, "old": {"id": bookmark_id}})

    def update(self, record: Bookmark) -> None:
        """Replace a stored row and emit UPDATE (backend-side edits)."""
        if record.id not in self._rows:
            msg = f"Cannot update unknown bookmark {record.id}"
            raise MutationError(msg)
        self._rows[record.id] = record
        self.feed.dispatch(
            {"eventType": "UPDATE", "new": _row_payload(record), "old": {"id": record.id}},
        )

    def subscribe_changes(
        self, table: str, owner_id: str, callback: ChangeCallback,
    ) -> Subscription:
        self._check_table(table, FetchError)
        return self.feed.subscribe(owner_id, callback)

    def _require_owner(self, owner_id: str) -> None:
        user = self.get_current_user()
        if user is None:
            msg = "Not signed in"
            raise MutationError(msg)
        if user.id != owner_id:
            msg = f"User {user.id} may not modify rows owned by {owner_id}"
            raise MutationError(msg)

    @staticmethod
    def _check_table(table: str, error: type[BookmarkSyncError]) -> None:
        if table != BOOKMARKS_TABLE:
            msg = f"Unknown table: {table}"
            raise error(msg)


def _row_payload(record: Bookmark) -> dict[str, object]:
    return record.to_model().model_dump(mode="json")

