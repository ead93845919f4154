"""Reconcile a one-time snapshot with the live change stream.

``apply`` is the pure reducer; ``BookmarkSync`` owns the single in-memory
collection for one owner and feeds snapshot and events through it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .config import BOOKMARKS_TABLE
from .models import Bookmark, ChangeEvent, Deleted, Inserted, Updated
from .store import FetchError

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Callable, Iterable

    from .store import RemoteStore, Subscription

    Listener = Callable[[tuple[Bookmark, ...]], None]

LOGGER = logging.getLogger(__name__)

Collection = tuple[Bookmark, ...]


def apply(collection: Collection, event: ChangeEvent) -> Collection:
    """Return the collection with ``event`` applied.

    Inserts go to the front unless the id is already present. Deletes and
    updates of an absent id return ``collection`` itself. Existing entries never
    move.
    """
    if isinstance(event, Inserted):
        if any(item.id == event.record.id for item in collection):
            return collection
        return (event.record, *collection)
    if isinstance(event, Deleted):
        if not any(item.id == event.bookmark_id for item in collection):
            return collection
        return tuple(item for item in collection if item.id != event.bookmark_id)
    if isinstance(event, Updated):
        if not any(item.id == event.record.id for item in collection):
            return collection
        return tuple(event.record if item.id == event.record.id else item for item in collection)
    msg = f"Unsupported change event: {event!r}"
    raise TypeError(msg)


def _dedupe(records: Iterable[Bookmark]) -> Collection:
    seen: set[str] = set()
    unique: list[Bookmark] = []
    for record in records:
        if record.id in seen:
            LOGGER.debug("Dropping duplicate snapshot row %s", record.id)
            continue
        seen.add(record.id)
        unique.append(record)
    return tuple(unique)


class BookmarkSync:
    """Single-owner bookmark collection kept current from snapshot plus events.

    Snapshot and subscription may complete in either order. Events that arrive
    before the snapshot are held and replayed on top of it, and duplicate
    inserts are suppressed by :func:`apply`, so the final state is the same
    either way.
    """

    def __init__(self, store: RemoteStore, table: str = BOOKMARKS_TABLE) -> None:
        """Bind the manager to a remote store."""
        self._store = store
        self._table = table
        self._bookmarks: Collection = ()
        self._snapshot_loaded = False
        self._pending: list[ChangeEvent] = []
        self._subscription: Subscription | None = None
        self._token: object | None = None
        self._listeners: list[Listener] = []
        self.owner_id: str | None = None
        self.last_error: FetchError | None = None

    @property
    def bookmarks(self) -> Collection:
        """Current collection, newest first."""
        return self._bookmarks

    @property
    def subscription(self) -> Subscription | None:
        """Active change-feed handle, if any."""
        return self._subscription

    def add_listener(self, listener: Listener) -> None:
        """Call ``listener`` with the new collection after every change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        """Stop notifying ``listener``; unknown listeners are ignored."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def start(self, owner_id: str) -> Collection:
        """Subscribe and load the snapshot for ``owner_id``."""
        self._snapshot_loaded = False
        self.subscribe(owner_id)
        return self.initialize(owner_id)

    def initialize(self, owner_id: str) -> Collection:
        """Load the snapshot for ``owner_id``, then replay events held meanwhile.

        A failed read leaves an empty collection and records ``last_error``;
        callers may call again to retry.
        """
        self.owner_id = owner_id
        try:
            snapshot = _dedupe(self._store.query(self._table, owner_id))
        except FetchError as exc:
            LOGGER.warning("Snapshot read failed for owner %s: %s", owner_id, exc)
            self.last_error = exc
            snapshot = ()
        else:
            self.last_error = None
            LOGGER.info("Loaded %d bookmarks for owner %s", len(snapshot), owner_id)

        collection = snapshot
        pending, self._pending = self._pending, []
        for event in pending:
            collection = apply(collection, event)
        if pending:
            LOGGER.debug("Replayed %d change events received before the snapshot", len(pending))
        self._snapshot_loaded = True
        self._replace(collection)
        return self._bookmarks

    def subscribe(
        self,
        owner_id: str,
        on_event: Callable[[ChangeEvent], None] | None = None,
    ) -> Subscription:
        """Open the owner-filtered change feed; any previous feed is torn down.

        ``on_event`` is called after each event has been received (applied, or
        held until the snapshot loads).
        """
        if self._subscription is not None:
            self.teardown()
        token = object()
        self._token = token

        def _handle(event: ChangeEvent) -> None:
            if self._token is not token:
                LOGGER.debug("Ignoring %s from a torn-down subscription", type(event).__name__)
                return
            self.receive(event)
            if on_event is not None:
                on_event(event)

        self._subscription = self._store.subscribe_changes(self._table, owner_id, _handle)
        return self._subscription

    def receive(self, event: ChangeEvent) -> None:
        """Apply one event, or hold it until the snapshot has loaded."""
        if not self._snapshot_loaded:
            self._pending.append(event)
            return
        self._replace(apply(self._bookmarks, event))

    def teardown(self, handle: Subscription | None = None) -> None:
        """Release the subscription and drop held events. Safe to repeat."""
        if handle is not None and handle is not self._subscription:
            handle.unsubscribe()
            return
        self._token = None
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._pending.clear()

    def _replace(self, collection: Collection) -> None:
        if collection is self._bookmarks:
            return
        self._bookmarks = collection
        for listener in list(self._listeners):
            listener(collection)
