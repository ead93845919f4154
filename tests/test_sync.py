"""Tests for the change reducer and the snapshot/stream synchronisation manager."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from conftest import OTHER, OWNER, make_bookmark

from bookmark_sync.models import BookmarkDraft, Deleted, Inserted, Updated
from bookmark_sync.store import FetchError
from bookmark_sync.sync import BookmarkSync, apply

if TYPE_CHECKING:
    from bookmark_sync.store import InMemoryStore


def _ids(collection) -> list[str]:
    return [item.id for item in collection]


def test_duplicate_insert_is_idempotent() -> None:
    base = (make_bookmark(1),)
    record = make_bookmark(2)
    once = apply(base, Inserted(record))
    twice = apply(once, Inserted(record))
    if twice != once:
        msg = f"Second insert changed the collection: {_ids(twice)}"
        raise AssertionError(msg)
    if _ids(once) != ["2", "1"]:
        msg = f"Insert should prepend, got {_ids(once)}"
        raise AssertionError(msg)


def test_insert_after_delete_keeps_existing_order() -> None:
    base = tuple(make_bookmark(i, minutes=10 - i) for i in range(1, 5))
    result = apply(apply(base, Deleted("2")), Inserted(make_bookmark(9, minutes=-100)))
    # The older timestamp of the new record must not cause a re-sort.
    if _ids(result) != ["9", "1", "3", "4"]:
        msg = f"Unexpected order after delete+insert: {_ids(result)}"
        raise AssertionError(msg)


@pytest.mark.parametrize("event", [Deleted("missing"), Updated(make_bookmark("missing"))])
def test_absent_id_is_a_noop(event) -> None:
    base = (make_bookmark(1), make_bookmark(2))
    result = apply(base, event)
    if result != base:
        msg = f"{type(event).__name__} of an absent id changed the collection"
        raise AssertionError(msg)


def test_update_replaces_in_place() -> None:
    base = (make_bookmark(1), make_bookmark(2), make_bookmark(3))
    renamed = make_bookmark(2, title="Renamed")
    result = apply(base, Updated(renamed))
    if _ids(result) != ["1", "2", "3"] or result[1].title != "Renamed":
        msg = f"Update should replace entry 2 in place, got {result}"
        raise AssertionError(msg)


def test_apply_rejects_unknown_events() -> None:
    with pytest.raises(TypeError):
        apply((), object())  # type: ignore[arg-type]


def test_end_to_end_snapshot_then_events(store: InMemoryStore) -> None:
    store.seed([make_bookmark(1)])
    sync = BookmarkSync(store)
    sync.start(OWNER.id)
    if _ids(sync.bookmarks) != ["1"]:
        raise AssertionError("Snapshot not loaded")

    sync.receive(Inserted(make_bookmark(2)))
    if _ids(sync.bookmarks) != ["2", "1"]:
        msg = f"Expected [2, 1], got {_ids(sync.bookmarks)}"
        raise AssertionError(msg)

    sync.receive(Deleted("1"))
    if _ids(sync.bookmarks) != ["2"]:
        msg = f"Expected [2], got {_ids(sync.bookmarks)}"
        raise AssertionError(msg)

    sync.receive(Inserted(make_bookmark(2)))
    if len(sync.bookmarks) != 1:
        msg = f"Duplicate insert was not suppressed: {_ids(sync.bookmarks)}"
        raise AssertionError(msg)


def test_snapshot_is_newest_first(store: InMemoryStore) -> None:
    store.seed([make_bookmark("old", minutes=1), make_bookmark("new", minutes=5)])
    sync = BookmarkSync(store)
    loaded = sync.initialize(OWNER.id)
    if _ids(loaded) != ["new", "old"]:
        msg = f"Snapshot should be ordered by created_at descending, got {_ids(loaded)}"
        raise AssertionError(msg)


def test_events_before_snapshot_are_replayed_without_duplicates(store: InMemoryStore) -> None:
    store.seed([make_bookmark(1), make_bookmark(2, minutes=1)])
    sync = BookmarkSync(store)
    sync.subscribe(OWNER.id)
    # Both events race ahead of the snapshot read.
    sync.receive(Inserted(make_bookmark(2, minutes=1)))
    sync.receive(Deleted("1"))
    if sync.bookmarks:
        raise AssertionError("Events must be held until the snapshot has loaded")

    sync.initialize(OWNER.id)
    if _ids(sync.bookmarks) != ["2"]:
        msg = f"Expected convergent state [2], got {_ids(sync.bookmarks)}"
        raise AssertionError(msg)


def test_store_mutations_reach_the_collection_only_through_events(
    signed_in_store: InMemoryStore,
) -> None:
    sync = BookmarkSync(signed_in_store)
    seen: list[object] = []
    sync.subscribe(OWNER.id, seen.append)
    sync.initialize(OWNER.id)

    created = signed_in_store.insert(
        "bookmarks", BookmarkDraft(title="Docs", url="https://docs.example", user_id=OWNER.id),
    )
    if _ids(sync.bookmarks) != [created.id]:
        msg = f"Insert event not applied: {_ids(sync.bookmarks)}"
        raise AssertionError(msg)
    signed_in_store.delete("bookmarks", created.id)
    if sync.bookmarks:
        raise AssertionError("Delete event not applied")
    if [type(event).__name__ for event in seen] != ["Inserted", "Deleted"]:
        msg = f"on_event saw unexpected events: {seen}"
        raise AssertionError(msg)


def test_other_owners_changes_are_not_delivered(store: InMemoryStore) -> None:
    sync = BookmarkSync(store)
    sync.start(OWNER.id)
    store.sign_in(OTHER)
    store.insert(
        "bookmarks", BookmarkDraft(title="Theirs", url="https://other.example", user_id=OTHER.id),
    )
    if sync.bookmarks:
        msg = f"Received another owner's bookmark: {sync.bookmarks}"
        raise AssertionError(msg)


def test_teardown_blocks_stale_transport_callbacks(signed_in_store: InMemoryStore) -> None:
    sync = BookmarkSync(signed_in_store)
    seen: list = []
    handle = sync.subscribe(OWNER.id, seen.append)
    sync.initialize(OWNER.id)
    stale_callback = handle._callback  # noqa: SLF001

    sync.teardown(handle)
    if handle.active or signed_in_store.feed.subscriber_count != 0:
        raise AssertionError("Subscription should be released by teardown")

    stale_callback(Inserted(make_bookmark(42)))
    signed_in_store.insert(
        "bookmarks", BookmarkDraft(title="Later", url="https://later.example", user_id=OWNER.id),
    )
    if seen:
        msg = f"on_event fired after teardown: {seen}"
        raise AssertionError(msg)
    if sync.bookmarks:
        msg = f"Collection changed after teardown: {_ids(sync.bookmarks)}"
        raise AssertionError(msg)


def test_teardown_without_initialise_is_safe(store: InMemoryStore) -> None:
    sync = BookmarkSync(store)
    sync.teardown()
    sync.teardown()
    if sync.subscription is not None:
        raise AssertionError("No subscription expected")


def test_fetch_error_yields_empty_collection(
    store: InMemoryStore, monkeypatch: pytest.MonkeyPatch,
) -> None:
    store.seed([make_bookmark(1)])

    def _fail(_table: str, _owner_id: str):
        msg = "backend unavailable"
        raise FetchError(msg)

    monkeypatch.setattr(store, "query", _fail)
    sync = BookmarkSync(store)
    result = sync.initialize(OWNER.id)
    if result != () or not isinstance(sync.last_error, FetchError):
        msg = f"Expected empty collection and recorded error, got {result!r}"
        raise AssertionError(msg)

    monkeypatch.undo()
    if _ids(sync.initialize(OWNER.id)) != ["1"] or sync.last_error is not None:
        raise AssertionError("Re-initialising after a failure should load the snapshot")


def test_listeners_receive_each_new_collection(signed_in_store: InMemoryStore) -> None:
    sync = BookmarkSync(signed_in_store)
    renders: list[int] = []
    sync.add_listener(lambda collection: renders.append(len(collection)))
    signed_in_store.seed([make_bookmark(1)])
    sync.start(OWNER.id)
    sync.receive(Inserted(make_bookmark(2)))
    sync.receive(Inserted(make_bookmark(2)))  # no change, no notification
    if renders != [1, 2]:
        msg = f"Unexpected listener notifications: {renders}"
        raise AssertionError(msg)
