"""Tests for row conversion and change payload decoding."""

from __future__ import annotations

import pytest

from bookmark_sync.models import (
    Bookmark,
    BookmarkDraft,
    Deleted,
    Inserted,
    Updated,
    decode_change,
)

ROW = {
    "id": 7,
    "title": "Docs",
    "url": "https://docs.example",
    "user_id": "user-1",
    "created_at": "2024-03-01T12:00:00+00:00",
    "extra_column": "ignored",
}


def test_row_conversion_maps_user_id_to_owner() -> None:
    record = Bookmark.from_row(ROW)
    if record.id != "7" or record.owner_id != "user-1":
        msg = f"Unexpected record {record}"
        raise AssertionError(msg)
    dumped = record.to_model().model_dump(mode="json")
    if dumped["user_id"] != "user-1" or "extra_column" in dumped:
        msg = f"Unexpected wire row {dumped}"
        raise AssertionError(msg)


def test_decode_insert_update_delete() -> None:
    inserted = decode_change({"eventType": "INSERT", "new": ROW, "old": {}})
    updated = decode_change({"eventType": "UPDATE", "new": ROW, "old": {"id": 7}})
    deleted = decode_change({"eventType": "DELETE", "new": {}, "old": {"id": 7}})
    if not isinstance(inserted, Inserted) or inserted.record.title != "Docs":
        msg = f"Bad INSERT decode: {inserted}"
        raise AssertionError(msg)
    if not isinstance(updated, Updated) or updated.record.id != "7":
        msg = f"Bad UPDATE decode: {updated}"
        raise AssertionError(msg)
    if deleted != Deleted("7"):
        msg = f"Bad DELETE decode: {deleted}"
        raise AssertionError(msg)


@pytest.mark.parametrize(
    "payload",
    [
        {"eventType": "TRUNCATE"},
        {"eventType": "INSERT", "new": None},
        {"eventType": "INSERT", "new": {"id": 1}},
        {"eventType": "DELETE", "old": {}},
    ],
)
def test_decode_rejects_malformed_payloads(payload: dict[str, object]) -> None:
    with pytest.raises(ValueError):  # noqa: PT011
        decode_change(payload)


def test_draft_strips_whitespace() -> None:
    draft = BookmarkDraft(title="  Docs  ", url=" https://docs.example ", user_id="u")
    if draft.model_dump() != {"title": "Docs", "url": "https://docs.example", "user_id": "u"}:
        msg = f"Unexpected draft payload {draft.model_dump()}"
        raise AssertionError(msg)
