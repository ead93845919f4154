"""Shared pytest fixtures for bookmark sync tests."""

from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import pytest

from bookmark_sync.models import Bookmark, User
from bookmark_sync.store import InMemoryStore

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)

OWNER = User(id="user-1", email="owner@example.com")
OTHER = User(id="user-2", email="other@example.com")


def make_bookmark(
    bookmark_id: str | int,
    title: str = "Example",
    url: str = "https://example.com",
    owner_id: str = OWNER.id,
    minutes: int = 0,
) -> Bookmark:
    """Build a bookmark created ``minutes`` after BASE_TIME."""
    return Bookmark(
        id=str(bookmark_id),
        title=title,
        url=url,
        owner_id=owner_id,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def _ticking_clock(start: datetime) -> Callable[[], datetime]:
    ticks = itertools.count(1)
    return lambda: start + timedelta(hours=next(ticks))


@pytest.fixture
def store() -> InMemoryStore:
    """Empty store with deterministic ids (bm-1, bm-2, ...) and increasing timestamps."""
    counter = itertools.count(1)
    return InMemoryStore(
        clock=_ticking_clock(BASE_TIME),
        id_factory=lambda: f"bm-{next(counter)}",
    )


@pytest.fixture
def signed_in_store(store: InMemoryStore) -> InMemoryStore:
    """Store with OWNER signed in."""
    store.sign_in(OWNER)
    return store


@pytest.fixture
def sample_export_html(tmp_path: Path) -> Path:
    """Create a minimal synthetic bookmark export HTML file."""
    content = (
        "<!DOCTYPE NETSCAPE-Bookmark-file-1><HTML><H3>Bookmarks</H3><DL>"
        '<DT><A HREF="https://example.com">Example</A></DT>'
        '<DT><H3>Reading</H3><DL><DT><A HREF="https://example.org">Example Org</A></DT></DL>'
        '<DT><A HREF="ftp://files.example">Old FTP</A></DT>'
        '<DT><A HREF="  ">Blank</A></DT>'
        "</DL></HTML>"
    )
    p = tmp_path / "sample.html"
    p.write_text(content, encoding="utf-8")
    return p
