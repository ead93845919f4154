"""Data models for bookmark synchronisation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Literal

from attrs import define
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Mapping


@dataclass(frozen=True, slots=True)
class Bookmark:
    """A saved link as stored by the remote backend."""

    id: str
    title: str
    url: str
    owner_id: str
    created_at: datetime

    def to_model(self) -> BookmarkRowModel:
        """Convert the record into its wire representation."""
        return BookmarkRowModel(
            id=self.id,
            title=self.title,
            url=self.url,
            user_id=self.owner_id,
            created_at=self.created_at,
        )

    @classmethod
    def from_model(cls, model: BookmarkRowModel) -> Bookmark:
        """Create a record from a validated row model."""
        return cls(
            id=model.id,
            title=model.title,
            url=model.url,
            owner_id=model.user_id,
            created_at=model.created_at,
        )

    @classmethod
    def from_row(cls, row: Mapping[str, object]) -> Bookmark:
        """Validate a raw row mapping and convert it into a record."""
        return cls.from_model(BookmarkRowModel.model_validate(dict(row)))


class BookmarkRowModel(BaseModel):
    """Row shape of the ``bookmarks`` table."""

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    url: str
    user_id: str
    created_at: datetime

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: object) -> object:
        # Identifiers are opaque; integer keys are accepted and kept as text.
        return str(value) if isinstance(value, int) else value


class BookmarkDraft(BaseModel):
    """Insert payload; ``id`` and ``created_at`` are left to the backend."""

    title: str = Field(min_length=1)
    url: str = Field(min_length=1)
    user_id: str

    @field_validator("title", "url", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


@dataclass(frozen=True, slots=True)
class Inserted:
    """A record was created remotely."""

    record: Bookmark


@dataclass(frozen=True, slots=True)
class Deleted:
    """A record was removed remotely."""

    bookmark_id: str


@dataclass(frozen=True, slots=True)
class Updated:
    """A record was replaced remotely."""

    record: Bookmark


ChangeEvent = Inserted | Deleted | Updated

ChangeType = Literal["INSERT", "UPDATE", "DELETE"]


def decode_change(payload: Mapping[str, object]) -> ChangeEvent:
    """Decode a realtime ``postgres_changes`` payload into a change event.

    INSERT and UPDATE carry the full row under ``new``; DELETE carries at least
    the primary key under ``old``. Raises ValueError for anything else.
    """
    event_type = payload.get("eventType")
    try:
        if event_type == "INSERT":
            return Inserted(Bookmark.from_row(_row(payload, "new")))
        if event_type == "UPDATE":
            return Updated(Bookmark.from_row(_row(payload, "new")))
    except ValidationError as exc:
        msg = f"Malformed bookmark row in {event_type} payload: {exc}"
        raise ValueError(msg) from exc
    if event_type == "DELETE":
        old = _row(payload, "old")
        bookmark_id = old.get("id")
        if bookmark_id is None or bookmark_id == "":
            msg = "DELETE payload is missing the old record id"
            raise ValueError(msg)
        return Deleted(str(bookmark_id))
    msg = f"Unsupported change event type: {event_type!r}"
    raise ValueError(msg)


def _row(payload: Mapping[str, object], key: str) -> Mapping[str, object]:
    row = payload.get(key)
    if not isinstance(row, dict):
        msg = f"Change payload field {key!r} is not an object"
        raise ValueError(msg)  # noqa: TRY004
    return row


@dataclass(frozen=True, slots=True)
class User:
    """Authenticated user as reported by the auth service."""

    id: str
    email: str = ""


@dataclass(frozen=True, slots=True)
class Session:
    """Active auth session."""

    access_token: str
    user: User


@define(slots=True)
class FieldState:
    """Form field value with its inline validation state."""

    value: str = ""
    error: str = ""
    touched: bool = False

    def reset(self) -> None:
        """Clear value, error and touched flag."""
        self.value = ""
        self.error = ""
        self.touched = False
