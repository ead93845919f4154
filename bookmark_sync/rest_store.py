"""HTTP client for the hosted backend (PostgREST table API plus auth endpoints)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import urlencode

import requests
from pydantic import ValidationError

from .config import BOOKMARKS_TABLE, StoreSettings
from .models import Bookmark, Session, User
from .store import ChangeFeed, FetchError, MutationError

if TYPE_CHECKING:  # pragma: no cover
    from .models import BookmarkDraft
    from .store import ChangeCallback, Subscription

LOGGER = logging.getLogger(__name__)

_UNAUTHORISED = {401, 403}


class RestStore:
    """``RemoteStore`` backed by the hosted REST API.

    Live changes are not polled: an external realtime transport feeds raw
    payloads into :attr:`feed` via ``feed.dispatch``.
    """

    def __init__(
        self,
        settings: StoreSettings,
        http: requests.Session | None = None,
        feed: ChangeFeed | None = None,
    ) -> None:
        """Create a client for ``settings.url``."""
        self._settings = settings
        self._access_token = settings.access_token
        self._http = http or requests.Session()
        self._http.headers.update(
            {"apikey": settings.anon_key, "Content-Type": "application/json"},
        )
        self.feed = feed or ChangeFeed(BOOKMARKS_TABLE)

    def set_access_token(self, token: str | None) -> None:
        """Adopt an access token issued by the OAuth redirect."""
        self._access_token = token or None

    # Auth ------------------------------------------------------------------
    def get_current_user(self) -> User | None:
        if not self._access_token:
            return None
        try:
            response = self._http.get(
                self._auth_url("user"),
                headers=self._auth_headers(),
                timeout=self._settings.timeout,
            )
            if response.status_code in _UNAUTHORISED:
                LOGGER.info("Access token rejected (status %s)", response.status_code)
                return None
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            LOGGER.warning("Failed to resolve current user: %s", exc)
            return None
        user_id = payload.get("id") if isinstance(payload, dict) else None
        if not user_id:
            LOGGER.warning("Auth user response did not include an id")
            return None
        return User(id=str(user_id), email=str(payload.get("email") or ""))

    def get_session(self) -> Session | None:
        user = self.get_current_user()
        if user is None or self._access_token is None:
            return None
        return Session(access_token=self._access_token, user=user)

    def sign_in_with_oauth(self, provider: str, redirect_to: str | None = None) -> str:
        params = {"provider": provider}
        if redirect_to:
            params["redirect_to"] = redirect_to
        return f"{self._auth_url('authorize')}?{urlencode(params)}"

    def sign_out(self) -> None:
        if self._access_token:
            try:
                response = self._http.post(
                    self._auth_url("logout"),
                    headers=self._auth_headers(),
                    timeout=self._settings.timeout,
                )
                response.raise_for_status()
            except requests.RequestException as exc:
                LOGGER.warning("Remote sign-out failed (%s); clearing local session", exc)
        self._access_token = None

    # Rows --------------------------------------------------------------------
    def query(self, table: str, owner_id: str) -> list[Bookmark]:
        params = {
            "select": "*",
            "user_id": f"eq.{owner_id}",
            "order": "created_at.desc",
        }
        try:
            response = self._http.get(
                self._rest_url(table),
                params=params,
                headers=self._auth_headers(),
                timeout=self._settings.timeout,
            )
            response.raise_for_status()
            rows = response.json()
        except (requests.RequestException, ValueError) as exc:
            msg = f"Failed to read {table} for owner {owner_id}: {exc}"
            raise FetchError(msg) from exc
        if not isinstance(rows, list):
            msg = f"Unexpected {table} response shape: {type(rows).__name__}"
            raise FetchError(msg)
        try:
            records = [Bookmark.from_row(row) for row in rows]
        except ValidationError as exc:
            msg = f"Invalid {table} row in response: {exc}"
            raise FetchError(msg) from exc
        LOGGER.debug("Fetched %d %s rows for owner %s", len(records), table, owner_id)
        return records

    def insert(self, table: str, draft: BookmarkDraft) -> Bookmark:
        try:
            response = self._http.post(
                self._rest_url(table),
                json=[draft.model_dump()],
                headers={**self._auth_headers(), "Prefer": "return=representation"},
                timeout=self._settings.timeout,
            )
            response.raise_for_status()
            rows = response.json()
            return Bookmark.from_row(rows[0])
        except (requests.RequestException, ValueError, LookupError, TypeError) as exc:
            msg = f"Failed to insert into {table}: {exc}"
            raise MutationError(msg) from exc

    def delete(self, table: str, bookmark_id: str) -> None:
        try:
            response = self._http.delete(
                self._rest_url(table),
                params={"id": f"eq.{bookmark_id}"},
                headers=self._auth_headers(),
                timeout=self._settings.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            msg = f"Failed to delete {bookmark_id} from {table}: {exc}"
            raise MutationError(msg) from exc

    def subscribe_changes(
        self, table: str, owner_id: str, callback: ChangeCallback,
    ) -> Subscription:
        if table != self.feed.table:
            msg = f"No change feed for table {table}"
            raise FetchError(msg)
        return self.feed.subscribe(owner_id, callback)

    # Helpers -----------------------------------------------------------------
    def _auth_headers(self) -> dict[str, str]:
        token = self._access_token or self._settings.anon_key
        return {"Authorization": f"Bearer {token}"}

    def _rest_url(self, table: str) -> str:
        return f"{self._settings.url}/rest/v1/{table}"

    def _auth_url(self, endpoint: str) -> str:
        return f"{self._settings.url}/auth/v1/{endpoint}"
