"""Configuration constants and environment-backed settings for bookmark sync."""

from __future__ import annotations

import os
from dataclasses import dataclass

# Remote table holding bookmark rows.
BOOKMARKS_TABLE: str = "bookmarks"

# Minimum trimmed title length accepted by the add form.
MIN_TITLE_LENGTH: int = 3

ALLOWED_URL_PREFIXES: tuple[str, ...] = ("http://", "https://")

# Routes used by the session gate.
ENTRY_ROUTE: str = "/"
DASHBOARD_ROUTE: str = "/dashboard"

DEFAULT_OAUTH_PROVIDER: str = "google"

DEFAULT_REQUEST_TIMEOUT: float = 10.0


@dataclass(slots=True)
class StoreSettings:
    """Connection settings for the hosted backend."""

    url: str
    anon_key: str
    access_token: str | None = None
    timeout: float = DEFAULT_REQUEST_TIMEOUT

    @classmethod
    def from_env(cls) -> StoreSettings:
        """Build settings from ``SUPABASE_*`` environment variables.

        Raises ValueError when the project URL or anon key is missing.
        """
        url = os.getenv("SUPABASE_URL", "").strip()
        anon_key = os.getenv("SUPABASE_ANON_KEY", "").strip()
        if not url or not anon_key:
            msg = "SUPABASE_URL and SUPABASE_ANON_KEY must be set (env or .env file)"
            raise ValueError(msg)
        timeout_raw = os.getenv("BOOKMARKS_REQUEST_TIMEOUT")
        timeout = float(timeout_raw) if timeout_raw else DEFAULT_REQUEST_TIMEOUT
        return cls(
            url=url.rstrip("/"),
            anon_key=anon_key,
            access_token=os.getenv("SUPABASE_ACCESS_TOKEN") or None,
            timeout=timeout,
        )
