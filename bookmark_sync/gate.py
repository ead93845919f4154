"""Session gate: route callers by whether they hold an authenticated session."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from .config import DASHBOARD_ROUTE, DEFAULT_OAUTH_PROVIDER, ENTRY_ROUTE
from .store import AuthRequiredError

if TYPE_CHECKING:  # pragma: no cover
    from .models import Session
    from .store import RemoteStore

LOGGER = logging.getLogger(__name__)


class Navigator(Protocol):
    """Something that can move the user to another view."""

    def redirect(self, route: str) -> None:
        """Navigate to ``route``."""
        ...


class RouteHistory:
    """Navigator that records every redirect; the CLI and tests read ``current``."""

    def __init__(self, start: str = ENTRY_ROUTE) -> None:
        """Begin at ``start``."""
        self.history: list[str] = [start]

    @property
    def current(self) -> str:
        """Most recent route."""
        return self.history[-1]

    def redirect(self, route: str) -> None:
        LOGGER.debug("Redirecting %s -> %s", self.current, route)
        self.history.append(route)


def require_session(store: RemoteStore) -> Session:
    """Return the current session or raise AuthRequiredError."""
    session = store.get_session()
    if session is None:
        msg = "Sign-in required"
        raise AuthRequiredError(msg)
    return session


def check_session(store: RemoteStore, navigator: Navigator) -> Session | None:
    """Return the session, or redirect to the entry view and return None.

    A missing session is final: there is no retry.
    """
    try:
        return require_session(store)
    except AuthRequiredError:
        LOGGER.info("No active session; redirecting to %s", ENTRY_ROUTE)
        navigator.redirect(ENTRY_ROUTE)
        return None


class EntryView:
    """Unauthenticated landing view offering OAuth sign-in."""

    def __init__(self, store: RemoteStore, navigator: Navigator) -> None:
        """Bind the view to its store and navigator."""
        self._store = store
        self._navigator = navigator

    def activate(self) -> bool:
        """Forward already signed-in users to the dashboard; True if redirected."""
        if self._store.get_current_user() is None:
            return False
        self._navigator.redirect(DASHBOARD_ROUTE)
        return True

    def sign_in(
        self, provider: str = DEFAULT_OAUTH_PROVIDER, origin: str = "",
    ) -> str:
        """Begin OAuth sign-in; returns the provider authorize URL."""
        redirect_to = f"{origin.rstrip('/')}{DASHBOARD_ROUTE}" if origin else None
        url = self._store.sign_in_with_oauth(provider, redirect_to=redirect_to)
        LOGGER.info("Started %s sign-in", provider)
        return url
