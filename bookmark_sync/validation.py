"""Title and URL checks applied before a bookmark is submitted."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from urllib.parse import urlparse

from .config import ALLOWED_URL_PREFIXES, MIN_TITLE_LENGTH

TITLE_REQUIRED = "Title is required"
TITLE_TOO_SHORT = f"Title must be at least {MIN_TITLE_LENGTH} characters"
URL_REQUIRED = "URL is required"
URL_BAD_SCHEME = "URL must start with http:// or https://"
URL_INVALID = "Please enter a valid URL"

_MAX_PORT = 65535

# Browsers skip any run of slashes or backslashes after a special scheme.
_SCHEME_SLASHES = re.compile(r"^(https?:)[/\\]*", re.IGNORECASE)


class ValidationError(ValueError):
    """Raised when a bookmark draft fails form validation."""

    def __init__(self, errors: dict[str, str]) -> None:
        """Store the per-field error messages."""
        self.errors = dict(errors)
        detail = "; ".join(f"{name}: {message}" for name, message in self.errors.items())
        super().__init__(f"Invalid bookmark ({detail})")


def _empty_errors() -> dict[str, str]:
    return {}


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of :func:`validate`; ``errors`` maps field name to message."""

    errors: dict[str, str] = field(default_factory=_empty_errors)

    @property
    def is_valid(self) -> bool:
        """True when no field has an error."""
        return not self.errors

    def raise_for_errors(self) -> None:
        """Raise ValidationError when any field failed."""
        if self.errors:
            raise ValidationError(self.errors)


def validate_title(title: str) -> str:
    """Return the first title error, or an empty string."""
    trimmed = title.strip()
    if not trimmed:
        return TITLE_REQUIRED
    if len(trimmed) < MIN_TITLE_LENGTH:
        return TITLE_TOO_SHORT
    return ""


def validate_url(url: str) -> str:
    """Return the first URL error, or an empty string."""
    trimmed = url.strip()
    if not trimmed:
        return URL_REQUIRED
    if not trimmed.lower().startswith(ALLOWED_URL_PREFIXES):
        return URL_BAD_SCHEME
    if not is_absolute_url(trimmed):
        return URL_INVALID
    return ""


def is_absolute_url(value: str) -> bool:
    """Check that ``value`` parses as an absolute URL with a usable host."""
    try:
        parsed = urlparse(_SCHEME_SLASHES.sub(r"\1//", value, count=1))
        port = parsed.port
    except ValueError:
        return False
    if not parsed.scheme or not parsed.netloc:
        return False
    host = parsed.hostname
    if not host or any(ch.isspace() for ch in host):
        return False
    return port is None or 0 <= port <= _MAX_PORT


def validate(title: str, url: str) -> ValidationResult:
    """Validate both form fields, reporting only the first error per field."""
    errors: dict[str, str] = {}
    title_error = validate_title(title)
    if title_error:
        errors["title"] = title_error
    url_error = validate_url(url)
    if url_error:
        errors["url"] = url_error
    return ValidationResult(errors=errors)
