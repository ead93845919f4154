"""Parse a Netscape bookmark export into title/URL pairs for import."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from pathlib import Path

from bs4 import BeautifulSoup, Tag

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ImportedLink:
    """One anchor found in an export file."""

    title: str
    url: str


def parse_bookmark_html(html_path: Path) -> list[ImportedLink]:
    """Parse a browser-exported bookmark file into links, in document order."""
    LOGGER.debug("Parsing bookmark export from %s", html_path)
    soup = BeautifulSoup(html_path.read_text(encoding="utf-8"), "html.parser")

    root_dl = soup.find("dl")
    if root_dl is None:
        msg = "Bookmark export is missing <DL> root element"
        raise ValueError(msg)

    links: list[ImportedLink] = []
    for anchor in root_dl.find_all("a"):
        link = _link_from_anchor(anchor)
        if link is not None:
            links.append(link)

    LOGGER.info("Extracted %d bookmark entries", len(links))
    return links


def _link_from_anchor(anchor: Tag) -> ImportedLink | None:
    href_value = anchor.get("href")
    if not isinstance(href_value, str):
        LOGGER.debug("Skipping anchor without textual href")
        return None

    href = href_value.strip()
    if not href:
        LOGGER.debug("Skipping anchor with empty href")
        return None

    return ImportedLink(title=anchor.get_text(strip=True), url=href)
