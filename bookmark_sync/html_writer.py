"""Functions for exporting bookmarks as a Netscape bookmark file."""

from __future__ import annotations

import html
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable
    from pathlib import Path

    from .models import Bookmark

HTML_HEADER = """<!DOCTYPE NETSCAPE-Bookmark-file-1>
<!-- This is an automatically generated file.
     It will be read and overwritten.
     DO NOT EDIT! -->
<META HTTP-EQUIV="Content-Type" CONTENT="text/html; charset=UTF-8">
<TITLE>Bookmarks</TITLE>
<H1>Bookmarks</H1>
"""


def render_html(bookmarks: Iterable[Bookmark]) -> str:
    """Render bookmarks, in the given order, as Netscape bookmark HTML."""
    lines: list[str] = [HTML_HEADER.strip(), "<DL><p>"]
    indent = "    "
    for record in bookmarks:
        href = html.escape(record.url, quote=True)
        title = html.escape(record.title)
        add_date = int(record.created_at.timestamp())
        lines.append(f'{indent}<DT><A HREF="{href}" ADD_DATE="{add_date}">{title}</A>')
    lines.append("</DL><p>")
    return "\n".join(lines)


def write_bookmark_html(bookmarks: Iterable[Bookmark], output_path: Path) -> None:
    """Write the bookmarks to an HTML file."""
    output_path.write_text(render_html(bookmarks) + "\n", encoding="utf-8")
