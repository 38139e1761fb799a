"""Shared helpers for tests.

Intended usage:
- spin up a temporary SQLite store with all tables created
- build listing pages shaped like the exchange's issuer table
- stand in for `requests.Session` without touching the network

These utilities keep tests small and consistent.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

from config import StoreConfig
from db import Store, create_store, init_db

__all__ = [
    "create_empty_store",
    "add_dicts",
    "anchor",
    "listing_page",
    "FakeResponse",
    "FakeSession",
]


def create_empty_store(db_path: Path | str) -> Store:
    """Create an empty SQLite DB file and initialize all models."""

    store = create_store(StoreConfig(url=f"sqlite:///{db_path}"))
    init_db(store)
    return store


def add_dicts(store: Store, model, rows: Iterable[dict[str, Any]]) -> None:
    """Insert a list of dicts into a SQLAlchemy model table."""

    session = store.session()
    try:
        session.add_all([model(**row) for row in rows])
        session.commit()
    finally:
        session.close()


def anchor(href: str, text: str) -> str:
    return f'<a href="{href}">{text}</a>'


def listing_page(
    header: list[str],
    rows: Iterable[list[str]],
    *,
    preamble: str = "",
    close: bool = True,
) -> bytes:
    """Render a listing page: one header row of <th>, then <td> rows.

    `close=False` cuts the document right after the last row's cells, leaving
    that row and the table unterminated.
    """

    head = "".join(f"<th>{h}</th>" for h in header)
    body = ""
    rows = list(rows)
    for i, row in enumerate(rows):
        cells = "".join(f"<td>{c}</td>" for c in row)
        last_open = not close and i == len(rows) - 1
        body += f"\n<tr>{cells}" + ("" if last_open else "</tr>")

    html = (
        "<html><head><title>Акции</title></head><body>"
        f"{preamble}"
        '<table class="simple-little-table trades-table">'
        f"<tr>{head}</tr>{body}"
    )
    if close:
        html += "\n</table></body></html>"
    return html.encode("utf-8")


class FakeResponse:
    def __init__(
        self, *, status_code: int, content: bytes = b"ok", headers: dict | None = None
    ):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}


class FakeSession:
    def __init__(self, responses):
        self._responses = list(responses)
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append({"url": url, "headers": headers or {}, "timeout": timeout})
        if not self._responses:
            raise RuntimeError("No more fake responses")
        r = self._responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r
