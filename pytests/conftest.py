from __future__ import annotations

from typing import Generator

import pytest

from db import Store
from pytests.common import anchor, create_empty_store, listing_page

HEADER = ["#", "Название", "Тикер"]


@pytest.fixture()
def store(tmp_path) -> Generator[Store, None, None]:
    """Hermetic SQLite store with all tables created."""

    s = create_empty_store(tmp_path / "shares.sqlite")
    try:
        yield s
    finally:
        s.dispose()


@pytest.fixture()
def alpha_page() -> bytes:
    """The single-row listing page used by the end-to-end scenarios."""

    return listing_page(HEADER, [["1", anchor("/x/ABC", "Alpha Co"), "ALPH"]])


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    monkeypatch.delenv("DB_CONFIG_PATH", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("INIT_DB_ON_STARTUP", "0")
