from __future__ import annotations

import abc
from dataclasses import dataclass

from db import Store


@dataclass(frozen=True)
class IngestRunResult:
    fetched_records: int
    inserted_issuers: int
    inserted_tickers: int
    dropped_tickers: int


class SourceIngestBase(abc.ABC):
    """Reusable base class for source ingestion jobs.

    Subclasses should implement:
    - `source_name`: canonical identifier used in logs.
    - `run()`: perform ingestion and return counts.

    The store is passed in explicitly; jobs never reach for a module-level
    engine, so tests can hand them a throwaway SQLite store.
    """

    source_name: str

    def __init__(self, *, store: Store) -> None:
        self.store = store

    @abc.abstractmethod
    def run(self) -> IngestRunResult:  # pragma: no cover
        raise NotImplementedError
