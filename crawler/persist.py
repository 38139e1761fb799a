"""Two-phase conflict-ignore persistence of issuers and tickers.

Phase 1 inserts issuers keyed by their natural key (`sl_key`); phase 2 reloads
the `sl_key -> id` map and inserts tickers for the issuers it can resolve.
Existing rows are never updated, so manually curated columns such as
`issuers.sector_id` survive repeated crawls. The phases commit separately: an
issuer insert can be durable while the ticker phase fails, and the next run
fills the gap.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as SASession

from crawler.errors import PersistError
from crawler.table import IssuerRecord
from db import Store
from logging_utils import get_logger
from models.issuers import Issuer
from models.tickers import Ticker

logger = get_logger(__name__)

SQLITE_MAX_VARS_DEFAULT = 999

_INSERT_BY_DIALECT = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


@dataclass(frozen=True)
class TickerUpsertResult:
    inserted: int
    dropped: int


def _insert_ignore(
    session: SASession,
    model: Any,
    rows: list[dict[str, Any]],
    *,
    index_elements: list[str],
) -> int:
    """INSERT ... ON CONFLICT DO NOTHING in chunks; returns inserted row count.

    Chunks stay below SQLite's default bound-parameter limit (999).
    """

    if not rows:
        return 0

    dialect = session.get_bind().dialect.name
    insert_fn = _INSERT_BY_DIALECT.get(dialect)
    if insert_fn is None:
        raise PersistError(
            f"conflict-ignore insert not supported for dialect {dialect!r}",
            phase=model.__tablename__,
        )

    params_per_row = len(rows[0])
    max_rows_per_chunk = max(1, (SQLITE_MAX_VARS_DEFAULT // params_per_row) - 5)

    inserted = 0
    for i in range(0, len(rows), max_rows_per_chunk):
        chunk = rows[i : i + max_rows_per_chunk]
        stmt = insert_fn(model).values(chunk).on_conflict_do_nothing(
            index_elements=index_elements
        )
        res = session.execute(stmt)
        inserted += int(getattr(res, "rowcount", 0) or 0)
    return inserted


class IssuerPersister:
    def __init__(self, store: Store) -> None:
        self.store = store

    @contextmanager
    def _phase(self, phase: str) -> Iterator[SASession]:
        session = self.store.session()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Persist phase failed | phase=%s", phase)
            raise PersistError(f"{phase} phase failed: {e}", phase=phase) from e
        finally:
            session.close()

    def upsert_issuers(self, entries: Mapping[str, str]) -> int:
        """Insert issuers whose natural key is not stored yet.

        `entries` maps natural key -> display name. Existing issuers are left
        untouched, even when the display name differs.
        """

        rows = [
            {"id": uuid.uuid4().hex, "sl_key": key, "name": name}
            for key, name in entries.items()
            if key
        ]
        if not rows:
            logger.info("No issuers to upsert")
            return 0

        with self._phase("issuers") as session:
            inserted = _insert_ignore(session, Issuer, rows, index_elements=["sl_key"])

        logger.info("Upserted issuers | candidates=%s inserted=%s", len(rows), inserted)
        return inserted

    def load_issuer_ids(self, session: SASession) -> dict[str, str]:
        rows = session.execute(select(Issuer.sl_key, Issuer.id))
        return {key: issuer_id for key, issuer_id in rows}

    def upsert_tickers(self, records: Iterable[IssuerRecord]) -> TickerUpsertResult:
        """Insert tickers for records whose natural key resolves to an issuer.

        Records without a key, or with a key no issuer carries, are dropped.
        """

        with self._phase("tickers") as session:
            issuer_ids = self.load_issuer_ids(session)

            rows: list[dict[str, Any]] = []
            seen: set[tuple[str, str]] = set()
            dropped = 0
            for record in records:
                issuer_id = issuer_ids.get(record.natural_key) if record.natural_key else None
                if issuer_id is None:
                    dropped += 1
                    continue
                pair = (record.ticker_symbol, issuer_id)
                if pair in seen:
                    continue
                seen.add(pair)
                rows.append(
                    {
                        "ticker_symbol": record.ticker_symbol,
                        "issuer_id": issuer_id,
                        "sl_name": record.display_name,
                    }
                )

            inserted = _insert_ignore(
                session, Ticker, rows, index_elements=["ticker_symbol", "issuer_id"]
            )

        if dropped:
            logger.debug("Dropped ticker rows without a resolvable issuer | count=%s", dropped)
        logger.info(
            "Upserted tickers | candidates=%s inserted=%s dropped=%s",
            len(rows),
            inserted,
            dropped,
        )
        return TickerUpsertResult(inserted=inserted, dropped=dropped)
