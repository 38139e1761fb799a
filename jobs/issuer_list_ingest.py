"""Refresh the issuer list from the exchange listing page.

Fetch -> parse -> persist, synchronously, once per invocation:

1. GET `{SOURCE_BASE_URL}/q/shares/` and extract issuer rows from its table.
2. Insert issuers not seen before (by natural key).
3. Insert tickers for every row whose issuer now resolves.

Any failure aborts the run; a fetch failure happens before any store write.
Re-running is safe: both inserts ignore rows that already exist.

Usage:
    python jobs/issuer_list_ingest.py --base-url https://exchange.example
"""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterable
from pathlib import Path

# Allow running this file directly (e.g. `python jobs/issuer_list_ingest.py`) by
# ensuring the project root is importable.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from config import load_crawler_config, load_store_config
from crawler.errors import ConfigError, CrawlerError
from crawler.fetcher import SourceFetcher
from crawler.persist import IssuerPersister
from crawler.table import IssuerRecord
from db import Store, create_store, init_db
from logging_utils import configure_app_logging, get_logger
from support.source_ingest_base import IngestRunResult, SourceIngestBase

logger = get_logger(__name__)


def issuer_entries(records: Iterable[IssuerRecord]) -> dict[str, str]:
    """Natural key -> display name for every record that carries a key.

    When a key repeats, the last row wins.
    """

    return {r.natural_key: r.display_name for r in records if r.natural_key}


class IssuerListIngestJob(SourceIngestBase):
    source_name = "issuer_list"

    def __init__(
        self,
        *,
        store: Store,
        source_base_url: str | None = None,
        fetcher: SourceFetcher | None = None,
        persister: IssuerPersister | None = None,
        user_agent: str | None = None,
    ) -> None:
        super().__init__(store=store)
        if fetcher is None:
            if not source_base_url:
                raise ConfigError("'source_base_url' param required")
            fetcher = SourceFetcher(source_base_url, user_agent=user_agent)
        self.fetcher = fetcher
        self.persister = persister or IssuerPersister(store)

    def run(self) -> IngestRunResult:
        records = self.fetcher.fetch_issuer_list()

        inserted_issuers = self.persister.upsert_issuers(issuer_entries(records))
        tickers = self.persister.upsert_tickers(records)

        result = IngestRunResult(
            fetched_records=len(records),
            inserted_issuers=inserted_issuers,
            inserted_tickers=tickers.inserted,
            dropped_tickers=tickers.dropped,
        )
        logger.info(
            "Issuer list refreshed | source=%s records=%s issuers_inserted=%s tickers_inserted=%s tickers_dropped=%s",
            self.source_name,
            result.fetched_records,
            result.inserted_issuers,
            result.inserted_tickers,
            result.dropped_tickers,
        )
        return result


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Fetch the exchange issuer list and upsert issuers/tickers"
    )
    p.add_argument(
        "--base-url",
        default=None,
        help="Source base URL (defaults to SOURCE_BASE_URL)",
    )
    p.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL for this run (e.g. DEBUG, INFO, WARNING)",
    )
    p.add_argument(
        "--init-db",
        action="store_true",
        help="Create missing tables before running",
    )
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    if args.log_level:
        configure_app_logging(args.log_level)

    env = None
    if args.base_url:
        env = {**os.environ, "SOURCE_BASE_URL": args.base_url}

    try:
        crawler_config = load_crawler_config(env)
        store = create_store(load_store_config(), environment=crawler_config.environment)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 2

    try:
        if args.init_db:
            init_db(store)
        IssuerListIngestJob(
            store=store,
            source_base_url=crawler_config.source_base_url,
            user_agent=crawler_config.user_agent,
        ).run()
    except CrawlerError as e:
        logger.error("Issuer list refresh failed | kind=%s err=%s", type(e).__name__, e)
        return 1
    finally:
        store.dispose()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
