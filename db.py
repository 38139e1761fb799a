from __future__ import annotations

import os
import time
from dataclasses import dataclass

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from config import DEV_ENVIRONMENT, StoreConfig
from crawler.errors import ConfigError
from logging_utils import get_logger

logger = get_logger(__name__)

Base = declarative_base()

MIN_POOL_SIZE = 10
POOL_SIZE_PER_CPU = 20


def _set_sqlite_pragmas(dbapi_connection, connection_record):
    """Configure SQLite for better concurrent read/write behavior."""
    cursor = dbapi_connection.cursor()
    # Wait for locks instead of failing immediately.
    cursor.execute("PRAGMA busy_timeout=5000")
    # Better concurrency (readers not blocked by writers).
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


@dataclass(frozen=True)
class Store:
    """Handle to the relational store: engine (connection pool) + session factory."""

    engine: Engine
    session_factory: sessionmaker

    def session(self) -> Session:
        return self.session_factory()

    def dispose(self) -> None:
        self.engine.dispose()


def resolve_pool_size(configured: int, cpu_count: int | None = None) -> int:
    """Keep an explicit pool size of 10 or more; otherwise size by CPU count."""

    if configured >= MIN_POOL_SIZE:
        return configured
    cpus = cpu_count if cpu_count is not None else os.cpu_count()
    return max(cpus or 1, 1) * POOL_SIZE_PER_CPU


def tls_connect_args(config: StoreConfig) -> dict[str, str]:
    """libpq TLS settings for `sslmode` stores; all three files must exist."""

    paths = {
        "sslrootcert": config.ca_cert_file_path,
        "sslcert": config.cert_file_path,
        "sslkey": config.key_file_path,
    }
    for key, path in paths.items():
        if not path or not os.path.isfile(path):
            raise ConfigError(f"sslmode requires a readable {key} file (got {path!r})")

    return {"sslmode": "verify-ca", **paths}


def install_query_logging(engine: Engine) -> None:
    """Log every statement with its duration at DEBUG (dev environments only)."""

    @event.listens_for(engine, "before_cursor_execute")
    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        started = conn.info["query_start_time"].pop()
        logger.debug("%.3fs %s", time.perf_counter() - started, statement)


def _ensure_sqlite_dir(url: URL) -> None:
    if url.database and url.database != ":memory:":
        parent = os.path.dirname(os.path.abspath(url.database))
        os.makedirs(parent, exist_ok=True)


def create_store(config: StoreConfig, *, environment: str = "") -> Store:
    url = config.sqlalchemy_url()

    if url.get_backend_name() == "sqlite":
        _ensure_sqlite_dir(url)
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
            pool_pre_ping=True,
        )
        event.listen(engine, "connect", _set_sqlite_pragmas)
        logger.info("connecting to %s", url.render_as_string(hide_password=True))
    else:
        pool_size = resolve_pool_size(config.pool_size)
        connect_args = tls_connect_args(config) if config.sslmode else {}
        logger.info(
            "connecting to %s, db %s, user %s, ssl %s, poolSize %s",
            url.host,
            url.database,
            url.username,
            config.sslmode,
            pool_size,
        )
        engine = create_engine(
            url,
            pool_size=pool_size,
            pool_pre_ping=True,
            connect_args=connect_args,
        )

    if environment.strip().lower() == DEV_ENVIRONMENT:
        install_query_logging(engine)

    return Store(
        engine=engine,
        session_factory=sessionmaker(autocommit=False, autoflush=False, bind=engine),
    )


def init_db(store: Store) -> None:
    """Create missing tables (schema migrations are managed elsewhere)."""

    import models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(bind=store.engine)
