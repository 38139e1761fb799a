"""Environment-driven configuration.

Two pieces are needed at startup:

- `CrawlerConfig`: where the listing page lives and which environment we run in.
- `StoreConfig`: how to reach the relational store. It mirrors the JSON DB
  config file used by deployments (`url`, `user`, `poolSize`, TLS file paths),
  so the same file can be pointed to with `DB_CONFIG_PATH`.

Anything required but missing raises `ConfigError`, which is fatal at startup.
"""

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.engine import URL, make_url

from crawler.errors import ConfigError

DEV_ENVIRONMENT = "dev"

DEFAULT_DB_PATH = os.path.join(os.path.dirname(__file__), "data", "shares.db")
DEFAULT_DATABASE_URL = f"sqlite:///{DEFAULT_DB_PATH}"

POSTGRES_DRIVERNAME = "postgresql+psycopg2"


def env_bool(name: str, default: bool, env: Mapping[str, str] | None = None) -> bool:
    v = (os.environ if env is None else env).get(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True)
class CrawlerConfig:
    source_base_url: str
    environment: str = "prod"
    user_agent: str | None = None

    @property
    def is_dev(self) -> bool:
        return self.environment.strip().lower() == DEV_ENVIRONMENT


class StoreConfig(BaseModel):
    """Relational store settings (JSON keys match the deployment config file)."""

    url: str = DEFAULT_DATABASE_URL
    user: str | None = None
    password: str | None = None
    dbname: str | None = None
    sslmode: bool = False
    pool_size: int = Field(default=0, alias="poolSize")
    ca_cert_file_path: str | None = Field(default=None, alias="caCertFilePath")
    cert_file_path: str | None = Field(default=None, alias="certFilePath")
    key_file_path: str | None = Field(default=None, alias="keyFilePath")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def sqlalchemy_url(self) -> URL:
        """Resolve to a SQLAlchemy URL.

        A value with a scheme (``sqlite:///...``, ``postgresql://...``) is used
        as-is; a bare ``host[:port]`` address is combined with user, password
        and dbname into a PostgreSQL URL.
        """

        if "://" in self.url:
            return make_url(self.url)

        host, _, port = self.url.partition(":")
        return URL.create(
            POSTGRES_DRIVERNAME,
            username=self.user,
            password=self.password,
            host=host or None,
            port=int(port) if port else None,
            database=self.dbname,
        )


def load_crawler_config(env: Mapping[str, str] | None = None) -> CrawlerConfig:
    env = os.environ if env is None else env

    base_url = (env.get("SOURCE_BASE_URL") or "").strip()
    if not base_url:
        raise ConfigError("'SOURCE_BASE_URL' is required")

    return CrawlerConfig(
        source_base_url=base_url,
        environment=(env.get("ENVIRONMENT") or "prod").strip(),
        user_agent=(env.get("SOURCE_USER_AGENT") or "").strip() or None,
    )


def load_store_config(env: Mapping[str, str] | None = None) -> StoreConfig:
    """Load store settings from `DB_CONFIG_PATH` (JSON), `DATABASE_URL`, or defaults."""

    env = os.environ if env is None else env

    path = (env.get("DB_CONFIG_PATH") or "").strip()
    if path:
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            return StoreConfig.model_validate(raw)
        except (OSError, ValueError, ValidationError) as e:
            raise ConfigError(f"cannot load DB config from {path}: {e}") from e

    url = (env.get("DATABASE_URL") or "").strip()
    if url:
        return StoreConfig(url=url)

    return StoreConfig()
