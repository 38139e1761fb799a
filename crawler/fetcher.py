from __future__ import annotations

from dataclasses import dataclass

import requests

from crawler.errors import FetchError
from crawler.table import IssuerRecord, parse_issuer_table
from logging_utils import get_logger
from settings import SETTINGS

logger = get_logger(__name__)

ISSUER_LIST_PATH = "/q/shares/"


@dataclass(frozen=True)
class SourceResponse:
    url: str
    status_code: int
    content: bytes
    content_type: str | None

    def text(self, encoding: str | None = None) -> str:
        if encoding is not None:
            return self.content.decode(encoding, errors="replace")
        return self.content.decode("utf-8", errors="replace")


def _safe_preview_bytes(data: bytes | None, *, limit: int = 500) -> str:
    """Best-effort, log-safe preview of a response body."""

    if not data:
        return ""
    return data[:limit].decode("utf-8", errors="replace")


def _source_user_agent() -> str:
    ua = SETTINGS.get("SOURCE_USER_AGENT")
    if isinstance(ua, str) and ua.strip():
        return ua.strip()
    return "shares-monitor (contact: unset)"


def issuer_list_url(base_url: str) -> str:
    return f"{base_url.rstrip('/')}{ISSUER_LIST_PATH}"


class SourceFetcher:
    """Single-shot GET of the exchange listing page.

    No retries and no timeout unless `timeout_seconds` is given; a hung
    request blocks the caller.
    """

    def __init__(
        self,
        base_url: str,
        *,
        session: requests.Session | None = None,
        user_agent: str | None = None,
        timeout_seconds: float | None = None,
        encoding: str = "utf-8",
    ) -> None:
        self.base_url = base_url
        self.session = session or requests.Session()
        self.user_agent = user_agent
        self.timeout_seconds = timeout_seconds
        self.encoding = encoding

    @property
    def url(self) -> str:
        return issuer_list_url(self.base_url)

    def fetch(self) -> SourceResponse:
        url = self.url
        headers = {
            "User-Agent": self.user_agent or _source_user_agent(),
            "Accept": "text/html,application/xhtml+xml",
        }

        logger.info("Fetching HTML of %s ...", url)
        try:
            resp = self.session.get(url, headers=headers, timeout=self.timeout_seconds)
        except requests.RequestException as e:
            logger.error("Source request failed | url=%s err=%s", url, e)
            raise FetchError(f"request to '{url}' failed: {e}", url=url) from e

        if not 200 <= resp.status_code < 300:
            logger.error(
                "Source non-2xx response | status=%s url=%s content_type=%s body_preview=%s",
                resp.status_code,
                url,
                resp.headers.get("Content-Type"),
                _safe_preview_bytes(getattr(resp, "content", b"")),
            )
            raise FetchError(
                f"request to '{url}' failed status={resp.status_code}",
                url=url,
                status_code=resp.status_code,
            )

        return SourceResponse(
            url=url,
            status_code=resp.status_code,
            content=resp.content,
            content_type=resp.headers.get("Content-Type"),
        )

    def fetch_issuer_list(self) -> list[IssuerRecord]:
        """Fetch the listing page and extract its issuer rows."""

        response = self.fetch()
        return parse_issuer_table(response.content, encoding=self.encoding)
