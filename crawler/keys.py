from __future__ import annotations

import re
from urllib.parse import unquote_plus

from crawler.errors import DecodeError
from logging_utils import get_logger

logger = get_logger(__name__)

# A '%' not followed by two hex digits.
_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def normalize_key(raw_href: str) -> str:
    """Derive an issuer natural key from an anchor href.

    The href is query-unescaped ('%XX' sequences, '+' as space); the key is the
    last path segment of the result, or the whole result when it has no '/'.

    Raises:
        DecodeError: if `raw_href` is not a valid percent-encoded string.
    """

    if _BAD_ESCAPE_RE.search(raw_href):
        logger.warning("Malformed percent-encoding in href | href=%r", raw_href)
        raise DecodeError(f"invalid percent-encoding: {raw_href!r}", raw=raw_href)

    try:
        decoded = unquote_plus(raw_href, encoding="utf-8", errors="strict")
    except UnicodeDecodeError as e:
        logger.warning("Href does not decode as UTF-8 | href=%r", raw_href)
        raise DecodeError(f"invalid UTF-8 escape sequence: {raw_href!r}", raw=raw_href) from e

    idx = decoded.rfind("/")
    if idx >= 0:
        return decoded[idx + 1 :]
    return decoded
