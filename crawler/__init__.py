"""Issuer-list crawler.

Pipeline pieces, leaf-first:

- `crawler.tokens`: lazy markup event stream
- `crawler.keys`: natural key derivation from anchor hrefs
- `crawler.table`: table state machine (header mapping, row extraction)
- `crawler.fetcher`: single GET against the listing page
- `crawler.persist`: two-phase conflict-ignore persistence
"""

from crawler.errors import (  # noqa: F401
    ConfigError,
    CrawlerError,
    DecodeError,
    FetchError,
    ParseError,
    PersistError,
)
