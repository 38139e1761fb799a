from __future__ import annotations


class CrawlerError(RuntimeError):
    """Base class for every failure the issuer-list pipeline surfaces."""


class ConfigError(CrawlerError):
    """Required external configuration is missing or unusable."""


class FetchError(CrawlerError):
    def __init__(self, message: str, *, url: str, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ParseError(CrawlerError):
    """The markup token stream failed for a reason other than end-of-input."""


class DecodeError(CrawlerError):
    def __init__(self, message: str, *, raw: str):
        super().__init__(message)
        self.raw = raw


class PersistError(CrawlerError):
    def __init__(self, message: str, *, phase: str):
        super().__init__(message)
        self.phase = phase
