"""Lazy markup event stream.

Wraps the standard library `html.parser.HTMLParser` so callers can pull events
one at a time (start tag, end tag, text, end-of-input) instead of receiving
callbacks. Input is fed chunk by chunk only when the pending event queue runs
dry, so a large response body is never tokenized up front.
"""

from __future__ import annotations

import codecs
from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from html.parser import HTMLParser

from crawler.errors import ParseError
from logging_utils import get_logger

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


class TokenKind(str, Enum):
    START_TAG = "start_tag"
    END_TAG = "end_tag"
    TEXT = "text"
    EOF = "eof"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    tag: str = ""
    attrs: tuple[tuple[str, str], ...] = ()
    data: str = ""

    def attr(self, name: str) -> str | None:
        """Case-insensitive attribute lookup; None when absent."""

        wanted = name.lower()
        for key, value in self.attrs:
            if key.lower() == wanted:
                return value
        return None

    def is_start(self, tag: str) -> bool:
        return self.kind is TokenKind.START_TAG and self.tag == tag

    def is_end(self, tag: str) -> bool:
        return self.kind is TokenKind.END_TAG and self.tag == tag


EOF_TOKEN = Token(TokenKind.EOF)


def start_tag(tag: str, **attrs: str) -> Token:
    return Token(
        TokenKind.START_TAG,
        tag=tag.lower(),
        attrs=tuple((k.lower(), v) for k, v in attrs.items()),
    )


def end_tag(tag: str) -> Token:
    return Token(TokenKind.END_TAG, tag=tag.lower())


def text(data: str) -> Token:
    return Token(TokenKind.TEXT, data=data)


class _EventCollector(HTMLParser):
    """HTMLParser that queues events instead of acting on them."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.pending: deque[Token] = deque()

    def handle_starttag(self, tag, attrs):
        self.pending.append(
            Token(
                TokenKind.START_TAG,
                tag=tag.lower(),
                attrs=tuple((k.lower(), v or "") for k, v in attrs),
            )
        )

    def handle_endtag(self, tag):
        self.pending.append(end_tag(tag))

    def handle_data(self, data):
        # Text split across input chunks arrives in pieces; keep it whole.
        if self.pending and self.pending[-1].kind is TokenKind.TEXT:
            data = self.pending.pop().data + data
        self.pending.append(text(data))


class TokenStream:
    """Strictly ordered, pull-based sequence of markup events.

    Once the input is exhausted the stream returns `EOF` on every further pull.
    Iterating the stream yields events up to and including the first `EOF`.
    """

    def __init__(
        self, chunks: Iterable[bytes | str], *, encoding: str = "utf-8"
    ) -> None:
        self._chunks = iter(chunks)
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._parser = _EventCollector()
        self._exhausted = False

    @classmethod
    def from_bytes(
        cls,
        body: bytes | str,
        *,
        encoding: str = "utf-8",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> "TokenStream":
        chunks = (body[i : i + chunk_size] for i in range(0, len(body), chunk_size))
        return cls(chunks, encoding=encoding)

    @classmethod
    def from_tokens(cls, tokens: Iterable[Token]) -> "TokenStream":
        """Build a stream over already-tokenized events (used by tests)."""

        stream = cls(())
        stream._parser.pending.extend(tokens)
        stream._exhausted = True
        return stream

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            yield token
            if token.kind is TokenKind.EOF:
                return

    def next_token(self) -> Token:
        pending = self._parser.pending
        while not self._exhausted and (not pending or self._text_may_continue()):
            self._pull()
        if not pending:
            return EOF_TOKEN
        return pending.popleft()

    def _text_may_continue(self) -> bool:
        # A lone trailing text event may be completed by the next chunk.
        pending = self._parser.pending
        return len(pending) == 1 and pending[0].kind is TokenKind.TEXT

    def _pull(self) -> None:
        try:
            chunk = next(self._chunks)
        except StopIteration:
            self._exhausted = True
            self._feed(self._decoder.decode(b"", final=True), close=True)
            return
        except Exception as e:
            logger.error("Markup input failed | err=%s", e)
            raise ParseError(f"failed to read markup input: {e}") from e

        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._feed(chunk)

    def _feed(self, data: str, *, close: bool = False) -> None:
        try:
            if data:
                self._parser.feed(data)
            if close:
                self._parser.close()
        except Exception as e:
            logger.error("Markup tokenization failed | err=%s", e)
            raise ParseError(f"failed to tokenize markup: {e}") from e
