"""Issuer table state machine.

The listing page carries one table: a header row of `<th>` cells followed by
data rows of `<td>` cells. Columns are identified by their header label, not by
position, so the machine runs in two stages:

1. Header mapping (`SEEK_TABLE` -> `IN_HEADER_ROW`): find `<table>`, count
   header cells, and record which ordinal carries each known label.
2. Row extraction (`BETWEEN_ROWS` <-> `IN_DATA_ROW` / `IN_NAME_CELL` /
   `IN_TICKER_CELL`): count data cells per row and pull the display name,
   natural key and ticker out of the mapped cells.

A row counts as data only if the first text of its first cell is non-blank;
spacer rows and repeated header rows are dropped without extraction.
`</table>` or end-of-input moves the machine to `DONE`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from crawler.errors import ParseError
from crawler.keys import normalize_key
from crawler.tokens import Token, TokenKind, TokenStream
from logging_utils import get_logger

logger = get_logger(__name__)

NAME_FIELD = "name"
TICKER_FIELD = "ticker"

# Header labels as published on the exchange page (compared trimmed + case-folded).
HEADER_LABELS: dict[str, str] = {
    "название": NAME_FIELD,
    "тикер": TICKER_FIELD,
}

TABLE = "table"
TR = "tr"
TH = "th"
TD = "td"
A = "a"


class TableState(str, Enum):
    SEEK_TABLE = "seek_table"
    IN_HEADER_ROW = "in_header_row"
    BETWEEN_ROWS = "between_rows"
    IN_DATA_ROW = "in_data_row"
    IN_NAME_CELL = "in_name_cell"
    IN_TICKER_CELL = "in_ticker_cell"
    DONE = "done"


ROW_STATES = frozenset(
    {TableState.IN_DATA_ROW, TableState.IN_NAME_CELL, TableState.IN_TICKER_CELL}
)


@dataclass(frozen=True)
class IssuerRecord:
    display_name: str = ""
    natural_key: str = ""
    ticker_symbol: str = ""


@dataclass
class _RowDraft:
    cell_index: int = -1
    in_cell: bool = False
    # Set once the first text event of cell 0 has been seen.
    checked: bool = False
    is_data: bool = False
    display_name: str = ""
    natural_key: str = ""
    ticker_symbol: str = ""

    @property
    def skipping(self) -> bool:
        if self.cell_index == 0:
            return self.checked and not self.is_data
        return not (self.checked and self.is_data)

    def to_record(self) -> IssuerRecord:
        return IssuerRecord(
            display_name=self.display_name,
            natural_key=self.natural_key,
            ticker_symbol=self.ticker_symbol,
        )


class TableStateMachine:
    """Explicit FSM over markup tokens; feed it with `step()`."""

    def __init__(self, *, labels: dict[str, str] | None = None) -> None:
        self.labels = dict(HEADER_LABELS if labels is None else labels)
        self.state = TableState.SEEK_TABLE
        self.column_map: dict[str, int] = {}
        self.records: list[IssuerRecord] = []
        # Last finished row, data or not.
        self.last_row: IssuerRecord | None = None

        self._header_index = -1
        self._in_header_cell = False
        self._fields_by_ordinal: dict[int, str] = {}
        self._row: _RowDraft | None = None

        self._handlers: dict[TableState, Callable[[Token], TableState]] = {
            TableState.SEEK_TABLE: self._on_seek_table,
            TableState.IN_HEADER_ROW: self._on_header_row,
            TableState.BETWEEN_ROWS: self._on_between_rows,
            TableState.IN_DATA_ROW: self._on_row,
            TableState.IN_NAME_CELL: self._on_row,
            TableState.IN_TICKER_CELL: self._on_row,
            TableState.DONE: lambda _token: TableState.DONE,
        }

    @property
    def done(self) -> bool:
        return self.state is TableState.DONE

    def step(self, token: Token) -> TableState:
        self.state = self._handlers[self.state](token)
        return self.state

    def use_column_map(self, column_map: dict[str, int]) -> None:
        self.column_map = dict(column_map)
        self._fields_by_ordinal = {v: k for k, v in self.column_map.items()}

    def begin_row(self) -> None:
        self._row = _RowDraft()
        self.state = TableState.IN_DATA_ROW

    # --- header mapping ---

    def _on_seek_table(self, token: Token) -> TableState:
        if token.kind is TokenKind.EOF:
            return TableState.DONE
        if token.is_start(TABLE):
            self._header_index = -1
            self._in_header_cell = False
            self.column_map = {}
            return TableState.IN_HEADER_ROW
        return TableState.SEEK_TABLE

    def _on_header_row(self, token: Token) -> TableState:
        kind = token.kind
        if kind is TokenKind.EOF:
            # No more structure: report nothing rather than a half-read header.
            self.column_map = {}
            return TableState.DONE
        if kind is TokenKind.START_TAG and token.tag == TH:
            self._header_index += 1
            self._in_header_cell = True
        elif kind is TokenKind.END_TAG and token.tag == TH:
            self._in_header_cell = False
        elif kind is TokenKind.TEXT and self._in_header_cell:
            field = self.labels.get(token.data.strip().casefold())
            if field is not None:
                self.column_map[field] = self._header_index
        elif token.is_end(TR):
            return self._header_finished()
        elif token.is_end(TABLE):
            self._header_finished()
            return TableState.DONE
        return TableState.IN_HEADER_ROW

    def _header_finished(self) -> TableState:
        self.use_column_map(self.column_map)
        logger.debug("Header column map | columns=%s", self.column_map)
        if not self.column_map:
            logger.warning("No known header labels found; table contributes no rows")
            return TableState.DONE
        return TableState.BETWEEN_ROWS

    # --- row extraction ---

    def _on_between_rows(self, token: Token) -> TableState:
        if token.kind is TokenKind.EOF or token.is_end(TABLE):
            return TableState.DONE
        if token.is_start(TR):
            self._row = _RowDraft()
            return TableState.IN_DATA_ROW
        return TableState.BETWEEN_ROWS

    def _on_row(self, token: Token) -> TableState:
        row = self._row
        if row is None:
            raise ParseError(f"row token {token.kind.value!r} outside of a table row")
        kind = token.kind

        if kind is TokenKind.EOF:
            # An unterminated row is not reported.
            self._row = None
            return TableState.DONE

        if kind is TokenKind.START_TAG:
            if token.tag == TR:
                self._finish_row()
                self._row = _RowDraft()
                return TableState.IN_DATA_ROW
            if token.tag == TD:
                return self._enter_cell(row)
            if token.tag == A and self.state is TableState.IN_NAME_CELL:
                href = token.attr("href")
                if href is not None and not row.skipping:
                    row.natural_key = normalize_key(href)
            return self.state

        if kind is TokenKind.END_TAG:
            if token.tag == TR:
                self._finish_row()
                return TableState.BETWEEN_ROWS
            if token.tag == TABLE:
                self._finish_row()
                return TableState.DONE
            if token.tag == TD:
                row.in_cell = False
                return TableState.IN_DATA_ROW
            return self.state

        # Text.
        value = token.data.strip()
        if row.cell_index == 0 and row.in_cell and not row.checked:
            row.checked = True
            row.is_data = bool(value)
        if row.skipping or not value:
            return self.state
        if self.state is TableState.IN_NAME_CELL and not row.display_name:
            row.display_name = value
        elif self.state is TableState.IN_TICKER_CELL and not row.ticker_symbol:
            row.ticker_symbol = value
            # Single capture; the rest of the cell is ignored.
            return TableState.IN_DATA_ROW
        return self.state

    def _enter_cell(self, row: _RowDraft) -> TableState:
        row.cell_index += 1
        row.in_cell = True
        if row.skipping and row.cell_index > 0:
            return TableState.IN_DATA_ROW
        field = self._fields_by_ordinal.get(row.cell_index)
        if field == NAME_FIELD:
            return TableState.IN_NAME_CELL
        if field == TICKER_FIELD:
            return TableState.IN_TICKER_CELL
        return TableState.IN_DATA_ROW

    def _finish_row(self) -> None:
        row = self._row
        self._row = None
        if row is None:
            return
        record = row.to_record()
        self.last_row = record
        if row.checked and row.is_data:
            self.records.append(record)


def map_header(
    stream: TokenStream, *, labels: dict[str, str] | None = None
) -> dict[str, int]:
    """Read a header row from a stream positioned just after `<table>`.

    Returns the column map; empty when no known label was found or the input
    ended before the row closed.
    """

    machine = TableStateMachine(labels=labels)
    machine.state = TableState.IN_HEADER_ROW
    while machine.state is TableState.IN_HEADER_ROW:
        machine.step(stream.next_token())
    return machine.column_map


def extract_row(column_map: dict[str, int], stream: TokenStream) -> IssuerRecord | None:
    """Extract one row from a stream positioned at the start of that row.

    The row's own `<tr>` may or may not still be in the stream. Returns None
    when the input ends before the row closes. A row whose first cell is blank
    comes back with empty fields.
    """

    machine = TableStateMachine()
    machine.use_column_map(column_map)
    machine.begin_row()

    first = stream.next_token()
    if not first.is_start(TR):
        machine.step(first)
    while machine.state in ROW_STATES and machine.last_row is None:
        machine.step(stream.next_token())
    return machine.last_row


def walk_table(
    stream: TokenStream, *, labels: dict[str, str] | None = None
) -> list[IssuerRecord]:
    """Locate the issuer table and return its data rows in document order."""

    machine = TableStateMachine(labels=labels)
    while not machine.done:
        machine.step(stream.next_token())

    logger.info(
        "Parsed issuer table | rows=%s columns=%s",
        len(machine.records),
        machine.column_map,
    )
    return machine.records


def parse_issuer_table(body: bytes | str, *, encoding: str = "utf-8") -> list[IssuerRecord]:
    return walk_table(TokenStream.from_bytes(body, encoding=encoding))
