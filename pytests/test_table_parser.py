from __future__ import annotations

import pytest

from crawler.errors import DecodeError, ParseError
from crawler.table import (
    IssuerRecord,
    TableState,
    TableStateMachine,
    extract_row,
    map_header,
    parse_issuer_table,
    walk_table,
)
from crawler.tokens import TokenStream, end_tag, start_tag, text
from pytests.common import anchor, listing_page

HEADER = ["#", "Название", "Тикер"]


def test_single_row_table_yields_one_record(alpha_page):
    records = parse_issuer_table(alpha_page)

    assert records == [
        IssuerRecord(display_name="Alpha Co", natural_key="ABC", ticker_symbol="ALPH")
    ]


def test_header_labels_map_to_their_ordinals_among_unknown_cells():
    stream = TokenStream.from_bytes(
        "<tr><th>№</th><th>Код</th><th>  ТИКЕР </th><th>Цена</th>"
        "<th><b>название</b></th><th>Объем</th></tr><tr><td>1</td></tr>"
    )

    assert map_header(stream) == {"ticker": 2, "name": 4}
    # The stream is left right after the header row.
    assert stream.next_token().is_start("tr")


def test_header_without_known_labels_maps_nothing():
    stream = TokenStream.from_bytes("<tr><th>Name</th><th>Symbol</th></tr>")
    assert map_header(stream) == {}


def test_header_cut_short_by_end_of_input_maps_nothing():
    stream = TokenStream.from_bytes("<tr><th>Название</th><th>Тикер")
    assert map_header(stream) == {}


def test_content_before_the_table_is_ignored():
    page = listing_page(
        HEADER,
        [["1", anchor("/x/ABC", "Alpha Co"), "ALPH"]],
        preamble='<div><a href="/bad%zz">menu</a><th>Тикер</th></div>',
    )

    assert [r.ticker_symbol for r in parse_issuer_table(page)] == ["ALPH"]


def test_columns_are_found_by_label_not_position():
    page = listing_page(
        ["Тикер", "Цена", "Название"],
        [["SBER", "250.1", anchor("/q/SBER/f/Sberbank", "Сбербанк")]],
    )

    assert parse_issuer_table(page) == [
        IssuerRecord(display_name="Сбербанк", natural_key="Sberbank", ticker_symbol="SBER")
    ]


def test_blank_and_whitespace_rows_are_skipped():
    page = listing_page(
        HEADER,
        [
            ["", anchor("/x/EMPTY", "Spacer"), "NOPE"],
            ["   ", anchor("/x/WS", "Whitespace"), "NOPE"],
            ["1", anchor("/x/ABC", "Alpha Co"), "ALPH"],
            ["2", anchor("/x/BCD", "Beta Co"), "BETA"],
        ],
    )

    records = parse_issuer_table(page)
    assert [r.natural_key for r in records] == ["ABC", "BCD"]


def test_repeated_header_row_inside_the_table_is_skipped():
    page = (
        "<table><tr><th>#</th><th>Название</th><th>Тикер</th></tr>"
        f"<tr><td>1</td><td>{anchor('/x/ABC', 'Alpha Co')}</td><td>ALPH</td></tr>"
        "<tr><th>#</th><th>Название</th><th>Тикер</th></tr>"
        f"<tr><td>2</td><td>{anchor('/x/BCD', 'Beta Co')}</td><td>BETA</td></tr>"
        "</table>"
    )

    assert [r.ticker_symbol for r in parse_issuer_table(page)] == ["ALPH", "BETA"]


def test_blank_row_with_bad_href_is_skipped_without_decoding():
    page = listing_page(HEADER, [[" ", anchor("/x/%zz", "Broken"), "X"]])
    assert parse_issuer_table(page) == []


def test_missing_cells_leave_fields_empty():
    page = listing_page(
        HEADER,
        [
            ["1", "No Link Co", "NOLK"],
            ["2", anchor("/x/SHORT", "Short Row")],
        ],
    )

    assert parse_issuer_table(page) == [
        IssuerRecord(display_name="No Link Co", natural_key="", ticker_symbol="NOLK"),
        IssuerRecord(display_name="Short Row", natural_key="SHORT", ticker_symbol=""),
    ]


def test_ticker_cell_captures_a_single_text():
    page = listing_page(HEADER, [["1", anchor("/x/ABC", "Alpha Co"), "<b> ALPH </b><i>pref</i>"]])

    assert parse_issuer_table(page)[0].ticker_symbol == "ALPH"


def test_name_cell_keeps_first_text_and_anchor_key():
    page = listing_page(
        HEADER,
        [["1", "\n  " + anchor("/x/Alpha%20Co", "Alpha Co") + " <small>ао</small>\n", "ALPH"]],
    )

    record = parse_issuer_table(page)[0]
    assert record.display_name == "Alpha Co"
    assert record.natural_key == "Alpha Co"


def test_unknown_labels_mean_no_rows():
    page = listing_page(["#", "Name", "Symbol"], [["1", anchor("/x/ABC", "Alpha"), "ALPH"]])
    assert parse_issuer_table(page) == []


def test_page_without_table_yields_nothing():
    assert parse_issuer_table(b"<html><body><p>maintenance</p></body></html>") == []


def test_end_of_input_keeps_completed_rows_only():
    page = listing_page(
        HEADER,
        [
            ["1", anchor("/x/ABC", "Alpha Co"), "ALPH"],
            ["2", anchor("/x/BCD", "Beta Co"), "BETA"],
            ["3", anchor("/x/CDE", "Gamma Co"), "GAMM"],
        ],
        close=False,
    )

    assert [r.natural_key for r in parse_issuer_table(page)] == ["ABC", "BCD"]


def test_rows_without_closing_tags_are_closed_by_the_next_row():
    page = (
        "<table><tr><th>#<th>Название<th>Тикер</tr>"
        f"<tr><td>1<td>{anchor('/x/ABC', 'Alpha Co')}<td>ALPH"
        f"<tr><td>2<td>{anchor('/x/BCD', 'Beta Co')}<td>BETA"
        "</table>"
    )

    assert [r.ticker_symbol for r in parse_issuer_table(page)] == ["ALPH", "BETA"]


def test_malformed_href_in_data_row_raises_decode_error():
    page = listing_page(HEADER, [["1", anchor("/x/%E0%A4%A", "Broken"), "BRKN"]])

    with pytest.raises(DecodeError):
        parse_issuer_table(page)


def test_only_the_first_table_is_read():
    second_table = (
        "<table><tr><th>Название</th><th>Тикер</th></tr>"
        "<tr><td><a href='/x/ZZZ'>Other</a></td><td>ZZZ</td></tr></table></body>"
    )
    page = listing_page(HEADER, [["1", anchor("/x/ABC", "Alpha Co"), "ALPH"]]).replace(
        b"</body>", second_table.encode("utf-8")
    )

    assert [r.natural_key for r in parse_issuer_table(page)] == ["ABC"]


def test_extract_row_reads_one_row():
    stream = TokenStream.from_bytes(
        f"<tr><td>7</td><td>{anchor('/x/ABC', 'Alpha Co')}</td><td>ALPH</td></tr>"
        "<tr><td>8</td></tr>"
    )

    record = extract_row({"name": 1, "ticker": 2}, stream)

    assert record == IssuerRecord("Alpha Co", "ABC", "ALPH")
    assert stream.next_token().is_start("tr")


def test_extract_row_returns_none_at_end_of_input():
    stream = TokenStream.from_bytes("<td>7</td><td>Alpha")
    assert extract_row({"name": 1}, stream) is None


def test_state_machine_walks_named_states():
    machine = TableStateMachine()
    tokens = [
        (start_tag("div"), TableState.SEEK_TABLE),
        (start_tag("table"), TableState.IN_HEADER_ROW),
        (start_tag("tr"), TableState.IN_HEADER_ROW),
        (start_tag("th"), TableState.IN_HEADER_ROW),
        (text("Название"), TableState.IN_HEADER_ROW),
        (end_tag("th"), TableState.IN_HEADER_ROW),
        (start_tag("th"), TableState.IN_HEADER_ROW),
        (text("Тикер"), TableState.IN_HEADER_ROW),
        (end_tag("th"), TableState.IN_HEADER_ROW),
        (end_tag("tr"), TableState.BETWEEN_ROWS),
        (start_tag("tr"), TableState.IN_DATA_ROW),
        (start_tag("td"), TableState.IN_NAME_CELL),
        (start_tag("a", href="/x/ABC"), TableState.IN_NAME_CELL),
        (text("Alpha Co"), TableState.IN_NAME_CELL),
        (end_tag("a"), TableState.IN_NAME_CELL),
        (end_tag("td"), TableState.IN_DATA_ROW),
        (start_tag("td"), TableState.IN_TICKER_CELL),
        (text("ALPH"), TableState.IN_DATA_ROW),
        (end_tag("td"), TableState.IN_DATA_ROW),
        (end_tag("tr"), TableState.BETWEEN_ROWS),
        (end_tag("table"), TableState.DONE),
        (start_tag("table"), TableState.DONE),
    ]

    for token, expected in tokens:
        assert machine.step(token) is expected, token

    assert machine.column_map == {"name": 0, "ticker": 1}
    assert machine.records == [IssuerRecord("Alpha Co", "ABC", "ALPH")]


def test_state_machine_skips_row_after_blank_first_cell():
    machine = TableStateMachine()
    machine.use_column_map({"name": 1, "ticker": 2})
    machine.begin_row()

    machine.step(start_tag("td"))
    machine.step(text("  "))
    machine.step(end_tag("td"))
    # Mapped cells of a blank row are not extracted.
    assert machine.step(start_tag("td")) is TableState.IN_DATA_ROW
    machine.step(start_tag("a", href="/x/%zz"))
    machine.step(text("Ghost"))
    assert machine.step(end_tag("tr")) is TableState.BETWEEN_ROWS

    assert machine.records == []
    assert machine.last_row == IssuerRecord()


def test_state_machine_stops_at_end_of_input_inside_header():
    machine = TableStateMachine()
    for token in TokenStream.from_bytes("<table><tr><th>Название</th>"):
        machine.step(token)

    assert machine.done
    assert machine.column_map == {}


def test_walk_table_over_synthetic_tokens():
    stream = TokenStream.from_tokens(
        [
            start_tag("table"),
            start_tag("tr"),
            start_tag("th"),
            text("тикер"),
            end_tag("th"),
            end_tag("tr"),
            start_tag("tr"),
            start_tag("td"),
            text("GAZP"),
            end_tag("td"),
            end_tag("tr"),
        ]
    )

    assert walk_table(stream) == [IssuerRecord(ticker_symbol="GAZP")]


def test_state_machine_rejects_row_tokens_without_an_open_row():
    machine = TableStateMachine()
    machine.state = TableState.IN_DATA_ROW

    with pytest.raises(ParseError):
        machine.step(text("stray"))
