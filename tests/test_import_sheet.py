import pytest

from core.data import (
    DEFAULT_COLUMNS,
    import_sheet,
    normalize_row,
    normalize_rows,
    parse_volume,
)
from core.errors import EmptyResultError
from core.models import UNASSIGNED_PROGRAMMER

HEADER = ["CIRCUITO", "ORIGEM", "DESTINO", "PROGRAMADOR", "", "META", "", "REALIZADO"]


def _row(cid, origin, dest, meta, realized, programmer=None):
    return [cid, origin, dest, programmer, None, meta, None, realized]


@pytest.mark.parametrize(
    "value, expected",
    [
        (1500, 1500.0),
        (12.5, 12.5),
        ("1.234", 1234.0),
        ("1.234,5", 1234.5),
        ("R$ 2.000,75", 2000.75),
        ("  42 ", 42.0),
        ("abc", 0.0),
        ("", 0.0),
        (None, 0.0),
        (float("nan"), 0.0),
        (True, 0.0),
    ],
)
def test_parse_volume(value, expected):
    assert parse_volume(value) == expected


def test_parse_volume_keeps_leading_number_of_ambiguous_text():
    assert parse_volume("1,2,3") == 1.2


def test_normalize_row_trims_and_uppercases():
    seen = set()
    row, duplicate = normalize_row([" C9 ", " sp ", "rj", "  Maria  ", None, "10", None, 4], DEFAULT_COLUMNS, seen)

    assert duplicate is False
    assert row.circuit_id == "C9"
    assert row.origin == "SP"
    assert row.destination == "RJ"
    assert row.programmer == "Maria"
    assert row.contracted_volume == 10.0
    assert row.realized_volume == 4.0
    assert seen == {"C9"}


def test_normalize_row_defaults_programmer_to_sentinel():
    row, _ = normalize_row(_row("C1", "SP", "RJ", 1, 1, programmer="   "), DEFAULT_COLUMNS, set())

    assert row.programmer == UNASSIGNED_PROGRAMMER


def test_normalize_row_handles_short_rows():
    row, duplicate = normalize_row(["C1", "SP", "RJ"], DEFAULT_COLUMNS, set())

    assert duplicate is False
    assert row.contracted_volume == 0.0
    assert row.realized_volume == 0.0
    assert row.programmer == UNASSIGNED_PROGRAMMER


def test_normalize_rows_skips_totals_and_missing_fields():
    rows = [
        HEADER,
        _row("C1", "SP", "RJ", 100, 50),
        _row(None, "SP", "RJ", 100, 50),
        _row("C2", "", "RJ", 100, 50),
        _row("C3", "SP", None, 100, 50),
        _row("C4", "TOTAL GERAL", "-", 1000, 900),
        _row("C5", "MG", "BA", 80, 20),
    ]

    result = normalize_rows(rows, DEFAULT_COLUMNS)

    assert [r.circuit_id for r in result.rows] == ["C1", "C5"]
    assert result.valid_row_count == 2
    assert result.duplicate_row_count == 0


def test_numeric_circuit_ids_are_rendered_without_decimal_suffix():
    result = normalize_rows([HEADER, _row(101.0, "SP", "RJ", 1, 1)], DEFAULT_COLUMNS)

    assert result.rows[0].circuit_id == "101"


def test_rejected_row_still_claims_its_circuit_id():
    rows = [
        HEADER,
        _row("C1", "", "RJ", 100, 50),
        _row("C1", "SP", "RJ", 100, 50),
        _row("C2", "SP", "RJ", 100, 50),
    ]

    result = normalize_rows(rows, DEFAULT_COLUMNS)

    assert [r.circuit_id for r in result.rows] == ["C2"]
    assert result.duplicate_row_count == 1


def test_import_sheet_scenario_keeps_first_seen_duplicate():
    rows = [
        HEADER,
        _row("C1", "SP", "RJ", 200, 180),
        _row("C1", "SP", "RJ", 200, 999),
        _row("C2", "SP", "RJ", 100, 10),
    ]

    result = import_sheet(rows)

    assert result.header_found is True
    assert result.valid_row_count == 2
    assert result.duplicate_row_count == 1
    assert [z.name for z in result.zones] == ["SP"]
    zone = result.zones[0]
    assert [r.id for r in zone.routes] == ["C1", "C2"]
    assert zone.routes[0].realized_volume == 180
    assert result.route_count == 2


def test_duplicate_count_matches_repeated_occurrences():
    rows = [HEADER]
    rows += [_row("A", "SP", "RJ", 10, 5)] * 4
    rows += [_row("B", "SP", "RJ", 10, 5)] * 3
    rows += [_row("C", "SP", "RJ", 10, 5)]

    result = import_sheet(rows)

    ids = [r.id for z in result.zones for r in z.routes]
    assert sorted(ids) == ["A", "B", "C"]
    assert result.duplicate_row_count == (4 - 1) + (3 - 1)


def test_import_sheet_without_header_uses_default_layout():
    rows = [
        ["anything", "at", "all"],
        _row("C1", "SP", "RJ", 10, 5),
    ]

    result = import_sheet(rows)

    assert result.header_found is False
    assert result.valid_row_count == 1


def test_header_only_sheet_raises_empty_result():
    with pytest.raises(EmptyResultError) as excinfo:
        import_sheet([HEADER])

    assert excinfo.value.valid_row_count == 0
    assert excinfo.value.duplicate_row_count == 0


def test_all_duplicates_or_totals_raise_with_counts():
    rows = [
        HEADER,
        _row("C1", "TOTAL", "RJ", 1, 1),
        _row("C1", "SP", "RJ", 1, 1),
    ]

    with pytest.raises(EmptyResultError) as excinfo:
        import_sheet(rows)

    assert excinfo.value.duplicate_row_count == 1
