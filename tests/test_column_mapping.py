from core.data import DEFAULT_COLUMNS, ColumnMap, detect_columns, map_columns


def test_detect_columns_reads_named_headers():
    rows = [
        ["Relatório de contratos", None, None],
        [],
        ["Nº Circuito", "Origem", "Destino", "Meta", "Programador", "Realizado"],
        ["C1", "SP", "RJ", 200, "Ana", 180],
    ]

    columns = detect_columns(rows)

    assert columns == ColumnMap(
        circuit_id=0, origin=1, destination=2, programmer=4, contracted=3, realized=5, start_row=3
    )


def test_detect_columns_falls_back_per_field_when_header_is_partial():
    rows = [["x", "ORIGEM", "DESTINO"]]

    columns = detect_columns(rows)

    assert columns is not None
    assert columns.origin == 1
    assert columns.destination == 2
    assert columns.circuit_id == DEFAULT_COLUMNS.circuit_id
    assert columns.contracted == DEFAULT_COLUMNS.contracted
    assert columns.programmer == DEFAULT_COLUMNS.programmer
    assert columns.realized == DEFAULT_COLUMNS.realized
    assert columns.start_row == 1


def test_detect_columns_accepts_hash_and_executado_aliases():
    rows = [[" destino ", "#", " origem", "CONTRATO", "VOL. EXECUTADO"]]

    columns = detect_columns(rows)

    assert columns.circuit_id == 1
    assert columns.origin == 2
    assert columns.destination == 0
    assert columns.contracted == 3
    assert columns.realized == 4


def test_detect_columns_uses_first_qualifying_row_only():
    rows = [
        ["CIRCUITO", "ORIGEM", "DESTINO", "META"],
        ["CIRCUITO", "DESTINO", "ORIGEM", "REAL"],
    ]

    columns = detect_columns(rows)

    assert columns.origin == 1
    assert columns.start_row == 1


def test_detect_columns_ignores_rows_beyond_search_window():
    rows = [["filler"]] * 20 + [["CIRCUITO", "ORIGEM", "DESTINO"]]

    assert detect_columns(rows) is None


def test_map_columns_falls_back_to_defaults():
    rows = [["A", "B", "C"], ["C1", "SP", "RJ"]]

    columns, header_found = map_columns(rows)

    assert header_found is False
    assert columns == DEFAULT_COLUMNS
    assert columns.start_row == 1
