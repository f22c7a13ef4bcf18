from core.data import aggregate_zones, expand_location_name, import_sheet, zone_id, zone_key
from core.filters import BONUS_RATE, REVENUE_RATE
from core.models import UNASSIGNED_PROGRAMMER, NormalizedRow


def _nrow(cid, origin, dest="RJ", contracted=100.0, realized=50.0, programmer=UNASSIGNED_PROGRAMMER):
    return NormalizedRow(cid, origin, dest, programmer, contracted, realized)


def test_zone_key_strips_out_of_circuit_prefix():
    assert zone_key("FORA DO CIRCUITO BAHIA") == "BAHIA"
    assert zone_key("FORA DO CIRCUITO") == "FORA DO CIRCUITO"
    assert zone_key("MINAS GERAIS") == "MINAS GERAIS"


def test_zone_key_merges_pernambuco_into_nordeste():
    assert zone_key("PERNAMBUCO") == "NORDESTE"
    assert zone_key("PERNAMBUCO / PARAIBA / ALAGOAS") == "NORDESTE"
    assert zone_key("FORA DO CIRCUITO PERNAMBUCO") == "NORDESTE"
    assert zone_key("PERNAMBUCO / PARAIBA") == "PERNAMBUCO / PARAIBA"


def test_pernambuco_variants_aggregate_into_one_zone():
    zones = aggregate_zones(
        [
            _nrow("C1", "PERNAMBUCO"),
            _nrow("C2", "PERNAMBUCO / PARAIBA / ALAGOAS"),
            _nrow("C3", "BAHIA"),
        ]
    )

    names = [z.name for z in zones]
    assert names == ["BAHIA", "NORDESTE"]
    nordeste = zones[1]
    assert [r.id for r in nordeste.routes] == ["C1", "C2"]
    assert nordeste.routes[0].origin == "PERNAMBUCO"


def test_programmer_first_real_value_wins():
    zones = aggregate_zones(
        [
            _nrow("C1", "SP"),
            _nrow("C2", "SP", programmer="Ana"),
            _nrow("C3", "SP", programmer="Bruno"),
        ]
    )

    assert zones[0].programmer == "Ana"


def test_financial_accumulators_follow_realized_volume():
    zones = aggregate_zones([_nrow("C1", "SP", realized=3), _nrow("C2", "SP", realized=2)])

    assert zones[0].financial_revenue == 5 * REVENUE_RATE
    assert zones[0].financial_bonus == 5 * BONUS_RATE


def test_zones_sorted_by_name_ignoring_accents_and_case():
    zones = aggregate_zones(
        [
            _nrow("C1", "SERGIPE"),
            _nrow("C2", "ÁGUA BOA"),
            _nrow("C3", "BAHIA"),
            _nrow("C4", "ACRE"),
        ]
    )

    assert [z.name for z in zones] == ["ACRE", "ÁGUA BOA", "BAHIA", "SERGIPE"]


def test_route_text_is_expanded_but_zone_keeps_raw_key():
    zones = aggregate_zones([_nrow("C1", "SP", dest="RJ / MG")])

    assert zones[0].name == "SP"
    assert zones[0].routes[0].origin == "SAO PAULO"
    assert zones[0].routes[0].destination == "RIO DE JANEIRO / MINAS GERAIS"


def test_expand_location_name_leaves_unknown_text():
    assert expand_location_name("FORA DO CIRCUITO") == "FORA DO CIRCUITO"
    assert expand_location_name(" sp ") == "SAO PAULO"


def test_zone_ids_are_deterministic():
    rows = [["CIRCUITO", "ORIGEM", "DESTINO"], ["C1", "SP", "RJ"], ["C2", "MG", "RJ"]]

    first = [z.id for z in import_sheet(rows).zones]
    second = [z.id for z in import_sheet(rows).zones]

    assert first == second
    assert zone_id("NORDESTE", 0).startswith("NOR-")
    assert len(zone_id("NORDESTE", 0)) == len("NOR-") + 4
