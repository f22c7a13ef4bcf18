from __future__ import annotations

import csv
import hashlib
import io
import logging
import math
import numbers
import re
import unicodedata
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import pandas as pd

from core.errors import EmptyResultError, MalformedSheetError, UnsupportedFormatError
from core.filters import BONUS_RATE, OUT_OF_CIRCUIT, REVENUE_RATE
from core.models import UNASSIGNED_PROGRAMMER, NormalizedRow, OriginZone, RouteContract, ZoneBuilder

logger = logging.getLogger(__name__)

ACCEPTED_EXTENSIONS = (".xlsx", ".xls", ".csv")
HEADER_SEARCH_ROWS = 20

NORDESTE = "NORDESTE"
NORDESTE_ALIASES = {"PERNAMBUCO", "PERNAMBUCO / PARAIBA / ALAGOAS"}

# Brazilian federative unit codes as they appear in contract sheets.
LOCATION_NAMES = {
    "AC": "ACRE",
    "AL": "ALAGOAS",
    "AP": "AMAPA",
    "AM": "AMAZONAS",
    "BA": "BAHIA",
    "CE": "CEARA",
    "DF": "DISTRITO FEDERAL",
    "ES": "ESPIRITO SANTO",
    "GO": "GOIAS",
    "MA": "MARANHAO",
    "MT": "MATO GROSSO",
    "MS": "MATO GROSSO DO SUL",
    "MG": "MINAS GERAIS",
    "PA": "PARA",
    "PB": "PARAIBA",
    "PR": "PARANA",
    "PE": "PERNAMBUCO",
    "PI": "PIAUI",
    "RJ": "RIO DE JANEIRO",
    "RN": "RIO GRANDE DO NORTE",
    "RS": "RIO GRANDE DO SUL",
    "RO": "RONDONIA",
    "RR": "RORAIMA",
    "SC": "SANTA CATARINA",
    "SP": "SAO PAULO",
    "SE": "SERGIPE",
    "TO": "TOCANTINS",
}

_FLOAT_PREFIX = re.compile(r"[0-9]*\.?[0-9]+")


@dataclass(frozen=True)
class ColumnMap:
    circuit_id: int = 0
    origin: int = 1
    destination: int = 2
    programmer: int = 3
    contracted: int = 5
    realized: int = 7
    start_row: int = 1


DEFAULT_COLUMNS = ColumnMap()


@dataclass
class NormalizationResult:
    rows: List[NormalizedRow] = field(default_factory=list)
    valid_row_count: int = 0
    duplicate_row_count: int = 0


@dataclass(frozen=True)
class ImportResult:
    zones: List[OriginZone]
    valid_row_count: int
    duplicate_row_count: int
    columns: ColumnMap = DEFAULT_COLUMNS
    header_found: bool = False

    @property
    def route_count(self) -> int:
        return sum(len(z.routes) for z in self.zones)


CSV_DELIMITERS = (",", ";", "\t", "|")
CSV_SNIFF_LINES = HEADER_SEARCH_ROWS

_PLAIN_DECIMAL = re.compile(r"-?\d+\.\d+")


# ---------------- Decoding ----------------
def frame_to_rows(df: pd.DataFrame) -> List[List[object]]:
    if df.empty:
        return []
    obj = df.astype(object)
    return obj.where(pd.notna(obj), None).values.tolist()


def sniff_delimiter(lines: Sequence[str]) -> str:
    """Pick the delimiter found on the most sample lines, then the most often; defaults to ","."""
    best, best_score = CSV_DELIMITERS[0], (0, 0)
    for delim in CSV_DELIMITERS:
        score = (sum(1 for line in lines if delim in line), sum(line.count(delim) for line in lines))
        if score > best_score:
            best, best_score = delim, score
    return best


def _csv_token(value: object) -> object:
    # Plain decimals ("200.5") are numbers; everything else stays text for parse_volume.
    if isinstance(value, str) and _PLAIN_DECIMAL.fullmatch(value.strip()):
        return float(value)
    return value


def read_csv_grid(content: bytes) -> pd.DataFrame:
    text = content.decode("utf-8-sig")
    lines = text.splitlines()
    delim = sniff_delimiter(lines[:CSV_SNIFF_LINES])
    width = max((len(r) for r in csv.reader(lines, delimiter=delim)), default=0)
    if width == 0:
        return pd.DataFrame()
    raw = pd.read_csv(
        io.StringIO(text),
        header=None,
        names=list(range(width)),
        dtype=object,
        sep=delim,
        engine="python",
        skip_blank_lines=False,
    )
    return raw.apply(lambda col: col.map(_csv_token))


def decode_sheet(content: bytes, filename: str) -> List[List[object]]:
    """Read the first sheet of an xlsx/xls/csv file into a grid of loosely-typed cells."""
    suffix = Path(filename).suffix.lower()
    if suffix not in ACCEPTED_EXTENSIONS:
        raise UnsupportedFormatError(filename, ACCEPTED_EXTENSIONS)
    try:
        if suffix == ".csv":
            raw = read_csv_grid(content)
        else:
            engine = "openpyxl" if suffix == ".xlsx" else "xlrd"
            raw = pd.read_excel(io.BytesIO(content), sheet_name=0, header=None, engine=engine)
    except Exception as exc:
        raise MalformedSheetError(f"Unable to read '{filename}': {exc}") from exc
    return frame_to_rows(raw)


# ---------------- Cell helpers ----------------
def cell_at(row: Optional[Sequence[object]], idx: int) -> object:
    if not row or idx < 0 or idx >= len(row):
        return None
    return row[idx]


def cell_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def parse_volume(value: object) -> float:
    """Parse a volume cell; text uses pt-BR separators ("1.234,5")."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, numbers.Real):
        out = float(value)
        return 0.0 if math.isnan(out) else out
    if isinstance(value, str):
        clean = value.replace(".", "").replace(",", ".")
        clean = re.sub(r"[^0-9.]", "", clean)
        match = _FLOAT_PREFIX.match(clean)
        return float(match.group(0)) if match else 0.0
    return 0.0


def expand_location_name(text: str) -> str:
    key = text.strip().upper()
    if key in LOCATION_NAMES:
        return LOCATION_NAMES[key]
    if "/" not in key:
        return key
    parts = [p.strip() for p in key.split("/")]
    return " / ".join(LOCATION_NAMES.get(p, p) for p in parts)


# ---------------- Column mapping ----------------
def _first_index(cells: List[str], predicate: Callable[[str], bool]) -> Optional[int]:
    for idx, cell in enumerate(cells):
        if predicate(cell):
            return idx
    return None


def detect_columns(rows: Sequence[Sequence[object]], search_rows: int = HEADER_SEARCH_ROWS) -> Optional[ColumnMap]:
    """Return the column layout of the first header-like row, or None if none is found."""
    for idx, row in enumerate(rows[:search_rows]):
        if not row:
            continue
        cells = [cell_text(c).upper() for c in row]
        origin = _first_index(cells, lambda c: c == "ORIGEM")
        destination = _first_index(cells, lambda c: c == "DESTINO")
        if origin is None or destination is None:
            continue

        circuit = _first_index(cells, lambda c: "CIRCUITO" in c or c == "#" or "Nº" in c)
        contracted = _first_index(cells, lambda c: c in ("CONTRATO", "META"))
        programmer = _first_index(cells, lambda c: c == "PROGRAMADOR")
        realized = _first_index(cells, lambda c: c in ("REALIZADO", "REAL") or "EXECUTADO" in c)

        return ColumnMap(
            circuit_id=DEFAULT_COLUMNS.circuit_id if circuit is None else circuit,
            origin=origin,
            destination=destination,
            programmer=DEFAULT_COLUMNS.programmer if programmer is None else programmer,
            contracted=DEFAULT_COLUMNS.contracted if contracted is None else contracted,
            realized=DEFAULT_COLUMNS.realized if realized is None else realized,
            start_row=idx + 1,
        )
    return None


def map_columns(rows: Sequence[Sequence[object]], search_rows: int = HEADER_SEARCH_ROWS) -> Tuple[ColumnMap, bool]:
    detected = detect_columns(rows, search_rows=search_rows)
    if detected is None:
        logger.debug("No header row in the first %d rows; using default column layout", search_rows)
        return DEFAULT_COLUMNS, False
    return detected, True


# ---------------- Row normalization ----------------
def normalize_row(row: Sequence[object], columns: ColumnMap, seen_ids: Set[str]) -> Tuple[Optional[NormalizedRow], bool]:
    """Normalize one data row. Returns (row or None, was_duplicate).

    The circuit id is claimed in ``seen_ids`` before the field checks, so a later
    row reusing the id of a rejected row still counts as a duplicate.
    """
    circuit_id = cell_text(cell_at(row, columns.circuit_id))
    if not circuit_id:
        return None, False
    if circuit_id in seen_ids:
        return None, True
    seen_ids.add(circuit_id)

    origin = cell_text(cell_at(row, columns.origin)).upper()
    destination = cell_text(cell_at(row, columns.destination)).upper()
    if not origin or not destination or "TOTAL" in origin:
        return None, False

    programmer = cell_text(cell_at(row, columns.programmer)) or UNASSIGNED_PROGRAMMER

    return (
        NormalizedRow(
            circuit_id=circuit_id,
            origin=origin,
            destination=destination,
            programmer=programmer,
            contracted_volume=parse_volume(cell_at(row, columns.contracted)),
            realized_volume=parse_volume(cell_at(row, columns.realized)),
        ),
        False,
    )


def normalize_rows(rows: Sequence[Sequence[object]], columns: ColumnMap) -> NormalizationResult:
    result = NormalizationResult()
    seen_ids: Set[str] = set()
    for row in rows[columns.start_row :]:
        if not row:
            continue
        normalized, duplicate = normalize_row(row, columns, seen_ids)
        if duplicate:
            result.duplicate_row_count += 1
            continue
        if normalized is None:
            continue
        result.rows.append(normalized)
        result.valid_row_count += 1
    return result


# ---------------- Zone aggregation ----------------
def zone_key(origin: str) -> str:
    key = origin
    if OUT_OF_CIRCUIT in key:
        clean = key.replace(OUT_OF_CIRCUIT, "", 1).strip()
        if clean:
            key = clean
    if key in NORDESTE_ALIASES:
        key = NORDESTE
    return key


def zone_id(key: str, index: int) -> str:
    digest = hashlib.sha1(f"{key}:{index}".encode("utf-8")).hexdigest()[:4]
    return f"{key[:3].upper()}-{digest}"


def locale_sort_key(name: str) -> Tuple[str, str]:
    folded = "".join(c for c in unicodedata.normalize("NFKD", name) if not unicodedata.combining(c))
    return folded.casefold(), name


def aggregate_zones(rows: Iterable[NormalizedRow]) -> List[OriginZone]:
    builders: Dict[str, ZoneBuilder] = {}
    for row in rows:
        key = zone_key(row.origin)
        builder = builders.get(key)
        if builder is None:
            builder = builders[key] = ZoneBuilder(name=key, programmer=row.programmer)
        elif builder.programmer == UNASSIGNED_PROGRAMMER and row.programmer != UNASSIGNED_PROGRAMMER:
            builder.programmer = row.programmer

        builder.financial_revenue += row.realized_volume * REVENUE_RATE
        builder.financial_bonus += row.realized_volume * BONUS_RATE
        builder.routes.append(
            RouteContract(
                id=row.circuit_id,
                origin=expand_location_name(row.origin),
                destination=expand_location_name(row.destination),
                contracted_volume=row.contracted_volume,
                realized_volume=row.realized_volume,
            )
        )

    zones = [builder.build(zone_id(key, i)) for i, (key, builder) in enumerate(builders.items())]
    return sorted(zones, key=lambda z: locale_sort_key(z.name))


# ---------------- Entry points ----------------
def import_sheet(rows: Sequence[Sequence[object]]) -> ImportResult:
    columns, header_found = map_columns(rows)
    normalized = normalize_rows(rows, columns)
    if normalized.valid_row_count == 0:
        raise EmptyResultError(normalized.valid_row_count, normalized.duplicate_row_count)

    zones = aggregate_zones(normalized.rows)
    logger.info(
        "Imported %d rows into %d zones (%d duplicates ignored)",
        normalized.valid_row_count,
        len(zones),
        normalized.duplicate_row_count,
    )
    return ImportResult(
        zones=zones,
        valid_row_count=normalized.valid_row_count,
        duplicate_row_count=normalized.duplicate_row_count,
        columns=columns,
        header_found=header_found,
    )


def load_sheet(content: bytes, filename: str) -> ImportResult:
    rows = decode_sheet(content, filename)
    if not rows:
        raise EmptyResultError(0, 0)
    return import_sheet(rows)


def zones_frame(zones: Iterable[OriginZone]) -> pd.DataFrame:
    """Flatten zones into one row per route (used by exports and the analytics engine)."""
    records = []
    for position, zone in enumerate(zones):
        for route in zone.routes:
            records.append(
                {
                    "zone_position": position,
                    "zone_id": zone.id,
                    "zone_name": zone.name,
                    "programmer": zone.programmer,
                    "circuit_id": route.id,
                    "origin": route.origin,
                    "destination": route.destination,
                    "contracted_volume": float(route.contracted_volume),
                    "realized_volume": float(route.realized_volume),
                }
            )
    columns = [
        "zone_position",
        "zone_id",
        "zone_name",
        "programmer",
        "circuit_id",
        "origin",
        "destination",
        "contracted_volume",
        "realized_volume",
    ]
    return pd.DataFrame(records, columns=columns)
