"""
CSV import / export of routes.

Import works on loosely structured spreadsheets: the header row is
optional and the base / stop columns are guessed from header keywords
and from what the first data row looks like.  Only the first data row is
imported.
"""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from .compliance import Geocoder
from .entities import GeocodingError, GeoPoint, RouteResult, Stop

HEADER_HINTS = ("base", "location", "stop", "address", "destination")

ADDRESS_KEYWORDS = (
    "address", "location", "city", "suburb", "town", "place", "destination",
    "stop", "waypoint", "delivery", "pickup", "drop", "site", "venue",
    "base", "origin", "start", "depot", "warehouse", "facility", "street",
    "road", "avenue", "drive", "state", "postcode", "postal", "zip",
)

BASE_KEYWORDS = ("base", "origin", "start", "depot", "warehouse", "facility", "home")

_ADDRESS_PATTERNS = (
    re.compile(r"\d+\s+[A-Za-z]+"),  # "123 Main Street"
    re.compile(r"[A-Za-z]+\s+[A-Za-z]+"),  # "Sydney NSW"
    re.compile(r"(NSW|VIC|QLD|SA|WA|TAS|NT|ACT)", re.IGNORECASE),
    re.compile(r"\d{4}"),  # postcode
)


class CsvImportError(ValueError):
    pass


@dataclass
class ColumnMapping:
    base: Optional[int] = None
    stops: list[int] = field(default_factory=list)


# ── Export ────────────────────────────────────────────────────────────


def _km(value: Optional[float]) -> str:
    return repr(value) if value is not None else "N/A"


def export_csv(result: RouteResult, calculated_at: datetime) -> str:
    rows = [
        ("Field", "Value"),
        ("Base Location", result.base_location.place_name),
        ("Stops", " → ".join(s.address for s in result.stops)),
        ("Distance (km)", repr(result.distance)),
        ("Driving Distance (km)", _km(result.driving_distance)),
        ("Max Distance from Base (km)", _km(result.max_distance_from_base)),
        ("Logbook Required", "Yes" if result.logbook_required else "No"),
        ("Calculated At", calculated_at.isoformat()),
    ]
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerows(rows)
    return buf.getvalue().rstrip("\n")


# ── Import ────────────────────────────────────────────────────────────


def parse_csv(text: str) -> tuple[list[str], list[list[str]]]:
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        raise CsvImportError("CSV file is empty")

    parsed = [[value.strip() for value in row] for row in csv.reader(lines)]

    first = lines[0].lower()
    has_headers = any(hint in first for hint in HEADER_HINTS)
    if has_headers:
        headers, data = parsed[0], parsed[1:]
    else:
        data = parsed
        headers = [f"Column {i + 1}" for i in range(len(data[0]))]

    rows = [row for row in data if any(row)]
    return headers, rows


def looks_like_address(value: str) -> bool:
    if not value or len(value.strip()) < 3:
        return False
    if not re.search(r"[A-Za-z]", value):
        return False
    return any(p.search(value) for p in _ADDRESS_PATTERNS) or len(value) > 5


def detect_columns(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> ColumnMapping:
    """Guess which column is the base and which are stops."""
    sample = rows[0] if rows else []
    scored = []
    for index, header in enumerate(headers):
        lowered = header.lower()
        value = sample[index] if index < len(sample) else ""
        score = sum(1 for kw in ADDRESS_KEYWORDS if kw in lowered)
        if looks_like_address(value):
            score += 2
        if score > 0:
            scored.append((index, lowered, score))
    scored.sort(key=lambda col: col[2], reverse=True)

    if not scored:
        return ColumnMapping(base=0, stops=list(range(1, len(headers))))

    base = next(
        (col for col in scored if any(kw in col[1] for kw in BASE_KEYWORDS)),
        scored[0],
    )
    stops = [col[0] for col in scored if col[0] != base[0]]
    return ColumnMapping(base=base[0], stops=stops)


async def import_first_row(
    rows: Sequence[Sequence[str]],
    mapping: ColumnMapping,
    geocoder: Geocoder,
) -> tuple[GeoPoint, list[Stop]]:
    """Geocode the base and stops of the first row."""
    if not rows:
        raise CsvImportError("No data to import")
    if mapping.base is None:
        raise CsvImportError("Please assign a base location column")
    if not mapping.stops:
        raise CsvImportError("Please assign at least one stop column")

    row = rows[0]

    def cell(index: int) -> str:
        return row[index] if index < len(row) else ""

    base_value = cell(mapping.base)
    if not base_value:
        raise CsvImportError("Base location is empty")
    try:
        base = await geocoder.geocode(base_value)
    except GeocodingError as exc:
        raise CsvImportError(f"Could not geocode base location: {base_value}") from exc

    stops: list[Stop] = []
    for index in mapping.stops:
        value = cell(index)
        if not value:
            continue
        try:
            location = await geocoder.geocode(value)
        except GeocodingError as exc:
            raise CsvImportError(f"Could not geocode stop: {value}") from exc
        stops.append(Stop.from_point(location))

    if not stops:
        raise CsvImportError("No valid stops found")
    return base, stops
