"""Unit tests for CSV export and import."""

from datetime import datetime, timezone

import pytest

from tests.fakes import BENDIGO, GEELONG, MELBOURNE, FakeGeocoder
from truckcheck.domain.compliance import evaluate_distances
from truckcheck.domain.csv_io import (
    ColumnMapping,
    CsvImportError,
    detect_columns,
    export_csv,
    import_first_row,
    looks_like_address,
    parse_csv,
)
from truckcheck.domain.entities import RouteMetrics, Stop

CALCULATED_AT = datetime(2026, 10, 19, 8, 30, tzinfo=timezone.utc)


class TestExport:
    def test_rows(self):
        stops = [Stop.from_point(GEELONG), Stop.from_point(BENDIGO)]
        result = evaluate_distances(MELBOURNE, stops, RouteMetrics(250.5, 132.25))
        lines = export_csv(result, CALCULATED_AT).split("\n")

        assert lines[0] == '"Field","Value"'
        assert lines[1] == '"Base Location","Melbourne VIC, Australia"'
        assert lines[2] == '"Stops","Geelong VIC, Australia → Bendigo VIC, Australia"'
        assert lines[4] == '"Driving Distance (km)","250.5"'
        assert lines[5] == '"Max Distance from Base (km)","132.25"'
        assert lines[6] == '"Logbook Required","Yes"'
        assert lines[7] == '"Calculated At","2026-10-19T08:30:00+00:00"'
        assert len(lines) == 8

    def test_missing_route_metrics_are_na(self):
        result = evaluate_distances(MELBOURNE, [Stop.from_point(GEELONG)], None)
        text = export_csv(result, CALCULATED_AT)
        assert '"Driving Distance (km)","N/A"' in text
        assert '"Logbook Required","No"' in text


class TestParse:
    def test_header_row_detected(self):
        headers, rows = parse_csv("Base,Stop 1,Stop 2\nMelbourne,Geelong,Bendigo\n")
        assert headers == ["Base", "Stop 1", "Stop 2"]
        assert rows == [["Melbourne", "Geelong", "Bendigo"]]

    def test_without_header_row(self):
        headers, rows = parse_csv("Melbourne,Geelong\nSydney,Newcastle")
        assert headers == ["Column 1", "Column 2"]
        assert len(rows) == 2

    def test_blank_rows_skipped(self):
        _, rows = parse_csv("Base,Destination\n\n , \nMelbourne,Geelong")
        assert rows == [["Melbourne", "Geelong"]]

    def test_empty_file(self):
        with pytest.raises(CsvImportError, match="CSV file is empty"):
            parse_csv("  \n\n")


class TestDetectColumns:
    def test_base_keyword_wins(self):
        mapping = detect_columns(
            ["Delivery 1", "Depot", "Delivery 2"],
            [["12 King St Geelong", "1 Sunshine Ave Laverton", "Bendigo VIC"]],
        )
        assert mapping.base == 1
        assert sorted(mapping.stops) == [0, 2]

    def test_first_scored_column_is_base_without_keywords(self):
        mapping = detect_columns(["Column 1", "Column 2"], [["Melbourne", "Geelong"]])
        assert mapping.base == 0
        assert mapping.stops == [1]

    def test_fallback_when_nothing_looks_like_an_address(self):
        mapping = detect_columns(["Name", "Phone", "Qty"], [["Bob", "0400", "3"]])
        assert mapping == ColumnMapping(base=0, stops=[1, 2])

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("12 King St", True),
            ("Geelong", True),
            ("VIC", True),
            ("Bob", False),
            ("0400123456", False),
            ("", False),
        ],
    )
    def test_looks_like_address(self, value, expected):
        assert looks_like_address(value) is expected


class TestImportFirstRow:
    @pytest.mark.asyncio
    async def test_geocodes_base_and_stops(self):
        base, stops = await import_first_row(
            [["Melbourne", "Geelong", "", "Bendigo"]],
            ColumnMapping(base=0, stops=[1, 2, 3]),
            FakeGeocoder(),
        )
        assert base == MELBOURNE
        assert [s.location for s in stops] == [GEELONG, BENDIGO]
        assert all(s.is_resolved for s in stops)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "rows, mapping, message",
        [
            ([], ColumnMapping(base=0, stops=[1]), "No data to import"),
            ([["a", "b"]], ColumnMapping(base=None, stops=[1]), "Please assign a base location column"),
            ([["a", "b"]], ColumnMapping(base=0, stops=[]), "Please assign at least one stop column"),
            ([["", "Geelong"]], ColumnMapping(base=0, stops=[1]), "Base location is empty"),
            ([["Atlantis", "Geelong"]], ColumnMapping(base=0, stops=[1]), "Could not geocode base location: Atlantis"),
            ([["Melbourne", "Atlantis"]], ColumnMapping(base=0, stops=[1]), "Could not geocode stop: Atlantis"),
            ([["Melbourne", ""]], ColumnMapping(base=0, stops=[1, 5]), "No valid stops found"),
        ],
    )
    async def test_errors(self, rows, mapping, message):
        with pytest.raises(CsvImportError) as info:
            await import_first_row(rows, mapping, FakeGeocoder())
        assert str(info.value) == message
