"""Unit tests for share link encoding / decoding."""

from dataclasses import replace

import pytest

from tests.fakes import BENDIGO, GEELONG, MELBOURNE
from truckcheck.domain.compliance import evaluate_distances
from truckcheck.domain.entities import RouteMetrics, ShareLinkError, Stop
from truckcheck.domain.enums import NearThreshold
from truckcheck.domain.share import (
    decode_query,
    encode_result,
    parse_query_string,
    to_query_string,
    with_route_metrics,
)


def _result(*points):
    stops = [Stop.from_point(p, stop_id=f"s{i}") for i, p in enumerate(points)]
    return evaluate_distances(MELBOURNE, stops, None)


class TestEncode:
    def test_parameter_layout(self):
        params = encode_result(_result(GEELONG, BENDIGO))
        assert params["baseName"] == "Melbourne VIC, Australia"
        assert params["baseLat"] == "-37.8136"
        assert params["logbookRequired"] == "true"
        assert params["stop0Name"] == "Geelong VIC, Australia"
        assert params["stop1Lng"] == "144.2794"
        assert "stop2Name" not in params

    def test_unresolved_stop_cannot_be_shared(self):
        result = _result(GEELONG)
        broken = replace(result, stops=(Stop(id="x", address="?"),))
        with pytest.raises(ValueError):
            encode_result(broken)


class TestDecode:
    def test_decodes_what_was_encoded(self):
        original = _result(GEELONG, BENDIGO)
        query = to_query_string(original)
        restored = decode_query(parse_query_string("?" + query), entitled=True)

        assert restored.base_location == MELBOURNE
        assert [s.location for s in restored.stops] == [GEELONG, BENDIGO]
        assert [s.address for s in restored.stops] == [GEELONG.place_name, BENDIGO.place_name]
        assert restored.distance == original.distance
        assert restored.logbook_required is True
        assert restored.view_only is False

    def test_multi_stop_link_is_view_only_without_entitlement(self):
        params = encode_result(_result(GEELONG, BENDIGO))
        restored = decode_query(params, entitled=False)
        assert len(restored.stops) == 2
        assert restored.view_only is True

    def test_single_stop_link_is_editable_without_entitlement(self):
        restored = decode_query(encode_result(_result(GEELONG)), entitled=False)
        assert restored.view_only is False

    def test_legacy_destination_parameters(self):
        params = {
            "baseName": "Melbourne VIC, Australia",
            "baseLat": "-37.8136",
            "baseLng": "144.9631",
            "destName": "Geelong VIC, Australia",
            "destLat": "-38.1499",
            "destLng": "144.3617",
            "distance": "64.8",
            "logbookRequired": "false",
        }
        restored = decode_query(params, entitled=False)
        assert len(restored.stops) == 1
        assert restored.destination.location == GEELONG
        assert restored.logbook_required is False

    def test_stops_end_at_first_missing_index(self):
        params = encode_result(_result(GEELONG, BENDIGO))
        params["stop2Name"] = params.pop("stop1Name")
        params["stop2Lat"] = params.pop("stop1Lat")
        params["stop2Lng"] = params.pop("stop1Lng")
        restored = decode_query(params, entitled=True)
        assert [s.location for s in restored.stops] == [GEELONG]

    def test_advisory_follows_shared_distance(self):
        params = encode_result(_result(GEELONG))
        params["distance"] = "98.5"
        restored = decode_query(params, entitled=False)
        assert restored.near_threshold == NearThreshold.JUST_UNDER

    @pytest.mark.parametrize("missing", ["baseName", "baseLat", "distance"])
    def test_missing_required_parameter(self, missing):
        params = encode_result(_result(GEELONG))
        del params[missing]
        with pytest.raises(ShareLinkError):
            decode_query(params, entitled=True)

    def test_invalid_number(self):
        params = encode_result(_result(GEELONG))
        params["stop0Lat"] = "north"
        with pytest.raises(ShareLinkError):
            decode_query(params, entitled=True)

    def test_no_stops(self):
        params = {"baseName": "Melbourne", "baseLat": "-37.8", "baseLng": "144.9", "distance": "1"}
        with pytest.raises(ShareLinkError):
            decode_query(params, entitled=True)


class TestRouteMetrics:
    def test_shared_verdict_kept_verbatim(self):
        shared = decode_query(encode_result(_result(GEELONG)), entitled=True)
        refreshed = with_route_metrics(shared, RouteMetrics(75.0, 103.0))

        assert refreshed.distance == shared.distance
        assert refreshed.logbook_required is False
        assert refreshed.driving_distance == 75.0
        assert refreshed.max_distance_from_base == 103.0
        assert refreshed.near_threshold == NearThreshold.JUST_OVER

    def test_no_route_leaves_result_unchanged(self):
        shared = decode_query(encode_result(_result(GEELONG)), entitled=True)
        assert with_route_metrics(shared, None) is shared
