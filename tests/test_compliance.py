"""Unit tests for the 100 km rule evaluator."""

from unittest.mock import AsyncMock

import pytest

from tests.fakes import BENDIGO, GEELONG, MELBOURNE, FakeGeocoder, FakeRouter
from truckcheck.domain.compliance import (
    DEFAULT_RULE,
    ComplianceRule,
    evaluate_distances,
    evaluate_route,
    resolve_stops,
)
from truckcheck.domain.distance import haversine_km
from truckcheck.domain.entities import (
    ProviderUnavailable,
    RouteMetrics,
    Stop,
    StopResolutionError,
)
from truckcheck.domain.enums import NearThreshold


def _stop(point, stop_id="stop-1"):
    return Stop.from_point(point, stop_id=stop_id)


class TestThreshold:
    def test_exactly_100_km_does_not_require_logbook(self):
        result = evaluate_distances(
            MELBOURNE, [_stop(GEELONG)], RouteMetrics(120.0, 100.0)
        )
        assert result.effective_distance == 100.0
        assert result.logbook_required is False

    def test_just_over_100_km_requires_logbook(self):
        result = evaluate_distances(
            MELBOURNE, [_stop(GEELONG)], RouteMetrics(120.0, 100.0001)
        )
        assert result.logbook_required is True

    def test_route_maximum_takes_precedence_over_straight_line(self):
        # Geelong is ~65 km away but the route wanders out to 130 km
        result = evaluate_distances(MELBOURNE, [_stop(GEELONG)], RouteMetrics(300.0, 130.0))
        assert result.distance < 100
        assert result.effective_distance == 130.0
        assert result.logbook_required is True

    def test_no_route_falls_back_to_straight_line(self):
        result = evaluate_distances(MELBOURNE, [_stop(BENDIGO)], None)
        expected = haversine_km(MELBOURNE.lat, MELBOURNE.lng, BENDIGO.lat, BENDIGO.lng)
        assert result.driving_distance is None
        assert result.max_distance_from_base is None
        assert result.effective_distance == pytest.approx(expected)
        assert result.logbook_required is True

    def test_custom_threshold(self):
        rule = ComplianceRule(threshold_km=50.0, near_lower_km=45.0, near_upper_km=55.0)
        result = evaluate_distances(MELBOURNE, [_stop(GEELONG)], None, rule)
        assert result.logbook_required is True


class TestRoundTrip:
    def test_round_trip_reports_furthest_distance(self):
        result = evaluate_distances(
            MELBOURNE, [_stop(BENDIGO, "a"), _stop(MELBOURNE, "b")], RouteMetrics(300.0, 150.0)
        )
        assert result.distance == 150.0
        assert result.logbook_required is True

    def test_round_trip_without_route_keeps_straight_line(self):
        result = evaluate_distances(MELBOURNE, [_stop(MELBOURNE)], None)
        assert result.distance == 0.0
        assert result.logbook_required is False


class TestNearThreshold:
    @pytest.mark.parametrize(
        "km, expected",
        [
            (50.0, None),
            (94.9, None),
            (95.0, NearThreshold.JUST_UNDER),
            (97.0, NearThreshold.JUST_UNDER),
            (100.0, NearThreshold.JUST_OVER),
            (103.0, NearThreshold.JUST_OVER),
            (105.0, NearThreshold.JUST_OVER),
            (105.1, None),
        ],
    )
    def test_classify(self, km, expected):
        assert DEFAULT_RULE.classify(km) == expected

    def test_advisory_never_changes_verdict(self):
        result = evaluate_distances(MELBOURNE, [_stop(GEELONG)], RouteMetrics(110.0, 97.0))
        assert result.near_threshold == NearThreshold.JUST_UNDER
        assert result.logbook_required is False


class TestEvaluateInputs:
    def test_requires_a_stop(self):
        with pytest.raises(ValueError):
            evaluate_distances(MELBOURNE, [], None)

    def test_requires_resolved_destination(self):
        with pytest.raises(ValueError):
            evaluate_distances(MELBOURNE, [Stop(id="s", address="Geelong")], None)


class TestResolveStops:
    @pytest.mark.asyncio
    async def test_keeps_typed_address(self):
        resolved = await resolve_stops([Stop(id="s1", address="Geelong")], FakeGeocoder())
        assert resolved[0].address == "Geelong"
        assert resolved[0].location == GEELONG

    @pytest.mark.asyncio
    async def test_resolved_stops_are_not_geocoded_again(self):
        geocoder = FakeGeocoder()
        await resolve_stops([_stop(GEELONG)], geocoder)
        assert geocoder.calls == []

    @pytest.mark.asyncio
    async def test_blank_address_reports_position(self):
        with pytest.raises(StopResolutionError) as info:
            await resolve_stops([_stop(GEELONG, "a"), Stop(id="b", address="  ")], FakeGeocoder())
        assert info.value.position == 2
        assert str(info.value) == "Please enter an address for stop 2"

    @pytest.mark.asyncio
    async def test_unknown_address_reports_position_and_cause(self):
        stops = [Stop(id="a", address="Geelong"), Stop(id="b", address="Atlantis")]
        with pytest.raises(StopResolutionError) as info:
            await resolve_stops(stops, FakeGeocoder())
        assert info.value.position == 2
        assert str(info.value) == "Could not find location: Atlantis"

    @pytest.mark.asyncio
    async def test_provider_failure_is_wrapped(self):
        geocoder = AsyncMock()
        geocoder.geocode.side_effect = ProviderUnavailable("mapbox-geocoding", "HTTP 500")
        with pytest.raises(StopResolutionError) as info:
            await resolve_stops([Stop(id="a", address="Geelong")], geocoder)
        assert isinstance(info.value.cause, ProviderUnavailable)


class TestEvaluateRoute:
    @pytest.mark.asyncio
    async def test_waypoints_passed_in_order(self):
        router = FakeRouter(RouteMetrics(250.0, 132.0))
        stops = [Stop(id="a", address="Geelong"), Stop(id="b", address="Bendigo")]
        result = await evaluate_route(MELBOURNE, stops, FakeGeocoder(), router)

        base, waypoints = router.calls[0]
        assert base == MELBOURNE
        assert waypoints == [GEELONG, BENDIGO]
        assert result.destination.location == BENDIGO
        assert result.driving_distance == 250.0
        assert result.logbook_required is True

    @pytest.mark.asyncio
    async def test_router_not_called_when_a_stop_fails(self):
        router = AsyncMock()
        stops = [Stop(id="a", address="Geelong"), Stop(id="b", address="Atlantis")]
        with pytest.raises(StopResolutionError):
            await evaluate_route(MELBOURNE, stops, FakeGeocoder(), router)
        router.route_distance.assert_not_awaited()
