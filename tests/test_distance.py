"""Unit tests for Haversine distance and route sampling."""

import pytest

from truckcheck.domain.distance import haversine_km, max_distance_from_base


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_km(-37.8136, 144.9631, -37.8136, 144.9631) == 0.0

    def test_known_distance_sydney_to_melbourne(self):
        """Sydney CBD to Melbourne CBD is ~713 km."""
        d = haversine_km(-33.8688, 151.2093, -37.8136, 144.9631)
        assert d == pytest.approx(713.4, abs=1.0)

    def test_symmetry(self):
        d1 = haversine_km(-37.8136, 144.9631, -38.1499, 144.3617)
        d2 = haversine_km(-38.1499, 144.3617, -37.8136, 144.9631)
        assert abs(d1 - d2) < 1e-9

    def test_one_degree_of_latitude(self):
        assert haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.01)


class TestMaxDistanceFromBase:
    BASE = (-37.8136, 144.9631)

    def test_empty_route_is_zero(self):
        assert max_distance_from_base(*self.BASE, []) == 0.0

    def test_finds_furthest_sampled_vertex(self):
        lat, lng = self.BASE
        # GeoJSON order: [lng, lat]
        path = [[lng, lat], [lng, lat + 1.0], [lng, lat + 0.5], [lng, lat]]
        furthest = max_distance_from_base(lat, lng, path)
        assert furthest == pytest.approx(haversine_km(lat, lng, lat + 1.0, lng))

    def test_final_vertex_always_checked(self):
        lat, lng = self.BASE
        # 42 points with 20 samples -> stride 2, which never lands on index 41
        path = [[lng, lat]] * 41 + [[lng, lat + 1.0]]
        furthest = max_distance_from_base(lat, lng, path, samples=20)
        assert furthest == pytest.approx(haversine_km(lat, lng, lat + 1.0, lng))

    def test_vertices_between_samples_are_skipped(self):
        lat, lng = self.BASE
        path = [[lng, lat]] * 100
        path[3] = [lng, lat + 1.0]  # stride 5 skips index 3
        assert max_distance_from_base(lat, lng, path, samples=20) == 0.0

    def test_short_route_checks_every_vertex(self):
        lat, lng = self.BASE
        path = [[lng, lat], [lng, lat + 0.2], [lng, lat]]
        furthest = max_distance_from_base(lat, lng, path, samples=20)
        assert furthest == pytest.approx(haversine_km(lat, lng, lat + 0.2, lng))
