"""
HierarchyResolver 단위 테스트
"""

import pytest

from civic_triage.core.errors import NotFound
from civic_triage.core.hierarchy import HierarchyResolver, NO_UC_MESSAGE, confidence_for_distance
from civic_triage.core.models import Coordinates
from civic_triage.settings import GeoSettings


@pytest.fixture
def resolver(geo_index):
    return HierarchyResolver(geo_index, GeoSettings())


class TestConfidenceBuckets:
    """거리 → 신뢰도 변환 테스트"""

    @pytest.mark.parametrize("distance,expected", [
        (0, "high"),
        (1999, "high"),
        (1999.99, "high"),
        (2000, "medium"),
        (5000, "medium"),
        (5000.01, "low"),
        (19999, "low"),
    ])
    def test_bucket_boundaries(self, distance, expected):
        assert confidence_for_distance(distance) == expected


class TestAssign:
    """UC 배정 테스트"""

    def test_geofence_match(self, resolver):
        assignment = resolver.assign(Coordinates(lon=1, lat=1))
        assert assignment.method == "geofence"
        assert assignment.confidence == "exact"
        assert (assignment.uc_id, assignment.town_id, assignment.city_id) == ("uc-1", "town-1", "city-1")
        assert assignment.distance_meters is None

    @pytest.mark.parametrize("meters,confidence", [(1500, "high"), (3000, "medium"), (8000, "low")])
    def test_nearest_fallback(self, resolver, north_of, meters, confidence):
        lon, lat = north_of(50, 10, meters)
        assignment = resolver.assign(Coordinates(lon=lon, lat=lat))
        assert assignment.method == "nearest"
        assert assignment.uc_id == "uc-a"
        assert assignment.city_id == "city-2"
        assert assignment.confidence == confidence
        assert assignment.distance_meters == pytest.approx(meters, abs=1)

    def test_max_distance_option(self, resolver, north_of):
        lon, lat = north_of(50, 10, 8000)
        assignment = resolver.assign(Coordinates(lon=lon, lat=lat), max_distance_m=5000)
        assert assignment.method == "none"

    def test_no_assignment(self, resolver, north_of):
        """20km 밖이면 수동 선택이 필요한 정상 결과"""
        lon, lat = north_of(50, 10, 25000)
        assignment = resolver.assign(Coordinates(lon=lon, lat=lat))
        assert assignment.method == "none"
        assert assignment.confidence == "none"
        assert assignment.uc_id is None
        assert assignment.message == NO_UC_MESSAGE
        assert assignment.requires_manual_selection

    def test_inside_inactive_uc_only(self, resolver):
        assignment = resolver.assign(Coordinates(lon=3.5, lat=3.5))
        assert assignment.method == "none"

    def test_deterministic(self, resolver):
        results = {resolver.assign(Coordinates(lon=1.5, lat=0.5)).uc_id for _ in range(5)}
        assert results == {"uc-1"}


class TestManualSelection:
    """수동 선택 지원 테스트"""

    def test_nearby_candidates(self, resolver, north_of):
        lon, lat = north_of(50, 10, 3000)
        candidates = resolver.nearby_candidates(Coordinates(lon=lon, lat=lat), limit=5)
        assert [c.uc_id for c in candidates] == ["uc-a", "uc-b"]
        assert candidates[0].confidence == "medium"
        assert candidates[1].confidence == "low"
        assert candidates[0].town_id == "town-2"

    def test_nearby_candidates_limit(self, resolver, north_of):
        lon, lat = north_of(50, 10, 3000)
        assert len(resolver.nearby_candidates(Coordinates(lon=lon, lat=lat), limit=1)) == 1

    def test_validate_close_choice(self, resolver, north_of):
        lon, lat = north_of(50, 10, 500)
        result = resolver.validate_manual_choice("uc-a", Coordinates(lon=lon, lat=lat))
        assert result.valid
        assert result.warning is None
        assert result.city_id == "city-2"

    def test_validate_far_choice_warns(self, resolver, north_of):
        """10km 초과는 경고만 하고 수락"""
        lon, lat = north_of(50, 10, 22000)
        result = resolver.validate_manual_choice("uc-a", Coordinates(lon=lon, lat=lat))
        assert result.valid
        assert result.warning == "Location is 22km away from selected UC"

    def test_validate_inactive(self, resolver):
        result = resolver.validate_manual_choice("uc-3", Coordinates(lon=3.5, lat=3.5))
        assert result.valid is False
        assert result.error == "UC is not active"

    @pytest.mark.parametrize("unit_id", ["uc-missing", "town-1"])
    def test_validate_unknown(self, resolver, unit_id):
        with pytest.raises(NotFound):
            resolver.validate_manual_choice(unit_id, Coordinates(lon=1, lat=1))
