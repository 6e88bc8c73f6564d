"""
GeoJSON 경계 데이터 어댑터 단위 테스트
"""

import json
import pytest

from civic_triage.adapters.boundaries.geojson_source import GeoJSONBoundarySource, feature_to_unit
from civic_triage.core.errors import InvalidInput
from civic_triage.core.geo_index import GeographicIndex
from civic_triage.core.models import Coordinates


def feature(ring, **props):
    return {"type": "Feature", "properties": props, "geometry": {"type": "Polygon", "coordinates": [ring]}}


def collection(square):
    return {
        "type": "FeatureCollection",
        "features": [
            feature(square(1, 1, 1), id="city-1", name="Karachi", code="khi", level="city"),
            feature(square(1, 1, 1), id="town-1", name="Saddar", code="khi-t1", level="town",
                    parent_id="city-1", city_id="city-1"),
            feature(square(0.5, 0.5, 0.5), id="uc-1", name="UC 1", code="uc-001", level="uc",
                    parent_id="town-1", city_id="city-1", area_type="hospital", near_hospital=True),
            feature(square(1.5, 1.5, 0.5), id="uc-2", name="UC 2", code="uc-002", level="uc",
                    parent_id="town-1", city_id="city-1", is_active=False, center=[1.4, 1.6]),
        ],
    }


class TestFeatureToUnit:
    """Feature 변환 테스트"""

    def test_centroid_when_center_missing(self, square):
        unit = feature_to_unit(feature(square(2, 3, 1), id="c", name="c", code="c", level="city"))
        assert unit.center.lon == pytest.approx(2)
        assert unit.center.lat == pytest.approx(3)

    def test_explicit_center_and_area(self, square):
        unit = feature_to_unit(collection(square)["features"][2])
        assert unit.code == "UC-001"
        assert unit.area.area_type == "hospital"
        assert unit.area.near_hospital is True
        assert unit.area.near_school is False

        explicit = feature_to_unit(collection(square)["features"][3])
        assert (explicit.center.lon, explicit.center.lat) == (1.4, 1.6)
        assert explicit.is_active is False

    def test_non_polygon_rejected(self):
        point = {"type": "Feature", "properties": {"code": "x"},
                 "geometry": {"type": "Point", "coordinates": [0, 0]}}
        with pytest.raises(InvalidInput, match="Polygon"):
            feature_to_unit(point)

    def test_invalid_ring_rejected(self):
        bowtie = feature([(0, 0), (2, 2), (2, 0), (0, 2), (0, 0)], id="c", name="c", code="c", level="city")
        with pytest.raises(InvalidInput):
            feature_to_unit(bowtie)


class TestGeoJSONBoundarySource:
    """파일 로드 테스트"""

    @pytest.mark.asyncio
    async def test_list_units(self, temp_file_path, square):
        with open(temp_file_path, "w", encoding="utf-8") as f:
            json.dump(collection(square), f)

        units = await GeoJSONBoundarySource(temp_file_path).list_units()
        assert [u.id for u in units] == ["city-1", "town-1", "uc-1", "uc-2"]

    @pytest.mark.asyncio
    async def test_load_into_index(self, temp_file_path, square):
        with open(temp_file_path, "w", encoding="utf-8") as f:
            json.dump(collection(square), f)

        index = await GeographicIndex.load(GeoJSONBoundarySource(temp_file_path))
        assert index.find_containing(Coordinates(lon=0.5, lat=0.5)).id == "uc-1"
        assert index.find_containing(Coordinates(lon=1.5, lat=1.5)) is None

    @pytest.mark.asyncio
    async def test_not_a_feature_collection(self, temp_file_path):
        with open(temp_file_path, "w", encoding="utf-8") as f:
            json.dump({"type": "Feature"}, f)

        with pytest.raises(InvalidInput, match="FeatureCollection"):
            await GeoJSONBoundarySource(temp_file_path).list_units()
