"""
테스트 설정 및 픽스처

이 모듈은 pytest 설정과 공통 픽스처를 제공합니다.
"""

import pytest
import tempfile
import os
from datetime import datetime, timezone
from unittest.mock import AsyncMock
from civic_triage.settings import Settings
from civic_triage.core.categories import CategoryTable
from civic_triage.core.geo_index import GeographicIndex
from civic_triage.core.models import GeographicUnit

# 위도 1도당 미터 (Haversine 평균 지구 반경 기준)
METERS_PER_DEGREE_LAT = 6371000.0 * 3.141592653589793 / 180


def square(lon, lat, half):
    """중심과 반폭으로 닫힌 정사각형 링을 만듭니다."""
    return [
        (lon - half, lat - half),
        (lon + half, lat - half),
        (lon + half, lat + half),
        (lon - half, lat + half),
        (lon - half, lat - half),
    ]


def north_of(lon, lat, meters):
    """기준점에서 정북으로 meters 만큼 떨어진 (lon, lat)"""
    return lon, lat + meters / METERS_PER_DEGREE_LAT


@pytest.fixture(name="square")
def square_fixture():
    """정사각형 링 헬퍼"""
    return square


@pytest.fixture(name="north_of")
def north_of_fixture():
    """정북 오프셋 좌표 헬퍼"""
    return north_of


@pytest.fixture
def temp_db_path():
    """임시 데이터베이스 파일 경로"""
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        temp_path = f.name
    yield temp_path
    # 테스트 후 파일 정리
    if os.path.exists(temp_path):
        os.unlink(temp_path)


@pytest.fixture
def temp_file_path():
    """임시 파일 경로"""
    with tempfile.NamedTemporaryFile(suffix='.geojson', delete=False) as f:
        temp_path = f.name
    yield temp_path
    if os.path.exists(temp_path):
        os.unlink(temp_path)


@pytest.fixture
def sample_settings():
    """테스트용 설정"""
    settings = Settings()
    settings.observability.service_name = "test-service"
    settings.observability.build_version = "1.0.0"
    settings.observability.log_level = "INFO"
    settings.observability.http_port = 8080
    return settings


@pytest.fixture
def base_time():
    """테스트 기준 시각"""
    return datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def make_unit():
    """지리 단위 생성 헬퍼"""
    def _make(id, level, boundary, center=None, **kwargs):
        if center is None:
            lons = [p[0] for p in boundary[:-1]]
            lats = [p[1] for p in boundary[:-1]]
            center = {"lon": sum(lons) / len(lons), "lat": sum(lats) / len(lats)}
        return GeographicUnit(
            id=id,
            name=kwargs.pop("name", id),
            code=kwargs.pop("code", id),
            level=level,
            boundary=boundary,
            center=center,
            **kwargs,
        )
    return _make


@pytest.fixture
def hierarchy_units(make_unit):
    """
    테스트용 계층

    city-1 / town-1: uc-1 (0,0)-(2,2), uc-2, uc-3(비활성)
    city-2 / town-2: uc-a (50,10), uc-b (50.1,10) - 작은 경계, 최근접 테스트용
    """
    return [
        make_unit("city-1", "city", square(2, 2, 3), code="KHI"),
        make_unit("town-1", "town", square(2, 2, 3), parent_id="city-1", city_id="city-1", code="KHI-T1"),
        make_unit("uc-1", "uc", [(0, 0), (2, 0), (2, 2), (0, 2), (0, 0)],
                  parent_id="town-1", city_id="city-1", code="UC-001",
                  area={"area_type": "educational", "near_school": True}),
        make_unit("uc-2", "uc", square(3.5, 0.5, 0.5), parent_id="town-1", city_id="city-1", code="UC-002"),
        make_unit("uc-3", "uc", square(3.5, 3.5, 0.5), parent_id="town-1", city_id="city-1", code="UC-003",
                  is_active=False),
        make_unit("city-2", "city", square(50, 10, 1), code="LHR"),
        make_unit("town-2", "town", square(50, 10, 1), parent_id="city-2", city_id="city-2", code="LHR-T1"),
        make_unit("uc-a", "uc", square(50, 10, 0.001), parent_id="town-2", city_id="city-2", code="UC-101"),
        make_unit("uc-b", "uc", square(50.1, 10, 0.001), parent_id="town-2", city_id="city-2", code="UC-102"),
    ]


@pytest.fixture
def geo_index(hierarchy_units):
    """테스트용 지리 인덱스"""
    return GeographicIndex(hierarchy_units)


@pytest.fixture
def category_table():
    """기본 카테고리 테이블"""
    return CategoryTable()


@pytest.fixture
def mock_store():
    """빈 결과를 돌려주는 민원 저장소 목업"""
    store = AsyncMock()
    store.find_open_near.return_value = []
    store.count_open_near.return_value = 0
    store.earliest_open_near.return_value = None
    store.get.return_value = None
    store.list_open.return_value = []
    store.duplicate_counts.return_value = (0, 0, 0)
    store.severity_scores.return_value = []
    return store


# pytest 설정
def pytest_configure(config):
    """pytest 설정"""
    config.addinivalue_line(
        "markers", "slow: 느린 테스트 마커"
    )
    config.addinivalue_line(
        "markers", "integration: 통합 테스트 마커"
    )


def pytest_collection_modifyitems(config, items):
    """테스트 아이템 수정"""
    for item in items:
        # 느린 테스트 마커 추가
        if "performance" in item.name or "stress" in item.name:
            item.add_marker(pytest.mark.slow)

        # 통합 테스트 마커 추가
        if "integration" in item.name:
            item.add_marker(pytest.mark.integration)
