"""
GeoJSON boundary source for civic-triage.

Reads the City / Town / UC hierarchy from a GeoJSON FeatureCollection.
Each feature is a Polygon whose outer ring becomes the unit boundary;
hierarchy and area attributes come from ``properties``.
"""

import asyncio
import json
from typing import Any, Dict, List

from shapely.geometry import Polygon

from civic_triage.core.errors import InvalidInput
from civic_triage.core.models import GeographicUnit
from civic_triage.observability.logging_setup import get_logger

log = get_logger("civic_triage.boundaries")

AREA_FLAGS = ("near_school", "near_hospital", "high_traffic", "main_road")


def feature_to_unit(feature: Dict[str, Any]) -> GeographicUnit:
    """
    GeoJSON Feature 하나를 지리 단위로 변환합니다.

    center가 없으면 경계 폴리곤의 중심(centroid)을 사용합니다.

    Raises:
        InvalidInput: Polygon이 아니거나 속성이 잘못된 경우
    """
    props = feature.get("properties") or {}
    geometry = feature.get("geometry") or {}
    if geometry.get("type") != "Polygon" or not geometry.get("coordinates"):
        raise InvalidInput(f"feature {props.get('code')}: geometry must be a Polygon")

    ring = [(float(p[0]), float(p[1])) for p in geometry["coordinates"][0]]

    center = props.get("center")
    if center is None:
        centroid = Polygon(ring).centroid
        center = [centroid.x, centroid.y]

    area = {"area_type": props.get("area_type", "residential")}
    for flag in AREA_FLAGS:
        area[flag] = bool(props.get(flag, False))

    return GeographicUnit.create(
        id=str(props.get("id", "")),
        name=props.get("name", ""),
        code=str(props.get("code", "")),
        level=props.get("level"),
        parent_id=props.get("parent_id"),
        city_id=props.get("city_id"),
        center={"lon": center[0], "lat": center[1]},
        boundary=ring,
        is_active=props.get("is_active", True),
        area=area,
    )


class GeoJSONBoundarySource:
    """GeoJSON 파일 기반 지리 단위 조회 어댑터"""

    def __init__(self, path: str):
        """
        초기화합니다.

        Args:
            path: GeoJSON FeatureCollection 파일 경로
        """
        self.path = path

    def _read(self) -> List[GeographicUnit]:
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)

        if data.get("type") != "FeatureCollection":
            raise InvalidInput(f"{self.path}: expected a FeatureCollection")

        units = [feature_to_unit(feature) for feature in data.get("features", [])]
        log.info(f"경계 데이터 로드 완료: {self.path} ({len(units)}개 단위)")
        return units

    async def list_units(self) -> List[GeographicUnit]:
        """모든 지리 단위를 조회합니다 (비활성 포함)."""
        return await asyncio.to_thread(self._read)
