"""
Read-only geographic index for civic-triage.

Holds the City → Town → UC hierarchy in memory and answers the two
queries the resolver needs: geofence containment against UC boundaries
and nearest UC center by great-circle distance. "No match" is returned
as ``None``, never raised.
"""

from typing import Dict, Iterable, List, Optional, Tuple

from civic_triage.common.geo import (
    calculate_bounding_box,
    haversine_m,
    point_in_polygon,
)
from civic_triage.observability.logging_setup import get_logger
from civic_triage.ports.geo import GeoUnitReadPort
from .errors import InvalidInput
from .models import Coordinates, GeographicUnit

log = get_logger("civic_triage.geo_index")

BBox = Tuple[float, float, float, float]


def _in_bbox(lon: float, lat: float, bbox: BBox) -> bool:
    min_lon, min_lat, max_lon, max_lat = bbox
    return min_lon <= lon <= max_lon and min_lat <= lat <= max_lat


class GeographicIndex:
    """City/Town/UC 계층 인덱스"""

    def __init__(self, units: Iterable[GeographicUnit]):
        """
        지리 단위 목록으로 인덱스를 구성하고 계층 불변식을 검증합니다.

        Args:
            units: 지리 단위 목록

        Raises:
            InvalidInput: ID/코드 중복, 부모 누락, UC.city_id 불일치
        """
        self._units: Dict[str, GeographicUnit] = {}
        codes: Dict[str, str] = {}
        for unit in units:
            if unit.id in self._units:
                raise InvalidInput(f"duplicate geographic unit id: {unit.id}")
            if unit.code in codes:
                raise InvalidInput(f"duplicate geographic unit code: {unit.code}")
            self._units[unit.id] = unit
            codes[unit.code] = unit.id

        for unit in self._units.values():
            self._check_parent(unit)

        # 결정적 순서를 위해 코드 기준 정렬
        self._ucs: List[GeographicUnit] = sorted(
            (u for u in self._units.values() if u.level == "uc"), key=lambda u: u.code
        )
        self._bboxes: Dict[str, BBox] = {u.id: calculate_bounding_box(u.boundary) for u in self._ucs}

        log.info(f"GeographicIndex 구성 완료: 전체 {len(self._units)}개, UC {len(self._ucs)}개 "
                 f"(활성 {len(self.active_ucs())}개)")

    @classmethod
    async def load(cls, source: GeoUnitReadPort) -> "GeographicIndex":
        """조회 포트에서 지리 단위를 읽어 인덱스를 생성합니다."""
        return cls(await source.list_units())

    def _check_parent(self, unit: GeographicUnit) -> None:
        if unit.level == "city":
            return

        parent = self._units.get(unit.parent_id or "")
        expected_parent = "city" if unit.level == "town" else "town"
        if parent is None or parent.level != expected_parent:
            raise InvalidInput(f"{unit.level} {unit.code}: parent {unit.parent_id} is not a known {expected_parent}")

        if unit.level == "town" and unit.city_id is not None and unit.city_id != parent.id:
            raise InvalidInput(f"town {unit.code}: city_id {unit.city_id} != parent {parent.id}")

        if unit.level == "uc" and unit.city_id != parent.effective_city_id:
            raise InvalidInput(
                f"uc {unit.code}: city_id {unit.city_id} != parent town city_id {parent.effective_city_id}"
            )

    # ---- 조회 ----

    def get(self, unit_id: str) -> Optional[GeographicUnit]:
        return self._units.get(unit_id)

    def ancestors(self, uc: GeographicUnit) -> Tuple[GeographicUnit, GeographicUnit]:
        """UC의 (Town, City)를 반환합니다."""
        town = self._units[uc.parent_id]  # type: ignore[index]
        city = self._units[uc.effective_city_id]
        return town, city

    def is_eligible(self, uc: GeographicUnit) -> bool:
        """UC와 상위 Town/City가 모두 활성 상태인지 확인합니다."""
        if uc.level != "uc" or not uc.is_active:
            return False
        town, city = self.ancestors(uc)
        return town.is_active and city.is_active

    def active_ucs(self) -> List[GeographicUnit]:
        return [u for u in self._ucs if self.is_eligible(u)]

    def find_containing(self, point: Coordinates) -> Optional[GeographicUnit]:
        """
        점을 포함하는 활성 UC를 찾습니다 (지오펜스).

        Town/City 경계는 직접 검사하지 않고 매칭된 UC에서 상속합니다.
        경계가 겹치면 코드 순서상 첫 UC가 선택됩니다.

        Args:
            point: 확인할 좌표

        Returns:
            포함하는 UC 또는 None
        """
        lon, lat = point.lon, point.lat
        for uc in self._ucs:
            if not self.is_eligible(uc):
                continue
            if not _in_bbox(lon, lat, self._bboxes[uc.id]):
                continue
            if point_in_polygon((lon, lat), uc.boundary):
                return uc
        return None

    def _distances(self,
                   point: Coordinates,
                   max_distance_m: Optional[float],
                   town_id: Optional[str],
                   city_id: Optional[str]) -> List[Tuple[GeographicUnit, float]]:
        results: List[Tuple[GeographicUnit, float]] = []
        for uc in self._ucs:
            if not self.is_eligible(uc):
                continue
            if town_id is not None and uc.parent_id != town_id:
                continue
            if city_id is not None and uc.effective_city_id != city_id:
                continue
            distance = haversine_m(point.lat, point.lon, uc.center.lat, uc.center.lon)
            if max_distance_m is not None and distance > max_distance_m:
                continue
            results.append((uc, distance))

        # 거리 오름차순, 동률이면 코드 순
        results.sort(key=lambda item: (item[1], item[0].code))
        return results

    def find_nearest_center(self,
                            point: Coordinates,
                            max_distance_m: float,
                            *,
                            town_id: Optional[str] = None,
                            city_id: Optional[str] = None) -> Optional[Tuple[GeographicUnit, float]]:
        """
        중심점까지 Haversine 거리가 가장 가까운 활성 UC를 찾습니다.

        Args:
            point: 기준 좌표
            max_distance_m: 최대 거리 (미터)
            town_id: Town 필터
            city_id: City 필터

        Returns:
            (UC, 거리) 또는 None
        """
        found = self._distances(point, max_distance_m, town_id, city_id)
        return found[0] if found else None

    def nearby(self,
               point: Coordinates,
               limit: int,
               max_distance_m: Optional[float] = None,
               *,
               town_id: Optional[str] = None,
               city_id: Optional[str] = None) -> List[Tuple[GeographicUnit, float]]:
        """거리순으로 최대 limit개의 활성 UC를 반환합니다."""
        if limit <= 0:
            return []
        return self._distances(point, max_distance_m, town_id, city_id)[:limit]

    def is_within_city(self, point: Coordinates, city_id: str) -> bool:
        """점이 City 경계 내부인지 확인합니다."""
        city = self._units.get(city_id)
        if city is None or city.level != "city":
            return False
        return point_in_polygon(point.as_lon_lat(), city.boundary)

    def hierarchy_tree(self, city_id: Optional[str] = None) -> List[dict]:
        """활성 단위만으로 City → Town → UC 트리를 구성합니다."""
        def children(parent_id: str, level: str) -> List[GeographicUnit]:
            return sorted(
                (u for u in self._units.values()
                 if u.level == level and u.parent_id == parent_id and u.is_active),
                key=lambda u: u.code,
            )

        cities = sorted(
            (u for u in self._units.values() if u.level == "city" and u.is_active
             and (city_id is None or u.id == city_id)),
            key=lambda u: u.code,
        )
        tree = []
        for city in cities:
            towns = []
            for town in children(city.id, "town"):
                ucs = [{"id": uc.id, "name": uc.name, "code": uc.code} for uc in children(town.id, "uc")]
                towns.append({"id": town.id, "name": town.name, "code": town.code, "ucs": ucs})
            tree.append({"id": city.id, "name": city.name, "code": city.code, "towns": towns})
        return tree
