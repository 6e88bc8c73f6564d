"""
UC hierarchy resolution for civic-triage.

Assigns complaint coordinates to a UC / Town / City triple:
1. geofence match against active UC boundaries (confidence ``exact``),
2. nearest active UC center within ``max_distance_m`` (confidence by distance),
3. otherwise ``method="none"``; the caller asks a human to pick a UC.
"""

from typing import List, Optional

from civic_triage.common.geo import haversine_m
from civic_triage.observability.logging_setup import get_logger
from civic_triage.settings import GeoSettings
from .errors import NotFound
from .geo_index import GeographicIndex
from .models import Assignment, Confidence, Coordinates, ManualChoiceValidation, NearbyCandidate

log = get_logger("civic_triage.hierarchy")

NO_UC_MESSAGE = "No UC found for the given location. Please select a UC manually."


def confidence_for_distance(distance_m: float,
                            high_m: float = 2000.0,
                            medium_m: float = 5000.0) -> Confidence:
    """
    최근접 배정 거리를 신뢰도 등급으로 변환합니다.

    < high_m → high, high_m 이상 medium_m 이하 → medium, 그 이상 → low
    """
    if distance_m < high_m:
        return "high"
    if distance_m <= medium_m:
        return "medium"
    return "low"


class HierarchyResolver:
    """좌표 → UC/Town/City 배정기"""

    def __init__(self, index: GeographicIndex, settings: Optional[GeoSettings] = None):
        self.index = index
        self.settings = settings or GeoSettings()

    def _confidence(self, distance_m: float) -> Confidence:
        return confidence_for_distance(distance_m, self.settings.high_confidence_m, self.settings.medium_confidence_m)

    def assign(self,
               point: Coordinates,
               *,
               max_distance_m: Optional[float] = None,
               town_id: Optional[str] = None,
               city_id: Optional[str] = None) -> Assignment:
        """
        좌표에 UC를 배정합니다.

        Args:
            point: 민원 좌표
            max_distance_m: 최근접 탐색 최대 거리 (기본 20km)
            town_id: 최근접 탐색 Town 필터
            city_id: 최근접 탐색 City 필터

        Returns:
            배정 결과 (실패 시 method="none")
        """
        # 1단계: 지오펜스
        uc = self.index.find_containing(point)
        if uc is not None:
            town, city = self.index.ancestors(uc)
            log.info(f"지오펜스 매칭: UC {uc.code} ({point.lon}, {point.lat})")
            return Assignment(
                uc_id=uc.id,
                town_id=town.id,
                city_id=city.id,
                method="geofence",
                confidence="exact",
            )

        # 2단계: 최근접 UC 중심
        limit = self.settings.max_nearest_distance_m if max_distance_m is None else max_distance_m
        nearest = self.index.find_nearest_center(point, limit, town_id=town_id, city_id=city_id)
        if nearest is not None:
            uc, distance = nearest
            town, city = self.index.ancestors(uc)
            confidence = self._confidence(distance)
            log.info(f"최근접 매칭: UC {uc.code} 거리 {distance:.0f}m 신뢰도 {confidence}")
            return Assignment(
                uc_id=uc.id,
                town_id=town.id,
                city_id=city.id,
                method="nearest",
                confidence=confidence,
                distance_meters=round(distance, 2),
            )

        # 3단계: 수동 선택 필요
        log.info(f"UC 배정 실패 ({point.lon}, {point.lat}) - 수동 선택 필요")
        return Assignment(method="none", confidence="none", message=NO_UC_MESSAGE)

    def nearby_candidates(self, point: Coordinates, limit: int = 10) -> List[NearbyCandidate]:
        """
        수동 배정용으로 가까운 활성 UC 목록을 거리순으로 반환합니다.

        Args:
            point: 민원 좌표
            limit: 최대 후보 수

        Returns:
            후보 목록 (각 후보에 거리 기반 신뢰도 포함)
        """
        candidates = []
        for uc, distance in self.index.nearby(point, limit, self.settings.nearby_max_distance_m):
            town, city = self.index.ancestors(uc)
            candidates.append(NearbyCandidate(
                uc_id=uc.id,
                uc_name=uc.name,
                uc_code=uc.code,
                town_id=town.id,
                city_id=city.id,
                distance_meters=round(distance, 2),
                confidence=self._confidence(distance),
            ))
        return candidates

    def validate_manual_choice(self, uc_id: str, point: Coordinates) -> ManualChoiceValidation:
        """
        사람이 선택한 UC를 검증합니다.

        비활성 UC는 valid=False. 거리가 경고 기준을 넘으면 warning만 붙이고
        수락은 막지 않습니다.

        Raises:
            NotFound: UC ID가 존재하지 않는 경우
        """
        uc = self.index.get(uc_id)
        if uc is None or uc.level != "uc":
            raise NotFound("uc", uc_id)

        if not self.index.is_eligible(uc):
            return ManualChoiceValidation(valid=False, uc_id=uc_id, error="UC is not active")

        town, city = self.index.ancestors(uc)
        distance = haversine_m(point.lat, point.lon, uc.center.lat, uc.center.lon)
        warning = None
        if distance > self.settings.manual_warning_distance_m:
            warning = f"Location is {round(distance / 1000)}km away from selected UC"
            log.warning(f"수동 선택 UC {uc.code}가 민원 위치에서 {distance:.0f}m 떨어져 있음")

        return ManualChoiceValidation(
            valid=True,
            uc_id=uc.id,
            town_id=town.id,
            city_id=city.id,
            distance_meters=round(distance, 2),
            warning=warning,
        )
