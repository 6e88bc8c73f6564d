"""
Geographic utilities for civic-triage.

This module provides geographic calculations including
great-circle distance, point-in-polygon testing, bounding
boxes for query prefiltering and boundary ring validation.
"""

import math
from typing import List, Sequence, Tuple
from shapely.geometry import LinearRing

# 지구 평균 반지름 (미터)
EARTH_RADIUS_M = 6371000.0

# 위도 1도당 대략적인 거리 (미터)
METERS_PER_DEGREE = 111000.0

def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    두 지점 간의 Haversine 거리를 계산합니다 (미터).

    Args:
        lat1: 첫 번째 지점의 위도
        lon1: 첫 번째 지점의 경도
        lat2: 두 번째 지점의 위도
        lon2: 두 번째 지점의 경도

    Returns:
        두 지점 간의 거리 (미터)
    """
    # 도를 라디안으로 변환
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)

    # 위도와 경도의 차이
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    # Haversine 공식
    a = (math.sin(dlat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2)
    # 부동소수점 오차로 1을 넘는 경우 (대척점 근처)
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c

def point_in_polygon(point: Tuple[float, float], polygon: Sequence[Tuple[float, float]]) -> bool:
    """
    점이 폴리곤 내부에 있는지 Ray casting 알고리즘으로 확인합니다.

    Args:
        point: 확인할 점 (경도, 위도)
        polygon: 폴리곤의 꼭짓점들 [(경도, 위도), ...]

    Returns:
        점이 폴리곤 내부에 있으면 True, 외부에 있으면 False
    """
    if len(polygon) < 3:
        return False

    x, y = point
    n = len(polygon)
    inside = False

    p1x, p1y = polygon[0]
    for i in range(1, n + 1):
        p2x, p2y = polygon[i % n]
        if min(p1y, p2y) < y <= max(p1y, p2y) and x <= max(p1x, p2x):
            # p1y == p2y 인 수평 변은 위 조건에서 이미 제외됨
            xinters = (y - p1y) * (p2x - p1x) / (p2y - p1y) + p1x
            if p1x == p2x or x <= xinters:
                inside = not inside
        p1x, p1y = p2x, p2y

    return inside

def calculate_bounding_box(polygon: Sequence[Tuple[float, float]]) -> Tuple[float, float, float, float]:
    """
    폴리곤의 경계 상자를 계산합니다.

    Args:
        polygon: 폴리곤의 꼭짓점들 [(경도, 위도), ...]

    Returns:
        (min_lon, min_lat, max_lon, max_lat)
    """
    if not polygon:
        return (0, 0, 0, 0)

    lons = [p[0] for p in polygon]
    lats = [p[1] for p in polygon]

    return (min(lons), min(lats), max(lons), max(lats))

def bounding_box_around(lat: float, lon: float, radius_m: float) -> Tuple[float, float, float, float]:
    """
    중심점과 반경으로 근사 경계 상자를 계산합니다 (정밀 거리 계산 전 사전 필터용).

    Returns:
        (min_lon, min_lat, max_lon, max_lat)
    """
    lat_delta = radius_m / METERS_PER_DEGREE
    cos_lat = math.cos(math.radians(lat))
    # 극 근처에서는 경도 필터를 사용하지 않음
    lon_delta = 180.0 if cos_lat < 1e-6 else radius_m / (METERS_PER_DEGREE * cos_lat)

    return (lon - lon_delta, lat - lat_delta, lon + lon_delta, lat + lat_delta)

def validate_coordinates(lat: float, lon: float) -> bool:
    """
    좌표가 유효한지 확인합니다.

    Args:
        lat: 위도
        lon: 경도

    Returns:
        좌표가 유효하면 True
    """
    return -90 <= lat <= 90 and -180 <= lon <= 180

def ring_problems(ring: Sequence[Tuple[float, float]]) -> List[str]:
    """
    경계 링의 불변식을 검사하고 위반 사항 목록을 반환합니다.

    링은 4개 이상의 꼭짓점, 첫 점 = 마지막 점, 유효 좌표,
    자기 교차가 없는 단순 폴리곤이어야 합니다.
    """
    problems: List[str] = []
    if len(ring) < 4:
        problems.append(f"ring has {len(ring)} vertices, at least 4 required")
        return problems
    if tuple(ring[0]) != tuple(ring[-1]):
        problems.append("ring is not closed (first vertex != last vertex)")
    for lon, lat in ring:
        if not validate_coordinates(lat, lon):
            problems.append(f"vertex out of range: ({lon}, {lat})")
            break
    if not problems and not LinearRing(ring).is_simple:
        problems.append("ring is self-intersecting")
    return problems
