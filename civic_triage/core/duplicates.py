"""
Duplicate detection for civic-triage.

Retrieves open complaints near a draft (geo + time window) and scores
each one by text similarity, geographic proximity, category match and
temporal proximity. The read-then-decide check is best-effort: two
simultaneous submissions for the same incident can both be accepted.
"""

import math
from datetime import datetime, timedelta
from typing import Any, List, Optional, Sequence

from civic_triage.common.geo import haversine_m
from civic_triage.observability.logging_setup import get_logger
from civic_triage.ports.complaints import ComplaintStorePort
from civic_triage.settings import DuplicateSettings
from .errors import InvalidInput
from .models import (
    Category,
    Complaint,
    ComplaintDraft,
    Coordinates,
    DuplicateResult,
    DuplicateScore,
    DuplicateStats,
    RelatedComplaints,
    utcnow,
)
from .similarity import SimilarityEngine

log = get_logger("civic_triage.duplicates")

# 결합 점수 가중치
TEXT_WEIGHT = 0.5
GEO_WEIGHT = 0.25
CATEGORY_WEIGHT = 0.15
TIME_WEIGHT = 0.10


def geo_proximity(distance_m: float, max_radius_m: float) -> float:
    """선형 감쇠: 거리 0에서 1, max_radius_m 이상에서 0"""
    if max_radius_m <= 0:
        return 0.0
    return max(0.0, 1 - distance_m / max_radius_m)


def time_proximity(hours_apart: float, window_days: int) -> float:
    """지수 감쇠: exp(-Δh / (window·24/3)), 윈도우 밖은 0"""
    if hours_apart <= 0:
        return 1.0
    window_hours = window_days * 24
    if hours_apart >= window_hours:
        return 0.0
    return math.exp(-hours_apart / (window_hours / 3))


class DuplicateDetector:
    """중복 민원 탐지기"""

    def __init__(self,
                 store: ComplaintStorePort,
                 similarity: Optional[SimilarityEngine] = None,
                 settings: Optional[DuplicateSettings] = None):
        """
        초기화합니다.

        Args:
            store: 민원 저장소 포트
            similarity: 텍스트 유사도 엔진
            settings: 중복 탐지 설정
        """
        self.store = store
        self.similarity = similarity or SimilarityEngine()
        self.settings = settings or DuplicateSettings()

    def _radius(self, radius_m: Optional[float]) -> float:
        radius = self.settings.radius_m if radius_m is None else radius_m
        return min(radius, self.settings.max_radius_m)

    async def find_candidates(self,
                              draft: ComplaintDraft,
                              *,
                              radius_m: Optional[float] = None,
                              window_days: Optional[int] = None,
                              category: Optional[Category] = None,
                              exclude_ids: Sequence[str] = (),
                              limit: Optional[int] = None) -> List[Complaint]:
        """
        초안 주변의 열린 민원 후보를 조회합니다.

        Args:
            draft: 민원 초안 (좌표와 생성 시각이 기준)
            radius_m: 검색 반경 (최대 max_radius_m으로 제한)
            window_days: 검색 기간 (일)
            category: 카테고리 필터
            exclude_ids: 제외할 민원 ID
            limit: 최대 후보 수

        Returns:
            후보 민원 목록
        """
        days = self.settings.window_days if window_days is None else window_days
        since = draft.created_at - timedelta(days=days)
        return await self.store.find_open_near(
            draft.coordinates,
            self._radius(radius_m),
            since,
            category=category,
            exclude_ids=exclude_ids,
            limit=self.settings.candidate_limit if limit is None else limit,
        )

    def score(self,
              draft: ComplaintDraft,
              candidate: Complaint,
              *,
              threshold: Optional[float] = None,
              window_days: Optional[int] = None) -> DuplicateScore:
        """
        후보 민원 한 건의 중복 점수를 계산합니다.

        Args:
            draft: 새 민원 초안
            candidate: 기존 민원
            threshold: 중복 판정 기준 점수
            window_days: 시간 근접도 윈도우 (일)

        Returns:
            지표별 점수와 결합 점수
        """
        threshold = self.settings.threshold if threshold is None else threshold
        days = self.settings.window_days if window_days is None else window_days

        text = self.similarity.compare(draft.description, candidate.description)
        distance = haversine_m(draft.coordinates.lat, draft.coordinates.lon,
                               candidate.coordinates.lat, candidate.coordinates.lon)
        geo = geo_proximity(distance, self.settings.max_radius_m)
        category_match = 1 if draft.category is not None and draft.category == candidate.category else 0
        hours_apart = abs((draft.created_at - candidate.created_at).total_seconds()) / 3600
        time_score = time_proximity(hours_apart, days)

        combined = (TEXT_WEIGHT * text.combined
                    + GEO_WEIGHT * geo
                    + CATEGORY_WEIGHT * category_match
                    + TIME_WEIGHT * time_score)
        combined = min(1.0, max(0.0, round(combined, 2)))

        return DuplicateScore(
            complaint_id=candidate.id,
            text_similarity=text,
            geo_proximity=round(geo, 2),
            category_match=category_match,
            time_proximity=round(time_score, 2),
            combined_score=combined,
            distance_meters=round(distance, 2),
            is_duplicate=combined >= threshold,
            is_exact_match=text.combined >= self.settings.exact_match,
        )

    async def check_for_duplicates(self,
                                   draft: ComplaintDraft,
                                   *,
                                   radius_m: Optional[float] = None,
                                   window_days: Optional[int] = None,
                                   threshold: Optional[float] = None,
                                   exclude_ids: Sequence[str] = ()) -> DuplicateResult:
        """
        초안이 기존 열린 민원의 중복인지 검사합니다.

        Args:
            draft: 새 민원 초안 (category가 있으면 같은 카테고리만 검색)
            radius_m: 검색 반경
            window_days: 검색 기간 (일)
            threshold: 중복 판정 기준 (기본 0.75)
            exclude_ids: 제외할 민원 ID

        Returns:
            중복 검사 결과 (상위 후보 + 최고 매칭)
        """
        radius = self._radius(radius_m)
        days = self.settings.window_days if window_days is None else window_days
        threshold = self.settings.threshold if threshold is None else threshold

        candidates = await self.find_candidates(
            draft,
            radius_m=radius,
            window_days=days,
            category=draft.category,
            exclude_ids=exclude_ids,
        )

        results = []
        for candidate in candidates:
            result = self.score(draft, candidate, threshold=threshold, window_days=days)
            log.debug(f"후보 {candidate.id}: 결합 {result.combined_score} "
                      f"(텍스트 {result.text_similarity.combined}, 거리 {result.distance_meters}m)")
            results.append(result)

        # 텍스트 일치는 결합 순위와 무관하게 판정 (텍스트 점수가 가장 높은 후보)
        exact = max(
            (r for r in results if r.is_exact_match),
            key=lambda r: (r.text_similarity.combined, -r.distance_meters),
            default=None,
        )

        scored = [r for r in results if r.combined_score >= self.settings.report_min_score]

        # 점수 내림차순, 동률이면 가까운 순
        scored.sort(key=lambda s: (-s.combined_score, s.distance_meters, s.complaint_id))
        best = scored[0] if scored else None
        is_duplicate = best is not None and best.combined_score >= threshold

        if is_duplicate:
            log.info(f"중복 의심: {best.complaint_id} 점수 {best.combined_score}")

        return DuplicateResult(
            is_duplicate=is_duplicate,
            is_exact_match=exact is not None,
            exact_match_id=exact.complaint_id if exact else None,
            matched_complaint_id=best.complaint_id if is_duplicate else None,
            combined_score=best.combined_score if best else 0.0,
            candidates_checked=len(candidates),
            best_match=best,
            similar=scored[:self.settings.top_n],
            search_radius_m=radius,
            window_days=days,
            threshold=threshold,
        )

    async def link(self, original_id: str, duplicate_id: str) -> None:
        """
        중복 민원을 원본에 연결합니다.

        Raises:
            InvalidInput: 자기 자신에게 연결하는 경우
            NotFound: 둘 중 하나가 존재하지 않는 경우 (저장소에서 발생)
        """
        if original_id == duplicate_id:
            raise InvalidInput("a complaint cannot be linked as a duplicate of itself")
        await self.store.link_duplicate(original_id, duplicate_id)
        log.info(f"중복 연결: {duplicate_id} → {original_id}")

    async def find_related(self, complaint_id: str) -> RelatedComplaints:
        """원본과 연결된 민원을 조회합니다."""
        return await self.store.find_related(complaint_id)

    async def check_batch(self, drafts: Sequence[ComplaintDraft], **options: Any) -> List[DuplicateResult]:
        """
        여러 초안을 순서대로 중복 검사합니다.

        초안끼리는 서로 비교하지 않고 각각 저장소의 기존 민원과만 비교합니다.

        Args:
            drafts: 민원 초안 목록
            **options: check_for_duplicates 옵션 (radius_m, window_days, threshold)

        Returns:
            입력 순서와 같은 순서의 검사 결과
        """
        results = []
        for draft in drafts:
            results.append(await self.check_for_duplicates(draft, **options))
        log.info(f"일괄 중복 검사 완료: {len(drafts)}건 중 {sum(r.is_duplicate for r in results)}건 중복 의심")
        return results

    async def stats(self, days: int = 30, *, now: Optional[datetime] = None) -> DuplicateStats:
        """최근 days일 동안 접수된 민원의 중복 통계"""
        if days <= 0:
            raise InvalidInput(f"days must be positive: {days}")
        since = (now or utcnow()) - timedelta(days=days)
        total, duplicates, with_links = await self.store.duplicate_counts(since)
        return DuplicateStats(
            total_complaints=total,
            duplicates_detected=duplicates,
            complaints_with_links=with_links,
            duplicate_rate=math.floor(duplicates / total * 100 + 0.5) if total else 0,
            period_days=days,
        )
