"""
Severity scoring for civic-triage.

Five factors, each on a 1-10 scale, combined with fixed weights:

    frequency 0.30, duration 0.25, category urgency 0.20,
    area impact 0.15, citizen urgency 0.10

Frequency and duration need complaint-store queries and run concurrently.
The quick estimate skips both and blends category urgency (0.6) with
citizen urgency (0.4).
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from civic_triage.observability.logging_setup import get_logger
from civic_triage.ports.categories import CategoryReadPort
from civic_triage.ports.complaints import ComplaintStorePort
from civic_triage.settings import SeveritySettings
from .errors import InvalidInput
from .models import (
    AreaProfile,
    BatchRescoreResult,
    Category,
    Complaint,
    ComplaintDraft,
    Coordinates,
    Priority,
    RescoreOutcome,
    SeverityResult,
    SeverityStats,
    Urgency,
    utcnow,
)

log = get_logger("civic_triage.severity")

WEIGHTS = {
    "frequency": 0.30,
    "duration": 0.25,
    "category_urgency": 0.20,
    "area_impact": 0.15,
    "citizen_urgency": 0.10,
}

QUICK_WEIGHTS = {
    "category_urgency": 0.6,
    "citizen_urgency": 0.4,
}

# (medium, high, critical) 기준값
FREQUENCY_THRESHOLDS = (2, 5, 10)
DURATION_THRESHOLDS_HOURS = (24, 72, 168)

# 건너뛴 요인의 기본 점수
SKIPPED_FREQUENCY_SCORE = 5.0
SKIPPED_DURATION_SCORE = 1.0

AREA_IMPACT_FACTORS = {
    "residential": 1.0,
    "commercial": 0.9,
    "industrial": 0.7,
    "educational": 1.2,
    "hospital": 1.3,
    "slum": 1.1,
}

AREA_BOOSTS = {
    "near_school": 1.15,
    "near_hospital": 1.2,
    "high_traffic": 1.1,
    "main_road": 1.05,
}

URGENCY_KEYWORDS: Dict[str, Tuple[List[str], float]] = {
    "critical": (["emergency", "life-threatening", "danger", "collapse", "fire", "electrocution",
                  "drowning", "accident", "death"], 3.0),
    "high": (["urgent", "hazard", "unsafe", "risk", "injured", "children", "elderly", "hospital",
              "school", "flooding"], 2.0),
    "medium": (["broken", "damaged", "not working", "leaking", "blocked", "overflow"], 1.0),
}

REPORTED_URGENCY_SCORES: Dict[str, float] = {"low": 3, "medium": 5, "high": 7, "critical": 9}

# (최소 점수, 우선순위) - 경계 포함
PRIORITY_BUCKETS: List[Tuple[float, Priority]] = [
    (8, "critical"),
    (6, "high"),
    (4, "medium"),
]


def _round1(value: float) -> float:
    return round(value, 1)


def interpolate_score(value: float, thresholds: Tuple[float, float, float]) -> float:
    """
    구간 선형 보간으로 값을 1-10 점수로 변환합니다.

    0 → 1, medium → 4, high → 7, critical 이상 → 10 (단조 비감소)

    Args:
        value: 건수 또는 경과 시간
        thresholds: (medium, high, critical)

    Returns:
        1-10 점수 (소수 1자리)
    """
    medium, high, critical = thresholds
    value = max(0.0, value)
    if value >= critical:
        score = 10.0
    elif value >= high:
        score = 7 + (value - high) / (critical - high) * 3
    elif value >= medium:
        score = 4 + (value - medium) / (high - medium) * 3
    else:
        score = 1 + value / medium * 3
    return _round1(score)


def frequency_score(count: int) -> float:
    return interpolate_score(count, FREQUENCY_THRESHOLDS)


def duration_score(hours: float) -> float:
    return interpolate_score(hours, DURATION_THRESHOLDS_HOURS)


def area_impact_score(area: Optional[AreaProfile] = None) -> Tuple[float, float]:
    """
    지역 특성으로 영향도 점수를 계산합니다.

    Returns:
        (점수, 적용된 배수)
    """
    area = area or AreaProfile()
    multiplier = AREA_IMPACT_FACTORS.get(area.area_type, 1.0)
    for flag, boost in AREA_BOOSTS.items():
        if getattr(area, flag):
            multiplier *= boost
    return _round1(min(5 * multiplier, 10.0)), multiplier


def citizen_urgency_score(description: str,
                          reported_urgency: Optional[Urgency] = None) -> Tuple[float, List[Dict[str, str]]]:
    """
    설명의 긴급 키워드와 시민이 보고한 긴급도로 점수를 계산합니다.

    기본 5점에서 매칭된 최고 등급의 가산점을 더하고, 보고된 긴급도가
    있으면 그 점수와 평균합니다.

    Returns:
        (점수, 매칭된 키워드 목록)
    """
    text = (description or "").lower()
    score = 5.0
    matched = []
    for level, (keywords, boost) in URGENCY_KEYWORDS.items():
        for keyword in keywords:
            if keyword in text:
                score = max(score, 5 + boost)
                matched.append({"keyword": keyword, "level": level})

    if reported_urgency:
        score = (score + REPORTED_URGENCY_SCORES.get(reported_urgency, 5)) / 2

    return _round1(min(score, 10.0)), matched


def priority_for(score: float) -> Priority:
    """점수를 우선순위 등급으로 변환합니다 (8/6/4 경계 포함)"""
    for minimum, priority in PRIORITY_BUCKETS:
        if score >= minimum:
            return priority
    return "low"


def combine_factors(factors: Dict[str, float], weights: Dict[str, float] = WEIGHTS) -> float:
    """가중합을 소수 1자리로 반올림하고 [1, 10] 범위로 제한합니다."""
    weighted = sum(weights[name] * factors[name] for name in weights)
    return min(10.0, max(1.0, _round1(weighted)))


class SeverityScorer:
    """민원 심각도 점수 계산기"""

    def __init__(self,
                 store: ComplaintStorePort,
                 categories: CategoryReadPort,
                 settings: Optional[SeveritySettings] = None,
                 clock: Callable[[], datetime] = utcnow):
        """
        초기화합니다.

        Args:
            store: 민원 저장소 포트 (빈도/지속시간 조회)
            categories: 카테고리 설정 조회 포트
            settings: 심각도 설정
            clock: 현재 시각 함수 (테스트에서 주입)
        """
        self.store = store
        self.categories = categories
        self.settings = settings or SeveritySettings()
        self.clock = clock

    def category_urgency(self, category: Optional[Category]) -> float:
        cfg = self.categories.get(category) or self.categories.get(Category.OTHERS)
        return float(cfg.base_urgency_score) if cfg else 4.0

    async def _frequency(self,
                         point: Coordinates,
                         category: Category,
                         reference: datetime,
                         exclude_ids: Sequence[str]) -> Tuple[float, int]:
        since = reference - timedelta(days=self.settings.frequency_window_days)
        count = await self.store.count_open_near(
            point, self.settings.frequency_radius_m, since,
            category=category, exclude_ids=exclude_ids,
        )
        return frequency_score(count), count

    async def _duration(self,
                        point: Coordinates,
                        category: Category,
                        opened_at: datetime,
                        now: datetime,
                        exclude_ids: Sequence[str]) -> Tuple[float, float]:
        first_reported = opened_at
        if self.settings.use_cluster_first_report:
            since = now - timedelta(days=self.settings.frequency_window_days)
            earliest = await self.store.earliest_open_near(
                point, self.settings.frequency_radius_m, since,
                category=category, exclude_ids=exclude_ids,
            )
            if earliest is not None and earliest < first_reported:
                first_reported = earliest
        hours = max(0.0, (now - first_reported).total_seconds() / 3600)
        return duration_score(hours), hours

    async def _score(self,
                     *,
                     description: str,
                     point: Coordinates,
                     category: Category,
                     reported_urgency: Optional[Urgency],
                     opened_at: datetime,
                     area: Optional[AreaProfile],
                     include_frequency: bool,
                     include_duration: bool,
                     exclude_ids: Sequence[str],
                     now: Optional[datetime]) -> SeverityResult:
        now = now or self.clock()

        async def skipped(value: float) -> Tuple[float, Any]:
            return value, None

        freq_task = (self._frequency(point, category, opened_at, exclude_ids)
                     if include_frequency else skipped(SKIPPED_FREQUENCY_SCORE))
        dur_task = (self._duration(point, category, opened_at, now, exclude_ids)
                    if include_duration else skipped(SKIPPED_DURATION_SCORE))
        (freq, count), (dur, hours) = await asyncio.gather(freq_task, dur_task)

        area_score, multiplier = area_impact_score(area)
        citizen, matched = citizen_urgency_score(description, reported_urgency)

        factors = {
            "frequency": freq,
            "duration": dur,
            "category_urgency": self.category_urgency(category),
            "area_impact": area_score,
            "citizen_urgency": citizen,
        }
        score = combine_factors(factors)
        priority = priority_for(score)

        details: Dict[str, Any] = {
            "category": category.value,
            "complaint_count": count,
            "hours_open": round(hours, 1) if hours is not None else None,
            "area_type": (area or AreaProfile()).area_type,
            "area_multiplier": round(multiplier, 4),
            "matched_keywords": matched,
        }
        log.debug(f"심각도 {score} ({priority}): {factors}")
        return SeverityResult(score=score, priority=priority, factor_scores=factors, details=details)

    async def score(self,
                    draft: ComplaintDraft,
                    *,
                    category: Optional[Category] = None,
                    area: Optional[AreaProfile] = None,
                    include_frequency: bool = True,
                    include_duration: bool = True,
                    exclude_ids: Sequence[str] = (),
                    now: Optional[datetime] = None) -> SeverityResult:
        """
        민원 초안의 전체 심각도를 계산합니다.

        Args:
            draft: 민원 초안
            category: 사용할 카테고리 (없으면 draft.category, 그것도 없으면 Others)
            area: 배정된 UC의 지역 특성
            include_frequency: 빈도 요인 계산 여부 (건너뛰면 5점)
            include_duration: 지속시간 요인 계산 여부 (건너뛰면 1점)
            exclude_ids: 빈도 계산에서 제외할 민원 ID
            now: 기준 시각

        Returns:
            심각도 결과
        """
        return await self._score(
            description=draft.description,
            point=draft.coordinates,
            category=category or draft.category or Category.OTHERS,
            reported_urgency=draft.citizen_reported_urgency,
            opened_at=draft.created_at,
            area=area,
            include_frequency=include_frequency,
            include_duration=include_duration,
            exclude_ids=exclude_ids,
            now=now,
        )

    async def rescore(self,
                      complaint: Complaint,
                      *,
                      area: Optional[AreaProfile] = None,
                      now: Optional[datetime] = None) -> SeverityResult:
        """저장된 민원의 심각도를 다시 계산합니다 (자기 자신은 빈도에서 제외)"""
        return await self._score(
            description=complaint.description,
            point=complaint.coordinates,
            category=complaint.category,
            reported_urgency=complaint.reported_urgency,
            opened_at=complaint.created_at,
            area=area,
            include_frequency=True,
            include_duration=True,
            exclude_ids=(complaint.id,),
            now=now,
        )

    def quick_score(self,
                    description: str,
                    category: Optional[Category] = None,
                    reported_urgency: Optional[Urgency] = None,
                    *,
                    needs_review: bool = False) -> SeverityResult:
        """
        저장소 조회 없이 빠른 심각도 추정치를 계산합니다.

        Args:
            description: 민원 설명
            category: 카테고리
            reported_urgency: 시민이 보고한 긴급도
            needs_review: 검토 필요 표시 (단계 실패 시 폴백에서 사용)

        Returns:
            is_quick_estimate=True 인 심각도 결과
        """
        category_score = self.category_urgency(category or Category.OTHERS)
        citizen, matched = citizen_urgency_score(description, reported_urgency)
        factors = {"category_urgency": category_score, "citizen_urgency": citizen}
        score = combine_factors(factors, QUICK_WEIGHTS)
        return SeverityResult(
            score=score,
            priority=priority_for(score),
            factor_scores=factors,
            details={"matched_keywords": matched},
            is_quick_estimate=True,
            needs_review=needs_review,
        )

    async def rescore_batch(self,
                            *,
                            category: Optional[Category] = None,
                            area_for: Optional[Callable[[Complaint], Optional[AreaProfile]]] = None,
                            persist: bool = True,
                            limit: Optional[int] = None,
                            now: Optional[datetime] = None) -> BatchRescoreResult:
        """
        열린 민원의 심각도를 일괄 재계산합니다.

        한 건의 실패는 결과에 기록하고 나머지 민원은 계속 처리합니다.

        Args:
            category: 카테고리 필터
            area_for: 민원 → 지역 특성 조회 함수 (없으면 기본 지역)
            persist: 새 점수와 우선순위를 저장소에 기록할지 여부
            limit: 최대 처리 건수
            now: 기준 시각 (배치 전체에 동일하게 적용)

        Returns:
            처리/성공/실패 건수와 민원별 결과
        """
        now = now or self.clock()
        complaints = await self.store.list_open(category=category, limit=limit)

        outcomes: List[RescoreOutcome] = []
        for complaint in complaints:
            try:
                area = area_for(complaint) if area_for else None
                result = await self.rescore(complaint, area=area, now=now)
                if persist:
                    await self.store.save(complaint.model_copy(
                        update={"severity_score": result.score, "priority": result.priority}
                    ))
            except Exception as e:
                log.opt(exception=e).warning(f"심각도 재계산 실패: {complaint.id} ({e})")
                outcomes.append(RescoreOutcome(complaint_id=complaint.id, success=False, error=str(e)))
                continue
            outcomes.append(RescoreOutcome(
                complaint_id=complaint.id, success=True, score=result.score, priority=result.priority,
            ))

        successful = sum(1 for o in outcomes if o.success)
        log.info(f"심각도 일괄 재계산: {len(outcomes)}건 처리, {successful}건 성공")
        return BatchRescoreResult(
            processed=len(outcomes),
            successful=successful,
            failed=len(outcomes) - successful,
            results=outcomes,
        )

    async def stats(self, days: int = 30, *, now: Optional[datetime] = None) -> SeverityStats:
        """최근 days일 동안 점수가 기록된 민원의 심각도 분포"""
        if days <= 0:
            raise InvalidInput(f"days must be positive: {days}")
        since = (now or self.clock()) - timedelta(days=days)
        scores = await self.store.severity_scores(since)
        if not scores:
            return SeverityStats(period_days=days)

        distribution: Dict[Priority, int] = {"critical": 0, "high": 0, "medium": 0, "low": 0}
        for score in scores:
            distribution[priority_for(score)] += 1
        return SeverityStats(
            average=_round1(sum(scores) / len(scores)),
            max_score=max(scores),
            min_score=min(scores),
            distribution=distribution,
            total=len(scores),
            period_days=days,
        )
