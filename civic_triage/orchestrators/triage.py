"""
Triage orchestrator for civic-triage.

This module wires the resolver, duplicate detector, severity scorer and
SLA manager into one per-request pipeline:

    resolve → (duplicate ‖ severity) → SLA

Every stage is wrapped; a stage failure is logged, counted and replaced
by a safe default so the submission still succeeds. Only an invalid
draft aborts the request.
"""

import asyncio
import time
import uuid
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar, Union

from civic_triage.common.cache import TTLCache
from civic_triage.common.cancel import run_cancellable
from civic_triage.core import status as status_machine
from civic_triage.core.classifier import classify
from civic_triage.core.duplicates import DuplicateDetector
from civic_triage.core.geo_index import GeographicIndex
from civic_triage.core.hierarchy import HierarchyResolver
from civic_triage.core.models import (
    AreaProfile,
    Assignment,
    BatchRescoreResult,
    Category,
    Classification,
    Complaint,
    ComplaintDraft,
    Coordinates,
    DuplicateResult,
    DuplicateStats,
    ManualChoiceValidation,
    NearbyCandidate,
    RelatedComplaints,
    SeverityResult,
    SeverityStats,
    SLAInfo,
    Status,
    TriageResult,
    utcnow,
)
from civic_triage.core.severity import SeverityScorer
from civic_triage.core.similarity import SimilarityEngine
from civic_triage.core.sla import SLAManager
from civic_triage.observability import metrics
from civic_triage.observability.logging_setup import get_logger, with_context
from civic_triage.ports.categories import CategoryReadPort
from civic_triage.ports.complaints import ComplaintStorePort
from civic_triage.settings import Settings

log = get_logger("civic_triage.triage")

T = TypeVar("T")


class TriageEngine:
    """민원 트리아지 오케스트레이터"""

    def __init__(self,
                 index: GeographicIndex,
                 store: ComplaintStorePort,
                 categories: CategoryReadPort,
                 settings: Optional[Settings] = None,
                 *,
                 clock: Callable[[], datetime] = utcnow):
        """
        초기화합니다.

        Args:
            index: 지리 단위 인덱스
            store: 민원 저장소 포트
            categories: 카테고리 설정 조회 포트
            settings: 전체 설정
            clock: 현재 시각 함수
        """
        self.settings = settings or Settings()
        self.index = index
        self.store = store
        self.categories = categories
        self.clock = clock

        cache_cfg = self.settings.similarity_cache
        cache = TTLCache(cache_cfg.max_size, cache_cfg.ttl_sec) if cache_cfg.enabled else None

        self.resolver = HierarchyResolver(index, self.settings.geo)
        self.detector = DuplicateDetector(store, SimilarityEngine(cache), self.settings.duplicate)
        self.scorer = SeverityScorer(store, categories, self.settings.severity, clock)
        self.sla = SLAManager(categories, self.settings.sla)

        log.info(f"TriageEngine 초기화됨 (유사도 캐시: {'on' if cache else 'off'})")

    # ---- 개별 연산 ----

    def resolve_hierarchy(self, point: Coordinates, **options: Any) -> Assignment:
        """좌표에 UC/Town/City를 배정합니다."""
        return self.resolver.assign(point, **options)

    def nearby_candidates(self, point: Coordinates, limit: int = 10) -> List[NearbyCandidate]:
        return self.resolver.nearby_candidates(point, limit)

    def validate_manual_choice(self, uc_id: str, point: Coordinates) -> ManualChoiceValidation:
        return self.resolver.validate_manual_choice(uc_id, point)

    async def check_duplicate(self, draft: ComplaintDraft, **options: Any) -> DuplicateResult:
        """초안의 중복 여부를 검사합니다."""
        return await self.detector.check_for_duplicates(draft, **options)

    async def link_duplicate(self, original_id: str, duplicate_id: str) -> None:
        await self.detector.link(original_id, duplicate_id)

    async def find_related(self, complaint_id: str) -> RelatedComplaints:
        return await self.detector.find_related(complaint_id)

    async def check_duplicates_batch(self, drafts: List[ComplaintDraft], **options: Any) -> List[DuplicateResult]:
        return await self.detector.check_batch(drafts, **options)

    async def duplicate_stats(self, days: int = 30) -> DuplicateStats:
        return await self.detector.stats(days, now=self.clock())

    def _uc_area(self, uc_id: Optional[str]) -> Optional[AreaProfile]:
        if uc_id is None:
            return None
        uc = self.index.get(uc_id)
        return uc.area if uc else None

    def area_for(self, assignment: Optional[Assignment]) -> Optional[AreaProfile]:
        """배정된 UC의 지역 특성 (없으면 None)"""
        return self._uc_area(assignment.uc_id) if assignment else None

    async def score_severity(self,
                             draft: ComplaintDraft,
                             assignment: Optional[Assignment] = None,
                             *,
                             now: Optional[datetime] = None) -> SeverityResult:
        """
        심각도를 계산합니다.

        Args:
            draft: 민원 초안
            assignment: UC 배정 결과 (지역 영향도 계산에 사용)
            now: 기준 시각

        Returns:
            심각도 결과
        """
        return await self.scorer.score(draft, area=self.area_for(assignment), now=now)

    async def rescore_open(self,
                           *,
                           category: Optional[Category] = None,
                           persist: bool = True,
                           limit: Optional[int] = None) -> BatchRescoreResult:
        """
        열린 민원 전체의 심각도를 다시 계산합니다.

        지역 영향도는 각 민원에 기록된 UC의 지역 특성을 사용합니다.
        """
        return await self.scorer.rescore_batch(
            category=category,
            area_for=lambda complaint: self._uc_area(complaint.uc_id),
            persist=persist,
            limit=limit,
            now=self.clock(),
        )

    async def severity_stats(self, days: int = 30) -> SeverityStats:
        return await self.scorer.stats(days, now=self.clock())

    def compute_sla(self,
                    category: Union[str, Category, None],
                    created_at: datetime,
                    *,
                    status: Status = "reported",
                    now: Optional[datetime] = None) -> SLAInfo:
        return self.sla.compute_sla(category, created_at, status=status, now=now or self.clock())

    def classify(self, text: str) -> Classification:
        return classify(text, self.categories)

    async def transition_status(self,
                                complaint: Complaint,
                                new_status: Status,
                                *,
                                actor_role: str = "system",
                                remarks: str = "",
                                now: Optional[datetime] = None,
                                persist: bool = False) -> Complaint:
        """
        민원 상태를 전이하고 필요하면 저장합니다.

        Raises:
            InvalidTransition: 허용되지 않는 전이
            NotFound: persist=True 인데 민원이 저장소에 없는 경우
        """
        updated = status_machine.transition_status(
            complaint, new_status, actor_role=actor_role, remarks=remarks, now=now or self.clock(),
        )
        if persist:
            await self.store.save(updated)
        log.info(f"상태 전이: {complaint.id} {complaint.status} → {new_status}")
        return updated

    # ---- 전체 파이프라인 ----

    async def triage(self,
                     draft: Union[ComplaintDraft, Dict[str, Any]],
                     *,
                     now: Optional[datetime] = None,
                     cancel: Optional[asyncio.Event] = None,
                     request_id: Optional[str] = None) -> TriageResult:
        """
        민원 초안을 트리아지합니다.

        Args:
            draft: 민원 초안 (dict면 검증 후 변환)
            now: 기준 시각
            cancel: 설정되면 진행 중인 하위 쿼리를 취소하는 이벤트
            request_id: 로그에 붙일 요청 ID (없으면 생성)

        Returns:
            트리아지 결과

        Raises:
            InvalidInput: 초안이 유효하지 않은 경우
            asyncio.CancelledError: 취소 신호를 받은 경우
        """
        if not isinstance(draft, ComplaintDraft):
            draft = ComplaintDraft.create(**draft)
        with with_context(request_id=request_id or uuid.uuid4().hex[:12]):
            return await run_cancellable(self._triage(draft, now or self.clock()), cancel)

    async def _stage(self,
                     name: str,
                     work: Callable[[], Awaitable[T]],
                     fallback: Callable[[], T],
                     failed: List[str]) -> T:
        try:
            with metrics.stage_seconds.labels(stage=name).time():
                return await work()
        except Exception as e:
            log.opt(exception=e).warning(f"단계 실패, 기본값 사용: {name} ({e})")
            metrics.stage_failures.labels(stage=name).inc()
            failed.append(name)
            return fallback()

    async def _triage(self, draft: ComplaintDraft, now: datetime) -> TriageResult:
        t0 = time.perf_counter()
        metrics.triage_requests.inc()
        failed: List[str] = []

        # 카테고리가 없으면 로컬 키워드 분류
        classification = None
        category = draft.category
        if category is None:
            classification = self.classify(draft.description)
            category = classification.category
            draft = draft.model_copy(update={"category": category})

        async def resolve() -> Assignment:
            return self.resolve_hierarchy(draft.coordinates)

        assignment = await self._stage(
            "resolve", resolve,
            lambda: Assignment(method="none", confidence="none"),
            failed,
        )

        duplicate, severity = await asyncio.gather(
            self._stage(
                "duplicate", lambda: self.check_duplicate(draft),
                DuplicateResult,
                failed,
            ),
            self._stage(
                "severity", lambda: self.score_severity(draft, assignment, now=now),
                lambda: self.scorer.quick_score(draft.description, category, draft.citizen_reported_urgency,
                                                needs_review=True),
                failed,
            ),
        )

        async def sla() -> SLAInfo:
            return self.compute_sla(category, draft.created_at, now=now)

        sla_info = await self._stage(
            "sla", sla,
            lambda: self.sla.compute_sla(None, draft.created_at, now=now),
            failed,
        )

        metrics.uc_assignments.labels(method=assignment.method, confidence=assignment.confidence).inc()
        metrics.severity_priority.labels(priority=severity.priority).inc()
        if duplicate.is_duplicate:
            metrics.duplicates_detected.inc()
        metrics.end_to_end_seconds.observe(time.perf_counter() - t0)

        needs_review = bool(
            failed
            or assignment.requires_manual_selection
            or severity.needs_review
            or (classification is not None and classification.needs_review)
        )

        log.info(f"트리아지 완료: UC {assignment.uc_id or '-'} ({assignment.method}), "
                 f"중복 {duplicate.is_duplicate}, 심각도 {severity.score} ({severity.priority}), "
                 f"SLA {sla_info.target_hours}h")

        return TriageResult(
            assignment=assignment,
            duplicate=duplicate,
            severity=severity,
            sla=sla_info,
            category=category,
            classification=classification,
            needs_review=needs_review,
            failed_stages=failed,
        )
