"""
Core domain models for civic-triage.

This module defines the core domain models using Pydantic v2
for type safety and validation. Entities that carry invariants are
built through ``create`` constructors which surface violations as
``InvalidInput`` instead of a raw pydantic ``ValidationError``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from civic_triage.common.geo import ring_problems
from .errors import InvalidInput

# 상태/등급 타입 정의
Status = Literal["reported", "acknowledged", "in_progress", "resolved", "closed", "rejected", "citizen_feedback"]
Urgency = Literal["low", "medium", "high", "critical"]
Priority = Literal["low", "medium", "high", "critical"]
AssignmentMethod = Literal["geofence", "nearest", "none"]
Confidence = Literal["exact", "high", "medium", "low", "none"]
UnitLevel = Literal["city", "town", "uc"]
AreaType = Literal["residential", "commercial", "industrial", "educational", "hospital", "slum"]

# 중복 탐지/빈도 계산 대상이 되는 "열린" 민원 판정용
CLOSED_STATUSES = frozenset({"resolved", "closed", "rejected"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # naive datetime은 UTC로 간주
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _invalid(exc: ValidationError, what: str) -> InvalidInput:
    problems = "; ".join(f"{'.'.join(str(p) for p in e['loc']) or what}: {e['msg']}" for e in exc.errors())
    return InvalidInput(f"invalid {what}: {problems}")


class Category(str, Enum):
    """민원 카테고리 (닫힌 집합)"""
    ROADS = "Roads"
    WATER = "Water"
    GARBAGE = "Garbage"
    ELECTRICITY = "Electricity"
    OTHERS = "Others"


class Coordinates(BaseModel):
    """경도/위도 좌표 모델"""
    model_config = ConfigDict(frozen=True)

    lon: float = Field(ge=-180, le=180)
    lat: float = Field(ge=-90, le=90)

    def as_lon_lat(self) -> Tuple[float, float]:
        return (self.lon, self.lat)


class AreaProfile(BaseModel):
    """UC 영향도 계산용 지역 특성"""
    model_config = ConfigDict(frozen=True)

    area_type: AreaType = "residential"
    near_school: bool = False
    near_hospital: bool = False
    high_traffic: bool = False
    main_road: bool = False


class GeographicUnit(BaseModel):
    """City / Town / UC 지리 단위 모델"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    code: str = Field(min_length=1)
    level: UnitLevel
    parent_id: Optional[str] = None
    city_id: Optional[str] = None
    center: Coordinates
    boundary: List[Tuple[float, float]]
    is_active: bool = True
    area: AreaProfile = Field(default_factory=AreaProfile)

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode="after")
    def _check_invariants(self) -> "GeographicUnit":
        if self.level == "city":
            if self.parent_id is not None:
                raise ValueError("city must not have a parent")
        elif self.parent_id is None:
            raise ValueError(f"{self.level} requires parent_id")
        if self.level == "uc" and self.city_id is None:
            raise ValueError("uc requires city_id")

        problems = ring_problems(self.boundary)
        if problems:
            raise ValueError("boundary: " + "; ".join(problems))
        return self

    @property
    def effective_city_id(self) -> str:
        """이 단위가 속한 City ID"""
        if self.level == "city":
            return self.id
        if self.level == "town":
            return self.city_id or self.parent_id  # type: ignore[return-value]
        return self.city_id  # type: ignore[return-value]

    @classmethod
    def create(cls, **data: Any) -> "GeographicUnit":
        """불변식을 검사하여 지리 단위를 생성합니다. 위반 시 InvalidInput."""
        try:
            return cls(**data)
        except ValidationError as e:
            raise _invalid(e, f"geographic unit {data.get('code') or data.get('id')}") from e


class ComplaintDraft(BaseModel):
    """트리아지 입력: 저장 전 민원 초안"""
    model_config = ConfigDict(frozen=True)

    description: str = Field(min_length=1, max_length=2000)
    coordinates: Coordinates
    category: Optional[Category] = None
    citizen_reported_urgency: Optional[Urgency] = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("description", mode="before")
    @classmethod
    def _strip_description(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("created_at")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @classmethod
    def create(cls, **data: Any) -> "ComplaintDraft":
        """검증된 초안을 생성합니다. 설명 누락/좌표 범위 초과 시 InvalidInput."""
        try:
            return cls(**data)
        except ValidationError as e:
            raise _invalid(e, "complaint draft") from e


class StatusHistoryEntry(BaseModel):
    """상태 이력 항목"""
    model_config = ConfigDict(frozen=True)

    status: Status
    timestamp: datetime = Field(default_factory=utcnow)
    actor_role: str = "system"
    remarks: str = ""


class Complaint(BaseModel):
    """저장된 민원 레코드 (코어가 읽는 관점)"""
    model_config = ConfigDict(frozen=True)

    id: str
    description: str
    coordinates: Coordinates
    category: Category = Category.OTHERS
    status: Status = "reported"
    history: List[StatusHistoryEntry] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    reported_urgency: Optional[Urgency] = None
    uc_id: Optional[str] = None
    town_id: Optional[str] = None
    city_id: Optional[str] = None
    duplicate_of: Optional[str] = None
    linked_complaints: List[str] = Field(default_factory=list)
    severity_score: Optional[float] = Field(default=None, ge=1, le=10)
    priority: Optional[Priority] = None

    @field_validator("created_at")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @property
    def is_open(self) -> bool:
        return self.status not in CLOSED_STATUSES


class Assignment(BaseModel):
    """UC 배정 결과. method="none"은 수동 선택이 필요한 정상 결과"""
    uc_id: Optional[str] = None
    town_id: Optional[str] = None
    city_id: Optional[str] = None
    method: AssignmentMethod = "none"
    confidence: Confidence = "none"
    distance_meters: Optional[float] = None
    message: Optional[str] = None

    @property
    def requires_manual_selection(self) -> bool:
        return self.method == "none"


class NearbyCandidate(BaseModel):
    """수동 배정용 근처 UC 후보"""
    uc_id: str
    uc_name: str
    uc_code: str
    town_id: str
    city_id: str
    distance_meters: float
    confidence: Confidence


class ManualChoiceValidation(BaseModel):
    """수동 UC 선택 검증 결과"""
    valid: bool
    uc_id: str
    town_id: Optional[str] = None
    city_id: Optional[str] = None
    distance_meters: Optional[float] = None
    warning: Optional[str] = None
    error: Optional[str] = None


class TextSimilarity(BaseModel):
    """텍스트 유사도 지표 (각 2자리 반올림)"""
    jaccard: float
    cosine: float
    edit: float
    combined: float
    edit_skipped: bool = False


class DuplicateScore(BaseModel):
    """후보 민원 한 건에 대한 중복 점수"""
    complaint_id: str
    text_similarity: TextSimilarity
    geo_proximity: float
    category_match: int
    time_proximity: float
    combined_score: float = Field(ge=0, le=1)
    distance_meters: float
    is_duplicate: bool
    is_exact_match: bool


class DuplicateResult(BaseModel):
    """중복 검사 결과"""
    is_duplicate: bool = False
    is_exact_match: bool = False
    exact_match_id: Optional[str] = None
    matched_complaint_id: Optional[str] = None
    combined_score: float = 0.0
    candidates_checked: int = 0
    best_match: Optional[DuplicateScore] = None
    similar: List[DuplicateScore] = Field(default_factory=list)
    search_radius_m: float = 0.0
    window_days: int = 0
    threshold: float = 0.0


class SeverityResult(BaseModel):
    """심각도 점수 결과"""
    score: float = Field(ge=1, le=10)
    priority: Priority
    factor_scores: Dict[str, float]
    details: Dict[str, Any] = Field(default_factory=dict)
    is_quick_estimate: bool = False
    needs_review: bool = False


class DuplicateStats(BaseModel):
    """기간 내 중복 탐지 통계"""
    total_complaints: int = 0
    duplicates_detected: int = 0
    complaints_with_links: int = 0
    duplicate_rate: int = 0
    period_days: int


class RescoreOutcome(BaseModel):
    """민원 한 건의 재계산 결과"""
    complaint_id: str
    success: bool
    score: Optional[float] = None
    priority: Optional[Priority] = None
    error: Optional[str] = None


class BatchRescoreResult(BaseModel):
    """열린 민원 일괄 재계산 결과"""
    processed: int = 0
    successful: int = 0
    failed: int = 0
    results: List[RescoreOutcome] = Field(default_factory=list)


class SeverityStats(BaseModel):
    """기간 내 심각도 분포 통계 (점수가 기록된 민원만)"""
    average: float = 0.0
    max_score: float = 0.0
    min_score: float = 0.0
    distribution: Dict[Priority, int] = Field(
        default_factory=lambda: {"critical": 0, "high": 0, "medium": 0, "low": 0}
    )
    total: int = 0
    period_days: int


class SLAInfo(BaseModel):
    """SLA 마감 정보"""
    category: str
    deadline: datetime
    target_hours: int
    breached: bool = False


class Classification(BaseModel):
    """로컬 키워드 분류 결과"""
    category: Category
    confidence: float
    urgency: Urgency
    subcategory: str = "general"
    keywords: List[str] = Field(default_factory=list)
    needs_review: bool = False
    source: str = "local"


class RelatedComplaints(BaseModel):
    """원본 + 연결된 중복 민원"""
    original: Optional[Complaint] = None
    linked: List[Complaint] = Field(default_factory=list)

    @property
    def total_related(self) -> int:
        return len(self.linked) + (1 if self.original else 0)


class TriageResult(BaseModel):
    """트리아지 전체 결과"""
    assignment: Assignment
    duplicate: DuplicateResult
    severity: SeverityResult
    sla: SLAInfo
    category: Category
    classification: Optional[Classification] = None
    needs_review: bool = False
    failed_stages: List[str] = Field(default_factory=list)
