"""
SLA deadlines for civic-triage.

The deadline is fixed at creation (``created_at + sla_hours``); the breach
flag is always re-evaluated from ``(now, deadline, status)`` and never
stored.
"""

from datetime import datetime, timedelta
from typing import Optional, Union

from civic_triage.ports.categories import CategoryReadPort
from civic_triage.settings import SLASettings
from .categories import parse_category
from .models import Category, Complaint, SLAInfo, Status, _as_utc, utcnow

# 이 상태의 민원은 마감을 넘겨도 위반으로 보지 않음
SLA_DONE_STATUSES = frozenset({"resolved", "closed", "citizen_feedback"})


class SLAManager:
    """카테고리별 SLA 마감 계산기"""

    def __init__(self, categories: CategoryReadPort, settings: Optional[SLASettings] = None):
        self.categories = categories
        self.settings = settings or SLASettings()

    def target_hours(self, category: Union[str, Category, None]) -> int:
        """카테고리 목표 처리 시간. 매핑되지 않은 카테고리는 기본값(72h)"""
        cfg = self.categories.get(category)
        return cfg.sla_hours if cfg else self.settings.default_hours

    def compute_deadline(self, category: Union[str, Category, None], created_at: datetime) -> datetime:
        return _as_utc(created_at) + timedelta(hours=self.target_hours(category))

    @staticmethod
    def is_breached(deadline: datetime, now: datetime, status: Status) -> bool:
        """
        SLA 위반 여부를 판정합니다.

        Args:
            deadline: 마감 시각
            now: 기준 시각
            status: 현재 민원 상태

        Returns:
            now > deadline 이고 완료 상태(resolved/closed/citizen_feedback)가 아니면 True
        """
        return _as_utc(now) > _as_utc(deadline) and status not in SLA_DONE_STATUSES

    @staticmethod
    def time_remaining(deadline: datetime, now: datetime) -> timedelta:
        """마감까지 남은 시간 (초과 시 음수)"""
        return _as_utc(deadline) - _as_utc(now)

    def compute_sla(self,
                    category: Union[str, Category, None],
                    created_at: datetime,
                    *,
                    status: Status = "reported",
                    now: Optional[datetime] = None) -> SLAInfo:
        """
        카테고리와 생성 시각으로 SLA 정보를 계산합니다.

        Args:
            category: 카테고리 (알 수 없으면 기본 72시간)
            created_at: 민원 생성 시각
            status: 위반 판정에 쓸 현재 상태
            now: 기준 시각

        Returns:
            마감/목표 시간/위반 여부
        """
        parsed = parse_category(category)
        name = parsed.value if parsed else (str(category) if category else Category.OTHERS.value)
        deadline = self.compute_deadline(category, created_at)
        return SLAInfo(
            category=name,
            deadline=deadline,
            target_hours=self.target_hours(category),
            breached=self.is_breached(deadline, now or utcnow(), status),
        )

    def sla_status(self, complaint: Complaint, now: Optional[datetime] = None) -> SLAInfo:
        """저장된 민원의 현재 SLA 상태 (위반 여부는 호출 시점에 재계산)"""
        return self.compute_sla(complaint.category, complaint.created_at, status=complaint.status, now=now)
