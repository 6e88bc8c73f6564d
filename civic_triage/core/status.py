"""
Complaint status state machine for civic-triage.
"""

from datetime import datetime
from typing import Dict, FrozenSet, Optional

from .errors import InvalidTransition
from .models import Complaint, Status, StatusHistoryEntry, utcnow

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "reported": frozenset({"acknowledged", "rejected"}),
    "acknowledged": frozenset({"in_progress", "rejected"}),
    "in_progress": frozenset({"resolved", "rejected"}),
    "resolved": frozenset({"closed", "citizen_feedback"}),
    # 종료 상태
    "closed": frozenset(),
    "rejected": frozenset(),
    "citizen_feedback": frozenset(),
}


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in TRANSITIONS.get(from_status, frozenset())


def is_terminal(status: str) -> bool:
    return not TRANSITIONS.get(status)


def transition_status(complaint: Complaint,
                      new_status: Status,
                      *,
                      actor_role: str = "system",
                      remarks: str = "",
                      now: Optional[datetime] = None) -> Complaint:
    """
    민원 상태를 전이합니다.

    입력 민원은 변경하지 않고, 상태와 이력 항목이 추가된 새 민원을 반환합니다.

    Args:
        complaint: 현재 민원
        new_status: 새 상태
        actor_role: 변경 주체 역할
        remarks: 비고
        now: 이력 타임스탬프

    Returns:
        갱신된 민원

    Raises:
        InvalidTransition: 전이 그래프에 없는 (from, to) 쌍
    """
    if not can_transition(complaint.status, new_status):
        raise InvalidTransition(complaint.status, new_status)

    entry = StatusHistoryEntry(
        status=new_status,
        timestamp=now or utcnow(),
        actor_role=actor_role,
        remarks=remarks,
    )
    return complaint.model_copy(update={
        "status": new_status,
        "history": [*complaint.history, entry],
    })
