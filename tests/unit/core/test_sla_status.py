"""
SLA 계산과 상태 전이 단위 테스트
"""

import pytest
from datetime import datetime, timedelta, timezone

from civic_triage.core.errors import InvalidTransition
from civic_triage.core.models import Category, Complaint, Coordinates
from civic_triage.core.sla import SLAManager
from civic_triage.core.status import TRANSITIONS, can_transition, is_terminal, transition_status
from civic_triage.settings import SLASettings

CREATED = datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def sla(category_table):
    return SLAManager(category_table)


def make_complaint(status="reported", **kw):
    return Complaint(id="c1", description="x", coordinates=Coordinates(lon=0, lat=0),
                     category=Category.WATER, status=status, created_at=CREATED, **kw)


class TestSLAManager:
    """SLA 마감 테스트"""

    @pytest.mark.parametrize("category,hours", [
        ("Water", 24), ("Roads", 48), ("Garbage", 24), ("Electricity", 12), ("Others", 96),
    ])
    def test_target_hours(self, sla, category, hours):
        assert sla.target_hours(category) == hours

    def test_unmapped_category_uses_default(self, sla):
        assert sla.target_hours("Parks") == 72
        assert sla.target_hours(None) == 72
        assert SLAManager(sla.categories, SLASettings(default_hours=10)).target_hours("Parks") == 10

    def test_water_deadline_and_breach(self, sla):
        """2024-01-01 00:00 Water 민원은 다음날 00:00 마감"""
        info = sla.compute_sla("Water", CREATED, now=datetime(2024, 1, 2, 1, 0, tzinfo=timezone.utc))
        assert info.deadline == datetime(2024, 1, 2, 0, 0, tzinfo=timezone.utc)
        assert info.target_hours == 24
        assert info.category == "Water"
        assert info.breached is True

    def test_not_breached_at_deadline(self, sla):
        deadline = sla.compute_deadline("Water", CREATED)
        assert SLAManager.is_breached(deadline, deadline, "reported") is False
        assert SLAManager.is_breached(deadline, deadline + timedelta(seconds=1), "reported") is True

    @pytest.mark.parametrize("status", ["resolved", "closed", "citizen_feedback"])
    def test_done_statuses_never_breached(self, sla, status):
        info = sla.sla_status(make_complaint(status), now=CREATED + timedelta(days=30))
        assert info.breached is False

    @pytest.mark.parametrize("status", ["reported", "acknowledged", "in_progress", "rejected"])
    def test_open_statuses_breach(self, sla, status):
        assert sla.sla_status(make_complaint(status), now=CREATED + timedelta(days=30)).breached

    def test_time_remaining(self, sla):
        deadline = sla.compute_deadline(Category.ELECTRICITY, CREATED)
        assert SLAManager.time_remaining(deadline, CREATED) == timedelta(hours=12)
        assert SLAManager.time_remaining(deadline, CREATED + timedelta(hours=13)) == timedelta(hours=-1)

    def test_naive_created_at(self, sla):
        info = sla.compute_sla("Roads", datetime(2024, 1, 1), now=CREATED)
        assert info.deadline == datetime(2024, 1, 3, tzinfo=timezone.utc)


class TestStatusTransitions:
    """상태 전이 테스트"""

    @pytest.mark.parametrize("from_status,to_status", [
        ("reported", "acknowledged"),
        ("reported", "rejected"),
        ("acknowledged", "in_progress"),
        ("in_progress", "resolved"),
        ("resolved", "closed"),
        ("resolved", "citizen_feedback"),
    ])
    def test_allowed(self, from_status, to_status):
        assert can_transition(from_status, to_status)

    @pytest.mark.parametrize("from_status,to_status", [
        ("reported", "resolved"),
        ("acknowledged", "closed"),
        ("closed", "reported"),
        ("rejected", "acknowledged"),
        ("citizen_feedback", "closed"),
        ("resolved", "in_progress"),
    ])
    def test_rejected(self, from_status, to_status):
        assert not can_transition(from_status, to_status)
        with pytest.raises(InvalidTransition):
            transition_status(make_complaint(from_status), to_status)

    def test_terminal_statuses(self):
        assert {s for s in TRANSITIONS if is_terminal(s)} == {"closed", "rejected", "citizen_feedback"}

    def test_transition_appends_history(self):
        original = make_complaint("reported")
        now = CREATED + timedelta(hours=1)

        updated = transition_status(original, "acknowledged", actor_role="uc_chairman", remarks="seen", now=now)

        assert updated.status == "acknowledged"
        assert len(updated.history) == 1
        entry = updated.history[0]
        assert (entry.status, entry.actor_role, entry.remarks, entry.timestamp) == \
            ("acknowledged", "uc_chairman", "seen", now)
        # 입력 민원은 그대로
        assert original.status == "reported"
        assert original.history == []

    def test_full_lifecycle(self):
        complaint = make_complaint()
        for status in ("acknowledged", "in_progress", "resolved", "closed"):
            complaint = transition_status(complaint, status)
        assert [h.status for h in complaint.history] == ["acknowledged", "in_progress", "resolved", "closed"]
        assert is_terminal(complaint.status)

    def test_error_message(self):
        with pytest.raises(InvalidTransition, match="from closed to reported"):
            transition_status(make_complaint("closed"), "reported")
