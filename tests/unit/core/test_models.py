"""
Core 모델/카테고리 단위 테스트

검증 생성자(create)가 불변식 위반을 InvalidInput으로 변환하는지 확인합니다.
"""

import pytest
from datetime import datetime, timezone
from hypothesis import given, strategies as st

from civic_triage.core.categories import CategoryTable, DEFAULT_CATEGORIES, parse_category
from civic_triage.core.errors import InvalidInput, NotFound
from civic_triage.core.models import (
    Assignment, Category, Complaint, ComplaintDraft, Coordinates, GeographicUnit, RelatedComplaints
)


class TestComplaintDraft:
    """ComplaintDraft 생성 테스트"""

    def test_valid_draft(self):
        draft = ComplaintDraft.create(
            description="  Water pipe burst near market  ",
            coordinates={"lon": 67.0, "lat": 24.86},
            category="Water",
        )
        assert draft.description == "Water pipe burst near market"
        assert draft.category is Category.WATER
        assert draft.created_at.tzinfo is not None

    @pytest.mark.parametrize("description", ["", "   "])
    def test_missing_description(self, description):
        with pytest.raises(InvalidInput):
            ComplaintDraft.create(description=description, coordinates={"lon": 0, "lat": 0})

    @pytest.mark.parametrize("lon,lat", [(181, 0), (-181, 0), (0, 91), (0, -91)])
    def test_out_of_range_coordinates(self, lon, lat):
        with pytest.raises(InvalidInput):
            ComplaintDraft.create(description="pothole", coordinates={"lon": lon, "lat": lat})

    def test_unknown_category(self):
        with pytest.raises(InvalidInput):
            ComplaintDraft.create(description="x", coordinates={"lon": 0, "lat": 0}, category="Parks")

    def test_naive_created_at_is_utc(self):
        draft = ComplaintDraft.create(
            description="x", coordinates={"lon": 0, "lat": 0}, created_at=datetime(2024, 1, 1)
        )
        assert draft.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)

    @given(lon=st.floats(min_value=-180, max_value=180), lat=st.floats(min_value=-90, max_value=90))
    def test_any_valid_coordinates_accepted(self, lon, lat):
        draft = ComplaintDraft.create(description="x", coordinates={"lon": lon, "lat": lat})
        assert draft.coordinates.lon == lon


class TestGeographicUnit:
    """GeographicUnit 생성 테스트"""

    RING = [(0, 0), (2, 0), (2, 2), (0, 2), (0, 0)]

    def test_valid_uc(self):
        uc = GeographicUnit.create(
            id="uc-1", name="UC 1", code="uc-001", level="uc", parent_id="town-1", city_id="city-1",
            center={"lon": 1, "lat": 1}, boundary=self.RING,
        )
        assert uc.code == "UC-001"
        assert uc.effective_city_id == "city-1"
        assert uc.area.area_type == "residential"

    def test_open_ring_rejected(self):
        with pytest.raises(InvalidInput):
            GeographicUnit.create(
                id="c", name="c", code="c", level="city",
                center={"lon": 1, "lat": 1}, boundary=self.RING[:-1],
            )

    def test_self_intersecting_ring_rejected(self):
        with pytest.raises(InvalidInput):
            GeographicUnit.create(
                id="c", name="c", code="c", level="city",
                center={"lon": 1, "lat": 1}, boundary=[(0, 0), (2, 2), (2, 0), (0, 2), (0, 0)],
            )

    def test_city_with_parent_rejected(self):
        with pytest.raises(InvalidInput):
            GeographicUnit.create(
                id="c", name="c", code="c", level="city", parent_id="x",
                center={"lon": 1, "lat": 1}, boundary=self.RING,
            )

    def test_uc_requires_city_id(self):
        with pytest.raises(InvalidInput):
            GeographicUnit.create(
                id="u", name="u", code="u", level="uc", parent_id="t",
                center={"lon": 1, "lat": 1}, boundary=self.RING,
            )

    def test_town_effective_city_from_parent(self):
        town = GeographicUnit.create(
            id="t", name="t", code="t", level="town", parent_id="c",
            center={"lon": 1, "lat": 1}, boundary=self.RING,
        )
        assert town.effective_city_id == "c"


class TestSmallModels:
    """보조 모델 테스트"""

    def test_assignment_none_requires_manual_selection(self):
        assert Assignment().requires_manual_selection
        assert not Assignment(uc_id="u", method="geofence", confidence="exact").requires_manual_selection

    @pytest.mark.parametrize("status,is_open", [
        ("reported", True), ("in_progress", True), ("resolved", False), ("closed", False), ("rejected", False),
    ])
    def test_complaint_is_open(self, status, is_open):
        complaint = Complaint(id="1", description="x", coordinates=Coordinates(lon=0, lat=0), status=status)
        assert complaint.is_open is is_open

    def test_related_total(self):
        original = Complaint(id="1", description="x", coordinates=Coordinates(lon=0, lat=0))
        linked = Complaint(id="2", description="y", coordinates=Coordinates(lon=0, lat=0), duplicate_of="1")
        assert RelatedComplaints(original=original, linked=[linked]).total_related == 2
        assert RelatedComplaints().total_related == 0


class TestCategoryTable:
    """카테고리 테이블 테스트"""

    def test_default_table(self):
        table = CategoryTable()
        assert [c.name for c in table.all()] == list(Category)
        assert table.require("Water").sla_hours == 24
        assert table.require("Electricity").sla_hours == 12
        assert table.require("Others").sla_hours == 96
        assert table.require(Category.WATER).base_urgency_score == 8

    def test_case_insensitive_lookup(self):
        table = CategoryTable()
        assert table.get("water").name is Category.WATER
        assert parse_category(" ROADS ") is Category.ROADS
        assert parse_category("Parks") is None

    def test_unknown_category(self):
        table = CategoryTable()
        assert table.get("Parks") is None
        with pytest.raises(NotFound):
            table.require("Parks")

    def test_missing_category_rejected(self):
        entries = [e for e in DEFAULT_CATEGORIES if e["name"] != "Garbage"]
        with pytest.raises(InvalidInput, match="Garbage"):
            CategoryTable(entries)

    def test_duplicate_category_rejected(self):
        with pytest.raises(InvalidInput):
            CategoryTable(DEFAULT_CATEGORIES + [DEFAULT_CATEGORIES[0]])

    @pytest.mark.parametrize("override", [{"sla_hours": 0}, {"base_urgency_score": 11}, {"name": "Parks"}])
    def test_invalid_entry_rejected(self, override):
        entries = [dict(DEFAULT_CATEGORIES[0], **override)] + DEFAULT_CATEGORIES[1:]
        with pytest.raises(InvalidInput):
            CategoryTable(entries)
