"""
SQLite-based complaint store for civic-triage.

This module implements ``ComplaintStorePort`` on aiosqlite. Geo queries
use a padded bounding-box prefilter in SQL and exact Haversine filtering
in Python; duplicate links are written in a single transaction.
"""

import json
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

import aiosqlite

from civic_triage.common.geo import bounding_box_around, haversine_m
from civic_triage.core.errors import InvalidInput, NotFound
from civic_triage.core.models import (
    CLOSED_STATUSES,
    Category,
    Complaint,
    Coordinates,
    RelatedComplaints,
    StatusHistoryEntry,
)
from civic_triage.observability.logging_setup import get_logger

log = get_logger("civic_triage.complaints")

# SQLite 스키마
SCHEMA = """
CREATE TABLE IF NOT EXISTS complaints (
    id TEXT PRIMARY KEY,
    description TEXT NOT NULL,
    lon REAL NOT NULL,
    lat REAL NOT NULL,
    category TEXT NOT NULL,
    status TEXT NOT NULL,
    created_at REAL NOT NULL,
    reported_urgency TEXT,
    uc_id TEXT,
    town_id TEXT,
    city_id TEXT,
    duplicate_of TEXT,
    linked_complaints TEXT NOT NULL DEFAULT '[]',
    history TEXT NOT NULL DEFAULT '[]',
    severity_score REAL,
    priority TEXT
);
CREATE INDEX IF NOT EXISTS idx_complaints_status_created ON complaints(status, created_at);
CREATE INDEX IF NOT EXISTS idx_complaints_lat_lon ON complaints(lat, lon);
"""

COLUMNS = ("id, description, lon, lat, category, status, created_at, reported_urgency, "
           "uc_id, town_id, city_id, duplicate_of, linked_complaints, history, severity_score, priority")

# 근사 경계 상자 여유분
BBOX_PADDING = 1.1


def _ts(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _row_to_complaint(row: Sequence) -> Complaint:
    return Complaint(
        id=row[0],
        description=row[1],
        coordinates=Coordinates(lon=row[2], lat=row[3]),
        category=Category(row[4]),
        status=row[5],
        created_at=datetime.fromtimestamp(row[6], tz=timezone.utc),
        reported_urgency=row[7],
        uc_id=row[8],
        town_id=row[9],
        city_id=row[10],
        duplicate_of=row[11],
        linked_complaints=json.loads(row[12] or "[]"),
        history=[StatusHistoryEntry(**entry) for entry in json.loads(row[13] or "[]")],
        severity_score=row[14],
        priority=row[15],
    )


def _history_json(complaint: Complaint) -> str:
    return json.dumps([entry.model_dump(mode="json") for entry in complaint.history])


class SQLiteComplaintStore:
    """SQLite 기반 민원 저장소"""

    def __init__(self, path: str):
        """
        초기화합니다.

        Args:
            path: SQLite 데이터베이스 파일 경로
        """
        self.path = path
        log.info(f"SQLiteComplaintStore 초기화: {path}")

    async def init(self) -> None:
        """데이터베이스를 초기화합니다."""
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(SCHEMA)
            await db.commit()
        log.info(f"SQLiteComplaintStore 스키마 초기화 완료: {self.path}")

    async def _open_near(self,
                         point: Coordinates,
                         radius_m: float,
                         since: datetime,
                         category: Optional[Category],
                         exclude_ids: Sequence[str]) -> List[Tuple[Complaint, float]]:
        min_lon, min_lat, max_lon, max_lat = bounding_box_around(point.lat, point.lon, radius_m * BBOX_PADDING)
        closed = tuple(sorted(CLOSED_STATUSES))

        query = (f"SELECT {COLUMNS} FROM complaints "
                 f"WHERE status NOT IN ({', '.join('?' * len(closed))}) "
                 "AND created_at >= ? AND lat BETWEEN ? AND ? AND lon BETWEEN ? AND ?")
        params: list = [*closed, _ts(since), min_lat, max_lat, min_lon, max_lon]
        if category is not None:
            query += " AND category = ?"
            params.append(category.value)

        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()

        excluded = set(exclude_ids)
        found = []
        for row in rows:
            if row[0] in excluded:
                continue
            distance = haversine_m(point.lat, point.lon, row[3], row[2])
            if distance <= radius_m:
                found.append((_row_to_complaint(row), distance))

        found.sort(key=lambda item: (item[1], item[0].id))
        return found

    async def find_open_near(self,
                             point: Coordinates,
                             radius_m: float,
                             since: datetime,
                             *,
                             category: Optional[Category] = None,
                             exclude_ids: Sequence[str] = (),
                             limit: int = 20) -> List[Complaint]:
        """
        반경/기간 내 열린 민원을 거리순으로 조회합니다.

        Args:
            point: 중심 좌표
            radius_m: 반경 (미터)
            since: 이 시각 이후 생성된 민원만
            category: 카테고리 필터
            exclude_ids: 제외할 민원 ID
            limit: 최대 개수

        Returns:
            민원 목록
        """
        found = await self._open_near(point, radius_m, since, category, exclude_ids)
        return [complaint for complaint, _ in found[:limit]]

    async def count_open_near(self,
                              point: Coordinates,
                              radius_m: float,
                              since: datetime,
                              *,
                              category: Optional[Category] = None,
                              exclude_ids: Sequence[str] = ()) -> int:
        return len(await self._open_near(point, radius_m, since, category, exclude_ids))

    async def earliest_open_near(self,
                                 point: Coordinates,
                                 radius_m: float,
                                 since: datetime,
                                 *,
                                 category: Optional[Category] = None,
                                 exclude_ids: Sequence[str] = ()) -> Optional[datetime]:
        found = await self._open_near(point, radius_m, since, category, exclude_ids)
        if not found:
            return None
        return min(complaint.created_at for complaint, _ in found)

    async def get(self, complaint_id: str) -> Optional[Complaint]:
        """
        민원을 조회합니다.

        Returns:
            민원 또는 None
        """
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute(f"SELECT {COLUMNS} FROM complaints WHERE id = ?", (complaint_id,))
            row = await cursor.fetchone()
        return _row_to_complaint(row) if row else None

    async def insert(self, complaint: Complaint) -> None:
        """
        민원을 저장합니다.

        Raises:
            InvalidInput: 같은 ID의 민원이 이미 있는 경우
        """
        try:
            async with aiosqlite.connect(self.path) as db:
                await db.execute(
                    f"INSERT INTO complaints ({COLUMNS}) VALUES ({', '.join('?' * 16)})",
                    (
                        complaint.id,
                        complaint.description,
                        complaint.coordinates.lon,
                        complaint.coordinates.lat,
                        complaint.category.value,
                        complaint.status,
                        _ts(complaint.created_at),
                        complaint.reported_urgency,
                        complaint.uc_id,
                        complaint.town_id,
                        complaint.city_id,
                        complaint.duplicate_of,
                        json.dumps(complaint.linked_complaints),
                        _history_json(complaint),
                        complaint.severity_score,
                        complaint.priority,
                    ),
                )
                await db.commit()
        except sqlite3.IntegrityError as e:
            raise InvalidInput(f"complaint already exists: {complaint.id}") from e
        log.debug(f"민원 저장: {complaint.id}")

    async def save(self, complaint: Complaint) -> None:
        """
        민원의 상태/이력/배정/심각도 정보를 갱신합니다.

        Raises:
            NotFound: 민원이 존재하지 않는 경우
        """
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute(
                "UPDATE complaints SET status = ?, history = ?, category = ?, uc_id = ?, town_id = ?, "
                "city_id = ?, duplicate_of = ?, linked_complaints = ?, severity_score = ?, priority = ? WHERE id = ?",
                (
                    complaint.status,
                    _history_json(complaint),
                    complaint.category.value,
                    complaint.uc_id,
                    complaint.town_id,
                    complaint.city_id,
                    complaint.duplicate_of,
                    json.dumps(complaint.linked_complaints),
                    complaint.severity_score,
                    complaint.priority,
                    complaint.id,
                ),
            )
            if cursor.rowcount == 0:
                raise NotFound("complaint", complaint.id)
            await db.commit()

    async def link_duplicate(self, original_id: str, duplicate_id: str) -> None:
        """
        중복 연결을 하나의 트랜잭션으로 기록합니다.

        duplicate.duplicate_of 설정과 original.linked_complaints 추가가
        함께 커밋되거나 함께 롤백됩니다.

        Raises:
            NotFound: 원본 또는 중복 민원이 존재하지 않는 경우
        """
        async with aiosqlite.connect(self.path) as db:
            try:
                cursor = await db.execute(
                    "SELECT linked_complaints FROM complaints WHERE id = ?", (original_id,)
                )
                row = await cursor.fetchone()
                if row is None:
                    raise NotFound("complaint", original_id)

                cursor = await db.execute(
                    "UPDATE complaints SET duplicate_of = ? WHERE id = ?", (original_id, duplicate_id)
                )
                if cursor.rowcount == 0:
                    raise NotFound("complaint", duplicate_id)

                linked = json.loads(row[0] or "[]")
                if duplicate_id not in linked:
                    linked.append(duplicate_id)
                await db.execute(
                    "UPDATE complaints SET linked_complaints = ? WHERE id = ?", (json.dumps(linked), original_id)
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        log.info(f"중복 연결 기록: {duplicate_id} → {original_id}")

    async def find_related(self, complaint_id: str) -> RelatedComplaints:
        """
        원본 민원과 연결된 민원들을 조회합니다.

        중복 민원의 ID를 주면 그 원본을 기준으로 조회합니다.

        Raises:
            NotFound: 민원이 존재하지 않는 경우
        """
        complaint = await self.get(complaint_id)
        if complaint is None:
            raise NotFound("complaint", complaint_id)

        original = complaint
        if complaint.duplicate_of:
            original = await self.get(complaint.duplicate_of) or complaint

        linked = []
        for linked_id in original.linked_complaints:
            item = await self.get(linked_id)
            if item is not None:
                linked.append(item)
        return RelatedComplaints(original=original, linked=linked)

    async def list_open(self,
                        *,
                        category: Optional[Category] = None,
                        limit: Optional[int] = None) -> List[Complaint]:
        """열린 민원을 생성 시각 순으로 조회합니다."""
        closed = tuple(sorted(CLOSED_STATUSES))
        query = (f"SELECT {COLUMNS} FROM complaints "
                 f"WHERE status NOT IN ({', '.join('?' * len(closed))})")
        params: list = [*closed]
        if category is not None:
            query += " AND category = ?"
            params.append(category.value)
        query += " ORDER BY created_at, id"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
        return [_row_to_complaint(row) for row in rows]

    async def duplicate_counts(self, since: datetime) -> Tuple[int, int, int]:
        """
        기간 내 민원의 중복 관련 집계를 반환합니다.

        Returns:
            (전체, 중복으로 연결된 민원, 연결된 중복이 있는 원본 민원)
        """
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute(
                "SELECT COUNT(*), "
                "COALESCE(SUM(CASE WHEN duplicate_of IS NOT NULL THEN 1 ELSE 0 END), 0), "
                "COALESCE(SUM(CASE WHEN linked_complaints != '[]' THEN 1 ELSE 0 END), 0) "
                "FROM complaints WHERE created_at >= ?",
                (_ts(since),),
            )
            total, duplicates, with_links = await cursor.fetchone()
        return total, duplicates, with_links

    async def severity_scores(self, since: datetime) -> List[float]:
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute(
                "SELECT severity_score FROM complaints "
                "WHERE created_at >= ? AND severity_score IS NOT NULL ORDER BY created_at, id",
                (_ts(since),),
            )
            rows = await cursor.fetchall()
        return [row[0] for row in rows]
