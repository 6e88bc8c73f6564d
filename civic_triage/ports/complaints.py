"""
Complaint store port interface.

This module defines the protocol for the geo + time + status filtered
complaint queries used by duplicate detection and severity scoring,
plus the few writes the core requests (status saves, duplicate links)
and the period aggregates behind the duplicate and severity stats.
"""

from datetime import datetime
from typing import List, Optional, Protocol, Sequence, Tuple
from civic_triage.core.models import Category, Complaint, Coordinates, RelatedComplaints

class ComplaintStorePort(Protocol):
    """민원 저장소 포트 인터페이스"""
    
    async def find_open_near(self,
                             point: Coordinates,
                             radius_m: float,
                             since: datetime,
                             *,
                             category: Optional[Category] = None,
                             exclude_ids: Sequence[str] = (),
                             limit: int = 20) -> List[Complaint]:
        """
        반경/기간 내 열린 민원(resolved/closed/rejected 제외)을 거리순으로 조회합니다.
        
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
        ...
    
    async def count_open_near(self,
                              point: Coordinates,
                              radius_m: float,
                              since: datetime,
                              *,
                              category: Optional[Category] = None,
                              exclude_ids: Sequence[str] = ()) -> int:
        """반경/기간 내 열린 민원 수를 반환합니다."""
        ...
    
    async def earliest_open_near(self,
                                 point: Coordinates,
                                 radius_m: float,
                                 since: datetime,
                                 *,
                                 category: Optional[Category] = None,
                                 exclude_ids: Sequence[str] = ()) -> Optional[datetime]:
        """반경/기간 내 가장 먼저 접수된 열린 민원의 생성 시각을 반환합니다."""
        ...
    
    async def get(self, complaint_id: str) -> Optional[Complaint]:
        """민원을 조회합니다."""
        ...
    
    async def insert(self, complaint: Complaint) -> None:
        """민원을 저장합니다."""
        ...
    
    async def save(self, complaint: Complaint) -> None:
        """민원 상태/이력/심각도를 갱신합니다. 없으면 NotFound."""
        ...
    
    async def link_duplicate(self, original_id: str, duplicate_id: str) -> None:
        """
        중복 연결을 원자적으로 기록합니다.
        
        duplicate.duplicate_of = original_id 와
        original.linked_complaints += duplicate_id 가 함께 성공하거나 함께 실패해야 합니다.
        """
        ...
    
    async def find_related(self, complaint_id: str) -> RelatedComplaints:
        """원본 민원과 연결된 민원들을 조회합니다."""
        ...
    
    async def list_open(self,
                        *,
                        category: Optional[Category] = None,
                        limit: Optional[int] = None) -> List[Complaint]:
        """열린 민원을 생성 시각 순으로 조회합니다 (일괄 재계산용)."""
        ...
    
    async def duplicate_counts(self, since: datetime) -> Tuple[int, int, int]:
        """
        기간 내 민원의 중복 관련 집계를 반환합니다.
        
        Returns:
            (전체 민원 수, duplicate_of가 있는 민원 수, linked_complaints가 있는 민원 수)
        """
        ...
    
    async def severity_scores(self, since: datetime) -> List[float]:
        """기간 내 심각도 점수가 기록된 민원들의 점수 목록을 반환합니다."""
        ...
