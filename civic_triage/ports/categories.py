"""
Category read port interface.

This module defines the protocol for category configuration lookup.
"""

from typing import List, Optional, Protocol, Union
from civic_triage.core.categories import CategoryConfig
from civic_triage.core.models import Category

class CategoryReadPort(Protocol):
    """카테고리 조회 포트 인터페이스"""
    
    def get(self, name: Union[str, Category, None]) -> Optional[CategoryConfig]:
        """
        카테고리 설정을 조회합니다.
        
        Args:
            name: 카테고리 이름
            
        Returns:
            카테고리 설정 또는 None
        """
        ...
    
    def all(self) -> List[CategoryConfig]:
        """모든 카테고리 설정을 Category 정의 순서로 반환합니다."""
        ...
