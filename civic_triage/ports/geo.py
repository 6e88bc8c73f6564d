"""
Geographic unit read port interface.

This module defines the protocol for reading the City → Town → UC
hierarchy with boundaries and center points.
"""

from typing import List, Protocol
from civic_triage.core.models import GeographicUnit

class GeoUnitReadPort(Protocol):
    """지리 단위 조회 포트 인터페이스"""
    
    async def list_units(self) -> List[GeographicUnit]:
        """
        모든 지리 단위(City/Town/UC)를 조회합니다.
        
        Returns:
            지리 단위 목록 (비활성 단위 포함)
        """
        ...
