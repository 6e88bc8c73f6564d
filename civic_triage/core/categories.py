"""
Category configuration for civic-triage.

One table owns SLA hours, base urgency and classification keywords for
every member of the closed ``Category`` enum. The table is validated on
construction so a missing or malformed entry fails at load time, not at
query time.
"""

from typing import Dict, Iterable, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import InvalidInput, NotFound
from .models import Category


class CategoryConfig(BaseModel):
    """카테고리별 설정"""
    model_config = ConfigDict(frozen=True)

    name: Category
    sla_hours: int = Field(gt=0)
    base_urgency_score: float = Field(ge=1, le=10)
    primary_keywords: List[str] = Field(default_factory=list)
    secondary_keywords: List[str] = Field(default_factory=list)
    keyword_weight: float = Field(default=1.0, gt=0)


DEFAULT_CATEGORIES: List[Dict] = [
    {
        "name": "Roads",
        "sla_hours": 48,
        "base_urgency_score": 6,
        "primary_keywords": ["road", "pothole", "street", "traffic", "signal", "bridge", "footpath",
                             "pavement", "divider", "highway", "lane", "crossing"],
        "secondary_keywords": ["crack", "broken", "damage", "repair", "construction", "blocked",
                               "accident", "speed", "bump"],
    },
    {
        "name": "Water",
        "sla_hours": 24,
        "base_urgency_score": 8,
        "primary_keywords": ["water", "pipe", "leak", "sewage", "drain", "flood", "supply", "tap",
                             "tank", "waterlogging", "pipeline", "borewell"],
        "secondary_keywords": ["overflow", "contaminated", "dirty", "shortage", "pressure", "billing",
                               "connection", "wet"],
    },
    {
        "name": "Garbage",
        "sla_hours": 24,
        "base_urgency_score": 5,
        "primary_keywords": ["garbage", "trash", "waste", "dump", "smell", "litter", "debris", "bin",
                             "sanitation", "cleanliness"],
        "secondary_keywords": ["stink", "rotting", "overflowing", "collection", "pickup", "sweeper",
                               "dirty", "unhygienic"],
    },
    {
        "name": "Electricity",
        "sla_hours": 12,
        "base_urgency_score": 8,
        "primary_keywords": ["power", "electricity", "outage", "transformer", "wire", "pole", "voltage",
                             "meter", "light", "streetlight"],
        "secondary_keywords": ["sparking", "blackout", "shock", "hazard", "cable", "fuse", "billing",
                               "cutoff", "hanging"],
    },
    {
        "name": "Others",
        "sla_hours": 96,
        "base_urgency_score": 4,
        "primary_keywords": ["noise", "pollution", "encroachment", "illegal", "parking", "stray", "dog",
                             "mosquito", "public"],
        "secondary_keywords": ["nuisance", "disturbance", "construction", "license", "permit"],
        "keyword_weight": 0.7,
    },
]


def parse_category(name: Union[str, Category, None]) -> Optional[Category]:
    """문자열을 Category로 변환합니다. 알 수 없는 이름이면 None."""
    if name is None or isinstance(name, Category):
        return name
    try:
        return Category(name)
    except ValueError:
        # 대소문자 무시 매칭
        for member in Category:
            if member.value.lower() == str(name).strip().lower():
                return member
        return None


class CategoryTable:
    """카테고리 설정 테이블 (CategoryReadPort 구현)"""

    def __init__(self, entries: Optional[Iterable[Dict]] = None):
        """
        초기화하면서 테이블을 검증합니다.

        Args:
            entries: 카테고리 설정 딕셔너리 목록 (None이면 기본 테이블)

        Raises:
            InvalidInput: 설정 형식 오류, 중복 항목, 누락된 카테고리
        """
        configs: Dict[Category, CategoryConfig] = {}
        for raw in (DEFAULT_CATEGORIES if entries is None else entries):
            try:
                cfg = CategoryConfig(**raw)
            except ValidationError as e:
                raise InvalidInput(f"invalid category config {raw.get('name')}: {e}") from e
            if cfg.name in configs:
                raise InvalidInput(f"duplicate category config: {cfg.name.value}")
            configs[cfg.name] = cfg

        missing = [c.value for c in Category if c not in configs]
        if missing:
            raise InvalidInput(f"category table is missing: {', '.join(missing)}")

        self._configs = configs

    def get(self, name: Union[str, Category, None]) -> Optional[CategoryConfig]:
        """카테고리 설정을 조회합니다. 없으면 None."""
        category = parse_category(name)
        if category is None:
            return None
        return self._configs.get(category)

    def require(self, name: Union[str, Category]) -> CategoryConfig:
        """카테고리 설정을 조회합니다. 없으면 NotFound."""
        cfg = self.get(name)
        if cfg is None:
            raise NotFound("category", str(name))
        return cfg

    def all(self) -> List[CategoryConfig]:
        return [self._configs[c] for c in Category]
