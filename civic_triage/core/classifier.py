"""
Local keyword classifier for civic-triage.

Used when a draft arrives without a category. Scores each category by
its primary (x2) and secondary (x1) keywords, matched either as a
substring of the normalized text or by Porter stem.
"""

from typing import Dict, List, Optional

from nltk.stem import PorterStemmer

from civic_triage.ports.categories import CategoryReadPort
from .categories import CategoryTable
from .models import Category, Classification, Urgency
from .similarity import normalize_text

REVIEW_CONFIDENCE = 0.6
NO_MATCH_CONFIDENCE = 0.3

URGENCY_KEYWORDS: Dict[Urgency, List[str]] = {
    "critical": ["emergency", "life-threatening", "danger", "death", "serious", "urgent", "immediately",
                 "fire", "collapse", "electrocution"],
    "high": ["hazard", "risk", "unsafe", "injured", "accident", "flooding", "sparking", "exposed", "children"],
    "medium": ["problem", "issue", "broken", "damaged", "not working", "repair", "fix"],
    "low": ["request", "suggestion", "minor", "small", "inconvenience"],
}

SUBCATEGORIES: Dict[Category, Dict[str, List[str]]] = {
    Category.ROADS: {
        "pothole": ["pothole", "hole", "crater", "pit"],
        "traffic_signal": ["signal", "traffic light", "stoplight"],
        "street_light": ["street light", "lamp", "streetlight", "lighting"],
        "pavement": ["footpath", "pavement", "sidewalk", "walkway"],
        "road_damage": ["crack", "broken", "damage", "repair"],
    },
    Category.WATER: {
        "leakage": ["leak", "leaking", "burst", "broken pipe"],
        "supply": ["no water", "supply", "shortage", "pressure"],
        "drainage": ["drain", "drainage", "clogged", "blocked"],
        "sewage": ["sewage", "sewer", "overflow", "stink"],
        "billing": ["bill", "billing", "meter", "charge"],
    },
    Category.GARBAGE: {
        "collection": ["collection", "pickup", "not collected"],
        "dumping": ["dump", "dumping", "illegal dump"],
        "bins": ["bin", "dustbin", "container", "overflow"],
        "cleaning": ["sweep", "clean", "dirty", "unhygienic"],
    },
    Category.ELECTRICITY: {
        "outage": ["outage", "no power", "blackout", "cutoff"],
        "street_light": ["street light", "pole light", "lamp"],
        "wiring": ["wire", "cable", "hanging", "exposed"],
        "transformer": ["transformer", "voltage", "fluctuation"],
        "billing": ["bill", "meter", "reading"],
    },
}

_stemmer = PorterStemmer()


def detect_urgency(text: str) -> Urgency:
    """가장 높은 등급의 긴급 키워드로 긴급도를 결정합니다 (없으면 low)"""
    for level in ("critical", "high", "medium"):
        if any(keyword in text for keyword in URGENCY_KEYWORDS[level]):
            return level
    return "low"


def detect_subcategory(text: str, category: Category) -> str:
    for name, keywords in SUBCATEGORIES.get(category, {}).items():
        if any(keyword in text for keyword in keywords):
            return name
    return "general"


def classify(text: Optional[str], categories: Optional[CategoryReadPort] = None) -> Classification:
    """
    키워드 규칙으로 민원 설명을 분류합니다.

    Args:
        text: 민원 설명
        categories: 카테고리 설정 테이블 (None이면 기본 테이블)

    Returns:
        분류 결과 (신뢰도 0.6 미만이면 needs_review=True)
    """
    table = categories or CategoryTable()
    processed = normalize_text(text)
    stems = {_stemmer.stem(token) for token in processed.split(" ") if token}

    def matches(keyword: str) -> bool:
        return keyword in processed or _stemmer.stem(keyword) in stems

    scores: Dict[Category, float] = {}
    matched: Dict[Category, List[str]] = {}
    for cfg in table.all():
        score = 0.0
        hits = []
        for keyword in cfg.primary_keywords:
            if matches(keyword):
                score += 2 * cfg.keyword_weight
                hits.append(keyword)
        for keyword in cfg.secondary_keywords:
            if matches(keyword):
                score += cfg.keyword_weight
                hits.append(keyword)
        scores[cfg.name] = score
        matched[cfg.name] = hits

    # 동점이면 테이블 순서상 앞선 카테고리
    best, best_score = Category.OTHERS, 0.0
    for category, score in scores.items():
        if score > best_score:
            best, best_score = category, score

    total = sum(scores.values())
    confidence = min(best_score / (total * 0.6), 1.0) if total > 0 else NO_MATCH_CONFIDENCE
    confidence = round(confidence, 2)

    return Classification(
        category=best,
        confidence=confidence,
        urgency=detect_urgency(processed),
        subcategory=detect_subcategory(processed, best),
        keywords=matched[best][:5],
        needs_review=confidence < REVIEW_CONFIDENCE,
    )
