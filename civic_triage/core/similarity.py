"""
Text similarity for civic-triage duplicate detection.

All metrics are symmetric in their two arguments:

* Jaccard over preprocessed token sets
* cosine similarity of TF-IDF vectors (scikit-learn) fitted on exactly
  the two documents being compared
* normalized Levenshtein similarity, only for texts under 100 characters

Each metric is rounded to two decimals before weighting. Long texts
contribute 0 for the edit metric, so the self-similarity of a text of
100 characters or more tops out at 0.9.
"""

import re
from typing import List, Optional, Sequence, Tuple

import Levenshtein
from nltk.stem import PorterStemmer
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

from civic_triage.common.cache import TTLCache
from civic_triage.observability import metrics
from .models import TextSimilarity

JACCARD_WEIGHT = 0.4
COSINE_WEIGHT = 0.5
EDIT_WEIGHT = 0.1

# 이 길이 이상이면 편집 거리 계산 생략
EDIT_MAX_LENGTH = 100

STOPWORDS = frozenset({
    'the', 'a', 'an', 'is', 'are', 'was', 'were', 'be', 'been', 'being',
    'have', 'has', 'had', 'do', 'does', 'did', 'will', 'would', 'could',
    'should', 'may', 'might', 'must', 'shall', 'can', 'need', 'dare',
    'ought', 'used', 'to', 'of', 'in', 'for', 'on', 'with', 'at', 'by',
    'from', 'as', 'into', 'through', 'during', 'before', 'after', 'above',
    'below', 'between', 'under', 'again', 'further', 'then', 'once', 'here',
    'there', 'when', 'where', 'why', 'how', 'all', 'each', 'few', 'more',
    'most', 'other', 'some', 'such', 'no', 'nor', 'not', 'only', 'own',
    'same', 'so', 'than', 'too', 'very', 'just', 'and', 'but', 'if', 'or',
    'because', 'until', 'while', 'this', 'that', 'these', 'those', 'i', 'me',
    'my', 'we', 'our', 'you', 'your', 'he', 'him', 'his', 'she', 'her', 'it',
    'its', 'they', 'them', 'their', 'what', 'which', 'who', 'whom', 'please',
})

# 주소 약어 → 전체 단어 (길이 2 이하 토큰 제거 전에 적용)
ABBREVIATIONS = {
    'st': 'street',
    'rd': 'road',
    'ave': 'avenue',
    'blvd': 'boulevard',
    'ln': 'lane',
    'hwy': 'highway',
    'nr': 'near',
    'opp': 'opposite',
    'blk': 'block',
}

_NON_WORD = re.compile(r'[^\w\s]')
_SPACES = re.compile(r'\s+')

_stemmer = PorterStemmer()


def normalize_text(text: Optional[str]) -> str:
    """소문자화, 비단어 문자 제거, 공백 정리"""
    if not text:
        return ''
    cleaned = _NON_WORD.sub(' ', text.lower())
    return _SPACES.sub(' ', cleaned).strip()


def preprocess(text: Optional[str]) -> List[str]:
    """
    텍스트를 비교용 토큰 목록으로 전처리합니다.

    소문자화 → 비단어 문자 제거 → 공백 토큰화 → 약어 확장 →
    불용어 제거 → Porter 어간 추출 → 길이 2 이하 토큰 제거

    Args:
        text: 원문

    Returns:
        어간 토큰 목록 (순서 유지, 중복 허용)
    """
    tokens = []
    for raw in normalize_text(text).split(' '):
        if not raw:
            continue
        word = ABBREVIATIONS.get(raw, raw)
        if word in STOPWORDS:
            continue
        stem = _stemmer.stem(word)
        if len(stem) > 2:
            tokens.append(stem)
    return tokens


def _as_tokens(doc: Sequence[str]) -> Sequence[str]:
    return doc


def jaccard(tokens1: Sequence[str], tokens2: Sequence[str]) -> float:
    """토큰 집합의 교집합/합집합 비율. 한쪽이 비어 있으면 0"""
    if not tokens1 or not tokens2:
        return 0.0
    set1, set2 = set(tokens1), set(tokens2)
    union = set1 | set2
    return len(set1 & set2) / len(union)


def cosine_tfidf(tokens1: Sequence[str], tokens2: Sequence[str]) -> float:
    """
    두 문서만으로 학습한 TF-IDF 모델에서 코사인 유사도를 계산합니다.

    이미 전처리된 토큰 목록을 그대로 분석기로 사용하며,
    idf = ln(N / df) + 1 (smooth_idf=False), N = 2

    Returns:
        코사인 유사도 (한쪽 토큰이 비어 있으면 0)
    """
    # 빈 어휘는 TfidfVectorizer가 ValueError를 발생시킴
    if not tokens1 or not tokens2:
        return 0.0
    vec = TfidfVectorizer(analyzer=_as_tokens, smooth_idf=False)
    mat = vec.fit_transform([list(tokens1), list(tokens2)])
    return float(cosine_similarity(mat[0:1], mat[1:2])[0][0])


def edit_similarity(text1: str, text2: str) -> Optional[float]:
    """
    1 - Levenshtein 거리 / 최대 길이 (소문자 기준).

    두 텍스트 모두 EDIT_MAX_LENGTH 미만일 때만 계산하고,
    그렇지 않으면 None을 반환합니다.
    """
    if len(text1) >= EDIT_MAX_LENGTH or len(text2) >= EDIT_MAX_LENGTH:
        return None
    a, b = text1.lower(), text2.lower()
    max_length = max(len(a), len(b))
    if max_length == 0:
        return 1.0
    return 1 - Levenshtein.distance(a, b) / max_length


class SimilarityEngine:
    """텍스트 유사도 계산기 (선택적 TTL 캐시)"""

    def __init__(self, cache: Optional[TTLCache[TextSimilarity]] = None):
        """
        초기화합니다.

        Args:
            cache: 유사도 결과 캐시 (None이면 캐시 없이 매번 계산)
        """
        self.cache = cache

    @staticmethod
    def _key(text1: str, text2: str) -> Tuple[str, str]:
        # 순서 무관 키
        return (text1, text2) if text1 <= text2 else (text2, text1)

    def compare(self, text1: Optional[str], text2: Optional[str]) -> TextSimilarity:
        """
        두 텍스트의 유사도 지표를 계산합니다.

        Args:
            text1: 첫 번째 텍스트
            text2: 두 번째 텍스트

        Returns:
            Jaccard/코사인/편집/결합 점수
        """
        text1, text2 = text1 or '', text2 or ''

        if self.cache is not None:
            key = self._key(text1, text2)
            cached = self.cache.get(key)
            if cached is not None:
                metrics.similarity_cache_hits.inc()
                return cached

        result = self._compute(text1, text2)

        if self.cache is not None:
            self.cache.set(self._key(text1, text2), result)
        return result

    def combined(self, text1: Optional[str], text2: Optional[str]) -> float:
        return self.compare(text1, text2).combined

    def _compute(self, text1: str, text2: str) -> TextSimilarity:
        tokens1, tokens2 = preprocess(text1), preprocess(text2)

        jac = round(jaccard(tokens1, tokens2), 2)
        cos = round(cosine_tfidf(tokens1, tokens2), 2)
        edit = edit_similarity(text1, text2)

        if edit is None:
            # 편집 지표는 0으로 반영 (가중치 재조정 없음)
            combined = JACCARD_WEIGHT * jac + COSINE_WEIGHT * cos
            return TextSimilarity(jaccard=jac, cosine=cos, edit=0.0,
                                  combined=round(combined, 2), edit_skipped=True)

        edit = round(edit, 2)
        combined = JACCARD_WEIGHT * jac + COSINE_WEIGHT * cos + EDIT_WEIGHT * edit
        return TextSimilarity(jaccard=jac, cosine=cos, edit=edit, combined=round(combined, 2))
