# civic_triage/settings.py
from __future__ import annotations
from pydantic import BaseModel, Field

class GeoSettings(BaseModel):
    max_nearest_distance_m: float = 20000.0    # 지오펜스 실패 시 최근접 UC 탐색 반경
    nearby_max_distance_m: float = 50000.0     # 수동 선택용 후보 탐색 반경
    manual_warning_distance_m: float = 10000.0
    high_confidence_m: float = 2000.0
    medium_confidence_m: float = 5000.0

class DuplicateSettings(BaseModel):
    radius_m: float = 200.0
    max_radius_m: float = 500.0
    window_days: int = 7
    threshold: float = 0.75
    report_min_score: float = 0.3
    exact_match: float = 0.95
    candidate_limit: int = 20
    top_n: int = 5

class SeveritySettings(BaseModel):
    frequency_radius_m: float = 500.0
    frequency_window_days: int = 7
    use_cluster_first_report: bool = True

class SimilarityCache(BaseModel):
    enabled: bool = True
    max_size: int = 1000
    ttl_sec: int = 1800

class SLASettings(BaseModel):
    default_hours: int = 72

class Storage(BaseModel):
    db_path: str = "/data/complaints.db"
    boundaries_path: str = "/data/boundaries.geojson"

class Observability(BaseModel):
    http_port: int = 8099
    metrics_enabled: bool = True
    service_name: str = "civic-triage"
    build_version: str = "0.1.0"
    build_date: str = "2026-10-01"
    log_level: str = "INFO"

class Settings(BaseModel):
    # 하위 섹션 (기본값/팩토리로 누락 방지)
    geo: GeoSettings = Field(default_factory=GeoSettings)
    duplicate: DuplicateSettings = Field(default_factory=DuplicateSettings)
    severity: SeveritySettings = Field(default_factory=SeveritySettings)
    similarity_cache: SimilarityCache = Field(default_factory=SimilarityCache)
    sla: SLASettings = Field(default_factory=SLASettings)
    storage: Storage = Field(default_factory=Storage)
    observability: Observability = Field(default_factory=Observability)
