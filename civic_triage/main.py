# civic_triage/main.py
import os, asyncio, signal
import uvicorn
from civic_triage.settings import Settings
from civic_triage.observability.health import create_app
from civic_triage.observability.logging_setup import setup_logging_dev, get_logger
from civic_triage.adapters.storage.sqlite_complaints import SQLiteComplaintStore
from civic_triage.adapters.boundaries.geojson_source import GeoJSONBoundarySource
from civic_triage.core.categories import CategoryTable
from civic_triage.core.geo_index import GeographicIndex
from civic_triage.orchestrators.triage import TriageEngine

def _b(name, default=False): return os.getenv(name, str(default)).lower() in ("1","true","yes","on")

def build_settings() -> Settings:
    s = Settings()

    # 지리
    s.geo.max_nearest_distance_m = float(os.getenv("MAX_NEAREST_DISTANCE_M", s.geo.max_nearest_distance_m))
    s.geo.nearby_max_distance_m = float(os.getenv("NEARBY_MAX_DISTANCE_M", s.geo.nearby_max_distance_m))

    # 중복 탐지
    s.duplicate.radius_m = float(os.getenv("DUPLICATE_RADIUS_M", s.duplicate.radius_m))
    s.duplicate.window_days = int(os.getenv("DUPLICATE_WINDOW_DAYS", s.duplicate.window_days))
    s.duplicate.threshold = float(os.getenv("DUPLICATE_THRESHOLD", s.duplicate.threshold))

    # 유사도 캐시
    s.similarity_cache.enabled = _b("SIMILARITY_CACHE_ENABLED", s.similarity_cache.enabled)
    s.similarity_cache.ttl_sec = int(os.getenv("SIMILARITY_CACHE_TTL_SEC", s.similarity_cache.ttl_sec))
    s.similarity_cache.max_size = int(os.getenv("SIMILARITY_CACHE_MAX_SIZE", s.similarity_cache.max_size))

    # SLA
    s.sla.default_hours = int(os.getenv("SLA_DEFAULT_HOURS", s.sla.default_hours))

    # 저장소
    s.storage.db_path = os.getenv("DB_PATH", s.storage.db_path)
    s.storage.boundaries_path = os.getenv("BOUNDARIES_PATH", s.storage.boundaries_path)

    # 관측성
    s.observability.metrics_enabled = _b("METRICS_ENABLED", s.observability.metrics_enabled)
    s.observability.http_port = int(os.getenv("METRICS_PORT", s.observability.http_port))
    s.observability.log_level = os.getenv("LOG_LEVEL", s.observability.log_level)

    return s

async def build_engine(s: Settings) -> TriageEngine:
    """경계 데이터와 저장소를 로드해 트리아지 엔진을 구성합니다."""
    index = await GeographicIndex.load(GeoJSONBoundarySource(s.storage.boundaries_path))
    store = SQLiteComplaintStore(s.storage.db_path); await store.init()
    return TriageEngine(index, store, CategoryTable(), s)

async def main():
    s = build_settings()
    setup_logging_dev(s.observability.log_level)
    log = get_logger("civic_triage.main")
    log.info("설정 로드 완료")

    engine = await build_engine(s)
    log.info("트리아지 엔진 생성 완료")

    app = create_app(s, engine.index)
    # 호출 측(HTTP 계층)이 같은 프로세스에서 엔진을 쓰도록 노출
    app.state.engine = engine
    server = uvicorn.Server(
        uvicorn.Config(app, host="0.0.0.0", port=s.observability.http_port, log_level="info")
    )
    http_task = asyncio.create_task(server.serve())
    log.info("HTTP 서버 시작됨")

    stop = asyncio.Future()
    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try: loop.add_signal_handler(sig, lambda: (not stop.done()) and stop.set_result(True))
            except NotImplementedError: pass
    except RuntimeError: pass

    await stop
    server.should_exit = True
    await http_task
    log.info("종료")

def run():
    asyncio.run(main())

if __name__ == "__main__":
    run()
