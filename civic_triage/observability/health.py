"""
HTTP endpoints for civic-triage observability.

This module implements health, readiness, metrics, and info endpoints
for monitoring and operational visibility. The complaint REST layer
lives outside this service.
"""

from fastapi import FastAPI, HTTPException
from fastapi.responses import Response, JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
import time
from typing import Optional
from civic_triage.settings import Settings
from civic_triage.core.geo_index import GeographicIndex
from civic_triage.observability.logging_setup import get_logger

log = get_logger("civic_triage.health")

def create_app(settings: Settings, index: Optional[GeographicIndex] = None) -> FastAPI:
    """
    FastAPI 애플리케이션을 생성합니다.

    Args:
        settings: 전체 설정
        index: 로드된 지리 인덱스 (레디니스 판정용, 없으면 not ready)
    """
    app = FastAPI(
        title=settings.observability.service_name,
        version=settings.observability.build_version,
        description="Civic complaint triage service"
    )

    start_time = time.time()

    @app.get("/health")
    async def health():
        """헬스 체크 엔드포인트"""
        return JSONResponse({
            "status": "ok",
            "service": settings.observability.service_name,
            "timestamp": time.time()
        })

    @app.get("/ready")
    async def ready():
        """레디니스 체크 엔드포인트 (활성 UC가 하나 이상 로드되어야 준비 완료)"""
        active = len(index.active_ucs()) if index is not None else 0
        body = {
            "status": "ready" if active else "not_ready",
            "service": settings.observability.service_name,
            "active_ucs": active,
            "timestamp": time.time()
        }
        return JSONResponse(body, status_code=200 if active else 503)

    @app.get("/metrics")
    async def metrics():
        """Prometheus 메트릭 엔드포인트"""
        if not settings.observability.metrics_enabled:
            raise HTTPException(status_code=503, detail="Metrics disabled")

        try:
            return Response(
                generate_latest(),
                media_type=CONTENT_TYPE_LATEST
            )
        except Exception as e:
            log.error(f"메트릭 생성 오류: {e}")
            raise HTTPException(status_code=500, detail="Metrics generation failed")

    @app.get("/info")
    async def info():
        """서비스 정보 엔드포인트"""
        uptime = time.time() - start_time
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "build_date": settings.observability.build_date,
            "uptime_seconds": int(uptime),
            "metrics_enabled": settings.observability.metrics_enabled,
            "log_level": settings.observability.log_level,
            "similarity_cache": settings.similarity_cache.enabled
        })

    @app.get("/")
    async def root():
        """루트 엔드포인트"""
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "endpoints": {
                "health": "/health",
                "ready": "/ready",
                "metrics": "/metrics",
                "info": "/info"
            }
        })

    return app
