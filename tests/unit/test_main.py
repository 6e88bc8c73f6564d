"""
엔트리포인트 설정/구성 테스트
"""

import json
import pytest
from unittest.mock import patch

from civic_triage.main import build_engine, build_settings


class TestBuildSettings:
    """환경 변수 → 설정 변환 테스트"""

    def test_defaults(self):
        with patch.dict('os.environ', {}, clear=True):
            settings = build_settings()
        assert settings.duplicate.threshold == 0.75
        assert settings.duplicate.radius_m == 200
        assert settings.similarity_cache.enabled is True
        assert settings.sla.default_hours == 72

    def test_environment_overrides(self):
        with patch.dict('os.environ', {
            'DUPLICATE_RADIUS_M': '300',
            'DUPLICATE_THRESHOLD': '0.8',
            'SIMILARITY_CACHE_ENABLED': 'false',
            'SLA_DEFAULT_HOURS': '48',
            'DB_PATH': '/tmp/c.db',
            'METRICS_PORT': '9000',
            'LOG_LEVEL': 'DEBUG',
        }):
            settings = build_settings()

        assert settings.duplicate.radius_m == 300
        assert settings.duplicate.threshold == 0.8
        assert settings.similarity_cache.enabled is False
        assert settings.sla.default_hours == 48
        assert settings.storage.db_path == '/tmp/c.db'
        assert settings.observability.http_port == 9000
        assert settings.observability.log_level == 'DEBUG'


class TestBuildEngine:
    """엔진 구성 테스트"""

    @pytest.mark.asyncio
    async def test_build_engine(self, sample_settings, temp_db_path, temp_file_path, square):
        with open(temp_file_path, "w", encoding="utf-8") as f:
            json.dump({"type": "FeatureCollection", "features": [{
                "type": "Feature",
                "properties": {"id": "city-1", "name": "Karachi", "code": "KHI", "level": "city"},
                "geometry": {"type": "Polygon", "coordinates": [square(1, 1, 1)]},
            }]}, f)
        sample_settings.storage.db_path = temp_db_path
        sample_settings.storage.boundaries_path = temp_file_path

        engine = await build_engine(sample_settings)

        assert engine.index.get("city-1").code == "KHI"
        assert await engine.store.get("missing") is None
