"""
취소 유틸리티 단위 테스트
"""

import asyncio
import pytest

from civic_triage.common.cancel import run_cancellable


class TestRunCancellable:
    """run_cancellable 테스트"""

    async def test_without_event(self):
        async def work():
            return 42

        assert await run_cancellable(work()) == 42

    async def test_completes_before_cancel(self):
        async def work():
            return "done"

        assert await run_cancellable(work(), asyncio.Event()) == "done"

    async def test_already_cancelled(self):
        """이미 설정된 이벤트면 작업을 시작하지 않고 취소"""
        started = False

        async def work():
            nonlocal started
            started = True

        event = asyncio.Event()
        event.set()
        with pytest.raises(asyncio.CancelledError):
            await run_cancellable(work(), event)
        assert started is False

    async def test_cancel_during_work(self):
        """진행 중 취소 신호가 오면 하위 작업이 정리됨"""
        cleaned_up = asyncio.Event()

        async def work():
            try:
                await asyncio.sleep(10)
            finally:
                cleaned_up.set()

        event = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, event.set)

        with pytest.raises(asyncio.CancelledError):
            await run_cancellable(work(), event)
        assert cleaned_up.is_set()

    async def test_work_exception_propagates(self):
        async def work():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await run_cancellable(work(), asyncio.Event())
