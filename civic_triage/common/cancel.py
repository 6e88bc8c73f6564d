"""
Cancellation utilities for civic-triage.

The calling boundary owns timeouts; the core only honours a
cancellation signal and tears down its outstanding sub-queries.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

T = TypeVar('T')

async def run_cancellable(work: Awaitable[T], cancel: Optional[asyncio.Event] = None) -> T:
    """
    취소 신호와 함께 작업을 실행합니다.

    Args:
        work: 실행할 코루틴
        cancel: 설정되면 작업을 중단할 이벤트 (None이면 그대로 await)

    Returns:
        작업 결과

    Raises:
        asyncio.CancelledError: 작업 완료 전에 취소 신호가 설정된 경우
    """
    if cancel is None:
        return await work

    if cancel.is_set():
        if asyncio.iscoroutine(work):
            work.close()
        raise asyncio.CancelledError("triage cancelled before start")

    task = asyncio.ensure_future(work)

    waiter = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        if task in done:
            return task.result()

        # 취소 신호 우선: 남은 하위 쿼리 정리
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise asyncio.CancelledError("triage cancelled")
    finally:
        waiter.cancel()
        if not task.done():
            task.cancel()
