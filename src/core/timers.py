"""asyncio 기반 타이머 — 디바운스 + 주기 작업

이벤트 루프는 단일 스레드이므로 콜백 사이에 인터리빙이 없다.
Debouncer의 swap-and-drain은 그 전제 위에서 원자적이다.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

from src.core.logging import get_logger

logger = get_logger(__name__)


class Debouncer:
    """짧은 지연 후 한 번만 flush하는 단발 타이머.

    mark()로 보류 목록에 항목을 쌓는다. 목록이 비어 있다가 처음 채워질 때
    delay 뒤 flush를 예약한다. flush 시점에 목록을 통째로 교체하고
    콜백을 한 번 호출한다. 콜백 실행 중 들어온 mark는 새 목록에 쌓이고
    다음 flush를 예약한다.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[list[Any]], None],
        name: str = "debouncer",
    ) -> None:
        self._delay = delay
        self._callback = callback
        self._name = name
        self._pending: list[Any] = []
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def scheduled(self) -> bool:
        return self._handle is not None

    def mark(self, entry: Any = None) -> None:
        """보류 목록에 추가. 실행 중인 이벤트 루프 안에서 호출해야 한다."""
        self._pending.append(entry)
        if self._handle is None:
            loop = asyncio.get_running_loop()
            self._handle = loop.call_later(self._delay, self._fire)

    def flush_now(self) -> None:
        """예약을 취소하고 즉시 flush."""
        self.cancel_timer()
        self._fire()

    def cancel(self) -> None:
        """예약 취소 + 보류 목록 폐기."""
        self.cancel_timer()
        self._pending = []

    def cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        pending, self._pending = self._pending, []
        if not pending:
            return
        try:
            self._callback(pending)
        except Exception:
            logger.exception("%s flush failed (%d pending)", self._name, len(pending))


class PeriodicTask:
    """고정 간격으로 코루틴을 반복 실행하는 백그라운드 태스크."""

    def __init__(
        self,
        interval: float,
        func: Callable[[], Awaitable[Any]],
        name: str = "periodic",
    ) -> None:
        self._interval = interval
        self._func = func
        self._name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self._name)
        logger.info("%s started (interval=%.1fs)", self._name, self._interval)

    async def stop(self, timeout: float = 5.0) -> None:
        if self._task is None or self._task.done():
            self._task = None
            return
        self._task.cancel()
        try:
            await asyncio.wait_for(self._task, timeout=timeout)
        except (asyncio.CancelledError, asyncio.TimeoutError):
            logger.info("%s cancelled", self._name)
        finally:
            self._task = None

    async def _loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._interval)
                try:
                    await self._func()
                except Exception:
                    logger.exception("Error during %s run", self._name)
        except asyncio.CancelledError:
            logger.info("%s loop cancelled", self._name)
            raise
