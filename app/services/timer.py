import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

TickCallback = Callable[[int], Awaitable[Any] | Any]
ExpireCallback = Callable[[], Awaitable[Any] | Any]


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class CountdownTimer:
    """시험 제한 시간 카운트다운 (만료 콜백은 시작/정지 주기당 정확히 1회)

    이벤트 루프가 지연되어도 남은 시간이 실제 경과 시간보다 길어지지 않도록
    매 틱마다 시계 기준 경과 시간을 계산해 차감한다. 1초 미만 나머지는 다음
    틱으로 이월한다.
    """

    def __init__(
        self,
        on_tick: TickCallback | None = None,
        on_expire: ExpireCallback | None = None,
        *,
        tick_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._on_tick = on_tick
        self._on_expire = on_expire
        self._tick_seconds = tick_seconds
        self._clock = clock

        self._remaining = 0
        self._running = False
        self._expired = False
        self._last_tick: float | None = None
        self._carry = 0.0
        self._task: asyncio.Task | None = None

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, initial_seconds: int) -> None:
        """카운트다운 시작 (이미 실행 중이면 무시)"""
        if self._running:
            return

        self._remaining = max(0, int(initial_seconds))
        self._running = True
        self._expired = False
        self._carry = 0.0
        self._last_tick = self._clock()
        self._cancel_task()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # 이벤트 루프 밖에서는 tick()을 직접 호출해 구동
            loop = None
        if loop is not None:
            self._task = loop.create_task(self._run())
        logger.debug(f"타이머 시작: remaining={self._remaining}s")

    def stop(self) -> None:
        """카운트다운 정지 (여러 번 호출해도 안전)"""
        self._running = False
        self._cancel_task()

    async def tick(self) -> int:
        """시계 기준 경과 시간을 반영하고 남은 시간을 반환"""
        if not self._running:
            return self._remaining

        now = self._clock()
        elapsed = max(0.0, now - (self._last_tick if self._last_tick is not None else now))
        self._last_tick = now
        self._carry += elapsed
        steps = int(self._carry)
        self._carry -= steps

        if steps == 0 and self._remaining > 0:
            return self._remaining

        self._remaining = max(0, self._remaining - steps)
        if self._remaining > 0:
            if self._on_tick is not None:
                await _maybe_await(self._on_tick(self._remaining))
            return self._remaining

        # 만료: 콜백보다 먼저 정지 상태로 전환 (콜백 안의 stop()은 현재 태스크를 취소하지 않음)
        self._running = False
        if self._on_tick is not None:
            await _maybe_await(self._on_tick(0))
        if not self._expired:
            self._expired = True
            logger.info("시험 시간 만료")
            if self._on_expire is not None:
                await _maybe_await(self._on_expire())
        return 0

    def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

    async def _run(self) -> None:
        while self._running:
            await asyncio.sleep(self._tick_seconds)
            if not self._running:
                break
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"타이머 콜백 오류: {e.__class__.__name__}", exc_info=True)


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
