import asyncio
import logging
from collections.abc import Awaitable, Callable

from app.schemas.exam import ExamSession
from app.services.persistence import PersistenceAdapter

logger = logging.getLogger(__name__)

DEFAULT_SAVE_INTERVAL = 10.0
DEFAULT_SYNC_INTERVAL = 30.0


class AutoSaveScheduler:
    """변경이 있을 때만 주기적으로 스냅샷 저장 + 더 긴 주기의 원격 동기화

    변경 표시는 버전 카운터로 관리한다. 저장이 성공하면 저장 시작 시점의 버전까지만
    반영되므로, 저장 중에 들어온 변경은 다음 주기에 다시 저장된다.
    """

    def __init__(
        self,
        persistence: PersistenceAdapter,
        snapshot_provider: Callable[[], ExamSession],
        *,
        save_interval: float = DEFAULT_SAVE_INTERVAL,
        sync_interval: float = DEFAULT_SYNC_INTERVAL,
    ):
        self._persistence = persistence
        self._snapshot = snapshot_provider
        self._save_interval = save_interval
        self._sync_interval = sync_interval

        self._dirty_version = 0
        self._saved_version = 0
        self._save_lock = asyncio.Lock()
        self._syncing = False
        self._tasks: list[asyncio.Task] = []
        self._running = False

    @property
    def is_dirty(self) -> bool:
        return self._dirty_version > self._saved_version

    @property
    def is_running(self) -> bool:
        return self._running

    def mark_dirty(self) -> None:
        """변경 표시 (변경과 같은 시점에 동기적으로 호출)"""
        self._dirty_version += 1

    def start(self) -> None:
        """저장/동기화 주기 시작"""
        if self._running:
            return
        self._running = True
        loop = asyncio.get_running_loop()
        self._tasks = [
            loop.create_task(self._every(self._save_interval, self.tick)),
            loop.create_task(self._every(self._sync_interval, self.sync_tick)),
        ]

    def stop(self) -> None:
        """주기 정지 (여러 번 호출해도 안전)"""
        self._running = False
        tasks, self._tasks = self._tasks, []
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        for task in tasks:
            if task is not current and not task.done():
                task.cancel()

    async def tick(self) -> bool:
        """변경이 있으면 저장 (저장 중이거나 변경이 없으면 건너뜀)"""
        if self._save_lock.locked() or not self.is_dirty:
            return False
        return await self._save()

    async def flush(self) -> bool:
        """변경 여부와 관계없이 즉시 저장 (진행 중인 저장이 끝날 때까지 대기)"""
        return await self._save()

    async def sync_tick(self) -> bool:
        """원격 동기화 (실패는 로그만 남기고 무시)"""
        if self._syncing:
            return False
        self._syncing = True
        try:
            return await self._persistence.sync_remote(self._snapshot())
        except Exception as e:
            logger.warning(f"원격 동기화 오류 무시: {e.__class__.__name__}: {e}")
            return False
        finally:
            self._syncing = False

    async def _save(self) -> bool:
        async with self._save_lock:
            version = self._dirty_version
            saved = await self._persistence.save(self._snapshot())
            if saved:
                self._saved_version = max(self._saved_version, version)
            else:
                logger.warning("자동 저장 실패, 다음 주기에 재시도")
            return saved

    async def _every(self, interval: float, action: Callable[[], Awaitable[bool]]) -> None:
        while self._running:
            await asyncio.sleep(interval)
            if not self._running:
                break
            try:
                await action()
            except Exception as e:
                logger.error(f"자동 저장 주기 오류: {e.__class__.__name__}", exc_info=True)
