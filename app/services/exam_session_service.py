import asyncio
import logging
from collections import OrderedDict
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from app.core.config import settings
from app.exceptions import (
    ExamSessionNotFoundError,
    RemoteServiceError,
    ResultNotAvailableError,
    SessionNotActiveError,
)
from app.schemas.exam import ExamResult, ExamSession, ExitConfirmation
from app.services.exam_loader import ExamLoader, InMemoryExamLoader, RemoteExamLoader, ensure_can_start
from app.services.persistence import MemorySnapshotStore, PersistenceAdapter, SqlSnapshotStore
from app.services.remote_client import RemoteSessionClient
from app.services.session_controller import SessionController, SessionState

logger = logging.getLogger(__name__)

DEFAULT_RESULT_CACHE_SIZE = 1000


class SessionRegistry:
    """프로세스 내 세션 ID → 진행 중 컨트롤러 매핑 (제출 완료 시 제거)"""

    def __init__(self):
        self._controllers: dict[str, SessionController] = {}

    def register(self, controller: SessionController) -> None:
        self._controllers[controller.session_id] = controller

    def get(self, session_id: str) -> SessionController:
        controller = self._controllers.get(session_id)
        if controller is None:
            raise ExamSessionNotFoundError(session_id)
        return controller

    def remove(self, session_id: str) -> SessionController | None:
        return self._controllers.pop(session_id, None)

    def find_open(self, exam_id: str, user_id: str) -> SessionController | None:
        """같은 응시자의 진행 중(또는 일시 정지) 세션"""
        for controller in self._controllers.values():
            if (
                controller.exam_id == exam_id
                and controller.user_id == user_id
                and not controller.is_disposed
                and controller.state in (SessionState.ACTIVE, SessionState.PAUSED)
            ):
                return controller
        return None

    def all(self) -> list[SessionController]:
        return list(self._controllers.values())

    def __len__(self) -> int:
        return len(self._controllers)


class ResultCache:
    """제출 완료된 결과 보관 (최대 개수 초과 시 오래된 것부터 제거)"""

    def __init__(self, max_size: int = DEFAULT_RESULT_CACHE_SIZE):
        self._max_size = max_size
        self._results: OrderedDict[str, ExamResult] = OrderedDict()

    def put(self, session_id: str, result: ExamResult) -> None:
        self._results[session_id] = result
        self._results.move_to_end(session_id)
        while len(self._results) > self._max_size:
            evicted, _ = self._results.popitem(last=False)
            logger.debug(f"오래된 시험 결과 제거: session_id={evicted}")

    def get(self, session_id: str) -> ExamResult | None:
        return self._results.get(session_id)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._results

    def __len__(self) -> int:
        return len(self._results)


class _AttemptLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class ExamSessionService:
    """응시 시작/재개/제출/나가기 조율 (시험+응시자당 컨트롤러 1개)"""

    def __init__(
        self,
        loader: ExamLoader,
        persistence: PersistenceAdapter,
        *,
        registry: SessionRegistry | None = None,
        results: ResultCache | None = None,
        controller_factory: Callable[[PersistenceAdapter], SessionController] | None = None,
    ):
        self._loader = loader
        self._persistence = persistence
        self._registry = registry or SessionRegistry()
        self._results = results or ResultCache()
        self._controller_factory = controller_factory or _default_controller_factory
        self._attempt_locks: dict[tuple[str, str], _AttemptLock] = {}

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def results(self) -> ResultCache:
        return self._results

    async def open_attempt(self, exam_id: str, user_id: str) -> SessionController:
        """시험 응시 열기: 저장된 세션이 있으면 재개, 없으면 새로 시작"""
        # 로더의 설정/접근 오류는 그대로 전달 (세션 생성 없음)
        details = ensure_can_start(await self._loader.get_exam_details(exam_id))

        async with self._attempt_lock(exam_id, user_id):
            existing = self._registry.find_open(exam_id, user_id)
            if existing is not None:
                return existing

            controller = self._controller_factory(self._persistence)
            saved = await self._find_resumable(exam_id, user_id)
            if saved is not None:
                await controller.restore(details, saved)
            else:
                session_id = await self._start_remote_session(exam_id)
                await controller.start(details, user_id, session_id=session_id)

            # 남은 시간 없이 복원되어 바로 제출된 경우
            if controller.state is SessionState.COMPLETED:
                self._archive(controller)
                return controller

            self._registry.register(controller)
            controller.subscribe(lambda session: self._on_session_changed(controller, session))
            return controller

    def get(self, session_id: str) -> SessionController:
        return self._registry.get(session_id)

    async def submit(self, session_id: str) -> ExamResult:
        if session_id in self._results:
            raise SessionNotActiveError(SessionState.COMPLETED.value, "submit")
        controller = self._registry.get(session_id)
        return await controller.submit()

    def get_result(self, session_id: str) -> ExamResult:
        result = self._results.get(session_id)
        if result is not None:
            return result
        # 진행 중이면 409, 모르는 세션이면 404
        self._registry.get(session_id)
        raise ResultNotAvailableError(session_id)

    def request_exit(self, session_id: str) -> ExitConfirmation:
        return self._registry.get(session_id).request_exit()

    async def confirm_exit(self, session_id: str) -> bool:
        controller = self._registry.get(session_id)
        async with self._attempt_lock(controller.exam_id, controller.user_id):
            saved = await controller.confirm_exit()
            self._registry.remove(session_id)
        return saved

    async def close_all(self) -> None:
        """앱 종료 시 모든 세션 정리 (진행 중 세션은 저장 후 해제)"""
        for controller in self._registry.all():
            if not controller.is_disposed and controller.state in (SessionState.ACTIVE, SessionState.PAUSED):
                try:
                    await controller.confirm_exit()
                except Exception as e:
                    logger.error(f"세션 정리 중 오류: {e.__class__.__name__}", exc_info=True)
            controller.close()
            self._registry.remove(controller.session_id)

    @asynccontextmanager
    async def _attempt_lock(self, exam_id: str, user_id: str) -> AsyncIterator[None]:
        """같은 시험+응시자의 열기/나가기 직렬화 (대기자가 없으면 잠금 제거)"""
        key = (exam_id, user_id)
        entry = self._attempt_locks.get(key)
        if entry is None:
            entry = self._attempt_locks[key] = _AttemptLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._attempt_locks.pop(key, None)

    def _on_session_changed(self, controller: SessionController, session: ExamSession) -> None:
        if session.is_completed:
            self._archive(controller)

    def _archive(self, controller: SessionController) -> None:
        """제출 완료된 컨트롤러를 결과만 남기고 해제"""
        session_id = controller.session_id
        result = controller.visible_result()
        if result is not None:
            self._results.put(session_id, result)
        self._registry.remove(session_id)
        controller.close()
        logger.info(f"제출 완료 세션 해제: session_id={session_id}, 보관 결과 수={len(self._results)}")

    async def _find_resumable(self, exam_id: str, user_id: str) -> ExamSession | None:
        session_id = await self._persistence.find_session_id(exam_id, user_id)
        if session_id is None:
            return None

        session = await self._persistence.load(session_id)
        if session is None:
            session = await self._persistence.load_remote(session_id)
        if session is None:
            logger.info(f"저장된 세션을 찾지 못해 새로 시작합니다: session_id={session_id}")
            return None
        if session.is_completed or session.exam_id != exam_id or session.user_id != user_id:
            logger.info(f"재개할 수 없는 세션 스냅샷 무시: session_id={session_id}")
            return None
        return session

    async def _start_remote_session(self, exam_id: str) -> str | None:
        remote = self._persistence.remote
        if remote is None:
            return None
        try:
            session = await remote.start_session(exam_id)
        except RemoteServiceError as e:
            logger.warning(f"원격 세션 시작 실패, 로컬 세션으로 진행: exam_id={exam_id}, {e.message}")
            return None
        return session.id


def _default_controller_factory(persistence: PersistenceAdapter) -> SessionController:
    return SessionController(
        persistence,
        save_interval=settings.autosave_interval_seconds,
        sync_interval=settings.remote_sync_interval_seconds,
        tick_seconds=settings.timer_tick_seconds,
    )


_service: ExamSessionService | None = None


def build_exam_session_service() -> ExamSessionService:
    """설정에 따라 서비스 구성"""
    store = SqlSnapshotStore() if settings.snapshot_store == "database" else MemorySnapshotStore()
    remote = RemoteSessionClient.from_settings()
    loader = RemoteExamLoader.from_settings() or InMemoryExamLoader()
    return ExamSessionService(
        loader,
        PersistenceAdapter(store, remote),
        results=ResultCache(settings.result_cache_size),
    )


def get_exam_session_service() -> ExamSessionService:
    """FastAPI 의존성: 서비스 싱글톤"""
    global _service
    if _service is None:
        _service = build_exam_session_service()
    return _service


async def shutdown_exam_session_service() -> None:
    global _service
    if _service is not None:
        await _service.close_all()
        _service = None
