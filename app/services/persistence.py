"""세션 스냅샷 저장소

로컬 키-값 저장소를 우선으로 쓰고, 원격 세션 API 동기화는 베스트 에포트로 처리한다.
저장 실패는 로그만 남기고 "이번 주기 저장 안 됨"으로 취급한다.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Protocol

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.crud import snapshot as snapshot_crud
from app.exceptions import RemoteServiceError
from app.models.base import get_session_factory
from app.schemas.exam import ExamSession
from app.services.remote_client import RemoteSessionClient

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SnapshotStore(Protocol):
    """키별 읽기/쓰기/삭제를 지원하는 저장소"""

    async def get(self, key: str) -> str | None:
        ...

    async def set(self, key: str, value: str) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


class MemorySnapshotStore:
    """프로세스 메모리 저장소"""

    def __init__(self):
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class SqlSnapshotStore:
    """SQLAlchemy 테이블 저장소 (exam_session_snapshots)"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory

    def _factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory

    async def get(self, key: str) -> str | None:
        async with self._factory()() as session:
            snapshot = await snapshot_crud.get_snapshot(session, key)
            return snapshot.value if snapshot else None

    async def set(self, key: str, value: str) -> None:
        async with self._factory()() as session:
            await snapshot_crud.upsert_snapshot(session, key, value)

    async def delete(self, key: str) -> None:
        async with self._factory()() as session:
            await snapshot_crud.delete_snapshot(session, key)


def session_key(session_id: str) -> str:
    return f"exam_session_{session_id}"


def active_session_key(exam_id: str, user_id: str) -> str:
    return f"exam_active_{exam_id}_{user_id}"


class PersistenceAdapter:
    """세션 스냅샷 저장/복구"""

    def __init__(
        self,
        store: SnapshotStore,
        remote: RemoteSessionClient | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._remote = remote
        self._clock = clock

    @property
    def remote(self) -> RemoteSessionClient | None:
        return self._remote

    async def save(self, session: ExamSession) -> bool:
        """스냅샷 저장 (마지막 쓰기 우선), 성공 여부 반환"""
        snapshot = session.model_copy(update={"last_updated": self._clock()})
        try:
            payload = snapshot.model_dump_json(by_alias=True)
            await self._store.set(session_key(session.id), payload)
            await self._store.set(active_session_key(session.exam_id, session.user_id), session.id)
        except Exception as e:
            logger.error(
                f"세션 스냅샷 저장 실패: session_id={session.id}, error={e.__class__.__name__}",
                exc_info=True,
            )
            return False
        logger.debug(f"세션 스냅샷 저장: session_id={session.id}")
        return True

    async def load(self, session_id: str) -> ExamSession | None:
        """스냅샷 로드 (없거나 손상되었으면 None)"""
        try:
            payload = await self._store.get(session_key(session_id))
        except Exception as e:
            logger.error(
                f"세션 스냅샷 로드 실패: session_id={session_id}, error={e.__class__.__name__}",
                exc_info=True,
            )
            return None
        if payload is None:
            return None
        try:
            return ExamSession.model_validate_json(payload)
        except ValidationError as e:
            logger.warning(f"손상된 세션 스냅샷 무시: session_id={session_id}, errors={e.error_count()}")
            return None

    async def delete(self, session_id: str, *, exam_id: str | None = None, user_id: str | None = None) -> bool:
        """스냅샷 삭제 (제출 완료 시에만 호출)"""
        try:
            await self._store.delete(session_key(session_id))
            if exam_id is not None and user_id is not None:
                key = active_session_key(exam_id, user_id)
                if await self._store.get(key) == session_id:
                    await self._store.delete(key)
        except Exception as e:
            logger.error(
                f"세션 스냅샷 삭제 실패: session_id={session_id}, error={e.__class__.__name__}",
                exc_info=True,
            )
            return False
        logger.info(f"세션 스냅샷 삭제: session_id={session_id}")
        return True

    async def find_session_id(self, exam_id: str, user_id: str) -> str | None:
        """재개할 세션 ID 조회"""
        try:
            return await self._store.get(active_session_key(exam_id, user_id))
        except Exception as e:
            logger.error(
                f"진행 중 세션 조회 실패: exam_id={exam_id}, user_id={user_id}, error={e.__class__.__name__}",
                exc_info=True,
            )
            return None

    async def sync_remote(self, session: ExamSession) -> bool:
        """원격 진행 상황 동기화 (실패는 로그만 남김)"""
        if self._remote is None:
            return False
        try:
            await self._remote.save_progress(
                session.id,
                session.answers,
                session.current_question_index,
                session.time_remaining,
            )
        except RemoteServiceError as e:
            logger.warning(f"원격 진행 상황 동기화 실패: session_id={session.id}, {e.message}")
            return False
        return True

    async def load_remote(self, session_id: str) -> ExamSession | None:
        """원격 세션 조회 (실패 시 None)"""
        if self._remote is None:
            return None
        try:
            return await self._remote.get_session(session_id)
        except RemoteServiceError as e:
            logger.warning(f"원격 세션 조회 실패: session_id={session_id}, {e.message}")
            return None
