from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.snapshot import SessionSnapshot


async def get_snapshot(session: AsyncSession, key: str) -> SessionSnapshot | None:
    """키로 스냅샷 조회"""
    return await session.get(SessionSnapshot, key)


async def upsert_snapshot(session: AsyncSession, key: str, value: str) -> SessionSnapshot:
    """스냅샷 저장 (마지막 쓰기 우선)"""
    snapshot = await session.get(SessionSnapshot, key)
    if snapshot is None:
        snapshot = SessionSnapshot(key=key, value=value)
        session.add(snapshot)
    else:
        snapshot.value = value
    await session.commit()
    return snapshot


async def delete_snapshot(session: AsyncSession, key: str) -> bool:
    """스냅샷 삭제, 삭제 여부 반환"""
    result = await session.execute(delete(SessionSnapshot).where(SessionSnapshot.key == key))
    await session.commit()
    return result.rowcount > 0
