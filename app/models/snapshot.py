from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin


class SessionSnapshot(Base, TimestampMixin):
    """시험 세션 스냅샷 키-값 저장소"""
    __tablename__ = "exam_session_snapshots"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
