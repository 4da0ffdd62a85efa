"""add_exam_session_snapshots_table

Revision ID: 3b1c9e7d5a20
Revises: 
Create Date: 2026-10-12 14:05:31.402117

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b1c9e7d5a20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """exam_session_snapshots 테이블 생성 (세션 스냅샷/진행 중 세션 포인터 키-값 저장소)"""
    op.create_table(
        'exam_session_snapshots',
        sa.Column('key', sa.String(length=255), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('key'),
    )


def downgrade() -> None:
    """exam_session_snapshots 테이블 제거"""
    op.drop_table('exam_session_snapshots')
