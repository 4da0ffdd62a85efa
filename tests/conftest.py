"""공통 테스트 픽스처"""
import asyncio
from datetime import datetime, timezone

import pytest
import pytest_asyncio

from app.schemas.exam import ExamConfig, ExamDetails
from app.services.persistence import MemorySnapshotStore, PersistenceAdapter
from app.services.session_controller import SessionController

FIXED_NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

# 테스트에서는 주기 태스크가 스스로 돌지 않도록 충분히 긴 주기 사용 (tick/flush 직접 호출)
IDLE_INTERVAL = 3600.0


class FakeClock:
    """수동으로 시간을 진행시키는 단조 시계"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SlowStore(MemorySnapshotStore):
    """쓰기/삭제가 느린 메모리 저장소"""

    def __init__(self, delay: float = 0.01):
        super().__init__()
        self._delay = delay

    async def set(self, key: str, value: str) -> None:
        await asyncio.sleep(self._delay)
        await super().set(key, value)

    async def delete(self, key: str) -> None:
        await asyncio.sleep(self._delay)
        await super().delete(key)


def make_exam_details(
    questions: list[dict] | None = None,
    *,
    exam_id: str = "exam-1",
    time_limit: int = 30,
    passing_score: float = 50,
    **config_overrides,
) -> ExamDetails:
    """시험 정보 생성 (기본: 객관식 1문제 + O/X 1문제)"""
    if questions is None:
        questions = [
            {"id": "q1", "type": "multiple-choice", "text": "정답은 B", "points": 1, "order": 1,
             "options": {"A": "1", "B": "2", "C": "3", "D": "4"}, "correct_answer": "B"},
            {"id": "q2", "type": "true-false", "text": "하늘은 파랗다", "points": 1, "order": 2,
             "correct_answer": True},
        ]
    config = {
        "id": exam_id,
        "title": "중간고사",
        "time_limit": time_limit,
        "total_questions": len(questions),
        "passing_score": passing_score,
        **config_overrides,
    }
    return ExamDetails.model_validate({"config": config, "questions": questions})


def make_questions(count: int) -> list[dict]:
    """객관식 문제 count개 (정답은 모두 A)"""
    return [
        {"id": f"q{i}", "type": "multiple-choice", "text": f"문제 {i}", "points": 1, "order": i,
         "correct_answer": "A"}
        for i in range(1, count + 1)
    ]


@pytest.fixture
def fake_clock():
    """가짜 단조 시계"""
    return FakeClock()


@pytest.fixture
def memory_store():
    """메모리 스냅샷 저장소"""
    return MemorySnapshotStore()


@pytest.fixture
def persistence(memory_store):
    """원격 API 없는 저장 어댑터"""
    return PersistenceAdapter(memory_store, clock=lambda: FIXED_NOW)


@pytest.fixture
def slow_persistence():
    """쓰기가 느린 저장소 기반 저장 어댑터"""
    return PersistenceAdapter(SlowStore(), clock=lambda: FIXED_NOW)


@pytest.fixture
def exam_details():
    """기본 시험 정보 (2문제, 30분, 합격 50%)"""
    return make_exam_details()


@pytest.fixture
def controller_factory(fake_clock):
    """가짜 시계를 사용하는 컨트롤러 생성 함수"""

    def factory(persistence: PersistenceAdapter) -> SessionController:
        return SessionController(
            persistence,
            save_interval=IDLE_INTERVAL,
            sync_interval=IDLE_INTERVAL,
            tick_seconds=IDLE_INTERVAL,
            clock=fake_clock,
            now=lambda: FIXED_NOW,
        )

    return factory


@pytest_asyncio.fixture
async def controller(persistence, controller_factory):
    """세션 컨트롤러 (테스트 종료 시 타이머/자동 저장 정리)"""
    ctrl = controller_factory(persistence)
    yield ctrl
    ctrl.close()
    await asyncio.sleep(0)


@pytest.fixture
def details_factory():
    """시험 정보 생성 함수"""
    return make_exam_details


@pytest.fixture
def questions_factory():
    """객관식 문제 목록 생성 함수"""
    return make_questions


@pytest.fixture
def fixed_now():
    """테스트 기준 시각"""
    return FIXED_NOW
