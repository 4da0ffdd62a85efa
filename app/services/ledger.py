import math
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from app.schemas.exam import AnswerValue, ExamAnswer, ExamProgress, QuestionResult


def round_half_up(value: float) -> int:
    """반올림 (0.5는 올림, 채점/진행률 공통)"""
    return int(math.floor(value + 0.5))


def calculate_percentage(part: float, total: float) -> int:
    """0-100 범위의 백분율 (total이 0이면 0)"""
    if total <= 0:
        return 0
    return max(0, min(100, round_half_up(part / total * 100)))


class AnswerLedger:
    """현재 응시의 답안 원장 (문제 ID → 답안, 마지막 기록 우선)"""

    def __init__(self, question_ids: Iterable[str], answers: Mapping[str, ExamAnswer] | None = None):
        self._question_ids = tuple(question_ids)
        self._known = frozenset(self._question_ids)
        self._answers: Mapping[str, ExamAnswer] = MappingProxyType(
            {qid: answer.model_copy() for qid, answer in (answers or {}).items()}
        )

    @property
    def answers(self) -> Mapping[str, ExamAnswer]:
        return self._answers

    def record(self, question_id: str, value: AnswerValue, time_spent_delta: int = 0) -> Mapping[str, ExamAnswer]:
        """답안 기록 (기존 답안 덮어씀, 새 읽기 전용 매핑 반환)"""
        previous = self._answers.get(question_id)
        time_spent = (previous.time_spent if previous else 0) + max(0, int(time_spent_delta))
        updated = dict(self._answers)
        updated[question_id] = ExamAnswer(
            question_id=question_id,
            answer=value,
            time_spent=time_spent,
            is_correct=None,
        )
        self._answers = MappingProxyType(updated)
        return self._answers

    def get(self, question_id: str) -> ExamAnswer | None:
        return self._answers.get(question_id)

    def is_answered(self, question_id: str) -> bool:
        return question_id in self._answers

    def progress(self, current_index: int = 0) -> ExamProgress:
        """진행 현황 (문제 수는 1개 이상이어야 함)"""
        total = max(1, len(self._question_ids))
        answered = sum(1 for qid in self._answers if qid in self._known)
        return ExamProgress(
            current_question=current_index + 1,
            total_questions=len(self._question_ids),
            answered_questions=answered,
            percentage=calculate_percentage(answered, total),
        )

    def mark_scored(self, question_results: Iterable[QuestionResult]) -> Mapping[str, ExamAnswer]:
        """채점 결과의 정답 여부를 답안에 반영"""
        updated = dict(self._answers)
        for result in question_results:
            answer = updated.get(result.question_id)
            if answer is not None:
                updated[result.question_id] = answer.model_copy(update={"is_correct": result.is_correct})
        self._answers = MappingProxyType(updated)
        return self._answers

    def snapshot(self) -> dict[str, ExamAnswer]:
        """직렬화용 복사본"""
        return {qid: answer.model_copy() for qid, answer in self._answers.items()}
