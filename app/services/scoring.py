"""채점 로직

순수 함수로 구성: 같은 입력이면 서버 채점과 로컬 폴백 채점 결과가 같다.
"""

from collections.abc import Mapping, Sequence
from datetime import datetime

from app.schemas.exam import (
    AnswerValue,
    ExamAnswer,
    ExamConfig,
    ExamResult,
    FillBlankQuestion,
    MultipleChoiceQuestion,
    Question,
    QuestionResult,
    TrueFalseQuestion,
)
from app.services.ledger import calculate_percentage


def _normalize_text(value: str, case_sensitive: bool) -> str:
    value = value.strip()
    return value if case_sensitive else value.casefold()


def evaluate_answer(question: Question, value: AnswerValue | None) -> bool:
    """문제 유형별 정답 판정"""
    if value is None:
        return False

    if isinstance(question, MultipleChoiceQuestion):
        return isinstance(value, str) and value.strip().upper() == question.correct_answer

    if isinstance(question, TrueFalseQuestion):
        return isinstance(value, bool) and value is question.correct_answer

    if isinstance(question, FillBlankQuestion):
        accepted = {_normalize_text(a, question.case_sensitive) for a in question.correct_answers}
        if isinstance(value, str):
            return _normalize_text(value, question.case_sensitive) in accepted
        if isinstance(value, list):
            return bool(value) and all(
                _normalize_text(v, question.case_sensitive) in accepted for v in value
            )
        return False

    raise TypeError(f"지원하지 않는 문제 유형: {type(question).__name__}")


def correct_answer_of(question: Question) -> AnswerValue:
    if isinstance(question, FillBlankQuestion):
        return list(question.correct_answers)
    return question.correct_answer


def total_points_of(config: ExamConfig, questions: Sequence[Question]) -> float:
    """총점 (설정값이 없으면 문제 배점 합계)"""
    if config.total_points > 0:
        return config.total_points
    return sum(q.points for q in questions)


def score_exam(
    config: ExamConfig,
    questions: Sequence[Question],
    answers: Mapping[str, ExamAnswer],
    *,
    session_id: str,
    exam_id: str,
    user_id: str,
    time_spent: int,
    completed_at: datetime,
    scored_locally: bool = True,
) -> ExamResult:
    """최종 답안을 채점하여 ExamResult 생성"""
    question_results: list[QuestionResult] = []
    earned = 0.0
    correct_count = 0
    wrong_count = 0
    unanswered_count = 0

    for question in sorted(questions, key=lambda q: q.order):
        answer = answers.get(question.id)
        if answer is None:
            unanswered_count += 1
            is_correct = False
        else:
            is_correct = evaluate_answer(question, answer.answer)
            if is_correct:
                correct_count += 1
            else:
                wrong_count += 1

        points = question.points if is_correct else 0
        earned += points
        question_results.append(
            QuestionResult(
                question_id=question.id,
                user_answer=answer.answer if answer else None,
                correct_answer=correct_answer_of(question),
                is_correct=is_correct,
                is_answered=answer is not None,
                points=points,
                max_points=question.points,
                time_spent=answer.time_spent if answer else 0,
            )
        )

    total_points = total_points_of(config, questions)
    percentage = calculate_percentage(earned, total_points)

    return ExamResult(
        session_id=session_id,
        exam_id=exam_id,
        user_id=user_id,
        score=earned,
        total_points=total_points,
        percentage=percentage,
        total_questions=len(questions),
        correct_answers=correct_count,
        wrong_answers=wrong_count,
        unanswered_questions=unanswered_count,
        time_spent=max(0, time_spent),
        passed=percentage >= config.passing_score,
        completed_at=completed_at,
        question_results=question_results,
        scored_locally=scored_locally,
    )
