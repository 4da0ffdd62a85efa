"""채점 로직 테스트"""
import pytest

from app.schemas.exam import ExamAnswer, FillBlankQuestion, MultipleChoiceQuestion, TrueFalseQuestion
from app.services.scoring import correct_answer_of, evaluate_answer, score_exam, total_points_of


def answers_of(**values) -> dict[str, ExamAnswer]:
    return {qid: ExamAnswer(question_id=qid, answer=value) for qid, value in values.items()}


def score(details, answers, fixed_now, time_spent=120):
    return score_exam(
        details.config,
        details.questions,
        answers,
        session_id="s-1",
        exam_id=details.config.id,
        user_id="u-1",
        time_spent=time_spent,
        completed_at=fixed_now,
    )


def test_full_pass_scenario(exam_details, fixed_now):
    """2문제 중 1문제 정답, 합격 기준 50% → 50점 합격"""
    result = score(exam_details, answers_of(q1="B", q2=False), fixed_now)

    assert result.score == 1
    assert result.total_points == 2
    assert result.percentage == 50
    assert result.passed is True
    assert result.correct_answers == 1
    assert result.wrong_answers == 1
    assert result.unanswered_questions == 0
    assert result.time_spent == 120
    assert result.scored_locally is True


def test_below_passing_score(details_factory, fixed_now):
    """합격 기준 미달이면 불합격"""
    details = details_factory(passing_score=60)
    result = score(details, answers_of(q1="B"), fixed_now)

    assert result.percentage == 50
    assert result.passed is False


def test_unanswered_tracked_separately(details_factory, questions_factory, fixed_now):
    """미응답은 오답과 별도로 집계"""
    details = details_factory(questions_factory(4))
    result = score(details, answers_of(q1="A", q2="C"), fixed_now)

    assert result.correct_answers == 1
    assert result.wrong_answers == 1
    assert result.unanswered_questions == 2
    assert result.correct_answers + result.wrong_answers + result.unanswered_questions == result.total_questions
    unanswered = [r for r in result.question_results if not r.is_answered]
    assert [r.question_id for r in unanswered] == ["q3", "q4"]
    assert all(r.user_answer is None and r.points == 0 for r in unanswered)


def test_no_answers_scores_zero(exam_details, fixed_now):
    """답안이 없어도 채점 가능 (0점)"""
    result = score(exam_details, {}, fixed_now, time_spent=1800)

    assert result.score == 0
    assert result.percentage == 0
    assert result.passed is False
    assert result.unanswered_questions == 2


def test_weighted_points(details_factory, fixed_now):
    """배점이 다른 문제는 배점만큼 득점"""
    details = details_factory([
        {"id": "q1", "type": "true-false", "points": 3, "order": 1, "correct_answer": True},
        {"id": "q2", "type": "true-false", "points": 1, "order": 2, "correct_answer": False},
    ])
    result = score(details, answers_of(q1=True, q2=True), fixed_now)

    assert result.score == 3
    assert result.total_points == 4
    assert result.percentage == 75


def test_config_total_points_takes_precedence(details_factory, fixed_now):
    """설정에 총점이 있으면 문제 배점 합계 대신 사용"""
    details = details_factory(total_points=4)

    assert total_points_of(details.config, details.questions) == 4
    assert score(details, answers_of(q1="B", q2=True), fixed_now).percentage == 50


def test_question_results_follow_display_order(details_factory, fixed_now):
    """문제별 결과는 order 순서"""
    details = details_factory([
        {"id": "late", "type": "true-false", "order": 2, "correct_answer": True},
        {"id": "early", "type": "true-false", "order": 1, "correct_answer": True},
    ])
    result = score(details, {}, fixed_now)

    assert [r.question_id for r in result.question_results] == ["early", "late"]


@pytest.mark.parametrize(
    "value, expected",
    [("B", True), (" b ", True), ("A", False), (True, False)],
)
def test_evaluate_multiple_choice(value, expected):
    """객관식: 공백 제거 후 대문자 비교"""
    question = MultipleChoiceQuestion(id="q", correct_answer="B")

    assert evaluate_answer(question, value) is expected


@pytest.mark.parametrize(
    "value, expected",
    [(True, True), (False, False), ("true", False)],
)
def test_evaluate_true_false(value, expected):
    """O/X: bool 값만 인정"""
    question = TrueFalseQuestion(id="q", correct_answer=True)

    assert evaluate_answer(question, value) is expected


@pytest.mark.parametrize(
    "value, case_sensitive, expected",
    [
        ("  Python ", False, True),
        ("PYTHON", False, True),
        ("PYTHON", True, False),
        ("Python", True, True),
        ("파이썬", False, True),
        ("java", False, False),
        (["python", "파이썬"], False, True),
        (["python", "java"], False, False),
        ([], False, False),
    ],
)
def test_evaluate_fill_blank(value, case_sensitive, expected):
    """빈칸: 공백 제거, 대소문자 구분 설정에 따라 비교, 허용 답안 중 하나와 일치"""
    question = FillBlankQuestion(
        id="q", correct_answers=["Python", "파이썬"], case_sensitive=case_sensitive
    )

    assert evaluate_answer(question, value) is expected


def test_evaluate_none_is_incorrect():
    """답안 없음은 오답"""
    assert evaluate_answer(TrueFalseQuestion(id="q", correct_answer=False), None) is False


def test_correct_answer_of_fill_blank_lists_all_accepted():
    """빈칸 문제의 정답은 허용 답안 전체"""
    question = FillBlankQuestion(id="q", correct_answers=["a", "b"])

    assert correct_answer_of(question) == ["a", "b"]
