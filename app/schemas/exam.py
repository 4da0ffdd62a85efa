from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, model_validator
from pydantic.alias_generators import to_camel

OptionKey = Literal["A", "B", "C", "D", "E"]
OPTION_KEYS: tuple[str, ...] = ("A", "B", "C", "D", "E")

# 문제 유형별 답안 값: 객관식/빈칸 → 문자열, O/X → bool, 다중 빈칸 → 문자열 목록
AnswerValue = Union[StrictBool, StrictStr, list[StrictStr]]


class CamelModel(BaseModel):
    """프론트엔드/원격 API 호환: camelCase 별칭과 원래 필드명 모두 허용"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenCamelModel(CamelModel):
    """로드 후 변경되지 않는 모델"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ── 문제 ─────────────────────────────────────────────────────────────────────

class BaseQuestion(FrozenCamelModel):
    id: str = Field(..., min_length=1, description="문제 ID")
    text: str = Field("", description="문제 내용")
    points: float = Field(1, ge=0, description="배점")
    order: int = Field(0, description="표시 순서")


class MultipleChoiceQuestion(BaseQuestion):
    """객관식 문제 (보기 A-E, 정답 1개)"""
    type: Literal["multiple-choice"] = "multiple-choice"
    options: dict[OptionKey, str] = Field(default_factory=dict, description="보기 (A-E)")
    correct_answer: OptionKey

    @model_validator(mode="after")
    def validate_correct_answer(self) -> "MultipleChoiceQuestion":
        """정답 키는 보기에 포함되어야 함 (보기가 주어진 경우)"""
        if self.options and self.correct_answer not in self.options:
            raise ValueError(f"정답({self.correct_answer})이 보기에 없습니다: {sorted(self.options)}")
        return self


class TrueFalseQuestion(BaseQuestion):
    """O/X 문제"""
    type: Literal["true-false"] = "true-false"
    correct_answer: bool


class FillBlankQuestion(BaseQuestion):
    """빈칸 채우기 문제 (허용 답안 여러 개)"""
    type: Literal["fill-blank"] = "fill-blank"
    correct_answers: list[str] = Field(..., min_length=1)
    case_sensitive: bool = False


Question = Annotated[
    Union[MultipleChoiceQuestion, TrueFalseQuestion, FillBlankQuestion],
    Field(discriminator="type"),
]


# ── 시험 설정 ─────────────────────────────────────────────────────────────────

class ExamAvailability(FrozenCamelModel):
    """시험 응시 가능 상태 (로더 제공)"""
    status: Literal["active", "not_started", "expired", "inactive"] = "active"
    can_start: bool = True
    start_date_formatted: str | None = None
    end_date_formatted: str | None = None
    message: str | None = None


class ExamConfig(FrozenCamelModel):
    """시험 설정 (응시 1회당 한 번 로드, 엔진에서는 읽기 전용)"""
    id: str
    title: str
    description: str | None = None
    time_limit: int = Field(..., description="제한 시간 (분)")
    total_questions: int = 0
    total_points: float = Field(0, description="총점 (0이면 문제 배점 합계 사용)")
    passing_score: float = Field(60, ge=0, le=100, description="합격 기준 (%)")
    shuffle_questions: bool = False
    allow_review: bool = True
    show_results: bool = True
    can_start: bool = True
    status: ExamAvailability = Field(default_factory=ExamAvailability)

    @property
    def time_limit_seconds(self) -> int:
        return self.time_limit * 60


class ExamDetails(FrozenCamelModel):
    """로더가 반환하는 시험 정보"""
    config: ExamConfig
    questions: list[Question] = Field(default_factory=list)
    display_material: list[str] = Field(default_factory=list, description="PDF 페이지 등 표시 자료 (엔진에서는 사용하지 않음)")


# ── 세션 ─────────────────────────────────────────────────────────────────────

class ExamAnswer(CamelModel):
    """문제별 답안 (문제당 1개, 재응답 시 덮어씀)"""
    question_id: str
    answer: AnswerValue
    time_spent: int = Field(0, ge=0, description="문제에 사용한 시간 (초)")
    is_correct: bool | None = Field(None, description="채점 전에는 None")


class ExamSession(CamelModel):
    """응시 세션 (SessionController가 단독 소유)"""
    id: str
    exam_id: str
    user_id: str
    start_time: datetime
    end_time: datetime | None = None
    current_question_index: int = Field(0, ge=0)
    answers: dict[str, ExamAnswer] = Field(default_factory=dict)
    time_remaining: int = Field(..., ge=0, description="남은 시간 (초)")
    is_completed: bool = False
    is_paused: bool = False
    last_updated: datetime | None = None


class ExamProgress(CamelModel):
    """진행 현황"""
    current_question: int
    total_questions: int
    answered_questions: int
    percentage: int = Field(..., ge=0, le=100)


# ── 결과 ─────────────────────────────────────────────────────────────────────

class QuestionResult(FrozenCamelModel):
    """문제별 채점 결과"""
    question_id: str
    user_answer: AnswerValue | None = None
    correct_answer: AnswerValue
    is_correct: bool
    is_answered: bool
    points: float
    max_points: float
    time_spent: int = 0


class ExamResult(FrozenCamelModel):
    """채점 결과 (생성 후 변경 불가)"""
    session_id: str
    exam_id: str
    user_id: str
    score: float
    total_points: float
    percentage: int
    total_questions: int
    correct_answers: int
    wrong_answers: int
    unanswered_questions: int
    time_spent: int = Field(..., ge=0, description="응시 시간 (초)")
    passed: bool
    completed_at: datetime
    question_results: list[QuestionResult] = Field(default_factory=list)
    scored_locally: bool = False


# ── API 요청/응답 ─────────────────────────────────────────────────────────────

class AnswerRequest(CamelModel):
    """답안 기록 요청"""
    answer: AnswerValue
    time_spent: int | None = Field(None, ge=0, description="생략 시 현재 문제 체류 시간 사용")


class NavigateRequest(CamelModel):
    """문제 이동 요청"""
    index: int


class ExitConfirmation(CamelModel):
    """나가기 확인 정보 (세션 상태 변경 없음)"""
    session_id: str
    answered_questions: int
    unanswered_questions: int
    time_remaining: int
    message: str


class PublicQuestion(CamelModel):
    """응시자에게 보여줄 문제 (정답 제외)"""
    id: str
    type: Literal["multiple-choice", "true-false", "fill-blank"]
    text: str
    points: float
    order: int
    options: dict[OptionKey, str] | None = None


class ExamSessionView(CamelModel):
    """세션 조회 응답"""
    state: Literal["not_started", "active", "paused", "completed"]
    session: ExamSession
    time_remaining: int
    progress: ExamProgress
    questions: list[PublicQuestion] = Field(default_factory=list)
