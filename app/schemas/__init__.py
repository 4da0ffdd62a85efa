from app.schemas.exam import (
    AnswerRequest,
    ExamAnswer,
    ExamAvailability,
    ExamConfig,
    ExamDetails,
    ExamProgress,
    ExamResult,
    ExamSession,
    ExamSessionView,
    ExitConfirmation,
    FillBlankQuestion,
    MultipleChoiceQuestion,
    NavigateRequest,
    PublicQuestion,
    Question,
    QuestionResult,
    TrueFalseQuestion,
)

__all__ = [
    "ExamAvailability",
    "ExamConfig",
    "ExamDetails",
    "MultipleChoiceQuestion",
    "TrueFalseQuestion",
    "FillBlankQuestion",
    "Question",
    "ExamAnswer",
    "ExamSession",
    "ExamProgress",
    "QuestionResult",
    "ExamResult",
    "AnswerRequest",
    "NavigateRequest",
    "ExitConfirmation",
    "PublicQuestion",
    "ExamSessionView",
]
