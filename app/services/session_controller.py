"""시험 세션 상태 머신

NOT_STARTED → ACTIVE → {PAUSED ⇄ ACTIVE} → COMPLETED

세션(ExamSession)은 컨트롤러가 단독으로 소유한다. 타이머와 자동 저장 스케줄러는
스냅샷을 읽거나 컨트롤러 메서드를 호출할 뿐 세션을 직접 변경하지 않는다.
"""

import logging
import random
import time
import uuid
from collections.abc import Callable
from datetime import datetime
from enum import Enum

from app.exceptions import (
    ExamConfigurationError,
    InvalidAnswerError,
    InvalidQuestionIndexError,
    NavigationNotAllowedError,
    RemoteServiceError,
    SessionAlreadyStartedError,
    SessionNotActiveError,
    UnknownQuestionError,
)
from app.schemas.exam import (
    OPTION_KEYS,
    AnswerValue,
    ExamAnswer,
    ExamConfig,
    ExamDetails,
    ExamProgress,
    ExamResult,
    ExamSession,
    ExamSessionView,
    ExitConfirmation,
    FillBlankQuestion,
    MultipleChoiceQuestion,
    PublicQuestion,
    Question,
    TrueFalseQuestion,
)
from app.services.autosave import DEFAULT_SAVE_INTERVAL, DEFAULT_SYNC_INTERVAL, AutoSaveScheduler
from app.services.ledger import AnswerLedger
from app.services.persistence import PersistenceAdapter, utcnow
from app.services.scoring import score_exam, total_points_of
from app.services.timer import CountdownTimer

logger = logging.getLogger(__name__)

SessionObserver = Callable[[ExamSession], None]

EXIT_MESSAGE = "시험을 나가시겠습니까? 진행 상황은 저장되며 나중에 이어서 응시할 수 있습니다."


class SessionState(str, Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


def validate_exam_details(details: ExamDetails) -> None:
    """세션 시작 전 시험 설정 검증 (실패 시 ExamConfigurationError)"""
    config = details.config
    if not details.questions:
        raise ExamConfigurationError(f"문제가 없는 시험입니다: {config.id}")
    if config.time_limit <= 0:
        raise ExamConfigurationError(f"제한 시간이 올바르지 않습니다: {config.time_limit}분")
    question_ids = [q.id for q in details.questions]
    if len(set(question_ids)) != len(question_ids):
        raise ExamConfigurationError(f"중복된 문제 ID가 있습니다: {config.id}")
    if total_points_of(config, details.questions) <= 0:
        raise ExamConfigurationError(f"총점이 0인 시험입니다: {config.id}")
    if config.total_questions and config.total_questions != len(details.questions):
        logger.warning(
            f"설정의 문제 수와 실제 문제 수가 다릅니다: exam_id={config.id}, "
            f"설정={config.total_questions}, 실제={len(details.questions)}"
        )


def order_questions(questions: list[Question], shuffle: bool, seed: str) -> list[Question]:
    """표시 순서 결정 (섞기 설정 시 세션 ID 기준으로 항상 같은 순서)"""
    ordered = sorted(questions, key=lambda q: q.order)
    if shuffle:
        random.Random(seed).shuffle(ordered)
    return ordered


def check_answer_kind(question: Question, value: AnswerValue) -> None:
    """문제 유형에 맞는 답안 값인지 확인"""
    if isinstance(question, MultipleChoiceQuestion):
        allowed = tuple(question.options) or OPTION_KEYS
        if not isinstance(value, str) or value.strip().upper() not in allowed:
            raise InvalidAnswerError(f"객관식 답안은 {', '.join(allowed)} 중 하나여야 합니다: {question.id}")
    elif isinstance(question, TrueFalseQuestion):
        if not isinstance(value, bool):
            raise InvalidAnswerError(f"O/X 문제의 답안은 true/false여야 합니다: {question.id}")
    elif isinstance(question, FillBlankQuestion):
        if not isinstance(value, (str, list)):
            raise InvalidAnswerError(f"빈칸 문제의 답안은 문자열이어야 합니다: {question.id}")


def to_public_question(question: Question) -> PublicQuestion:
    return PublicQuestion(
        id=question.id,
        type=question.type,
        text=question.text,
        points=question.points,
        order=question.order,
        options=dict(question.options) if isinstance(question, MultipleChoiceQuestion) else None,
    )


class SessionController:
    """응시 1회의 세션 수명 주기 관리"""

    def __init__(
        self,
        persistence: PersistenceAdapter,
        *,
        save_interval: float = DEFAULT_SAVE_INTERVAL,
        sync_interval: float = DEFAULT_SYNC_INTERVAL,
        tick_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = utcnow,
    ):
        self._persistence = persistence
        self._remote = persistence.remote
        self._clock = clock
        self._now = now

        self._state = SessionState.NOT_STARTED
        self._disposed = False
        self._submitting = False
        self._details: ExamDetails | None = None
        self._questions: list[Question] = []
        self._questions_by_id: dict[str, Question] = {}
        self._session: ExamSession | None = None
        self._ledger: AnswerLedger | None = None
        self._result: ExamResult | None = None
        self._observers: list[SessionObserver] = []
        self._question_entered_at = clock()

        self._timer = CountdownTimer(
            on_tick=self._on_timer_tick,
            on_expire=self.on_timer_expired,
            tick_seconds=tick_seconds,
            clock=clock,
        )
        self._autosave = AutoSaveScheduler(
            persistence,
            self._snapshot,
            save_interval=save_interval,
            sync_interval=sync_interval,
        )

    # ── 조회 ──────────────────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def session_id(self) -> str | None:
        return self._session.id if self._session else None

    @property
    def exam_id(self) -> str | None:
        return self._session.exam_id if self._session else None

    @property
    def user_id(self) -> str | None:
        return self._session.user_id if self._session else None

    @property
    def session(self) -> ExamSession | None:
        """현재 세션 복사본"""
        return self._session.model_copy(deep=True) if self._session else None

    @property
    def config(self) -> ExamConfig | None:
        return self._details.config if self._details else None

    @property
    def questions(self) -> list[Question]:
        """표시 순서의 문제 목록"""
        return list(self._questions)

    @property
    def timer(self) -> CountdownTimer:
        return self._timer

    @property
    def autosave(self) -> AutoSaveScheduler:
        return self._autosave

    @property
    def time_remaining(self) -> int:
        return self._session.time_remaining if self._session else 0

    @property
    def result(self) -> ExamResult | None:
        return self._result

    def progress(self) -> ExamProgress:
        if self._ledger is None or self._session is None:
            raise SessionNotActiveError(self._state.value, "progress")
        return self._ledger.progress(self._session.current_question_index)

    def visible_result(self) -> ExamResult | None:
        """결과 공개 설정이 꺼져 있으면 문제별 결과를 숨긴 결과"""
        if self._result is None or self._details is None:
            return None
        if self._details.config.show_results:
            return self._result
        return self._result.model_copy(update={"question_results": []})

    def view(self) -> ExamSessionView:
        if self._session is None:
            raise SessionNotActiveError(self._state.value, "view")
        return ExamSessionView(
            state=self._state.value,
            session=self.session,
            time_remaining=self.time_remaining,
            progress=self.progress(),
            questions=[to_public_question(q) for q in self._questions],
        )

    def subscribe(self, observer: SessionObserver) -> Callable[[], None]:
        """변경 알림 구독, 구독 해제 함수 반환"""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    # ── 수명 주기 ─────────────────────────────────────────────────────────────

    async def start(self, details: ExamDetails, user_id: str, session_id: str | None = None) -> ExamSession:
        """새 세션 시작 (NOT_STARTED에서만 가능)"""
        if self._state is not SessionState.NOT_STARTED or self._disposed:
            raise SessionAlreadyStartedError(self.session_id)
        validate_exam_details(details)

        session_id = session_id or str(uuid.uuid4())
        self._load_details(details, seed=session_id)
        config = details.config
        self._session = ExamSession(
            id=session_id,
            exam_id=config.id,
            user_id=user_id,
            start_time=self._now(),
            current_question_index=0,
            answers={},
            time_remaining=config.time_limit_seconds,
        )
        self._ledger = AnswerLedger(self._questions_by_id)
        self._activate()

        if not await self._autosave.flush():
            self._autosave.mark_dirty()
        logger.info(
            f"시험 세션 시작: session_id={session_id}, exam_id={config.id}, "
            f"user_id={user_id}, time_limit={config.time_limit}분"
        )
        self._notify()
        return self.session

    async def restore(self, details: ExamDetails, session: ExamSession) -> ExamSession:
        """저장된 스냅샷으로 세션 재개 (NOT_STARTED에서만 가능)"""
        if self._state is not SessionState.NOT_STARTED or self._disposed:
            raise SessionAlreadyStartedError(self.session_id)
        if session.is_completed:
            raise SessionNotActiveError(SessionState.COMPLETED.value, "restore")
        validate_exam_details(details)

        self._load_details(details, seed=session.id)
        restored = session.model_copy(deep=True)

        last_index = len(self._questions) - 1
        if not 0 <= restored.current_question_index <= last_index:
            logger.warning(
                f"스냅샷의 문제 인덱스가 범위를 벗어나 보정합니다: session_id={session.id}, "
                f"index={restored.current_question_index}"
            )
            restored.current_question_index = min(max(restored.current_question_index, 0), last_index)

        unknown = [qid for qid in restored.answers if qid not in self._questions_by_id]
        if unknown:
            logger.warning(f"시험에 없는 문제의 답안을 제외합니다: session_id={session.id}, ids={unknown}")
            restored.answers = {qid: a for qid, a in restored.answers.items() if qid in self._questions_by_id}

        self._session = restored
        self._ledger = AnswerLedger(self._questions_by_id, restored.answers)
        logger.info(
            f"시험 세션 재개: session_id={session.id}, index={restored.current_question_index}, "
            f"answered={len(restored.answers)}, time_remaining={restored.time_remaining}s"
        )

        if restored.time_remaining <= 0:
            self._state = SessionState.ACTIVE
            await self.submit()
        elif restored.is_paused:
            self._state = SessionState.PAUSED
            self._notify()
        else:
            self._activate()
            self._notify()
        return self.session

    def answer(self, question_id: str, value: AnswerValue, time_spent: int | None = None) -> ExamAnswer:
        """답안 기록 (ACTIVE에서만 가능, 같은 문제는 덮어씀)"""
        self._require_active("answer")
        question = self._questions_by_id.get(question_id)
        if question is None:
            raise UnknownQuestionError(question_id)
        check_answer_kind(question, value)

        if time_spent is None:
            time_spent = self._consume_time_on(question_id)
        answers = self._ledger.record(question_id, value, time_spent)
        self._session.answers = dict(answers)
        self._autosave.mark_dirty()
        self._notify()
        return answers[question_id]

    def navigate(self, index: int) -> int:
        """문제 이동 (범위 밖이면 보정하지 않고 오류)"""
        self._require_active("navigate")
        if not 0 <= index < len(self._questions):
            raise InvalidQuestionIndexError(index, len(self._questions))
        current = self._session.current_question_index
        if index < current and not self._details.config.allow_review:
            raise NavigationNotAllowedError(index)
        if index != current:
            self._session.current_question_index = index
            self._question_entered_at = self._clock()
            self._autosave.mark_dirty()
            self._notify()
        return index

    async def pause(self) -> ExamSession:
        """일시 정지 (타이머 정지 후 저장)"""
        self._require_active("pause")
        self._timer.stop()
        self._autosave.stop()
        self._session.is_paused = True
        self._state = SessionState.PAUSED
        self._autosave.mark_dirty()
        await self._autosave.flush()
        await self._notify_remote("pause_session")
        logger.info(f"시험 일시 정지: session_id={self._session.id}, time_remaining={self._session.time_remaining}s")
        self._notify()
        return self.session

    async def resume(self) -> ExamSession:
        """일시 정지 해제"""
        if self._disposed or self._state is not SessionState.PAUSED:
            raise SessionNotActiveError(self._state_label(), "resume")
        self._session.is_paused = False
        self._activate()
        self._autosave.mark_dirty()
        await self._notify_remote("resume_session")
        logger.info(f"시험 재개: session_id={self._session.id}, time_remaining={self._session.time_remaining}s")
        self._notify()
        return self.session

    async def on_timer_expired(self) -> ExamResult | None:
        """시간 만료 시 답안 수와 관계없이 강제 제출"""
        if self._disposed or self._submitting or self._state is not SessionState.ACTIVE:
            logger.info(f"시간 만료 무시 (상태={self._state_label()})")
            return None
        logger.info(f"시간 만료로 자동 제출: session_id={self._session.id}")
        return await self.submit()

    async def submit(self) -> ExamResult:
        """최종 제출 및 채점 (원격 채점 실패 시 로컬 채점)"""
        self._require_active("submit")
        self._submitting = True
        self._timer.stop()
        self._autosave.stop()

        session = self._session
        config = self._details.config
        completed_at = self._now()
        session.is_completed = True
        session.is_paused = False
        session.end_time = completed_at
        time_spent = max(0, config.time_limit_seconds - session.time_remaining)

        answers = dict(self._ledger.answers)
        local_result = self._score_locally(answers, time_spent, completed_at)
        result = await self._score_remotely(answers) or local_result
        # 원격 결과에 문제별 판정이 없으면 로컬 판정으로 정답 여부를 채움
        session.answers = dict(
            self._ledger.mark_scored(result.question_results or local_result.question_results)
        )
        self._result = result
        self._state = SessionState.COMPLETED

        await self._persistence.delete(session.id, exam_id=session.exam_id, user_id=session.user_id)
        logger.info(
            f"시험 제출 완료: session_id={session.id}, score={result.score}/{result.total_points}, "
            f"percentage={result.percentage}, passed={result.passed}, local={result.scored_locally}"
        )
        self._notify()
        return result

    def request_exit(self) -> ExitConfirmation:
        """나가기 확인 정보 (세션 상태는 변경하지 않음)"""
        self._require_open("request_exit")
        progress = self._ledger.progress(self._session.current_question_index)
        return ExitConfirmation(
            session_id=self._session.id,
            answered_questions=progress.answered_questions,
            unanswered_questions=progress.total_questions - progress.answered_questions,
            time_remaining=self._session.time_remaining,
            message=EXIT_MESSAGE,
        )

    async def confirm_exit(self) -> bool:
        """진행 상황을 저장하고 제출 없이 종료 (나중에 재개 가능)"""
        self._require_open("confirm_exit")
        # 저장 대기 중 들어오는 답안/이동/제출은 모두 거부 (저장된 스냅샷이 마지막 상태)
        self._disposed = True
        self._timer.stop()
        self._autosave.stop()
        self._autosave.mark_dirty()
        saved = await self._autosave.flush()
        await self._persistence.sync_remote(self._snapshot())
        logger.info(f"시험 나가기: session_id={self._session.id}, saved={saved}")
        return saved

    def close(self) -> None:
        """소유자 해제 시 타이머/자동 저장 정리 (여러 번 호출해도 안전)"""
        self._timer.stop()
        self._autosave.stop()
        self._disposed = True

    # ── 내부 ──────────────────────────────────────────────────────────────────

    def _load_details(self, details: ExamDetails, seed: str) -> None:
        self._details = details
        self._questions = order_questions(list(details.questions), details.config.shuffle_questions, seed)
        self._questions_by_id = {q.id: q for q in self._questions}

    def _activate(self) -> None:
        self._state = SessionState.ACTIVE
        self._question_entered_at = self._clock()
        self._timer.start(self._session.time_remaining)
        self._autosave.start()

    def _snapshot(self) -> ExamSession:
        return self._session.model_copy(deep=True)

    def _state_label(self) -> str:
        return "exited" if self._disposed and self._state is not SessionState.COMPLETED else self._state.value

    def _require_active(self, operation: str) -> None:
        if self._disposed or self._submitting or self._state is not SessionState.ACTIVE:
            raise SessionNotActiveError(self._state_label(), operation)

    def _require_open(self, operation: str) -> None:
        if self._disposed or self._submitting or self._state not in (SessionState.ACTIVE, SessionState.PAUSED):
            raise SessionNotActiveError(self._state_label(), operation)

    def _consume_time_on(self, question_id: str) -> int:
        current = self._questions[self._session.current_question_index]
        if current.id != question_id:
            return 0
        now = self._clock()
        elapsed = int(now - self._question_entered_at)
        self._question_entered_at = now
        return max(0, elapsed)

    async def _on_timer_tick(self, remaining: int) -> None:
        if self._session is None or self._state is not SessionState.ACTIVE:
            return
        self._session.time_remaining = remaining
        self._autosave.mark_dirty()
        self._notify()

    async def _score_remotely(self, answers: dict[str, ExamAnswer]) -> ExamResult | None:
        if self._remote is None:
            return None
        try:
            return await self._remote.submit_answers(self._session.id, answers)
        except RemoteServiceError as e:
            logger.warning(f"원격 채점 실패, 로컬 채점으로 대체: session_id={self._session.id}, {e.message}")
            return None

    def _score_locally(self, answers: dict[str, ExamAnswer], time_spent: int, completed_at: datetime) -> ExamResult:
        session = self._session
        return score_exam(
            self._details.config,
            self._questions,
            answers,
            session_id=session.id,
            exam_id=session.exam_id,
            user_id=session.user_id,
            time_spent=time_spent,
            completed_at=completed_at,
            scored_locally=True,
        )

    async def _notify_remote(self, operation: str) -> None:
        if self._remote is None:
            return
        try:
            await getattr(self._remote, operation)(self._session.id)
        except RemoteServiceError as e:
            logger.warning(f"원격 세션 알림 실패 무시: {operation}, {e.message}")

    def _notify(self) -> None:
        if not self._observers or self._session is None:
            return
        snapshot = self._snapshot()
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception as e:
                logger.error(f"세션 변경 알림 오류: {e.__class__.__name__}", exc_info=True)
