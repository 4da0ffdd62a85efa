"""커스텀 예외 클래스 정의"""


class BaseAppError(Exception):
    """애플리케이션 기본 예외 클래스"""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


# ── 설정 오류: 세션을 시작할 수 없음 ───────────────────────────────────────

class ExamConfigurationError(BaseAppError):
    """시험 설정이 잘못되었을 때 발생하는 예외 (422)"""

    def __init__(self, message: str):
        super().__init__(message, status_code=422)


class ExamNotFoundError(BaseAppError):
    """시험을 찾을 수 없을 때 발생하는 예외 (404)"""

    def __init__(self, exam_id: str):
        super().__init__(f"시험을 찾을 수 없습니다: {exam_id}", status_code=404)


class ExamLoadError(BaseAppError):
    """시험 정보를 불러오지 못했을 때 발생하는 예외 (502)"""

    def __init__(self, exam_id: str, reason: str = ""):
        detail = f": {reason}" if reason else ""
        super().__init__(f"시험 정보를 불러오지 못했습니다 ({exam_id}){detail}", status_code=502)


# ── 접근/가용성 오류: 로더에서 발생, 그대로 전달 ─────────────────────────────

class ExamAccessError(BaseAppError):
    """시험에 접근할 수 없을 때 발생하는 예외 (403)"""

    def __init__(self, message: str):
        super().__init__(message, status_code=403)


class ExamNotStartedError(ExamAccessError):
    """시험 시작 전"""

    def __init__(self, start_date: str | None = None):
        super().__init__(f"시험이 아직 시작되지 않았습니다. 시작 시각: {start_date or '미정'}")


class ExamExpiredError(ExamAccessError):
    """시험 기간 종료"""

    def __init__(self, end_date: str | None = None):
        super().__init__(f"시험 기간이 종료되었습니다. 종료 시각: {end_date or '미정'}")


class ExamInactiveError(ExamAccessError):
    """비활성화된 시험"""

    def __init__(self):
        super().__init__("아직 활성화되지 않은 시험입니다. 담당 교사에게 문의하세요.")


class ExamAccessDeniedError(ExamAccessError):
    """기타 사유로 접근 거부"""

    def __init__(self, message: str = "시험 접근이 거부되었습니다."):
        super().__init__(message)


# ── 상태 오류: 호출 계약 위반, 세션 상태는 변경되지 않음 ──────────────────────

class SessionAlreadyStartedError(BaseAppError):
    """이미 시작된 세션을 다시 시작하려 할 때 발생하는 예외 (409)"""

    def __init__(self, session_id: str | None = None):
        super().__init__(f"이미 시작된 시험 세션입니다: {session_id}", status_code=409)


class SessionNotActiveError(BaseAppError):
    """진행 중이 아닌 세션에 조작을 시도할 때 발생하는 예외 (409)"""

    def __init__(self, state: str, operation: str):
        super().__init__(f"진행 중인 세션이 아닙니다 (상태={state}, 요청={operation})", status_code=409)
        self.state = state
        self.operation = operation


class InvalidQuestionIndexError(BaseAppError):
    """문제 인덱스가 범위를 벗어났을 때 발생하는 예외 (400)"""

    def __init__(self, index: int, question_count: int):
        super().__init__(
            f"문제 인덱스가 범위를 벗어났습니다: {index} (허용 범위 0-{question_count - 1})",
            status_code=400,
        )


class NavigationNotAllowedError(BaseAppError):
    """되돌아보기가 허용되지 않은 시험에서 이전 문제로 이동할 때 (403)"""

    def __init__(self, index: int):
        super().__init__(f"이 시험은 이전 문제로 돌아갈 수 없습니다: {index}", status_code=403)


class UnknownQuestionError(BaseAppError):
    """시험에 없는 문제 ID (404)"""

    def __init__(self, question_id: str):
        super().__init__(f"문제를 찾을 수 없습니다: {question_id}", status_code=404)


class InvalidAnswerError(BaseAppError):
    """문제 유형과 맞지 않는 답안 (400)"""

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class ExamSessionNotFoundError(BaseAppError):
    """시험 세션을 찾을 수 없을 때 발생하는 예외 (404)"""

    def __init__(self, exam_session_id: str):
        super().__init__(f"시험 세션을 찾을 수 없습니다: {exam_session_id}", status_code=404)


class ResultNotAvailableError(BaseAppError):
    """제출 전이라 결과가 없을 때 (409)"""

    def __init__(self, exam_session_id: str):
        super().__init__(f"아직 제출되지 않은 시험입니다: {exam_session_id}", status_code=409)


# ── 일시적 I/O 오류: 엔진 내부에서 로컬 폴백으로 복구 ────────────────────────

class RemoteServiceError(BaseAppError):
    """원격 세션 API 호출 실패 (502)"""

    def __init__(self, operation: str, reason: str = ""):
        detail = f": {reason}" if reason else ""
        super().__init__(f"원격 세션 API 호출 실패 ({operation}){detail}", status_code=502)
        self.operation = operation
