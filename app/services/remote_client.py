import logging
from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import ValidationError

from app.core.config import settings
from app.exceptions import RemoteServiceError
from app.schemas.exam import ExamAnswer, ExamResult, ExamSession

logger = logging.getLogger(__name__)


def build_http_client(
    base_url: str,
    token: str | None = None,
    timeout: float = 10.0,
) -> httpx.AsyncClient:
    """원격 API용 httpx 클라이언트 생성"""
    headers = {"Accept": "application/json", "Content-Type": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout)


def unwrap_data(response: httpx.Response) -> Any:
    """{"data": ...} 응답 봉투 해제"""
    payload = response.json()
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


class RemoteSessionClient:
    """원격 세션 API (모든 호출은 베스트 에포트, 실패 시 RemoteServiceError)"""

    def __init__(self, http_client: httpx.AsyncClient):
        self._http = http_client

    @classmethod
    def from_settings(cls) -> "RemoteSessionClient | None":
        if not settings.remote_api_base_url:
            return None
        return cls(
            build_http_client(
                settings.remote_api_base_url,
                settings.remote_api_token,
                settings.remote_api_timeout,
            )
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, operation: str, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self._http.request(method, url, **kwargs)
            response.raise_for_status()
            if not response.content:
                return None
            return unwrap_data(response)
        except httpx.HTTPStatusError as e:
            raise RemoteServiceError(operation, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise RemoteServiceError(operation, e.__class__.__name__) from e
        except ValueError as e:
            raise RemoteServiceError(operation, "응답 파싱 실패") from e

    async def start_session(self, exam_id: str) -> ExamSession:
        """원격 세션 시작"""
        data = await self._request("start_session", "POST", f"/student/exams/{exam_id}/start")
        try:
            return ExamSession.model_validate(data)
        except ValidationError as e:
            raise RemoteServiceError("start_session", "세션 형식 오류") from e

    async def save_progress(
        self,
        session_id: str,
        answers: Mapping[str, ExamAnswer],
        current_question_index: int,
        time_remaining: int | None = None,
    ) -> None:
        """진행 상황 저장"""
        body = {
            "answers": {qid: a.model_dump(mode="json", by_alias=True) for qid, a in answers.items()},
            "currentQuestionIndex": current_question_index,
        }
        if time_remaining is not None:
            body["timeRemaining"] = time_remaining
        await self._request("save_progress", "PUT", f"/student/exam-sessions/{session_id}/progress", json=body)

    async def submit_answers(self, session_id: str, answers: Mapping[str, ExamAnswer]) -> ExamResult:
        """답안 제출 및 서버 채점"""
        body = {"answers": {qid: a.model_dump(mode="json", by_alias=True) for qid, a in answers.items()}}
        data = await self._request("submit_answers", "POST", f"/student/exam-sessions/{session_id}/submit", json=body)
        try:
            return ExamResult.model_validate(data)
        except ValidationError as e:
            raise RemoteServiceError("submit_answers", "결과 형식 오류") from e

    async def get_session(self, session_id: str) -> ExamSession:
        """세션 조회 (재개용)"""
        data = await self._request("get_session", "GET", f"/student/exam-sessions/{session_id}")
        try:
            return ExamSession.model_validate(data)
        except ValidationError as e:
            raise RemoteServiceError("get_session", "세션 형식 오류") from e

    async def pause_session(self, session_id: str) -> None:
        await self._request("pause_session", "POST", f"/student/exam-sessions/{session_id}/pause")

    async def resume_session(self, session_id: str) -> None:
        await self._request("resume_session", "POST", f"/student/exam-sessions/{session_id}/resume")
