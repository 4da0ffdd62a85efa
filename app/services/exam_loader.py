import logging
from typing import Protocol

import httpx
from pydantic import ValidationError

from app.core.config import settings
from app.exceptions import (
    ExamAccessDeniedError,
    ExamAccessError,
    ExamExpiredError,
    ExamInactiveError,
    ExamLoadError,
    ExamNotFoundError,
    ExamNotStartedError,
)
from app.schemas.exam import ExamAvailability, ExamDetails
from app.services.remote_client import build_http_client, unwrap_data

logger = logging.getLogger(__name__)


class ExamLoader(Protocol):
    """시험 정보 로더 (엔진에서는 읽기 전용 입력)"""

    async def get_exam_details(self, exam_id: str) -> ExamDetails:
        ...


def access_error_for(availability: ExamAvailability) -> ExamAccessError:
    """응시 가능 상태를 접근 오류로 변환"""
    if availability.status == "not_started":
        return ExamNotStartedError(availability.start_date_formatted)
    if availability.status == "expired":
        return ExamExpiredError(availability.end_date_formatted)
    if availability.status == "inactive":
        return ExamInactiveError()
    return ExamAccessDeniedError(availability.message or "시험 접근이 거부되었습니다.")


def ensure_can_start(details: ExamDetails) -> ExamDetails:
    """응시 불가 상태면 접근 오류 발생"""
    config = details.config
    if not config.can_start or not config.status.can_start or config.status.status != "active":
        raise access_error_for(config.status)
    return details


class RemoteExamLoader:
    """원격 API에서 시험 정보 로드"""

    def __init__(self, http_client: httpx.AsyncClient):
        self._http = http_client

    @classmethod
    def from_settings(cls) -> "RemoteExamLoader | None":
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

    async def get_exam_details(self, exam_id: str) -> ExamDetails:
        """시험 설정/문제 로드 (실패 시 타입이 지정된 오류 발생, 기본값 추정 없음)"""
        try:
            response = await self._http.get(f"/student/exams/{exam_id}")
        except httpx.HTTPError as e:
            logger.error(f"시험 정보 요청 실패: exam_id={exam_id}, error={e.__class__.__name__}")
            raise ExamLoadError(exam_id, e.__class__.__name__) from e

        if response.status_code == 404:
            raise ExamNotFoundError(exam_id)
        if response.status_code == 403:
            raise self._access_error(response)
        if response.is_error:
            raise ExamLoadError(exam_id, f"HTTP {response.status_code}")

        try:
            data = unwrap_data(response)
            details = ExamDetails.model_validate(
                {
                    "config": data["config"],
                    "questions": data.get("questions") or [],
                    "display_material": data.get("pdfPages") or data.get("displayMaterial") or [],
                }
            )
        except (ValueError, KeyError, TypeError, ValidationError) as e:
            logger.error(f"시험 정보 형식 오류: exam_id={exam_id}, error={e}")
            raise ExamLoadError(exam_id, "응답 형식 오류") from e

        return ensure_can_start(details)

    @staticmethod
    def _access_error(response: httpx.Response) -> ExamAccessError:
        try:
            payload = response.json()
        except ValueError:
            return ExamAccessDeniedError()
        if not isinstance(payload, dict):
            return ExamAccessDeniedError()
        data = payload.get("data") or {}
        status_data = data.get("status") if isinstance(data, dict) else None
        if isinstance(status_data, dict):
            try:
                return access_error_for(ExamAvailability.model_validate(status_data))
            except ValidationError:
                pass
        return ExamAccessDeniedError(payload.get("message") or "시험 접근이 거부되었습니다.")


class InMemoryExamLoader:
    """등록된 시험 정보를 반환하는 로더 (원격 API 미설정 시 사용)"""

    def __init__(self, exams: dict[str, ExamDetails] | None = None):
        self._exams: dict[str, ExamDetails] = dict(exams or {})

    def register(self, details: ExamDetails) -> None:
        self._exams[details.config.id] = details

    async def get_exam_details(self, exam_id: str) -> ExamDetails:
        details = self._exams.get(exam_id)
        if details is None:
            raise ExamNotFoundError(exam_id)
        return ensure_can_start(details)
