"""시험 정보 로더 테스트"""
import httpx
import pytest

from app.exceptions import (
    ExamAccessDeniedError,
    ExamExpiredError,
    ExamInactiveError,
    ExamLoadError,
    ExamNotFoundError,
    ExamNotStartedError,
)
from app.services.exam_loader import InMemoryExamLoader, RemoteExamLoader

EXAM_PAYLOAD = {
    "config": {
        "id": "exam-1",
        "title": "기말고사",
        "timeLimit": 45,
        "totalQuestions": 2,
        "passingScore": 70,
        "shuffleQuestions": False,
        "allowReview": True,
        "showResults": True,
        "canStart": True,
        "status": {"status": "active", "canStart": True},
    },
    "questions": [
        {"id": "q1", "type": "multiple-choice", "text": "1+1?", "points": 1, "order": 1,
         "options": {"A": "1", "B": "2"}, "correctAnswer": "B"},
        {"id": "q2", "type": "fill-blank", "text": "수도는?", "points": 2, "order": 2,
         "correctAnswers": ["서울"], "caseSensitive": False},
    ],
    "pdfPages": ["page-1.png"],
}


def make_loader(handler) -> RemoteExamLoader:
    return RemoteExamLoader(
        httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://api.test")
    )


@pytest.mark.asyncio
async def test_remote_loader_parses_envelope():
    """{"data": ...} 응답을 시험 정보로 변환"""
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/student/exams/exam-1"
        return httpx.Response(200, json={"success": True, "data": EXAM_PAYLOAD})

    loader = make_loader(handler)
    details = await loader.get_exam_details("exam-1")
    await loader.aclose()

    assert details.config.time_limit_seconds == 45 * 60
    assert details.config.passing_score == 70
    assert [q.type for q in details.questions] == ["multiple-choice", "fill-blank"]
    assert details.questions[1].correct_answers == ["서울"]
    assert details.display_material == ["page-1.png"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_data, expected",
    [
        ({"status": "not_started", "canStart": False, "startDateFormatted": "2026-11-01 09:00"}, ExamNotStartedError),
        ({"status": "expired", "canStart": False, "endDateFormatted": "2026-10-01 18:00"}, ExamExpiredError),
        ({"status": "inactive", "canStart": False}, ExamInactiveError),
        (None, ExamAccessDeniedError),
    ],
)
async def test_remote_loader_maps_403_status(status_data, expected):
    """403 응답은 상태별 접근 오류로 변환"""
    def handler(request: httpx.Request) -> httpx.Response:
        body = {"message": "응시할 수 없습니다."}
        if status_data is not None:
            body["data"] = {"status": status_data}
        return httpx.Response(403, json=body)

    loader = make_loader(handler)
    with pytest.raises(expected) as exc_info:
        await loader.get_exam_details("exam-1")
    await loader.aclose()

    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_remote_loader_not_started_message_includes_date():
    """시작 전 오류 메시지에 시작 시각 포함"""
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            403,
            json={"data": {"status": {"status": "not_started", "canStart": False,
                                      "startDateFormatted": "2026-11-01 09:00"}}},
        )

    loader = make_loader(handler)
    with pytest.raises(ExamNotStartedError) as exc_info:
        await loader.get_exam_details("exam-1")
    await loader.aclose()

    assert "2026-11-01 09:00" in exc_info.value.message


@pytest.mark.asyncio
async def test_remote_loader_not_found():
    """404 응답은 ExamNotFoundError"""
    loader = make_loader(lambda request: httpx.Response(404, json={"message": "not found"}))

    with pytest.raises(ExamNotFoundError):
        await loader.get_exam_details("missing")
    await loader.aclose()


@pytest.mark.asyncio
async def test_remote_loader_server_error():
    """5xx 응답은 ExamLoadError"""
    loader = make_loader(lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(ExamLoadError):
        await loader.get_exam_details("exam-1")
    await loader.aclose()


@pytest.mark.asyncio
async def test_remote_loader_transport_error():
    """연결 실패는 ExamLoadError"""
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    loader = make_loader(handler)
    with pytest.raises(ExamLoadError):
        await loader.get_exam_details("exam-1")
    await loader.aclose()


@pytest.mark.asyncio
async def test_remote_loader_malformed_payload():
    """형식이 맞지 않는 응답은 기본값 추정 없이 ExamLoadError"""
    loader = make_loader(lambda request: httpx.Response(200, json={"data": {"questions": []}}))

    with pytest.raises(ExamLoadError):
        await loader.get_exam_details("exam-1")
    await loader.aclose()


@pytest.mark.asyncio
async def test_remote_loader_config_cannot_start():
    """정상 응답이어도 응시 불가 설정이면 접근 오류"""
    payload = {
        **EXAM_PAYLOAD,
        "config": {**EXAM_PAYLOAD["config"], "canStart": False,
                   "status": {"status": "expired", "canStart": False}},
    }
    loader = make_loader(lambda request: httpx.Response(200, json={"data": payload}))

    with pytest.raises(ExamExpiredError):
        await loader.get_exam_details("exam-1")
    await loader.aclose()


@pytest.mark.asyncio
async def test_in_memory_loader(exam_details):
    """등록된 시험만 반환"""
    loader = InMemoryExamLoader()
    loader.register(exam_details)

    assert (await loader.get_exam_details("exam-1")).config.title == "중간고사"
    with pytest.raises(ExamNotFoundError):
        await loader.get_exam_details("exam-2")


@pytest.mark.asyncio
async def test_in_memory_loader_inactive_exam(details_factory):
    """비활성 시험은 접근 오류"""
    details = details_factory(status={"status": "inactive", "can_start": False})
    loader = InMemoryExamLoader({"exam-1": details})

    with pytest.raises(ExamInactiveError):
        await loader.get_exam_details("exam-1")
