import logging

from fastapi import APIRouter, Depends, Header, Response, status

from app.schemas import exam as exam_schema
from app.services.exam_session_service import ExamSessionService, get_exam_session_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/exam-sessions", tags=["exam-sessions"])


@router.post("/exams/{exam_id}/open", response_model=exam_schema.ExamSessionView)
async def open_exam_session(
    exam_id: str,
    user_id: str = Header("anonymous", alias="X-User-Id"),
    service: ExamSessionService = Depends(get_exam_session_service),
):
    """시험 응시 시작 또는 재개 API"""
    controller = await service.open_attempt(exam_id, user_id)
    return controller.view()


@router.get("/{session_id}", response_model=exam_schema.ExamSessionView)
async def get_exam_session(
    session_id: str,
    service: ExamSessionService = Depends(get_exam_session_service),
):
    """세션 조회 API (남은 시간, 진행 현황 포함)"""
    return service.get(session_id).view()


@router.put("/{session_id}/answers/{question_id}", response_model=exam_schema.ExamAnswer)
async def record_answer(
    session_id: str,
    question_id: str,
    request: exam_schema.AnswerRequest,
    service: ExamSessionService = Depends(get_exam_session_service),
):
    """답안 기록 API"""
    return service.get(session_id).answer(question_id, request.answer, request.time_spent)


@router.put("/{session_id}/position", response_model=exam_schema.ExamProgress)
async def navigate(
    session_id: str,
    request: exam_schema.NavigateRequest,
    service: ExamSessionService = Depends(get_exam_session_service),
):
    """문제 이동 API"""
    controller = service.get(session_id)
    controller.navigate(request.index)
    return controller.progress()


@router.post("/{session_id}/pause", response_model=exam_schema.ExamSessionView)
async def pause_exam_session(
    session_id: str,
    service: ExamSessionService = Depends(get_exam_session_service),
):
    """일시 정지 API"""
    controller = service.get(session_id)
    await controller.pause()
    return controller.view()


@router.post("/{session_id}/resume", response_model=exam_schema.ExamSessionView)
async def resume_exam_session(
    session_id: str,
    service: ExamSessionService = Depends(get_exam_session_service),
):
    """일시 정지 해제 API"""
    controller = service.get(session_id)
    await controller.resume()
    return controller.view()


@router.post("/{session_id}/submit", response_model=exam_schema.ExamResult)
async def submit_exam_session(
    session_id: str,
    service: ExamSessionService = Depends(get_exam_session_service),
):
    """최종 제출 API"""
    await service.submit(session_id)
    return service.get_result(session_id)


@router.get("/{session_id}/result", response_model=exam_schema.ExamResult)
async def get_exam_result(
    session_id: str,
    service: ExamSessionService = Depends(get_exam_session_service),
):
    """시험 결과 조회 API"""
    return service.get_result(session_id)


@router.post("/{session_id}/exit", response_model=exam_schema.ExitConfirmation)
async def request_exit(
    session_id: str,
    service: ExamSessionService = Depends(get_exam_session_service),
):
    """나가기 확인 요청 API (상태 변경 없음)"""
    return service.request_exit(session_id)


@router.post("/{session_id}/exit/confirm", status_code=status.HTTP_204_NO_CONTENT)
async def confirm_exit(
    session_id: str,
    service: ExamSessionService = Depends(get_exam_session_service),
):
    """나가기 확정 API (제출 없이 저장 후 종료)"""
    saved = await service.confirm_exit(session_id)
    if not saved:
        logger.warning(f"나가기 시 진행 상황 저장 실패: session_id={session_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
