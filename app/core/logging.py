# -*- coding: utf-8 -*-
import logging
import sys
from pathlib import Path

from app.core.config import settings


def _has_console_handler(logger: logging.Logger) -> bool:
    return any(
        isinstance(handler, logging.StreamHandler) and getattr(handler, "stream", None) is sys.stdout
        for handler in logger.handlers
    )


def setup_logging():
    """로깅 설정"""
    log_level = logging.DEBUG if settings.environment == "development" else logging.INFO

    # 로그 포맷
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # 재호출 시 핸들러 중복 등록 방지
    if _has_console_handler(root_logger):
        return

    # 콘솔 핸들러
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)
    root_logger.addHandler(console_handler)

    # 파일 핸들러 (프로덕션)
    if settings.environment == "production":
        log_dir = Path("/app/logs")
        log_dir.mkdir(exist_ok=True)

        file_handler = logging.FileHandler(log_dir / "exam_session.log", encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(logging.INFO)
        root_logger.addHandler(file_handler)

    # httpx 요청 로그는 경고 이상만
    logging.getLogger("httpx").setLevel(logging.WARNING)
