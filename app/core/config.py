from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """애플리케이션 설정 (.env 및 환경변수)"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    environment: Literal["development", "test", "production"] = "development"
    database_url: str = "postgresql+asyncpg://localhost:5432/exam_session_db"
    allowed_origins: str = "http://localhost:5173"

    # 원격 세션 API (베스트 에포트, 실패 시 로컬 폴백)
    remote_api_base_url: str | None = None
    remote_api_token: str | None = None
    remote_api_timeout: float = Field(10.0, gt=0)

    # 시험 세션 엔진 주기 설정 (초)
    autosave_interval_seconds: float = Field(10.0, gt=0)
    remote_sync_interval_seconds: float = Field(30.0, gt=0)
    timer_tick_seconds: float = Field(1.0, gt=0)

    # 제출 완료된 결과 보관 개수 (오래된 것부터 제거)
    result_cache_size: int = Field(1000, gt=0)

    # 스냅샷 저장소: memory (프로세스 메모리) | database (SQLAlchemy 테이블)
    snapshot_store: Literal["memory", "database"] = "database"

    @property
    def allowed_origins_list(self) -> list[str]:
        """콤마로 구분된 CORS 허용 출처 목록"""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


settings = Settings()
