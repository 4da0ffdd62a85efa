#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""로컬 개발용 .env 파일 생성 (시험 세션 엔진 설정)"""
import os
import sys
from pathlib import Path

# 프로젝트 루트
project_root = Path(__file__).parent.parent.parent
env_file = project_root / ".env"

# 로컬 개발 기본값
# 주의: DB 계정과 원격 API 토큰은 담당자로부터 받아서 수동으로 입력해야 함
env_content = """# Database
DATABASE_URL=postgresql+asyncpg://<DB_USER>:<DB_PASSWORD>@localhost:5432/exam_session_db

# CORS
ALLOWED_ORIGINS=http://localhost:5173

# Environment
# 로컬 개발 시 development로 두면 상세 에러 메시지 확인 가능
ENVIRONMENT=development

# Remote exam/session API
# 비워두면 원격 동기화 없이 로컬 저장/로컬 채점만 사용
REMOTE_API_BASE_URL=
REMOTE_API_TOKEN=<REMOTE_API_TOKEN>
REMOTE_API_TIMEOUT=10

# Exam session engine (초)
AUTOSAVE_INTERVAL_SECONDS=10
REMOTE_SYNC_INTERVAL_SECONDS=30
TIMER_TICK_SECONDS=1

# 스냅샷 저장소: DB 없이 실행하려면 memory
SNAPSHOT_STORE={snapshot_store}
"""


def create_env_file(snapshot_store: str = "database"):
    """.env 파일 생성 (UTF-8, BOM 없음)"""
    if snapshot_store not in ("memory", "database"):
        raise ValueError(f"지원하지 않는 스냅샷 저장소: {snapshot_store}")

    print(f"[INFO] .env 파일 생성 중: {env_file}")

    # 기존 파일이 있으면 백업
    if env_file.exists():
        backup_file = project_root / ".env.backup"
        print(f"[INFO] 기존 .env 파일 백업: {backup_file}")
        backup_file.write_text(env_file.read_text(encoding="utf-8"), encoding="utf-8", newline="\n")

    # .env 파일 생성 (UTF-8, BOM 없음, LF 줄바꿈)
    with open(env_file, "w", encoding="utf-8", newline="\n") as f:
        f.write(env_content.format(snapshot_store=snapshot_store))

    print("[OK] .env 파일 생성 완료")
    print(f"[INFO] 스냅샷 저장소: {snapshot_store}")

    # 파일 권한 확인 (Windows에서는 chmod가 없으므로 스킵)
    if os.name != "nt":
        os.chmod(env_file, 0o600)
        print("[INFO] 파일 권한 설정: 600")


if __name__ == "__main__":
    try:
        create_env_file(sys.argv[1] if len(sys.argv) > 1 else "database")
        print("\n[OK] 작업 완료")
    except Exception as e:
        print(f"\n[ERROR] 에러 발생: {e.__class__.__name__}: {str(e)}")
        sys.exit(1)
