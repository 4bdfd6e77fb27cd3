"""
FastAPI 애플리케이션 진입점.

실행:
- 개발: uv run uvicorn src.app.main:app --reload
- 프로덕션: uv run uvicorn src.app.main:app --port 5001
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Routes
from src.app.routes import battle, homework, profile
from src.core.logging import configure_logging
from src.core.profile_store import ProfileStore
from src.core.progression import StudentTracker

PROJECT_ROOT = Path(__file__).parent.parent.parent

# =============================================================================
# Configuration
# =============================================================================


def load_config(config_path: Path | None = None) -> dict:
    """설정 파일 로드."""
    if config_path is None:
        # 프로젝트 루트의 default.yaml
        config_path = PROJECT_ROOT / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        data: dict[Any, Any] = yaml.safe_load(f) or {}
        return data


def resolve_path(value: str) -> Path:
    """config 상대 경로 → 프로젝트 루트 기준 절대 경로."""
    path = Path(value)
    return path if path.is_absolute() else PROJECT_ROOT / path


def init_state(app: FastAPI, config: dict) -> None:
    """app.state 초기화 (설정, 저장소, 메모리 배틀 목록)."""
    paths = config.get("paths", {})
    app.state.config = config
    app.state.profile_store = ProfileStore(
        resolve_path(paths.get("profiles_dir", "data/profiles")), config
    )
    app.state.battle_logs_dir = resolve_path(
        paths.get("battle_logs_dir", "data/battles")
    )
    app.state.battles = {}
    app.state.student_tracker = StudentTracker()
    app.state.homework_service = None
    app.state.question_generator = None


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    애플리케이션 생명주기 관리.

    시작 시: .env 로드, 설정 로드, 로깅 설정, 리소스 초기화
    종료 시: 메모리 배틀 정리
    """
    # Startup
    load_dotenv()
    config = load_config()
    logging_config = dict(config.get("logging", {}))
    config.setdefault("paths", {})
    configure_logging({
        "logging": logging_config,
        "paths": {"logs_dir": str(resolve_path(config["paths"].get("logs_dir", "logs")))},
    })
    init_state(app, config)

    yield

    # Shutdown
    app.state.battles.clear()


# =============================================================================
# App Instance
# =============================================================================

app = FastAPI(
    title="Homework Arena",
    description="숙제 도우미 LLM 릴레이 + Battle Mode 게임 서버",
    version="0.1.0",
    lifespan=lifespan,
)

# 인증 없음, 모든 origin 허용
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Routes
# =============================================================================

app.include_router(homework.api_router, prefix="/api", tags=["Homework API"])
app.include_router(profile.api_router, prefix="/api", tags=["Profile API"])
app.include_router(battle.api_router, prefix="/api/battles", tags=["Battle API"])


# =============================================================================
# Root Endpoints
# =============================================================================


@app.get("/")
async def root() -> dict[str, Any]:
    return {
        "message": "Homework Arena",
        "endpoints": {
            "homework": "/api/homework-helper",
            "battles": "/api/battles",
            "profile": "/api/profile",
        },
    }


@app.get("/health")
async def health() -> dict[str, str]:
    """헬스 체크."""
    return {"status": "ok"}


# =============================================================================
# CLI Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.app.main:app",
        host="127.0.0.1",
        port=5001,
        reload=True,
    )
