"""
Pytest fixtures for the game server tests.

구성:
- 경로/설정 fixture (default.yaml)
- 조작 가능한 시계, 문제 factory
- LLM Provider 가짜 구현 (응답 텍스트 큐)
- 라우터를 붙인 테스트 앱 (tmp 경로)
"""

import copy
import random
from pathlib import Path

import pytest
import yaml

from src.app.providers.base import CompletionError, CompletionResult, LLMProvider
from src.domain.schemas import PlayerProfile, Problem

# =============================================================================
# Path / Config Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """프로젝트 루트 경로."""
    return Path(__file__).parent.parent


@pytest.fixture
def default_config(project_root: Path) -> dict:
    """기본 설정 로드."""
    with open(project_root / "default.yaml", encoding="utf-8") as f:
        return yaml.safe_load(f)


@pytest.fixture
def game_config() -> dict:
    """배틀 테스트용 최소 설정 (기본값과 동일)."""
    return {
        "game": {
            "total_rounds": 5,
            "round_time_limit": 15,
            "victory_threshold": 500,
            "solution_delay": {
                "catch_mistake": 3.0,
                "catch_mistake_veteran": 1.0,
                "default": 1.0,
            },
            "veteran_battles": 5,
            "adaptive_difficulty": False,
        },
    }


# =============================================================================
# Clock
# =============================================================================

class FakeClock:
    """수동으로 앞당기는 단조 시계."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Domain Factories
# =============================================================================

def make_problem(
    problem_id: str = "q_test",
    has_error: bool = True,
    fmt: str = "catch-mistake",
    **overrides,
) -> Problem:
    """테스트용 문제 (기본: 실수가 있는 catch-mistake)."""
    data = {
        "id": problem_id,
        "question": "⚡ Tony builds 5 reactors, then 3 more. How many?",
        "subject": "math",
        "grade": 1,
        "difficulty": "normal",
        "topic": "Addition Facts (0-20)",
        "format": fmt,
        "steps": ["Step 1: 5 reactors", "Step 2: 3 more", "Step 3: 5 + 3 = 9"],
        "hasError": has_error,
        "errorStep": 2 if has_error else None,
        "correctAnswer": 8,
        "explanation": "5 + 3 = 8",
        "hints": ["Count on from 5", "Add 3"],
    }
    data.update(overrides)
    return Problem.from_dict(data)


@pytest.fixture
def problem() -> Problem:
    return make_problem()


@pytest.fixture
def profile() -> PlayerProfile:
    """기본 프로필 (iron-man 해금, 시작 파워업 보유)."""
    return PlayerProfile(id="player-1")


# =============================================================================
# LLM Fake
# =============================================================================

class FakeLLMProvider(LLMProvider):
    """
    응답 큐 기반 가짜 LLM.

    responses 항목이 Exception 이면 raise, 문자열이면 응답 텍스트.
    호출 인자는 calls 에 기록.
    """

    name = "fake"
    model = "fake-model"

    def __init__(self, responses=None) -> None:
        self.responses = list(responses or [])
        self.calls: list[dict] = []

    async def generate(
        self,
        prompt,
        *,
        system=None,
        images=None,
        max_tokens=None,
        temperature=None,
    ) -> CompletionResult:
        self.calls.append({
            "prompt": prompt,
            "system": system,
            "images": images,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        if not self.responses:
            raise CompletionError("NO_RESPONSE", "No fake response queued")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return CompletionResult(
            text=response,
            model_requested=self.model,
            model_used=self.model,
            provider=self.name,
        )


@pytest.fixture
def fake_llm() -> FakeLLMProvider:
    return FakeLLMProvider()


@pytest.fixture
def llm_factory():
    """FakeLLMProvider 생성 함수 (응답 목록을 받아 Provider 반환)."""
    return FakeLLMProvider


@pytest.fixture
def problem_factory():
    """make_problem 함수."""
    return make_problem


# =============================================================================
# API App
# =============================================================================

@pytest.fixture
def api_config(default_config: dict, tmp_path: Path) -> dict:
    """default.yaml + tmp 경로 (프로필/배틀 로그가 테스트 밖으로 새지 않음)."""
    config = copy.deepcopy(default_config)
    config["paths"] = {
        "profiles_dir": str(tmp_path / "profiles"),
        "battle_logs_dir": str(tmp_path / "battles"),
        "logs_dir": str(tmp_path / "logs"),
    }
    config["game"]["question_set_delay"] = 0
    config["storage"] = {"lock_retry_interval": 0.001, "lock_max_retries": 5}
    return config


@pytest.fixture
def api_app(api_config: dict):
    """
    라우터 3개를 붙인 테스트 앱.

    문제 생성기는 응답 없는 FakeLLMProvider → 항상 폴백 은행 문제.
    """
    from fastapi import FastAPI

    from src.app.main import init_state
    from src.app.routes import battle, homework, profile
    from src.app.services.questions import QuestionGenerator

    app = FastAPI()
    app.include_router(homework.api_router, prefix="/api")
    app.include_router(profile.api_router, prefix="/api")
    app.include_router(battle.api_router, prefix="/api/battles")
    init_state(app, api_config)
    app.state.question_generator = QuestionGenerator(
        api_config, provider=FakeLLMProvider(), rng=random.Random(0)
    )
    return app


@pytest.fixture
def client(api_app):
    from fastapi.testclient import TestClient

    return TestClient(api_app)
