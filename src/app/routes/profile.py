"""
Profile Routes: 플레이어 프로필 + 게임 카탈로그.

- GET /api/opponents → 상대 목록 (해금/진행도 포함)
- GET /api/power-ups → 파워업 목록 (보유량 포함)
- GET /api/achievements → 업적 목록 (달성/진행도 포함)
- GET /api/topics → 학년/과목별 주제
- GET /api/profile, DELETE /api/profile → 프로필 조회/초기화
- POST /api/profile/power-ups/<id>/purchase → 파워업 구매
- GET /api/profile/battles → 배틀 로그 (최신순)
"""

import json
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from src.core.ids import validate_player_id
from src.core.logging import list_battle_logs, load_battle_log
from src.core.profile_store import ProfileStore
from src.core.progression import (
    achievement_overview,
    opponent_overview,
    purchase_power_up,
)
from src.domain import catalog
from src.domain.constants import DEFAULT_PLAYER_ID
from src.domain.errors import GameRuleError, status_for

api_router = APIRouter()


def get_profile_store(request: Request) -> ProfileStore:
    """Request에서 ProfileStore 가져오기."""
    return request.app.state.profile_store


def get_battle_logs_dir(request: Request) -> Path:
    return request.app.state.battle_logs_dir


def http_error(error: GameRuleError) -> HTTPException:
    """GameRuleError → HTTPException (detail = {"code", "message", ...})."""
    return HTTPException(status_code=status_for(error), detail=error.to_dict())


def get_player_id(player_id: str = DEFAULT_PLAYER_ID) -> str:
    """쿼리 player_id 검증 (400 INVALID_PLAYER_ID)."""
    try:
        return validate_player_id(player_id)
    except GameRuleError as e:
        raise http_error(e) from e


# =============================================================================
# Catalog
# =============================================================================

@api_router.get("/opponents")
async def list_opponents(
    request: Request,
    player_id: str = Depends(get_player_id),
) -> list[dict[str, Any]]:
    """상대 선택 화면용 목록."""
    profile = get_profile_store(request).load(player_id)
    return opponent_overview(profile)


@api_router.get("/power-ups")
async def list_power_ups(
    request: Request,
    player_id: str = Depends(get_player_id),
) -> list[dict[str, Any]]:
    """파워업 상점 목록 (owned = 보유량)."""
    profile = get_profile_store(request).load(player_id)
    items = []
    for power_up in catalog.list_power_ups():
        entry = power_up.to_dict()
        entry["owned"] = profile.power_ups.get(power_up.id, 0)
        entry["affordable"] = profile.total_score >= power_up.cost
        items.append(entry)
    return items


@api_router.get("/achievements")
async def list_achievements(
    request: Request,
    player_id: str = Depends(get_player_id),
) -> list[dict[str, Any]]:
    profile = get_profile_store(request).load(player_id)
    return achievement_overview(profile)


@api_router.get("/topics")
async def list_topics(
    grade: int | None = None,
    subject: str | None = None,
    difficulty: str | None = None,
) -> list[dict[str, Any]]:
    """주제 목록. grade/subject/difficulty 로 필터."""
    topics = (
        catalog.get_topics_by_difficulty(difficulty)
        if difficulty
        else list(catalog.list_topics())
    )
    if grade is not None:
        topics = [t for t in topics if t.grade == grade]
    if subject:
        topics = [t for t in topics if t.subject == subject]
    return [t.to_dict() for t in topics]


# =============================================================================
# Profile
# =============================================================================

@api_router.get("/profile")
async def get_profile(
    request: Request,
    player_id: str = Depends(get_player_id),
) -> dict[str, Any]:
    """프로필 조회 (파일이 없거나 손상되었으면 기본 프로필)."""
    return get_profile_store(request).load(player_id).to_dict()


@api_router.delete("/profile")
async def reset_profile(
    request: Request,
    player_id: str = Depends(get_player_id),
) -> dict[str, Any]:
    """프로필 초기화."""
    store = get_profile_store(request)
    removed = store.reset(player_id)
    return {
        "success": True,
        "removed": removed,
        "profile": store.load(player_id).to_dict(),
    }


@api_router.post("/profile/power-ups/{power_up_id}/purchase")
async def buy_power_up(
    request: Request,
    power_up_id: str,
    player_id: str = Depends(get_player_id),
) -> dict[str, Any]:
    """
    파워업 구매 (total_score 에서 가격 차감).

    Raises:
        HTTPException: 404 UNKNOWN_POWER_UP, 400 INSUFFICIENT_SCORE
    """
    try:
        profile, power_up = get_profile_store(request).update(
            player_id, lambda p: purchase_power_up(p, power_up_id)
        )
    except GameRuleError as e:
        raise http_error(e) from e

    return {
        "success": True,
        "powerUp": power_up.to_dict(),
        "owned": profile.power_ups.get(power_up.id, 0),
        "profile": profile.to_dict(),
    }


@api_router.get("/profile/battles")
async def list_player_battles(
    request: Request,
    player_id: str = Depends(get_player_id),
    limit: int = 20,
) -> list[dict[str, Any]]:
    """배틀 로그 (최신순, 읽을 수 없는 파일은 건너뜀)."""
    battles: list[dict[str, Any]] = []
    for log_path in list_battle_logs(get_battle_logs_dir(request), player_id)[:limit]:
        try:
            battles.append(load_battle_log(log_path))
        except (OSError, json.JSONDecodeError):
            continue
    return battles
