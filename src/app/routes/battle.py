"""
Battle Routes: Battle Mode 진행 API.

- POST /api/battles → 설정 + 시작 (opponent-select)
- GET /api/battles/<id> → 현재 상태 (시간 초과 반영)
- POST /api/battles/<id>/opponent → 상대 선택 + 라운드 1 문제
- POST /api/battles/<id>/reveal → 풀이 공개, 타이머 시작
- POST /api/battles/<id>/answer → 답 제출
- POST /api/battles/<id>/power-ups/<power_up_id> → 파워업 사용
- POST /api/battles/<id>/next → 다음 라운드 또는 종료
- POST /api/battles/<id>/play-again → 같은 설정으로 상대 선택부터
- DELETE /api/battles/<id> → 배틀 종료 (진행 중이면 abandoned 로그)

세션은 프로세스 메모리(app.state.battles)에만 존재. 결과는 프로필/배틀 로그에 저장.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from fastapi import APIRouter, Body, Request

from src.app.routes.profile import get_battle_logs_dir, get_profile_store, http_error
from src.app.services.questions import QuestionGenerator, QuestionRequest
from src.core.battle import BattleSession
from src.core.ids import generate_battle_id, validate_player_id
from src.core.logging import complete_battle_log, create_battle_log, save_battle_log
from src.core.progression import (
    StudentTracker,
    apply_battle_result,
    select_opponent_for_round,
)
from src.domain.constants import (
    DEFAULT_PLAYER_ID,
    PHASE_FEEDBACK,
    PHASE_PROBLEM,
    PHASE_SOLUTION,
)
from src.domain.errors import ErrorCodes, GameRuleError
from src.domain.schemas import BattleLog, BattleResult

logger = logging.getLogger(__name__)

api_router = APIRouter()


@dataclass
class BattleEntry:
    """메모리상의 배틀 1개 (세션 + 현재 게임 로그 + 이미 나온 문제)."""
    session: BattleSession
    log: BattleLog
    asked: list[str] = field(default_factory=list)


def get_battles(request: Request) -> dict[str, BattleEntry]:
    return request.app.state.battles


def get_question_generator(request: Request) -> QuestionGenerator:
    """app.state 의 QuestionGenerator (없으면 config 기반 생성 후 캐시)."""
    generator = getattr(request.app.state, "question_generator", None)
    if generator is None:
        generator = QuestionGenerator(request.app.state.config)
        request.app.state.question_generator = generator
    return generator


def get_student_tracker(request: Request) -> StudentTracker:
    tracker = getattr(request.app.state, "student_tracker", None)
    if tracker is None:
        tracker = StudentTracker()
        request.app.state.student_tracker = tracker
    return tracker


def get_entry(request: Request, battle_id: str) -> BattleEntry:
    entry = get_battles(request).get(battle_id)
    if entry is None:
        raise http_error(GameRuleError(ErrorCodes.BATTLE_NOT_FOUND, battle_id=battle_id))
    return entry


# =============================================================================
# Helpers
# =============================================================================


async def load_next_problem(request: Request, entry: BattleEntry) -> None:
    """이번 라운드 문제 생성 → present_problem (LLM 실패 시 폴백 문제)."""
    session = entry.session
    tracker = get_student_tracker(request)
    model = tracker.get(session.player_id)

    # adaptive 모드: 문제 속 캐릭터는 라운드/레벨에 맞춰 매번 다시 뽑음
    character_id = session.opponent_id
    if session.adaptive_enabled:
        level = get_profile_store(request).load(session.player_id).level
        character_id = select_opponent_for_round(session.current_round, level).id

    problem, fallback = await get_question_generator(request).generate_question(
        QuestionRequest(
            grade=session.grade or 1,
            subject=session.subject or "math",
            difficulty=session.problem_difficulty(),
            opponent_id=character_id,
            previous_questions=list(entry.asked),
            student_weak_areas=list(model.weak_areas) if model else [],
            topic=session.topic,
            format=session.question_format,
        )
    )
    entry.asked.append(problem.question)
    session.present_problem(problem, fallback=fallback)


def finish_battle(request: Request, entry: BattleEntry, result: BattleResult) -> None:
    """결과를 프로필에 반영하고 배틀 로그 저장."""
    session = entry.session
    get_profile_store(request).update(
        session.player_id, lambda p: apply_battle_result(p, result)
    )
    complete_battle_log(entry.log, result, session.fallback_questions)
    path = save_battle_log(entry.log, get_battle_logs_dir(request))
    logger.info(f"[{session.battle_id}] battle log saved: {path}")


def abandon_battle(request: Request, entry: BattleEntry) -> None:
    """진행 중 배틀을 abandoned 로그로 저장 (프로필 전적은 그대로)."""
    complete_battle_log(entry.log, None, entry.session.fallback_questions)
    save_battle_log(entry.log, get_battle_logs_dir(request))
    logger.info(f"[{entry.session.battle_id}] battle abandoned")


async def after_round_change(
    request: Request, entry: BattleEntry, result: BattleResult | None
) -> None:
    """라운드 전환 후처리: 종료면 결과 저장, 새 라운드면 문제 로드."""
    if result is not None:
        finish_battle(request, entry, result)
    elif entry.session.phase == PHASE_PROBLEM and entry.session.current_problem is None:
        await load_next_problem(request, entry)


# =============================================================================
# API Routes
# =============================================================================

@api_router.post("")
async def create_battle(
    request: Request,
    payload: dict[str, Any] | None = Body(None),
) -> dict[str, Any]:
    """
    배틀 생성 + 시작.

    Body: {"playerId", "grade", "subject", "difficulty", "format", "topic"}

    Raises:
        HTTPException: 400 SETUP_INCOMPLETE / INVALID_DIFFICULTY / INVALID_FORMAT /
            INVALID_PLAYER_ID
    """
    payload = payload or {}
    try:
        player_id = validate_player_id(str(payload.get("playerId") or DEFAULT_PLAYER_ID))
    except GameRuleError as e:
        raise http_error(e) from e

    battle_id = generate_battle_id()
    session = BattleSession(
        battle_id,
        player_id,
        request.app.state.config,
        tracker=get_student_tracker(request),
    )

    try:
        grade = payload.get("grade")
        session.configure(
            grade=int(grade) if grade not in (None, "") else None,
            subject=payload.get("subject") or None,
            difficulty=payload.get("difficulty") or None,
            question_format=payload.get("format") or None,
            topic=payload.get("topic") or None,
        )
        session.start()
    except GameRuleError as e:
        raise http_error(e) from e
    except ValueError as e:
        raise http_error(
            GameRuleError(ErrorCodes.SETUP_INCOMPLETE, grade=payload.get("grade"))
        ) from e

    log = create_battle_log(
        battle_id, player_id, session.grade, session.subject, session.difficulty
    )
    get_battles(request)[battle_id] = BattleEntry(session=session, log=log)
    logger.info(f"[{battle_id}] battle created for {player_id}")
    return session.to_dict()


@api_router.get("/{battle_id}")
async def get_battle(request: Request, battle_id: str) -> dict[str, Any]:
    return get_entry(request, battle_id).session.to_dict()


@api_router.post("/{battle_id}/opponent")
async def choose_opponent(
    request: Request,
    battle_id: str,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    """
    상대 선택 → 라운드 1 문제.

    Body: {"opponentId": "iron-man"}

    Raises:
        HTTPException: 404 UNKNOWN_OPPONENT, 403 OPPONENT_LOCKED, 409 INVALID_PHASE
    """
    entry = get_entry(request, battle_id)
    session = entry.session
    profile = get_profile_store(request).load(session.player_id)

    try:
        session.select_opponent(str(payload.get("opponentId") or ""), profile)
    except GameRuleError as e:
        raise http_error(e) from e

    entry.log.opponent_id = session.opponent_id
    entry.asked.clear()
    await load_next_problem(request, entry)
    return session.to_dict()


@api_router.post("/{battle_id}/reveal")
async def reveal_solution(request: Request, battle_id: str) -> dict[str, Any]:
    """풀이 공개 (클라이언트가 solutionDelay 만큼 기다린 뒤 호출)."""
    session = get_entry(request, battle_id).session
    try:
        session.reveal()
    except GameRuleError as e:
        raise http_error(e) from e
    return session.to_dict()


@api_router.post("/{battle_id}/answer")
async def submit_answer(
    request: Request,
    battle_id: str,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    """
    답 제출.

    Body: {"answer": ...}
    catch-mistake 는 true("풀이가 맞다") / false("실수가 있다").

    Raises:
        HTTPException: 409 INVALID_PHASE (시간 초과 포함), 400 INVALID_ANSWER
    """
    session = get_entry(request, battle_id).session
    try:
        session.answer(payload.get("answer"))
    except GameRuleError as e:
        raise http_error(e) from e
    return session.to_dict()


@api_router.post("/{battle_id}/power-ups/{power_up_id}")
async def use_power_up(
    request: Request,
    battle_id: str,
    power_up_id: str,
) -> dict[str, Any]:
    """
    파워업 사용 (프로필 보유량 차감은 락 안에서).

    Raises:
        HTTPException: 404 UNKNOWN_POWER_UP, 400 NO_POWER_UP / NO_HINT_AVAILABLE,
            409 INVALID_PHASE
    """
    entry = get_entry(request, battle_id)
    session = entry.session

    try:
        _, effect = get_profile_store(request).update(
            session.player_id, lambda p: session.use_power_up(power_up_id, p)
        )
        finished = session.result if effect.get("finished") else None
        await after_round_change(request, entry, finished)
    except GameRuleError as e:
        raise http_error(e) from e

    return {"effect": effect, "battle": session.to_dict()}


@api_router.post("/{battle_id}/next")
async def next_round(request: Request, battle_id: str) -> dict[str, Any]:
    """feedback → 다음 라운드 문제, 마지막 라운드면 결과 저장."""
    entry = get_entry(request, battle_id)
    try:
        result = entry.session.advance()
        await after_round_change(request, entry, result)
    except GameRuleError as e:
        raise http_error(e) from e

    return entry.session.to_dict()


@api_router.post("/{battle_id}/play-again")
async def play_again(request: Request, battle_id: str) -> dict[str, Any]:
    """결과 화면 → 상대 선택 (새 배틀 로그 시작)."""
    entry = get_entry(request, battle_id)
    session = entry.session
    try:
        session.play_again()
    except GameRuleError as e:
        raise http_error(e) from e

    entry.log = create_battle_log(
        generate_battle_id(),
        session.player_id,
        session.grade,
        session.subject,
        session.difficulty,
    )
    return session.to_dict()


@api_router.delete("/{battle_id}")
async def end_battle(request: Request, battle_id: str) -> dict[str, Any]:
    """배틀 제거. 라운드 진행 중이었으면 abandoned 로그 저장."""
    entry = get_entry(request, battle_id)
    abandoned = entry.session.phase in (PHASE_PROBLEM, PHASE_SOLUTION, PHASE_FEEDBACK)
    if abandoned:
        abandon_battle(request, entry)
    del get_battles(request)[battle_id]
    return {"success": True, "battleId": battle_id, "abandoned": abandoned}

