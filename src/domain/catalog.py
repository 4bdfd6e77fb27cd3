"""
Catalog: 정적 게임 데이터 (상대, 파워업, 업적, 주제, 프롬프트 컨텍스트, 폴백 문제).

데이터는 src/domain/data/*.yaml 에 있고 최초 접근 시 한 번 로드.
상대 목록의 순서가 해금 순서.
"""

import random
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from src.domain.constants import STARTING_OPPONENT
from src.domain.schemas import Achievement, Opponent, PowerUp, Topic

DATA_DIR = Path(__file__).parent / "data"


def _load_yaml(name: str) -> dict[str, Any]:
    path = DATA_DIR / name
    with open(path, encoding="utf-8") as f:
        data: dict[str, Any] = yaml.safe_load(f) or {}
        return data


# =============================================================================
# Opponents
# =============================================================================

@lru_cache(maxsize=1)
def list_opponents() -> tuple[Opponent, ...]:
    """전체 상대 목록 (해금 순서)."""
    opponents = []
    for entry in _load_yaml("opponents.yaml").get("opponents", []):
        prompt = entry.get("prompt", {})
        opponents.append(Opponent(
            id=entry["id"],
            name=entry["name"],
            character=entry["character"],
            personality=entry.get("personality", ""),
            avatar=entry.get("avatar", ""),
            unlock_level=int(entry.get("unlock_level", 1)),
            difficulty=int(entry.get("difficulty", 1)),
            backstory=entry.get("backstory", ""),
            mistake_patterns=list(entry.get("mistake_patterns", [])),
            reactions={k: list(v) for k, v in entry.get("reactions", {}).items()},
            theme=dict(entry.get("theme", {})),
            prompt_character=prompt.get("character", entry["character"]),
            prompt_world=prompt.get("world", ""),
            prompt_example=prompt.get("example", ""),
        ))
    return tuple(opponents)


def get_opponent(opponent_id: str) -> Opponent | None:
    for opponent in list_opponents():
        if opponent.id == opponent_id:
            return opponent
    return None


def get_unlocked_opponents(level: int) -> list[Opponent]:
    """레벨 기준 해금된 상대 (unlock_level <= level)."""
    return [o for o in list_opponents() if o.unlock_level <= level]


def next_opponent(opponent_id: str) -> Opponent | None:
    """카탈로그 순서상 다음 상대 (마지막이면 None)."""
    opponents = list_opponents()
    for i, opponent in enumerate(opponents):
        if opponent.id == opponent_id:
            return opponents[i + 1] if i + 1 < len(opponents) else None
    return None


def previous_opponent(opponent_id: str) -> Opponent | None:
    opponents = list_opponents()
    for i, opponent in enumerate(opponents):
        if opponent.id == opponent_id:
            return opponents[i - 1] if i > 0 else None
    return None


# =============================================================================
# Power-ups / Achievements
# =============================================================================

@lru_cache(maxsize=1)
def list_power_ups() -> tuple[PowerUp, ...]:
    return tuple(
        PowerUp(
            id=entry["id"],
            name=entry["name"],
            description=entry.get("description", ""),
            icon=entry.get("icon", ""),
            cost=int(entry["cost"]),
            effect=entry.get("effect", entry["id"]),
            duration=int(entry.get("duration", 0)),
        )
        for entry in _load_yaml("powerups.yaml").get("power_ups", [])
    )


def get_power_up(power_up_id: str) -> PowerUp | None:
    for power_up in list_power_ups():
        if power_up.id == power_up_id:
            return power_up
    return None


@lru_cache(maxsize=1)
def list_achievements() -> tuple[Achievement, ...]:
    return tuple(
        Achievement(
            id=entry["id"],
            name=entry["name"],
            description=entry.get("description", ""),
            icon=entry.get("icon", ""),
            requirement_type=entry["requirement"]["type"],
            requirement_value=int(entry["requirement"]["value"]),
            reward_type=entry["reward"]["type"],
            reward_value=str(entry["reward"]["value"]),
        )
        for entry in _load_yaml("achievements.yaml").get("achievements", [])
    )


# =============================================================================
# Topics
# =============================================================================

@lru_cache(maxsize=1)
def list_topics() -> tuple[Topic, ...]:
    return tuple(
        Topic(
            id=entry["id"],
            name=entry["name"],
            description=entry.get("description", ""),
            grade=int(entry["grade"]),
            subject=entry["subject"],
            difficulty=entry.get("difficulty", "normal"),
            examples=list(entry.get("examples", [])),
        )
        for entry in _load_yaml("topics.yaml").get("topics", [])
    )


def get_topics(grade: int, subject: str) -> list[Topic]:
    return [t for t in list_topics() if t.grade == grade and t.subject == subject]


def get_topics_by_difficulty(difficulty: str) -> list[Topic]:
    return [t for t in list_topics() if t.difficulty == difficulty]


def random_topic(
    grade: int, subject: str, rng: random.Random | None = None
) -> Topic | None:
    """학년/과목에서 임의 주제 (없으면 None)."""
    topics = get_topics(grade, subject)
    if not topics:
        return None
    return (rng or random).choice(topics)


# =============================================================================
# Prompt Contexts
# =============================================================================

@lru_cache(maxsize=1)
def _prompt_contexts() -> dict[str, Any]:
    return _load_yaml("prompt_contexts.yaml")


def grade_context(grade: int, subject: str) -> str:
    return (
        _prompt_contexts().get("grade_context", {}).get(grade, {}).get(subject)
        or "General concepts"
    )


def difficulty_context(difficulty: str) -> str:
    return _prompt_contexts().get("difficulty_context", {}).get(difficulty, "")


def textbook_topics(grade: int, subject: str) -> str:
    return (
        _prompt_contexts().get("textbook_topics", {}).get(grade, {}).get(subject)
        or "General concepts appropriate for this grade level"
    )


def story_contexts(subject: str) -> list[str]:
    contexts = _prompt_contexts().get("story_contexts", {})
    return list(contexts.get(subject) or contexts.get("math", []))


def encouragement_messages(performance: str) -> list[str]:
    return list(_prompt_contexts().get("encouragement", {}).get(performance, []))


# =============================================================================
# Fallback Questions
# =============================================================================

@lru_cache(maxsize=1)
def _fallback_bank() -> dict[str, Any]:
    return _load_yaml("fallback_questions.yaml")


def fallback_key(opponent_id: str | None, subject: str, grade: int) -> str:
    return f"{opponent_id or STARTING_OPPONENT}-{subject}-{grade}"


def fallback_questions(
    opponent_id: str | None, subject: str, grade: int
) -> list[dict[str, Any]]:
    """
    폴백 문제 목록.

    키 <opponent>-<subject>-<grade> 가 없으면 default_key 문제 사용.
    반환값은 복사본 (호출자가 수정해도 은행은 그대로).
    """
    bank = _fallback_bank()
    questions = bank.get("questions", {})
    key = fallback_key(opponent_id, subject, grade)
    entries = questions.get(key) or questions.get(bank.get("default_key", ""), [])
    return [dict(entry) for entry in entries]
