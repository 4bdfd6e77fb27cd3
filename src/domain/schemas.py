"""
Data schemas for Battle Mode and the homework helper.

규칙:
- 내부 필드명은 snake_case, JSON 직렬화(to_dict)는 프런트엔드 호환 camelCase
- from_dict 는 느슨한 검증: 누락된 배열은 빈 리스트, 누락 필드는 기본값
- 문제(Problem)는 라운드마다 생성되고 라운드 종료 후 폐기됨
"""

import copy
from dataclasses import dataclass, field
from typing import Any

from src.domain.constants import (
    DEFAULT_AVERAGE_RESPONSE_TIME,
    DEFAULT_DIFFICULTY,
    DEFAULT_PLAYER_ID,
    DEFAULT_PLAYER_NAME,
    DIFFICULTIES,
    FORMAT_CATCH_MISTAKE,
    STARTING_OPPONENT,
    STARTING_POWER_UPS,
)


def _as_list(value: Any) -> list:
    """None/스칼라를 리스트로 정규화."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    return [value]


def _as_int(value: Any, default: int) -> int:
    """숫자 필드 변환. None/변환 불가 값은 기본값."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


# =============================================================================
# Problem (라운드 문제)
# =============================================================================

@dataclass
class QuestionOption:
    """객관식/OX 보기."""
    id: str
    text: str
    is_correct: bool = False
    explanation: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], index: int = 0) -> "QuestionOption":
        return cls(
            id=str(data.get("id", index + 1)),
            text=str(data.get("text", "")),
            is_correct=bool(data.get("isCorrect", data.get("is_correct", False))),
            explanation=data.get("explanation"),
        )

    def to_dict(self, reveal: bool = True) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id, "text": self.text}
        if reveal:
            result["isCorrect"] = self.is_correct
            if self.explanation:
                result["explanation"] = self.explanation
        return result


@dataclass
class MatchingPair:
    """짝 맞추기 항목."""
    question: str
    answer: str


@dataclass
class Problem:
    """
    배틀 라운드용 문제.

    catch-mistake 형식은 steps 중 하나에 의도적 실수가 있을 수 있음
    (has_error / error_step). 나머지 형식은 correct_answer 로 채점.
    """
    id: str
    question: str
    subject: str
    grade: int
    difficulty: str = DEFAULT_DIFFICULTY
    topic: str = ""
    format: str = FORMAT_CATCH_MISTAKE
    steps: list[str] = field(default_factory=list)
    options: list[QuestionOption] = field(default_factory=list)
    correct_answer: Any = None
    has_error: bool = False
    error_step: int | None = None
    explanation: str = ""
    opponent_id: str | None = None
    story_context: str | None = None
    hints: list[str] = field(default_factory=list)
    blanks: list[str] = field(default_factory=list)
    matching_pairs: list[MatchingPair] = field(default_factory=list)
    ordering_items: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Problem":
        """LLM/폴백 dict → Problem (누락 배열은 빈 리스트)."""
        options = [
            QuestionOption.from_dict(opt, i)
            for i, opt in enumerate(_as_list(data.get("options")))
            if isinstance(opt, dict)
        ]
        pairs = [
            MatchingPair(str(p.get("question", "")), str(p.get("answer", "")))
            for p in _as_list(data.get("matchingPairs", data.get("matching_pairs")))
            if isinstance(p, dict)
        ]
        error_step = data.get("errorStep", data.get("error_step"))
        try:
            grade = int(data.get("grade", 1))
        except (TypeError, ValueError):
            grade = 1

        return cls(
            id=str(data.get("id", "")),
            question=str(data.get("question", "")),
            subject=str(data.get("subject", "")),
            grade=grade,
            difficulty=str(data.get("difficulty", DEFAULT_DIFFICULTY)),
            topic=str(data.get("topic", "") or ""),
            format=str(data.get("format") or FORMAT_CATCH_MISTAKE),
            steps=[str(s) for s in _as_list(data.get("steps"))],
            options=options,
            correct_answer=data.get("correctAnswer", data.get("correct_answer")),
            has_error=bool(data.get("hasError", data.get("has_error", False))),
            error_step=int(error_step) if isinstance(error_step, (int, float)) else None,
            explanation=str(data.get("explanation", "") or ""),
            opponent_id=data.get("opponentId", data.get("opponent_id")),
            story_context=data.get("storyContext", data.get("story_context")),
            hints=[str(h) for h in _as_list(data.get("hints"))],
            blanks=[str(b) for b in _as_list(data.get("blanks"))],
            matching_pairs=pairs,
            ordering_items=[
                str(i)
                for i in _as_list(data.get("orderingItems", data.get("ordering_items")))
            ],
        )

    def to_dict(self, reveal: bool = True) -> dict[str, Any]:
        """
        JSON 직렬화.

        Args:
            reveal: False 면 정답 관련 필드(hasError, errorStep, correctAnswer,
                explanation, 보기 정답 플래그)를 숨김. 답 제출 전 화면용.
        """
        result: dict[str, Any] = {
            "id": self.id,
            "question": self.question,
            "subject": self.subject,
            "grade": self.grade,
            "difficulty": self.difficulty,
            "topic": self.topic,
            "format": self.format,
            "steps": self.steps,
            "options": [opt.to_dict(reveal) for opt in self.options],
            "opponentId": self.opponent_id,
            "storyContext": self.story_context,
            "blanks": self.blanks,
            "matchingPairs": [
                {"question": p.question, "answer": p.answer}
                for p in self.matching_pairs
            ],
            "orderingItems": self.ordering_items,
        }
        if reveal:
            result.update({
                "correctAnswer": self.correct_answer,
                "hasError": self.has_error,
                "errorStep": self.error_step,
                "explanation": self.explanation,
                "hints": self.hints,
            })
        return result


# =============================================================================
# Catalog Entries
# =============================================================================

@dataclass
class Opponent:
    """테마 상대 캐릭터."""
    id: str
    name: str
    character: str
    personality: str
    avatar: str
    unlock_level: int
    difficulty: int
    backstory: str
    mistake_patterns: list[str] = field(default_factory=list)
    reactions: dict[str, list[str]] = field(default_factory=dict)
    theme: dict[str, str] = field(default_factory=dict)
    # 문제 생성 프롬프트용
    prompt_character: str = ""
    prompt_world: str = ""
    prompt_example: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "character": self.character,
            "personality": self.personality,
            "avatar": self.avatar,
            "unlockLevel": self.unlock_level,
            "difficulty": self.difficulty,
            "backstory": self.backstory,
            "mistakePatterns": self.mistake_patterns,
            "reactions": self.reactions,
            "theme": self.theme,
        }


@dataclass
class PowerUp:
    """상점 파워업."""
    id: str
    name: str
    description: str
    icon: str
    cost: int
    effect: str
    duration: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "cost": self.cost,
            "effect": self.effect,
            "duration": self.duration,
        }


@dataclass
class Achievement:
    """
    업적.

    requirement_type: streak | score | battles | opponents | accuracy | speed
    reward_type: opponent | powerup | theme | title
    """
    id: str
    name: str
    description: str
    icon: str
    requirement_type: str
    requirement_value: int
    reward_type: str
    reward_value: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "requirement": {
                "type": self.requirement_type,
                "value": self.requirement_value,
            },
            "reward": {"type": self.reward_type, "value": self.reward_value},
        }


@dataclass
class Topic:
    """교과서 주제."""
    id: str
    name: str
    description: str
    grade: int
    subject: str
    difficulty: str
    examples: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "grade": self.grade,
            "subject": self.subject,
            "difficulty": self.difficulty,
            "examples": self.examples,
        }


# =============================================================================
# Player Profile
# =============================================================================

def empty_progress() -> dict[str, bool]:
    """캐릭터 진행도 초기값 (난이도별 완료 여부)."""
    return {d: False for d in DIFFICULTIES}


@dataclass
class PlayerPreferences:
    sound_enabled: bool = True
    difficulty: str = DEFAULT_DIFFICULTY
    favorite_subject: str = "math"


@dataclass
class PlayerStats:
    average_response_time: float = DEFAULT_AVERAGE_RESPONSE_TIME
    accuracy_rate: float = 0.0
    mistakes_caught: int = 0
    perfect_games: int = 0


@dataclass
class PlayerProfile:
    """
    플레이어 프로필.

    단일 JSON 문서로 저장되며 매 업데이트마다 통째로 읽고-수정-쓰기.
    로드 시 누락 필드는 기본값으로 채움 (그 외 불변식 없음).
    """
    id: str = DEFAULT_PLAYER_ID
    name: str = DEFAULT_PLAYER_NAME
    level: int = 1
    total_score: int = 0
    battles_won: int = 0
    battles_played: int = 0
    best_streak: int = 0
    unlocked_opponents: list[str] = field(
        default_factory=lambda: [STARTING_OPPONENT]
    )
    unlocked_achievements: list[str] = field(default_factory=list)
    power_ups: dict[str, int] = field(
        default_factory=lambda: dict(STARTING_POWER_UPS)
    )
    preferences: PlayerPreferences = field(default_factory=PlayerPreferences)
    stats: PlayerStats = field(default_factory=PlayerStats)
    character_progress: dict[str, dict[str, bool]] = field(
        default_factory=lambda: {STARTING_OPPONENT: empty_progress()}
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PlayerProfile":
        """저장된 JSON → PlayerProfile (필드별 기본값 채움)."""
        defaults = cls()
        prefs = data.get("preferences")
        if not isinstance(prefs, dict):
            prefs = {}
        stats = data.get("stats")
        if not isinstance(stats, dict):
            stats = {}

        progress: dict[str, dict[str, bool]] = {}
        raw_progress = data.get("characterProgress")
        if isinstance(raw_progress, dict):
            for opponent_id, flags in raw_progress.items():
                filled = empty_progress()
                if isinstance(flags, dict):
                    filled.update({
                        d: bool(flags.get(d, False)) for d in DIFFICULTIES
                    })
                progress[opponent_id] = filled
        else:
            progress = copy.deepcopy(defaults.character_progress)

        power_ups = data.get("powerUps")
        if not isinstance(power_ups, dict):
            power_ups = dict(defaults.power_ups)

        return cls(
            id=data.get("id") or defaults.id,
            name=data.get("name") or defaults.name,
            level=_as_int(data.get("level"), defaults.level),
            total_score=_as_int(data.get("totalScore"), defaults.total_score),
            battles_won=_as_int(data.get("battlesWon"), defaults.battles_won),
            battles_played=_as_int(
                data.get("battlesPlayed"), defaults.battles_played
            ),
            best_streak=_as_int(data.get("bestStreak"), defaults.best_streak),
            unlocked_opponents=list(
                _as_list(data.get("unlockedOpponents")) or defaults.unlocked_opponents
            ),
            unlocked_achievements=list(_as_list(data.get("unlockedAchievements"))),
            power_ups={k: _as_int(v, 0) for k, v in power_ups.items()},
            preferences=PlayerPreferences(
                sound_enabled=bool(prefs.get("soundEnabled", True)),
                difficulty=prefs.get("difficulty", DEFAULT_DIFFICULTY),
                favorite_subject=prefs.get("favoriteSubject", "math"),
            ),
            stats=PlayerStats(
                average_response_time=_as_float(
                    stats.get("averageResponseTime"), DEFAULT_AVERAGE_RESPONSE_TIME
                ),
                accuracy_rate=_as_float(stats.get("accuracyRate"), 0.0),
                mistakes_caught=_as_int(stats.get("mistakesCaught"), 0),
                perfect_games=_as_int(stats.get("perfectGames"), 0),
            ),
            character_progress=progress,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "level": self.level,
            "totalScore": self.total_score,
            "battlesWon": self.battles_won,
            "battlesPlayed": self.battles_played,
            "bestStreak": self.best_streak,
            "unlockedOpponents": self.unlocked_opponents,
            "unlockedAchievements": self.unlocked_achievements,
            "powerUps": self.power_ups,
            "preferences": {
                "soundEnabled": self.preferences.sound_enabled,
                "difficulty": self.preferences.difficulty,
                "favoriteSubject": self.preferences.favorite_subject,
            },
            "stats": {
                "averageResponseTime": self.stats.average_response_time,
                "accuracyRate": self.stats.accuracy_rate,
                "mistakesCaught": self.stats.mistakes_caught,
                "perfectGames": self.stats.perfect_games,
            },
            "characterProgress": self.character_progress,
        }


# =============================================================================
# Battle Records
# =============================================================================

@dataclass
class RoundRecord:
    """라운드 1회 결과."""
    round: int
    problem_id: str
    format: str
    correct: bool
    response_time: float
    points: int = 0
    timed_out: bool = False
    skipped: bool = False
    caught_mistake: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "round": self.round,
            "problemId": self.problem_id,
            "format": self.format,
            "correct": self.correct,
            "responseTime": self.response_time,
            "points": self.points,
            "timedOut": self.timed_out,
            "skipped": self.skipped,
            "caughtMistake": self.caught_mistake,
        }


@dataclass
class BattleResult:
    """
    배틀 종료 결과.

    accuracy: 0-100 (답한 라운드 기준)
    mistakes_caught: catch-mistake 형식에서 실수를 맞게 짚어낸 횟수
    """
    won: bool
    score: int
    accuracy: float
    average_response_time: float
    mistakes_caught: int
    best_streak: int
    opponent_id: str | None = None
    difficulty: str = DEFAULT_DIFFICULTY
    rounds: list[RoundRecord] = field(default_factory=list)
    newly_unlocked_opponents: list[str] = field(default_factory=list)
    new_achievements: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "won": self.won,
            "score": self.score,
            "accuracy": self.accuracy,
            "averageResponseTime": self.average_response_time,
            "mistakesCaught": self.mistakes_caught,
            "bestStreak": self.best_streak,
            "opponentId": self.opponent_id,
            "difficulty": self.difficulty,
            "rounds": [r.to_dict() for r in self.rounds],
            "newlyUnlockedOpponents": self.newly_unlocked_opponents,
            "newAchievements": self.new_achievements,
        }


@dataclass
class BattleLog:
    """
    배틀 로그 (파일로 저장).

    result: "pending" | "won" | "lost" | "abandoned"
    """
    battle_id: str
    player_id: str
    started_at: str
    result: str = "pending"
    opponent_id: str | None = None
    grade: int | None = None
    subject: str | None = None
    difficulty: str = DEFAULT_DIFFICULTY
    finished_at: str | None = None
    score: int = 0
    rounds: list[RoundRecord] = field(default_factory=list)
    fallback_questions: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "battle_id": self.battle_id,
            "player_id": self.player_id,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "result": self.result,
            "opponent_id": self.opponent_id,
            "grade": self.grade,
            "subject": self.subject,
            "difficulty": self.difficulty,
            "score": self.score,
            "rounds": [r.to_dict() for r in self.rounds],
            "fallback_questions": self.fallback_questions,
        }


# =============================================================================
# Homework Solution
# =============================================================================

@dataclass
class Flashcard:
    question: str
    answer: str


@dataclass
class Solution:
    """
    숙제 도우미 풀이 결과.

    LLM 응답을 느슨하게 파싱한 결과. 누락 배열은 빈 리스트.
    """
    question: str = ""
    answer: str = ""
    explanation: str = ""
    steps: list[str] = field(default_factory=list)
    confidence: int | None = None
    approaches: list[str] = field(default_factory=list)
    flashcards: list[Flashcard] = field(default_factory=list)
    practice_questions: list[str] = field(default_factory=list)
    time_to_solve: str | None = None
    hints: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Solution":
        cards = []
        for card in _as_list(data.get("flashcards")):
            if isinstance(card, dict):
                cards.append(Flashcard(
                    str(card.get("question", "")), str(card.get("answer", ""))
                ))
        confidence = data.get("confidence")
        try:
            confidence = int(confidence) if confidence is not None else None
        except (TypeError, ValueError):
            confidence = None

        return cls(
            question=str(data.get("question", "") or ""),
            answer=_stringify(data.get("answer")),
            explanation=str(data.get("explanation", "") or ""),
            steps=[_stringify(s) for s in _as_list(data.get("steps"))],
            confidence=confidence,
            approaches=[_stringify(a) for a in _as_list(data.get("approaches"))],
            flashcards=cards,
            practice_questions=[
                _stringify(q)
                for q in _as_list(
                    data.get("practiceQuestions", data.get("practice_questions"))
                )
            ],
            time_to_solve=data.get("timeToSolve", data.get("time_to_solve")),
            hints=[_stringify(h) for h in _as_list(data.get("hints"))],
        )

    def to_dict(self) -> dict[str, Any]:
        result = {
            "question": self.question,
            "answer": self.answer,
            "explanation": self.explanation,
            "steps": self.steps,
            "confidence": self.confidence,
            "approaches": self.approaches,
            "flashcards": [
                {"question": c.question, "answer": c.answer} for c in self.flashcards
            ],
            "practiceQuestions": self.practice_questions,
            "timeToSolve": self.time_to_solve,
            "hints": self.hints,
        }
        # None 값 제거
        return {k: v for k, v in result.items() if v is not None}


def _stringify(value: Any) -> str:
    """LLM 이 숫자/객체로 돌려준 값을 문자열로."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        return ", ".join(f"{k}: {v}" for k, v in value.items())
    return str(value)
