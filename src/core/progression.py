"""
Progression: 점수 계산, 전적 갱신, 업적, 상대 해금, 상점.

규칙:
- 점수 = floor((100 + 남은시간*5 + 연속정답*10) * 난이도 배율), Double Points 시 2배
- 상대 해금: 한 상대의 4개 난이도를 모두 이기면 카탈로그 순서상 다음 상대 해금
- 업적 보상: opponent → 해금, powerup → +3개
- 구매 비용은 카탈로그 가격, total_score 에서 차감
"""

import logging
import math
import random
from dataclasses import dataclass, field

from src.domain import catalog
from src.domain.constants import (
    ACHIEVEMENT_POWER_UP_GRANT,
    BASE_POINTS,
    DIFFICULTIES,
    DIFFICULTY_MULTIPLIERS,
    MOVING_AVERAGE_WEIGHT,
    POINTS_PER_LEVEL,
    STREAK_BONUS,
    TIME_BONUS_PER_SECOND,
)
from src.domain.errors import ErrorCodes, GameRuleError
from src.domain.schemas import (
    Achievement,
    BattleResult,
    PlayerProfile,
    PowerUp,
    empty_progress,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Scoring
# =============================================================================


def calculate_points(
    time_left: float,
    streak: int,
    difficulty: str,
    double_points: bool = False,
) -> int:
    """
    정답 1회 점수.

    Args:
        time_left: 남은 시간 (초)
        streak: 이번 정답 이전까지의 연속 정답 수
        difficulty: easy | normal | hard | expert
        double_points: Double Points 활성 여부
    """
    multiplier = DIFFICULTY_MULTIPLIERS.get(difficulty, 1.0)
    raw = BASE_POINTS + max(time_left, 0) * TIME_BONUS_PER_SECOND + streak * STREAK_BONUS
    points = math.floor(raw * multiplier)
    return points * 2 if double_points else points


def _moving_average(old: float, new: float) -> float:
    return old * MOVING_AVERAGE_WEIGHT + new * (1 - MOVING_AVERAGE_WEIGHT)


def update_battle_stats(profile: PlayerProfile, result: BattleResult) -> None:
    """
    배틀 종료 후 전적 갱신.

    - 응답시간/정확도는 이동 평균 (기존 0.8 + 신규 0.2)
    - level = max(level, total_score // 1000 + 1)
    """
    profile.battles_played += 1
    if result.won:
        profile.battles_won += 1
    profile.total_score += result.score
    profile.best_streak = max(profile.best_streak, result.best_streak)

    stats = profile.stats
    stats.average_response_time = _moving_average(
        stats.average_response_time, result.average_response_time
    )
    stats.accuracy_rate = _moving_average(stats.accuracy_rate, result.accuracy)
    stats.mistakes_caught += result.mistakes_caught
    if result.accuracy == 100:
        stats.perfect_games += 1

    profile.level = max(profile.level, profile.total_score // POINTS_PER_LEVEL + 1)


# =============================================================================
# Opponent Progression
# =============================================================================


def is_character_complete(profile: PlayerProfile, opponent_id: str) -> bool:
    progress = profile.character_progress.get(opponent_id, {})
    return all(progress.get(d, False) for d in DIFFICULTIES)


def record_character_completion(
    profile: PlayerProfile, opponent_id: str, difficulty: str
) -> str | None:
    """
    승리한 난이도 기록.

    4개 난이도 모두 완료되면 다음 상대를 해금.

    Returns:
        새로 해금된 상대 ID (없으면 None)
    """
    progress = profile.character_progress.setdefault(opponent_id, empty_progress())
    if difficulty in progress:
        progress[difficulty] = True

    if not is_character_complete(profile, opponent_id):
        return None

    nxt = catalog.next_opponent(opponent_id)
    if nxt is None or nxt.id in profile.unlocked_opponents:
        return None

    profile.unlocked_opponents.append(nxt.id)
    profile.character_progress.setdefault(nxt.id, empty_progress())
    logger.info(f"Opponent unlocked by completion: {opponent_id} → {nxt.id}")
    return nxt.id


def is_opponent_selectable(profile: PlayerProfile, opponent_id: str) -> bool:
    return opponent_id in profile.unlocked_opponents


def opponent_overview(profile: PlayerProfile) -> list[dict]:
    """
    상대 선택 화면용 목록.

    unlocked: 선택 가능 여부 (unlocked_opponents 포함)
    eligible: 레벨/이전 상대 완료 조건 충족 여부
    """
    overview = []
    for opponent in catalog.list_opponents():
        progress = profile.character_progress.get(opponent.id, empty_progress())
        previous = catalog.previous_opponent(opponent.id)
        eligible = opponent.unlock_level == 1 or (
            previous is not None
            and is_character_complete(profile, previous.id)
            and profile.level >= opponent.unlock_level
        )
        entry = opponent.to_dict()
        entry.update({
            "unlocked": is_opponent_selectable(profile, opponent.id),
            "eligible": eligible,
            "progress": {d: bool(progress.get(d, False)) for d in DIFFICULTIES},
            "completed": sum(1 for d in DIFFICULTIES if progress.get(d, False)),
        })
        overview.append(entry)
    return overview


# =============================================================================
# Achievements
# =============================================================================


def achievement_progress(profile: PlayerProfile, achievement: Achievement) -> int:
    """업적 조건 유형별 현재 값."""
    kind = achievement.requirement_type
    if kind == "battles":
        return profile.battles_won
    if kind == "streak":
        return profile.best_streak
    if kind == "score":
        return profile.total_score
    if kind == "accuracy":
        return round(profile.stats.accuracy_rate)
    if kind == "speed":
        return 10 if profile.stats.average_response_time <= 5 else 0
    if kind == "opponents":
        return profile.stats.mistakes_caught
    return 0


def check_achievements(profile: PlayerProfile) -> list[Achievement]:
    """새로 달성한 업적 (이미 해금된 업적 제외)."""
    return [
        achievement
        for achievement in catalog.list_achievements()
        if achievement.id not in profile.unlocked_achievements
        and achievement_progress(profile, achievement) >= achievement.requirement_value
    ]


def apply_achievement_rewards(
    profile: PlayerProfile, achievements: list[Achievement]
) -> list[str]:
    """
    업적 기록 + 보상 지급.

    Returns:
        보상으로 새로 해금된 상대 ID 목록
    """
    unlocked: list[str] = []
    for achievement in achievements:
        if achievement.id not in profile.unlocked_achievements:
            profile.unlocked_achievements.append(achievement.id)

        if achievement.reward_type == "opponent":
            opponent_id = achievement.reward_value
            if opponent_id not in profile.unlocked_opponents:
                profile.unlocked_opponents.append(opponent_id)
                profile.character_progress.setdefault(opponent_id, empty_progress())
                unlocked.append(opponent_id)
        elif achievement.reward_type == "powerup":
            power_up_id = achievement.reward_value
            profile.power_ups[power_up_id] = (
                profile.power_ups.get(power_up_id, 0) + ACHIEVEMENT_POWER_UP_GRANT
            )
        # theme/title 보상은 기록만

        logger.info(f"Achievement unlocked: {achievement.id} ({profile.id})")
    return unlocked


def achievement_overview(profile: PlayerProfile) -> list[dict]:
    overview = []
    for achievement in catalog.list_achievements():
        entry = achievement.to_dict()
        entry["unlocked"] = achievement.id in profile.unlocked_achievements
        entry["progress"] = min(
            achievement_progress(profile, achievement), achievement.requirement_value
        )
        overview.append(entry)
    return overview


def apply_battle_result(profile: PlayerProfile, result: BattleResult) -> BattleResult:
    """
    배틀 결과를 프로필에 반영.

    순서: 전적 갱신 → (승리 시) 난이도 완료 기록/다음 상대 해금 → 업적 확인/보상.
    result.newly_unlocked_opponents / new_achievements 를 채워서 반환.
    """
    update_battle_stats(profile, result)

    unlocked: list[str] = []
    if result.won and result.opponent_id:
        opened = record_character_completion(
            profile, result.opponent_id, result.difficulty
        )
        if opened:
            unlocked.append(opened)

    achievements = check_achievements(profile)
    unlocked.extend(apply_achievement_rewards(profile, achievements))

    result.newly_unlocked_opponents = unlocked
    result.new_achievements = [a.id for a in achievements]
    return result


# =============================================================================
# Power-up Shop
# =============================================================================


def _require_power_up(power_up_id: str) -> PowerUp:
    power_up = catalog.get_power_up(power_up_id)
    if power_up is None:
        raise GameRuleError(ErrorCodes.UNKNOWN_POWER_UP, power_up_id=power_up_id)
    return power_up


def purchase_power_up(profile: PlayerProfile, power_up_id: str) -> PowerUp:
    """
    파워업 구매: 카탈로그 가격을 total_score 에서 차감, 보유량 +1.

    Raises:
        GameRuleError: UNKNOWN_POWER_UP, INSUFFICIENT_SCORE
    """
    power_up = _require_power_up(power_up_id)
    if profile.total_score < power_up.cost:
        raise GameRuleError(
            ErrorCodes.INSUFFICIENT_SCORE,
            power_up_id=power_up_id,
            cost=power_up.cost,
            total_score=profile.total_score,
        )
    profile.total_score -= power_up.cost
    profile.power_ups[power_up_id] = profile.power_ups.get(power_up_id, 0) + 1
    return power_up


def consume_power_up(profile: PlayerProfile, power_up_id: str) -> PowerUp:
    """
    파워업 1개 사용 (보유량 차감).

    Raises:
        GameRuleError: UNKNOWN_POWER_UP, NO_POWER_UP
    """
    power_up = _require_power_up(power_up_id)
    if profile.power_ups.get(power_up_id, 0) <= 0:
        raise GameRuleError(ErrorCodes.NO_POWER_UP, power_up_id=power_up_id)
    profile.power_ups[power_up_id] -= 1
    return power_up


# =============================================================================
# Adaptive Difficulty / Flavour
# =============================================================================


@dataclass
class StudentModel:
    """학생별 최근 성과 (이동 평균)."""
    subject: str
    accuracy_rate: float
    average_response_time: float
    weak_areas: list[str] = field(default_factory=list)
    strong_areas: list[str] = field(default_factory=list)


class StudentTracker:
    """
    문제 단위 성과 추적 → 난이도 자동 조정.

    - 정확도 > 0.9 이고 응답시간 < 10초 → 한 단계 상승
    - 정확도 < 0.5 이거나 응답시간 > 25초 → 한 단계 하락
    """

    def __init__(self) -> None:
        self._students: dict[str, StudentModel] = {}

    def get(self, student_id: str) -> StudentModel | None:
        return self._students.get(student_id)

    def update(
        self,
        student_id: str,
        correct: bool,
        response_time: float,
        subject: str,
        topic: str,
    ) -> StudentModel:
        model = self._students.get(student_id)
        if model is None:
            model = StudentModel(
                subject=subject,
                accuracy_rate=1.0 if correct else 0.0,
                average_response_time=response_time,
            )
            self._students[student_id] = model

        model.accuracy_rate = _moving_average(model.accuracy_rate, 1.0 if correct else 0.0)
        model.average_response_time = _moving_average(
            model.average_response_time, response_time
        )

        if topic:
            if correct:
                if topic not in model.strong_areas:
                    model.strong_areas.append(topic)
                model.weak_areas = [a for a in model.weak_areas if a != topic]
            elif topic not in model.weak_areas:
                model.weak_areas.append(topic)
        return model

    def adaptive_difficulty(self, student_id: str, current: str) -> str:
        model = self._students.get(student_id)
        if model is None or current not in DIFFICULTIES:
            return current

        index = DIFFICULTIES.index(current)
        if model.accuracy_rate > 0.9 and model.average_response_time < 10:
            return DIFFICULTIES[min(index + 1, len(DIFFICULTIES) - 1)]
        if model.accuracy_rate < 0.5 or model.average_response_time > 25:
            return DIFFICULTIES[max(index - 1, 0)]
        return current

    def reset(self, student_id: str) -> None:
        self._students.pop(student_id, None)


def select_opponent_for_round(
    round_number: int, level: int, rng: random.Random | None = None
):
    """라운드/레벨 기준 무작위 상대 (difficulty <= min(level + round//3, 5))."""
    max_difficulty = min(level + round_number // 3, 5)
    candidates = [
        o for o in catalog.list_opponents() if o.difficulty <= max_difficulty
    ]
    return (rng or random).choice(candidates)


def performance_label(accuracy: float) -> str:
    """정확도(0-100) → excellent | good | struggling."""
    if accuracy >= 90:
        return "excellent"
    if accuracy >= 60:
        return "good"
    return "struggling"


def encouragement(performance: str, rng: random.Random | None = None) -> str:
    messages = catalog.encouragement_messages(performance)
    return (rng or random).choice(messages) if messages else ""


def session_badges(
    streak: int, total_correct: int, average_time: float, mistakes_caught: int
) -> list[str]:
    """세션 중 즉석 배지 메시지 (영구 업적과 별개)."""
    badges = []
    if streak >= 5:
        badges.append("🔥 STREAK MASTER - 5+ correct in a row!")
    if average_time < 8:
        badges.append("⚡ SPEED DEMON - Lightning fast responses!")
    if mistakes_caught >= 8:
        badges.append("🕵️ EAGLE EYE - Caught 8+ AI mistakes!")
    if total_correct >= 15:
        badges.append("🏆 BATTLE CHAMPION - 15+ correct answers!")
    return badges


def story_context(subject: str, rng: random.Random | None = None) -> str:
    contexts = catalog.story_contexts(subject)
    return (rng or random).choice(contexts) if contexts else ""
