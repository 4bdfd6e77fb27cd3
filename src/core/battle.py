"""
Battle Session: 배틀 한 판의 상태 머신.

단계:
    setup → opponent-select → problem → solution → feedback
          → (다음 라운드 problem …) → victory

규칙:
- 라운드 타이머는 주입된 clock 기준으로 계산 (서버 측 setInterval 없음)
- 시간 초과는 상태를 읽거나 조작하기 직전(tick)에 반영
- 문제는 라운드마다 외부(questions 서비스)에서 받아 present_problem 으로 주입
- 프로필 변경(파워업 차감)은 호출자가 ProfileStore.update 안에서 수행
"""

import logging
import math
import random
import time
from collections.abc import Callable
from typing import Any

from src.core.answers import AnswerCheck, check_answer
from src.core.progression import (
    StudentTracker,
    calculate_points,
    consume_power_up,
    encouragement,
    is_opponent_selectable,
    performance_label,
    session_badges,
)
from src.domain import catalog
from src.domain.constants import (
    DEFAULT_DIFFICULTY,
    DEFAULT_PLAYER_ID,
    DIFFICULTIES,
    DOUBLE_POINTS_QUESTIONS,
    EXTRA_TIME_SECONDS,
    FORMAT_CATCH_MISTAKE,
    PHASE_FEEDBACK,
    PHASE_OPPONENT_SELECT,
    PHASE_PROBLEM,
    PHASE_SETUP,
    PHASE_SOLUTION,
    PHASE_VICTORY,
    QUESTION_FORMATS,
    RANDOM_FORMATS,
    ROUND_TIME_LIMIT,
    SLOW_TIME_SCALE,
    SLOW_TIME_SECONDS,
    SOLUTION_DELAY_CATCH_MISTAKE,
    SOLUTION_DELAY_DEFAULT,
    SOLUTION_DELAY_VETERAN,
    TOTAL_ROUNDS,
    VETERAN_BATTLES,
    VICTORY_THRESHOLD,
)
from src.domain.errors import ErrorCodes, GameRuleError
from src.domain.schemas import BattleResult, PlayerProfile, Problem, RoundRecord

logger = logging.getLogger(__name__)

# 새 문제 제시 때 상대가 던지는 도발 대사
PROBLEM_TAUNTS = (
    "😏 Let's see if you can catch this!",
    "🤔 This one might trick you!",
    "😈 I've got a sneaky solution!",
)


class BattleSession:
    """
    배틀 세션.

    Usage:
        session = BattleSession("BATTLE-...", "player-1", config)
        session.configure(grade=5, subject="math", difficulty="normal")
        session.start()
        session.select_opponent("iron-man", profile)
        session.present_problem(problem)
        session.reveal()
        session.answer(False)   # catch-mistake: "풀이에 실수가 있다"
        result = session.advance()  # 마지막 라운드면 BattleResult
    """

    def __init__(
        self,
        battle_id: str,
        player_id: str = DEFAULT_PLAYER_ID,
        config: dict | None = None,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
        tracker: StudentTracker | None = None,
    ):
        """
        Args:
            battle_id: 배틀 ID (로그 파일명)
            player_id: 플레이어 ID
            config: 설정 (game 섹션)
            clock: 초 단위 단조 시계 (테스트에서 교체)
            rng: 반응 대사 선택용 난수 생성기
            tracker: 문제 단위 성과 추적기 (adaptive difficulty)
        """
        self.battle_id = battle_id
        self.player_id = player_id
        self._clock = clock
        self._rng = rng or random.Random()
        self.tracker = tracker

        game_config = (config or {}).get("game", {})
        delays = game_config.get("solution_delay", {})
        self.total_rounds = int(game_config.get("total_rounds", TOTAL_ROUNDS))
        self.round_time_limit = float(
            game_config.get("round_time_limit", ROUND_TIME_LIMIT)
        )
        self.victory_threshold = int(
            game_config.get("victory_threshold", VICTORY_THRESHOLD)
        )
        self.veteran_battles = int(game_config.get("veteran_battles", VETERAN_BATTLES))
        self.adaptive_enabled = bool(game_config.get("adaptive_difficulty", False))
        self._delay_catch_mistake = float(
            delays.get("catch_mistake", SOLUTION_DELAY_CATCH_MISTAKE)
        )
        self._delay_veteran = float(
            delays.get("catch_mistake_veteran", SOLUTION_DELAY_VETERAN)
        )
        self._delay_default = float(delays.get("default", SOLUTION_DELAY_DEFAULT))

        # 설정 (setup 단계)
        self.grade: int | None = None
        self.subject: str | None = None
        self.difficulty: str = DEFAULT_DIFFICULTY
        self.question_format: str | None = None
        self.topic: str | None = None

        self.phase = PHASE_SETUP
        self.opponent_id: str | None = None
        self.battles_played = 0
        self.fallback_questions = 0
        self.result: BattleResult | None = None
        self._reset_rounds()

    # =========================================================================
    # Internal state
    # =========================================================================

    def _reset_rounds(self) -> None:
        self.current_round = 1
        self.score = 0
        self.streak = 0
        self.best_streak = 0
        self.is_active = False
        self.current_problem: Problem | None = None
        self.showing_solution = False
        self.used_power_ups: list[str] = []
        self.double_points_remaining = 0
        self.rounds: list[RoundRecord] = []
        self.hints_revealed = 0
        self.last_reaction = ""
        self.last_check: AnswerCheck | None = None
        self.encouragement = ""
        self.badges: list[str] = []
        self._reset_timer()

    def _reset_timer(self) -> None:
        self._time_budget = self.round_time_limit
        self._consumed = 0.0
        self._last_tick: float | None = None
        self._revealed_at: float | None = None
        self._slow_until: float | None = None

    def _require_phase(self, *phases: str) -> None:
        if self.phase not in phases:
            raise GameRuleError(
                ErrorCodes.INVALID_PHASE,
                phase=self.phase,
                expected=list(phases),
            )

    def _require_problem(self) -> Problem:
        if self.current_problem is None:
            raise GameRuleError(ErrorCodes.NO_PROBLEM, round=self.current_round)
        return self.current_problem

    def _react(self, kind: str) -> str:
        opponent = catalog.get_opponent(self.opponent_id) if self.opponent_id else None
        lines = opponent.reactions.get(kind, []) if opponent else []
        self.last_reaction = self._rng.choice(lines) if lines else ""
        return self.last_reaction

    # =========================================================================
    # Timer
    # =========================================================================

    def _advance_clock(self) -> None:
        """마지막 tick 이후 흐른 시간을 게임 시간으로 누적 (slowTime 구간은 절반 속도)."""
        if self.phase != PHASE_SOLUTION or self._last_tick is None:
            return
        now = self._clock()
        start = self._last_tick
        slow_end = start
        if self._slow_until is not None:
            slow_end = min(max(self._slow_until, start), now)
        self._consumed += (slow_end - start) * SLOW_TIME_SCALE + (now - slow_end)
        self._last_tick = now

    @property
    def time_left(self) -> int:
        """남은 시간 (정수 초, 올림)."""
        remaining = self._time_budget - self._consumed
        return max(math.ceil(remaining), 0)

    def _elapsed(self) -> float:
        if self._revealed_at is None:
            return 0.0
        return max(self._clock() - self._revealed_at, 0.0)

    def tick(self) -> None:
        """시계 반영. solution 단계에서 시간이 다 되면 time-up 처리."""
        self._advance_clock()
        if self.phase == PHASE_SOLUTION and self._consumed >= self._time_budget:
            self._time_up()

    def _time_up(self) -> None:
        problem = self._require_problem()
        self.streak = 0
        self._record_round(RoundRecord(
            round=self.current_round,
            problem_id=problem.id,
            format=problem.format,
            correct=False,
            response_time=round(self._elapsed(), 2),
            timed_out=True,
        ))
        self._consume_double_points()
        self.last_check = None
        self.phase = PHASE_FEEDBACK
        self._react("victory")
        logger.info(f"[{self.battle_id}] round {self.current_round} timed out")

    # =========================================================================
    # Setup
    # =========================================================================

    def configure(
        self,
        grade: int | None = None,
        subject: str | None = None,
        difficulty: str | None = None,
        question_format: str | None = None,
        topic: str | None = None,
    ) -> None:
        """
        학년/과목/난이도/형식/주제 선택.

        Raises:
            GameRuleError: INVALID_PHASE, INVALID_DIFFICULTY, INVALID_FORMAT
        """
        self._require_phase(PHASE_SETUP)
        if difficulty is not None and difficulty not in DIFFICULTIES:
            raise GameRuleError(ErrorCodes.INVALID_DIFFICULTY, difficulty=difficulty)
        if question_format and question_format not in (
            QUESTION_FORMATS + RANDOM_FORMATS
        ):
            raise GameRuleError(ErrorCodes.INVALID_FORMAT, format=question_format)

        if grade is not None:
            self.grade = int(grade)
        if subject:
            self.subject = subject
        if difficulty:
            self.difficulty = difficulty
        if question_format:
            self.question_format = question_format
        if topic:
            self.topic = topic

    def start(self) -> None:
        """
        배틀 시작 → 상대 선택.

        Raises:
            GameRuleError: SETUP_INCOMPLETE (학년 또는 과목 미선택)
        """
        self._require_phase(PHASE_SETUP)
        if not self.grade or not self.subject:
            raise GameRuleError(
                ErrorCodes.SETUP_INCOMPLETE, grade=self.grade, subject=self.subject
            )
        self.phase = PHASE_OPPONENT_SELECT

    def select_opponent(self, opponent_id: str, profile: PlayerProfile) -> None:
        """
        상대 선택 → 라운드 1 문제 단계.

        Raises:
            GameRuleError: UNKNOWN_OPPONENT, OPPONENT_LOCKED
        """
        self._require_phase(PHASE_OPPONENT_SELECT)
        if catalog.get_opponent(opponent_id) is None:
            raise GameRuleError(ErrorCodes.UNKNOWN_OPPONENT, opponent_id=opponent_id)
        if not is_opponent_selectable(profile, opponent_id):
            raise GameRuleError(ErrorCodes.OPPONENT_LOCKED, opponent_id=opponent_id)

        self._reset_rounds()
        self.opponent_id = opponent_id
        self.battles_played = profile.battles_played
        self.is_active = True
        self.result = None
        self.phase = PHASE_PROBLEM
        logger.info(f"[{self.battle_id}] opponent selected: {opponent_id}")

    # =========================================================================
    # Rounds
    # =========================================================================

    def problem_difficulty(self) -> str:
        """이번 라운드 문제 난이도 (adaptive_difficulty 켜져 있으면 성과 기반 조정)."""
        if self.adaptive_enabled and self.tracker is not None:
            return self.tracker.adaptive_difficulty(self.player_id, self.difficulty)
        return self.difficulty

    def present_problem(self, problem: Problem, fallback: bool = False) -> None:
        """
        이번 라운드 문제 제시. 타이머는 reveal 전까지 멈춰 있음.

        Args:
            problem: 생성된 문제
            fallback: 폴백 은행에서 온 문제 여부 (로그용)
        """
        self._require_phase(PHASE_PROBLEM)
        problem.opponent_id = self.opponent_id
        self.current_problem = problem
        self.showing_solution = False
        self.hints_revealed = 0
        self.last_check = None
        self._reset_timer()
        if fallback:
            self.fallback_questions += 1
        self.last_reaction = self._rng.choice(PROBLEM_TAUNTS)

    def solution_delay(self) -> float:
        """문제 제시 → 풀이 공개까지 대기 시간 (초)."""
        problem = self._require_problem()
        if problem.format == FORMAT_CATCH_MISTAKE:
            if self.battles_played > self.veteran_battles:
                return self._delay_veteran
            return self._delay_catch_mistake
        return self._delay_default

    def reveal(self) -> None:
        """풀이 공개 → solution 단계, 타이머 시작."""
        self._require_phase(PHASE_PROBLEM)
        problem = self._require_problem()
        now = self._clock()
        self.showing_solution = problem.format == FORMAT_CATCH_MISTAKE
        self._revealed_at = now
        self._last_tick = now
        self.last_reaction = ""
        self.phase = PHASE_SOLUTION

    def answer(self, value: Any) -> AnswerCheck:
        """
        답 제출.

        catch-mistake 는 "풀이가 맞다" 여부(bool), 나머지 형식은 형식별 응답.

        Raises:
            GameRuleError: INVALID_PHASE (시간 초과 포함), INVALID_ANSWER
        """
        self.tick()
        self._require_phase(PHASE_SOLUTION)
        problem = self._require_problem()

        check = check_answer(problem, value)
        response_time = round(self._elapsed(), 2)
        points = 0
        if check.correct:
            points = calculate_points(
                self.time_left,
                self.streak,
                self.difficulty,
                double_points=self.double_points_remaining > 0,
            )
            self.score += points
            self.streak += 1
            self.best_streak = max(self.best_streak, self.streak)
            self._react("defeat")
        else:
            self.streak = 0
            self._react("victory")

        self._record_round(RoundRecord(
            round=self.current_round,
            problem_id=problem.id,
            format=problem.format,
            correct=check.correct,
            response_time=response_time,
            points=points,
            caught_mistake=check.caught_mistake,
        ))
        self._consume_double_points()
        if self.tracker is not None:
            self.tracker.update(
                self.player_id,
                check.correct,
                response_time,
                problem.subject,
                problem.topic,
            )

        self.last_check = check
        self.phase = PHASE_FEEDBACK
        return check

    def _record_round(self, record: RoundRecord) -> None:
        self.rounds.append(record)

    def _consume_double_points(self) -> None:
        if self.double_points_remaining > 0:
            self.double_points_remaining -= 1

    def advance(self) -> BattleResult | None:
        """
        feedback → 다음 라운드(problem) 또는 마지막 라운드 후 종료.

        Returns:
            종료되면 BattleResult, 아니면 None
        """
        self.tick()
        self._require_phase(PHASE_FEEDBACK)
        return self._next_round()

    def _next_round(self) -> BattleResult | None:
        if self.current_round >= self.total_rounds:
            return self.finish()
        self.current_round += 1
        self.current_problem = None
        self.showing_solution = False
        self.last_check = None
        self._reset_timer()
        self.phase = PHASE_PROBLEM
        return None

    # =========================================================================
    # Power-ups
    # =========================================================================

    def use_power_up(self, power_up_id: str, profile: PlayerProfile) -> dict[str, Any]:
        """
        파워업 사용 (보유량 1 차감 후 효과 적용).

        효과:
        - extraTime: 남은 시간 +10초
        - hint: 다음 힌트 공개
        - skip: 벌점 없이 다음 라운드로
        - doublePoints: 다음 3문제 점수 2배
        - slowTime: 30초 동안 타이머 절반 속도

        Raises:
            GameRuleError: INVALID_PHASE, UNKNOWN_POWER_UP, NO_POWER_UP,
                NO_HINT_AVAILABLE
        """
        self.tick()
        self._require_phase(PHASE_PROBLEM, PHASE_SOLUTION)
        problem = self._require_problem()

        if power_up_id == "hint" and self.hints_revealed >= len(problem.hints):
            raise GameRuleError(ErrorCodes.NO_HINT_AVAILABLE, problem_id=problem.id)

        power_up = consume_power_up(profile, power_up_id)
        self.used_power_ups.append(power_up.id)
        effect: dict[str, Any] = {"powerUp": power_up.id}

        if power_up.effect == "extraTime":
            self._time_budget += EXTRA_TIME_SECONDS
            effect["timeLeft"] = self.time_left
        elif power_up.effect == "hint":
            effect["hint"] = problem.hints[self.hints_revealed]
            self.hints_revealed += 1
        elif power_up.effect == "skip":
            self._record_round(RoundRecord(
                round=self.current_round,
                problem_id=problem.id,
                format=problem.format,
                correct=False,
                response_time=round(self._elapsed(), 2),
                skipped=True,
            ))
            effect["finished"] = self._next_round() is not None
        elif power_up.effect == "doublePoints":
            self.double_points_remaining = power_up.duration or DOUBLE_POINTS_QUESTIONS
            effect["remaining"] = self.double_points_remaining
        elif power_up.effect == "slowTime":
            duration = power_up.duration or SLOW_TIME_SECONDS
            self._slow_until = self._clock() + duration

        logger.info(f"[{self.battle_id}] power-up used: {power_up.id}")
        return effect

    # =========================================================================
    # Finish
    # =========================================================================

    def finish(self) -> BattleResult:
        """배틀 종료 → victory 단계, 결과 계산."""
        answered = [r for r in self.rounds if not r.skipped]
        correct = sum(1 for r in answered if r.correct)
        accuracy = round(correct / len(answered) * 100, 1) if answered else 0.0
        average_time = (
            round(sum(r.response_time for r in answered) / len(answered), 2)
            if answered
            else self.round_time_limit
        )

        self.result = BattleResult(
            won=self.score > self.victory_threshold,
            score=self.score,
            accuracy=accuracy,
            average_response_time=average_time,
            mistakes_caught=sum(1 for r in self.rounds if r.caught_mistake),
            best_streak=self.best_streak,
            opponent_id=self.opponent_id,
            difficulty=self.difficulty,
            rounds=list(self.rounds),
        )
        self.encouragement = encouragement(
            performance_label(accuracy), self._rng
        )
        self.badges = session_badges(
            self.best_streak, correct, average_time, self.result.mistakes_caught
        )
        self.is_active = False
        self.current_problem = None
        self.phase = PHASE_VICTORY
        logger.info(
            f"[{self.battle_id}] finished: score={self.score} won={self.result.won}"
        )
        return self.result

    def play_again(self) -> None:
        """결과 화면 → 상대 선택 (설정 유지, 라운드 기록 초기화)."""
        self._require_phase(PHASE_VICTORY)
        self._reset_rounds()
        self.result = None
        self.phase = PHASE_OPPONENT_SELECT

    def reset(self) -> None:
        """처음(setup)으로."""
        self._reset_rounds()
        self.grade = None
        self.subject = None
        self.difficulty = DEFAULT_DIFFICULTY
        self.question_format = None
        self.topic = None
        self.opponent_id = None
        self.result = None
        self.phase = PHASE_SETUP

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """현재 상태 스냅샷. 정답 정보는 feedback/victory 단계에서만 공개."""
        self.tick()
        reveal = self.phase in (PHASE_FEEDBACK, PHASE_VICTORY)
        problem = self.current_problem
        data: dict[str, Any] = {
            "battleId": self.battle_id,
            "playerId": self.player_id,
            "phase": self.phase,
            "currentRound": self.current_round,
            "totalRounds": self.total_rounds,
            "score": self.score,
            "streak": self.streak,
            "bestStreak": self.best_streak,
            "timeLeft": self.time_left,
            "isActive": self.is_active,
            "selectedGrade": self.grade,
            "selectedSubject": self.subject,
            "selectedDifficulty": self.difficulty,
            "selectedFormat": self.question_format,
            "selectedTopic": self.topic,
            "selectedOpponent": self.opponent_id,
            "showingSolution": self.showing_solution,
            "usedPowerUps": self.used_power_ups,
            "doublePointsRemaining": self.double_points_remaining,
            "opponentReaction": self.last_reaction,
            "currentProblem": problem.to_dict(reveal=reveal) if problem else None,
            "revealedHints": problem.hints[: self.hints_revealed] if problem else [],
            "rounds": [r.to_dict() for r in self.rounds],
        }
        if problem is not None and self.phase == PHASE_PROBLEM:
            data["solutionDelay"] = self.solution_delay()
        if self.last_check is not None:
            data["lastAnswer"] = {
                "correct": self.last_check.correct,
                "caughtMistake": self.last_check.caught_mistake,
                "expected": self.last_check.expected,
            }
        if self.result is not None:
            data["result"] = self.result.to_dict()
            data["encouragement"] = self.encouragement
            data["badges"] = self.badges
        return data
