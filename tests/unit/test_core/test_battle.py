"""
test_battle.py - BattleSession 상태 머신 테스트

검증 포인트:
1. setup → opponent-select → problem → solution → feedback → victory
2. 타이머: 주입된 시계 기준, 시간 초과 = 연속 정답 초기화
3. 점수 공식 / 승리 조건 (score > 500)
4. 파워업 효과 5종
"""

import random

import pytest

from src.core.battle import PROBLEM_TAUNTS, BattleSession
from src.domain import catalog
from src.domain.errors import ErrorCodes, GameRuleError

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def session(game_config, clock) -> BattleSession:
    """설정 완료 + 시작된 세션 (opponent-select 단계)."""
    session = BattleSession(
        "BATTLE-TEST", "player-1", game_config, clock=clock, rng=random.Random(0)
    )
    session.configure(grade=1, subject="math", difficulty="normal")
    session.start()
    return session


@pytest.fixture
def in_problem(session, profile, problem) -> BattleSession:
    """iron-man 선택 + 라운드 1 문제 제시."""
    session.select_opponent("iron-man", profile)
    session.present_problem(problem)
    return session


@pytest.fixture
def in_solution(in_problem) -> BattleSession:
    in_problem.reveal()
    return in_problem


def reactions(kind: str) -> list[str]:
    return catalog.get_opponent("iron-man").reactions[kind]


# =============================================================================
# Setup
# =============================================================================


class TestSetup:
    """설정/시작 규칙."""

    def test_start_without_grade_and_subject_rejected(self, game_config):
        """학년/과목 없이 시작 불가."""
        session = BattleSession("B", config=game_config)

        with pytest.raises(GameRuleError) as exc_info:
            session.start()

        assert exc_info.value.code == ErrorCodes.SETUP_INCOMPLETE
        assert session.phase == "setup"

    def test_start_without_subject_rejected(self, game_config):
        session = BattleSession("B", config=game_config)
        session.configure(grade=3)

        with pytest.raises(GameRuleError):
            session.start()

    def test_start_moves_to_opponent_select(self, session):
        """학년+과목 있으면 상대 선택으로."""
        assert session.phase == "opponent-select"

    def test_invalid_difficulty_rejected(self, game_config):
        session = BattleSession("B", config=game_config)

        with pytest.raises(GameRuleError) as exc_info:
            session.configure(grade=1, subject="math", difficulty="legendary")

        assert exc_info.value.code == ErrorCodes.INVALID_DIFFICULTY

    def test_invalid_format_rejected(self, game_config):
        session = BattleSession("B", config=game_config)

        with pytest.raises(GameRuleError) as exc_info:
            session.configure(grade=1, subject="math", question_format="essay")

        assert exc_info.value.code == ErrorCodes.INVALID_FORMAT

    def test_mix_format_accepted(self, game_config):
        session = BattleSession("B", config=game_config)
        session.configure(grade=1, subject="math", question_format="mix")

        assert session.question_format == "mix"

    def test_configure_after_start_rejected(self, session):
        """setup 단계에서만 설정 변경 가능."""
        with pytest.raises(GameRuleError) as exc_info:
            session.configure(grade=2)

        assert exc_info.value.code == ErrorCodes.INVALID_PHASE


# =============================================================================
# Opponent Selection
# =============================================================================


class TestSelectOpponent:
    """상대 선택."""

    def test_unlocked_opponent_starts_round_one(self, session, profile):
        session.select_opponent("iron-man", profile)

        assert session.phase == "problem"
        assert session.opponent_id == "iron-man"
        assert session.current_round == 1
        assert session.score == 0
        assert session.is_active is True

    def test_locked_opponent_rejected(self, session, profile):
        with pytest.raises(GameRuleError) as exc_info:
            session.select_opponent("thanos", profile)

        assert exc_info.value.code == ErrorCodes.OPPONENT_LOCKED
        assert session.phase == "opponent-select"

    def test_unknown_opponent_rejected(self, session, profile):
        with pytest.raises(GameRuleError) as exc_info:
            session.select_opponent("loki", profile)

        assert exc_info.value.code == ErrorCodes.UNKNOWN_OPPONENT

    def test_snapshot_of_battles_played(self, session, profile):
        """solution delay 판단용 전적 스냅샷."""
        profile.battles_played = 7
        session.select_opponent("iron-man", profile)

        assert session.battles_played == 7


# =============================================================================
# Problem / Reveal
# =============================================================================


class TestProblemPhase:
    """문제 제시와 풀이 공개."""

    def test_present_sets_taunt(self, in_problem):
        assert in_problem.last_reaction in PROBLEM_TAUNTS
        assert in_problem.current_problem.opponent_id == "iron-man"

    def test_catch_mistake_delay_is_three_seconds(self, in_problem):
        assert in_problem.solution_delay() == 3.0

    def test_veteran_delay_is_one_second(self, session, profile, problem):
        """battles_played > 5 이면 1초."""
        profile.battles_played = 6
        session.select_opponent("iron-man", profile)
        session.present_problem(problem)

        assert session.solution_delay() == 1.0

    def test_other_format_delay_is_one_second(self, session, profile, problem_factory):
        session.select_opponent("iron-man", profile)
        session.present_problem(problem_factory(fmt="multiple-choice"))

        assert session.solution_delay() == 1.0

    def test_reveal_starts_solution_phase(self, in_solution):
        assert in_solution.phase == "solution"
        assert in_solution.showing_solution is True
        assert in_solution.time_left == 15

    def test_answer_before_reveal_rejected(self, in_problem):
        with pytest.raises(GameRuleError) as exc_info:
            in_problem.answer(False)

        assert exc_info.value.code == ErrorCodes.INVALID_PHASE

    def test_timer_does_not_run_before_reveal(self, in_problem, clock):
        clock.advance(100)
        in_problem.tick()

        assert in_problem.phase == "problem"
        assert in_problem.time_left == 15


# =============================================================================
# Answers / Scoring
# =============================================================================


class TestAnswer:
    """답 제출과 점수."""

    def test_correct_catch_scores_points(self, in_solution, clock):
        """실수 있는 풀이에 '틀렸다' → 정답."""
        clock.advance(4.2)  # time_left = ceil(10.8) = 11

        check = in_solution.answer(False)

        assert check.correct is True
        assert check.caught_mistake is True
        # floor((100 + 11*5 + 0*10) * 1.2) = 186
        assert in_solution.score == 186
        assert in_solution.streak == 1
        assert in_solution.phase == "feedback"
        assert in_solution.last_reaction in reactions("defeat")

    def test_wrong_answer_resets_streak(self, in_solution):
        in_solution.streak = 3

        check = in_solution.answer(True)

        assert check.correct is False
        assert in_solution.streak == 0
        assert in_solution.score == 0
        assert in_solution.last_reaction in reactions("victory")

    def test_streak_bonus_uses_previous_streak(self, in_solution):
        in_solution.streak = 2

        in_solution.answer(False)

        # floor((100 + 15*5 + 2*10) * 1.2) = 234
        assert in_solution.score == 234
        assert in_solution.best_streak == 3

    def test_round_recorded(self, in_solution, clock):
        clock.advance(2)
        in_solution.answer(False)

        record = in_solution.rounds[-1]
        assert record.round == 1
        assert record.correct is True
        assert record.response_time == 2.0
        assert record.points == 198  # floor((100 + 13*5) * 1.2)

    def test_invalid_answer_value(self, in_solution):
        with pytest.raises(GameRuleError) as exc_info:
            in_solution.answer("maybe")

        assert exc_info.value.code == ErrorCodes.INVALID_ANSWER
        assert in_solution.phase == "solution"


# =============================================================================
# Timer
# =============================================================================


class TestTimer:
    """시간 초과."""

    def test_time_up_moves_to_feedback(self, in_solution, clock):
        in_solution.streak = 4
        clock.advance(15)

        in_solution.tick()

        assert in_solution.phase == "feedback"
        assert in_solution.streak == 0
        assert in_solution.time_left == 0
        assert in_solution.rounds[-1].timed_out is True
        assert in_solution.last_reaction in reactions("victory")

    def test_answer_after_time_up_rejected(self, in_solution, clock):
        clock.advance(20)

        with pytest.raises(GameRuleError) as exc_info:
            in_solution.answer(False)

        assert exc_info.value.code == ErrorCodes.INVALID_PHASE
        assert in_solution.score == 0

    def test_time_left_rounds_up(self, in_solution, clock):
        clock.advance(0.5)
        in_solution.tick()

        assert in_solution.time_left == 15


# =============================================================================
# Power-ups
# =============================================================================


class TestPowerUps:
    """파워업 효과."""

    def test_extra_time_adds_ten_seconds(self, in_solution, profile, clock):
        clock.advance(14)

        effect = in_solution.use_power_up("extraTime", profile)

        assert effect["timeLeft"] == 11
        assert profile.power_ups["extraTime"] == 2
        assert in_solution.used_power_ups == ["extraTime"]

    def test_hint_reveals_next_hint(self, in_solution, profile):
        effect = in_solution.use_power_up("hint", profile)

        assert effect["hint"] == "Count on from 5"
        assert in_solution.hints_revealed == 1
        assert profile.power_ups["hint"] == 1

    def test_hint_not_consumed_when_none_left(self, in_solution, profile):
        profile.power_ups["hint"] = 5
        in_solution.use_power_up("hint", profile)
        in_solution.use_power_up("hint", profile)

        with pytest.raises(GameRuleError) as exc_info:
            in_solution.use_power_up("hint", profile)

        assert exc_info.value.code == ErrorCodes.NO_HINT_AVAILABLE
        assert profile.power_ups["hint"] == 3

    def test_skip_moves_to_next_round(self, in_problem, profile):
        effect = in_problem.use_power_up("skip", profile)

        assert effect["finished"] is False
        assert in_problem.current_round == 2
        assert in_problem.phase == "problem"
        assert in_problem.current_problem is None
        assert in_problem.rounds[0].skipped is True
        assert in_problem.streak == 0

    def test_double_points_for_three_questions(self, in_problem, profile):
        profile.power_ups["doublePoints"] = 1
        in_problem.use_power_up("doublePoints", profile)
        in_problem.reveal()

        in_problem.answer(False)

        # floor((100 + 15*5) * 1.2) * 2
        assert in_problem.score == 420
        assert in_problem.double_points_remaining == 2

    def test_slow_time_halves_timer(self, in_solution, profile, clock):
        profile.power_ups["slowTime"] = 1
        in_solution.use_power_up("slowTime", profile)

        clock.advance(10)
        in_solution.tick()

        # 10초 경과 중 절반만 소모
        assert in_solution.time_left == 10

    def test_not_owned_rejected(self, in_solution, profile):
        with pytest.raises(GameRuleError) as exc_info:
            in_solution.use_power_up("slowTime", profile)

        assert exc_info.value.code == ErrorCodes.NO_POWER_UP

    def test_unknown_power_up_rejected(self, in_solution, profile):
        with pytest.raises(GameRuleError) as exc_info:
            in_solution.use_power_up("teleport", profile)

        assert exc_info.value.code == ErrorCodes.UNKNOWN_POWER_UP

    def test_not_usable_in_feedback(self, in_solution, profile):
        in_solution.answer(False)

        with pytest.raises(GameRuleError) as exc_info:
            in_solution.use_power_up("extraTime", profile)

        assert exc_info.value.code == ErrorCodes.INVALID_PHASE
        assert profile.power_ups["extraTime"] == 3


# =============================================================================
# Full Battle
# =============================================================================


def play_round(session: BattleSession, problem, claims_correct: bool):
    session.present_problem(problem)
    session.reveal()
    session.answer(claims_correct)
    return session.advance()


class TestFullBattle:
    """5라운드 진행 + 결과."""

    def test_perfect_battle_wins(self, session, profile, problem_factory):
        session.select_opponent("iron-man", profile)

        result = None
        for i in range(5):
            result = play_round(session, problem_factory(f"q{i}"), False)

        # 210 + 222 + 234 + 246 + 258
        assert result is not None
        assert result.score == 1170
        assert result.won is True
        assert result.accuracy == 100.0
        assert result.best_streak == 5
        assert result.mistakes_caught == 5
        assert session.phase == "victory"
        assert session.is_active is False
        assert session.to_dict()["encouragement"] in catalog.encouragement_messages(
            "excellent"
        )
        badges = session.to_dict()["badges"]
        assert any("STREAK MASTER" in b for b in badges)
        assert not any("EAGLE EYE" in b for b in badges)

    def test_all_wrong_loses(self, session, profile, problem_factory):
        session.select_opponent("iron-man", profile)

        result = None
        for i in range(5):
            result = play_round(session, problem_factory(f"q{i}"), True)

        assert result.won is False
        assert result.score == 0
        assert result.accuracy == 0.0
        assert not any("STREAK MASTER" in b for b in session.to_dict()["badges"])

    def test_score_exactly_threshold_is_not_victory(self, session, profile, problem_factory):
        session.select_opponent("iron-man", profile)
        for i in range(4):
            play_round(session, problem_factory(f"q{i}"), True)
        session.present_problem(problem_factory("q4"))
        session.reveal()
        session.answer(True)
        session.score = 500

        result = session.advance()

        assert result.won is False

    def test_skipped_round_excluded_from_accuracy(self, session, profile, problem_factory):
        session.select_opponent("iron-man", profile)
        session.present_problem(problem_factory("q0"))
        session.use_power_up("skip", profile)

        result = None
        for i in range(1, 5):
            result = play_round(session, problem_factory(f"q{i}"), False)

        assert result.accuracy == 100.0
        assert len(result.rounds) == 5

    def test_skip_on_last_round_finishes(self, session, profile, problem_factory):
        profile.power_ups["skip"] = 1
        session.select_opponent("iron-man", profile)
        for i in range(4):
            play_round(session, problem_factory(f"q{i}"), False)
        session.present_problem(problem_factory("q4"))

        effect = session.use_power_up("skip", profile)

        assert effect["finished"] is True
        assert session.phase == "victory"
        assert session.result is not None

    def test_play_again_returns_to_opponent_select(self, session, profile, problem_factory):
        session.select_opponent("iron-man", profile)
        for i in range(5):
            play_round(session, problem_factory(f"q{i}"), False)

        session.play_again()

        assert session.phase == "opponent-select"
        assert session.score == 0
        assert session.rounds == []
        assert session.grade == 1

    def test_reset_returns_to_setup(self, in_solution):
        in_solution.reset()

        assert in_solution.phase == "setup"
        assert in_solution.grade is None
        assert in_solution.opponent_id is None


# =============================================================================
# Snapshot
# =============================================================================


class TestToDict:
    """상태 스냅샷."""

    def test_answer_hidden_during_solution(self, in_solution):
        data = in_solution.to_dict()

        assert data["phase"] == "solution"
        assert "hasError" not in data["currentProblem"]
        assert "correctAnswer" not in data["currentProblem"]
        assert data["timeLeft"] == 15

    def test_answer_revealed_in_feedback(self, in_solution):
        in_solution.answer(False)

        data = in_solution.to_dict()

        assert data["currentProblem"]["hasError"] is True
        assert data["lastAnswer"]["correct"] is True

    def test_problem_phase_includes_delay(self, in_problem):
        data = in_problem.to_dict()

        assert data["solutionDelay"] == 3.0
        assert data["selectedOpponent"] == "iron-man"
