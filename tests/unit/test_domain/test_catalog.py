"""
test_catalog.py - 정적 게임 데이터 테스트
"""

import random

from src.domain import catalog


class TestOpponents:
    """상대 목록과 해금 순서."""

    def test_order(self):
        ids = [o.id for o in catalog.list_opponents()]

        assert ids == [
            "iron-man",
            "spider-man",
            "batman",
            "wonder-woman",
            "hulk",
            "captain-america",
            "doctor-strange",
            "thanos",
        ]

    def test_unlock_levels_increase(self):
        levels = [o.unlock_level for o in catalog.list_opponents()]

        assert levels == sorted(levels)
        assert catalog.get_opponent("iron-man").unlock_level == 1

    def test_next_and_previous(self):
        assert catalog.next_opponent("iron-man").id == "spider-man"
        assert catalog.next_opponent("thanos") is None
        assert catalog.previous_opponent("spider-man").id == "iron-man"
        assert catalog.previous_opponent("iron-man") is None
        assert catalog.next_opponent("loki") is None

    def test_unlocked_by_level(self):
        assert [o.id for o in catalog.get_unlocked_opponents(2)] == [
            "iron-man",
            "spider-man",
        ]

    def test_unknown(self):
        assert catalog.get_opponent("loki") is None


class TestPowerUpsAndAchievements:
    def test_power_up_costs(self):
        costs = {p.id: p.cost for p in catalog.list_power_ups()}

        assert costs == {
            "extraTime": 100,
            "hint": 150,
            "skip": 200,
            "doublePoints": 250,
            "slowTime": 300,
        }

    def test_durations(self):
        assert catalog.get_power_up("doublePoints").duration == 3
        assert catalog.get_power_up("slowTime").duration == 30
        assert catalog.get_power_up("teleport") is None

    def test_achievement_rewards(self):
        achievements = {a.id: a for a in catalog.list_achievements()}

        assert len(achievements) == 9
        assert achievements["first-victory"].reward_value == "spider-man"
        assert achievements["ultimate-champion"].requirement_type == "opponents"


class TestTopics:
    """주제 목록."""

    def test_grade_subject(self):
        topics = catalog.get_topics(1, "math")

        assert topics
        assert all(t.grade == 1 and t.subject == "math" for t in topics)

    def test_by_difficulty(self):
        topics = catalog.get_topics_by_difficulty("easy")

        assert topics
        assert all(t.difficulty == "easy" for t in topics)

    def test_random_topic(self):
        topic = catalog.random_topic(1, "math", rng=random.Random(0))

        assert topic in catalog.get_topics(1, "math")

    def test_random_topic_missing(self):
        assert catalog.random_topic(1, "astrology") is None


class TestFallbackQuestions:
    """폴백 문제 은행."""

    def test_key(self):
        assert catalog.fallback_key(None, "math", 2) == "iron-man-math-2"

    def test_exact_key(self):
        questions = catalog.fallback_questions("spider-man", "math", 1)

        assert questions
        assert all("Spider-Man" in q["question"] for q in questions)

    def test_default_key(self):
        questions = catalog.fallback_questions("thanos", "art", 12)

        assert questions == catalog.fallback_questions("iron-man", "math", 1)

    def test_returns_copies(self):
        catalog.fallback_questions("iron-man", "math", 1)[0]["question"] = "changed"

        assert catalog.fallback_questions("iron-man", "math", 1)[0]["question"] != "changed"


class TestPromptContexts:
    def test_unknown_grade_context(self):
        assert catalog.grade_context(99, "math") == "General concepts"
