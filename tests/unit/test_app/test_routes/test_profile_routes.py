"""
test_profile.py - Profile Routes 유닛 테스트
"""

import json

from src.core.logging import complete_battle_log, create_battle_log, save_battle_log


def give_score(api_app, total_score: int, player_id: str = "player-1") -> None:
    def apply(profile):
        profile.total_score = total_score

    api_app.state.profile_store.update(player_id, apply)


# =============================================================================
# Catalog
# =============================================================================


class TestCatalogRoutes:
    """상대/파워업/업적/주제 목록."""

    def test_opponents(self, client):
        opponents = client.get("/api/opponents").json()

        assert [o["id"] for o in opponents][:2] == ["iron-man", "spider-man"]
        assert len(opponents) == 8
        assert opponents[0]["unlocked"] is True
        assert opponents[-1]["unlocked"] is False

    def test_power_ups_with_inventory(self, client):
        power_ups = {p["id"]: p for p in client.get("/api/power-ups").json()}

        assert power_ups["extraTime"]["owned"] == 3
        assert power_ups["slowTime"]["owned"] == 0
        assert power_ups["slowTime"]["cost"] == 300
        assert power_ups["extraTime"]["affordable"] is False

    def test_achievements(self, client):
        achievements = client.get("/api/achievements").json()

        assert achievements[0]["id"] == "first-victory"
        assert all(a["unlocked"] is False for a in achievements)

    def test_topics_filtered(self, client):
        topics = client.get(
            "/api/topics", params={"grade": 1, "subject": "math", "difficulty": "easy"}
        ).json()

        assert "math-1-addition" in [t["id"] for t in topics]
        assert all(t["grade"] == 1 and t["subject"] == "math" for t in topics)


# =============================================================================
# Profile
# =============================================================================


class TestProfileRoutes:
    """프로필 조회/초기화/구매."""

    def test_default_profile(self, client):
        profile = client.get("/api/profile").json()

        assert profile["id"] == "player-1"
        assert profile["level"] == 1
        assert profile["unlockedOpponents"] == ["iron-man"]

    def test_other_player(self, client, api_app):
        give_score(api_app, 900, player_id="kid-2")

        assert client.get("/api/profile", params={"player_id": "kid-2"}).json()[
            "totalScore"
        ] == 900
        assert client.get("/api/profile").json()["totalScore"] == 0

    def test_purchase(self, client, api_app):
        give_score(api_app, 400)

        response = client.post("/api/profile/power-ups/hint/purchase")

        data = response.json()
        assert response.status_code == 200
        assert data["owned"] == 3
        assert data["profile"]["totalScore"] == 250
        assert data["powerUp"]["id"] == "hint"

    def test_purchase_insufficient(self, client):
        response = client.post("/api/profile/power-ups/slowTime/purchase")

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INSUFFICIENT_SCORE"

    def test_purchase_unknown(self, client):
        response = client.post("/api/profile/power-ups/teleport/purchase")

        assert response.status_code == 404

    def test_reset(self, client, api_app):
        give_score(api_app, 1000)

        data = client.delete("/api/profile").json()

        assert data["removed"] is True
        assert data["profile"]["totalScore"] == 0

    def test_invalid_player_id(self, client):
        response = client.get("/api/profile", params={"player_id": "kid.2"})

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_PLAYER_ID"


class TestBattleLogRoutes:
    """배틀 로그 목록."""

    def test_player_logs(self, client, api_app):
        logs_dir = api_app.state.battle_logs_dir
        mine = create_battle_log("BATTLE-A", "player-1", 1, "math", "easy")
        complete_battle_log(mine, None)
        save_battle_log(mine, logs_dir)
        save_battle_log(create_battle_log("BATTLE-B", "kid-2", 1, "math", "easy"), logs_dir)
        (logs_dir / "battle_BROKEN.json").write_text("{", encoding="utf-8")

        logs = client.get("/api/profile/battles").json()

        assert [log["battle_id"] for log in logs] == ["BATTLE-A"]
        assert logs[0]["result"] == "abandoned"

    def test_no_logs(self, client):
        assert client.get("/api/profile/battles").json() == []

    def test_log_file_is_json(self, client, api_app):
        path = save_battle_log(
            create_battle_log("BATTLE-C", "player-1", 2, "science", "hard"),
            api_app.state.battle_logs_dir,
        )

        assert json.loads(path.read_text(encoding="utf-8"))["subject"] == "science"
