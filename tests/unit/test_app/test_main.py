"""
test_main.py - 앱 설정/상태 초기화 테스트
"""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.app.main import PROJECT_ROOT, app, init_state, load_config, resolve_path


class TestLoadConfig:
    def test_default_yaml(self):
        config = load_config()

        assert config["game"]["total_rounds"] == 5
        assert config["ai"]["llm"]["provider"] == "openai"
        assert config["ai"]["ocr"]["enabled"] is False

    def test_missing_file(self, tmp_path):
        assert load_config(tmp_path / "nope.yaml") == {}


class TestInitState:
    """app.state 구성."""

    def test_paths_resolved(self, tmp_path):
        target = FastAPI()
        config = {"paths": {"profiles_dir": str(tmp_path / "p"), "battle_logs_dir": "data/b"}}

        init_state(target, config)

        assert target.state.profile_store.root == tmp_path / "p"
        assert target.state.battle_logs_dir == PROJECT_ROOT / "data/b"
        assert target.state.battles == {}
        assert target.state.homework_service is None

    def test_relative_path(self):
        assert resolve_path("logs") == PROJECT_ROOT / "logs"


class TestRootEndpoints:
    def test_health(self):
        client = TestClient(app)

        assert client.get("/health").json() == {"status": "ok"}
        assert client.get("/").json()["endpoints"]["battles"] == "/api/battles"
