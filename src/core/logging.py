"""
Battle logging: 배틀 로그 파일 + 서버 로깅 설정.

규칙:
- 배틀 1판 = battle_<battle_id>.json 1개
- 라운드 결과는 RoundRecord 로 누적, 종료 시 result = won | lost | abandoned
- 요청 실패는 에러 로그 파일(logs/server-error.log)에 traceback 과 함께 남김
"""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from src.core.storage import atomic_write_json
from src.domain.schemas import BattleLog, BattleResult

DEFAULT_ERROR_LOG = "server-error.log"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# =============================================================================
# Logging Setup
# =============================================================================


def configure_logging(config: dict) -> Path | None:
    """
    루트 로거 레벨 설정 + 에러 파일 핸들러 부착.

    Args:
        config: 설정 (logging.level, logging.error_log, paths.logs_dir)

    Returns:
        에러 로그 파일 경로 (파일 핸들러를 붙이지 못했으면 None)
    """
    log_config = config.get("logging", {})
    level = str(log_config.get("level", "INFO")).upper()

    root = logging.getLogger()
    root.setLevel(level)
    if not any(type(h) is logging.StreamHandler for h in root.handlers):
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(stream)

    logs_dir = Path(config.get("paths", {}).get("logs_dir", "logs"))
    error_log = logs_dir / log_config.get("error_log", DEFAULT_ERROR_LOG)

    for handler in root.handlers:
        if (
            isinstance(handler, logging.FileHandler)
            and Path(handler.baseFilename).resolve() == error_log.resolve()
        ):
            return error_log

    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(error_log, encoding="utf-8")
    except OSError as e:
        logging.getLogger(__name__).warning(
            f"Error log disabled ({error_log}): {e}"
        )
        return None

    file_handler.setLevel(logging.ERROR)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(file_handler)
    return error_log


# =============================================================================
# Battle Log Management
# =============================================================================


def create_battle_log(
    battle_id: str,
    player_id: str,
    grade: int | None = None,
    subject: str | None = None,
    difficulty: str | None = None,
) -> BattleLog:
    """새 BattleLog 생성 (result = pending)."""
    log = BattleLog(
        battle_id=battle_id,
        player_id=player_id,
        started_at=datetime.now(UTC).isoformat(),
        grade=grade,
        subject=subject,
    )
    if difficulty:
        log.difficulty = difficulty
    return log


def complete_battle_log(
    battle_log: BattleLog,
    result: BattleResult | None,
    fallback_questions: int = 0,
) -> None:
    """
    BattleLog 완료 처리.

    Args:
        battle_log: BattleLog 인스턴스
        result: 배틀 결과 (None 이면 중도 포기)
        fallback_questions: 폴백 은행에서 나온 문제 수
    """
    battle_log.finished_at = datetime.now(UTC).isoformat()
    battle_log.fallback_questions = fallback_questions

    if result is None:
        battle_log.result = "abandoned"
        return

    battle_log.result = "won" if result.won else "lost"
    battle_log.opponent_id = result.opponent_id
    battle_log.difficulty = result.difficulty
    battle_log.score = result.score
    battle_log.rounds = list(result.rounds)


def save_battle_log(battle_log: BattleLog, logs_dir: Path) -> Path:
    """BattleLog 를 battle_<id>.json 으로 저장."""
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"battle_{battle_log.battle_id}.json"
    atomic_write_json(log_path, battle_log.to_dict())
    return log_path


def load_battle_log(log_path: Path) -> dict[str, Any]:
    data: dict[str, Any] = json.loads(log_path.read_text(encoding="utf-8"))
    return data


def list_battle_logs(logs_dir: Path, player_id: str | None = None) -> list[Path]:
    """
    배틀 로그 파일 목록.

    Args:
        logs_dir: 배틀 로그 디렉터리
        player_id: 지정 시 해당 플레이어 로그만

    Returns:
        로그 파일 경로 목록 (최신순)
    """
    if not logs_dir.exists():
        return []

    logs = list(logs_dir.glob("battle_*.json"))
    if player_id is not None:
        logs = [p for p in logs if _log_player(p) == player_id]
    logs.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    return logs


def _log_player(log_path: Path) -> str | None:
    try:
        return load_battle_log(log_path).get("player_id")
    except (OSError, json.JSONDecodeError):
        return None
