"""
ID 생성: battle_id, question_id (+ player_id 검증)

규칙:
- battle_id 는 배틀 로그 파일명으로도 사용
- question_id 는 라운드 단위로만 유효 (문제는 라운드 후 폐기)
"""

import re
import uuid
from datetime import UTC, datetime

from src.domain.errors import ErrorCodes, GameRuleError

_PLAYER_ID_RE = re.compile(r"[A-Za-z0-9_-]{1,40}")


def generate_battle_id() -> str:
    """
    Battle ID 생성.

    고유성 보장: UUID v4
    포맷: BATTLE-{timestamp}-{uuid[:8]}
    """
    now = datetime.now(UTC)
    timestamp = now.strftime("%Y%m%d%H%M%S")
    unique = uuid.uuid4().hex[:8]

    return f"BATTLE-{timestamp}-{unique}"


def generate_question_id(prefix: str = "q") -> str:
    """
    문제 ID 생성.

    포맷: {prefix}_{epoch_ms}_{uuid[:9]}
    prefix: "q" (LLM 생성) | "fallback" (폴백 은행)
    """
    epoch_ms = int(datetime.now(UTC).timestamp() * 1000)
    unique = uuid.uuid4().hex[:9]
    return f"{prefix}_{epoch_ms}_{unique}"


def validate_player_id(value: str) -> str:
    """
    플레이어 ID 검증 (파일명으로 그대로 사용).

    - 허용: ASCII 영숫자, '-', '_', 1~40자
    - 그 외 문자가 있으면 정리하지 않고 거부

    Raises:
        GameRuleError: INVALID_PLAYER_ID
    """
    if not isinstance(value, str) or not _PLAYER_ID_RE.fullmatch(value):
        raise GameRuleError(ErrorCodes.INVALID_PLAYER_ID, player_id=value)
    return value
