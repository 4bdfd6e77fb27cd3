"""
Error definitions for the game and homework helper.

규칙:
- 조용한 실패 금지 → GameRuleError 로 명시적 실패
- 라우트에서 HTTPException(detail={"code", "message"}) 로 변환
- LLM/OCR 실패는 providers.base.ProviderError 계열 사용
"""

from typing import Any


class GameRuleError(Exception):
    """
    게임 규칙 위반 시 발생하는 에러.

    사용 예:
    - 학년/과목 없이 배틀 시작
    - 잠긴 상대 선택
    - 보유하지 않은 파워업 사용
    - 점수 부족한 상태에서 구매

    Usage:
        raise GameRuleError("OPPONENT_LOCKED", opponent_id="thanos")
    """

    # 로그에만 남기고 응답(to_dict)에는 넣지 않는 서버 내부 값
    INTERNAL_CONTEXT = frozenset({"lock_dir"})

    def __init__(self, code: str, **context: Any) -> None:
        self.code = code
        self.context = context
        super().__init__(self._format_message())

    @property
    def message(self) -> str:
        return ERROR_MESSAGES.get(self.code, self.code)

    def _format_message(self) -> str:
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"[{self.code}] {ctx_str}" if ctx_str else f"[{self.code}]"

    def to_dict(self) -> dict[str, Any]:
        """JSON 응답용 (INTERNAL_CONTEXT 키 제외)."""
        public = {
            k: v for k, v in self.context.items() if k not in self.INTERNAL_CONTEXT
        }
        return {
            "code": self.code,
            "message": self.message,
            **public,
        }


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """에러 코드 상수. 새 코드 추가 시 ERROR_MESSAGES 에도 추가."""

    # === Battle Setup ===
    SETUP_INCOMPLETE = "SETUP_INCOMPLETE"
    INVALID_DIFFICULTY = "INVALID_DIFFICULTY"
    INVALID_FORMAT = "INVALID_FORMAT"

    # === Opponents ===
    UNKNOWN_OPPONENT = "UNKNOWN_OPPONENT"
    OPPONENT_LOCKED = "OPPONENT_LOCKED"

    # === Phase ===
    INVALID_PHASE = "INVALID_PHASE"
    NO_PROBLEM = "NO_PROBLEM"
    BATTLE_NOT_FOUND = "BATTLE_NOT_FOUND"

    # === Power-ups / Shop ===
    UNKNOWN_POWER_UP = "UNKNOWN_POWER_UP"
    NO_POWER_UP = "NO_POWER_UP"
    INSUFFICIENT_SCORE = "INSUFFICIENT_SCORE"
    NO_HINT_AVAILABLE = "NO_HINT_AVAILABLE"

    # === Answers ===
    INVALID_ANSWER = "INVALID_ANSWER"

    # === Profile Storage ===
    INVALID_PLAYER_ID = "INVALID_PLAYER_ID"
    PROFILE_LOCK_TIMEOUT = "PROFILE_LOCK_TIMEOUT"

    # === Homework Helper ===
    EMPTY_QUESTION = "EMPTY_QUESTION"
    UNSUPPORTED_FILE = "UNSUPPORTED_FILE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"


ERROR_MESSAGES = {
    ErrorCodes.SETUP_INCOMPLETE: "Select a grade and a subject before starting a battle.",
    ErrorCodes.INVALID_DIFFICULTY: "Unknown difficulty.",
    ErrorCodes.INVALID_FORMAT: "Unknown question format.",
    ErrorCodes.UNKNOWN_OPPONENT: "Unknown opponent.",
    ErrorCodes.OPPONENT_LOCKED: "This opponent is still locked.",
    ErrorCodes.INVALID_PHASE: "That action is not allowed in the current phase.",
    ErrorCodes.NO_PROBLEM: "No problem is loaded for this round.",
    ErrorCodes.BATTLE_NOT_FOUND: "Battle not found.",
    ErrorCodes.UNKNOWN_POWER_UP: "Unknown power-up.",
    ErrorCodes.NO_POWER_UP: "You don't have any of this power-up left.",
    ErrorCodes.INSUFFICIENT_SCORE: "Not enough points to buy this power-up.",
    ErrorCodes.NO_HINT_AVAILABLE: "No more hints for this problem.",
    ErrorCodes.INVALID_ANSWER: "Answer does not match the question format.",
    ErrorCodes.INVALID_PLAYER_ID: "Player id may only contain letters, digits, '-' and '_' (max 40).",
    ErrorCodes.PROFILE_LOCK_TIMEOUT: "Player profile is busy, try again.",
    ErrorCodes.EMPTY_QUESTION: "Question text is empty.",
    ErrorCodes.UNSUPPORTED_FILE: "Unsupported file type.",
    ErrorCodes.FILE_TOO_LARGE: "Uploaded file is too large.",
}

# 코드 → HTTP status (라우트에서 사용)
ERROR_STATUS = {
    ErrorCodes.BATTLE_NOT_FOUND: 404,
    ErrorCodes.UNKNOWN_OPPONENT: 404,
    ErrorCodes.UNKNOWN_POWER_UP: 404,
    ErrorCodes.OPPONENT_LOCKED: 403,
    ErrorCodes.INVALID_PHASE: 409,
    ErrorCodes.NO_PROBLEM: 409,
    ErrorCodes.PROFILE_LOCK_TIMEOUT: 409,
    ErrorCodes.FILE_TOO_LARGE: 413,
    ErrorCodes.UNSUPPORTED_FILE: 415,
}


def status_for(error: GameRuleError) -> int:
    """GameRuleError → HTTP status code (기본 400)."""
    return ERROR_STATUS.get(error.code, 400)
