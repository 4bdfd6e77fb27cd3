"""Domain layer: errors, schemas, static catalog."""

from .errors import ErrorCodes, GameRuleError
from .schemas import (
    BattleResult,
    PlayerProfile,
    Problem,
    Solution,
)

__all__ = [
    "ErrorCodes",
    "GameRuleError",
    "BattleResult",
    "PlayerProfile",
    "Problem",
    "Solution",
]
