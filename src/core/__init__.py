"""
Core layer: 게임 규칙 + 저장소 핵심 모듈.

역할:
- 배틀 상태 머신, 채점, 점수/해금/업적
- 플레이어 프로필 저장 (락 + 원자적 쓰기), 배틀 로그
"""

from .battle import BattleSession
from .ids import generate_battle_id, generate_question_id
from .logging import complete_battle_log, create_battle_log, save_battle_log
from .profile_store import ProfileStore
from .progression import apply_battle_result, calculate_points
from .storage import atomic_write_json, directory_lock

__all__ = [
    # battle
    "BattleSession",
    # ids
    "generate_battle_id",
    "generate_question_id",
    # logging
    "create_battle_log",
    "complete_battle_log",
    "save_battle_log",
    # profile_store
    "ProfileStore",
    # progression
    "apply_battle_result",
    "calculate_points",
    # storage
    "atomic_write_json",
    "directory_lock",
]
