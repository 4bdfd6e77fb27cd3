"""
Player profile storage: <profiles_dir>/<player_id>.json

규칙:
- 프로필 = 단일 JSON 문서, 매 업데이트마다 통째로 읽고-수정-쓰기
- 로드 시 누락 필드는 기본값으로 채움
- 파싱 실패(손상 파일) → 경고 로그 + 기본 프로필
- reset → 문서 삭제
"""

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from src.core.ids import validate_player_id
from src.core.storage import atomic_write_json, directory_lock
from src.domain.constants import DEFAULT_PLAYER_ID
from src.domain.schemas import PlayerProfile

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProfileStore:
    """
    플레이어 프로필 저장소.

    Usage:
        store = ProfileStore(Path("data/profiles"))
        profile = store.load("player-1")
        store.update("player-1", lambda p: purchase_power_up(p, "hint"))
    """

    def __init__(self, root: Path, config: dict | None = None):
        """
        Args:
            root: 프로필 디렉터리
            config: 설정 (storage.lock_retry_interval, storage.lock_max_retries)
        """
        self.root = root
        storage_config = (config or {}).get("storage", {})
        self.retry_interval = storage_config.get("lock_retry_interval", 0.1)
        self.max_retries = storage_config.get("lock_max_retries", 20)

    def _path(self, player_id: str) -> Path:
        return self.root / f"{validate_player_id(player_id)}.json"

    def _lock_dir(self, player_id: str) -> Path:
        return self.root / f".lock-{validate_player_id(player_id)}"

    def load(self, player_id: str = DEFAULT_PLAYER_ID) -> PlayerProfile:
        """
        프로필 로드.

        파일이 없거나 JSON 이 손상되었으면 기본 프로필 반환 (id 만 요청값).
        값이 잘못된 필드는 해당 필드만 기본값.

        Raises:
            GameRuleError: INVALID_PLAYER_ID
        """
        path = self._path(player_id)
        if not path.exists():
            return PlayerProfile(id=player_id)

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("profile root must be an object")
            profile = PlayerProfile.from_dict(data)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Corrupt profile {path}, using defaults: {e}")
            return PlayerProfile(id=player_id)

        profile.id = player_id
        return profile

    def save(self, profile: PlayerProfile) -> Path:
        """프로필 전체를 원자적으로 저장."""
        path = self._path(profile.id)
        atomic_write_json(path, profile.to_dict())
        return path

    def update(
        self,
        player_id: str,
        mutate: Callable[[PlayerProfile], T],
    ) -> tuple[PlayerProfile, T]:
        """
        락을 잡고 읽기-수정-쓰기.

        mutate 가 예외를 던지면 저장하지 않고 그대로 전파.

        Returns:
            (수정된 프로필, mutate 반환값)
        """
        with directory_lock(
            self._lock_dir(player_id),
            retry_interval=self.retry_interval,
            max_retries=self.max_retries,
        ):
            profile = self.load(player_id)
            result = mutate(profile)
            self.save(profile)
        return profile, result

    def reset(self, player_id: str = DEFAULT_PLAYER_ID) -> bool:
        """프로필 삭제. 삭제했으면 True."""
        path = self._path(player_id)
        if not path.exists():
            return False
        path.unlink()
        logger.info(f"Profile reset: {player_id}")
        return True
