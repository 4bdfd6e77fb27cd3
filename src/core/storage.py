"""
파일 저장소 기본기: 디렉터리 락 + 원자적 JSON 쓰기.

규칙:
- 락 관리: 컨텍스트 매니저 (os.mkdir 원자적 생성)
- 원자적 쓰기: temp → rename + fsync
- stale lock 감지: PID/hostname 메타 + TTL 기반 정리

파일시스템 안정성 (best-effort):
- 락 해제 실패 시 warning 로그 남김
- fsync 실패 시 경고 남기고 계속 진행
"""

import json
import logging
import os
import socket
import tempfile
import time
from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from src.domain.errors import ErrorCodes, GameRuleError

logger = logging.getLogger(__name__)

# Stale lock threshold (seconds) - 10분
STALE_LOCK_THRESHOLD_SECONDS = 600

LOCK_META_FILENAME = "lock.meta"

# =============================================================================
# Lock Management
# =============================================================================


def _get_current_hostname() -> str:
    try:
        return socket.gethostname()
    except OSError:
        return "unknown"


def _write_lock_meta(lock_dir: Path) -> None:
    """락 메타정보 파일 생성 (PID, hostname, created_at)."""
    meta_path = lock_dir / LOCK_META_FILENAME
    meta = {
        "pid": os.getpid(),
        "hostname": _get_current_hostname(),
        "created_at": datetime.now(UTC).isoformat(),
    }
    try:
        meta_path.write_text(json.dumps(meta), encoding="utf-8")
    except OSError as e:
        logger.warning(f"Failed to write lock meta {meta_path}: {e}")


def _read_lock_meta(lock_dir: Path) -> dict | None:
    meta_path = lock_dir / LOCK_META_FILENAME
    try:
        return json.loads(meta_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None


def _is_process_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)  # signal 0 = 존재 확인만
        return True
    except OSError:
        return False


def _is_stale_lock(
    lock_dir: Path, threshold_seconds: float = STALE_LOCK_THRESHOLD_SECONDS
) -> bool:
    """
    락 디렉토리가 stale 상태인지 확인.

    판단 기준:
    1. 메타가 있고 동일 호스트: PID 생존 여부
    2. 메타가 있고 다른 호스트: created_at TTL
    3. 메타가 없으면: 디렉토리 mtime TTL
    """
    meta = _read_lock_meta(lock_dir)

    if meta:
        lock_pid = meta.get("pid")
        if meta.get("hostname") == _get_current_hostname() and lock_pid:
            return not _is_process_alive(lock_pid)

        try:
            created_at = datetime.fromisoformat(meta.get("created_at", ""))
            age_seconds = (datetime.now(UTC) - created_at).total_seconds()
            return age_seconds > threshold_seconds
        except (ValueError, TypeError):
            pass

    try:
        age_seconds = time.time() - lock_dir.stat().st_mtime
        return age_seconds > threshold_seconds
    except OSError:
        return False


def _cleanup_lock_dir(lock_dir: Path) -> None:
    meta_path = lock_dir / LOCK_META_FILENAME
    if meta_path.exists():
        try:
            meta_path.unlink()
        except OSError:
            pass
    os.rmdir(lock_dir)


def _try_cleanup_stale_lock(lock_dir: Path) -> bool:
    if not _is_stale_lock(lock_dir):
        return False
    try:
        _cleanup_lock_dir(lock_dir)
        logger.warning(f"Cleaned up stale lock: {lock_dir}")
        return True
    except OSError:
        return False


@contextmanager
def directory_lock(
    lock_dir: Path,
    retry_interval: float = 0.1,
    max_retries: int = 20,
) -> Generator[Path, None, None]:
    """
    디렉터리 락.

    사용법:
        with directory_lock(profiles_dir / ".lock-player-1"):
            # profile 읽기/수정/쓰기

    Raises:
        GameRuleError: PROFILE_LOCK_TIMEOUT
    """
    lock_dir.parent.mkdir(parents=True, exist_ok=True)

    acquired = False
    for attempt in range(max_retries):
        try:
            os.mkdir(lock_dir)
            acquired = True
            _write_lock_meta(lock_dir)
            break
        except FileExistsError:
            if attempt == 0 and _try_cleanup_stale_lock(lock_dir):
                try:
                    os.mkdir(lock_dir)
                    acquired = True
                    _write_lock_meta(lock_dir)
                    break
                except FileExistsError:
                    pass
            time.sleep(retry_interval)

    if not acquired:
        logger.warning(f"Lock timeout after {max_retries} attempts: {lock_dir}")
        raise GameRuleError(
            ErrorCodes.PROFILE_LOCK_TIMEOUT,
            lock_dir=str(lock_dir),
            attempts=max_retries,
        )

    try:
        yield lock_dir
    finally:
        try:
            _cleanup_lock_dir(lock_dir)
        except OSError as e:
            logger.warning(
                f"Lock release failed for {lock_dir}: {e}. "
                f"Manual cleanup may be required: rm -rf {lock_dir}"
            )


# =============================================================================
# Atomic Write
# =============================================================================


def _fsync_dir(dir_path: Path) -> None:
    """디렉토리 fsync (가능한 환경에서)."""
    try:
        dir_fd = os.open(str(dir_path), os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)
    except (OSError, AttributeError) as e:
        logger.warning(f"Directory fsync failed for {dir_path}: {e}")


def atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    """
    원자적 JSON 쓰기.

    - 중간 상태 없음: temp → rename
    - 실패 시 temp 파일 삭제, 기존 파일 보존
    """
    dir_path = path.parent
    dir_path.mkdir(parents=True, exist_ok=True)

    temp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=dir_path,
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        ) as f:
            temp_path = Path(f.name)
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            try:
                os.fsync(f.fileno())
            except OSError as e:
                logger.warning(f"File fsync failed for {path}: {e}")

        os.replace(temp_path, path)
        _fsync_dir(dir_path)

    except Exception:
        if temp_path and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                pass
        raise
