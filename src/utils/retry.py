"""
재시도 로직 유틸리티.

LLM/OCR API 호출 실패 시 지수 백오프로 재시도합니다.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_with_exponential_backoff(
    func: Callable[..., Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    retry_if: Callable[[Exception], bool] | None = None,
    *args: Any,
    **kwargs: Any,
) -> T:
    """
    지수 백오프를 사용한 재시도.

    Args:
        func: 재시도할 비동기 함수
        max_retries: 최대 재시도 횟수
        initial_delay: 초기 대기 시간(초)
        max_delay: 최대 대기 시간(초)
        exponential_base: 지수 백오프 기수
        exceptions: 재시도할 예외 타입들
        retry_if: 추가 판정 (False 를 돌려주면 즉시 전파)
        *args: func에 전달할 위치 인자
        **kwargs: func에 전달할 키워드 인자

    Returns:
        func의 반환값

    Raises:
        마지막 시도에서 발생한 예외
    """
    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            result = await func(*args, **kwargs)
            if attempt > 0:
                logger.info(
                    f"Retry succeeded on attempt {attempt + 1}/{max_retries + 1}"
                )
            return result

        except exceptions as e:
            if retry_if is not None and not retry_if(e):
                raise

            if attempt == max_retries:
                logger.error(
                    f"All {max_retries + 1} attempts failed. Last error: {e}"
                )
                raise

            logger.warning(
                f"Attempt {attempt + 1}/{max_retries + 1} failed: {e}. "
                f"Retrying in {delay:.1f}s..."
            )

            await asyncio.sleep(delay)

            delay = min(delay * exponential_base, max_delay)

    msg = "Unexpected retry logic error"
    raise RuntimeError(msg)


def is_rate_limited(error: BaseException | None) -> bool:
    """
    HTTP 429 (rate limit) 여부.

    SDK 예외의 status_code 또는 메시지로 판정. Provider 가 감싼 예외도
    __cause__ 체인을 따라가며 확인.
    """
    while error is not None:
        status = getattr(error, "status_code", None)
        if status is None:
            status = getattr(getattr(error, "response", None), "status_code", None)
        if status == 429 or "429" in str(error):
            return True
        error = error.__cause__
    return False
