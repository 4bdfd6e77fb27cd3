"""
Anthropic (Claude) Provider.

- ai.llm.provider = "anthropic" 일 때 사용
- 이미지(숙제 사진)는 base64 image 블록으로 전송
- model_requested + model_used 기록
"""

import logging
import os
from datetime import UTC, datetime
from typing import Any

import anthropic

from src.utils.retry import retry_with_exponential_backoff

from .base import CompletionError, CompletionResult, ImageInput, LLMProvider, compute_hash

logger = logging.getLogger(__name__)

# 재시도 가능한 예외
RETRYABLE_ERRORS = (
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
    anthropic.APITimeoutError,
    anthropic.InternalServerError,
)


class ClaudeProvider(LLMProvider):
    """
    Claude API Provider.

    Usage:
        provider = ClaudeProvider(model="claude-sonnet-4-5")
        text = await provider.complete(prompt, system="...", images=[ImageInput(b, "image/png")])
    """

    name = "anthropic"

    def __init__(
        self,
        model: str = "claude-sonnet-4-5",
        api_key: str | None = None,
        max_tokens: int = 1200,
        temperature: float | None = None,
        retry_config: dict | None = None,
    ):
        """
        Args:
            model: 모델 ID (config에서 주입)
            api_key: API 키 (환경변수 MY_ANTHROPIC_KEY 또는 ANTHROPIC_API_KEY 사용 가능)
            max_tokens: 기본 최대 토큰 수
            temperature: 기본 샘플링 온도 (None이면 API 기본값)
            retry_config: 재시도 설정 (ai.retry)

        Raises:
            CompletionError: API 키가 없을 때 (fail-fast)
        """
        self.model = model
        # API 키 결정: 인자 > MY_ANTHROPIC_KEY > ANTHROPIC_API_KEY
        self.api_key = (
            api_key
            or os.environ.get("MY_ANTHROPIC_KEY")
            or os.environ.get("ANTHROPIC_API_KEY")
        )

        # Fail-fast: 키가 없으면 즉시 에러
        if not self.api_key:
            raise CompletionError(
                "ANTHROPIC_KEY_MISSING",
                "Anthropic API key is missing. "
                "Set MY_ANTHROPIC_KEY or ANTHROPIC_API_KEY.",
            )

        self.max_tokens = max_tokens
        self.temperature = temperature
        self.retry_config = retry_config or {}
        self._client: Any = None

    def _get_client(self) -> Any:
        """Anthropic 클라이언트 (lazy init)."""
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        return self._client

    def _build_content(
        self, prompt: str, images: list[ImageInput] | None
    ) -> str | list[dict[str, Any]]:
        if not images:
            return prompt
        blocks: list[dict[str, Any]] = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": image.mime_type,
                    "data": image.to_base64(),
                },
            }
            for image in images
        ]
        blocks.append({"type": "text", "text": prompt})
        return blocks

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        images: list[ImageInput] | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> CompletionResult:
        """
        Messages API 호출.

        자동 재시도:
        - RateLimitError, APIConnectionError, APITimeoutError, 5xx → 재시도
        - 지수 백오프 (ai.retry)
        """
        api_kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "messages": [
                {"role": "user", "content": self._build_content(prompt, images)}
            ],
        }
        if system:
            api_kwargs["system"] = system
        effective_temperature = (
            temperature if temperature is not None else self.temperature
        )
        if effective_temperature is not None:
            api_kwargs["temperature"] = effective_temperature

        try:
            response = await self._call_api_with_retry(api_kwargs)
            text = "".join(
                getattr(block, "text", "") for block in response.content
            )
        except Exception as e:
            logger.error(f"Claude completion failed: {e}", exc_info=True)
            raise CompletionError(
                "COMPLETION_FAILED",
                self._get_user_friendly_error_message(e),
                model=self.model,
            ) from e

        return CompletionResult(
            text=text,
            model_requested=self.model,
            model_used=getattr(response, "model", None) or self.model,
            provider=self.name,
            request_id=getattr(response, "id", None),
            prompt_hash=compute_hash((system or "") + prompt),
            model_params={
                k: v
                for k, v in api_kwargs.items()
                if k in ("max_tokens", "temperature")
            },
            completed_at=datetime.now(UTC).isoformat(),
        )

    async def _call_api_with_retry(self, api_kwargs: dict[str, Any]) -> Any:
        """재시도 로직이 적용된 API 호출."""

        async def _api_call() -> Any:
            client = self._get_client()
            return await client.messages.create(**api_kwargs)

        try:
            return await retry_with_exponential_backoff(
                _api_call,
                max_retries=self.retry_config.get("max_retries", 3),
                initial_delay=self.retry_config.get("initial_delay", 1.0),
                max_delay=self.retry_config.get("max_delay", 30.0),
                exceptions=RETRYABLE_ERRORS,
            )
        except RETRYABLE_ERRORS as e:
            logger.error(f"API call failed after retries: {e}")
            raise

    def _get_user_friendly_error_message(self, error: Exception) -> str:
        """사용자 친화적인 에러 메시지 생성."""
        if isinstance(error, anthropic.APITimeoutError):
            return "The AI service timed out. Please try again in a moment."
        if isinstance(error, anthropic.APIConnectionError):
            return "Could not reach the Anthropic API. Check your internet connection."
        if isinstance(error, anthropic.RateLimitError):
            return "The AI service is busy (rate limit). Please try again shortly."
        if isinstance(error, anthropic.AuthenticationError):
            return "Anthropic authentication failed. Check ANTHROPIC_API_KEY."
        if isinstance(error, anthropic.PermissionDeniedError):
            return "This API key is not allowed to perform the request."
        if isinstance(error, anthropic.BadRequestError):
            return "The AI service rejected the request. Check the uploaded content."

        error_str = str(error)
        if "api_key" in error_str.lower():
            return "Check the API key configuration."
        if "timeout" in error_str.lower():
            return "The request timed out. Please try again."
        return f"AI request failed: {error_str}"
