"""
OpenAI (GPT-4o) Provider.

- ai.llm.provider = "openai" (기본값) 일 때 사용
- 이미지는 chat.completions 의 image_url(data URL) 파트로 전송
- model_requested + model_used 기록
"""

import logging
import os
from datetime import UTC, datetime
from typing import Any

import openai

from src.utils.retry import retry_with_exponential_backoff

from .base import CompletionError, CompletionResult, ImageInput, LLMProvider, compute_hash

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.InternalServerError,
)


class OpenAIProvider(LLMProvider):
    """
    OpenAI Chat Completions Provider.

    Usage:
        provider = OpenAIProvider(model="gpt-4o")
        text = await provider.complete("Hello!", system="Say hello.", max_tokens=20)
    """

    name = "openai"

    def __init__(
        self,
        model: str = "gpt-4o",
        api_key: str | None = None,
        max_tokens: int = 1200,
        temperature: float | None = 0.3,
        retry_config: dict | None = None,
    ):
        """
        Args:
            model: 모델 ID (config에서 주입)
            api_key: API 키 (환경변수 OPENAI_API_KEY 사용 가능)
            max_tokens: 기본 최대 토큰 수
            temperature: 기본 샘플링 온도
            retry_config: 재시도 설정 (ai.retry)

        Raises:
            CompletionError: API 키가 없을 때 (fail-fast)
        """
        self.model = model
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")

        if not self.api_key:
            raise CompletionError(
                "OPENAI_KEY_MISSING",
                "OpenAI API key is missing. Set OPENAI_API_KEY.",
            )

        self.max_tokens = max_tokens
        self.temperature = temperature
        self.retry_config = retry_config or {}
        self._client: Any = None

    def _get_client(self) -> Any:
        """OpenAI 클라이언트 (lazy init)."""
        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=self.api_key)
        return self._client

    def _build_messages(
        self,
        prompt: str,
        system: str | None,
        images: list[ImageInput] | None,
    ) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})

        if images:
            content: list[dict[str, Any]] = [{"type": "text", "text": prompt}]
            content.extend(
                {"type": "image_url", "image_url": {"url": image.data_url()}}
                for image in images
            )
            messages.append({"role": "user", "content": content})
        else:
            messages.append({"role": "user", "content": prompt})
        return messages

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
        Chat Completions 호출.

        자동 재시도:
        - RateLimitError(429), APIConnectionError, APITimeoutError, 5xx → 재시도
        - 지수 백오프 1s → 2s → 4s (ai.retry)
        """
        api_kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": self._build_messages(prompt, system, images),
            "max_tokens": max_tokens or self.max_tokens,
        }
        effective_temperature = (
            temperature if temperature is not None else self.temperature
        )
        if effective_temperature is not None:
            api_kwargs["temperature"] = effective_temperature

        try:
            response = await self._call_api_with_retry(api_kwargs)
            text = response.choices[0].message.content or ""
        except Exception as e:
            logger.error(f"OpenAI completion failed: {e}", exc_info=True)
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
            return await client.chat.completions.create(**api_kwargs)

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
        if isinstance(error, openai.APITimeoutError):
            return "The AI service timed out. Please try again in a moment."
        if isinstance(error, openai.APIConnectionError):
            return "Could not reach the OpenAI API. Check your internet connection."
        if isinstance(error, openai.RateLimitError):
            return "The AI service is busy (rate limit). Please try again shortly."
        if isinstance(error, openai.AuthenticationError):
            return "OpenAI authentication failed. Check OPENAI_API_KEY."
        if isinstance(error, openai.PermissionDeniedError):
            return "This API key is not allowed to perform the request."
        if isinstance(error, openai.BadRequestError):
            return "The AI service rejected the request. Check the uploaded content."

        error_str = str(error)
        if "api_key" in error_str.lower():
            return "Check the API key configuration."
        if "timeout" in error_str.lower():
            return "The request timed out. Please try again."
        return f"AI request failed: {error_str}"
