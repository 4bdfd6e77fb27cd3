"""
AI Provider Abstraction.

LLM 교체 가능하게 설계: ai.llm.provider (openai | anthropic).
모델명은 config 에서만 지정.
"""

from .anthropic import ClaudeProvider
from .base import (
    CompletionError,
    CompletionResult,
    ImageInput,
    LLMProvider,
    OCRError,
    OCRProvider,
    OCRResult,
    ProviderError,
)
from .gemini import GeminiOCRProvider
from .openai import OpenAIProvider

__all__ = [
    "LLMProvider",
    "OCRProvider",
    "OCRResult",
    "CompletionResult",
    "ImageInput",
    "ProviderError",
    "CompletionError",
    "OCRError",
    "ClaudeProvider",
    "OpenAIProvider",
    "GeminiOCRProvider",
    "create_llm_provider",
]


def create_llm_provider(config: dict) -> LLMProvider:
    """
    config(ai.llm) 기반 LLM Provider 생성.

    Raises:
        CompletionError: 알 수 없는 provider 또는 API 키 없음 (fail-fast)
    """
    ai_config = config.get("ai", {})
    llm_config = ai_config.get("llm", {})
    retry_config = ai_config.get("retry", {})
    name = llm_config.get("provider", "openai")

    if name == "openai":
        return OpenAIProvider(
            model=llm_config.get("model", "gpt-4o"),
            max_tokens=llm_config.get("max_tokens", 1200),
            temperature=llm_config.get("temperature", 0.3),
            retry_config=retry_config,
        )
    if name == "anthropic":
        return ClaudeProvider(
            model=llm_config.get("model", "claude-sonnet-4-5"),
            max_tokens=llm_config.get("max_tokens", 1200),
            temperature=llm_config.get("temperature"),
            retry_config=retry_config,
        )
    raise CompletionError(
        "UNKNOWN_PROVIDER",
        f"Unknown LLM provider: {name}",
        provider=name,
    )
