"""
AI Provider 추상 인터페이스.

- Provider 추상화로 LLM 교체 가능 (openai | anthropic, config 에서 선택)
- model_requested + model_used 기록
- LLM 응답은 "JSON 비슷한 텍스트" 로만 취급, 파싱은 services 쪽 책임
"""

import base64
import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


def compute_hash(content: str) -> str:
    """SHA-256 해시 계산."""
    return f"sha256:{hashlib.sha256(content.encode()).hexdigest()[:16]}"


# =============================================================================
# Inputs / Results
# =============================================================================

@dataclass
class ImageInput:
    """LLM 에 함께 보내는 이미지 (숙제 사진)."""
    data: bytes
    mime_type: str = "image/jpeg"

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"


@dataclass
class CompletionResult:
    """
    LLM 완성 결과.

    재현성 메타데이터:
    - provider, model_params, request_id, prompt_hash
    """
    text: str
    model_requested: str | None = None
    model_used: str | None = None
    provider: str | None = None
    request_id: str | None = None
    prompt_hash: str | None = None
    model_params: dict[str, Any] = field(default_factory=dict)
    completed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result = {
            "text": self.text,
            "model_requested": self.model_requested,
            "model_used": self.model_used,
            "provider": self.provider,
            "request_id": self.request_id,
            "prompt_hash": self.prompt_hash,
            "model_params": self.model_params,
            "completed_at": self.completed_at,
        }
        return {k: v for k, v in result.items() if v is not None}


@dataclass
class OCRResult:
    """
    OCR 결과.

    - model_requested: config에 설정된 모델
    - model_used: 실제 호출된 모델 (fallback 시 다를 수 있음)
    - fallback_triggered: fallback 발생 여부
    """
    success: bool
    text: str | None = None
    confidence: float | None = None

    model_requested: str | None = None
    model_used: str | None = None
    fallback_triggered: bool = False

    processed_at: str | None = None
    error_message: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "text": self.text,
            "confidence": self.confidence,
            "model_requested": self.model_requested,
            "model_used": self.model_used,
            "fallback_triggered": self.fallback_triggered,
            "processed_at": self.processed_at,
            "error_message": self.error_message,
            "error_code": self.error_code,
        }


# =============================================================================
# Provider Exceptions
# =============================================================================

class ProviderError(Exception):
    """Provider 관련 에러."""

    def __init__(self, code: str, message: str, **context: Any) -> None:
        self.code = code
        self.message = message
        self.context = context
        super().__init__(f"[{code}] {message}")


class OCRError(ProviderError):
    """OCR 관련 에러."""
    pass


class CompletionError(ProviderError):
    """LLM 완성 관련 에러."""
    pass


# =============================================================================
# Abstract Providers
# =============================================================================

class LLMProvider(ABC):
    """
    LLM Provider 추상 인터페이스.

    역할: 프롬프트(+이미지) → 텍스트. 응답 내용은 불투명하게 취급.
    """

    name: str = "llm"
    model: str = ""

    @abstractmethod
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
        완성 API 호출.

        Args:
            prompt: 유저 메시지 텍스트
            system: 시스템 프롬프트
            images: 함께 보낼 이미지 (vision)
            max_tokens: 최대 토큰 수 (None이면 provider 기본값)
            temperature: 샘플링 온도 (None이면 provider 기본값)

        Returns:
            CompletionResult

        Raises:
            CompletionError: 재시도 후에도 실패
        """
        ...

    async def complete(self, prompt: str, **kwargs: Any) -> str:
        """응답 텍스트만 반환하는 단축 API."""
        result = await self.generate(prompt, **kwargs)
        return result.text


class OCRProvider(ABC):
    """
    OCR Provider 추상 인터페이스.

    역할: 숙제 사진 → 텍스트 추출
    """

    model: str = ""

    @abstractmethod
    async def extract_text(
        self,
        file_bytes: bytes,
        file_type: str,
    ) -> OCRResult:
        """
        파일에서 텍스트 추출.

        Args:
            file_bytes: 파일 바이트
            file_type: MIME 타입 또는 확장자

        Returns:
            OCRResult

        Fallback 정책:
        - FALLBACK_ERRORS → fallback 모델로 재시도
        - REJECT_IMMEDIATELY → 즉시 에러
        """
        ...
