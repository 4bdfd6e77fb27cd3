"""
Google Gemini OCR Provider.

숙제 사진 → 문제 텍스트. GPT 풀이 전에 텍스트를 먼저 뽑아 두는 용도.

Fallback 예외 정책:
- FALLBACK_ERRORS: NotFound, ServiceUnavailable, ResourceExhausted → fallback 모델
- REJECT_IMMEDIATELY: InvalidArgument, PermissionDenied, Unauthenticated → 즉시 reject
"""

import asyncio
import logging
import os
from datetime import UTC, datetime
from typing import Any

import google.generativeai as genai
from google.api_core.exceptions import (
    InvalidArgument,
    NotFound,
    PermissionDenied,
    ResourceExhausted,
    ServiceUnavailable,
    Unauthenticated,
)

from .base import OCRError, OCRProvider, OCRResult

logger = logging.getLogger(__name__)

# =============================================================================
# Exception Mapping
# =============================================================================

FALLBACK_ERRORS: tuple[type[Exception], ...] = (
    NotFound,            # 모델명 오류/미지원
    ServiceUnavailable,  # 5xx
    ResourceExhausted,   # 429 쿼터/레이트리밋
)

REJECT_IMMEDIATELY: tuple[type[Exception], ...] = (
    InvalidArgument,    # 입력 오류
    PermissionDenied,   # 권한 오류
    Unauthenticated,    # API 키 오류
)

OCR_PROMPT = (
    "Transcribe the homework question(s) in this image exactly as written. "
    "Keep numbering, equations and table structure. "
    "Write math in plain text (e.g. x^2 + 3x = 10). "
    "Return only the transcribed text, no commentary."
)


class GeminiOCRProvider(OCRProvider):
    """
    Gemini OCR Provider.

    Usage:
        provider = GeminiOCRProvider(
            model="gemini-2.5-flash",
            fallback="gemini-2.0-flash"
        )
        result = await provider.extract_text(image_bytes, "image/jpeg")
    """

    def __init__(
        self,
        model: str = "gemini-2.5-flash",
        fallback: str | None = "gemini-2.0-flash",
        api_key: str | None = None,
    ):
        """
        Args:
            model: 기본 모델 ID (config에서 주입)
            fallback: Fallback 모델 (None이면 재시도 없이 실패)
            api_key: API 키 (환경변수 GOOGLE_API_KEY 사용 가능)
        """
        self.model = model
        self.fallback = fallback
        self.api_key = api_key or os.environ.get("GOOGLE_API_KEY")
        self._client: Any = None

    def _get_client(self) -> Any:
        """Gemini 클라이언트 (lazy init)."""
        if self._client is None:
            if not self.api_key:
                raise OCRError(
                    "GOOGLE_KEY_MISSING",
                    "Google API key is missing. Set GOOGLE_API_KEY.",
                )
            genai.configure(api_key=self.api_key)
            self._client = genai
        return self._client

    async def extract_text(
        self,
        file_bytes: bytes,
        file_type: str,
    ) -> OCRResult:
        """
        이미지에서 문제 텍스트 추출.

        Fallback 정책:
        - FALLBACK_ERRORS → fallback 모델로 재시도
        - REJECT_IMMEDIATELY → 즉시 에러
        """
        model_requested = self.model

        try:
            result = await self._call_api(self.model, file_bytes, file_type)
            result.model_requested = model_requested
            result.model_used = self.model
            result.fallback_triggered = False
            return result

        except OCRError:
            raise

        except FALLBACK_ERRORS as e:
            logger.warning(
                f"Primary model ({self.model}) failed with fallback error: {e}. "
                f"Attempting fallback..."
            )

            if self.fallback is None:
                raise OCRError(
                    "NO_FALLBACK",
                    self._get_user_friendly_error_message(e),
                    model=self.model,
                ) from e

            try:
                logger.info(f"Trying fallback model: {self.fallback}")
                result = await self._call_api(self.fallback, file_bytes, file_type)
                result.model_requested = model_requested
                result.model_used = self.fallback
                result.fallback_triggered = True
                logger.info("Fallback model succeeded")
                return result
            except Exception as fallback_error:
                logger.error(f"Fallback model also failed: {fallback_error}")
                raise OCRError(
                    "FALLBACK_FAILED",
                    f"{self._get_user_friendly_error_message(fallback_error)} "
                    f"Both the primary and the fallback model failed.",
                    primary_model=self.model,
                    fallback_model=self.fallback,
                ) from fallback_error

        except REJECT_IMMEDIATELY as e:
            logger.error(f"Authentication or input error: {e}", exc_info=True)
            raise OCRError(
                "AUTH_OR_INPUT_ERROR",
                self._get_user_friendly_error_message(e),
                model=self.model,
            ) from e

        except Exception as e:
            logger.error(f"OCR failed with unexpected error: {e}", exc_info=True)
            raise OCRError(
                "OCR_FAILED",
                self._get_user_friendly_error_message(e),
                model=self.model,
            ) from e

    def _get_user_friendly_error_message(self, error: Exception) -> str:
        """사용자 친화적인 에러 메시지 생성."""
        if isinstance(error, Unauthenticated):
            return "Google API authentication failed. Check GOOGLE_API_KEY."
        if isinstance(error, PermissionDenied):
            return "This API key is not allowed to use the OCR model."
        if isinstance(error, ResourceExhausted):
            return "OCR quota exceeded. Please try again shortly."
        if isinstance(error, ServiceUnavailable):
            return "The OCR service is temporarily unavailable."
        if isinstance(error, InvalidArgument):
            return "The image could not be processed. Check its format and size."

        error_str = str(error)
        if "api_key" in error_str.lower() or "api key" in error_str.lower():
            return "Check the API key configuration."
        if "quota" in error_str.lower() or "limit" in error_str.lower():
            return "OCR quota exceeded. Please try again shortly."
        if "timeout" in error_str.lower():
            return "The OCR request timed out. Please try again."
        return f"OCR failed: {error_str}"

    async def _call_api(
        self,
        model: str,
        file_bytes: bytes,
        file_type: str,
    ) -> OCRResult:
        """실제 Gemini API 호출."""
        now = datetime.now(UTC).isoformat()

        client = self._get_client()
        model_instance = client.GenerativeModel(model)
        image_part = {
            "mime_type": self._normalize_mime_type(file_type),
            "data": file_bytes,
        }

        # SDK 호출이 동기라서 스레드로 넘김
        response = await asyncio.to_thread(
            model_instance.generate_content, [OCR_PROMPT, image_part]
        )

        text = response.text if response.text else ""
        return OCRResult(
            success=True,
            text=text,
            confidence=self._estimate_confidence(text),
            processed_at=now,
        )

    def _normalize_mime_type(self, file_type: str) -> str:
        """파일 타입을 MIME 타입으로 정규화."""
        mime_map = {
            "jpg": "image/jpeg",
            "jpeg": "image/jpeg",
            "png": "image/png",
            "gif": "image/gif",
            "webp": "image/webp",
            "heic": "image/heic",
        }

        file_type_lower = file_type.lower()
        if "/" in file_type_lower:
            return file_type_lower
        return mime_map.get(file_type_lower.lstrip("."), "application/octet-stream")

    def _estimate_confidence(self, text: str) -> float:
        """
        OCR 결과 신뢰도 추정.

        간단한 휴리스틱:
        - 텍스트가 비어있으면 0.0
        - 길이와 깨진 문자 비율로 추정
        """
        text = text.strip() if text else ""
        if not text:
            return 0.0

        if len(text) < 10:
            return 0.3

        weird_chars = sum(1 for c in text if ord(c) > 0xFFFF or c in "�□")
        if weird_chars / len(text) > 0.1:
            return 0.5

        return 0.9
