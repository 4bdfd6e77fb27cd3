"""
OCR Service: 숙제 사진 → 문제 텍스트.

규칙:
- OCR은 풀이 전 별도 단계 (디버깅 용이)
- 실패/저신뢰 시 이미지 그대로 vision 풀이로 넘어감
- confidence 기반 처리: >= 0.8 성공, 0.5~0.8 경고, < 0.5 실패
"""

import asyncio
import logging

from src.app.providers.base import OCRError, OCRProvider, OCRResult
from src.app.providers.gemini import GeminiOCRProvider

logger = logging.getLogger(__name__)


class OCRService:
    """
    OCR 서비스.

    숙제 사진에서 문제 텍스트 추출.
    """

    # Confidence 임계값
    CONFIDENCE_HIGH = 0.8  # 성공
    CONFIDENCE_LOW = 0.5  # 실패

    def __init__(
        self,
        config: dict,
        provider: OCRProvider | None = None,
    ):
        """
        Args:
            config: 설정 (ai.ocr, ai.timeouts 포함)
            provider: OCR Provider (None이면 config 기반 생성)
        """
        self.config = config
        ai_config = config.get("ai", {})
        ocr_config = ai_config.get("ocr", {})
        self.enabled = bool(ocr_config.get("enabled", False))
        self.timeout = float(ai_config.get("timeouts", {}).get("ocr", 30.0))
        self.min_confidence = float(
            config.get("homework", {}).get("ocr_min_confidence", self.CONFIDENCE_LOW)
        )

        if provider is not None:
            self.provider = provider
        else:
            self.provider = GeminiOCRProvider(
                model=ocr_config.get("model", "gemini-2.5-flash"),
                fallback=ocr_config.get("fallback", "gemini-2.0-flash"),
            )

    async def extract_from_bytes(
        self,
        file_bytes: bytes,
        file_type: str,
    ) -> OCRResult:
        """
        바이트에서 텍스트 추출.

        OCRError/타임아웃은 실패 OCRResult 로 변환 (예외 전파 없음).

        Args:
            file_bytes: 파일 바이트
            file_type: 파일 타입 (확장자 또는 MIME)

        Returns:
            OCRResult
        """
        try:
            return await asyncio.wait_for(
                self.provider.extract_text(file_bytes, file_type),
                timeout=self.timeout,
            )
        except OCRError as e:
            return OCRResult(
                success=False,
                error_code=e.code,
                error_message=e.message,
                model_requested=self.provider.model,
                model_used=None,
            )
        except TimeoutError:
            logger.warning(f"OCR timed out after {self.timeout:.0f}s")
            return OCRResult(
                success=False,
                error_code="OCR_TIMEOUT",
                error_message="OCR took too long.",
                model_requested=self.provider.model,
                model_used=None,
            )

    def evaluate_result(self, result: OCRResult) -> str:
        """
        OCR 결과 평가.

        Returns:
            "success" | "warning" | "failure"
        """
        if not result.success:
            return "failure"

        if result.confidence is None:
            return "success" if result.text else "failure"

        if result.confidence >= self.CONFIDENCE_HIGH:
            return "success"
        elif result.confidence >= self.min_confidence:
            return "warning"
        else:
            return "failure"

    async def extract_question_text(
        self, file_bytes: bytes, file_type: str
    ) -> str | None:
        """
        풀이에 쓸 만한 문제 텍스트만 반환.

        OCR 비활성, 실패, 저신뢰(failure) → None
        """
        if not self.enabled:
            return None

        result = await self.extract_from_bytes(file_bytes, file_type)
        evaluation = self.evaluate_result(result)
        if evaluation == "failure":
            logger.info(
                f"OCR unusable ({result.error_code or 'low confidence'}), "
                f"falling back to vision"
            )
            return None
        return (result.text or "").strip() or None
