"""
test_ocr.py - OCR 서비스 테스트

confidence 기반 처리: >= 0.8 성공, 0.5~0.8 경고, < 0.5 실패
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.app.providers.base import OCRError, OCRResult
from src.app.services.ocr import OCRService


def make_service(result=None, side_effect=None, config=None) -> OCRService:
    provider = MagicMock()
    provider.model = "gemini-test"
    provider.extract_text = AsyncMock(return_value=result, side_effect=side_effect)
    if config is None:
        config = {"ai": {"ocr": {"enabled": True}}}
    return OCRService(config, provider=provider)


class TestEvaluateResult:
    """OCR 결과 평가."""

    @pytest.mark.parametrize(
        ("confidence", "expected"),
        [(0.9, "success"), (0.8, "success"), (0.6, "warning"), (0.3, "failure")],
    )
    def test_thresholds(self, confidence, expected):
        service = make_service()
        result = OCRResult(success=True, text="x", confidence=confidence)

        assert service.evaluate_result(result) == expected

    def test_failed_result(self):
        assert make_service().evaluate_result(OCRResult(success=False)) == "failure"

    def test_no_confidence_uses_text(self):
        service = make_service()

        assert service.evaluate_result(OCRResult(success=True, text="q")) == "success"
        assert service.evaluate_result(OCRResult(success=True, text="")) == "failure"


class TestExtractQuestionText:
    """풀이용 문제 텍스트."""

    @pytest.mark.asyncio
    async def test_confident_text(self):
        service = make_service(OCRResult(success=True, text=" 2x = 4 ", confidence=0.9))

        assert await service.extract_question_text(b"img", "image/png") == "2x = 4"

    @pytest.mark.asyncio
    async def test_low_confidence_returns_none(self):
        service = make_service(OCRResult(success=True, text="??", confidence=0.3))

        assert await service.extract_question_text(b"img", "image/png") is None

    @pytest.mark.asyncio
    async def test_provider_error_returns_none(self):
        service = make_service(side_effect=OCRError("OCR_FAILED", "boom"))

        result = await service.extract_from_bytes(b"img", "image/png")

        assert result.success is False
        assert result.error_code == "OCR_FAILED"
        assert await service.extract_question_text(b"img", "image/png") is None

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def slow(*args):
            await asyncio.sleep(1)

        service = make_service(config={"ai": {"timeouts": {"ocr": 0.01}}})
        service.provider.extract_text = slow

        result = await service.extract_from_bytes(b"img", "image/png")

        assert result.error_code == "OCR_TIMEOUT"

    @pytest.mark.asyncio
    async def test_disabled_skips_provider(self):
        service = make_service(
            OCRResult(success=True, text="q", confidence=1.0),
            config={"ai": {"ocr": {"enabled": False}}},
        )

        assert await service.extract_question_text(b"img", "image/png") is None
        service.provider.extract_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_disabled_by_default(self):
        service = make_service(
            OCRResult(success=True, text="q", confidence=1.0), config={"ai": {}}
        )

        assert service.enabled is False
        assert await service.extract_question_text(b"img", "image/png") is None
