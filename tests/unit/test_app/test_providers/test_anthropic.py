"""
test_anthropic.py - Claude Provider 테스트

검증 포인트:
- model_requested + model_used 필수 기록
- 이미지 → base64 image 블록

Mock 주의사항:
- MagicMock은 접근되지 않은 속성에 자동으로 새 MagicMock을 반환
- response.model, response.id 등 실제 API 응답 속성을 명시적으로 설정해야 함
- make_anthropic_response() factory 사용 권장
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.app.providers.anthropic import ClaudeProvider
from src.app.providers.base import CompletionError, ImageInput

# =============================================================================
# Mock Factories
# =============================================================================


def make_anthropic_response(
    text: str,
    model: str = "claude-sonnet-4-5-20250929",
    request_id: str = "msg_test_default",
) -> MagicMock:
    """
    Anthropic API 응답 mock 생성.

    Args:
        text: API 응답 텍스트
        model: 사용된 모델 이름
        request_id: API 요청 ID
    """
    response = MagicMock()
    response.content = [MagicMock()]
    response.content[0].text = text
    response.model = model  # 명시적 설정 필수!
    response.id = request_id  # 명시적 설정 필수!
    return response


@pytest.fixture
def provider():
    """기본 Claude provider."""
    return ClaudeProvider(
        model="claude-sonnet-4-5",
        api_key="test-api-key",
        max_tokens=1200,
        retry_config={"max_retries": 0},
    )


# =============================================================================
# 초기화 테스트
# =============================================================================


class TestClaudeProviderInit:
    """ClaudeProvider 초기화 테스트."""

    def test_init_uses_env_api_key(self, monkeypatch):
        """MY_ANTHROPIC_KEY 우선."""
        monkeypatch.setenv("MY_ANTHROPIC_KEY", "env-api-key")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "other-key")

        provider = ClaudeProvider()

        assert provider.api_key == "env-api-key"

    def test_missing_key_fails_fast(self, monkeypatch):
        monkeypatch.delenv("MY_ANTHROPIC_KEY", raising=False)
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

        with pytest.raises(CompletionError) as exc_info:
            ClaudeProvider()

        assert exc_info.value.code == "ANTHROPIC_KEY_MISSING"

    def test_client_lazy_init(self, provider):
        """클라이언트는 lazy init."""
        assert provider._client is None


# =============================================================================
# generate 테스트
# =============================================================================


class TestGenerate:
    """Messages API 호출."""

    @pytest.mark.asyncio
    async def test_model_tracking(self, provider):
        """model_requested 와 model_used 를 따로 기록."""
        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(
            return_value=make_anthropic_response('{"answer": "4"}')
        )
        provider._client = mock_client

        result = await provider.generate("What is 2+2?", system="Tutor")

        assert result.text == '{"answer": "4"}'
        assert result.model_requested == "claude-sonnet-4-5"
        assert result.model_used == "claude-sonnet-4-5-20250929"
        assert result.prompt_hash.startswith("sha256:")

        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["system"] == "Tutor"
        assert "temperature" not in kwargs

    @pytest.mark.asyncio
    async def test_image_blocks(self, provider):
        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(return_value=make_anthropic_response("ok"))
        provider._client = mock_client

        await provider.generate("Solve", images=[ImageInput(b"jpg", "image/jpeg")])

        content = mock_client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert content[0]["type"] == "image"
        assert content[0]["source"]["media_type"] == "image/jpeg"
        assert content[-1] == {"type": "text", "text": "Solve"}

    @pytest.mark.asyncio
    async def test_api_error_raises_completion_error(self, provider):
        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(side_effect=Exception("API Error"))
        provider._client = mock_client

        with pytest.raises(CompletionError) as exc_info:
            await provider.generate("Hi")

        assert exc_info.value.code == "COMPLETION_FAILED"
