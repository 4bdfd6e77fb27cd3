#!/usr/bin/env python
"""
API 연결 테스트 스크립트 (수동 실행).

OpenAI (기본 풀이 모델), Anthropic (선택), Gemini (사진 OCR) 키를 확인.

실행:
    uv run python scripts/test_api_connection.py
"""

import asyncio
import base64
import os
import sys
from pathlib import Path

# 프로젝트 루트를 path에 추가
sys.path.insert(0, str(Path(__file__).parent.parent))

# .env 파일 로드
from dotenv import load_dotenv
load_dotenv()

# 1x1 흰색 PNG
TEST_IMAGE = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8/5+hHgAHggJ/PchI7wAAAABJRU5ErkJggg=="
)


def _header(title: str) -> None:
    print("\n" + "=" * 60)
    print(f"🧪 {title}")
    print("=" * 60)


def _key(*names: str) -> str | None:
    """설정된 첫 번째 키 (예시 값 '...' 은 무시)."""
    for name in names:
        value = os.environ.get(name)
        if value and not value.endswith("..."):
            return value
    return None


async def test_openai() -> bool | None:
    """OpenAI 연결 테스트 (/api/test-openai 와 같은 요청)."""
    _header("OpenAI API 테스트")

    api_key = _key("OPENAI_API_KEY")
    if not api_key:
        print("❌ OPENAI_API_KEY가 설정되지 않았습니다.")
        return False

    print(f"✅ API 키 발견: {api_key[:8]}...")

    try:
        from src.app.providers.openai import OpenAIProvider

        provider = OpenAIProvider(model="gpt-4o", api_key=api_key)
        print("📤 테스트 요청 전송 중...")
        result = await provider.generate("Hello!", system="Say hello.", max_tokens=20)
        print(f"📥 응답: {result.text}")
        print(f"   모델: {result.model_used}")
        print("✅ OpenAI API 연결 성공!")
        return True

    except Exception as e:
        print(f"❌ OpenAI API 오류: {type(e).__name__}: {e}")
        return False


async def test_anthropic() -> bool | None:
    """Anthropic 연결 테스트 (ai.llm.provider: anthropic 일 때만 필요)."""
    _header("Anthropic Claude API 테스트 (선택)")

    api_key = _key("MY_ANTHROPIC_KEY", "ANTHROPIC_API_KEY")
    if not api_key:
        print("⏭️ ANTHROPIC_API_KEY가 없어 스킵")
        return None

    try:
        from src.app.providers.anthropic import ClaudeProvider

        provider = ClaudeProvider(api_key=api_key)
        print("📤 테스트 요청 전송 중...")
        response = await provider.complete("Say 'Hello, API test successful!'", max_tokens=20)
        print(f"📥 응답: {response}")
        print("✅ Anthropic API 연결 성공!")
        return True

    except Exception as e:
        print(f"❌ Anthropic API 오류: {type(e).__name__}: {e}")
        return False


async def test_gemini() -> bool | None:
    """Gemini OCR 연결 테스트 (없으면 사진 풀이가 바로 vision 으로 감)."""
    _header("Google Gemini OCR 테스트")

    api_key = _key("GOOGLE_API_KEY")
    if not api_key:
        print("⏭️ GOOGLE_API_KEY가 없어 스킵 (사진은 OCR 없이 vision 풀이)")
        return None

    try:
        from src.app.providers.gemini import GeminiOCRProvider

        provider = GeminiOCRProvider(model="gemini-2.0-flash", api_key=api_key)
        print("📤 테스트 요청 전송 중 (간단한 이미지)...")
        result = await provider.extract_text(TEST_IMAGE, "image/png")
        print(f"📥 OCR 결과: success={result.success}, confidence={result.confidence}")
        print(f"   모델: {result.model_used}")
        print("✅ Gemini API 연결 성공!")
        return True

    except Exception as e:
        print(f"❌ Gemini API 오류: {type(e).__name__}: {e}")
        return False


async def main() -> int:
    """메인 테스트 실행."""
    print("🚀 API 연결 테스트 시작")

    results = {
        "openai": await test_openai(),
        "anthropic": await test_anthropic(),
        "gemini": await test_gemini(),
    }

    # 결과 요약
    print("\n" + "=" * 60)
    print("📊 테스트 결과 요약")
    print("=" * 60)

    for name, passed in results.items():
        status = "⏭️ SKIP" if passed is None else ("✅ PASS" if passed else "❌ FAIL")
        print(f"  {name}: {status}")

    failed = [name for name, passed in results.items() if passed is False]
    print("=" * 60)
    if failed:
        print("⚠️ 일부 테스트 실패. .env 파일을 확인하세요.")
        return 1
    print("🎉 API 연결 테스트 통과!")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
