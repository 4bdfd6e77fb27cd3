"""
LLM 응답 파싱: "JSON 비슷한 텍스트" → dict/list.

규칙:
- ```json ... ``` / ``` ... ``` 펜스 제거 후 JSON 파싱
- 실패 시 본문의 { 또는 [ 위치마다 JSON 디코딩 시도 (첫 성공 사용)
- 그래도 실패 → LLMParseError (호출자가 fallback_answer 로 대체)
"""

import json
import logging
import re
from typing import Any

from src.domain.constants import FALLBACK_CONFIDENCE
from src.domain.schemas import Solution

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[a-zA-Z]*\s*\n?(.*?)```", re.DOTALL)
_OPEN_RE = re.compile(r"[{\[]")


class LLMParseError(ValueError):
    """LLM 응답에서 JSON 을 찾지 못함."""

    def __init__(self, message: str, raw: str = "") -> None:
        self.raw = raw
        super().__init__(message)


def strip_fences(text: str) -> str:
    """마크다운 코드 펜스 제거. 펜스가 없으면 원문 (앞뒤 공백만 제거)."""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    # 닫히지 않은 펜스
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = re.sub(r"^```[a-zA-Z]*\s*", "", stripped)
    return stripped.strip()


def _decode_embedded(text: str) -> Any:
    """
    본문 속 JSON 찾기: { 또는 [ 위치마다 앞에서부터 raw_decode 시도.

    "[grade 5]" 처럼 JSON 이 아닌 괄호는 건너뜀. 못 찾으면 None.
    """
    decoder = json.JSONDecoder()
    for match in _OPEN_RE.finditer(text):
        try:
            value, _ = decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        return value
    return None


def parse_llm_json(text: str | None) -> Any:
    """
    LLM 응답 → JSON 값.

    Raises:
        LLMParseError: JSON 을 찾지 못함
    """
    if not text or not text.strip():
        raise LLMParseError("Empty LLM response", raw=text or "")

    body = strip_fences(text)
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        pass

    value = _decode_embedded(body)
    if value is not None:
        return value

    raise LLMParseError("No JSON found in LLM response", raw=text)


def fallback_answer(content: str, question: str = "") -> dict[str, Any]:
    """파싱 실패 시 응답 원문을 감싼 답변 객체."""
    return {
        "question": question,
        "answer": content,
        "explanation": content,
        "steps": [content],
        "confidence": FALLBACK_CONFIDENCE,
    }


def parse_solution(text: str, question: str = "") -> tuple[Solution, bool]:
    """
    LLM 응답 → Solution.

    Returns:
        (Solution, parsed) - parsed=False 면 fallback_answer 로 감싼 결과
    """
    try:
        data = parse_llm_json(text)
    except LLMParseError:
        logger.warning("LLM response was not JSON, wrapping raw text")
        return Solution.from_dict(fallback_answer(text, question)), False

    if isinstance(data, list):
        data = next((item for item in data if isinstance(item, dict)), None)
    if not isinstance(data, dict):
        return Solution.from_dict(fallback_answer(text, question)), False

    solution = Solution.from_dict(data)
    if not solution.question:
        solution.question = question
    return solution, True


def parse_question_list(text: str) -> list[str]:
    """
    문제 추출 응답 → 문제 문자열 목록.

    ["Q1", "Q2"] / [{"question": "..."}] / {"questions": [...]} 모두 허용.

    Raises:
        LLMParseError: JSON 이 아님
    """
    data = parse_llm_json(text)
    if isinstance(data, dict):
        data = data.get("questions", [])
    if not isinstance(data, list):
        return []

    questions = []
    for item in data:
        if isinstance(item, dict):
            item = item.get("question", "")
        value = str(item).strip() if item is not None else ""
        if value:
            questions.append(value)
    return questions
