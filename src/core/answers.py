"""
Answer checking: 문제 형식별 채점.

규칙:
- catch-mistake: 플레이어는 "풀이가 맞다(True) / 실수가 있다(False)" 를 주장
  → 정답 = (has_error 이고 False 주장) 또는 (has_error 아니고 True 주장)
- multiple-choice: 보기 ID, is_correct 플래그 우선, 없으면 correct_answer 비교
- true-false: "TTFTT" 문자열 또는 bool 리스트
- fill-blank / matching / ordering: 정규화 후 비교 (대소문자/공백 무시)
"""

import re
from dataclasses import dataclass
from typing import Any

from src.domain.constants import (
    FORMAT_CATCH_MISTAKE,
    FORMAT_FILL_BLANK,
    FORMAT_MATCHING,
    FORMAT_MULTIPLE_CHOICE,
    FORMAT_ORDERING,
    FORMAT_TRUE_FALSE,
)
from src.domain.errors import ErrorCodes, GameRuleError
from src.domain.schemas import Problem

_TRUE_WORDS = {"true", "t", "yes", "y", "correct", "right", "1"}
_FALSE_WORDS = {"false", "f", "no", "n", "mistake", "wrong", "error", "0"}


@dataclass
class AnswerCheck:
    """채점 결과."""
    correct: bool
    caught_mistake: bool = False  # catch-mistake 에서 실수를 짚어냄
    expected: Any = None


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise GameRuleError(ErrorCodes.INVALID_ANSWER, answer=value)


def _tokens(value: Any) -> list[str]:
    """쉼표/공백 구분 문자열 또는 리스트 → 정규화 토큰."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = [str(v) for v in value]
    else:
        items = re.split(r"[,;\n]+", str(value))
    return [re.sub(r"\s+", " ", item).strip().lower() for item in items if item.strip()]


def _tf_string(value: Any) -> str:
    """true-false 응답 → 'TFT...' 문자열."""
    if isinstance(value, (list, tuple)):
        return "".join("T" if _to_bool(v) else "F" for v in value)
    if isinstance(value, str):
        return re.sub(r"[^TF]", "", value.upper())
    raise GameRuleError(ErrorCodes.INVALID_ANSWER, answer=value)


def _matching_pairs(value: Any) -> set[str]:
    """'1A,2B' / ['1A'] / {'1': 'A'} → {'1A', '2B'}."""
    if isinstance(value, dict):
        return {f"{k}{v}".replace(" ", "").upper() for k, v in value.items()}
    return {token.replace(" ", "").replace("-", "").upper() for token in _tokens(value)}


def check_catch_mistake(problem: Problem, claims_correct: Any) -> AnswerCheck:
    claim = _to_bool(claims_correct)
    correct = (problem.has_error and not claim) or (not problem.has_error and claim)
    return AnswerCheck(
        correct=correct,
        caught_mistake=problem.has_error and correct,
        expected=not problem.has_error,
    )


def check_answer(problem: Problem, answer: Any) -> AnswerCheck:
    """
    형식별 채점.

    Raises:
        GameRuleError: INVALID_ANSWER (형식에 맞지 않는 응답)
    """
    if answer is None:
        raise GameRuleError(ErrorCodes.INVALID_ANSWER, answer=None)

    fmt = problem.format

    if fmt == FORMAT_CATCH_MISTAKE:
        return check_catch_mistake(problem, answer)

    if fmt == FORMAT_MULTIPLE_CHOICE:
        chosen = str(answer).strip().upper()
        flagged = [opt for opt in problem.options if opt.is_correct]
        if flagged:
            expected = flagged[0].id
            correct = any(opt.id.strip().upper() == chosen for opt in flagged)
        else:
            expected = problem.correct_answer
            correct = str(expected).strip().upper() == chosen
        return AnswerCheck(correct=correct, expected=expected)

    if fmt == FORMAT_TRUE_FALSE:
        if problem.options:
            expected = "".join("T" if opt.is_correct else "F" for opt in problem.options)
        else:
            expected = _tf_string(str(problem.correct_answer or ""))
        return AnswerCheck(correct=_tf_string(answer) == expected, expected=expected)

    if fmt == FORMAT_FILL_BLANK:
        expected_tokens = _tokens(problem.correct_answer) or _tokens(problem.blanks)
        return AnswerCheck(
            correct=bool(expected_tokens) and _tokens(answer) == expected_tokens,
            expected=problem.correct_answer or problem.blanks,
        )

    if fmt == FORMAT_MATCHING:
        expected_pairs = _matching_pairs(problem.correct_answer)
        return AnswerCheck(
            correct=bool(expected_pairs) and _matching_pairs(answer) == expected_pairs,
            expected=problem.correct_answer,
        )

    if fmt == FORMAT_ORDERING:
        expected_order = _tokens(problem.correct_answer)
        return AnswerCheck(
            correct=bool(expected_order) and _tokens(answer) == expected_order,
            expected=problem.correct_answer,
        )

    # 알 수 없는 형식: correct_answer 문자열 비교
    return AnswerCheck(
        correct=_tokens(answer) == _tokens(problem.correct_answer),
        expected=problem.correct_answer,
    )
