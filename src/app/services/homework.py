"""
Homework Service: 사진/텍스트/문서 → 풀이 JSON.

단계 (problem → solution → explanation → hints):
- problem: 문제 추출 (사진은 OCR, 문서는 LLM 추출 후 수동 분할 fallback)
- solution: 답/단계/신뢰도 (한 번의 호출로 전체 필드를 요청)
- explanation, hints: 앞 단계가 비워 둔 필드가 있을 때만 추가 호출
- 뒤 단계 실패 → 경고 로그 + 부분 풀이 유지
- JSON 파싱 실패 → 원문을 감싼 fallback 답변
"""

import asyncio
import logging
import re
from dataclasses import dataclass

from src.app.providers import create_llm_provider
from src.app.providers.base import ImageInput, LLMProvider, ProviderError
from src.app.services.ocr import OCRService
from src.app.services.parsing import (
    LLMParseError,
    parse_llm_json,
    parse_question_list,
    parse_solution,
)
from src.domain.constants import EXPLANATION_SUMMARY_LIMIT, MIN_FLASHCARDS
from src.domain.errors import ErrorCodes, GameRuleError
from src.domain.schemas import Flashcard, Solution

logger = logging.getLogger(__name__)

# =============================================================================
# Prompts
# =============================================================================

IMAGE_SYSTEM_PROMPT = (
    "Extract the main math or science question from this image. Then, provide a "
    "step-by-step, grade-appropriate solution in plain English (not LaTeX unless "
    "requested). Format your response as JSON with these fields: question, answer, "
    "explanation, steps (array), confidence (0-100), approaches (array, optional), "
    "flashcards (array, optional), practiceQuestions (array, optional), "
    "timeToSolve (string, optional)."
)
IMAGE_USER_PROMPT = "Here is the homework image."

TUTOR_SYSTEM_PROMPT = (
    "You are a patient tutor helping a grade {grade} student with {subject} "
    "homework. Explain in plain English (not LaTeX unless requested). "
    "Always answer with JSON only."
)

SOLUTION_PROMPT = """Solve this {subject} homework question for a grade {grade} student.

QUESTION:
{question}

Format your response as JSON with these fields: question, answer, explanation,
steps (array), confidence (0-100), approaches (array, optional),
flashcards (array of {{"question", "answer"}}, optional),
practiceQuestions (array, optional), timeToSolve (string, optional)."""

EXPLANATION_PROMPT = """A grade {grade} student got this {subject} solution.

QUESTION: {question}
ANSWER: {answer}
STEPS:
{steps}

Explain why the answer is correct in 3-5 grade-appropriate sentences.
Respond as JSON: {{"explanation": "..."}}"""

HINTS_PROMPT = """Create study material for a grade {grade} {subject} student.

QUESTION: {question}
ANSWER: {answer}

Respond as JSON with these fields:
hints (array of 2-3 short hints that do not give away the answer),
flashcards (array of 5 {{"question", "answer"}} objects),
practiceQuestions (array of 3 similar questions)."""

DOCUMENT_EXTRACT_PROMPT = """The text below comes from a student's {subject} homework document (grade {grade}).
List every separate question or exercise it contains, word for word.

Respond with a JSON array of strings. Respond with [] if there are no questions.

DOCUMENT:
{text}"""

# =============================================================================
# Subject / Grade Detection
# =============================================================================

SUBJECT_KEYWORDS: dict[str, tuple[str, ...]] = {
    "Mathematics": ("math", "algebra", "geometry", "calculus", "equation", "integral", "derivative"),
    "Physics": ("physics", "velocity", "acceleration", "force", "energy", "photoelectric",
                "electron", "wavelength", "frequency", "potential"),
    "Chemistry": ("chemistry", "mole", "reaction", "compound", "element", "acid", "base",
                  "salt", "atom", "molecule"),
    "Biology": ("biology", "cell", "organism", "photosynthesis", "mitosis", "meiosis",
                "gene", "chromosome"),
    "English": ("english", "grammar", "essay", "literature", "poem", "novel", "story"),
    "History": ("history", "war", "revolution", "empire", "ancient", "medieval", "modern"),
    "Geography": ("geography", "continent", "country", "river", "mountain", "climate"),
    "Computer Science": ("computer", "algorithm", "program", "code", "software", "hardware"),
    "Economics": ("economics", "market", "demand", "supply", "inflation", "gdp"),
    "Business": ("business", "profit", "loss", "revenue", "cost", "investment"),
    "Statistics": ("statistics", "mean", "median", "mode", "probability", "distribution"),
    "Social Studies": ("social", "society", "culture", "civics", "government"),
    "Language": ("language", "spanish", "french", "german", "hindi", "mandarin"),
}

_GRADE_RE = re.compile(r"(grade|class)\s*(12\+|\d{1,2})")


@dataclass
class Detection:
    """본문에서 추정한 과목/학년 + 선택값과의 불일치 여부."""
    subject: str | None
    grade: str | None
    mismatch: bool = False

    def to_dict(self) -> dict:
        return {
            "detectedSubject": self.subject,
            "detectedGrade": self.grade,
            "mismatch": self.mismatch,
        }


def detect_subject_and_grade(
    text: str,
    selected_subject: str | None = None,
    selected_grade: str | None = None,
) -> Detection:
    """
    키워드 기반 과목 추정 + "grade 9" / "class 12" / "9th" 형태 학년 추정.

    과목은 SUBJECT_KEYWORDS 순서상 처음 맞는 것 (부분 문자열 매칭).
    """
    lower = text.lower()
    subject = None
    for name, keywords in SUBJECT_KEYWORDS.items():
        if any(k in lower for k in keywords):
            subject = name
            break

    grade = None
    match = _GRADE_RE.search(lower)
    if match:
        grade = match.group(2)
    else:
        for g in range(12, 0, -1):
            patterns = (f"grade {g}", f"class {g}", f"{g}th", f"{g}rd", f"{g}st", f"{g}nd")
            if any(p in lower for p in patterns):
                grade = str(g)
                break

    mismatch = bool(
        (subject and selected_subject is not None and subject != selected_subject)
        or (grade and selected_grade is not None and grade != str(selected_grade))
    )
    return Detection(subject=subject, grade=grade, mismatch=mismatch)


# =============================================================================
# Flashcards / Manual Split
# =============================================================================


def ensure_flashcards(
    cards: list[Flashcard],
    explanation: str,
    steps: list[str],
    minimum: int = MIN_FLASHCARDS,
) -> list[Flashcard]:
    """
    카드가 minimum 장 미만이면 요약/단계/회고 카드로 채움 (최대 minimum 장).
    """
    if len(cards) >= minimum:
        return cards

    extras: list[Flashcard] = []
    if explanation:
        summary = explanation
        if len(summary) > EXPLANATION_SUMMARY_LIMIT:
            summary = summary[:EXPLANATION_SUMMARY_LIMIT] + "..."
        extras.append(Flashcard("Summarize the main idea of the explanation.", summary))
    for i, step in enumerate(steps[:2]):
        extras.append(Flashcard(f"What is step {i + 1} in the solution?", step))
    while len(extras) + len(cards) < minimum:
        extras.append(Flashcard(
            "What did you learn from this problem?",
            "Reflect on the key concepts and methods used.",
        ))
    return (list(cards) + extras)[:minimum]


_MARKER_RE = re.compile(
    r"^[ \t]*(?:(?:q|question)[ \t]*\d+[ \t]*[.):\-]?|\d+[.)](?=\s))[ \t]*",
    re.IGNORECASE | re.MULTILINE,
)


def split_questions_manually(text: str) -> list[str]:
    """
    LLM 추출이 비었을 때 쓰는 수동 분할.

    1. "1." / "2)" / "Q1" / "Question 1:" 줄머리 표시 기준 분할
    2. 없으면 빈 줄 기준 문단 (문단이 1개면 줄) 중 '?' 로 끝나는 것
    3. 그것도 없으면 전체 텍스트 1개
    """
    text = text.strip()
    if not text:
        return []

    markers = list(_MARKER_RE.finditer(text))
    if markers:
        chunks = []
        for i, marker in enumerate(markers):
            end = markers[i + 1].start() if i + 1 < len(markers) else len(text)
            chunk = text[marker.end():end].strip()
            if chunk:
                chunks.append(chunk)
        if chunks:
            return chunks

    blocks = [b.strip() for b in re.split(r"\n\s*\n", text) if b.strip()]
    if len(blocks) <= 1:
        blocks = [line.strip() for line in text.splitlines() if line.strip()]
    questions = [b for b in blocks if b.endswith("?")]
    return questions or [text]


# =============================================================================
# Service
# =============================================================================


class HomeworkService:
    """
    숙제 도우미 서비스.

    Usage:
        service = HomeworkService(config)
        solution = await service.solve_image(image_bytes, "image/png", "Mathematics", "7")
        solutions = await service.solve_text("1. 2+2?\\n2. 3*3?", "Mathematics", "3")
    """

    def __init__(
        self,
        config: dict,
        provider: LLMProvider | None = None,
        ocr_service: OCRService | None = None,
    ):
        """
        Args:
            config: 설정 (ai, homework 섹션)
            provider: LLM Provider (None이면 첫 호출 때 config 기반 생성)
            ocr_service: OCR 서비스 (None이면 config 기반 생성)
        """
        self.config = config
        self._provider = provider
        self.ocr_service = ocr_service or OCRService(config)

        homework_config = config.get("homework", {})
        self.max_questions = int(homework_config.get("max_questions", 10))
        self.min_flashcards = int(homework_config.get("min_flashcards", MIN_FLASHCARDS))
        self.llm_timeout = float(
            config.get("ai", {}).get("timeouts", {}).get("llm", 90.0)
        )

    @property
    def provider(self) -> LLMProvider:
        """LLM Provider (lazy, API 키 없으면 CompletionError)."""
        if self._provider is None:
            self._provider = create_llm_provider(self.config)
        return self._provider

    async def _ask(self, prompt: str, **kwargs) -> str:
        return await asyncio.wait_for(
            self.provider.complete(prompt, **kwargs), timeout=self.llm_timeout
        )

    # =========================================================================
    # Stages
    # =========================================================================

    async def _stage_explanation(
        self, solution: Solution, subject: str, grade: str
    ) -> None:
        if solution.explanation:
            return
        prompt = EXPLANATION_PROMPT.format(
            grade=grade,
            subject=subject,
            question=solution.question,
            answer=solution.answer,
            steps="\n".join(f"- {s}" for s in solution.steps) or "- (none)",
        )
        data = parse_llm_json(await self._ask(
            prompt, system=TUTOR_SYSTEM_PROMPT.format(grade=grade, subject=subject)
        ))
        if isinstance(data, dict) and data.get("explanation"):
            solution.explanation = str(data["explanation"])

    async def _stage_hints(self, solution: Solution, subject: str, grade: str) -> None:
        if solution.hints and solution.flashcards and solution.practice_questions:
            return
        prompt = HINTS_PROMPT.format(
            grade=grade,
            subject=subject,
            question=solution.question,
            answer=solution.answer,
        )
        data = parse_llm_json(await self._ask(
            prompt, system=TUTOR_SYSTEM_PROMPT.format(grade=grade, subject=subject)
        ))
        if not isinstance(data, dict):
            return
        extra = Solution.from_dict(data)
        solution.hints = solution.hints or extra.hints
        solution.flashcards = solution.flashcards or extra.flashcards
        solution.practice_questions = (
            solution.practice_questions or extra.practice_questions
        )

    async def _enrich(self, solution: Solution, subject: str, grade: str) -> None:
        """explanation → hints 단계. 실패해도 부분 풀이 유지."""
        for stage in (self._stage_explanation, self._stage_hints):
            try:
                await stage(solution, subject, grade)
            except (ProviderError, LLMParseError, TimeoutError) as e:
                logger.warning(f"Homework stage {stage.__name__} skipped: {e}")

    def _finalize(self, solution: Solution) -> dict:
        solution.flashcards = ensure_flashcards(
            solution.flashcards,
            solution.explanation,
            solution.steps,
            minimum=self.min_flashcards,
        )
        return solution.to_dict()

    async def _solve_question(self, question: str, subject: str, grade: str) -> dict:
        """문제 1개 → 풀이 dict (solution → explanation → hints)."""
        text = await self._ask(
            SOLUTION_PROMPT.format(subject=subject, grade=grade, question=question),
            system=TUTOR_SYSTEM_PROMPT.format(grade=grade, subject=subject),
        )
        solution, parsed = parse_solution(text, question)
        if parsed:
            await self._enrich(solution, subject, grade)
        return self._finalize(solution)

    # =========================================================================
    # Entry Points
    # =========================================================================

    async def solve_image(
        self,
        image_bytes: bytes,
        mime_type: str,
        subject: str = "",
        grade: str = "",
    ) -> dict:
        """
        숙제 사진 → 풀이 1개.

        OCR 로 문제를 읽으면 텍스트 풀이, 못 읽으면 이미지를 그대로 vision 호출.
        """
        question = await self.ocr_service.extract_question_text(image_bytes, mime_type)
        if question:
            logger.info("Solving photo from OCR text")
            return await self._solve_question(question, subject, grade)

        text = await self._ask(
            IMAGE_USER_PROMPT,
            system=IMAGE_SYSTEM_PROMPT,
            images=[ImageInput(image_bytes, mime_type)],
        )
        solution, parsed = parse_solution(text)
        if parsed:
            await self._enrich(solution, subject, grade)
        return self._finalize(solution)

    async def solve_text(self, question: str, subject: str = "", grade: str = "") -> list[dict]:
        """
        입력 텍스트 → 풀이 목록 (여러 문제면 수동 분할, 최대 max_questions).

        Raises:
            GameRuleError: EMPTY_QUESTION
        """
        if not question or not question.strip():
            raise GameRuleError(ErrorCodes.EMPTY_QUESTION)

        questions = split_questions_manually(question)[: self.max_questions]
        return [await self._solve_question(q, subject, grade) for q in questions]

    async def extract_questions(self, text: str, subject: str, grade: str) -> list[str]:
        """
        문서 텍스트 → 문제 목록.

        LLM 추출 결과가 빈 배열이거나 JSON 이 아니면 수동 분할.
        """
        try:
            questions = parse_question_list(await self._ask(
                DOCUMENT_EXTRACT_PROMPT.format(subject=subject, grade=grade, text=text),
                system=TUTOR_SYSTEM_PROMPT.format(grade=grade, subject=subject),
            ))
        except LLMParseError as e:
            logger.warning(f"Question extraction was not JSON: {e}")
            questions = []

        if not questions:
            logger.info("Question extraction empty, using manual split")
            questions = split_questions_manually(text)
        return questions[: self.max_questions]

    async def solve_document(self, text: str, subject: str = "", grade: str = "") -> list[dict]:
        """
        문서 텍스트 → 풀이 목록.

        Raises:
            GameRuleError: EMPTY_QUESTION (문서에 텍스트 없음)
        """
        if not text.strip():
            raise GameRuleError(ErrorCodes.EMPTY_QUESTION, source="document")

        questions = await self.extract_questions(text, subject, grade)
        return [await self._solve_question(q, subject, grade) for q in questions]

    async def ping(self) -> dict:
        """LLM 연결 확인 (system 'Say hello.' / user 'Hello!')."""
        result = await self.provider.generate(
            "Hello!", system="Say hello.", max_tokens=20
        )
        return result.to_dict()
