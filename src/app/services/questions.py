"""
Question Generator: 배틀 라운드용 문제 생성.

규칙:
- 문제는 라운드마다 새로 생성, 라운드가 끝나면 폐기
- LLM 응답은 느슨하게 검증 (누락 배열 → 빈 리스트)
- 일시적 오류 재시도는 Provider 가 담당
- rate limit (429) 로 실패하면 지수 백오프로 재요청
- 그래도 실패하면 폴백 문제 은행
- Provider 설정이 없으면 (API 키 없음) 바로 폴백
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field, replace

from src.app.providers import create_llm_provider
from src.app.providers.base import CompletionError, LLMProvider, ProviderError
from src.app.services.parsing import LLMParseError, parse_llm_json
from src.core.ids import generate_question_id
from src.core.progression import story_context
from src.domain import catalog
from src.domain.constants import (
    DEFAULT_DIFFICULTY,
    FORMAT_CATCH_MISTAKE,
    FORMAT_FILL_BLANK,
    FORMAT_MATCHING,
    FORMAT_MULTIPLE_CHOICE,
    FORMAT_ORDERING,
    FORMAT_TRUE_FALSE,
    QUESTION_FORMATS,
    RANDOM_FORMATS,
    STARTING_OPPONENT,
)
from src.domain.schemas import Problem
from src.utils.retry import is_rate_limited, retry_with_exponential_backoff

logger = logging.getLogger(__name__)

# =============================================================================
# Prompts
# =============================================================================

SYSTEM_PROMPT = (
    "You are an expert educational content creator who generates engaging, "
    "grade-appropriate problems with intentional mistakes for students to catch."
)

DEFAULT_FOCUS_TOPIC = "a random topic from the list"

PROMPT_TEMPLATE = """
Generate a {difficulty} {subject} problem for grade {grade} students in Battle Mode.

BATTLE MODE CONTEXT: Students need to engage with educational content in various formats.
- Make questions engaging and grade-appropriate
- Include realistic scenarios and superhero themes
- Provide clear explanations and learning opportunities

GRADE {grade} TEXTBOOK TOPICS: {textbook_topics}
FOCUS TOPIC: {topic}
GRADE CONTEXT: {grade_context}
DIFFICULTY: {difficulty_context}
CHARACTER: {character}
QUESTION FORMAT: {format_upper}

REQUIREMENTS:
1. Create an exciting story context featuring {character} and their world: {world}
2. Focus specifically on the topic: {topic}
3. Use the {format} format with clear, grade-appropriate content
4. Make the question engaging and educational
5. Use fun, engaging language featuring {character}
6. Include encouraging explanations that reference the specific topic being tested

AVOID these previous topics: {previous}
{weak_areas}
{format_instructions}

OUTPUT FORMAT (JSON):
{output_format}
"""

FORMAT_INSTRUCTIONS = {
    FORMAT_MULTIPLE_CHOICE: """
MULTIPLE CHOICE FORMAT:
- Create 4 options (A, B, C, D)
- Only ONE correct answer
- Make distractors realistic but clearly wrong
- Include explanations for why each option is correct/incorrect
- Focus on testing understanding of the specific topic
- Use superhero scenarios to make it engaging""",
    FORMAT_TRUE_FALSE: """
TRUE/FALSE FORMAT:
- Create 5-7 true/false statements
- Mix true and false statements (60% true, 40% false)
- Make false statements contain common misconceptions
- Each statement should test understanding of the specific topic
- Use superhero scenarios to make it engaging
- Provide explanations for why each statement is true or false""",
    FORMAT_FILL_BLANK: """
FILL-IN-THE-BLANK FORMAT:
- Create 3-5 blanks in a paragraph or sentence
- Focus on key vocabulary and concepts from the topic
- Provide word bank with extra options to increase difficulty
- Make blanks test understanding, not just memorization
- Use superhero story context throughout""",
    FORMAT_MATCHING: """
MATCHING FORMAT:
- Create 5-7 pairs of related items
- Mix easy and challenging matches
- Include one extra item to make it more challenging
- Focus on relationships and connections within the topic
- Use superhero-themed examples""",
    FORMAT_ORDERING: """
ORDERING FORMAT:
- Create 4-6 items that need to be put in correct sequence
- Could be steps in a process, chronological order, or logical sequence
- Make the order meaningful to the topic being studied
- Use superhero scenarios to make it engaging
- Provide explanations for the correct order""",
    FORMAT_CATCH_MISTAKE: """
CATCH MISTAKE FORMAT:
- 70% of problems should contain intentional mistakes for students to catch
- 30% should be completely correct to keep students alert
- Make mistakes realistic (common student errors, not obvious blunders)
- Provide 3-4 step solution that either:
  - Contains ONE realistic mistake (calculation error, wrong formula, logic error)
  - Is completely correct (to test if students can recognize good work)
- Make mistakes subtle but catchable by grade-level students

MISTAKE TYPES by difficulty:
- Easy: Obvious calculation errors, wrong operations, basic concept confusion
- Normal: Sign errors, unit mistakes, skipped steps, formula misapplication
- Hard: Formula confusion, logic errors, subtle calculation mistakes, advanced concept errors
- Expert: Complex reasoning errors, advanced concept misapplication, multi-step logic errors""",
}

OUTPUT_FORMATS = {
    FORMAT_MULTIPLE_CHOICE: """{
  "question": "Create an engaging question about the specific topic",
  "topic": "specific topic name",
  "format": "multiple-choice",
  "options": [
    {"id": "A", "text": "Option A", "isCorrect": false, "explanation": "Why this is wrong"},
    {"id": "B", "text": "Option B", "isCorrect": true, "explanation": "Why this is correct"},
    {"id": "C", "text": "Option C", "isCorrect": false, "explanation": "Why this is wrong"},
    {"id": "D", "text": "Option D", "isCorrect": false, "explanation": "Why this is wrong"}
  ],
  "correctAnswer": "B",
  "explanation": "Detailed explanation of the correct answer and why it's right"
}""",
    FORMAT_TRUE_FALSE: """{
  "question": "Read each statement and determine if it's true or false about the specific topic",
  "topic": "specific topic name",
  "format": "true-false",
  "options": [
    {"id": "1", "text": "Statement 1", "isCorrect": true, "explanation": "Why this is true"},
    {"id": "2", "text": "Statement 2", "isCorrect": false, "explanation": "Why this is false"},
    {"id": "3", "text": "Statement 3", "isCorrect": true, "explanation": "Why this is true"},
    {"id": "4", "text": "Statement 4", "isCorrect": false, "explanation": "Why this is false"},
    {"id": "5", "text": "Statement 5", "isCorrect": true, "explanation": "Why this is true"}
  ],
  "correctAnswer": "TFTFT",
  "explanation": "Summary of the key concepts tested"
}""",
    FORMAT_FILL_BLANK: """{
  "question": "Fill in the blanks using the word bank provided",
  "topic": "specific topic name",
  "format": "fill-blank",
  "blanks": ["word1", "word2", "word3"],
  "correctAnswer": "word1,word2,word3",
  "explanation": "Explanation of each blank and why those words are correct"
}""",
    FORMAT_MATCHING: """{
  "question": "Match each item on the left with its correct pair on the right",
  "topic": "specific topic name",
  "format": "matching",
  "matchingPairs": [
    {"question": "Item 1", "answer": "Match A"},
    {"question": "Item 2", "answer": "Match B"},
    {"question": "Item 3", "answer": "Match C"}
  ],
  "correctAnswer": "1A,2B,3C",
  "explanation": "Explanation of each matching pair and their relationship"
}""",
    FORMAT_ORDERING: """{
  "question": "Put the following items in the correct order",
  "topic": "specific topic name",
  "format": "ordering",
  "orderingItems": ["First step", "Second step", "Third step", "Fourth step"],
  "correctAnswer": "1,2,3,4",
  "explanation": "Explanation of why this order is correct and the logical sequence"
}""",
    FORMAT_CATCH_MISTAKE: """{
  "question": "Create a unique question about the specific topic",
  "topic": "specific topic name",
  "format": "catch-mistake",
  "steps": ["Step 1: ...", "Step 2: ...", "Step 3: ..."],
  "hasError": true,
  "errorStep": 1,
  "correctAnswer": 120,
  "explanation": "Great catch! The character made a mistake with [specific topic]. The correct approach is..."
}""",
}


# =============================================================================
# Request
# =============================================================================

@dataclass
class QuestionRequest:
    """문제 생성 요청."""
    grade: int
    subject: str
    difficulty: str = DEFAULT_DIFFICULTY
    opponent_id: str | None = None
    previous_questions: list[str] = field(default_factory=list)
    student_weak_areas: list[str] = field(default_factory=list)
    topic: str | None = None
    format: str | None = None


def resolve_format(fmt: str | None, rng: random.Random | None = None) -> str:
    """mix / auto / 빈 값 → 6개 형식 중 임의 선택. 그 외는 그대로."""
    if not fmt or fmt in RANDOM_FORMATS:
        return (rng or random).choice(QUESTION_FORMATS)
    return fmt


def character_context(opponent_id: str | None) -> tuple[str, str]:
    """상대 ID → (프롬프트용 캐릭터 라벨, 세계관). 모르는 ID 는 시작 상대."""
    opponent = catalog.get_opponent(opponent_id or STARTING_OPPONENT)
    if opponent is None:
        opponent = catalog.get_opponent(STARTING_OPPONENT)
    if opponent is None:
        return "a superhero", "a world of heroes"
    return opponent.prompt_character, opponent.prompt_world


def build_prompt(request: QuestionRequest) -> str:
    """요청 → 사용자 프롬프트 (형식별 지시 + JSON 출력 스키마 포함)."""
    fmt = request.format or FORMAT_CATCH_MISTAKE
    topic = request.topic or DEFAULT_FOCUS_TOPIC
    character, world = character_context(request.opponent_id)

    weak_areas = ""
    if request.student_weak_areas:
        weak_areas = (
            "\nSTUDENT WEAK AREAS (practise these): "
            f"{', '.join(request.student_weak_areas)}\n"
        )

    return PROMPT_TEMPLATE.format(
        difficulty=request.difficulty,
        subject=request.subject,
        grade=request.grade,
        textbook_topics=catalog.textbook_topics(request.grade, request.subject),
        topic=topic,
        grade_context=catalog.grade_context(request.grade, request.subject),
        difficulty_context=catalog.difficulty_context(request.difficulty),
        character=character,
        world=world,
        format=fmt,
        format_upper=fmt.upper(),
        previous=", ".join(request.previous_questions) or "none",
        weak_areas=weak_areas,
        format_instructions=FORMAT_INSTRUCTIONS.get(
            fmt, FORMAT_INSTRUCTIONS[FORMAT_CATCH_MISTAKE]
        ),
        output_format=OUTPUT_FORMATS.get(fmt, OUTPUT_FORMATS[FORMAT_CATCH_MISTAKE]),
    )


# =============================================================================
# Generator
# =============================================================================

class QuestionGenerator:
    """
    배틀 문제 생성기.

    Usage:
        generator = QuestionGenerator(config)
        problem, fallback = await generator.generate_question(
            QuestionRequest(grade=3, subject="math", opponent_id="iron-man")
        )
    """

    def __init__(
        self,
        config: dict,
        provider: LLMProvider | None = None,
        rng: random.Random | None = None,
    ):
        """
        Args:
            config: 설정 (ai.questions, ai.timeouts, game)
                ai.questions.rate_limit_retries / rate_limit_delay: 429 재시도
            provider: LLM Provider (None이면 첫 호출 때 config 기반 생성)
            rng: 폴백 문제/형식 선택용 난수 (테스트에서 seed 주입)
        """
        self.config = config
        self._provider = provider
        self.rng = rng or random.Random()

        ai_config = config.get("ai", {})
        questions_config = ai_config.get("questions", {})
        self.max_tokens = int(questions_config.get("max_tokens", 800))
        self.temperature = float(questions_config.get("temperature", 0.8))
        self.timeout = float(ai_config.get("timeouts", {}).get("llm", 90.0))
        self.rate_limit_retries = int(questions_config.get("rate_limit_retries", 3))
        self.rate_limit_delay = float(questions_config.get("rate_limit_delay", 1.0))
        self.set_delay = float(
            config.get("game", {}).get("question_set_delay", 0.5)
        )

    def _get_provider(self) -> LLMProvider | None:
        """Provider (lazy). API 키가 없으면 None → 폴백 은행 사용."""
        if self._provider is None:
            try:
                self._provider = create_llm_provider(self.config)
            except CompletionError as e:
                logger.warning(f"No LLM provider for questions: {e.message}")
                return None
        return self._provider

    async def generate_question(self, request: QuestionRequest) -> tuple[Problem, bool]:
        """
        문제 1개 생성.

        Returns:
            (Problem, fallback) - fallback=True 면 문제 은행에서 가져온 문제
        """
        request = replace(request, format=resolve_format(request.format, self.rng))

        provider = self._get_provider()
        if provider is None:
            return self.fallback_question(request), True

        async def _complete() -> str:
            return await provider.complete(
                build_prompt(request),
                system=SYSTEM_PROMPT,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )

        try:
            text = await asyncio.wait_for(
                retry_with_exponential_backoff(
                    _complete,
                    max_retries=self.rate_limit_retries,
                    initial_delay=self.rate_limit_delay,
                    exceptions=(CompletionError,),
                    retry_if=is_rate_limited,
                ),
                timeout=self.timeout,
            )
            data = parse_llm_json(text)
        except (ProviderError, LLMParseError, TimeoutError) as e:
            logger.warning(f"Question generation failed, using fallback: {e}")
            return self.fallback_question(request), True

        if isinstance(data, list):
            data = next((item for item in data if isinstance(item, dict)), None)
        if not isinstance(data, dict) or not data.get("question"):
            logger.warning("Question generation returned no question, using fallback")
            return self.fallback_question(request), True

        return self._normalize(data, request), False

    def _normalize(self, data: dict, request: QuestionRequest) -> Problem:
        """LLM dict → Problem. 학년/과목/난이도는 요청값이 우선."""
        data = {
            **data,
            "id": generate_question_id("q"),
            "grade": request.grade,
            "subject": request.subject,
            "difficulty": request.difficulty,
        }
        data["format"] = data.get("format") or request.format
        data["topic"] = data.get("topic") or request.topic or ""
        data.setdefault("opponentId", request.opponent_id)
        return Problem.from_dict(data)

    def fallback_question(self, request: QuestionRequest) -> Problem:
        """<opponent>-<subject>-<grade> 문제 은행에서 임의 1개 (catch-mistake)."""
        entries = catalog.fallback_questions(
            request.opponent_id, request.subject, request.grade
        )
        entry = self.rng.choice(entries) if entries else {
            "question": "Is 2 + 2 = 4?",
            "steps": ["Step 1: 2 + 2 = 4"],
            "hasError": False,
            "correctAnswer": 4,
            "explanation": "2 + 2 is 4.",
        }
        return Problem.from_dict({
            **entry,
            "id": generate_question_id("fallback"),
            "grade": request.grade,
            "subject": request.subject,
            "difficulty": request.difficulty,
            "format": FORMAT_CATCH_MISTAKE,
            "opponentId": request.opponent_id or STARTING_OPPONENT,
            "storyContext": entry.get("storyContext")
            or story_context(request.subject, self.rng)
            or None,
        })

    async def generate_question_set(
        self,
        request: QuestionRequest,
        count: int = 5,
        delay: float | None = None,
    ) -> list[Problem]:
        """
        여러 문제 생성. 앞서 만든 문제 텍스트를 previous_questions 로 넘겨 중복 회피.

        Args:
            delay: 호출 간 대기 (초, None이면 game.question_set_delay)
        """
        delay = self.set_delay if delay is None else delay
        problems: list[Problem] = []
        used: list[str] = list(request.previous_questions)

        for i in range(count):
            problem, _ = await self.generate_question(
                replace(request, previous_questions=list(used))
            )
            problems.append(problem)
            used.append(problem.question)
            if delay > 0 and i < count - 1:
                await asyncio.sleep(delay)

        return problems
