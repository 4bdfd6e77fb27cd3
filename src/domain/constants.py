"""
Domain Constants: 게임/숙제 도우미 전역 상수.

라운드 규칙, 점수 배율, 문제 형식 등 시스템 전반에서 사용되는 값들.
default.yaml 의 game 섹션으로 일부 오버라이드 가능.
"""

# =============================================================================
# Difficulty (난이도)
# =============================================================================
# 순서가 의미를 가짐: adaptive difficulty 가 인덱스로 한 단계씩 이동

DIFFICULTIES = ("easy", "normal", "hard", "expert")
DEFAULT_DIFFICULTY = "normal"

# 점수 배율
DIFFICULTY_MULTIPLIERS = {
    "easy": 1.0,
    "normal": 1.2,
    "hard": 1.5,
    "expert": 2.0,
}

# =============================================================================
# Question Formats (문제 형식)
# =============================================================================

FORMAT_MULTIPLE_CHOICE = "multiple-choice"
FORMAT_TRUE_FALSE = "true-false"
FORMAT_FILL_BLANK = "fill-blank"
FORMAT_CATCH_MISTAKE = "catch-mistake"
FORMAT_MATCHING = "matching"
FORMAT_ORDERING = "ordering"

QUESTION_FORMATS = (
    FORMAT_MULTIPLE_CHOICE,
    FORMAT_TRUE_FALSE,
    FORMAT_FILL_BLANK,
    FORMAT_CATCH_MISTAKE,
    FORMAT_MATCHING,
    FORMAT_ORDERING,
)

# 라운드마다 무작위 형식을 고르는 선택지
RANDOM_FORMATS = ("mix", "auto")

# =============================================================================
# Battle Rules (배틀 규칙)
# =============================================================================

TOTAL_ROUNDS = 5
ROUND_TIME_LIMIT = 15  # seconds
VICTORY_THRESHOLD = 500  # score > threshold → 승리

BASE_POINTS = 100
TIME_BONUS_PER_SECOND = 5
STREAK_BONUS = 10

# 풀이 공개 지연 (초)
SOLUTION_DELAY_CATCH_MISTAKE = 3.0
SOLUTION_DELAY_VETERAN = 1.0
SOLUTION_DELAY_DEFAULT = 1.0
VETERAN_BATTLES = 5  # battles_played > 5 이면 veteran

# 파워업 효과
EXTRA_TIME_SECONDS = 10
DOUBLE_POINTS_QUESTIONS = 3
SLOW_TIME_SECONDS = 30
SLOW_TIME_SCALE = 0.5

# 업적 보상 파워업 지급량
ACHIEVEMENT_POWER_UP_GRANT = 3

# 레벨업 기준 점수
POINTS_PER_LEVEL = 1000

# =============================================================================
# Game Phases (배틀 단계)
# =============================================================================

PHASE_SETUP = "setup"
PHASE_OPPONENT_SELECT = "opponent-select"
PHASE_PROBLEM = "problem"
PHASE_SOLUTION = "solution"
PHASE_FEEDBACK = "feedback"
PHASE_COMPLETE = "complete"
PHASE_VICTORY = "victory"

# =============================================================================
# Player Profile Defaults
# =============================================================================

DEFAULT_PLAYER_ID = "player-1"
DEFAULT_PLAYER_NAME = "Hero"
STARTING_OPPONENT = "iron-man"
STARTING_POWER_UPS = {"extraTime": 3, "hint": 2, "skip": 1}
DEFAULT_AVERAGE_RESPONSE_TIME = 15.0

# 이동 평균 가중치 (기존값 0.8 / 신규값 0.2)
MOVING_AVERAGE_WEIGHT = 0.8

# =============================================================================
# Homework Helper
# =============================================================================

SUBJECTS = (
    "Mathematics",
    "Algebra",
    "Geometry",
    "Calculus",
    "Science",
    "Physics",
    "Chemistry",
    "Biology",
    "English",
    "History",
    "Geography",
    "Computer Science",
    "Economics",
    "Business",
    "Statistics",
    "Social Studies",
    "Language",
    "Other",
)

GRADES = tuple(str(g) for g in range(1, 13)) + ("12+",)

MIN_FLASHCARDS = 5
FALLBACK_CONFIDENCE = 80
EXPLANATION_SUMMARY_LIMIT = 120

MAX_UPLOAD_SIZE_MB = 10

DOCUMENT_EXTENSIONS = (".docx",)
IMAGE_MIME_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")
