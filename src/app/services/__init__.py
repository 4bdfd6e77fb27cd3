"""
Application Services.

역할:
- homework: 사진/텍스트/문서 → 풀이 JSON (OCR → solution → explanation → hints)
- questions: 배틀 라운드 문제 생성 (LLM, 실패 시 문제 은행)
- ocr: Gemini OCR 서비스
- parsing: LLM 응답 JSON 파싱 + fallback 답변
- documents: .docx 텍스트 추출
"""

from .homework import HomeworkService
from .ocr import OCRService
from .questions import QuestionGenerator, QuestionRequest

__all__ = [
    "HomeworkService",
    "OCRService",
    "QuestionGenerator",
    "QuestionRequest",
]
