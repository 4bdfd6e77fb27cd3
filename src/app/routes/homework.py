"""
Homework Routes: 숙제 도우미 API.

- POST /api/gpt4v → 사진 1장 → 풀이 JSON
- POST /api/homework-helper → 질문 텍스트 → 풀이 배열
- POST /api/process-document → .docx → 풀이 배열
- GET /api/test-openai → LLM 연결 확인
- POST /api/homework/detect → 과목/학년 추정

에러 응답 본문은 {"error": message} (프런트엔드가 err.error 를 읽음).
"""

import logging
import traceback
from typing import Any

from fastapi import APIRouter, Body, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from src.app.services.documents import extract_docx_text, is_supported_document
from src.app.services.homework import HomeworkService, detect_subject_and_grade
from src.domain.constants import IMAGE_MIME_TYPES, MAX_UPLOAD_SIZE_MB
from src.domain.errors import ErrorCodes, GameRuleError, status_for

logger = logging.getLogger(__name__)

api_router = APIRouter()


def get_homework_service(request: Request) -> HomeworkService:
    """app.state 의 HomeworkService (없으면 config 기반 생성 후 캐시)."""
    service = getattr(request.app.state, "homework_service", None)
    if service is None:
        service = HomeworkService(request.app.state.config)
        request.app.state.homework_service = service
    return service


def error_response(request: Request, endpoint: str, error: Exception) -> JSONResponse:
    """
    예외 → JSON 에러 응답.

    GameRuleError 는 코드별 status (400/413/415), 그 외는 500 + 에러 로그.
    """
    if isinstance(error, GameRuleError):
        return JSONResponse(
            status_code=status_for(error),
            content={"error": error.message, "code": error.code},
        )

    logger.error(f"Error in {endpoint}: {error}", exc_info=error)
    content: dict[str, Any] = {"error": getattr(error, "message", None) or str(error)}
    config = request.app.state.config
    if config.get("logging", {}).get("debug_errors", False):
        content["stack"] = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
    return JSONResponse(status_code=500, content=content)


async def read_upload(request: Request, upload: UploadFile) -> bytes:
    """
    업로드 파일 읽기 + 크기 제한 (homework.max_upload_mb).

    Raises:
        GameRuleError: FILE_TOO_LARGE
    """
    max_mb = request.app.state.config.get("homework", {}).get(
        "max_upload_mb", MAX_UPLOAD_SIZE_MB
    )
    file_bytes = await upload.read()
    if len(file_bytes) > max_mb * 1024 * 1024:
        raise GameRuleError(
            ErrorCodes.FILE_TOO_LARGE,
            filename=upload.filename,
            size=len(file_bytes),
            max_mb=max_mb,
        )
    return file_bytes


# =============================================================================
# API Routes
# =============================================================================

@api_router.post("/gpt4v", response_model=None)
async def solve_homework_image(
    request: Request,
    image: UploadFile = File(...),
    subject: str = Form(""),
    grade: str = Form(""),
) -> dict[str, Any] | JSONResponse:
    """
    숙제 사진 → 풀이 JSON.

    OCR 로 문제를 먼저 읽고, 못 읽으면 이미지 그대로 vision 풀이.
    """
    mime_type = (image.content_type or "").lower()
    logger.info(f"[gpt4v] file={image.filename}, mimetype={mime_type}")

    try:
        if mime_type not in IMAGE_MIME_TYPES:
            raise GameRuleError(
                ErrorCodes.UNSUPPORTED_FILE,
                filename=image.filename,
                content_type=mime_type,
            )
        image_bytes = await read_upload(request, image)
        service = get_homework_service(request)
        return await service.solve_image(image_bytes, mime_type, subject, grade)
    except Exception as e:
        return error_response(request, "/api/gpt4v", e)


@api_router.post("/homework-helper", response_model=None)
async def solve_homework_text(
    request: Request,
    payload: dict[str, Any] = Body(...),
) -> list[dict[str, Any]] | JSONResponse:
    """
    질문 텍스트 → 풀이 배열.

    Body: {"question": "...", "subject": "...", "grade": "..."}
    여러 문제가 섞여 있으면 번호/Q 표시 기준으로 나눠서 각각 풀이.
    """
    try:
        service = get_homework_service(request)
        return await service.solve_text(
            str(payload.get("question") or ""),
            str(payload.get("subject") or ""),
            str(payload.get("grade") or ""),
        )
    except Exception as e:
        return error_response(request, "/api/homework-helper", e)


@api_router.post("/process-document", response_model=None)
async def solve_homework_document(
    request: Request,
    document: UploadFile = File(...),
    subject: str = Form(""),
    grade: str = Form(""),
) -> list[dict[str, Any]] | JSONResponse:
    """
    .docx 숙제 → 풀이 배열.

    LLM 문제 추출이 빈 배열/비JSON 이면 수동 분할.
    """
    logger.info(f"[process-document] file={document.filename}")

    try:
        if not is_supported_document(document.filename):
            raise GameRuleError(ErrorCodes.UNSUPPORTED_FILE, filename=document.filename)
        file_bytes = await read_upload(request, document)
        text = extract_docx_text(file_bytes)
        service = get_homework_service(request)
        return await service.solve_document(text, subject, grade)
    except Exception as e:
        return error_response(request, "/api/process-document", e)


@api_router.get("/test-openai", response_model=None)
async def test_llm_connection(request: Request) -> dict[str, Any] | JSONResponse:
    """LLM 연결 확인 → {"ok": true, "response": ...}."""
    try:
        service = get_homework_service(request)
        return {"ok": True, "response": await service.ping()}
    except Exception as e:
        return error_response(request, "/api/test-openai", e)


@api_router.post("/homework/detect")
async def detect_homework_subject(
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    """
    입력 중인 질문의 과목/학년 추정.

    Body: {"question": "...", "subject": "선택 과목", "grade": "선택 학년"}
    """
    detection = detect_subject_and_grade(
        str(payload.get("question") or ""),
        selected_subject=payload.get("subject") or None,
        selected_grade=str(payload["grade"]) if payload.get("grade") else None,
    )
    return detection.to_dict()
