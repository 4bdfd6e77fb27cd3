"""
Document text extraction: .docx → 평문.

문단 텍스트 + 표 셀 텍스트만 추출 (서식/이미지 무시).
"""

import io
import logging
import zipfile

from docx import Document
from docx.opc.exceptions import PackageNotFoundError

from src.domain.constants import DOCUMENT_EXTENSIONS
from src.domain.errors import ErrorCodes, GameRuleError

logger = logging.getLogger(__name__)


def is_supported_document(filename: str | None) -> bool:
    return bool(filename) and filename.lower().endswith(DOCUMENT_EXTENSIONS)


def extract_docx_text(file_bytes: bytes) -> str:
    """
    .docx 바이트 → 텍스트.

    Raises:
        GameRuleError: UNSUPPORTED_FILE (docx 가 아니거나 손상)
    """
    try:
        document = Document(io.BytesIO(file_bytes))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as e:
        logger.warning(f"Could not open document: {e}")
        raise GameRuleError(ErrorCodes.UNSUPPORTED_FILE, reason=str(e)) from e

    lines = [p.text.strip() for p in document.paragraphs if p.text.strip()]

    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                lines.append(" | ".join(cells))

    return "\n".join(lines)
