"""
test_documents.py - .docx 텍스트 추출 테스트
"""

import io

import pytest
from docx import Document

from src.app.services.documents import extract_docx_text, is_supported_document
from src.domain.errors import ErrorCodes, GameRuleError


def make_docx(paragraphs: list[str], table: list[list[str]] | None = None) -> bytes:
    document = Document()
    for text in paragraphs:
        document.add_paragraph(text)
    if table:
        grid = document.add_table(rows=len(table), cols=len(table[0]))
        for r, row in enumerate(table):
            for c, value in enumerate(row):
                grid.cell(r, c).text = value
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


class TestIsSupportedDocument:
    def test_docx(self):
        assert is_supported_document("Homework.DOCX") is True

    @pytest.mark.parametrize("name", ["notes.pdf", "essay.doc", "", None])
    def test_other(self, name):
        assert is_supported_document(name) is False


class TestExtractDocxText:
    """문단 + 표 셀 텍스트."""

    def test_paragraphs_and_table(self):
        data = make_docx(
            ["1. What is 2 + 2?", "", "2. Name a prime number."],
            table=[["Q3", "Solve x + 1 = 3"]],
        )

        text = extract_docx_text(data)

        assert text.splitlines() == [
            "1. What is 2 + 2?",
            "2. Name a prime number.",
            "Q3 | Solve x + 1 = 3",
        ]

    def test_not_a_docx(self):
        with pytest.raises(GameRuleError) as exc_info:
            extract_docx_text(b"%PDF-1.4 not a word file")

        assert exc_info.value.code == ErrorCodes.UNSUPPORTED_FILE

    def test_empty_document(self):
        assert extract_docx_text(make_docx([])) == ""
