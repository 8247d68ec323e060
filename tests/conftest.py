import io

import pytest
from PyPDF2 import PdfWriter

from sheet_annotator.core import paths


def _make_pdf(pages: int = 2, width: float = 200, height: float = 100, info=None, outline=()) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=width, height=height)
    if info:
        writer.add_metadata(info)
    for title, page_number in outline:
        writer.add_outline_item(title, page_number)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture
def make_pdf():
    """Factory for blank PDFs: make_pdf(pages=2, width=200, height=100, info=None, outline=()) -> bytes."""
    return _make_pdf


@pytest.fixture
def blank_pdf() -> bytes:
    """Two blank 200x100pt pages."""
    return _make_pdf()


@pytest.fixture
def sheet_dir(tmp_path, monkeypatch):
    """tmp_path configured as the only accessible directory."""
    saved = list(paths.SEARCH_DIRECTORIES)
    monkeypatch.setattr(paths, "MAX_FILE_SIZE", paths.MAX_FILE_SIZE)
    monkeypatch.setattr(paths, "OCR_LANGUAGE", paths.OCR_LANGUAGE)
    paths.configure(paths.parse_arguments([str(tmp_path)]))
    yield tmp_path
    paths.SEARCH_DIRECTORIES.clear()
    paths.SEARCH_DIRECTORIES.extend(saved)
