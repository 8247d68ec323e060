import io

import pytest
from PIL import Image
from PyPDF2 import PdfReader

from sheet_annotator.backends import tesseract_backend
from sheet_annotator.backends.pdfplumber_backend import extract_pdf_metadata, read_text_layer
from sheet_annotator.backends.pypdf2_backend import render_annotated_pdf


@pytest.fixture
def titled_pdf(tmp_path, blank_pdf):
    """A PDF whose first page carries 'Clair de Lune' over 'Claude Debussy' as real text."""
    data = render_annotated_pdf(blank_pdf, {
        "1": [
            {"type": "text", "x": 0.1, "y": 0.1, "text": "Clair de Lune", "size": 14},
            {"type": "text", "x": 0.1, "y": 0.5, "text": "Claude Debussy"},
        ]
    })
    path = tmp_path / "clair.pdf"
    path.write_bytes(data)
    return path


def test_read_text_layer_per_page(titled_pdf):
    pages = read_text_layer(titled_pdf)
    assert [p["page_number"] for p in pages] == [1, 2]
    assert pages[0]["text"].splitlines() == ["Clair de Lune", "Claude Debussy"]
    assert pages[1] == {"page_number": 2, "text": "", "char_count": 0}
    assert read_text_layer(titled_pdf, "last") == [pages[1]]


def test_extract_pdf_metadata_uses_first_two_lines(titled_pdf):
    metadata = extract_pdf_metadata(titled_pdf)
    assert metadata.title == "Clair de Lune"
    assert metadata.composer == "Claude Debussy"


def test_extract_pdf_metadata_without_text_layer(tmp_path, blank_pdf):
    path = tmp_path / "scan.pdf"
    path.write_bytes(blank_pdf)
    metadata = extract_pdf_metadata(path)
    assert tuple(metadata) == ("", "", "")


def test_image_metadata_runs_ocr_heuristic(tmp_path, monkeypatch):
    image_path = tmp_path / "title.png"
    Image.new("RGB", (40, 20), "white").save(image_path)
    calls = {}

    def fake_image_to_string(image, lang, config):
        calls.update(lang=lang, config=config, size=image.size)
        return "~~~~\nΖορμπάς\n• • •\nΜουσική: Μίκης Θεοδωράκης\n"

    monkeypatch.setattr(tesseract_backend.pytesseract, "image_to_string", fake_image_to_string)
    metadata = tesseract_backend.extract_image_metadata(image_path, "eng+ell")

    assert calls == {"lang": "eng+ell", "config": "--psm 3", "size": (40, 20)}
    assert metadata.title == "Ζορμπάς"
    assert metadata.composer == "Μίκης Θεοδωράκης"


def test_ocr_errors_propagate(tmp_path):
    bogus = tmp_path / "broken.png"
    bogus.write_bytes(b"not an image")
    with pytest.raises(Exception):
        tesseract_backend.ocr_image(bogus)


def test_rendered_pdf_is_readable_by_pypdf2(blank_pdf):
    out = render_annotated_pdf(blank_pdf, {"1": [{"type": "path", "points": [{"x": 0, "y": 0}, {"x": 1, "y": 1}]}]})
    reader = PdfReader(io.BytesIO(out))
    assert len(reader.pages) == 2
    assert float(reader.pages[0].mediabox.width) == 200
