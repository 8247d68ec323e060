from pathlib import Path
from typing import Any, Dict, List, Optional
import logging
import pdfplumber

from sheet_annotator.core.metadata import extract_metadata_from_text_layer
from sheet_annotator.core.page_range import parse_page_range
from sheet_annotator.core.types import ExtractedMetadata

logger = logging.getLogger(__name__)


def read_text_layer(pdf_path: Path, page_range: Optional[str] = None) -> List[Dict[str, Any]]:
    """Embedded text per page: [{page_number, text, char_count}]."""
    pages: List[Dict[str, Any]] = []
    try:
        with pdfplumber.open(pdf_path) as pdf:
            for page_index in parse_page_range(len(pdf.pages), page_range):
                text = (pdf.pages[page_index].extract_text() or "").strip()
                pages.append({"page_number": page_index + 1, "text": text, "char_count": len(text)})
    except Exception as e:
        logger.error(f"pdfplumber text extraction failed for {pdf_path}: {e}")
        raise
    return pages


def read_document_info(pdf_path: Path) -> Dict[str, str]:
    with pdfplumber.open(pdf_path) as pdf:
        md = pdf.metadata or {}
        return {
            "title": str(md.get("Title", "")),
            "author": str(md.get("Author", "")),
            "subject": str(md.get("Subject", "")),
            "creator": str(md.get("Creator", "")),
            "producer": str(md.get("Producer", "")),
            "creation_date": str(md.get("CreationDate", "")),
        }


def extract_pdf_metadata(pdf_path: Path) -> ExtractedMetadata:
    """Title/composer from a digitally-authored PDF's text layer.

    Returns empty fields (and empty raw text) when the PDF carries no text,
    e.g. a scanned sheet saved as images.
    """
    pages = read_text_layer(pdf_path)
    raw_text = "\n".join(p["text"] for p in pages if p["text"])
    metadata = extract_metadata_from_text_layer(raw_text)
    logger.info(f"Text layer metadata for {pdf_path.name} - Title: {metadata.title} | Composer: {metadata.composer}")
    return metadata
