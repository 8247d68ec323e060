from pathlib import Path
import logging

from PIL import Image
import pytesseract

from sheet_annotator.core.metadata import extract_metadata
from sheet_annotator.core.types import ExtractedMetadata

logger = logging.getLogger(__name__)

# Tesseract language codes: 'eng', 'ell' (Greek), 'eng+ell', ...
DEFAULT_OCR_LANGUAGE = "eng"


def ocr_image(image_path: Path, language: str = DEFAULT_OCR_LANGUAGE, psm_mode: int = 3) -> str:
    try:
        with Image.open(image_path) as pil_image:
            text = pytesseract.image_to_string(
                pil_image,
                lang=language,
                config=f"--psm {psm_mode}",
            )
    except Exception as e:
        logger.error(f"Tesseract OCR failed for {image_path}: {e}")
        raise
    logger.debug(f"OCR raw text for {image_path.name}:\n{text}")
    return text


def extract_image_metadata(image_path: Path, language: str = DEFAULT_OCR_LANGUAGE) -> ExtractedMetadata:
    """OCR a scanned title page and guess title/composer from it."""
    return extract_metadata(ocr_image(image_path, language))
