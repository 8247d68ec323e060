import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP

from sheet_annotator.core import paths as _paths
from sheet_annotator.core.paths import find_file, is_image, is_pdf, list_sheet_files_text, resolve_output_path
from sheet_annotator.core.metadata import extract_metadata, extract_metadata_from_text_layer
from sheet_annotator.backends.pdfplumber_backend import extract_pdf_metadata, read_document_info, read_text_layer
from sheet_annotator.backends.pypdf2_backend import (
    CompositorError,
    annotated_filename,
    compose_annotations,
    has_annotations,
    load_pdf,
    write_pdf,
)
from sheet_annotator.backends.tesseract_backend import extract_image_metadata

logger = logging.getLogger(__name__)

mcp = FastMCP("Sheet Annotator")

NO_TEXT_LAYER_WARNING = "No embedded text found in PDF. Please convert to image for OCR."
UNSUPPORTED_WARNING = "Unsupported file type for OCR"


def sheet_metadata(path: Path, language: str) -> Dict[str, Any]:
    """Metadata guess for a sheet file: text layer for PDFs, OCR for images."""
    result: Dict[str, Any] = {"file_name": path.name}
    if is_pdf(path):
        metadata = extract_pdf_metadata(path)
        result["source"] = "text_layer"
        result.update(metadata.to_json_dict())
        if not metadata.title and not metadata.composer and not metadata.raw_text:
            result["warning"] = NO_TEXT_LAYER_WARNING
    elif is_image(path):
        metadata = extract_image_metadata(path, language)
        result["source"] = "ocr"
        result.update(metadata.to_json_dict())
    else:
        result.update({"source": None, "title": "", "composer": "", "warning": UNSUPPORTED_WARNING})
    return result


def _parse_annotations(annotations: Any) -> Dict[str, Any]:
    if isinstance(annotations, str):
        annotations = json.loads(annotations) if annotations.strip() else {}
    if annotations is None:
        return {}
    if not isinstance(annotations, dict):
        raise ValueError("annotations must be an object keyed by page number")
    return annotations


@mcp.tool()
async def extract_sheet_metadata(file_path: str) -> str:
    """Guess the title and composer of a sheet.

    Parameters
    ----------
    file_path: str
        Filename (relative) or absolute path to a PDF or a scanned image
        (png, jpg, tiff, ...) inside the configured accessible directories.
        PDFs are read from their embedded text (first line title, second line
        composer); images are OCR'd with the configured Tesseract language.
    """
    path = find_file(file_path)
    if not path:
        return f"Error: Could not find file '{file_path}'."
    try:
        result = sheet_metadata(path, _paths.OCR_LANGUAGE)
    except Exception as e:
        logger.error(f"Metadata extraction failed for {path}: {e}")
        return f"Error: OCR failed: {e}"
    return json.dumps(result, indent=2, ensure_ascii=False)


@mcp.tool()
async def extract_metadata_from_text(text: str, strategy: str = "ocr") -> str:
    """Guess title and composer from already-recognized text.

    `strategy` is "ocr" (noise-tolerant heuristic with Μουσική/Στίχοι labels)
    or "text_layer" (first line title, second line composer).
    """
    if strategy == "ocr":
        metadata = extract_metadata(text)
    elif strategy == "text_layer":
        metadata = extract_metadata_from_text_layer(text)
    else:
        return f"Error: Unknown strategy '{strategy}'. Use 'ocr' or 'text_layer'."
    return json.dumps(metadata.to_json_dict(), indent=2, ensure_ascii=False)


@mcp.tool()
async def render_annotated_sheet(
    file_path: str,
    annotations: str,
    output_path: Optional[str] = None,
    title: Optional[str] = None,
) -> str:
    """Burn annotations into a copy of a PDF sheet.

    Parameters
    ----------
    file_path: str
        The PDF to annotate.
    annotations: str
        JSON object keyed by 1-based page number. Each value is a list of
        `{"type": "path", "points": [{"x", "y"}...], "color", "opacity", "strokeWidth"}`
        or `{"type": "text", "x", "y", "text", "size", "color"}` with coordinates
        normalized to 0..1 from the top-left corner.
    output_path: Optional[str]
        Destination PDF inside the accessible directories. Defaults to
        `<title>_annotated.pdf` next to the source.
    title: Optional[str]
        Sheet title used for the default output name (defaults to the file stem).
    """
    path = find_file(file_path)
    if not path:
        return f"Error: Could not find file '{file_path}'."
    if not is_pdf(path):
        return f"Error: '{path.name}' is not a PDF."

    try:
        annotation_map = _parse_annotations(annotations)
    except ValueError as e:
        return f"Error: Invalid annotations: {e}"

    if output_path:
        destination = resolve_output_path(output_path)
        if destination is None:
            return f"Error: Output path '{output_path}' is not a PDF inside the accessible directories."
    else:
        destination = path.with_name(annotated_filename(title or path.stem))

    if not has_annotations(annotation_map):
        logger.info(f"No annotations for {path.name}; returning the original file")
        return json.dumps({"file_name": path.name, "output_path": str(path), "pages_annotated": [], "failures": []},
                          indent=2, ensure_ascii=False)

    try:
        result = compose_annotations(load_pdf(path.read_bytes()), annotation_map)
        destination.write_bytes(write_pdf(result.writer))
    except CompositorError as e:
        return f"Error: {e}"
    except OSError as e:
        logger.error(f"Failed to write annotated PDF {destination}: {e}")
        return f"Error: {e}"

    logger.info(f"Annotated PDF written to {destination} (pages: {result.pages_annotated})")
    summary = {
        "file_name": path.name,
        "output_path": str(destination),
        "pages_annotated": result.pages_annotated,
        "failures": result.failures,
    }
    return json.dumps(summary, indent=2, ensure_ascii=False)


@mcp.tool()
async def read_sheet_text(file_path: str, page_range: Optional[str] = None) -> str:
    """Extract embedded page text and document info from a PDF sheet.

    `page_range`: `first`, `last`, `N`, `S-E`, comma-separated combinations, or omit for all pages.
    """
    path = find_file(file_path)
    if not path:
        return f"Error: Could not find file '{file_path}'."
    if not is_pdf(path):
        return f"Error: '{path.name}' is not a PDF."
    try:
        pages = read_text_layer(path, page_range)
        result = {
            "file_name": path.name,
            "page_range": page_range or "all",
            "extracted_pages": pages,
            "metadata": read_document_info(path),
        }
        return json.dumps(result, indent=2, ensure_ascii=False)
    except ValueError as ve:
        return f"Error: {ve}"
    except Exception as e:
        logger.error(f"Text extraction failed: {e}")
        return f"Error: {e}"


@mcp.tool()
async def list_sheet_files(directory: str = "all", depth: int = 0, limit: int = 50) -> str:
    """
    List sheets (PDFs and scanned images) under the configured directories.

    Parameters
    ----------
    directory : str, default "all"
        "all" scans every allowed root; otherwise a substring filter on each
        root's basename, then its absolute path.
    depth : int, default 0
        0 = only the root. Clamped to 5.
    limit : int, default 50
        Maximum files shown per root, most recent first. Clamped to 1..200.
    """
    return list_sheet_files_text(directory, depth, limit)


@mcp.tool()
async def show_accessible_directories() -> str:
    """Return the current directory/configuration constraints as JSON."""
    info = {
        "accessible_directories": _paths.SEARCH_DIRECTORIES,
        "directory_count": len(_paths.SEARCH_DIRECTORIES),
        "max_file_size_mb": _paths.MAX_FILE_SIZE // (1024 * 1024),
        "allowed_extensions": _paths.ALLOWED_EXTENSIONS,
        "ocr_language": _paths.OCR_LANGUAGE,
    }
    return json.dumps(info, indent=2, ensure_ascii=False)
