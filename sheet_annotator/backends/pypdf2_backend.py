"""Burn freehand strokes and text labels into a PDF.

Annotations use normalized coordinates (0..1, origin top-left). Every page that
receives drawings gets one overlay page (content stream + Helvetica font +
opacity graphics states) merged on top of it with PyPDF2's `merge_page`.
"""
import io
import json
import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple

from PyPDF2 import PageObject, PdfReader, PdfWriter
from PyPDF2.generic import DecodedStreamObject, DictionaryObject, FloatObject, NameObject

from sheet_annotator.core.geometry import PagePoint, path_to_page, segments, text_origin
from sheet_annotator.core.page_range import parse_page_key
from sheet_annotator.core.types import Annotation, AnnotationFailure, AnnotationsByPage

logger = logging.getLogger(__name__)

RGB = Tuple[float, float, float]

DEFAULT_PATH_COLOR: RGB = (1.0, 1.0, 0.0)
DEFAULT_TEXT_COLOR: RGB = (0.0, 0.0, 0.0)
DEFAULT_OPACITY = 0.5
DEFAULT_STROKE_WIDTH = 5.0
DEFAULT_FONT_SIZE = 12.0
LINE_HEIGHT_FACTOR = 1.2

FONT_RESOURCE = "/F1"
FONT_BASE = "/Helvetica"
TEXT_ENCODING = "cp1252"  # WinAnsiEncoding

# Document catalog entries kept in the output besides the page tree
CATALOG_ENTRIES = ("/Outlines", "/Names", "/PageLabels", "/PageMode", "/PageLayout", "/ViewerPreferences", "/Lang")


class CompositorError(Exception):
    """The base document could not be loaded, drawn on, or written."""


class CompositionResult(NamedTuple):
    writer: PdfWriter
    pages_annotated: List[int]          # 1-based
    failures: List[AnnotationFailure]


# --- Annotation field parsing ---

def parse_color(value: Any, default: RGB) -> RGB:
    """RGB triple from `{"r","g","b"}` or its JSON string.

    An absent or undecodable value gives `default`; a decodable value that is
    not a valid triple in 0..1 raises ValueError.
    """
    if not value:
        return default
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return default
    if not isinstance(value, Mapping):
        raise ValueError(f"Invalid color payload: {value!r}")
    channels = []
    for key in ("r", "g", "b"):
        channel = value.get(key)
        if isinstance(channel, bool) or not isinstance(channel, (int, float)):
            raise ValueError(f"Color channel '{key}' must be a number, got {channel!r}")
        if not 0 <= channel <= 1:
            raise ValueError(f"Color channel '{key}' out of range: {channel}")
        channels.append(float(channel))
    return channels[0], channels[1], channels[2]


def _unit_interval(value: Any, name: str) -> float:
    number = float(value)
    if not 0 <= number <= 1:
        raise ValueError(f"{name} out of range: {value}")
    return number


def _num(value: float) -> str:
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def has_annotations(annotations_by_page: Optional[AnnotationsByPage]) -> bool:
    return bool(annotations_by_page)


def annotated_filename(title: Optional[str]) -> str:
    """Download name for an annotated sheet, e.g. 'Moonlight Sonata_annotated.pdf'."""
    safe_title = re.sub(r"[^\w\s.-]", "_", title or "sheet", flags=re.ASCII)[:50]
    return f"{safe_title}_annotated.pdf"


# --- Overlay ---

class PageOverlay:
    """Drawing operators for one page, collected before merging."""

    def __init__(self, width: float, height: float):
        self.width = width
        self.height = height
        self._ops: List[bytes] = []
        self._gstates: Dict[float, str] = {}
        self._uses_font = False

    @property
    def is_empty(self) -> bool:
        return not self._ops

    def _gstate(self, opacity: float) -> str:
        name = self._gstates.get(opacity)
        if name is None:
            name = f"/GS{len(self._gstates) + 1}"
            self._gstates[opacity] = name
        return name

    def add_polyline(self, points: List[PagePoint], color: RGB, thickness: float, opacity: float) -> None:
        gs = self._gstate(opacity)
        r, g, b = (_num(c) for c in color)
        ops = []
        for (x1, y1), (x2, y2) in segments(points):
            ops.append(
                f"q {gs} gs {r} {g} {b} RG {_num(thickness)} w "
                f"{_num(x1)} {_num(y1)} m {_num(x2)} {_num(y2)} l S Q\n".encode("ascii")
            )
        self._ops.extend(ops)

    def add_text(self, origin: PagePoint, text: str, size: float, color: RGB) -> None:
        # Helvetica is a standard font: only WinAnsi characters can be shown
        lines = [line.encode(TEXT_ENCODING) for line in text.split("\n")]
        r, g, b = (_num(c) for c in color)
        x, y = origin
        shows = " T* ".join(f"<{line.hex()}> Tj" for line in lines)
        self._ops.append(
            f"q {r} {g} {b} rg BT {FONT_RESOURCE} {_num(size)} Tf {_num(size * LINE_HEIGHT_FACTOR)} TL "
            f"{_num(x)} {_num(y)} Td {shows} ET Q\n".encode("ascii")
        )
        self._uses_font = True

    def _resources(self) -> DictionaryObject:
        resources = DictionaryObject()
        if self._gstates:
            resources[NameObject("/ExtGState")] = DictionaryObject({
                NameObject(name): DictionaryObject({
                    NameObject("/Type"): NameObject("/ExtGState"),
                    NameObject("/CA"): FloatObject(opacity),
                    NameObject("/ca"): FloatObject(opacity),
                })
                for opacity, name in self._gstates.items()
            })
        if self._uses_font:
            resources[NameObject("/Font")] = DictionaryObject({
                NameObject(FONT_RESOURCE): DictionaryObject({
                    NameObject("/Type"): NameObject("/Font"),
                    NameObject("/Subtype"): NameObject("/Type1"),
                    NameObject("/BaseFont"): NameObject(FONT_BASE),
                    NameObject("/Encoding"): NameObject("/WinAnsiEncoding"),
                })
            })
        return resources

    def to_page(self) -> PageObject:
        page = PageObject.create_blank_page(width=self.width, height=self.height)
        page[NameObject("/Resources")] = self._resources()
        content = DecodedStreamObject()
        content.set_data(b"".join(self._ops))
        page[NameObject("/Contents")] = content
        return page


def _draw_annotation(overlay: PageOverlay, ann: Annotation) -> None:
    kind = ann.get("type")
    if kind == "path":
        points = ann.get("points") or []
        if len(points) < 2:
            return
        color = parse_color(ann.get("color"), DEFAULT_PATH_COLOR)
        opacity = ann.get("opacity")
        opacity = DEFAULT_OPACITY if opacity is None else _unit_interval(opacity, "opacity")
        thickness = float(ann.get("strokeWidth") or DEFAULT_STROKE_WIDTH)
        page_points = path_to_page(points, overlay.width, overlay.height)
        overlay.add_polyline(page_points, color, thickness, opacity)
    elif kind == "text":
        text = ann.get("text")
        if not text:
            return
        size = float(ann.get("size") or DEFAULT_FONT_SIZE)
        origin = text_origin(ann["x"], ann["y"], size, overlay.width, overlay.height)
        color = parse_color(ann.get("color"), DEFAULT_TEXT_COLOR)
        overlay.add_text(origin, str(text), size, color)
    else:
        logger.debug(f"Ignoring annotation of unknown type: {kind!r}")


# --- Document-level operations ---

def load_pdf(data: bytes) -> PdfReader:
    try:
        reader = PdfReader(io.BytesIO(data))
        page_count = len(reader.pages)
    except Exception as e:
        logger.error(f"Failed to load base PDF: {e}")
        raise CompositorError(f"Cannot open base document: {e}") from e
    logger.debug(f"Loaded base PDF with {page_count} pages")
    return reader


def _failure(page_number: int, index: int, ann: Any, error: Exception) -> AnnotationFailure:
    return {
        "page": page_number,
        "index": index,
        "type": str(ann.get("type", "")) if isinstance(ann, Mapping) else "",
        "error": str(error),
    }


def _copy_document_level(reader: PdfReader, writer: PdfWriter) -> None:
    """Carry the document info and catalog entries (outline, labels...) over.

    Must run after the pages were added so page references resolve to the
    writer's copies.
    """
    info = reader.metadata
    if info:
        strings = {}
        for key, value in info.items():
            value = value.get_object()
            if isinstance(value, str):
                strings[key] = value
        writer.add_metadata(strings)

    catalog = reader.trailer["/Root"].get_object()
    for key in CATALOG_ENTRIES:
        if key in catalog:
            writer._root_object[NameObject(key)] = catalog.raw_get(key).clone(writer)


def compose_annotations(reader: PdfReader, annotations_by_page: Optional[AnnotationsByPage]) -> CompositionResult:
    """Draw annotations on `reader`'s pages and copy the document into a new writer.

    Overlays are merged into the reader's pages before they are copied, so the
    reader is modified. Page keys outside 1..page count are ignored. A failing
    annotation is logged and recorded in `failures`; the rest of the page and
    document still render.
    """
    total = len(reader.pages)
    pages_annotated: List[int] = []
    failures: List[AnnotationFailure] = []

    for key, page_annotations in (annotations_by_page or {}).items():
        page_index = parse_page_key(total, key)
        if page_index is None:
            logger.debug(f"Skipping annotations for page {key!r} (document has {total} pages)")
            continue

        if page_annotations is None:
            continue
        if isinstance(page_annotations, (str, bytes, Mapping)) or not isinstance(page_annotations, Iterable):
            logger.error(f"Annotations for page {page_index + 1} are not a list: {page_annotations!r}")
            failures.append(_failure(page_index + 1, -1, None, TypeError("page annotations must be a list")))
            continue

        page = reader.pages[page_index]
        overlay = PageOverlay(float(page.mediabox.width), float(page.mediabox.height))
        for i, ann in enumerate(page_annotations):
            try:
                _draw_annotation(overlay, ann)
            except Exception as e:
                logger.error(f"Error processing annotation {i} on page {page_index + 1}: {e}")
                failures.append(_failure(page_index + 1, i, ann, e))
                continue

        if overlay.is_empty:
            continue
        try:
            page.merge_page(overlay.to_page())
        except Exception as e:
            logger.error(f"Failed to draw on page {page_index + 1}: {e}")
            raise CompositorError(f"Cannot draw on page {page_index + 1}: {e}") from e
        pages_annotated.append(page_index + 1)

    writer = PdfWriter()
    try:
        for page in reader.pages:
            writer.add_page(page)
        _copy_document_level(reader, writer)
    except Exception as e:
        logger.error(f"Failed to copy base document: {e}")
        raise CompositorError(f"Cannot copy base document: {e}") from e

    return CompositionResult(writer, sorted(set(pages_annotated)), failures)


def apply_annotations(reader: PdfReader, annotations_by_page: Optional[AnnotationsByPage]) -> PdfWriter:
    return compose_annotations(reader, annotations_by_page).writer


def write_pdf(writer: PdfWriter) -> bytes:
    buffer = io.BytesIO()
    try:
        writer.write(buffer)
    except Exception as e:
        logger.error(f"Failed to serialize annotated PDF: {e}")
        raise CompositorError(f"Cannot write annotated document: {e}") from e
    return buffer.getvalue()


def render_annotated_pdf(pdf_bytes: bytes, annotations_by_page: Optional[AnnotationsByPage]) -> bytes:
    """Load `pdf_bytes`, burn in the annotations and return the new PDF bytes."""
    reader = load_pdf(pdf_bytes)
    return write_pdf(apply_annotations(reader, annotations_by_page))
