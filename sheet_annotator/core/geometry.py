from typing import Iterator, List, Sequence, Tuple

from sheet_annotator.core.types import Point

PagePoint = Tuple[float, float]

# --- Coordinate helpers ---

def to_page_point(x: float, y: float, page_width: float, page_height: float) -> PagePoint:
    """Convert a normalized point (origin top-left, y down) to PDF user space
    (origin bottom-left, y up)."""
    return float(x) * page_width, page_height - float(y) * page_height


def path_to_page(points: Sequence[Point], page_width: float, page_height: float) -> List[PagePoint]:
    return [to_page_point(p["x"], p["y"], page_width, page_height) for p in points]


def segments(points: Sequence[PagePoint]) -> Iterator[Tuple[PagePoint, PagePoint]]:
    """Consecutive (start, end) pairs; nothing for fewer than two points."""
    for i in range(len(points) - 1):
        yield points[i], points[i + 1]


def text_origin(
    x: float, y: float, font_size: float, page_width: float, page_height: float
) -> PagePoint:
    """Baseline origin for text whose normalized anchor is its top-left corner."""
    px, py = to_page_point(x, y, page_width, page_height)
    return px, py - (font_size - 2)
