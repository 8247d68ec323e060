import re
from typing import List, Optional, Union

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _parse_part(total_pages: int, part: str) -> List[int]:
    if part == "first":
        return [0]
    if part == "last":
        return [total_pages - 1]
    if "-" in part:
        start_s, end_s = part.split("-", 1)
        start = int(start_s) if start_s else 1
        end = int(end_s) if end_s else total_pages
        if start < 1 or end < start or start > total_pages:
            raise ValueError(f"Invalid page range: {part}")
        return list(range(start - 1, min(end, total_pages)))
    page_num = int(part)
    if not 1 <= page_num <= total_pages:
        raise ValueError(f"Page {page_num} out of range (1-{total_pages})")
    return [page_num - 1]


def parse_page_range(total_pages: int, page_range: Optional[str]) -> List[int]:
    """Zero-based page indices for a page selection.

    Accepts None (every page), "first", "last", "N", "S-E", "S-", "-E",
    and comma-separated combinations such as "1,3-4". Duplicates are dropped,
    order of first appearance is kept.
    """
    if total_pages <= 0:
        return []
    if page_range is None or not str(page_range).strip():
        return list(range(total_pages))

    indices: List[int] = []
    for part in str(page_range).lower().split(","):
        part = part.strip()
        if not part:
            continue
        for idx in _parse_part(total_pages, part):
            if idx not in indices:
                indices.append(idx)
    return indices


def parse_page_key(total_pages: int, key: Union[int, str]) -> Optional[int]:
    """Zero-based index for a 1-based annotation page key, or None when the key
    does not start with a number or falls outside 1..total_pages.

    Only the leading integer counts: "2abc" and 1.0 are pages 2 and 1.
    """
    match = _LEADING_INT.match(str(key))
    if not match:
        return None
    page_num = int(match.group(1))
    if page_num < 1 or page_num > total_pages:
        return None
    return page_num - 1
