"""Title/composer guessing from recognized text.

Two strategies:
- `extract_metadata` for OCR output (noisy, mixed Latin/Greek, decorative glyphs)
- `extract_metadata_from_text_layer` for text embedded in a digitally-authored PDF
Both always return an ExtractedMetadata; missing fields are empty strings.
"""
import logging
import re
from typing import List, Optional, Pattern, Tuple

from sheet_annotator.core.types import ExtractedMetadata

logger = logging.getLogger(__name__)

# --- Character classes ---

_GREEK_LETTERS = re.compile(r"[Α-Ωα-ωά-ώ]")
_LATIN_LETTERS = re.compile(r"[A-Za-z]")
_NAME_CHARS = r"[Α-Ωα-ωά-ώA-Za-z\s]"


def _char_span(first: int, last: int) -> List[str]:
    return [chr(c) for c in range(first, last + 1)]


# OCR noise: combining/spacing accents, quotes, dashes, dots, bullets, shapes, dingbats
NOISE_CHARS = frozenset(
    [
        "\u0313", "\u0300", "\u0301", "\u0308", "\u0342", "\u0345",
        "\u1fbd", "\u1ffe", "\u1fbf", "\u1fce", "\u1fcd", "\u1fcf",
        "\u1fdd", "\u1fde", "\u1fdf", "\u1fed", "\u0385", "`", "\u0384",
        "'", "\u201b", '"', "\u201f",
        "\u2024", "\u2025", "\u2026", "\u2027",
        "-", "\u2013", "\u2014", "\u2015",
        ".", "\u00b7", "\u2022",
        "\u25cb", "\u25cf", "\u25e6", "\u25d8", "\u25d9",
    ]
    + _char_span(0x25CC, 0x25CE)
    + _char_span(0x25D0, 0x25D7)
    + _char_span(0x25F0, 0x25FF)
    + _char_span(0x2600, 0x266F)
)

# --- Label tables: (pattern, language tag) ---

# Lines starting with one of these are inline metadata, never the title
TITLE_LABEL_PREFIXES: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"^Μουσική:", re.IGNORECASE), "el"),
    (re.compile(r"^Στίχοι:", re.IGNORECASE), "el"),
    (re.compile(r"^Music:", re.IGNORECASE), "en"),
    (re.compile(r"^Lyrics:", re.IGNORECASE), "en"),
    (re.compile(r"^Composer:", re.IGNORECASE), "en"),
]

COMPOSER_LABELS: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"Μουσική[:\s]+(" + _NAME_CHARS + r"+?)(?:\s+Στίχοι|\s+Lyrics|$)", re.IGNORECASE), "el"),
]

# Lyricist is only a stand-in for the composer
LYRICIST_LABELS: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"Στίχοι[:\s]+(" + _NAME_CHARS + r"+?)(?:\s+Μουσική|\s+Music|$)", re.IGNORECASE), "el"),
]

MIN_TITLE_LENGTH = 4
MIN_COMPOSER_LENGTH = 3
MIN_LETTERS = 3


def split_lines(raw_text: str) -> List[str]:
    """Trimmed, non-empty lines of `raw_text`."""
    return [line.strip() for line in (raw_text or "").split("\n") if line.strip()]


def is_clean_line(text: str) -> bool:
    """True when the line is mostly real letters rather than OCR debris."""
    letters = len(_GREEK_LETTERS.findall(text)) + len(_LATIN_LETTERS.findall(text))
    noise = sum(1 for ch in text if ch in NOISE_CHARS)
    return letters >= MIN_LETTERS and letters > noise


def _is_label_line(line: str) -> bool:
    return any(pattern.match(line) for pattern, _lang in TITLE_LABEL_PREFIXES)


def _search_labels(line: str, labels: List[Tuple[Pattern[str], str]]) -> Optional[str]:
    for pattern, lang in labels:
        match = pattern.search(line)
        if match:
            logger.debug(f"Label match ({lang}): {line!r}")
            return match.group(1).strip()
    return None


def _select_title(lines: List[str]) -> str:
    for line in lines:
        if not is_clean_line(line):
            continue
        if _is_label_line(line):
            continue
        if len(line) >= MIN_TITLE_LENGTH:
            return line
    return ""


def _select_labeled_composer(lines: List[str]) -> str:
    composer = ""
    for line in lines:
        name = _search_labels(line, COMPOSER_LABELS)
        if name is not None:
            composer = name
            break
        name = _search_labels(line, LYRICIST_LABELS)
        if name is not None and not composer:
            composer = name
    return composer


def _select_positional_composer(lines: List[str], title: str) -> str:
    seen_first = False
    for line in lines:
        if not is_clean_line(line):
            continue
        if not seen_first:
            seen_first = True
            continue
        if line != title and len(line) >= MIN_COMPOSER_LENGTH:
            return line
    return ""


def extract_metadata(raw_text: str) -> ExtractedMetadata:
    """Guess title and composer from OCR text.

    The title is the first clean, unlabeled line of at least 4 characters.
    The composer comes from a `Μουσική:` label, else a `Στίχοι:` label,
    else the clean line after the first one.
    """
    raw_text = raw_text or ""
    lines = split_lines(raw_text)
    if not lines:
        return ExtractedMetadata()

    title = _select_title(lines)
    composer = _select_labeled_composer(lines)
    if not composer:
        composer = _select_positional_composer(lines, title)

    logger.info(f"Extracted - Title: {title} | Composer: {composer}")
    return ExtractedMetadata(title=title, composer=composer, raw_text=raw_text)


def extract_metadata_from_text_layer(raw_text: str) -> ExtractedMetadata:
    """First line is the title, second the composer. No noise filtering."""
    raw_text = raw_text or ""
    lines = split_lines(raw_text)
    return ExtractedMetadata(
        title=lines[0] if lines else "",
        composer=lines[1] if len(lines) > 1 else "",
        raw_text=raw_text,
    )
