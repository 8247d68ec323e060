import argparse
import logging
import os
from pathlib import Path
from typing import Iterator, List, Optional

logger = logging.getLogger(__name__)

# Limits and filters
MAX_FILE_SIZE = 100 * 1024 * 1024  # 100MB
PDF_EXTENSIONS = [".pdf"]
IMAGE_EXTENSIONS = [".png", ".jpg", ".jpeg", ".tif", ".tiff", ".bmp", ".webp"]
ALLOWED_EXTENSIONS = PDF_EXTENSIONS + IMAGE_EXTENSIONS

# Tesseract language(s) used for scanned title pages, e.g. "eng+ell"
OCR_LANGUAGE = os.environ.get("OCR_LANGUAGE", "eng")

# Used when no directories are given on the command line
DEFAULT_SEARCH_DIRECTORIES = [
    os.path.expanduser("~/Downloads"),
    os.path.expanduser("~/Desktop"),
    os.path.expanduser("~/Documents"),
    os.getcwd(),
]

# Configured at startup; mutated in place so importers see the update
SEARCH_DIRECTORIES: List[str] = []


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Sheet Annotator MCP Server — sheet-music metadata and annotated PDF export",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "\nExamples:\n"
            "  python main.py ~/Sheets\n"
            "  python main.py --allow-dir ~/Sheets --allow-dir /shared/scores\n"
            "  python main.py ~/Sheets --ocr-language eng+ell --log-level DEBUG\n"
        ),
    )
    parser.add_argument(
        "directories",
        nargs="*",
        help="Accessible directories for sheets (space-separated)",
    )
    parser.add_argument(
        "--allow-dir",
        action="append",
        dest="allowed_dirs",
        help="Add an allowed directory (can be used multiple times)",
    )
    parser.add_argument(
        "--max-file-size",
        type=int,
        default=100 * 1024 * 1024,
        help="Maximum file size in bytes (default: 100MB)",
    )
    parser.add_argument(
        "--ocr-language",
        default=OCR_LANGUAGE,
        help="Tesseract language code(s) for scanned sheets (default: $OCR_LANGUAGE or 'eng')",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    return parser


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def _is_within(base: str, target: str) -> bool:
    base = os.path.join(os.path.realpath(base), "")
    target = os.path.realpath(target)
    return target.startswith(base) or target == base[:-1]


def _normalize_dir(d: str) -> str:
    return os.path.realpath(os.path.abspath(os.path.expanduser(d)))


def configure(args: argparse.Namespace) -> None:
    """Apply parsed arguments: limits, OCR language and accessible directories.

    Missing directories are created; unreadable ones are skipped. With nothing
    usable, falls back to DEFAULT_SEARCH_DIRECTORIES.
    """
    global MAX_FILE_SIZE, OCR_LANGUAGE

    MAX_FILE_SIZE = int(args.max_file_size)
    OCR_LANGUAGE = getattr(args, "ocr_language", None) or OCR_LANGUAGE

    provided: List[str] = list(getattr(args, "directories", None) or [])
    provided.extend(getattr(args, "allowed_dirs", None) or [])

    validated: List[str] = []
    for d in provided:
        try:
            real_path = _normalize_dir(d)
            if not os.path.exists(real_path):
                logger.info(f"Creating directory: {real_path}")
                os.makedirs(real_path, exist_ok=True)
            if not os.path.isdir(real_path):
                logger.warning(f"Not a directory, skipped: {d} -> {real_path}")
                continue
            if not os.access(real_path, os.R_OK):
                logger.warning(f"Unreadable directory, skipped: {d} -> {real_path}")
                continue
            validated.append(real_path)
        except OSError as e:
            logger.error(f"Failed to process directory '{d}': {e}")

    if not validated:
        if provided:
            logger.warning("No valid directories from arguments; falling back to defaults.")
        else:
            logger.info("No directories given; using default search directories.")
        validated = [_normalize_dir(d) for d in DEFAULT_SEARCH_DIRECTORIES]

    SEARCH_DIRECTORIES.clear()
    SEARCH_DIRECTORIES.extend(validated)
    logger.info(f"Configured {len(SEARCH_DIRECTORIES)} accessible directories (OCR language: {OCR_LANGUAGE})")


def is_pdf(path: Path) -> bool:
    return path.suffix.lower() in PDF_EXTENSIONS


def is_image(path: Path) -> bool:
    return path.suffix.lower() in IMAGE_EXTENSIONS


def is_allowed_location(path: str) -> bool:
    return any(_is_within(allowed, path) for allowed in SEARCH_DIRECTORIES)


def validate_and_resolve_path(file_path: str) -> Optional[Path]:
    """Absolute Path for an existing sheet inside the accessible directories, else None."""
    try:
        real_path = os.path.realpath(os.path.abspath(os.path.expanduser(file_path)))

        if not is_allowed_location(real_path) or ".." in Path(file_path).parts:
            logger.warning(f"Security risk detected (outside allowed directories): {file_path}")
            return None

        resolved = Path(real_path)
        if not resolved.is_file():
            return None
        if resolved.suffix.lower() not in ALLOWED_EXTENSIONS:
            logger.warning(f"Disallowed file extension: {file_path}")
            return None
        if resolved.stat().st_size > MAX_FILE_SIZE:
            logger.warning(f"File too large: {file_path}")
            return None
        return resolved
    except OSError as e:
        logger.error(f"Error validating path {file_path}: {e}")
        return None


def resolve_output_path(output_path: str) -> Optional[Path]:
    """Writable PDF destination inside the accessible directories, else None."""
    real_path = os.path.realpath(os.path.abspath(os.path.expanduser(output_path)))
    if not is_allowed_location(real_path) or ".." in Path(output_path).parts:
        logger.warning(f"Refusing to write outside allowed directories: {output_path}")
        return None
    resolved = Path(real_path)
    if not is_pdf(resolved):
        logger.warning(f"Output must be a PDF: {output_path}")
        return None
    if not resolved.parent.is_dir():
        return None
    return resolved


def _iter_sheets(directory: Path) -> Iterator[Path]:
    for f in directory.iterdir():
        if f.is_file() and f.suffix.lower() in ALLOWED_EXTENSIONS:
            yield f


def find_file(file_name: str) -> Optional[Path]:
    """Resolve an absolute path, or search by name/substring within the configured directories."""
    if os.path.isabs(file_name) or file_name.startswith("~"):
        path = validate_and_resolve_path(file_name)
        if path:
            return path

    for directory in SEARCH_DIRECTORIES:
        dir_path = Path(directory)
        try:
            path = validate_and_resolve_path(str(dir_path / file_name))
            if path:
                return path
            for candidate in _iter_sheets(dir_path):
                if file_name.lower() in candidate.name.lower():
                    path = validate_and_resolve_path(str(candidate))
                    if path:
                        return path
        except OSError as e:
            logger.error(f"Error searching directory {directory}: {e}")
            continue

    logger.warning(f"File not found: {file_name}")
    return None


def _gather_sheets_under(root: str, depth: int) -> Iterator[Path]:
    """Sheets under `root` up to `depth` levels (0 = only root)."""
    root = os.path.realpath(root)
    for dirpath, dirnames, filenames in os.walk(root, topdown=True, followlinks=False):
        rel = os.path.relpath(dirpath, root)
        current_depth = 0 if rel == "." else rel.count(os.sep) + 1
        if current_depth >= depth:
            dirnames[:] = []
        for fn in filenames:
            f = Path(dirpath) / fn
            if f.suffix.lower() in ALLOWED_EXTENSIONS and f.is_file():
                yield f


def list_sheet_files_text(directory: str = "all", depth: int = 0, limit: int = 50) -> str:
    """Human-readable listing of sheets (PDFs and scanned images).

    `directory` is "all" or a substring of an allowed root (basename first,
    then absolute path). `depth` is clamped to 0..5, `limit` to 1..200 per root.
    """
    depth_clamped = max(0, min(int(depth), 5))
    limit_clamped = max(1, min(int(limit), 200))

    dirs = list(SEARCH_DIRECTORIES)
    if directory != "all":
        dirs = [
            d for d in SEARCH_DIRECTORIES
            if directory.lower() in os.path.basename(d).lower() or directory in d
        ]
        if not dirs:
            return f"Error: No accessible directory matched '{directory}'."

    results: List[str] = []
    total = 0
    for d in dirs:
        if not Path(d).is_dir():
            continue
        files = list(_gather_sheets_under(d, depth_clamped))
        recent = sorted(files, key=lambda x: x.stat().st_mtime, reverse=True)[:limit_clamped]
        label = os.path.basename(d) or d
        results.append(
            f"[{label}] sheets (depth={depth_clamped}; "
            f"showing up to {limit_clamped} most recent of {len(files)} total):"
        )
        for sheet in recent:
            size_mb = sheet.stat().st_size / 1024**2
            kind = "pdf" if is_pdf(sheet) else "image"
            results.append(f"- {sheet.relative_to(d)} [{kind}] ({size_mb:.1f} MB)")
        results.append("")
        total += len(files)

    if not results:
        return "No sheets found in the accessible directories."

    header = [
        f"Directories scanned: {len(dirs)} of {len(SEARCH_DIRECTORIES)} configured",
        f"Approx. total sheets: {total}",
        "=" * 40,
    ]
    return "\n".join(header + results)
