"""File helpers shared by the pipeline."""

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def read_text_safe(path: Path) -> Optional[str]:
    """Read a UTF-8 file, returning None (and logging why) when it can't be read."""
    if not path.exists():
        logger.debug(f"File not found: {path}")
        return None
    if not path.is_file():
        logger.warning(f"Path is not a file: {path}")
        return None
    try:
        return path.read_text(encoding="utf-8")
    except PermissionError:
        logger.error(f"Permission denied reading {path}. Check file permissions.")
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Failed to read file {path}: {e}")
    return None


def write_text(path: Path, text: str) -> int:
    """Write text as UTF-8 without newline translation, returning the byte size."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8", newline="")
    return len(text.encode("utf-8"))


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.2f} KB"
    return f"{size / (1024 * 1024):.2f} MB"
