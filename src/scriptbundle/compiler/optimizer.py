"""Fast optimizer: strip comments and blank lines, normalize spacing, keep the header."""

import logging
import time
from typing import Optional

from scriptbundle.compiler.header import HeaderMarkers
from scriptbundle.compiler.scanner import CommentScanner, PatternContext
from scriptbundle.compiler.whitespace import DEFAULT_INDENT_LIMIT, normalize_whitespace

logger = logging.getLogger(__name__)


def simple_optimize(
    code: str,
    header: Optional[str] = None,
    *,
    context: Optional[PatternContext] = None,
    indent_limit: int = DEFAULT_INDENT_LIMIT,
    markers: Optional[HeaderMarkers] = None,
) -> str:
    """Return code without comments or empty lines and with normalized whitespace.

    The metadata header is taken out before scanning (it is made of comments)
    and put back on top of the result.
    """
    if not code:
        return ""

    header_text = header or (markers or HeaderMarkers()).extract(code) or ""
    body = code.replace(header_text, "", 1) if header_text else code

    started = time.perf_counter()
    body = CommentScanner(context).scan(body)
    logger.debug(f"Comment removal: {(time.perf_counter() - started) * 1000:.2f}ms")

    body = "\n".join(line for line in body.split("\n") if line.strip())

    started = time.perf_counter()
    body = normalize_whitespace(body, indent_limit)
    logger.debug(f"Whitespace normalization: {(time.perf_counter() - started) * 1000:.2f}ms")

    prefix = f"{header_text.strip()}\n\n" if header_text else ""
    return f"{prefix}{body.strip()}\n"
