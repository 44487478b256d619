"""Whitespace normalization for scanned bundle text."""

import re
from typing import List

# Second, independent pass for literals: their inner spacing must survive.
PATTERN_LITERAL = re.compile(r"/(?:[^\\/\n]|\\.)+/[gimsuvy]*")
STRING_LITERAL = re.compile(r"\"(?:[^\"\\\n]|\\.)*\"|'(?:[^'\\\n]|\\.)*'|`(?:[^`\\\n]|\\.)*`")
_LITERALS = re.compile(f"{STRING_LITERAL.pattern}|{PATTERN_LITERAL.pattern}")

_PLACEHOLDER = re.compile("\x00(\\d+)\x00")
_SPACE_RUNS = re.compile(r"[ \t]+")
_BLANK_RUNS = re.compile(r"\n{3,}")

DEFAULT_INDENT_LIMIT = 4


def normalize_line(line: str, indent_limit: int = DEFAULT_INDENT_LIMIT) -> str:
    """Trim, collapse inner spacing and cap indentation of a single line."""
    saved: List[str] = []

    def _stash(match: "re.Match[str]") -> str:
        saved.append(match.group(0))
        return f"\x00{len(saved) - 1}\x00"

    work = _LITERALS.sub(_stash, line).rstrip()
    body = work.lstrip(" \t")
    if not body:
        return ""

    indent = min(len(work) - len(body), indent_limit)
    processed = " " * indent + _SPACE_RUNS.sub(" ", body)

    return _PLACEHOLDER.sub(lambda m: saved[int(m.group(1))], processed)


def normalize_whitespace(text: str, indent_limit: int = DEFAULT_INDENT_LIMIT) -> str:
    """
    Normalize spacing without changing tokens.

    - trims trailing whitespace on every line
    - collapses runs of spaces/tabs to one space
    - keeps at most ``indent_limit`` columns of indentation
    - leaves string and pattern literals exactly as written
    - collapses 3+ consecutive newlines to a single blank line
    """
    lines = [normalize_line(line, indent_limit) for line in text.split("\n")]
    joined = _BLANK_RUNS.sub("\n\n", "\n".join(lines))
    return joined.strip()
