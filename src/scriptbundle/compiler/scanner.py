"""Comment stripping scanner.

Walks the bundle one character at a time and drops line and block comments
while copying quoted strings and regex (pattern) literals through unchanged.
There is no parser behind it: whether a ``/`` opens a pattern literal or is
a division operator is decided from the text already emitted on the current
line (see ``PatternContext``). That guess is wrong for some valid code, for
example a pattern literal directly after ``)``.

Only an open block comment carries over to the next line. Strings and
pattern literals end with their line, so template literals spanning several
lines are scanned line by line as if each line were code.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from scriptbundle.config import DEFAULT_PATTERN_KEYWORDS

QUOTE_DELIMITERS = ("'", '"', "`")
PATTERN_FLAGS = frozenset("gimsuyv")
OPERATOR_CHARS = "=([{:;!&|?+-*%^~,"
ESCAPE = "\\"


class Mode(Enum):
    CODE = "code"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"
    STRING = "string"
    PATTERN = "pattern"


@dataclass
class ScanState:
    """Automaton state for a single scan call."""

    mode: Mode = Mode.CODE
    delimiter: str = ""

    def enter(self, mode: Mode, delimiter: str = "") -> None:
        self.mode = mode
        self.delimiter = delimiter

    def end_line(self) -> None:
        if self.mode is not Mode.BLOCK_COMMENT:
            self.enter(Mode.CODE)


@dataclass(frozen=True)
class PatternContext:
    """Trailing-context allow-list used to tell a pattern literal from division.

    A ``/`` opens a pattern when the right-trimmed text emitted so far on the
    line ends (within the last ``window`` characters) with one of
    ``operators`` or one of ``keywords``.
    """

    operators: str = OPERATOR_CHARS
    keywords: Tuple[str, ...] = DEFAULT_PATTERN_KEYWORDS
    window: int = 10

    def allows_pattern(self, emitted: str) -> bool:
        tail = emitted.rstrip()[-self.window :]
        if not tail:
            return False
        if tail[-1] in self.operators:
            return True
        return any(tail.endswith(keyword) for keyword in self.keywords)


class CommentScanner:
    """Removes comments, keeps string and pattern literals byte-for-byte."""

    def __init__(self, context: Optional[PatternContext] = None) -> None:
        self.context = context or PatternContext()

    def scan(self, text: str) -> str:
        state = ScanState()
        out: List[str] = []

        for line in text.split("\n"):
            ending = ""
            if line.endswith("\r"):
                line, ending = line[:-1], "\r"

            if state.mode is Mode.BLOCK_COMMENT:
                close = line.find("*/")
                if close == -1:
                    # Entirely inside the comment
                    continue
                state.enter(Mode.CODE)
                line = line[close + 2 :]

            out.append(self._scan_line(line, state) + ending)

        return "\n".join(out)

    def _scan_line(self, line: str, state: ScanState) -> str:
        emitted: List[str] = []
        length = len(line)
        i = 0

        while i < length:
            ch = line[i]

            if state.mode is Mode.STRING or state.mode is Mode.PATTERN:
                i = self._scan_literal(line, i, state, emitted)
                continue

            nxt = line[i + 1] if i + 1 < length else ""

            if ch in QUOTE_DELIMITERS:
                state.enter(Mode.STRING, ch)
                emitted.append(ch)
                i += 1
                continue

            if ch == "/" and nxt not in ("/", "*") and self.context.allows_pattern("".join(emitted)):
                state.enter(Mode.PATTERN, "/")
                emitted.append(ch)
                i += 1
                continue

            if ch == "/" and nxt == "*":
                close = line.find("*/", i + 2)
                if close != -1:
                    emitted.append(" ")
                    i = close + 2
                    continue
                state.enter(Mode.BLOCK_COMMENT)
                break

            if ch == "/" and nxt == "/":
                state.enter(Mode.LINE_COMMENT)
                break

            emitted.append(ch)
            i += 1

        state.end_line()
        return "".join(emitted)

    @staticmethod
    def _scan_literal(line: str, i: int, state: ScanState, emitted: List[str]) -> int:
        """Consume one unit of a string or pattern literal, returning the next index."""
        ch = line[i]

        if ch == ESCAPE and i + 1 < len(line):
            emitted.append(line[i : i + 2])
            return i + 2

        if ch == state.delimiter:
            end = i + 1
            if state.mode is Mode.PATTERN:
                while end < len(line) and line[end] in PATTERN_FLAGS:
                    end += 1
            emitted.append(line[i:end])
            state.enter(Mode.CODE)
            return end

        emitted.append(ch)
        return i + 1


def strip_comments(text: str, context: Optional[PatternContext] = None) -> str:
    """Return text with all comments removed and literals untouched."""
    return CommentScanner(context).scan(text)
