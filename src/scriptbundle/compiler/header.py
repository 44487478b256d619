"""Metadata header discovery and stripping."""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from scriptbundle.fsutil import read_text_safe

HEADER_NAME = "UserScript"

DEFAULT_HEADER = (
    "// ==UserScript==\n"
    "// @name Userscript bundle (built)\n"
    "// @version 0.0\n"
    "// ==/UserScript==\n"
)


class HeaderMarkers:
    """Regexes for a ``==Name== ... ==/Name==`` metadata block."""

    def __init__(self, name: str = HEADER_NAME) -> None:
        n = re.escape(name)
        self.name = name
        self.line_style = re.compile(rf"//\s*=={n}==[\s\S]*?//\s*==/{n}==")
        self.block_style = re.compile(rf"/\*[\s\S]*?=={n}==[\s\S]*?==/{n}==[\s\S]*?\*/")
        self._strip_block = re.compile(rf"/\*\s*=={n}==[\s\S]*?==/{n}==\s*\*/")

    def extract(self, text: str) -> Optional[str]:
        """Return the first header block in text (line style preferred)."""
        if not text:
            return None
        for pattern in (self.line_style, self.block_style):
            match = pattern.search(text)
            if match:
                return match.group(0)
        return None

    def strip(self, text: str) -> str:
        """Remove every embedded header block so it isn't duplicated in the bundle."""
        if not text:
            return ""
        return self._strip_block.sub("", self.line_style.sub("", text))


@dataclass(frozen=True)
class ResolvedHeader:
    text: str
    source: Optional[Path] = None

    @property
    def synthesized(self) -> bool:
        return self.source is None


class HeaderSource(ABC):
    """Base class for places a header can come from - tried in priority order."""

    @abstractmethod
    def find(self, markers: HeaderMarkers) -> Optional[ResolvedHeader]:
        """Return the header if this source has one."""
        pass


class FileHeaderSource(HeaderSource):
    """Reads the header block out of an existing file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def find(self, markers: HeaderMarkers) -> Optional[ResolvedHeader]:
        content = read_text_safe(self.path)
        if not content:
            return None
        found = markers.extract(content)
        if found is None:
            return None
        return ResolvedHeader(text=found, source=self.path)

    def __repr__(self) -> str:
        return f"FileHeaderSource({self.path})"


class DefaultHeaderSource(HeaderSource):
    """Last resort: a minimal synthesized header."""

    def __init__(self, text: str = DEFAULT_HEADER) -> None:
        self.text = text

    def find(self, markers: HeaderMarkers) -> Optional[ResolvedHeader]:
        return ResolvedHeader(text=self.text)


def header_sources(paths: Sequence[Path]) -> List[HeaderSource]:
    sources: List[HeaderSource] = [FileHeaderSource(p) for p in paths]
    sources.append(DefaultHeaderSource())
    return sources


def resolve_header(sources: Sequence[HeaderSource], markers: Optional[HeaderMarkers] = None) -> ResolvedHeader:
    """First source that yields a header wins."""
    markers = markers or HeaderMarkers()
    for source in sources:
        found = source.find(markers)
        if found is not None:
            return found
    return ResolvedHeader(text=DEFAULT_HEADER)
