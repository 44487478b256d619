"""Data records shared by the bundle pipeline."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional


@dataclass(frozen=True)
class ModuleFile:
    """A discovered module on disk."""
    name: str
    directory: Path

    @property
    def path(self) -> Path:
        return self.directory / self.name

    def __str__(self) -> str:
        return f"ModuleFile({self.name})"


@dataclass(frozen=True)
class SourceModule:
    """A module whose text has been read."""
    name: str
    path: Path
    text: str


@dataclass(frozen=True)
class OrderingManifest:
    """Identifiers in the order they should be bundled."""
    names: List[str]
    source: Optional[Path] = None


class WarningKind(str, Enum):
    UNREADABLE = "unreadable"
    EMPTY = "empty"
    MISSING = "missing"
    UNLISTED = "unlisted"
    DUPLICATE = "duplicate"
    MANIFEST = "manifest"
    HEADER = "header"
    LINT = "lint"


@dataclass(frozen=True)
class ModuleWarning:
    """Non-fatal diagnostic collected during a build."""
    kind: WarningKind
    subject: str
    message: str

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.subject}: {self.message}"


@dataclass
class AssembledArtifact:
    """The merged bundle before optional optimization."""
    header: str
    bodies: List[SourceModule] = field(default_factory=list)
    text: str = ""
    skipped: List[str] = field(default_factory=list)

    @property
    def merged_names(self) -> List[str]:
        return [m.name for m in self.bodies]


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of the parse-only syntax check."""
    ok: bool
    message: str = ""
    line: Optional[int] = None
    column: Optional[int] = None

    @classmethod
    def passed(cls) -> "ValidationResult":
        return cls(ok=True)
