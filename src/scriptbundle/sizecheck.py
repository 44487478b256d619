"""Bundle size thresholds and per-module breakdown."""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

MODULE_MARKER = re.compile(r"// --- MODULE: (.+?) ---")


@dataclass(frozen=True)
class SizeLimits:
    target: int = 250 * 1024
    warning: int = 350 * 1024
    error: int = 500 * 1024


DEFAULT_LIMITS = SizeLimits()


@dataclass(frozen=True)
class ModuleSize:
    name: str
    size: int


@dataclass
class SizeReport:
    path: Path
    size: int
    status: str
    message: str
    limits: SizeLimits = DEFAULT_LIMITS
    modules: List[ModuleSize] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.status == "error"

    def over_target(self) -> str:
        diff = (self.size - self.limits.target) / self.limits.target * 100
        return f"+{diff:.1f}%" if diff > 0 else f"{diff:.1f}%"


def classify(size: int, limits: SizeLimits = DEFAULT_LIMITS) -> Tuple[str, str]:
    if size > limits.error:
        return "error", "Bundle size exceeds error limit!"
    if size > limits.warning:
        return "warning", "Bundle size exceeds warning limit"
    if size > limits.target:
        return "good", "Bundle size is acceptable"
    return "excellent", "Bundle size is excellent!"


def module_breakdown(text: str) -> List[ModuleSize]:
    """Size of each module section (from its separator to the next), largest first.

    Works on unoptimized bundles only; optimization removes the separators.
    """
    matches = list(MODULE_MARKER.finditer(text))
    sizes: List[ModuleSize] = []
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        chunk = text[match.start() : end]
        sizes.append(ModuleSize(name=match.group(1), size=len(chunk.encode("utf-8"))))
    return sorted(sizes, key=lambda m: m.size, reverse=True)


def check_bundle_size(path: Path, limits: SizeLimits = DEFAULT_LIMITS) -> SizeReport:
    """Raises FileNotFoundError when the bundle has not been built."""
    if not path.is_file():
        raise FileNotFoundError(f"Build output not found: {path}")
    size = path.stat().st_size
    status, message = classify(size, limits)
    text = path.read_text(encoding="utf-8", errors="replace")
    return SizeReport(
        path=path,
        size=size,
        status=status,
        message=message,
        limits=limits,
        modules=module_breakdown(text),
    )
