"""Module discovery and ordering."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from scriptbundle.compiler.exceptions import FatalInputError, ManifestError
from scriptbundle.compiler.models import ModuleFile, ModuleWarning, OrderingManifest, WarningKind
from scriptbundle.config import BuildConfig

logger = logging.getLogger(__name__)

_EXCLUDED_DIR_NAMES: FrozenSet[str] = frozenset({"node_modules", ".git"})


class ManifestResolver(ABC):
    """Base class for reading an ordering manifest - extensible for new formats."""

    @abstractmethod
    def can_resolve(self, path: Path) -> bool:
        """Check if this resolver understands the given file."""
        pass

    @abstractmethod
    def resolve(self, path: Path) -> Optional[OrderingManifest]:
        """Read the manifest. Returns None to let the next candidate file try."""
        pass


class JsonManifestResolver(ManifestResolver):
    """Parses a JSON array of module names."""

    def can_resolve(self, path: Path) -> bool:
        return path.suffix == ".json"

    def resolve(self, path: Path) -> Optional[OrderingManifest]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ManifestError(f"Failed to read order manifest: {e}", str(path)) from e

        if not isinstance(data, list):
            logger.debug(f"{path} is not a JSON array, ignoring")
            return None
        return OrderingManifest(names=[str(item) for item in data], source=path)


class TextManifestResolver(ManifestResolver):
    """Parses one module name per non-blank line."""

    def can_resolve(self, path: Path) -> bool:
        return path.suffix == ".txt"

    def resolve(self, path: Path) -> Optional[OrderingManifest]:
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ManifestError(f"Failed to read order manifest: {e}", str(path)) from e

        names = [line.strip() for line in raw.splitlines() if line.strip()]
        return OrderingManifest(names=names, source=path)


DEFAULT_RESOLVERS: Tuple[ManifestResolver, ...] = (JsonManifestResolver(), TextManifestResolver())


def read_manifest(
    candidates: Iterable[Path],
    resolvers: Sequence[ManifestResolver] = DEFAULT_RESOLVERS,
) -> Optional[OrderingManifest]:
    """Return the first manifest found among candidates, or None.

    Raises ManifestError when a candidate exists but is unreadable.
    """
    for path in candidates:
        if not path.is_file():
            continue
        for resolver in resolvers:
            if not resolver.can_resolve(path):
                continue
            manifest = resolver.resolve(path)
            if manifest is not None:
                return manifest
            break
    return None


def discover_modules(source_root: Path, extension: str, excluded: FrozenSet[str]) -> List[ModuleFile]:
    """Recursively collect module files below source_root in a stable order."""
    found: List[ModuleFile] = []
    if not source_root.is_dir():
        return found

    stack = [source_root]
    while stack:
        cur = stack.pop()
        try:
            children = sorted(cur.iterdir(), key=lambda p: p.name)
        except OSError as e:
            logger.error(f"Failed to read directory {cur}: {e}")
            continue

        subdirs = []
        for child in children:
            if child.is_dir():
                if child.name not in _EXCLUDED_DIR_NAMES:
                    subdirs.append(child)
            elif child.is_file() and child.name.endswith(extension) and child.name not in excluded:
                found.append(ModuleFile(name=child.name, directory=cur))
        stack.extend(reversed(subdirs))

    return found


def order_modules(
    files: Sequence[ModuleFile],
    manifest: Optional[OrderingManifest],
    entry: str,
) -> Tuple[List[ModuleFile], List[ModuleWarning]]:
    """Order modules by manifest, or entry-first then by name.

    Each name is kept once; later files with an already used name are dropped.
    """
    warnings: List[ModuleWarning] = []

    by_name: Dict[str, ModuleFile] = {}
    for f in sorted(files, key=lambda m: (m.name, str(m.directory))):
        if f.name in by_name:
            warnings.append(
                ModuleWarning(
                    WarningKind.DUPLICATE,
                    str(f.path),
                    f"duplicate module name, keeping {by_name[f.name].path}",
                )
            )
            continue
        by_name[f.name] = f

    if manifest is None:
        rest = sorted(by_name.values(), key=lambda m: m.name)
        head = [m for m in rest if m.name == entry]
        return head + [m for m in rest if m.name != entry], warnings

    ordered: List[ModuleFile] = []
    remaining = dict(by_name)
    for name in manifest.names:
        module = remaining.pop(name, None)
        if module is not None:
            ordered.append(module)
        elif name not in by_name:
            warnings.append(
                ModuleWarning(
                    WarningKind.MISSING,
                    name,
                    f"listed in manifest but not found (available: {', '.join(sorted(remaining))})",
                )
            )

    others = sorted(remaining.values(), key=lambda m: m.name)
    for module in others:
        warnings.append(ModuleWarning(WarningKind.UNLISTED, module.name, "module not in manifest"))
    return ordered + others, warnings


@dataclass
class LocatedModules:
    modules: List[ModuleFile]
    manifest: Optional[OrderingManifest] = None
    warnings: List[ModuleWarning] = field(default_factory=list)


class ModuleLocator:
    """Finds the project's modules and puts them in bundle order."""

    def __init__(
        self,
        config: BuildConfig,
        resolvers: Sequence[ManifestResolver] = DEFAULT_RESOLVERS,
    ) -> None:
        self.config = config
        self.resolvers = resolvers

    def locate(self) -> LocatedModules:
        source_root = self.config.source_root
        files = discover_modules(source_root, self.config.extension, self.config.excluded_names)
        if not files:
            raise FatalInputError(
                f"No {self.config.extension} module files found in {source_root}"
            )
        logger.debug(f"Found {len(files)} module file(s) in {source_root}")

        warnings: List[ModuleWarning] = []
        try:
            manifest = read_manifest(self.config.manifest_paths(), self.resolvers)
        except ManifestError as e:
            warnings.append(ModuleWarning(WarningKind.MANIFEST, e.file_path, e.message))
            manifest = None

        if manifest is None:
            logger.debug("No order manifest found. Using default ordering.")
        else:
            logger.debug(f"Using order manifest {manifest.source}")

        modules, order_warnings = order_modules(files, manifest, self.config.entry)
        warnings.extend(order_warnings)
        return LocatedModules(modules=modules, manifest=manifest, warnings=warnings)
