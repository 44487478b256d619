"""Configuration loader for scriptbundle."""

import importlib.util
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "bundle.config.py"

MODULE_EXTENSION = ".js"
DEFAULT_OUTPUT = "bundle.user.js"
DEFAULT_METADATA_FILE = "userscript.js"
DEFAULT_BUILD_SCRIPT = "build.js"
DEFAULT_ENTRY = "main.js"
DEFAULT_MANIFESTS = ("build.order.json", "build.order.txt")
DEFAULT_CACHE_FILE = ".build-cache.json"
DEFAULT_PATTERN_KEYWORDS = ("return", "match", "test", "replace", "split", "exec")


@dataclass
class BuildConfig:
    """Resolved settings for one project."""

    root: Path
    source_dir: Optional[Path] = None
    output: str = DEFAULT_OUTPUT
    metadata_file: str = DEFAULT_METADATA_FILE
    entry: str = DEFAULT_ENTRY
    extra_exclude: Tuple[str, ...] = ()
    manifests: Tuple[str, ...] = DEFAULT_MANIFESTS
    header_candidates: Optional[Tuple[Path, ...]] = None
    cache_file: str = DEFAULT_CACHE_FILE
    indent_limit: int = 4
    pattern_keywords: Tuple[str, ...] = DEFAULT_PATTERN_KEYWORDS
    validator: str = "auto"
    reserved_names: Tuple[str, ...] = ("window", "document")
    stage_timeout: float = 300.0
    extension: str = field(default=MODULE_EXTENSION, init=False)

    def __post_init__(self) -> None:
        self.root = Path(self.root).resolve()

    @property
    def source_root(self) -> Path:
        """Directory scanned for modules (src/ when present, else the root)."""
        if self.source_dir is not None:
            path = Path(self.source_dir)
            return path if path.is_absolute() else (self.root / path)
        src = self.root / "src"
        if src.is_dir():
            return src
        logger.debug(f"src/ directory not found, scanning {self.root} instead")
        return self.root

    @property
    def output_path(self) -> Path:
        path = Path(self.output)
        return path if path.is_absolute() else (self.root / path)

    @property
    def cache_path(self) -> Path:
        return self.root / self.cache_file

    @property
    def excluded_names(self) -> FrozenSet[str]:
        return frozenset(
            {self.output_path.name, self.metadata_file, DEFAULT_BUILD_SCRIPT, *self.extra_exclude}
        )

    def manifest_paths(self) -> List[Path]:
        return [self.root / name for name in self.manifests]

    def header_paths(self, output_path: Optional[Path] = None) -> List[Path]:
        """Candidate files for the metadata header, in priority order."""
        if self.header_candidates is not None:
            return [p if p.is_absolute() else self.root / p for p in self.header_candidates]
        return [
            self.root / self.metadata_file,
            self.root / "src" / self.metadata_file,
            output_path or self.output_path,
        ]


# Config file name -> BuildConfig field
_CONFIG_KEYS: Dict[str, str] = {
    "SOURCE_DIR": "source_dir",
    "OUTPUT": "output",
    "METADATA_FILE": "metadata_file",
    "ENTRY": "entry",
    "EXCLUDE": "extra_exclude",
    "MANIFESTS": "manifests",
    "HEADER_CANDIDATES": "header_candidates",
    "CACHE_FILE": "cache_file",
    "INDENT_LIMIT": "indent_limit",
    "PATTERN_KEYWORDS": "pattern_keywords",
    "VALIDATOR": "validator",
    "RESERVED_NAMES": "reserved_names",
    "STAGE_TIMEOUT": "stage_timeout",
}

_TUPLE_FIELDS = {"extra_exclude", "manifests", "pattern_keywords", "reserved_names"}


def load_config(path: Path | str | None = None) -> Dict[str, Any]:
    """
    Load configuration from a python file.

    If path is provided, loads from there.
    Otherwise, looks for bundle.config.py in the current working directory.

    Returns a dictionary of BuildConfig keyword arguments mapped from the
    uppercase variables found in the config module.
    """
    if path is None:
        path = Path.cwd() / DEFAULT_CONFIG_FILENAME
    else:
        path = Path(path)

    if not path.exists():
        return {}

    try:
        spec = importlib.util.spec_from_file_location("scriptbundle_config", path)
        if spec is None or spec.loader is None:
            return {}

        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
    except Exception as e:
        logger.warning(f"Failed to load config from {path}: {e}")
        return {}

    mapped: Dict[str, Any] = {}
    for key, field_name in _CONFIG_KEYS.items():
        if not hasattr(module, key):
            continue
        value = getattr(module, key)
        if field_name in _TUPLE_FIELDS:
            value = tuple(str(v) for v in value)
        elif field_name == "header_candidates":
            value = tuple(Path(v) for v in value)
        elif field_name == "source_dir":
            value = Path(value)
        elif field_name == "indent_limit":
            value = int(value)
        elif field_name == "stage_timeout":
            value = float(value)
        else:
            value = str(value)
        mapped[field_name] = value
    return mapped


def resolve_config(
    root: Path | str | None = None, config_path: Path | str | None = None, **overrides: Any
) -> BuildConfig:
    """Build a BuildConfig for root, layering the config file and explicit overrides."""
    root_path = Path(root) if root is not None else Path.cwd()
    if config_path is None:
        config_path = root_path / DEFAULT_CONFIG_FILENAME

    settings = load_config(config_path)
    settings.update({k: v for k, v in overrides.items() if v is not None})
    return BuildConfig(root=root_path, **settings)
