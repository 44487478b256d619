"""Incremental change cache (mtime + size per file)."""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Set, Tuple

from scriptbundle.compiler.exceptions import CacheCorruption

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    path: str
    mtime_ns: int
    size: int

    @classmethod
    def from_stat(cls, path: Path, stat: os.stat_result) -> "CacheEntry":
        return cls(path=str(path), mtime_ns=int(stat.st_mtime_ns), size=int(stat.st_size))

    def to_json_dict(self) -> Dict[str, Any]:
        return {"mtime": self.mtime_ns, "size": self.size}


def safe_stat(path: Path) -> Optional[os.stat_result]:
    try:
        return path.stat()
    except OSError:
        return None


def decode_cache(raw: str) -> Tuple[Dict[str, CacheEntry], float]:
    """Decode the cache file body into (entries, last_build).

    Raises CacheCorruption on malformed input.
    """
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise CacheCorruption(f"invalid JSON: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("files", {}), dict):
        raise CacheCorruption("expected an object with a 'files' mapping")

    entries: Dict[str, CacheEntry] = {}
    for key, value in (data.get("files") or {}).items():
        try:
            entries[key] = CacheEntry(path=key, mtime_ns=int(value["mtime"]), size=int(value["size"]))
        except (KeyError, TypeError, ValueError):
            # Drop individual bad rows, keep the rest.
            continue

    try:
        last_build = float(data.get("last_build") or 0.0)
    except (TypeError, ValueError) as e:
        raise CacheCorruption(f"invalid last_build: {e}") from e
    return entries, last_build


class ChangeCache:
    """Per-file (timestamp, size) map persisted between builds.

    Staleness is answered by `is_changed`, which never mutates anything.
    `record` and `save` are the explicit commit steps.
    """

    def __init__(self, path: Path, entries: Optional[Dict[str, CacheEntry]] = None) -> None:
        self.path = Path(path)
        self.entries: Dict[str, CacheEntry] = dict(entries or {})
        self.last_build: float = 0.0

    @classmethod
    def load(cls, path: Path) -> "ChangeCache":
        """Load the cache file; a missing or corrupt file yields an empty cache."""
        cache = cls(path)
        if not cache.path.exists():
            return cache
        try:
            raw = cache.path.read_text(encoding="utf-8")
            cache.entries, cache.last_build = decode_cache(raw)
        except (OSError, UnicodeDecodeError, CacheCorruption) as e:
            logger.debug(f"Ignoring build cache {cache.path}: {e}")
            cache.entries = {}
            cache.last_build = 0.0
            return cache

        logger.debug(f"Loaded build cache with {len(cache.entries)} entries")
        return cache

    def is_changed(self, path: Path, stat: Optional[os.stat_result] = None) -> bool:
        """True when path has no entry or its mtime/size differ from the entry."""
        if stat is None:
            stat = safe_stat(path)
        if stat is None:
            return True
        prev = self.entries.get(str(path))
        if prev is None:
            return True
        return prev.mtime_ns != int(stat.st_mtime_ns) or prev.size != int(stat.st_size)

    def record(self, path: Path, stat: Optional[os.stat_result] = None) -> None:
        if stat is None:
            stat = safe_stat(path)
        if stat is None:
            self.entries.pop(str(path), None)
            return
        self.entries[str(path)] = CacheEntry.from_stat(path, stat)

    def refresh(self, paths: Iterable[Path]) -> Set[str]:
        """Query then record every path; returns the paths that changed."""
        changed: Set[str] = set()
        for p in paths:
            stat = safe_stat(p)
            if self.is_changed(p, stat):
                changed.add(str(p))
            self.record(p, stat)
        return changed

    def to_json_dict(self) -> Dict[str, Any]:
        return {
            "files": {k: v.to_json_dict() for k, v in sorted(self.entries.items())},
            "last_build": self.last_build,
        }

    def save(self) -> None:
        self.last_build = time.time()
        try:
            self.path.write_text(json.dumps(self.to_json_dict(), indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to save build cache: {e}")
