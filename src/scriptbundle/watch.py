"""Watch mode: rebuild whenever a module changes."""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, FrozenSet, Optional

from watchfiles import Change, DefaultFilter, awatch

from scriptbundle.config import BuildConfig
from scriptbundle.orchestrator import BuildOptions, BuildOrchestrator, BuildResult

logger = logging.getLogger(__name__)

DEBOUNCE_MS = 200

ResultCallback = Callable[[BuildResult], Optional[Awaitable[None]]]


class ModuleChangeFilter(DefaultFilter):
    """Only module files outside the exclusion set trigger a rebuild."""

    def __init__(self, extension: str, excluded: FrozenSet[str]) -> None:
        super().__init__()
        self.extension = extension
        self.excluded = excluded

    def __call__(self, change: Change, path: str) -> bool:
        if not super().__call__(change, path):
            return False
        name = Path(path).name
        return name.endswith(self.extension) and name not in self.excluded


async def _report(result: BuildResult, on_result: Optional[ResultCallback]) -> None:
    if on_result is None:
        return
    maybe = on_result(result)
    if asyncio.iscoroutine(maybe):
        await maybe


async def watch_and_build(
    config: BuildConfig,
    options: Optional[BuildOptions] = None,
    *,
    stop_event: Optional[asyncio.Event] = None,
    on_result: Optional[ResultCallback] = None,
) -> None:
    """Build once, then rebuild on every debounced batch of module changes."""
    result = await BuildOrchestrator(config, options).build()
    await _report(result, on_result)
    if not result.success:
        logger.warning("Initial build failed. Still watching for fixes...")

    watch_dir = config.source_root
    watch_filter = ModuleChangeFilter(config.extension, config.excluded_names)
    logger.info(f"Watching for changes in: {watch_dir}")

    async for changes in awatch(
        watch_dir,
        watch_filter=watch_filter,
        debounce=DEBOUNCE_MS,
        stop_event=stop_event,
    ):
        for _change, file_path in sorted(changes, key=lambda c: c[1]):
            logger.info(f"Change detected: {file_path}")
        logger.info("Rebuilding...")
        result = await BuildOrchestrator(config, options).build()
        await _report(result, on_result)
