"""Build orchestrator: locate, assemble, validate, optimize."""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from scriptbundle.assembler import Assembler, load_modules
from scriptbundle.cache import ChangeCache
from scriptbundle.compiler.exceptions import BuildError
from scriptbundle.compiler.header import HeaderMarkers, header_sources, resolve_header
from scriptbundle.compiler.models import AssembledArtifact, ModuleWarning, WarningKind
from scriptbundle.compiler.optimizer import simple_optimize
from scriptbundle.compiler.scanner import PatternContext
from scriptbundle.config import BuildConfig
from scriptbundle.fsutil import write_text
from scriptbundle.locator import ModuleLocator
from scriptbundle.stages import EslintRunner, TerserMinifier
from scriptbundle.validation import SyntaxChecker, get_checker, raise_for_result, validate_bundle

logger = logging.getLogger(__name__)


@dataclass
class BuildOptions:
    """Per-run switches (what the CLI flags turn on)."""

    optimized: bool = False
    minify: bool = False
    pretty: bool = False
    source_map: bool = False
    lint: bool = True
    out_path: Optional[Path] = None

    def __post_init__(self) -> None:
        if self.optimized:
            # The fast path never lints
            self.lint = False


@dataclass
class BuildResult:
    """Summary handed back to the caller; never raised."""

    out_path: Path
    success: bool = False
    merged: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    changed: int = 0
    warnings: List[ModuleWarning] = field(default_factory=list)
    bundle_size: int = 0
    final_size: int = 0
    debug_path: Optional[Path] = None
    map_path: Optional[Path] = None
    header_source: Optional[Path] = None
    timings: Dict[str, float] = field(default_factory=dict)
    error: Optional[BuildError] = None

    @property
    def merged_count(self) -> int:
        return len(self.merged)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    def summary(self) -> str:
        status = "Build succeeded" if self.success else "Build failed"
        return (
            f"{status}: merged {self.merged_count}, skipped {self.skipped_count}, "
            f"changed since last run {self.changed}"
        )


def debug_copy_path(out_path: Path) -> Path:
    name = out_path.name
    stem = name[: -len(".js")] if name.endswith(".js") else name
    return out_path.with_name(f"{stem}.unoptimized.js")


class BuildOrchestrator:
    """Runs one build of a project."""

    def __init__(
        self,
        config: BuildConfig,
        options: Optional[BuildOptions] = None,
        *,
        checker: Optional[SyntaxChecker] = None,
        linter: Optional[EslintRunner] = None,
        minifier: Optional[TerserMinifier] = None,
    ) -> None:
        self.config = config
        self.options = options or BuildOptions()
        self.markers = HeaderMarkers()
        self.context = PatternContext(keywords=config.pattern_keywords)
        self._checker = checker
        self._linter = linter
        self._minifier = minifier

    @property
    def out_path(self) -> Path:
        return Path(self.options.out_path) if self.options.out_path else self.config.output_path

    @property
    def checker(self) -> SyntaxChecker:
        if self._checker is None:
            try:
                self._checker = get_checker(self.config.validator, timeout=self.config.stage_timeout)
            except ValueError as e:
                raise BuildError(str(e)) from e
        return self._checker

    @property
    def linter(self) -> EslintRunner:
        if self._linter is None:
            self._linter = EslintRunner(self.config.root, timeout=self.config.stage_timeout)
        return self._linter

    @property
    def minifier(self) -> TerserMinifier:
        if self._minifier is None:
            self._minifier = TerserMinifier(
                self.config.root,
                reserved_names=self.config.reserved_names,
                timeout=self.config.stage_timeout,
            )
        return self._minifier

    async def build(self) -> BuildResult:
        result = BuildResult(out_path=self.out_path)
        started = time.perf_counter()
        try:
            await self._run(result)
            result.success = True
        except BuildError as e:
            result.error = e
            logger.error(f"Build failed: {e}")
        result.timings["total"] = time.perf_counter() - started
        return result

    @contextmanager
    def _timed(self, result: BuildResult, stage: str) -> Iterator[None]:
        started = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - started
            result.timings[stage] = elapsed
            logger.debug(f"{stage}: {elapsed * 1000:.2f}ms")

    async def _run(self, result: BuildResult) -> None:
        out_path = result.out_path
        logger.debug(f"Starting build for {out_path}...")

        cache = ChangeCache.load(self.config.cache_path)

        with self._timed(result, "collect"):
            located = ModuleLocator(self.config).locate()
        result.warnings.extend(located.warnings)

        changed = cache.refresh(m.path for m in located.modules)
        result.changed = len(changed)

        header = resolve_header(header_sources(self.config.header_paths(out_path)), self.markers)
        if header.synthesized:
            result.warnings.append(
                ModuleWarning(WarningKind.HEADER, self.config.metadata_file, "metadata block not found, using default header")
            )
        else:
            result.header_source = header.source
            logger.info(f"Using userscript metadata from: {header.source}")

        with self._timed(result, "merge"):
            loaded = await load_modules(located.modules)
            artifact, warnings = Assembler(header.text, self.markers).assemble(loaded)
        result.warnings.extend(warnings)
        result.merged = artifact.merged_names
        result.skipped = artifact.skipped

        with self._timed(result, "write"):
            result.bundle_size = write_text(out_path, artifact.text)
        result.final_size = result.bundle_size
        logger.info(f"Built {out_path} from {result.merged_count} modules")

        for warning in result.warnings:
            logger.warning(str(warning))

        with self._timed(result, "validate"):
            validation = validate_bundle(artifact.text, out_path, self.checker)
        raise_for_result(validation, out_path)

        if self.options.lint:
            with self._timed(result, "lint"):
                linted = await self.linter.run(out_path)
            if not linted:
                result.warnings.append(ModuleWarning(WarningKind.LINT, "eslint", "ESLint not available, lint skipped"))

        if self.options.minify:
            with self._timed(result, "minify"):
                await self._minify(artifact, out_path, result)
        elif self.options.optimized:
            with self._timed(result, "optimize"):
                self._optimize(artifact, out_path, result)

        cache.save()

    def _optimize(self, artifact: AssembledArtifact, out_path: Path, result: BuildResult) -> None:
        result.debug_path = debug_copy_path(out_path)
        write_text(result.debug_path, artifact.text)
        logger.info(f"Wrote unoptimized code to {result.debug_path.name} for debugging")

        final = simple_optimize(
            artifact.text,
            artifact.header,
            context=self.context,
            indent_limit=self.config.indent_limit,
            markers=self.markers,
        )
        result.final_size = write_text(out_path, final)
        logger.info(f"Optimized: {_savings(result.bundle_size, result.final_size)}")

    async def _minify(self, artifact: AssembledArtifact, out_path: Path, result: BuildResult) -> None:
        body = artifact.text.replace(artifact.header, "", 1)
        output = await self.minifier.minify(
            body,
            out_path,
            pretty=self.options.pretty,
            source_map=self.options.source_map,
            preamble=artifact.header,
        )

        final = output.code if output.code.endswith("\n") else f"{output.code}\n"
        if output.source_map is not None:
            result.map_path = out_path.with_name(f"{out_path.name}.map")
            write_text(result.map_path, output.source_map)
            logger.debug(f"Source map written: {result.map_path}")

        result.final_size = write_text(out_path, final)
        logger.info(f"Minified: {_savings(result.bundle_size, result.final_size)}")


def _savings(before: int, after: int) -> str:
    percent = (1 - after / before) * 100 if before else 0.0
    return f"{before / 1024:.2f}KB -> {after / 1024:.2f}KB (saved {percent:.2f}%)"


async def build_once(config: BuildConfig, options: Optional[BuildOptions] = None) -> BuildResult:
    """Convenience wrapper used by the CLI and watcher."""
    return await BuildOrchestrator(config, options).build()
