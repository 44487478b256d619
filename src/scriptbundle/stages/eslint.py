"""ESLint stage."""

import logging
from pathlib import Path
from typing import List, Optional

from scriptbundle.compiler.exceptions import ExternalStageFailure
from scriptbundle.stages.process import find_tool, run_tool

logger = logging.getLogger(__name__)

FLAT_CONFIG = "eslint.config.cjs"
LEGACY_CONFIG = ".eslintrc.cjs"


class EslintRunner:
    """Lints the written bundle with a locally available ESLint."""

    def __init__(self, root: Path, executable: Optional[str] = None, timeout: Optional[float] = None) -> None:
        self.root = root
        self.executable = executable if executable is not None else find_tool("eslint", root)
        self.timeout = timeout

    @property
    def available(self) -> bool:
        return bool(self.executable)

    def command(self, out_path: Path) -> List[str]:
        assert self.executable is not None
        argv = [self.executable, "--no-warn-ignored"]
        flat_config = self.root / FLAT_CONFIG
        legacy_config = self.root / LEGACY_CONFIG
        if flat_config.exists():
            logger.debug(f"Using flat config: {flat_config}")
        elif legacy_config.exists():
            argv += ["--config", str(legacy_config)]
        argv.append(str(out_path))
        return argv

    async def run(self, out_path: Path) -> bool:
        """Lint out_path. Returns False when ESLint is not installed (lint skipped)."""
        if not self.available:
            logger.warning("ESLint not found (node_modules/.bin or PATH); skipping lint")
            return False

        logger.info("Running ESLint validation...")
        outcome = await run_tool("eslint", self.command(out_path), cwd=self.root, timeout=self.timeout)
        if outcome.stdout.strip():
            logger.info(outcome.stdout.rstrip())
        if not outcome.ok:
            if outcome.stderr.strip():
                logger.error(outcome.stderr.rstrip())
            raise ExternalStageFailure("eslint", f"ESLint reported problems (exit code {outcome.returncode})")

        logger.info("ESLint passed")
        return True
