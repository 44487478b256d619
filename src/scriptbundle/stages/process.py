"""Async subprocess helper for external build tools."""

import asyncio
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from scriptbundle.compiler.exceptions import ExternalStageFailure


@dataclass(frozen=True)
class ProcessOutcome:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def find_tool(name: str, root: Path) -> Optional[str]:
    """Locate a node tool: project-local node_modules/.bin first, then PATH."""
    local_bin = root / "node_modules" / ".bin"
    for candidate in (local_bin / name, local_bin / f"{name}.cmd"):
        if candidate.exists():
            return str(candidate)
    return shutil.which(name)


async def run_tool(
    stage: str,
    argv: Sequence[str],
    *,
    cwd: Optional[Path] = None,
    stdin: Optional[str] = None,
    timeout: Optional[float] = None,
) -> ProcessOutcome:
    """Run argv and collect its output; timeouts and launch errors become ExternalStageFailure."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd) if cwd else None,
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ExternalStageFailure(stage, f"could not start {argv[0]}: {e}") from e

    try:
        out, err = await asyncio.wait_for(
            proc.communicate(stdin.encode("utf-8") if stdin is not None else None),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise ExternalStageFailure(stage, f"{argv[0]} timed out after {timeout}s")

    return ProcessOutcome(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=out.decode("utf-8", errors="replace"),
        stderr=err.decode("utf-8", errors="replace"),
    )
