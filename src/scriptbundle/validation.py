"""Parse-only syntax check of the assembled bundle."""

import logging
import re
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Type

import esprima  # type: ignore
from esprima.error_handler import Error as EsprimaError  # type: ignore

from scriptbundle.compiler.exceptions import ValidationFailure
from scriptbundle.compiler.models import ValidationResult

logger = logging.getLogger(__name__)


class SyntaxChecker(ABC):
    """Base class for syntax check backends."""

    name: str

    @abstractmethod
    def check(self, code: str, file_path: Optional[Path] = None) -> ValidationResult:
        """Parse code without running it."""
        pass


class EsprimaChecker(SyntaxChecker):
    """In-process parse with esprima."""

    name = "esprima"

    def check(self, code: str, file_path: Optional[Path] = None) -> ValidationResult:
        try:
            esprima.parseScript(code)
        except EsprimaError as e:
            return ValidationResult(
                ok=False,
                message=str(getattr(e, "description", None) or e),
                line=getattr(e, "lineNumber", None),
                column=getattr(e, "column", None),
            )
        return ValidationResult.passed()


class NodeChecker(SyntaxChecker):
    """Runs ``node --check`` on the written bundle."""

    name = "node"

    _LOCATION = re.compile(r"^(?P<path>.+):(?P<line>\d+)$")

    def __init__(self, executable: Optional[str] = None, timeout: float = 60.0) -> None:
        self.executable = executable or shutil.which("node")
        self.timeout = timeout

    def check(self, code: str, file_path: Optional[Path] = None) -> ValidationResult:
        if not self.executable:
            return ValidationResult(ok=False, message="'node' executable not found")
        if file_path is None or not file_path.exists():
            return ValidationResult(ok=False, message="node checker needs the written bundle file")

        try:
            proc = subprocess.run(
                [self.executable, "--check", str(file_path)],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            return ValidationResult(ok=False, message=f"node --check timed out after {self.timeout}s")
        if proc.returncode == 0:
            return ValidationResult.passed()
        return self._parse_stderr(proc.stderr)

    def _parse_stderr(self, stderr: str) -> ValidationResult:
        lines = [line for line in stderr.splitlines() if line.strip()]
        line_no: Optional[int] = None
        if lines:
            match = self._LOCATION.match(lines[0].strip())
            if match:
                line_no = int(match.group("line"))
        message = next((line for line in reversed(lines) if "Error" in line), None)
        return ValidationResult(ok=False, message=message or "syntax check failed", line=line_no)


CHECKERS: Dict[str, Type[SyntaxChecker]] = {
    EsprimaChecker.name: EsprimaChecker,
    NodeChecker.name: NodeChecker,
}

AUTO = "auto"
VALIDATORS = (AUTO, *CHECKERS)


def get_checker(name: str, timeout: Optional[float] = None) -> SyntaxChecker:
    """Build the checker registered under ``name``.

    ``auto`` uses ``node --check`` when node is on PATH and esprima
    (ES2017 only) otherwise.
    """
    if name == AUTO:
        if shutil.which("node"):
            name = NodeChecker.name
        else:
            logger.warning("node not found, falling back to esprima (ES2017 syntax only)")
            name = EsprimaChecker.name
    if name not in CHECKERS:
        raise ValueError(f"Unknown validator '{name}' (expected one of: {', '.join(VALIDATORS)})")
    if name == NodeChecker.name and timeout is not None:
        return NodeChecker(timeout=timeout)
    return CHECKERS[name]()


def validate_bundle(
    code: str, file_path: Optional[Path] = None, checker: Optional[SyntaxChecker] = None
) -> ValidationResult:
    """Run the syntax check and log the outcome."""
    checker = checker or EsprimaChecker()
    logger.debug(f"Running syntax validation ({checker.name})...")
    result = checker.check(code, file_path)
    if result.ok:
        logger.info("Basic syntax check passed")
    else:
        logger.error(f"Syntax check failed: {result.message}")
    return result


def raise_for_result(result: ValidationResult, file_path: Optional[Path] = None) -> None:
    if not result.ok:
        raise ValidationFailure(
            result.message,
            file_path=str(file_path) if file_path else "",
            line=result.line,
            column=result.column,
        )
