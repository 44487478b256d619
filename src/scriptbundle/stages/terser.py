"""Terser minification stage (the thorough optimize path)."""

import json
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from scriptbundle.compiler.exceptions import ExternalStageFailure
from scriptbundle.stages.process import find_tool, run_tool

logger = logging.getLogger(__name__)

COMPRESS_OPTIONS = (
    "dead_code=true",
    "drop_console=false",
    "drop_debugger=true",
    "keep_classnames=true",
    "keep_fnames=true",
    "keep_infinity=true",
    "passes=5",
    "pure_getters=true",
    "unsafe=false",
    "hoist_vars=false",
    "inline=3",
    "toplevel=false",
    "keep_fargs=false",
)

FORMAT_COMPACT = ("ascii_only=false", "ecma=2020", "quote_style=3", "wrap_iife=true", "semicolons=true")
FORMAT_PRETTY = ("beautify=true", "indent_level=2", "braces=true", "quote_style=1", "wrap_func_args=true")


@dataclass(frozen=True)
class MinifiedOutput:
    code: str
    source_map: Optional[str] = None


class TerserMinifier:
    """Minifies the bundle body with the terser CLI.

    The metadata header is not minified. It goes in as the terser ``preamble``
    so source map positions line up with the written file.
    """

    def __init__(
        self,
        root: Path,
        executable: Optional[str] = None,
        reserved_names: Sequence[str] = ("window", "document"),
        timeout: Optional[float] = None,
    ) -> None:
        self.root = root
        self.executable = executable if executable is not None else find_tool("terser", root)
        self.reserved_names = tuple(reserved_names)
        self.timeout = timeout

    def build_args(
        self,
        input_path: Path,
        output_path: Path,
        *,
        pretty: bool = False,
        source_map_name: Optional[str] = None,
        preamble: Optional[str] = None,
    ) -> List[str]:
        if not self.executable:
            raise ExternalStageFailure("terser", "terser not found (node_modules/.bin or PATH)")

        argv = [self.executable, str(input_path), "--ecma", "2020", "--keep-classnames", "--keep-fnames"]
        format_options = list(FORMAT_PRETTY if pretty else FORMAT_COMPACT)
        if preamble:
            format_options.append(f"preamble={json.dumps(preamble)}")

        if pretty:
            argv += ["--format", ",".join(format_options)]
        else:
            reserved = ",".join(f"'{name}'" for name in self.reserved_names)
            argv += ["--compress", ",".join(COMPRESS_OPTIONS), "--define", "DEBUG=false"]
            argv += ["--mangle", f"keep_classnames=true,keep_fnames=true,reserved=[{reserved}]"]
            argv += ["--format", ",".join(format_options)]
        argv += ["--comments", "false"]
        if source_map_name:
            argv += [
                "--source-map",
                f"filename='{source_map_name}',url='{source_map_name}.map',includeSources",
            ]
        argv += ["--output", str(output_path)]
        return argv

    async def minify(
        self,
        body: str,
        out_path: Path,
        *,
        pretty: bool = False,
        source_map: bool = False,
        preamble: Optional[str] = None,
    ) -> MinifiedOutput:
        with tempfile.TemporaryDirectory(prefix="scriptbundle-") as tmp:
            tmp_dir = Path(tmp)
            input_path = tmp_dir / f"input-{out_path.name}"
            output_path = tmp_dir / out_path.name
            input_path.write_text(body, encoding="utf-8")

            argv = self.build_args(
                input_path,
                output_path,
                pretty=pretty,
                source_map_name=out_path.name if source_map else None,
                preamble=preamble,
            )
            logger.debug(f"Terser command: {' '.join(argv)}")

            outcome = await run_tool("terser", argv, cwd=self.root, timeout=self.timeout)
            if not outcome.ok:
                raise ExternalStageFailure("terser", outcome.stderr.strip() or f"exit code {outcome.returncode}")
            if outcome.stderr.strip():
                for warning in outcome.stderr.strip().splitlines():
                    logger.warning(f"Terser: {warning}")

            if not output_path.exists() or not output_path.read_text(encoding="utf-8").strip():
                raise ExternalStageFailure("terser", "minification produced no output")

            code = output_path.read_text(encoding="utf-8")
            map_path = tmp_dir / f"{out_path.name}.map"
            map_text = map_path.read_text(encoding="utf-8") if map_path.exists() else None
            return MinifiedOutput(code=code, source_map=map_text)
