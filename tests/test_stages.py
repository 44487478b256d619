import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from scriptbundle.compiler.exceptions import ExternalStageFailure
from scriptbundle.stages import EslintRunner, TerserMinifier
from scriptbundle.stages.process import ProcessOutcome, find_tool, run_tool


class TestTerserArgs:
    def test_compact_defaults(self, tmp_path):
        argv = TerserMinifier(tmp_path, executable="terser").build_args(Path("in.js"), Path("out.js"))
        assert argv[:2] == ["terser", "in.js"]
        assert "--compress" in argv
        assert argv[argv.index("--define") + 1] == "DEBUG=false"
        assert "reserved=['window','document']" in argv[argv.index("--mangle") + 1]
        assert argv[argv.index("--comments") + 1] == "false"
        assert argv[-2:] == ["--output", "out.js"]
        assert "--source-map" not in argv

    def test_pretty(self, tmp_path):
        argv = TerserMinifier(tmp_path, executable="terser").build_args(Path("in.js"), Path("out.js"), pretty=True)
        assert "--compress" not in argv
        assert "--mangle" not in argv
        assert "beautify=true" in argv[argv.index("--format") + 1]

    def test_source_map(self, tmp_path):
        argv = TerserMinifier(tmp_path, executable="terser").build_args(
            Path("in.js"), Path("out.js"), source_map_name="app.user.js"
        )
        assert argv[argv.index("--source-map") + 1] == (
            "filename='app.user.js',url='app.user.js.map',includeSources"
        )

    def test_preamble(self, tmp_path):
        minifier = TerserMinifier(tmp_path, executable="terser")
        header = "// ==UserScript==\n// @name Demo\n// ==/UserScript=="
        compact = minifier.build_args(Path("in.js"), Path("out.js"), preamble=header)
        pretty = minifier.build_args(Path("in.js"), Path("out.js"), pretty=True, preamble=header)

        expected = 'preamble="// ==UserScript==\\n// @name Demo\\n// ==/UserScript=="'
        assert compact[compact.index("--format") + 1].endswith("," + expected)
        assert pretty[pretty.index("--format") + 1].endswith("," + expected)
        plain = minifier.build_args(Path("in.js"), Path("out.js"))
        assert "preamble" not in plain[plain.index("--format") + 1]

    def test_reserved_names(self, tmp_path):
        minifier = TerserMinifier(tmp_path, executable="terser", reserved_names=("GM_info",))
        argv = minifier.build_args(Path("in.js"), Path("out.js"))
        assert "reserved=['GM_info']" in argv[argv.index("--mangle") + 1]

    def test_missing_terser(self, tmp_path):
        with pytest.raises(ExternalStageFailure) as exc_info:
            TerserMinifier(tmp_path, executable="").build_args(Path("in.js"), Path("out.js"))
        assert exc_info.value.stage == "terser"


@pytest.mark.asyncio
async def test_terser_minify_reads_output_and_map(tmp_path):
    seen = []

    async def fake_run(stage, argv, **kwargs):
        seen.append(argv)
        out = Path(argv[argv.index("--output") + 1])
        out.write_text("// header\nvar a=1;\n//# sourceMappingURL=bundle.user.js.map\n")
        out.with_name(out.name + ".map").write_text('{"version":3}')
        return ProcessOutcome(0, "", "")

    minifier = TerserMinifier(tmp_path, executable="terser")
    with patch("scriptbundle.stages.terser.run_tool", new=fake_run):
        output = await minifier.minify("var a = 1;\n", tmp_path / "bundle.user.js", source_map=True, preamble="// header")

    assert output.code.startswith("// header\nvar a=1;")
    assert 'preamble="// header"' in seen[0][seen[0].index("--format") + 1]
    assert output.source_map == '{"version":3}'


@pytest.mark.asyncio
async def test_terser_failure(tmp_path):
    minifier = TerserMinifier(tmp_path, executable="terser")
    failing = AsyncMock(return_value=ProcessOutcome(1, "", "Parse error at input.js:1,4"))
    with patch("scriptbundle.stages.terser.run_tool", failing):
        with pytest.raises(ExternalStageFailure) as exc_info:
            await minifier.minify("var = ;", tmp_path / "bundle.user.js")
    assert "Parse error" in str(exc_info.value)


@pytest.mark.asyncio
async def test_terser_empty_output(tmp_path):
    minifier = TerserMinifier(tmp_path, executable="terser")
    with patch("scriptbundle.stages.terser.run_tool", AsyncMock(return_value=ProcessOutcome(0, "", ""))):
        with pytest.raises(ExternalStageFailure):
            await minifier.minify("var a = 1;", tmp_path / "bundle.user.js")


class TestEslintRunner:
    def test_flat_config(self, tmp_path):
        (tmp_path / "eslint.config.cjs").write_text("module.exports = [];")
        argv = EslintRunner(tmp_path, executable="eslint").command(tmp_path / "bundle.user.js")
        assert argv == ["eslint", "--no-warn-ignored", str(tmp_path / "bundle.user.js")]

    def test_legacy_config(self, tmp_path):
        (tmp_path / ".eslintrc.cjs").write_text("module.exports = {};")
        argv = EslintRunner(tmp_path, executable="eslint").command(tmp_path / "bundle.user.js")
        assert argv[2:4] == ["--config", str(tmp_path / ".eslintrc.cjs")]

    @pytest.mark.asyncio
    async def test_missing_eslint_skips(self, tmp_path):
        runner = EslintRunner(tmp_path, executable="")
        assert not runner.available
        assert await runner.run(tmp_path / "bundle.user.js") is False

    @pytest.mark.asyncio
    async def test_lint_errors_fail(self, tmp_path):
        runner = EslintRunner(tmp_path, executable="eslint")
        failing = AsyncMock(return_value=ProcessOutcome(1, "1 problem", ""))
        with patch("scriptbundle.stages.eslint.run_tool", failing):
            with pytest.raises(ExternalStageFailure) as exc_info:
                await runner.run(tmp_path / "bundle.user.js")
        assert exc_info.value.stage == "eslint"

    @pytest.mark.asyncio
    async def test_lint_passes(self, tmp_path):
        runner = EslintRunner(tmp_path, executable="eslint")
        with patch("scriptbundle.stages.eslint.run_tool", AsyncMock(return_value=ProcessOutcome(0, "", ""))):
            assert await runner.run(tmp_path / "bundle.user.js") is True


def test_find_tool_prefers_local_bin(tmp_path):
    local = tmp_path / "node_modules" / ".bin"
    local.mkdir(parents=True)
    (local / "terser").write_text("#!/bin/sh\n")
    assert find_tool("terser", tmp_path) == str(local / "terser")


def test_find_tool_falls_back_to_path(tmp_path):
    with patch("scriptbundle.stages.process.shutil.which", return_value="/usr/local/bin/eslint"):
        assert find_tool("eslint", tmp_path) == "/usr/local/bin/eslint"


@pytest.mark.asyncio
async def test_run_tool_collects_output(tmp_path):
    outcome = await run_tool(
        "echo", [sys.executable, "-c", "import sys; print(sys.stdin.read().upper())"], cwd=tmp_path, stdin="hi"
    )
    assert outcome.ok
    assert outcome.stdout.strip() == "HI"


@pytest.mark.asyncio
async def test_run_tool_missing_binary(tmp_path):
    with pytest.raises(ExternalStageFailure):
        await run_tool("lint", [str(tmp_path / "no-such-tool")])


@pytest.mark.asyncio
async def test_run_tool_timeout():
    with pytest.raises(ExternalStageFailure) as exc_info:
        await run_tool("slow", [sys.executable, "-c", "import time; time.sleep(10)"], timeout=0.2)
    assert "timed out" in str(exc_info.value)
