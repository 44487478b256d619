import json
import shutil

import pytest

from scriptbundle.compiler.exceptions import (
    BuildError,
    ExternalStageFailure,
    FatalInputError,
    ValidationFailure,
)
from scriptbundle.compiler.header import DEFAULT_HEADER
from scriptbundle.compiler.models import WarningKind
from scriptbundle.config import BuildConfig
from scriptbundle.orchestrator import BuildOptions, BuildOrchestrator, build_once, debug_copy_path
from scriptbundle.stages import EslintRunner, MinifiedOutput

HEADER = "// ==UserScript==\n// @name Demo\n// @version 1.0\n// ==/UserScript=="


class FakeMinifier:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    async def minify(self, body, out_path, *, pretty=False, source_map=False, preamble=None):
        self.calls.append({"body": body, "pretty": pretty, "source_map": source_map, "preamble": preamble})
        if self.error:
            raise self.error
        return MinifiedOutput(
            code=f"{preamble}\nvar a=1;function u(){{return 2}}",
            source_map='{"version":3}' if source_map else None,
        )


class FakeLinter:
    def __init__(self, error=None):
        self.runs = 0
        self.error = error

    async def run(self, out_path):
        self.runs += 1
        if self.error:
            raise self.error
        return True


@pytest.fixture
def project(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (tmp_path / "userscript.js").write_text(f"{HEADER}\n")
    (src / "main.js").write_text("var a = 1; // one\n")
    (src / "util.js").write_text("function u() {  return  2; }\n")
    return tmp_path.resolve()


def _orchestrator(root, **kwargs):
    options = kwargs.pop("options", BuildOptions(lint=False))
    return BuildOrchestrator(BuildConfig(root=root), options, **kwargs)


@pytest.mark.asyncio
async def test_plain_build(project):
    result = await _orchestrator(project).build()

    assert result.success, result.error
    assert result.merged == ["main.js", "util.js"]
    assert result.skipped == []
    assert result.changed == 2
    assert result.header_source == (project / "userscript.js").resolve()

    out = (project / "bundle.user.js").read_text()
    assert out == (
        f"{HEADER}\n\n"
        "// --- MODULE: main.js ---\n\nvar a = 1; // one\n\n"
        "// --- MODULE: util.js ---\n\nfunction u() {  return  2; }\n"
    )
    assert result.bundle_size == len(out.encode("utf-8"))
    assert "merged 2, skipped 0, changed since last run 2" in result.summary()


@pytest.mark.asyncio
async def test_second_build_reports_no_changes(project):
    await _orchestrator(project).build()
    cache = json.loads((project / ".build-cache.json").read_text())
    assert len(cache["files"]) == 2

    result = await _orchestrator(project).build()
    assert result.changed == 0

    (project / "src" / "util.js").write_text("function u() { return 3; }\n")
    result = await _orchestrator(project).build()
    assert result.changed == 1


@pytest.mark.asyncio
async def test_no_modules_fails_without_artifact(tmp_path):
    (tmp_path / "src").mkdir()
    result = await _orchestrator(tmp_path).build()

    assert not result.success
    assert isinstance(result.error, FatalInputError)
    assert not (tmp_path / "bundle.user.js").exists()
    assert not (tmp_path / ".build-cache.json").exists()


@pytest.mark.asyncio
async def test_all_modules_empty_is_fatal(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (src / "a.js").write_text("   \n")
    result = await _orchestrator(tmp_path).build()
    assert isinstance(result.error, FatalInputError)
    assert not (tmp_path / "bundle.user.js").exists()


@pytest.mark.asyncio
async def test_validation_failure_skips_optimize(project):
    (project / "src" / "util.js").write_text("var b = 'oops;\n")
    result = await _orchestrator(project, options=BuildOptions(optimized=True)).build()

    assert not result.success
    assert isinstance(result.error, ValidationFailure)
    assert result.error.line is not None

    out = project / "bundle.user.js"
    assert out.exists()
    assert "// one" in out.read_text()
    assert not debug_copy_path(out).exists()
    assert not (project / ".build-cache.json").exists()


@pytest.mark.asyncio
async def test_optimized_build(project):
    result = await _orchestrator(project, options=BuildOptions(optimized=True)).build()

    assert result.success, result.error
    out = project / "bundle.user.js"
    assert result.debug_path == project / "bundle.user.unoptimized.js"
    assert "// --- MODULE: main.js ---" in result.debug_path.read_text()
    assert out.read_text() == f"{HEADER}\n\nvar a = 1;\nfunction u() {{ return 2; }}\n"
    assert result.final_size < result.bundle_size


def test_optimized_implies_no_lint():
    assert BuildOptions(optimized=True, lint=True).lint is False
    assert BuildOptions().lint is True


@pytest.mark.asyncio
async def test_minify_build(project):
    minifier = FakeMinifier()
    options = BuildOptions(minify=True, source_map=True, lint=False)
    result = await _orchestrator(project, options=options, minifier=minifier).build()

    assert result.success, result.error
    assert len(minifier.calls) == 1
    assert "UserScript" not in minifier.calls[0]["body"]
    assert minifier.calls[0]["source_map"] is True
    assert minifier.calls[0]["preamble"] == HEADER

    out = project / "bundle.user.js"
    assert out.read_text() == f"{HEADER}\nvar a=1;function u(){{return 2}}\n"
    assert result.map_path == project / "bundle.user.js.map"
    assert result.map_path.read_text() == '{"version":3}'


@pytest.mark.asyncio
async def test_minify_takes_precedence_over_fast_path(project):
    minifier = FakeMinifier()
    options = BuildOptions(optimized=True, minify=True, pretty=True)
    result = await _orchestrator(project, options=options, minifier=minifier).build()

    assert result.success
    assert result.debug_path is None
    assert minifier.calls[0]["pretty"] is True
    assert result.map_path is None


@pytest.mark.asyncio
async def test_minify_failure_leaves_artifact(project):
    minifier = FakeMinifier(error=ExternalStageFailure("terser", "boom"))
    result = await _orchestrator(project, options=BuildOptions(minify=True, lint=False), minifier=minifier).build()

    assert not result.success
    assert isinstance(result.error, ExternalStageFailure)
    assert "// --- MODULE: util.js ---" in (project / "bundle.user.js").read_text()


@pytest.mark.asyncio
async def test_lint_runs_when_enabled(project):
    linter = FakeLinter()
    result = await _orchestrator(project, options=BuildOptions(), linter=linter).build()
    assert result.success
    assert linter.runs == 1


@pytest.mark.asyncio
async def test_lint_failure_fails_build(project):
    linter = FakeLinter(error=ExternalStageFailure("eslint", "2 problems"))
    minifier = FakeMinifier()
    options = BuildOptions(minify=True)
    result = await _orchestrator(project, options=options, linter=linter, minifier=minifier).build()

    assert not result.success
    assert minifier.calls == []


@pytest.mark.asyncio
async def test_missing_eslint_is_a_warning(project):
    linter = EslintRunner(project, executable="")
    result = await _orchestrator(project, options=BuildOptions(), linter=linter).build()

    assert result.success
    assert any(w.kind is WarningKind.LINT for w in result.warnings)


@pytest.mark.asyncio
async def test_default_header_when_missing(project):
    (project / "userscript.js").unlink()
    result = await _orchestrator(project).build()

    assert result.success
    assert result.header_source is None
    assert any(w.kind is WarningKind.HEADER for w in result.warnings)
    assert (project / "bundle.user.js").read_text().startswith(DEFAULT_HEADER.strip())


@pytest.mark.asyncio
async def test_header_reused_from_previous_output(project):
    await _orchestrator(project).build()
    (project / "userscript.js").unlink()

    result = await _orchestrator(project).build()
    assert result.header_source == (project / "bundle.user.js").resolve()
    assert (project / "bundle.user.js").read_text().startswith(HEADER)


@pytest.mark.asyncio
async def test_out_path_override(project):
    target = project / "dist" / "custom.user.js"
    result = await _orchestrator(project, options=BuildOptions(lint=False, out_path=target)).build()

    assert result.success
    assert target.exists()
    assert not (project / "bundle.user.js").exists()


@pytest.mark.asyncio
async def test_unknown_validator(project):
    config = BuildConfig(root=project, validator="nope")
    result = await build_once(config, BuildOptions(lint=False))
    assert not result.success
    assert isinstance(result.error, BuildError)


@pytest.mark.asyncio
async def test_skipped_modules_are_reported(project):
    (project / "src" / "blank.js").write_text("\n\n")
    result = await _orchestrator(project).build()

    assert result.success
    assert result.skipped == ["blank.js"]
    assert any(w.kind is WarningKind.EMPTY for w in result.warnings)


def test_debug_copy_path(tmp_path):
    assert debug_copy_path(tmp_path / "app.user.js") == tmp_path / "app.user.unoptimized.js"
    assert debug_copy_path(tmp_path / "bundle") == tmp_path / "bundle.unoptimized.js"


@pytest.mark.asyncio
@pytest.mark.skipif(shutil.which("node") is None, reason="node not installed")
async def test_modern_syntax_passes_default_validator(project):
    (project / "src" / "util.js").write_text(
        "class Store {\n  items = [];\n  first() { return this.items[0]?.name ?? 'none'; }\n}\n"
    )
    result = await _orchestrator(project).build()

    assert result.success, result.error
    assert "?.name ?? 'none'" in (project / "bundle.user.js").read_text()
