"""Main CLI entry point."""
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

import click

from scriptbundle.config import BuildConfig, resolve_config
from scriptbundle.fsutil import format_size
from scriptbundle.orchestrator import BuildOptions, BuildResult, build_once


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")
    logging.getLogger("scriptbundle").setLevel(level)


def _load_config(root: Optional[Path], config_path: Optional[Path], out: Optional[Path]) -> BuildConfig:
    config = resolve_config(root, config_path)
    if out is not None:
        config.output = str(out.resolve())
    return config


def report_result(result: BuildResult, verbose: bool = False) -> None:
    """Print a build summary."""
    if result.skipped:
        click.echo(f"⚠️  Skipped {result.skipped_count} module(s) due to errors or empty content")

    if result.merged:
        click.echo(
            f"\n📦 Built {result.out_path.name} from {result.merged_count} modules "
            f"({format_size(result.bundle_size)}):"
        )
        for name in result.merged:
            click.echo(f"  ✓ {name}")

    if result.debug_path:
        click.echo(f"📝 Unoptimized copy: {result.debug_path.name}")
    if result.map_path:
        click.echo(f"🗺️  Source map: {result.map_path.name}")
    if result.final_size and result.final_size != result.bundle_size:
        click.echo(f"✂️  {format_size(result.bundle_size)} → {format_size(result.final_size)}")

    if result.warnings:
        click.echo(f"⚠️  {len(result.warnings)} warning(s)")
        for warning in result.warnings:
            click.echo(f"   - {warning}")

    if result.success:
        click.echo(f"✅ {result.summary()} in {result.timings.get('total', 0.0):.2f}s")
    else:
        click.echo(f"❌ {result.summary()}: {result.error}", err=True)

    if verbose and result.timings:
        click.echo("\n📊 Performance Summary:")
        for stage, seconds in result.timings.items():
            click.echo(f"  {stage}: {seconds * 1000:.2f}ms")


async def _watch(config: BuildConfig, options: BuildOptions, verbose: bool) -> None:
    from scriptbundle.watch import watch_and_build

    stop_event = asyncio.Event()

    def _handle_signal() -> None:
        click.echo("\nscriptbundle: Stopping watch...")
        stop_event.set()

    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _handle_signal)
    except NotImplementedError:
        pass

    await watch_and_build(
        config,
        options,
        stop_event=stop_event,
        on_result=lambda result: report_result(result, verbose),
    )


@click.group()
@click.version_option(package_name="scriptbundle")
def cli() -> None:
    """Userscript bundler CLI.

    Run 'scriptbundle build' to merge src/*.js into one userscript.
    Run 'scriptbundle validate' to check the project setup.
    """
    pass


@cli.command()
@click.option("--watch", "-w", is_flag=True, help="Rebuild when modules change")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging and timings")
@click.option("--no-eslint", is_flag=True, help="Skip ESLint")
@click.option("--optimized", is_flag=True, help="Strip comments/whitespace (implies --no-eslint)")
@click.option("--minify", "-m", is_flag=True, help="Minify with terser")
@click.option("--pretty", "--minify-pretty", "pretty", is_flag=True, help="Readable terser output")
@click.option("--sourcemap", "--map", "sourcemap", is_flag=True, help="Write a source map when minifying")
@click.option("--out", "-o", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Output file")
@click.option("--root", type=click.Path(file_okay=False, path_type=Path), default=None, help="Project root")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Config file")
def build(
    watch: bool,
    verbose: bool,
    no_eslint: bool,
    optimized: bool,
    minify: bool,
    pretty: bool,
    sourcemap: bool,
    out: Optional[Path],
    root: Optional[Path],
    config_path: Optional[Path],
) -> None:
    """Build the userscript bundle."""
    _configure_logging(verbose)
    config = _load_config(root, config_path, out)
    options = BuildOptions(
        optimized=optimized,
        minify=minify,
        pretty=pretty,
        source_map=sourcemap,
        lint=not no_eslint,
    )
    if optimized and verbose:
        click.echo("Optimized build requested: skipping ESLint and stripping comments/whitespace")

    if watch:
        asyncio.run(_watch(config, options, verbose))
        return

    result = asyncio.run(build_once(config, options))
    report_result(result, verbose)
    if not result.success:
        sys.exit(2)


@cli.command()
@click.option("--root", type=click.Path(file_okay=False, path_type=Path), default=None, help="Project root")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Config file")
def validate(root: Optional[Path], config_path: Optional[Path]) -> None:
    """Check the project's build configuration."""
    from scriptbundle.cli.validate import validate_project

    click.echo("🔍 Running build validation checks...\n")
    errors, warnings = validate_project(resolve_config(root, config_path))

    if errors:
        click.echo("❌ Configuration Errors:")
        for err in errors:
            click.echo(f"   - {err}")
    if warnings:
        click.echo("\n⚠️  Configuration Warnings:")
        for warn in warnings:
            click.echo(f"   - {warn}")

    if errors:
        sys.exit(1)
    click.echo("\n✅ Build configuration looks good")


@cli.command("check-size")
@click.option("--root", type=click.Path(file_okay=False, path_type=Path), default=None, help="Project root")
@click.option("--out", "-o", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Bundle file")
@click.option("--strict", is_flag=True, help="Exit non-zero above the error limit")
@click.option("--verbose", "-v", is_flag=True, help="Show module breakdown")
def check_size(root: Optional[Path], out: Optional[Path], strict: bool, verbose: bool) -> None:
    """Report the bundle size against the size budget."""
    from scriptbundle.sizecheck import check_bundle_size

    config = _load_config(root, None, out)
    try:
        report = check_bundle_size(config.output_path)
    except FileNotFoundError:
        click.echo("❌ Build output not found. Run `scriptbundle build` first.", err=True)
        sys.exit(1)

    icons = {"excellent": "✨", "good": "✅", "warning": "⚠️", "error": "❌"}
    click.echo(f"{icons.get(report.status, '📊')} {report.message}\n")
    click.echo(f"Current size: {format_size(report.size)}")
    click.echo(f"Target size:  {format_size(report.limits.target)}")
    click.echo(f"Warning at:   {format_size(report.limits.warning)}")
    click.echo(f"Error at:     {format_size(report.limits.error)}")
    if report.size > report.limits.target:
        click.echo(f"\nOver target by: {report.over_target()}")

    if verbose and report.modules:
        click.echo("\n━━━ Module Breakdown ━━━\n")
        for module in report.modules:
            click.echo(f"  {module.name:<40} {format_size(module.size)}")

    if strict and report.failed:
        sys.exit(1)


if __name__ == "__main__":
    cli()
