"""scriptbundle: merge JavaScript modules into a single userscript."""

from scriptbundle.config import BuildConfig, resolve_config
from scriptbundle.orchestrator import BuildOptions, BuildOrchestrator, BuildResult, build_once

__version__ = "0.1.0"

__all__ = ["BuildConfig", "BuildOptions", "BuildOrchestrator", "BuildResult", "build_once", "resolve_config"]
