"""Validation of a project's build setup."""
from typing import List, Tuple

from scriptbundle.compiler.exceptions import ManifestError
from scriptbundle.compiler.header import HeaderMarkers
from scriptbundle.config import BuildConfig
from scriptbundle.fsutil import read_text_safe
from scriptbundle.locator import discover_modules, read_manifest
from scriptbundle.validation import VALIDATORS


def validate_project(config: BuildConfig) -> Tuple[List[str], List[str]]:
    """Check a project's layout and build files. Returns (errors, warnings)."""
    errors: List[str] = []
    warnings: List[str] = []

    source_root = config.source_root
    if not source_root.is_dir():
        return [f"Source directory not found: {source_root}"], warnings
    if source_root == config.root:
        warnings.append("src/ directory not found - scanning the project root")

    modules = discover_modules(source_root, config.extension, config.excluded_names)
    if not modules:
        errors.append(f"No {config.extension} modules found in {source_root}")
    names = {m.name for m in modules}

    try:
        manifest = read_manifest(config.manifest_paths())
    except ManifestError as e:
        errors.append(f"Invalid order manifest: {e}")
        manifest = None

    if manifest is None:
        warnings.append(f"No order manifest ({', '.join(config.manifests)}) - using default ordering")
    else:
        for name in manifest.names:
            if name not in names:
                errors.append(f"{manifest.source}: lists '{name}' which does not exist")
        for name in sorted(names - set(manifest.names)):
            warnings.append(f"{name} is not listed in {manifest.source}")

    markers = HeaderMarkers()
    metadata = config.root / config.metadata_file
    content = read_text_safe(metadata)
    if content is None:
        warnings.append(f"{config.metadata_file} not found - using fallback metadata")
    elif markers.extract(content) is None:
        warnings.append(f"{metadata}: no ==UserScript== metadata block")

    if config.validator not in VALIDATORS:
        errors.append(f"Unknown validator '{config.validator}'")

    return errors, warnings
