"""Merges ordered modules into a single bundle under one metadata header."""

import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

from scriptbundle.compiler.exceptions import FatalInputError
from scriptbundle.compiler.header import HeaderMarkers
from scriptbundle.compiler.models import (
    AssembledArtifact,
    ModuleFile,
    ModuleWarning,
    SourceModule,
    WarningKind,
)
from scriptbundle.fsutil import read_text_safe

logger = logging.getLogger(__name__)

MODULE_SEPARATOR = "// --- MODULE: {name} ---"

LoadedModule = Tuple[ModuleFile, Optional[str]]


async def load_modules(files: Sequence[ModuleFile]) -> List[LoadedModule]:
    """Read all modules concurrently; results come back in the given order."""
    texts = await asyncio.gather(*(asyncio.to_thread(read_text_safe, f.path) for f in files))
    return list(zip(files, texts))


class Assembler:
    """Builds the bundle text: header, then one separator + body per module."""

    def __init__(self, header: str, markers: Optional[HeaderMarkers] = None) -> None:
        self.header = header
        self.markers = markers or HeaderMarkers()

    def assemble(self, loaded: Sequence[LoadedModule]) -> Tuple[AssembledArtifact, List[ModuleWarning]]:
        artifact = AssembledArtifact(header=self.header.strip())
        warnings: List[ModuleWarning] = []

        for module, content in loaded:
            if content is None:
                warnings.append(
                    ModuleWarning(WarningKind.UNREADABLE, str(module.path), "could not read module")
                )
                artifact.skipped.append(module.name)
                continue

            body = self.markers.strip(content).strip()
            if not body:
                warnings.append(ModuleWarning(WarningKind.EMPTY, str(module.path), "empty module"))
                artifact.skipped.append(module.name)
                continue

            artifact.bodies.append(SourceModule(name=module.name, path=module.path, text=body))
            logger.debug(f"Merged: {module.name}")

        if not artifact.bodies:
            raise FatalInputError("No modules left to bundle after reading sources")

        parts = [artifact.header]
        for source in artifact.bodies:
            parts.append(MODULE_SEPARATOR.format(name=source.name))
            parts.append(source.text)
        artifact.text = "\n\n".join(parts) + "\n"
        return artifact, warnings
