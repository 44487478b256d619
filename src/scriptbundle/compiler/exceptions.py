"""Build exceptions."""

from typing import Optional


class BuildError(Exception):
    """Base class for errors that stop a build."""


class FatalInputError(BuildError):
    """Raised when there is nothing to bundle."""


class ManifestError(BuildError):
    """Raised when an ordering manifest exists but cannot be read."""

    def __init__(self, message: str, file_path: str = "") -> None:
        self.message = message
        self.file_path = file_path
        super().__init__(message)

    def __str__(self) -> str:
        if self.file_path:
            return f"{self.file_path}: {self.message}"
        return self.message


class CacheCorruption(BuildError):
    """Raised while decoding a malformed change cache file."""


class ValidationFailure(BuildError):
    """Raised when the assembled bundle is not syntactically valid."""

    def __init__(
        self,
        message: str,
        file_path: str = "",
        line: Optional[int] = None,
        column: Optional[int] = None,
    ) -> None:
        self.message = message
        self.file_path = file_path
        self.line = line
        self.column = column
        super().__init__(message)

    def __str__(self) -> str:
        if self.file_path and self.line:
            if self.column is not None:
                return f"{self.file_path}:{self.line}:{self.column}: {self.message}"
            return f"{self.file_path}:{self.line}: {self.message}"
        return self.message


class ExternalStageFailure(BuildError):
    """Raised when an external lint or minify tool fails."""

    def __init__(self, stage: str, message: str) -> None:
        self.stage = stage
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.stage}: {self.message}"
