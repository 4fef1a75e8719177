"""Errors raised by the catalog generation pipeline.

Every error is fatal to the generation step. Messages always carry the
version string or file path that caused the failure.
"""

from pathlib import Path


class CatalogError(Exception):
    """Base exception for catalog generation failures."""

    pass


class FetchError(CatalogError):
    """Raised when a release archive cannot be obtained."""

    def __init__(self, version: str, reason: str = "unknown version"):
        super().__init__(f"Failed to fetch version {version}: {reason}")
        self.version = version
        self.reason = reason


class ExtractionError(CatalogError):
    """Raised when the archive is corrupt or cannot be written to disk."""

    def __init__(self, path: str | Path, reason: str):
        super().__init__(f"Extraction failed at {path}: {reason}")
        self.path = str(path)
        self.reason = reason


class SourceSyntaxError(CatalogError):
    """Raised when a Rust source file fails to parse."""

    def __init__(
        self,
        file_path: str | Path,
        line: int | None = None,
        column: int | None = None,
        reason: str = "syntax error",
    ):
        location = str(file_path)
        if line is not None:
            location = f"{location}:{line}"
            if column is not None:
                location = f"{location}:{column}"
        super().__init__(f"Cannot parse {location}: {reason}")
        self.file_path = str(file_path)
        self.line = line
        self.column = column


class ResolutionError(CatalogError):
    """Raised when a `mod name;` declaration has no backing file."""

    def __init__(
        self,
        module_name: str,
        candidates: list[Path] | None = None,
        reason: str | None = None,
    ):
        self.module_name = module_name
        self.candidates = [str(c) for c in candidates or []]
        if reason is None:
            tried = ", ".join(self.candidates) or "no candidates"
            reason = f"no module file found (tried {tried})"
        super().__init__(f"Cannot resolve module '{module_name}': {reason}")
