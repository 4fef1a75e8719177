"""Snapshot manifest for extracted library sources.

A snapshot records which pinned release an extracted source tree came from:
- Library name and version
- SHA256 of the archive it was extracted from
- SHA256 of every extracted file

The manifest sits beside the extracted tree. While it still verifies against
the archive and the files on disk, extraction is skipped and the tree is
reused as-is.
"""

import hashlib
import json
import os
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..logging import get_logger

logger = get_logger("snapshot")

# Maximum snapshot file size (10MB)
MAX_SNAPSHOT_SIZE = 10 * 1024 * 1024

# Version for snapshot format migrations
SNAPSHOT_FORMAT = "1.0.0"

_SHA256 = re.compile(r"^[a-f0-9]{64}$")


class SnapshotError(Exception):
    """Base exception for snapshot errors."""

    pass


class SnapshotValidationError(SnapshotError):
    """Raised when snapshot validation fails."""

    pass


class SnapshotCorruptedError(SnapshotError):
    """Raised when snapshot file is corrupted."""

    pass


@dataclass
class SourceSnapshot:
    """An extracted, pinned copy of a library's sources."""

    library: str
    version: str
    root: Path
    archive_sha256: str
    files: dict[str, str] = field(default_factory=dict)
    format: str = SNAPSHOT_FORMAT

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": self.format,
            "library": self.library,
            "version": self.version,
            "root": str(self.root),
            "archive_sha256": self.archive_sha256,
            "files": dict(sorted(self.files.items())),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SourceSnapshot":
        """Parse snapshot from dictionary with validation."""
        for key in ("format", "library", "version", "root", "archive_sha256", "files"):
            if key not in data:
                raise SnapshotValidationError(f"Missing required field: {key}")
        if not isinstance(data["files"], dict):
            raise SnapshotValidationError("'files' must be a dictionary")

        if not re.match(r"^\d+\.\d+\.\d+$", data["format"]):
            raise SnapshotValidationError(f"Invalid format version: {data['format']}")

        if not _SHA256.match(data["archive_sha256"]):
            raise SnapshotValidationError(
                f"Invalid archive SHA256: {data['archive_sha256']}"
            )

        files = {}
        for path, sha256 in data["files"].items():
            validate_relative_path(path)
            if not isinstance(sha256, str) or not _SHA256.match(sha256):
                raise SnapshotValidationError(f"Invalid SHA256 for {path}: {sha256}")
            files[path] = sha256

        return cls(
            library=data["library"],
            version=data["version"],
            root=Path(data["root"]),
            archive_sha256=data["archive_sha256"],
            files=files,
            format=data["format"],
        )


def validate_relative_path(path: str) -> None:
    """Validate a relative file path for security.

    Raises SnapshotValidationError if path is invalid or potentially malicious.
    """
    # Check for path traversal
    if ".." in path.replace("\\", "/").split("/"):
        raise SnapshotValidationError(f"Path traversal detected in: {path}")

    # Check for absolute paths
    if path.startswith(("/", "\\")) or (len(path) > 1 and path[1] == ":"):
        raise SnapshotValidationError(f"Absolute paths not allowed: {path}")

    # Check for null bytes
    if "\x00" in path:
        raise SnapshotValidationError(f"Null bytes in path: {path}")

    if any(c in path for c in ["\n", "\r", "\t"]):
        raise SnapshotValidationError(f"Invalid characters in path: {path}")


def compute_bytes_hash(data: bytes) -> str:
    """Compute SHA256 hash of an in-memory archive."""
    return hashlib.sha256(data).hexdigest()


def compute_file_hash(file_path: Path) -> str:
    """Compute SHA256 hash of a file."""
    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def hash_tree(root: Path) -> dict[str, str]:
    """Hash every file under root, keyed by POSIX relative path."""
    files = {}
    for path in sorted(root.rglob("*")):
        if path.is_file():
            files[path.relative_to(root).as_posix()] = compute_file_hash(path)
    return files


def load_snapshot(snapshot_path: Path) -> SourceSnapshot | None:
    """
    Load snapshot from disk.

    Returns None if the snapshot doesn't exist.
    Raises SnapshotCorruptedError if it is corrupted (and creates a backup).
    """
    if not snapshot_path.exists():
        return None

    file_size = snapshot_path.stat().st_size
    if file_size > MAX_SNAPSHOT_SIZE:
        raise SnapshotValidationError(
            f"Snapshot file too large: {file_size} > {MAX_SNAPSHOT_SIZE}"
        )

    try:
        with open(snapshot_path, encoding="utf-8") as f:
            data = json.load(f)
        return SourceSnapshot.from_dict(data)
    except json.JSONDecodeError as e:
        backup_path = snapshot_path.with_suffix(".json.corrupted")
        logger.warning(
            "Snapshot corrupted, creating backup at %s: %s", backup_path, e
        )
        shutil.copy(snapshot_path, backup_path)
        raise SnapshotCorruptedError(f"Snapshot JSON corrupted: {e}") from e
    except SnapshotValidationError:
        raise
    except (OSError, TypeError, AttributeError) as e:
        raise SnapshotCorruptedError(f"Failed to load snapshot: {e}") from e


def save_snapshot(snapshot: SourceSnapshot, snapshot_path: Path) -> None:
    """
    Save snapshot to disk atomically.

    Uses write-to-temp-then-rename so an interrupted write never leaves a
    half-written manifest that would later verify.
    """
    snapshot_path.parent.mkdir(parents=True, exist_ok=True)

    temp_path = snapshot_path.with_suffix(".json.tmp")

    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(snapshot.to_dict(), f, indent=2)
            f.flush()
            os.fsync(f.fileno())

        temp_path.replace(snapshot_path)
        logger.debug("Saved snapshot to %s", snapshot_path)

    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


def verify_snapshot(
    snapshot: SourceSnapshot | None,
    version: str,
    archive_sha256: str,
) -> tuple[bool, str]:
    """
    Check whether an extracted tree can be reused.

    Args:
        snapshot: Previously saved snapshot
        version: Version that is about to be cataloged
        archive_sha256: Hash of the archive that would be extracted

    Returns:
        Tuple of (is_current, reason)
    """
    if snapshot is None:
        return False, "No snapshot exists"

    if snapshot.version != version:
        return False, f"Version changed: {snapshot.version} -> {version}"

    if snapshot.archive_sha256 != archive_sha256:
        return False, "Archive checksum changed"

    if not snapshot.root.is_dir():
        return False, f"Source tree missing: {snapshot.root}"

    if hash_tree(snapshot.root) != snapshot.files:
        return False, "Extracted files modified on disk"

    return True, ""
