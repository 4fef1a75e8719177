"""Extract the crate subtree of a release archive.

Only entries under "<repo>-<tag>/<subpackage>/" are written; everything else
in the repository snapshot (CI config, other crates, docs) is skipped.
"""

import io
import shutil
import zipfile
from dataclasses import dataclass
from pathlib import Path

from ..errors import ExtractionError
from ..logging import get_logger
from .snapshot import SnapshotValidationError, validate_relative_path

logger = get_logger("extractor")


@dataclass
class ExtractStats:
    """Counts of what an extraction did."""

    files: int = 0
    directories: int = 0
    skipped: int = 0


def extract_archive(archive: bytes, prefix: str, output_dir: Path) -> ExtractStats:
    """
    Extract the entries under prefix into output_dir.

    Args:
        archive: ZIP archive bytes
        prefix: Archive path of the subtree, e.g. "lsp-types-0.94.1/src"
        output_dir: Destination; receives the subtree's contents

    Returns:
        Extraction statistics

    Partial output is left in place if extraction fails.
    """
    prefix = prefix.strip("/") + "/"
    stats = ExtractStats()

    try:
        zf = zipfile.ZipFile(io.BytesIO(archive))
    except (zipfile.BadZipFile, ValueError) as e:
        raise ExtractionError(output_dir, f"corrupt archive: {e}") from e

    with zf:
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ExtractionError(output_dir, str(e)) from e

        for info in zf.infolist():
            if not info.filename.startswith(prefix):
                stats.skipped += 1
                continue

            rel_path = info.filename[len(prefix):]
            if not rel_path:
                # The prefix directory entry itself
                continue

            try:
                validate_relative_path(rel_path)
            except SnapshotValidationError as e:
                raise ExtractionError(info.filename, str(e)) from e

            target = output_dir / rel_path
            try:
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    stats.directories += 1
                else:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with zf.open(info) as src, open(target, "wb") as dst:
                        shutil.copyfileobj(src, dst)
                    stats.files += 1
            except OSError as e:
                raise ExtractionError(target, str(e)) from e
            except zipfile.BadZipFile as e:
                raise ExtractionError(info.filename, f"corrupt entry: {e}") from e

    logger.debug(
        "Extracted %d files, %d directories from %s (%d entries skipped)",
        stats.files,
        stats.directories,
        prefix,
        stats.skipped,
    )
    return stats
