"""Catalog generation pipeline.

fetch -> extract -> build module tree -> generate catalog + lookup tables

Every step blocks and any failure aborts the whole run; nothing is retried
and no partial catalog is written.
"""

import shutil
from dataclasses import dataclass
from pathlib import Path

from .codegen import CatalogHeader, LookupTable, build_lookup_table, write_package
from .config import CACHE_DIRNAME, SOURCES_DIRNAME, Config
from .errors import ExtractionError, ResolutionError
from .indexer.extractor import extract_archive
from .indexer.fetcher import fetch_archive
from .indexer.snapshot import (
    SnapshotError,
    SourceSnapshot,
    compute_bytes_hash,
    hash_tree,
    load_snapshot,
    save_snapshot,
    verify_snapshot,
)
from .indexer.tree import ModuleNode, ModuleTreeBuilder
from .logging import get_logger, log_step
from .versions import TargetLibrary, get_library, resolve_release

logger = get_logger("pipeline")


@dataclass(frozen=True)
class Workspace:
    """Fixed on-disk layout under the data directory."""

    data_dir: Path

    @property
    def cache_dir(self) -> Path:
        return self.data_dir / CACHE_DIRNAME

    @property
    def sources_dir(self) -> Path:
        return self.data_dir / SOURCES_DIRNAME

    def source_root(self, library: TargetLibrary, version: str) -> Path:
        release = resolve_release(library, version)
        return self.sources_dir / library.cache_name(release)

    def snapshot_path(self, library: TargetLibrary, version: str) -> Path:
        root = self.source_root(library, version)
        return root.with_name(f"{root.name}.snapshot.json")


@dataclass
class PipelineResult:
    """Outcome of a successful generation run."""

    library: str
    version: str
    snapshot: SourceSnapshot
    root: ModuleNode
    structs: LookupTable
    enums: LookupTable
    output_dir: Path
    written: list[Path]
    reused_snapshot: bool

    def summary(self) -> str:
        counts = self.root.count()
        lines = [
            f"{self.library} {self.version}",
            f"  Modules: {counts['modules']}",
            f"  Structs: {counts['structs']} ({len(self.structs)} unique names)",
            f"  Enums: {counts['enums']} ({len(self.enums)} unique names)",
            f"  Output: {self.output_dir}",
        ]
        shadowed = {**self.structs.shadowed, **self.enums.shadowed}
        if shadowed:
            lines.append(f"  Shadowed names: {', '.join(sorted(shadowed))}")
        return "\n".join(lines)


def resolve_library(name: str) -> TargetLibrary:
    library = get_library(name)
    if library is None:
        # Config validation rejects unknown libraries; this guards direct callers
        raise ValueError(f"Unknown library: {name}")
    return library


def fetch_step(
    library: TargetLibrary, version: str, workspace: Workspace, timeout: float | None = None
) -> bytes:
    """Fetch the release archive, from cache when possible."""
    return fetch_archive(library, version, workspace.cache_dir, timeout=timeout)


def extract_step(
    library: TargetLibrary,
    version: str,
    archive: bytes,
    workspace: Workspace,
    force: bool = False,
) -> tuple[SourceSnapshot, bool]:
    """
    Extract the crate sources, reusing a verified earlier extraction.

    Returns:
        Tuple of (snapshot, reused)
    """
    release = resolve_release(library, version)
    root = workspace.source_root(library, version)
    snapshot_path = workspace.snapshot_path(library, version)
    archive_sha256 = compute_bytes_hash(archive)

    if not force:
        try:
            previous = load_snapshot(snapshot_path)
        except SnapshotError as e:
            logger.warning("Ignoring unusable snapshot %s: %s", snapshot_path, e)
            previous = None

        is_current, reason = verify_snapshot(previous, version, archive_sha256)
        if is_current:
            logger.info("Reusing extracted sources at %s", root)
            return previous, True
        logger.info("Extracting sources: %s", reason)

    if root.exists():
        try:
            shutil.rmtree(root)
        except OSError as e:
            raise ExtractionError(root, f"cannot clear previous extraction: {e}") from e

    prefix = library.subtree_prefix(release)
    stats = extract_archive(archive, prefix, root)
    if stats.files == 0:
        raise ExtractionError(root, f"archive has no files under {prefix}/")

    logger.info(
        "Extracted %d files to %s (%d unrelated entries skipped)",
        stats.files,
        root,
        stats.skipped,
    )

    snapshot = SourceSnapshot(
        library=library.name,
        version=version,
        root=root,
        archive_sha256=archive_sha256,
        files=hash_tree(root),
    )
    save_snapshot(snapshot, snapshot_path)
    return snapshot, False


def build_step(library: TargetLibrary, snapshot: SourceSnapshot) -> ModuleNode:
    """Build the module tree of an extracted snapshot."""
    entry_file = snapshot.root / library.entry_file
    if not entry_file.is_file():
        raise ResolutionError(
            "crate", [entry_file], reason=f"crate root {entry_file} not found"
        )

    root = ModuleTreeBuilder(crate_root=snapshot.root).build(entry_file)
    counts = root.count()
    logger.info(
        "Parsed %d modules: %d structs, %d enums",
        counts["modules"],
        counts["structs"],
        counts["enums"],
    )
    return root


def generate_step(
    root: ModuleNode, library: TargetLibrary, version: str, output_dir: Path
) -> tuple[dict[str, LookupTable], list[Path]]:
    """Generate the catalog package from a module tree."""
    tables = {kind: build_lookup_table(root, kind) for kind in ("struct", "enum")}
    header = CatalogHeader(library=library.name, version=version)
    written = write_package(root, header, output_dir, tables)
    logger.info("Wrote catalog package to %s", output_dir)
    return tables, written


def run_pipeline(config: Config, data_dir: Path, force: bool = False) -> PipelineResult:
    """
    Run the full generation pipeline.

    Args:
        config: Validated configuration
        data_dir: Data directory holding cache, sources and default output
        force: Re-extract even if a verified snapshot exists

    Returns:
        PipelineResult describing the generated catalog
    """
    library = resolve_library(config.target.library)
    version = config.target.resolved_version()
    # Fail fast on unknown versions, before touching the network or disk
    release = resolve_release(library, version)
    workspace = Workspace(data_dir)
    output_dir = config.output.resolve(data_dir)

    logger.info("Generating catalog for %s %s (tag %s)", library.name, version, release.tag)

    context = {"library": library.name, "version": version}
    with log_step(logger, "fetch", **context):
        archive = fetch_step(library, version, workspace, timeout=config.fetch.timeout)
    with log_step(logger, "extract", path=workspace.source_root(library, version), **context):
        snapshot, reused = extract_step(library, version, archive, workspace, force=force)
    with log_step(logger, "parse", **context):
        root = build_step(library, snapshot)
    with log_step(logger, "generate", path=output_dir, **context):
        tables, written = generate_step(root, library, version, output_dir)

    return PipelineResult(
        library=library.name,
        version=version,
        snapshot=snapshot,
        root=root,
        structs=tables["struct"],
        enums=tables["enum"],
        output_dir=output_dir,
        written=written,
        reused_snapshot=reused,
    )
