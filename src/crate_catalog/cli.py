"""CLI for crate-catalog.

Commands:
- build: Full pipeline (fetch + extract + generate)
- fetch: Download the pinned release archive into the cache
- extract: Extract the crate sources from the cached archive
- generate: Regenerate the catalog from already-extracted sources
- show: Look up a type in the generated catalog
- versions: List supported libraries and releases
- status: Check cache, sources and generated catalog
"""

import logging
import sys
from pathlib import Path
from typing import NoReturn

import click
from pydantic import ValidationError

from .config import DEFAULT_DATA_DIR, Config, ConfigError, load_config
from .errors import CatalogError
from .indexer.fetcher import is_cached
from .indexer.snapshot import SnapshotError, load_snapshot
from .logging import setup_logging
from .meta import EnumMeta, Shape, StructMeta
from .models import TypeLookupInput, VersionInput
from .pipeline import (
    Workspace,
    build_step,
    extract_step,
    fetch_step,
    generate_step,
    resolve_library,
    run_pipeline,
)
from .registry import TypeRegistry
from .versions import list_libraries, resolve_release


def _fail(message: str) -> NoReturn:
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _load(ctx, version: str | None = None) -> Config:
    """Load config for a command, applying a --version override."""
    data_dir = ctx.obj["data_dir"]
    try:
        config = load_config(data_dir=data_dir)
    except ConfigError as e:
        _fail(str(e))

    if version:
        try:
            VersionInput(version=version)
        except ValidationError as e:
            raise click.BadParameter(e.errors()[0]["msg"], param_hint="--version") from e
        config.target.version = version
    return config


@click.group()
@click.option(
    "--data-dir",
    type=click.Path(path_type=Path),
    default=DEFAULT_DATA_DIR,
    help="Data directory (default: ./.crate-catalog)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit JSON log lines")
@click.pass_context
def main(ctx, data_dir: Path, verbose: bool, json_logs: bool):
    """crate-catalog - generate a type catalog from a pinned Rust library release."""
    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = data_dir
    setup_logging(logging.DEBUG if verbose else logging.INFO, json_format=json_logs)


@main.command()
@click.option("--version", "version", help="Release version to catalog")
@click.option(
    "--output-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Where to write the generated package (default: <data-dir>/generated)",
)
@click.option("--force", is_flag=True, help="Re-extract even if sources verify")
@click.pass_context
def build(ctx, version: str | None, output_dir: Path | None, force: bool):
    """Full pipeline: fetch, extract, and generate."""
    data_dir = ctx.obj["data_dir"]
    config = _load(ctx, version)
    if output_dir is not None:
        config.output.output_dir = output_dir

    click.echo("=" * 60)
    click.echo("CRATE CATALOG BUILD")
    click.echo("=" * 60)

    try:
        result = run_pipeline(config, data_dir, force=force)
    except (CatalogError, OSError) as e:
        _fail(str(e))

    click.echo(result.summary())
    click.echo("=" * 60)
    click.echo("BUILD COMPLETE")
    click.echo("=" * 60)


@main.command()
@click.option("--version", "version", help="Release version to fetch")
@click.pass_context
def fetch(ctx, version: str | None):
    """Download the release archive into the cache."""
    data_dir = ctx.obj["data_dir"]
    config = _load(ctx, version)
    library = resolve_library(config.target.library)
    resolved = config.target.resolved_version()

    try:
        archive = fetch_step(library, resolved, Workspace(data_dir), config.fetch.timeout)
    except CatalogError as e:
        _fail(str(e))

    click.echo(f"{library.name} {resolved}: {len(archive)} bytes")


@main.command()
@click.option("--version", "version", help="Release version to extract")
@click.option("--force", is_flag=True, help="Re-extract even if sources verify")
@click.pass_context
def extract(ctx, version: str | None, force: bool):
    """Extract the crate sources of a release."""
    data_dir = ctx.obj["data_dir"]
    config = _load(ctx, version)
    library = resolve_library(config.target.library)
    resolved = config.target.resolved_version()
    workspace = Workspace(data_dir)

    try:
        archive = fetch_step(library, resolved, workspace, config.fetch.timeout)
        snapshot, reused = extract_step(library, resolved, archive, workspace, force=force)
    except CatalogError as e:
        _fail(str(e))

    state = "reused" if reused else "extracted"
    click.echo(f"{library.name} {resolved}: {len(snapshot.files)} files {state} at {snapshot.root}")


@main.command()
@click.option("--version", "version", help="Release version to generate")
@click.option(
    "--output-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Where to write the generated package (default: <data-dir>/generated)",
)
@click.pass_context
def generate(ctx, version: str | None, output_dir: Path | None):
    """Regenerate the catalog from extracted sources."""
    data_dir = ctx.obj["data_dir"]
    config = _load(ctx, version)
    library = resolve_library(config.target.library)
    resolved = config.target.resolved_version()
    workspace = Workspace(data_dir)
    output_dir = output_dir or config.output.resolve(data_dir)

    try:
        snapshot = load_snapshot(workspace.snapshot_path(library, resolved))
    except (CatalogError, SnapshotError) as e:
        _fail(str(e))
    if snapshot is None:
        _fail(f"No extracted sources for {library.name} {resolved}. Run 'extract' first.")

    try:
        root = build_step(library, snapshot)
        tables, _ = generate_step(root, library, resolved, output_dir)
    except (CatalogError, OSError) as e:
        _fail(str(e))

    click.echo(
        f"Generated {len(tables['struct'])} structs, {len(tables['enum'])} enums "
        f"into {output_dir}"
    )


@main.command()
@click.argument("name")
@click.option("--kind", type=click.Choice(["struct", "enum"]), default=None)
@click.option(
    "--output-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Generated package to read (default: <data-dir>/generated)",
)
@click.pass_context
def show(ctx, name: str, kind: str | None, output_dir: Path | None):
    """Look up a type in the generated catalog."""
    data_dir = ctx.obj["data_dir"]
    try:
        lookup = TypeLookupInput(name=name, kind=kind)
    except ValidationError as e:
        raise click.BadParameter(e.errors()[0]["msg"], param_hint="NAME") from e

    config = _load(ctx)
    package_dir = output_dir or config.output.resolve(data_dir)

    try:
        registry = TypeRegistry.load(package_dir)
    except CatalogError as e:
        _fail(f"{e}. Run 'build' first.")

    if lookup.kind == "struct":
        item = registry.get_struct(lookup.name)
    elif lookup.kind == "enum":
        item = registry.get_enum(lookup.name)
    else:
        item = registry.get(lookup.name)

    if item is None:
        click.echo(f"Type '{lookup.name}' not found.")
        sys.exit(1)

    generics = f"<{', '.join(item.generics)}>" if item.generics else ""
    header = f"{item.visibility} {item.kind} {item.qualified_name}{generics}".strip()
    click.echo(f"\n{click.style(header, bold=True)}")
    for attribute in item.attributes:
        click.echo(f"  {attribute}")

    if isinstance(item, StructMeta):
        click.echo(f"  Shape: {item.shape.value}")
        for f in item.fields:
            visibility = f"{f.visibility} " if f.visibility else ""
            click.echo(f"    {visibility}{f.name}: {f.ty}")
    elif isinstance(item, EnumMeta):
        for variant in item.variants:
            if variant.shape is Shape.TUPLE:
                click.echo(f"    {variant.name}({', '.join(variant.types)})")
            elif variant.shape is Shape.NAMED:
                inner = ", ".join(f"{f.name}: {f.ty}" for f in variant.fields)
                click.echo(f"    {variant.name} {{ {inner} }}")
            else:
                click.echo(f"    {variant.name}")

    if registry.is_ambiguous(lookup.name):
        others = ", ".join(registry.shadowed[lookup.name])
        click.echo(click.style(f"\n  Also defined as: {others}", fg="yellow"))


@main.command()
@click.pass_context
def versions(ctx):
    """List supported libraries and releases."""
    data_dir = ctx.obj["data_dir"]
    cache_dir = Workspace(data_dir).cache_dir

    for library in list_libraries():
        click.echo(f"\n{click.style(library.name, bold=True)} - {library.description}")
        click.echo(f"  https://github.com/{library.owner}/{library.repo} ({library.subpackage}/)")
        for release in library.releases:
            marker = " (default)" if release.current else ""
            cached = click.style(" cached", fg="green") if is_cached(
                library, release.version, cache_dir
            ) else ""
            click.echo(f"  {release.version} [{release.tag}]{marker}{cached}")


@main.command()
@click.pass_context
def status(ctx):
    """Check cache, sources and generated catalog."""
    data_dir = ctx.obj["data_dir"]
    config = _load(ctx)
    library = resolve_library(config.target.library)
    version = config.target.resolved_version()
    workspace = Workspace(data_dir)

    click.echo("CRATE CATALOG STATUS")
    click.echo("=" * 40)
    click.echo(f"\nTarget: {library.name} {version}")

    try:
        resolve_release(library, version)
    except CatalogError as e:
        _fail(str(e))

    ok = click.style("✓", fg="green")
    missing = click.style("✗", fg="red")

    click.echo("\nArchive:")
    if is_cached(library, version, workspace.cache_dir):
        click.echo(f"  {ok} cached in {workspace.cache_dir}")
    else:
        click.echo(f"  {missing} not fetched")

    click.echo("\nSources:")
    try:
        snapshot = load_snapshot(workspace.snapshot_path(library, version))
    except SnapshotError as e:
        snapshot = None
        click.echo(f"  {missing} snapshot unusable: {e}")
    if snapshot:
        click.echo(f"  {ok} {len(snapshot.files)} files at {snapshot.root}")
        click.echo(f"  Archive SHA256: {snapshot.archive_sha256[:16]}...")
    else:
        click.echo(f"  {missing} not extracted")

    click.echo("\nCatalog:")
    package_dir = config.output.resolve(data_dir)
    if (package_dir / "__init__.py").is_file():
        try:
            registry = TypeRegistry.load(package_dir)
        except CatalogError as e:
            click.echo(f"  {missing} unreadable: {e}")
        else:
            click.echo(f"  {ok} {registry.library} {registry.version} at {package_dir}")
            click.echo(f"  Structs: {len(registry.structs)}")
            click.echo(f"  Enums: {len(registry.enums)}")
            if registry.shadowed:
                click.echo(f"  Shadowed names: {len(registry.shadowed)}")
    else:
        click.echo(f"  {missing} not generated")


if __name__ == "__main__":
    main()
