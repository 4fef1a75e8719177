"""Fetch pinned release archives of a target library.

Archives are GitHub tag snapshots:
    https://github.com/<owner>/<repo>/archive/refs/tags/<tag>.zip

A downloaded archive is cached under the data directory as
<repo>-<version>.zip and served from there on every later build, so a
warm cache never touches the network.
"""

from pathlib import Path

import requests

from ..errors import FetchError
from ..logging import get_logger
from ..versions import Release, TargetLibrary, resolve_release
from .snapshot import compute_bytes_hash

logger = get_logger("fetcher")


def cache_path(library: TargetLibrary, release: Release, cache_dir: Path) -> Path:
    """Get the cache location of a release archive."""
    return cache_dir / f"{library.cache_name(release)}.zip"


def is_cached(library: TargetLibrary, version: str, cache_dir: Path) -> bool:
    release = library.get_release(version)
    if release is None:
        return False
    return cache_path(library, release, cache_dir).is_file()


def download_archive(url: str, version: str, timeout: float | None = None) -> bytes:
    """
    Download an archive in one blocking request.

    No retry happens; any transport or HTTP error is reported as FetchError.
    """
    logger.info("Downloading %s", url)
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise FetchError(version, f"download of {url} failed: {e}") from e

    return response.content


def fetch_archive(
    library: TargetLibrary,
    version: str,
    cache_dir: Path,
    timeout: float | None = None,
) -> bytes:
    """
    Get the archive bytes of a pinned release.

    Args:
        library: Target library
        version: Pinned version string (e.g. "0.94.1")
        cache_dir: Directory holding cached archives
        timeout: Optional request timeout in seconds

    Returns:
        Raw ZIP archive bytes
    """
    # Unknown versions fail here, before any network activity
    release = resolve_release(library, version)
    path = cache_path(library, release, cache_dir)

    if path.is_file():
        logger.info("Using cached archive %s", path)
        try:
            return path.read_bytes()
        except OSError as e:
            raise FetchError(version, f"cannot read cached archive {path}: {e}") from e

    data = download_archive(library.archive_url(release), version, timeout=timeout)

    if release.sha256 is not None:
        actual = compute_bytes_hash(data)
        if actual != release.sha256:
            raise FetchError(
                version,
                f"checksum mismatch: expected {release.sha256}, got {actual}",
            )

    _write_cache(path, data, version)
    logger.info("Cached %d bytes at %s", len(data), path)
    return data


def _write_cache(path: Path, data: bytes, version: str) -> None:
    """Write the archive atomically so a crash never leaves a truncated cache."""
    temp_path = path.with_suffix(".zip.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path.write_bytes(data)
        temp_path.replace(path)
    except OSError as e:
        if temp_path.exists():
            temp_path.unlink()
        raise FetchError(version, f"cannot write cache {path}: {e}") from e
