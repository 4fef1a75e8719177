"""Supported target libraries and their pinned releases.

A catalog is always generated from exactly one pinned release of one target
library. Releases are identified by their version string ("0.94.1") and map
to a git tag ("v0.94.1") that GitHub serves as a ZIP snapshot.

GitHub names the top-level directory of a tag archive after the repository
and the tag, dropping a leading "v" from tags like "v1.2.3". The archive
root for lsp-types v0.94.1 is therefore "lsp-types-0.94.1".
"""

import re
from dataclasses import dataclass, field

from .errors import FetchError

ARCHIVE_URL = "https://github.com/{owner}/{repo}/archive/refs/tags/{tag}.zip"

_VERSIONED_TAG = re.compile(r"^v\d")


@dataclass(frozen=True)
class Release:
    """A pinned release of a target library."""

    version: str
    tag: str
    sha256: str | None = None  # Expected archive checksum, when pinned
    current: bool = False

    @property
    def archive_name(self) -> str:
        """Tag as it appears in the archive's top-level directory name."""
        if _VERSIONED_TAG.match(self.tag):
            return self.tag[1:]
        return self.tag


@dataclass(frozen=True)
class TargetLibrary:
    """A Rust library whose type definitions are cataloged."""

    name: str
    owner: str
    repo: str
    subpackage: str  # Directory inside the repository holding the crate sources
    entry_file: str  # Crate root, relative to the subpackage
    description: str
    releases: list[Release] = field(default_factory=list)

    def get_release(self, version: str) -> Release | None:
        """Get a release by exact version string."""
        for release in self.releases:
            if release.version == version:
                return release
        return None

    def current_release(self) -> Release:
        """Get the release used when no version is configured."""
        for release in self.releases:
            if release.current:
                return release
        return self.releases[-1]

    def archive_url(self, release: Release) -> str:
        return ARCHIVE_URL.format(owner=self.owner, repo=self.repo, tag=release.tag)

    def archive_root(self, release: Release) -> str:
        return f"{self.repo}-{release.archive_name}"

    def subtree_prefix(self, release: Release) -> str:
        """Archive path prefix of the entries that belong to the crate."""
        root = self.archive_root(release)
        subpackage = self.subpackage.strip("/")
        return f"{root}/{subpackage}" if subpackage else root

    def cache_name(self, release: Release) -> str:
        return f"{self.repo}-{release.version}"


LIBRARIES: dict[str, TargetLibrary] = {
    "lsp-types": TargetLibrary(
        name="lsp-types",
        owner="gluon-lang",
        repo="lsp-types",
        subpackage="src",
        entry_file="lib.rs",
        description="Types of the Language Server Protocol",
        releases=[
            Release(version="0.93.2", tag="v0.93.2"),
            Release(version="0.94.1", tag="v0.94.1", current=True),
            Release(version="0.95.1", tag="v0.95.1"),
        ],
    ),
}

DEFAULT_LIBRARY = "lsp-types"


def list_libraries() -> list[TargetLibrary]:
    """List all supported target libraries."""
    return list(LIBRARIES.values())


def get_library(name: str) -> TargetLibrary | None:
    """Get a target library by name."""
    return LIBRARIES.get(name)


def resolve_release(library: TargetLibrary, version: str) -> Release:
    """
    Resolve a configured version to a pinned release.

    Raises FetchError for versions that are not pinned, before any network
    activity happens.
    """
    release = library.get_release(version)
    if release is None:
        known = ", ".join(r.version for r in library.releases)
        raise FetchError(
            version,
            f"not a supported {library.name} release (known: {known})",
        )
    return release
