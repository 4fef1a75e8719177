"""Pytest configuration and fixtures for crate-catalog tests."""

import io
import logging
import zipfile
from pathlib import Path

import pytest

from crate_catalog import versions
from crate_catalog.versions import Release, TargetLibrary

# The crate from the end-to-end scenario: one struct at the root and an
# enum inside an inline module
SCENARIO_LIB_RS = """\
struct Foo { pub bar: i32 }

mod inner { enum Baz { One, Two(i32) } }
"""


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers installed by CLI runs so they don't outlive their streams."""
    yield
    logging.getLogger("crate_catalog").handlers.clear()


@pytest.fixture
def temp_data_dir(tmp_path: Path) -> Path:
    """Create an isolated data directory for testing."""
    data_dir = tmp_path / ".crate-catalog"
    data_dir.mkdir(parents=True)
    return data_dir


@pytest.fixture
def write_crate(tmp_path: Path):
    """Write a crate from a {relative path: source} mapping, returning its root."""

    def write(files: dict[str, str], name: str = "crate") -> Path:
        root = tmp_path / name
        for rel_path, content in files.items():
            path = root / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root

    return write


@pytest.fixture
def sample_crate(write_crate) -> Path:
    """Create a crate mixing inline and file-based modules."""
    return write_crate(
        {
            "lib.rs": '''//! Sample crate for testing.

pub use crate::a::InA as Reexported;

/// A root level struct.
#[derive(Debug, Clone)]
pub struct Root<'a, T: Clone> {
    pub name: &'a str,
    pub(crate) value: Option<T>,
    hidden: u64,
}

pub mod a;
''',
            "a.rs": '''pub mod b {
    pub struct InB(pub String, u32);
}

mod c;

pub struct InA {}
''',
            "a/c.rs": '''#[cfg(feature = "extra")]
pub(crate) enum InC {
    Unit,
    Tuple(i32, Vec<u8>),
    Named { x: f64, y: f64 },
}
''',
        }
    )


@pytest.fixture
def make_archive():
    """Build ZIP archive bytes from {entry name: content}; None marks a directory."""

    def make(entries: dict[str, str | bytes | None]) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            for name, content in entries.items():
                if content is None:
                    zf.writestr(zipfile.ZipInfo(name.rstrip("/") + "/"), b"")
                else:
                    zf.writestr(name, content)
        return buffer.getvalue()

    return make


@pytest.fixture
def demo_library(monkeypatch) -> TargetLibrary:
    """Register a small target library with a single 0.1.0 release."""
    library = TargetLibrary(
        name="demo",
        owner="example",
        repo="demo",
        subpackage="crate",
        entry_file="lib.rs",
        description="Demo crate for tests",
        releases=[Release(version="0.1.0", tag="v0.1.0", current=True)],
    )
    monkeypatch.setitem(versions.LIBRARIES, "demo", library)
    return library


@pytest.fixture
def scenario_archive(make_archive) -> bytes:
    """Archive of the demo repository at v0.1.0, with unrelated entries."""
    return make_archive(
        {
            "demo-0.1.0/": None,
            "demo-0.1.0/README.md": "# demo\n",
            "demo-0.1.0/.github/workflows/ci.yml": "on: push\n",
            "demo-0.1.0/crate/": None,
            "demo-0.1.0/crate/lib.rs": SCENARIO_LIB_RS,
            "demo-0.1.0/crate-macros/lib.rs": "pub struct NotOurs;\n",
        }
    )


@pytest.fixture
def cached_scenario(temp_data_dir: Path, scenario_archive: bytes, demo_library) -> Path:
    """Place the scenario archive in the cache so no download happens."""
    cache_dir = temp_data_dir / "cache"
    cache_dir.mkdir()
    path = cache_dir / "demo-0.1.0.zip"
    path.write_bytes(scenario_archive)
    return path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep config overrides from the outer environment out of tests."""
    for name in ("CRATE_CATALOG_LIBRARY", "CRATE_CATALOG_VERSION", "CRATE_CATALOG_FETCH_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
