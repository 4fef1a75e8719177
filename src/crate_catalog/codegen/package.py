"""Write the generated catalog package to disk.

Layout of the output directory:
    __init__.py   re-exports the lookup tables and release identity
    catalog.py    namespace-mirroring records
    lookup.py     STRUCTS / ENUMS tables
"""

import os
from pathlib import Path

from ..indexer.tree import ModuleNode
from ..logging import get_logger
from .catalog import CatalogLayout, generate_catalog
from .lookup import LookupTable, generate_lookup
from .render import CatalogHeader, py_str

logger = get_logger("package")

PACKAGE_FILES = ("__init__.py", "catalog.py", "lookup.py")


def generate_init(header: CatalogHeader) -> str:
    lines = header.banner()
    lines.append(f'"""Generated type catalog for {header.library} {header.version}."""')
    lines.append("")
    lines.append("from .lookup import ENUMS, SHADOWED_ENUMS, SHADOWED_STRUCTS, STRUCTS")
    lines.append("")
    lines.append(f"LIBRARY = {py_str(header.library)}")
    lines.append(f"VERSION = {py_str(header.version)}")
    lines.append("")
    lines.append(
        '__all__ = ["ENUMS", "LIBRARY", "SHADOWED_ENUMS", "SHADOWED_STRUCTS", '
        '"STRUCTS", "VERSION"]'
    )
    return "\n".join(lines) + "\n"


def render_package(
    root: ModuleNode,
    header: CatalogHeader,
    tables: dict[str, LookupTable] | None = None,
) -> dict[str, str]:
    """Render every file of the generated package, keyed by file name."""
    layout = CatalogLayout.of(root)
    return {
        "__init__.py": generate_init(header),
        "catalog.py": generate_catalog(root, header, layout),
        "lookup.py": generate_lookup(root, header, tables, layout),
    }


def write_package(
    root: ModuleNode,
    header: CatalogHeader,
    output_dir: Path,
    tables: dict[str, LookupTable] | None = None,
) -> list[Path]:
    """
    Generate and write the catalog package.

    Each file is replaced atomically; the previous contents are overwritten
    wholesale.

    Returns:
        Paths of the written files
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for name, text in render_package(root, header, tables).items():
        path = output_dir / name
        temp_path = path.with_suffix(".py.tmp")
        try:
            with open(temp_path, "w", encoding="utf-8", newline="\n") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            temp_path.replace(path)
        except Exception:
            if temp_path.exists():
                temp_path.unlink()
            raise
        written.append(path)
        logger.debug("Wrote %s (%d bytes)", path, len(text))

    return written
