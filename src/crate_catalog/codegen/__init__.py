"""Code generators for the type catalog."""

from .catalog import CatalogLayout, generate_catalog
from .lookup import LookupTable, build_lookup_table, generate_lookup
from .package import render_package, write_package
from .render import CatalogHeader

__all__ = [
    "CatalogHeader",
    "CatalogLayout",
    "LookupTable",
    "build_lookup_table",
    "generate_catalog",
    "generate_lookup",
    "render_package",
    "write_package",
]
