"""crate-catalog: compile-time type catalogs of pinned Rust library releases."""

from .meta import EnumMeta, FieldMeta, Shape, StructMeta, VariantMeta
from .registry import TypeRegistry

__version__ = "0.1.0"

__all__ = [
    "EnumMeta",
    "FieldMeta",
    "Shape",
    "StructMeta",
    "TypeRegistry",
    "VariantMeta",
]
