"""Metadata records describing cataloged Rust types.

The same frozen record types are produced by the module tree builder and
re-created by the generated catalog module, so a record loaded from a
generated catalog compares equal to the one the builder captured.

Type expressions and visibility tokens are kept as the literal source text.
No alias expansion, generic substitution or path resolution happens; the text
is meant to be pasted into generated code, not reasoned about.

Names are identifiers, not source text: a raw identifier is stored without
its `r#` prefix (`r#type` is recorded as `type`), the way Rust treats both
spellings as the same name. This holds for type, module, field and variant
names alike, so lookups by name never depend on how the source spelled it.
"""

from dataclasses import dataclass
from enum import Enum


class Shape(str, Enum):
    """Body shape of a struct or enum variant."""

    UNIT = "unit"  # struct Foo; / Variant
    TUPLE = "tuple"  # struct Foo(i32); / Variant(i32)
    NAMED = "named"  # struct Foo { a: i32 } / Variant { a: i32 }


@dataclass(frozen=True)
class FieldMeta:
    """A single struct or variant field.

    Tuple fields are named by position ("0", "1", ...), the way Rust itself
    addresses them.
    """

    name: str
    visibility: str  # Verbatim token, "" when absent
    ty: str


@dataclass(frozen=True)
class VariantMeta:
    """An enum variant."""

    name: str
    shape: Shape
    fields: tuple[FieldMeta, ...] = ()

    @property
    def types(self) -> tuple[str, ...]:
        """Ordered type expressions of the variant's fields."""
        return tuple(f.ty for f in self.fields)


@dataclass(frozen=True)
class StructMeta:
    """A struct definition."""

    name: str
    path: tuple[str, ...]  # Enclosing module path, () for the crate root
    visibility: str
    generics: tuple[str, ...]
    shape: Shape
    fields: tuple[FieldMeta, ...] = ()
    attributes: tuple[str, ...] = ()

    kind = "struct"

    @property
    def qualified_name(self) -> str:
        return "::".join((*self.path, self.name))

    def field(self, name: str) -> FieldMeta | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None


@dataclass(frozen=True)
class EnumMeta:
    """An enum definition."""

    name: str
    path: tuple[str, ...]
    visibility: str
    generics: tuple[str, ...]
    variants: tuple[VariantMeta, ...] = ()
    attributes: tuple[str, ...] = ()

    kind = "enum"

    @property
    def qualified_name(self) -> str:
        return "::".join((*self.path, self.name))

    def variant(self, name: str) -> VariantMeta | None:
        for v in self.variants:
            if v.name == name:
                return v
        return None


TypeMeta = StructMeta | EnumMeta
