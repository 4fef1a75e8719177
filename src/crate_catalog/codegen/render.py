"""Helpers for rendering metadata records as Python source."""

import json
import keyword
from dataclasses import dataclass

from ..meta import EnumMeta, FieldMeta, StructMeta, TypeMeta, VariantMeta

INDENT = "    "

# Generated modules reach the record types through this alias, so a Rust type
# named e.g. `StructMeta` cannot shadow them
META_ALIAS = "_meta"

# Prefix of the flat namespace class names in the catalog module
NAMESPACE_PREFIX = "_mod_"


@dataclass(frozen=True)
class CatalogHeader:
    """Identifies the release a generated module was built from."""

    library: str
    version: str

    def banner(self) -> list[str]:
        return [
            "# This file is generated by crate-catalog. Do not edit.",
            f"# Source: {self.library} {self.version}",
        ]


def py_identifier(name: str) -> str:
    """
    Turn a Rust identifier into a usable Python attribute name.

    Python keywords get a trailing underscore. Names that could clash with
    the generated module's own names (`_meta`, `_mod_*`, anything starting
    with `__`, which class bodies would also mangle) get an `r` prefix.
    """
    if name.startswith("r#"):
        name = name[2:]
    if keyword.iskeyword(name):
        return f"{name}_"
    if name == META_ALIAS or name.startswith(NAMESPACE_PREFIX) or name.startswith("__"):
        return f"r{name}"
    return name


def py_str(value: str) -> str:
    """Render a double-quoted Python string literal."""
    return json.dumps(value, ensure_ascii=False)


def py_str_tuple(values: tuple[str, ...]) -> str:
    if not values:
        return "()"
    if len(values) == 1:
        return f"({py_str(values[0])},)"
    return "(" + ", ".join(py_str(v) for v in values) + ")"


def render_field(field: FieldMeta) -> str:
    return (
        f"{META_ALIAS}.FieldMeta(name={py_str(field.name)}, "
        f"visibility={py_str(field.visibility)}, ty={py_str(field.ty)})"
    )


def _render_fields(fields: tuple[FieldMeta, ...], indent: str) -> list[str]:
    if not fields:
        return [f"{indent}fields=(),"]
    lines = [f"{indent}fields=("]
    lines.extend(f"{indent}{INDENT}{render_field(f)}," for f in fields)
    lines.append(f"{indent}),")
    return lines


def _render_variant(variant: VariantMeta, indent: str) -> list[str]:
    inner = indent + INDENT
    lines = [
        f"{indent}{META_ALIAS}.VariantMeta(",
        f"{inner}name={py_str(variant.name)},",
        f"{inner}shape={META_ALIAS}.Shape.{variant.shape.name},",
    ]
    lines.extend(_render_fields(variant.fields, inner))
    lines.append(f"{indent}),")
    return lines


def render_record(item: TypeMeta, indent: str = "", attribute: str | None = None) -> list[str]:
    """Render `Name = _meta.StructMeta(...)` / `EnumMeta(...)` lines."""
    inner = indent + INDENT
    cls = "StructMeta" if isinstance(item, StructMeta) else "EnumMeta"
    lines = [
        f"{indent}{attribute or py_identifier(item.name)} = {META_ALIAS}.{cls}(",
        f"{inner}name={py_str(item.name)},",
        f"{inner}path={py_str_tuple(item.path)},",
        f"{inner}visibility={py_str(item.visibility)},",
        f"{inner}generics={py_str_tuple(item.generics)},",
    ]

    if isinstance(item, StructMeta):
        lines.append(f"{inner}shape={META_ALIAS}.Shape.{item.shape.name},")
        lines.extend(_render_fields(item.fields, inner))
    elif isinstance(item, EnumMeta):
        if item.variants:
            lines.append(f"{inner}variants=(")
            for variant in item.variants:
                lines.extend(_render_variant(variant, inner + INDENT))
            lines.append(f"{inner}),")
        else:
            lines.append(f"{inner}variants=(),")

    lines.append(f"{inner}attributes={py_str_tuple(item.attributes)},")
    lines.append(f"{indent})")
    return lines

