"""Build and generate the name-keyed lookup tables.

Two flat tables map an unqualified type name to its metadata record, one for
structs and one for enums. The tree is walked depth-first, a module's own
items before its children, children in declaration order.

Rust allows the same type name in different modules. The tables keep the
last one seen and record every name that was overwritten, so consumers can
detect the ambiguity instead of silently getting one of the candidates.
"""

from dataclasses import dataclass, field

from ..indexer.tree import ModuleNode
from ..logging import get_logger
from ..meta import EnumMeta, StructMeta, TypeMeta
from .catalog import CatalogLayout
from .render import CatalogHeader, py_str, py_str_tuple

logger = get_logger("lookup")

KINDS: dict[str, type] = {"struct": StructMeta, "enum": EnumMeta}

CATALOG_ALIAS = "_catalog"


@dataclass
class LookupTable:
    """Name-to-record index for one kind of type."""

    kind: str
    entries: dict[str, TypeMeta] = field(default_factory=dict)
    # Name -> qualified names of the records it replaced, in replacement order
    shadowed: dict[str, list[str]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, name: str) -> bool:
        return name in self.entries

    def get(self, name: str) -> TypeMeta | None:
        return self.entries.get(name)


def build_lookup_table(root: ModuleNode, kind: str) -> LookupTable:
    """
    Index every type of one kind by unqualified name.

    Args:
        root: Root of the module tree
        kind: "struct" or "enum"

    Returns:
        LookupTable; later definitions win on name collisions
    """
    if kind not in KINDS:
        raise ValueError(f"Invalid kind '{kind}'. Must be one of: {list(KINDS)}")
    record_type = KINDS[kind]

    table = LookupTable(kind=kind)
    for node in root.walk():
        for item in node.items:
            if not isinstance(item, record_type):
                continue
            previous = table.entries.get(item.name)
            if previous is not None:
                table.shadowed.setdefault(item.name, []).append(previous.qualified_name)
                logger.debug(
                    "%s %s shadows %s", kind, item.qualified_name, previous.qualified_name
                )
            table.entries[item.name] = item

    if table.shadowed:
        logger.warning(
            "%d %s name(s) defined in more than one module; last definition wins: %s",
            len(table.shadowed),
            kind,
            ", ".join(sorted(table.shadowed)),
        )
    return table


def generate_lookup(
    root: ModuleNode,
    header: CatalogHeader,
    tables: dict[str, LookupTable] | None = None,
    layout: CatalogLayout | None = None,
) -> str:
    """
    Render the lookup module for a module tree.

    The tables are read-only mappings built when the module is first
    imported, with values referencing the records in the catalog module
    through each module's unique namespace class. Pass already-built tables
    to avoid walking the tree again; they must come from the same tree.
    """
    tables = tables or {}
    layout = layout or CatalogLayout.of(root)
    lines = header.banner()
    lines.append(f'"""Name-keyed lookup tables for {header.library} {header.version}."""')
    lines.append("")
    lines.append("from types import MappingProxyType")
    lines.append("")
    lines.append(f"from . import catalog as {CATALOG_ALIAS}")

    for kind, name in (("struct", "STRUCTS"), ("enum", "ENUMS")):
        table = tables.get(kind)
        if table is None:
            table = build_lookup_table(root, kind)

        lines.append("")
        lines.append(f"{name} = MappingProxyType({{")
        for type_name, item in table.entries.items():
            lines.append(f"    {py_str(type_name)}: {layout.reference(item, CATALOG_ALIAS)},")
        lines.append("})")

        lines.append("")
        lines.append(f"SHADOWED_{name} = MappingProxyType({{")
        for type_name, paths in table.shadowed.items():
            lines.append(f"    {py_str(type_name)}: {py_str_tuple(tuple(paths))},")
        lines.append("})")

    return "\n".join(lines) + "\n"
