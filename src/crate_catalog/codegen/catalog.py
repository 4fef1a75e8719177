"""Generate the metadata catalog module.

The catalog mirrors the crate's module tree: every Rust module becomes a
namespace class reachable through its parent under the module's name, and
every struct or enum becomes a record constant named after the type. Records
are built once, when the generated module is imported.

Namespace classes are emitted flat (children before parents) and attached to
their parent by assignment, so a deep module tree never turns into deeply
indented source:

    class _mod_1_inner:
        \"\"\"mod inner\"\"\"

        __visibility__ = ""

        Baz = _meta.EnumMeta(name="Baz", ...)


    Foo = _meta.StructMeta(name="Foo", ...)

    inner = _mod_1_inner

so `catalog.inner.Baz` resolves the way `crate::inner::Baz` does. When sibling
modules share a name, the name links the last of them; every module stays
reachable through its own class.
"""

from dataclasses import dataclass, field

from ..indexer.tree import ModuleNode
from ..meta import TypeMeta
from .render import (
    INDENT,
    META_ALIAS,
    NAMESPACE_PREFIX,
    CatalogHeader,
    py_identifier,
    py_str,
    render_record,
)


@dataclass
class CatalogLayout:
    """
    Python names assigned to the modules and records of a tree.

    Every module gets a unique flat class name. Within a module, records and
    child links get attribute names that are unique per Rust item: two
    definitions of the same kind and name (cfg-gated alternatives) share an
    attribute and the later one wins, while anything else that maps to the
    same Python identifier is told apart with trailing underscores.
    """

    class_names: dict[int, str] = field(default_factory=dict)
    # id(record) -> (class name of its module or None at top level, attribute)
    records: dict[int, tuple[str | None, str]] = field(default_factory=dict)
    # id(child module) -> attribute linking it from its parent
    links: dict[int, str] = field(default_factory=dict)

    @classmethod
    def of(cls, root: ModuleNode) -> "CatalogLayout":
        layout = cls()
        for index, node in enumerate(root.walk()):
            layout.class_names[id(node)] = (
                f"{NAMESPACE_PREFIX}{index}_{py_identifier(node.name)}"
            )

        for node in root.walk():
            owner = None if node is root else layout.class_names[id(node)]
            taken: dict[str, tuple[str, str]] = {}
            for item in node.items:
                attribute = _claim(
                    taken, py_identifier(item.name), (type(item).__name__, item.name)
                )
                layout.records[id(item)] = (owner, attribute)
            for child in node.children:
                layout.links[id(child)] = _claim(
                    taken, py_identifier(child.name), ("mod", child.name)
                )
        return layout

    def reference(self, item: TypeMeta, module: str) -> str:
        """Attribute path of a record, through its module's unique class."""
        owner, attribute = self.records[id(item)]
        if owner is None:
            return f"{module}.{attribute}"
        return f"{module}.{owner}.{attribute}"


def _claim(taken: dict[str, tuple[str, str]], name: str, label: tuple[str, str]) -> str:
    while taken.setdefault(name, label) != label:
        name += "_"
    return name


def generate_catalog(
    root: ModuleNode, header: CatalogHeader, layout: CatalogLayout | None = None
) -> str:
    """
    Render the catalog module for a module tree.

    Output depends only on the tree and header, so regenerating from an
    unchanged snapshot is byte-identical.
    """
    layout = layout or CatalogLayout.of(root)
    lines = header.banner()
    lines.append(f'"""Type catalog for {header.library} {header.version}."""')
    lines.append("")
    lines.append(f"from crate_catalog import meta as {META_ALIAS}")

    # Post-order: a namespace class can only link children that already exist
    for node in _post_order(root):
        if node is root:
            continue
        lines.append("")
        lines.append("")
        lines.append(f"class {layout.class_names[id(node)]}:")
        lines.append(f'{INDENT}"""{_describe(node)}"""')
        lines.append("")
        lines.append(f"{INDENT}__visibility__ = {py_str(node.visibility)}")
        _render_members(node, layout, INDENT, lines)

    lines.append("")
    lines.append("")
    lines.append(f"__visibility__ = {py_str(root.visibility)}")
    _render_members(root, layout, "", lines)

    return "\n".join(lines) + "\n"


def _render_members(
    node: ModuleNode, layout: CatalogLayout, indent: str, lines: list[str]
) -> None:
    for item in node.items:
        lines.append("")
        lines.extend(render_record(item, indent, layout.records[id(item)][1]))

    if node.children:
        lines.append("")
        for child in node.children:
            lines.append(f"{indent}{layout.links[id(child)]} = {layout.class_names[id(child)]}")


def _post_order(root: ModuleNode) -> list[ModuleNode]:
    # Reverse of a (node, children right-to-left) pre-order is a post-order
    # with children left-to-right
    order = []
    stack = [root]
    while stack:
        node = stack.pop()
        order.append(node)
        stack.extend(node.children)
    order.reverse()
    return order


def _describe(node: ModuleNode) -> str:
    declaration = f"{node.visibility} mod {node.name}".strip()
    return declaration.replace("\\", "\\\\").replace('"', '\\"')
