"""Parse Rust source files and extract type metadata.

Uses tree-sitter-rust to parse each file into a syntax tree, then reads:
- struct items: name, generics, shape, fields
- enum items: name, generics, variants with their shape
- outer attributes preceding an item (#[derive(..)], #[cfg(..)], ...)

Only the literal syntax is read. Items produced by macros are invisible,
and #[cfg]-gated items are captured like any other.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import tree_sitter_rust as ts_rust
from tree_sitter import Language, Node, Parser, Tree

from ..errors import SourceSyntaxError
from ..logging import get_logger
from ..meta import EnumMeta, FieldMeta, Shape, StructMeta, VariantMeta

logger = get_logger("parser")

RUST_LANGUAGE = Language(ts_rust.language())

# Nodes that may appear between items and carry no declaration
_TRIVIA = frozenset({"line_comment", "block_comment", "inner_attribute_item"})


@dataclass
class ParsedFile:
    """A parsed Rust source file."""

    path: Path
    source: bytes
    tree: Tree

    @property
    def root(self) -> Node:
        return self.tree.root_node


class RustParser:
    """Parse Rust source code with tree-sitter."""

    def __init__(self):
        self.parser = Parser(RUST_LANGUAGE)

    def parse_file(self, file_path: Path) -> ParsedFile:
        """Parse a Rust file, raising SourceSyntaxError if it is unreadable or invalid."""
        try:
            source = file_path.read_bytes()
        except OSError as e:
            raise SourceSyntaxError(file_path, reason=f"cannot read file: {e}") from e

        return self.parse_source(source, file_path)

    def parse_source(self, source: bytes, file_path: Path) -> ParsedFile:
        """Parse in-memory source attributed to file_path."""
        try:
            source.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SourceSyntaxError(file_path, reason=f"not valid UTF-8: {e}") from e

        tree = self.parser.parse(source)
        if tree.root_node.has_error:
            error = find_error_node(tree.root_node)
            if error is not None:
                line, column = error.start_point
                raise SourceSyntaxError(file_path, line + 1, column + 1)
            raise SourceSyntaxError(file_path)

        logger.debug("Parsed %s (%d bytes)", file_path, len(source))
        return ParsedFile(path=file_path, source=source, tree=tree)


def find_error_node(node: Node) -> Node | None:
    """Find the first ERROR or missing node in document order."""
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == "ERROR" or current.is_missing:
            return current
        if current.has_error:
            stack.extend(reversed(current.children))
    return None


def node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8")


def iter_items(container: Node, source: bytes) -> Iterator[tuple[Node, tuple[str, ...]]]:
    """
    Yield the items of a source file or module body.

    Each item comes with the outer attributes written directly above it.
    """
    attributes: list[str] = []
    for child in container.named_children:
        if child.type == "attribute_item":
            attributes.append(node_text(child, source))
        elif child.type in _TRIVIA:
            continue
        else:
            yield child, tuple(attributes)
            attributes = []


def get_visibility(node: Node, source: bytes) -> str:
    """Get the verbatim visibility token of an item or field ("" if absent)."""
    for child in node.children:
        if child.type == "visibility_modifier":
            return node_text(child, source)
    return ""


def get_name(node: Node, source: bytes) -> str:
    name = node.child_by_field_name("name")
    if name is None:
        raise ValueError(f"{node.type} without a name")
    return strip_raw(node_text(name, source))


def strip_raw(identifier: str) -> str:
    """Drop the r# prefix of a raw identifier (r#type -> type)."""
    return identifier[2:] if identifier.startswith("r#") else identifier


def get_generics(node: Node, source: bytes) -> tuple[str, ...]:
    """
    Get generic parameter names in declaration order.

    Lifetimes keep their tick ('a). Bounds, defaults and const types are
    discarded.
    """
    params = node.child_by_field_name("type_parameters")
    if params is None:
        return ()

    names = []
    for param in params.named_children:
        if param.type in ("attribute_item", "metavariable") or param.type in _TRIVIA:
            continue
        if param.type in ("type_identifier", "lifetime", "identifier"):
            names.append(node_text(param, source))
            continue
        name = param.child_by_field_name("name") or param.child_by_field_name("left")
        if name is None:
            # Older grammars put the name as the first named child
            name = param.named_children[0] if param.named_children else None
        if name is not None:
            names.append(node_text(name, source))
    return tuple(names)


def extract_fields(body: Node | None, source: bytes) -> tuple[Shape, tuple[FieldMeta, ...]]:
    """Read the fields of a struct or variant body."""
    if body is None:
        return Shape.UNIT, ()

    if body.type == "field_declaration_list":
        fields = []
        for decl in body.named_children:
            if decl.type != "field_declaration":
                continue
            fields.append(
                FieldMeta(
                    name=get_name(decl, source),
                    visibility=get_visibility(decl, source),
                    ty=node_text(decl.child_by_field_name("type"), source),
                )
            )
        return Shape.NAMED, tuple(fields)

    if body.type == "ordered_field_declaration_list":
        # Children are flat: [attribute_item*] [visibility_modifier] type, ...
        fields = []
        visibility = ""
        for child in body.named_children:
            if child.type == "attribute_item" or child.type in _TRIVIA:
                continue
            if child.type == "visibility_modifier":
                visibility = node_text(child, source)
                continue
            fields.append(
                FieldMeta(
                    name=str(len(fields)),
                    visibility=visibility,
                    ty=node_text(child, source),
                )
            )
            visibility = ""
        return Shape.TUPLE, tuple(fields)

    raise ValueError(f"unexpected {body.type} body")


def extract_struct(
    node: Node,
    source: bytes,
    path: tuple[str, ...],
    attributes: tuple[str, ...] = (),
) -> StructMeta:
    """Build struct metadata from a struct_item node."""
    shape, fields = extract_fields(node.child_by_field_name("body"), source)
    return StructMeta(
        name=get_name(node, source),
        path=path,
        visibility=get_visibility(node, source),
        generics=get_generics(node, source),
        shape=shape,
        fields=fields,
        attributes=attributes,
    )


def extract_enum(
    node: Node,
    source: bytes,
    path: tuple[str, ...],
    attributes: tuple[str, ...] = (),
) -> EnumMeta:
    """Build enum metadata from an enum_item node."""
    variants = []
    body = node.child_by_field_name("body")
    if body is not None:
        for variant in body.named_children:
            if variant.type != "enum_variant":
                continue
            shape, fields = extract_fields(variant.child_by_field_name("body"), source)
            variants.append(
                VariantMeta(name=get_name(variant, source), shape=shape, fields=fields)
            )

    return EnumMeta(
        name=get_name(node, source),
        path=path,
        visibility=get_visibility(node, source),
        generics=get_generics(node, source),
        variants=tuple(variants),
        attributes=attributes,
    )
