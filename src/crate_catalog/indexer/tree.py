"""Build the module tree of a crate.

Starting from the crate root file, every `mod` declaration becomes a child
module:
- `mod name { ... }` is read from the inline body
- `mod name;` is read from `name.rs` or `name/mod.rs`

Struct and enum items attach to the module that lexically declares them.
`use` declarations are ignored, so re-exported types are only cataloged
under the module that defines them.

The tree is built with an explicit work stack rather than recursion, so the
depth of the module hierarchy is only bounded by memory.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import ResolutionError, SourceSyntaxError
from ..logging import get_logger
from ..meta import EnumMeta, StructMeta, TypeMeta
from .parser import (
    RustParser,
    extract_enum,
    extract_struct,
    get_name,
    get_visibility,
    iter_items,
)

logger = get_logger("tree")

ROOT_MODULE = "crate"

# Files whose submodules live next to them rather than in a directory named
# after the file
MOD_RS_FILES = frozenset({"lib.rs", "main.rs", "mod.rs"})


@dataclass
class ModuleNode:
    """A module and the types it declares."""

    name: str
    visibility: str
    path: tuple[str, ...] = ()
    source_file: str = ""  # Declaring file, relative to the crate root
    items: list[TypeMeta] = field(default_factory=list)
    children: list["ModuleNode"] = field(default_factory=list)

    @property
    def structs(self) -> list[StructMeta]:
        return [item for item in self.items if isinstance(item, StructMeta)]

    @property
    def enums(self) -> list[EnumMeta]:
        return [item for item in self.items if isinstance(item, EnumMeta)]

    def child(self, name: str) -> "ModuleNode | None":
        for child in self.children:
            if child.name == name:
                return child
        return None

    def walk(self) -> Iterator["ModuleNode"]:
        """Yield this module and its descendants depth-first, in declaration order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def count(self) -> dict[str, int]:
        counts = {"modules": 0, "structs": 0, "enums": 0}
        for node in self.walk():
            counts["modules"] += 1
            counts["structs"] += len(node.structs)
            counts["enums"] += len(node.enums)
        return counts


@dataclass
class _Frame:
    """Pending work: a module whose items have not been read yet."""

    module: ModuleNode
    file: Path
    module_dir: Path  # Where `mod name;` declarations are resolved
    container: object | None = None  # Inline body node; None means the whole file
    source: bytes | None = None
    # Resolved module files from the crate root down to this frame's file
    ancestors: frozenset[Path] = frozenset()


class ModuleTreeBuilder:
    """Build a ModuleNode tree from a crate root file."""

    def __init__(self, parser: RustParser | None = None, crate_root: Path | None = None):
        self.parser = parser or RustParser()
        self.crate_root = crate_root

    def build(self, entry_file: Path, entry_visibility: str = "pub") -> ModuleNode:
        """
        Build the module tree rooted at entry_file.

        Args:
            entry_file: Crate root source file (usually lib.rs)
            entry_visibility: Visibility recorded for the root module

        Returns:
            Root ModuleNode named "crate"

        Raises:
            SourceSyntaxError: A module file does not parse
            ResolutionError: A `mod name;` has no file under either layout, or
                its file is one of its own ancestors
        """
        entry_file = Path(entry_file)
        crate_root = self.crate_root or entry_file.parent

        root = ModuleNode(
            name=ROOT_MODULE,
            visibility=entry_visibility,
            source_file=_relative(entry_file, crate_root),
        )
        stack = [
            _Frame(
                module=root,
                file=entry_file,
                module_dir=entry_file.parent,
                ancestors=frozenset({entry_file.resolve()}),
            )
        ]
        files_parsed = 0

        while stack:
            frame = stack.pop()

            if frame.container is None:
                parsed = self.parser.parse_file(frame.file)
                frame.container = parsed.root
                frame.source = parsed.source
                files_parsed += 1

            pending = self._read_items(frame, crate_root)
            # Reversed so siblings are processed in declaration order
            stack.extend(reversed(pending))

        logger.debug("Built module tree from %d files", files_parsed)
        return root

    def _read_items(self, frame: _Frame, crate_root: Path) -> list[_Frame]:
        module = frame.module
        source = frame.source
        pending = []

        for item, attributes in iter_items(frame.container, source):
            try:
                if item.type == "struct_item":
                    module.items.append(extract_struct(item, source, module.path, attributes))
                elif item.type == "enum_item":
                    module.items.append(extract_enum(item, source, module.path, attributes))
                elif item.type == "mod_item":
                    pending.append(self._declare_module(frame, item, crate_root))
            except ValueError as e:
                raise SourceSyntaxError(
                    frame.file, item.start_point[0] + 1, reason=str(e)
                ) from e

        return pending

    def _declare_module(self, frame: _Frame, item, crate_root: Path) -> _Frame:
        source = frame.source
        name = get_name(item, source)
        child = ModuleNode(
            name=name,
            visibility=get_visibility(item, source),
            path=(*frame.module.path, name),
        )
        frame.module.children.append(child)

        body = item.child_by_field_name("body")
        if body is not None:
            child.source_file = frame.module.source_file
            return _Frame(
                module=child,
                file=frame.file,
                module_dir=frame.module_dir / name,
                container=body,
                source=source,
                ancestors=frame.ancestors,
            )

        file = resolve_module_file(name, frame.module_dir)
        resolved = file.resolve()
        # Siblings may share a file (cfg-gated alternatives); only a file that
        # is already one of this module's ancestors forms a cycle
        if resolved in frame.ancestors:
            raise ResolutionError(
                name, [file], reason=f"module file {file} declares itself (cycle)"
            )

        child.source_file = _relative(file, crate_root)
        return _Frame(
            module=child,
            file=file,
            module_dir=module_dir_for(file),
            ancestors=frame.ancestors | {resolved},
        )


def module_dir_for(file: Path) -> Path:
    """Directory holding the submodule files of a module file."""
    if file.name in MOD_RS_FILES:
        return file.parent
    return file.parent / file.stem


def resolve_module_file(name: str, module_dir: Path) -> Path:
    """
    Find the file backing `mod name;`.

    Raises ResolutionError when neither `<dir>/name.rs` nor
    `<dir>/name/mod.rs` exists.
    """
    candidates = [module_dir / f"{name}.rs", module_dir / name / "mod.rs"]
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    raise ResolutionError(name, candidates)


def _relative(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def build_module_tree(entry_file: Path, entry_visibility: str = "pub") -> ModuleNode:
    """Build the module tree of the crate rooted at entry_file."""
    return ModuleTreeBuilder().build(entry_file, entry_visibility)
