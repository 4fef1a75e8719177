"""Read-only registry over the struct and enum lookup tables.

A TypeRegistry is constructed once, at startup, either from a generated
catalog package or straight from a module tree, and handed to whatever needs
type metadata. It never changes after construction, so it can be shared
freely.
"""

import hashlib
import importlib.util
import sys
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType, ModuleType

from .codegen.lookup import build_lookup_table
from .errors import CatalogError
from .indexer.tree import ModuleNode
from .logging import get_logger
from .meta import EnumMeta, StructMeta, TypeMeta

logger = get_logger("registry")


class TypeRegistry:
    """Initialize-once view of the cataloged types."""

    def __init__(
        self,
        structs: Mapping[str, StructMeta],
        enums: Mapping[str, EnumMeta],
        shadowed_structs: Mapping[str, tuple[str, ...]] | None = None,
        shadowed_enums: Mapping[str, tuple[str, ...]] | None = None,
        library: str | None = None,
        version: str | None = None,
    ):
        self._structs = MappingProxyType(dict(structs))
        self._enums = MappingProxyType(dict(enums))
        self._shadowed_structs = MappingProxyType(
            {name: tuple(paths) for name, paths in (shadowed_structs or {}).items()}
        )
        self._shadowed_enums = MappingProxyType(
            {name: tuple(paths) for name, paths in (shadowed_enums or {}).items()}
        )
        self.library = library
        self.version = version

    @classmethod
    def from_tree(
        cls,
        root: ModuleNode,
        library: str | None = None,
        version: str | None = None,
    ) -> "TypeRegistry":
        """Build a registry in memory, without generating code."""
        structs = build_lookup_table(root, "struct")
        enums = build_lookup_table(root, "enum")
        return cls(
            structs=structs.entries,
            enums=enums.entries,
            shadowed_structs={k: tuple(v) for k, v in structs.shadowed.items()},
            shadowed_enums={k: tuple(v) for k, v in enums.shadowed.items()},
            library=library,
            version=version,
        )

    @classmethod
    def load(cls, package_dir: Path) -> "TypeRegistry":
        """
        Load a registry from a generated catalog package.

        The package is imported once per process; loading the same directory
        again reuses the already-initialized tables.
        """
        module = _import_generated(package_dir)
        return cls(
            structs=module.STRUCTS,
            enums=module.ENUMS,
            shadowed_structs=module.SHADOWED_STRUCTS,
            shadowed_enums=module.SHADOWED_ENUMS,
            library=module.LIBRARY,
            version=module.VERSION,
        )

    @property
    def structs(self) -> Mapping[str, StructMeta]:
        return self._structs

    @property
    def enums(self) -> Mapping[str, EnumMeta]:
        return self._enums

    @property
    def shadowed(self) -> dict[str, tuple[str, ...]]:
        """Names defined in several modules, with the definitions that lost."""
        merged = dict(self._shadowed_structs)
        for name, paths in self._shadowed_enums.items():
            merged[name] = merged.get(name, ()) + paths
        return merged

    def get_struct(self, name: str) -> StructMeta | None:
        return self._structs.get(name)

    def get_enum(self, name: str) -> EnumMeta | None:
        return self._enums.get(name)

    def get(self, name: str) -> TypeMeta | None:
        """Get a struct or enum by unqualified name, structs first."""
        return self._structs.get(name) or self._enums.get(name)

    def is_ambiguous(self, name: str) -> bool:
        return name in self._shadowed_structs or name in self._shadowed_enums

    def __len__(self) -> int:
        return len(self._structs) + len(self._enums)

    def __contains__(self, name: str) -> bool:
        return name in self._structs or name in self._enums

    def __repr__(self) -> str:
        return (
            f"TypeRegistry(library={self.library!r}, version={self.version!r}, "
            f"structs={len(self._structs)}, enums={len(self._enums)})"
        )


def _import_generated(package_dir: Path) -> ModuleType:
    package_dir = Path(package_dir).resolve()
    init_file = package_dir / "__init__.py"
    if not init_file.is_file():
        raise CatalogError(f"No generated catalog at {package_dir}")

    digest = hashlib.sha256(str(package_dir).encode()).hexdigest()[:12]
    module_name = f"_crate_catalog_generated_{digest}"

    if module_name in sys.modules:
        return sys.modules[module_name]

    spec = importlib.util.spec_from_file_location(
        module_name, init_file, submodule_search_locations=[str(package_dir)]
    )
    if spec is None or spec.loader is None:
        raise CatalogError(f"Cannot import generated catalog at {package_dir}")

    module = importlib.util.module_from_spec(spec)
    # Registered before executing so the package's relative imports resolve
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        for name in [n for n in sys.modules if n == module_name or n.startswith(module_name + ".")]:
            del sys.modules[name]
        raise

    logger.debug("Loaded generated catalog %s from %s", module_name, package_dir)
    return module
