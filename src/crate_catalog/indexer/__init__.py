"""Indexer components: fetch, extract and parse a pinned library release."""

from .extractor import extract_archive
from .fetcher import fetch_archive
from .parser import RustParser
from .tree import ModuleNode, ModuleTreeBuilder, build_module_tree

__all__ = [
    "ModuleNode",
    "ModuleTreeBuilder",
    "RustParser",
    "build_module_tree",
    "extract_archive",
    "fetch_archive",
]
