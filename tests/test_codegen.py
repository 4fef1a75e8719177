"""Tests for catalog and lookup table generation."""

import pytest

from crate_catalog.codegen import (
    CatalogHeader,
    build_lookup_table,
    generate_catalog,
    generate_lookup,
    render_package,
    write_package,
)
from crate_catalog.codegen.render import py_identifier, py_str_tuple
from crate_catalog.indexer.tree import build_module_tree
from crate_catalog.registry import TypeRegistry, _import_generated

HEADER = CatalogHeader(library="demo", version="0.1.0")


@pytest.fixture
def sample_tree(sample_crate):
    """Module tree of the sample crate."""
    return build_module_tree(sample_crate / "lib.rs")


@pytest.fixture
def shadowing_tree(write_crate):
    """Module tree defining the same names in several modules."""
    root_dir = write_crate(
        {
            "lib.rs": """
pub mod first { pub struct Dup { pub a: u8 } pub enum Kind { A } }
pub mod second { pub struct Dup(u16); }
pub mod third { pub struct Dup; pub enum Kind { B } }
""",
        }
    )
    return build_module_tree(root_dir / "lib.rs")


class TestRenderHelpers:
    """Tests for identifier and literal rendering."""

    def test_python_keywords_suffixed(self):
        """Python keywords should get a trailing underscore."""
        assert py_identifier("lambda") == "lambda_"
        assert py_identifier("None") == "None_"
        assert py_identifier("request") == "request"

    def test_raw_identifiers(self):
        """Raw identifier prefixes should be dropped."""
        assert py_identifier("r#type") == "type"
        assert py_identifier("r#async") == "async_"

    def test_generated_names_escaped(self):
        """Names the generated modules use themselves should be prefixed."""
        assert py_identifier("_meta") == "r_meta"
        assert py_identifier("_mod_1_a") == "r_mod_1_a"
        assert py_identifier("__Private") == "r__Private"
        assert py_identifier("__visibility__") == "r__visibility__"
        assert py_identifier("_private") == "_private"

    def test_str_tuple(self):
        """Single-element tuples need a trailing comma."""
        assert py_str_tuple(()) == "()"
        assert py_str_tuple(("T",)) == '("T",)'
        assert py_str_tuple(("'a", "T")) == "(\"'a\", \"T\")"


class TestGenerateCatalog:
    """Tests for the catalog module."""

    def test_banner(self, sample_tree):
        """Generated source should identify the release and forbid edits."""
        source = generate_catalog(sample_tree, HEADER)
        assert source.startswith("# This file is generated by crate-catalog. Do not edit.\n")
        assert "# Source: demo 0.1.0" in source

    def test_deterministic(self, sample_tree, sample_crate):
        """Regenerating from the same tree should be byte-identical."""
        again = build_module_tree(sample_crate / "lib.rs")
        assert generate_catalog(sample_tree, HEADER) == generate_catalog(again, HEADER)

    def test_compiles(self, sample_tree):
        """Generated source should be valid Python."""
        compile(generate_catalog(sample_tree, HEADER), "catalog.py", "exec")

    def test_records_verbatim(self, sample_tree):
        """Types and attributes should appear as literal strings."""
        source = generate_catalog(sample_tree, HEADER)
        assert 'ty="&\'a str"' in source
        assert 'visibility="pub(crate)"' in source
        assert '"#[cfg(feature = \\"extra\\")]"' in source

    def test_namespaces_linked(self, sample_tree):
        """Each module should be reachable from its parent by name."""
        source = generate_catalog(sample_tree, HEADER)
        assert "\na = _mod_1_a\n" in source
        assert "    b = _mod_2_b\n" in source
        assert "    c = _mod_3_c\n" in source

    def test_keyword_module_names(self, write_crate):
        """Modules named like Python keywords should still be addressable."""
        root_dir = write_crate({"lib.rs": "pub mod lambda { pub struct L; }\n"})
        root = build_module_tree(root_dir / "lib.rs")
        source = generate_catalog(root, HEADER)
        compile(source, "catalog.py", "exec")
        assert "lambda_ = _mod_1_lambda_" in source

    def test_deep_tree_compiles(self, write_crate):
        """Deep module trees should not produce deeply indented source."""
        depth = 150
        source = "".join(f"pub mod m{i} {{\n" for i in range(depth))
        source += "pub struct Bottom;\n" + "}\n" * depth
        root = build_module_tree(write_crate({"lib.rs": source}) / "lib.rs")

        generated = generate_catalog(root, HEADER)
        compile(generated, "catalog.py", "exec")
        assert max(len(line) - len(line.lstrip(" ")) for line in generated.splitlines()) <= 16


class TestLookupTables:
    """Tests for name-keyed lookup tables."""

    def test_complete(self, sample_tree):
        """Every struct and enum should be indexed by name."""
        structs = build_lookup_table(sample_tree, "struct")
        enums = build_lookup_table(sample_tree, "enum")
        assert set(structs.entries) == {"Root", "InA", "InB"}
        assert set(enums.entries) == {"InC"}
        assert structs.get("InB").path == ("a", "b")
        assert "InC" not in structs

    def test_last_writer_wins(self, shadowing_tree):
        """Later definitions should replace earlier ones and be reported."""
        structs = build_lookup_table(shadowing_tree, "struct")
        assert structs.get("Dup").path == ("third",)
        assert structs.shadowed == {"Dup": ["first::Dup", "second::Dup"]}

        enums = build_lookup_table(shadowing_tree, "enum")
        assert enums.get("Kind").variants[0].name == "B"
        assert enums.shadowed == {"Kind": ["first::Kind"]}

    def test_shadowing_logged(self, shadowing_tree, caplog):
        """Collisions should be logged as a warning."""
        with caplog.at_level("WARNING", logger="crate_catalog"):
            build_lookup_table(shadowing_tree, "struct")
        assert "Dup" in caplog.text

    def test_invalid_kind(self, sample_tree):
        """Unknown kinds should be rejected."""
        with pytest.raises(ValueError, match="Invalid kind"):
            build_lookup_table(sample_tree, "trait")

    def test_generated_lookup(self, shadowing_tree):
        """The lookup module should reference records in the catalog."""
        source = generate_lookup(shadowing_tree, HEADER)
        compile(source, "lookup.py", "exec")
        assert '"Dup": _catalog._mod_3_third.Dup,' in source
        assert '"Dup": ("first::Dup", "second::Dup"),' in source
        assert "STRUCTS = MappingProxyType({" in source
        assert "ENUMS = MappingProxyType({" in source


class TestWritePackage:
    """Tests for writing the generated package."""

    def test_files(self, sample_tree, tmp_path):
        """Should write the three package files."""
        written = write_package(sample_tree, HEADER, tmp_path / "generated")
        assert sorted(p.name for p in written) == ["__init__.py", "catalog.py", "lookup.py"]
        assert not list((tmp_path / "generated").glob("*.tmp"))

    def test_idempotent(self, sample_tree, tmp_path):
        """Writing twice should produce byte-identical files."""
        out = tmp_path / "generated"
        first = {p.name: p.read_bytes() for p in write_package(sample_tree, HEADER, out)}
        second = {p.name: p.read_bytes() for p in write_package(sample_tree, HEADER, out)}
        assert first == second
        assert render_package(sample_tree, HEADER) == {
            name: content.decode() for name, content in first.items()
        }

    def test_loaded_records_match(self, sample_tree, tmp_path):
        """Importing the package should rebuild records equal to the originals."""
        out = tmp_path / "generated"
        write_package(sample_tree, HEADER, out)

        registry = TypeRegistry.load(out)

        original = TypeRegistry.from_tree(sample_tree)
        assert dict(registry.structs) == dict(original.structs)
        assert dict(registry.enums) == dict(original.enums)
        assert registry.library == "demo"
        assert registry.version == "0.1.0"

    def test_catalog_mirrors_modules(self, sample_tree, tmp_path):
        """catalog.a.b.InB should be the same record as STRUCTS['InB']."""
        out = tmp_path / "generated"
        write_package(sample_tree, HEADER, out)

        package = _import_generated(out)
        catalog = package.catalog
        assert catalog.a.b.InB is package.STRUCTS["InB"]
        assert catalog.a.c.__visibility__ == ""
        assert catalog.Root.fields[0].name == "name"

    def test_tables_read_only(self, sample_tree, tmp_path):
        """Generated tables should reject mutation."""
        out = tmp_path / "generated"
        write_package(sample_tree, HEADER, out)
        registry = TypeRegistry.load(out)
        with pytest.raises(TypeError):
            registry.structs["Injected"] = None


class TestCfgAlternatives:
    """Catalogs of crates defining the same names under different cfgs."""

    @pytest.fixture
    def cfg_tree(self, write_crate):
        root_dir = write_crate(
            {
                "lib.rs": """
#[cfg(unix)]
mod imp { pub struct UnixThing; pub struct Handle(i32); }
#[cfg(windows)]
mod imp { pub struct WinThing; pub struct Handle(u64); }

#[cfg(feature = "big")]
pub struct Config { pub size: u64 }
#[cfg(not(feature = "big"))]
pub struct Config { pub size: u32 }
""",
            }
        )
        return build_module_tree(root_dir / "lib.rs")

    def test_sibling_modules_load(self, cfg_tree, tmp_path):
        """Records of every same-named module should stay reachable."""
        out = tmp_path / "generated"
        write_package(cfg_tree, HEADER, out)

        registry = TypeRegistry.load(out)

        assert dict(registry.structs) == dict(TypeRegistry.from_tree(cfg_tree).structs)
        assert registry.get_struct("UnixThing").path == ("imp",)
        assert registry.get_struct("WinThing").path == ("imp",)
        assert registry.get_struct("Handle").fields[0].ty == "u64"

        catalog = _import_generated(out).catalog
        assert catalog.imp.WinThing is registry.get_struct("WinThing")
        assert catalog._mod_1_imp.UnixThing is registry.get_struct("UnixThing")

    def test_same_name_in_one_module(self, cfg_tree, tmp_path):
        """The later definition should win and the earlier be reported."""
        out = tmp_path / "generated"
        write_package(cfg_tree, HEADER, out)

        package = _import_generated(out)
        assert package.STRUCTS["Config"].fields[0].ty == "u32"
        assert package.catalog.Config is package.STRUCTS["Config"]
        assert dict(package.SHADOWED_STRUCTS) == {
            "Config": ("Config",),
            "Handle": ("imp::Handle",),
        }
        assert TypeRegistry.load(out).is_ambiguous("Handle")

    def test_names_clashing_with_generated_code(self, write_crate, tmp_path):
        """Rust names mirroring generated or mangled names should load."""
        root_dir = write_crate(
            {
                "lib.rs": """
pub struct _meta;
pub struct _mod_1_a { pub x: u8 }
pub struct __Private;
pub struct None;
pub struct None_;
pub mod a { pub struct After; }
pub struct Later;
""",
            }
        )
        root = build_module_tree(root_dir / "lib.rs")
        out = tmp_path / "generated"
        write_package(root, HEADER, out)

        registry = TypeRegistry.load(out)

        assert dict(registry.structs) == dict(TypeRegistry.from_tree(root).structs)
        catalog = _import_generated(out).catalog
        assert catalog.r_meta.name == "_meta"
        assert catalog.r_mod_1_a.name == "_mod_1_a"
        assert catalog.r__Private.name == "__Private"
        assert catalog.None_.name == "None"
        assert catalog.None__.name == "None_"
        assert catalog.a.After is registry.get_struct("After")
        assert catalog.Later is registry.get_struct("Later")

    def test_module_file_declared_twice(self, write_crate, tmp_path):
        """Two declarations of one module file should both be cataloged."""
        root_dir = write_crate(
            {
                "lib.rs": (
                    '#[cfg(feature = "x")]\npub mod imp;\n'
                    '#[cfg(not(feature = "x"))]\nmod imp;\n'
                ),
                "imp.rs": "pub struct Handle;\n",
            }
        )
        root = build_module_tree(root_dir / "lib.rs")
        out = tmp_path / "generated"
        write_package(root, HEADER, out)

        registry = TypeRegistry.load(out)
        assert registry.get_struct("Handle").path == ("imp",)
        assert registry.shadowed == {"Handle": ("imp::Handle",)}

    def test_struct_and_enum_alternatives(self, write_crate, tmp_path):
        """A struct and an enum sharing a name should both stay reachable."""
        root_dir = write_crate(
            {"lib.rs": "#[cfg(a)]\npub struct Mode;\n#[cfg(not(a))]\npub enum Mode { On }\n"}
        )
        out = tmp_path / "generated"
        write_package(build_module_tree(root_dir / "lib.rs"), HEADER, out)

        package = _import_generated(out)
        assert package.STRUCTS["Mode"].fields == ()
        assert package.ENUMS["Mode"].variants[0].name == "On"
        assert package.catalog.Mode is package.STRUCTS["Mode"]
        assert package.catalog.Mode_ is package.ENUMS["Mode"]
