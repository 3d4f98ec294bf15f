"""
Unit tests for manifest and README extraction.
"""

import json

import pytest

from conftest import make_zip, staging_residue
from models.artifact import ManifestDescriptor
from services.errors import ManifestNotFoundError, ManifestParseError, NotFoundError
from services.metadata_extractor import MetadataExtractor


PACKAGE_JSON = json.dumps({
    "name": "left-pad-consumer",
    "version": "1.2.3",
    "dependencies": {"left-pad": "^1.3.0", "@scope/util": "2.x"},
    "peerDependencies": {"react": ">=18"},
    "scripts": {"test": "jest"},
})


class TestReadManifest:
    """Test package.json extraction"""

    def test_reads_manifest_from_package_root(self, extractor, store, identity, staging_root):
        store.put(identity.store_key, make_zip({
            "package/package.json": PACKAGE_JSON,
            "package/index.js": "1",
        }))

        manifest = extractor.read_manifest(identity)

        assert manifest.name == "left-pad-consumer"
        assert manifest.version == "1.2.3"
        assert manifest.dependencies == {"left-pad": "^1.3.0", "@scope/util": "2.x"}
        assert manifest.peer_dependencies == {"react": ">=18"}
        assert manifest.raw["scripts"] == {"test": "jest"}
        assert staging_residue(staging_root) == []

    def test_reads_manifest_without_wrapping_folder(self, extractor, store, identity):
        store.put(identity.store_key, make_zip({"package.json": PACKAGE_JSON}))

        assert extractor.read_manifest(identity).name == "left-pad-consumer"

    def test_missing_manifest(self, extractor, store, identity, staging_root):
        store.put(identity.store_key, make_zip({"package/index.js": "1"}))

        with pytest.raises(ManifestNotFoundError):
            extractor.read_manifest(identity)

        assert staging_residue(staging_root) == []

    @pytest.mark.parametrize("content", [
        "{not json",
        "[1, 2, 3]",
        '{"dependencies": ["left-pad"]}',
    ])
    def test_malformed_manifest(self, extractor, store, identity, staging_root, content):
        store.put(identity.store_key, make_zip({"package/package.json": content}))

        with pytest.raises(ManifestParseError):
            extractor.read_manifest(identity)

        assert staging_residue(staging_root) == []

    def test_missing_artifact(self, extractor, identity):
        with pytest.raises(NotFoundError):
            extractor.read_manifest(identity)

    def test_external_dependencies_union(self):
        manifest = ManifestDescriptor.from_package_json({
            "dependencies": {"b": "1"},
            "peerDependencies": {"a": "1"},
            "optionalDependencies": {"c": "1", "b": "2"},
        })

        assert manifest.external_dependencies == ["a", "b", "c"]


class TestReadReadme:
    """Test bounded recursive README search"""

    def test_root_readme(self, extractor, store, identity):
        store.put(identity.store_key, make_zip({
            "package/package.json": "{}",
            "package/README.md": "# Root",
        }))

        assert extractor.read_readme(identity) == "# Root"

    def test_nested_readme_found(self, extractor, store, identity, staging_root):
        store.put(identity.store_key, make_zip({
            "root/package.json": "{}",
            "root/src/README.md": "# Nested",
            "root/src/index.js": "1",
        }))

        assert extractor.read_readme(identity) == "# Nested"
        assert staging_residue(staging_root) == []

    def test_no_readme_returns_none(self, extractor, store, identity, staging_root):
        store.put(identity.store_key, make_zip({
            "package/package.json": "{}",
            "package/src/index.js": "1",
            "package/READMEX.md": "not a readme name",
        }))

        assert extractor.read_readme(identity) is None
        assert staging_residue(staging_root) == []

    @pytest.mark.parametrize("name", ["readme", "Readme.MD", "README.txt", "readme.TXT"])
    def test_name_match_is_case_insensitive(self, extractor, store, identity, name):
        store.put(identity.store_key, make_zip({f"package/{name}": "hello"}))

        assert extractor.read_readme(identity) == "hello"

    def test_files_checked_before_subdirectories(self, extractor, store, identity):
        store.put(identity.store_key, make_zip({
            "package/docs/README.md": "docs",
            "package/README.md": "root",
        }))

        assert extractor.read_readme(identity) == "root"

    def test_sibling_directories_searched_in_sorted_order(self, extractor, store, identity):
        store.put(identity.store_key, make_zip({
            "package/zeta/README": "zeta",
            "package/alpha/README": "alpha",
        }))

        assert extractor.read_readme(identity) == "alpha"

    def test_invalid_utf8_replaced(self, extractor, store, identity):
        store.put(identity.store_key, make_zip({"package/README": b"caf\xe9"}))

        assert extractor.read_readme(identity) == "caf\ufffd"

    def test_depth_bound(self, codec, store, identity):
        store.put(identity.store_key, make_zip({
            "package/index.js": "1",
            "package/a/b/c/README.md": "deep",
        }))

        shallow = MetadataExtractor(codec, store, max_depth=2)
        deep = MetadataExtractor(codec, store, max_depth=16)

        assert shallow.read_readme(identity) is None
        assert deep.read_readme(identity) == "deep"

    def test_entry_bound(self, codec, store, identity, staging_root):
        files = {f"package/f{i}.js": "1" for i in range(10)}
        files["package/zz/README.md"] = "found"
        store.put(identity.store_key, make_zip(files))

        bounded = MetadataExtractor(codec, store, max_entries=3)
        unbounded = MetadataExtractor(codec, store)

        assert bounded.read_readme(identity) is None
        assert unbounded.read_readme(identity) == "found"
        assert staging_residue(staging_root) == []

    def test_missing_artifact(self, extractor, identity):
        with pytest.raises(NotFoundError):
            extractor.read_readme(identity)
