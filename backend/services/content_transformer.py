"""
Debloat transformer: minifies package sources without bundling.
"""

import re
from pathlib import Path
from typing import List, Set, Tuple

import rjsmin

from models.artifact import ArtifactIdentity, DebloatReport, FileDebloatResult, StagingDirectory
from services.archive_codec import ArchiveCodec, read_zip_member_names
from services.errors import ExtractionError, TransformError
from services.metadata_extractor import MetadataExtractor
from services.object_store import ObjectStoreGateway

# Module specifiers in require(), import(), import/export ... from, and bare import "x"
_SPECIFIER_PATTERNS = [
    re.compile(r"""\brequire\s*\(\s*(['"])([^'"\r\n]+)\1\s*\)"""),
    re.compile(r"""\bimport\s*\(\s*(['"])([^'"\r\n]+)\1\s*\)"""),
    re.compile(r"""\b(?:import|export)\b[^'";]*?\bfrom\s*(['"])([^'"\r\n]+)\1"""),
    re.compile(r"""\bimport\s*(['"])([^'"\r\n]+)\1"""),
]

NODE_BUILTINS = frozenset({
    "assert", "buffer", "child_process", "cluster", "crypto", "dgram", "dns", "events",
    "fs", "http", "http2", "https", "module", "net", "os", "path", "perf_hooks",
    "process", "querystring", "readline", "stream", "string_decoder", "timers", "tls",
    "tty", "url", "util", "v8", "vm", "worker_threads", "zlib",
})


def find_module_specifiers(source: str) -> Set[str]:
    """Collect every module specifier referenced by a JS/TS source."""
    specifiers = set()
    for pattern in _SPECIFIER_PATTERNS:
        for match in pattern.finditer(source):
            specifiers.add(match.group(2))
    return specifiers


def package_name_of(specifier: str) -> str:
    """
    Reduce a specifier to the package it resolves to.

    'lodash/fp' -> 'lodash', '@scope/pkg/sub' -> '@scope/pkg'. Relative,
    absolute and node: specifiers come back as an empty string.
    """
    if specifier.startswith((".", "/")) or specifier.startswith("node:"):
        return ""
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) > 1:
        return "/".join(parts[:2])
    return parts[0]


def minify_source(source: str) -> str:
    """Minify a single JS/TS source. Never inlines other modules."""
    return rjsmin.jsmin(source)


class ContentTransformer:
    """Minifies package sources while leaving dependencies as external references."""

    # Extensions eligible for minification
    SOURCE_EXTENSIONS = (".js", ".ts", ".mjs", ".cjs")

    # Conventional source directory, scanned one level deep
    SOURCE_DIR = "src"

    def __init__(
        self,
        codec: ArchiveCodec,
        extractor: MetadataExtractor,
        object_store: ObjectStoreGateway,
    ):
        self.codec = codec
        self.extractor = extractor
        self.object_store = object_store

    def debloat(self, identity: ArtifactIdentity, blob: bytes) -> DebloatReport:
        """
        Persist a package, minify its sources, and replace it with the result.

        The supplied blob is written first. The debloated blob is only written
        after every file has been minified and the tree collapsed, so a
        failure leaves the store holding exactly the supplied blob.

        Args:
            identity: Artifact to write
            blob: Zip archive bytes

        Returns:
            DebloatReport describing every processed file

        Raises:
            ArchiveFormatError: blob is not a valid zip
            ManifestNotFoundError, ManifestParseError: Unusable package.json
            TransformError: A source file could not be decoded or minified
            StoreError: Persisting either blob failed
        """
        read_zip_member_names(blob)
        self.object_store.put(identity.store_key, blob)

        stored = self.object_store.get(identity.store_key)
        with self.codec.expanded(identity, stored) as staging:
            manifest = self.extractor.load_manifest(staging)
            externals = set(manifest.external_dependencies)

            results = [
                self._minify_file(staging, path, externals)
                for path in self.select_sources(staging)
            ]
            debloated = self.codec.collapse(staging)

        self.object_store.put(identity.store_key, debloated)

        report = DebloatReport(
            package_id=identity.package_id,
            version_id=identity.version_id,
            files=results,
            original_blob_size=len(blob),
            debloated_blob_size=len(debloated),
        )
        print(
            f"[content_transformer] Debloated {identity}: {len(results)} files, "
            f"{report.bytes_saved} bytes saved"
        )
        return report

    def select_sources(self, staging: StagingDirectory) -> List[Path]:
        """Top-level sources plus sources directly under src/, in sorted order."""
        package_root = staging.package_root
        selected = []
        try:
            for directory in (package_root, package_root / self.SOURCE_DIR):
                if not directory.is_dir():
                    continue
                selected.extend(
                    path
                    for path in sorted(directory.iterdir())
                    if path.suffix in self.SOURCE_EXTENSIONS
                    and path.is_file()
                    and not path.is_symlink()
                )
        except OSError as e:
            raise ExtractionError(f"Failed to list package sources: {e}", staging.identity) from e
        return selected

    def _minify_file(
        self, staging: StagingDirectory, path: Path, externals: Set[str]
    ) -> FileDebloatResult:
        relative = path.relative_to(staging.package_root).as_posix()
        try:
            original = path.read_bytes()
        except OSError as e:
            raise ExtractionError(f"Failed to read {relative}: {e}", staging.identity) from e

        try:
            source = original.decode("utf-8")
        except UnicodeDecodeError as e:
            raise TransformError(f"{relative} is not UTF-8 text", staging.identity) from e

        try:
            minified = minify_source(source)
        except Exception as e:
            print(f"[content_transformer] ERROR: Failed to minify {relative}: {e}")
            raise TransformError(f"Failed to minify {relative}: {e}", staging.identity) from e

        # Scanned after minification so commented-out imports are not counted
        external_refs, undeclared = self._classify_imports(minified, externals)
        if undeclared:
            print(
                f"[content_transformer] WARNING: {relative} imports undeclared packages: "
                f"{', '.join(undeclared)}"
            )

        encoded = minified.encode("utf-8")
        try:
            path.write_bytes(encoded)
        except OSError as e:
            raise ExtractionError(f"Failed to write {relative}: {e}", staging.identity) from e

        return FileDebloatResult(
            path=relative,
            original_size=len(original),
            minified_size=len(encoded),
            external_references=external_refs,
            undeclared_imports=undeclared,
        )

    @staticmethod
    def _classify_imports(source: str, externals: Set[str]) -> Tuple[List[str], List[str]]:
        """Split bare imports into declared externals and undeclared packages."""
        external_refs = []
        undeclared = set()
        for specifier in sorted(find_module_specifiers(source)):
            name = package_name_of(specifier)
            if not name:
                continue
            if name in externals:
                external_refs.append(specifier)
            elif name not in NODE_BUILTINS:
                undeclared.add(name)
        return external_refs, sorted(undeclared)
