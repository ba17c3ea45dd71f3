"""Placeholder crate synthesis.

A stub is a complete, buildable crate that exports nothing: a manifest
naming the excluded package, an empty ``no_std`` library root, and the
``.cargo-checksum.json`` descriptor Cargo's directory source verifies.
Every byte is a function of the inputs, so two builds that ask for the
same stub get the same digest.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import cbor2

from lockfilter.errors import StubSynthesisError
from lockfilter.lockfile.encode import toml_key, toml_value
from lockfilter.lockfile.model import PackageId
from lockfilter.stubs.features import FeatureTable, is_feature_name, normalize_features

StubMode = Literal["minimal", "feature-complete"]

MANIFEST_FILE = "Cargo.toml"
LIB_FILE = "src/lib.rs"
CHECKSUM_FILE = ".cargo-checksum.json"
STUB_EDITION = "2018"


@dataclass(frozen=True, slots=True)
class StubPackage:
    id: PackageId
    files: tuple[tuple[str, bytes], ...]
    features: tuple[str, ...] = ()
    checksum: str | None = None
    mode: StubMode = "minimal"

    @property
    def dirname(self) -> str:
        return f"{self.id.name}-{self.id.version}"

    @property
    def digest(self) -> str:
        payload = {
            "name": self.id.name,
            "version": self.id.version,
            "files": dict(self.files),
        }
        return hashlib.sha256(cbor2.dumps(payload, canonical=True)).hexdigest()

    def file(self, path: str) -> bytes:
        for name, content in self.files:
            if name == path:
                return content
        raise KeyError(path)

    def manifest_text(self) -> str:
        return self.file(MANIFEST_FILE).decode("utf-8")

    def write_to(self, directory: str | Path) -> Path:
        root = Path(directory)
        for name, content in self.files:
            target = root / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        return root


def synthesize(
    package_id: PackageId,
    known_checksum: str | None = None,
    feature_hints: Iterable[str] | None = None,
    *,
    mode: StubMode = "minimal",
    feature_table: FeatureTable | None = None,
) -> StubPackage:
    """Build the placeholder crate for an excluded package."""
    _validate_id(package_id)
    if mode == "minimal":
        features: tuple[str, ...] = ()
    elif mode == "feature-complete":
        table = feature_table or FeatureTable()
        features = normalize_features(
            (*table.features_for(package_id.name), *(feature_hints or ())),
        )
    else:
        raise StubSynthesisError(
            f"Unsupported stub mode: {mode}",
            context={"package": str(package_id)},
        )
    invalid = [name for name in features if not is_feature_name(name)]
    if invalid:
        raise StubSynthesisError(
            "Feature hints contain invalid feature names.",
            context={"package": str(package_id), "invalid": ", ".join(invalid)},
        )

    files = (
        (CHECKSUM_FILE, render_checksum_descriptor(known_checksum).encode("utf-8")),
        (MANIFEST_FILE, render_manifest(package_id, features).encode("utf-8")),
        (LIB_FILE, render_lib(package_id).encode("utf-8")),
    )
    return StubPackage(
        id=package_id,
        files=tuple(sorted(files)),
        features=features,
        checksum=known_checksum,
        mode=mode,
    )


def render_manifest(package_id: PackageId, features: tuple[str, ...]) -> str:
    lines = [
        "[package]",
        f"name = {toml_value(package_id.name)}",
        f"version = {toml_value(package_id.version)}",
        f"edition = {toml_value(STUB_EDITION)}",
        'description = "Placeholder for a package excluded from this build."',
        "autobins = false",
        "autoexamples = false",
        "autotests = false",
        "autobenches = false",
        "build = false",
        "",
        "[lib]",
        f"path = {toml_value(LIB_FILE)}",
    ]
    if features:
        lines.extend(["", "[features]"])
        lines.extend(f"{toml_key(name)} = []" for name in features)
    return "\n".join(lines) + "\n"


def render_lib(package_id: PackageId) -> str:
    return (
        f"//! Placeholder for `{package_id.name}` {package_id.version}.\n"
        "//! The package was excluded from this build and provides no items.\n"
        "#![no_std]\n"
    )


def render_checksum_descriptor(checksum: str | None) -> str:
    return json.dumps({"files": {}, "package": checksum}) + "\n"


def _validate_id(package_id: PackageId) -> None:
    if not package_id.name or not package_id.version:
        raise StubSynthesisError(
            "Stub synthesis requires both a package name and version.",
            context={"name": package_id.name, "version": package_id.version},
        )
    if any(ch.isspace() for ch in package_id.name + package_id.version):
        raise StubSynthesisError(
            "Package identifiers must not contain whitespace.",
            context={"package": str(package_id)},
        )


__all__ = [
    "CHECKSUM_FILE",
    "LIB_FILE",
    "MANIFEST_FILE",
    "StubMode",
    "StubPackage",
    "render_checksum_descriptor",
    "render_lib",
    "render_manifest",
    "synthesize",
]
