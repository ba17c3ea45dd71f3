import gzip
import io
import json
import tarfile
import tomllib
from pathlib import Path

import pytest

from lockfilter.errors import ConfigError, StubSynthesisError
from lockfilter.lockfile import PackageId
from lockfilter.stubs import FeatureTable, pack_crate, synthesize, write_crate
from lockfilter.stubs.synthesize import CHECKSUM_FILE, LIB_FILE, MANIFEST_FILE


def test_stub_carries_identity_and_known_checksum() -> None:
    stub = synthesize(PackageId("foo", "1.2.3"), known_checksum="abc123")

    manifest = tomllib.loads(stub.manifest_text())
    assert manifest["package"]["name"] == "foo"
    assert manifest["package"]["version"] == "1.2.3"
    assert manifest["lib"]["path"] == LIB_FILE
    assert "features" not in manifest
    assert json.loads(stub.file(CHECKSUM_FILE)) == {"files": {}, "package": "abc123"}
    assert b"#![no_std]" in stub.file(LIB_FILE)
    assert stub.dirname == "foo-1.2.3"


def test_unknown_checksum_is_written_as_null() -> None:
    stub = synthesize(PackageId("foo", "1.2.3"))

    assert json.loads(stub.file(CHECKSUM_FILE)) == {"files": {}, "package": None}
    assert stub.checksum is None


def test_stub_disables_target_autodiscovery() -> None:
    manifest = tomllib.loads(synthesize(PackageId("foo", "1.2.3")).manifest_text())

    for key in ("autobins", "autoexamples", "autotests", "autobenches", "build"):
        assert manifest["package"][key] is False


def test_synthesis_is_deterministic() -> None:
    first = synthesize(PackageId("winapi", "0.3.9"), "aa", mode="feature-complete")
    second = synthesize(PackageId("winapi", "0.3.9"), "aa", mode="feature-complete")

    assert first == second
    assert first.digest == second.digest


def test_digest_depends_on_checksum() -> None:
    known = synthesize(PackageId("foo", "1.2.3"), "aa")
    unknown = synthesize(PackageId("foo", "1.2.3"))

    assert known.digest != unknown.digest


def test_minimal_mode_ignores_feature_hints(windows_features: FeatureTable) -> None:
    stub = synthesize(
        PackageId("winapi", "0.3.9"),
        feature_hints=["consoleapi"],
        feature_table=windows_features,
    )

    assert stub.features == ()
    assert "[features]" not in stub.manifest_text()


def test_feature_complete_mode_declares_sorted_features(windows_features: FeatureTable) -> None:
    stub = synthesize(
        PackageId("winapi", "0.3.9"),
        feature_hints=["zz-extra", "consoleapi"],
        mode="feature-complete",
        feature_table=windows_features,
    )

    manifest = tomllib.loads(stub.manifest_text())
    declared = list(manifest["features"])
    assert declared == sorted(declared)
    assert "consoleapi" in declared
    assert "zz-extra" in declared
    assert all(value == [] for value in manifest["features"].values())


def test_feature_complete_mode_without_known_features_matches_minimal_manifest() -> None:
    complete = synthesize(PackageId("foo", "1.2.3"), mode="feature-complete")
    minimal = synthesize(PackageId("foo", "1.2.3"))

    assert complete.manifest_text() == minimal.manifest_text()


@pytest.mark.parametrize(
    "package_id",
    [PackageId("", "1.0.0"), PackageId("foo", ""), PackageId("foo bar", "1.0.0")],
)
def test_invalid_identifiers_are_rejected(package_id: PackageId) -> None:
    with pytest.raises(StubSynthesisError):
        synthesize(package_id)


def test_invalid_feature_hint_is_rejected() -> None:
    with pytest.raises(StubSynthesisError):
        synthesize(PackageId("foo", "1.0.0"), feature_hints=["bad name"], mode="feature-complete")


def test_unknown_mode_is_rejected() -> None:
    with pytest.raises(StubSynthesisError):
        synthesize(PackageId("foo", "1.0.0"), mode="everything")  # type: ignore[arg-type]


def test_feature_table_merges_matching_families() -> None:
    table = FeatureTable.from_mapping(
        {"re:^windows-.*$": ["Win32_Foundation"], "windows-sys": ["Win32_System"]},
    )

    assert table.features_for("windows-sys") == ("Win32_Foundation", "Win32_System")
    assert table.features_for("windows-core") == ("Win32_Foundation",)
    assert table.features_for("libc") == ()


def test_feature_table_rejects_non_list_values() -> None:
    with pytest.raises(ConfigError):
        FeatureTable.from_mapping({"winapi": "consoleapi"})


def test_write_to_lays_out_vendor_directory(tmp_path: Path) -> None:
    stub = synthesize(PackageId("foo", "1.2.3"), "abc123")

    root = stub.write_to(tmp_path / stub.dirname)

    assert sorted(str(p.relative_to(root)) for p in root.rglob("*") if p.is_file()) == [
        CHECKSUM_FILE,
        MANIFEST_FILE,
        LIB_FILE,
    ]


def test_crate_archive_is_deterministic_and_omits_descriptor(tmp_path: Path) -> None:
    stub = synthesize(PackageId("foo", "1.2.3"), "abc123")

    data = pack_crate(stub)
    assert data == pack_crate(stub)

    with tarfile.open(fileobj=io.BytesIO(gzip.decompress(data))) as tar:
        names = sorted(tar.getnames())
    assert names == ["foo-1.2.3/Cargo.toml", "foo-1.2.3/src/lib.rs"]

    path = write_crate(stub, tmp_path)
    assert path.name == "foo-1.2.3.crate"
    assert path.read_bytes() == data
