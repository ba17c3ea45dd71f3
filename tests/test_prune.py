import warnings

import pytest

from lockfilter.errors import AmbiguousDependencyWarning, UnresolvedPatternWarning
from lockfilter.lockfile import (
    LockDocument,
    PackageEntry,
    PackageId,
    PackageRef,
    parse_lock,
    render_lock,
)
from lockfilter.matcher import ExclusionRuleSet
from lockfilter.observability import StructuredLogger
from lockfilter.prune import prune, prune_document, prune_lock_text


def _entry(name: str, version: str = "1.0.0", *deps: str) -> PackageEntry:
    return PackageEntry(
        id=PackageId(name, version),
        dependencies=tuple(PackageRef.parse(dep) for dep in deps),
    )


def test_excluded_entry_and_its_references_are_removed() -> None:
    doc = LockDocument(
        packages=(
            _entry("a", "1.0.0", "b", "c"),
            _entry("b"),
            _entry("c"),
        ),
    )

    pruned = prune(doc, ExclusionRuleSet.from_specs(["c"]))

    assert [entry.name for entry in pruned.packages] == ["a", "b"]
    assert pruned.packages[0].dependencies == (PackageRef("b"),)
    assert pruned.packages[1].dependencies == ()


def test_windows_subgraph_is_removed_from_fixture(
    cargo_lock_text: str,
    windows_rules: ExclusionRuleSet,
) -> None:
    result = prune_document(parse_lock(cargo_lock_text), windows_rules)

    assert result.document.names() == ("anstream", "anstyle", "crossterm", "libc", "plentysound")
    assert "crossterm_winapi" in result.excluded_names
    assert "windows_x86_64_msvc" in result.excluded_names
    crossterm = result.document.get(PackageId("crossterm", "0.28.1"))
    assert crossterm is not None
    assert crossterm.dependencies == (PackageRef("libc"),)
    assert result.unresolved_rules == ()
    assert result.ambiguous == ()


def test_no_dangling_references_remain(cargo_lock_text: str, windows_rules: ExclusionRuleSet) -> None:
    pruned = prune(parse_lock(cargo_lock_text), windows_rules)
    names = set(pruned.names())

    for entry in pruned.packages:
        for ref in entry.dependencies:
            assert ref.name in names


def test_every_non_matching_entry_survives(
    cargo_lock_text: str,
    windows_rules: ExclusionRuleSet,
) -> None:
    doc = parse_lock(cargo_lock_text)
    pruned = prune(doc, windows_rules)

    expected = [entry.id for entry in doc.packages if not windows_rules.matches(entry.name)]
    assert [entry.id for entry in pruned.packages] == expected


def test_pruning_is_idempotent(cargo_lock_text: str, windows_rules: ExclusionRuleSet) -> None:
    once = prune_lock_text(cargo_lock_text, windows_rules)
    twice = prune_lock_text(once, windows_rules)

    assert once == twice


def test_pruning_is_deterministic(cargo_lock_text: str, windows_rules: ExclusionRuleSet) -> None:
    outputs = {prune_lock_text(cargo_lock_text, windows_rules) for _ in range(3)}

    assert len(outputs) == 1


def test_empty_rule_set_keeps_document_unchanged(cargo_lock_text: str) -> None:
    assert prune_lock_text(cargo_lock_text, ExclusionRuleSet()) == cargo_lock_text


def test_emptied_dependency_list_is_omitted_from_output() -> None:
    raw = (
        "version = 4\n"
        "\n"
        "[[package]]\n"
        'name = "crossterm_winapi"\n'
        'version = "0.9.1"\n'
        "dependencies = [\n"
        ' "winapi",\n'
        "]\n"
        "\n"
        "[[package]]\n"
        'name = "winapi"\n'
        'version = "0.3.9"\n'
    )

    out = prune_lock_text(raw, ExclusionRuleSet.from_specs(["winapi"]))

    assert "dependencies" not in out
    assert 'name = "crossterm_winapi"' in out


def test_unmatched_rule_emits_warning_and_is_reported() -> None:
    doc = LockDocument(packages=(_entry("a"),))
    logger = StructuredLogger()

    with pytest.warns(UnresolvedPatternWarning):
        result = prune_document(
            doc,
            ExclusionRuleSet.from_specs(["windows-sys"]),
            logger=logger,
            strategy="lock",
        )

    assert result.unresolved_rules == ("windows-sys",)
    assert result.document == doc
    records = logger.records_at("warning")
    assert records[0]["operation"] == "prune_unresolved_rule"


def test_bare_reference_to_multi_version_name_is_flagged() -> None:
    doc = LockDocument(
        packages=(
            _entry("a", "1.0.0", "bitflags"),
            _entry("bitflags", "1.3.2"),
            _entry("bitflags", "2.6.0"),
        ),
    )

    with pytest.warns(AmbiguousDependencyWarning):
        result = prune_document(doc, ExclusionRuleSet())

    assert len(result.ambiguous) == 1
    assert result.ambiguous[0].candidates == ("1.3.2", "2.6.0")
    assert result.document.packages[0].dependencies == (PackageRef("bitflags"),)


def test_qualified_references_are_not_ambiguous() -> None:
    doc = LockDocument(
        packages=(
            _entry("a", "1.0.0", "bitflags 2.6.0"),
            _entry("bitflags", "1.3.2"),
            _entry("bitflags", "2.6.0"),
        ),
    )

    with warnings.catch_warnings():
        warnings.simplefilter("error")
        result = prune_document(doc, ExclusionRuleSet())

    assert result.ambiguous == ()


def test_replace_pointing_at_excluded_package_is_dropped() -> None:
    doc = LockDocument(
        packages=(
            PackageEntry(id=PackageId("a", "1.0.0"), extra={"replace": "winapi 0.3.9"}),
            PackageEntry(id=PackageId("b", "1.0.0"), extra={"replace": "libc 0.2.0"}),
            _entry("winapi", "0.3.9"),
            _entry("libc", "0.2.0"),
        ),
    )

    pruned = prune(doc, ExclusionRuleSet.from_specs(["winapi"]))

    assert dict(pruned.packages[0].extra) == {}
    assert dict(pruned.packages[1].extra) == {"replace": "libc 0.2.0"}


def test_metadata_checksums_of_excluded_packages_are_dropped() -> None:
    raw = (
        "[[package]]\n"
        'name = "libc"\n'
        'version = "0.2.0"\n'
        "\n"
        "[[package]]\n"
        'name = "winapi"\n'
        'version = "0.3.9"\n'
        "\n"
        "[metadata]\n"
        '"checksum libc 0.2.0 (registry+https://example.invalid/index)" = "aa"\n'
        '"checksum winapi 0.3.9 (registry+https://example.invalid/index)" = "bb"\n'
    )

    out = prune_lock_text(raw, ExclusionRuleSet.from_specs(["winapi"]))

    assert "checksum libc" in out
    assert "winapi" not in out
    assert render_lock(parse_lock(out)) == out


def test_excluded_packages_are_logged() -> None:
    doc = LockDocument(packages=(_entry("a", "1.0.0", "b"), _entry("b")))
    logger = StructuredLogger()

    prune_document(doc, ExclusionRuleSet.from_specs(["b"]), logger=logger, strategy="lock")

    assert [record["package"] for record in logger.records_for_strategy("lock")] == ["b@1.0.0"]
