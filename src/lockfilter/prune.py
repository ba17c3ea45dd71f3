"""Graph pruning: drop excluded packages and every reference to them."""

from __future__ import annotations

import re
import warnings
from collections import Counter
from dataclasses import dataclass, replace

from lockfilter.errors import AmbiguousDependencyWarning, UnresolvedPatternWarning
from lockfilter.lockfile.io import parse_lock, render_lock
from lockfilter.lockfile.model import LockDocument, PackageEntry, PackageId, PackageRef
from lockfilter.matcher import ExclusionRuleSet, matches
from lockfilter.observability import StructuredLogger

METADATA_HEADER = "[metadata]"
METADATA_CHECKSUM = re.compile(r'^\s*"checksum (?P<name>\S+) ')


@dataclass(frozen=True, slots=True)
class AmbiguousReference:
    package: PackageId
    reference: str
    candidates: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class PruneResult:
    document: LockDocument
    excluded: tuple[PackageId, ...] = ()
    ambiguous: tuple[AmbiguousReference, ...] = ()
    unresolved_rules: tuple[str, ...] = ()

    @property
    def excluded_names(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(package_id.name for package_id in self.excluded))


def prune(doc: LockDocument, ruleset: ExclusionRuleSet) -> LockDocument:
    return prune_document(doc, ruleset).document


def prune_document(
    doc: LockDocument,
    ruleset: ExclusionRuleSet,
    *,
    logger: StructuredLogger | None = None,
    strategy: str | None = None,
) -> PruneResult:
    """Remove excluded entries and strip them from every dependency list."""
    excluded: list[PackageId] = []
    retained: list[PackageEntry] = []
    for entry in doc.packages:
        if matches(entry.name, ruleset):
            excluded.append(entry.id)
        else:
            retained.append(entry)
    excluded_names = frozenset(package_id.name for package_id in excluded)

    rewritten = tuple(_strip_entry(entry, excluded_names) for entry in retained)
    trailer = tuple(_strip_trailer(section, excluded_names) for section in doc.trailer)
    pruned = LockDocument(header=doc.header, packages=rewritten, trailer=trailer)

    ambiguous = _ambiguous_references(pruned)
    unresolved = tuple(rule.to_spec() for rule in ruleset.unmatched_rules(doc.names()))

    for rule_spec in unresolved:
        warnings.warn(
            f"Exclusion rule `{rule_spec}` matched no lock entry.",
            UnresolvedPatternWarning,
            stacklevel=2,
        )
    for item in ambiguous:
        warnings.warn(
            (
                f"Dependency `{item.reference}` of {item.package} matches several retained "
                f"versions: {', '.join(item.candidates)}."
            ),
            AmbiguousDependencyWarning,
            stacklevel=2,
        )

    if logger is not None:
        for package_id in excluded:
            logger.log(
                operation="prune_exclude",
                strategy=strategy,
                package=str(package_id),
                message="Excluded package from lock document.",
            )
        for rule_spec in unresolved:
            logger.log(
                operation="prune_unresolved_rule",
                strategy=strategy,
                package=None,
                message="Exclusion rule matched no lock entry.",
                level="warning",
                extra={"rule": rule_spec},
            )
        for item in ambiguous:
            logger.log(
                operation="prune_ambiguous_reference",
                strategy=strategy,
                package=str(item.package),
                message="Dependency reference matches several retained versions.",
                level="warning",
                extra={"reference": item.reference, "candidates": list(item.candidates)},
            )

    return PruneResult(
        document=pruned,
        excluded=tuple(excluded),
        ambiguous=ambiguous,
        unresolved_rules=unresolved,
    )


def prune_lock_text(raw: str, ruleset: ExclusionRuleSet) -> str:
    return render_lock(prune(parse_lock(raw), ruleset))


def _strip_entry(entry: PackageEntry, excluded_names: frozenset[str]) -> PackageEntry:
    dependencies = tuple(ref for ref in entry.dependencies if ref.name not in excluded_names)
    extra = dict(entry.extra)
    replacement = extra.get("replace")
    if isinstance(replacement, str) and _ref_name(replacement) in excluded_names:
        del extra["replace"]
    if dependencies == entry.dependencies and extra == dict(entry.extra):
        return entry
    return replace(entry, dependencies=dependencies, extra=extra)


def _strip_trailer(section: str, excluded_names: frozenset[str]) -> str:
    lines = section.splitlines()
    if not lines or lines[0].strip() != METADATA_HEADER:
        return section
    kept = [lines[0]]
    for line in lines[1:]:
        match = METADATA_CHECKSUM.match(line)
        if match is not None and match.group("name") in excluded_names:
            continue
        kept.append(line)
    return "\n".join(kept) + "\n"


def _ref_name(raw: str) -> str | None:
    try:
        return PackageRef.parse(raw).name
    except ValueError:
        return None


def _ambiguous_references(doc: LockDocument) -> tuple[AmbiguousReference, ...]:
    version_counts = Counter(entry.name for entry in doc.packages)
    found: list[AmbiguousReference] = []
    for entry in doc.packages:
        for ref in entry.dependencies:
            if ref.version is None and version_counts[ref.name] > 1:
                found.append(
                    AmbiguousReference(
                        package=entry.id,
                        reference=str(ref),
                        candidates=doc.versions_of(ref.name),
                    ),
                )
    return tuple(found)


__all__ = ["AmbiguousReference", "PruneResult", "prune", "prune_document", "prune_lock_text"]
