"""Interception of toolchain hooks with a single configured strategy."""

from __future__ import annotations

import json
import warnings
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import cbor2

from lockfilter.errors import (
    ChecksumUnavailableWarning,
    LockfilterError,
    LockTreeDivergenceWarning,
    StubSynthesisError,
)
from lockfilter.intercept.hooks import (
    FetchPackage,
    PrepareVendorTree,
    ToolchainHooks,
    VendorTreeReady,
)
from lockfilter.lockfile.io import parse_lock, render_lock
from lockfilter.lockfile.model import LockDocument, PackageId
from lockfilter.matcher import matches
from lockfilter.observability import StructuredLogger
from lockfilter.policy import FilterPolicy, Strategy, ensure_rules_present, ensure_strategy
from lockfilter.prune import PruneResult, prune_document
from lockfilter.stubs.archive import write_crate
from lockfilter.stubs.store import StubStore
from lockfilter.stubs.synthesize import StubPackage, synthesize
from lockfilter.vendor import VendorPackage, VendorPruneResult, prune_vendor_tree


@dataclass(slots=True)
class InterceptionReport:
    strategy: str
    excluded: list[str] = field(default_factory=list)
    delegated: list[str] = field(default_factory=list)
    stubs: dict[str, str] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)
    removed: list[str] = field(default_factory=list)
    divergent: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def record_prune(self, result: PruneResult) -> None:
        self.excluded.extend(str(package_id) for package_id in result.excluded)
        self.warnings.extend(
            f"unresolved rule: {rule_spec}" for rule_spec in result.unresolved_rules
        )
        self.warnings.extend(
            f"ambiguous reference: {item.package} -> {item.reference}"
            for item in result.ambiguous
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy,
            "excluded": list(self.excluded),
            "delegated": list(self.delegated),
            "stubs": dict(sorted(self.stubs.items())),
            "failures": dict(sorted(self.failures.items())),
            "removed": list(self.removed),
            "divergent": list(self.divergent),
            "warnings": list(self.warnings),
        }

    def to_json(self, path: str | Path | None = None) -> str:
        encoded = json.dumps(self.to_dict(), indent=2, sort_keys=True) + "\n"
        if path is not None:
            Path(path).write_text(encoded, encoding="utf-8")
        return encoded

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self.to_dict(), canonical=True)
        if path is not None:
            Path(path).write_bytes(encoded)
        return encoded


@dataclass(slots=True)
class Interceptor:
    """Applies one filtering strategy at the matching toolchain hook.

    *lock* is the lock document the build runs against, when known. The
    fetch strategy reads real checksums from it and the vendor strategy
    uses it to report packages the lock still lists after their
    directories were pruned.
    """

    policy: FilterPolicy
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    lock: LockDocument | None = None
    feature_hints: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    report: InterceptionReport = field(init=False)
    _store: StubStore | None = field(init=False, default=None, repr=False)

    def __post_init__(self) -> None:
        ensure_rules_present(policy=self.policy, operation="intercept")
        self.report = InterceptionReport(strategy=self.policy.strategy.value)

    @property
    def strategy(self) -> Strategy:
        return self.policy.strategy

    @property
    def store(self) -> StubStore:
        if self._store is None:
            self._store = StubStore(self.policy.stub_store)
        return self._store

    def wrap(self, hooks: ToolchainHooks) -> InterceptedHooks:
        return InterceptedHooks(interceptor=self, inner=hooks)

    def fetch_package(self, package_id: PackageId, delegate: FetchPackage) -> Path:
        ensure_strategy(policy=self.policy, requested=Strategy.FETCH, operation="fetch_package")
        if not matches(package_id.name, self.policy.rules):
            self.report.delegated.append(str(package_id))
            return delegate(package_id)

        self.report.excluded.append(str(package_id))
        try:
            stub = self.stub_for(package_id)
            path = self.store.materialize(stub)
            if self.policy.fetch_artifact == "crate":
                path = write_crate(stub, path.parent)
        except LockfilterError as exc:
            self._record_failure(package_id, exc)
            raise
        self.report.stubs[str(package_id)] = str(path)
        self.logger.log(
            operation="fetch_substitute",
            strategy=self.strategy.value,
            package=str(package_id),
            message="Substituted stub for excluded package fetch.",
            extra={"path": str(path), "digest": stub.digest},
        )
        return path

    def prepare_vendor_tree(
        self,
        lock_text: str,
        delegate: PrepareVendorTree,
    ) -> tuple[str, Path]:
        ensure_strategy(
            policy=self.policy,
            requested=Strategy.LOCK,
            operation="prepare_vendor_tree",
        )
        document = parse_lock(lock_text)
        self.lock = document
        result = prune_document(
            document,
            self.policy.rules,
            logger=self.logger,
            strategy=self.strategy.value,
        )
        self.report.record_prune(result)
        if self.policy.synthesize_on_lock:
            self.materialize_stubs(result.excluded)
        rewritten = render_lock(result.document)
        self.logger.log(
            operation="lock_rewrite",
            strategy=self.strategy.value,
            package=None,
            message="Supplied filtered lock document to vendor preparation.",
            extra={
                "excluded": len(result.excluded),
                "retained": len(result.document.packages),
            },
        )
        return delegate(rewritten)

    def vendor_tree_ready(self, vendor_dir: Path, delegate: VendorTreeReady) -> Path:
        ensure_strategy(
            policy=self.policy,
            requested=Strategy.VENDOR,
            operation="vendor_tree_ready",
        )
        replace_with = self._replace_vendored if self.policy.vendor_action == "stub" else None
        result = prune_vendor_tree(
            vendor_dir,
            self.policy.rules,
            depth=self.policy.vendor_depth,
            replace_with=replace_with,
            logger=self.logger,
            strategy=self.strategy.value,
        )
        for package in (*result.removed, *result.replaced):
            label = package.name if package.id is None else str(package.id)
            self.report.excluded.append(label)
        self.report.removed.extend(
            str(package.path.relative_to(result.vendor_dir)) for package in result.removed
        )
        self._check_divergence(result)
        return delegate(result.vendor_dir)

    def stub_for(self, package_id: PackageId, known_checksum: str | None = None) -> StubPackage:
        if not matches(package_id.name, self.policy.rules):
            raise StubSynthesisError(
                "Refusing to synthesize a stub for a retained package.",
                context={"package": str(package_id)},
            )
        checksum = known_checksum or self._known_checksum(package_id)
        if checksum is None:
            warnings.warn(
                f"No checksum known for {package_id}; stub descriptor marks it unverified.",
                ChecksumUnavailableWarning,
                stacklevel=2,
            )
            self.logger.log(
                operation="stub_checksum_unavailable",
                strategy=self.strategy.value,
                package=str(package_id),
                message="Stub checksum unavailable; emitting unverified descriptor.",
                level="warning",
            )
        return synthesize(
            package_id,
            known_checksum=checksum,
            feature_hints=self.feature_hints.get(package_id.name, ()),
            mode=self.policy.stub_mode,
            feature_table=self.policy.feature_table,
        )

    def materialize_stubs(self, package_ids: Iterable[PackageId]) -> dict[PackageId, Path]:
        """Store a stub per id; a failing id is recorded and skipped."""
        materialized: dict[PackageId, Path] = {}
        for package_id in package_ids:
            try:
                path = self.store.materialize(self.stub_for(package_id))
            except (LockfilterError, OSError) as exc:
                self._record_failure(package_id, exc)
                continue
            materialized[package_id] = path
            self.report.stubs[str(package_id)] = str(path)
        return materialized

    def _replace_vendored(self, package: VendorPackage) -> Path | None:
        package_id = package.id
        if package_id is None:
            return None
        try:
            stub = self.stub_for(package_id, known_checksum=package.checksum)
            stub.write_to(package.path)
        except (LockfilterError, OSError) as exc:
            self._record_failure(package_id, exc)
            return None
        self.report.stubs[str(package_id)] = str(package.path)
        return package.path

    def _known_checksum(self, package_id: PackageId) -> str | None:
        if self.lock is None:
            return None
        entry = self.lock.get(package_id)
        return entry.checksum if entry is not None else None

    def _check_divergence(self, result: VendorPruneResult) -> None:
        removed_names = {package.name for package in result.removed}
        if not removed_names:
            return
        if self.lock is None:
            self.logger.log(
                operation="vendor_divergence_unchecked",
                strategy=self.strategy.value,
                package=None,
                message="No lock document supplied; lock/tree agreement was not checked.",
                level="warning",
            )
            return
        divergent = [str(entry.id) for entry in self.lock.packages if entry.name in removed_names]
        if not divergent:
            return
        self.report.divergent.extend(divergent)
        warnings.warn(
            (
                "Lock document still lists packages removed from the vendor tree: "
                f"{', '.join(divergent)}."
            ),
            LockTreeDivergenceWarning,
            stacklevel=3,
        )
        self.logger.log(
            operation="vendor_divergence",
            strategy=self.strategy.value,
            package=None,
            message="Lock document and vendor tree disagree after pruning.",
            level="warning",
            extra={"packages": divergent},
        )

    def _record_failure(self, package_id: PackageId, exc: Exception) -> None:
        code = exc.code if isinstance(exc, LockfilterError) else type(exc).__name__
        self.report.failures[str(package_id)] = f"{code}: {exc}"
        self.logger.log(
            operation="stub_failure",
            strategy=self.strategy.value,
            package=str(package_id),
            message="Stub synthesis failed; continuing with remaining packages.",
            level="error",
            extra={"code": code},
        )


@dataclass(slots=True)
class InterceptedHooks:
    """Toolchain hooks with only the configured strategy's hook overridden."""

    interceptor: Interceptor
    inner: ToolchainHooks

    def on_fetch_package(self, package_id: PackageId) -> Path:
        if self.interceptor.strategy == Strategy.FETCH:
            return self.interceptor.fetch_package(package_id, self.inner.on_fetch_package)
        return self.inner.on_fetch_package(package_id)

    def on_prepare_vendor_tree(self, lock_text: str) -> tuple[str, Path]:
        if self.interceptor.strategy == Strategy.LOCK:
            return self.interceptor.prepare_vendor_tree(
                lock_text,
                self.inner.on_prepare_vendor_tree,
            )
        return self.inner.on_prepare_vendor_tree(lock_text)

    def on_vendor_tree_ready(self, vendor_dir: Path) -> Path:
        if self.interceptor.strategy == Strategy.VENDOR:
            return self.interceptor.vendor_tree_ready(vendor_dir, self.inner.on_vendor_tree_ready)
        return self.inner.on_vendor_tree_ready(vendor_dir)
