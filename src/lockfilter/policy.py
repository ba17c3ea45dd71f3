"""Filter policy configuration and enforcement helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Literal

from lockfilter.errors import PolicyError, ValidationError
from lockfilter.matcher import ExclusionRuleSet
from lockfilter.stubs.features import FeatureTable
from lockfilter.stubs.synthesize import StubMode

FetchArtifact = Literal["directory", "crate"]
VendorAction = Literal["delete", "stub"]


class Strategy(StrEnum):
    """Pipeline stage at which excluded packages are intercepted."""

    FETCH = "fetch"
    LOCK = "lock"
    VENDOR = "vendor"


@dataclass(frozen=True, slots=True)
class FilterPolicy:
    strategy: Strategy = Strategy.LOCK
    rules: ExclusionRuleSet = field(default_factory=ExclusionRuleSet)
    stub_mode: StubMode = "minimal"
    feature_table: FeatureTable = field(default_factory=FeatureTable)
    stub_store: Path = field(default_factory=lambda: Path("build/lockfilter-stubs"))
    fetch_artifact: FetchArtifact = "directory"
    vendor_depth: int = 2
    vendor_action: VendorAction = "delete"
    synthesize_on_lock: bool = False

    def __post_init__(self) -> None:
        try:
            strategy = Strategy(self.strategy)
        except ValueError as exc:
            raise ValidationError(
                f"Unsupported interception strategy: {self.strategy}",
                hint=f"Expected one of: {', '.join(item.value for item in Strategy)}.",
            ) from exc
        object.__setattr__(self, "strategy", strategy)
        if self.vendor_depth < 1:
            raise ValidationError("vendor_depth must be at least 1.")


def ensure_strategy(*, policy: FilterPolicy, requested: Strategy, operation: str) -> None:
    if policy.strategy != requested:
        raise PolicyError(
            "Interception strategy does not match the configured strategy.",
            hint=(
                "Strategies cannot be combined on one artifact; configure a single "
                "strategy per build."
            ),
            context={
                "operation": operation,
                "configured": policy.strategy.value,
                "requested": requested.value,
            },
        )


def ensure_rules_present(*, policy: FilterPolicy, operation: str) -> None:
    if not policy.rules:
        raise PolicyError(
            "No exclusion rules are configured.",
            hint="Set `exclude` or `preset` in the [lockfilter] config table.",
            context={"operation": operation},
        )
