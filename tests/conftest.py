"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from lockfilter.config import load_preset
from lockfilter.matcher import ExclusionRuleSet
from lockfilter.policy import FilterPolicy, Strategy
from lockfilter.stubs.features import FeatureTable

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def cargo_lock_text() -> str:
    """A Cargo.lock in Cargo's own rendering, with a Windows-only subgraph."""
    return (FIXTURES / "Cargo.lock").read_text(encoding="utf-8")


@pytest.fixture
def windows_rules() -> ExclusionRuleSet:
    preset = load_preset("windows")
    return ExclusionRuleSet.from_specs(preset["exclude"])


@pytest.fixture
def windows_features() -> FeatureTable:
    return FeatureTable.from_mapping(load_preset("windows")["features"])


@pytest.fixture
def make_policy(tmp_path: Path, windows_rules: ExclusionRuleSet, windows_features: FeatureTable):
    def factory(strategy: Strategy, **overrides: object) -> FilterPolicy:
        values: dict[str, object] = {
            "strategy": strategy,
            "rules": windows_rules,
            "feature_table": windows_features,
            "stub_store": tmp_path / "stubs",
        }
        values.update(overrides)
        return FilterPolicy(**values)  # type: ignore[arg-type]

    return factory
