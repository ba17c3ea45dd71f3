"""Feature-name tables for feature-complete stubs."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from lockfilter.errors import ConfigError
from lockfilter.matcher import Rule

FEATURE_NAME = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_+\-.]*$")


@dataclass(frozen=True, slots=True)
class FeatureFamily:
    rule: Rule
    features: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class FeatureTable:
    families: tuple[FeatureFamily, ...] = ()

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, object]) -> FeatureTable:
        families: list[FeatureFamily] = []
        for spec, names in mapping.items():
            if not isinstance(names, list) or not all(isinstance(item, str) for item in names):
                raise ConfigError(
                    "Feature table values must be lists of feature names.",
                    context={"family": str(spec)},
                )
            invalid = [name for name in names if not is_feature_name(name)]
            if invalid:
                raise ConfigError(
                    "Feature table contains invalid feature names.",
                    context={"family": str(spec), "invalid": ", ".join(invalid)},
                )
            families.append(FeatureFamily(rule=Rule.from_spec(spec), features=tuple(names)))
        return cls(families=tuple(families))

    def features_for(self, name: str) -> tuple[str, ...]:
        collected: set[str] = set()
        for family in self.families:
            if family.rule.matches(name):
                collected.update(family.features)
        return tuple(sorted(collected))

    def merged(self, other: FeatureTable) -> FeatureTable:
        return FeatureTable(families=self.families + other.families)


def is_feature_name(name: str) -> bool:
    return FEATURE_NAME.fullmatch(name) is not None


def normalize_features(names: Iterable[str]) -> tuple[str, ...]:
    return tuple(sorted(set(names)))
