"""Exclusion rules and package-name matching."""

from __future__ import annotations

import fnmatch
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Literal

from lockfilter.errors import ValidationError

RuleKind = Literal["exact", "glob", "regex"]

GLOB_CHARS = frozenset("*?[")


@dataclass(frozen=True, slots=True)
class Rule:
    """A single name predicate.

    Names are compared as written: ``windows_sys`` and ``windows-sys`` are
    different names, so a rule set that wants both must list both.
    """

    kind: RuleKind
    pattern: str
    _compiled: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.pattern:
            raise ValidationError("Exclusion rule pattern must not be empty.")
        if self.kind == "exact":
            source = re.escape(self.pattern)
        elif self.kind == "glob":
            source = fnmatch.translate(self.pattern)
        elif self.kind == "regex":
            source = self.pattern
        else:
            raise ValidationError(f"Unsupported exclusion rule kind: {self.kind}")
        try:
            compiled = re.compile(source)
        except re.error as exc:
            raise ValidationError(
                "Invalid exclusion rule regex.",
                hint=str(exc),
                context={"pattern": self.pattern},
            ) from exc
        object.__setattr__(self, "_compiled", compiled)

    @classmethod
    def from_spec(cls, spec: str) -> Rule:
        """Build a rule from its config spelling.

        ``re:<regex>`` and ``glob:<pattern>`` are explicit; a bare string
        containing glob metacharacters is a glob, anything else is exact.
        """
        if spec.startswith("re:"):
            return cls(kind="regex", pattern=spec[3:])
        if spec.startswith("glob:"):
            return cls(kind="glob", pattern=spec[5:])
        if GLOB_CHARS.intersection(spec):
            return cls(kind="glob", pattern=spec)
        return cls(kind="exact", pattern=spec)

    def matches(self, name: str) -> bool:
        return self._compiled.fullmatch(name) is not None

    def to_spec(self) -> str:
        if self.kind == "regex":
            return f"re:{self.pattern}"
        if self.kind == "glob":
            return f"glob:{self.pattern}"
        return self.pattern


@dataclass(frozen=True, slots=True)
class ExclusionRuleSet:
    rules: tuple[Rule, ...] = ()

    @classmethod
    def from_specs(cls, specs: Iterable[str]) -> ExclusionRuleSet:
        return cls(rules=tuple(Rule.from_spec(spec) for spec in specs))

    def __bool__(self) -> bool:
        return bool(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def matches(self, name: str) -> bool:
        return matches(name, self)

    def unmatched_rules(self, names: Iterable[str]) -> tuple[Rule, ...]:
        """Return rules that match none of *names*, in rule order."""
        pool = tuple(dict.fromkeys(names))
        return tuple(rule for rule in self.rules if not any(rule.matches(n) for n in pool))

    def to_specs(self) -> list[str]:
        return [rule.to_spec() for rule in self.rules]


def matches(name: str, ruleset: ExclusionRuleSet) -> bool:
    """Return True when *name* matches at least one rule."""
    if not isinstance(name, str):
        return False
    return any(rule.matches(name) for rule in ruleset.rules)


__all__ = ["ExclusionRuleSet", "Rule", "RuleKind", "matches"]
