"""Dependency lock filtering and placeholder package synthesis."""

from .config import load_policy
from .errors import (
    AmbiguousDependencyWarning,
    ChecksumUnavailableWarning,
    ConfigError,
    LockfileError,
    LockfilterError,
    LockTreeDivergenceWarning,
    MalformedEntryError,
    PolicyError,
    StubSynthesisError,
    UnresolvedPatternWarning,
    ValidationError,
    VendorTreeError,
)
from .intercept import CallbackHooks, InterceptionReport, Interceptor
from .lockfile import LockDocument, PackageEntry, PackageId, PackageRef, parse_lock, render_lock
from .matcher import ExclusionRuleSet, Rule, matches
from .policy import FilterPolicy, Strategy
from .prune import PruneResult, prune, prune_document
from .stubs import StubPackage, StubStore, synthesize
from .vendor import prune_vendor_tree

__all__ = [
    "AmbiguousDependencyWarning",
    "CallbackHooks",
    "ChecksumUnavailableWarning",
    "ConfigError",
    "ExclusionRuleSet",
    "FilterPolicy",
    "InterceptionReport",
    "Interceptor",
    "LockDocument",
    "LockTreeDivergenceWarning",
    "LockfileError",
    "LockfilterError",
    "MalformedEntryError",
    "PackageEntry",
    "PackageId",
    "PackageRef",
    "PolicyError",
    "PruneResult",
    "Rule",
    "Strategy",
    "StubPackage",
    "StubStore",
    "StubSynthesisError",
    "UnresolvedPatternWarning",
    "ValidationError",
    "VendorTreeError",
    "load_policy",
    "matches",
    "parse_lock",
    "prune",
    "prune_document",
    "prune_vendor_tree",
    "render_lock",
    "synthesize",
]
