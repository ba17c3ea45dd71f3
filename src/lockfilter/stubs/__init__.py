"""Placeholder package synthesis and storage."""

from .archive import pack_crate, write_crate
from .features import FeatureTable
from .store import StubStore
from .synthesize import StubMode, StubPackage, synthesize

__all__ = [
    "FeatureTable",
    "StubMode",
    "StubPackage",
    "StubStore",
    "pack_crate",
    "synthesize",
    "write_crate",
]
