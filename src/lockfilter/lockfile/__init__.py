"""Lock document model, parser and renderer."""

from .io import parse_lock, read_lock, read_lock_text, render_lock, write_lock
from .model import LockDocument, PackageEntry, PackageId, PackageRef

__all__ = [
    "LockDocument",
    "PackageEntry",
    "PackageId",
    "PackageRef",
    "parse_lock",
    "read_lock",
    "read_lock_text",
    "render_lock",
    "write_lock",
]
