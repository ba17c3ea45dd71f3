"""Hook points exposed by the external build toolchain."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from lockfilter.errors import ValidationError
from lockfilter.lockfile.model import PackageId

FetchPackage = Callable[[PackageId], Path]
PrepareVendorTree = Callable[[str], tuple[str, Path]]
VendorTreeReady = Callable[[Path], Path]


class ToolchainHooks(Protocol):
    def on_fetch_package(self, package_id: PackageId) -> Path:
        """Fetch one package and return the local artifact path."""

    def on_prepare_vendor_tree(self, lock_text: str) -> tuple[str, Path]:
        """Build a vendor tree from a lock document; return the document used and the tree."""

    def on_vendor_tree_ready(self, vendor_dir: Path) -> Path:
        """Post-process a finished vendor tree."""


@dataclass(slots=True)
class CallbackHooks:
    """Toolchain hooks assembled from plain callables.

    ``on_vendor_tree_ready`` defaults to returning the tree unchanged; the
    other two hooks must be supplied before they are invoked.
    """

    fetch_package: FetchPackage | None = None
    prepare_vendor_tree: PrepareVendorTree | None = None
    vendor_tree_ready: VendorTreeReady | None = None

    def on_fetch_package(self, package_id: PackageId) -> Path:
        if self.fetch_package is None:
            raise ValidationError(
                "Toolchain does not provide a fetch hook.",
                context={"hook": "on_fetch_package", "package": str(package_id)},
            )
        return self.fetch_package(package_id)

    def on_prepare_vendor_tree(self, lock_text: str) -> tuple[str, Path]:
        if self.prepare_vendor_tree is None:
            raise ValidationError(
                "Toolchain does not provide a vendor preparation hook.",
                context={"hook": "on_prepare_vendor_tree"},
            )
        return self.prepare_vendor_tree(lock_text)

    def on_vendor_tree_ready(self, vendor_dir: Path) -> Path:
        if self.vendor_tree_ready is None:
            return vendor_dir
        return self.vendor_tree_ready(vendor_dir)
