"""Post-vendor pruning of package directories.

Vendor trees come in two shapes: ``cargo vendor`` writes package
directories directly under the root, while crane groups them under one
directory per source. Both are covered by scanning two levels deep.
"""

from __future__ import annotations

import json
import re
import shutil
import tomllib
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from lockfilter.errors import VendorTreeError
from lockfilter.lockfile.model import PackageId
from lockfilter.matcher import ExclusionRuleSet, matches
from lockfilter.observability import StructuredLogger
from lockfilter.stubs.synthesize import CHECKSUM_FILE, MANIFEST_FILE

VERSIONED_DIR = re.compile(r"^(?P<name>.+?)-(?P<version>\d+\.\d+\.\d+(?:[-+].*)?)$")


@dataclass(frozen=True, slots=True)
class VendorPackage:
    path: Path
    name: str
    version: str | None
    checksum: str | None

    @property
    def id(self) -> PackageId | None:
        if self.version is None:
            return None
        return PackageId(name=self.name, version=self.version)


@dataclass(frozen=True, slots=True)
class VendorPruneResult:
    vendor_dir: Path
    removed: tuple[VendorPackage, ...] = ()
    replaced: tuple[VendorPackage, ...] = ()
    retained: int = 0

    @property
    def removed_names(self) -> tuple[str, ...]:
        touched = (*self.removed, *self.replaced)
        return tuple(dict.fromkeys(package.name for package in touched))


def scan_vendor_tree(vendor_dir: str | Path, *, depth: int = 2) -> tuple[VendorPackage, ...]:
    """List package directories up to *depth* levels below *vendor_dir*."""
    root = Path(vendor_dir)
    if not root.is_dir():
        raise VendorTreeError(
            "Vendor directory does not exist.",
            hint="Run the vendor step before pruning.",
            context={"path": str(root)},
        )
    found: list[VendorPackage] = []
    _scan(root, remaining=depth, found=found)
    return tuple(found)


def prune_vendor_tree(
    vendor_dir: str | Path,
    ruleset: ExclusionRuleSet,
    *,
    depth: int = 2,
    replace_with: Callable[[VendorPackage], Path | None] | None = None,
    logger: StructuredLogger | None = None,
    strategy: str | None = None,
) -> VendorPruneResult:
    """Delete excluded package directories, or swap them for stubs.

    When *replace_with* is given it is called with each excluded package
    after its directory has been removed and writes a replacement at the
    same path. Returning None leaves the package removed.
    """
    root = Path(vendor_dir)
    removed: list[VendorPackage] = []
    replaced: list[VendorPackage] = []
    retained = 0
    for package in scan_vendor_tree(root, depth=depth):
        if not matches(package.name, ruleset):
            retained += 1
            continue
        _remove(package.path)
        replacement = None
        if replace_with is not None and package.version is not None:
            replacement = replace_with(package)
        if replacement is not None:
            replaced.append(package)
            operation, message = "vendor_replace", "Replaced vendored package with a stub."
        else:
            removed.append(package)
            operation, message = "vendor_remove", "Removed vendored package directory."
        if logger is not None:
            logger.log(
                operation=operation,
                strategy=strategy,
                package=package.name if package.id is None else str(package.id),
                message=message,
                extra={"path": str(package.path.relative_to(root))},
            )
    return VendorPruneResult(
        vendor_dir=root,
        removed=tuple(removed),
        replaced=tuple(replaced),
        retained=retained,
    )


def _scan(directory: Path, *, remaining: int, found: list[VendorPackage]) -> None:
    for child in sorted(directory.iterdir()):
        if not child.is_dir():
            continue
        package = _read_package(child)
        if package is not None:
            found.append(package)
        elif remaining > 1:
            _scan(child, remaining=remaining - 1, found=found)


def _read_package(path: Path) -> VendorPackage | None:
    manifest_path = path / MANIFEST_FILE
    if not manifest_path.is_file():
        return None
    name, version = _identity_from_manifest(manifest_path)
    dir_name, dir_version = _identity_from_dirname(path.name)
    if name is None:
        name, version = dir_name, dir_version
    elif version is None and dir_name == name:
        version = dir_version
    return VendorPackage(
        path=path,
        name=name,
        version=version,
        checksum=_vendored_checksum(path / CHECKSUM_FILE),
    )


def _identity_from_manifest(path: Path) -> tuple[str | None, str | None]:
    try:
        manifest = tomllib.loads(path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, UnicodeDecodeError):
        return None, None
    package = manifest.get("package")
    if not isinstance(package, dict):
        return None, None
    name = package.get("name")
    version = package.get("version")
    return (
        name if isinstance(name, str) and name else None,
        version if isinstance(version, str) and version else None,
    )


def _identity_from_dirname(dirname: str) -> tuple[str, str | None]:
    match = VERSIONED_DIR.fullmatch(dirname)
    if match is None:
        return dirname, None
    return match.group("name"), match.group("version")


def _vendored_checksum(path: Path) -> str | None:
    if not path.is_file():
        return None
    try:
        parsed = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    value = parsed.get("package") if isinstance(parsed, dict) else None
    return value if isinstance(value, str) else None


def _remove(path: Path) -> None:
    if path.is_symlink():
        path.unlink()
    else:
        shutil.rmtree(path)
