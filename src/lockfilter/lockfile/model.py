"""Lock document typed model."""

from __future__ import annotations

import re
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

REF_PATTERN = re.compile(r"^(?P<name>\S+)(?: (?P<version>\S+))?(?: \((?P<source>[^)]+)\))?$")


@dataclass(frozen=True, slots=True, order=True)
class PackageId:
    name: str
    version: str

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass(frozen=True, slots=True)
class PackageRef:
    """A dependency reference, qualified as far as the lock writer needed."""

    name: str
    version: str | None = None
    source: str | None = None

    @classmethod
    def parse(cls, raw: str) -> PackageRef:
        match = REF_PATTERN.fullmatch(raw.strip())
        if match is None:
            raise ValueError(f"Unparseable dependency reference: {raw!r}")
        return cls(
            name=match.group("name"),
            version=match.group("version"),
            source=match.group("source"),
        )

    def __str__(self) -> str:
        text = self.name
        if self.version is not None:
            text += f" {self.version}"
        if self.source is not None:
            text += f" ({self.source})"
        return text


@dataclass(frozen=True, slots=True)
class PackageEntry:
    id: PackageId
    source: str | None = None
    checksum: str | None = None
    dependencies: tuple[PackageRef, ...] = ()
    extra: Mapping[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.id.name

    @property
    def version(self) -> str:
        return self.id.version


@dataclass(frozen=True, slots=True)
class LockDocument:
    header: str = ""
    packages: tuple[PackageEntry, ...] = ()
    trailer: tuple[str, ...] = ()

    @property
    def format_version(self) -> int | None:
        try:
            parsed = tomllib.loads(self.header)
        except tomllib.TOMLDecodeError:
            return None
        value = parsed.get("version")
        return value if isinstance(value, int) else None

    def names(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(entry.name for entry in self.packages))

    def get(self, package_id: PackageId) -> PackageEntry | None:
        for entry in self.packages:
            if entry.id == package_id:
                return entry
        return None

    def versions_of(self, name: str) -> tuple[str, ...]:
        return tuple(entry.version for entry in self.packages if entry.name == name)


__all__ = ["LockDocument", "PackageEntry", "PackageId", "PackageRef"]
