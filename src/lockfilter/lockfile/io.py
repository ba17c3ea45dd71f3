"""Lock document parser and renderer.

The document is cut into TOML table sections at header lines. Everything
before the first section is the opaque header; each ``[[package]]`` section
is parsed with the TOML grammar into a :class:`PackageEntry`; any other
section (``[metadata]``, ``[[patch.unused]]``) is carried through verbatim.
Rendering writes packages the way Cargo does, so a rendered document is a
fixed point of ``render_lock(parse_lock(...))``.
"""

from __future__ import annotations

import re
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from lockfilter.errors import LockfileError, MalformedEntryError
from lockfilter.lockfile.encode import toml_key, toml_value
from lockfilter.lockfile.model import LockDocument, PackageEntry, PackageId, PackageRef

PACKAGE_HEADER = "[[package]]"
PACKAGE_PREFIX = "package."
KNOWN_FIELDS = ("name", "version", "source", "checksum", "dependencies")

SECTION_HEADER = re.compile(r"^\s*(\[\[?)\s*([A-Za-z0-9_.\-]+)\s*(\]\]?)\s*(#.*)?$")


@dataclass(frozen=True, slots=True)
class _Section:
    header: str
    lines: tuple[str, ...]

    @property
    def is_package(self) -> bool:
        return self.header == PACKAGE_HEADER

    @property
    def is_package_subtable(self) -> bool:
        return self.header.strip("[]").startswith(PACKAGE_PREFIX)

    @property
    def text(self) -> str:
        return "\n".join((self.header, *self.lines)).rstrip() + "\n"


def parse_lock(raw: str) -> LockDocument:
    header_lines, sections = _split_sections(raw)
    packages: list[PackageEntry] = []
    trailer: list[str] = []
    seen: dict[PackageId, int] = {}
    for section in sections:
        if section.is_package_subtable:
            raise MalformedEntryError(
                "Package sub-tables are not part of the lock format.",
                index=max(len(packages) - 1, 0),
                hint="Write nested values inline in the package entry.",
                context={"section": section.header},
            )
        if not section.is_package:
            trailer.append(section.text)
            continue
        index = len(packages)
        entry = _parse_entry(section, index=index)
        if entry.id in seen:
            raise MalformedEntryError(
                "Duplicate package entry in lock document.",
                index=index,
                hint="Each (name, version) pair may appear only once.",
                context={"package": str(entry.id), "first_index": str(seen[entry.id])},
            )
        seen[entry.id] = index
        packages.append(entry)
    return LockDocument(
        header="\n".join(header_lines),
        packages=tuple(packages),
        trailer=tuple(trailer),
    )


def render_lock(doc: LockDocument) -> str:
    parts: list[str] = []
    header = doc.header.rstrip()
    if header:
        parts.append(header + "\n")
    parts.extend(_render_entry(entry) for entry in doc.packages)
    parts.extend(section.rstrip() + "\n" for section in doc.trailer)
    return "\n".join(parts)


def read_lock(path: str | Path) -> LockDocument:
    return parse_lock(read_lock_text(path))


def read_lock_text(path: str | Path) -> str:
    lock_path = Path(path)
    try:
        return lock_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise LockfileError(
            "Lock document does not exist.",
            hint="Run `cargo generate-lockfile` before filtering.",
            context={"path": str(lock_path)},
        ) from exc
    except UnicodeDecodeError as exc:
        raise LockfileError(
            "Lock document is not valid UTF-8.",
            hint=str(exc),
            context={"path": str(lock_path)},
        ) from exc


def write_lock(doc: LockDocument, path: str | Path) -> Path:
    lock_path = Path(path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock_path.write_text(render_lock(doc), encoding="utf-8")
    return lock_path


def _split_sections(raw: str) -> tuple[list[str], list[_Section]]:
    header_lines: list[str] = []
    sections: list[_Section] = []
    current_header: str | None = None
    current_lines: list[str] = []
    for line in raw.splitlines():
        match = SECTION_HEADER.match(line)
        if match is not None and _balanced(match.group(1), match.group(3)):
            if current_header is not None:
                sections.append(_Section(current_header, tuple(current_lines)))
            current_header = f"{match.group(1)}{match.group(2)}{match.group(3)}"
            current_lines = []
        elif current_header is None:
            header_lines.append(line)
        else:
            current_lines.append(line)
    if current_header is not None:
        sections.append(_Section(current_header, tuple(current_lines)))
    return header_lines, sections


def _balanced(opening: str, closing: str) -> bool:
    return len(opening) == len(closing)


def _parse_entry(section: _Section, *, index: int) -> PackageEntry:
    body = "\n".join(section.lines)
    try:
        table = tomllib.loads(body)
    except tomllib.TOMLDecodeError as exc:
        raise MalformedEntryError(
            "Package entry is not valid TOML.",
            index=index,
            hint=str(exc),
        ) from exc

    name = _required_str(table, "name", index=index)
    version = _required_str(table, "version", index=index)
    source = _optional_str(table, "source", index=index)
    checksum = _optional_str(table, "checksum", index=index)
    dependencies = _dependencies(table, index=index)
    extra = {key: value for key, value in table.items() if key not in KNOWN_FIELDS}
    return PackageEntry(
        id=PackageId(name=name, version=version),
        source=source,
        checksum=checksum,
        dependencies=dependencies,
        extra=extra,
    )


def _required_str(table: dict[str, Any], key: str, *, index: int) -> str:
    value = table.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedEntryError(
            f"Package entry is missing a valid `{key}` field.",
            index=index,
            context={"field": key},
        )
    return value


def _optional_str(table: dict[str, Any], key: str, *, index: int) -> str | None:
    value = table.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedEntryError(
            f"Package entry has an invalid `{key}` field.",
            index=index,
            context={"field": key},
        )
    return value


def _dependencies(table: dict[str, Any], *, index: int) -> tuple[PackageRef, ...]:
    value = table.get("dependencies", [])
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise MalformedEntryError(
            "Package entry has an invalid `dependencies` list.",
            index=index,
            context={"field": "dependencies"},
        )
    refs: list[PackageRef] = []
    for item in value:
        try:
            refs.append(PackageRef.parse(item))
        except ValueError as exc:
            raise MalformedEntryError(
                "Package entry has an unparseable dependency reference.",
                index=index,
                context={"field": "dependencies", "reference": item},
            ) from exc
    return tuple(refs)


def _render_entry(entry: PackageEntry) -> str:
    lines = [
        PACKAGE_HEADER,
        f"name = {toml_value(entry.name)}",
        f"version = {toml_value(entry.version)}",
    ]
    if entry.source is not None:
        lines.append(f"source = {toml_value(entry.source)}")
    if entry.checksum is not None:
        lines.append(f"checksum = {toml_value(entry.checksum)}")
    if entry.dependencies:
        lines.append("dependencies = [")
        lines.extend(f" {toml_value(str(ref))}," for ref in entry.dependencies)
        lines.append("]")
    for key, value in entry.extra.items():
        lines.append(f"{toml_key(key)} = {toml_value(value)}")
    return "\n".join(lines) + "\n"


__all__ = ["parse_lock", "read_lock", "read_lock_text", "render_lock", "write_lock"]
