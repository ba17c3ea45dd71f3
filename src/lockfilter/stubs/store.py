"""Content-addressed stub store with manifest verification."""

from __future__ import annotations

import hashlib
import json
import os
import shutil
import tempfile
from pathlib import Path

from lockfilter.errors import StubSynthesisError
from lockfilter.lockfile.model import PackageId
from lockfilter.stubs.synthesize import StubPackage

MANIFEST_NAME = "manifest.json"


class StubStore:
    """Stubs live at ``<root>/<digest>/<name>-<version>/``.

    Entries are written into a private temporary directory and renamed into
    place, so concurrent builds materializing the same stub both end up with
    one verified copy.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, stub: StubPackage) -> Path:
        return self.root / stub.digest / stub.dirname

    def materialize(self, stub: StubPackage) -> Path:
        entry = self.root / stub.digest
        if entry.exists():
            self.verify(entry, expected=stub)
            return self.path_for(stub)

        temp_root = Path(tempfile.mkdtemp(prefix=".stub-", dir=str(self.root)))
        try:
            stub.write_to(temp_root / stub.dirname)
            (temp_root / MANIFEST_NAME).write_text(
                json.dumps(_manifest(stub), indent=2, sort_keys=True) + "\n",
                encoding="utf-8",
            )
            try:
                os.rename(temp_root, entry)
            except OSError:
                if not entry.exists():
                    raise
                self.verify(entry, expected=stub)
        finally:
            if temp_root.exists():
                shutil.rmtree(temp_root, ignore_errors=True)
        return self.path_for(stub)

    def lookup(self, package_id: PackageId) -> list[Path]:
        """Return every stored stub directory for *package_id*, ordered by digest."""
        dirname = f"{package_id.name}-{package_id.version}"
        return sorted(
            path
            for path in self.root.glob(f"*/{dirname}")
            if path.is_dir() and not path.parent.name.startswith(".")
        )

    def verify(self, entry: Path, *, expected: StubPackage | None = None) -> dict[str, object]:
        manifest = self._read_manifest(entry / MANIFEST_NAME)
        key = entry.name
        if manifest.get("digest") != key:
            raise StubSynthesisError(
                "Stub manifest digest does not match its store key.",
                hint="Delete the store entry and materialize the stub again.",
                context={"operation": "stub_store_verify", "key": key},
            )
        if expected is not None and expected.digest != key:
            raise StubSynthesisError(
                "Stub store entry does not belong to the requested stub.",
                context={"operation": "stub_store_verify", "key": key},
            )
        package_dir = entry / f"{manifest.get('name')}-{manifest.get('version')}"
        files = manifest.get("files")
        if not isinstance(files, dict):
            raise StubSynthesisError(
                "Stub manifest has invalid structure.",
                hint="Delete the store entry and materialize the stub again.",
                context={"operation": "stub_store_verify", "key": key},
            )
        for relative, expected_sha256 in sorted(files.items()):
            path = package_dir / relative
            actual = hashlib.sha256(path.read_bytes()).hexdigest() if path.is_file() else None
            if actual != expected_sha256:
                raise StubSynthesisError(
                    "Stub store file digest mismatch.",
                    hint="Delete the store entry and materialize the stub again.",
                    context={
                        "operation": "stub_store_verify",
                        "key": key,
                        "path": relative,
                        "expected": str(expected_sha256),
                        "actual": actual or "missing",
                    },
                )
        return manifest

    def _read_manifest(self, path: Path) -> dict[str, object]:
        try:
            parsed = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise StubSynthesisError(
                "Stub store entry has no manifest.",
                hint="Delete the store entry and materialize the stub again.",
                context={"operation": "stub_store_verify", "path": str(path)},
            ) from exc
        except json.JSONDecodeError as exc:
            raise StubSynthesisError(
                "Stub manifest is not valid JSON.",
                hint="Delete the store entry and materialize the stub again.",
                context={"operation": "stub_store_verify", "path": str(path)},
            ) from exc
        if not isinstance(parsed, dict):
            raise StubSynthesisError(
                "Stub manifest has invalid structure.",
                hint="Delete the store entry and materialize the stub again.",
                context={"operation": "stub_store_verify", "path": str(path)},
            )
        return parsed


def _manifest(stub: StubPackage) -> dict[str, object]:
    return {
        "digest": stub.digest,
        "name": stub.id.name,
        "version": stub.id.version,
        "mode": stub.mode,
        "checksum": stub.checksum,
        "features": list(stub.features),
        "files": {name: hashlib.sha256(content).hexdigest() for name, content in stub.files},
    }
