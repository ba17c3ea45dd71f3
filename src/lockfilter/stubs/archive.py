"""Deterministic `.crate` archives for fetch hooks that expect tarballs."""

from __future__ import annotations

import gzip
import io
import os
import tarfile
import uuid
from pathlib import Path

from lockfilter.stubs.synthesize import CHECKSUM_FILE, StubPackage


def pack_crate(stub: StubPackage) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.USTAR_FORMAT) as tar:
        for name, content in stub.files:
            # The checksum descriptor only exists in unpacked vendor directories.
            if name == CHECKSUM_FILE:
                continue
            info = tarfile.TarInfo(name=f"{stub.dirname}/{name}")
            info.size = len(content)
            info.mtime = 0
            info.mode = 0o644
            info.uid = 0
            info.gid = 0
            info.uname = ""
            info.gname = ""
            tar.addfile(info, io.BytesIO(content))
    return gzip.compress(buffer.getvalue(), mtime=0)


def write_crate(stub: StubPackage, directory: str | Path) -> Path:
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / f"{stub.dirname}.crate"
    temp_path = target_dir / f".{stub.dirname}.{uuid.uuid4().hex}.tmp"
    temp_path.write_bytes(pack_crate(stub))
    os.replace(temp_path, path)
    return path
