"""Checksums and atomic file writes shared by the cache, manifests and pointer."""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any

_CHUNK = 1024 * 1024


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, indented.

    Manifests are read by external tooling and by people, so unlike a
    hashing canonical form they keep an indent.
    """
    return json.dumps(obj, sort_keys=True, indent=2, ensure_ascii=True).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def sha256_file(path: Path) -> str:
    """Return the SHA-256 hex digest of a file, read in chunks."""
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


def file_checksum(path: Path) -> str:
    """Checksum in the ``sha256:<hex>`` form recorded in metadata."""
    return f"sha256:{sha256_file(path)}"


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write *data* to *path* so readers never observe a partial file.

    The bytes go to a temp file in the same directory which then replaces
    the target in one ``os.replace``.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def atomic_write_text(path: Path, text: str) -> None:
    atomic_write_bytes(path, text.encode("utf-8"))
