"""Per-run SSH trust store.

A fresh known_hosts file lives in a private temporary directory for the
duration of one verification run. The transfer writes the guest's host key
into it; the fingerprint extractor reads it back. Nothing outside the run
touches the file unless the caller commits it after a trusted verdict.
"""
from __future__ import annotations

import base64
import binascii
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..utils.logging import get_logger

log = get_logger()

# Marker lines (@cert-authority / @revoked) never describe the session's host key.
_MARKERS = ("@cert-authority", "@revoked")


@dataclass(frozen=True)
class HostKey:
    key_type: str
    blob: bytes
    hosts: str = ""

    def openssh(self) -> str:
        return f"{self.key_type} {base64.b64encode(self.blob).decode()}"


def parse_known_hosts_line(line: str) -> Optional[HostKey]:
    """Parse one known_hosts line; returns None for blanks, comments and marker lines."""
    line = line.strip()
    if not line or line.startswith("#") or line.startswith(_MARKERS):
        return None
    parts = line.split()
    if len(parts) < 3:
        raise ValueError(f"truncated known_hosts entry: {line[:40]!r}")
    hosts, key_type, b64 = parts[0], parts[1], parts[2]
    try:
        blob = base64.b64decode(b64, validate=True)
    except binascii.Error as e:
        raise ValueError(f"invalid base64 key for {hosts}") from e
    return HostKey(key_type=key_type, blob=blob, hosts=hosts)


def read_known_hosts(path: str | os.PathLike) -> List[HostKey]:
    keys: List[HostKey] = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            hk = parse_known_hosts_line(line)
            if hk is not None:
                keys.append(hk)
    return keys


class KnownHostsStore:
    """Scoped known_hosts file; create per run, discard after use."""

    def __init__(self, persist_to: str | os.PathLike | None = None):
        self.persist_to = Path(persist_to) if persist_to else None
        self._tmpdir: Optional[tempfile.TemporaryDirectory] = None
        self.path: Optional[Path] = None

    def __enter__(self) -> "KnownHostsStore":
        self._tmpdir = tempfile.TemporaryDirectory(prefix="attestbind-")
        self.path = Path(self._tmpdir.name) / "known_hosts"
        self.path.touch(mode=0o600)
        return self

    def __exit__(self, *exc) -> None:
        if self._tmpdir is not None:
            self._tmpdir.cleanup()
        self._tmpdir = None
        self.path = None

    def keys(self) -> List[HostKey]:
        if self.path is None:
            raise RuntimeError("trust store used outside of its run")
        return read_known_hosts(self.path)

    def commit(self) -> Optional[Path]:
        """Copy the store to persist_to so the operator can reuse the pinned key."""
        if self.persist_to is None or self.path is None:
            return None
        self.persist_to.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(self.path, self.persist_to)
        log.info(f"pinned host key written to {self.persist_to}")
        return self.persist_to

    def revoke(self) -> None:
        """Remove a previously committed file so a stale pin is never reused."""
        if self.persist_to is not None and self.persist_to.exists():
            self.persist_to.unlink()
            log.info(f"removed stale pinned host key {self.persist_to}")
