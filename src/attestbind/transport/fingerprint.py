"""SSH host key fingerprints (the derived side of the channel binding)."""
from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass
from typing import Tuple

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from ..verifier.errors import IdentityUnavailable
from .known_hosts import HostKey, KnownHostsStore

SUPPORTED_ALGS = ("sha256", "sha384", "sha512", "sha1", "md5")


@dataclass(frozen=True)
class TransportFingerprint:
    algorithm: str
    digest: bytes

    def openssh(self) -> str:
        # Same rendering as `ssh-keygen -l`: MD5 as colon hex, everything else unpadded base64.
        if self.algorithm == "md5":
            return "MD5:" + ":".join(f"{b:02x}" for b in self.digest)
        return f"{self.algorithm.upper()}:" + base64.b64encode(self.digest).decode().rstrip("=")


def validate_host_key(host_key: HostKey) -> None:
    try:
        serialization.load_ssh_public_key(host_key.openssh().encode())
    except (ValueError, UnsupportedAlgorithm) as e:
        raise IdentityUnavailable(f"host key {host_key.key_type} is not a valid public key: {e}") from e


def fingerprint_host_key(host_key: HostKey, algorithm: str = "sha256") -> TransportFingerprint:
    if algorithm not in SUPPORTED_ALGS:
        raise ValueError(f"unsupported fingerprint hash {algorithm!r}")
    validate_host_key(host_key)
    return TransportFingerprint(algorithm, hashlib.new(algorithm, host_key.blob).digest())


def capture_fingerprint(store: KnownHostsStore, algorithm: str = "sha256") -> Tuple[HostKey, TransportFingerprint]:
    """Fingerprint the one host key the session recorded into store."""
    try:
        keys = store.keys()
    except (OSError, ValueError) as e:
        raise IdentityUnavailable(f"trust store unreadable: {e}") from e
    distinct = {k.blob: k for k in keys}
    if not distinct:
        raise IdentityUnavailable("no host key was captured; the SSH session was never established")
    if len(distinct) > 1:
        types = ", ".join(sorted(k.key_type for k in distinct.values()))
        raise IdentityUnavailable(f"session recorded {len(distinct)} different host keys ({types})")
    host_key = next(iter(distinct.values()))
    return host_key, fingerprint_host_key(host_key, algorithm)
