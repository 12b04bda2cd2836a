"""Verifier configuration loader.

Loads from environment first, then optional config/attestbind.yml if present.
Environment variables win over the file; CLI flags win over both.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Dict

import yaml
from dotenv import load_dotenv

from .transport.fingerprint import SUPPORTED_ALGS

load_dotenv()

_DEF_PATH = os.path.join(os.getcwd(), "config", "attestbind.yml")

SNPGUEST_MODES = ("auto", "on", "off")


@dataclass
class VerifierConfig:
    host: str = "localhost"
    port: int = 2222
    user: str = "ubuntu"
    remote_report: str = "/etc/report*"  # .bin and .json
    out_dir: str = "build/verity"
    known_hosts: str = "build/known_hosts"
    verify_report_bin: str = "build/bin/verify_report"
    snpguest_bin: str = "snpguest"
    snpguest: str = "auto"
    fingerprint_hash: str = "sha256"
    transfer_timeout_sec: float = 60.0
    verify_timeout_sec: float = 120.0
    metrics_textfile: str = ""
    log_level: str = "INFO"

    def __post_init__(self):
        if self.snpguest not in SNPGUEST_MODES:
            raise ValueError(f"snpguest must be one of {', '.join(SNPGUEST_MODES)}, got {self.snpguest!r}")
        if not 0 < int(self.port) < 65536:
            raise ValueError(f"invalid ssh port {self.port}")
        if self.fingerprint_hash not in SUPPORTED_ALGS:
            raise ValueError(f"fingerprint_hash must be one of {', '.join(SUPPORTED_ALGS)}, got {self.fingerprint_hash!r}")


_ENV_MAP = {
    "host": ("ATTESTBIND_HOST", str),
    "port": ("ATTESTBIND_PORT", int),
    "user": ("ATTESTBIND_USER", str),
    "remote_report": ("ATTESTBIND_REMOTE_REPORT", str),
    "out_dir": ("ATTESTBIND_OUT_DIR", str),
    "known_hosts": ("ATTESTBIND_KNOWN_HOSTS", str),
    "verify_report_bin": ("ATTESTBIND_VERIFY_REPORT_BIN", str),
    "snpguest_bin": ("ATTESTBIND_SNPGUEST_BIN", str),
    "snpguest": ("ATTESTBIND_SNPGUEST", lambda v: v.strip().lower()),
    "fingerprint_hash": ("ATTESTBIND_FINGERPRINT_HASH", lambda v: v.strip().lower()),
    "transfer_timeout_sec": ("ATTESTBIND_TRANSFER_TIMEOUT_SEC", float),
    "verify_timeout_sec": ("ATTESTBIND_VERIFY_TIMEOUT_SEC", float),
    "metrics_textfile": ("ATTESTBIND_METRICS_TEXTFILE", str),
    "log_level": ("ATTESTBIND_LOG_LEVEL", lambda v: v.strip().upper()),
}


def _read_file(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        file_cfg = yaml.safe_load(f) or {}
    if not isinstance(file_cfg, dict):
        raise ValueError(f"{path}: expected a mapping at top level")
    known = {f.name for f in fields(VerifierConfig)}
    unknown = sorted(set(file_cfg) - known)
    if unknown:
        raise ValueError(f"{path}: unknown keys {', '.join(unknown)}")
    return file_cfg


def load_config(path: str | None = None) -> VerifierConfig:
    data: Dict[str, Any] = _read_file(path or os.getenv("ATTESTBIND_CONFIG", _DEF_PATH))
    # YAML 1.1 reads bare on/off as booleans
    if isinstance(data.get("snpguest"), bool):
        data["snpguest"] = "on" if data["snpguest"] else "off"
    for k, (env, cast) in _ENV_MAP.items():
        if env in os.environ:
            try:
                data[k] = cast(os.environ[env])
            except ValueError as e:
                raise ValueError(f"invalid value for {env}: {os.environ[env]!r}") from e
    return VerifierConfig(**data)
