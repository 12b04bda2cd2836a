"""Report transfer over scp.

The scp invocation is the session whose host key gets bound: it records the
key into the run's trust store (accept-new) while copying the report files.
"""
from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List

from ..report.bundle import ReportBundle
from ..utils.logging import get_logger
from ..verifier.errors import TransferFailed
from .known_hosts import KnownHostsStore

log = get_logger()


def _tail(text: str, limit: int = 400) -> str:
    text = (text or "").strip()
    return text[-limit:] if len(text) > limit else text


class ScpTransport:
    def __init__(
        self,
        host: str,
        port: int = 2222,
        user: str = "ubuntu",
        remote_report: str = "/etc/report*",
        timeout: float = 60.0,
        scp_bin: str = "scp",
    ):
        self.host = host
        self.port = int(port)
        self.user = user
        self.remote_report = remote_report
        self.timeout = timeout
        self.scp_bin = scp_bin

    def command(self, store: KnownHostsStore, out_dir: Path) -> List[str]:
        return [
            self.scp_bin,
            "-o", "StrictHostKeyChecking=accept-new",
            "-o", f"UserKnownHostsFile={store.path}",
            "-o", "GlobalKnownHostsFile=/dev/null",
            "-o", "HashKnownHosts=no",
            "-o", "UpdateHostKeys=no",
            "-o", "BatchMode=yes",
            "-P", str(self.port),
            f"{self.user}@{self.host}:{self.remote_report}",
            str(out_dir),
        ]

    def connect_command(self, known_hosts: str | Path) -> str:
        return f"ssh -p {self.port} -o UserKnownHostsFile={known_hosts} {self.user}@{self.host}"

    def fetch_report(self, store: KnownHostsStore, out_dir: str | Path) -> ReportBundle:
        out = Path(out_dir)
        out.mkdir(parents=True, exist_ok=True)
        # Files left by an earlier run must not be mistaken for this session's report.
        for stale in (out / "report.bin", out / "report.json"):
            stale.unlink(missing_ok=True)
        cmd = self.command(store, out)
        log.info(f"fetching attestation report from {self.user}@{self.host}:{self.port}")
        log.debug("scp command: " + " ".join(cmd))
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError as e:
            raise TransferFailed(f"{self.scp_bin} not found") from e
        except subprocess.TimeoutExpired as e:
            raise TransferFailed(f"transfer timed out after {self.timeout:g}s") from e
        if proc.returncode != 0:
            raise TransferFailed(f"scp exited with {proc.returncode}: {_tail(proc.stderr)}")
        bundle = ReportBundle.from_dir(out)
        if bundle.empty:
            raise TransferFailed(f"no report.bin or report.json under {out} after transfer")
        return bundle
