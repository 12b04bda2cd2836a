"""Adapters for the external report authenticity verifiers.

Both wrap command line tools: the project's ``verify_report`` binary (signature
chain plus expected launch measurement from the VM definition plus expected
report data) and AMD's ``snpguest`` (certificate chain and report signature
against the KDS-issued VCEK).
"""
from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from pydantic import BaseModel

from ..binding.value import BindingValue
from ..utils.logging import get_logger
from .bundle import ReportBundle
from .machine import MachineDefinition

log = get_logger()


class AuthenticityResult(BaseModel):
    authentic: bool
    verifier: str
    reason: Optional[str] = None
    reported_binding: Optional[bytes] = None


class AuthenticityVerifier(Protocol):
    name: str

    def verify(self, report: ReportBundle, machine: MachineDefinition, expected: BindingValue) -> AuthenticityResult:
        ...


def _tail(text: str, limit: int = 400) -> str:
    text = (text or "").strip()
    return text[-limit:] if len(text) > limit else text


def _run(cmd: Sequence[str], timeout: float) -> subprocess.CompletedProcess | str:
    """Run cmd; returns the completed process, or a failure reason string."""
    log.debug("exec: " + " ".join(str(c) for c in cmd))
    try:
        return subprocess.run([str(c) for c in cmd], capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError:
        return f"{cmd[0]} not found"
    except subprocess.TimeoutExpired:
        return f"{Path(str(cmd[0])).name} timed out after {timeout:g}s"


class VerifyReportCommand:
    name = "verify_report"

    def __init__(self, binary: str | Path, timeout: float = 120.0):
        self.binary = str(binary)
        self.timeout = timeout

    def command(self, report: ReportBundle, machine: MachineDefinition, expected: BindingValue) -> List[str]:
        return [
            self.binary,
            "--input", str(report.json_path),
            "--vm-definition", str(machine.path),
            "--report-data", expected.b64(),
        ]

    def verify(self, report: ReportBundle, machine: MachineDefinition, expected: BindingValue) -> AuthenticityResult:
        if report.json_path is None:
            return AuthenticityResult(authentic=False, verifier=self.name, reason="report.json was not transferred")
        if machine.path is None:
            return AuthenticityResult(authentic=False, verifier=self.name, reason="machine definition has no file on disk")
        proc = _run(self.command(report, machine, expected), self.timeout)
        if isinstance(proc, str):
            return AuthenticityResult(authentic=False, verifier=self.name, reason=proc)
        if proc.returncode != 0:
            return AuthenticityResult(
                authentic=False,
                verifier=self.name,
                reason=_tail(proc.stderr) or _tail(proc.stdout) or f"exit status {proc.returncode}",
            )
        return AuthenticityResult(authentic=True, verifier=self.name)


def parse_display_report_data(text: str) -> Optional[bytes]:
    """Pull the "Report Data:" hex block out of `snpguest display report` output."""
    lines = text.splitlines()
    for i, line in enumerate(lines):
        if line.strip().startswith("Report Data:"):
            hex_chunks: List[str] = []
            for follow in lines[i + 1:]:
                if not follow.strip():
                    break
                hex_chunks.append("".join(follow.split()))
            try:
                return bytes.fromhex("".join(hex_chunks))
            except ValueError:
                return None
    return None


class SnpguestVerifier:
    name = "snpguest"

    def __init__(self, binary: str = "snpguest", certs_dir: str | Path | None = None, timeout: float = 120.0):
        self.binary = binary
        self.certs_dir = Path(certs_dir) if certs_dir else None
        self.timeout = timeout

    def commands(self, report: ReportBundle, machine: MachineDefinition) -> List[List[str]]:
        certs = str(self.certs_dir or report.directory)
        model = machine.processor_model()
        rbin = str(report.bin_path)
        return [
            [self.binary, "fetch", "ca", "pem", certs, model],
            [self.binary, "fetch", "vcek", "-p", model, "pem", certs, rbin],
            [self.binary, "verify", "attestation", certs, rbin],
        ]

    def verify(self, report: ReportBundle, machine: MachineDefinition, expected: BindingValue) -> AuthenticityResult:
        if report.bin_path is None:
            return AuthenticityResult(authentic=False, verifier=self.name, reason="report.bin was not transferred")
        for cmd in self.commands(report, machine):
            proc = _run(cmd, self.timeout)
            step = " ".join(cmd[1:3])
            if isinstance(proc, str):
                return AuthenticityResult(authentic=False, verifier=self.name, reason=proc)
            if proc.returncode != 0:
                return AuthenticityResult(
                    authentic=False,
                    verifier=self.name,
                    reason=f"{step}: " + (_tail(proc.stderr) or f"exit status {proc.returncode}"),
                )
        reported = None
        proc = _run([self.binary, "display", "report", str(report.bin_path)], self.timeout)
        if not isinstance(proc, str) and proc.returncode == 0:
            reported = parse_display_report_data(proc.stdout)
        if reported is None:
            log.warning("snpguest verified the report but its Report Data could not be read back")
        return AuthenticityResult(authentic=True, verifier=self.name, reported_binding=reported)
