from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from .errors import FailureKind


class Verdict(str, Enum):
    TRUSTED = "trusted"
    MISMATCH = "mismatch"
    UNVERIFIABLE = "unverifiable"


class State(str, Enum):
    START = "start"
    CREDENTIAL_CAPTURED = "credential_captured"
    REPORT_FETCHED = "report_fetched"
    AUTHENTICITY_CHECKED = "authenticity_checked"
    BINDING_COMPARED = "binding_compared"


# Failures that mean "verified, and it is not the machine you think".
_MISMATCH_KINDS = {FailureKind.MISMATCH, FailureKind.MALFORMED_FIELD}

_HEADLINES = {
    None: "TRUSTED: the attested guest is the machine behind this SSH session.",
    FailureKind.IDENTITY_UNAVAILABLE: "UNVERIFIABLE: no SSH host key was captured from the guest.",
    FailureKind.TRANSFER_FAILED: "UNVERIFIABLE: the attestation report could not be fetched from the guest.",
    FailureKind.INAUTHENTIC: "UNVERIFIABLE: the attestation report failed authenticity or measurement checks.",
    FailureKind.MISMATCH: (
        "MISMATCH: the report is authentic but is bound to a different SSH host key. "
        "Do not connect; this is what an interception looks like."
    ),
    FailureKind.MALFORMED_FIELD: (
        "MISMATCH: the report is authentic but its report data cannot be read as a host key fingerprint. "
        "Do not connect."
    ),
}


def verdict_for(kind: Optional[FailureKind]) -> Verdict:
    if kind is None:
        return Verdict.TRUSTED
    if kind in _MISMATCH_KINDS:
        return Verdict.MISMATCH
    return Verdict.UNVERIFIABLE


class VerificationOutcome(BaseModel):
    verdict: Verdict
    state: State
    failure_kind: Optional[FailureKind] = None
    reason: Optional[str] = None
    host_key_type: Optional[str] = None
    fingerprint: Optional[str] = None
    derived_binding: Optional[str] = None
    embedded_binding: Optional[str] = None
    verifiers: list[str] = []

    @property
    def trusted(self) -> bool:
        return self.verdict is Verdict.TRUSTED

    def headline(self) -> str:
        return _HEADLINES[self.failure_kind]

    def message(self) -> str:
        lines = [self.headline()]
        if self.reason:
            lines.append(f"  reason:       {self.reason}")
        if self.derived_binding is not None:
            lines.append(f"  fingerprint:  {self.derived_binding}")
        if self.embedded_binding is not None:
            lines.append(f"  report data:  {self.embedded_binding}")
        return "\n".join(lines)
