"""Failure taxonomy for a verification run.

Every stage raises one of these; only the orchestrator catches them and turns
them into a verdict.
"""
from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    IDENTITY_UNAVAILABLE = "identity_unavailable"
    TRANSFER_FAILED = "transfer_failed"
    INAUTHENTIC = "inauthentic"
    MISMATCH = "mismatch"
    MALFORMED_FIELD = "malformed_field"


class VerificationError(Exception):
    kind: FailureKind

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class IdentityUnavailable(VerificationError):
    """No usable host credential was captured from the session."""

    kind = FailureKind.IDENTITY_UNAVAILABLE


class TransferFailed(VerificationError):
    """The attestation report could not be fetched."""

    kind = FailureKind.TRANSFER_FAILED


class Inauthentic(VerificationError):
    """Signature chain or measurement check rejected the report."""

    kind = FailureKind.INAUTHENTIC


class BindingMismatch(VerificationError):
    kind = FailureKind.MISMATCH


class MalformedField(VerificationError):
    """The report's binding slot could not be decoded into comparable form."""

    kind = FailureKind.MALFORMED_FIELD
