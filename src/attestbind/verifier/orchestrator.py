"""Verification orchestrator.

Runs the stages of one verification strictly in order:

    start -> credential_captured -> report_fetched -> authenticity_checked
          -> binding_compared -> trusted | mismatch | unverifiable

Each stage either advances the run context or raises a VerificationError; the
first error ends the run. The host key and the report come out of the same
transfer session, so the fingerprint is always the key of the machine that
served the report.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence

from ..binding.compare import BindingMatch, compare_bindings
from ..binding.value import BindingValue
from ..obs.prom import observe_outcome, observe_stage
from ..report.authenticity import AuthenticityResult, AuthenticityVerifier
from ..report.bundle import ReportBundle
from ..report.layout import SnpReportExtractor
from ..report.machine import MachineDefinition
from ..transport.fingerprint import SUPPORTED_ALGS, TransportFingerprint, capture_fingerprint
from ..transport.known_hosts import HostKey, KnownHostsStore
from ..utils.logging import get_logger
from .errors import BindingMismatch, Inauthentic, MalformedField, TransferFailed, VerificationError
from .models import State, VerificationOutcome, verdict_for

log = get_logger()


class SessionTransport(Protocol):
    def fetch_report(self, store: KnownHostsStore, out_dir: str | Path) -> ReportBundle:
        ...


class ReportFieldExtractor(Protocol):
    def extract_report_data(self, report: ReportBundle) -> bytes:
        ...


@dataclass
class _Run:
    store: KnownHostsStore
    state: State = State.START
    report: Optional[ReportBundle] = None
    transfer_error: Optional[TransferFailed] = None
    host_key: Optional[HostKey] = None
    fingerprint: Optional[TransportFingerprint] = None
    derived: Optional[BindingValue] = None
    embedded: Optional[BindingValue] = None
    results: List[AuthenticityResult] = field(default_factory=list)


class Verifier:
    def __init__(
        self,
        transport: SessionTransport,
        authenticity: Sequence[AuthenticityVerifier],
        machine: MachineDefinition,
        out_dir: str | Path,
        extractor: Optional[ReportFieldExtractor] = None,
        store_factory: Callable[[], KnownHostsStore] = KnownHostsStore,
        fingerprint_hash: str = "sha256",
    ):
        if not authenticity:
            raise ValueError("at least one authenticity verifier is required")
        if fingerprint_hash not in SUPPORTED_ALGS:
            raise ValueError(f"unsupported fingerprint hash {fingerprint_hash!r}")
        self.transport = transport
        self.authenticity = list(authenticity)
        self.machine = machine
        self.out_dir = Path(out_dir)
        self.extractor = extractor or SnpReportExtractor()
        self.store_factory = store_factory
        self.fingerprint_hash = fingerprint_hash

    # -- stages ---------------------------------------------------------------

    def _open_session(self, run: _Run) -> None:
        # The transfer is the session; its outcome is judged after the credential.
        try:
            run.report = self.transport.fetch_report(run.store, self.out_dir)
        except TransferFailed as e:
            run.transfer_error = e

    def _capture_credential(self, run: _Run) -> None:
        run.host_key, run.fingerprint = capture_fingerprint(run.store, self.fingerprint_hash)
        run.derived = BindingValue.from_fingerprint(run.fingerprint)
        run.state = State.CREDENTIAL_CAPTURED
        log.info(f"guest host key {run.host_key.key_type} {run.fingerprint.openssh()}")

    def _receive_report(self, run: _Run) -> None:
        if run.transfer_error is not None:
            raise run.transfer_error
        if run.report is None:
            raise TransferFailed("transport returned no report")
        run.state = State.REPORT_FETCHED

    def _check_authenticity(self, run: _Run) -> None:
        for verifier in self.authenticity:
            log.info(f"verifying attestation report with {verifier.name}")
            res = verifier.verify(run.report, self.machine, run.derived)
            run.results.append(res)
            if not res.authentic:
                raise Inauthentic(f"{res.verifier}: {res.reason or 'rejected'}")
        run.state = State.AUTHENTICITY_CHECKED

    def _compare_binding(self, run: _Run) -> None:
        try:
            slot = self.extractor.extract_report_data(run.report)
        except OSError as e:
            raise TransferFailed(f"transferred report is unreadable: {e}") from e
        run.embedded = BindingValue.from_report_slot(slot)
        for res in run.results:
            if res.reported_binding is None:
                continue
            if BindingValue.from_report_slot(res.reported_binding) != run.embedded:
                raise MalformedField(f"{res.verifier} reports different report data than the report file")
        run.state = State.BINDING_COMPARED
        if compare_bindings(run.derived, run.embedded) is not BindingMatch.MATCH:
            raise BindingMismatch("report data does not match the SSH host key fingerprint")

    # -- driver ---------------------------------------------------------------

    def verify(self) -> VerificationOutcome:
        stages = (
            self._open_session,
            self._capture_credential,
            self._receive_report,
            self._check_authenticity,
            self._compare_binding,
        )
        with self.store_factory() as store:
            # A pin from an earlier run never outlives the start of a new one.
            store.revoke()
            run = _Run(store=store)
            error: Optional[VerificationError] = None
            for stage in stages:
                started = time.monotonic()
                try:
                    stage(run)
                except VerificationError as e:
                    error = e
                    break
                finally:
                    observe_stage(stage.__name__.lstrip("_"), time.monotonic() - started)
            outcome = self._outcome(run, error)
            if outcome.trusted:
                store.commit()
        observe_outcome(outcome.verdict.value, outcome.failure_kind.value if outcome.failure_kind else None)
        if outcome.trusted:
            log.info("verification succeeded")
        else:
            log.error(f"verification failed in state {outcome.state.value}: {outcome.reason}")
        return outcome

    def _outcome(self, run: _Run, error: Optional[VerificationError]) -> VerificationOutcome:
        kind = error.kind if error is not None else None
        return VerificationOutcome(
            verdict=verdict_for(kind),
            state=run.state,
            failure_kind=kind,
            reason=error.reason if error is not None else None,
            host_key_type=run.host_key.key_type if run.host_key else None,
            fingerprint=run.fingerprint.openssh() if run.fingerprint else None,
            derived_binding=run.derived.display() if run.derived else None,
            embedded_binding=run.embedded.display() if run.embedded else None,
            verifiers=[r.verifier for r in run.results if r.authentic],
        )
