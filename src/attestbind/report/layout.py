"""SEV-SNP attestation report layout.

Only the fields the verifier displays or binds against are decoded. Offsets
follow the SEV-SNP ABI (ATTESTATION_REPORT structure, 1184 bytes).
"""
from __future__ import annotations

import json
import struct
from dataclasses import dataclass
from typing import Any, Dict

from ..verifier.errors import MalformedField
from .bundle import ReportBundle

REPORT_SIZE = 0x4A0
REPORT_DATA_OFFSET = 0x050
REPORT_DATA_SIZE = 64
MEASUREMENT_OFFSET = 0x090
MEASUREMENT_SIZE = 48

_HEADER = struct.Struct("<IIQ16s16sII")  # version, guest_svn, policy, family_id, image_id, vmpl, sig_algo


@dataclass(frozen=True)
class ReportSummary:
    version: int
    guest_svn: int
    policy: int
    family_id: bytes
    image_id: bytes
    vmpl: int
    signature_algo: int
    measurement: bytes
    report_data: bytes

    def as_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "guest_svn": self.guest_svn,
            "policy": f"0x{self.policy:x}",
            "family_id": self.family_id.hex(),
            "image_id": self.image_id.hex(),
            "vmpl": self.vmpl,
            "signature_algo": self.signature_algo,
            "measurement": self.measurement.hex(),
            "report_data": self.report_data.hex(),
        }


def parse_report(data: bytes) -> ReportSummary:
    if len(data) < REPORT_SIZE:
        raise MalformedField(f"report too short: {len(data)} bytes, expected {REPORT_SIZE}")
    version, guest_svn, policy, family_id, image_id, vmpl, sig_algo = _HEADER.unpack_from(data, 0)
    return ReportSummary(
        version=version,
        guest_svn=guest_svn,
        policy=policy,
        family_id=family_id,
        image_id=image_id,
        vmpl=vmpl,
        signature_algo=sig_algo,
        measurement=data[MEASUREMENT_OFFSET:MEASUREMENT_OFFSET + MEASUREMENT_SIZE],
        report_data=data[REPORT_DATA_OFFSET:REPORT_DATA_OFFSET + REPORT_DATA_SIZE],
    )


def report_data_from_json(doc: Dict[str, Any]) -> bytes:
    # serde renders [u8; 64] as a list of ints
    raw = doc.get("report_data")
    if not isinstance(raw, list) or len(raw) != REPORT_DATA_SIZE:
        raise MalformedField("report.json: report_data must be a list of 64 byte values")
    try:
        return bytes(raw)
    except (TypeError, ValueError) as e:
        raise MalformedField(f"report.json: report_data is not a byte array: {e}") from e


class SnpReportExtractor:
    """Reads the binding slot out of a fetched report, preferring the binary form."""

    def extract_report_data(self, report: ReportBundle) -> bytes:
        if report.bin_path is not None:
            return parse_report(report.bin_path.read_bytes()).report_data
        if report.json_path is not None:
            try:
                doc = json.loads(report.json_path.read_text(encoding="utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                raise MalformedField(f"report.json is not valid JSON: {e}") from e
            if not isinstance(doc, dict):
                raise MalformedField("report.json: expected an object")
            return report_data_from_json(doc)
        raise MalformedField("report bundle holds neither report.bin nor report.json")

    def summarize(self, report: ReportBundle) -> ReportSummary | None:
        if report.bin_path is None:
            return None
        return parse_report(report.bin_path.read_bytes())
