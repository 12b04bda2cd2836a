"""Binding values: the unit both sides of the channel binding are reduced to.

A BindingValue is raw bytes with trailing zero bytes removed. The report's
report_data slot is wider than the digest it carries and is zero padded, so
stripping is applied to every value regardless of where it came from; a digest
that itself ends in 0x00 is then indistinguishable from its padded form in the
slot, which is exactly the information the slot preserves.

Canonical comparison form is lowercase hex. The form handed to guest and
verifier tooling is unpadded standard base64, matching what the guest-side
report generator decodes.
"""
from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass

from ..transport.fingerprint import TransportFingerprint
from ..verifier.errors import MalformedField
from ..report.layout import REPORT_DATA_SIZE

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")
_COLON_HEX_RE = re.compile(r"^[0-9a-fA-F]{2}(:[0-9a-fA-F]{2})+$")
_B64_RE = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")
_PREFIXES = ("SHA256:", "SHA384:", "SHA512:", "SHA1:", "MD5:")


def strip_padding(raw: bytes) -> bytes:
    return raw.rstrip(b"\x00")


def b64_nopad(raw: bytes) -> str:
    return base64.b64encode(raw).decode().rstrip("=")


def _decode_b64(text: str) -> bytes:
    if not _B64_RE.fullmatch(text):
        raise MalformedField(f"not base64: {text[:24]!r}")
    try:
        return base64.b64decode(text + "=" * (-len(text) % 4), validate=True)
    except binascii.Error as e:
        raise MalformedField(f"not base64: {e}") from e


@dataclass(frozen=True)
class BindingValue:
    raw: bytes

    def __post_init__(self):
        object.__setattr__(self, "raw", strip_padding(bytes(self.raw)))

    @property
    def empty(self) -> bool:
        return not self.raw

    def canonical(self) -> str:
        return self.raw.hex()

    def b64(self) -> str:
        return b64_nopad(self.raw)

    def display(self) -> str:
        return self.b64() if self.raw else "(empty)"

    @classmethod
    def from_fingerprint(cls, fp: TransportFingerprint) -> "BindingValue":
        if len(fp.digest) > REPORT_DATA_SIZE:
            raise ValueError(f"{fp.algorithm} digest does not fit the {REPORT_DATA_SIZE}-byte report_data slot")
        return cls(fp.digest)

    @classmethod
    def from_report_slot(cls, slot: bytes) -> "BindingValue":
        if not isinstance(slot, (bytes, bytearray)):
            raise MalformedField(f"report_data slot must be bytes, got {type(slot).__name__}")
        if len(slot) > REPORT_DATA_SIZE:
            raise MalformedField(f"report_data slot is {len(slot)} bytes, wider than {REPORT_DATA_SIZE}")
        return cls(bytes(slot))

    @classmethod
    def parse(cls, text: str) -> "BindingValue":
        """Parse a textual fingerprint or binding.

        Accepted: ``SHA256:<b64>`` and friends, ``MD5:aa:bb:..``, colon
        separated hex, plain hex (even length, hex digits only) and unpadded
        base64. Plain hex wins over base64 when a string is valid as both.
        """
        t = "".join(text.split())
        for prefix in _PREFIXES:
            if t.upper().startswith(prefix):
                body = t[len(prefix):]
                if _COLON_HEX_RE.fullmatch(body):
                    return cls(bytes.fromhex(body.replace(":", "")))
                return cls(_decode_b64(body))
        if not t:
            return cls(b"")
        if _COLON_HEX_RE.fullmatch(t):
            return cls(bytes.fromhex(t.replace(":", "")))
        if _HEX_RE.fullmatch(t) and len(t) % 2 == 0:
            return cls(bytes.fromhex(t))
        return cls(_decode_b64(t))
