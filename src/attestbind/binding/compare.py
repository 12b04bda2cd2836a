from __future__ import annotations

import hmac
from enum import Enum

from .value import BindingValue


class BindingMatch(str, Enum):
    MATCH = "match"
    MISMATCH = "mismatch"


def ct_eq(a: str, b: str) -> bool:
    """Constant-time equality for two canonical strings (length must match)."""
    if len(a) != len(b):
        return False
    return hmac.compare_digest(a.encode(), b.encode())


def compare_bindings(derived: BindingValue, embedded: BindingValue) -> BindingMatch:
    # An empty slot can never vouch for a session.
    if embedded.empty or derived.empty:
        return BindingMatch.MISMATCH
    if ct_eq(derived.canonical().lower(), embedded.canonical().lower()):
        return BindingMatch.MATCH
    return BindingMatch.MISMATCH
