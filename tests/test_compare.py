import hashlib

from attestbind.binding.compare import BindingMatch, compare_bindings, ct_eq
from attestbind.binding.value import BindingValue

# 20-byte digest rendered like `ab:cd:ef:...`
FP20 = bytes.fromhex("abcdef0123456789abcdef0123456789abcdef01")
FP20_TEXT = ":".join(f"{b:02x}" for b in FP20)


def test_scenario_a_identical_digest_matches():
    derived = BindingValue.parse(FP20_TEXT)
    embedded = BindingValue.from_report_slot(FP20 + b"\x00" * 44)
    assert compare_bindings(derived, embedded) is BindingMatch.MATCH


def test_scenario_b_last_byte_differs():
    derived = BindingValue.parse(FP20_TEXT)
    embedded = BindingValue.from_report_slot(FP20[:-1] + b"\x02" + b"\x00" * 44)
    assert compare_bindings(derived, embedded) is BindingMatch.MISMATCH


def test_scenario_d_all_zero_slot_never_matches():
    derived = BindingValue.parse(FP20_TEXT)
    embedded = BindingValue.from_report_slot(b"\x00" * 64)
    assert compare_bindings(derived, embedded) is BindingMatch.MISMATCH


def test_empty_derived_never_matches():
    assert compare_bindings(BindingValue(b""), BindingValue(b"")) is BindingMatch.MISMATCH


def test_comparison_is_case_normalized():
    assert compare_bindings(BindingValue.parse(FP20.hex().upper()), BindingValue(FP20)) is BindingMatch.MATCH


def test_prefix_is_not_a_match():
    d = hashlib.sha256(b"k").digest()
    assert compare_bindings(BindingValue(d), BindingValue(d[:16])) is BindingMatch.MISMATCH
    assert compare_bindings(BindingValue(d[:16]), BindingValue(d)) is BindingMatch.MISMATCH


def test_every_single_byte_flip_is_mismatch():
    d = hashlib.sha256(b"k").digest()
    for i in range(len(d)):
        flipped = bytearray(d)
        flipped[i] ^= 0x01
        assert compare_bindings(BindingValue(d), BindingValue(bytes(flipped) + b"\x00" * 32)) is BindingMatch.MISMATCH


def test_ct_eq_basic():
    assert ct_eq("abc", "abc") is True
    assert ct_eq("abc", "abd") is False
    assert ct_eq("abc", "abcd") is False
