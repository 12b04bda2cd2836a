import os

import pytest

from attestbind.config import VerifierConfig, load_config


def test_defaults(tmp_path, monkeypatch):
    for k in list(os.environ):
        if k.startswith("ATTESTBIND_"):
            monkeypatch.delenv(k)
    cfg = load_config(str(tmp_path / "missing.yml"))
    assert cfg == VerifierConfig()
    assert cfg.port == 2222
    assert cfg.remote_report == "/etc/report*"


def test_file_then_env_override(tmp_path, monkeypatch):
    p = tmp_path / "attestbind.yml"
    p.write_text("host: cvm.example\nport: 2200\nsnpguest: off\n")
    monkeypatch.setenv("ATTESTBIND_PORT", "2022")
    monkeypatch.setenv("ATTESTBIND_SNPGUEST", "ON")
    cfg = load_config(str(p))
    assert cfg.host == "cvm.example"
    assert cfg.port == 2022
    assert cfg.snpguest == "on"


def test_unknown_file_key_rejected(tmp_path):
    p = tmp_path / "attestbind.yml"
    p.write_text("hots: typo\n")
    with pytest.raises(ValueError, match="hots"):
        load_config(str(p))


def test_bad_env_value(tmp_path, monkeypatch):
    monkeypatch.setenv("ATTESTBIND_PORT", "twenty-two")
    with pytest.raises(ValueError, match="ATTESTBIND_PORT"):
        load_config(str(tmp_path / "missing.yml"))


def test_invalid_snpguest_mode():
    with pytest.raises(ValueError):
        VerifierConfig(snpguest="sometimes")


def test_yaml_boolean_snpguest_mode(tmp_path, monkeypatch):
    monkeypatch.delenv("ATTESTBIND_SNPGUEST", raising=False)
    p = tmp_path / "attestbind.yml"
    p.write_text("snpguest: off\n")
    assert load_config(str(p)).snpguest == "off"


def test_unsupported_fingerprint_hash_rejected(tmp_path, monkeypatch):
    monkeypatch.setenv("ATTESTBIND_FINGERPRINT_HASH", "SHA3_256")
    with pytest.raises(ValueError, match="fingerprint_hash"):
        load_config(str(tmp_path / "missing.yml"))
