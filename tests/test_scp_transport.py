import subprocess

import pytest

from attestbind.transport import scp
from attestbind.transport.known_hosts import KnownHostsStore
from attestbind.transport.scp import ScpTransport
from attestbind.verifier.errors import TransferFailed


def _fake_scp(rc=0, files=("report.bin", "report.json"), stderr=""):
    calls = []

    def run(cmd, **kw):
        calls.append(cmd)
        out_dir = cmd[-1]
        for name in files:
            with open(f"{out_dir}/{name}", "wb") as f:
                f.write(b"x")
        return subprocess.CompletedProcess(cmd, rc, "", stderr)

    return run, calls


def test_command_pins_run_store():
    t = ScpTransport("10.0.0.5", port=2200, user="root")
    with KnownHostsStore() as store:
        cmd = t.command(store, "out")
        assert f"UserKnownHostsFile={store.path}" in cmd
    assert "StrictHostKeyChecking=accept-new" in cmd
    assert cmd[cmd.index("-P") + 1] == "2200"
    assert cmd[-2] == "root@10.0.0.5:/etc/report*"


def test_fetch_returns_bundle(monkeypatch, tmp_path):
    run, calls = _fake_scp()
    monkeypatch.setattr(scp.subprocess, "run", run)
    with KnownHostsStore() as store:
        bundle = ScpTransport("h").fetch_report(store, tmp_path / "out")
    assert bundle.bin_path.name == "report.bin"
    assert bundle.json_path.name == "report.json"
    assert len(calls) == 1


def test_fetch_removes_stale_reports(monkeypatch, tmp_path):
    (tmp_path / "report.bin").write_bytes(b"old")
    run, _ = _fake_scp(files=("report.json",))
    monkeypatch.setattr(scp.subprocess, "run", run)
    with KnownHostsStore() as store:
        bundle = ScpTransport("h").fetch_report(store, tmp_path)
    assert bundle.bin_path is None


def test_fetch_nonzero_exit(monkeypatch, tmp_path):
    run, _ = _fake_scp(rc=1, files=(), stderr="Connection refused")
    monkeypatch.setattr(scp.subprocess, "run", run)
    with KnownHostsStore() as store:
        with pytest.raises(TransferFailed, match="Connection refused"):
            ScpTransport("h").fetch_report(store, tmp_path)


def test_fetch_no_files(monkeypatch, tmp_path):
    run, _ = _fake_scp(files=())
    monkeypatch.setattr(scp.subprocess, "run", run)
    with KnownHostsStore() as store:
        with pytest.raises(TransferFailed):
            ScpTransport("h").fetch_report(store, tmp_path)


def test_fetch_timeout(monkeypatch, tmp_path):
    def run(cmd, **kw):
        raise subprocess.TimeoutExpired(cmd, kw.get("timeout"))

    monkeypatch.setattr(scp.subprocess, "run", run)
    with KnownHostsStore() as store:
        with pytest.raises(TransferFailed, match="timed out"):
            ScpTransport("h", timeout=3).fetch_report(store, tmp_path)


def test_connect_command():
    assert ScpTransport("h", port=2222, user="ubuntu").connect_command("/k") == "ssh -p 2222 -o UserKnownHostsFile=/k ubuntu@h"
