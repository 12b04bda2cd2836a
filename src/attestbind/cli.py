from __future__ import annotations

import argparse
import json
import dataclasses
import shutil
from pathlib import Path

import yaml

from .binding.compare import BindingMatch, compare_bindings
from .binding.value import BindingValue
from .config import SNPGUEST_MODES, load_config
from .obs.prom import write_textfile
from .report.authenticity import SnpguestVerifier, VerifyReportCommand
from .report.bundle import ReportBundle
from .report.layout import SnpReportExtractor
from .report.machine import load_machine_definition
from .transport.fingerprint import SUPPORTED_ALGS, fingerprint_host_key
from .transport.known_hosts import KnownHostsStore, read_known_hosts
from .transport.scp import ScpTransport
from .utils.logging import get_logger
from .verifier.errors import VerificationError
from .verifier.models import Verdict
from .verifier.orchestrator import Verifier

EXIT_CODES = {Verdict.TRUSTED: 0, Verdict.UNVERIFIABLE: 1, Verdict.MISMATCH: 2}
EXIT_USAGE = 64


def _authenticity_chain(cfg, out_dir: Path):
    chain = [VerifyReportCommand(cfg.verify_report_bin, timeout=cfg.verify_timeout_sec)]
    if cfg.snpguest == "on" or (cfg.snpguest == "auto" and shutil.which(cfg.snpguest_bin)):
        chain.append(SnpguestVerifier(cfg.snpguest_bin, certs_dir=out_dir, timeout=cfg.verify_timeout_sec))
    return chain


def cmd_verify(args: argparse.Namespace) -> int:
    cfg = args.cfg
    log = get_logger(cfg.log_level)
    try:
        machine = load_machine_definition(args.vm_config)
    except (OSError, ValueError) as e:
        log.error(str(e))
        return EXIT_USAGE
    out_dir = Path(cfg.out_dir)
    transport = ScpTransport(
        cfg.host,
        port=cfg.port,
        user=cfg.user,
        remote_report=cfg.remote_report,
        timeout=cfg.transfer_timeout_sec,
    )
    verifier = Verifier(
        transport,
        _authenticity_chain(cfg, out_dir),
        machine,
        out_dir,
        store_factory=lambda: KnownHostsStore(persist_to=cfg.known_hosts),
        fingerprint_hash=cfg.fingerprint_hash,
    )
    outcome = verifier.verify()
    if cfg.metrics_textfile:
        write_textfile(cfg.metrics_textfile)
    if args.json:
        print(outcome.model_dump_json(indent=2))
    else:
        print(outcome.message())
        if outcome.trusted:
            print("You can safely connect to the CVM using the following command:")
            print(transport.connect_command(Path(cfg.known_hosts).resolve()))
            print(f"Guest SSH fingerprint: {outcome.fingerprint} ({outcome.host_key_type})")
    return EXIT_CODES[outcome.verdict]


def cmd_fingerprint(args: argparse.Namespace) -> int:
    try:
        keys = read_known_hosts(args.known_hosts)
        for hk in keys:
            fp = fingerprint_host_key(hk, args.hash)
            print(f"{fp.openssh()} {hk.hosts} ({hk.key_type})")
    except (OSError, ValueError, VerificationError) as e:
        get_logger().error(str(e))
        return EXIT_USAGE
    return 0 if keys else 1


def cmd_report_data(args: argparse.Namespace) -> int:
    p = Path(args.report)
    bundle = ReportBundle(
        directory=p.parent,
        bin_path=p if p.suffix != ".json" else None,
        json_path=p if p.suffix == ".json" else None,
    )
    extractor = SnpReportExtractor()
    try:
        value = BindingValue.from_report_slot(extractor.extract_report_data(bundle))
        summary = extractor.summarize(bundle)
    except (OSError, VerificationError) as e:
        get_logger().error(str(e))
        return EXIT_USAGE
    info = {"report_data_b64": value.b64(), "report_data_hex": value.canonical()}
    if summary is not None:
        info["report"] = summary.as_dict()
    rc = 0
    if args.expect is not None:
        try:
            expected = BindingValue.parse(args.expect)
        except VerificationError as e:
            get_logger().error(f"--expect: {e}")
            return EXIT_USAGE
        matched = compare_bindings(expected, value) is BindingMatch.MATCH
        info["expected_matches"] = matched
        rc = 0 if matched else EXIT_CODES[Verdict.MISMATCH]
    print(json.dumps(info, indent=2))
    return rc


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser("attestbind", description="Bind an SEV-SNP attestation report to an SSH session")
    p.add_argument("--config", help="YAML config file (default: config/attestbind.yml)")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_ver = sub.add_parser("verify", help="fetch, authenticate and bind the guest's attestation report")
    p_ver.add_argument("--vm-config", dest="vm_config", required=True, help="path to VM config file")
    p_ver.add_argument("--host", help="hostname or IP address of the VM")
    p_ver.add_argument("--port", type=int, help="SSH port of the VM")
    p_ver.add_argument("--user", help="VM user to log in as")
    p_ver.add_argument("--out", dest="out_dir", help="folder for the fetched attestation report")
    p_ver.add_argument("--known-hosts", dest="known_hosts", help="where to pin the host key on success")
    p_ver.add_argument("--verify-report-bin", dest="verify_report_bin")
    p_ver.add_argument("--snpguest", choices=SNPGUEST_MODES)
    p_ver.add_argument("--json", action="store_true", help="print the outcome as JSON")
    p_ver.set_defaults(func=cmd_verify)

    p_fp = sub.add_parser("fingerprint", help="print host key fingerprints of a known_hosts file")
    p_fp.add_argument("known_hosts")
    p_fp.add_argument("--hash", choices=SUPPORTED_ALGS, default="sha256")
    p_fp.set_defaults(func=cmd_fingerprint)

    p_rd = sub.add_parser("report-data", help="print the normalized report data of a report file")
    p_rd.add_argument("report", help="report.bin or report.json")
    p_rd.add_argument("--expect", help="fingerprint the report data must match (SHA256:..., MD5:..., hex or base64)")
    p_rd.set_defaults(func=cmd_report_data)

    args = p.parse_args(argv)
    overrides = {}
    for name in ("host", "port", "user", "out_dir", "known_hosts", "verify_report_bin", "snpguest"):
        val = getattr(args, name, None)
        if val is not None:
            overrides[name] = val
    try:
        # replace() re-runs __post_init__ so flags are validated like the file and env
        cfg = dataclasses.replace(load_config(args.config), **overrides)
    except (OSError, ValueError, yaml.YAMLError) as e:
        get_logger().error(f"config: {e}")
        return EXIT_USAGE
    args.cfg = cfg
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
