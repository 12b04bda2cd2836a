"""Write a synthetic SEV-SNP report bound to an SSH host public key.

The report is unsigned; it only exercises `attestbind report-data` and the
binding path of a dry run, never the authenticity gate.

  python tools/gen_test_report.py /etc/ssh/ssh_host_ed25519_key.pub build/verity
"""
import argparse
import json
import os
import struct

from attestbind.binding.value import BindingValue
from attestbind.report.layout import REPORT_DATA_OFFSET, REPORT_DATA_SIZE, REPORT_SIZE
from attestbind.transport.fingerprint import fingerprint_host_key
from attestbind.transport.known_hosts import parse_known_hosts_line

p = argparse.ArgumentParser()
p.add_argument("pubkey", help="OpenSSH public key file (type base64 [comment])")
p.add_argument("out_dir")
args = p.parse_args()

with open(args.pubkey, "r", encoding="utf-8") as f:
    host_key = parse_known_hosts_line("guest " + f.read().strip())
binding = BindingValue.from_fingerprint(fingerprint_host_key(host_key))

slot = binding.raw.ljust(REPORT_DATA_SIZE, b"\x00")
report = bytearray(REPORT_SIZE)
struct.pack_into("<II", report, 0, 2, 0)  # version 2, guest_svn 0
report[REPORT_DATA_OFFSET:REPORT_DATA_OFFSET + REPORT_DATA_SIZE] = slot

os.makedirs(args.out_dir, exist_ok=True)
with open(os.path.join(args.out_dir, "report.bin"), "wb") as f:
    f.write(report)
with open(os.path.join(args.out_dir, "report.json"), "w", encoding="utf-8") as f:
    json.dump({"version": 2, "report_data": list(slot)}, f)

print(f"Generated: {args.out_dir}/report.bin, {args.out_dir}/report.json (report data {binding.b64()})")
