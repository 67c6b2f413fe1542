#!/usr/bin/env python3
"""Export everything one PayPing account owns.

Signs in with an existing id token, reads every collection and the
settings, and writes them as a dated JSON backup (or prints them).

Usage
-----
Set environment variables and run::

    export PAYPING_USER_ID="uid"
    export PAYPING_ID_TOKEN="eyJ..."
    python scripts/export_backup.py --output-dir backups/

Options::

    --output-dir DIR    Directory for payping-backup-YYYY-MM-DD.json (default: state dir)
    --json              Print the export to stdout instead of writing a file
    --verbose, -v       Enable debug logging
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from payping import IdentityGate, PaypingClient, PaypingConfig, Principal  # noqa: E402


async def main() -> int:
    parser = argparse.ArgumentParser(description="Export a PayPing account to a JSON backup.")
    parser.add_argument("--output-dir", type=Path, help="Directory for the backup file")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Print the export to stdout")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    user_id = os.environ.get("PAYPING_USER_ID", "")
    id_token = os.environ.get("PAYPING_ID_TOKEN", "")
    if not user_id or not id_token:
        print("PAYPING_USER_ID and PAYPING_ID_TOKEN must be set", file=sys.stderr)
        return 2

    # Push channels are not needed for a one-shot export.
    config = PaypingConfig.from_env(mqtt_enabled=False)
    identity = IdentityGate(Principal(user_id=user_id, id_token=id_token))

    async with PaypingClient(config, identity) as client:
        if args.json_mode:
            snapshot = await client.gateway.export_all()
            print(json.dumps(snapshot.to_document(), indent=2, ensure_ascii=False))
            return 0
        path = await client.store.backup(args.output_dir or config.state_dir)

    print(f"Backup written to {path}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
