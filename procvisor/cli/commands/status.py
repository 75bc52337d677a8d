# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path


def cmd_status(args: argparse.Namespace) -> None:
    """Print the records of the configured process table."""
    from procvisor.config import load_config
    from procvisor.exceptions import ConfigError
    from procvisor.supervisor.table import ProcessTable

    try:
        config = load_config(Path(args.config) if args.config else None)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    table_path = config.supervisor.resolved_table_path()
    if not table_path.exists():
        print(f"No process table at {table_path}")
        return

    try:
        table = ProcessTable.attach(table_path)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    with table:
        records = [record for _pid, record in sorted(table.scan())]

    if args.json:
        print(json.dumps([r.to_dict() for r in records], indent=2))
        return

    if not records:
        print("No workers running.")
        return

    print(f"{'PID':>8}  {'STATUS':<9} {'TRANSPORT':<9} {'NAME':<24} DETAILS")
    for record in records:
        details = ", ".join(f"{k}={v}" for k, v in sorted(record.metadata.items()))
        print(
            f"{record.pid:>8}  {record.status.value:<9} {record.transport.value:<9} "
            f"{record.name:<24} {details}"
        )
