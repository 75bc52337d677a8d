# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import os


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="procvisor",
        description="procvisor - Worker Process Supervisor",
    )
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Override runtime data directory (default: ~/.procvisor or PROCVISOR_DATA_DIR)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: PROCVISOR_LOG_LEVEL or INFO)",
    )
    sub = parser.add_subparsers(dest="command")

    # ── Serve ─────────────────────────────────────────────
    p_serve = sub.add_parser("serve", help="Start the configured workers and supervise them")
    p_serve.add_argument("--config", default=None, help="Path to config.json")
    p_serve.add_argument(
        "--reap-interval", type=float, default=1.0,
        help="Seconds between checks for exited workers",
    )
    p_serve.set_defaults(func=_lazy_serve)

    # ── Send ──────────────────────────────────────────────
    p_send = sub.add_parser("send", help="Send one message to a Unix or TCP worker")
    target = p_send.add_mutually_exclusive_group(required=True)
    target.add_argument("--unix", metavar="PATH", help="Worker socket path")
    target.add_argument("--tcp", metavar="HOST:PORT", help="Worker TCP address")
    p_send.add_argument("message", help="Message content")
    p_send.add_argument("--timeout", type=float, default=5.0, help="Socket timeout in seconds")
    p_send.set_defaults(func=_lazy_send)

    # ── Status ────────────────────────────────────────────
    p_status = sub.add_parser("status", help="List workers recorded in the process table")
    p_status.add_argument("--config", default=None, help="Path to config.json")
    p_status.add_argument("--json", action="store_true", help="Print records as JSON")
    p_status.set_defaults(func=_lazy_status)

    return parser


def cli_main(argv: list[str] | None = None) -> None:
    from dotenv import load_dotenv

    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    # Apply --data-dir override before any command
    if args.data_dir:
        os.environ["PROCVISOR_DATA_DIR"] = args.data_dir

    from procvisor.logging_config import setup_logging
    from procvisor.paths import get_log_dir

    setup_logging(
        level=args.log_level or os.environ.get("PROCVISOR_LOG_LEVEL", "INFO"),
        log_dir=get_log_dir() if args.command == "serve" else None,
    )

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


# ── Lazy import wrappers ──────────────────────────────────


def _lazy_serve(args: argparse.Namespace) -> None:
    from procvisor.cli.commands.serve import cmd_serve

    cmd_serve(args)


def _lazy_send(args: argparse.Namespace) -> None:
    from procvisor.cli.commands.send import cmd_send

    cmd_send(args)


def _lazy_status(args: argparse.Namespace) -> None:
    from procvisor.cli.commands.status import cmd_status

    cmd_status(args)
