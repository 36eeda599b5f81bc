"""Send one-off requests to the remote rank-sync service.

This module serves as a CLI wrapper around ranksync.core.relay; handy for
checking endpoint, token and payload shape without a running host.
"""
from __future__ import annotations
import argparse
import logging
import os
import sys
from concurrent.futures import TimeoutError as FuturesTimeoutError
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from ranksync.config import load_settings
from ranksync.core.relay import EventKind, Outcome, Payload, RelayClient


def _print_outcome(label: str, outcome: Outcome) -> int:
    status = "ok" if outcome.succeeded else "failed"
    stream = sys.stdout if outcome.succeeded else sys.stderr
    print(f"[{label}] {status}: {outcome.body}", file=stream)
    return 0 if outcome.succeeded else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="RankSync relay helper")
    parser.add_argument("--config", default=os.environ.get("RANKSYNC_CONFIG", "config.yml"))
    parser.add_argument("--endpoint", help="Override api.endpoint")
    parser.add_argument("--token", help="Override api.token")
    parser.add_argument("--timeout", type=float, default=30.0,
                        help="Seconds to wait for the outcome (default: 30)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log API calls")

    sub = parser.add_subparsers(dest="cmd")

    sj = sub.add_parser("join")
    sj.add_argument("--uuid", required=True)
    sj.add_argument("--name", required=True)
    sj.add_argument("--primary-group")
    sj.add_argument("--group", dest="groups", action="append", default=[])

    sr = sub.add_parser("rank-update")
    sr.add_argument("--uuid", required=True)
    sr.add_argument("--name", required=True)
    sr.add_argument("--primary-group")
    sr.add_argument("--group", dest="groups", action="append", default=[])
    sr.add_argument("--event", choices=["add", "remove"], default="add")

    sl = sub.add_parser("link")
    sl.add_argument("--uuid", required=True)
    sl.add_argument("--name", required=True)
    sl.add_argument("--code", required=True)

    su = sub.add_parser("unlink")
    su.add_argument("--uuid", required=True)

    ss = sub.add_parser("status")
    ss.add_argument("--uuid", required=True)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return 2

    if args.endpoint:
        os.environ["RANKSYNC_API_ENDPOINT"] = args.endpoint
    if args.token:
        os.environ["RANKSYNC_API_TOKEN"] = args.token

    logging.basicConfig(level=logging.INFO, format="%(levelname)s [%(name)s] %(message)s")
    store = load_settings(args.config)
    if args.verbose:
        store.set("logging.log-api-calls", True)

    client = RelayClient(store)
    wait = True
    try:
        if args.cmd == "join":
            payload = Payload(args.uuid, args.name, args.primary_group, args.groups, EventKind.PLAYER_JOIN)
            future = client.notify_join(payload)
        elif args.cmd == "rank-update":
            kind = EventKind.GROUP_ADD if args.event == "add" else EventKind.GROUP_REMOVE
            payload = Payload(args.uuid, args.name, args.primary_group, args.groups, kind)
            future = client.notify_rank_change(payload)
        elif args.cmd == "link":
            future = client.link(args.uuid, args.name, args.code)
        elif args.cmd == "unlink":
            future = client.unlink(args.uuid)
        else:
            future = client.check_linked(args.uuid)

        try:
            outcome = future.result(timeout=args.timeout)
        except FuturesTimeoutError:
            # leave the stuck request to its own api.timeout
            wait = False
            print(f"[{args.cmd}] failed: timed out", file=sys.stderr)
            return 1
        return _print_outcome(args.cmd, outcome)
    finally:
        client.close(wait=wait)


if __name__ == "__main__":
    sys.exit(main())
