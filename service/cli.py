# service/cli.py
"""
User-facing command-line entrypoints.

Subcommands
-----------
scrape [--site S ...] [--query Q ...] [--location L ...] [--sink sqlite|jsonl] [--kwargs k=v ...]
    - Runs one scrape via modules.job_scrape.main.run(...)
    - Prints the run summary as JSON

sources
    - Prints the registered site adapters and their pagination style
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
import uuid
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from service import logging_utils as L

LOG = logging.getLogger("service.cli")


# ----------------------------- Logging setup ---------------------------------
def _ensure_logging() -> None:
    """Initialize a reasonable logging setup if none exists yet."""
    root = logging.getLogger()
    if not root.handlers:
        level = os.getenv("LOG_LEVEL", "INFO").upper()
        logging.basicConfig(
            level=getattr(logging, level, logging.INFO),
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


# -------------------------- Utility / glue code ------------------------------
def _parse_kv_pairs(pairs: Iterable[str]) -> dict[str, Any]:
    """
    Parse key=value strings into a dict.
    - Values that look like JSON (true/false/null/number/object/array) are parsed.
    - Otherwise keep as raw strings.
    """
    out: dict[str, Any] = {}
    for raw in pairs:
        if "=" not in raw:
            raise argparse.ArgumentTypeError(f"--kwargs item must be key=value (got {raw!r})")
        k, v = raw.split("=", 1)
        k = k.strip()
        v = v.strip()
        if not k:
            raise argparse.ArgumentTypeError(f"Invalid key in --kwargs item {raw!r}")
        try:
            out[k] = json.loads(v)
        except json.JSONDecodeError:
            out[k] = v
    return out


def _print_table(rows: Iterable[tuple[str, str]], headers: tuple[str, str] = ("ID", "DETAILS")) -> None:
    """Very simple two-column table printer."""
    rows = list(rows)
    w0 = max(len(headers[0]), *(len(r[0]) for r in rows)) if rows else len(headers[0])
    w1 = max(len(headers[1]), *(len(r[1]) for r in rows)) if rows else len(headers[1])
    sep = f"+-{'-' * w0}-+-{'-' * w1}-+"
    print(sep)
    print(f"| {headers[0].ljust(w0)} | {headers[1].ljust(w1)} |")
    print(sep)
    for c0, c1 in rows:
        print(f"| {c0.ljust(w0)} | {c1.ljust(w1)} |")
    print(sep)


def _now_iso() -> str:
    return datetime.now().astimezone().isoformat()


# ------------------------------ Subcommands ----------------------------------
def cmd_scrape(args: argparse.Namespace) -> int:
    from modules.job_scrape import main as job_scrape

    run_id = uuid.uuid4().hex
    start_time = time.monotonic()

    kwargs = _parse_kv_pairs(args.kwargs or [])
    if args.site:
        kwargs["sites"] = args.site
    if args.query:
        kwargs["queries"] = args.query
    if args.location:
        kwargs["locations"] = args.location
    if args.sink:
        kwargs["sink"] = args.sink
    LOG.debug("scrape with kwargs=%s", kwargs)

    try:
        summary = job_scrape.run(**kwargs)
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        duration_s = time.monotonic() - start_time
        print(f"FAILURE: {e}", file=sys.stderr)
        L.write_error_log({
            "ts": _now_iso(),
            "where": "cli.scrape",
            "run_id": run_id,
            "kwargs": kwargs,
            "error": repr(e),
            "duration_ms": int(duration_s * 1000),
        })
        return 1

    L.write_activity_log({
        "ts": _now_iso(),
        "event": "cli_scrape",
        "run_id": run_id,
        "kwargs": kwargs,
        "duration_ms": int((time.monotonic() - start_time) * 1000),
    })
    print(json.dumps(summary, indent=2, sort_keys=True, default=str))
    return 0


def cmd_sources(args: argparse.Namespace) -> int:
    from modules.job_scrape.lib.scrapers import registry

    rows = []
    for tag, cls in sorted(registry.all_sources().items()):
        if cls.partitioned:
            style = f"offset, partitioned (page size {cls.page_size}, cap {cls.hard_cap})"
        elif not cls.query_scoped:
            style = "cursor, one sequence per run"
        else:
            style = f"offset, sequential (page size {cls.page_size})"
        if cls.uses_location:
            style += ", location-aware"
        rows.append((tag, style))
    _print_table(rows, headers=("SOURCE", "PAGINATION"))
    return 0


# ------------------------------- Argparse ------------------------------------
def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="python -m service.cli",
        description="Job listing scraper command-line tools",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    # scrape
    sp = sub.add_parser("scrape", help="Run one scrape and persist the results.")
    sp.add_argument("--site", action="append", help="Source tag (repeatable); default: all.")
    sp.add_argument("--query", action="append", help="Search term (repeatable); default: built-in list.")
    sp.add_argument("--location", action="append", help="Location filter (repeatable).")
    sp.add_argument("--sink", choices=("sqlite", "jsonl"), help="Output sink (default sqlite).")
    sp.add_argument(
        "--kwargs",
        metavar="k=v",
        nargs="*",
        help="Extra settings (JSON values supported), e.g. batch_size=100.",
    )
    sp.set_defaults(func=cmd_scrape)

    # sources
    sp = sub.add_parser("sources", help="List registered site adapters.")
    sp.set_defaults(func=cmd_sources)

    return p


# --------------------------------- Main --------------------------------------
def main(argv: Iterable[str] | None = None) -> int:
    _ensure_logging()
    parser = _build_parser()
    args = parser.parse_args(args=list(argv) if argv is not None else None)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
