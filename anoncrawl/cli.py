"""Command-line interface for the anonymized archiver."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import ArchiverConfig, load_config_from_env
from .errors import ArchiveError
from .outcome import RunOutcome, RunSummary
from .targets import load_targets

# Configuration directory for global CLI usage
CONFIG_DIR = Path.home() / ".config" / "anoncrawl"
CONFIG_ENV_FILE = CONFIG_DIR / ".env"


def _load_env(cwd: Optional[Path] = None) -> Optional[Path]:
    """Load .env configuration with fallback to user config directory.

    Search order:
    1. .env in current working directory
    2. ~/.config/anoncrawl/.env
    """
    local_env = (cwd or Path.cwd()) / ".env"
    for candidate in (local_env, CONFIG_ENV_FILE):
        if candidate.is_file():
            load_dotenv(candidate)
            return candidate
    return None


def _setup_logging(verbose: bool, log_file: Optional[str]) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="anoncrawl",
        description="Archive a fixed list of URLs through a Tor SOCKS proxy.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  # Archive every URL in targets.yaml with 5 workers
  anoncrawl -f targets.yaml

  # Custom output directory, more workers, no browser snapshots
  anoncrawl -f targets.yaml -o archive/ -w 10 --no-snapshots

  # Refuse to run unless check.torproject.org confirms Tor routing
  anoncrawl -f targets.yaml --require-anonymity

  # Use an explicit SOCKS endpoint instead of probing 9050/9150
  anoncrawl -f targets.yaml --proxy 127.0.0.1:9050
""",
    )

    parser.add_argument(
        "-f",
        "--file",
        dest="targets_file",
        type=str,
        required=True,
        help="Target list: one URL per line, '#' and '-' lines ignored",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Root directory for artifact folders (default: output)",
    )
    parser.add_argument(
        "-w",
        "--workers",
        type=int,
        default=None,
        help="Concurrent targets (default: 5)",
    )
    parser.add_argument(
        "--proxy",
        action="append",
        default=None,
        metavar="HOST:PORT",
        help="SOCKS5 endpoint to probe; repeatable (default: 127.0.0.1:9050, 127.0.0.1:9150)",
    )
    parser.add_argument(
        "--http-timeout",
        type=float,
        default=None,
        help="Seconds allowed for each HTTP fetch (default: 25)",
    )
    parser.add_argument(
        "--snapshot-timeout",
        type=float,
        default=None,
        help="Seconds allowed for each browser capture (default: 40)",
    )
    parser.add_argument(
        "--no-snapshots",
        action="store_true",
        help="Skip screenshot and MHTML capture",
    )
    parser.add_argument(
        "--require-anonymity",
        action="store_true",
        help="Abort when the anonymity check does not confirm Tor routing",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Append-only log file (default: scan_report.log)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Print per-target outcomes as JSON when the run completes",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args(argv)


def _build_config(args: argparse.Namespace) -> ArchiverConfig:
    base = load_config_from_env()
    return base.with_overrides(
        output_root=args.output,
        workers=args.workers,
        proxy_candidates=tuple(args.proxy) if args.proxy else None,
        http_timeout=args.http_timeout,
        snapshot_timeout=args.snapshot_timeout,
        log_file=args.log_file,
        capture_snapshots=False if args.no_snapshots else None,
        require_anonymity=True if args.require_anonymity else None,
    )


def _print_outcome(outcome: RunOutcome) -> None:
    marker = "[OK ]" if outcome.succeeded else "[ERR]"
    print(f"{marker} {outcome.target} ({outcome.kind})", flush=True)


def _print_summary(summary: RunSummary, json_output: bool) -> None:
    if json_output:
        anonymity = summary.anonymity
        payload = {
            "proxy": summary.proxy.address if summary.proxy else None,
            "tor_check": anonymity.raw.strip() if anonymity and anonymity.raw else None,
            "stats": summary.stats(),
            "outcomes": [outcome.to_dict() for outcome in summary.outcomes],
        }
        print(json.dumps(payload, indent=2, ensure_ascii=False))

    stats = summary.stats()
    print(
        f"Scan complete: {stats['total_targets']} target(s), "
        f"{stats['successful_targets']} archived, {stats['failed_targets']} failed."
    )


async def _run_async(args: argparse.Namespace, config: ArchiverConfig) -> int:
    """Main async entry point."""
    from . import archive_targets_async

    targets = load_targets(args.targets_file)
    if not targets:
        logging.warning("Target list %s is empty", args.targets_file)

    # Per-target lines go out as each target finishes; JSON waits for the barrier.
    on_outcome = None if args.json_output else _print_outcome
    summary = await archive_targets_async(targets, config=config, on_outcome=on_outcome)
    _print_summary(summary, args.json_output)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the anoncrawl command."""
    args = _parse_args(argv)
    _load_env()

    try:
        config = _build_config(args)
    except ValueError as exc:
        print(f"anoncrawl: invalid configuration: {exc}", file=sys.stderr)
        return 1

    _setup_logging(args.verbose, config.log_file)

    try:
        return asyncio.run(_run_async(args, config))
    except KeyboardInterrupt:
        logging.info("Interrupted")
        return 130
    except ArchiveError as exc:
        logging.error("[FATAL] %s", exc)
        return 1
    except Exception as exc:
        logging.error("Error: %s", exc)
        if args.verbose:
            logging.exception("Full traceback:")
        return 1


if __name__ == "__main__":
    sys.exit(main())
