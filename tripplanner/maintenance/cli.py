"""
Shared command-line plumbing for the maintenance scripts.
"""

import argparse
import logging
import time

BANNER_WIDTH = 64


def positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


def build_parser(
    description: str,
    dry_run: bool = True,
    limit: bool = True,
    skip_enriched: bool = False,
    delay_ms: int | None = None,
) -> argparse.ArgumentParser:
    """Argument parser with the flags every maintenance script understands."""
    parser = argparse.ArgumentParser(description=description)
    if dry_run:
        parser.add_argument("--dry-run", action="store_true", help="Preview changes without writing")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    if limit:
        parser.add_argument("--limit", type=positive_int, default=None, help="Process at most N records")
    if skip_enriched:
        parser.add_argument(
            "--skip-enriched",
            action="store_true",
            help="Skip records that were already enriched",
        )
    if delay_ms is not None:
        parser.add_argument(
            "--delay-ms",
            type=int,
            default=delay_ms,
            help=f"Pause between API calls in milliseconds (default {delay_ms})",
        )
    return parser


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


def pause(delay_ms: int) -> None:
    if delay_ms > 0:
        time.sleep(delay_ms / 1000)


def print_banner(title: str, dry_run: bool = False) -> None:
    print("=" * BANNER_WIDTH)
    print(title.center(BANNER_WIDTH))
    print("=" * BANNER_WIDTH)
    if dry_run:
        print("\nDRY RUN MODE - no changes will be made\n")


def print_summary(counts: dict[str, object]) -> None:
    print("\n" + "=" * BANNER_WIDTH)
    print("SUMMARY".center(BANNER_WIDTH))
    print("=" * BANNER_WIDTH)
    width = max((len(label) for label in counts), default=0)
    for label, value in counts.items():
        print(f"  {label.ljust(width)}  {value}")
