"""Command-line interface for loadmerge."""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import threading
from pathlib import Path
from time import perf_counter
from typing import List, Optional

from loadmerge.config import MergeConfig
from loadmerge.inspect import DEFAULT_SAMPLE_LINES, FormatInspector
from loadmerge.logging import get_logger, set_global_log_level
from loadmerge.merge.coordinator import MergeCoordinator
from loadmerge.results.summary import Summary
from loadmerge.results.writer import SummaryWriter

logger = get_logger(__name__)


def _format_duration(seconds: float) -> str:
    """Return a concise human-readable duration string.

    Examples:
        0.123 -> "123.0 ms"; 1.234 -> "1.23 s"; 75.2 -> "1m 15.2s".
    """
    if seconds < 1.0:
        return f"{seconds * 1000.0:.1f} ms"
    if seconds < 60.0:
        return f"{seconds:.2f} s"
    minutes = int(seconds // 60)
    rem = seconds - minutes * 60
    return f"{minutes}m {rem:.1f}s"


def _plural(n: int, singular: str, plural: Optional[str] = None) -> str:
    """Return grammatically correct unit for count n."""
    if n == 1:
        return singular
    return plural or (singular + "s")


def _print_summary(summary: Summary) -> None:
    """Print the headline figures of a merge run."""
    doc = summary.to_dict()
    headline = doc["summary"]
    print("\n" + "=" * 60)
    print("MERGE SUMMARY")
    print("=" * 60)
    print(f"   Files processed: {summary.processed_files}/{summary.total_files}")
    print(
        f"   Lines: {summary.total_lines:,} total, {summary.valid_lines:,} valid, "
        f"{summary.invalid_lines:,} invalid"
    )
    print(f"   Total requests: {summary.total_requests:,}")
    print(f"   Total errors: {summary.total_errors:,}")
    print(f"   Error rate: {headline['errorRate']}")
    print(f"   Avg response time: {headline['avgResponseTime']}")
    print(f"   P95 response time: {headline['p95ResponseTime']}")
    print(f"   Requests/second: {headline['requestsPerSecond']}")
    print(f"   Test duration: {headline['testDuration']}")

    if summary.errors_by_type:
        print("\n   Top error types:")
        for entry in summary.errors_by_type[:5]:
            print(f"     - {entry.type}: {entry.count:,} ({entry.percentage}%)")

    for threshold in summary.thresholds:
        mark = "✅" if threshold.passed else "❌"
        print(f"   {mark} {threshold.name} {threshold.condition} (actual: {threshold.value})")

    if summary.skipped_files:
        count = len(summary.skipped_files)
        print(f"\n⚠️  Skipped {count} unreadable {_plural(count, 'file')}:")
        for path in summary.skipped_files:
            print(f"     - {path}")
    if summary.cancelled:
        print("\n⚠️  Merge was cancelled; the summary is partial")


def _load_config(config_path: Optional[Path], workers: Optional[int]) -> MergeConfig:
    config = MergeConfig.load(config_path) if config_path else MergeConfig()
    return config.with_overrides(workers=workers)


def _run_merge(
    output: Path,
    inputs: List[Path],
    workers: Optional[int] = None,
    config_path: Optional[Path] = None,
    stdout: bool = False,
) -> None:
    """Merge ``inputs`` into the summary file ``output``.

    Exits with status 1 when the configuration is invalid or the summary
    cannot be written. Unreadable inputs only produce warnings.

    Args:
        output: Destination of the summary JSON.
        inputs: Telemetry files to merge.
        workers: Optional override of the configured worker count.
        config_path: Optional YAML configuration file.
        stdout: Whether to also print the summary JSON.
    """
    _start_time = perf_counter()

    try:
        config = _load_config(config_path, workers)
    except (OSError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        print(f"❌ ERROR: Invalid configuration: {e}")
        sys.exit(1)

    cancel_event = threading.Event()

    def _request_cancel(signum, frame) -> None:
        logger.warning("Interrupt received; finishing with a partial summary")
        cancel_event.set()

    # Signal handlers can only be installed from the main thread
    install_handler = threading.current_thread() is threading.main_thread()
    previous_handler = signal.getsignal(signal.SIGINT)
    if install_handler:
        signal.signal(signal.SIGINT, _request_cancel)

    try:
        summary = MergeCoordinator(config).merge(inputs, cancel_event=cancel_event)
    finally:
        if install_handler:
            signal.signal(signal.SIGINT, previous_handler or signal.SIG_DFL)

    writer = SummaryWriter()
    try:
        written = writer.write(summary, output)
    except OSError as e:
        logger.error(f"Failed to write summary: {type(e).__name__}: {e}")
        print(f"❌ ERROR: Failed to write summary to {output}: {e}")
        sys.exit(1)

    _print_summary(summary)
    print(f"\n✅ Summary written to: {written}")
    if stdout:
        print(writer.to_json(summary))

    _elapsed = perf_counter() - _start_time
    logger.info(f"Merge run completed in {_format_duration(_elapsed)}")


def _inspect_file(path: Path, lines: int = DEFAULT_SAMPLE_LINES) -> None:
    """Report which line shapes and metrics appear at the start of ``path``."""
    try:
        report = FormatInspector(max_lines=lines).inspect(path)
    except FileNotFoundError:
        logger.error(f"File not found: {path}")
        print(f"❌ ERROR: File not found: {path}")
        sys.exit(1)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to inspect file: {type(e).__name__}: {e}")
        print(f"❌ ERROR: Failed to inspect file: {type(e).__name__}: {e}")
        sys.exit(1)

    print("\n" + "=" * 60)
    print(f"FORMAT REPORT: {report.path}")
    print("=" * 60)
    print(f"   Lines read: {report.lines_read:,}")
    print(f"   Valid JSON: {report.valid_lines:,}")
    print(f"   Invalid JSON: {report.invalid_lines:,}")
    print(f"   Blank: {report.blank_lines:,}")
    print(f"   Unrecognized: {report.unrecognized_lines:,}")

    if report.shape_counts:
        print("\n   Line shapes:")
        for shape, count in report.shape_counts.items():
            print(f"     - {shape}: {count:,} {_plural(count, 'line')}")
    if report.metric_counts:
        print("\n   Most frequent metrics:")
        for name, count in report.metric_counts:
            print(f"     - {name}: {count:,}")

    if report.recognized:
        print("\n✅ Format recognized")
    else:
        print("\n⚠️  No recognizable telemetry lines found")


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the ``loadmerge`` command.

    Args:
        argv: Optional list of command-line arguments. If ``None``, ``sys.argv``
            is used.
    """
    parser = argparse.ArgumentParser(
        prog="loadmerge",
        description="Merge load-test telemetry files into one summary.",
    )

    # Global options
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--quiet", action="store_true", help="Only log warnings and errors"
    )

    subparsers = parser.add_subparsers(
        dest="command",
        required=True,
        title="Available commands",
        metavar="{merge,inspect}",
        help="Available commands",
    )

    # Merge command
    merge_parser = subparsers.add_parser(
        "merge", help="Merge NDJSON telemetry files into a summary"
    )
    merge_parser.add_argument("output", type=Path, help="Summary JSON file to write")
    merge_parser.add_argument(
        "inputs", type=Path, nargs="+", help="NDJSON telemetry files"
    )
    merge_parser.add_argument(
        "--workers",
        "-w",
        type=int,
        default=None,
        help="Worker processes (default: from config, 1 = serial)",
    )
    merge_parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="YAML configuration file",
    )
    merge_parser.add_argument(
        "--stdout",
        action="store_true",
        help="Also print the summary JSON to stdout",
    )

    # Inspect command
    inspect_parser = subparsers.add_parser(
        "inspect", help="Show which line shapes a telemetry file contains"
    )
    inspect_parser.add_argument("file", type=Path, help="NDJSON telemetry file")
    inspect_parser.add_argument(
        "--lines",
        "-n",
        type=int,
        default=DEFAULT_SAMPLE_LINES,
        help=f"Number of lines to examine (default: {DEFAULT_SAMPLE_LINES})",
    )

    # Determine effective arguments (support both direct calls and module entrypoint)
    effective_args = sys.argv[1:] if argv is None else argv

    # If no arguments are provided, show help and exit cleanly
    if not effective_args:
        parser.print_help()
        raise SystemExit(0)

    args = parser.parse_args(effective_args)

    # Configure logging based on arguments
    if args.verbose:
        set_global_log_level(logging.DEBUG)
        logger.debug("Debug logging enabled")
    elif args.quiet:
        set_global_log_level(logging.WARNING)
    else:
        set_global_log_level(logging.INFO)

    if args.command == "merge":
        _run_merge(
            output=args.output,
            inputs=args.inputs,
            workers=args.workers,
            config_path=args.config,
            stdout=args.stdout,
        )
    elif args.command == "inspect":
        _inspect_file(args.file, args.lines)


if __name__ == "__main__":
    main()
