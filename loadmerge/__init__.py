"""loadmerge: merge load-test telemetry files into one summary.

A load test run by many generator instances leaves one newline-delimited
JSON file per instance. loadmerge streams all of them, normalizes the
different line shapes the generator has written over time, and reduces them
into a single summary of request volume, latency percentiles, failures and
checks.

Primary API:
    MergeCoordinator - Process input files and build a Summary
    MergeConfig - Run settings (workers, percentile accuracy, thresholds)
    SummaryWriter - Persist a Summary as JSON
    FormatInspector - Describe the line shapes found in a file

Example:
    from loadmerge import MergeCoordinator, MergeConfig, SummaryWriter

    summary = MergeCoordinator(MergeConfig(workers=4)).merge(paths)
    SummaryWriter().write(summary, "merged-summary.json")
"""

from __future__ import annotations

from loadmerge import cli, logging
from loadmerge._version import __version__
from loadmerge.checks import CheckResult, CheckTracker
from loadmerge.config import DEFAULT_CONFIG, MergeConfig
from loadmerge.errors import ErrorClassifier, ErrorRecord, classify
from loadmerge.ingest import EventParser, FileIngestor, ShapeMatcher
from loadmerge.inspect import FormatInspector, FormatReport
from loadmerge.merge import MergeCoordinator, MergeState
from loadmerge.results import Summary, SummaryWriter, build_summary
from loadmerge.stats import MetricAccumulator, MetricStats, QuantileHistogram
from loadmerge.types import CheckSample, ErrorCategory, MetricSample

__all__ = [
    # Version
    "__version__",
    # Configuration
    "MergeConfig",
    "DEFAULT_CONFIG",
    # Events
    "MetricSample",
    "CheckSample",
    "ErrorCategory",
    # Ingestion
    "FileIngestor",
    "EventParser",
    "ShapeMatcher",
    "FormatInspector",
    "FormatReport",
    # Accumulators
    "QuantileHistogram",
    "MetricAccumulator",
    "MetricStats",
    "ErrorClassifier",
    "ErrorRecord",
    "classify",
    "CheckTracker",
    "CheckResult",
    # Merge
    "MergeCoordinator",
    "MergeState",
    # Results
    "Summary",
    "SummaryWriter",
    "build_summary",
    # Utilities
    "cli",
    "logging",
]
