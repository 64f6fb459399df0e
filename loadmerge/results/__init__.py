"""Summary document and its persistence."""

from loadmerge.results.summary import (
    ErrorTypeCount,
    Summary,
    ThresholdResult,
    build_summary,
    format_bytes,
)
from loadmerge.results.writer import SummaryWriter

__all__ = [
    "ErrorTypeCount",
    "Summary",
    "SummaryWriter",
    "ThresholdResult",
    "build_summary",
    "format_bytes",
]
