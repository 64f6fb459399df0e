"""Format inspection of a single telemetry file.

Reads the first lines of a file through the normal parser and reports which
line shapes were recognized and which metrics appear. Useful for checking a
new output format before merging hundreds of files.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from itertools import islice
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from loadmerge.ingest.parser import EventParser, ShapeMatcher
from loadmerge.ingest.reader import FileIngestor
from loadmerge.logging import get_logger
from loadmerge.types import CHECKS_METRIC, CheckSample

logger = get_logger(__name__)

DEFAULT_SAMPLE_LINES = 1000


@dataclass(frozen=True)
class FormatReport:
    """What the first lines of a file look like to the parser.

    Attributes:
        path: Inspected file.
        lines_read: Lines examined.
        valid_lines: Lines that decoded as JSON.
        invalid_lines: Lines that failed to decode.
        blank_lines: Empty lines.
        unrecognized_lines: Valid lines no matcher recognized.
        shape_counts: Matcher name -> number of lines.
        metric_counts: Metric name -> number of events, most frequent first.
    """

    path: str
    lines_read: int
    valid_lines: int
    invalid_lines: int
    blank_lines: int
    unrecognized_lines: int
    shape_counts: Dict[str, int] = field(default_factory=dict)
    metric_counts: List[Tuple[str, int]] = field(default_factory=list)

    @property
    def recognized(self) -> bool:
        """True when at least one line was recognized."""
        return bool(self.shape_counts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "linesRead": self.lines_read,
            "validLines": self.valid_lines,
            "invalidLines": self.invalid_lines,
            "blankLines": self.blank_lines,
            "unrecognizedLines": self.unrecognized_lines,
            "shapes": dict(self.shape_counts),
            "metrics": dict(self.metric_counts),
        }


class FormatInspector:
    """Describes the line shapes found at the start of telemetry files.

    Attributes:
        max_lines: Number of lines to examine per file.
        matchers: Optional shape matcher table.
        top_metrics: Number of metric names to report.
    """

    def __init__(
        self,
        max_lines: int = DEFAULT_SAMPLE_LINES,
        matchers: Optional[Sequence[ShapeMatcher]] = None,
        top_metrics: int = 20,
    ) -> None:
        if max_lines < 1:
            raise ValueError("max_lines must be positive")
        self.max_lines = max_lines
        self.matchers = matchers
        self.top_metrics = top_metrics

    def inspect(self, path: Union[str, Path]) -> FormatReport:
        """Parse the first ``max_lines`` lines of ``path`` and describe them.

        Raises:
            OSError: If the file cannot be read.
        """
        path = Path(path)
        logger.info(f"Inspecting first {self.max_lines:,} lines of: {path}")

        parser = EventParser(self.matchers)
        metrics: Counter[str] = Counter()
        lines_read = 0
        for line in islice(FileIngestor(path), self.max_lines):
            lines_read += 1
            for event in parser.parse(line) or ():
                name = CHECKS_METRIC if isinstance(event, CheckSample) else event.name
                metrics[name] += 1

        return FormatReport(
            path=str(path),
            lines_read=lines_read,
            valid_lines=parser.valid_lines,
            invalid_lines=parser.invalid_lines,
            blank_lines=parser.blank_lines,
            unrecognized_lines=parser.unrecognized_lines,
            shape_counts=dict(parser.shape_counts.most_common()),
            metric_counts=metrics.most_common(self.top_metrics),
        )


def inspect_file(
    path: Union[str, Path], max_lines: int = DEFAULT_SAMPLE_LINES
) -> FormatReport:
    """Shortcut for ``FormatInspector(max_lines).inspect(path)``."""
    return FormatInspector(max_lines=max_lines).inspect(path)
