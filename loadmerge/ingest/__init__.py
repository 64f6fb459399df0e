"""Streaming input: line reading and event normalization."""

from loadmerge.ingest.parser import (
    DEFAULT_MATCHERS,
    EventParser,
    ShapeMatcher,
    parse_timestamp,
)
from loadmerge.ingest.reader import FileIngestor

__all__ = [
    "DEFAULT_MATCHERS",
    "EventParser",
    "FileIngestor",
    "ShapeMatcher",
    "parse_timestamp",
]
