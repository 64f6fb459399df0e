"""Per-file ingestion and the cross-file reduction."""

from loadmerge.merge.coordinator import MergeCoordinator, ingest_file
from loadmerge.merge.state import MergeState

__all__ = ["MergeCoordinator", "MergeState", "ingest_file"]
