"""Persistence of the summary document."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Union

from loadmerge.logging import get_logger
from loadmerge.results.summary import Summary
from loadmerge.utils.output_paths import ensure_parent_dir, staging_path_for

logger = get_logger(__name__)


class SummaryWriter:
    """Writes a `Summary` as pretty-printed JSON.

    The document is first written to a staging file next to the target and
    then renamed over it, so readers never observe a half-written summary.
    """

    def __init__(self, indent: int = 2) -> None:
        self.indent = indent

    def to_json(self, summary: Summary) -> str:
        """Serialize a summary to a JSON string."""
        return json.dumps(summary.to_dict(), indent=self.indent)

    def write(self, summary: Summary, path: Union[str, Path]) -> Path:
        """Write ``summary`` to ``path``.

        Args:
            summary: Summary to persist.
            path: Destination file; parent directories are created.

        Returns:
            The destination path.

        Raises:
            OSError: If the file cannot be written.
        """
        target = Path(path)
        payload = self.to_json(summary)
        ensure_parent_dir(target)
        staging = staging_path_for(target)
        logger.info(f"Writing summary to: {target}")
        try:
            staging.write_text(payload + "\n", encoding="utf-8")
            os.replace(staging, target)
        except OSError:
            staging.unlink(missing_ok=True)
            raise
        logger.debug(f"Summary written ({len(payload):,} bytes)")
        return target
