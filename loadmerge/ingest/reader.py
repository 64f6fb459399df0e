"""Constant-memory line streaming for large NDJSON files.

Files are read in fixed-size binary chunks; lines that straddle a chunk
boundary are reassembled before being yielded, and a final line without a
trailing newline is still produced. Memory use is bounded by the chunk size
plus the longest single line.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, Union

from loadmerge.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_PROGRESS_INTERVAL = 100_000


class FileIngestor:
    """Lazy, restartable iterator over the lines of one file.

    Each call to ``iter()`` reopens the file, so the same instance can be
    streamed several times. Opening or reading errors surface as ``OSError``
    from the iterator; callers decide whether they are fatal.

    Attributes:
        path: File being streamed.
        chunk_size: Bytes per read call.
        progress_interval: Lines between progress log messages.
    """

    def __init__(
        self,
        path: Union[str, Path],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        if progress_interval < 1:
            raise ValueError("progress_interval must be positive")
        self.path = Path(path)
        self.chunk_size = chunk_size
        self.progress_interval = progress_interval

    def size_bytes(self) -> int:
        """Return the file size in bytes (raises ``OSError`` if missing)."""
        return self.path.stat().st_size

    def __iter__(self) -> Iterator[str]:
        return self.lines()

    def lines(self) -> Iterator[str]:
        """Yield decoded lines without their line terminators."""
        line_count = 0
        for raw in self._raw_lines():
            line_count += 1
            if line_count % self.progress_interval == 0:
                logger.info(f"Processed {line_count:,} lines from {self.path.name}")
            yield raw.decode("utf-8", errors="replace")

    def _raw_lines(self) -> Iterator[bytes]:
        pending = b""
        with self.path.open("rb") as fh:
            while True:
                chunk = fh.read(self.chunk_size)
                if not chunk:
                    break
                pending += chunk
                parts = pending.split(b"\n")
                # The last part is incomplete until a newline or EOF arrives
                pending = parts.pop()
                for part in parts:
                    yield _strip_cr(part)
        if pending:
            yield _strip_cr(pending)


def _strip_cr(line: bytes) -> bytes:
    return line[:-1] if line.endswith(b"\r") else line
