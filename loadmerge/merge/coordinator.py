"""MergeCoordinator: drives ingestion over many files and builds the summary.

Every input file is streamed into its own :class:`MergeState`. Files are
independent until the final reduction, so they can be processed serially in
the calling process or one per worker process. The reduction folds the
per-file states with :meth:`MergeState.merge` in input order and hands the
result to :func:`~loadmerge.results.summary.build_summary` exactly once.

Per-line and per-file problems never abort a run: malformed lines are
counted, and unreadable files are logged, recorded and skipped.

Cancellation: ``merge`` accepts any object with an ``is_set()`` method
(``threading.Event`` for instance). Once it is set, no new files are
started and the summary is built from what has been processed so far.
"""

from __future__ import annotations

import os
import time
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, wait
from functools import reduce
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, Union

from loadmerge.config import DEFAULT_CONFIG, MergeConfig
from loadmerge.ingest.parser import EventParser, ShapeMatcher
from loadmerge.ingest.reader import FileIngestor
from loadmerge.logging import (
    LOG_LEVEL_ENV,
    apply_env_log_level,
    current_level_name,
    get_logger,
)
from loadmerge.merge.state import MergeState
from loadmerge.results.summary import Summary, build_summary

logger = get_logger(__name__)

# Lines between cancellation checks while streaming a file
CANCEL_CHECK_INTERVAL = 1024

# Seconds between cancellation checks while waiting on workers
_POLL_SECONDS = 0.1

PathLike = Union[str, Path]


class CancelSignal(Protocol):
    """Anything that can report a cancellation request."""

    def is_set(self) -> bool: ...


def _format_size(num_bytes: int) -> str:
    if num_bytes >= 1024**3:
        return f"{num_bytes / 1024**3:.2f} GB"
    if num_bytes >= 1024**2:
        return f"{num_bytes / 1024**2:.2f} MB"
    return f"{num_bytes / 1024:.2f} KB"


def ingest_file(
    path: Path,
    config: MergeConfig = DEFAULT_CONFIG,
    matchers: Optional[Sequence[ShapeMatcher]] = None,
    cancel_event: Optional[CancelSignal] = None,
) -> MergeState:
    """Stream one file into a fresh `MergeState`.

    Args:
        path: Input file.
        config: Ingestion and accumulator settings.
        matchers: Optional shape matcher table (defaults to the built-in one).
        cancel_event: Optional cancellation signal, polled periodically.

    Returns:
        State for this file. If the file cannot be read, an empty state that
        lists it under ``skipped_files``. If cancelled part-way, the partial
        state with ``cancelled`` set and the file not marked processed.
    """
    ingestor = FileIngestor(
        path,
        chunk_size=config.chunk_size,
        progress_interval=config.progress_interval,
    )
    parser = EventParser(matchers)
    state = MergeState.empty(config)
    cancelled = False

    try:
        logger.info(f"Processing: {path.name} ({_format_size(ingestor.size_bytes())})")
        for line_no, line in enumerate(ingestor, start=1):
            events = parser.parse(line)
            if events:
                for event in events:
                    state.observe(event)
            if (
                cancel_event is not None
                and line_no % CANCEL_CHECK_INTERVAL == 0
                and cancel_event.is_set()
            ):
                cancelled = True
                break
    except OSError as exc:
        logger.warning(f"Skipping unreadable file {path}: {exc}")
        skipped = MergeState.empty(config)
        skipped.skipped_files.append(str(path))
        return skipped

    state.absorb_parser(parser)
    if cancelled:
        logger.warning(
            f"Cancelled while processing {path.name} after {state.total_lines:,} lines"
        )
        state.cancelled = True
        return state

    state.processed_files.append(str(path))
    logger.info(
        f"Completed: {path.name} ({state.total_lines:,} lines, "
        f"{parser.invalid_lines:,} invalid, {parser.unrecognized_lines:,} unrecognized)"
    )
    return state


def _worker_init() -> None:
    """Apply the parent's log level inside a worker process."""
    apply_env_log_level()
    get_logger(f"{__name__}.worker").debug(f"Worker {os.getpid()} initialized")


def _ingest_worker(
    args: Tuple[str, MergeConfig, Optional[Sequence[ShapeMatcher]]],
) -> MergeState:
    path, config, matchers = args
    return ingest_file(Path(path), config, matchers)


class MergeCoordinator:
    """Merges telemetry files into one `Summary`.

    Attributes:
        config: Run settings; ``config.workers > 1`` enables worker processes.
        matchers: Optional shape matcher table. Matchers must be picklable
            (module-level functions) when worker processes are used.
    """

    def __init__(
        self,
        config: MergeConfig = DEFAULT_CONFIG,
        matchers: Optional[Sequence[ShapeMatcher]] = None,
    ) -> None:
        self.config = config
        self.matchers = tuple(matchers) if matchers is not None else None

    def process_file(
        self, path: PathLike, cancel_event: Optional[CancelSignal] = None
    ) -> MergeState:
        """Stream a single file into its own state."""
        return ingest_file(Path(path), self.config, self.matchers, cancel_event)

    def merge(
        self,
        paths: Iterable[PathLike],
        cancel_event: Optional[CancelSignal] = None,
    ) -> Summary:
        """Process all files and build the summary.

        Args:
            paths: Input files. Missing or unreadable ones are skipped.
            cancel_event: Optional cancellation signal. When set, the partial
                summary of the work done so far is returned.

        Returns:
            The run's summary. Never raises for bad input data.
        """
        path_list = [Path(p) for p in paths]
        start_time = time.time()
        logger.info(f"Starting merge of {len(path_list)} files")

        workers = min(self.config.workers, len(path_list))
        if workers > 1:
            states, cancelled = self._run_parallel(path_list, workers, cancel_event)
        else:
            states, cancelled = self._run_serial(path_list, cancel_event)

        combined = reduce(MergeState.merge, states, MergeState.empty(self.config))
        if cancelled:
            combined.cancelled = True
        summary = build_summary(combined, total_files=len(path_list), config=self.config)

        elapsed = time.time() - start_time
        if summary.cancelled:
            logger.warning(
                f"Merge cancelled: returning partial summary of "
                f"{summary.processed_files}/{summary.total_files} files"
            )
        logger.info(
            f"Merge completed: processed {summary.processed_files}/{summary.total_files} "
            f"files, {summary.total_lines:,} lines ({summary.valid_lines:,} valid) "
            f"in {elapsed:.2f} seconds"
        )
        return summary

    def _run_serial(
        self, paths: List[Path], cancel_event: Optional[CancelSignal]
    ) -> Tuple[List[MergeState], bool]:
        """Process files one after another in the calling process."""
        states: List[MergeState] = []
        for index, path in enumerate(paths):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Cancellation requested; {len(paths) - index} files not started")
                return states, True
            state = self.process_file(path, cancel_event)
            states.append(state)
            if state.cancelled:
                return states, True
        return states, False

    def _run_parallel(
        self,
        paths: List[Path],
        workers: int,
        cancel_event: Optional[CancelSignal],
    ) -> Tuple[List[MergeState], bool]:
        """Process files in worker processes, one task per file.

        Results are ordered by input position before reduction so the
        outcome does not depend on completion order.
        """
        logger.info(f"Running parallel merge with {workers} workers for {len(paths)} files")

        # Propagate logging level to workers via environment
        os.environ[LOG_LEVEL_ENV] = current_level_name()

        results: Dict[int, MergeState] = {}
        cancelled = False
        pool = ProcessPoolExecutor(max_workers=workers, initializer=_worker_init)
        try:
            futures: Dict[Future, int] = {
                pool.submit(_ingest_worker, (str(path), self.config, self.matchers)): index
                for index, path in enumerate(paths)
            }
            pending = set(futures)
            while pending:
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    for future in pending:
                        future.cancel()
                    logger.info(
                        f"Cancellation requested; abandoning {len(pending)} pending files"
                    )
                    break
                done, pending = wait(
                    pending, timeout=_POLL_SECONDS, return_when=FIRST_COMPLETED
                )
                for future in done:
                    results[futures[future]] = future.result()
                    logger.info(
                        f"Parallel merge progress: {len(results)}/{len(paths)} files"
                    )
        finally:
            pool.shutdown(wait=not cancelled, cancel_futures=cancelled)

        return [results[i] for i in sorted(results)], cancelled
