from __future__ import annotations

import logging
from pathlib import Path

import pytest

from loadmerge.ingest.reader import FileIngestor


def test_lines_straddling_chunk_boundaries_are_reassembled(tmp_path: Path) -> None:
    path = tmp_path / "data.ndjson"
    lines = ['{"metric": "vus", "value": 1}', "short", "x" * 50, ""]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    assert list(FileIngestor(path, chunk_size=3)) == lines


def test_final_line_without_newline_is_yielded(tmp_path: Path) -> None:
    path = tmp_path / "data.ndjson"
    path.write_bytes(b"first\nsecond")

    assert list(FileIngestor(path, chunk_size=4)) == ["first", "second"]


def test_crlf_terminators_are_stripped(tmp_path: Path) -> None:
    path = tmp_path / "data.ndjson"
    path.write_bytes(b"a\r\nb\r\n")

    assert list(FileIngestor(path)) == ["a", "b"]


def test_empty_file_yields_nothing(tmp_path: Path) -> None:
    path = tmp_path / "empty.ndjson"
    path.write_bytes(b"")

    assert list(FileIngestor(path)) == []


def test_iteration_is_restartable(tmp_path: Path) -> None:
    path = tmp_path / "data.ndjson"
    path.write_text("1\n2\n3\n", encoding="utf-8")
    ingestor = FileIngestor(path, chunk_size=2)

    assert list(ingestor) == ["1", "2", "3"]
    assert list(ingestor) == ["1", "2", "3"]


def test_invalid_utf8_is_replaced(tmp_path: Path) -> None:
    path = tmp_path / "data.ndjson"
    path.write_bytes(b"ok\n\xff\xfebad\n")

    lines = list(FileIngestor(path))
    assert lines[0] == "ok"
    assert lines[1].endswith("bad")
    assert "�" in lines[1]


def test_missing_file_raises_os_error(tmp_path: Path) -> None:
    ingestor = FileIngestor(tmp_path / "missing.ndjson")

    with pytest.raises(OSError):
        list(ingestor)
    with pytest.raises(OSError):
        ingestor.size_bytes()


def test_size_bytes(tmp_path: Path) -> None:
    path = tmp_path / "data.ndjson"
    path.write_bytes(b"12345\n")

    assert FileIngestor(path).size_bytes() == 6


@pytest.mark.parametrize(
    "kwargs", [{"chunk_size": 0}, {"progress_interval": 0}, {"chunk_size": -1}]
)
def test_rejects_non_positive_settings(tmp_path: Path, kwargs) -> None:
    with pytest.raises(ValueError):
        FileIngestor(tmp_path / "x.ndjson", **kwargs)


def test_progress_is_logged_every_interval(tmp_path: Path, caplog) -> None:
    path = tmp_path / "progress.ndjson"
    path.write_text("a\nb\nc\nd\ne\n", encoding="utf-8")
    caplog.set_level(logging.INFO, logger="loadmerge")

    list(FileIngestor(path, progress_interval=2))

    messages = [r.getMessage() for r in caplog.records]
    assert "Processed 2 lines from progress.ndjson" in messages
    assert "Processed 4 lines from progress.ndjson" in messages
    assert not any("Processed 5 lines" in m for m in messages)
