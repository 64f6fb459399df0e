from __future__ import annotations

from pathlib import Path

import pytest

from loadmerge.config import DEFAULT_CONFIG, MergeConfig


def test_defaults() -> None:
    config = MergeConfig()

    assert config == DEFAULT_CONFIG
    assert config.chunk_size == 65536
    assert config.workers == 1
    assert config.relative_accuracy == 0.01
    assert config.error_sample_capacity == 20
    assert config.url_max_length == 100
    assert config.p95_threshold_ms == 10000.0
    assert config.error_rate_threshold_percent == 40.0


def test_from_yaml() -> None:
    config = MergeConfig.from_yaml(
        "workers: 4\nrelative_accuracy: 0.005\np95_threshold_ms: 2000\n"
    )

    assert config.workers == 4
    assert config.relative_accuracy == 0.005
    assert config.p95_threshold_ms == 2000
    assert config.max_buckets == 2048


def test_empty_yaml_gives_defaults() -> None:
    assert MergeConfig.from_yaml("") == DEFAULT_CONFIG
    assert MergeConfig.from_yaml("# nothing here\n") == DEFAULT_CONFIG


def test_load_reads_file(tmp_path: Path) -> None:
    path = tmp_path / "merge.yaml"
    path.write_text("error_sample_capacity: 50\n", encoding="utf-8")

    assert MergeConfig.load(path).error_sample_capacity == 50


@pytest.mark.parametrize(
    "text, message",
    [
        ("workerz: 2\n", "Unknown configuration keys: workerz"),
        ("yes: 1\n", "Unknown configuration keys: True"),
        ("workers: [1\n", "Invalid configuration YAML"),
        ("just a string\n", "must be a mapping"),
    ],
)
def test_from_yaml_errors(text: str, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        MergeConfig.from_yaml(text)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"workers": 0},
        {"chunk_size": -5},
        {"max_buckets": True},
        {"workers": 2.5},
        {"relative_accuracy": 0.0},
        {"relative_accuracy": 1.5},
        {"p95_threshold_ms": -1.0},
        {"error_rate_threshold_percent": -0.1},
    ],
)
def test_invalid_values(kwargs) -> None:
    with pytest.raises(ValueError):
        MergeConfig(**kwargs)


def test_with_overrides_ignores_none() -> None:
    config = MergeConfig(workers=2)

    assert config.with_overrides(workers=None) is config
    assert config.with_overrides(workers=8).workers == 8
    assert config.workers == 2
