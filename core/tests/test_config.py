"""Tests for loopgraph.config."""

import json

import pytest

from loopgraph import config
from loopgraph.config import (
    RuntimeConfig,
    get_checkpoint_dir,
    get_log_format,
    get_log_level,
    get_loopgraph_config,
)
from loopgraph.runtime.event_bus import EventBus
from loopgraph.storage.checkpoint_store import FileCheckpointStore


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "configuration.json"
    monkeypatch.setenv("LOOPGRAPH_CONFIG", str(path))
    monkeypatch.delenv("LOOPGRAPH_LOG_LEVEL", raising=False)
    return path


def test_missing_file_gives_defaults(config_file):
    assert get_loopgraph_config() == {}
    assert get_log_level() == "INFO"
    assert get_log_format() == "auto"
    assert get_checkpoint_dir() == config.LOOPGRAPH_HOME / "checkpoints"


def test_malformed_file_gives_defaults(config_file):
    config_file.write_text("{oops")
    assert get_loopgraph_config() == {}


def test_values_from_file(config_file, tmp_path):
    config_file.write_text(
        json.dumps(
            {
                "checkpoints": {"dir": str(tmp_path / "cps")},
                "logging": {"level": "debug", "format": "json"},
                "events": {"max_concurrent_handlers": 2, "history": 50},
            }
        )
    )

    runtime = RuntimeConfig()

    assert runtime.checkpoint_dir == tmp_path / "cps"
    assert runtime.log_level == "DEBUG"
    assert runtime.log_format == "json"
    assert runtime.max_concurrent_handlers == 2
    assert runtime.event_history == 50


def test_env_log_level_wins(config_file, monkeypatch):
    config_file.write_text(json.dumps({"logging": {"level": "ERROR"}}))
    monkeypatch.setenv("LOOPGRAPH_LOG_LEVEL", "warning")

    assert get_log_level() == "WARNING"


def test_runtime_config_factories(tmp_path):
    runtime = RuntimeConfig(checkpoint_dir=tmp_path, event_history=5)

    store = runtime.create_checkpointer()
    bus = runtime.create_event_bus()

    assert isinstance(store, FileCheckpointStore)
    assert store.base_path == tmp_path
    assert isinstance(bus, EventBus)
