"""Shared loopgraph configuration utilities.

Centralises reading of ~/.loopgraph/configuration.json so hosts, demos and
tests share one implementation. The file is optional; every helper has a
default.

Example file:
    {
        "checkpoints": {"dir": "~/.loopgraph/checkpoints"},
        "logging": {"level": "DEBUG", "format": "json"},
        "events": {"max_concurrent_handlers": 10, "history": 1000}
    }
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loopgraph.observability import configure_logging
from loopgraph.runtime.event_bus import EventBus
from loopgraph.storage.checkpoint_store import FileCheckpointStore

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

LOOPGRAPH_HOME = Path.home() / ".loopgraph"
LOOPGRAPH_CONFIG_FILE = LOOPGRAPH_HOME / "configuration.json"


def get_config_file() -> Path:
    """Path of the configuration file; LOOPGRAPH_CONFIG overrides the default."""
    override = os.environ.get("LOOPGRAPH_CONFIG")
    return Path(override).expanduser() if override else LOOPGRAPH_CONFIG_FILE


def get_loopgraph_config() -> dict[str, Any]:
    """Load loopgraph configuration, or {} when the file is missing or unreadable."""
    config_file = get_config_file()
    if not config_file.exists():
        return {}
    try:
        with open(config_file, encoding="utf-8-sig") as f:
            config = json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}
    return config if isinstance(config, dict) else {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def get_checkpoint_dir() -> Path:
    """Return the directory FileCheckpointStore uses by default."""
    configured = get_loopgraph_config().get("checkpoints", {}).get("dir")
    if configured:
        return Path(configured).expanduser()
    return LOOPGRAPH_HOME / "checkpoints"


def get_log_level() -> str:
    """Return the log level; LOOPGRAPH_LOG_LEVEL wins over the file."""
    env_level = os.environ.get("LOOPGRAPH_LOG_LEVEL")
    if env_level:
        return env_level.upper()
    return get_loopgraph_config().get("logging", {}).get("level", "INFO").upper()


def get_log_format() -> str:
    """Return the log format: "json", "human" or "auto"."""
    return get_loopgraph_config().get("logging", {}).get("format", "auto")


def get_max_concurrent_handlers() -> int:
    return get_loopgraph_config().get("events", {}).get("max_concurrent_handlers", 10)


def get_event_history() -> int:
    return get_loopgraph_config().get("events", {}).get("history", 1000)


# ---------------------------------------------------------------------------
# RuntimeConfig – one object for host wiring
# ---------------------------------------------------------------------------


@dataclass
class RuntimeConfig:
    """Runtime settings loaded from ~/.loopgraph/configuration.json."""

    checkpoint_dir: Path = field(default_factory=get_checkpoint_dir)
    log_level: str = field(default_factory=get_log_level)
    log_format: str = field(default_factory=get_log_format)
    max_concurrent_handlers: int = field(default_factory=get_max_concurrent_handlers)
    event_history: int = field(default_factory=get_event_history)

    def configure_logging(self) -> None:
        configure_logging(level=self.log_level, format=self.log_format)

    def create_checkpointer(self) -> FileCheckpointStore:
        return FileCheckpointStore(self.checkpoint_dir)

    def create_event_bus(self) -> EventBus:
        return EventBus(
            max_history=self.event_history,
            max_concurrent_handlers=self.max_concurrent_handlers,
        )
