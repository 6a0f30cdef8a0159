"""Persisted and boundary-crossing data models."""

from loopgraph.schemas.checkpoint import (
    Checkpoint,
    CheckpointConfig,
    CheckpointIndex,
    CheckpointSummary,
)
from loopgraph.schemas.message import Message, ToolCall

__all__ = [
    "Checkpoint",
    "CheckpointConfig",
    "CheckpointIndex",
    "CheckpointSummary",
    "Message",
    "ToolCall",
]
