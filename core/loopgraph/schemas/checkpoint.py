"""
Checkpoint Schema - State snapshots for resumability.

A checkpoint captures the state produced by one step together with the
node that should run next, so a later run can re-enter the loop at that
node. Checkpoints are appended per thread and never rewritten.
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class CheckpointConfig(BaseModel):
    """Identifies the logical thread (conversation) a checkpoint belongs to."""

    thread_id: str

    model_config = {"frozen": True}


class Checkpoint(BaseModel):
    """
    Single checkpoint in a thread's timeline.

    ``state`` holds the JSON form of the graph state (see State.to_checkpoint);
    ``next_node`` is the node to run when resuming, END when the run finished,
    or None when the caller snapshotted without a continuation.
    """

    # Identity
    checkpoint_id: str = Field(default_factory=lambda: f"cp_{uuid.uuid4().hex[:12]}")
    created_at: str = Field(default_factory=lambda: datetime.now().isoformat())

    # Execution state
    state: dict[str, Any] = Field(default_factory=dict)
    next_node: str | None = None
    source_node: str | None = None  # Node whose step produced this snapshot
    step: int = 0

    # Metadata
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @classmethod
    def create(
        cls,
        state: dict[str, Any],
        next_node: str | None = None,
        source_node: str | None = None,
        step: int = 0,
        metadata: dict[str, Any] | None = None,
    ) -> "Checkpoint":
        """
        Create a new checkpoint with generated ID and timestamp.

        Args:
            state: JSON-compatible state snapshot
            next_node: Node to execute when resuming
            source_node: Node that produced the state
            step: Number of steps executed in the run so far
            metadata: Free-form annotations

        Returns:
            New Checkpoint instance
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return cls(
            checkpoint_id=f"cp_{step:05d}_{timestamp}_{uuid.uuid4().hex[:8]}",
            state=state,
            next_node=next_node,
            source_node=source_node,
            step=step,
            metadata=metadata or {},
        )


class CheckpointSummary(BaseModel):
    """
    Lightweight checkpoint metadata for index listings.

    Lets the file store answer ordering questions without loading
    every checkpoint body.
    """

    checkpoint_id: str
    created_at: str
    next_node: str | None = None
    source_node: str | None = None
    step: int = 0

    @classmethod
    def from_checkpoint(cls, checkpoint: Checkpoint) -> "CheckpointSummary":
        """Create summary from full checkpoint."""
        return cls(
            checkpoint_id=checkpoint.checkpoint_id,
            created_at=checkpoint.created_at,
            next_node=checkpoint.next_node,
            source_node=checkpoint.source_node,
            step=checkpoint.step,
        )


class CheckpointIndex(BaseModel):
    """
    Manifest of all checkpoints for a thread, in insertion order.
    """

    thread_id: str
    checkpoints: list[CheckpointSummary] = Field(default_factory=list)
    latest_checkpoint_id: str | None = None
    total_checkpoints: int = 0

    def add_checkpoint(self, checkpoint: Checkpoint) -> None:
        """Append a checkpoint to the index."""
        self.checkpoints.append(CheckpointSummary.from_checkpoint(checkpoint))
        self.latest_checkpoint_id = checkpoint.checkpoint_id
        self.total_checkpoints = len(self.checkpoints)

    def keep_last(self, count: int) -> list[str]:
        """Drop all but the newest ``count`` entries, returning the removed ids."""
        if count < 0:
            raise ValueError("count must be non-negative")
        cut = max(len(self.checkpoints) - count, 0)
        removed = [cp.checkpoint_id for cp in self.checkpoints[:cut]]
        self.checkpoints = self.checkpoints[cut:]
        self.total_checkpoints = len(self.checkpoints)
        self.latest_checkpoint_id = (
            self.checkpoints[-1].checkpoint_id if self.checkpoints else None
        )
        return removed
