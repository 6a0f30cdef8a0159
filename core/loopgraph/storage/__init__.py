"""Checkpoint persistence backends."""

from loopgraph.storage.checkpoint_store import Checkpointer, FileCheckpointStore, MemorySaver

__all__ = ["Checkpointer", "FileCheckpointStore", "MemorySaver"]
