"""
Checkpoint Store - Append-only persistence of run snapshots per thread.

Two backends share the Checkpointer interface:
- MemorySaver: per-thread lists in memory (development, tests)
- FileCheckpointStore: one directory per thread with an index manifest and
  atomic writes (survives process restarts)

Both keep insertion order: get() returns the last checkpoint put() for a
thread, list() returns all of them oldest first. Appends to one thread are
serialised with a per-thread lock so concurrent runs cannot reorder them.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import re
import shutil
from abc import ABC, abstractmethod
from collections import defaultdict
from pathlib import Path

from pydantic import ValidationError

from loopgraph.errors import CheckpointError
from loopgraph.schemas.checkpoint import Checkpoint, CheckpointConfig, CheckpointIndex
from loopgraph.utils.io import atomic_write

logger = logging.getLogger(__name__)


class Checkpointer(ABC):
    """Persistence boundary for checkpoints, keyed by thread id."""

    @abstractmethod
    async def put(self, config: CheckpointConfig, checkpoint: Checkpoint) -> None:
        """Append ``checkpoint`` to the thread. Never overwrites earlier entries."""

    @abstractmethod
    async def get(self, config: CheckpointConfig) -> Checkpoint | None:
        """Most recently appended checkpoint, or None if the thread has none."""

    @abstractmethod
    async def list(self, config: CheckpointConfig) -> list[Checkpoint]:
        """All checkpoints of the thread in insertion order (oldest first)."""

    @abstractmethod
    async def list_threads(self) -> list[str]:
        """Thread ids that hold at least one checkpoint."""


class MemorySaver(Checkpointer):
    """
    In-memory checkpointer.

    Example:
        saver = MemorySaver()
        graph = builder.compile().with_checkpointer(saver)
        await graph.invoke(state, config=CheckpointConfig(thread_id="t1"))
    """

    def __init__(self) -> None:
        self._store: dict[str, list[Checkpoint]] = defaultdict(list)
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def put(self, config: CheckpointConfig, checkpoint: Checkpoint) -> None:
        async with self._locks[config.thread_id]:
            self._store[config.thread_id].append(checkpoint)
        logger.debug(f"Saved checkpoint {checkpoint.checkpoint_id} for thread {config.thread_id}")

    async def get(self, config: CheckpointConfig) -> Checkpoint | None:
        checkpoints = self._store.get(config.thread_id)
        return checkpoints[-1] if checkpoints else None

    async def list(self, config: CheckpointConfig) -> list[Checkpoint]:
        return list(self._store.get(config.thread_id, []))

    async def list_threads(self) -> list[str]:
        return sorted(thread_id for thread_id, cps in self._store.items() if cps)


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class FileCheckpointStore(Checkpointer):
    """
    File-backed checkpointer with atomic writes.

    Directory structure:
        {base_path}/
            {thread_id}/
                index.json              # Ordered manifest (CheckpointIndex)
                {checkpoint_id}.json    # Individual checkpoints
    """

    def __init__(self, base_path: Path | str):
        """
        Initialize checkpoint store.

        Args:
            base_path: Root directory (e.g., ~/.loopgraph/checkpoints)
        """
        self.base_path = Path(base_path)
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _thread_dir(self, thread_id: str) -> Path:
        safe = _UNSAFE_CHARS.sub("_", thread_id)
        if safe != thread_id or not safe.strip("."):
            # Keep sanitised names distinct: "a/b" and "a_b" must not collide
            digest = hashlib.sha1(thread_id.encode("utf-8")).hexdigest()[:10]
            safe = f"{safe}-{digest}"
        return self.base_path / safe

    async def put(self, config: CheckpointConfig, checkpoint: Checkpoint) -> None:
        """
        Atomically save checkpoint, then append it to the thread index.

        Raises:
            CheckpointError: If the write fails
        """
        thread_dir = self._thread_dir(config.thread_id)

        def _write(index: CheckpointIndex) -> None:
            thread_dir.mkdir(parents=True, exist_ok=True)
            with atomic_write(thread_dir / f"{checkpoint.checkpoint_id}.json") as f:
                f.write(checkpoint.model_dump_json(indent=2))
            index.add_checkpoint(checkpoint)
            with atomic_write(thread_dir / "index.json") as f:
                f.write(index.model_dump_json(indent=2))

        async with self._locks[config.thread_id]:
            index = await self._load_index(config.thread_id)
            if index is None:
                index = CheckpointIndex(thread_id=config.thread_id)
            try:
                await asyncio.to_thread(_write, index)
            except OSError as e:
                raise CheckpointError(
                    f"Failed to save checkpoint {checkpoint.checkpoint_id} "
                    f"for thread '{config.thread_id}': {e}"
                ) from e

        logger.debug(f"Saved checkpoint {checkpoint.checkpoint_id} for thread {config.thread_id}")

    async def get(self, config: CheckpointConfig) -> Checkpoint | None:
        index = await self._load_index(config.thread_id)
        if not index or not index.latest_checkpoint_id:
            return None
        return await self._load_checkpoint(config.thread_id, index.latest_checkpoint_id)

    async def list(self, config: CheckpointConfig) -> list[Checkpoint]:
        index = await self._load_index(config.thread_id)
        if not index:
            return []
        return [
            await self._load_checkpoint(config.thread_id, summary.checkpoint_id)
            for summary in index.checkpoints
        ]

    async def list_threads(self) -> list[str]:
        """Thread ids with a checkpoint index on disk."""

        def _scan() -> list[str]:
            if not self.base_path.exists():
                return []
            threads = []
            for index_path in sorted(self.base_path.glob("*/index.json")):
                try:
                    threads.append(
                        CheckpointIndex.model_validate_json(index_path.read_text()).thread_id
                    )
                except (OSError, ValidationError) as e:
                    logger.warning(f"Skipping unreadable index {index_path}: {e}")
            return sorted(threads)

        return await asyncio.to_thread(_scan)

    async def delete_thread(self, config: CheckpointConfig) -> bool:
        """
        Remove every checkpoint of a thread.

        Returns:
            True if the thread existed
        """
        thread_dir = self._thread_dir(config.thread_id)

        def _delete() -> bool:
            if not thread_dir.exists():
                return False
            shutil.rmtree(thread_dir)
            return True

        async with self._locks[config.thread_id]:
            deleted = await asyncio.to_thread(_delete)

        if deleted:
            logger.info(f"Deleted checkpoints for thread {config.thread_id}")
        return deleted

    async def prune(self, config: CheckpointConfig, keep_last: int) -> int:
        """
        Keep only the newest ``keep_last`` checkpoints of a thread.

        Returns:
            Number of checkpoints deleted
        """
        thread_dir = self._thread_dir(config.thread_id)

        def _rewrite(index: CheckpointIndex, removed: list[str]) -> None:
            with atomic_write(thread_dir / "index.json") as f:
                f.write(index.model_dump_json(indent=2))
            for checkpoint_id in removed:
                (thread_dir / f"{checkpoint_id}.json").unlink(missing_ok=True)

        async with self._locks[config.thread_id]:
            index = await self._load_index(config.thread_id)
            if not index:
                return 0
            removed = index.keep_last(keep_last)
            if removed:
                await asyncio.to_thread(_rewrite, index, removed)

        if removed:
            logger.info(f"Pruned {len(removed)} checkpoints from thread {config.thread_id}")
        return len(removed)

    async def _load_index(self, thread_id: str) -> CheckpointIndex | None:
        index_path = self._thread_dir(thread_id) / "index.json"

        def _read() -> CheckpointIndex | None:
            if not index_path.exists():
                return None
            try:
                return CheckpointIndex.model_validate_json(index_path.read_text())
            except (OSError, ValidationError) as e:
                raise CheckpointError(
                    f"Failed to load checkpoint index for thread '{thread_id}': {e}"
                ) from e

        return await asyncio.to_thread(_read)

    async def _load_checkpoint(self, thread_id: str, checkpoint_id: str) -> Checkpoint:
        checkpoint_path = self._thread_dir(thread_id) / f"{checkpoint_id}.json"

        def _read() -> Checkpoint:
            try:
                return Checkpoint.model_validate_json(checkpoint_path.read_text())
            except (OSError, ValidationError) as e:
                raise CheckpointError(
                    f"Failed to load checkpoint {checkpoint_id} for thread '{thread_id}': {e}"
                ) from e

        return await asyncio.to_thread(_read)
