"""Tests for the checkpoint stores (in-memory and file-backed)."""

import asyncio
import json

import pytest

from loopgraph.errors import CheckpointError
from loopgraph.schemas.checkpoint import Checkpoint, CheckpointConfig, CheckpointIndex
from loopgraph.storage.checkpoint_store import FileCheckpointStore, MemorySaver


def make_checkpoint(step: int, next_node: str | None = "agent") -> Checkpoint:
    return Checkpoint.create(
        state={"messages": [{"role": "human", "content": f"m{step}"}]},
        next_node=next_node,
        source_node="tools",
        step=step,
    )


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemorySaver()
    return FileCheckpointStore(tmp_path / "checkpoints")


# === SHARED CONTRACT ===


class TestCheckpointerContract:
    @pytest.mark.asyncio
    async def test_empty_thread(self, store):
        config = CheckpointConfig(thread_id="nobody")
        assert await store.get(config) is None
        assert await store.list(config) == []

    @pytest.mark.asyncio
    async def test_get_returns_latest(self, store):
        config = CheckpointConfig(thread_id="t1")
        first, second = make_checkpoint(1), make_checkpoint(2, next_node="__end__")

        await store.put(config, first)
        await store.put(config, second)

        latest = await store.get(config)
        assert latest.checkpoint_id == second.checkpoint_id
        assert latest.next_node == "__end__"

    @pytest.mark.asyncio
    async def test_list_is_insertion_ordered(self, store):
        config = CheckpointConfig(thread_id="t1")
        checkpoints = [make_checkpoint(i) for i in range(5)]
        for cp in checkpoints:
            await store.put(config, cp)

        listed = await store.list(config)

        assert [cp.checkpoint_id for cp in listed] == [cp.checkpoint_id for cp in checkpoints]
        assert listed[2].state == checkpoints[2].state

    @pytest.mark.asyncio
    async def test_threads_are_isolated(self, store):
        a, b = CheckpointConfig(thread_id="a"), CheckpointConfig(thread_id="b")
        await store.put(a, make_checkpoint(1))
        await store.put(a, make_checkpoint(2))
        await store.put(b, make_checkpoint(7))

        assert len(await store.list(a)) == 2
        assert [cp.step for cp in await store.list(b)] == [7]

    @pytest.mark.asyncio
    async def test_concurrent_puts_are_all_kept(self, store):
        config = CheckpointConfig(thread_id="busy")

        await asyncio.gather(*(store.put(config, make_checkpoint(i)) for i in range(20)))

        listed = await store.list(config)
        assert sorted(cp.step for cp in listed) == list(range(20))


    @pytest.mark.asyncio
    async def test_list_threads(self, store):
        assert await store.list_threads() == []

        await store.put(CheckpointConfig(thread_id="y"), make_checkpoint(1))
        await store.put(CheckpointConfig(thread_id="x"), make_checkpoint(2))

        assert await store.list_threads() == ["x", "y"]


# === MEMORY SAVER ===


class TestMemorySaver:
    @pytest.mark.asyncio
    async def test_list_returns_copy(self):
        saver = MemorySaver()
        config = CheckpointConfig(thread_id="x")
        await saver.put(config, make_checkpoint(1))

        (await saver.list(config)).clear()

        assert len(await saver.list(config)) == 1


# === FILE STORE ===


class TestFileCheckpointStore:
    @pytest.mark.asyncio
    async def test_layout_on_disk(self, tmp_path):
        store = FileCheckpointStore(tmp_path)
        config = CheckpointConfig(thread_id="session-1")
        checkpoint = make_checkpoint(3)

        await store.put(config, checkpoint)

        thread_dir = tmp_path / "session-1"
        assert (thread_dir / f"{checkpoint.checkpoint_id}.json").exists()
        index = json.loads((thread_dir / "index.json").read_text())
        assert index["thread_id"] == "session-1"
        assert index["latest_checkpoint_id"] == checkpoint.checkpoint_id
        assert index["total_checkpoints"] == 1
        assert not list(thread_dir.glob("*.tmp"))

    @pytest.mark.asyncio
    async def test_survives_new_instance(self, tmp_path):
        config = CheckpointConfig(thread_id="t1")
        await FileCheckpointStore(tmp_path).put(config, make_checkpoint(1))
        await FileCheckpointStore(tmp_path).put(config, make_checkpoint(2))

        reopened = FileCheckpointStore(tmp_path)

        assert [cp.step for cp in await reopened.list(config)] == [1, 2]

    @pytest.mark.asyncio
    async def test_unsafe_thread_ids_do_not_collide(self, tmp_path):
        store = FileCheckpointStore(tmp_path)
        slash, underscore = CheckpointConfig(thread_id="a/b"), CheckpointConfig(thread_id="a_b")

        await store.put(slash, make_checkpoint(1))
        await store.put(underscore, make_checkpoint(2))

        assert [cp.step for cp in await store.list(slash)] == [1]
        assert [cp.step for cp in await store.list(underscore)] == [2]
        assert len(list(tmp_path.iterdir())) == 2

    @pytest.mark.asyncio
    async def test_list_threads(self, tmp_path):
        store = FileCheckpointStore(tmp_path)
        assert await store.list_threads() == []

        await store.put(CheckpointConfig(thread_id="one"), make_checkpoint(1))
        await store.put(CheckpointConfig(thread_id="two/x"), make_checkpoint(1))

        assert sorted(await store.list_threads()) == ["one", "two/x"]

    @pytest.mark.asyncio
    async def test_delete_thread(self, tmp_path):
        store = FileCheckpointStore(tmp_path)
        config = CheckpointConfig(thread_id="gone")
        await store.put(config, make_checkpoint(1))

        assert await store.delete_thread(config) is True
        assert await store.get(config) is None
        assert await store.delete_thread(config) is False

    @pytest.mark.asyncio
    async def test_prune_keeps_newest(self, tmp_path):
        store = FileCheckpointStore(tmp_path)
        config = CheckpointConfig(thread_id="long")
        checkpoints = [make_checkpoint(i) for i in range(5)]
        for cp in checkpoints:
            await store.put(config, cp)

        removed = await store.prune(config, keep_last=2)

        assert removed == 3
        remaining = await store.list(config)
        assert [cp.checkpoint_id for cp in remaining] == [
            cp.checkpoint_id for cp in checkpoints[-2:]
        ]
        assert (await store.get(config)).checkpoint_id == checkpoints[-1].checkpoint_id
        assert not (tmp_path / "long" / f"{checkpoints[0].checkpoint_id}.json").exists()

    @pytest.mark.asyncio
    async def test_prune_unknown_thread(self, tmp_path):
        assert await FileCheckpointStore(tmp_path).prune(CheckpointConfig(thread_id="x"), 1) == 0

    @pytest.mark.asyncio
    async def test_corrupt_index_raises(self, tmp_path):
        store = FileCheckpointStore(tmp_path)
        config = CheckpointConfig(thread_id="broken")
        await store.put(config, make_checkpoint(1))
        (tmp_path / "broken" / "index.json").write_text("{not json")

        with pytest.raises(CheckpointError, match="broken"):
            await store.get(config)

    @pytest.mark.asyncio
    async def test_missing_checkpoint_file_raises(self, tmp_path):
        store = FileCheckpointStore(tmp_path)
        config = CheckpointConfig(thread_id="t")
        checkpoint = make_checkpoint(1)
        await store.put(config, checkpoint)
        (tmp_path / "t" / f"{checkpoint.checkpoint_id}.json").unlink()

        with pytest.raises(CheckpointError):
            await store.get(config)


class TestCheckpointIndex:
    def test_keep_last(self):
        index = CheckpointIndex(thread_id="t")
        checkpoints = [make_checkpoint(i) for i in range(3)]
        for cp in checkpoints:
            index.add_checkpoint(cp)

        removed = index.keep_last(1)

        assert removed == [checkpoints[0].checkpoint_id, checkpoints[1].checkpoint_id]
        assert index.total_checkpoints == 1
        assert index.latest_checkpoint_id == checkpoints[2].checkpoint_id

    def test_keep_last_rejects_negative(self):
        with pytest.raises(ValueError):
            CheckpointIndex(thread_id="t").keep_last(-1)
