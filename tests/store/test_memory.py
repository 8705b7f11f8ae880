"""Tests for MemoryStore and the shared listener delivery."""

import asyncio

import pytest

from propboard.errors import BatchTooLargeError, DocumentNotFoundError
from propboard.ids import cards_path, document_path, lists_path
from propboard.store.base import WriteOp, affected_paths
from propboard.store.memory import MemoryStore

CARDS = cards_path("b1", "l1")


# --- reads and writes ---


@pytest.mark.asyncio
async def test_set_get_delete(store):
    await store.set_document(CARDS, "new", {"title": "New"})
    doc = await store.get_document(document_path(CARDS, "new"))
    assert doc.id == "new"
    assert doc.data == {"title": "New"}
    assert doc.path == CARDS

    await store.delete_document(CARDS, "new")
    assert await store.get_document(document_path(CARDS, "new")) is None


@pytest.mark.asyncio
async def test_add_document_allocates_id(store):
    doc_id = await store.add_document(CARDS, {"title": "X"})
    assert store.peek(CARDS)[doc_id] == {"title": "X"}


@pytest.mark.asyncio
async def test_update_merges(store):
    await store.update_document(CARDS, "c1", {"completed": True})
    assert store.peek(CARDS)["c1"]["completed"] is True
    assert store.peek(CARDS)["c1"]["title"] == "C1"


@pytest.mark.asyncio
async def test_update_missing_fails_whole_batch(store):
    ops = [WriteOp.delete(CARDS, "c1"), WriteOp.update(CARDS, "ghost", {"title": "?"})]
    with pytest.raises(DocumentNotFoundError):
        await store.batch_write(ops)
    assert "c1" in store.peek(CARDS)
    assert store.writes == []


@pytest.mark.asyncio
async def test_delete_missing_is_noop(store):
    await store.delete_document(CARDS, "ghost")
    assert len(store.peek(CARDS)) == 3


@pytest.mark.asyncio
async def test_batch_limit_writes_nothing():
    store = MemoryStore({CARDS: {"c1": {"title": "A"}}}, max_batch_size=2)
    ops = [WriteOp.set(CARDS, f"n{i}", {}) for i in range(3)]
    with pytest.raises(BatchTooLargeError) as info:
        await store.batch_write(ops)
    assert info.value.size == 3
    assert info.value.limit == 2
    assert list(store.peek(CARDS)) == ["c1"]


@pytest.mark.asyncio
async def test_batch_rejects_document_path(store):
    with pytest.raises(ValueError):
        await store.batch_write([WriteOp.set(document_path(CARDS, "c1"), "x", {})])


@pytest.mark.asyncio
async def test_reads_return_copies(store):
    docs = await store.get_collection(CARDS)
    docs[0].data["title"] = "mutated"
    assert all(d["title"] != "mutated" for d in store.peek(CARDS).values())


@pytest.mark.asyncio
async def test_query_group_spans_lists():
    store = MemoryStore(
        {
            cards_path("b1", "l1"): {"c1": {"boardId": "b1"}},
            cards_path("b1", "l2"): {"c2": {"boardId": "b1"}},
            cards_path("b2", "l9"): {"c3": {"boardId": "b2"}},
            lists_path("b1"): {"l1": {"boardId": "b1"}},
        }
    )
    found = await store.query_group("cards", "boardId", "b1")
    assert sorted(d.id for d in found) == ["c1", "c2"]
    assert {d.path for d in found} == {cards_path("b1", "l1"), cards_path("b1", "l2")}


def test_affected_paths():
    ops = [WriteOp.set(CARDS, "a", {}), WriteOp.delete(CARDS, "b")]
    assert affected_paths(ops) == [CARDS, document_path(CARDS, "a"), document_path(CARDS, "b")]


def test_new_id_is_unique(store):
    assert store.new_id() != store.new_id()


# --- listeners ---


@pytest.mark.asyncio
async def test_listener_gets_initial_snapshot(store):
    seen = []
    store.listen_to_collection(CARDS, lambda docs: seen.append(sorted(d.id for d in docs)))
    await store.idle()
    assert seen == [["c1", "c2", "c3"]]


@pytest.mark.asyncio
async def test_document_listener_sees_delete(store):
    seen = []
    store.listen_to_document(document_path(CARDS, "c1"), seen.append)
    await store.idle()
    await store.delete_document(CARDS, "c1")
    await store.idle()
    assert seen[0].data["title"] == "C1"
    assert seen[-1] is None


@pytest.mark.asyncio
async def test_listen_rejects_wrong_kind(store):
    with pytest.raises(ValueError):
        store.listen_to_collection(document_path(CARDS, "c1"), lambda docs: None)
    with pytest.raises(ValueError):
        store.listen_to_document(CARDS, lambda doc: None)


@pytest.mark.asyncio
async def test_rapid_writes_coalesce_to_latest(store):
    seen = []
    store.listen_to_collection(CARDS, lambda docs: seen.append(len(docs)))
    await store.idle()
    seen.clear()

    for i in range(5):
        await store.set_document(CARDS, f"n{i}", {})
    await store.idle()

    assert seen[-1] == 8
    assert len(seen) < 5


@pytest.mark.asyncio
async def test_unchanged_paths_not_redelivered(store):
    seen = []
    store.listen_to_collection(lists_path("b1"), seen.append)
    await store.idle()
    await store.update_document(CARDS, "c1", {"title": "Changed"})
    await store.idle()
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_write_with_no_effect_does_not_notify(store):
    seen = []
    store.listen_to_collection(CARDS, seen.append)
    await store.idle()
    await store.update_document(CARDS, "c1", {"title": "C1"})
    await store.idle()
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery(store):
    seen = []
    unsubscribe = store.listen_to_collection(CARDS, seen.append)
    await store.idle()
    unsubscribe()
    await store.delete_document(CARDS, "c1")
    await store.idle()
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_hold_and_release(store):
    seen = []
    store.listen_to_collection(CARDS, lambda docs: seen.append(len(docs)))
    await store.idle()

    store.hold(CARDS)
    await store.delete_document(CARDS, "c1")
    await store.delete_document(CARDS, "c2")
    await store.idle()
    assert seen == [3]

    store.release(CARDS)
    await store.idle()
    assert seen == [3, 1]


@pytest.mark.asyncio
async def test_raising_listener_does_not_block_others(store, caplog):
    seen = []

    def broken(docs):
        raise RuntimeError("boom")

    store.listen_to_collection(CARDS, broken)
    store.listen_to_collection(CARDS, seen.append)
    await store.idle()
    assert len(seen) == 1
    assert "listener for" in caplog.text


@pytest.mark.asyncio
async def test_read_failure_goes_to_on_error():
    class BrokenReads(MemoryStore):
        async def get_collection(self, path):
            raise ConnectionError("offline")

    store = BrokenReads()
    errors = []
    store.listen_to_collection(CARDS, lambda docs: None, errors.append)
    await store.idle()
    assert isinstance(errors[0], ConnectionError)


@pytest.mark.asyncio
async def test_latency_lets_callers_interleave():
    store = MemoryStore(latency=0.01)
    order = []

    async def write(doc_id):
        await store.set_document(CARDS, doc_id, {})
        order.append(doc_id)

    await asyncio.gather(write("a"), write("b"))
    assert sorted(order) == ["a", "b"]
    assert set(store.peek(CARDS)) == {"a", "b"}


def test_replace_all_reports_changes(store):
    collections = {CARDS: {"c1": {"title": "C1 changed"}}}
    changed = store.replace_all(collections)
    assert CARDS in changed
    assert document_path(CARDS, "c1") in changed
    assert document_path(CARDS, "c2") in changed
    assert lists_path("b1") in changed
    assert store.peek(CARDS) == {"c1": {"title": "C1 changed"}}
