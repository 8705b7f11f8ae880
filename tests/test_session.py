"""Tests for BoardSession: store listeners driving a BoardState."""

import pytest

from propboard.ids import board_path, cards_path, lists_path
from propboard.session import BoardSession
from propboard.store.base import WriteOp
from propboard.store.memory import MemoryStore


@pytest.mark.asyncio
async def test_session_loads_board(store):
    async with BoardSession(store, "b1") as session:
        root = session.state.root
        assert root.board.title == "Test board"
        assert root.lists.keys() == ["l1", "l2", "l3"]
        assert root.lists["l1"].cards.keys() == ["c1", "c2", "c3"]
        assert session.started
    assert not session.started


@pytest.mark.asyncio
async def test_remote_card_change_shows_up(store):
    async with BoardSession(store, "b1") as session:
        await store.update_document(cards_path("b1", "l1"), "c3", {"order": 500.0})
        await store.idle()
        assert session.state.card_ids("l1") == ["c3", "c1", "c2"]


@pytest.mark.asyncio
async def test_new_list_gets_a_card_listener(store):
    async with BoardSession(store, "b1") as session:
        await store.batch_write(
            [
                WriteOp.set(lists_path("b1"), "l4", {"name": "Later", "order": 4000.0}),
                WriteOp.set(cards_path("b1", "l4"), "c9", {"title": "Nine", "order": 1000.0}),
            ]
        )
        await store.idle()
        assert session.state.root.lists["l4"].cards.keys() == ["c9"]

        await store.set_document(cards_path("b1", "l4"), "c10", {"title": "Ten", "order": 2000.0})
        await store.idle()
        assert session.state.card_ids("l4") == ["c9", "c10"]


@pytest.mark.asyncio
async def test_removed_list_forgets_its_cards(store):
    async with BoardSession(store, "b1") as session:
        await store.delete_document(lists_path("b1"), "l1")
        await store.idle()
        assert "l1" not in session.state.root.lists
        assert session.state.card("c1") is None

        # orphaned card writes no longer reach the state
        await store.set_document(cards_path("b1", "l1"), "c1", {"title": "Ghost"})
        await store.idle()
        assert session.state.card("c1") is None


@pytest.mark.asyncio
async def test_board_deleted(store):
    async with BoardSession(store, "b1") as session:
        await store.delete_document(board_path(), "b1")
        await store.idle()
        assert session.state.root.board is None
        # lists are still listed by their own order
        assert session.state.list_ids() == ["l1", "l2", "l3"]


@pytest.mark.asyncio
async def test_stop_unsubscribes_everything(store):
    session = BoardSession(store, "b1")
    session.start()
    session.start()  # second start is ignored
    await store.idle()
    session.stop()

    await store.update_document(board_path(), "b1", {"title": "Renamed"})
    await store.idle()
    assert session.state.root.board.title == "Test board"


@pytest.mark.asyncio
async def test_listener_errors_are_collected():
    class Offline(MemoryStore):
        async def get_collection(self, path):
            raise ConnectionError("offline")

    store = Offline()
    async with BoardSession(store, "b1") as session:
        assert len(session.errors) == 1
        assert isinstance(session.errors[0], ConnectionError)


@pytest.mark.asyncio
async def test_two_sessions_on_one_store_agree(store):
    async with BoardSession(store, "b1") as first, BoardSession(store, "b1") as second:
        await store.update_document(cards_path("b1", "l1"), "c1", {"title": "Edited"})
        await store.idle()
        assert first.state.root.lists["l1"].cards["c1"].title == "Edited"
        assert second.state.root.lists["l1"].cards["c1"].title == "Edited"
