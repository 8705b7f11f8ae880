"""Tests for the confirmed + optimistic board state."""

from propboard.commands import (
    BOARD_SCOPE,
    LISTS_SCOPE,
    PutCard,
    PutList,
    RemoveCard,
    RemoveList,
    SetCardFields,
    SetListFields,
    cards_scope,
)
from propboard.model.node import REORDERED
from propboard.state import BoardState, Snapshot, ordered_card_ids, ordered_list_ids


def _state():
    state = BoardState("b1")
    state.apply_board({"title": "Board", "listIds": ["l1", "l2"]})
    state.apply_lists({"l1": {"name": "Todo", "order": 1000.0}, "l2": {"name": "Done", "order": 2000.0}})
    state.apply_cards("l1", {"c1": {"title": "A", "order": 1000.0}, "c2": {"title": "B", "order": 2000.0}})
    state.apply_cards("l2", {})
    return state


# --- ordering ---


def test_list_ids_follow_board_then_order():
    snap = Snapshot(
        board={"listIds": ["l3", "gone", "l1"]},
        lists={"l1": {"order": 1.0}, "l2": {"order": 5.0}, "l3": {"order": 9.0}, "l4": {"order": 2.0}},
    )
    assert ordered_list_ids(snap) == ["l3", "l1", "l4", "l2"]


def test_list_ids_without_board_use_order():
    snap = Snapshot(lists={"a": {"order": 2.0}, "b": {"order": 1.0}})
    assert ordered_list_ids(snap) == ["b", "a"]


def test_duplicate_list_ids_are_collapsed():
    snap = Snapshot(board={"listIds": ["a", "a", "b"]}, lists={"a": {}, "b": {}})
    assert ordered_list_ids(snap) == ["a", "b"]


def test_card_ids_sorted_by_order_missing_last():
    snap = Snapshot(cards={"l1": {"x": {}, "y": {"order": 2.0}, "z": {"order": 1.0}}})
    assert ordered_card_ids(snap, "l1") == ["z", "y", "x"]


# --- rendered tree ---


def test_root_tree_shape():
    state = _state()
    assert state.root.board.title == "Board"
    assert state.root.lists.keys() == ["l1", "l2"]
    todo = state.root.lists["l1"]
    assert todo.id == "l1"
    assert todo.name == "Todo"
    assert todo.cards.keys() == ["c1", "c2"]
    assert todo.cards["c1"].title == "A"
    assert todo.cards["c1"].id == "c1"


def test_incoming_documents_are_normalized():
    state = _state()
    assert state.root.lists["l1"].cards["c1"].completed is False
    assert state.root.lists["l1"].cards["c1"].status == "not_started"


def test_rebuild_keeps_nodes_and_reports_reorder():
    state = _state()
    cards = state.root.lists["l1"].cards
    c1 = cards["c1"]
    events = []
    cards.watch(REORDERED, lambda n, k, old, new: events.append(new))

    state.apply_cards("l1", {"c1": {"title": "A", "order": 3000.0}, "c2": {"title": "B", "order": 2000.0}})

    assert state.root.lists["l1"].cards is cards
    assert cards["c1"] is c1
    assert events == [["c2", "c1"]]


def test_card_before_its_list_is_tolerated():
    state = _state()
    state.apply_cards("l9", {"c9": {"title": "Early", "order": 1000.0}})
    assert "l9" not in state.root.lists

    state.apply_lists(
        {
            "l1": {"name": "Todo", "order": 1000.0},
            "l2": {"name": "Done", "order": 2000.0},
            "l9": {"name": "Late", "order": 3000.0},
        }
    )
    assert state.root.lists["l9"].cards.keys() == ["c9"]


def test_forget_cards():
    state = _state()
    state.forget_cards("l1")
    assert state.card_ids("l1") == []
    assert state.card("c1") is None


def test_lookups():
    state = _state()
    assert state.list_ids() == ["l1", "l2"]
    assert state.card("c2")[0] == "l1"
    assert state.card_orders("l1", exclude="c1") == (["c2"], [2000.0])
    assert state.list_orders() == (["l1", "l2"], [1000.0, 2000.0])
    assert state.list_data("l2")["name"] == "Done"
    assert [c["id"] for c in state.cards_for("l1")] == ["c1", "c2"]


# --- optimistic layer ---


def test_begin_shows_change_and_revert_restores():
    state = _state()
    command = state.begin(SetCardFields("l1", {"c1": {"order": 2500.0}}))
    assert state.card_ids("l1") == ["c2", "c1"]
    assert state.root.lists["l1"].cards.keys() == ["c2", "c1"]

    state.revert(command)
    assert state.pending == []
    assert state.card_ids("l1") == ["c1", "c2"]
    assert state.root.lists["l1"].cards.keys() == ["c1", "c2"]


def test_command_settles_when_confirmed():
    state = _state()
    command = state.begin(SetCardFields("l1", {"c1": {"order": 2500.0}}))
    state.acknowledge(command)
    assert command in state.pending

    state.apply_cards("l1", {"c1": {"title": "A", "order": 2500.0}, "c2": {"title": "B", "order": 2000.0}})
    assert state.pending == []
    assert state.card_ids("l1") == ["c2", "c1"]


def test_stale_echo_does_not_flicker():
    """A delivery that predates the write leaves the optimistic view in place."""
    state = _state()
    command = state.begin(SetCardFields("l1", {"c1": {"order": 2500.0}}))

    state.apply_cards("l1", {"c1": {"title": "A", "order": 1000.0}, "c2": {"title": "B", "order": 2000.0}})

    assert command in state.pending
    assert state.card_ids("l1") == ["c2", "c1"]


def test_acknowledged_command_drops_after_its_scopes_deliver():
    """Someone else overwrote the same field: once our scope echoes, theirs shows."""
    state = _state()
    command = state.begin(SetCardFields("l1", {"c1": {"order": 2500.0}}))
    state.acknowledge(command)
    assert command.awaiting == {cards_scope("l1")}

    state.apply_cards("l1", {"c1": {"title": "A", "order": 9000.0}, "c2": {"title": "B", "order": 2000.0}})

    assert state.pending == []
    assert state.view.cards["l1"]["c1"]["order"] == 9000.0


def test_acknowledge_when_already_confirmed():
    state = _state()
    command = state.begin(SetCardFields("l1", {"c1": {"title": "A"}}))
    state.acknowledge(command)
    assert state.pending == []


def test_put_card_moves_between_lists():
    state = _state()
    data = {"title": "A", "order": 1000.0, "listId": "l2"}
    command = state.begin(PutCard("l2", "c1", data, remove_from=("l1",), origin="l1"))
    assert state.card_ids("l1") == ["c2"]
    assert state.card_ids("l2") == ["c1"]
    assert command.scopes == {cards_scope("l1"), cards_scope("l2")}

    state.acknowledge(command)
    state.apply_cards("l2", {"c1": data})
    assert command in state.pending
    state.apply_cards("l1", {"c2": {"title": "B", "order": 2000.0}})
    assert state.pending == []
    assert state.card_ids("l2") == ["c1"]


def test_put_card_applies_sibling_renumber():
    state = _state()
    state.begin(
        PutCard("l1", "new", {"title": "N", "order": 2000.0}, sibling_orders={"c1": 1000.0, "c2": 3000.0})
    )
    assert state.card_ids("l1") == ["c1", "new", "c2"]


def test_remove_card():
    state = _state()
    command = state.begin(RemoveCard("l1", "c1"))
    assert state.card_ids("l1") == ["c2"]
    assert not command.confirmed_by(state.confirmed)


def test_list_commands():
    state = _state()
    reorder = state.begin(SetListFields({"l2": {"order": 500.0}}, list_ids=["l2", "l1"]))
    assert state.list_ids() == ["l2", "l1"]
    assert reorder.scopes == {LISTS_SCOPE, BOARD_SCOPE}

    state.begin(PutList("l3", {"name": "New", "order": 3000.0}, list_ids=["l2", "l1", "l3"]))
    assert state.list_ids() == ["l2", "l1", "l3"]

    state.begin(RemoveList("l1"))
    assert state.list_ids() == ["l2", "l3"]
    assert state.card("c1") is None
    assert "l1" not in state.root.lists


def test_remove_list_confirmed_once_gone_everywhere():
    state = _state()
    command = state.begin(RemoveList("l1"))
    state.apply_lists({"l2": {"name": "Done", "order": 2000.0}})
    assert command in state.pending
    state.apply_board({"title": "Board", "listIds": ["l2"]})
    assert state.pending == []
