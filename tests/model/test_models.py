"""Tests for document shapes and normalization."""

from propboard.models import (
    UNTITLED_CARD,
    UNTITLED_LIST,
    Board,
    Card,
    CardStatus,
    TaskList,
    activity_entry,
    normalize_board,
    normalize_card,
    normalize_list,
)


def test_card_defaults():
    card = Card.from_document("c1", {})
    assert card.title == UNTITLED_CARD
    assert card.completed is False
    assert card.status is CardStatus.NOT_STARTED


def test_completed_card_defaults_to_done_status():
    assert Card.from_document("c1", {"completed": True}).status is CardStatus.DONE


def test_card_bad_status_is_replaced():
    card = Card.from_document("c1", {"status": "archived"})
    assert card.status is CardStatus.NOT_STARTED


def test_card_legacy_name_becomes_title():
    assert Card.from_document("c1", {"name": "Old name"}).title == "Old name"


def test_card_unknown_fields_survive_round_trip():
    data = {"title": "A", "order": 1000.0, "priority": "high"}
    doc = Card.from_document("c1", data).to_document()
    assert doc["priority"] == "high"
    assert doc["title"] == "A"
    assert doc["status"] == "not_started"
    assert "id" not in doc
    assert "dueDate" not in doc


def test_list_legacy_title_becomes_name():
    assert TaskList.from_document("l1", {"title": "Doing"}).name == "Doing"
    assert TaskList.from_document("l1", {}).name == UNTITLED_LIST


def test_board_list_ids_keep_strings_only():
    board = Board.from_document("b1", {"title": "B", "listIds": ["l1", 7, "l2"]})
    assert board.listIds == ["l1", "l2"]


def test_normalize_functions_fill_defaults():
    assert normalize_board("b1", {})["title"] == "Board"
    assert normalize_list("l1", {"order": 1000})["name"] == UNTITLED_LIST
    assert normalize_card("c1", {"completed": 1})["completed"] is True


def test_activity_entry():
    entry = activity_entry("moved", fromListId="l1")
    assert entry["action"] == "moved"
    assert entry["details"] == {"fromListId": "l1"}
    assert "at" in entry
    assert "details" not in activity_entry("created")
