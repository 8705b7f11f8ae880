"""Flattened todo view across every list of a board."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from propboard.ids import lists_path
from propboard.order import sort_key
from propboard.state import BoardState
from propboard.store.base import DocumentStore


class TodoFilter(str, Enum):
    ALL = "all"
    OPEN = "open"
    MY_TASKS = "my_tasks"
    DUE_TODAY = "due_today"
    OVERDUE = "overdue"
    COMPLETED = "completed"


class TodoSort(str, Enum):
    DUE_DATE = "due_date"
    CREATED_DATE = "created_date"
    TITLE = "title"
    LIST = "list"


def parse_date(value: Any) -> datetime | None:
    """Parse an ISO date or datetime string. Naive values are taken as UTC."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def flatten(state: BoardState) -> list[dict[str, Any]]:
    """Every card on the board in display order, tagged with its list."""
    result = []
    for list_id in state.list_ids():
        list_name = (state.list_data(list_id) or {}).get("name", "")
        for card in state.cards_for(list_id):
            result.append({**card, "listId": list_id, "listName": list_name})
    return result


def filter_cards(
    cards: list[dict[str, Any]],
    mode: TodoFilter = TodoFilter.ALL,
    user_id: str | None = None,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    now = now or datetime.now(timezone.utc)
    match TodoFilter(mode):
        case TodoFilter.ALL:
            return list(cards)
        case TodoFilter.OPEN:
            return [c for c in cards if not c.get("completed")]
        case TodoFilter.MY_TASKS:
            return [c for c in cards if user_id and user_id in (c.get("assignedTo") or [])]
        case TodoFilter.DUE_TODAY:
            today = now.astimezone(timezone.utc).date()
            return [
                c for c in cards
                if (due := parse_date(c.get("dueDate"))) is not None
                and due.astimezone(timezone.utc).date() == today
                and not c.get("completed")
            ]
        case TodoFilter.OVERDUE:
            return [
                c for c in cards
                if (due := parse_date(c.get("dueDate"))) is not None and due < now and not c.get("completed")
            ]
        case TodoFilter.COMPLETED:
            return [c for c in cards if c.get("completed")]


def _created_key(card: dict[str, Any]) -> float:
    created = parse_date(card.get("createdAt"))
    if created is not None:
        return created.timestamp()
    order = card.get("order")
    return float(order) if isinstance(order, (int, float)) else 0.0


def sort_cards(cards: list[dict[str, Any]], by: TodoSort = TodoSort.DUE_DATE) -> list[dict[str, Any]]:
    """Sort a flattened card list. Sorting is stable, so ties keep board order."""
    match TodoSort(by):
        case TodoSort.DUE_DATE:
            # cards without a due date go last
            def key(c):
                due = parse_date(c.get("dueDate"))
                return (due is None, due.timestamp() if due else 0.0)

            return sorted(cards, key=key)
        case TodoSort.CREATED_DATE:
            return sorted(cards, key=_created_key, reverse=True)
        case TodoSort.TITLE:
            return sorted(cards, key=lambda c: str(c.get("title") or "").casefold())
        case TodoSort.LIST:
            return sorted(
                cards, key=lambda c: (str(c.get("listName") or "").casefold(), str(c.get("title") or "").casefold())
            )


def todo_view(
    state: BoardState,
    mode: TodoFilter = TodoFilter.ALL,
    sort: TodoSort = TodoSort.DUE_DATE,
    user_id: str | None = None,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Filtered and sorted cards of the whole board."""
    return sort_cards(filter_cards(flatten(state), mode, user_id, now), sort)


async def fetch_board_cards(store: DocumentStore, board_id: str) -> list[dict[str, Any]]:
    """All cards of a board in one query over every list, using their boardId.

    For a one-off read without opening a session. Cards come back grouped by
    list, in order within each list.
    """
    lists = {doc.id: doc.data for doc in await store.get_collection(lists_path(board_id))}
    cards = []
    for doc in await store.query_group("cards", "boardId", board_id):
        list_id = doc.path.rsplit("/", 2)[-2]
        if list_id not in lists:
            continue
        name = lists[list_id].get("name") or lists[list_id].get("title") or ""
        cards.append({**doc.data, "id": doc.id, "listId": list_id, "listName": name})
    cards.sort(key=lambda c: (sort_key(c["listId"], lists[c["listId"]]), sort_key(c["id"], c)))
    return cards
