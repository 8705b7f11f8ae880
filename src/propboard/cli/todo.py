"""Handler for 'propboard todo'."""

import asyncio
from datetime import datetime, timezone

from propboard.cli._common import error, open_store_or_die, output_json
from propboard.ui.app import pick_board
from propboard.views import TodoFilter, TodoSort, fetch_board_cards, filter_cards, sort_cards


async def _collect(store, board_id: str | None) -> tuple[str | None, list[dict]]:
    board_id = board_id or await pick_board(store)
    if board_id is None:
        return None, []
    return board_id, await fetch_board_cards(store, board_id)


def todo(args) -> int:
    """Print every card of a board, filtered and sorted."""
    store = open_store_or_die(args.repo, args.json)
    board_id, cards = asyncio.run(_collect(store, args.board))
    if board_id is None:
        error("No boards found.", args.json)

    now = datetime.now(timezone.utc)
    cards = sort_cards(filter_cards(cards, TodoFilter(args.filter), args.user, now), TodoSort(args.sort))

    if args.json:
        output_json(
            [
                {
                    "id": c["id"],
                    "title": c.get("title", ""),
                    "list": {"id": c["listId"], "name": c["listName"]},
                    "dueDate": c.get("dueDate"),
                    "completed": bool(c.get("completed")),
                }
                for c in cards
            ]
        )
        return 0

    for c in cards:
        mark = "x" if c.get("completed") else " "
        due = f"  due {str(c['dueDate'])[:10]}" if c.get("dueDate") else ""
        print(f"[{mark}] {c.get('title', '')}  ({c['listName']}){due}")
    if not cards:
        print("nothing to do")
    return 0
