"""Local board state: confirmed documents plus pending optimistic commands.

The confirmed layer holds exactly what the store's listeners last
delivered. Pending commands sit on top of it. The rendered view is rebuilt
from both after every change and merged into one long-lived Node tree, so
widgets watching it see only real differences.

A pending command leaves the stack when the confirmed layer already shows
its effect, once every scope its write touched has delivered after the
write was acknowledged, or straight away when its write fails.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any

from propboard.commands import BOARD_SCOPE, LISTS_SCOPE, Command, cards_scope
from propboard.model.node import ListNode, Node
from propboard.models import normalize_board, normalize_card, normalize_list
from propboard.order import sort_key

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    """Raw documents for one board, keyed by id."""

    board: dict[str, Any] | None = None
    lists: dict[str, dict[str, Any]] = field(default_factory=dict)
    cards: dict[str, dict[str, dict[str, Any]]] = field(default_factory=dict)

    def copy(self) -> Snapshot:
        return copy.deepcopy(self)


def ordered_list_ids(snapshot: Snapshot) -> list[str]:
    """Lists in display order.

    The board's listIds wins where present. Lists it doesn't mention follow,
    sorted by their own order field. Ids naming missing lists are skipped.
    """
    by_order = sorted(snapshot.lists, key=lambda lid: sort_key(lid, snapshot.lists[lid]))
    list_ids = (snapshot.board or {}).get("listIds")
    if not list_ids:
        return by_order
    ordered = [lid for lid in dict.fromkeys(list_ids) if lid in snapshot.lists]
    return ordered + [lid for lid in by_order if lid not in ordered]


def ordered_card_ids(snapshot: Snapshot, list_id: str) -> list[str]:
    cards = snapshot.cards.get(list_id, {})
    return sorted(cards, key=lambda cid: sort_key(cid, cards[cid]))


class BoardState:
    """Confirmed + optimistic state of one board, rendered into ``root``.

    ``root.board`` is the board document, ``root.lists`` a ListNode of list
    Nodes in display order, each carrying ``cards`` (a ListNode in order).
    """

    def __init__(self, board_id: str) -> None:
        self.board_id = board_id
        self.confirmed = Snapshot()
        self.view = Snapshot()
        self.pending: list[Command] = []
        self.root = Node(board_id=board_id, board=None, lists=ListNode())

    # -- confirmed layer --

    def apply_board(self, data: dict[str, Any] | None) -> None:
        self.confirmed.board = None if data is None else normalize_board(self.board_id, data)
        self._settle(BOARD_SCOPE)

    def apply_lists(self, lists: dict[str, dict[str, Any]]) -> None:
        self.confirmed.lists = {lid: normalize_list(lid, data) for lid, data in lists.items()}
        self._settle(LISTS_SCOPE)

    def apply_cards(self, list_id: str, cards: dict[str, dict[str, Any]]) -> None:
        self.confirmed.cards[list_id] = {cid: normalize_card(cid, data) for cid, data in cards.items()}
        self._settle(cards_scope(list_id))

    def forget_cards(self, list_id: str) -> None:
        """Drop confirmed cards of a list that no longer exists."""
        if self.confirmed.cards.pop(list_id, None) is not None:
            self._settle(cards_scope(list_id))

    def _settle(self, scope: str) -> None:
        kept = []
        for command in self.pending:
            if command.confirmed_by(self.confirmed):
                continue
            if command.acknowledged:
                command.awaiting.discard(scope)
                if not command.awaiting:
                    continue
            kept.append(command)
        dropped = len(self.pending) - len(kept)
        if dropped:
            logger.debug("%s delivery settled %d pending commands", scope, dropped)
        self.pending = kept
        self.rebuild()

    # -- optimistic layer --

    def begin(self, command: Command) -> Command:
        """Show command's effect immediately."""
        self.pending.append(command)
        self.rebuild()
        return command

    def acknowledge(self, command: Command) -> None:
        """The store accepted command's write. It stays until an echo settles it."""
        command.acknowledged = True
        command.awaiting = set(command.scopes)
        if command in self.pending and command.confirmed_by(self.confirmed):
            self.pending.remove(command)
            self.rebuild()

    def revert(self, command: Command) -> None:
        """The store rejected command's write. Drop it and show confirmed state."""
        if command in self.pending:
            self.pending.remove(command)
            self.rebuild()

    # -- view --

    def rebuild(self) -> None:
        view = self.confirmed.copy()
        for command in self.pending:
            command.apply(view)
        self.view = view

        lists = ListNode()
        for list_id in ordered_list_ids(view):
            cards = ListNode()
            for card_id in ordered_card_ids(view, list_id):
                cards[card_id] = {**view.cards[list_id][card_id], "id": card_id}
            lists[list_id] = Node(**{**view.lists[list_id], "id": list_id, "cards": cards})
        fresh = Node(board_id=self.board_id, board=view.board, lists=lists)
        self.root.update(fresh)

    def list_ids(self) -> list[str]:
        return ordered_list_ids(self.view)

    def card_ids(self, list_id: str) -> list[str]:
        return ordered_card_ids(self.view, list_id)

    def card_orders(self, list_id: str, exclude: str | None = None) -> tuple[list[str], list[float]]:
        """Sorted sibling ids and orders of a list, optionally without one card."""
        ids = [cid for cid in self.card_ids(list_id) if cid != exclude]
        cards = self.view.cards.get(list_id, {})
        return ids, [sort_key(cid, cards[cid])[0] for cid in ids]

    def list_orders(self, exclude: str | None = None) -> tuple[list[str], list[float]]:
        ids = [lid for lid in self.list_ids() if lid != exclude]
        return ids, [sort_key(lid, self.view.lists[lid])[0] for lid in ids]

    def card(self, card_id: str) -> tuple[str, dict[str, Any]] | None:
        """Find a card in the view. Returns (list_id, data) or None."""
        for list_id in self.list_ids():
            data = self.view.cards.get(list_id, {}).get(card_id)
            if data is not None:
                return list_id, data
        return None

    def list_data(self, list_id: str) -> dict[str, Any] | None:
        return self.view.lists.get(list_id)

    def cards_for(self, list_id: str) -> list[dict[str, Any]]:
        """Cards of a list in display order, each with its id."""
        cards = self.view.cards.get(list_id, {})
        return [{**cards[cid], "id": cid} for cid in self.card_ids(list_id)]
