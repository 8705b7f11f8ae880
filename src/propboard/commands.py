"""Optimistic mutations layered over the confirmed board state.

Each command knows how to apply itself to a working copy of the documents,
which listener scopes its write touches, and how to recognise that the
confirmed layer already reflects it. Reverting a command is simply dropping
it and rebuilding the view, so no undo logic lives here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from propboard.state import Snapshot

BOARD_SCOPE = "board"
LISTS_SCOPE = "lists"


def cards_scope(list_id: str) -> str:
    return f"cards/{list_id}"


def _matches(data: dict[str, Any] | None, fields: dict[str, Any]) -> bool:
    if data is None:
        return False
    return all(data.get(k) == v for k, v in fields.items())


@dataclass(eq=False)
class Command:
    acknowledged: bool = field(default=False, init=False)
    # scopes whose next delivery will reflect the acknowledged write
    awaiting: set[str] = field(default_factory=set, init=False)

    @property
    def scopes(self) -> set[str]:
        raise NotImplementedError

    def apply(self, view: Snapshot) -> None:
        raise NotImplementedError

    def confirmed_by(self, confirmed: Snapshot) -> bool:
        raise NotImplementedError


@dataclass(eq=False)
class SetCardFields(Command):
    """Merge fields into existing cards of one list (reorders, edits, completion)."""

    list_id: str
    changes: dict[str, dict[str, Any]]

    @property
    def scopes(self) -> set[str]:
        return {cards_scope(self.list_id)}

    def apply(self, view: Snapshot) -> None:
        cards = view.cards.get(self.list_id, {})
        for card_id, fields in self.changes.items():
            if card_id in cards:
                cards[card_id] = {**cards[card_id], **fields}

    def confirmed_by(self, confirmed: Snapshot) -> bool:
        cards = confirmed.cards.get(self.list_id, {})
        return all(_matches(cards.get(card_id), fields) for card_id, fields in self.changes.items())


@dataclass(eq=False)
class PutCard(Command):
    """Place a whole card in a list, taking it out of any others.

    Covers creation (``remove_from`` empty) and cross-list moves. Only the
    target and ``origin`` lists are guaranteed to change, so only they are scopes.
    ``sibling_orders`` carries a renumber of the target list when one was needed.
    """

    list_id: str
    card_id: str
    data: dict[str, Any]
    remove_from: tuple[str, ...] = ()
    origin: str | None = None
    sibling_orders: dict[str, float] = field(default_factory=dict)

    @property
    def scopes(self) -> set[str]:
        if self.origin is None:
            return {cards_scope(self.list_id)}
        return {cards_scope(self.list_id), cards_scope(self.origin)}

    def apply(self, view: Snapshot) -> None:
        for list_id in self.remove_from:
            view.cards.get(list_id, {}).pop(self.card_id, None)
        target = view.cards.setdefault(self.list_id, {})
        target[self.card_id] = dict(self.data)
        for card_id, order in self.sibling_orders.items():
            if card_id in target and card_id != self.card_id:
                target[card_id] = {**target[card_id], "order": order}

    def confirmed_by(self, confirmed: Snapshot) -> bool:
        target = confirmed.cards.get(self.list_id, {})
        if not _matches(target.get(self.card_id), {"order": self.data.get("order")}):
            return False
        if any(self.card_id in confirmed.cards.get(lid, {}) for lid in self.remove_from):
            return False
        return all(_matches(target.get(c), {"order": o}) for c, o in self.sibling_orders.items() if c != self.card_id)


@dataclass(eq=False)
class RemoveCard(Command):
    list_id: str
    card_id: str

    @property
    def scopes(self) -> set[str]:
        return {cards_scope(self.list_id)}

    def apply(self, view: Snapshot) -> None:
        view.cards.get(self.list_id, {}).pop(self.card_id, None)

    def confirmed_by(self, confirmed: Snapshot) -> bool:
        return self.card_id not in confirmed.cards.get(self.list_id, {})


@dataclass(eq=False)
class SetListFields(Command):
    """Merge fields into lists, optionally replacing the board's listIds too."""

    changes: dict[str, dict[str, Any]]
    list_ids: list[str] | None = None

    @property
    def scopes(self) -> set[str]:
        return {LISTS_SCOPE, BOARD_SCOPE} if self.list_ids is not None else {LISTS_SCOPE}

    def apply(self, view: Snapshot) -> None:
        for list_id, fields in self.changes.items():
            if list_id in view.lists:
                view.lists[list_id] = {**view.lists[list_id], **fields}
        if self.list_ids is not None and view.board is not None:
            view.board = {**view.board, "listIds": list(self.list_ids)}

    def confirmed_by(self, confirmed: Snapshot) -> bool:
        if not all(_matches(confirmed.lists.get(lid), f) for lid, f in self.changes.items()):
            return False
        if self.list_ids is None:
            return True
        return _matches(confirmed.board, {"listIds": self.list_ids})


@dataclass(eq=False)
class PutList(Command):
    list_id: str
    data: dict[str, Any]
    list_ids: list[str] | None = None

    @property
    def scopes(self) -> set[str]:
        return {LISTS_SCOPE, BOARD_SCOPE}

    def apply(self, view: Snapshot) -> None:
        view.lists[self.list_id] = dict(self.data)
        if self.list_ids is not None and view.board is not None:
            view.board = {**view.board, "listIds": list(self.list_ids)}

    def confirmed_by(self, confirmed: Snapshot) -> bool:
        if self.list_id not in confirmed.lists:
            return False
        return self.list_ids is None or _matches(confirmed.board, {"listIds": self.list_ids})


@dataclass(eq=False)
class RemoveList(Command):
    """Hide a list (and its cards) while its cascade delete runs."""

    list_id: str

    @property
    def scopes(self) -> set[str]:
        return {LISTS_SCOPE, BOARD_SCOPE}

    def apply(self, view: Snapshot) -> None:
        view.lists.pop(self.list_id, None)
        view.cards.pop(self.list_id, None)
        if view.board is not None and self.list_id in (view.board.get("listIds") or []):
            view.board = {**view.board, "listIds": [lid for lid in view.board["listIds"] if lid != self.list_id]}

    def confirmed_by(self, confirmed: Snapshot) -> bool:
        if self.list_id in confirmed.lists:
            return False
        return self.list_id not in ((confirmed.board or {}).get("listIds") or [])
