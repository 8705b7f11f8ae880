"""User-level board mutations: optimistic apply, remote write, revert on failure.

Every method returns True on success. Store failures never escape: they are
logged, the optimistic change is dropped and ``notify`` gets a message for
the user.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from propboard.cascade import CascadeDeleter
from propboard.commands import Command, PutCard, PutList, RemoveList, SetCardFields, SetListFields
from propboard.constants import DONE_LIST_NAME
from propboard.errors import StoreError
from propboard.ids import board_path, cards_path, lists_path
from propboard.models import UNTITLED_LIST, Card, CardStatus, TaskList, activity_entry, now_iso
from propboard.order import compute_insertion_order, plan_insert
from propboard.state import BoardState
from propboard.store.base import DocumentStore, WriteOp

logger = logging.getLogger(__name__)

Notify = Callable[[str], None]


def _log_notify(message: str) -> None:
    logger.info("notify: %s", message)


def _with_activity(data: dict[str, Any], action: str, **details: Any) -> list[Any]:
    return [*(data.get("activityLog") or []), activity_entry(action, **details)]


class BoardOperations:
    """Mutations for one board, applied to ``state`` and written to ``store``."""

    def __init__(
        self,
        store: DocumentStore,
        state: BoardState,
        notify: Notify | None = None,
        cascade: CascadeDeleter | None = None,
    ) -> None:
        self.store = store
        self.state = state
        self.notify = notify or _log_notify
        self.cascade = cascade or CascadeDeleter(store)

    @property
    def board_id(self) -> str:
        return self.state.board_id

    async def _commit(self, command: Command, ops: list[WriteOp], failure: str) -> bool:
        self.state.begin(command)
        try:
            await self.store.batch_write(ops)
        except StoreError as exc:
            logger.warning("%s: %s", failure, exc)
            self.state.revert(command)
            self.notify(f"{failure}: {exc}")
            return False
        self.state.acknowledge(command)
        return True

    def _locate(self, card_id: str) -> tuple[str, dict[str, Any]] | None:
        found = self.state.card(card_id)
        if found is None:
            logger.warning("card %s not on board %s", card_id, self.board_id)
            self.notify("That card is no longer on the board")
        return found

    # -- ordering --

    async def reorder_card(self, list_id: str, card_id: str, index: int) -> bool:
        """Move a card to index within its own list.

        index counts positions among the other cards of the list.
        """
        current = self.state.card_ids(list_id)
        if card_id not in current:
            self.notify("That card is no longer on the board")
            return False
        siblings, orders = self.state.card_orders(list_id, exclude=card_id)
        if current.index(card_id) == min(max(index, 0), len(siblings)):
            return True
        plan = plan_insert(siblings, orders, index, card_id)
        path = cards_path(self.board_id, list_id)
        command = SetCardFields(list_id, {cid: {"order": order} for cid, order in plan.items()})
        ops = [WriteOp.update(path, cid, {"order": order}) for cid, order in plan.items()]
        if len(plan) > 1:
            logger.info("renumbering %d cards in list %s", len(plan), list_id)
        return await self._commit(command, ops, "Couldn't reorder card")

    async def move_card(
        self,
        card_id: str,
        from_list_id: str,
        to_list_id: str,
        index: int | None = None,
        fields: dict[str, Any] | None = None,
    ) -> bool:
        """Move a card into another list at index (default: the end).

        One batch deletes the card from every other list of the board and
        sets it in the target, so two racing moves never leave a duplicate.
        """
        if from_list_id == to_list_id and not fields:
            if index is None:
                index = len(self.state.card_ids(to_list_id))
            return await self.reorder_card(to_list_id, card_id, index)
        data = self.state.view.cards.get(from_list_id, {}).get(card_id)
        if data is None:
            self.notify("That card is no longer on the board")
            return False
        siblings, orders = self.state.card_orders(to_list_id, exclude=card_id)
        plan = plan_insert(siblings, orders, len(siblings) if index is None else index, card_id)
        moved = {
            **data,
            **(fields or {}),
            "listId": to_list_id,
            "boardId": self.board_id,
            "order": plan[card_id],
            "activityLog": _with_activity(data, "moved", fromListId=from_list_id, toListId=to_list_id),
        }
        others = [lid for lid in self.state.list_ids() if lid != to_list_id]
        if from_list_id not in others and from_list_id != to_list_id:
            others.append(from_list_id)

        ops = [WriteOp.delete(cards_path(self.board_id, lid), card_id) for lid in others]
        target = cards_path(self.board_id, to_list_id)
        ops.append(WriteOp.set(target, card_id, moved))
        sibling_orders = {cid: order for cid, order in plan.items() if cid != card_id}
        ops.extend(WriteOp.update(target, cid, {"order": order}) for cid, order in sibling_orders.items())

        command = PutCard(
            to_list_id,
            card_id,
            moved,
            remove_from=tuple(others),
            origin=from_list_id if from_list_id != to_list_id else None,
            sibling_orders=sibling_orders,
        )
        return await self._commit(command, ops, "Couldn't move card")

    async def reorder_list(self, list_id: str, index: int) -> bool:
        """Move a list to index among the other lists."""
        current = self.state.list_ids()
        siblings, orders = self.state.list_orders(exclude=list_id)
        index = min(max(index, 0), len(siblings))
        list_ids = [*siblings[:index], list_id, *siblings[index:]]
        if list_ids == current:
            return True
        plan = plan_insert(siblings, orders, index, list_id)
        command = SetListFields({lid: {"order": order} for lid, order in plan.items()}, list_ids=list_ids)
        ops = [WriteOp.update(board_path(), self.board_id, {"listIds": list_ids})]
        ops.extend(WriteOp.update(lists_path(self.board_id), lid, {"order": order}) for lid, order in plan.items())
        return await self._commit(command, ops, "Couldn't reorder list")

    # -- create --

    async def create_card(self, list_id: str, title: str, **fields: Any) -> str | None:
        """Append a new card to a list. Returns its id, or None on failure."""
        card_id = self.store.new_id()
        siblings, orders = self.state.card_orders(list_id)
        plan = plan_insert(siblings, orders, len(siblings), card_id)
        data = Card.from_document(
            card_id,
            {
                **fields,
                "title": title.strip(),
                "listId": list_id,
                "boardId": self.board_id,
                "order": plan[card_id],
                "createdAt": now_iso(),
                "activityLog": [activity_entry("created")],
            },
        ).to_document()
        path = cards_path(self.board_id, list_id)
        sibling_orders = {cid: order for cid, order in plan.items() if cid != card_id}
        ops = [WriteOp.set(path, card_id, data)]
        ops.extend(WriteOp.update(path, cid, {"order": order}) for cid, order in sibling_orders.items())
        command = PutCard(list_id, card_id, data, sibling_orders=sibling_orders)
        if await self._commit(command, ops, "Couldn't create card"):
            return card_id
        return None

    async def create_list(self, name: str) -> str | None:
        """Append a new list. The board's listIds is updated in the same batch."""
        list_id = self.store.new_id()
        _, orders = self.state.list_orders()
        order = compute_insertion_order(max(orders) if orders else None, None)
        data = TaskList(id=list_id, name=name.strip() or UNTITLED_LIST, order=order, createdAt=now_iso()).to_document()
        list_ids = [*self.state.list_ids(), list_id]
        command = PutList(list_id, data, list_ids=list_ids)
        ops = [
            WriteOp.set(lists_path(self.board_id), list_id, data),
            WriteOp.update(board_path(), self.board_id, {"listIds": list_ids}),
        ]
        if await self._commit(command, ops, "Couldn't create list"):
            return list_id
        return None

    # -- edit --

    async def update_card(self, card_id: str, **fields: Any) -> bool:
        """Change card fields (title, description, dueDate, labels...)."""
        found = self._locate(card_id)
        if found is None:
            return False
        list_id, data = found
        changes = {k: v for k, v in fields.items() if k not in ("id", "listId", "boardId", "order")}
        if all(data.get(k) == v for k, v in changes.items()):
            return True
        changes["activityLog"] = _with_activity(data, "updated", fields=sorted(changes))
        command = SetCardFields(list_id, {card_id: changes})
        ops = [WriteOp.update(cards_path(self.board_id, list_id), card_id, changes)]
        return await self._commit(command, ops, "Couldn't update card")

    async def set_completed(self, card_id: str, completed: bool = True) -> bool:
        """Mark a card done or not done, keeping status in step."""
        found = self._locate(card_id)
        if found is None:
            return False
        list_id, data = found
        if bool(data.get("completed")) == completed:
            return True
        changes = {
            "completed": completed,
            "status": (CardStatus.DONE if completed else CardStatus.NOT_STARTED).value,
            "activityLog": _with_activity(data, "completed" if completed else "reopened"),
        }
        command = SetCardFields(list_id, {card_id: changes})
        ops = [WriteOp.update(cards_path(self.board_id, list_id), card_id, changes)]
        return await self._commit(command, ops, "Couldn't update card")

    async def move_card_to_done(self, card_id: str) -> bool:
        """Move a card to the end of the list named Done and mark it complete."""
        done_id = next(
            (lid for lid in self.state.list_ids()
             if str(self.state.list_data(lid).get("name", "")).strip().lower() == DONE_LIST_NAME),
            None,
        )
        if done_id is None:
            self.notify("This board has no Done list")
            return False
        found = self._locate(card_id)
        if found is None:
            return False
        list_id, _ = found
        if list_id == done_id:
            return await self.set_completed(card_id, True)
        fields = {"completed": True, "status": CardStatus.DONE.value}
        return await self.move_card(card_id, list_id, done_id, fields=fields)

    # -- delete --

    async def delete_card(self, card_id: str) -> bool:
        """Delete a card. The view follows when the store echoes the delete."""
        found = self._locate(card_id)
        if found is None:
            return False
        list_id, _ = found
        try:
            await self.store.delete_document(cards_path(self.board_id, list_id), card_id)
        except StoreError as exc:
            logger.warning("Couldn't delete card %s: %s", card_id, exc)
            self.notify(f"Couldn't delete card: {exc}")
            return False
        return True

    async def delete_list(self, list_id: str) -> bool:
        """Delete a list and all its cards. The list is hidden while that runs."""
        command = self.state.begin(RemoveList(list_id))
        try:
            await self.cascade.delete_list(self.board_id, list_id)
        except StoreError as exc:
            logger.warning("Couldn't delete list %s: %s", list_id, exc)
            self.state.revert(command)
            self.notify(f"Couldn't delete list: {exc}")
            return False
        self.state.acknowledge(command)
        return True

    async def delete_board(self) -> bool:
        """Delete this board with all of its lists and cards."""
        try:
            await self.cascade.delete_board(self.board_id)
        except StoreError as exc:
            logger.warning("Couldn't delete board %s: %s", self.board_id, exc)
            self.notify(f"Couldn't delete board: {exc}")
            return False
        return True
