"""Downward deletes of lists and boards in bounded, sequential batches.

The store deletes one document at a time, leaving children behind, so
removing a list means removing every card under it first. Operations are
ordered children-first and split into batches no larger than the store
allows. The parent's own delete rides in the final batch, so at every step
the committed state is a valid hierarchy with no orphans.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from propboard.errors import CascadeError, DocumentNotFoundError, StoreError
from propboard.ids import board_path, cards_path, document_path, lists_path
from propboard.store.base import DocumentStore, WriteOp

logger = logging.getLogger(__name__)


def chunk(ops: Sequence[WriteOp], size: int) -> list[list[WriteOp]]:
    """Split ops into consecutive batches of at most size."""
    if size < 1:
        raise ValueError("batch size must be positive")
    return [list(ops[i : i + size]) for i in range(0, len(ops), size)]


class CascadeDeleter:
    """Deletes a list or board with everything under it.

    Repeating a call after a failure is safe: deletes of documents that are
    already gone are no-ops, and the queries only find what is left.
    """

    def __init__(self, store: DocumentStore, batch_limit: int | None = None):
        self.store = store
        self.batch_limit = min(batch_limit or store.max_batch_size, store.max_batch_size)

    async def delete_list(self, board_id: str, list_id: str) -> int:
        """Delete a list and its cards, then drop it from the board's listIds.

        Returns the number of batches written. Raises CascadeError when a
        batch fails.
        """
        ops = await self._list_ops(board_id, list_id)
        target = f"list {list_id}"
        batches = chunk(ops, self.batch_limit)
        await self._run(target, batches)
        try:
            await self._remove_from_board(board_id, list_id)
        except StoreError as exc:
            raise CascadeError(target, len(batches), len(batches) + 1, exc) from exc
        return len(batches)

    async def delete_board(self, board_id: str) -> int:
        """Delete a board, all its lists and all their cards."""
        ops: list[WriteOp] = []
        for doc in await self.store.get_collection(lists_path(board_id)):
            ops.extend(await self._list_ops(board_id, doc.id))
        ops.append(WriteOp.delete(board_path(), board_id))
        batches = chunk(ops, self.batch_limit)
        await self._run(f"board {board_id}", batches)
        return len(batches)

    async def _list_ops(self, board_id: str, list_id: str) -> list[WriteOp]:
        path = cards_path(board_id, list_id)
        ops = [WriteOp.delete(path, doc.id) for doc in await self.store.get_collection(path)]
        ops.append(WriteOp.delete(lists_path(board_id), list_id))
        return ops

    async def _run(self, target: str, batches: list[list[WriteOp]]) -> None:
        total = len(batches)
        logger.info("deleting %s in %d batches", target, total)
        await self._write(target, batches, 0, 1)
        if total > 1:
            # committed work is visible; finish even if the caller goes away
            rest = asyncio.ensure_future(self._write(target, batches, 1, total))
            rest.add_done_callback(_log_orphaned_failure)
            await asyncio.shield(rest)

    async def _write(self, target: str, batches: list[list[WriteOp]], start: int, end: int) -> None:
        total = len(batches)
        for index in range(start, end):
            try:
                await self.store.batch_write(batches[index])
            except StoreError as exc:
                logger.warning("deleting %s stopped after %d of %d batches: %s", target, index, total, exc)
                raise CascadeError(target, index, total, exc) from exc

    async def _remove_from_board(self, board_id: str, list_id: str) -> None:
        board = await self.store.get_document(document_path(board_path(), board_id))
        if board is None:
            logger.info("board %s already gone, nothing to clean", board_id)
            return
        list_ids = board.data.get("listIds") or []
        if list_id not in list_ids:
            return
        try:
            await self.store.update_document(
                board_path(), board_id, {"listIds": [lid for lid in list_ids if lid != list_id]}
            )
        except DocumentNotFoundError:
            logger.info("board %s deleted while cleaning listIds", board_id)


def _log_orphaned_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("cascade continuation finished with %s", exc)
