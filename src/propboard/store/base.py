"""Document store interface and push-based listener delivery.

A store holds documents in collections addressed by slash-separated paths
(``boards``, ``boards/b1/lists``, ...). Listeners get the full current
contents of a path as soon as they register and again after every change.

Delivery runs as one asyncio task per path. Changes that land while a
delivery is in flight are coalesced into the next one, so a listener always
sees the latest snapshot and snapshots for one path arrive in write order.
Different paths are delivered independently with no ordering between them.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

from propboard.constants import DEFAULT_BATCH_LIMIT
from propboard.errors import BatchTooLargeError
from propboard.ids import document_path, is_document_path, new_document_id

logger = logging.getLogger(__name__)

OnCollection = Callable[[list["Document"]], None]
OnDocument = Callable[["Document | None"], None]
OnError = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class Document:
    """One document as seen by a reader."""

    id: str
    data: dict[str, Any]
    path: str = ""


@dataclass(frozen=True)
class WriteOp:
    """One operation in a batch.

    kind is ``"set"`` (create or replace), ``"update"`` (merge into an
    existing document) or ``"delete"`` (no-op when absent).
    """

    kind: str
    path: str
    doc_id: str
    data: dict[str, Any] | None = None

    @classmethod
    def set(cls, path: str, doc_id: str, data: dict[str, Any]) -> WriteOp:
        return cls("set", path, doc_id, dict(data))

    @classmethod
    def update(cls, path: str, doc_id: str, data: dict[str, Any]) -> WriteOp:
        return cls("update", path, doc_id, dict(data))

    @classmethod
    def delete(cls, path: str, doc_id: str) -> WriteOp:
        return cls("delete", path, doc_id)


@dataclass
class _Listener:
    on_change: Callable[[Any], None]
    on_error: OnError | None = None
    active: bool = True


@dataclass
class _Channel:
    """Listeners and delivery state for one path."""

    listeners: list[_Listener] = field(default_factory=list)
    fresh: list[_Listener] = field(default_factory=list)
    dirty: bool = False
    task: asyncio.Task | None = None


def affected_paths(ops: Iterable[WriteOp]) -> list[str]:
    """Paths whose listeners need a new snapshot after ops are applied."""
    paths: list[str] = []
    for op in ops:
        for path in (op.path, document_path(op.path, op.doc_id)):
            if path not in paths:
                paths.append(path)
    return paths


class DocumentStore(ABC):
    """Async document store with change listeners and bounded atomic batches."""

    def __init__(self, max_batch_size: int = DEFAULT_BATCH_LIMIT) -> None:
        self.max_batch_size = max_batch_size
        self._channels: dict[str, _Channel] = {}
        self._held: set[str] = set()

    # -- reads --

    @abstractmethod
    async def get_collection(self, path: str) -> list[Document]:
        """Return every document in a collection."""

    @abstractmethod
    async def get_document(self, path: str) -> Document | None:
        """Return one document by its full path, or None."""

    @abstractmethod
    async def query_group(self, group: str, field_name: str, value: Any) -> list[Document]:
        """Return documents from every collection named ``group`` whose field equals value."""

    # -- writes --

    @abstractmethod
    async def batch_write(self, ops: Sequence[WriteOp]) -> None:
        """Apply all ops atomically.

        Raises BatchTooLargeError when len(ops) exceeds max_batch_size and
        DocumentNotFoundError when an update targets a missing document.
        Nothing is written in either case.
        """

    def new_id(self) -> str:
        """Allocate a document id without writing anything."""
        return new_document_id()

    async def add_document(self, path: str, data: dict[str, Any]) -> str:
        doc_id = self.new_id()
        await self.batch_write([WriteOp.set(path, doc_id, data)])
        return doc_id

    async def set_document(self, path: str, doc_id: str, data: dict[str, Any]) -> None:
        await self.batch_write([WriteOp.set(path, doc_id, data)])

    async def update_document(self, path: str, doc_id: str, data: dict[str, Any]) -> None:
        await self.batch_write([WriteOp.update(path, doc_id, data)])

    async def delete_document(self, path: str, doc_id: str) -> None:
        await self.batch_write([WriteOp.delete(path, doc_id)])

    # -- listeners --

    def listen_to_collection(self, path: str, on_change: OnCollection, on_error: OnError | None = None) -> Unsubscribe:
        """Subscribe to a collection. on_change gets the full document list."""
        if is_document_path(path):
            raise ValueError(f"Not a collection path: {path!r}")
        return self._listen(path, on_change, on_error)

    def listen_to_document(self, path: str, on_change: OnDocument, on_error: OnError | None = None) -> Unsubscribe:
        """Subscribe to one document. on_change gets the Document, or None once deleted."""
        if not is_document_path(path):
            raise ValueError(f"Not a document path: {path!r}")
        return self._listen(path, on_change, on_error)

    def _listen(self, path: str, on_change, on_error) -> Unsubscribe:
        listener = _Listener(on_change, on_error)
        channel = self._channels.setdefault(path, _Channel())
        channel.listeners.append(listener)
        channel.fresh.append(listener)
        self._schedule(path)

        def unsubscribe() -> None:
            listener.active = False
            if listener in channel.listeners:
                channel.listeners.remove(listener)
            if listener in channel.fresh:
                channel.fresh.remove(listener)

        return unsubscribe

    def hold(self, path: str) -> None:
        """Pause delivery for path. Changes accumulate until release()."""
        self._held.add(path)

    def release(self, path: str) -> None:
        """Resume delivery for path, sending the latest snapshot if anything changed."""
        self._held.discard(path)
        channel = self._channels.get(path)
        if channel is not None and channel.dirty:
            self._schedule(path, mark=False)

    async def idle(self) -> None:
        """Wait until every scheduled delivery has run (held paths excepted)."""
        while True:
            tasks = [c.task for c in self._channels.values() if c.task is not None and not c.task.done()]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    def notify(self, paths: Iterable[str]) -> None:
        """Mark paths changed and schedule delivery to their listeners."""
        for path in paths:
            if path in self._channels:
                self._schedule(path)

    def _schedule(self, path: str, mark: bool = True) -> None:
        channel = self._channels[path]
        if mark:
            channel.dirty = True
        if path in self._held:
            return
        if channel.task is None or channel.task.done():
            channel.task = asyncio.get_running_loop().create_task(self._deliver(path, channel))

    async def _deliver(self, path: str, channel: _Channel) -> None:
        while channel.dirty and path not in self._held:
            channel.dirty = False
            channel.fresh.clear()
            listeners = list(channel.listeners)
            if not listeners:
                continue
            try:
                payload = await self._snapshot(path)
            except Exception as exc:
                logger.warning("reading %s for listeners failed: %s", path, exc)
                for listener in listeners:
                    if listener.active and listener.on_error is not None:
                        listener.on_error(exc)
                continue
            if channel.dirty and path not in self._held:
                # a newer write landed while reading; the next pass covers everyone
                continue
            for listener in listeners:
                if not listener.active:
                    continue
                try:
                    listener.on_change(payload)
                except Exception:
                    logger.exception("listener for %s raised", path)
        # listeners registered during the last callback still need their first snapshot
        if channel.fresh and path not in self._held:
            channel.dirty = True
            channel.task = asyncio.get_running_loop().create_task(self._deliver(path, channel))

    async def _snapshot(self, path: str) -> list[Document] | Document | None:
        if is_document_path(path):
            return await self.get_document(path)
        return await self.get_collection(path)

    # -- helpers for subclasses --

    def _check_batch(self, ops: Sequence[WriteOp]) -> None:
        if len(ops) > self.max_batch_size:
            raise BatchTooLargeError(len(ops), self.max_batch_size)
        for op in ops:
            if op.kind not in ("set", "update", "delete"):
                raise ValueError(f"Unknown write kind: {op.kind!r}")
            if is_document_path(op.path):
                raise ValueError(f"Not a collection path: {op.path!r}")
