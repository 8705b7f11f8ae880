"""In-process document store.

Used by tests and as the cache underneath GitStore. Deleting a document
leaves its subcollections alone, the same as a hosted document database;
removing children is the cascade deleter's job.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Sequence

from propboard.constants import DEFAULT_BATCH_LIMIT
from propboard.errors import DocumentNotFoundError
from propboard.ids import collection_group, document_path, is_document_path, split_document_path
from propboard.store.base import Document, DocumentStore, WriteOp, affected_paths

logger = logging.getLogger(__name__)


class MemoryStore(DocumentStore):
    """Documents kept in a dict of ``{collection_path: {doc_id: data}}``.

    ``latency`` adds an ``asyncio.sleep`` before every read and write so
    tests can interleave callers the way a network round trip would.
    """

    def __init__(
        self,
        documents: dict[str, dict[str, dict[str, Any]]] | None = None,
        max_batch_size: int = DEFAULT_BATCH_LIMIT,
        latency: float = 0.0,
    ) -> None:
        super().__init__(max_batch_size=max_batch_size)
        self.latency = latency
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        for path, docs in (documents or {}).items():
            self._collections[path] = {doc_id: copy.deepcopy(data) for doc_id, data in docs.items()}
        self.writes: list[list[WriteOp]] = []

    async def _pause(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)
        else:
            await asyncio.sleep(0)

    # -- reads --

    def peek(self, path: str) -> dict[str, dict[str, Any]]:
        """Synchronous copy of a collection, for tests and the git layer."""
        return copy.deepcopy(self._collections.get(path, {}))

    def collection_paths(self) -> list[str]:
        return sorted(path for path, docs in self._collections.items() if docs)

    async def get_collection(self, path: str) -> list[Document]:
        await self._pause()
        docs = self._collections.get(path, {})
        return [Document(doc_id, copy.deepcopy(data), path) for doc_id, data in docs.items()]

    async def get_document(self, path: str) -> Document | None:
        await self._pause()
        collection, doc_id = split_document_path(path)
        data = self._collections.get(collection, {}).get(doc_id)
        if data is None:
            return None
        return Document(doc_id, copy.deepcopy(data), collection)

    async def query_group(self, group: str, field_name: str, value: Any) -> list[Document]:
        await self._pause()
        found = []
        for path in sorted(self._collections):
            if collection_group(path) != group:
                continue
            for doc_id, data in self._collections[path].items():
                if data.get(field_name) == value:
                    found.append(Document(doc_id, copy.deepcopy(data), path))
        return found

    # -- writes --

    async def batch_write(self, ops: Sequence[WriteOp]) -> None:
        self._check_batch(ops)
        await self._pause()
        changed = self.apply(ops)
        self.notify(changed)

    def apply(self, ops: Sequence[WriteOp]) -> list[str]:
        """Apply ops all-or-nothing and return the paths whose contents changed."""
        staged = self._stage(ops)
        changed: list[str] = []
        for path in affected_paths(ops):
            if not is_document_path(path):
                before = self._collections.get(path, {})
                after = staged.get(path, {})
                if before != after:
                    changed.append(path)
            else:
                collection, doc_id = split_document_path(path)
                if self._collections.get(collection, {}).get(doc_id) != staged.get(collection, {}).get(doc_id):
                    changed.append(path)
        for path in {op.path for op in ops}:
            if staged.get(path):
                self._collections[path] = staged[path]
            else:
                self._collections.pop(path, None)
        self.writes.append(list(ops))
        logger.debug("applied %d ops, %d paths changed", len(ops), len(changed))
        return changed

    def _stage(self, ops: Sequence[WriteOp]) -> dict[str, dict[str, dict[str, Any]]]:
        staged: dict[str, dict[str, dict[str, Any]]] = {}
        for op in ops:
            docs = staged.get(op.path)
            if docs is None:
                docs = staged[op.path] = copy.deepcopy(self._collections.get(op.path, {}))
            if op.kind == "set":
                docs[op.doc_id] = copy.deepcopy(op.data or {})
            elif op.kind == "update":
                if op.doc_id not in docs:
                    raise DocumentNotFoundError(op.path, op.doc_id)
                docs[op.doc_id] = {**docs[op.doc_id], **copy.deepcopy(op.data or {})}
            else:
                docs.pop(op.doc_id, None)
        return staged

    def replace_all(self, collections: dict[str, dict[str, dict[str, Any]]]) -> list[str]:
        """Swap in a whole new document set and return the paths that differ."""
        changed: list[str] = []
        for path in set(self._collections) | set(collections):
            before = self._collections.get(path, {})
            after = collections.get(path, {})
            if before == after:
                continue
            changed.append(path)
            for doc_id in set(before) | set(after):
                if before.get(doc_id) != after.get(doc_id):
                    changed.append(document_path(path, doc_id))
        self._collections = {path: copy.deepcopy(docs) for path, docs in collections.items() if docs}
        return changed
