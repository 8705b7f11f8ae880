"""Document store persisted as YAML files on a dedicated git branch.

Every document is one blob at ``<collection>/<id>.yaml`` on the board
branch. Reads are served from an in-memory copy; every batch becomes one
commit made through a temporary index, so the user's working tree and
staging area are never touched.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
from pathlib import Path
from typing import Any, Sequence

from git import Repo
from git.objects import Blob, Tree

from propboard.constants import BRANCH_NAME, DEFAULT_BATCH_LIMIT
from propboard.errors import TransientStoreError
from propboard.ids import document_path
from propboard.store.base import WriteOp
from propboard.store.memory import MemoryStore
from propboard.writer import blob_path, commit_documents, get_branch_tip, load_document, parse_blob_path

logger = logging.getLogger(__name__)


def _walk(tree: Tree, prefix: str = ""):
    for item in tree:
        path = f"{prefix}{item.name}"
        if isinstance(item, Tree):
            yield from _walk(item, f"{path}/")
        elif isinstance(item, Blob):
            yield path, item


def load_documents(repo_path: str | Path, branch: str = BRANCH_NAME) -> tuple[str | None, dict[str, dict[str, dict[str, Any]]]]:
    """Read every document on branch. Returns (tip commit, collections)."""
    repo = Repo(repo_path)
    tip = get_branch_tip(Path(repo_path), branch)
    collections: dict[str, dict[str, dict[str, Any]]] = {}
    if tip is None:
        return None, collections
    for path, blob in _walk(repo.commit(tip).tree):
        parsed = parse_blob_path(path)
        if parsed is None:
            continue
        collection, doc_id = parsed
        try:
            data = load_document(blob.data_stream.read().decode("utf-8"))
        except Exception as exc:
            logger.warning("skipping unreadable document %s: %s", path, exc)
            continue
        collections.setdefault(collection, {})[doc_id] = data
    return tip, collections


class GitStore(MemoryStore):
    """MemoryStore that commits each batch to ``refs/heads/<branch>``."""

    def __init__(
        self,
        repo_path: str | Path,
        branch: str = BRANCH_NAME,
        max_batch_size: int = DEFAULT_BATCH_LIMIT,
    ) -> None:
        super().__init__(max_batch_size=max_batch_size)
        self.repo_path = Path(repo_path)
        self.branch = branch
        self.commit: str | None = None
        self._lock = asyncio.Lock()
        self.commit, self._collections = load_documents(self.repo_path, branch)

    async def batch_write(self, ops: Sequence[WriteOp]) -> None:
        self._check_batch(ops)
        async with self._lock:
            staged = self._stage(ops)
            changes: dict[str, dict[str, Any] | None] = {}
            for op in ops:
                changes[blob_path(op.path, op.doc_id)] = staged.get(op.path, {}).get(op.doc_id)
            message = _commit_message(ops)
            try:
                self.commit = await asyncio.to_thread(
                    commit_documents, self.repo_path, changes, message, self.branch
                )
            except (subprocess.CalledProcessError, OSError) as exc:
                raise TransientStoreError(f"commit to {self.branch} failed: {exc}") from exc
            changed = self.apply(ops)
        self.notify(changed)

    async def reload(self) -> list[str]:
        """Re-read the branch (after a merge) and notify listeners of what changed."""
        async with self._lock:
            commit, collections = await asyncio.to_thread(load_documents, self.repo_path, self.branch)
            self.commit = commit
            changed = self.replace_all(collections)
        if changed:
            logger.info("reloaded %s: %d paths changed", self.branch, len(changed))
        self.notify(changed)
        return changed


def _commit_message(ops: Sequence[WriteOp]) -> str:
    if len(ops) == 1:
        op = ops[0]
        return f"{op.kind.capitalize()} {document_path(op.path, op.doc_id)}"
    kinds = sorted({op.kind for op in ops})
    return f"{'/'.join(kinds).capitalize()} {len(ops)} documents under {ops[0].path}"
