"""Document stores: the interface, an in-process store and the git-backed one."""

from propboard.store.base import Document, DocumentStore, WriteOp
from propboard.store.git import GitStore
from propboard.store.memory import MemoryStore

__all__ = [
    "Document",
    "DocumentStore",
    "GitStore",
    "MemoryStore",
    "WriteOp",
]
