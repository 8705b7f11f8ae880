"""Shared fixtures: seeded stores and a store that fails on demand."""

import pytest
from git import Repo

from propboard.constants import ORDER_GAP
from propboard.errors import TransientStoreError
from propboard.ids import BOARDS, cards_path, lists_path
from propboard.store.memory import MemoryStore


def board_docs(board_id="b1", lists=(("l1", "Backlog", ("c1", "c2", "c3")), ("l2", "Doing", ()), ("l3", "Done", ()))):
    """Documents for one board.

    ``lists`` is a sequence of (list_id, name, card_ids). Lists and cards get
    orders spaced by the gap in the given sequence.
    """
    docs = {
        BOARDS: {board_id: {"title": "Test board", "listIds": [lid for lid, _, _ in lists]}},
        lists_path(board_id): {},
    }
    for i, (list_id, name, card_ids) in enumerate(lists):
        docs[lists_path(board_id)][list_id] = {"name": name, "order": ORDER_GAP * (i + 1)}
        if card_ids:
            docs[cards_path(board_id, list_id)] = {
                card_id: {
                    "title": card_id.upper(),
                    "order": ORDER_GAP * (j + 1),
                    "listId": list_id,
                    "boardId": board_id,
                }
                for j, card_id in enumerate(card_ids)
            }
    return docs


class FlakyStore(MemoryStore):
    """MemoryStore whose batch writes fail when told to.

    ``fail_on`` holds 1-based batch numbers that raise TransientStoreError;
    ``fail_all`` makes every write fail.
    """

    def __init__(self, *args, fail_on=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_on = set(fail_on)
        self.fail_all = False
        self.attempts = 0

    async def batch_write(self, ops):
        self.attempts += 1
        if self.fail_all or self.attempts in self.fail_on:
            raise TransientStoreError("network unreachable")
        await super().batch_write(ops)


@pytest.fixture
def docs():
    return board_docs()


@pytest.fixture
def store(docs):
    return MemoryStore(docs)


@pytest.fixture
def flaky_store(docs):
    return FlakyStore(docs)


@pytest.fixture
def empty_repo(tmp_path):
    """Create a git repo with one commit on its default branch."""
    repo_path = tmp_path / "repo"
    repo_path.mkdir()
    repo = Repo.init(repo_path)
    with repo.config_writer() as config:
        config.set_value("user", "name", "Test")
        config.set_value("user", "email", "test@example.com")
    (repo_path / "README.md").write_text("# Test")
    repo.index.add(["README.md"])
    repo.index.commit("Initial commit")
    return repo_path


@pytest.fixture(autouse=True)
def git_identity(monkeypatch):
    """Plumbing commits need an identity even where no global config exists."""
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
