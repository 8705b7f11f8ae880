"""Tests for the git-backed document store."""

import subprocess

import pytest
from git import Repo

from propboard.constants import BRANCH_NAME
from propboard.errors import TransientStoreError
from propboard.ids import board_path, cards_path, document_path, lists_path
from propboard.store.base import WriteOp
from propboard.store.git import GitStore, load_documents
from propboard.writer import commit_documents, get_branch_tip, load_document


def _show(repo_path, path):
    return load_document(Repo(repo_path).git.show(f"{BRANCH_NAME}:{path}"))


def test_empty_repo_has_no_documents(empty_repo):
    store = GitStore(empty_repo)
    assert store.commit is None
    assert store.collection_paths() == []


def test_loads_existing_branch(empty_repo):
    commit_documents(
        empty_repo,
        {
            "boards/b1.yaml": {"title": "Board"},
            "boards/b1/lists/l1.yaml": {"name": "Todo", "order": 1000.0},
            "boards/b1/lists/l1/cards/c1.yaml": {"title": "Card"},
        },
        "seed",
    )
    tip, collections = load_documents(empty_repo)
    assert tip == get_branch_tip(empty_repo)
    assert collections == {
        "boards": {"b1": {"title": "Board"}},
        "boards/b1/lists": {"l1": {"name": "Todo", "order": 1000.0}},
        "boards/b1/lists/l1/cards": {"c1": {"title": "Card"}},
    }


@pytest.mark.asyncio
async def test_each_batch_is_one_commit(empty_repo):
    store = GitStore(empty_repo)
    await store.batch_write(
        [
            WriteOp.set(board_path(), "b1", {"title": "Board", "listIds": ["l1"]}),
            WriteOp.set(lists_path("b1"), "l1", {"name": "Todo"}),
        ]
    )
    first = store.commit
    await store.set_document(cards_path("b1", "l1"), "c1", {"title": "Card", "order": 1000.0})

    repo = Repo(empty_repo)
    assert get_branch_tip(empty_repo) == store.commit
    assert repo.commit(store.commit).parents[0].hexsha == first
    assert _show(empty_repo, "boards/b1/lists/l1/cards/c1.yaml") == {"title": "Card", "order": 1000.0}


@pytest.mark.asyncio
async def test_update_and_delete_reach_the_branch(empty_repo):
    store = GitStore(empty_repo)
    await store.set_document(board_path(), "b1", {"title": "Board", "listIds": []})
    await store.update_document(board_path(), "b1", {"listIds": ["l1"]})
    assert _show(empty_repo, "boards/b1.yaml") == {"title": "Board", "listIds": ["l1"]}

    await store.delete_document(board_path(), "b1")
    files = Repo(empty_repo).git.ls_tree("-r", "--name-only", BRANCH_NAME)
    assert "boards/b1.yaml" not in files


@pytest.mark.asyncio
async def test_listeners_follow_commits(empty_repo):
    store = GitStore(empty_repo)
    seen = []
    store.listen_to_collection(board_path(), lambda docs: seen.append([d.id for d in docs]))
    await store.idle()
    await store.set_document(board_path(), "b1", {"title": "Board"})
    await store.idle()
    assert seen == [[], ["b1"]]


@pytest.mark.asyncio
async def test_new_store_sees_previous_writes(empty_repo):
    store = GitStore(empty_repo)
    await store.set_document(board_path(), "b1", {"title": "Board"})

    reopened = GitStore(empty_repo)
    doc = await reopened.get_document(document_path(board_path(), "b1"))
    assert doc.data == {"title": "Board"}


@pytest.mark.asyncio
async def test_failed_commit_is_transient_and_changes_nothing(empty_repo, monkeypatch):
    store = GitStore(empty_repo)

    def broken(*args, **kwargs):
        raise subprocess.CalledProcessError(128, ["git", "commit-tree"])

    monkeypatch.setattr("propboard.store.git.commit_documents", broken)
    with pytest.raises(TransientStoreError):
        await store.set_document(board_path(), "b1", {"title": "Board"})
    assert store.peek(board_path()) == {}


@pytest.mark.asyncio
async def test_reload_picks_up_outside_commits(empty_repo):
    store = GitStore(empty_repo)
    await store.set_document(board_path(), "b1", {"title": "Board"})
    seen = []
    store.listen_to_document(document_path(board_path(), "b1"), seen.append)
    await store.idle()

    # another process commits to the branch
    commit_documents(empty_repo, {"boards/b1.yaml": {"title": "Renamed"}}, "outside")

    changed = await store.reload()
    await store.idle()
    assert document_path(board_path(), "b1") in changed
    assert seen[-1].data == {"title": "Renamed"}
    assert store.commit == get_branch_tip(empty_repo)


@pytest.mark.asyncio
async def test_reload_without_changes_is_quiet(empty_repo):
    store = GitStore(empty_repo)
    await store.set_document(board_path(), "b1", {"title": "Board"})
    assert await store.reload() == []
