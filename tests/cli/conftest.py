"""Shared fixtures for CLI tests."""

import pytest

from propboard.writer import commit_documents


@pytest.fixture
def initialized_repo(empty_repo):
    """A repo whose board branch holds one board: 3 lists, 3 cards."""
    commit_documents(
        empty_repo,
        {
            "boards/b1.yaml": {"title": "Test Board", "listIds": ["l1", "l2", "l3"]},
            "boards/b1/lists/l1.yaml": {"name": "Backlog", "order": 1000.0},
            "boards/b1/lists/l2.yaml": {"name": "Doing", "order": 2000.0},
            "boards/b1/lists/l3.yaml": {"name": "Done", "order": 3000.0},
            "boards/b1/lists/l1/cards/c1.yaml": {
                "title": "Build the throne", "order": 1000.0, "boardId": "b1", "dueDate": "2026-11-01",
            },
            "boards/b1/lists/l1/cards/c2.yaml": {
                "title": "Paint backdrop", "order": 2000.0, "boardId": "b1", "dueDate": "2026-10-01",
            },
            "boards/b1/lists/l3/cards/c3.yaml": {
                "title": "Buy fabric", "order": 1000.0, "boardId": "b1", "completed": True,
            },
        },
        "Initialize test board",
    )
    return empty_repo
