"""Tests for 'propboard sync'."""

import json
from argparse import Namespace

from git import Repo

from propboard.cli import build_parser
from propboard.cli.sync import sync
from propboard.constants import BRANCH_NAME
from propboard.writer import commit_documents, get_branch_tip, get_ref


def test_sync_without_remote_is_quiet(initialized_repo, capsys):
    assert sync(Namespace(repo=str(initialized_repo), json=False)) == 0
    assert capsys.readouterr().out.strip() == "nothing to do"


def test_sync_pushes_to_remote(initialized_repo, tmp_path, capsys):
    remote_path = tmp_path / "remote.git"
    Repo.init(remote_path, bare=True)
    repo = Repo(initialized_repo)
    repo.create_remote("origin", str(remote_path))
    repo.git.push("origin", BRANCH_NAME)
    repo.git.branch("--set-upstream-to", f"origin/{BRANCH_NAME}", BRANCH_NAME)
    commit_documents(initialized_repo, {"boards/b1.yaml": {"title": "Renamed"}}, "rename")

    assert sync(Namespace(repo=str(initialized_repo), json=True)) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["status"] == "idle"
    assert get_ref(remote_path, f"refs/heads/{BRANCH_NAME}") == get_branch_tip(initialized_repo)


def test_parser_dispatch():
    args = build_parser().parse_args(["todo", "--filter", "overdue", "--repo", "/tmp/x"])
    assert args.func.__name__ == "todo"
    assert args.filter == "overdue"
    assert args.sort == "due_date"
    assert build_parser().parse_args(["sync"]).func.__name__ == "sync"
