"""Commit documents to the board branch without touching the working tree."""

import os
import re
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from propboard.constants import BRANCH_NAME

DOCUMENT_SUFFIX = ".yaml"


def blob_path(collection: str, doc_id: str) -> str:
    """Tree path of a document: ``boards/b1/lists/l1.yaml``."""
    return f"{collection}/{doc_id}{DOCUMENT_SUFFIX}"


def parse_blob_path(path: str) -> tuple[str, str] | None:
    """Inverse of blob_path, or None for anything that isn't a document."""
    if not path.endswith(DOCUMENT_SUFFIX):
        return None
    stem = path[: -len(DOCUMENT_SUFFIX)]
    collection, _, doc_id = stem.rpartition("/")
    if not collection or not doc_id:
        return None
    return collection, doc_id


def dump_document(data: dict[str, Any]) -> str:
    return yaml.safe_dump(data, sort_keys=True, allow_unicode=True, default_flow_style=False)


def load_document(text: str) -> dict[str, Any]:
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


# --- Git plumbing ---


def _git(repo_path: Path, args: list[str], env: dict | None = None) -> str:
    """Run a git command and return stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo_path,
        env=env,
        capture_output=True,
        check=True,
    )
    return result.stdout.decode("utf-8").strip()


def _hash_object(repo_path: Path, content: str) -> str:
    """Write content to git object store and return the blob hash."""
    result = subprocess.run(
        ["git", "hash-object", "-w", "--stdin"],
        cwd=repo_path,
        input=content.encode("utf-8"),
        capture_output=True,
        check=True,
    )
    return result.stdout.decode("utf-8").strip()


def get_branch_tip(repo_path: Path, branch: str = BRANCH_NAME) -> str | None:
    """Get the current commit hash of a branch, or None if it doesn't exist."""
    return get_ref(repo_path, f"refs/heads/{branch}")


def get_ref(repo_path: Path, ref: str) -> str | None:
    """Get the commit hash for any ref, or None if it doesn't exist."""
    result = subprocess.run(
        ["git", "rev-parse", "--verify", "--quiet", ref],
        cwd=repo_path,
        capture_output=True,
    )
    if result.returncode != 0:
        return None
    return result.stdout.decode("utf-8").strip()


def _commit_timestamp(repo_path: Path, commit: str) -> int:
    return int(_git(repo_path, ["log", "-1", "--format=%ct", commit]))


def _get_merge_base(repo_path: Path, commit1: str, commit2: str) -> str | None:
    result = subprocess.run(
        ["git", "merge-base", commit1, commit2],
        cwd=repo_path,
        capture_output=True,
    )
    if result.returncode != 0:
        return None
    return result.stdout.decode("utf-8").strip()


class _TempIndex:
    """A throwaway index file, so commits never disturb the user's staging area."""

    def __init__(self, repo_path: Path):
        self.repo_path = repo_path

    def __enter__(self) -> dict:
        fd, self.path = tempfile.mkstemp(prefix="propboard_idx_")
        os.close(fd)
        # git refuses to read an empty file as an index
        os.unlink(self.path)
        return {**os.environ, "GIT_INDEX_FILE": self.path}

    def __exit__(self, *exc) -> None:
        if os.path.exists(self.path):
            os.unlink(self.path)


def commit_documents(
    repo_path: Path,
    changes: dict[str, dict[str, Any] | None],
    message: str,
    branch: str = BRANCH_NAME,
) -> str:
    """Write changed documents as one commit on branch and return its hash.

    ``changes`` maps tree paths to new document data, or None to remove the
    file. Paths not mentioned keep whatever the current tip has.
    """
    repo_path = Path(repo_path)
    tip = get_branch_tip(repo_path, branch)
    with _TempIndex(repo_path) as env:
        if tip:
            _git(repo_path, ["read-tree", tip], env=env)
        for path, data in sorted(changes.items()):
            if data is None:
                _git(repo_path, ["update-index", "--force-remove", path], env=env)
            else:
                blob = _hash_object(repo_path, dump_document(data))
                _git(repo_path, ["update-index", "--add", "--cacheinfo", f"100644,{blob},{path}"], env=env)
        tree = _git(repo_path, ["write-tree"], env=env)

    if tip and _git(repo_path, ["rev-parse", f"{tip}^{{tree}}"]) == tree:
        return tip

    parent_args = ["-p", tip] if tip else []
    new_commit = _git(repo_path, ["commit-tree", tree, *parent_args, "-m", message])
    _git(repo_path, ["update-ref", f"refs/heads/{branch}", new_commit])
    return new_commit


# --- Merging ---


@dataclass
class MergeRequired:
    """Returned when the branch and another commit have diverged."""

    base: str
    ours: str
    theirs: str


def check_remote_for_merge(repo_path: Path, remote: str = "origin", branch: str = BRANCH_NAME) -> MergeRequired | None:
    """Check if a remote has commits the local branch doesn't."""
    repo_path = Path(repo_path)
    ours = get_branch_tip(repo_path, branch)
    theirs = get_ref(repo_path, f"refs/remotes/{remote}/{branch}")
    if theirs is None or theirs == ours:
        return None
    if ours is None:
        return MergeRequired(base="", ours="", theirs=theirs)
    base = _get_merge_base(repo_path, ours, theirs)
    if base is None or base == theirs:
        return None
    return MergeRequired(base=base, ours=ours, theirs=theirs)


def _merge_trees(repo_path: Path, merge_info: MergeRequired) -> tuple[str, list[str]]:
    """3-way merge of two commits. Returns (tree, conflicted paths)."""
    result = subprocess.run(
        [
            "git",
            "merge-tree",
            "--write-tree",
            f"--merge-base={merge_info.base}",
            merge_info.ours,
            merge_info.theirs,
        ],
        cwd=repo_path,
        capture_output=True,
    )
    output = result.stdout.decode("utf-8").strip()
    lines = output.split("\n")
    tree_hash = lines[0] if lines else ""
    conflict_paths = re.findall(r"CONFLICT \([^)]+\): .+ (\S+)$", output, re.MULTILINE)
    return tree_hash, conflict_paths


def _resolve_conflicts(repo_path: Path, merged_tree: str, winner: str, conflict_paths: list[str]) -> str:
    """Replace conflicted paths in merged_tree with the winner's versions."""
    with _TempIndex(repo_path) as env:
        _git(repo_path, ["read-tree", merged_tree], env=env)
        for path in conflict_paths:
            entry = _git(repo_path, ["ls-tree", winner, path])
            if entry:
                mode, _, rest = entry.split(None, 2)
                blob = rest.split("\t")[0]
                _git(repo_path, ["update-index", "--cacheinfo", f"{mode},{blob},{path}"], env=env)
            else:
                _git(repo_path, ["update-index", "--force-remove", path], env=env)
        return _git(repo_path, ["write-tree"], env=env)


def try_auto_merge(
    repo_path: Path,
    merge_info: MergeRequired,
    message: str = "Merge changes",
    branch: str = BRANCH_NAME,
) -> str | None:
    """Merge theirs into the branch, resolving conflicts per file by newest commit.

    Returns the new tip, or None if git could not produce a merged tree.
    """
    repo_path = Path(repo_path)

    # nothing local yet, or local is strictly behind: fast-forward
    if not merge_info.ours or merge_info.base == merge_info.ours:
        _git(repo_path, ["update-ref", f"refs/heads/{branch}", merge_info.theirs])
        return merge_info.theirs

    merged_tree, conflict_paths = _merge_trees(repo_path, merge_info)
    if not merged_tree:
        return None

    if conflict_paths:
        ours_ts = _commit_timestamp(repo_path, merge_info.ours)
        theirs_ts = _commit_timestamp(repo_path, merge_info.theirs)
        winner = merge_info.theirs if theirs_ts >= ours_ts else merge_info.ours
        merged_tree = _resolve_conflicts(repo_path, merged_tree, winner, conflict_paths)

    new_commit = _git(
        repo_path,
        ["commit-tree", merged_tree, "-p", merge_info.ours, "-p", merge_info.theirs, "-m", message],
    )
    _git(repo_path, ["update-ref", f"refs/heads/{branch}", new_commit])
    return new_commit
