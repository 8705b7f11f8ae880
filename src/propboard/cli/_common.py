"""Shared helpers for CLI command handlers."""

import json
import sys
from pathlib import Path

from propboard.git import has_branch, is_git_repo, read_git_config
from propboard.store.git import GitStore


def open_store_or_die(repo: str, json_mode: bool) -> GitStore:
    """Open the board branch of repo. Exit 1 with message if there is none."""
    repo_path = Path(repo).resolve()
    if not is_git_repo(repo_path):
        error(f"{repo_path} is not a git repository.", json_mode)
    if not has_branch(repo_path):
        error(f"{repo_path} has no board yet. Run propboard there first.", json_mode)
    config = read_git_config(repo_path)
    return GitStore(repo_path, max_batch_size=config["batch_limit"])


def output_json(data: dict | list) -> None:
    """Write JSON to stdout."""
    print(json.dumps(data, indent=2))


def error(message: str, json_mode: bool) -> None:
    """Print error to stderr and exit 1."""
    if json_mode:
        print(json.dumps({"error": message}), file=sys.stderr)
    else:
        print(f"error: {message}", file=sys.stderr)
    sys.exit(1)
