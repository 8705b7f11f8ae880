"""Repository helpers: config, remotes and branch checks."""

from pathlib import Path
from typing import Any

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from propboard.constants import BRANCH_NAME, DEFAULT_BATCH_LIMIT

CONFIG_SECTION = "propboard"

CONFIG_DEFAULTS = {
    "batch-limit": DEFAULT_BATCH_LIMIT,
    "sync-interval": 30,
    "sync-local": True,
    "sync-remote": True,
}


def _python_key(git_key: str) -> str:
    return git_key.replace("-", "_")


def _git_key(python_key: str) -> str:
    return python_key.replace("_", "-")


def _coerce_value(git_key: str, raw: str):
    """Type-coerce a [propboard] value using the type of its default."""
    default = CONFIG_DEFAULTS.get(git_key)
    if default is None:
        return raw
    if isinstance(default, bool):
        return raw.lower() in ("true", "yes", "on", "1")
    if isinstance(default, int):
        try:
            return int(raw)
        except ValueError:
            return default
    return raw


def read_git_config(repo_path: str | Path) -> dict[str, Any]:
    """Read the [propboard] section with defaults filled in.

    Keys come back python-style: ``batch_limit``, ``sync_interval``...
    """
    reader = Repo(repo_path).config_reader()
    config = {_python_key(k): v for k, v in CONFIG_DEFAULTS.items()}
    if reader.has_section(CONFIG_SECTION):
        for git_k, raw in reader.items(CONFIG_SECTION):
            config[_python_key(git_k)] = _coerce_value(git_k, raw)
    return config


def write_git_config_key(repo_path: str | Path, key: str, value) -> None:
    """Write one [propboard] key to the repository config. key is python-style."""
    writer = Repo(repo_path).config_writer("repository")
    try:
        if isinstance(value, bool):
            writer.set_value(CONFIG_SECTION, _git_key(key), str(value).lower())
        else:
            writer.set_value(CONFIG_SECTION, _git_key(key), str(value))
    finally:
        writer.release()


def is_git_repo(path: str | Path) -> bool:
    """Check if path is inside a git repository."""
    try:
        Repo(path, search_parent_directories=True)
        return True
    except (InvalidGitRepositoryError, NoSuchPathError):
        return False


def init_repo(path: str | Path) -> Repo:
    """Initialize a new git repository at path."""
    return Repo.init(path)


def has_branch(repo_path: str | Path, branch: str = BRANCH_NAME) -> bool:
    return branch in [h.name for h in Repo(repo_path).heads]


# --- Remotes ---


def get_remotes_sync(repo_path: str | Path) -> list[str]:
    return [remote.name for remote in Repo(repo_path).remotes]


def fetch_sync(repo_path: str | Path, remote_name: str) -> None:
    Repo(repo_path).remote(remote_name).fetch()


def push_sync(repo_path: str | Path, remote_name: str, branch: str = BRANCH_NAME) -> None:
    Repo(repo_path).remote(remote_name).push(branch)


def get_upstream(repo_path: str | Path, branch: str = BRANCH_NAME) -> tuple[str, str] | None:
    """Get (remote_name, remote_branch) tracked by branch, or None."""
    repo = Repo(repo_path)
    try:
        head = repo.heads[branch]
    except (IndexError, ValueError):
        return None
    tracking = head.tracking_branch()
    if tracking is None:
        return None
    return tracking.remote_name, tracking.name.split("/", 1)[1]


def remote_has_branch(repo_path: str | Path, remote_name: str, branch: str = BRANCH_NAME) -> bool:
    """Check if refs/remotes/{remote}/{branch} exists."""
    try:
        Repo(repo_path).git.rev_parse("--verify", f"refs/remotes/{remote_name}/{branch}")
        return True
    except GitCommandError:
        return False

