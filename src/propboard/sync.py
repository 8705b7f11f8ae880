"""Background sync for a git-backed store.

Runs: pull → merge → reload → push, gated by the sync-local and
sync-remote config toggles. Every write already commits locally, so there is
no save step; the cycle only brings in commits made elsewhere.
"""

import asyncio
import logging

from propboard.git import fetch_sync, get_remotes_sync, get_upstream, push_sync, remote_has_branch
from propboard.model.node import Node
from propboard.store.git import GitStore
from propboard.writer import check_remote_for_merge, get_branch_tip, try_auto_merge

logger = logging.getLogger(__name__)


def _pick_upstream(repo_path, branch: str, remotes: list[str]) -> str | None:
    if not remotes:
        return None
    upstream_info = get_upstream(repo_path, branch)
    if upstream_info:
        return upstream_info[0]
    if "origin" in remotes:
        return "origin"
    return remotes[0]


async def run_sync_cycle(store: GitStore, config: dict, sync: Node | None = None) -> None:
    """Run one sync cycle against store's repository.

    ``config`` is the dict from read_git_config. ``sync.status`` is set at each
    step so a status widget watching it can follow along.
    """
    if sync is None:
        sync = Node(status="idle")
    repo_path = store.repo_path
    branch = store.branch
    do_local = config.get("sync_local", True)
    do_remote = config.get("sync_remote", True)

    try:
        # --- PULL ---
        remotes: list[str] = []
        upstream_remote = None
        if do_remote:
            sync.status = "pull"
            remotes = await asyncio.to_thread(get_remotes_sync, repo_path)
            upstream_remote = await asyncio.to_thread(_pick_upstream, repo_path, branch, remotes)
            for remote in remotes:
                try:
                    await asyncio.to_thread(fetch_sync, repo_path, remote)
                except Exception as exc:
                    logger.warning("fetch %s failed: %s", remote, exc)

        # --- MERGE ---
        merged = False
        if do_remote and remotes:
            sync.status = "merge"
            merge_order = [r for r in remotes if r != upstream_remote] + ([upstream_remote] if upstream_remote else [])
            for remote in merge_order:
                if not await asyncio.to_thread(remote_has_branch, repo_path, remote, branch):
                    continue
                merge_info = await asyncio.to_thread(check_remote_for_merge, repo_path, remote, branch)
                if merge_info is None:
                    continue
                new_commit = await asyncio.to_thread(
                    try_auto_merge, repo_path, merge_info, f"Merge {remote}/{branch}", branch
                )
                if new_commit is None:
                    sync.status = "conflict"
                    return
                merged = True

        # --- LOAD ---
        # another process on this machine may have committed too
        if do_local and not merged:
            tip = await asyncio.to_thread(get_branch_tip, repo_path, branch)
            merged = tip != store.commit
        if merged:
            sync.status = "load"
            await store.reload()

        # --- PUSH ---
        if do_remote and upstream_remote:
            sync.status = "push"
            try:
                await asyncio.to_thread(push_sync, repo_path, upstream_remote, branch)
            except Exception as exc:
                logger.warning("push to %s failed: %s", upstream_remote, exc)

    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception("sync cycle failed")
    finally:
        if sync.status != "conflict":
            sync.status = "idle"
