"""Handler for 'propboard sync'."""

import asyncio
import sys

from propboard.cli._common import open_store_or_die, output_json
from propboard.git import read_git_config
from propboard.model.node import Node
from propboard.sync import run_sync_cycle


def sync(args) -> int:
    """Run one sync cycle and report how it ended."""
    store = open_store_or_die(args.repo, args.json)
    before = store.commit
    state = Node(status="idle")
    asyncio.run(run_sync_cycle(store, read_git_config(store.repo_path), state))

    result = {"status": state.status, "before": before, "after": store.commit}
    if args.json:
        output_json(result)
    elif state.status == "conflict":
        print("error: merge conflict, nothing was changed", file=sys.stderr)
    elif before != store.commit:
        print(f"updated: {(before or '')[:8]} -> {(store.commit or '')[:8]}")
    else:
        print("nothing to do")
    return 1 if state.status == "conflict" else 0
