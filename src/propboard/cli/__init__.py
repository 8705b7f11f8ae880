"""CLI argument parser and dispatch for propboard."""

import argparse

from propboard.cli.sync import sync
from propboard.cli.todo import todo
from propboard.views import TodoFilter, TodoSort


def build_parser() -> argparse.ArgumentParser:
    """Build the full CLI argument parser."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--repo", default=".", help="Path to git repository (default: .)")
    common.add_argument("--json", action="store_true", help="Machine-readable JSON output")

    parser = argparse.ArgumentParser(
        prog="propboard",
        description="Real-time kanban board",
        parents=[common],
    )

    nouns = parser.add_subparsers(dest="noun")

    # --- todo ---
    todo_p = nouns.add_parser("todo", help="List cards across every list", parents=[common])
    todo_p.add_argument("--board", help="Board ID (default: the oldest board)")
    todo_p.add_argument(
        "--filter", choices=[f.value for f in TodoFilter], default=TodoFilter.OPEN.value, help="Which cards to show"
    )
    todo_p.add_argument(
        "--sort", choices=[s.value for s in TodoSort], default=TodoSort.DUE_DATE.value, help="Sort order"
    )
    todo_p.add_argument("--user", help="User ID for the my_tasks filter")
    todo_p.set_defaults(func=todo)

    # --- sync ---
    sync_p = nouns.add_parser("sync", help="Pull, merge and push the board branch", parents=[common])
    sync_p.set_defaults(func=sync)

    return parser
