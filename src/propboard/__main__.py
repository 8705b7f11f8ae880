"""Entry point for propboard."""

import argparse
import logging
import sys
from pathlib import Path

NOUNS = {"todo", "sync"}


def tui_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="propboard", description="Real-time kanban board")
    parser.add_argument("repo", nargs="?", default=".", help="Path to git repository (default: .)")
    parser.add_argument("--board", help="Board ID to open (default: the oldest board)")
    parser.add_argument("--log-file", help="Write logs here; the terminal belongs to the UI")
    return parser


def main():
    # No subcommand = TUI mode
    if len(sys.argv) < 2 or sys.argv[1] not in NOUNS:
        args = tui_parser().parse_args()
        if args.log_file:
            logging.basicConfig(
                filename=args.log_file,
                format="%(asctime)s %(levelname)s %(name)s %(message)s",
                level=logging.INFO,
            )

        from propboard.ui import PropboardApp

        app = PropboardApp(Path(args.repo).resolve(), board_id=args.board)
        app.run()
        return

    from propboard.cli import build_parser

    parser = build_parser()
    args = parser.parse_args()

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
