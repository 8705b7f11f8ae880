"""Main Textual application for propboard."""

from __future__ import annotations

import logging
from pathlib import Path

from textual.app import App

from propboard.git import init_repo, is_git_repo, read_git_config
from propboard.ids import board_path, lists_path
from propboard.models import Board, TaskList, now_iso
from propboard.order import renumber
from propboard.session import BoardSession
from propboard.store.base import DocumentStore, WriteOp
from propboard.store.git import GitStore
from propboard.ui.board import BoardScreen
from propboard.ui.confirm import ConfirmScreen

logger = logging.getLogger(__name__)

DEFAULT_LISTS = ("Backlog", "Doing", "Done")


async def create_default_board(store: DocumentStore, title: str = "Board") -> str:
    """Write a board with Backlog, Doing and Done lists in one batch."""
    board_id = store.new_id()
    list_ids = [store.new_id() for _ in DEFAULT_LISTS]
    orders = renumber(list_ids)
    ops = [
        WriteOp.set(lists_path(board_id), list_id, TaskList(list_id, name, orders[list_id], createdAt=now_iso()).to_document())
        for list_id, name in zip(list_ids, DEFAULT_LISTS)
    ]
    board = Board(board_id, title=title, listIds=list_ids, createdAt=now_iso())
    ops.append(WriteOp.set(board_path(), board_id, board.to_document()))
    await store.batch_write(ops)
    logger.info("created board %s", board_id)
    return board_id


async def pick_board(store: DocumentStore) -> str | None:
    """The oldest board in the store, or None when there are none."""
    boards = await store.get_collection(board_path())
    if not boards:
        return None
    return min(boards, key=lambda doc: (str(doc.data.get("createdAt") or ""), doc.id)).id


class PropboardApp(App):
    """Real-time kanban board TUI."""

    CSS = """
    Toast {
        padding: 0 1;
    }
    """

    TITLE = "propboard"
    BINDINGS = [("ctrl+q", "quit", "Quit")]

    def __init__(
        self,
        repo_path: Path | None = None,
        board_id: str | None = None,
        store: DocumentStore | None = None,
    ):
        super().__init__()
        self.repo_path = repo_path
        self.board_id = board_id
        self.store = store
        self.config: dict = {}
        self.session: BoardSession | None = None

    async def on_mount(self) -> None:
        if self.store is not None:
            await self._open_board()
        elif not is_git_repo(self.repo_path):
            question = f"{self.repo_path} is not a git repository. Create one?"
            self.push_screen(ConfirmScreen(question, "Create"), self._on_init_response)
        else:
            await self._load_store()

    async def _on_init_response(self, result: bool) -> None:
        if result:
            init_repo(self.repo_path)
            await self._load_store()
        else:
            self.exit()

    async def _load_store(self) -> None:
        self.config = read_git_config(self.repo_path)
        self.store = GitStore(self.repo_path, max_batch_size=self.config["batch_limit"])
        await self._open_board()

    async def _open_board(self) -> None:
        """Find or create the board, wait for its first snapshot and show it."""
        board_id = self.board_id or await pick_board(self.store)
        if board_id is None:
            board_id = await create_default_board(self.store)
        self.board_id = board_id
        self.session = BoardSession(self.store, board_id)
        self.session.start()
        await self.store.idle()
        self.push_screen(BoardScreen(self.session, self.config))

    def action_quit(self) -> None:
        """Cancel sync, stop listening and quit."""
        screen = self.screen
        if isinstance(screen, BoardScreen) and screen._sync_task is not None:
            screen._sync_task.cancel()
        if self.session is not None:
            self.session.stop()
        self.exit()
