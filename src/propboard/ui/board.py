"""Board screen: lists side by side, driven by a live BoardSession."""

from __future__ import annotations

import asyncio
import logging
import time

from rich.text import Text
from textual import events
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.screen import Screen
from textual.widgets import Footer, Static

from propboard.drag import Container, DragController, DragState, Droppable, Item, ItemKind
from propboard.model.node import Node
from propboard.models import UNTITLED_LIST
from propboard.operations import BoardOperations
from propboard.session import BoardSession
from propboard.store.git import GitStore
from propboard.sync import run_sync_cycle
from propboard.ui.card import CardWidget
from propboard.ui.column import AddList, ListWidget
from propboard.ui.confirm import ConfirmScreen
from propboard.ui.watcher import NodeWatcherMixin

logger = logging.getLogger(__name__)

ICON_SYNC_IDLE = "⟳"
ICON_SYNC_ACTIVE = "↻"
ICON_SYNC_PAUSED = "⏸"
ICON_SYNC_CONFLICT = "⚠"


def sync_icon(status: str | None, config: dict) -> str:
    """Icon for the header sync indicator."""
    if status == "conflict":
        return ICON_SYNC_CONFLICT
    if not config.get("sync_local", True) and not config.get("sync_remote", True):
        return ICON_SYNC_PAUSED
    if status and status != "idle":
        return ICON_SYNC_ACTIVE
    return ICON_SYNC_IDLE


class BoardScreen(NodeWatcherMixin, Screen):
    """Main board screen showing every list of one board."""

    BINDINGS = [
        Binding("escape", "cancel_drag", "Cancel drag", show=False),
        ("ctrl+r", "sync", "Sync"),
        ("ctrl+d", "delete_list", "Delete list"),
    ]

    DEFAULT_CSS = """
    BoardScreen #board-header {
        height: 1;
        padding: 0 1;
        background: $panel;
    }
    BoardScreen #board-title {
        width: 1fr;
        text-style: bold;
    }
    BoardScreen #sync-status {
        width: auto;
    }
    BoardScreen #lists {
        height: 1fr;
        overflow-x: auto;
    }
    """

    def __init__(self, session: BoardSession, config: dict | None = None):
        self._init_watcher()
        super().__init__()
        self.session = session
        self.config = config or {}
        self.operations = BoardOperations(session.store, session.state, notify=self._notify)
        self.drag = DragController(self.operations)
        self.sync_state = Node(status="idle")
        self._sync_task: asyncio.Task | None = None
        self._last_sync = time.monotonic()

    @property
    def board_id(self) -> str:
        return self.session.board_id

    @property
    def root(self) -> Node:
        return self.session.state.root

    def _notify(self, message: str) -> None:
        self.app.notify(message, severity="warning")

    def compose(self) -> ComposeResult:
        board = self.root.board
        with Horizontal(id="board-header"):
            yield Static(Text(board.title if board else ""), id="board-title")
            yield Static(sync_icon("idle", self.config), id="sync-status")
        with Horizontal(id="lists"):
            for node in self.root.lists:
                yield ListWidget(node)
            yield AddList()
        yield Footer()

    def on_mount(self) -> None:
        self.node_watch(self.root, "board", self._on_board_changed)
        self.node_watch(self.root, "lists", self._on_lists_changed)
        self.node_watch(self.sync_state, "status", self._on_sync_status)
        if isinstance(self.session.store, GitStore):
            self.set_interval(1.0, self._sync_tick)
        self.call_after_refresh(self._focus_first_card)

    def on_unmount(self) -> None:
        super().on_unmount()
        if self._sync_task is not None:
            self._sync_task.cancel()

    def _focus_first_card(self) -> None:
        for widget in self.query(CardWidget):
            widget.focus()
            return

    # -- model → widgets --

    def _on_board_changed(self, node, key, old, new) -> None:
        board = self.root.board
        self.query_one("#board-title", Static).update(Text(board.title if board else ""))

    def _on_lists_changed(self, node, key, old, new) -> None:
        if node is not self.root.lists:
            return
        container = self.query_one("#lists", Horizontal)
        existing = {w.list_id: w for w in self.query(ListWidget)}
        wanted = self.root.lists.keys()
        for list_id, widget in existing.items():
            if list_id not in wanted:
                widget.remove()
        anchor = container.query_one(AddList)
        for list_id in wanted:
            if list_id not in existing:
                existing[list_id] = ListWidget(self.root.lists[list_id])
                container.mount(existing[list_id], before=anchor)
        for list_id in reversed(wanted):
            container.move_child(existing[list_id], before=anchor)
            anchor = existing[list_id]

    def _on_sync_status(self, node, key, old, new) -> None:
        self.query_one("#sync-status", Static).update(sync_icon(new, self.config))

    # -- dragging --

    def droppables(self) -> list[Droppable]:
        """Screen regions that can take a drop, in display order."""
        zones = [
            Droppable(Container(self.board_id), self.query_one("#lists", Horizontal).region, ItemKind.LIST)
        ]
        for list_widget in self.query(ListWidget):
            zones.append(Droppable(Item(list_widget.list_id, self.board_id), list_widget.region, ItemKind.LIST))
            zones.append(Droppable(Container(list_widget.list_id), list_widget.region, ItemKind.CARD))
            for card in list_widget.card_widgets():
                zones.append(Droppable(Item(card.card_id, list_widget.list_id), card.region, ItemKind.CARD))
        return zones

    def begin_drag(self, item_id: str, kind: ItemKind, source_id: str, x: int, y: int) -> None:
        self.drag.press(item_id, kind, source_id, x, y)
        self.capture_mouse()

    def _dragged_widget(self):
        for widget in self.query(CardWidget if self.drag.kind is ItemKind.CARD else ListWidget):
            if getattr(widget, "card_id", None) == self.drag.item_id or getattr(widget, "list_id", None) == self.drag.item_id:
                return widget
        return None

    def _clear_drag_classes(self) -> None:
        for widget in self.query(".dragging, .drop-target"):
            widget.remove_class("dragging", "drop-target")

    def on_mouse_move(self, event: events.MouseMove) -> None:
        if self.drag.state is DragState.IDLE:
            return
        was_active = self.drag.active
        target = self.drag.move(event.screen_x, event.screen_y, self.droppables())
        if not self.drag.active:
            return
        if not was_active:
            widget = self._dragged_widget()
            if widget is not None and isinstance(widget, CardWidget) == (self.drag.kind is ItemKind.CARD):
                widget.add_class("dragging")
        for widget in self.query(".drop-target"):
            widget.remove_class("drop-target")
        if isinstance(target, Item):
            for widget in self.query(CardWidget if self.drag.kind is ItemKind.CARD else ListWidget):
                if target.id in (getattr(widget, "card_id", None), getattr(widget, "list_id", None)):
                    widget.add_class("drop-target")

    async def on_mouse_up(self, event: events.MouseUp) -> None:
        if self.drag.state is DragState.IDLE:
            return
        self.release_mouse()
        zones = self.droppables()
        self._clear_drag_classes()
        await self.drag.release(event.screen_x, event.screen_y, zones)

    def action_cancel_drag(self) -> None:
        if self.drag.state is DragState.IDLE:
            return
        self.release_mouse()
        self.drag.cancel()
        self._clear_drag_classes()

    # -- user actions --

    async def on_list_widget_card_submitted(self, event: ListWidget.CardSubmitted) -> None:
        event.stop()
        await self.operations.create_card(event.list_widget.list_id, event.title)

    async def on_add_list_submitted(self, event: AddList.Submitted) -> None:
        event.stop()
        await self.operations.create_list(event.list_name or UNTITLED_LIST)

    async def on_card_widget_action(self, event: CardWidget.Action) -> None:
        event.stop()
        card = event.card
        match event.action:
            case "toggle-completed":
                await self.operations.set_completed(card.card_id, not card.card.completed)
            case "move-to-done":
                await self.operations.move_card_to_done(card.card_id)
            case "delete":
                await self.operations.delete_card(card.card_id)

    async def on_list_widget_move_card_requested(self, event: ListWidget.MoveCardRequested) -> None:
        event.stop()
        list_id = event.list_widget.list_id
        if event.dy:
            cards = self.session.state.card_ids(list_id)
            index = cards.index(event.card_id) + event.dy
            if 0 <= index < len(cards):
                await self.operations.reorder_card(list_id, event.card_id, index)
        else:
            lists = self.session.state.list_ids()
            target = lists.index(list_id) + event.dx
            if 0 <= target < len(lists):
                position = self.session.state.card_ids(list_id).index(event.card_id)
                await self.operations.move_card(event.card_id, list_id, lists[target], position)
        self.call_after_refresh(self._refocus, event.card_id)

    def _refocus(self, card_id: str) -> None:
        for widget in self.query(CardWidget):
            if widget.card_id == card_id:
                widget.focus()
                return

    def action_delete_list(self) -> None:
        """Delete the focused card's list, and its cards, after confirmation."""
        focused = self.focused
        list_widget = next((w for w in focused.ancestors if isinstance(w, ListWidget)), None) if focused else None
        if list_widget is None:
            return
        node = list_widget.node
        question = f"Delete list {node.name or UNTITLED_LIST!r} and its {len(node.cards)} cards?"

        async def on_answer(confirmed: bool) -> None:
            if confirmed:
                await self.operations.delete_list(list_widget.list_id)

        self.app.push_screen(ConfirmScreen(question, "Delete"), on_answer)

    # -- sync --

    def _sync_tick(self) -> None:
        """Called every second. Starts a sync cycle once the interval has passed."""
        if self.sync_state.status != "idle":
            return
        if not self.config.get("sync_local", True) and not self.config.get("sync_remote", True):
            return
        now = time.monotonic()
        if now - self._last_sync < (self.config.get("sync_interval") or 30):
            return
        self.action_sync()

    def action_sync(self) -> None:
        """Run a sync cycle now. A manual sync also dismisses a conflict."""
        if self.sync_state.status == "conflict":
            logger.info("sync conflict dismissed for board %s", self.board_id)
            self.sync_state.status = "idle"
        if not isinstance(self.session.store, GitStore) or self.sync_state.status != "idle":
            return
        logger.debug("starting sync cycle for board %s", self.board_id)
        self._last_sync = time.monotonic()
        self._sync_task = asyncio.create_task(run_sync_cycle(self.session.store, self.config, self.sync_state))
