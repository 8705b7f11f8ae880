"""List (column) widgets for the board screen."""

from __future__ import annotations

from rich.text import Text
from textual import events
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.message import Message
from textual.widgets import Input, Rule, Static

from propboard.drag import ItemKind
from propboard.model.node import Node
from propboard.models import UNTITLED_LIST
from propboard.ui.card import CardWidget
from propboard.ui.watcher import NodeWatcherMixin


class ListWidget(NodeWatcherMixin, Vertical):
    """One list on the board, with its cards and an input for new ones."""

    DEFAULT_CSS = """
    ListWidget {
        width: 1fr;
        height: auto;
        min-height: 100%;
        min-width: 25;
        max-width: 30;
        padding: 0 1;
        border-right: tall $surface-lighten-1;
    }
    ListWidget.dragging {
        opacity: 0.5;
    }
    ListWidget.drop-target {
        border-left: tall $accent;
    }
    ListWidget > #list-title {
        width: 100%;
        text-align: center;
        text-style: bold;
    }
    ListWidget > Rule.-horizontal {
        margin: 0;
    }
    ListWidget > Input {
        border: none;
        height: 1;
        padding: 0 1;
    }
    """

    class CardSubmitted(Message):
        """Posted when a title is entered in the add-card input."""

        def __init__(self, list_widget: ListWidget, title: str):
            super().__init__()
            self.list_widget = list_widget
            self.title = title

    class MoveCardRequested(Message):
        """Keyboard move: direction is (dx, dy), one step."""

        def __init__(self, list_widget: ListWidget, card_id: str, dx: int, dy: int):
            super().__init__()
            self.list_widget = list_widget
            self.card_id = card_id
            self.dx = dx
            self.dy = dy

    def __init__(self, node: Node):
        self._init_watcher()
        super().__init__()
        self.node = node
        self.list_id = node.id

    def compose(self) -> ComposeResult:
        yield Static(Text(self.node.name or UNTITLED_LIST), id="list-title")
        yield Rule()
        for card in self.node.cards:
            yield CardWidget(self.list_id, card)
        yield Input(placeholder="+ card", id="add-card")

    def on_mount(self) -> None:
        self.node_watch(self.node, "name", self._on_name_changed)
        self.node_watch(self.node, "cards", self._on_cards_changed)

    def card_widgets(self) -> list[CardWidget]:
        return [c for c in self.children if isinstance(c, CardWidget)]

    def _on_name_changed(self, node, key, old, new) -> None:
        self.query_one("#list-title", Static).update(Text(new or UNTITLED_LIST))

    def _on_cards_changed(self, node, key, old, new) -> None:
        """Sync card children to match the cards ListNode."""
        if node is not self.node.cards:
            # a field inside a card changed; the card widget handles that
            return
        existing = {c.card_id: c for c in self.card_widgets()}
        wanted = self.node.cards.keys()

        for card_id, widget in existing.items():
            if card_id not in wanted:
                widget.remove()

        anchor = self.query_one("#add-card", Input)
        for card_id in wanted:
            if card_id not in existing:
                existing[card_id] = CardWidget(self.list_id, self.node.cards[card_id])
                self.mount(existing[card_id], before=anchor)

        for card_id in reversed(wanted):
            self.move_child(existing[card_id], before=anchor)
            anchor = existing[card_id]

    def on_mouse_down(self, event: events.MouseDown) -> None:
        title = self.query_one("#list-title", Static)
        if event.button != 1 or not title.region.contains(event.screen_x, event.screen_y):
            return
        event.stop()
        self.screen.begin_drag(self.list_id, ItemKind.LIST, self.screen.board_id, event.screen_x, event.screen_y)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        title = event.value.strip()
        event.input.value = ""
        if title:
            self.post_message(self.CardSubmitted(self, title))

    def on_key(self, event: events.Key) -> None:
        """Arrow keys move focus, shift+arrows move the focused card."""
        focused = self.screen.focused
        if not isinstance(focused, CardWidget) or focused.parent is not self:
            return
        cards = self.card_widgets()
        idx = cards.index(focused)
        match event.key:
            case "up" if idx > 0:
                cards[idx - 1].focus()
            case "down" if idx < len(cards) - 1:
                cards[idx + 1].focus()
            case "shift+up":
                self.post_message(self.MoveCardRequested(self, focused.card_id, 0, -1))
            case "shift+down":
                self.post_message(self.MoveCardRequested(self, focused.card_id, 0, 1))
            case "shift+left":
                self.post_message(self.MoveCardRequested(self, focused.card_id, -1, 0))
            case "shift+right":
                self.post_message(self.MoveCardRequested(self, focused.card_id, 1, 0))
            case _:
                return
        event.prevent_default()
        event.stop()


class AddList(Vertical):
    """Input for creating a new list."""

    DEFAULT_CSS = """
    AddList {
        width: 1fr;
        height: 100%;
        min-width: 25;
        max-width: 30;
        padding: 0 1;
    }
    AddList > Input {
        border: none;
        height: 1;
    }
    """

    class Submitted(Message):
        def __init__(self, list_name: str):
            super().__init__()
            self.list_name = list_name

    def compose(self) -> ComposeResult:
        yield Input(placeholder="+ list", id="add-list")

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        name = event.value.strip()
        event.input.value = ""
        if name:
            self.post_message(self.Submitted(name))
