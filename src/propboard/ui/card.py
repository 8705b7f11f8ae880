"""Card widget for the board screen."""

from __future__ import annotations

from rich.text import Text
from textual import events
from textual.app import ComposeResult
from textual.message import Message
from textual.widgets import Static

from propboard.drag import ItemKind
from propboard.model.node import ListNode, Node
from propboard.models import UNTITLED_CARD
from propboard.ui.watcher import NodeWatcherMixin

ICON_CHECKED = "☑"
ICON_UNCHECKED = "☐"


def footer_text(card: Node) -> str:
    """One-line summary of the card's extras: due date, checklist, assignees."""
    parts = []
    if card.dueDate:
        parts.append(f"⏰ {str(card.dueDate)[:10]}")
    checklist = card.checklist or []
    if checklist:
        done = sum(1 for item in checklist if isinstance(item, dict) and item.get("completed"))
        parts.append(f"✔ {done}/{len(checklist)}")
    if card.assignedTo:
        parts.append(f"\U0001f464 {len(card.assignedTo)}")
    if card.comments:
        parts.append(f"\U0001f4ac {len(card.comments)}")
    return "  ".join(parts)


class CardWidget(NodeWatcherMixin, Static, can_focus=True):
    """A single card in a list."""

    BINDINGS = [
        ("space", "toggle_completed", "Done/undone"),
        ("d", "move_to_done", "Move to Done"),
        ("delete", "delete_card", "Delete"),
    ]

    DEFAULT_CSS = """
    CardWidget {
        width: 100%;
        height: auto;
        padding: 0 1;
        margin-bottom: 1;
        background: $surface;
    }
    CardWidget:focus {
        background: $primary;
    }
    CardWidget.completed #card-title {
        text-style: strike;
        color: $text-muted;
    }
    CardWidget.dragging {
        opacity: 0.5;
    }
    CardWidget.drop-target {
        border-top: tall $accent;
    }
    CardWidget #card-footer {
        width: 100%;
        height: auto;
        color: $text-muted;
    }
    """

    class Action(Message):
        """Posted when the user asks for something to happen to this card."""

        def __init__(self, card: CardWidget, action: str):
            super().__init__()
            self.card = card
            self.action = action

    def __init__(self, list_id: str, card: Node):
        self._init_watcher()
        Static.__init__(self)
        self.list_id = list_id
        self.card = card
        self.card_id = card.id

    def compose(self) -> ComposeResult:
        yield Static(self._title(), id="card-title")
        yield Static(Text(footer_text(self.card)), id="card-footer")

    def on_mount(self) -> None:
        cards = self.card._parent
        if isinstance(cards, ListNode):
            self.node_watch(cards, self.card_id, self._on_card_changed)
        self._refresh()

    def _title(self) -> Text:
        mark = ICON_CHECKED if self.card.completed else ICON_UNCHECKED
        return Text(f"{mark} {self.card.title or UNTITLED_CARD}")

    def _on_card_changed(self, node, key, old, new) -> None:
        if node is self.card._parent and key == self.card_id:
            if new is None:
                return
            self.card = new
        self._refresh()

    def _refresh(self) -> None:
        self.query_one("#card-title", Static).update(self._title())
        self.query_one("#card-footer", Static).update(Text(footer_text(self.card)))
        self.set_class(bool(self.card.completed), "completed")

    def on_mouse_down(self, event: events.MouseDown) -> None:
        if event.button != 1:
            return
        event.stop()
        self.screen.begin_drag(self.card_id, ItemKind.CARD, self.list_id, event.screen_x, event.screen_y)

    def action_toggle_completed(self) -> None:
        self.post_message(self.Action(self, "toggle-completed"))

    def action_move_to_done(self) -> None:
        self.post_message(self.Action(self, "move-to-done"))

    def action_delete_card(self) -> None:
        self.post_message(self.Action(self, "delete"))
