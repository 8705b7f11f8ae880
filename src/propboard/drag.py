"""Pointer drag state machine for lists and cards.

The controller knows nothing about widgets. The front end feeds it pointer
positions plus the screen regions of everything that can be dropped on, and
it decides when a drag has started, what is under the pointer, and which
operation a release turns into.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from textual.geometry import Offset, Region

from propboard.constants import DEFAULT_ACTIVATION_DISTANCE
from propboard.operations import BoardOperations

logger = logging.getLogger(__name__)


class DragState(Enum):
    IDLE = "idle"
    PENDING = "pending"
    DRAGGING = "dragging"
    DROPPED = "dropped"
    CANCELLED = "cancelled"


class ItemKind(str, Enum):
    LIST = "list"
    CARD = "card"


@dataclass(frozen=True)
class Container:
    """Drop zone that is itself a container: a list for cards, the board for lists."""

    id: str


@dataclass(frozen=True)
class Item:
    """Drop zone over a sibling item inside parent_id."""

    id: str
    parent_id: str


DragTarget = Container | Item


@dataclass(frozen=True)
class Droppable:
    """A region the pointer can drop onto, and the kind of item it accepts.

    Droppables are expected in display order, so items sharing a parent are
    listed in the order they appear.
    """

    target: DragTarget
    region: Region
    accepts: ItemKind


@dataclass(frozen=True)
class DropIntent:
    kind: ItemKind
    item_id: str
    source_id: str
    container_id: str
    index: int
    original_index: int

    @property
    def is_noop(self) -> bool:
        return self.source_id == self.container_id and self.index == self.original_index


def _distance(x: int, y: int, region: Region) -> float:
    cx, cy = region.center
    return math.hypot(x - cx, y - cy)


def _siblings(droppables: Sequence[Droppable], kind: ItemKind, parent_id: str) -> list[Droppable]:
    return [
        d for d in droppables
        if d.accepts is kind and isinstance(d.target, Item) and d.target.parent_id == parent_id
    ]


class DragController:
    """IDLE → PENDING (pointer down) → DRAGGING → DROPPED | CANCELLED → IDLE.

    A press only becomes a drag once the pointer has moved further than
    ``activation_distance`` cells, so plain clicks never trigger a drop.
    """

    def __init__(self, operations: BoardOperations | None, activation_distance: int = DEFAULT_ACTIVATION_DISTANCE):
        self.operations = operations
        self.activation_distance = activation_distance
        self.state = DragState.IDLE
        self.outcome: DragState | None = None
        self.kind: ItemKind | None = None
        self.item_id: str | None = None
        self.source_id: str | None = None
        self.hover: DragTarget | None = None
        self._origin = Offset(0, 0)

    @property
    def active(self) -> bool:
        return self.state is DragState.DRAGGING

    def press(self, item_id: str, kind: ItemKind, source_id: str, x: int, y: int) -> None:
        """Pointer went down on a draggable item whose container is source_id."""
        if self.state is not DragState.IDLE:
            return
        self.state = DragState.PENDING
        self.kind = kind
        self.item_id = item_id
        self.source_id = source_id
        self._origin = Offset(x, y)

    def move(self, x: int, y: int, droppables: Sequence[Droppable] = ()) -> DragTarget | None:
        """Pointer moved. Returns the hover target while dragging."""
        if self.state is DragState.PENDING:
            if math.hypot(x - self._origin.x, y - self._origin.y) <= self.activation_distance:
                return None
            self.state = DragState.DRAGGING
            logger.debug("dragging %s %s", self.kind.value, self.item_id)
        if self.state is not DragState.DRAGGING:
            return None
        self.hover = self.collide(x, y, droppables)
        return self.hover

    def cancel(self) -> None:
        """Abandon the gesture without touching the board."""
        if self.state is DragState.IDLE:
            return
        self.outcome = DragState.CANCELLED if self.state is DragState.DRAGGING else None
        self._reset()

    async def release(self, x: int, y: int, droppables: Sequence[Droppable] = ()) -> DropIntent | None:
        """Pointer went up. Returns the drop that was applied, or None."""
        if self.state is DragState.PENDING:
            # never moved far enough: a click, not a drag
            self.outcome = None
            self._reset()
            return None
        if self.state is not DragState.DRAGGING:
            return None

        intent = self.resolve(x, y, droppables)
        if intent is None:
            self.state = self.outcome = DragState.CANCELLED
            self._reset()
            return None

        self.state = self.outcome = DragState.DROPPED
        try:
            if intent.is_noop:
                return None
            await self._apply(intent)
            return intent
        finally:
            self._reset()

    def collide(self, x: int, y: int, droppables: Sequence[Droppable]) -> DragTarget | None:
        """Closest-centre collision among droppables that accept the dragged kind.

        The pointer has to be over at least one of them. When it is over a
        container, only that container and its items compete: an item under
        the pointer wins outright, gaps between items go to the nearest item,
        and the container itself only wins past the last item.
        """
        candidates = [
            d for d in droppables
            if d.accepts is self.kind and d.target.id != self.item_id
        ]
        hit = [d for d in candidates if d.region.contains(x, y)]
        if not hit:
            return None
        containers = [d for d in hit if isinstance(d.target, Container)]
        if not containers:
            return min(candidates, key=lambda d: _distance(x, y, d.region)).target

        scope = min(containers, key=lambda d: d.region.area)
        items = [d for d in candidates if isinstance(d.target, Item) and d.target.parent_id == scope.target.id]
        under = [d for d in items if d.region.contains(x, y)]
        if under:
            pool = under
        elif items and not self._past_end(x, y, items[-1].region):
            pool = items
        else:
            return scope.target
        return min(pool, key=lambda d: _distance(x, y, d.region)).target

    def _past_end(self, x: int, y: int, last: Region) -> bool:
        if self.kind is ItemKind.LIST:
            return x >= last.right
        return y >= last.bottom

    def resolve(self, x: int, y: int, droppables: Sequence[Droppable]) -> DropIntent | None:
        """Turn the target under the pointer into a container and insertion index."""
        target = self.collide(x, y, droppables)
        if target is None:
            return None

        match target:
            case Container(id=container_id):
                siblings = [d for d in _siblings(droppables, self.kind, container_id) if d.target.id != self.item_id]
                index = len(siblings)
            case Item(id=sibling_id, parent_id=container_id):
                siblings = [d for d in _siblings(droppables, self.kind, container_id) if d.target.id != self.item_id]
                position = next(i for i, d in enumerate(siblings) if d.target.id == sibling_id)
                cx, cy = siblings[position].region.center
                before = x < cx if self.kind is ItemKind.LIST else y < cy
                index = position if before else position + 1

        source = [d.target.id for d in _siblings(droppables, self.kind, self.source_id)]
        original_index = source.index(self.item_id) if self.item_id in source else -1
        return DropIntent(self.kind, self.item_id, self.source_id, container_id, index, original_index)

    async def _apply(self, intent: DropIntent) -> bool:
        if self.operations is None:
            return False
        logger.info(
            "drop %s %s into %s at %d", intent.kind.value, intent.item_id, intent.container_id, intent.index
        )
        if intent.kind is ItemKind.LIST:
            return await self.operations.reorder_list(intent.item_id, intent.index)
        if intent.source_id == intent.container_id:
            return await self.operations.reorder_card(intent.container_id, intent.item_id, intent.index)
        return await self.operations.move_card(intent.item_id, intent.source_id, intent.container_id, intent.index)

    def _reset(self) -> None:
        self.state = DragState.IDLE
        self.kind = None
        self.item_id = None
        self.source_id = None
        self.hover = None
