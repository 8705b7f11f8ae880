"""Mixin that ties Node watches to a widget's lifetime."""

from __future__ import annotations

from typing import Any, Callable

from propboard.model.node import Callback, ListNode, Node


class NodeWatcherMixin:
    """Mixin for widgets that watch Node keys.

    Subclasses should:
    - Call ``_init_watcher()`` in ``__init__``
    - Use ``self.node_watch(node, key, callback)`` instead of ``node.watch(...)``
    - Skip writing ``on_unmount``; the mixin unwatches everything there

    Callbacks are dropped silently once the widget has left the DOM, since
    a rebuild can fire watchers on nodes whose widget is already being removed.
    """

    def _init_watcher(self) -> None:
        self._unwatchers: list[Callable[[], None]] = []

    def node_watch(self, node: Node | ListNode, key: str, callback: Callback) -> None:
        def guarded(source_node: Any, key: str, old: Any, new: Any) -> None:
            if self.is_attached:
                callback(source_node, key, old, new)

        self._unwatchers.append(node.watch(key, guarded))

    def on_unmount(self) -> None:
        for unwatch in self._unwatchers:
            unwatch()
        self._unwatchers.clear()
