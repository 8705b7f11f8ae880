"""Observable tree used as the rendered board state.

A ``Node`` is an attribute bag, a ``ListNode`` an ordered id-keyed
collection. Writes that change a value fire watchers registered on that key,
then the same event bubbles up through every ancestor (watchers on an
ancestor are keyed by the child's key in that ancestor). ``update`` merges a
freshly built tree into an existing one in place, so widgets watching the
old nodes keep receiving events.
"""

from __future__ import annotations

from typing import Any, Callable

Callback = Callable[["Node | ListNode", str, Any, Any], None]

REORDERED = "*"


def _adopt(value: Any, parent: Node | ListNode, key: str) -> Any:
    """Wrap plain dicts as Nodes and point existing nodes at their new parent."""
    if isinstance(value, dict):
        return Node(_parent=parent, _key=key, **value)
    if isinstance(value, (Node, ListNode)):
        object.__setattr__(value, "_parent", parent)
        object.__setattr__(value, "_key", key)
    return value


def _emit(node: Node | ListNode, key: str, old: Any, new: Any) -> None:
    for cb in list(node._watchers.get(key, ())):
        cb(node, key, old, new)
    child = node
    while child._parent is not None:
        parent = child._parent
        for cb in list(parent._watchers.get(child._key, ())):
            cb(node, key, old, new)
        child = parent


def _plain(value: Any) -> Any:
    if isinstance(value, (Node, ListNode)):
        return value.to_dict()
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


class _Watchable:
    """Watch registration and path lookup shared by both node kinds."""

    def watch(self, key: str, callback: Callback) -> Callable[[], None]:
        """Call callback(node, key, old, new) when key changes. Returns an unwatch callable."""
        key = str(key)
        self._watchers.setdefault(key, []).append(callback)

        def unwatch() -> None:
            callbacks = self._watchers.get(key, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unwatch

    @property
    def path(self) -> str:
        """Dotted path from the root to this node."""
        parts: list[str] = []
        current: Node | ListNode | None = self
        while current is not None and current._key is not None:
            parts.append(current._key)
            current = current._parent
        return ".".join(reversed(parts))


class Node(_Watchable):
    """Attribute-access tree node. Assigning None removes the key."""

    def __init__(self, _parent: Node | ListNode | None = None, _key: str | None = None, **data: Any) -> None:
        object.__setattr__(self, "_children", {})
        object.__setattr__(self, "_watchers", {})
        object.__setattr__(self, "_parent", None)
        object.__setattr__(self, "_key", _key)
        object.__setattr__(self, "_version", 0)
        for k, v in data.items():
            self.set(k, v)
        object.__setattr__(self, "_parent", _parent)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return self._children.get(name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
            return
        self.set(name, value)

    def get(self, key: str, default: Any = None) -> Any:
        """Dict-style read, for keys that aren't valid identifiers."""
        return self._children.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Dict-style write; None deletes."""
        old = self._children.get(key)
        if value is None:
            self._children.pop(key, None)
        else:
            value = _adopt(value, parent=self, key=key)
            self._children[key] = value
        if old != value:
            self._version += 1
            _emit(self, key, old, value)

    def __contains__(self, key: str) -> bool:
        return key in self._children

    def keys(self):
        return self._children.keys()

    def items(self):
        return self._children.items()

    def values(self):
        return self._children.values()

    def to_dict(self) -> dict[str, Any]:
        """Plain-data copy of this subtree."""
        return {k: _plain(v) for k, v in self._children.items()}

    def update(self, other: Node) -> None:
        """Make this node match other in place, keeping watchers on child nodes."""
        for key in set(self.keys()) - set(other.keys()):
            self.set(key, None)
        for key, new_value in list(other.items()):
            old_value = self._children.get(key)
            if isinstance(old_value, Node) and isinstance(new_value, Node):
                old_value.update(new_value)
            elif isinstance(old_value, ListNode) and isinstance(new_value, ListNode):
                old_value.update(new_value)
            elif old_value != new_value:
                self.set(key, new_value)

    def __repr__(self) -> str:
        p = self.path
        label = f"Node({p})" if p else "Node"
        return f"<{label} [{', '.join(self._children)}]>"


class ListNode(_Watchable):
    """Ordered collection keyed by string id. Assigning None removes the item.

    Watchers keyed by an item id fire when that item is added, replaced or
    removed. A change of order alone fires watchers on ``"*"`` with the old
    and new key lists.
    """

    def __init__(self, _parent: Node | None = None, _key: str | None = None) -> None:
        object.__setattr__(self, "_by_id", {})
        object.__setattr__(self, "_watchers", {})
        object.__setattr__(self, "_parent", _parent)
        object.__setattr__(self, "_key", _key)
        object.__setattr__(self, "_version", 0)

    @classmethod
    def from_items(cls, items) -> ListNode:
        """Build a ListNode from (id, value) pairs, keeping their order."""
        node = cls()
        for key, value in items:
            node[key] = value
        return node

    def __getitem__(self, key: str) -> Any:
        return self._by_id.get(str(key))

    def __setitem__(self, key: str, value: Any) -> None:
        key = str(key)
        old = self._by_id.get(key)
        if value is None:
            if key not in self._by_id:
                return
            del self._by_id[key]
        else:
            value = _adopt(value, parent=self, key=key)
            # dict assignment keeps the position of an existing key
            self._by_id[key] = value
            if old == value:
                return
        self._version += 1
        _emit(self, key, old, value)

    def __iter__(self):
        return iter(list(self._by_id.values()))

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, key: str) -> bool:
        return str(key) in self._by_id

    def keys(self) -> list[str]:
        return list(self._by_id.keys())

    def items(self) -> list[tuple[str, Any]]:
        return list(self._by_id.items())

    def index(self, key: str) -> int:
        """Position of key, or -1 when absent."""
        for i, k in enumerate(self._by_id):
            if k == key:
                return i
        return -1

    def to_dict(self) -> dict[str, Any]:
        return {k: _plain(v) for k, v in self._by_id.items()}

    def update(self, other: ListNode) -> None:
        """Make this collection match other in place: removals, changes, additions, then order."""
        for key in set(self._by_id) - set(other._by_id):
            self[key] = None
        for key, new_value in other.items():
            old_value = self._by_id.get(key)
            if old_value is None:
                self[key] = new_value
            elif isinstance(old_value, Node) and isinstance(new_value, Node):
                old_value.update(new_value)
            elif isinstance(old_value, ListNode) and isinstance(new_value, ListNode):
                old_value.update(new_value)
            elif old_value != new_value:
                self[key] = new_value
        old_keys = self.keys()
        new_keys = other.keys()
        if old_keys != new_keys:
            object.__setattr__(self, "_by_id", {k: self._by_id[k] for k in new_keys})
            self._version += 1
            _emit(self, REORDERED, old_keys, new_keys)

    def __repr__(self) -> str:
        p = self.path
        label = f"ListNode({p})" if p else "ListNode"
        return f"<{label} [{', '.join(self._by_id)}]>"
