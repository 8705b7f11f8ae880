"""Reactive model tree."""

from propboard.model.node import REORDERED, ListNode, Node

__all__ = [
    "REORDERED",
    "ListNode",
    "Node",
]
