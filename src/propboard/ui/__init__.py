"""Textual UI for propboard."""

from propboard.ui.app import PropboardApp
from propboard.ui.board import BoardScreen

__all__ = [
    "BoardScreen",
    "PropboardApp",
]
