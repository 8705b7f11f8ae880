"""Wire a BoardState to live store listeners for one board."""

from __future__ import annotations

import logging

from propboard.ids import board_path, cards_path, document_path, lists_path
from propboard.state import BoardState
from propboard.store.base import Document, DocumentStore, Unsubscribe

logger = logging.getLogger(__name__)


class BoardSession:
    """Keeps ``state`` in step with the store.

    Listens to the board document and its lists collection, and to one cards
    collection per list. Card listeners follow the lists: a new list gets one,
    a removed list has its listener dropped and its cards forgotten.
    """

    def __init__(self, store: DocumentStore, board_id: str, state: BoardState | None = None):
        self.store = store
        self.board_id = board_id
        self.state = state or BoardState(board_id)
        self._board_unsub: Unsubscribe | None = None
        self._lists_unsub: Unsubscribe | None = None
        self._card_unsubs: dict[str, Unsubscribe] = {}
        self.errors: list[Exception] = []

    @property
    def started(self) -> bool:
        return self._lists_unsub is not None

    def start(self) -> None:
        if self.started:
            return
        logger.info("opening board %s", self.board_id)
        self._board_unsub = self.store.listen_to_document(
            document_path(board_path(), self.board_id), self._on_board, self._on_error
        )
        self._lists_unsub = self.store.listen_to_collection(
            lists_path(self.board_id), self._on_lists, self._on_error
        )

    def stop(self) -> None:
        for unsubscribe in (self._board_unsub, self._lists_unsub, *self._card_unsubs.values()):
            if unsubscribe is not None:
                unsubscribe()
        self._board_unsub = None
        self._lists_unsub = None
        self._card_unsubs.clear()

    async def __aenter__(self) -> BoardSession:
        self.start()
        await self.store.idle()
        return self

    async def __aexit__(self, *exc) -> None:
        self.stop()

    def _on_board(self, doc: Document | None) -> None:
        self.state.apply_board(None if doc is None else doc.data)

    def _on_lists(self, docs: list[Document]) -> None:
        lists = {doc.id: doc.data for doc in docs}
        self.state.apply_lists(lists)
        for list_id in list(self._card_unsubs):
            if list_id not in lists:
                self._card_unsubs.pop(list_id)()
                self.state.forget_cards(list_id)
        for list_id in lists:
            if list_id not in self._card_unsubs:
                self._card_unsubs[list_id] = self.store.listen_to_collection(
                    cards_path(self.board_id, list_id),
                    lambda docs, list_id=list_id: self._on_cards(list_id, docs),
                    self._on_error,
                )

    def _on_cards(self, list_id: str, docs: list[Document]) -> None:
        if list_id not in self._card_unsubs:
            return
        self.state.apply_cards(list_id, {doc.id: doc.data for doc in docs})

    def _on_error(self, exc: Exception) -> None:
        logger.warning("listener error on board %s: %s", self.board_id, exc)
        self.errors.append(exc)
