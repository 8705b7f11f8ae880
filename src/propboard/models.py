"""Document shapes for boards, lists and cards."""

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any

UNTITLED_LIST = "Untitled List"
UNTITLED_CARD = "Untitled Card"


class CardStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    DONE = "done"


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def _split(cls, data: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split raw document data into dataclass fields and everything else."""
    names = {f.name for f in fields(cls)} - {"id", "extra"}
    known = {k: v for k, v in data.items() if k in names}
    extra = {k: v for k, v in data.items() if k not in names and k not in ("id", "extra")}
    return known, extra


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class Board:
    """A board document. ``listIds`` is the authoritative list order."""

    id: str
    title: str = "Board"
    listIds: list[str] | None = None
    ownerId: str | None = None
    createdAt: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "Board":
        known, extra = _split(cls, data)
        if "title" not in known and isinstance(extra.get("name"), str):
            known["title"] = extra.pop("name")
        list_ids = known.get("listIds")
        if list_ids is not None:
            known["listIds"] = [str(i) for i in list_ids if isinstance(i, str)]
        return cls(id=doc_id, **known, extra=extra)

    def to_document(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("id")
        extra = data.pop("extra")
        return {**extra, **_drop_none(data)}


@dataclass
class TaskList:
    """A list (column) document."""

    id: str
    name: str = UNTITLED_LIST
    order: float | None = None
    cardIds: list[str] | None = None
    createdAt: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "TaskList":
        known, extra = _split(cls, data)
        # the web client stored the list name as "title"
        if "name" not in known and isinstance(extra.get("title"), str):
            known["name"] = extra.pop("title")
        return cls(id=doc_id, **known, extra=extra)

    def to_document(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("id")
        extra = data.pop("extra")
        return {**extra, **_drop_none(data)}


@dataclass
class Card:
    """A card document. Fields the engine doesn't know about ride along in ``extra``."""

    id: str
    title: str = UNTITLED_CARD
    description: str = ""
    order: float | None = None
    listId: str | None = None
    boardId: str | None = None
    dueDate: str | None = None
    imageUrl: str | None = None
    images: list[Any] | None = None
    attachments: list[Any] | None = None
    labels: list[Any] | None = None
    assignedTo: list[str] | None = None
    checklist: list[Any] | None = None
    comments: list[Any] | None = None
    activityLog: list[Any] | None = None
    completed: bool = False
    status: CardStatus | None = None
    createdAt: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.status is None:
            self.status = CardStatus.DONE if self.completed else CardStatus.NOT_STARTED
        else:
            self.status = CardStatus(self.status)

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "Card":
        known, extra = _split(cls, data)
        if not known.get("title"):
            if isinstance(extra.get("name"), str) and extra["name"]:
                known["title"] = extra.pop("name")
            else:
                known.pop("title", None)
        if known.get("status") not in {s.value for s in CardStatus}:
            known.pop("status", None)
        known["completed"] = bool(known.get("completed", False))
        return cls(id=doc_id, **known, extra=extra)

    def to_document(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("id")
        extra = data.pop("extra")
        data["status"] = self.status.value
        return {**extra, **_drop_none(data)}


def normalize_board(doc_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Fill defaults on incoming board data."""
    return Board.from_document(doc_id, data).to_document()


def normalize_list(doc_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Fill defaults on incoming list data."""
    return TaskList.from_document(doc_id, data).to_document()


def normalize_card(doc_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Fill defaults on incoming card data."""
    return Card.from_document(doc_id, data).to_document()


def activity_entry(action: str, **details: Any) -> dict[str, Any]:
    """Build one activity-log entry."""
    entry = {"action": action, "at": now_iso()}
    if details:
        entry["details"] = details
    return entry
