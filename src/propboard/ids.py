"""Document ID generation and path helpers."""

import secrets
import string

_ALPHABET = string.ascii_letters + string.digits
ID_LENGTH = 20

BOARDS = "boards"


def new_document_id(length: int = ID_LENGTH) -> str:
    """Generate a random document id in the style of a hosted document store.

    20 alphanumeric characters gives ~119 bits, enough that clients can
    allocate ids locally without coordinating.
    """
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def board_path() -> str:
    """Collection path holding board documents."""
    return BOARDS


def lists_path(board_id: str) -> str:
    """Collection path holding a board's lists."""
    return f"{BOARDS}/{board_id}/lists"


def cards_path(board_id: str, list_id: str) -> str:
    """Collection path holding one list's cards."""
    return f"{BOARDS}/{board_id}/lists/{list_id}/cards"


def document_path(collection: str, doc_id: str) -> str:
    """Join a collection path and a document id."""
    return f"{collection}/{doc_id}"


def split_document_path(path: str) -> tuple[str, str]:
    """Split 'a/b/c/d' into ('a/b/c', 'd')."""
    collection, _, doc_id = path.rpartition("/")
    if not collection or not doc_id:
        raise ValueError(f"Not a document path: {path!r}")
    return collection, doc_id


def is_document_path(path: str) -> bool:
    """Collections have an odd number of segments, documents an even one."""
    return len(path.strip("/").split("/")) % 2 == 0


def collection_group(path: str) -> str:
    """Last segment of a collection path, e.g. 'cards' for any list's cards."""
    return path.rstrip("/").rsplit("/", 1)[-1]
