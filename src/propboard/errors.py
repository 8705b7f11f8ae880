"""Exception hierarchy for store and engine failures."""


class StoreError(Exception):
    """Base class for failures reported by a document store."""


class TransientStoreError(StoreError):
    """The backend could not be reached or refused the write. Safe to retry."""


class DocumentNotFoundError(StoreError):
    """An update targeted a document that does not exist."""

    def __init__(self, path: str, doc_id: str):
        super().__init__(f"Document {path}/{doc_id} does not exist")
        self.path = path
        self.doc_id = doc_id


class BatchTooLargeError(StoreError):
    """A batch exceeded the store's maximum operation count. Nothing was written."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Batch of {size} operations exceeds limit of {limit}")
        self.size = size
        self.limit = limit


class CascadeError(StoreError):
    """A cascade delete stopped part way through.

    ``committed`` batches were written before ``cause`` was raised by the
    next one. Repeating the cascade finishes the job.
    """

    def __init__(self, target: str, committed: int, total: int, cause: Exception):
        super().__init__(f"Deleting {target} failed after {committed} of {total} batches: {cause}")
        self.target = target
        self.committed = committed
        self.total = total
        self.cause = cause
