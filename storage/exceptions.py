class StorageError(Exception):
    """A read or write against the parcel store failed."""


class NotFoundError(StorageError):
    """The requested parcel or comment id does not exist."""

    def __init__(self, kind: str, record_id):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} not found")
