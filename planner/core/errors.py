"""
Exceptions shared by the record stores.
"""


class RecordNotFoundError(LookupError):
    """An id did not match any row of the given kind."""

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} not found: {record_id}")
        self.kind = kind
        self.record_id = record_id
