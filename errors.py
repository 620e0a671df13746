class TraceError(Exception):
    """Base class for errors raised by the traceability core."""


class BatchNotFound(TraceError):
    def __init__(self, identifier):
        self.identifier = identifier
        super().__init__(f"batch not found: {identifier}")
