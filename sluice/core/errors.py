class SluiceError(Exception):
    """Base class for every error raised by sluice."""


class ClosedQueueError(SluiceError):
    """
    Raised when a value is enqueued on a queue that has been closed.

    This is a programming error in the producer: once a queue is closed, no
    value may be added, and silently dropping it would break the delivery
    guarantee of the queue.
    """


class CopyError(SluiceError):
    """Base class for failures of a copy operation."""


class SourceError(CopyError):
    """The source reported a failure (e.g. a read error)."""


class SinkError(CopyError):
    """The sink reported a failure (e.g. a write error or a disconnect)."""


class CopyAbortedError(CopyError):
    """The copy was aborted before the source was exhausted."""
