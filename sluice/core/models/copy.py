from dataclasses import dataclass
from enum import StrEnum


class CopyState(StrEnum):
    """
    Lifecycle of a copy operation.

    flowing -> throttled when the sink reports it is full,
    throttled -> flowing on the sink's drain signal,
    flowing -> finished once the source ended and the sink flushed.
    Any state may move to failed; finished and failed are terminal.
    """
    flowing = "flowing"
    throttled = "throttled"
    finished = "finished"
    failed = "failed"

    @property
    def terminal(self) -> bool:
        return self in (CopyState.finished, CopyState.failed)


@dataclass
class CopyResult:
    """
    Summary of a successful copy.
    """
    chunks: int = 0
    """
    Number of chunks written to the sink.
    """

    size: int = 0
    """
    Sum of `len(chunk)` over every sized chunk written (bytes for byte chunks).
    """
