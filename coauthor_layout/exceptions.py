"""Error taxonomy for the coauthor layout engine."""

from typing import Optional


class LayoutError(Exception):
    """Base class for every error raised by the layout engine."""


class LayoutInputError(LayoutError, ValueError):
    """Input rejected before simulation (duplicate ids, bad viewport, bad weight)."""


class LayoutComputationError(LayoutError):
    """A layout computation failed on the calling thread or in the worker."""

    def __init__(self, message: str, request_id: Optional[int] = None):
        super().__init__(message)
        self.request_id = request_id


class LayoutTimeoutError(LayoutError, TimeoutError):
    """The worker did not answer within the host's time bound."""

    def __init__(self, timeout_seconds: float, request_id: Optional[int] = None):
        super().__init__(f"Layout computation timed out after {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds
        self.request_id = request_id


class WorkerUnavailableError(LayoutError):
    """A background worker could not be constructed or started."""
