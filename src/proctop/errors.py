"""Failure taxonomy for the sampling engine."""


class SamplingError(Exception):
    """Base class for errors raised while sampling the process table."""


class EnumerationError(SamplingError):
    """The process list itself could not be obtained.

    This is a pass-level failure: the whole refresh cycle is abandoned and the
    previous snapshot stays published.
    """


class ProcessVanished(SamplingError):
    """The process exited between enumeration and the counter read."""

    def __init__(self, pid: int) -> None:
        """Initialize ProcessVanished."""
        super().__init__(f"process {pid} vanished")
        self.pid = pid


class MalformedRecord(SamplingError):
    """The counter record exists but cannot be parsed into a sample."""

    def __init__(self, pid: int, reason: str) -> None:
        """Initialize MalformedRecord."""
        super().__init__(f"process {pid}: {reason}")
        self.pid = pid
        self.reason = reason
