"""Exceptions raised (or recorded) while turning a trace into a timeline."""


class TraceError(Exception):
    """Base class for per-trace failures."""


class MissingCalibrationError(TraceError):
    """No usable clock calibration record in the trace.

    Without it no tick can be placed on the timeline, so the trace is
    abandoned rather than emitted with meaningless timestamps.
    """


class MalformedStackError(TraceError):
    """A FUNC_END with no open span, or a FUNC_BEGIN that never closed.

    Never raised by the reconstructor: instances are collected on
    ``CallStackReconstructor.anomalies`` and the trace carries on.
    """

    def __init__(self, message: str, function: str = "", timestamp=None):
        super().__init__(message)
        self.function = function
        self.timestamp = timestamp


class TraceFileError(TraceError):
    """A trace file or results manifest could not be read or understood."""
