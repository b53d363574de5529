"""Browser trace -> CPU/GPU timeline reconstruction.

Re-exports the most commonly used pieces so callers can do:
    from trace_timeline import reconstruct_timeline, parse_trace
"""
from trace_timeline.assembler import (
    TimelineArtifact, TimelineAssembler, reconstruct_timeline,
)
from trace_timeline.callstack import CallStackReconstructor, ScopeCounterState
from trace_timeline.clock import CalibrationParameters, ClockDomainCalibrator
from trace_timeline.config import DEFAULT_CONFIG, EPSILON, TraceConfig
from trace_timeline.errors import (
    MalformedStackError, MissingCalibrationError, TraceError, TraceFileError,
)
from trace_timeline.events import EventStreamParser, RawEvent
from trace_timeline.kernels import KernelIndexer
from trace_timeline.spans import Span
from trace_timeline.trace import parse_run_dir, parse_trace
