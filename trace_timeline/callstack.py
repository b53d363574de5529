"""
CPU call-tree reconstruction from FUNC_BEGIN/FUNC_END markers.

ORT Web brackets instrumented functions with ``console.timeStamp`` markers.
They arrive as a flat stream; an explicit stack turns them back into a tree.
While doing so we count inference scopes and backend dispatches, which is the
only way the GPU side can later tell which scope a kernel belongs to.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from trace_timeline.clock import ClockDomainCalibrator
from trace_timeline.config import DEFAULT_CONFIG, TraceConfig
from trace_timeline.errors import MalformedStackError
from trace_timeline.events import CpuMarker, MarkerKind
from trace_timeline.spans import Span, get_float


@dataclass
class ScopeCounterState:
    """Per-trace scope/dispatch counters shared by the CPU and GPU passes.

    ``kernel_groups`` holds, for every inference scope seen so far, the
    ordinal of its last dispatch (-1 when it had none).
    """
    current_inference_index: int = -1
    current_dispatch_index: int = -1
    kernel_groups: List[int] = field(default_factory=list)

    def begin_inference(self):
        self.current_inference_index += 1
        self.current_dispatch_index = -1
        self.kernel_groups.append(-1)

    def begin_dispatch(self) -> bool:
        """Count a dispatch; returns False if no inference scope is open."""
        self.current_dispatch_index += 1
        if not self.kernel_groups:
            return False
        self.kernel_groups[-1] += 1
        return True

    @property
    def suffix(self) -> str:
        return f"::{self.current_inference_index}::{self.current_dispatch_index}"


class CallStackReconstructor:
    """Stack machine building the CPU channel's root spans."""

    def __init__(self, clock: ClockDomainCalibrator,
                 state: Optional[ScopeCounterState] = None,
                 config: TraceConfig = DEFAULT_CONFIG):
        self.clock = clock
        self.state = state if state is not None else ScopeCounterState()
        self.config = config
        self.stack: List[Span] = []
        self.roots: List[Span] = []
        self.anomalies: List[MalformedStackError] = []

    @property
    def depth(self) -> int:
        return len(self.stack)

    def feed(self, marker: CpuMarker):
        now = self.clock.cpu_ticks_to_ms(marker.timestamp)
        if marker.kind is MarkerKind.BEGIN:
            self.begin(marker.function, now, marker.timestamp)
        else:
            self.end(marker.function, now, marker.timestamp)

    def begin(self, function: str, now: float, tick=None):
        cfg = self.config
        name = function
        if function.startswith(cfg.inference_pattern):
            self.state.begin_inference()
        elif function.startswith(cfg.dispatch_pattern):
            if not self.state.begin_dispatch():
                self._flag(f"Dispatch '{function}' outside any inference scope",
                           function, tick)
            name += self.state.suffix
        elif function.startswith(cfg.correlated_patterns):
            name += self.state.suffix

        span = Span(name=name, start=now, duration=cfg.epsilon)
        if self.stack:
            self.stack[-1].add_child(span)
        self.stack.append(span)

    def end(self, function: str, now: float, tick=None):
        if not self.stack:
            self._flag(f"FUNC_END '{function}' with no open span", function, tick)
            return
        span = self.stack.pop()
        span.finalize(get_float(now - span.start, self.config.precision),
                      self.config.epsilon)
        if not self.stack:
            self.roots.append(span)

    def run(self, markers) -> List[Span]:
        """Feed every CpuMarker in ``markers`` and return the committed roots."""
        for marker in markers:
            if isinstance(marker, CpuMarker):
                self.feed(marker)
        self.finish()
        return self.roots

    def finish(self):
        """Flag spans left open at end of stream. They stay uncommitted."""
        for span in self.stack:
            self._flag(f"FUNC_BEGIN '{span.name}' never ended", span.name)
        return self.stack

    def _flag(self, message: str, function: str = "", tick=None):
        print(f"[Trace] {message}")
        self.anomalies.append(MalformedStackError(message, function, tick))
