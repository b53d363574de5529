"""
Timeline assembly and the end-to-end reconstruction pipeline.

    from trace_timeline import reconstruct_timeline
    artifact = reconstruct_timeline(trace["traceEvents"])
    json.dump(artifact.to_json(), f)

The pipeline runs in two phases. Calibration (and the shared anchor) comes
first, then reconstruction. The calibration event may sit anywhere in the
stream, so no tick is converted before it is known.
"""
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from trace_timeline.callstack import CallStackReconstructor, ScopeCounterState
from trace_timeline.clock import ClockDomainCalibrator
from trace_timeline.config import DEFAULT_CONFIG, TraceConfig
from trace_timeline.errors import MalformedStackError
from trace_timeline.events import (
    EventStreamParser, InstrumentationRecord,
)
from trace_timeline.kernels import KernelIndexer
from trace_timeline.spans import Span, get_float, make_span


class TimelineArtifact(Mapping):
    """``{channel name: (root spans, ...)}`` for one trace.

    The channel mapping and the per-channel tuples cannot be changed. The
    spans inside are the reconstructor's own Span objects, not copies.
    """

    def __init__(self, channels: Mapping[str, Sequence[Span]],
                 anomalies: Sequence[MalformedStackError] = ()):
        self._channels = MappingProxyType(
            {name: tuple(spans) for name, spans in channels.items()})
        self.anomalies: Tuple[MalformedStackError, ...] = tuple(anomalies)

    def __getitem__(self, name: str) -> Tuple[Span, ...]:
        return self._channels[name]

    def __iter__(self):
        return iter(self._channels)

    def __len__(self) -> int:
        return len(self._channels)

    def __repr__(self) -> str:
        counts = ", ".join(f"{k}: {len(v)}" for k, v in self._channels.items())
        return f"TimelineArtifact({counts})"

    def to_json(self) -> Dict[str, List[Dict[str, Any]]]:
        return {name: [s.to_dict() for s in spans]
                for name, spans in self._channels.items()}


class TimelineAssembler:
    """Collects the finished channels into a TimelineArtifact."""

    def __init__(self, config: TraceConfig = DEFAULT_CONFIG):
        self.config = config

    def assemble(self, cpu_roots: Sequence[Span], gpu_spans: Sequence[Span],
                 chrome_spans: Sequence[Span],
                 anomalies: Sequence[MalformedStackError] = ()
                 ) -> TimelineArtifact:
        cfg = self.config
        return TimelineArtifact({
            cfg.cpu_channel: cpu_roots,
            cfg.gpu_channel: gpu_spans,
            cfg.chrome_channel: chrome_spans,
        }, anomalies)


def instrumentation_span(record: InstrumentationRecord,
                         clock: ClockDomainCalibrator,
                         config: TraceConfig = DEFAULT_CONFIG) -> Span:
    start = clock.cpu_ticks_to_ms(record.timestamp)
    duration = get_float(record.duration_us / 1000, config.precision)
    return make_span(record.span_name, start, duration, config.epsilon)


def reconstruct_timeline(events: Iterable,
                         config: TraceConfig = DEFAULT_CONFIG
                         ) -> TimelineArtifact:
    """Rebuild the CPU/GPU/instrumentation timeline of one trace.

    ``events`` are Chrome trace event dicts (or RawEvents). Raises
    MissingCalibrationError if the trace has no clock calibration record.
    """
    records = EventStreamParser(config).decode_all(events)

    # Phase 1: clocks.
    clock = ClockDomainCalibrator.from_records(records, config)
    clock.anchor_on_first_root(records)

    # Phase 2: reconstruction. The CPU pass must finish before GPU indexing,
    # which consumes the dispatch counts it produces. Spans still open at the
    # end are dropped, closed children included.
    state = ScopeCounterState()
    cpu = CallStackReconstructor(clock, state, config)
    cpu_roots = cpu.run(records)
    chrome_spans = [instrumentation_span(r, clock, config) for r in records
                    if isinstance(r, InstrumentationRecord)]

    gpu_spans = KernelIndexer(clock, state.kernel_groups, config).index(records)

    return TimelineAssembler(config).assemble(
        cpu_roots, gpu_spans, chrome_spans, cpu.anomalies)
