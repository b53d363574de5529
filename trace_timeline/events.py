"""
Decoding of raw Chrome trace events.

The trace is a flat list of dicts from many unrelated categories. Each one is
decoded exactly once into one of the typed records below, or dropped:

  - CalibrationRecord: Dawn's detailed command-list timing (clock calibration)
  - CpuMarker: ``TimeStamp`` with ``CPU::ORT::FUNC_BEGIN|FUNC_END::<name>``
  - GpuKernelRecord: ``TimeStamp`` with ``GPU::ORT::<kernel>::<begin>::<end>``
  - InstrumentationRecord: an allow-listed Dawn/Chrome event with a duration

Everything else is skipped on purpose; a browser trace is mostly noise.
"""
import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from trace_timeline.config import DEFAULT_CONFIG, TraceConfig


@dataclass(frozen=True)
class RawEvent:
    """One trace event as captured. Never mutated."""
    name: str
    timestamp: Optional[float] = None
    duration: Optional[float] = None
    args: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, event: Dict[str, Any]) -> "RawEvent":
        return cls(
            name=event.get("name", ""),
            timestamp=event.get("ts"),
            duration=event.get("dur"),
            args=event.get("args") or {},
        )

    @property
    def message(self) -> Optional[str]:
        """The user message of a ``TimeStamp`` event, if any."""
        data = self.args.get("data")
        if isinstance(data, dict):
            message = data.get("message")
            if isinstance(message, str):
                return message
        return None


class MarkerKind(enum.Enum):
    BEGIN = "begin"
    END = "end"


@dataclass(frozen=True)
class CalibrationRecord:
    timing: str


@dataclass(frozen=True)
class CpuMarker:
    kind: MarkerKind
    function: str
    timestamp: float


@dataclass(frozen=True)
class GpuKernelRecord:
    kernel: str
    start_tick: float
    end_tick: float


@dataclass(frozen=True)
class InstrumentationRecord:
    name: str
    label: str
    timestamp: float
    duration_us: float

    @property
    def span_name(self) -> str:
        return f"{self.label}::{self.name}" if self.label else self.name


DecodedEvent = Union[CalibrationRecord, CpuMarker, GpuKernelRecord,
                     InstrumentationRecord]


def _parse_tick(value: str) -> float:
    value = value.strip()
    try:
        return int(value)
    except ValueError:
        return float(value)


class EventStreamParser:
    """Classifies raw events into typed records in a single pass."""

    def __init__(self, config: TraceConfig = DEFAULT_CONFIG):
        self.config = config
        self._cpu_begin = f"{config.cpu_sentinel}::{config.begin_tag}::"
        self._cpu_end = f"{config.cpu_sentinel}::{config.end_tag}::"
        self._gpu_prefix = f"{config.gpu_sentinel}::"
        self._instrumentation = frozenset(config.instrumentation_events)
        self.skipped = 0

    def decode(self, event: RawEvent) -> Optional[DecodedEvent]:
        """Decode one event, or return None if it is not ours."""
        cfg = self.config
        if event.name == cfg.calibration_event:
            timing = event.args.get("Timing")
            if isinstance(timing, str):
                return CalibrationRecord(timing=timing)
            return None

        if event.name == cfg.timestamp_event:
            message = event.message
            if message is None or event.timestamp is None:
                return None
            if message.startswith(cfg.cpu_sentinel):
                return self._decode_cpu(message, event.timestamp)
            if message.startswith(cfg.gpu_sentinel):
                return self._decode_gpu(message)
            return None

        if event.name in self._instrumentation and event.timestamp is not None:
            return InstrumentationRecord(
                name=event.name,
                label=event.args.get("label") or "",
                timestamp=event.timestamp,
                duration_us=event.duration or 0,
            )
        return None

    def _decode_cpu(self, message: str, timestamp) -> Optional[CpuMarker]:
        if message.startswith(self._cpu_begin):
            return CpuMarker(MarkerKind.BEGIN,
                             message[len(self._cpu_begin):], timestamp)
        if message.startswith(self._cpu_end):
            return CpuMarker(MarkerKind.END,
                             message[len(self._cpu_end):], timestamp)
        return None

    def _decode_gpu(self, message: str) -> Optional[GpuKernelRecord]:
        if not message.startswith(self._gpu_prefix):
            return None
        parts = message[len(self._gpu_prefix):].rsplit("::", 2)
        if len(parts) != 3:
            print(f"[Trace] Skipping malformed GPU marker: {message!r}")
            return None
        kernel, begin, end = parts
        try:
            return GpuKernelRecord(kernel, _parse_tick(begin), _parse_tick(end))
        except ValueError:
            print(f"[Trace] Skipping GPU marker with bad ticks: {message!r}")
            return None

    def decode_all(self, events: Iterable[Union[RawEvent, Dict[str, Any]]]
                   ) -> List[DecodedEvent]:
        """Decode a whole trace, keeping input order and dropping the rest."""
        decoded = []
        self.skipped = 0
        for event in events:
            if not isinstance(event, RawEvent):
                event = RawEvent.from_dict(event)
            record = self.decode(event)
            if record is None:
                self.skipped += 1
            else:
                decoded.append(record)
        return decoded
