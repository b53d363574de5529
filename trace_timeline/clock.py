"""
CPU/GPU clock calibration.

Dawn's D3D12 backend records one calibration sample per trace: the CPU and GPU
tick counters captured together, plus both counter frequencies. CPU ``ts``
values in the Chrome trace are microseconds; GPU ticks come straight from the
timestamp queries. Both are mapped to milliseconds and re-zeroed on a shared
anchor (the first root CPU span) so the two domains line up at ~0.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional

from trace_timeline.config import DEFAULT_CONFIG, CalibrationLabels, TraceConfig
from trace_timeline.errors import MissingCalibrationError
from trace_timeline.events import CalibrationRecord, CpuMarker, MarkerKind
from trace_timeline.spans import get_float

# Positions used when the payload fields carry no recognizable labels.
_POSITIONAL_FIELDS = {"cpu_base": 2, "gpu_base": 3,
                      "cpu_frequency": 4, "gpu_frequency": 5}


@dataclass(frozen=True)
class CalibrationParameters:
    cpu_base_ticks: float
    cpu_frequency_hz: float
    gpu_base_ticks: float
    gpu_frequency_hz: float

    @classmethod
    def parse(cls, timing: str,
              labels: CalibrationLabels = CalibrationLabels()
              ) -> "CalibrationParameters":
        """Parse the ``Timing`` payload, e.g. ``"..., CPU Timestamp: 123, ..."``.

        Fields are found by label prefix; when no label matches, the
        positional layout (fields 2-5) is used instead.
        """
        fields: List[tuple] = []
        for raw in timing.split(","):
            label, _, value = raw.partition(":")
            fields.append((label.strip().lower(), value.strip()))

        wanted = {
            "cpu_base": labels.cpu_base,
            "gpu_base": labels.gpu_base,
            "cpu_frequency": labels.cpu_frequency,
            "gpu_frequency": labels.gpu_frequency,
        }
        values = {}
        for key, prefix in wanted.items():
            prefix = prefix.lower()
            for label, value in fields:
                if label.startswith(prefix):
                    values[key] = value
                    break

        if not values:
            for key, index in _POSITIONAL_FIELDS.items():
                if index < len(fields):
                    values[key] = fields[index][1]

        missing = [k for k in wanted if not values.get(k)]
        if missing:
            raise MissingCalibrationError(
                f"Calibration payload lacks {', '.join(missing)}: {timing!r}")
        try:
            params = cls(
                cpu_base_ticks=float(values["cpu_base"]),
                cpu_frequency_hz=float(values["cpu_frequency"]),
                gpu_base_ticks=float(values["gpu_base"]),
                gpu_frequency_hz=float(values["gpu_frequency"]),
            )
        except ValueError as e:
            raise MissingCalibrationError(
                f"Non-numeric calibration value in {timing!r}") from e
        if params.cpu_frequency_hz <= 0 or params.gpu_frequency_hz <= 0:
            raise MissingCalibrationError(
                f"Calibration frequencies must be positive: {timing!r}")
        return params


class ClockDomainCalibrator:
    """Converts CPU and GPU ticks onto one millisecond axis."""

    def __init__(self, params: CalibrationParameters, precision: int = 2):
        self.params = params
        self.precision = precision
        self._base_time = 0.0
        self._anchored = False

    @classmethod
    def from_records(cls, records: Iterable,
                     config: TraceConfig = DEFAULT_CONFIG
                     ) -> "ClockDomainCalibrator":
        """Build from the first CalibrationRecord; later ones are ignored."""
        for record in records:
            if isinstance(record, CalibrationRecord):
                params = CalibrationParameters.parse(
                    record.timing, config.calibration_labels)
                return cls(params, precision=config.precision)
        raise MissingCalibrationError(
            f"No '{config.calibration_event}' event in trace")

    @property
    def base_time(self) -> float:
        return self._base_time

    @property
    def anchored(self) -> bool:
        return self._anchored

    def anchor(self, cpu_tick) -> float:
        """Latch the shared zero point at ``cpu_tick``. Only the first call counts."""
        if not self._anchored:
            self._base_time = self.cpu_ticks_to_ms(cpu_tick)
            self._anchored = True
        return self._base_time

    def anchor_on_first_root(self, records: Iterable) -> Optional[float]:
        """Anchor on the first FUNC_BEGIN, which always opens a root span."""
        for record in records:
            if isinstance(record, CpuMarker) and record.kind is MarkerKind.BEGIN:
                return self.anchor(record.timestamp)
        return None

    def cpu_ticks_to_ms(self, tick) -> float:
        p = self.params
        ms = (float(tick) - p.cpu_base_ticks * 1e6 / p.cpu_frequency_hz) / 1000
        return get_float(ms - self._base_time, self.precision)

    def gpu_ticks_to_ms(self, tick) -> float:
        p = self.params
        ms = (float(tick) - p.gpu_base_ticks) * 1000 / p.gpu_frequency_hz
        return get_float(ms - self._base_time, self.precision)
