"""
GPU kernel spans and their ``::<inference>::<kernel>`` indices.

GPU markers carry only a kernel name and two ticks, nothing that says which
inference or dispatch issued them. The dispatch counts the CPU pass left in
``ScopeCounterState.kernel_groups`` are replayed here to recover the same
scope boundaries, so the Nth kernel of scope M gets the suffix of the Nth
``WebGpuBackend.run`` call of scope M.
"""
from collections import deque
from typing import Iterable, List, Sequence

from trace_timeline.clock import ClockDomainCalibrator
from trace_timeline.config import DEFAULT_CONFIG, TraceConfig
from trace_timeline.events import GpuKernelRecord
from trace_timeline.spans import Span, get_float, make_span


class KernelIndexer:
    """Turns GpuKernelRecords into indexed, flat GPU spans."""

    def __init__(self, clock: ClockDomainCalibrator,
                 kernel_groups: Sequence[int],
                 config: TraceConfig = DEFAULT_CONFIG):
        self.clock = clock
        self.kernel_groups = tuple(kernel_groups)
        self.config = config

    def assign_indices(self, count: int) -> List[tuple]:
        """(inference_index, kernel_index) for ``count`` consecutive kernels."""
        groups = deque(self.kernel_groups)
        inference_index = 0
        kernel_index = -1
        indices = []
        for _ in range(count):
            while groups and kernel_index == groups[0]:
                groups.popleft()
                kernel_index = -1
                inference_index += 1
            kernel_index += 1
            indices.append((inference_index, kernel_index))
        return indices

    def index(self, records: Iterable) -> List[Span]:
        kernels = [r for r in records if isinstance(r, GpuKernelRecord)]
        spans = []
        indices = self.assign_indices(len(kernels))
        for record, (inference_index, kernel_index) in zip(kernels, indices):
            start = self.clock.gpu_ticks_to_ms(record.start_tick)
            end = self.clock.gpu_ticks_to_ms(record.end_tick)
            name = f"{record.kernel}::{inference_index}::{kernel_index}"
            spans.append(make_span(
                name, start, get_float(end - start, self.config.precision),
                self.config.epsilon))
        return spans
