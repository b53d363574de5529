"""
Shared builders for synthetic Chrome trace events.

The calibration used by default is cpu_base=1000, cpu_freq=1000,
gpu_base=2000, gpu_freq=2000, so a CPU ``ts`` of t maps to
(t - 1e6) / 1000 ms and a GPU tick of g maps to (g - 2000) / 2 ms
before re-zeroing.
"""
import pytest

from trace_timeline.config import CALIBRATION_EVENT


def calibration(cpu_base=1000, cpu_freq=1000, gpu_base=2000, gpu_freq=2000,
                ts=0):
    timing = (f"UTC Time: 2024/1/1 10:00:00.000, File Time: 133485984000000000, "
              f"CPU Timestamp: {cpu_base}, GPU Timestamp: {gpu_base}, "
              f"CPU Tick Frequency: {cpu_freq}, GPU Tick Frequency: {gpu_freq}")
    return {"name": CALIBRATION_EVENT, "ts": ts, "args": {"Timing": timing}}


def timestamp(message, ts=0):
    return {"name": "TimeStamp", "ts": ts, "args": {"data": {"message": message}}}


def begin(func, ts):
    return timestamp(f"CPU::ORT::FUNC_BEGIN::{func}", ts)


def end(func, ts):
    return timestamp(f"CPU::ORT::FUNC_END::{func}", ts)


def kernel(name, start_tick, end_tick, ts=0):
    return timestamp(f"GPU::ORT::{name}::{start_tick}::{end_tick}", ts)


def instrumentation(name, ts, dur, label=None):
    args = {"label": label} if label else {}
    return {"name": name, "ts": ts, "dur": dur, "args": args}


def inference(ts, n_dispatch, step=10):
    """Events for one _InferenceSession.run with ``n_dispatch`` backend runs."""
    events = [begin("_InferenceSession.run", ts)]
    t = ts
    for i in range(n_dispatch):
        events.append(begin(f"WebGpuBackend.run op{i}", t + 1))
        events.append(end(f"WebGpuBackend.run op{i}", t + 2))
        t += step
    events.append(end("_InferenceSession.run", t + 5))
    return events


@pytest.fixture
def example_events():
    return [
        calibration(),
        begin("_InferenceSession.run", 2000),
        begin("WebGpuBackend.run A", 2100),
        end("WebGpuBackend.run A", 2150),
        end("_InferenceSession.run", 2300),
    ]
