"""
Tunables for trace timeline reconstruction.

The defaults match what ONNX Runtime Web and Dawn emit when a page runs with
``enableTrace=true`` and Chrome is started with
``--enable-dawn-features=record_detailed_timing_in_trace_events``.
"""
from dataclasses import dataclass, field
from typing import Tuple

# Dawn writes one of these per ExecuteCommandList; the first carries the
# CPU/GPU clock calibration for the whole trace.
CALIBRATION_EVENT = "d3d12::CommandRecordingContext::ExecuteCommandList Detailed Timing"

TIMESTAMP_EVENT = "TimeStamp"

CPU_CHANNEL = "CPU::ORT"
GPU_CHANNEL = "GPU::ORT"
CHROME_CHANNEL = "CPU::CHROME"

# Minimum visible span width (ms) for zero-length spans.
EPSILON = 0.001

# Decimal places kept on every converted timestamp.
PRECISION = 2

ALL_EPS = ("webgpu", "wasm", "webnn-gpu")

INSTRUMENTATION_EVENTS = (
    "DeviceBase::APICreateComputePipeline",
    "CreateComputePipelineAsyncTask::Run",
    "DeviceBase::APICreateComputePipelineAsync",
    "DeviceBase::APICreateShaderModule",
    "Queue::Submit",
)


@dataclass(frozen=True)
class CalibrationLabels:
    """Label prefixes of the four fields inside the calibration payload.

    Dawn writes ``UTC Time, File Time, CPU Timestamp, GPU Timestamp,
    CPU Tick Frequency, GPU Tick Frequency``.
    """
    cpu_base: str = "CPU Timestamp"
    gpu_base: str = "GPU Timestamp"
    cpu_frequency: str = "CPU Tick Frequency"
    gpu_frequency: str = "GPU Tick Frequency"


@dataclass(frozen=True)
class TraceConfig:
    """Everything the engine matches on, collected in one place."""
    calibration_event: str = CALIBRATION_EVENT
    calibration_labels: CalibrationLabels = field(default_factory=CalibrationLabels)
    timestamp_event: str = TIMESTAMP_EVENT

    cpu_sentinel: str = CPU_CHANNEL
    gpu_sentinel: str = GPU_CHANNEL
    begin_tag: str = "FUNC_BEGIN"
    end_tag: str = "FUNC_END"

    inference_pattern: str = "_InferenceSession.run"
    dispatch_pattern: str = "WebGpuBackend.run"
    # Calls tagged with the current indices but which don't advance them.
    correlated_patterns: Tuple[str, ...] = ("ProgramManager.build",
                                            "ProgramManager.run")

    instrumentation_events: Tuple[str, ...] = INSTRUMENTATION_EVENTS

    cpu_channel: str = CPU_CHANNEL
    gpu_channel: str = GPU_CHANNEL
    chrome_channel: str = CHROME_CHANNEL

    epsilon: float = EPSILON
    precision: int = PRECISION


DEFAULT_CONFIG = TraceConfig()
