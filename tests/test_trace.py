"""Tests for trace file I/O, run-directory processing and the CLI."""
import json
from pathlib import Path

import pytest
from conftest import calibration, inference, kernel

from trace_timeline.errors import MissingCalibrationError, TraceFileError
from trace_timeline.trace import (
    load_trace_events, main, parse_run_dir, parse_trace, timeline_path_for,
    trace_files_from_manifest,
)


def good_events():
    return [calibration()] + inference(2000, 2) + [
        kernel("Conv", 100, 300), kernel("Add", 300, 340)]


def write_json(path: Path, data) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestLoad:

    def test_object_form(self, tmp_path):
        path = write_json(tmp_path / "a-trace.json", {"traceEvents": [{"name": "x"}]})
        assert load_trace_events(path) == [{"name": "x"}]

    def test_array_form(self, tmp_path):
        path = write_json(tmp_path / "a-trace.json", [{"name": "x"}])
        assert load_trace_events(path) == [{"name": "x"}]

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "a-trace.json"
        path.write_text('{"traceEvents": [', encoding="utf-8")
        with pytest.raises(TraceFileError):
            load_trace_events(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(TraceFileError):
            load_trace_events(tmp_path / "nope.json")

    def test_wrong_shape(self, tmp_path):
        path = write_json(tmp_path / "a-trace.json", {"events": []})
        with pytest.raises(TraceFileError):
            load_trace_events(path)


def test_timeline_path_for():
    assert timeline_path_for("out/mobilenet-webgpu-trace.json") == \
        Path("out/mobilenet-webgpu.json")
    assert timeline_path_for("out/capture.json") == Path("out/capture-timeline.json")


def test_parse_trace_writes_timeline(tmp_path):
    trace = write_json(tmp_path / "m-webgpu-trace.json", {"traceEvents": good_events()})
    out = tmp_path / "m-webgpu.json"
    out.write_text("stale", encoding="utf-8")

    artifact = parse_trace(trace)

    data = json.loads(out.read_text(encoding="utf-8"))
    assert data == artifact.to_json()
    assert list(data) == ["CPU::ORT", "GPU::ORT", "CPU::CHROME"]
    assert [s["name"] for s in data["GPU::ORT"]] == ["Conv::0::0", "Add::0::1"]
    assert "children" in data["CPU::ORT"][0]
    assert "children" not in data["CPU::ORT"][0]["children"][0]


def test_parse_trace_custom_output(tmp_path):
    trace = write_json(tmp_path / "t.json", good_events())
    parse_trace(trace, tmp_path / "custom.json")
    assert (tmp_path / "custom.json").is_file()


def test_manifest_discovery(tmp_path):
    manifest = write_json(tmp_path / "20240101.json", [
        ["mobilenetv2-12", 1.0, 2.0, 3.0],
        ["sd turbo", 4.0, 5.0, 6.0],
        "garbage",
    ])
    for name in ("mobilenetv2-12-webgpu-trace.json", "sd_turbo-wasm-trace.json"):
        write_json(tmp_path / name, [])

    files = trace_files_from_manifest(tmp_path, manifest, ["webgpu", "wasm"])

    assert [f.name for f in files] == ["mobilenetv2-12-webgpu-trace.json",
                                       "sd_turbo-wasm-trace.json"]


def test_bad_manifest(tmp_path):
    manifest = write_json(tmp_path / "m.json", {"rows": []})
    with pytest.raises(TraceFileError):
        trace_files_from_manifest(tmp_path, manifest)


def test_run_dir_isolates_failures(tmp_path, capsys):
    good = write_json(tmp_path / "a-webgpu-trace.json", good_events())
    bad = write_json(tmp_path / "b-webgpu-trace.json", good_events()[1:])

    results = parse_run_dir(tmp_path)

    assert set(results) == {good, bad}
    assert isinstance(results[bad], MissingCalibrationError)
    assert len(results[good]["GPU::ORT"]) == 2
    assert (tmp_path / "a-webgpu.json").is_file()
    assert not (tmp_path / "b-webgpu.json").exists()
    assert "Skipping b-webgpu-trace.json" in capsys.readouterr().out


class TestMain:

    def test_single_trace_with_report(self, tmp_path, capsys):
        trace = write_json(tmp_path / "a-webgpu-trace.json", good_events())
        assert main(["--trace-file", str(trace), "--report"]) == 0
        out = capsys.readouterr().out
        assert "GPU Kernels" in out
        assert "Matched: 2" in out

    def test_single_trace_failure(self, tmp_path):
        trace = write_json(tmp_path / "a-webgpu-trace.json", good_events()[1:])
        assert main(["--trace-file", str(trace)]) == 1

    def test_run_dir_with_failure(self, tmp_path):
        write_json(tmp_path / "a-webgpu-trace.json", good_events())
        write_json(tmp_path / "b-webgpu-trace.json", [])
        assert main(["--run-dir", str(tmp_path)]) == 1

    def test_run_dir_with_manifest(self, tmp_path):
        write_json(tmp_path / "a-webgpu-trace.json", good_events())
        write_json(tmp_path / "b-webgpu-trace.json", [])
        manifest = write_json(tmp_path / "r.json", [["a", 1.0]])
        assert main(["--run-dir", str(tmp_path), "--manifest", str(manifest),
                     "--eps", "webgpu"]) == 0

    def test_custom_dispatch_pattern(self, tmp_path):
        trace = write_json(tmp_path / "a-trace.json", good_events())
        main(["--trace-file", str(trace), "--dispatch-pattern", "Nothing"])
        data = json.loads((tmp_path / "a.json").read_text(encoding="utf-8"))
        children = data["CPU::ORT"][0]["children"]
        assert children[0]["name"] == "WebGpuBackend.run op0"

    def test_requires_a_source(self):
        with pytest.raises(SystemExit):
            main([])
