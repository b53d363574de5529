"""
Trace files in, timeline files out.

A benchmark run with tracing enabled leaves one ``<model>-<ep>-trace.json``
per (model, backend) next to the results manifest ``<YYYYMMDD>.json``. Each
trace becomes ``<model>-<ep>.json`` holding the channel-keyed timeline.

Usage:
    python -m trace_timeline.trace --trace-file out/20240101/mobilenetv2-12-webgpu-trace.json
    python -m trace_timeline.trace --run-dir out/20240101 --manifest out/20240101/20240101.json --report
"""
import json
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from trace_timeline.assembler import TimelineArtifact, reconstruct_timeline
from trace_timeline.config import ALL_EPS, DEFAULT_CONFIG, TraceConfig
from trace_timeline.errors import TraceError, TraceFileError

PathLike = Union[str, os.PathLike]


def load_trace_events(path: PathLike) -> List[dict]:
    """Read the event list from a Chrome JSON trace (object or bare array)."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise TraceFileError(f"Cannot read trace {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise TraceFileError(f"Trace {path} is not valid JSON: {e}") from e

    if isinstance(data, dict):
        data = data.get("traceEvents")
    if not isinstance(data, list):
        raise TraceFileError(f"Trace {path} has no traceEvents array")
    return data


def timeline_path_for(trace_path: PathLike) -> Path:
    """``x-webgpu-trace.json`` -> ``x-webgpu.json``."""
    trace_path = Path(trace_path)
    if "-trace" in trace_path.name:
        return trace_path.with_name(trace_path.name.replace("-trace", "", 1))
    return trace_path.with_name(f"{trace_path.stem}-timeline{trace_path.suffix}")


def write_timeline(artifact: TimelineArtifact, path: PathLike):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(artifact.to_json(), f)


def parse_trace(trace_path: PathLike, output_path: Optional[PathLike] = None,
                config: TraceConfig = DEFAULT_CONFIG) -> TimelineArtifact:
    """Reconstruct one trace and write its timeline file."""
    events = load_trace_events(trace_path)
    artifact = reconstruct_timeline(events, config)
    output_path = Path(output_path) if output_path else timeline_path_for(trace_path)
    write_timeline(artifact, output_path)
    print(f"[Timeline] {Path(trace_path).name} -> {output_path} ({artifact!r})")
    return artifact


def trace_files_from_manifest(run_dir: PathLike, manifest_path: PathLike,
                              eps: Sequence[str] = ALL_EPS) -> List[Path]:
    """Trace files for every (model, ep) the results manifest lists."""
    try:
        with open(manifest_path, "r", encoding="utf-8") as f:
            rows = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise TraceFileError(f"Cannot read manifest {manifest_path}: {e}") from e
    if not isinstance(rows, list):
        raise TraceFileError(f"Manifest {manifest_path} is not a JSON array")

    run_dir = Path(run_dir)
    files = []
    for row in rows:
        if not isinstance(row, list) or not row or not isinstance(row[0], str):
            continue
        for ep in eps:
            name = f"{row[0]}-{ep}-trace.json".replace(" ", "_")
            path = run_dir / name
            if path.is_file() and path not in files:
                files.append(path)
    return files


def parse_run_dir(run_dir: PathLike, manifest_path: Optional[PathLike] = None,
                  eps: Sequence[str] = ALL_EPS,
                  config: TraceConfig = DEFAULT_CONFIG
                  ) -> Dict[Path, Union[TimelineArtifact, TraceError]]:
    """Reconstruct every trace of a run; one bad trace doesn't stop the rest."""
    run_dir = Path(run_dir)
    if manifest_path is not None:
        trace_files = trace_files_from_manifest(run_dir, manifest_path, eps)
    else:
        trace_files = sorted(run_dir.glob("*-trace.json"))
    if not trace_files:
        print(f"[Timeline] No trace files found in {run_dir}")

    results = {}
    for i, trace_file in enumerate(trace_files):
        print(f"[{i + 1}/{len(trace_files)}] {trace_file.name}")
        try:
            results[trace_file] = parse_trace(trace_file, config=config)
        except TraceError as e:
            print(f"[Timeline] Skipping {trace_file.name}: {e}")
            results[trace_file] = e
    return results


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv=None) -> int:
    import argparse
    from dataclasses import replace

    from trace_timeline.report import print_report

    parser = argparse.ArgumentParser(
        description="Rebuild CPU/GPU timelines from browser trace files")
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--trace-file", type=str,
                     help="Single trace file to process")
    src.add_argument("--run-dir", type=str,
                     help="Directory holding *-trace.json files of one run")
    parser.add_argument("--manifest", type=str, default=None,
                        help="Results manifest listing the models of the run")
    parser.add_argument("--eps", type=str, default=",".join(ALL_EPS),
                        help="Comma-separated execution providers")
    parser.add_argument("--output", type=str, default=None,
                        help="Timeline output path (--trace-file only)")
    parser.add_argument("--report", action="store_true",
                        help="Print a summary of each timeline")
    parser.add_argument("--top-n", type=int, default=20,
                        help="Rows per table in the report")
    parser.add_argument("--cpu-sentinel", type=str,
                        default=DEFAULT_CONFIG.cpu_sentinel)
    parser.add_argument("--gpu-sentinel", type=str,
                        default=DEFAULT_CONFIG.gpu_sentinel)
    parser.add_argument("--inference-pattern", type=str,
                        default=DEFAULT_CONFIG.inference_pattern)
    parser.add_argument("--dispatch-pattern", type=str,
                        default=DEFAULT_CONFIG.dispatch_pattern)
    args = parser.parse_args(argv)

    config = replace(DEFAULT_CONFIG,
                     cpu_sentinel=args.cpu_sentinel,
                     gpu_sentinel=args.gpu_sentinel,
                     inference_pattern=args.inference_pattern,
                     dispatch_pattern=args.dispatch_pattern)

    if args.trace_file:
        try:
            results = {Path(args.trace_file): parse_trace(
                args.trace_file, args.output, config)}
        except TraceError as e:
            print(f"[Timeline] Failed: {e}")
            return 1
    else:
        eps = [ep for ep in args.eps.split(",") if ep]
        try:
            results = parse_run_dir(args.run_dir, args.manifest, eps, config)
        except TraceFileError as e:
            print(f"[Timeline] Failed: {e}")
            return 1

    failed = 0
    for path, result in results.items():
        if isinstance(result, TraceError):
            failed += 1
        elif args.report:
            print_report(result, top_n=args.top_n, title=path.name, config=config)
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
