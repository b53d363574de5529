"""
Text summary of a reconstructed timeline.

Shows:
  1. CPU functions (aggregated over the call tree)
  2. GPU kernels (HW timestamps)
  3. Per-inference GPU time
  4. Chrome/Dawn instrumentation
  5. CPU dispatch <-> GPU kernel correlation
"""
import re
from typing import Dict, List, Optional, Tuple

import numpy as np

from trace_timeline.assembler import TimelineArtifact
from trace_timeline.config import DEFAULT_CONFIG, TraceConfig
from trace_timeline.spans import Span

_INDEX_SUFFIX = re.compile(r"::(-?\d+)::(-?\d+)$")


def split_index(name: str) -> Tuple[str, Optional[Tuple[int, int]]]:
    """``"conv::1::4"`` -> ``("conv", (1, 4))``; unindexed names get None."""
    m = _INDEX_SUFFIX.search(name)
    if not m:
        return name, None
    return name[:m.start()], (int(m.group(1)), int(m.group(2)))


def _aggregate(pairs) -> List[dict]:
    """[(name, duration_ms)] -> rows sorted by total time, descending."""
    by_name: Dict[str, List[float]] = {}
    for name, dur in pairs:
        by_name.setdefault(name, []).append(dur)
    grand_total = sum(sum(v) for v in by_name.values())

    rows = []
    for name, durs in by_name.items():
        arr = np.asarray(durs, dtype=np.float64)
        total = float(arr.sum())
        rows.append({
            "name": name,
            "total_ms": round(total, 3),
            "count": int(arr.size),
            "avg_ms": round(float(arr.mean()), 3),
            "max_ms": round(float(arr.max()), 3),
            "pct": round(total / grand_total * 100, 1) if grand_total > 0 else 0,
        })
    rows.sort(key=lambda r: -r["total_ms"])
    return rows


def match_dispatches(artifact: TimelineArtifact,
                     config: TraceConfig = DEFAULT_CONFIG
                     ) -> List[Tuple[Span, Span]]:
    """Pair each indexed CPU dispatch span with the GPU kernel of the same index."""
    gpu_by_index = {}
    for span in artifact[config.gpu_channel]:
        _, idx = split_index(span.name)
        if idx is not None:
            gpu_by_index[idx] = span

    pairs = []
    for root in artifact[config.cpu_channel]:
        for _, span in root.walk():
            if not span.name.startswith(config.dispatch_pattern):
                continue
            _, idx = split_index(span.name)
            if idx in gpu_by_index:
                pairs.append((span, gpu_by_index[idx]))
    return pairs


def compute_summary(artifact: TimelineArtifact,
                    config: TraceConfig = DEFAULT_CONFIG) -> dict:
    cpu_roots = artifact[config.cpu_channel]
    gpu_spans = artifact[config.gpu_channel]
    chrome_spans = artifact[config.chrome_channel]

    cpu_pairs = []
    for root in cpu_roots:
        for _, span in root.walk():
            cpu_pairs.append((split_index(span.name)[0], span.duration))
    gpu_pairs = [(split_index(s.name)[0], s.duration) for s in gpu_spans]

    per_inference: Dict[int, float] = {}
    for span in gpu_spans:
        _, idx = split_index(span.name)
        if idx is not None:
            per_inference[idx[0]] = per_inference.get(idx[0], 0.0) + span.duration

    n_dispatch = sum(1 for root in cpu_roots for _, s in root.walk()
                     if s.name.startswith(config.dispatch_pattern))
    pairs = match_dispatches(artifact, config)
    latencies = np.asarray([g.start - c.start for c, g in pairs],
                           dtype=np.float64)

    return {
        "total_cpu_ms": round(sum(r.duration for r in cpu_roots), 2),
        "total_gpu_ms": round(sum(s.duration for s in gpu_spans), 2),
        "cpu": _aggregate(cpu_pairs),
        "gpu": _aggregate(gpu_pairs),
        "chrome": _aggregate((s.name, s.duration) for s in chrome_spans),
        "inferences": [{"index": k, "gpu_ms": round(v, 3)}
                       for k, v in sorted(per_inference.items())],
        "dispatch": {
            "matched": len(pairs),
            "unmatched_cpu": n_dispatch - len(pairs),
            "unmatched_gpu": len(gpu_spans) - len(pairs),
            "mean_latency_ms": round(float(latencies.mean()), 3)
            if latencies.size else None,
        },
        "anomalies": len(artifact.anomalies),
    }


def _print_table(rows: List[dict], header: str, top_n: int):
    print(f"  {header:<40s} {'Total':>9s} {'Count':>6s} "
          f"{'Avg':>9s} {'%':>6s}")
    print(f"  {'-'*40} {'-'*9} {'-'*6} {'-'*9} {'-'*6}")
    for r in rows[:top_n]:
        print(f"  {r['name'][:40]:<40s} {r['total_ms']:>7.2f}ms "
              f"{r['count']:>5d}x {r['avg_ms']:>7.3f}ms {r['pct']:>5.1f}%")


def print_report(artifact: TimelineArtifact, top_n: int = 20,
                 title: str = "TRACE TIMELINE REPORT",
                 config: TraceConfig = DEFAULT_CONFIG):
    summary = compute_summary(artifact, config)

    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)

    print(f"\n--- CPU Functions ({config.cpu_channel}) ---")
    if summary["cpu"]:
        print(f"  Total CPU time (roots): {summary['total_cpu_ms']:.2f}ms")
        _print_table(summary["cpu"], "Function", top_n)
    else:
        print("  No CPU spans recorded.")

    print(f"\n--- GPU Kernels ({config.gpu_channel}) ---")
    if summary["gpu"]:
        print(f"  Total GPU time: {summary['total_gpu_ms']:.2f}ms "
              f"({len(artifact[config.gpu_channel])} kernels)")
        _print_table(summary["gpu"], "Kernel", top_n)
        for inf in summary["inferences"]:
            print(f"  Inference {inf['index']:3d}: {inf['gpu_ms']:>8.3f}ms GPU")
    else:
        print("  No GPU spans recorded.")

    print(f"\n--- Instrumentation ({config.chrome_channel}) ---")
    if summary["chrome"]:
        _print_table(summary["chrome"], "Event", top_n)
    else:
        print("  No instrumentation events recorded.")

    print("\n--- Dispatch Correlation ---")
    d = summary["dispatch"]
    print(f"  Matched: {d['matched']}  unmatched CPU: {d['unmatched_cpu']}  "
          f"unmatched GPU: {d['unmatched_gpu']}")
    if d["mean_latency_ms"] is not None:
        print(f"  Mean CPU dispatch -> GPU start: {d['mean_latency_ms']:.3f}ms")
    if summary["anomalies"]:
        print(f"  Stack anomalies: {summary['anomalies']}")
    print("=" * 70)
    return summary
