"""Span: the reconstructed unit of the timeline."""
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from trace_timeline.config import EPSILON, PRECISION


def get_float(value, precision: int = PRECISION) -> float:
    """Round to ``precision`` decimals to keep clock jitter out of comparisons.

    Halves round up (towards +inf), so 0.125 -> 0.13 and -0.125 -> -0.12.
    """
    scale = 10 ** precision
    return math.floor(float(value) * scale + 0.5) / scale


@dataclass
class Span:
    """A named interval in ms, optionally holding nested child spans."""
    name: str
    start: float
    duration: float = EPSILON
    children: Optional[List["Span"]] = None

    def add_child(self, child: "Span"):
        if self.children is None:
            self.children = []
        self.children.append(child)

    def finalize(self, duration: float, epsilon: float = EPSILON):
        """Set the duration, widening empty spans to ``epsilon``.

        A zero (or negative) width span is given ``epsilon`` and moved back
        by the same amount so it still renders. This is cosmetic only.
        """
        if duration <= 0:
            duration = epsilon
            self.start -= epsilon
        self.duration = duration

    def count(self) -> int:
        """Number of spans in this subtree, including self."""
        return 1 + sum(c.count() for c in self.children or ())

    def walk(self):
        """Yield (depth, span) for self and every descendant, pre-order."""
        stack = [(0, self)]
        while stack:
            depth, span = stack.pop()
            yield depth, span
            for child in reversed(span.children or ()):
                stack.append((depth + 1, child))

    def to_dict(self) -> Dict[str, Any]:
        d = {"name": self.name, "start": self.start, "duration": self.duration}
        if self.children is not None:
            d["children"] = [c.to_dict() for c in self.children]
        return d


def make_span(name: str, start: float, duration: float,
              epsilon: float = EPSILON) -> Span:
    """Build a finished span in one step (GPU and instrumentation spans)."""
    span = Span(name=name, start=start)
    span.finalize(duration, epsilon)
    return span
