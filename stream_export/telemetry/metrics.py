from __future__ import annotations

import threading
import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Iterable, Tuple


def _percentile(sorted_values: List[float], p: float) -> float:
    if not sorted_values:
        return float("nan")
    k = (len(sorted_values) - 1) * (p / 100.0)
    f = math.floor(k)
    c = math.ceil(k)
    if f == c:
        return sorted_values[int(k)]
    d0 = sorted_values[f] * (c - k)
    d1 = sorted_values[c] * (k - f)
    return d0 + d1


def pct_summary(values: Iterable[float]) -> Dict[str, float]:
    vals = sorted(v for v in values if v is not None)
    if not vals:
        return {"count": 0, "min": float("nan"), "p50": float("nan"),
                "p95": float("nan"), "max": float("nan")}
    return {
        "count": len(vals),
        "min": vals[0],
        "p50": _percentile(vals, 50),
        "p95": _percentile(vals, 95),
        "max": vals[-1],
    }


@dataclass
class Metrics:
    """Counters and stage timings collected by one export run."""
    lock: threading.Lock = field(default_factory=threading.Lock)

    batches: int = 0
    rows_in: int = 0
    rows_written: int = 0
    rows_filtered: int = 0
    bytes_emitted: int = 0
    drain_waits: int = 0

    # stage -> list of durations
    stage_durations: Dict[str, List[float]] = field(
        default_factory=lambda: defaultdict(list))

    # error classification
    errors_by_type: Counter[str] = field(default_factory=Counter)

    def inc(self, attr: str, value: int = 1) -> None:
        with self.lock:
            setattr(self, attr, getattr(self, attr) + value)

    def observe_batch(self, received: int, kept: int) -> None:
        with self.lock:
            self.batches += 1
            self.rows_in += received
            self.rows_written += kept
            self.rows_filtered += received - kept

    def observe_stage(self, stage: str, duration: float) -> None:
        with self.lock:
            self.stage_durations[stage].append(duration)

    def record_error(self, exc: BaseException) -> None:
        with self.lock:
            self.errors_by_type[type(exc).__name__] += 1

    def summary(self) -> Tuple[str, Dict]:
        with self.lock:
            stage_stats = {
                stage: pct_summary(durations)
                for stage, durations in self.stage_durations.items()
            }
            res = {
                "batches": self.batches,
                "rows_in": self.rows_in,
                "rows_written": self.rows_written,
                "rows_filtered": self.rows_filtered,
                "bytes_emitted": self.bytes_emitted,
                "drain_waits": self.drain_waits,
                "stage_stats": stage_stats,
                "errors_by_type": dict(self.errors_by_type),
            }

        lines = []
        lines.append("===== EXPORT SUMMARY =====")
        lines.append(f"Batches    : {res['batches']}")
        lines.append(f"Rows       : in={res['rows_in']:,}  written={res['rows_written']:,}  "
                     f"filtered={res['rows_filtered']:,}")
        lines.append(
            f"Emitted    : {res['bytes_emitted'] / (1024*1024):.2f} MiB  "
            f"drain_waits={res['drain_waits']}")
        if stage_stats:
            lines.append("")
            lines.append("Per-stage timings (seconds):")
            for stage, stats in stage_stats.items():
                lines.append(
                    f"  {stage:14s} "
                    f"count={stats['count']:6d}  "
                    f"min={stats['min']:.4f}  p50={stats['p50']:.4f}  "
                    f"p95={stats['p95']:.4f}  max={stats['max']:.4f}"
                )
        if res["errors_by_type"]:
            lines.append("")
            lines.append("Errors by type:")
            for k, v in sorted(res["errors_by_type"].items(), key=lambda kv: kv[1], reverse=True):
                lines.append(f"  {k}: {v}")

        return "\n".join(lines), res
