import math
from collections.abc import Sequence

from .models import PERCENTILES, Report

RULE = "-" * 60


def _num(value: float, width: int, precision: int = 0) -> str:
    if math.isnan(value):
        return f"{'nan':>{width}}"
    return f"{value:{width}.{precision}f}"


def render_report(report: Report) -> str:
    """Throughput summary followed by the percentile breakdown, in ms."""
    summary_head = " # reqs  fails     Avg     Min     Max  |  Median     req/s"
    summary_row = (
        f"{report.request_count:7d}{report.failures:7d}"
        f"{_num(report.mean, 8)}{_num(report.min, 8)}{_num(report.max, 8)}"
        f"  |{_num(report.median, 8)}{_num(report.rps, 10, 2)}"
    )

    pct_head = " # reqs " + "".join(f"{str(p) + '%':>7}" for p in PERCENTILES)
    pct_row = f"{report.successes:7d} " + "".join(
        _num(report.percentiles.get(p, math.nan), 7) for p in PERCENTILES
    )

    return "\n".join(["", summary_head, RULE, summary_row, "", pct_head, RULE, pct_row])


def render_latency_histogram(latencies_ms: Sequence[float], bins: int = 20, width: int = 40) -> str:
    if not latencies_ms:
        return "No latency data."
    lo, hi = min(latencies_ms), max(latencies_ms)
    if hi <= lo:
        return f"Latency histogram: all {len(latencies_ms)} samples at {lo:.1f}ms"

    counts = [0] * bins
    span = hi - lo
    for x in latencies_ms:
        counts[min(int((x - lo) / span * bins), bins - 1)] += 1

    peak = max(counts)
    lines = ["Latency histogram (ms)"]
    for i, c in enumerate(counts):
        left = lo + span * i / bins
        right = lo + span * (i + 1) / bins
        bar = "#" * max(1, round(c / peak * width)) if c else ""
        lines.append(f"{left:9.1f} - {right:9.1f} | {bar} ({c})")
    return "\n".join(lines)
