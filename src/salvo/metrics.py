import math
import logging
from collections.abc import Sequence

from .models import PERCENTILES, Report

logger = logging.getLogger(__name__)

NAN = float("nan")


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """
    Linear interpolation between the closest ranks, rank = p/100 * (n - 1).

    ``sorted_values`` must be ascending. p=0 is the minimum, p=100 the
    maximum, and an empty input yields NaN.
    """
    n = len(sorted_values)
    if n == 0:
        return NAN
    if not 0 <= p <= 100:
        raise ValueError(f"percentile must be within [0, 100], got {p}")
    rank = p / 100 * (n - 1)
    lo = math.floor(rank)
    hi = min(lo + 1, n - 1)
    frac = rank - lo
    return sorted_values[lo] + (sorted_values[hi] - sorted_values[lo]) * frac


def compute_report(
    latencies: Sequence[float],
    elapsed_s: float,
    request_count: int,
    failures: int,
) -> Report:
    """
    Summarize one stage. Latencies arrive in seconds, in any order, and
    are reported in milliseconds.
    """
    rps = request_count / elapsed_s if elapsed_s > 0 else NAN
    sl = sorted(x * 1000 for x in latencies)
    n = len(sl)
    logger.debug(
        f"Computing report: requests={request_count}, failures={failures}, samples={n}"
    )

    if n == 0:
        if request_count:
            logger.warning(f"No successful latencies recorded ({failures} failures).")
        return Report(
            request_count=request_count,
            failures=failures,
            min=NAN,
            median=NAN,
            max=NAN,
            mean=NAN,
            rps=rps,
            elapsed_s=elapsed_s,
            percentiles={p: NAN for p in PERCENTILES},
        )

    report = Report(
        request_count=request_count,
        failures=failures,
        min=sl[0],
        median=percentile(sl, 50),
        max=sl[-1],
        mean=math.fsum(sl) / n,
        rps=rps,
        elapsed_s=elapsed_s,
        percentiles={p: percentile(sl, p) for p in PERCENTILES},
    )
    logger.info(
        f"Stage stats: ok={n}, failures={failures}, mean={report.mean:.1f}ms, "
        f"p95={report.percentiles[95]:.1f}ms, rps={rps:.2f}"
    )
    return report
