"""
Ramp a local endpoint through three load levels with a static JSON body.
Run: uv run examples/staged_run.py http://localhost:8000/predict
"""
import asyncio
import os
import sys

from salvo import ScheduleRunner, Stage
from salvo.logging_config import setup_logging
from salvo.payloads import StaticPayloadSource

SCHEDULE = [Stage(50, 1), Stage(200, 8), Stage(400, 32)]


async def main(endpoint: str):
    runner = ScheduleRunner(
        endpoint,
        StaticPayloadSource(b'{"features": [0.1, 0.2, 0.3]}'),
        timeout_s=float(os.getenv("SALVO_TIMEOUT_S", "10")),
        histogram=True,
    )
    reports = await runner.run(SCHEDULE)
    for stage, report in zip(SCHEDULE, reports):
        print(f"{stage}: {report.rps:.1f} req/s, p99={report.percentiles[99]:.1f}ms")


if __name__ == "__main__":
    setup_logging("WARNING")
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000/predict"))
