import asyncio
import logging
from collections.abc import Callable, Iterable

import aiohttp
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from .dispatcher import Dispatcher
from .metrics import compute_report
from .models import OutputMode, Outcome, Report, Stage, StageResult
from .payloads import PayloadSource
from .rendering import render_latency_histogram, render_report
from .sinks import MetricsSink
from .utils import now

logger = logging.getLogger(__name__)


class StageRunner:
    """Runs one stage: fill the queue, start the pool, drain every outcome."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        on_outcome: Callable[[Outcome], None] | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.on_outcome = on_outcome

    async def run(self, stage: Stage, source: PayloadSource) -> StageResult:
        n, c = stage.request_count, stage.concurrency

        # room for every payload plus one close sentinel per worker
        queue: asyncio.Queue = asyncio.Queue(maxsize=n + c)
        logger.info(f"Producing {n} payloads...")
        for _ in range(n):
            if stage.noise is None:
                queue.put_nowait(source.produce())
            else:
                queue.put_nowait(source.produce(noise=stage.noise))
        for _ in range(c):
            queue.put_nowait(None)

        results: asyncio.Queue[Outcome] = asyncio.Queue()
        latencies: list[float] = []
        failures = 0

        t0 = now()
        workers = self.dispatcher.start(queue, results, c)
        try:
            for _ in range(n):
                outcome = await results.get()
                if outcome.success:
                    latencies.append(outcome.latency)
                else:
                    failures += 1
                if self.on_outcome is not None:
                    self.on_outcome(outcome)
        except BaseException:
            for w in workers:
                w.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise
        elapsed = now() - t0

        await asyncio.gather(*workers)
        logger.debug(f"Stage drained {n} outcomes in {elapsed:.3f}s")
        return StageResult(stage=stage, latencies=latencies, failures=failures, elapsed_s=elapsed)


class ScheduleRunner:
    """Runs stages back to back against one endpoint, one report per stage."""

    def __init__(
        self,
        endpoint: str,
        source: PayloadSource,
        timeout_s: float = 60.0,
        apikey: str | None = None,
        sink: MetricsSink | None = None,
        output_mode: OutputMode = OutputMode.NORMAL,
        histogram: bool = False,
        console: Console | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.source = source
        self.timeout_s = timeout_s
        self.apikey = apikey
        self.sink = sink
        self.output_mode = output_mode
        self.histogram = histogram
        self.console = console or Console()

    def _print(self, text: str) -> None:
        self.console.print(text, markup=False, highlight=False, soft_wrap=True)

    async def _run_stage(self, dispatcher: Dispatcher, stage: Stage, label: str) -> StageResult:
        if self.output_mode is OutputMode.VERBOSE:
            runner = StageRunner(dispatcher, on_outcome=lambda o: self._print(o.body))
            return await runner.run(stage, self.source)

        if self.output_mode is OutputMode.SILENT:
            return await StageRunner(dispatcher).run(stage, self.source)

        progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=self.console,
        )
        task_id = progress.add_task(f"[cyan]{label}", total=stage.request_count)
        runner = StageRunner(dispatcher, on_outcome=lambda _: progress.advance(task_id))
        with progress:
            return await runner.run(stage, self.source)

    def _emit(self, label: str, report: Report, result: StageResult) -> None:
        if self.output_mode is OutputMode.SILENT:
            return
        self._print(f"\n{label}: {result.stage}")
        self._print(render_report(report))
        if self.histogram:
            self._print("")
            self._print(render_latency_histogram([x * 1000 for x in result.latencies]))

    async def run(self, schedule: Iterable[Stage]) -> list[Report]:
        stages = list(schedule)
        reports: list[Report] = []
        logger.info(
            f"Starting schedule of {len(stages)} stages against {self.endpoint} "
            f"(timeout={self.timeout_s:g}s)"
        )

        connector = aiohttp.TCPConnector(limit=0)
        async with aiohttp.ClientSession(connector=connector) as session:
            dispatcher = Dispatcher(
                session,
                self.endpoint,
                self.timeout_s,
                apikey=self.apikey,
                sink=self.sink,
            )
            for idx, stage in enumerate(stages, start=1):
                label = f"Stage {idx}/{len(stages)}"
                logger.info(f"{label}: {stage}")
                result = await self._run_stage(dispatcher, stage, label)
                report = compute_report(
                    result.latencies,
                    result.elapsed_s,
                    stage.request_count,
                    result.failures,
                )
                reports.append(report)
                self._emit(label, report, result)

        logger.info(f"Schedule completed: {len(reports)} reports")
        return reports
