import asyncio
import logging

import aiohttp

from .models import Outcome, Payload
from .sinks import MetricsSink
from .utils import build_url, now

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/json; charset=utf-8"


class Dispatcher:
    """
    Fixed-size pool of workers sharing one input queue and one results queue.

    The input queue is closed by one ``None`` sentinel per worker; each
    payload taken from it yields exactly one Outcome on the results queue.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        endpoint: str,
        timeout_s: float,
        apikey: str | None = None,
        sink: MetricsSink | None = None,
    ) -> None:
        self.session = session
        self.endpoint = endpoint
        self.url = build_url(endpoint, apikey)
        self.timeout_s = timeout_s
        self.sink = sink
        self._timeout = aiohttp.ClientTimeout(total=timeout_s)

    # ────────────────────────────────
    # HTTP Call
    # ────────────────────────────────

    async def _fire(self, payload: Payload) -> tuple[bool, str]:
        try:
            async with self.session.post(
                self.url,
                data=payload,
                headers={"Content-Type": CONTENT_TYPE},
                timeout=self._timeout,
            ) as resp:
                body = await resp.text(errors="replace")
                if 200 <= resp.status < 300:
                    return True, body
                return False, f"Unexpected status {resp.status}: {body}"
        except asyncio.TimeoutError:
            return False, f"Request timed out after {self.timeout_s:g}s"
        except aiohttp.ClientPayloadError as e:
            return False, f"Error while parsing the response: {e}"
        except aiohttp.ClientError as e:
            return False, f"Error while sending the request: {e}"

    async def dispatch(self, payload: Payload, worker_id: int = -1) -> Outcome:
        start = now()
        try:
            success, body = await self._fire(payload)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"[W{worker_id}] Unexpected error posting to {self.endpoint}")
            success, body = False, f"Internal error: {e!r}"
        latency = now() - start

        if self.sink is not None:
            try:
                self.sink.append(latency)
            except Exception:
                logger.exception(f"[W{worker_id}] Metrics sink rejected a latency value")

        if success:
            logger.debug(f"[W{worker_id}] OK in {latency * 1000:.1f}ms")
        else:
            logger.debug(f"[W{worker_id}] Failed in {latency * 1000:.1f}ms: {body}")
        return Outcome(body=body, success=success, latency=latency, worker_id=worker_id)

    # ────────────────────────────────
    # Worker Pool
    # ────────────────────────────────

    async def _worker(
        self,
        worker_id: int,
        queue: asyncio.Queue,
        results: asyncio.Queue,
    ) -> None:
        handled = 0
        while True:
            payload = await queue.get()
            try:
                if payload is None:
                    break
                outcome = await self.dispatch(payload, worker_id)
                await results.put(outcome)
                handled += 1
            finally:
                queue.task_done()
        logger.debug(f"Worker {worker_id} stopped after {handled} requests")

    def start(
        self,
        queue: asyncio.Queue,
        results: asyncio.Queue,
        concurrency: int,
    ) -> list[asyncio.Task]:
        logger.debug(f"Starting {concurrency} workers against {self.endpoint}")
        return [
            asyncio.create_task(self._worker(i, queue, results), name=f"salvo-worker-{i}")
            for i in range(concurrency)
        ]
