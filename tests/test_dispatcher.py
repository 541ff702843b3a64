import asyncio

import aiohttp
from aiohttp import web

from salvo.dispatcher import CONTENT_TYPE, Dispatcher
from stubs import fixed_latency, stub_endpoint, unused_port


class ListSink:
    def __init__(self):
        self.values = []

    def append(self, latency_s):
        self.values.append(latency_s)


class BrokenSink:
    def append(self, latency_s):
        raise OSError("disk full")


async def _dispatch_once(url, payload=b"{}", timeout_s=1.0, **kwargs):
    async with aiohttp.ClientSession() as session:
        return await Dispatcher(session, url, timeout_s, **kwargs).dispatch(payload)


def test_success_carries_response_body_and_request_shape():
    seen = {}

    async def handler(request):
        seen["content_type"] = request.headers["Content-Type"]
        seen["apikey"] = request.query.get("apikey")
        seen["body"] = await request.read()
        return web.Response(text="prediction")

    async def scenario():
        async with stub_endpoint(handler) as url:
            return await _dispatch_once(url, b'{"image": "x"}', apikey="secret")

    outcome = asyncio.run(scenario())
    assert outcome.success
    assert outcome.body == "prediction"
    assert outcome.latency > 0
    assert seen == {"content_type": CONTENT_TYPE, "apikey": "secret", "body": b'{"image": "x"}'}


def test_non_success_status_is_a_failure():
    async def scenario():
        async with stub_endpoint(fixed_latency(0, status=503, text="busy")) as url:
            return await _dispatch_once(url)

    outcome = asyncio.run(scenario())
    assert not outcome.success
    assert "503" in outcome.body and "busy" in outcome.body


def test_timeout_is_a_failure():
    async def scenario():
        async with stub_endpoint(fixed_latency(0.5)) as url:
            return await _dispatch_once(url, timeout_s=0.05)

    outcome = asyncio.run(scenario())
    assert not outcome.success
    assert "timed out" in outcome.body


def test_connection_error_is_a_failure():
    url = f"http://127.0.0.1:{unused_port()}/predict"
    outcome = asyncio.run(_dispatch_once(url))
    assert not outcome.success
    assert "Error while sending the request" in outcome.body


def test_unexpected_error_becomes_outcome():
    class ExplodingSession:
        def post(self, *args, **kwargs):
            raise RuntimeError("boom")

    dispatcher = Dispatcher(ExplodingSession(), "http://localhost", 1.0)
    outcome = asyncio.run(dispatcher.dispatch(b"{}", worker_id=3))
    assert not outcome.success
    assert "boom" in outcome.body
    assert outcome.worker_id == 3


def test_sink_receives_each_latency_and_failures_do_not_block():
    sink = ListSink()

    async def scenario():
        async with stub_endpoint(fixed_latency(0)) as url:
            await _dispatch_once(url, sink=sink)
            return await _dispatch_once(url, sink=BrokenSink())

    outcome = asyncio.run(scenario())
    assert outcome.success
    assert len(sink.values) == 1


def test_workers_exit_on_close_sentinels():
    async def scenario():
        async with stub_endpoint(fixed_latency(0)) as url:
            async with aiohttp.ClientSession() as session:
                dispatcher = Dispatcher(session, url, 1.0)
                queue = asyncio.Queue()
                results = asyncio.Queue()
                for _ in range(6):
                    queue.put_nowait(b"{}")
                for _ in range(3):
                    queue.put_nowait(None)
                workers = dispatcher.start(queue, results, 3)
                await asyncio.wait_for(asyncio.gather(*workers), timeout=5)
                return results.qsize(), {w.done() for w in workers}

    produced, done = asyncio.run(scenario())
    assert produced == 6
    assert done == {True}
