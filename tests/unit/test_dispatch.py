"""
Unit tests for fan-out dispatch.
"""

import asyncio
import json

import httpx
import pytest


def make_trigger():
    from podforge.models import WorkerTrigger

    return WorkerTrigger(job_id=1, content_id=2, trace_id="trace-abc")


@pytest.mark.unit
class TestSettleAll:
    """Tests for settle_all."""

    @pytest.mark.asyncio
    async def test_exceptions_become_error_outcomes(self):
        from podforge.workers.dispatch import WorkerName, WorkerOutcome, settle_all

        async def ok():
            return WorkerOutcome(worker=WorkerName.AUDIO, status="ok")

        async def boom():
            raise RuntimeError("cover model down")

        async def slow():
            await asyncio.sleep(0.01)
            return WorkerOutcome(worker=WorkerName.EMBEDDING, status="skipped")

        outcomes = await settle_all({
            WorkerName.AUDIO: ok(),
            WorkerName.COVER: boom(),
            WorkerName.EMBEDDING: slow(),
        })

        assert [o.worker for o in outcomes] == [WorkerName.AUDIO, WorkerName.COVER, WorkerName.EMBEDDING]
        assert [o.status for o in outcomes] == ["ok", "error", "skipped"]
        assert outcomes[1].error == "cover model down"
        assert outcomes[1].success is False
        assert outcomes[2].success is True


@pytest.mark.unit
class TestInlineDispatcher:
    """Tests for InlineDispatcher."""

    @pytest.mark.asyncio
    async def test_wait_returns_worker_outcomes(self):
        from podforge.workers.dispatch import InlineDispatcher, WorkerName, WorkerOutcome

        seen = []

        def runner(name):
            async def run(trigger):
                seen.append((name, trigger.content_id))
                return WorkerOutcome(worker=name, status="ok")
            return run

        dispatcher = InlineDispatcher({w: runner(w) for w in WorkerName}, wait=True)
        outcomes = await dispatcher.dispatch_all(make_trigger())

        assert [o.status for o in outcomes] == ["ok", "ok", "ok"]
        assert sorted(seen) == sorted((w, 2) for w in WorkerName)

    @pytest.mark.asyncio
    async def test_fire_and_forget_then_drain(self):
        from podforge.workers.dispatch import InlineDispatcher, WorkerName, WorkerOutcome

        release = asyncio.Event()

        async def run(trigger):
            await release.wait()
            return WorkerOutcome(worker=WorkerName.AUDIO, status="ok")

        dispatcher = InlineDispatcher({WorkerName.AUDIO: run})
        outcomes = await dispatcher.dispatch_all(make_trigger(), workers=(WorkerName.AUDIO,))

        assert outcomes[0].status == "dispatched"
        release.set()
        drained = await dispatcher.drain()
        assert [o.status for o in drained] == ["ok"]

    @pytest.mark.asyncio
    async def test_drain_keeps_outcomes_of_workers_that_already_finished(self):
        from podforge.workers.dispatch import InlineDispatcher, WorkerName, WorkerOutcome

        async def quick(trigger):
            return WorkerOutcome(worker=WorkerName.AUDIO, status="ok")

        async def broken(trigger):
            raise RuntimeError("runner crashed")

        dispatcher = InlineDispatcher({WorkerName.AUDIO: quick, WorkerName.COVER: broken})
        await dispatcher.dispatch_all(make_trigger(), workers=(WorkerName.AUDIO, WorkerName.COVER))
        await asyncio.sleep(0.01)

        drained = await dispatcher.drain()
        by_worker = {o.worker: o for o in drained}
        assert by_worker[WorkerName.AUDIO].status == "ok"
        assert by_worker[WorkerName.COVER].status == "error"
        assert by_worker[WorkerName.COVER].error == "runner crashed"

        assert await dispatcher.drain() == []

    @pytest.mark.asyncio
    async def test_missing_runner_is_an_error_outcome(self):
        from podforge.workers.dispatch import InlineDispatcher, WorkerName

        outcomes = await InlineDispatcher({}, wait=True).dispatch_all(make_trigger(), workers=(WorkerName.COVER,))
        assert outcomes[0].status == "error"
        assert "No runner" in outcomes[0].error


@pytest.mark.unit
class TestHttpDispatcher:
    """Tests for HttpDispatcher with a mocked transport."""

    @pytest.mark.asyncio
    async def test_posts_to_worker_routes(self):
        from podforge.workers.dispatch import HttpDispatcher

        requests = []

        def handler(request: httpx.Request):
            requests.append(request)
            worker = {
                "/functions/generate-audio": "audio",
                "/functions/generate-cover-image": "cover",
                "/functions/generate-embedding": "embedding",
            }[request.url.path]
            return httpx.Response(200, json={"worker": worker, "status": "ok"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        dispatcher = HttpDispatcher("http://workers.local/", auth_token="secret", http_client=client)

        outcomes = await dispatcher.dispatch_all(make_trigger())
        await client.aclose()

        assert [o.status for o in outcomes] == ["ok", "ok", "ok"]
        assert len(requests) == 3
        for request in requests:
            assert request.headers["X-Correlation-Id"] == "trace-abc"
            assert request.headers["Authorization"] == "Bearer secret"
            assert json.loads(request.content) == {"job_id": 1, "content_id": 2, "trace_id": "trace-abc"}

    @pytest.mark.asyncio
    async def test_failed_invocation_does_not_raise(self):
        from podforge.workers.dispatch import HttpDispatcher

        def handler(request: httpx.Request):
            if request.url.path.endswith("generate-cover-image"):
                return httpx.Response(503, text="unavailable")
            return httpx.Response(202, text="accepted")

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        outcomes = await HttpDispatcher("http://workers.local", http_client=client).dispatch_all(make_trigger())
        await client.aclose()

        by_worker = {o.worker.value: o for o in outcomes}
        assert by_worker["audio"].status == "dispatched"
        assert by_worker["cover"].status == "error"
        assert "503" in by_worker["cover"].error
        assert by_worker["embedding"].status == "dispatched"

    @pytest.mark.asyncio
    async def test_connection_error(self):
        from podforge.workers.dispatch import HttpDispatcher

        def handler(request: httpx.Request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        outcomes = await HttpDispatcher("http://workers.local", http_client=client).dispatch_all(make_trigger())
        await client.aclose()

        assert all(o.status == "error" for o in outcomes)
        assert "Could not reach" in outcomes[0].error

    @pytest.mark.asyncio
    async def test_read_timeout_reports_worker_still_running(self):
        from podforge.workers.dispatch import HttpDispatcher, WorkerName

        def handler(request: httpx.Request):
            if request.url.path.endswith("generate-audio"):
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(200, json={"worker": "cover", "status": "ok"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        dispatcher = HttpDispatcher("http://workers.local", http_client=client, timeout=5)
        outcomes = await dispatcher.dispatch_all(make_trigger(), workers=(WorkerName.AUDIO, WorkerName.COVER))
        await client.aclose()

        assert outcomes[0].status == "dispatched"
        assert outcomes[0].detail == "running"
        assert outcomes[0].success is True
        assert outcomes[1].status == "ok"

    def test_default_timeout_covers_long_renders(self):
        from podforge.workers.dispatch import HttpDispatcher

        assert HttpDispatcher("http://workers.local").timeout >= 300
