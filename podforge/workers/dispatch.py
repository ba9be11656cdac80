"""
Fan-out dispatch of the asset workers.

The orchestrator hands every new pod to three workers (audio, cover,
embedding). Dispatch settles all invocations and reports one outcome per
worker; a failed invocation never fails the job.
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx
from pydantic import BaseModel

from ..errors import DispatchError
from ..models import WorkerTrigger
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WorkerName(str, Enum):
    AUDIO = "audio"
    COVER = "cover"
    EMBEDDING = "embedding"


ALL_WORKERS = (WorkerName.AUDIO, WorkerName.COVER, WorkerName.EMBEDDING)

# HTTP route of each worker under /functions
WORKER_ROUTES = {
    WorkerName.AUDIO: "generate-audio",
    WorkerName.COVER: "generate-cover-image",
    WorkerName.EMBEDDING: "generate-embedding",
}


class WorkerOutcome(BaseModel):
    """Result of one worker invocation."""
    worker: WorkerName
    status: str  # ok, skipped, dispatched, error
    detail: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status != "error"


async def settle_all(calls: dict[WorkerName, Awaitable[WorkerOutcome]]) -> list[WorkerOutcome]:
    """
    Await every call and convert exceptions into error outcomes.

    Outcomes are returned in the order of `calls`.
    """
    names = list(calls)
    results = await asyncio.gather(*calls.values(), return_exceptions=True)

    outcomes = []
    for name, result in zip(names, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            outcomes.append(WorkerOutcome(worker=name, status="error", error=str(result) or type(result).__name__))
        else:
            outcomes.append(result)
    return outcomes


def log_outcomes(outcomes: list[WorkerOutcome], content_id: int):
    for outcome in outcomes:
        if outcome.success:
            logger.info(f"Worker {outcome.worker.value} for pod {content_id}: {outcome.status}")
        else:
            logger.error(f"Worker {outcome.worker.value} for pod {content_id} failed: {outcome.error}")


class Dispatcher:
    """Base dispatcher: subclasses implement invoke()."""

    async def invoke(self, worker: WorkerName, trigger: WorkerTrigger) -> WorkerOutcome:
        raise NotImplementedError

    async def dispatch_all(
        self,
        trigger: WorkerTrigger,
        workers: tuple[WorkerName, ...] = ALL_WORKERS,
    ) -> list[WorkerOutcome]:
        outcomes = await settle_all({w: self.invoke(w, trigger) for w in workers})
        log_outcomes(outcomes, trigger.content_id)
        return outcomes


WorkerRunner = Callable[[WorkerTrigger], Awaitable[WorkerOutcome]]


class InlineDispatcher(Dispatcher):
    """
    Runs workers as asyncio tasks in this process.

    With wait=False (the default) invoke() returns as soon as the task is
    scheduled. Finished outcomes are kept until drain() collects them.
    """

    def __init__(self, runners: dict[WorkerName, WorkerRunner], wait: bool = False):
        self.runners = runners
        self.wait = wait
        self._tasks: set[asyncio.Task] = set()
        self._finished: list[WorkerOutcome] = []

    async def invoke(self, worker: WorkerName, trigger: WorkerTrigger) -> WorkerOutcome:
        runner = self.runners.get(worker)
        if runner is None:
            raise DispatchError(f"No runner registered for worker {worker.value}")

        if self.wait:
            return await runner(trigger)

        task = asyncio.create_task(runner(trigger), name=f"{worker.value}-{trigger.content_id}")
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._collect(worker, trigger.content_id, t))
        return WorkerOutcome(worker=worker, status="dispatched")

    def _collect(self, worker: WorkerName, content_id: int, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            outcome = WorkerOutcome(worker=worker, status="error", error="cancelled")
        elif task.exception() is not None:
            error = task.exception()
            outcome = WorkerOutcome(worker=worker, status="error", error=str(error) or type(error).__name__)
        else:
            outcome = task.result()
        self._finished.append(outcome)
        log_outcomes([outcome], content_id)

    async def drain(self) -> list[WorkerOutcome]:
        """
        Wait for background workers still running.

        Returns the outcome of every background worker that finished since
        the last drain, including those that finished before this call.
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        # Done callbacks run on the next loop iteration
        await asyncio.sleep(0)
        outcomes, self._finished = self._finished, []
        return outcomes


class HttpDispatcher(Dispatcher):
    """Invokes each worker through its HTTP route."""

    def __init__(
        self,
        base_url: str,
        auth_token: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 300.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        self._http_client = http_client

    def _headers(self, trigger: WorkerTrigger) -> dict:
        headers = {"Content-Type": "application/json", "X-Correlation-Id": trigger.trace_id}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    async def _post(self, url: str, **kwargs) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(url, timeout=self.timeout, **kwargs)
        async with httpx.AsyncClient() as client:
            return await client.post(url, timeout=self.timeout, **kwargs)

    async def invoke(self, worker: WorkerName, trigger: WorkerTrigger) -> WorkerOutcome:
        url = f"{self.base_url}/functions/{WORKER_ROUTES[worker]}"
        try:
            response = await self._post(url, json=trigger.model_dump(), headers=self._headers(trigger))
        except httpx.ReadTimeout:
            # The request was delivered; the worker keeps running server-side
            logger.warning(f"No reply from {url} within {self.timeout}s, worker still running")
            return WorkerOutcome(worker=worker, status="dispatched", detail="running")
        except httpx.HTTPError as e:
            raise DispatchError(f"Could not reach {url}: {e}") from e

        if response.status_code >= 300:
            raise DispatchError(f"{url} returned {response.status_code}: {response.text[:200]}")

        try:
            return WorkerOutcome.model_validate(response.json())
        except ValueError:
            return WorkerOutcome(worker=worker, status="dispatched")
