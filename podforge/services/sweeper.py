"""
Stalled pod sweeper.

A pod whose worker invocation was lost keeps a readiness flag false
forever. The sweeper finds pods still `processing` after a quiet period,
re-dispatches only the workers whose flag is still false, and after a
bounded number of attempts marks the pod `failed`.
"""

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field

from ..models import ContentRecord, WorkerTrigger, Writer
from ..utils.logger import bind_trace_id, get_logger
from ..workers.dispatch import WorkerName, WorkerOutcome

logger = get_logger(__name__)


class SweepAction(BaseModel):
    pod_id: int
    action: str  # completed, redispatched, failed
    workers: list[WorkerName] = Field(default_factory=list)
    outcomes: list[WorkerOutcome] = Field(default_factory=list)


def missing_workers(pod: ContentRecord) -> tuple[WorkerName, ...]:
    workers = []
    if not pod.audio_ready:
        workers.append(WorkerName.AUDIO)
    if not pod.image_ready:
        workers.append(WorkerName.COVER)
    return tuple(workers)


class StalledPodSweeper:
    def __init__(
        self,
        store,
        dispatcher,
        stale_after_seconds: int = 600,
        max_redispatch_attempts: int = 2,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.stale_after = timedelta(seconds=stale_after_seconds)
        self.max_redispatch_attempts = max_redispatch_attempts

    async def sweep(self, now: Optional[datetime] = None) -> list[SweepAction]:
        now = now or datetime.utcnow()
        stalled = self.store.list_stalled_pods(now - self.stale_after)
        if stalled:
            logger.info(f"Found {len(stalled)} stalled pods")

        actions = []
        for pod in stalled:
            actions.append(await self._handle(pod))
        return actions

    async def _handle(self, pod: ContentRecord) -> SweepAction:
        workers = missing_workers(pod)

        if not workers:
            # Both flags set but the finalizing write was lost
            self.store.try_complete_pod(pod.id)
            return SweepAction(pod_id=pod.id, action="completed")

        job_id = pod.creation_data.get("job_id")
        if job_id is None or pod.redispatch_count >= self.max_redispatch_attempts:
            logger.warning(
                f"Pod {pod.id} still missing {[w.value for w in workers]} "
                f"after {pod.redispatch_count} re-dispatches, marking failed"
            )
            self.store.mark_pod_failed(pod.id, owner=Writer.SWEEPER)
            return SweepAction(pod_id=pod.id, action="failed", workers=list(workers))

        trace_id = bind_trace_id(pod.creation_data.get("trace_id"))
        self.store.update_pod_fields(
            pod.id,
            {"redispatch_count": pod.redispatch_count + 1},
            owner=Writer.SWEEPER,
        )
        logger.info(f"Re-dispatching {[w.value for w in workers]} for pod {pod.id}")

        outcomes = await self.dispatcher.dispatch_all(
            WorkerTrigger(job_id=job_id, content_id=pod.id, trace_id=trace_id),
            workers=workers,
        )
        return SweepAction(pod_id=pod.id, action="redispatched", workers=list(workers), outcomes=outcomes)
