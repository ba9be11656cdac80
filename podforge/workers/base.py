"""
Base class for the asset workers.

A worker is invoked with ids only and re-reads what it needs from the
store, so running it again for the same pod is safe. Failures are logged
and reported in the outcome; the pod keeps its readiness flag false.
"""

from ..models import ContentRecord, CreationJob, WorkerTrigger
from ..utils.logger import bind_trace_id, get_logger
from .dispatch import WorkerName, WorkerOutcome

logger = get_logger(__name__)


class AssetWorker:
    name: WorkerName

    def __init__(self, store):
        self.store = store

    async def process(self, job: CreationJob, pod: ContentRecord) -> WorkerOutcome:
        raise NotImplementedError

    async def run(self, trigger: WorkerTrigger) -> WorkerOutcome:
        bind_trace_id(trigger.trace_id)
        logger.info(f"Worker {self.name.value} started for pod {trigger.content_id}")
        try:
            job = self.store.get_job(trigger.job_id)
            pod = self.store.get_pod(trigger.content_id)
            outcome = await self.process(job, pod)
        except Exception as e:
            logger.exception(f"Worker {self.name.value} failed for pod {trigger.content_id}: {e}")
            return WorkerOutcome(worker=self.name, status="error", error=str(e)[:300])

        logger.info(f"Worker {self.name.value} finished for pod {trigger.content_id}: {outcome.status}")
        return outcome
