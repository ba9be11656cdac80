"""
Job orchestrator.

Owns one creation job from `pending` to a terminal status:

    pending -> processing -> curator -> writer -> pod insert -> fan-out -> completed
                                  \\-> any exception -> failed

Curator and writer failures fail the job before any pod exists. Worker
dispatch problems are logged and reported but never fail the job.
"""

from typing import Optional

from pydantic import BaseModel, Field

from ..errors import JobFailedError
from ..models import JobStatus, JobTrigger, WorkerTrigger
from ..utils.logger import bind_trace_id, get_logger
from ..workers.dispatch import WorkerOutcome

logger = get_logger(__name__)

ERROR_MESSAGE_LIMIT = 300


class OrchestratorResult(BaseModel):
    success: bool
    job_id: int
    pod_id: Optional[int] = None
    trace_id: str
    dispatch: list[WorkerOutcome] = Field(default_factory=list)


class JobOrchestrator:
    """Runs the curator, writer and fan-out for one job."""

    def __init__(self, store, curator, writer, dispatcher):
        self.store = store
        self.curator = curator
        self.writer = writer
        self.dispatcher = dispatcher

    async def run(self, trigger: JobTrigger) -> OrchestratorResult:
        trace_id = bind_trace_id(trigger.trace_id)
        job_id = trigger.job_id

        job = self.store.get_job(job_id)
        # Terminal or already running jobs are rejected here, before any work
        self.store.transition_job(job_id, JobStatus.PROCESSING)
        logger.info(f"Processing job {job_id} for user {job.user_id} ({job.payload.purpose})")

        try:
            dossier = await self.curator.curate(job.payload)
            if dossier.degraded:
                logger.warning(f"Job {job_id} continues with a dossier built from raw input")

            draft = await self.writer.write(dossier, job.payload)

            pod = self.store.create_pod(
                job.user_id,
                draft,
                parent_id=job.payload.parent_id or trigger.content_id,
                creation_data={
                    "job_id": job_id,
                    "trace_id": trace_id,
                    "purpose": job.payload.purpose,
                    "style": job.payload.style,
                    "main_thesis": dossier.main_thesis,
                    "key_facts": dossier.key_facts,
                    "degraded_research": dossier.degraded,
                },
            )
            self.store.attach_pod_to_job(job_id, pod.id)

            outcomes = await self.dispatcher.dispatch_all(
                WorkerTrigger(job_id=job_id, content_id=pod.id, trace_id=trace_id)
            )
            failed = [o for o in outcomes if not o.success]
            if failed:
                logger.warning(
                    f"Job {job_id}: {len(failed)} of {len(outcomes)} workers could not be dispatched"
                )

            self.store.transition_job(job_id, JobStatus.COMPLETED)

        except Exception as e:
            message = (str(e) or type(e).__name__)[:ERROR_MESSAGE_LIMIT]
            logger.exception(f"Job {job_id} failed: {message}")
            self.store.transition_job(job_id, JobStatus.FAILED, error_message=message)
            raise JobFailedError(job_id, message, trace_id) from e

        logger.info(f"Job {job_id} completed with pod {pod.id}")
        return OrchestratorResult(
            success=True,
            job_id=job_id,
            pod_id=pod.id,
            trace_id=trace_id,
            dispatch=outcomes,
        )
