from typing import Optional

from fastapi import APIRouter, Header, Request
from pydantic import BaseModel

from ..models import JobTrigger, WorkerTrigger
from ..services.job_queue import SubmissionRequest
from ..utils.logger import current_trace_id, get_logger
from ..workers.dispatch import WorkerName

logger = get_logger(__name__)

router = APIRouter()


class GeoIngestRequest(BaseModel):
    user_id: str
    place_id: str
    weather_snapshot: dict = {}


class GeoRouteRequest(BaseModel):
    draft_id: int
    user_intent_text: str


def _pipeline(request: Request):
    return request.app.state.pipeline


@router.post("/jobs", status_code=202)
async def submit_job(
    body: SubmissionRequest,
    request: Request,
    x_user_id: str = Header(...),
):
    """Queue a creation job for the calling user."""
    job = _pipeline(request).submitter.submit(x_user_id, body)
    return {"job_id": job.id, "status": job.status.value, "trace_id": current_trace_id()}


@router.get("/jobs/{job_id}")
async def get_job(job_id: int, request: Request):
    job = _pipeline(request).store.get_job(job_id)
    return job.model_dump(mode="json")


@router.get("/pods/{pod_id}")
async def get_pod(pod_id: int, request: Request):
    pod = _pipeline(request).store.get_pod(pod_id)
    return pod.model_dump(mode="json")


@router.post("/functions/process-podcast-job")
async def process_podcast_job(body: JobTrigger, request: Request):
    """Run the orchestrator for one job. Failures surface as 500."""
    trigger = body.model_copy(update={"trace_id": body.trace_id or current_trace_id()})
    result = await _pipeline(request).orchestrator.run(trigger)
    return result.model_dump(mode="json")


async def _run_worker(name: WorkerName, body: WorkerTrigger, request: Request):
    outcome = await _pipeline(request).worker(name).run(body)
    return outcome.model_dump(mode="json")


@router.post("/functions/generate-audio")
async def generate_audio(body: WorkerTrigger, request: Request):
    return await _run_worker(WorkerName.AUDIO, body, request)


@router.post("/functions/generate-cover-image")
async def generate_cover_image(body: WorkerTrigger, request: Request):
    return await _run_worker(WorkerName.COVER, body, request)


@router.post("/functions/generate-embedding")
async def generate_embedding(body: WorkerTrigger, request: Request):
    return await _run_worker(WorkerName.EMBEDDING, body, request)


@router.post("/functions/geo-ingest-context")
async def geo_ingest_context(body: GeoIngestRequest, request: Request):
    draft = _pipeline(request).gate.ingest(body.user_id, body.place_id, body.weather_snapshot)
    return {"draft_id": draft.id, "status": draft.status.value}


@router.post("/functions/geo-semantic-router")
async def geo_semantic_router(body: GeoRouteRequest, request: Request):
    decision = await _pipeline(request).gate.classify(
        body.draft_id,
        body.user_intent_text,
        trace_id=current_trace_id(),
    )
    return {
        "success": decision.approved,
        "verdict": decision.verdict.value,
        "reason": decision.reason,
        "classification": decision.content_type,
    }


@router.get("/health")
async def health(request: Request):
    validation = getattr(request.app.state, "validation", None)
    services: Optional[dict] = None
    if validation is not None:
        services = {name: r.status.value for name, r in validation.services.items()}
    return {"status": "healthy", "services": services}
