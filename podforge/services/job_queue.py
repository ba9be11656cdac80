"""
Job submission.

Validates what the client sends, normalizes it into a JobPayload and
persists a pending job. The orchestrator is triggered separately with
the returned job id.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from ..models import CreationJob, JobPayload
from ..utils.json_tools import pick
from ..utils.logger import get_logger
from ..utils.validation import validate_string

logger = get_logger(__name__)

# Writer and voice parameters travel inside `inputs` under client names
INPUT_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "duration": ("duration", "duracion"),
    "depth": ("depth", "narrativeDepth", "profundidad"),
    "tone": ("tone", "tono"),
    "narrative_archetype": ("narrativeArchetype", "narrative_archetype", "archetype"),
    "voice_gender": ("voiceGender", "voice_gender"),
    "voice_style": ("voiceStyle", "voice_style"),
    "voice_pace": ("voicePace", "voice_pace"),
}


class SubmissionRequest(BaseModel):
    """Body of a job submission."""
    style: Literal["solo", "link"]
    inputs: dict[str, Any] = Field(default_factory=dict)
    purpose: Optional[str] = None
    mode: str = "standard"
    parent_id: Optional[int] = None


def build_payload(request: SubmissionRequest) -> JobPayload:
    fields: dict[str, Any] = {}
    for field, aliases in INPUT_FIELD_ALIASES.items():
        value = pick(request.inputs, aliases)
        if value is not None:
            fields[field] = validate_string(value, max_length=100)

    return JobPayload(
        purpose=validate_string(request.purpose, max_length=30, default="learn") or "learn",
        style=request.style,
        mode=validate_string(request.mode, max_length=30, default="standard"),
        inputs=request.inputs,
        parent_id=request.parent_id,
        **fields,
    )


class JobSubmitter:
    def __init__(self, store):
        self.store = store

    def submit(self, user_id: str, request: SubmissionRequest) -> CreationJob:
        payload = build_payload(request)
        job = self.store.create_job(user_id, payload)
        logger.info(f"Queued job {job.id} ({payload.purpose}/{payload.style}) for user {user_id}")
        return job
