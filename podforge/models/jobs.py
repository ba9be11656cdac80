"""
Creation job models and the job status state machine.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..errors import InvalidTransitionError


class JobStatus(str, Enum):
    """Lifecycle of a creation job."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_JOB_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

ALLOWED_JOB_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


def check_job_transition(current: JobStatus, target: JobStatus) -> None:
    """Raise InvalidTransitionError unless current -> target is allowed."""
    current = JobStatus(current)
    target = JobStatus(target)
    if current in TERMINAL_JOB_STATUSES:
        raise InvalidTransitionError(
            f"Job is already {current.value}; cannot move to {target.value}"
        )
    if target not in ALLOWED_JOB_TRANSITIONS[current]:
        raise InvalidTransitionError(f"Cannot move job from {current.value} to {target.value}")


class JobPayload(BaseModel):
    """
    Everything the pipeline needs to build one pod.
    Persisted by the submitter before the orchestrator is triggered.
    """

    purpose: str = Field(default="learn", description="learn, explore, inspire, reflect, answer, freestyle")
    style: str = Field(default="solo", description="solo, link")
    mode: str = Field(default="standard", description="Generation mode")
    inputs: dict[str, Any] = Field(default_factory=dict, description="Raw topic inputs")

    # Writer parameters
    duration: str = "3-5 min"
    depth: str = "standard"
    tone: Optional[str] = None
    narrative_archetype: Optional[str] = None

    # Voice parameters
    voice_gender: str = "Masculino"
    voice_style: str = "Profesional"
    voice_pace: str = "Moderado"

    # Reply / remix flows
    parent_id: Optional[int] = None


class CreationJob(BaseModel):
    """A request to produce one piece of content."""

    id: int
    user_id: str
    payload: JobPayload
    status: JobStatus = JobStatus.PENDING
    micro_pod_id: Optional[int] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES


class JobTrigger(BaseModel):
    """Minimal payload that starts an orchestrator run."""
    job_id: int
    content_id: Optional[int] = None
    trace_id: Optional[str] = None


class WorkerTrigger(BaseModel):
    """Payload handed to each fan-out worker."""
    job_id: int
    content_id: int
    trace_id: str
