"""Pipeline services: submission, orchestration, context gate and sweeper."""

from .context_gate import ContextGate
from .job_queue import JobSubmitter, SubmissionRequest
from .orchestrator import JobOrchestrator, OrchestratorResult
from .sweeper import StalledPodSweeper, SweepAction

__all__ = [
    "ContextGate",
    "JobOrchestrator",
    "JobSubmitter",
    "OrchestratorResult",
    "StalledPodSweeper",
    "SubmissionRequest",
    "SweepAction",
]
