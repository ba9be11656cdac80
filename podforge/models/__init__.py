"""Data models for the generation pipeline."""

from .jobs import (
    CreationJob,
    JobPayload,
    JobStatus,
    JobTrigger,
    WorkerTrigger,
    check_job_transition,
)
from .research import Dossier, ScriptDraft, Source
from .pods import COLUMN_OWNERS, ContentRecord, PodStatus, ProcessingStatus, ScriptText, Writer
from .classification import ClassificationDecision, DraftStatus, GeoDraft, Verdict

__all__ = [
    # Jobs
    "CreationJob",
    "JobPayload",
    "JobStatus",
    "JobTrigger",
    "WorkerTrigger",
    "check_job_transition",
    # Research
    "Dossier",
    "ScriptDraft",
    "Source",
    # Pods
    "COLUMN_OWNERS",
    "ContentRecord",
    "PodStatus",
    "ProcessingStatus",
    "ScriptText",
    "Writer",
    # Classification
    "ClassificationDecision",
    "DraftStatus",
    "GeoDraft",
    "Verdict",
]
