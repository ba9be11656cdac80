"""
Content record ("pod") models and column ownership.

The pod row is written by several independent actors. Each actor owns a
disjoint set of columns; the store rejects writes outside that set.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from .research import Source


class PodStatus(str, Enum):
    """Editorial status of a pod."""
    PENDING_APPROVAL = "pending_approval"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ProcessingStatus(str, Enum):
    """Asset lifecycle of a pod as seen by viewers."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Writer(str, Enum):
    """Actors allowed to mutate a pod row."""
    ORCHESTRATOR = "orchestrator"
    AUDIO = "audio"
    IMAGE = "image"
    EMBEDDING = "embedding"
    FINALIZER = "finalizer"
    SWEEPER = "sweeper"


COLUMN_OWNERS: dict[Writer, frozenset[str]] = {
    Writer.ORCHESTRATOR: frozenset({
        "user_id", "title", "script_text", "status", "processing_status",
        "sources", "parent_id", "creation_data",
    }),
    Writer.AUDIO: frozenset({"audio_url", "duration_seconds", "audio_ready"}),
    Writer.IMAGE: frozenset({"cover_image_url", "image_ready"}),
    # Embeddings live in their own table; the worker never touches the pod row.
    Writer.EMBEDDING: frozenset(),
    Writer.FINALIZER: frozenset({"processing_status"}),
    Writer.SWEEPER: frozenset({"processing_status", "redispatch_count"}),
}


class ScriptText(BaseModel):
    """Script body in display form plus the plain text used for speech."""
    script_body: str
    script_plain: str


class ContentRecord(BaseModel):
    """The artifact being built: title, script, audio and cover."""

    id: int
    user_id: str
    title: str
    script_text: ScriptText
    status: PodStatus = PodStatus.PENDING_APPROVAL
    processing_status: ProcessingStatus = ProcessingStatus.PENDING

    # Readiness flags, one per asset worker
    audio_ready: bool = False
    image_ready: bool = False

    audio_url: Optional[str] = None
    cover_image_url: Optional[str] = None
    duration_seconds: int = 0

    sources: list[Source] = Field(default_factory=list)
    parent_id: Optional[int] = None
    creation_data: dict[str, Any] = Field(default_factory=dict)
    redispatch_count: int = 0

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def assets_ready(self) -> bool:
        return self.audio_ready and self.image_ready
