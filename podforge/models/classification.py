"""
Context classification models for location-triggered input.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field

from ..errors import DecodeError
from ..utils.json_tools import pick


class Verdict(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


_VERDICT_VARIANTS = {
    "approved": Verdict.APPROVED,
    "approve": Verdict.APPROVED,
    "aprobado": Verdict.APPROVED,
    "accepted": Verdict.APPROVED,
    "rejected": Verdict.REJECTED,
    "reject": Verdict.REJECTED,
    "rechazado": Verdict.REJECTED,
    "denied": Verdict.REJECTED,
}


class DraftStatus(str, Enum):
    """Staging record lifecycle: scanning -> {rejected | analyzing}."""
    SCANNING = "scanning"
    ANALYZING = "analyzing"
    REJECTED = "rejected"


class ClassificationDecision(BaseModel):
    verdict: Verdict
    content_type: str = "unknown"
    reason: str

    @property
    def approved(self) -> bool:
        return self.verdict == Verdict.APPROVED

    @classmethod
    def from_model_output(cls, data: Mapping[str, Any]) -> "ClassificationDecision":
        raw_verdict = pick(data, ("verdict", "veredicto", "decision"))
        if not raw_verdict:
            raise DecodeError("Classification has no verdict")

        verdict = _VERDICT_VARIANTS.get(str(raw_verdict).strip().lower())
        if verdict is None:
            raise DecodeError(f"Unknown classification verdict: {raw_verdict!r}")

        reason = pick(data, ("reason", "razon", "explanation"))
        if not reason:
            raise DecodeError("Classification has no reason")

        content_type = pick(data, ("classification", "content_type", "type", "tipo"), default="unknown")
        return cls(verdict=verdict, content_type=str(content_type), reason=str(reason))


class GeoDraft(BaseModel):
    """Staging record for location-triggered content."""
    id: int
    user_id: str
    detected_place_id: str
    weather_snapshot: dict[str, Any] = Field(default_factory=dict)
    status: DraftStatus = DraftStatus.SCANNING
    rejection_reason: Optional[str] = None
    user_intent_text: Optional[str] = None
    content_type: Optional[str] = None
    created_at: Optional[datetime] = None
