"""
Context classification gate for location-triggered input.

    scanning -> rejected   (reason stored, no job is ever created)
    scanning -> analyzing  (caller may go on to script generation)
"""

from typing import Optional

from ..errors import InvalidTransitionError
from ..models import ClassificationDecision, DraftStatus, GeoDraft
from ..utils.json_tools import extract_json
from ..utils.logger import bind_trace_id, get_logger
from ..utils.validation import validate_string

logger = get_logger(__name__)


class ContextGate:
    """Decides whether a user intent at a place is worth a pod."""

    GATE_PROMPT = """You are the urban gatekeeper of a location-based audio podcast app.

A listener is standing at a place and told us what they want to hear about.

PLACE: {place}
WEATHER: {weather}
USER INTENT: "{user_intent}"

Approve only if the intent, together with the place, can support a short
factual or narrative episode (history, architecture, culture, nature,
a meaningful local story). Reject tests, gibberish, requests unrelated to
the place, or places with nothing to tell.

Return ONLY a JSON object:
{{
    "verdict": "APPROVED" or "REJECTED",
    "classification": "history | culture | nature | architecture | story | invalid",
    "reason": "One sentence explaining the decision"
}}"""

    def __init__(self, store, gateway):
        self.store = store
        self.gateway = gateway

    def ingest(self, user_id: str, place_id: str, weather_snapshot: Optional[dict] = None) -> GeoDraft:
        """Create a staging record in `scanning` for the detected place."""
        draft = self.store.create_draft(user_id, place_id, weather_snapshot or {})
        logger.info(f"Staged geo draft {draft.id} at {place_id}")
        return draft

    async def classify(
        self,
        draft_id: int,
        user_intent_text: str,
        trace_id: Optional[str] = None,
    ) -> ClassificationDecision:
        bind_trace_id(trace_id)

        user_intent_text = validate_string(user_intent_text, max_length=1000)
        if not user_intent_text:
            raise ValueError("user_intent_text is required")

        draft = self.store.get_draft(draft_id)
        if draft.status != DraftStatus.SCANNING:
            raise InvalidTransitionError(f"Draft {draft_id} is already {draft.status.value}")

        prompt = self.GATE_PROMPT.format(
            place=draft.detected_place_id,
            weather=draft.weather_snapshot.get("condition") or "unknown",
            user_intent=user_intent_text,
        )
        text = await self.gateway.generate_multimodal(prompt, force_json=True)
        decision = ClassificationDecision.from_model_output(extract_json(text))

        if decision.approved:
            self.store.update_draft(
                draft_id,
                status=DraftStatus.ANALYZING,
                rejection_reason=None,
                user_intent_text=user_intent_text,
                content_type=decision.content_type,
            )
            logger.info(f"Draft {draft_id} approved as {decision.content_type}")
        else:
            self.store.update_draft(
                draft_id,
                status=DraftStatus.REJECTED,
                rejection_reason=decision.reason,
                user_intent_text=user_intent_text,
                content_type=decision.content_type,
            )
            logger.info(f"Draft {draft_id} rejected: {decision.reason}")

        return decision
