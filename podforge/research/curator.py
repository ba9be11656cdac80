"""
Curator stage: research dossier for a pod topic.

Primary path is a search-grounded call whose prose answer is scanned for a
JSON object. If that fails or the dossier is unusable, one forced-JSON
retry runs without web access. If that fails too, a degenerate dossier is
built from the raw input so the pipeline always moves on to the writer.
"""

from typing import Any, Optional

from ..models import Dossier, JobPayload
from ..utils.json_tools import extract_json
from ..utils.logger import get_logger

logger = get_logger(__name__)


# (duration bucket, depth bucket) -> (min sources, max sources)
SOURCE_COUNT_TABLE: dict[tuple[str, str], tuple[int, int]] = {
    ("short", "shallow"): (2, 4),
    ("short", "standard"): (2, 4),
    ("short", "deep"): (4, 6),
    ("medium", "shallow"): (2, 4),
    ("medium", "standard"): (2, 4),
    ("medium", "deep"): (6, 8),
    ("long", "shallow"): (4, 6),
    ("long", "standard"): (6, 10),
    ("long", "deep"): (10, 15),
}


def duration_bucket(duration: Optional[str]) -> str:
    """Map a duration label ("1-3 min", "media", "5+ min") to short/medium/long."""
    value = (duration or "").strip().lower()
    if not value:
        return "medium"
    if value in ("short", "corta", "corto") or value.startswith("1-3") or value.startswith("1 -"):
        return "short"
    if value in ("long", "larga", "largo") or value.startswith("5+") or value.startswith("5-") or "+" in value:
        return "long"
    return "medium"


def depth_bucket(depth: Optional[str]) -> str:
    """Map a depth label to shallow/standard/deep."""
    value = (depth or "").strip().lower()
    if value in ("shallow", "superficial", "basico", "básico", "basic"):
        return "shallow"
    if value in ("deep", "profunda", "profundo", "avanzado"):
        return "deep"
    return "standard"


def source_count_range(duration: Optional[str], depth: Optional[str]) -> tuple[int, int]:
    return SOURCE_COUNT_TABLE[(duration_bucket(duration), depth_bucket(depth))]


def build_raw_context(purpose: Optional[str], inputs: dict[str, Any]) -> str:
    """Human-readable topic text for the purpose of the request."""
    def get(*keys: str) -> str:
        for key in keys:
            value = inputs.get(key)
            if value:
                return str(value).strip()
        return ""

    purpose = (purpose or "learn").lower()

    if purpose == "explore":
        return (
            f"Connect '{get('topicA', 'topic_a')}' with '{get('topicB', 'topic_b')}'. "
            f"Catalyst: {get('catalyst') or 'find the unexpected link'}."
        )
    if purpose == "inspire":
        return (
            f"Archetype: {get('archetype')}. Topic: {get('archetype_topic', 'topic')}. "
            f"Emotional goal: {get('archetype_goal', 'goal')}."
        )
    if purpose == "reflect":
        return f"Legacy lesson: {get('legacy_lesson', 'topic')}."
    if purpose == "answer":
        return f"Question to answer: {get('question', 'topic')}"

    # learn, freestyle and anything else
    topic = get('solo_topic', 'topic')
    motivation = get('solo_motivation', 'motivation')
    if motivation:
        return f"{topic}. Motivation: {motivation}"
    return topic


class Curator:
    """
    Builds a research dossier for the writer.

    Never raises: every failure path ends in a usable Dossier.
    """

    CURATOR_PROMPT = """You are the research curator of a short-form audio podcast.

TOPIC:
{raw_context}

PURPOSE: {purpose}
TARGET LENGTH: {duration} | DEPTH: {depth}

Research the topic and gather between {min_sources} and {max_sources} reliable sources.

Return ONLY a JSON object:
{{
    "main_thesis": "The one idea the episode should defend",
    "key_facts": ["Concrete, verifiable fact", "..."],
    "sources": [{{"title": "...", "url": "https://...", "snippet": "..."}}]
}}"""

    NO_WEB_ADDENDUM = """

NOTE: You have no web access for this answer. Use only your own knowledge,
cite well-known reference works as sources and do not invent URLs."""

    def __init__(self, gateway, temperature: float = 0.3):
        self.gateway = gateway
        self.temperature = temperature

    def build_prompt(self, payload: JobPayload) -> tuple[str, str, tuple[int, int]]:
        raw_context = build_raw_context(payload.purpose, payload.inputs)
        min_sources, max_sources = source_count_range(payload.duration, payload.depth)
        prompt = self.CURATOR_PROMPT.format(
            raw_context=raw_context,
            purpose=payload.purpose,
            duration=payload.duration,
            depth=payload.depth,
            min_sources=min_sources,
            max_sources=max_sources,
        )
        return raw_context, prompt, (min_sources, max_sources)

    async def curate(self, payload: JobPayload) -> Dossier:
        raw_context, prompt, (min_sources, max_sources) = self.build_prompt(payload)

        # Primary: search grounded, prose answer with embedded JSON
        try:
            text = await self.gateway.generate_text(prompt, use_search=True, temperature=self.temperature)
            dossier = Dossier.from_model_output(extract_json(text))
            return self._finalize(dossier, min_sources, max_sources)
        except Exception as e:
            logger.warning(f"Grounded research failed, retrying without web access: {e}")

        # Fallback: forced JSON, no tools
        try:
            text = await self.gateway.generate_text(
                prompt + self.NO_WEB_ADDENDUM,
                force_json=True,
                temperature=self.temperature,
            )
            dossier = Dossier.from_model_output(extract_json(text))
            return self._finalize(dossier, min_sources, max_sources)
        except Exception as e:
            logger.error(f"Research fallback failed, using raw input as dossier: {e}")

        return Dossier.from_raw_input(raw_context)

    def _finalize(self, dossier: Dossier, min_sources: int, max_sources: int) -> Dossier:
        if len(dossier.sources) > max_sources:
            dossier.sources = dossier.sources[:max_sources]
        if len(dossier.sources) < min_sources:
            logger.info(f"Dossier has {len(dossier.sources)} sources, fewer than the {min_sources} requested")
        logger.info(
            f"Dossier ready: {len(dossier.key_facts)} facts, {len(dossier.sources)} sources"
        )
        return dossier
