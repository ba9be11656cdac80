"""
Writer stage: turns a research dossier into a titled narration script.

Unlike the curator there is no fallback here. A response that cannot be
decoded, or that carries an empty script body, fails the whole job.
"""

import json
from typing import Optional

from ..models import Dossier, JobPayload, ScriptDraft
from ..research.curator import build_raw_context, duration_bucket
from ..utils.json_tools import extract_json
from ..utils.logger import get_logger

logger = get_logger(__name__)

WORD_TARGETS = {
    "short": 350,
    "medium": 650,
    "long": 1000,
}

STYLE_GUIDES = {
    "solo": "A single narrator speaking directly to one listener.",
    "link": "A single narrator building a bridge between two ideas, revealing how one leads to the other.",
}


class Writer:
    """Generates the pod script with a forced-JSON call."""

    WRITER_PROMPT = """You are the head writer of a short-form audio podcast in Spanish (es-US).

ORIGINAL REQUEST:
{raw_context}

RESEARCH DOSSIER:
{dossier_json}

STYLE: {style_guide}
LENGTH: about {word_target} words ({duration})
DEPTH: {depth}
{tone_line}{archetype_line}
RULES:
- Build the episode around the main thesis and use the key facts.
- Write for the ear: short sentences, no lists, no stage directions.
- script_body may use simple HTML paragraphs (<p>) and <b> emphasis.
- script_plain is the same text with no markup, ready to be read aloud.

Return ONLY a JSON object:
{{
    "title": "Short, evocative episode title",
    "script_body": "<p>...</p>",
    "script_plain": "...",
    "sources": [{{"title": "...", "url": "..."}}]
}}"""

    def __init__(self, gateway, model: Optional[str] = None, temperature: float = 0.8):
        self.gateway = gateway
        self.model = model
        self.temperature = temperature

    def build_prompt(self, dossier: Dossier, payload: JobPayload) -> str:
        tone_line = f"TONE: {payload.tone}\n" if payload.tone else ""
        archetype_line = (
            f"NARRATIVE ARCHETYPE: {payload.narrative_archetype}\n"
            if payload.narrative_archetype else ""
        )
        return self.WRITER_PROMPT.format(
            raw_context=build_raw_context(payload.purpose, payload.inputs),
            dossier_json=json.dumps(dossier.model_dump(exclude={"degraded"}), ensure_ascii=False, indent=2),
            style_guide=STYLE_GUIDES.get(payload.style, STYLE_GUIDES["solo"]),
            word_target=WORD_TARGETS[duration_bucket(payload.duration)],
            duration=payload.duration,
            depth=payload.depth,
            tone_line=tone_line,
            archetype_line=archetype_line,
        )

    async def write(self, dossier: Dossier, payload: JobPayload) -> ScriptDraft:
        prompt = self.build_prompt(dossier, payload)
        text = await self.gateway.generate_text(
            prompt,
            force_json=True,
            temperature=self.temperature,
            model=self.model,
        )

        draft = ScriptDraft.from_model_output(extract_json(text))

        # The dossier's citations are kept when the writer drops them
        if not draft.sources and dossier.sources:
            draft.sources = list(dossier.sources)

        logger.info(f"Script ready: '{draft.title}' ({len(draft.script_plain.split())} words)")
        return draft
