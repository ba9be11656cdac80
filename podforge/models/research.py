"""
Research and script models with their decode step.

Curator and writer prompts have drifted over time, so the same field
arrives under several names (`title` vs `suggested_title`, `facts` vs
`key_facts`). `from_model_output` maps every known variant onto one
canonical struct and raises DecodeError when it cannot.
"""

from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field

from ..errors import DecodeError, EmptyScriptError
from ..utils.json_tools import as_text_list, pick, strip_html

THESIS_ALIASES = ("main_thesis", "thesis", "tesis_principal", "tesis")
FACTS_ALIASES = ("key_facts", "facts", "hechos_clave", "hechos")
SOURCES_ALIASES = ("sources", "fuentes", "references")
TITLE_ALIASES = ("title", "suggested_title", "titulo")
BODY_ALIASES = ("script_body", "script", "body", "guion")
PLAIN_ALIASES = ("script_plain", "plain_text", "texto_plano")


class Source(BaseModel):
    """A citation gathered during research."""
    title: str
    url: Optional[str] = None
    snippet: Optional[str] = None
    origin: str = Field(default="web", description="web, model, input")

    @classmethod
    def from_any(cls, value: Any) -> "Source":
        if isinstance(value, str):
            if value.startswith("http"):
                return cls(title=value, url=value)
            return cls(title=value)
        if isinstance(value, Mapping):
            title = pick(value, ("title", "name", "titulo", "url"))
            if not title:
                raise DecodeError(f"Source without title or url: {dict(value)}")
            return cls(
                title=str(title),
                url=pick(value, ("url", "link", "uri")),
                snippet=pick(value, ("snippet", "content", "summary")),
                origin=str(value.get("origin") or "web"),
            )
        raise DecodeError(f"Unsupported source entry: {value!r}")


class Dossier(BaseModel):
    """Curator output: ephemeral, consumed once by the writer."""
    main_thesis: str
    key_facts: list[str] = Field(default_factory=list)
    sources: list[Source] = Field(default_factory=list)
    degraded: bool = Field(default=False, description="Built from raw input after research failed")

    @classmethod
    def from_model_output(cls, data: Mapping[str, Any]) -> "Dossier":
        thesis = pick(data, THESIS_ALIASES)
        facts = as_text_list(pick(data, FACTS_ALIASES))

        if not thesis and not facts:
            raise DecodeError("Dossier has neither a thesis nor key facts")

        raw_sources = pick(data, SOURCES_ALIASES, default=[])
        if not isinstance(raw_sources, list):
            raise DecodeError(f"Dossier sources must be a list, got {type(raw_sources).__name__}")

        return cls(
            main_thesis=str(thesis) if thesis else facts[0],
            key_facts=facts,
            sources=[Source.from_any(s) for s in raw_sources],
        )

    @classmethod
    def from_raw_input(cls, raw_text: str) -> "Dossier":
        """Degenerate dossier used when research produced nothing usable."""
        return cls(
            main_thesis=raw_text.strip() or "Untitled topic",
            key_facts=[],
            sources=[],
            degraded=True,
        )


class ScriptDraft(BaseModel):
    """Writer output."""
    title: str
    script_body: str
    script_plain: str
    sources: list[Source] = Field(default_factory=list)

    @classmethod
    def from_model_output(cls, data: Mapping[str, Any]) -> "ScriptDraft":
        body = pick(data, BODY_ALIASES)
        if isinstance(body, list):
            # Dialogue form: [{"speaker": ..., "line": ...}]
            body = "\n\n".join(as_text_list([
                item.get("line", item.get("text")) if isinstance(item, Mapping) else item
                for item in body
            ]))
        if not body or not str(body).strip():
            raise EmptyScriptError()

        title = pick(data, TITLE_ALIASES)
        if not title:
            raise DecodeError("Script has no title")

        body = str(body).strip()
        plain = pick(data, PLAIN_ALIASES) or " ".join(strip_html(body).split())

        raw_sources = pick(data, SOURCES_ALIASES, default=[])
        if not isinstance(raw_sources, list):
            raise DecodeError("Script sources must be a list")

        return cls(
            title=str(title).strip(),
            script_body=body,
            script_plain=str(plain).strip(),
            sources=[Source.from_any(s) for s in raw_sources],
        )
