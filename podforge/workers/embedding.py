"""Embedding worker: indexes the script for semantic search."""

from ..models import ContentRecord, CreationJob
from ..research.curator import build_raw_context
from ..utils.json_tools import strip_html
from .base import AssetWorker
from .dispatch import WorkerName, WorkerOutcome

MIN_EMBEDDING_CHARS = 50
MAX_EMBEDDING_CHARS = 8000


def embedding_text(job: CreationJob, pod: ContentRecord) -> str:
    """Plain script, then display script, then the raw request text."""
    text = (
        pod.script_text.script_plain
        or pod.script_text.script_body
        or build_raw_context(job.payload.purpose, job.payload.inputs)
    )
    return " ".join(strip_html(text).split())


class EmbeddingWorker(AssetWorker):
    name = WorkerName.EMBEDDING

    def __init__(self, store, gateway):
        super().__init__(store)
        self.gateway = gateway

    async def process(self, job: CreationJob, pod: ContentRecord) -> WorkerOutcome:
        text = embedding_text(job, pod)
        if len(text) < MIN_EMBEDDING_CHARS:
            return WorkerOutcome(
                worker=self.name,
                status="skipped",
                detail=f"Text too short to embed ({len(text)} chars)",
            )

        vector = await self.gateway.embed_text(text[:MAX_EMBEDDING_CHARS])
        self.store.replace_embedding(pod.id, vector)

        return WorkerOutcome(worker=self.name, status="ok", detail=f"{len(vector)} dimensions")
