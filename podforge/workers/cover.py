"""Cover-art worker: generates the pod cover and writes the image columns."""

from ..models import ContentRecord, CreationJob, Writer
from ..storage.assets import cover_path
from .base import AssetWorker
from .dispatch import WorkerName, WorkerOutcome

COVER_STYLE = "digital art, cinematic lighting, high detail, epic, abstract conceptual"


def build_visual_prompt(title: str, script_text: str) -> str:
    context = " ".join(script_text[:400].splitlines())
    return (
        f'An artwork for a podcast cover titled: "{title}". '
        f'The podcast explores these ideas: "{context}...". '
        f"Style must be: {COVER_STYLE}."
    )


class CoverWorker(AssetWorker):
    name = WorkerName.COVER

    def __init__(self, store, gateway, storage):
        super().__init__(store)
        self.gateway = gateway
        self.storage = storage

    async def process(self, job: CreationJob, pod: ContentRecord) -> WorkerOutcome:
        prompt = build_visual_prompt(pod.title, pod.script_text.script_plain or pod.script_text.script_body)
        image = await self.gateway.generate_image(prompt)
        url = self.storage.upload(cover_path(pod.user_id, pod.id), image, "image/png")

        self.store.update_pod_fields(
            pod.id,
            {"cover_image_url": url, "image_ready": True},
            owner=Writer.IMAGE,
        )
        self.store.try_complete_pod(pod.id)

        return WorkerOutcome(worker=self.name, status="ok", detail=url)
