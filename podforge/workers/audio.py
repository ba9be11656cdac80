"""Audio worker: narrates the script and writes the audio columns."""

from ..gateway.google_tts import resolve_speaking_rate, resolve_voice
from ..models import ContentRecord, CreationJob, Writer
from ..storage.assets import audio_path
from .base import AssetWorker
from .dispatch import WorkerName, WorkerOutcome


class AudioWorker(AssetWorker):
    name = WorkerName.AUDIO

    def __init__(self, store, synthesizer):
        super().__init__(store)
        self.synthesizer = synthesizer

    async def process(self, job: CreationJob, pod: ContentRecord) -> WorkerOutcome:
        payload = job.payload
        voice_id = resolve_voice(payload.voice_gender, payload.voice_style)
        speaking_rate = resolve_speaking_rate(payload.voice_pace)

        text = pod.script_text.script_plain or pod.script_text.script_body
        result = await self.synthesizer.render(
            text,
            voice_id,
            speaking_rate,
            audio_path(pod.user_id, pod.id),
        )

        self.store.update_pod_fields(
            pod.id,
            {
                "audio_url": result.audio_url,
                "duration_seconds": result.duration_seconds,
                "audio_ready": True,
            },
            owner=Writer.AUDIO,
        )
        self.store.try_complete_pod(pod.id)

        return WorkerOutcome(
            worker=self.name,
            status="ok",
            detail=f"{result.chunk_count} chunks, {result.duration_seconds}s, voice {voice_id}",
        )
