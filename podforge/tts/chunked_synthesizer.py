"""
Chunked speech synthesis for pod narration.

The synthesis API caps request size, so narration is cut into fixed-size
character windows, each window is synthesized in order (one request at a
time), and the MP3 payloads are concatenated into one stream.
"""

from pydantic import BaseModel

from ..errors import StageError
from ..utils.json_tools import clean_text_for_speech
from ..utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 4500
DEFAULT_BYTES_PER_SECOND = 4000


def split_into_chunks(text: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> list[str]:
    """
    Cut text into consecutive windows of at most chunk_size characters.

    Windows ignore sentence and word boundaries; joining them gives back
    the input exactly.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return [text[i:i + chunk_size] for i in range(0, len(text), chunk_size)]


def estimate_duration(byte_count: int, bytes_per_second: int = DEFAULT_BYTES_PER_SECOND) -> int:
    """Coarse duration in seconds from the encoded size."""
    return int(round(byte_count / bytes_per_second))


class SynthesisResult(BaseModel):
    audio_url: str
    duration_seconds: int
    byte_count: int
    chunk_count: int


class ChunkedSynthesizer:
    """Renders long narration through a per-request size-limited TTS client."""

    def __init__(
        self,
        tts_client,
        storage,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        bytes_per_second: int = DEFAULT_BYTES_PER_SECOND,
    ):
        self.tts_client = tts_client
        self.storage = storage
        self.chunk_size = chunk_size
        self.bytes_per_second = bytes_per_second

    async def synthesize(self, text: str, voice_id: str, speaking_rate: float) -> tuple[bytes, int]:
        """Synthesize every chunk sequentially. Returns (audio bytes, chunk count)."""
        chunks = split_into_chunks(text, self.chunk_size)
        if not chunks:
            raise StageError("No narration text to synthesize")

        buffers: list[bytes] = []
        for i, chunk in enumerate(chunks):
            logger.info(f"Synthesizing chunk {i + 1}/{len(chunks)} ({len(chunk)} chars)")
            buffers.append(await self.tts_client.synthesize(chunk, voice_id, speaking_rate))

        return b"".join(buffers), len(chunks)

    async def render(
        self,
        text: str,
        voice_id: str,
        speaking_rate: float,
        path: str,
        clean: bool = True,
    ) -> SynthesisResult:
        """Synthesize, upload and estimate duration for one narration."""
        if clean:
            text = clean_text_for_speech(text)

        audio, chunk_count = await self.synthesize(text, voice_id, speaking_rate)
        url = self.storage.upload(path, audio, "audio/mpeg")

        result = SynthesisResult(
            audio_url=url,
            duration_seconds=estimate_duration(len(audio), self.bytes_per_second),
            byte_count=len(audio),
            chunk_count=chunk_count,
        )
        logger.info(
            f"Rendered {result.byte_count} bytes in {chunk_count} chunks "
            f"(~{result.duration_seconds}s) to {path}"
        )
        return result
