"""External AI gateway: Gemini text/image/embedding and Cloud Text-to-Speech."""

from .gemini import AIGateway
from .google_tts import CloudTTSClient, SPEAKING_RATES, VOICE_TABLE, resolve_speaking_rate, resolve_voice

__all__ = [
    "AIGateway",
    "CloudTTSClient",
    "SPEAKING_RATES",
    "VOICE_TABLE",
    "resolve_speaking_rate",
    "resolve_voice",
]
