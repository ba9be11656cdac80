"""
Google Cloud Text-to-Speech client for pod narration.

Uses the REST API directly to avoid heavy SDK dependencies.
Supports both API key and service account authentication.
"""

import base64
import json
import time
from typing import Optional

import httpx
from pydantic import BaseModel

from ..errors import GatewayError
from ..utils.logger import get_logger

logger = get_logger(__name__)

LANGUAGE_CODE = "es-US"
DEFAULT_VOICE = "es-US-Neural2-B"
DEFAULT_SPEAKING_RATE = 1.0

# Narrator gender x delivery style -> Neural2 voice
VOICE_TABLE: dict[str, dict[str, str]] = {
    "Masculino": {
        "Calmado": "es-US-Neural2-D",
        "Energético": "es-US-Neural2-B",
        "Profesional": "es-US-Neural2-B",
        "Inspirador": "es-US-Neural2-D",
    },
    "Femenino": {
        "Calmado": "es-US-Neural2-C",
        "Energético": "es-US-Neural2-A",
        "Profesional": "es-US-Neural2-A",
        "Inspirador": "es-US-Neural2-C",
    },
}

SPEAKING_RATES: dict[str, float] = {
    "Lento": 0.9,
    "Moderado": 1.0,
    "Rápido": 1.1,
}


def resolve_voice(gender: Optional[str], style: Optional[str]) -> str:
    """Look up the voice for a gender/style pair, falling back to the default voice."""
    return VOICE_TABLE.get(gender or "", {}).get(style or "", DEFAULT_VOICE)


def resolve_speaking_rate(pace: Optional[str]) -> float:
    return SPEAKING_RATES.get(pace or "", DEFAULT_SPEAKING_RATE)


def _create_jwt(service_account_info: dict) -> str:
    """Create a JWT for service account authentication"""
    from cryptography.hazmat.primitives import hashes, serialization
    from cryptography.hazmat.primitives.asymmetric import padding

    header = {"alg": "RS256", "typ": "JWT"}

    now = int(time.time())
    payload = {
        "iss": service_account_info["client_email"],
        "scope": "https://www.googleapis.com/auth/cloud-platform",
        "aud": "https://oauth2.googleapis.com/token",
        "iat": now,
        "exp": now + 3600,
    }

    def b64_encode(data):
        return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()

    unsigned = f"{b64_encode(header)}.{b64_encode(payload)}"

    private_key = serialization.load_pem_private_key(
        service_account_info["private_key"].encode(), password=None
    )
    signature = private_key.sign(unsigned.encode(), padding.PKCS1v15(), hashes.SHA256())
    signature_b64 = base64.urlsafe_b64encode(signature).rstrip(b"=").decode()

    return f"{unsigned}.{signature_b64}"


class SynthesisRequest(BaseModel):
    """One synthesis call: a bounded chunk of narration."""
    text_chunk: str
    voice_id: str = DEFAULT_VOICE
    speaking_rate: float = DEFAULT_SPEAKING_RATE


class CloudTTSClient:
    """
    Google Cloud Text-to-Speech REST client.

    Every call returns decoded MP3 bytes or raises GatewayError.
    """

    BASE_URL = "https://texttospeech.googleapis.com/v1"
    TOKEN_URL = "https://oauth2.googleapis.com/token"

    def __init__(
        self,
        api_key: Optional[str] = None,
        credentials_path: Optional[str] = None,
        service_account_info: Optional[dict] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self._http_client = http_client

        self.service_account_info = service_account_info
        if credentials_path and not service_account_info:
            try:
                with open(credentials_path, "r") as f:
                    self.service_account_info = json.load(f)
                logger.info(f"Loaded service account from {credentials_path}")
            except (OSError, ValueError) as e:
                raise GatewayError(f"Failed to load service account {credentials_path}: {e}") from e

        # Token caching for service account auth
        self.access_token: Optional[str] = None
        self.token_expiry: float = 0

    @classmethod
    def from_settings(cls, settings) -> "CloudTTSClient":
        return cls(
            api_key=settings.google_tts_api_key,
            credentials_path=settings.google_credentials_path,
        )

    async def _post(self, url: str, **kwargs) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(url, timeout=self.timeout, **kwargs)
        async with httpx.AsyncClient() as client:
            return await client.post(url, timeout=self.timeout, **kwargs)

    async def _fetch_access_token(self) -> str:
        jwt = _create_jwt(self.service_account_info)
        response = await self._post(
            self.TOKEN_URL,
            data={
                "grant_type": "urn:ietf:params:oauth:grant-type:jwt-bearer",
                "assertion": jwt,
            },
        )
        if response.status_code != 200:
            raise GatewayError(f"Failed to get access token: {response.status_code} - {response.text}")
        return response.json()["access_token"]

    async def _get_auth_headers(self) -> dict:
        """Get authentication headers for API requests"""
        if self.api_key:
            return {}  # API key is passed as query param

        if not self.service_account_info:
            raise GatewayError("No Google TTS credentials configured")

        # Refresh 5 min early
        if not self.access_token or time.time() > self.token_expiry - 300:
            self.access_token = await self._fetch_access_token()
            self.token_expiry = time.time() + 3600

        return {"Authorization": f"Bearer {self.access_token}"}

    def _get_auth_params(self) -> dict:
        if self.api_key:
            return {"key": self.api_key}
        return {}

    async def synthesize(
        self,
        text_chunk: str,
        voice_id: str = DEFAULT_VOICE,
        speaking_rate: float = DEFAULT_SPEAKING_RATE,
    ) -> bytes:
        """Synthesize one chunk of text and return MP3 bytes."""
        request = SynthesisRequest(text_chunk=text_chunk, voice_id=voice_id, speaking_rate=speaking_rate)

        payload = {
            "input": {"text": request.text_chunk},
            "voice": {
                "languageCode": LANGUAGE_CODE,
                "name": request.voice_id,
            },
            "audioConfig": {
                "audioEncoding": "MP3",
                "speakingRate": request.speaking_rate,
                "effectsProfileId": ["headphone-class-device"],
            },
        }

        headers = await self._get_auth_headers()
        headers["Content-Type"] = "application/json"

        try:
            response = await self._post(
                f"{self.BASE_URL}/text:synthesize",
                json=payload,
                headers=headers,
                params=self._get_auth_params(),
            )
        except httpx.HTTPError as e:
            raise GatewayError(f"TTS request failed: {e}") from e

        if response.status_code != 200:
            raise GatewayError(f"TTS request failed: {response.status_code} - {response.text}")

        audio_content = response.json().get("audioContent")
        if not audio_content:
            raise GatewayError("TTS response has no audioContent")

        # Audio is returned as base64-encoded string
        return base64.b64decode(audio_content)
