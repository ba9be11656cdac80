"""AI gateway over the Gemini API (google-genai)."""

import base64
from typing import Optional

from google import genai
from google.genai import types

from ..errors import GatewayError, GatewayModeError
from ..utils.json_tools import extract_json
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AIGateway:
    """
    Stateless wrapper around the Gemini text, image and embedding models.

    Two text modes:
    - search grounding: the model may call Google Search, answers in prose
    - forced JSON: response_mime_type is application/json, no tools

    The API rejects structured output combined with tool use, so asking for
    both raises GatewayModeError before any request is sent.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        text_model: str = "gemini-2.5-flash",
        image_model: str = "imagen-3.0-generate-002",
        embedding_model: str = "text-embedding-004",
        client: Optional[genai.Client] = None,
    ):
        self.api_key = api_key
        self.text_model = text_model
        self.image_model = image_model
        self.embedding_model = embedding_model
        self._client = client

    @classmethod
    def from_settings(cls, settings) -> "AIGateway":
        return cls(
            api_key=settings.gemini_api_key,
            text_model=settings.text_model,
            image_model=settings.image_model,
            embedding_model=settings.embedding_model,
        )

    @property
    def client(self) -> genai.Client:
        """Lazy load the Gemini client."""
        if self._client is None:
            if not self.api_key:
                raise GatewayError("GEMINI_API_KEY not set")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def generate_text(
        self,
        prompt: str,
        use_search: bool = False,
        force_json: bool = False,
        temperature: float = 0.7,
        model: Optional[str] = None,
    ) -> str:
        """Run one text generation and return the raw response text."""
        if use_search and force_json:
            raise GatewayModeError("Search grounding cannot be combined with forced JSON output")

        config = types.GenerateContentConfig(temperature=temperature)
        if use_search:
            config.tools = [types.Tool(google_search=types.GoogleSearch())]
        if force_json:
            config.response_mime_type = "application/json"

        model = model or self.text_model
        try:
            response = await self.client.aio.models.generate_content(
                model=model,
                contents=prompt,
                config=config,
            )
        except GatewayError:
            raise
        except Exception as e:
            raise GatewayError(f"{model} call failed: {e}") from e

        text = response.text
        if not text:
            raise GatewayError(f"{model} returned an empty response")

        logger.debug(f"{model} returned {len(text)} chars (search={use_search}, json={force_json})")
        return text

    async def generate_json(self, prompt: str, temperature: float = 0.7, model: Optional[str] = None) -> dict:
        """Forced-JSON generation, decoded into a dict."""
        text = await self.generate_text(prompt, force_json=True, temperature=temperature, model=model)
        return extract_json(text)

    async def generate_multimodal(
        self,
        prompt: str,
        image_base64: Optional[str] = None,
        force_json: bool = True,
        temperature: float = 0.4,
    ) -> str:
        """Text generation with an optional inline image."""
        contents: list = []
        if image_base64:
            mime_type = "image/jpeg"
            if image_base64.startswith("data:"):
                header, image_base64 = image_base64.split(",", 1)
                mime_type = header[5:].split(";")[0] or mime_type
            contents.append(types.Part.from_bytes(data=base64.b64decode(image_base64), mime_type=mime_type))
        contents.append(prompt)

        config = types.GenerateContentConfig(temperature=temperature)
        if force_json:
            config.response_mime_type = "application/json"

        try:
            response = await self.client.aio.models.generate_content(
                model=self.text_model,
                contents=contents,
                config=config,
            )
        except GatewayError:
            raise
        except Exception as e:
            raise GatewayError(f"Multimodal call failed: {e}") from e

        if not response.text:
            raise GatewayError("Multimodal call returned an empty response")
        return response.text

    async def embed_text(self, text: str) -> list[float]:
        """Document embedding used for semantic search."""
        try:
            response = await self.client.aio.models.embed_content(
                model=self.embedding_model,
                contents=text,
                config=types.EmbedContentConfig(task_type="RETRIEVAL_DOCUMENT"),
            )
        except GatewayError:
            raise
        except Exception as e:
            raise GatewayError(f"Embedding call failed: {e}") from e

        if not response.embeddings or not response.embeddings[0].values:
            raise GatewayError("Embedding response has no values")
        return list(response.embeddings[0].values)

    async def generate_image(self, prompt: str, aspect_ratio: str = "1:1") -> bytes:
        """Generate one PNG image."""
        try:
            response = await self.client.aio.models.generate_images(
                model=self.image_model,
                prompt=prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    aspect_ratio=aspect_ratio,
                    output_mime_type="image/png",
                ),
            )
        except GatewayError:
            raise
        except Exception as e:
            raise GatewayError(f"Image generation failed: {e}") from e

        if not response.generated_images:
            raise GatewayError("Image model returned no images")
        return response.generated_images[0].image.image_bytes
