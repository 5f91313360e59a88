"""Illustration providers: photo bytes in, illustrated PNG bytes out.

Providers are built once from Settings and injected into the app, so tests
can swap in a stub without touching module globals.
"""

import asyncio
import base64
import logging
from typing import Optional

import openai
from google import genai
from google.genai import types
from openai import OpenAI

from .config import Settings
from .errors import ConfigurationError, IllustrationError

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "gemini")

ILLUSTRATION_PROMPT = """Redraw the people in this photo as a warm, hand-painted Studio Ghibli style illustration.
Keep each person's recognisable features, hairstyle and clothing.
Frame the subjects from the waist up with happy, lively expressions.
Use soft watercolour textures, gentle pastel colours and warm afternoon light.
Keep natural proportions (no chibi or exaggerated anime features).
Background: plain solid white, no texture or pattern, so it can be removed cleanly.
Square 1:1 composition, subjects centred."""


class IllustrationProvider:
    """Base class for image generation backends"""
    name = "base"

    async def generate(self, photo: bytes, mime_type: str = "image/jpeg", request_id: str = "") -> bytes:
        raise NotImplementedError


class OpenAIIllustrationProvider(IllustrationProvider):
    """Responses API with the image_generation tool forced on"""
    name = "openai"

    def __init__(self, client: OpenAI = None, api_key: str = None, model: str = "gpt-4.1"):
        self.client = client or OpenAI(api_key=api_key)
        self.model = model

    def _generate(self, photo: bytes, mime_type: str) -> bytes:
        image_url = f"data:{mime_type};base64,{base64.b64encode(photo).decode('ascii')}"
        response = self.client.responses.create(
            model=self.model,
            input=[
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": ILLUSTRATION_PROMPT},
                        {"type": "input_image", "image_url": image_url},
                    ],
                }
            ],
            tools=[{"type": "image_generation"}],
            tool_choice={"type": "image_generation"},
        )

        images = [
            output.result
            for output in (response.output or [])
            if getattr(output, "type", None) == "image_generation_call" and getattr(output, "result", None)
        ]
        if not images:
            text = getattr(response, "output_text", "") or ""
            if text:
                raise IllustrationError(f"Model refused to generate: {text}")
            raise IllustrationError("No image data returned from image generation")
        return base64.b64decode(images[0])

    async def generate(self, photo: bytes, mime_type: str = "image/jpeg", request_id: str = "") -> bytes:
        logger.info(f"🎨 [{request_id}] Generating illustration with OpenAI ({self.model})")
        try:
            return await asyncio.to_thread(self._generate, photo, mime_type)
        except openai.AuthenticationError as e:
            raise IllustrationError("Invalid OpenAI API key") from e
        except openai.RateLimitError as e:
            raise IllustrationError(
                "OpenAI rate limit exceeded",
                public_message="Image service is busy. Please try again later.",
            ) from e
        except openai.BadRequestError as e:
            raise IllustrationError(
                f"OpenAI rejected the request: {e}",
                public_message="Invalid request. Please use a clear photo.",
            ) from e
        except openai.OpenAIError as e:
            raise IllustrationError(f"Image transformation failed: {e}") from e


class GeminiIllustrationProvider(IllustrationProvider):
    """Gemini image model through google-genai"""
    name = "gemini"

    def __init__(self, client: genai.Client = None, api_key: str = None, model: str = "gemini-2.5-flash-image"):
        self.client = client or genai.Client(api_key=api_key)
        self.model = model

    def _generate(self, photo: bytes, mime_type: str) -> bytes:
        response = self.client.models.generate_content(
            model=self.model,
            contents=[ILLUSTRATION_PROMPT, types.Part.from_bytes(data=photo, mime_type=mime_type)],
        )

        candidates = response.candidates or []
        for candidate in candidates:
            parts = candidate.content.parts if candidate.content else None
            for part in parts or []:
                if part.inline_data is not None and part.inline_data.data:
                    return part.inline_data.data

        for candidate in candidates[:1]:
            for part in (candidate.content.parts if candidate.content else None) or []:
                if part.text:
                    raise IllustrationError(f"Gemini refused to generate: {part.text}")
        raise IllustrationError("No image data returned from Gemini image generation")

    async def generate(self, photo: bytes, mime_type: str = "image/jpeg", request_id: str = "") -> bytes:
        logger.info(f"🎨 [{request_id}] Generating illustration with Gemini ({self.model})")
        try:
            return await asyncio.to_thread(self._generate, photo, mime_type)
        except IllustrationError:
            raise
        except Exception as e:
            raise IllustrationError(f"Gemini image generation failed: {e}") from e


def create_provider(settings: Settings) -> Optional[IllustrationProvider]:
    """Build the configured provider, or None when generation is not configured"""
    provider = settings.image_provider
    if not provider:
        logger.warning("⚠️ IMAGE_GENERATION_PROVIDER not set, illustration endpoint disabled")
        return None
    if provider not in SUPPORTED_PROVIDERS:
        raise ConfigurationError(f'Unsupported IMAGE_GENERATION_PROVIDER "{provider}". Use "openai" or "gemini".')
    if provider == "openai":
        if not settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY environment variable is required")
        return OpenAIIllustrationProvider(api_key=settings.openai_api_key)
    if not settings.gemini_api_key:
        raise ConfigurationError("GEMINI_API_KEY environment variable is required")
    return GeminiIllustrationProvider(api_key=settings.gemini_api_key)
