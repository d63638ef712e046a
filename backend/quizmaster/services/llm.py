"""
Thin async wrapper over the google-generativeai SDK for structured
single-image extraction.
"""

import asyncio
from typing import Optional

import google.generativeai as genai

from quizmaster.config import logger


class ImageContent:
    """Wraps raw image bytes for inclusion in a request."""

    def __init__(self, image_bytes: bytes, mime_type: str = "image/jpeg"):
        self.image_bytes = image_bytes
        self.mime_type = mime_type

    def to_genai_part(self) -> dict:
        """Convert to google-generativeai inline_data format."""
        return {
            "inline_data": {
                "mime_type": self.mime_type,
                "data": self.image_bytes,
            }
        }


class GeminiExtractor:
    """
    Sends one image plus an instruction to Gemini, constrained to a JSON
    response schema, and returns the raw response text.

    generate() is async - the synchronous SDK call runs in the default executor.
    """

    def __init__(self, model_name: str = "gemini-2.5-flash", temperature: Optional[float] = 0):
        self._model_name = model_name
        self._temperature = temperature

    def _build_model(self, system_instruction: str, response_schema: dict):
        gen_config = {
            "response_mime_type": "application/json",
            "response_schema": response_schema,
        }
        if self._temperature is not None:
            gen_config["temperature"] = self._temperature

        return genai.GenerativeModel(
            model_name=self._model_name,
            system_instruction=system_instruction,
            generation_config=gen_config,
        )

    async def generate(self, image: ImageContent, system_instruction: str,
                       prompt: str, response_schema: dict) -> str:
        model = self._build_model(system_instruction, response_schema)
        parts = [image.to_genai_part(), prompt]

        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(
            None, lambda: model.generate_content(parts)
        )
        text = response.text
        logger.info(f"Gemini response received ({len(text or '')} chars)")
        return text
