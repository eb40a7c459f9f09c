"""Gemini API client construction and the text-generation adapter.

The application builds one ``genai.Client`` at startup and hands it to the
services that need it; nothing here keeps a process-wide client. Uses the
modern google-genai SDK (not google.generativeai).
"""

import logging
from typing import Any, List, Optional, Protocol

from google import genai
from google.genai import types

from docsort.config import Settings, get_settings
from docsort.utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
PNG_MIME_TYPE = "image/png"


class ModelResponseError(Exception):
    """The model returned no usable text."""


class TextModel(Protocol):
    """Anything that turns a prompt (plus optional attachment) into free text."""

    def generate_text(
        self,
        prompt: str,
        attachment: Optional[bytes] = None,
        mime_type: str = PDF_MIME_TYPE,
        system_instruction: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        ...


def get_gemini_client(settings: Optional[Settings] = None) -> genai.Client:
    """Initialize and return a Gemini API client.

    Args:
        settings: Application settings; loaded from the environment if omitted.

    Returns:
        genai.Client: Initialized Gemini client ready for API calls.

    Raises:
        ValueError: If GEMINI_API_KEY is not set in environment.
    """
    settings = settings or get_settings()

    if not settings.gemini_api_key:
        raise ValueError(
            "GEMINI_API_KEY not set in environment. "
            "Please set this variable in your .env file or environment."
        )

    return genai.Client(api_key=settings.gemini_api_key)


class GeminiTextModel:
    """TextModel backed by ``client.models.generate_content``.

    Transient transport failures are retried with backoff; everything else
    propagates to the caller.
    """

    def __init__(self, client: genai.Client, model: str, max_retries: int = 2):
        self.client = client
        self.model = model
        self.max_retries = max_retries

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[genai.Client] = None) -> "GeminiTextModel":
        return cls(
            client=client or get_gemini_client(settings),
            model=settings.model_name,
            max_retries=settings.model_max_retries,
        )

    def generate_text(
        self,
        prompt: str,
        attachment: Optional[bytes] = None,
        mime_type: str = PDF_MIME_TYPE,
        system_instruction: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        contents: List[Any] = []
        if attachment is not None:
            contents.append(types.Part.from_bytes(data=attachment, mime_type=mime_type))
        contents.append(prompt)

        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
        )

        call = retry_with_backoff(max_retries=self.max_retries)(self._generate)
        response = call(contents, config)

        text = response.text
        if not text or not text.strip():
            raise ModelResponseError("Gemini API returned empty response")
        return text

    def _generate(self, contents: List[Any], config: types.GenerateContentConfig) -> Any:
        logger.debug("Calling %s with %d content part(s)", self.model, len(contents))
        return self.client.models.generate_content(
            model=self.model,
            contents=contents,
            config=config,
        )
