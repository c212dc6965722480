"""Google Generative AI provider integration."""

import logging
from typing import Any, Dict, List, Sequence, Union

import google.generativeai as genai
from google.generativeai.types import GenerationConfig

from ..models import Attachment
from .base import BaseLLMProvider, ContentPart

logger = logging.getLogger(__name__)


class GoogleProvider(BaseLLMProvider):
    """Gemini integration for MCQ generation and solving.

    Requests JSON output (``response_mime_type``) at a low temperature; the
    output is still treated as untrusted text by the normalizer.
    """

    def __init__(
        self,
        api_key: str,
        temperature: float = 0.1,
        max_output_tokens: int = 8192,
    ):
        """
        Initialize Google provider.

        Args:
            api_key: Google API key
            temperature: Sampling temperature
            max_output_tokens: Maximum tokens to generate per call
        """
        super().__init__(api_key)
        genai.configure(api_key=api_key)
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    def _build_model(self, model: str, system_instruction: str) -> Any:
        generation_config = GenerationConfig(
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
            response_mime_type="application/json",
        )
        return genai.GenerativeModel(
            model_name=model,
            system_instruction=system_instruction,
            generation_config=generation_config,
        )

    @staticmethod
    def _to_sdk_parts(
        parts: Sequence[ContentPart],
    ) -> List[Union[str, Dict[str, Any]]]:
        """Convert prompt parts to the SDK's inline-data dict form."""
        sdk_parts: List[Union[str, Dict[str, Any]]] = []
        for part in parts:
            if isinstance(part, Attachment):
                sdk_parts.append({"mime_type": part.mime_type, "data": part.data})
            else:
                sdk_parts.append(part)
        return sdk_parts

    async def generate_content_async(
        self,
        model: str,
        system_instruction: str,
        parts: Sequence[ContentPart],
    ) -> str:
        """
        Generate raw text with a Gemini model.

        Args:
            model: Gemini model identifier
            system_instruction: System instruction for the model
            parts: Ordered prompt parts

        Returns:
            The generated text

        Raises:
            LLMProviderError: If the API call fails or returns no content
        """
        try:
            client = self._build_model(model, system_instruction)
            response = await client.generate_content_async(self._to_sdk_parts(parts))
            # .text raises ValueError when the response has no usable candidate
            text = response.text
        except Exception as e:
            raise self._handle_api_error(e) from e

        logger.debug(f"Gemini response from {model}: {text[:500]}")
        return text or ""
