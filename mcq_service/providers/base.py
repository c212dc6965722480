"""Base class for LLM providers."""

from abc import ABC, abstractmethod
from typing import Sequence, Union

from ..error_classifier import ClassifiedError, ErrorClassifier
from ..exceptions import MCQServiceError
from ..models import Attachment

# A prompt is an ordered list of text parts and at most one inline file part.
ContentPart = Union[str, Attachment]


class LLMProviderError(MCQServiceError):
    """Exception raised by LLM providers with classification.

    Attributes:
        classified_error: The classified error with category and severity
        original_exception: The original exception that was raised
    """

    def __init__(
        self,
        classified_error: ClassifiedError,
        original_exception: Exception,
    ):
        """Initialize LLM provider error.

        Args:
            classified_error: The classified error
            original_exception: The original exception
        """
        self.classified_error = classified_error
        self.original_exception = original_exception
        super().__init__(str(classified_error))

    @property
    def is_retryable(self) -> bool:
        return self.classified_error.is_retryable


class BaseLLMProvider(ABC):
    """Abstract base class for model provider integrations.

    One provider instance serves every candidate model; the model identifier
    is chosen per call by the fallback engine.
    """

    def __init__(self, api_key: str):
        """
        Initialize the LLM provider.

        Args:
            api_key: API key for the provider
        """
        self.api_key = api_key

    @abstractmethod
    async def generate_content_async(
        self,
        model: str,
        system_instruction: str,
        parts: Sequence[ContentPart],
    ) -> str:
        """
        Generate raw text from one model.

        Args:
            model: Model identifier to call
            system_instruction: System instruction for the model
            parts: Ordered prompt parts (text and optional inline attachment)

        Returns:
            The raw generated text

        Raises:
            LLMProviderError: If the API call fails
        """

    def get_provider_name(self) -> str:
        """
        Get the name of this provider.

        Returns:
            Provider name (e.g., "google")
        """
        return self.__class__.__name__.replace("Provider", "").lower()

    def _handle_api_error(self, error: Exception) -> LLMProviderError:
        """Classify and wrap an API error.

        Args:
            error: The exception that was raised

        Returns:
            LLMProviderError with classified error
        """
        classified = ErrorClassifier.classify_error(
            error=error,
            provider=self.get_provider_name(),
        )
        return LLMProviderError(
            classified_error=classified,
            original_exception=error,
        )
