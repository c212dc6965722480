"""Ordered multi-model fallback with in-place retry of transient failures.

Each call walks the candidate list from the top: a model is tried up to
``max_attempts`` times while it fails transiently (quota exhaustion, overload),
with an exponential backoff that yields to the provider's own retry hints.
Any other failure moves straight on to the next model. The call only fails
when every candidate has been given up on.

No state is carried between calls: a model that was down
for the previous request is tried again first on the next one.
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Iterator, List, Optional, Sequence, Tuple

from .error_classifier import ClassifiedError, ErrorClassifier
from .exceptions import AllModelsFailedError
from .metrics import FallbackMetrics, get_fallback_metrics
from .models import Attachment
from .providers.base import BaseLLMProvider, ContentPart, LLMProviderError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 2.0
DEFAULT_SAFETY_MARGIN = 1.0
LONG_WAIT_THRESHOLD = 30.0

SleepFunc = Callable[[float], Awaitable[None]]


class AttemptOutcome(Enum):
    """What happened on a single model attempt."""

    SUCCESS = "success"
    RETRY = "retry"  # transient failure, same model again
    FAILOVER = "failover"  # giving up on this model


@dataclass
class ModelAttempt:
    """One call against one candidate model."""

    model: str
    attempt: int
    outcome: AttemptOutcome
    error: Optional[ClassifiedError] = None


@dataclass
class FallbackResult:
    """Raw text from the model that answered, plus the attempt trail."""

    text: str
    model: str
    attempts: List[ModelAttempt] = field(default_factory=list)


def iter_attempts(
    models: Sequence[str], max_attempts: int
) -> Iterator[Tuple[str, int]]:
    """Yield ``(model, attempt)`` pairs in trial order, attempts starting at 1."""
    for model in models:
        for attempt in range(1, max_attempts + 1):
            yield model, attempt


def calculate_backoff_delay(
    attempt: int,
    retry_in: Optional[float] = None,
    retry_after: Optional[float] = None,
    base_delay: float = DEFAULT_BASE_DELAY,
    safety_margin: float = DEFAULT_SAFETY_MARGIN,
) -> float:
    """Seconds to wait before retrying after a transient failure.

    Precedence: the "Please retry in N s" hint from the error body, then the
    retry-after header, then ``base_delay * 2 ** (attempt - 1)``. Provider
    hints get ``safety_margin`` added; the body hint is rounded up to the
    millisecond.

    Args:
        attempt: The attempt that just failed (1-based)
        retry_in: Seconds from the error body hint
        retry_after: Seconds from the retry-after header
        base_delay: Delay after the first failed attempt
        safety_margin: Seconds added on top of a provider hint

    Returns:
        Delay in seconds
    """
    if retry_in is not None:
        return math.ceil(retry_in * 1000) / 1000 + safety_margin
    if retry_after is not None:
        return int(retry_after) + safety_margin
    return base_delay * (2 ** (attempt - 1))


class ModelFallbackEngine:
    """Produces raw model output from some model in an ordered candidate list."""

    def __init__(
        self,
        provider: BaseLLMProvider,
        models: Sequence[str],
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        safety_margin: float = DEFAULT_SAFETY_MARGIN,
        sleep: SleepFunc = asyncio.sleep,
        metrics: Optional[FallbackMetrics] = None,
    ):
        """Initialize the engine.

        Args:
            provider: Provider used for every candidate model
            models: Candidate model identifiers, highest priority first
            max_attempts: Attempts per model for transient failures
            base_delay: Backoff delay after the first failed attempt (seconds)
            safety_margin: Seconds added to provider retry hints
            sleep: Awaitable sleep, injectable for tests
            metrics: Metrics sink (uses the process-wide instance if omitted)

        Raises:
            ValueError: If no models are given or max_attempts < 1
        """
        unique_models = list(dict.fromkeys(m for m in models if m))
        if not unique_models:
            raise ValueError("At least one candidate model is required")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.provider = provider
        self.models = unique_models
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.safety_margin = safety_margin
        self._sleep = sleep
        self._metrics = metrics

    @property
    def metrics(self) -> FallbackMetrics:
        return self._metrics or get_fallback_metrics()

    async def generate(
        self,
        prompt: str,
        system_instruction: str,
        attachment: Optional[Attachment] = None,
    ) -> FallbackResult:
        """Run the prompt against the candidate list until one model answers.

        Args:
            prompt: Rendered user prompt
            system_instruction: System instruction for the model
            attachment: Optional inline file part sent after the prompt

        Returns:
            FallbackResult with the raw text and the attempt trail

        Raises:
            AllModelsFailedError: If every candidate model failed
        """
        parts: List[ContentPart] = [prompt]
        if attachment is not None:
            parts.append(attachment)

        attempts: List[ModelAttempt] = []
        last_error: Optional[Exception] = None
        abandoned = set()

        for model, attempt in iter_attempts(self.models, self.max_attempts):
            if model in abandoned:
                continue

            log_extra = {"model": model, "attempt": attempt}
            logger.info(
                f"Generating with model {model} (attempt {attempt}/{self.max_attempts})",
                extra=log_extra,
            )
            self.metrics.record_attempt(model)

            try:
                text = await self.provider.generate_content_async(
                    model=model,
                    system_instruction=system_instruction,
                    parts=parts,
                )
            except Exception as e:
                classified = self._classify(e)
                last_error = e

                if classified.is_retryable and attempt < self.max_attempts:
                    attempts.append(
                        ModelAttempt(model, attempt, AttemptOutcome.RETRY, classified)
                    )
                    self.metrics.record_retry(model, classified.category.value)
                    delay = calculate_backoff_delay(
                        attempt,
                        retry_in=classified.retry_in,
                        retry_after=classified.retry_after,
                        base_delay=self.base_delay,
                        safety_margin=self.safety_margin,
                    )
                    if delay > LONG_WAIT_THRESHOLD and attempt == 1:
                        logger.info(
                            f"Model {model} requires a long wait ({delay:.1f}s); "
                            f"waiting rather than failing over",
                            extra=log_extra,
                        )
                    logger.warning(
                        f"Model {model} hit {classified.category.value}. "
                        f"Waiting {delay:.1f}s (attempt {attempt}/{self.max_attempts})",
                        extra={**log_extra, "delay_ms": int(delay * 1000)},
                    )
                    await self._sleep(delay)
                    continue

                attempts.append(
                    ModelAttempt(model, attempt, AttemptOutcome.FAILOVER, classified)
                )
                self.metrics.record_failover(model, classified.category.value)
                abandoned.add(model)
                logger.error(f"Failed with model {model}: {classified}", extra=log_extra)
                continue

            attempts.append(ModelAttempt(model, attempt, AttemptOutcome.SUCCESS))
            self.metrics.record_success(model)
            return FallbackResult(text=text, model=model, attempts=attempts)

        self.metrics.record_exhausted()
        raise AllModelsFailedError(last_error)

    def _classify(self, error: Exception) -> ClassifiedError:
        if isinstance(error, LLMProviderError):
            return error.classified_error
        return ErrorClassifier.classify_error(
            error=error, provider=self.provider.get_provider_name()
        )
