"""Batch planning and streaming delivery of generated MCQs.

A generation request is split into small batches that are run one after the
other, so the caller starts receiving questions after the first round trip
instead of waiting for the whole set. Batches are spaced by a fixed delay to
avoid bursting into the provider's rate limits.
"""

import asyncio
import logging
from typing import AsyncIterator, Dict, List, Optional

from .cache import ResultCache, compute_fingerprint, get_eviction_policy
from .config import Settings
from .exceptions import MalformedOutputError, MCQServiceError
from .extraction import (
    PreparedMaterial,
    prepare_generation_material,
    prepare_solving_material,
)
from .fallback import ModelFallbackEngine, SleepFunc
from .models import (
    MCQ,
    Batch,
    DifficultyCounts,
    DifficultyLevel,
    GenerationRequest,
    SolvingRequest,
    StreamChunk,
)
from .normalizer import parse_mcqs
from .prompts import (
    GENERATION_SYSTEM_INSTRUCTION,
    SOLVING_SYSTEM_INSTRUCTION,
    build_generation_prompt,
    build_solving_prompt,
)
from .providers.base import BaseLLMProvider

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 2
DEFAULT_INTER_BATCH_DELAY = 1.0


def plan_batches(counts: DifficultyCounts, batch_size: int = DEFAULT_BATCH_SIZE) -> List[Batch]:
    """Split tier counts into ordered batches of at most ``batch_size`` items.

    Each batch is filled from the first tier with remaining quota before the
    next (easy, then medium, then hard).

    Raises:
        ValueError: If batch_size < 1
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    remaining: Dict[DifficultyLevel, int] = {
        level: counts.get(level) for level in DifficultyLevel
    }
    batches: List[Batch] = []
    while any(remaining.values()):
        room = batch_size
        slice_counts: Dict[str, int] = {}
        for level in DifficultyLevel:
            take = min(remaining[level], room)
            slice_counts[level.value] = take
            remaining[level] -= take
            room -= take
        batches.append(
            Batch(index=len(batches), counts=DifficultyCounts(**slice_counts))
        )
    return batches


class MCQService:
    """Drives generation and solving requests to completion as chunk streams."""

    def __init__(
        self,
        engine: ModelFallbackEngine,
        cache: Optional[ResultCache] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        inter_batch_delay: float = DEFAULT_INTER_BATCH_DELAY,
        report_batch_errors: bool = True,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """Initialize the service.

        Args:
            engine: Fallback engine used for every model call
            cache: Result cache for text generation requests (None disables)
            batch_size: Maximum questions per provider call
            inter_batch_delay: Seconds to wait before each batch after the first
            report_batch_errors: Emit an error chunk for a failed batch instead
                of skipping it silently
            sleep: Awaitable sleep, injectable for tests
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.engine = engine
        self.cache = cache
        self.batch_size = batch_size
        self.inter_batch_delay = inter_batch_delay
        self.report_batch_errors = report_batch_errors
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls, settings: Settings, provider: Optional[BaseLLMProvider] = None
    ) -> "MCQService":
        """Create a service wired from application settings.

        Args:
            settings: Application settings
            provider: Provider to use (a GoogleProvider is built if omitted)
        """
        if provider is None:
            from .providers.google_provider import GoogleProvider

            if not settings.gemini_api_key:
                raise ValueError("GEMINI_API_KEY is not set")
            provider = GoogleProvider(
                api_key=settings.gemini_api_key,
                temperature=settings.temperature,
                max_output_tokens=settings.max_output_tokens,
            )

        engine = ModelFallbackEngine(
            provider=provider,
            models=settings.candidate_models,
            max_attempts=settings.max_attempts_per_model,
            base_delay=settings.backoff_base_delay,
            safety_margin=settings.retry_safety_margin,
        )
        cache = ResultCache(
            max_size=settings.cache_max_entries,
            policy=get_eviction_policy(settings.cache_eviction_policy),
        )
        return cls(
            engine=engine,
            cache=cache,
            batch_size=settings.batch_size,
            inter_batch_delay=settings.inter_batch_delay,
            report_batch_errors=settings.report_batch_errors,
        )

    async def generate_batch(
        self,
        material: PreparedMaterial,
        batch: Batch,
        include_explanation: bool,
    ) -> List[MCQ]:
        """Generate and normalize the questions of one batch.

        Raises:
            AllModelsFailedError: If no candidate model answered
            MalformedOutputError: If the answer could not be normalized
        """
        prompt = material.render(build_generation_prompt(batch.counts, include_explanation))
        result = await self.engine.generate(
            prompt=prompt,
            system_instruction=GENERATION_SYSTEM_INSTRUCTION,
            attachment=material.attachment,
        )
        mcqs = parse_mcqs(result.text)
        logger.info(
            f"Batch {batch.index + 1} produced {len(mcqs)}/{batch.size} MCQs "
            f"with {result.model}",
            extra={"batch_index": batch.index, "model": result.model},
        )
        return mcqs

    async def stream_generation(
        self, request: GenerationRequest
    ) -> AsyncIterator[StreamChunk]:
        """Generate MCQs batch by batch, yielding each batch as it completes.

        Failures that affect the whole request (unsupported or unreadable
        upload) are raised before the first chunk. A failed batch never aborts
        the stream.
        """
        total = request.counts.total

        fingerprint: Optional[str] = None
        if self.cache is not None and request.attachment is None:
            fingerprint = compute_fingerprint(
                request.study_material, request.counts, request.include_explanation
            )
            cached = self.cache.get(fingerprint)
            if cached is not None:
                logger.info(f"Serving from cache: {fingerprint[:8]}")
                yield StreamChunk(mcqs=cached, total=total, current=len(cached))
                yield StreamChunk.terminal()
                return

        material = await asyncio.to_thread(prepare_generation_material, request)
        batches = plan_batches(request.counts, self.batch_size)
        logger.info(f"Generating {total} MCQs in {len(batches)} batches")

        produced: List[MCQ] = []
        failed_batches = 0
        for batch in batches:
            if batch.index > 0:
                await self._sleep(self.inter_batch_delay)

            try:
                mcqs = await self.generate_batch(
                    material, batch, request.include_explanation
                )
            except MCQServiceError as e:
                failed_batches += 1
                logger.error(
                    f"Batch generation error (batch {batch.index + 1}/{len(batches)}): {e}",
                    extra={"batch_index": batch.index},
                )
                if self.report_batch_errors:
                    yield StreamChunk(
                        mcqs=[],
                        total=total,
                        current=len(produced),
                        error=f"Batch {batch.index + 1} of {len(batches)} failed: {e}",
                    )
                continue

            produced.extend(mcqs)
            yield StreamChunk(mcqs=mcqs, total=total, current=len(produced))

        if fingerprint is not None and failed_batches == 0 and produced:
            self.cache.put(fingerprint, produced)

        logger.info(
            f"Generation finished: {len(produced)}/{total} MCQs, "
            f"{failed_batches} failed batches"
        )
        yield StreamChunk.terminal()

    async def generate(self, request: GenerationRequest) -> List[MCQ]:
        """Generate all MCQs of a request without streaming."""
        mcqs: List[MCQ] = []
        async for chunk in self.stream_generation(request):
            if chunk.mcqs:
                mcqs.extend(chunk.mcqs)
        return mcqs

    async def solve(self, request: SolvingRequest) -> List[MCQ]:
        """Solve the questions of a request in a single model call.

        Raises:
            MCQServiceError: If the call fails or no MCQ could be extracted
        """
        material = await asyncio.to_thread(prepare_solving_material, request)
        result = await self.engine.generate(
            prompt=material.render(build_solving_prompt(request.include_explanation)),
            system_instruction=SOLVING_SYSTEM_INSTRUCTION,
            attachment=material.attachment,
        )
        logger.debug(f"Raw AI response for solving: {result.text[:500]}")

        mcqs = parse_mcqs(result.text)
        if not mcqs:
            raise MalformedOutputError(
                "No valid MCQs could be extracted from the AI response"
            )
        logger.info(f"Successfully solved {len(mcqs)} MCQs")
        return mcqs

    async def stream_solving(self, request: SolvingRequest) -> AsyncIterator[StreamChunk]:
        """Solve a request and deliver it with the same chunk shape as generation.

        Any failure is raised before the first chunk is yielded.
        """
        mcqs = await self.solve(request)
        yield StreamChunk(mcqs=mcqs, total=len(mcqs), current=len(mcqs))
        yield StreamChunk.terminal()
