"""HTTP endpoints for MCQ generation, solving and PDF export."""

import logging
import time
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import Response, StreamingResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from mcq_service.config import settings
from mcq_service.exceptions import MCQServiceError, UnsupportedMediaTypeError
from mcq_service.metrics import get_fallback_metrics
from mcq_service.models import (
    Attachment,
    GenerationRequest,
    PDFExportRequest,
    SolvingRequest,
    StreamChunk,
)
from mcq_service.normalizer import normalize_records
from mcq_service.pdf_export import generate_pdf
from mcq_service.scheduler import MCQService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"
FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def get_service(request: Request) -> MCQService:
    """Return the application's MCQService, building it on first use."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        service = MCQService.from_settings(settings)
        request.app.state.service = service
    return service


def format_validation_errors(errors: List[Dict[str, Any]]) -> str:
    """Flatten pydantic error dicts into one client-facing message."""
    messages = []
    for error in errors:
        message = str(error.get("msg", ""))
        if error.get("type") == "value_error":
            messages.append(message.removeprefix("Value error, "))
            continue
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages)


async def read_payload(request: Request) -> Tuple[Dict[str, Any], Optional[Attachment]]:
    """Read a JSON or form body plus the optional ``file`` upload.

    Raises:
        HTTPException: 400 for an unreadable body, 413 for an oversized upload
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        body = {key: value for key, value in form.items() if isinstance(value, str)}
        upload = form.get("file")
        if not isinstance(upload, UploadFile):
            return body, None

        data = await upload.read()
        if len(data) > settings.max_upload_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File exceeds maximum size of {settings.max_upload_bytes} bytes",
            )
        attachment = Attachment(
            data=data,
            mime_type=upload.content_type or "application/octet-stream",
            filename=upload.filename,
        )
        return body, attachment

    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Request body must be a JSON object",
        ) from None
    if not isinstance(body, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Request body must be a JSON object",
        )
    return body, None


def _bad_request(error: ValueError) -> HTTPException:
    if isinstance(error, ValidationError):
        detail = format_validation_errors(error.errors())
    else:
        detail = str(error)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


async def start_stream(stream: AsyncIterator[StreamChunk], operation: str) -> StreamingResponse:
    """Pull the first chunk before committing to a streamed 200 response.

    Failures raised before the first chunk become JSON error responses.
    """
    try:
        first = await stream.__anext__()
    except UnsupportedMediaTypeError as e:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(e)
        ) from e
    except MCQServiceError as e:
        logger.error(f"Error in {operation}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or f"Failed to {operation}",
        ) from e

    async def body() -> AsyncIterator[str]:
        yield first.to_wire()
        async for chunk in stream:
            yield chunk.to_wire()

    return StreamingResponse(body(), media_type=STREAM_MEDIA_TYPE)


@router.post("/generate-mcq")
async def generate_mcq(request: Request, service: MCQService = Depends(get_service)):
    """Generate MCQs from study material, streamed batch by batch."""
    body, attachment = await read_payload(request)
    try:
        generation_request = GenerationRequest.from_form(body, attachment)
    except ValueError as e:
        raise _bad_request(e) from e

    return await start_stream(
        service.stream_generation(generation_request), "generate MCQs"
    )


@router.post("/solve-mcq")
async def solve_mcq(request: Request, service: MCQService = Depends(get_service)):
    """Solve existing MCQs and stream them back in the generation chunk shape."""
    body, attachment = await read_payload(request)
    try:
        solving_request = SolvingRequest.from_form(body, attachment)
    except ValueError as e:
        raise _bad_request(e) from e

    return await start_stream(service.stream_solving(solving_request), "solve MCQs")


@router.post("/download-pdf")
async def download_pdf(payload: PDFExportRequest):
    """Render MCQs into a downloadable PDF."""
    records = [record for record in payload.mcqs if isinstance(record, dict)]
    if not records:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No valid data provided for PDF generation.",
        )

    try:
        mcqs = normalize_records(records)
    except MCQServiceError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    pdf = await run_in_threadpool(
        generate_pdf, mcqs, payload.title, payload.include_explanation
    )
    filename = f"MCQs_{int(time.time() * 1000)}.pdf"
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/health")
async def health(request: Request) -> Dict[str, Any]:
    """Liveness check with cache and fallback counters."""
    service: Optional[MCQService] = getattr(request.app.state, "service", None)
    cache_stats = None
    if service is not None and service.cache is not None:
        cache_stats = service.cache.get_stats()

    return {
        "success": True,
        "message": "Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "cache": cache_stats,
        "fallback": get_fallback_metrics().get_summary(),
    }
