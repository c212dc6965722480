"""Material preparation: turn request text or uploads into prompt parts.

Presentations are converted to text here because the model cannot read them
natively; every other supported upload is passed through as an inline part.
"""

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import List, Optional

from pptx import Presentation

from .exceptions import ExtractionError, UnsupportedMediaTypeError
from .models import Attachment, GenerationRequest, SolvingRequest
from .prompts import (
    FILE_MATERIAL_HEADER,
    FILE_QUESTIONS_HEADER,
    PPTX_MATERIAL_HEADER,
    PPTX_QUESTIONS_HEADER,
    TEXT_MATERIAL_HEADER,
    TEXT_QUESTIONS_HEADER,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedMaterial:
    """Prompt preamble plus the inline file part, if any."""

    preamble: str
    attachment: Optional[Attachment] = None

    def render(self, task_prompt: str) -> str:
        """Full prompt text: material preamble followed by the task."""
        return f"{self.preamble}\n\n{task_prompt}"


def extract_pptx_text(data: bytes) -> str:
    """Extract the text of every slide of a PPTX file.

    Raises:
        ExtractionError: If the file cannot be read or holds no text
    """
    try:
        presentation = Presentation(BytesIO(data))
    except Exception as e:
        logger.error(f"PPT Extraction Error: {e}")
        raise ExtractionError("Failed to extract text from PPT file") from e

    slides: List[str] = []
    for slide in presentation.slides:
        lines: List[str] = []
        for shape in slide.shapes:
            if shape.has_text_frame:
                text = shape.text_frame.text.strip()
                if text:
                    lines.append(text)
            elif getattr(shape, "has_table", False):
                for row in shape.table.rows:
                    cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                    if cells:
                        lines.append(" | ".join(cells))
        if lines:
            slides.append("\n".join(lines))

    if not slides:
        raise ExtractionError("Failed to extract text from PPT file: no text found")
    return "\n\n".join(slides)


def _prepare(
    text: str,
    attachment: Optional[Attachment],
    text_header: str,
    pptx_header: str,
    file_header: str,
) -> PreparedMaterial:
    if attachment is None:
        return PreparedMaterial(preamble=f"{text_header}\n{text}")

    if not attachment.is_supported:
        raise UnsupportedMediaTypeError(
            f"Unsupported file type: {attachment.mime_type}"
        )

    if attachment.is_presentation:
        extracted = extract_pptx_text(attachment.data)
        logger.info(f"Extracted {len(extracted)} characters from presentation")
        return PreparedMaterial(preamble=f"{pptx_header}\n{extracted}")

    return PreparedMaterial(preamble=file_header, attachment=attachment)


def prepare_generation_material(request: GenerationRequest) -> PreparedMaterial:
    """Build the material preamble for a generation request."""
    return _prepare(
        request.study_material,
        request.attachment,
        TEXT_MATERIAL_HEADER,
        PPTX_MATERIAL_HEADER,
        FILE_MATERIAL_HEADER,
    )


def prepare_solving_material(request: SolvingRequest) -> PreparedMaterial:
    """Build the question preamble for a solving request."""
    return _prepare(
        request.mcq_text,
        request.attachment,
        TEXT_QUESTIONS_HEADER,
        PPTX_QUESTIONS_HEADER,
        FILE_QUESTIONS_HEADER,
    )
