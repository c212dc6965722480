"""Data models for MCQ generation and solving.

Request models sanitize and validate their input on construction, so anything
reaching the scheduler already satisfies the request invariants. ``MCQ`` is the
canonical record every downstream consumer (stream, cache, PDF) relies on.
"""

import json
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from mcq_service.config import settings
from mcq_service.validators import coerce_bool, coerce_count, sanitize_text

OPTION_LABELS = ("A", "B", "C", "D")
DEFAULT_OPTION_LABEL = OPTION_LABELS[0]

CHUNK_DELIMITER = "\n--CHUNK--\n"

PPTX_MEDIA_TYPE = (
    "application/vnd.openxmlformats-officedocument.presentationml.presentation"
)

# Media types sent to the model as inline parts.
NATIVE_MEDIA_TYPES = frozenset(
    {
        "application/pdf",
        "image/png",
        "image/jpeg",
        "image/webp",
        "image/heic",
        "image/heif",
        "text/plain",
    }
)

SUPPORTED_MEDIA_TYPES = NATIVE_MEDIA_TYPES | {PPTX_MEDIA_TYPE}


class DifficultyLevel(str, Enum):
    """Difficulty tiers, in batch-filling priority order."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class DifficultyCounts(BaseModel):
    """Number of questions requested per difficulty tier."""

    easy: int = Field(default=0, ge=0)
    medium: int = Field(default=0, ge=0)
    hard: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        """Total number of questions across all tiers."""
        return self.easy + self.medium + self.hard

    def get(self, level: DifficultyLevel) -> int:
        """Count for a single tier."""
        return getattr(self, level.value)


class Attachment(BaseModel):
    """An uploaded file passed along with a request."""

    data: bytes
    mime_type: str
    filename: Optional[str] = None

    @field_validator("mime_type")
    @classmethod
    def normalize_mime_type(cls, value: str) -> str:
        """Drop parameters such as charset and lowercase the type."""
        return value.split(";", 1)[0].strip().lower()

    @property
    def is_presentation(self) -> bool:
        return self.mime_type == PPTX_MEDIA_TYPE

    @property
    def is_supported(self) -> bool:
        return self.mime_type in SUPPORTED_MEDIA_TYPES


class GenerationRequest(BaseModel):
    """Request to generate MCQs from study material."""

    study_material: str = ""
    counts: DifficultyCounts
    include_explanation: bool = False
    attachment: Optional[Attachment] = None

    @field_validator("study_material", mode="before")
    @classmethod
    def clean_material(cls, value: object) -> str:
        """Sanitize and bound the study material text."""
        return sanitize_text(value)[: settings.max_material_length]

    @field_validator("include_explanation", mode="before")
    @classmethod
    def parse_flag(cls, value: object) -> bool:
        return coerce_bool(value)

    @model_validator(mode="after")
    def check_request(self) -> "GenerationRequest":
        """Require material or a file, and bound the total count."""
        if self.attachment is None and not self.study_material:
            raise ValueError("Study Material: Text input cannot be empty")
        total = self.counts.total
        if total < 1 or total > settings.max_total_items:
            raise ValueError(
                f"MCQ Counts: Total MCQ count must be between 1 and "
                f"{settings.max_total_items}"
            )
        return self

    @classmethod
    def from_form(
        cls, body: Dict[str, object], attachment: Optional[Attachment] = None
    ) -> "GenerationRequest":
        """Build a request from the camelCase fields used by the HTTP API."""
        return cls(
            study_material=body.get("studyMaterial") or "",
            counts=DifficultyCounts(
                easy=coerce_count(body.get("easyCount")),
                medium=coerce_count(body.get("mediumCount")),
                hard=coerce_count(body.get("hardCount")),
            ),
            include_explanation=body.get("includeExplanation", False),
            attachment=attachment,
        )


class SolvingRequest(BaseModel):
    """Request to solve existing MCQs."""

    mcq_text: str = ""
    include_explanation: bool = False
    attachment: Optional[Attachment] = None

    @field_validator("mcq_text", mode="before")
    @classmethod
    def clean_text(cls, value: object) -> str:
        return sanitize_text(value)

    @field_validator("include_explanation", mode="before")
    @classmethod
    def parse_flag(cls, value: object) -> bool:
        return coerce_bool(value)

    @model_validator(mode="after")
    def check_request(self) -> "SolvingRequest":
        """Require text or a file; bound text length."""
        if self.attachment is None:
            if not self.mcq_text:
                raise ValueError("MCQ Text: Text input cannot be empty")
            self.mcq_text = self.mcq_text[: settings.max_material_length]
        elif len(self.mcq_text) > settings.max_material_length:
            raise ValueError(
                f"MCQ Text: Text input exceeds maximum length of "
                f"{settings.max_material_length} characters"
            )
        return self

    @classmethod
    def from_form(
        cls, body: Dict[str, object], attachment: Optional[Attachment] = None
    ) -> "SolvingRequest":
        """Build a request from the camelCase fields used by the HTTP API."""
        return cls(
            mcq_text=body.get("mcqText") or "",
            include_explanation=body.get("includeExplanation", False),
            attachment=attachment,
        )


class MCQ(BaseModel):
    """Canonical multiple-choice question record."""

    model_config = ConfigDict(populate_by_name=True)

    question: str
    options: Dict[str, str]
    correct_answer: str = Field(default=DEFAULT_OPTION_LABEL, alias="correctAnswer")
    explanation: str = ""

    @field_validator("options")
    @classmethod
    def validate_options(cls, value: Dict[str, str]) -> Dict[str, str]:
        """Exactly the four option slots, in label order."""
        if set(value) != set(OPTION_LABELS):
            raise ValueError(f"options must have exactly the keys {OPTION_LABELS}")
        return {label: value[label] for label in OPTION_LABELS}

    @field_validator("correct_answer")
    @classmethod
    def validate_correct_answer(cls, value: str) -> str:
        if value not in OPTION_LABELS:
            raise ValueError(f"correct_answer must be one of {OPTION_LABELS}")
        return value


class PDFExportRequest(BaseModel):
    """Body of a PDF download request.

    ``mcqs`` holds records as the client last received them; they are run
    through the normalizer again before rendering.
    """

    model_config = ConfigDict(populate_by_name=True)

    mcqs: List[object]
    include_explanation: bool = Field(default=False, alias="includeExplanation")
    difficulty: Optional[str] = None

    @field_validator("mcqs")
    @classmethod
    def require_records(cls, value: List[object]) -> List[object]:
        if not value:
            raise ValueError("Invalid MCQ data")
        return value

    @field_validator("include_explanation", mode="before")
    @classmethod
    def parse_flag(cls, value: object) -> bool:
        return coerce_bool(value)

    @property
    def title(self) -> str:
        if self.difficulty:
            return f"MCQ Assessment - {self.difficulty} Level"
        return "Solved MCQ Assessment"


class Batch(BaseModel):
    """A bounded slice of a generation request's tier counts."""

    index: int
    counts: DifficultyCounts

    @property
    def size(self) -> int:
        return self.counts.total


class StreamChunk(BaseModel):
    """One unit of the newline-delimited response stream."""

    mcqs: Optional[List[MCQ]] = None
    completed: bool = False
    total: Optional[int] = None
    current: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def terminal(cls) -> "StreamChunk":
        """The final chunk; no further records follow."""
        return cls(completed=True)

    def to_payload(self) -> Dict[str, object]:
        """JSON-ready dict; unset fields are omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_wire(self) -> str:
        """Encode as a JSON object followed by the chunk delimiter line."""
        return json.dumps(self.to_payload(), ensure_ascii=False) + CHUNK_DELIMITER
