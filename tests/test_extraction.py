"""Tests for material preparation and presentation text extraction."""

from io import BytesIO

import pytest
from pptx import Presentation
from pptx.util import Inches

from mcq_service.exceptions import ExtractionError, UnsupportedMediaTypeError
from mcq_service.extraction import (
    PreparedMaterial,
    extract_pptx_text,
    prepare_generation_material,
    prepare_solving_material,
)
from mcq_service.models import (
    PPTX_MEDIA_TYPE,
    Attachment,
    DifficultyCounts,
    GenerationRequest,
    SolvingRequest,
)


def build_pptx(slides) -> bytes:
    """Build a presentation with one title slide per (title, body) pair."""
    presentation = Presentation()
    layout = presentation.slide_layouts[1]
    for title, body in slides:
        slide = presentation.slides.add_slide(layout)
        slide.shapes.title.text = title
        slide.placeholders[1].text = body
    buffer = BytesIO()
    presentation.save(buffer)
    return buffer.getvalue()


def build_table_pptx() -> bytes:
    presentation = Presentation()
    slide = presentation.slides.add_slide(presentation.slide_layouts[6])
    table = slide.shapes.add_table(2, 2, Inches(1), Inches(1), Inches(4), Inches(1)).table
    table.cell(0, 0).text = "Element"
    table.cell(0, 1).text = "Symbol"
    table.cell(1, 0).text = "Gold"
    table.cell(1, 1).text = "Au"
    buffer = BytesIO()
    presentation.save(buffer)
    return buffer.getvalue()


def build_empty_pptx() -> bytes:
    presentation = Presentation()
    presentation.slides.add_slide(presentation.slide_layouts[6])
    buffer = BytesIO()
    presentation.save(buffer)
    return buffer.getvalue()


class TestExtractPptxText:
    """Tests for extract_pptx_text."""

    def test_extracts_all_slides(self):
        data = build_pptx([("Mitosis", "Cells divide"), ("Meiosis", "Gametes form")])

        text = extract_pptx_text(data)

        assert "Mitosis" in text
        assert "Cells divide" in text
        assert text.index("Mitosis") < text.index("Meiosis")

    def test_extracts_tables(self):
        text = extract_pptx_text(build_table_pptx())
        assert "Element | Symbol" in text
        assert "Gold | Au" in text

    def test_corrupt_file(self):
        with pytest.raises(ExtractionError, match="Failed to extract text from PPT file"):
            extract_pptx_text(b"definitely not a zip archive")

    def test_presentation_without_text(self):
        with pytest.raises(ExtractionError, match="no text found"):
            extract_pptx_text(build_empty_pptx())


class TestPrepareMaterial:
    """Tests for turning requests into prompt preambles."""

    def test_text_material(self):
        request = GenerationRequest(
            study_material="The heart has four chambers.", counts=DifficultyCounts(easy=1)
        )

        material = prepare_generation_material(request)

        assert material.preamble == "STUDY MATERIAL:\nThe heart has four chambers."
        assert material.attachment is None

    def test_presentation_becomes_text(self):
        attachment = Attachment(
            data=build_pptx([("Photosynthesis", "Chlorophyll absorbs light")]),
            mime_type=PPTX_MEDIA_TYPE,
        )
        request = GenerationRequest(counts=DifficultyCounts(easy=1), attachment=attachment)

        material = prepare_generation_material(request)

        assert material.preamble.startswith("STUDY MATERIAL EXTRACTED FROM PPT:\n")
        assert "Chlorophyll absorbs light" in material.preamble
        assert material.attachment is None

    def test_native_file_is_passed_through(self):
        attachment = Attachment(data=b"\x89PNG", mime_type="image/png")
        request = SolvingRequest(attachment=attachment)

        material = prepare_solving_material(request)

        assert material.preamble == "SOLVE THE MCQS IN THE ATTACHED FILE."
        assert material.attachment is attachment

    def test_unsupported_file(self):
        attachment = Attachment(data=b"PK", mime_type="application/zip")
        request = SolvingRequest(attachment=attachment)

        with pytest.raises(UnsupportedMediaTypeError, match="application/zip"):
            prepare_solving_material(request)

    def test_render(self):
        material = PreparedMaterial(preamble="MCQ QUESTIONS:\n1. Q")
        assert material.render("TASK: solve") == "MCQ QUESTIONS:\n1. Q\n\nTASK: solve"
