"""PDF rendering of canonical MCQ records."""

import logging
from datetime import datetime
from io import BytesIO
from typing import List

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import KeepTogether, Paragraph, SimpleDocTemplate, Spacer

from .models import MCQ, OPTION_LABELS

logger = logging.getLogger(__name__)


def _escape_html(text: str) -> str:
    """Escape characters ReportLab's paragraph parser treats as markup."""
    if not text:
        return ""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _styles():
    styles = getSampleStyleSheet()
    styles.add(
        ParagraphStyle(
            name="AssessmentTitle",
            parent=styles["Title"],
            alignment=TA_CENTER,
            fontSize=18,
            spaceAfter=6,
        )
    )
    styles.add(
        ParagraphStyle(
            name="Generated",
            parent=styles["Normal"],
            alignment=TA_CENTER,
            fontSize=9,
            textColor=colors.grey,
            spaceAfter=12,
        )
    )
    styles.add(
        ParagraphStyle(
            name="QuestionText",
            parent=styles["Normal"],
            fontSize=11,
            leading=14,
            spaceBefore=8,
            spaceAfter=4,
        )
    )
    styles.add(
        ParagraphStyle(
            name="MCQOption",
            parent=styles["Normal"],
            fontSize=10,
            leftIndent=18,
            spaceAfter=2,
        )
    )
    styles.add(
        ParagraphStyle(
            name="AnswerText",
            parent=styles["Normal"],
            fontSize=10,
            leftIndent=18,
            textColor=colors.darkgreen,
            spaceBefore=4,
        )
    )
    return styles


def generate_pdf(mcqs: List[MCQ], title: str, include_explanation: bool = False) -> bytes:
    """
    Render MCQs with their answers into a PDF document.

    Args:
        mcqs: Canonical records to render
        title: Document title
        include_explanation: Whether to print each explanation under the answer

    Returns:
        The PDF file as bytes
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=2 * cm,
        rightMargin=2 * cm,
        topMargin=2 * cm,
        bottomMargin=2 * cm,
        title=title,
    )
    styles = _styles()

    story = [
        Paragraph(_escape_html(title), styles["AssessmentTitle"]),
        Paragraph(
            f"Generated on {datetime.now().strftime('%Y-%m-%d %H:%M')} "
            f"- {len(mcqs)} questions",
            styles["Generated"],
        ),
    ]

    for number, mcq in enumerate(mcqs, start=1):
        block = [
            Paragraph(f"<b>Q{number}.</b> {_escape_html(mcq.question)}", styles["QuestionText"])
        ]
        for label in OPTION_LABELS:
            block.append(
                Paragraph(f"{label}) {_escape_html(mcq.options[label])}", styles["MCQOption"])
            )
        block.append(
            Paragraph(f"<b>Answer:</b> {mcq.correct_answer}", styles["AnswerText"])
        )
        if include_explanation and mcq.explanation:
            block.append(
                Paragraph(
                    f"<i>Explanation:</i> {_escape_html(mcq.explanation)}",
                    styles["AnswerText"],
                )
            )
        story.append(KeepTogether(block))
        story.append(Spacer(1, 4))

    doc.build(story)
    logger.info(f"Rendered PDF with {len(mcqs)} MCQs")
    return buffer.getvalue()
