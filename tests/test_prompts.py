"""Tests for prompt templates."""

from mcq_service.models import DifficultyCounts
from mcq_service.prompts import build_generation_prompt, build_solving_prompt


class TestBuildGenerationPrompt:
    """Tests for build_generation_prompt."""

    def test_distribution(self):
        prompt = build_generation_prompt(DifficultyCounts(easy=1, hard=1), False)

        assert "Generate exactly 2 MCQs" in prompt
        assert "- Easy: 1 questions" in prompt
        assert "- Medium: 0 questions" in prompt
        assert "- Hard: 1 questions" in prompt
        assert "Do NOT include explanations." in prompt

    def test_explanations_requested(self):
        prompt = build_generation_prompt(DifficultyCounts(medium=2), True)
        assert "Include a detailed explanation for each answer." in prompt

    def test_includes_examples(self):
        prompt = build_generation_prompt(DifficultyCounts(easy=1), False)
        assert '"correctAnswer": "B"' in prompt


class TestBuildSolvingPrompt:
    """Tests for build_solving_prompt."""

    def test_explanation_toggle(self):
        assert "Include detailed explanations." in build_solving_prompt(True)
        assert "Keep explanations brief." in build_solving_prompt(False)

    def test_requires_full_records(self):
        assert "FULL MCQ structure" in build_solving_prompt(False)
