"""Prompt templates for MCQ generation and solving."""

from .models import DifficultyCounts

GENERATION_SYSTEM_INSTRUCTION = """You are an expert academic assessment generator. Your goal is to create high-quality, pedagogically sound multiple-choice questions.

CORE PRINCIPLES:
1. ACCURACY: Every question must have one clearly correct answer derived strictly from the provided material.
2. CLARITY: Use precise, professional academic language. Avoid ambiguity.
3. QUALITY DISTRACTORS: The incorrect options must be plausible but definitively incorrect. Avoid "obviously wrong" options.
4. INDEPENDENCE: Each question should be independent; do not rely on previous questions for answers.
5. CONSTRAINTS:
   - Avoid "All of the above" or "None of the above" unless absolutely necessary.
   - Do not include questions with "refer to figure/image" unless the content is provided.
   - Ensure a balanced distribution of topics from the material.

OUTPUT FORMAT:
Return ONLY a valid JSON array of MCQ objects. Each object MUST have: "question", "options" (with A, B, C, D), "correctAnswer" (just the letter), and "explanation".
Avoid excessive escaping; let the JSON string handle standard characters. For LaTeX, use single backslashes if not using specific JSON mode. No markdown, no filler."""

SOLVING_SYSTEM_INSTRUCTION = """You are an expert academic evaluator. Your task is to solve multiple-choice questions accurately.

CORE PRINCIPLES:
1. PRECISION: Identify the single most correct answer based on logical reasoning and academic facts.
2. FULL STRUCTURE: You MUST return the full MCQ object for each question, including the original question text and all options (A, B, C, D), even if only the answer was requested.
3. EXPLANATION: If requested, provide a clear, logical explanation for why the chosen answer is correct.

OUTPUT FORMAT:
Return ONLY a valid JSON array of MCQ objects. Each object MUST have: "question", "options" (with A, B, C, D), "correctAnswer" (just the letter), and "explanation".
Be brief. No markdown, no filler."""

FEW_SHOT_EXAMPLES = """
EXAMPLE INPUT: "The solar system consists of the Sun and everything that orbits it, including eight planets. Jupiter is the largest planet."
EXAMPLE OUTPUT (2 MCQs, Easy):
[
  {
    "question": "Which celestial body is at the center of our solar system?",
    "options": {
      "A": "The Moon",
      "B": "The Sun",
      "C": "Jupiter",
      "D": "Mars"
    },
    "correctAnswer": "B",
    "explanation": "The text states the solar system consists of the Sun and everything that orbits it."
  },
  {
    "question": "What is the largest planet in our solar system?",
    "options": {
      "A": "Earth",
      "B": "Saturn",
      "C": "Jupiter",
      "D": "Neptune"
    },
    "correctAnswer": "C",
    "explanation": "The material explicitly mentions that Jupiter is the largest planet."
  }
]
"""

# Material headers, prepended to the task prompt by the material preparer.
TEXT_MATERIAL_HEADER = "STUDY MATERIAL:"
PPTX_MATERIAL_HEADER = "STUDY MATERIAL EXTRACTED FROM PPT:"
FILE_MATERIAL_HEADER = "GENERATE MCQS BASED ON THE ATTACHED FILE CONTENT."
TEXT_QUESTIONS_HEADER = "MCQ QUESTIONS:"
PPTX_QUESTIONS_HEADER = "MCQ QUESTIONS EXTRACTED FROM PPT:"
FILE_QUESTIONS_HEADER = "SOLVE THE MCQS IN THE ATTACHED FILE."


def _explanation_instruction(include_explanation: bool) -> str:
    if include_explanation:
        return "Include a detailed explanation for each answer."
    return "Do NOT include explanations."


def build_generation_prompt(counts: DifficultyCounts, include_explanation: bool) -> str:
    """
    Build the task prompt for one generation batch.

    Args:
        counts: Questions to generate per difficulty tier
        include_explanation: Whether each answer needs an explanation

    Returns:
        The task prompt; the material is prepended by the caller
    """
    return f"""TASK: Generate exactly {counts.total} MCQs from the provided material.
DISTRIBUTION:
- Easy: {counts.easy} questions (Direct recall)
- Medium: {counts.medium} questions (Application)
- Hard: {counts.hard} questions (Complex reasoning)

INSTRUCTIONS:
1. Base questions strictly on the provided material.
2. {_explanation_instruction(include_explanation)}

{FEW_SHOT_EXAMPLES}

PROVIDED MATERIAL:
"""


def build_solving_prompt(include_explanation: bool) -> str:
    """
    Build the task prompt for solving a set of MCQs.

    Args:
        include_explanation: Whether detailed explanations are wanted

    Returns:
        The task prompt; the questions are prepended by the caller
    """
    explanation = (
        "Include detailed explanations."
        if include_explanation
        else "Keep explanations brief."
    )
    return f"""TASK: Identify the correct answers for the following MCQs and return the complete MCQ objects.
INSTRUCTIONS:
1. For each question provided, determine the correct option.
2. You MUST return the FULL MCQ structure for every question: question text, all options, the correct answer letter, and an explanation.
3. {explanation}

OUTPUT FORMAT: Return ONLY a JSON array of MCQ objects with "question", "options" (A, B, C, D), "correctAnswer" and "explanation"."""
