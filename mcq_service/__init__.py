"""MCQ generation and solving service backed by Gemini models."""

__version__ = "0.1.0"
