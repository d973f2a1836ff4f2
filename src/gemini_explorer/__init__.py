"""Gemini API Terminal Explorer."""

__version__ = "0.1.0"
