"""Agentic article writer: tool-driven, resumable article generation."""

__version__ = "1.0.0"
