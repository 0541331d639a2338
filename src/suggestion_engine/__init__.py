"""Suggestion lifecycle engine for an AI-assisted blog editor."""

__version__ = "0.1.0"
