"""Exception hierarchy for the suggestion engine."""

from __future__ import annotations


class SuggestionEngineError(Exception):
    """Base class for all engine errors."""


class ResolutionError(SuggestionEngineError):
    """A backend call resolving a suggestion failed."""

    def __init__(self, suggestion_id: str, message: str, status_code: int | None = None):
        super().__init__(message)
        self.suggestion_id = suggestion_id
        self.status_code = status_code


class RetryableResolutionError(ResolutionError):
    """Network failure or 5xx/429 response; safe to try again."""


class TerminalResolutionError(ResolutionError):
    """4xx response; retrying will not help."""


class SchedulerDisposedError(SuggestionEngineError):
    """Work was submitted to a scheduler after dispose()."""
