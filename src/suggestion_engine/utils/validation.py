"""Suggestion range validation and position recovery."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

from suggestion_engine.models.suggestion import Suggestion

logger = logging.getLogger(__name__)

MIN_RECOVERY_CONFIDENCE = 0.5


@dataclass(frozen=True)
class InvalidSuggestion:
    suggestion: Suggestion
    reason: str


@dataclass(frozen=True)
class ValidationResult:
    valid: tuple[Suggestion, ...]
    invalid: tuple[InvalidSuggestion, ...]
    drifted: tuple[str, ...]


@dataclass(frozen=True)
class PositionMatch:
    found: bool
    confidence: float = 0.0
    start_offset: int = 0
    end_offset: int = 0


def range_error(suggestion: Suggestion, content_length: int) -> str | None:
    """Return why a suggestion's range is unusable, or None if it is in bounds."""
    if suggestion.start_offset < 0:
        return "start offset is negative"
    if suggestion.end_offset > content_length:
        return "end offset exceeds content length"
    if suggestion.start_offset >= suggestion.end_offset:
        return "empty or inverted range"
    return None


def validate_positions(suggestions: Sequence[Suggestion], content: str) -> ValidationResult:
    """Split suggestions into usable and unusable ranges.

    Out-of-bounds and degenerate ranges are invalid. A range whose text no
    longer equals ``text_to_replace`` stays valid but is reported as drifted.
    """
    valid: list[Suggestion] = []
    invalid: list[InvalidSuggestion] = []
    drifted: list[str] = []
    for suggestion in suggestions:
        reason = range_error(suggestion, len(content))
        if reason is not None:
            logger.debug("Dropping suggestion %s: %s", suggestion.id, reason)
            invalid.append(InvalidSuggestion(suggestion, reason))
            continue
        actual = content[suggestion.start_offset:suggestion.end_offset]
        if suggestion.text_to_replace and actual != suggestion.text_to_replace:
            drifted.append(suggestion.id)
        valid.append(suggestion)
    return ValidationResult(tuple(valid), tuple(invalid), tuple(drifted))


def find_correct_position(suggestion: Suggestion, content: str) -> PositionMatch:
    """Locate ``text_to_replace`` in content after the document has shifted.

    Tries an exact match nearest to the old offset first, then the best
    sequence of up to three consecutive words.
    """
    target = suggestion.text_to_replace
    if not target:
        return PositionMatch(found=False)

    exact = [m.start() for m in re.finditer(re.escape(target), content)]
    if exact:
        start = min(exact, key=lambda i: abs(i - suggestion.start_offset))
        return PositionMatch(True, 1.0, start, start + len(target))

    words = [w for w in target.split() if len(w) > 2]
    best = PositionMatch(found=False)
    for i in range(len(words)):
        sequence = " ".join(words[i:i + 3])
        index = content.find(sequence)
        if index == -1:
            continue
        confidence = len(sequence) / len(target)
        if confidence > best.confidence:
            best = PositionMatch(True, confidence, index, index + len(sequence))
    return best


def auto_correct_positions(
    suggestions: Sequence[Suggestion], content: str
) -> tuple[list[Suggestion], list[Suggestion]]:
    """Relocate drifted or out-of-range suggestions.

    Returns (corrected, uncorrectable). Suggestions that already match are
    passed through unchanged.
    """
    corrected: list[Suggestion] = []
    uncorrectable: list[Suggestion] = []
    for suggestion in suggestions:
        in_bounds = range_error(suggestion, len(content)) is None
        actual = content[suggestion.start_offset:suggestion.end_offset] if in_bounds else None
        if in_bounds and (not suggestion.text_to_replace or actual == suggestion.text_to_replace):
            corrected.append(suggestion)
            continue

        match = find_correct_position(suggestion, content)
        if match.found and match.confidence > MIN_RECOVERY_CONFIDENCE:
            logger.debug(
                "Relocated suggestion %s: %d-%d -> %d-%d (confidence %.2f)",
                suggestion.id,
                suggestion.start_offset,
                suggestion.end_offset,
                match.start_offset,
                match.end_offset,
                match.confidence,
            )
            corrected.append(suggestion.with_offsets(match.start_offset, match.end_offset))
        else:
            uncorrectable.append(suggestion)
    return corrected, uncorrectable
