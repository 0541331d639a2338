"""Priority scoring, virtualization and segmentation of suggestion highlights.

The engine turns an arbitrary, possibly overlapping set of suggestions into
an ordered list of segments covering ``[0, len(content))`` exactly once:

1. every suggestion gets a score (active bonus, type weight, position bonus);
2. large sets are cut down to the active suggestion, the best-scoring others
   and whatever the viewport reports visible;
3. overlaps are settled in score order, so a lower-scoring range that
   intersects a kept one is dropped for this pass;
4. the survivors are walked in text order, emitting plain-text gaps and
   highlight segments.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from suggestion_engine.cache.suggestion_cache import SuggestionCache
from suggestion_engine.config import HighlightConfig
from suggestion_engine.models.segments import HighlightSegment
from suggestion_engine.models.suggestion import Suggestion, SuggestionType

logger = logging.getLogger(__name__)

ACTIVE_BONUS = 1000.0
DEFAULT_TYPE_WEIGHT = 50.0
TYPE_WEIGHTS: dict[SuggestionType, float] = {
    SuggestionType.SPELLING: 100.0,
    SuggestionType.GRAMMAR: 90.0,
    SuggestionType.FACT: 80.0,
    SuggestionType.BRAND: 70.0,
    SuggestionType.LLM: 60.0,
}
MAX_POSITION_BONUS = 100.0


@dataclass(frozen=True)
class ScoredSuggestion:
    suggestion: Suggestion
    score: float
    is_active: bool


@dataclass(frozen=True)
class HighlightResult:
    segments: tuple[HighlightSegment, ...]
    rendered_ids: tuple[str, ...]
    shadowed_ids: tuple[str, ...]
    virtualized: bool
    total_count: int

    @property
    def text(self) -> str:
        return "".join(segment.text for segment in self.segments)

    @property
    def highlights(self) -> tuple[HighlightSegment, ...]:
        return tuple(s for s in self.segments if s.is_highlight)


def type_weight(suggestion_type: SuggestionType) -> float:
    return TYPE_WEIGHTS.get(suggestion_type, DEFAULT_TYPE_WEIGHT)


def score_suggestion(suggestion: Suggestion, content_length: int, active_id: str | None = None) -> float:
    """Render priority of one suggestion; higher wins overlaps."""
    if suggestion.id == active_id:
        score = ACTIVE_BONUS
    else:
        score = type_weight(suggestion.type)
    if content_length > 0:
        score += max(0.0, MAX_POSITION_BONUS * (1 - suggestion.start_offset / content_length))
    return score


def rank_suggestions(
    suggestions: Iterable[Suggestion], content_length: int, active_id: str | None = None
) -> list[ScoredSuggestion]:
    """Score and sort suggestions, best first. Ties break on start offset, then id."""
    scored = [
        ScoredSuggestion(s, score_suggestion(s, content_length, active_id), s.id == active_id)
        for s in suggestions
    ]
    scored.sort(key=lambda item: (-item.score, item.suggestion.start_offset, item.suggestion.id))
    return scored


def select_for_render(
    ranked: Sequence[ScoredSuggestion],
    *,
    virtualization_threshold: int,
    render_batch_size: int,
    visible_ids: Iterable[str] = (),
) -> list[ScoredSuggestion]:
    """Bound the render set for large suggestion counts.

    Keeps the active suggestion, then the highest-scoring others up to
    ``render_batch_size``, then anything already reported visible. Output
    stays in ranked order.
    """
    if len(ranked) <= virtualization_threshold:
        return list(ranked)

    visible = set(visible_ids)
    active = [item for item in ranked if item.is_active]
    budget = max(0, render_batch_size - len(active))
    top = [item for item in ranked if not item.is_active][:budget]
    keep = {item.suggestion.id for item in active + top}
    keep.update(item.suggestion.id for item in ranked if item.suggestion.id in visible)
    return [item for item in ranked if item.suggestion.id in keep]


def resolve_overlaps(ranked: Sequence[ScoredSuggestion]) -> tuple[list[ScoredSuggestion], list[str]]:
    """Keep each range only if no higher-ranked kept range intersects it.

    Returns (kept, shadowed ids). Input must already be in ranked order.
    """
    kept: list[ScoredSuggestion] = []
    shadowed: list[str] = []
    for item in ranked:
        if any(item.suggestion.overlaps(other.suggestion) for other in kept):
            shadowed.append(item.suggestion.id)
            continue
        kept.append(item)
    return kept, shadowed


def build_segments(content: str, items: Iterable[ScoredSuggestion]) -> list[HighlightSegment]:
    """Walk highlights in text order and cover the whole content."""
    ordered = sorted(items, key=lambda item: (item.suggestion.start_offset, -item.score))
    segments: list[HighlightSegment] = []
    current = 0
    for item in ordered:
        start = max(item.suggestion.start_offset, current)
        end = min(item.suggestion.end_offset, len(content))
        if start >= end:
            # fully covered by an earlier highlight
            continue
        if start > current:
            segments.append(HighlightSegment(content[current:start], "text", current, start))
        segments.append(
            HighlightSegment(
                content[start:end],
                "highlight",
                start,
                end,
                suggestion=item.suggestion,
                is_active=item.is_active,
            )
        )
        current = end
    if current < len(content) or not segments:
        segments.append(HighlightSegment(content[current:], "text", current, len(content)))
    return segments


class HighlightEngine:
    """Computes highlight segments, memoized through the suggestion cache."""

    def __init__(self, cache: SuggestionCache, config: HighlightConfig | None = None):
        self.cache = cache
        self.config = config or HighlightConfig()

    def render(
        self,
        suggestions: Sequence[Suggestion],
        content: str,
        active_id: str | None = None,
        visible_ids: Iterable[str] = (),
    ) -> HighlightResult:
        view = self.cache.get(suggestions, content)
        visible = frozenset(visible_ids)
        # the visible set only changes output once virtualization kicks in
        if len(view.available) <= self.config.virtualization_threshold:
            visible = frozenset()
        key = ("segments", view.fingerprint, active_id, visible)
        return self.cache.get_or_compute(
            key, lambda: self._compute(view.available, content, active_id, visible)
        )

    def _compute(
        self,
        suggestions: Sequence[Suggestion],
        content: str,
        active_id: str | None,
        visible: frozenset[str],
    ) -> HighlightResult:
        ranked = rank_suggestions(suggestions, len(content), active_id)
        selected = select_for_render(
            ranked,
            virtualization_threshold=self.config.virtualization_threshold,
            render_batch_size=self.config.render_batch_size,
            visible_ids=visible,
        )
        kept, shadowed = resolve_overlaps(selected)
        segments = build_segments(content, kept)
        virtualized = len(ranked) > self.config.virtualization_threshold
        if shadowed:
            logger.debug("%d overlapping suggestions shadowed", len(shadowed))
        if virtualized:
            logger.debug("Virtualized %d suggestions down to %d", len(ranked), len(selected))
        return HighlightResult(
            segments=tuple(segments),
            rendered_ids=tuple(s.suggestion_id for s in segments if s.is_highlight),
            shadowed_ids=tuple(shadowed),
            virtualized=virtualized,
            total_count=len(ranked),
        )
