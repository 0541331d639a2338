"""Immutable document snapshots: raw content plus its suggestion list."""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from pathlib import Path

from suggestion_engine.models.suggestion import Suggestion


@dataclass(frozen=True)
class SuggestionStore:
    """One snapshot of the document and the suggestions computed against it.

    Snapshots are never modified; every update returns a new snapshot.
    """

    content: str
    suggestions: tuple[Suggestion, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: dict) -> SuggestionStore:
        suggestions = tuple(Suggestion.model_validate(item) for item in data.get("suggestions", []))
        return cls(content=data.get("content", ""), suggestions=suggestions)

    def to_dict(self) -> dict:
        return {
            "content": self.content,
            "suggestions": [s.model_dump(mode="json", by_alias=True) for s in self.suggestions],
        }

    def get(self, suggestion_id: str) -> Suggestion | None:
        for suggestion in self.suggestions:
            if suggestion.id == suggestion_id:
                return suggestion
        return None

    def without(self, suggestion_ids: Iterable[str]) -> SuggestionStore:
        """Return a snapshot with the given suggestions removed."""
        drop = set(suggestion_ids)
        return replace(self, suggestions=tuple(s for s in self.suggestions if s.id not in drop))

    def with_suggestions(self, suggestions: Iterable[Suggestion]) -> SuggestionStore:
        return replace(self, suggestions=tuple(suggestions))

    def replace_content(self, content: str) -> SuggestionStore:
        return replace(self, content=content)

    def __len__(self) -> int:
        return len(self.suggestions)


def load_snapshot(path: str | Path) -> SuggestionStore:
    """Load a snapshot from a JSON file with ``content`` and ``suggestions`` keys."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Document not found: {p}")
    data = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {p}")
    return SuggestionStore.from_dict(data)
