"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from suggestion_engine.cache.suggestion_cache import SuggestionCache
from suggestion_engine.config import (
    CacheConfig,
    EngineConfig,
    NavigationConfig,
    ResolutionConfig,
)
from suggestion_engine.engine.scheduler import TaskScheduler
from suggestion_engine.models.suggestion import Suggestion


def _make_suggestion(
    suggestion_id: str,
    start: int,
    end: int,
    type: str = "llm",
    text_to_replace: str = "",
    replace_with: str = "",
) -> Suggestion:
    return Suggestion(
        id=suggestion_id,
        type=type,
        start_offset=start,
        end_offset=end,
        text_to_replace=text_to_replace,
        replace_with=replace_with,
    )


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def make_suggestion():
    """Factory for suggestions with only the fields a test cares about."""
    return _make_suggestion


@pytest.fixture
def sample_content() -> str:
    return "Teh quick brown fox jumps over teh lazy dog. Their going to the park tomorow."


@pytest.fixture
def sample_suggestions(sample_content) -> list[Suggestion]:
    return [
        _make_suggestion("s-teh-1", 0, 3, "spelling", "Teh", "The"),
        _make_suggestion("s-teh-2", 31, 34, "spelling", "teh", "the"),
        _make_suggestion("s-their", 45, 50, "grammar", "Their", "They're"),
        _make_suggestion("s-tomorrow", 69, 76, "spelling", "tomorow", "tomorrow"),
    ]


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(fake_clock) -> SuggestionCache:
    return SuggestionCache(max_entries=10, ttl_seconds=300.0, clock=fake_clock)


@pytest.fixture
async def scheduler():
    sched = TaskScheduler()
    yield sched
    await sched.aclose()


@pytest.fixture
def fast_config() -> EngineConfig:
    """Engine config with delays short enough for real-time tests."""
    return EngineConfig(
        cache=CacheConfig(sweep_interval=0),
        navigation=NavigationConfig(auto_advance_delay=0),
        resolution=ResolutionConfig(batch_delay=0.01, retry_delay_multiplier=1.0),
    )


@pytest.fixture
def mock_backend() -> AsyncMock:
    """Backend whose calls succeed unless a test overrides side_effect."""
    backend = AsyncMock()
    backend.accept_suggestion = AsyncMock(return_value=None)
    backend.reject_suggestion = AsyncMock(return_value=None)
    return backend


@pytest.fixture
def document_file(tmp_path, sample_content, sample_suggestions) -> Path:
    path = tmp_path / "post.json"
    path.write_text(
        json.dumps(
            {
                "content": sample_content,
                "suggestions": [s.model_dump(mode="json", by_alias=True) for s in sample_suggestions],
            }
        ),
        encoding="utf-8",
    )
    return path
