"""Engine configuration loaded from config.yaml."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


def _check_range(name: str, value: float, low: float, high: float | None = None) -> None:
    if value < low or (high is not None and value > high):
        bound = f"[{low}, {high}]" if high is not None else f">= {low}"
        raise ValueError(f"{name} must be {bound}, got {value!r}")


@dataclass(frozen=True)
class CacheConfig:
    max_entries: int = 100
    ttl_seconds: float = 300.0
    sweep_interval: float = 60.0

    def __post_init__(self) -> None:
        _check_range("max_entries", self.max_entries, 1, 100_000)
        _check_range("ttl_seconds", self.ttl_seconds, 0)
        _check_range("sweep_interval", self.sweep_interval, 0)


@dataclass(frozen=True)
class HighlightConfig:
    virtualization_threshold: int = 50
    render_batch_size: int = 20
    enable_debouncing: bool = True
    visibility_debounce: float = 0.15

    def __post_init__(self) -> None:
        _check_range("virtualization_threshold", self.virtualization_threshold, 0)
        _check_range("render_batch_size", self.render_batch_size, 1)
        _check_range("visibility_debounce", self.visibility_debounce, 0)


@dataclass(frozen=True)
class NavigationConfig:
    enable_auto_advance: bool = True
    auto_advance_delay: float = 0.3

    def __post_init__(self) -> None:
        _check_range("auto_advance_delay", self.auto_advance_delay, 0, 10)


@dataclass(frozen=True)
class ResolutionConfig:
    enable_optimistic_updates: bool = True
    enable_batch_processing: bool = True
    batch_size: int = 5
    batch_delay: float = 0.5
    max_retries: int = 3
    retry_delay_multiplier: float = 2.0
    enable_auto_retry: bool = True

    def __post_init__(self) -> None:
        _check_range("batch_size", self.batch_size, 1, 100)
        _check_range("batch_delay", self.batch_delay, 0, 60)
        _check_range("max_retries", self.max_retries, 0, 10)
        _check_range("retry_delay_multiplier", self.retry_delay_multiplier, 1)


@dataclass(frozen=True)
class ApiConfig:
    base_url: str = ""
    timeout: float = 30.0
    max_attempts: int = 3

    def __post_init__(self) -> None:
        _check_range("timeout", self.timeout, 1, 600)
        _check_range("max_attempts", self.max_attempts, 1, 10)

    @property
    def resolved_base_url(self) -> str:
        return (self.base_url or os.environ.get("SUGGESTION_API_URL", "")).rstrip("/")


@dataclass(frozen=True)
class EngineConfig:
    cache: CacheConfig = field(default_factory=CacheConfig)
    highlight: HighlightConfig = field(default_factory=HighlightConfig)
    navigation: NavigationConfig = field(default_factory=NavigationConfig)
    resolution: ResolutionConfig = field(default_factory=ResolutionConfig)
    api: ApiConfig = field(default_factory=ApiConfig)


def load_config(path: str | Path | None = None) -> EngineConfig:
    """Load config from YAML file, falling back to defaults."""
    if path is None:
        # Look for config.yaml relative to the project root
        candidates = [
            Path.cwd() / "config.yaml",
            Path(__file__).resolve().parent.parent.parent / "config.yaml",
        ]
        for c in candidates:
            if c.exists():
                path = c
                break

    raw: dict = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            raw = yaml.safe_load(p.read_text()) or {}

    return EngineConfig(
        cache=CacheConfig(**raw.get("cache", {})),
        highlight=HighlightConfig(**raw.get("highlight", {})),
        navigation=NavigationConfig(**raw.get("navigation", {})),
        resolution=ResolutionConfig(**raw.get("resolution", {})),
        api=ApiConfig(**raw.get("api", {})),
    )
