"""
Pytest configuration and shared fixtures for MediaBridge tests.

Provides in-memory provider callbacks that record every call, so tests
can assert on fan-out and caching behaviour without any network access.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import pytest

from mediabridge.core.models import MediaIdentity, MediaType
from mediabridge.core.statistics import StatisticsCollector


class RecordingSearch:
    """Search callback returning canned results per provider.

    A result may be a list of candidates, an exception instance (raised),
    or a float (the call sleeps that many seconds first, then returns []).
    """

    def __init__(self, results: Mapping[str, Any]) -> None:
        self.results = dict(results)
        self.calls: list[tuple[str, str, MediaType]] = []

    async def __call__(
        self, query: str, provider_id: str, media_type: MediaType
    ) -> list[Any]:
        self.calls.append((query, provider_id, media_type))
        result = self.results.get(provider_id, [])
        if isinstance(result, BaseException):
            raise result
        if isinstance(result, float):
            await asyncio.sleep(result)
            return []
        return list(result)

    @property
    def providers_called(self) -> list[str]:
        return [provider_id for _, provider_id, _ in self.calls]


class RecordingFetcher:
    """``(media_id, provider_id) -> value`` callback with canned values."""

    def __init__(self, values: Mapping[str, Any]) -> None:
        self.values = dict(values)
        self.calls: list[tuple[str, str]] = []

    async def __call__(self, media_id: str, provider_id: str) -> Any:
        self.calls.append((media_id, provider_id))
        value = self.values.get(provider_id, [])
        if isinstance(value, BaseException):
            raise value
        return value


@pytest.fixture
def recording_search() -> Callable[[Mapping[str, Any]], RecordingSearch]:
    """Factory for RecordingSearch callbacks."""
    return RecordingSearch


@pytest.fixture
def recording_fetcher() -> Callable[[Mapping[str, Any]], RecordingFetcher]:
    """Factory for RecordingFetcher callbacks."""
    return RecordingFetcher


@pytest.fixture
def statistics() -> StatisticsCollector:
    return StatisticsCollector()


@pytest.fixture
def attack_on_titan() -> MediaIdentity:
    """TMDB TV identity used across matching scenarios."""
    return MediaIdentity(
        title="Attack on Titan",
        media_type=MediaType.TV_SHOW,
        primary_provider_id="tmdb",
        english_title="Attack on Titan",
        romaji_title="Shingeki no Kyojin",
        release_year=2013,
    )


@pytest.fixture
def cache_path(tmp_path: Path) -> Path:
    return tmp_path / "cache" / "matches.json"


class FakeClock:
    """Manually advanced time source in epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
