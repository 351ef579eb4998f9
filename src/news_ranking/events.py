"""
Search and click events and the repository interface that stores them.

The real repository lives outside this package; `InMemoryEventRepository` is a
thread-safe reference implementation used by tests and the CLI.
"""

from __future__ import annotations

import threading
from collections.abc import Hashable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SearchEvent:
    """One served search and the ids of the results shown."""

    query: str | None
    result_ids: tuple[Hashable, ...] = ()
    session_id: str | None = None
    category_filter: str | None = None
    result_count: int = 0
    response_time_ms: float | None = None
    variant: str | None = None
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class ClickEvent:
    """A click on a search result. `position` is 1-based."""

    query: str | None
    doc_id: Hashable
    session_id: str | None = None
    position: int | None = None
    variant: str | None = None
    time_to_click_ms: float | None = None
    timestamp: datetime = field(default_factory=utc_now)


class EventRepository(Protocol):
    def save_search(self, event: SearchEvent) -> None: ...

    def save_click(self, event: ClickEvent) -> None: ...

    def searches_between(self, start: datetime, end: datetime) -> list[SearchEvent]: ...

    def clicks_between(self, start: datetime, end: datetime) -> list[ClickEvent]: ...

    def all_searches(self) -> list[SearchEvent]: ...

    def all_clicks(self) -> list[ClickEvent]: ...


class InMemoryEventRepository:
    def __init__(self) -> None:
        self._searches: list[SearchEvent] = []
        self._clicks: list[ClickEvent] = []
        self._lock = threading.Lock()

    def save_search(self, event: SearchEvent) -> None:
        with self._lock:
            self._searches.append(event)

    def save_click(self, event: ClickEvent) -> None:
        with self._lock:
            self._clicks.append(event)

    def searches_between(self, start: datetime, end: datetime) -> list[SearchEvent]:
        with self._lock:
            return [e for e in self._searches if start <= e.timestamp <= end]

    def clicks_between(self, start: datetime, end: datetime) -> list[ClickEvent]:
        with self._lock:
            return [e for e in self._clicks if start <= e.timestamp <= end]

    def all_searches(self) -> list[SearchEvent]:
        with self._lock:
            return list(self._searches)

    def all_clicks(self) -> list[ClickEvent]:
        with self._lock:
            return list(self._clicks)
