"""
Search quality metrics per A/B variant, computed from the event log.

- CTR: clicks per search
- No-click rate: searching sessions without any click
- Mean time-to-click
- Click position distribution and MRR of click positions
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from news_ranking.events import ClickEvent, EventRepository, SearchEvent, utc_now
from news_ranking.metrics import (
    click_through_rate,
    mean_or_zero,
    mean_reciprocal_rank,
    no_click_rate,
    position_distribution,
)
from news_ranking.variants import Variant

# Queries with fewer searches are too noisy to flag
MIN_SEARCHES_FOR_QUERY_STATS = 3


@dataclass(frozen=True)
class VariantMetrics:
    total_searches: int = 0
    total_clicks: int = 0
    ctr: float = 0.0
    no_click_rate: float = 0.0
    avg_time_to_click_ms: float = 0.0
    mean_reciprocal_rank: float = 0.0
    clicks_by_position: dict[int, int] = field(default_factory=dict)


@dataclass(frozen=True)
class QueryStats:
    query: str
    search_count: int
    click_count: int
    ctr: float


def compute_metrics(searches: list[SearchEvent], clicks: list[ClickEvent]) -> VariantMetrics:
    if not searches:
        return VariantMetrics()

    positions = [c.position for c in clicks if c.position is not None]
    return VariantMetrics(
        total_searches=len(searches),
        total_clicks=len(clicks),
        ctr=click_through_rate(len(clicks), len(searches)),
        no_click_rate=no_click_rate(
            (s.session_id for s in searches), (c.session_id for c in clicks)
        ),
        avg_time_to_click_ms=mean_or_zero(
            [c.time_to_click_ms for c in clicks if c.time_to_click_ms is not None]
        ),
        mean_reciprocal_rank=mean_reciprocal_rank(positions),
        clicks_by_position=position_distribution(positions),
    )


def _window(hours_back: float, now: datetime | None) -> tuple[datetime, datetime]:
    now = now or utc_now()
    return now - timedelta(hours=hours_back), now


def variant_metrics(
    events: EventRepository, hours_back: float, now: datetime | None = None
) -> dict[str, VariantMetrics]:
    """Metrics for variants A and B over the last `hours_back` hours."""
    start, end = _window(hours_back, now)

    searches_by_variant: dict[str, list[SearchEvent]] = defaultdict(list)
    for search in events.searches_between(start, end):
        searches_by_variant[search.variant].append(search)

    clicks_by_variant: dict[str, list[ClickEvent]] = defaultdict(list)
    for click in events.clicks_between(start, end):
        clicks_by_variant[click.variant].append(click)

    return {
        variant.value: compute_metrics(
            searches_by_variant.get(variant.value, []), clicks_by_variant.get(variant.value, [])
        )
        for variant in Variant
    }


def problematic_queries(
    events: EventRepository,
    hours_back: float,
    limit: int,
    min_searches: int = MIN_SEARCHES_FOR_QUERY_STATS,
    now: datetime | None = None,
) -> list[QueryStats]:
    """Queries with at least `min_searches` searches, lowest CTR first."""
    start, end = _window(hours_back, now)

    search_counts: dict[str, int] = defaultdict(int)
    for search in events.searches_between(start, end):
        if search.query is not None:
            search_counts[search.query] += 1

    click_counts: dict[str, int] = defaultdict(int)
    for click in events.clicks_between(start, end):
        if click.query is not None:
            click_counts[click.query] += 1

    stats = [
        QueryStats(query, count, click_counts[query], click_counts[query] / count)
        for query, count in search_counts.items()
        if count >= min_searches
    ]
    stats.sort(key=lambda s: s.ctr)
    return stats[:limit]
