"""
Ranking features for re-ranking candidates.

Every candidate gets a fixed-order feature vector:

    [relevance, popularity, freshness, category_boost]

The order must match the order the learning-to-rank weights were trained with.

- relevance:      min-max normalized base score within the candidate pool
- popularity:     log(1 + clicks) / log(1 + max clicks in the pool)
- freshness:      1 / (1 + age_days / decay_days), 0.1 when the date is unknown
- category_boost: configured boost when the category filter matches, else 1.0

Popularity is normalized by the maximum click count of the current pool, not a
global maximum, so the same document can get different popularity values for
different pool sizes.
"""

from __future__ import annotations

import math
from collections.abc import Hashable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, NamedTuple

import numpy as np

from news_ranking.config import RankingConfig

FEATURE_NAMES = ("relevance", "popularity", "freshness", "category_boost")
FEATURE_COUNT = len(FEATURE_NAMES)

# Freshness used when a document has no publish date
MISSING_DATE_FRESHNESS = 0.1


@dataclass(frozen=True)
class Document:
    """Snapshot of a news document as read from the document store."""

    doc_id: Hashable
    headline: str = ""
    short_description: str = ""
    category: str | None = None
    publish_date: date | None = None
    click_count: int | None = None
    authors: str = ""
    link: str = ""

    @property
    def text(self) -> str:
        """The single text field that gets indexed."""
        return f"{self.headline} {self.short_description}".strip()

    @classmethod
    def from_record(cls, record: Mapping[str, Any], doc_id: Hashable | None = None) -> Document:
        """
        Parse a news dataset record.

        Expected keys: `category`, `headline`, `authors`, `link`,
        `short_description`, `date` (YYYY-MM-DD) and optionally `id` and
        `click_count`.
        """
        raw_date = record.get("date")
        publish_date = None
        if isinstance(raw_date, datetime):
            publish_date = raw_date.date()
        elif isinstance(raw_date, date):
            publish_date = raw_date
        elif raw_date:
            publish_date = date.fromisoformat(str(raw_date)[:10])

        clicks = record.get("click_count")
        return cls(
            doc_id=doc_id if doc_id is not None else record.get("id"),
            headline=record.get("headline") or "",
            short_description=record.get("short_description") or "",
            category=record.get("category"),
            publish_date=publish_date,
            click_count=int(clicks) if clicks is not None else None,
            authors=record.get("authors") or "",
            link=record.get("link") or "",
        )


@dataclass(frozen=True)
class Candidate:
    """A retrieved document and its upstream relevance score."""

    document: Document
    base_score: float


class FeatureVector(NamedTuple):
    relevance: float
    popularity: float
    freshness: float
    category_boost: float

    def as_array(self) -> np.ndarray:
        return np.array(self, dtype=np.float64)


def normalize_scores(scores: Sequence[float]) -> list[float]:
    """
    Min-max normalize scores to [0, 1].

    When every score is equal the range defaults to 1, so every score maps to
    0.0 and the result stays inside [0, 1].
    """
    if not scores:
        return []
    low, high = min(scores), max(scores)
    spread = high - low
    if spread == 0:
        spread = 1.0
    return [(s - low) / spread for s in scores]


def popularity_score(clicks: int | None, max_clicks: int) -> float:
    """Log-scaled click count relative to the pool maximum."""
    clicks = clicks or 0
    max_clicks = max(max_clicks, 1)
    return math.log1p(clicks) / math.log1p(max_clicks)


def freshness_score(publish_date: date | None, today: date, decay_days: float) -> float:
    """Hyperbolic decay: 1.0 today, 0.5 after `decay_days`, 0.25 after three times that."""
    if publish_date is None:
        return MISSING_DATE_FRESHNESS
    age_days = max(0, (today - publish_date).days)
    return 1.0 / (1.0 + age_days / decay_days)


def category_boost(category: str | None, category_filter: str | None, boost: float) -> float:
    if not category_filter or category is None:
        return 1.0
    if category_filter.casefold() == category.casefold():
        return boost
    return 1.0


class FeatureExtractor:
    """
    Computes feature vectors for a pool of candidates.

    Args:
        config (RankingConfig): Snapshot providing the freshness decay and the
            category boost. Take one snapshot per request.
    """

    def __init__(self, config: RankingConfig):
        self.config = config

    def features(
        self,
        document: Document,
        relevance: float,
        max_clicks: int,
        today: date,
        category_filter: str | None = None,
    ) -> FeatureVector:
        """Feature vector of one document given pool-level statistics."""
        return FeatureVector(
            relevance=relevance,
            popularity=popularity_score(document.click_count, max_clicks),
            freshness=freshness_score(
                document.publish_date, today, self.config.freshness_decay_days
            ),
            category_boost=category_boost(
                document.category, category_filter, self.config.category_match_boost
            ),
        )

    def extract(
        self,
        candidates: Sequence[Candidate],
        category_filter: str | None = None,
        today: date | None = None,
    ) -> list[FeatureVector]:
        """Feature vectors for all candidates, in input order."""
        if not candidates:
            return []
        today = today or date.today()

        relevance = normalize_scores([c.base_score for c in candidates])
        max_clicks = max(c.document.click_count or 0 for c in candidates)

        return [
            self.features(candidate.document, rel, max_clicks, today, category_filter)
            for candidate, rel in zip(candidates, relevance)
        ]


def feature_matrix(vectors: Sequence[FeatureVector]) -> np.ndarray:
    """Stack feature vectors into an (n, FEATURE_COUNT) float64 array."""
    if not vectors:
        return np.empty((0, FEATURE_COUNT), dtype=np.float64)
    return np.array(vectors, dtype=np.float64)
