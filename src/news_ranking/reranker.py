"""
Re-ranking of a retrieved candidate pool.

Two strategies share the same feature vectors:
- WeightedReranker: tunable weighted sum of the features (variant A).
- LTRReranker: click probability from the logistic model (variant B).

The pool is normally larger than the page shown to the user; `paginate`
slices the requested window out of the re-ranked pool.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from news_ranking.config import RankingConfig
from news_ranking.features import Candidate, FeatureExtractor, FeatureVector, feature_matrix
from news_ranking.ltr import LogisticRanker


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: Candidate
    features: FeatureVector
    score: float

    @property
    def document(self):
        return self.candidate.document


def weighted_score(features: FeatureVector, config: RankingConfig) -> float:
    """(w_rel * relevance + w_pop * popularity + w_fresh * freshness) * category_boost"""
    linear = (
        config.relevance_weight * features.relevance
        + config.popularity_weight * features.popularity
        + config.freshness_weight * features.freshness
    )
    return linear * features.category_boost


def sort_by_score(scored: list[ScoredCandidate]) -> list[ScoredCandidate]:
    """Descending by score; equal scores keep their input order."""
    return sorted(scored, key=lambda s: s.score, reverse=True)


class WeightedReranker:
    """Weighted-sum re-ranker bound to one config snapshot."""

    def __init__(self, config: RankingConfig):
        self.config = config
        self.extractor = FeatureExtractor(config)

    def rerank(
        self,
        candidates: Sequence[Candidate],
        category_filter: str | None = None,
        today: date | None = None,
    ) -> list[ScoredCandidate]:
        vectors = self.extractor.extract(candidates, category_filter, today)
        scored = [
            ScoredCandidate(candidate, features, weighted_score(features, self.config))
            for candidate, features in zip(candidates, vectors)
        ]
        return sort_by_score(scored)


class LTRReranker:
    """Orders candidates by the model's predicted click probability."""

    def __init__(self, config: RankingConfig, model: LogisticRanker):
        self.config = config
        self.model = model
        self.extractor = FeatureExtractor(config)

    def rerank(
        self,
        candidates: Sequence[Candidate],
        category_filter: str | None = None,
        today: date | None = None,
    ) -> list[ScoredCandidate]:
        vectors = self.extractor.extract(candidates, category_filter, today)
        if not vectors:
            return []
        probabilities = self.model.predict_batch(feature_matrix(vectors))
        scored = [
            ScoredCandidate(candidate, features, float(p))
            for candidate, features, p in zip(candidates, vectors, probabilities)
        ]
        return sort_by_score(scored)


def paginate(ranked: Sequence[ScoredCandidate], offset: int, limit: int) -> list[ScoredCandidate]:
    """The `limit` results starting at `offset`; empty past the end of the pool."""
    if offset < 0 or limit <= 0 or offset >= len(ranked):
        return []
    return list(ranked[offset : offset + limit])
