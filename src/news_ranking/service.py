"""
Search pipeline: retrieve -> extract features -> re-rank -> page.

A query is answered from a `CandidateSource`, either the built-in inverted index
with TF-IDF scoring or an external full-text backend supplying candidates and
base scores. The candidate pool (config `rerank_pool_size`) is re-ranked as a
whole and the requested page is sliced out of it afterwards.

Variant A uses the weighted re-ranker. Variant B uses the learning-to-rank
model when `ltr_enabled` is set and falls back to the weighted re-ranker
otherwise.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from collections.abc import Callable, Hashable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Protocol

from news_ranking.config import ConfigStore, RankingConfig
from news_ranking.events import ClickEvent, EventRepository, SearchEvent
from news_ranking.features import Candidate, Document
from news_ranking.index import InvertedIndex, build_index
from news_ranking.ltr import LogisticRanker
from news_ranking.reranker import LTRReranker, ScoredCandidate, WeightedReranker, paginate
from news_ranking.tfidf import TFIDFScorer
from news_ranking.variants import Variant, VariantAssigner

logger = logging.getLogger(__name__)

# Only the top results of each search are logged
LOGGED_RESULT_IDS = 20


class CandidateSource(Protocol):
    def retrieve(
        self, query: str, size: int, category_filter: str | None = None
    ) -> list[Candidate]: ...


class IndexCandidateSource:
    """
    Built-in retrieval: TF-IDF over an in-memory inverted index.

    A category filter restricts retrieval to documents of that category
    (case-insensitive); the pool is filled from matching documents only.
    """

    def __init__(self, index: InvertedIndex, documents: Mapping[Hashable, Document]):
        self.index = index
        self.documents = documents
        self.scorer = TFIDFScorer(index)

    @classmethod
    def from_documents(
        cls, documents: Iterable[Document], show_progress: bool = False
    ) -> IndexCandidateSource:
        by_id = {doc.doc_id: doc for doc in documents}
        index = build_index(((doc_id, doc.text) for doc_id, doc in by_id.items()), show_progress)
        return cls(index, by_id)

    def _in_category(self, category_filter: str) -> Callable[[Hashable], bool]:
        wanted = category_filter.casefold()

        def accept(doc_id: Hashable) -> bool:
            document = self.documents.get(doc_id)
            return (
                document is not None
                and document.category is not None
                and document.category.casefold() == wanted
            )

        return accept

    def retrieve(
        self, query: str, size: int, category_filter: str | None = None
    ) -> list[Candidate]:
        doc_filter = self._in_category(category_filter) if category_filter else None
        return [
            Candidate(self.documents[doc_id], score)
            for doc_id, score in self.scorer.search(query, size, doc_filter)
            if doc_id in self.documents
        ]


@dataclass(frozen=True)
class SearchResponse:
    query: str
    variant: Variant
    strategy: str
    results: list[ScoredCandidate]
    category_counts: dict[str, int] = field(default_factory=dict)
    pool_size: int = 0
    took_ms: float = 0.0

    @property
    def documents(self) -> list[Document]:
        return [r.document for r in self.results]


@dataclass(frozen=True)
class ClickCountIncrement:
    """Click-count update for the caller to apply to its document store."""

    doc_id: Hashable
    amount: int = 1


class SearchService:
    """
    Serves ranked searches and records engagement events.

    Args:
        source (CandidateSource): Retrieval backend.
        config_store (ConfigStore): Current ranking configuration.
        model (LogisticRanker): Learning-to-rank model used by variant B.
        events (EventRepository | None): Where search and click events go.
            None disables event logging.
        assigner (VariantAssigner | None): Defaults to one reading `config_store`.
    """

    def __init__(
        self,
        source: CandidateSource,
        config_store: ConfigStore,
        model: LogisticRanker,
        events: EventRepository | None = None,
        assigner: VariantAssigner | None = None,
    ):
        self.source = source
        self.config_store = config_store
        self.model = model
        self.events = events
        self.assigner = assigner or VariantAssigner(config_store)

    def assign_variant(self, session_key: str | None) -> Variant:
        return self.assigner.assign(session_key)

    def _reranker(self, config: RankingConfig, variant: Variant):
        if variant is Variant.B and config.ltr_enabled:
            return "ltr", LTRReranker(config, self.model)
        return "weighted", WeightedReranker(config)

    def rerank(
        self,
        candidates: Sequence[Candidate],
        category_filter: str | None = None,
        variant: Variant = Variant.A,
        today: date | None = None,
    ) -> list[ScoredCandidate]:
        """Re-rank candidates supplied by the caller, e.g. from an external backend."""
        config = self.config_store.snapshot()
        _, reranker = self._reranker(config, variant)
        return reranker.rerank(candidates, category_filter, today)

    def search(
        self,
        query: str,
        page: int = 0,
        page_size: int = 10,
        category_filter: str | None = None,
        session_key: str | None = None,
        today: date | None = None,
    ) -> SearchResponse:
        start = time.perf_counter()
        config = self.config_store.snapshot()
        variant = self.assigner.assign(session_key, config)

        pool = self.source.retrieve(query, config.rerank_pool_size, category_filter)
        strategy, reranker = self._reranker(config, variant)
        ranked = reranker.rerank(pool, category_filter, today)
        results = paginate(ranked, page * page_size, page_size)

        category_counts = Counter(c.document.category for c in pool if c.document.category)
        took_ms = (time.perf_counter() - start) * 1000.0
        response = SearchResponse(
            query=query,
            variant=variant,
            strategy=strategy,
            results=results,
            category_counts=dict(category_counts.most_common()),
            pool_size=len(pool),
            took_ms=took_ms,
        )
        self._log_search(response, category_filter, session_key)
        return response

    def _log_search(
        self, response: SearchResponse, category_filter: str | None, session_key: str | None
    ) -> None:
        if self.events is None:
            return
        result_ids = tuple(r.document.doc_id for r in response.results[:LOGGED_RESULT_IDS])
        event = SearchEvent(
            query=response.query,
            result_ids=result_ids,
            session_id=session_key,
            category_filter=category_filter,
            result_count=len(response.results),
            response_time_ms=response.took_ms,
            variant=response.variant.value,
        )
        try:
            self.events.save_search(event)
        except Exception:
            # Event logging must not break search
            logger.exception("Failed to log search event for query %r", response.query)

    def record_click(
        self,
        session_key: str | None,
        query: str | None,
        doc_id: Hashable,
        position: int | None = None,
        variant: Variant | str | None = None,
        time_to_click_ms: float | None = None,
    ) -> ClickCountIncrement:
        """Log a click and report the click-count increment for the document."""
        if isinstance(variant, Variant):
            variant = variant.value
        event = ClickEvent(
            query=query,
            doc_id=doc_id,
            session_id=session_key,
            position=position,
            variant=variant,
            time_to_click_ms=time_to_click_ms,
        )
        if self.events is not None:
            try:
                self.events.save_click(event)
            except Exception:
                logger.exception("Failed to record click on %r", doc_id)
        return ClickCountIncrement(doc_id)
