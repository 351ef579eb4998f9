"""
TF-IDF scoring over the inverted index.

    idf(t)      = ln((N + 1) / (df(t) + 1))
    weight(t,d) = (1 + ln(tf(t,d))) * idf(t)
    score(q,d)  = sum of weight(t,d) over every query term occurrence t

Repeated query terms are not deduplicated: each occurrence adds its weight
again. Documents matching no query term are left out of the results.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

from news_ranking.index import DocId, InvertedIndex
from news_ranking.tokenizer import tokenize

# Number of workers for parallel query processing
NUM_QUERY_WORKERS = 8
MIN_QUERIES_FOR_PARALLEL = 10


def inverse_document_frequency(df: int, document_count: int) -> float:
    """Smoothed IDF: ln((N + 1) / (df + 1))."""
    return math.log((document_count + 1) / (df + 1))


def term_weight(tf: int, idf: float) -> float:
    """Log-scaled term frequency times IDF. `tf` is always >= 1 for a posting."""
    return (1.0 + math.log(tf)) * idf


class TFIDFScorer:
    """
    Scores documents in an InvertedIndex against free-text queries.

    Args:
        index (InvertedIndex): A fully built index. The scorer only reads it.
    """

    def __init__(self, index: InvertedIndex):
        self.index = index

    def score(self, query: str) -> dict[DocId, float]:
        """Accumulated score for every document matching at least one query term."""
        document_count = self.index.get_document_count()
        doc_scores: dict[DocId, float] = {}

        for term in tokenize(query):
            df = self.index.get_document_frequency(term)
            if df == 0:
                continue

            idf = inverse_document_frequency(df, document_count)
            for posting in self.index.get_postings(term):
                doc_scores[posting.doc_id] = doc_scores.get(posting.doc_id, 0.0) + term_weight(
                    posting.tf, idf
                )

        return doc_scores

    def search(
        self, query: str, k: int, doc_filter: Callable[[DocId], bool] | None = None
    ) -> list[tuple[DocId, float]]:
        """
        Top-k documents for a query.

        Args:
            query: Free-text query.
            k: Maximum number of results.
            doc_filter: Optional predicate on document ids. Rejected documents
                are dropped before truncation, so up to `k` accepted documents
                are returned.

        Returns:
            [(doc_id, score), ...] sorted by score descending. Ties keep the
            order in which documents were first matched.
        """
        if k <= 0:
            return []
        doc_scores = self.score(query)
        if doc_filter is not None:
            doc_scores = {doc_id: s for doc_id, s in doc_scores.items() if doc_filter(doc_id)}
        # sorted() is stable, so equal scores keep first-match order
        ranked = sorted(doc_scores.items(), key=lambda item: item[1], reverse=True)
        return ranked[:k]

    def batch_search(self, queries: list[str], k: int) -> list[list[tuple[DocId, float]]]:
        """Search many queries, in parallel for larger batches."""
        if len(queries) < MIN_QUERIES_FOR_PARALLEL:
            return [self.search(query, k) for query in queries]

        def search_single(query: str) -> list[tuple[DocId, float]]:
            return self.search(query, k)

        with ThreadPoolExecutor(max_workers=NUM_QUERY_WORKERS) as executor:
            results = list(executor.map(search_single, queries))

        return results
