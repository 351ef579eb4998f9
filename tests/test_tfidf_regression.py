import math

import pytest

from news_ranking.index import build_index
from news_ranking.tfidf import TFIDFScorer


def test_tfidf_ordering_regression() -> None:
    """
    Regression check to guard the TF-IDF kernel:
    - Documents with repeated query terms should score higher than those with fewer matches.
    - Non-matching documents should not be returned at all.
    """
    documents = [
        (0, "foo foo foo bar"),  # heavy tf on foo
        (1, "foo bar baz"),  # single foo/bar
        (2, "baz qux"),  # no query terms
    ]
    scorer = TFIDFScorer(build_index(documents))

    results = scorer.search("foo bar", k=10)

    # Expected ordering: doc0 > doc1, doc2 absent
    assert [doc_id for doc_id, _ in results] == [0, 1]

    idf = math.log(4 / 3)
    assert results[0][1] == pytest.approx((1 + math.log(3)) * idf + idf)
    assert results[1][1] == pytest.approx(2 * idf)
    # Ensure score gaps are meaningful
    assert results[0][1] - results[1][1] > 0.05
