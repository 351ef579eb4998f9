from datetime import date, timedelta

import numpy as np
import pytest

from news_ranking.config import RankingConfig
from news_ranking.features import (
    FEATURE_COUNT,
    MISSING_DATE_FRESHNESS,
    Candidate,
    Document,
    FeatureExtractor,
    category_boost,
    feature_matrix,
    freshness_score,
    normalize_scores,
    popularity_score,
)

TODAY = date(2024, 6, 1)


class TestNormalizeScores:
    def test_min_max(self):
        assert normalize_scores([1.0, 3.0, 5.0]) == pytest.approx([0.0, 0.5, 1.0])

    def test_zero_range_maps_to_zero(self):
        assert normalize_scores([2.5, 2.5]) == [0.0, 0.0]

    def test_single_score_stays_in_unit_range(self):
        assert normalize_scores([3.2]) == [0.0]

    def test_empty(self):
        assert normalize_scores([]) == []


class TestPopularity:
    @pytest.mark.parametrize(
        "clicks,max_clicks,expected",
        [
            (0, 10, 0.0),
            (10, 10, 1.0),
            (None, 10, 0.0),
            (0, 0, 0.0),
            (1, 0, 1.0),
        ],
    )
    def test_popularity(self, clicks, max_clicks, expected):
        assert popularity_score(clicks, max_clicks) == pytest.approx(expected)

    def test_log_scaled(self):
        assert popularity_score(3, 15) == pytest.approx(np.log(4) / np.log(16))
        assert popularity_score(3, 15) == pytest.approx(0.5)


class TestFreshness:
    @pytest.mark.parametrize(
        "age_days,expected",
        [
            (0, 1.0),
            (30, 0.5),
            (90, 0.25),
            (-5, 1.0),  # future-dated documents count as published today
        ],
    )
    def test_decay(self, age_days, expected):
        published = TODAY - timedelta(days=age_days)
        assert freshness_score(published, TODAY, 30.0) == pytest.approx(expected)

    def test_missing_date(self):
        assert freshness_score(None, TODAY, 30.0) == MISSING_DATE_FRESHNESS == 0.1

    def test_monotonically_decreasing(self):
        values = [freshness_score(TODAY - timedelta(days=d), TODAY, 30.0) for d in range(0, 400, 7)]
        assert all(a > b for a, b in zip(values, values[1:]))


class TestCategoryBoost:
    @pytest.mark.parametrize(
        "category,category_filter,expected",
        [
            ("SPORTS", "SPORTS", 1.5),
            ("Sports", "sports", 1.5),
            ("POLITICS", "SPORTS", 1.0),
            ("SPORTS", None, 1.0),
            ("SPORTS", "", 1.0),
            (None, "SPORTS", 1.0),
        ],
    )
    def test_boost(self, category, category_filter, expected):
        assert category_boost(category, category_filter, 1.5) == expected


class TestDocument:
    def test_from_record(self):
        record = {
            "id": "n1",
            "headline": "Markets rally",
            "short_description": "Stocks rose sharply.",
            "category": "BUSINESS",
            "date": "2022-09-23",
            "authors": "Jane Doe",
            "link": "https://example.com/n1",
        }
        doc = Document.from_record(record)
        assert doc.doc_id == "n1"
        assert doc.publish_date == date(2022, 9, 23)
        assert doc.click_count is None
        assert doc.text == "Markets rally Stocks rose sharply."

    def test_explicit_id_overrides_record(self):
        doc = Document.from_record({"id": "n1", "headline": "x"}, doc_id="other")
        assert doc.doc_id == "other"

    def test_missing_fields(self):
        doc = Document.from_record({"headline": "Only a headline"}, doc_id=7)
        assert doc.publish_date is None
        assert doc.category is None
        assert doc.text == "Only a headline"


class TestFeatureExtractor:
    def _candidate(self, doc_id, score, clicks=0, age_days=0, category="NEWS"):
        document = Document(
            doc_id,
            headline=f"doc {doc_id}",
            category=category,
            publish_date=TODAY - timedelta(days=age_days),
            click_count=clicks,
        )
        return Candidate(document, score)

    def test_vector_order_and_values(self):
        extractor = FeatureExtractor(RankingConfig())
        candidates = [
            self._candidate("a", 1.0, clicks=10, age_days=0, category="SPORTS"),
            self._candidate("b", 3.0, clicks=0, age_days=30, category="POLITICS"),
        ]
        a, b = extractor.extract(candidates, category_filter="sports", today=TODAY)

        assert tuple(a) == pytest.approx((0.0, 1.0, 1.0, 1.5))
        assert tuple(b) == pytest.approx((1.0, 0.0, 0.5, 1.0))

    def test_popularity_uses_pool_maximum(self):
        extractor = FeatureExtractor(RankingConfig())
        small_pool = [self._candidate("a", 1.0, clicks=3), self._candidate("b", 2.0, clicks=3)]
        large_pool = small_pool + [self._candidate("c", 0.5, clicks=15)]

        (a_small, _) = extractor.extract(small_pool, today=TODAY)
        a_large = extractor.extract(large_pool, today=TODAY)[0]
        assert a_small.popularity == pytest.approx(1.0)
        assert a_large.popularity == pytest.approx(0.5)

    def test_empty_pool(self):
        assert FeatureExtractor(RankingConfig()).extract([], today=TODAY) == []

    def test_feature_matrix_shape(self):
        extractor = FeatureExtractor(RankingConfig())
        vectors = extractor.extract([self._candidate("a", 1.0), self._candidate("b", 2.0)], today=TODAY)
        matrix = feature_matrix(vectors)
        assert matrix.shape == (2, FEATURE_COUNT)
        np.testing.assert_allclose(matrix[0], vectors[0].as_array())
        assert feature_matrix([]).shape == (0, FEATURE_COUNT)
