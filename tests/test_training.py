import math
from datetime import date

import pytest

from news_ranking.config import ConfigStore
from news_ranking.events import ClickEvent, InMemoryEventRepository, SearchEvent
from news_ranking.features import MISSING_DATE_FRESHNESS, Document
from news_ranking.ltr import DEFAULT_WEIGHTS, LogisticRanker
from news_ranking.model_store import InMemoryModelStore
from news_ranking.training import (
    TRAINING_RELEVANCE,
    LabeledPair,
    TrainingService,
    generate_labeled_pairs,
)

TODAY = date(2024, 6, 1)


@pytest.fixture
def documents():
    docs = [
        Document("d1", "Cup final tonight", category="SPORTS", publish_date=TODAY, click_count=10),
        Document("d2", "Budget vote delayed", category="POLITICS", click_count=0),
        Document("d3", "Transfer rumours", category="SPORTS", publish_date=TODAY, click_count=4),
    ]
    return {doc.doc_id: doc for doc in docs}


@pytest.fixture
def events():
    repo = InMemoryEventRepository()
    repo.save_search(
        SearchEvent("football", ("d1", "d2", "d3"), session_id="s1", category_filter="SPORTS")
    )
    repo.save_click(ClickEvent("football", "d1", session_id="s1", position=1))
    return repo


def make_service(documents, events, store=None):
    model = LogisticRanker(store if store is not None else InMemoryModelStore())
    return TrainingService(model, events, documents, ConfigStore())


class TestGenerateLabeledPairs:
    def test_labels_follow_clicks_for_the_same_query(self):
        searches = [SearchEvent("football", ("d1", "d2")), SearchEvent("budget", ("d1",))]
        clicks = [ClickEvent("football", "d1")]

        pairs = generate_labeled_pairs(searches, clicks)

        assert pairs == [
            LabeledPair("football", "d1", 1),
            LabeledPair("football", "d2", 0),
            LabeledPair("budget", "d1", 0),
        ]

    def test_clicks_from_any_session_count(self):
        searches = [SearchEvent("q", ("d1",), session_id="a")]
        clicks = [ClickEvent("q", "d1", session_id="b")]
        assert generate_labeled_pairs(searches, clicks)[0].label == 1

    def test_skips_searches_without_query_or_results(self):
        searches = [SearchEvent(None, ("d1",)), SearchEvent("q", ())]
        assert generate_labeled_pairs(searches, [ClickEvent("q", "d1")]) == []

    def test_keeps_category_filter(self):
        (pair,) = generate_labeled_pairs([SearchEvent("q", ("d1",), category_filter="SPORTS")], [])
        assert pair.category_filter == "SPORTS"


class TestBuildExamples:
    def test_features_use_constant_relevance_and_global_max_clicks(self, documents, events):
        service = make_service(documents, events)
        pairs = generate_labeled_pairs(events.all_searches(), events.all_clicks())

        d1, d2, d3 = service.build_examples(pairs, today=TODAY)

        assert d1.label == 1 and d2.label == 0 and d3.label == 0
        assert d1.features == pytest.approx((TRAINING_RELEVANCE, 1.0, 1.0, 1.5))
        assert d2.features == pytest.approx((TRAINING_RELEVANCE, 0.0, MISSING_DATE_FRESHNESS, 1.0))
        assert d3.features[1] == pytest.approx(math.log(5) / math.log(11))
        assert d3.features[3] == 1.5

    def test_unknown_documents_are_skipped(self, documents, events):
        service = make_service(documents, events)
        pairs = [LabeledPair("q", "missing", 1), LabeledPair("q", "d2", 0)]
        examples = service.build_examples(pairs, today=TODAY)
        assert len(examples) == 1


class TestTrainModel:
    def test_no_events(self, documents):
        service = make_service(documents, InMemoryEventRepository())
        result = service.train_model(epochs=5, today=TODAY)
        assert result.success is False
        assert result.message.startswith("No training data available")
        assert service.get_weights() == DEFAULT_WEIGHTS

    def test_only_unknown_documents(self, documents):
        repo = InMemoryEventRepository()
        repo.save_search(SearchEvent("q", ("x1", "x2")))
        result = make_service(documents, repo).train_model(epochs=5, today=TODAY)
        assert result.success is False
        assert "Could not build training examples" in result.message

    def test_trains_on_balanced_examples_and_persists(self, documents, events):
        store = InMemoryModelStore()
        service = make_service(documents, events, store)

        result = service.train_model(epochs=20, today=TODAY)

        # 1 positive and 2 negatives, upsampled to 2 + 2
        assert result.success is True
        assert result.example_count == 4
        assert result.persisted is True
        assert store.save_count == 1
        assert service.get_weights() == result.weights != DEFAULT_WEIGHTS

    def test_training_is_reproducible(self, documents, events):
        first = make_service(documents, events).train_model(epochs=10, today=TODAY)
        second = make_service(documents, events).train_model(epochs=10, today=TODAY)
        assert first.weights == second.weights

    def test_set_weights_delegates_to_model(self, documents, events):
        store = InMemoryModelStore()
        service = make_service(documents, events, store)
        assert service.set_weights([0.5, 0.5, 0.5, 0.5], 0.1) is True
        assert service.get_weights().weights == (0.5, 0.5, 0.5, 0.5)
        assert store.save_count == 1
