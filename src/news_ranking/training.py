"""
Offline training of the learning-to-rank model from search and click logs.

Labels: a document shown for a query is positive if it was clicked for that
query in any logged session, negative otherwise. Training runs on demand and
never inline with query serving.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Hashable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date

from news_ranking.config import ConfigStore
from news_ranking.events import ClickEvent, EventRepository, SearchEvent
from news_ranking.features import Document, FeatureExtractor
from news_ranking.ltr import (
    BALANCE_SEED,
    LogisticRanker,
    TrainingExample,
    TrainingResult,
    balance_dataset,
)
from news_ranking.model_store import ModelWeights

logger = logging.getLogger(__name__)

# Retrieval scores are not logged with search events, so every training
# example gets the same mid-range relevance.
TRAINING_RELEVANCE = 0.5
DEFAULT_EPOCHS = 100


@dataclass(frozen=True)
class LabeledPair:
    query: str
    doc_id: Hashable
    label: int
    category_filter: str | None = None


def generate_labeled_pairs(
    searches: Iterable[SearchEvent], clicks: Iterable[ClickEvent]
) -> list[LabeledPair]:
    """One labeled pair per (search, shown document)."""
    clicked_by_query: dict[str, set[Hashable]] = defaultdict(set)
    for click in clicks:
        if click.query is not None and click.doc_id is not None:
            clicked_by_query[click.query].add(click.doc_id)

    pairs = []
    for search in searches:
        if search.query is None or not search.result_ids:
            continue
        clicked = clicked_by_query.get(search.query, set())
        for doc_id in search.result_ids:
            label = 1 if doc_id in clicked else 0
            pairs.append(LabeledPair(search.query, doc_id, label, search.category_filter))
    return pairs


class TrainingService:
    """
    Turns logged events into training examples and trains the model.

    Args:
        model (LogisticRanker): Model to train.
        events (EventRepository): Source of search and click events.
        documents (Mapping): Document store snapshot keyed by document id.
        config_store (ConfigStore): Provides freshness decay and category boost.
        seed (int): Seed for dataset balancing.
    """

    def __init__(
        self,
        model: LogisticRanker,
        events: EventRepository,
        documents: Mapping[Hashable, Document],
        config_store: ConfigStore,
        seed: int = BALANCE_SEED,
    ):
        self.model = model
        self.events = events
        self.documents = documents
        self.config_store = config_store
        self.seed = seed

    def build_examples(
        self, pairs: Sequence[LabeledPair], today: date | None = None
    ) -> list[TrainingExample]:
        """Feature vectors for labeled pairs; pairs with unknown documents are skipped."""
        today = today or date.today()
        extractor = FeatureExtractor(self.config_store.snapshot())
        # Normalized by the global maximum, floored at 1
        max_clicks = max((d.click_count or 0 for d in self.documents.values()), default=0)

        examples = []
        for pair in pairs:
            document = self.documents.get(pair.doc_id)
            if document is None:
                continue
            features = extractor.features(
                document, TRAINING_RELEVANCE, max_clicks, today, pair.category_filter
            )
            examples.append(TrainingExample(tuple(features), pair.label))
        return examples

    def train_model(
        self,
        epochs: int = DEFAULT_EPOCHS,
        today: date | None = None,
        cancel_event: threading.Event | None = None,
    ) -> TrainingResult:
        pairs = generate_labeled_pairs(self.events.all_searches(), self.events.all_clicks())
        if not pairs:
            return TrainingResult(
                False, "No training data available. Generate some search/click events first."
            )

        examples = self.build_examples(pairs, today)
        if not examples:
            return TrainingResult(
                False, "Could not build training examples. Check document ids in events."
            )

        balanced = balance_dataset(examples, self.seed)
        logger.info("Built %d examples (%d after balancing)", len(examples), len(balanced))
        return self.model.train(balanced, epochs, cancel_event=cancel_event)

    def set_weights(self, weights: Sequence[float], bias: float) -> bool:
        return self.model.set_weights(weights, bias)

    def get_weights(self) -> ModelWeights:
        return self.model.get_weights()
