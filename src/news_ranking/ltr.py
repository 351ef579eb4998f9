"""
Logistic-regression learning-to-rank model.

    P(click | x) = sigmoid(bias + sum_i w_i * x_i)

Features are the re-ranking feature vector
[relevance, popularity, freshness, category_boost]. Training is plain
per-example stochastic gradient descent on log loss: no mini-batches, no
momentum, no regularization.

Usage:
    from news_ranking.ltr import LogisticRanker, TrainingExample, balance_dataset
    from news_ranking.model_store import FileModelStore

    model = LogisticRanker(FileModelStore("ltr_model.bin"))
    result = model.train(balance_dataset(examples), epochs=100)
    model.predict([0.8, 0.4, 0.9, 1.0])
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from scipy.special import expit

from news_ranking.errors import ModelPersistenceError, ShapeMismatchError
from news_ranking.features import FEATURE_COUNT, FEATURE_NAMES, feature_matrix
from news_ranking.model_store import ModelStore, ModelWeights

logger = logging.getLogger(__name__)

# Hand-tuned starting point: relevance dominates, category match helps
DEFAULT_WEIGHTS = ModelWeights((1.0, 0.3, 0.2, 0.5), 0.0)
LEARNING_RATE = 0.01
BALANCE_SEED = 42
LOG_EVERY_EPOCHS = 10
LOSS_EPSILON = 1e-10


@dataclass(frozen=True)
class TrainingExample:
    """Feature vector with a click label (1 clicked, 0 shown but not clicked)."""

    features: tuple[float, ...]
    label: int

    def __post_init__(self) -> None:
        if self.label not in (0, 1):
            raise ValueError(f"label must be 0 or 1, got {self.label}")


@dataclass(frozen=True)
class TrainingResult:
    success: bool
    message: str
    example_count: int = 0
    epochs_run: int = 0
    final_loss: float | None = None
    persisted: bool = False
    weights: ModelWeights | None = None


def log_loss(prediction: float, label: float) -> float:
    return -label * math.log(prediction + LOSS_EPSILON) - (1 - label) * math.log(
        1 - prediction + LOSS_EPSILON
    )


def balance_dataset(
    examples: Sequence[TrainingExample], seed: int = BALANCE_SEED
) -> list[TrainingExample]:
    """
    Upsample the minority class with replacement, then shuffle.

    Both classes end up with as many examples as the majority class. The same
    seeded generator drives the upsampling and the shuffle, so the output is
    reproducible for identical input. A class with no examples stays empty.
    """
    rng = np.random.default_rng(seed)
    positives = [e for e in examples if e.label == 1]
    negatives = [e for e in examples if e.label == 0]
    target = max(len(positives), len(negatives))

    balanced = _upsample(positives, target, rng) + _upsample(negatives, target, rng)
    order = rng.permutation(len(balanced))
    return [balanced[i] for i in order]


def _upsample(
    group: list[TrainingExample], target: int, rng: np.random.Generator
) -> list[TrainingExample]:
    if not group or len(group) >= target:
        return list(group)
    extra = rng.integers(0, len(group), size=target - len(group))
    return group + [group[i] for i in extra]


class LogisticRanker:
    """
    Linear click model with sigmoid output and persisted weights.

    The current weights are an immutable `ModelWeights` snapshot. `predict`
    reads the snapshot reference once and needs no lock. `train` and
    `set_weights` hold a lock for their whole run, work on private copies and
    swap the new snapshot in at the end, so readers never see a half-updated
    vector and training runs never interleave.

    Args:
        store (ModelStore | None): Where weights are loaded from and saved to.
            None keeps the model in memory only.
        learning_rate (float): SGD step size.
    """

    def __init__(
        self,
        store: ModelStore | None = None,
        learning_rate: float = LEARNING_RATE,
        default_weights: ModelWeights = DEFAULT_WEIGHTS,
    ):
        self.store = store
        self.learning_rate = learning_rate
        self.default_weights = default_weights
        self._lock = threading.Lock()
        self._weights = self._load()

    def _load(self) -> ModelWeights:
        if self.store is None:
            return self.default_weights
        try:
            weights = self.store.load()
        except ModelPersistenceError as e:
            logger.warning("Failed to load model, using defaults: %s", e)
            return self.default_weights
        if weights is None:
            logger.info("No saved model, using default weights")
            return self.default_weights
        if len(weights) != FEATURE_COUNT:
            logger.warning(
                "Saved model has %d weights, expected %d; using defaults",
                len(weights),
                FEATURE_COUNT,
            )
            return self.default_weights
        return weights

    def _persist(self, weights: ModelWeights) -> bool:
        if self.store is None:
            return False
        try:
            self.store.save(weights)
        except ModelPersistenceError as e:
            logger.warning("Failed to save model: %s", e)
            return False
        return True

    def get_weights(self) -> ModelWeights:
        return self._weights

    def predict(self, features: Sequence[float] | np.ndarray) -> float:
        """
        Click probability in (0, 1) for a single feature vector.

        Raises:
            ShapeMismatchError: If the vector length differs from the weights.
        """
        snapshot = self._weights
        x = np.asarray(features, dtype=np.float64)
        if x.ndim != 1 or x.shape[0] != len(snapshot):
            raise ShapeMismatchError(len(snapshot), x.size)
        z = snapshot.bias + float(np.dot(snapshot.as_array(), x))
        return float(expit(z))

    def predict_batch(self, matrix: np.ndarray) -> np.ndarray:
        """Click probabilities for an (n, n_features) matrix."""
        snapshot = self._weights
        X = np.asarray(matrix, dtype=np.float64)
        if X.ndim != 2 or X.shape[1] != len(snapshot):
            raise ShapeMismatchError(len(snapshot), X.shape[-1] if X.ndim else 0)
        return expit(X @ snapshot.as_array() + snapshot.bias)

    def train(
        self,
        examples: Sequence[TrainingExample],
        epochs: int,
        cancel_event: threading.Event | None = None,
    ) -> TrainingResult:
        """
        Run `epochs` SGD passes over `examples` in the given order.

        The in-memory weights are replaced and persisted only after the last
        epoch finishes. An empty example set or a cancelled run leaves both the
        in-memory and the persisted weights untouched.

        Args:
            examples: Labeled examples, usually the output of `balance_dataset`.
            epochs: Number of passes over the data.
            cancel_event: Checked between epochs; when set, training stops.

        Returns:
            TrainingResult describing the outcome.

        Raises:
            ShapeMismatchError: If any example has the wrong number of features.
        """
        if not examples:
            return TrainingResult(False, "No training data available.")

        expected = len(self._weights)
        for example in examples:
            if len(example.features) != expected:
                raise ShapeMismatchError(expected, len(example.features))

        X = feature_matrix([e.features for e in examples])
        y = np.array([e.label for e in examples], dtype=np.float64)

        with self._lock:
            start = self._weights
            if X.shape[1] != len(start):
                raise ShapeMismatchError(len(start), X.shape[1])

            w = start.as_array().copy()
            b = start.bias
            avg_loss = None

            logger.info("Training LTR model on %d examples for %d epochs", len(y), epochs)
            for epoch in range(epochs):
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Training cancelled before epoch %d", epoch)
                    return TrainingResult(
                        False,
                        f"Training cancelled after {epoch} epochs.",
                        example_count=len(y),
                        epochs_run=epoch,
                        weights=start,
                    )

                total_loss = 0.0
                for x_i, y_i in zip(X, y):
                    prediction = float(expit(b + float(np.dot(w, x_i))))
                    total_loss += log_loss(prediction, y_i)

                    error = prediction - y_i
                    w -= self.learning_rate * error * x_i
                    b -= self.learning_rate * error

                avg_loss = total_loss / len(y)
                if epoch % LOG_EVERY_EPOCHS == 0:
                    logger.debug("Epoch %d: avg loss = %.4f", epoch, avg_loss)

            trained = ModelWeights.from_array(w, b)
            self._weights = trained
            persisted = self._persist(trained)

        logger.info(
            "Training complete. Weights: %s, bias: %.4f",
            ", ".join(f"{name}={value:.4f}" for name, value in zip(FEATURE_NAMES, trained.weights)),
            trained.bias,
        )
        message = f"Trained on {len(y)} examples for {epochs} epochs."
        if not persisted:
            message += " Weights were not persisted."
        return TrainingResult(
            True,
            message,
            example_count=len(y),
            epochs_run=epochs,
            final_loss=avg_loss,
            persisted=persisted,
            weights=trained,
        )

    def set_weights(self, weights: Sequence[float], bias: float) -> bool:
        """
        Replace the weights directly and persist them.

        Returns:
            True if the new weights were persisted. They take effect in memory
            either way.

        Raises:
            ShapeMismatchError: If `weights` does not have FEATURE_COUNT values.
        """
        if len(weights) != FEATURE_COUNT:
            raise ShapeMismatchError(FEATURE_COUNT, len(weights), "weights")
        new_weights = ModelWeights(tuple(float(w) for w in weights), float(bias))
        with self._lock:
            self._weights = new_weights
            return self._persist(new_weights)
