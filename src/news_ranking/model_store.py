"""
Persistence for learning-to-rank weights.

Binary layout (big-endian, network byte order):

    int32    weight count n
    float64  weights[0..n-1], in feature order
    float64  bias

Any backend that can load and save a `ModelWeights` snapshot can stand in for
the file store, e.g. a key-value or object store.
"""

from __future__ import annotations

import logging
import os
import struct
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import numpy as np

from news_ranking.errors import ModelPersistenceError

logger = logging.getLogger(__name__)

DEFAULT_MODEL_FILE = "ltr_model.bin"

_COUNT = struct.Struct(">i")
_DOUBLE = struct.Struct(">d")


@dataclass(frozen=True)
class ModelWeights:
    """Immutable weight vector and bias of the logistic model."""

    weights: tuple[float, ...]
    bias: float = 0.0

    def as_array(self) -> np.ndarray:
        return np.array(self.weights, dtype=np.float64)

    @classmethod
    def from_array(cls, weights: np.ndarray, bias: float) -> ModelWeights:
        return cls(tuple(float(w) for w in weights), float(bias))

    def __len__(self) -> int:
        return len(self.weights)


class ModelStore(Protocol):
    def load(self) -> ModelWeights | None:
        """Persisted weights, or None when nothing has been saved yet."""
        ...

    def save(self, weights: ModelWeights) -> None: ...


def encode_weights(weights: ModelWeights) -> bytes:
    n = len(weights.weights)
    return _COUNT.pack(n) + struct.pack(f">{n}d", *weights.weights) + _DOUBLE.pack(weights.bias)


def decode_weights(data: bytes) -> ModelWeights:
    """
    Parse the binary weight record.

    Raises:
        ModelPersistenceError: If the record is truncated or malformed.
    """
    try:
        (n,) = _COUNT.unpack_from(data, 0)
        if n < 0:
            raise ModelPersistenceError(f"Negative weight count {n}")
        expected = _COUNT.size + (n + 1) * _DOUBLE.size
        if len(data) < expected:
            raise ModelPersistenceError(
                f"Truncated model record: expected {expected} bytes, got {len(data)}"
            )
        values = struct.unpack_from(f">{n}d", data, _COUNT.size)
        (bias,) = _DOUBLE.unpack_from(data, _COUNT.size + n * _DOUBLE.size)
    except struct.error as e:
        raise ModelPersistenceError(f"Malformed model record: {e}") from e
    return ModelWeights(tuple(values), bias)


class FileModelStore:
    """
    Stores weights in a single binary file.

    Saving writes a temporary file next to the target and renames it over the
    target, so a crash mid-write leaves the previous file intact.
    """

    def __init__(self, path: str | Path = DEFAULT_MODEL_FILE):
        self.path = Path(path)

    def load(self) -> ModelWeights | None:
        if not self.path.exists():
            logger.info("No saved model found at %s", self.path)
            return None
        try:
            data = self.path.read_bytes()
        except OSError as e:
            raise ModelPersistenceError(f"Failed to read {self.path}: {e}") from e
        weights = decode_weights(data)
        logger.info("Model loaded from %s", self.path)
        return weights

    def save(self, weights: ModelWeights) -> None:
        data = encode_weights(weights)
        directory = self.path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=directory, prefix=f".{self.path.name}.", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise ModelPersistenceError(f"Failed to save model to {self.path}: {e}") from e
        logger.info("Model saved to %s", self.path)


class InMemoryModelStore:
    """Keeps the encoded record in memory; useful for tests and ephemeral runs."""

    def __init__(self, data: bytes | None = None):
        self.data = data
        self.save_count = 0

    def load(self) -> ModelWeights | None:
        if self.data is None:
            return None
        return decode_weights(self.data)

    def save(self, weights: ModelWeights) -> None:
        self.data = encode_weights(weights)
        self.save_count += 1
