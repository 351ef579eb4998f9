"""
Ranking configuration.

`RankingConfig` is an immutable snapshot. Runtime changes go through
`ConfigStore.update`, which builds a new snapshot and swaps the reference in a
single assignment. A request takes `store.snapshot()` once at its start and
reads every parameter from that object, so it never sees a mix of old and new
values.

Defaults can be overridden from the environment (see `RankingConfig.from_env`):
    RANKING_RELEVANCE_WEIGHT=1.0
    RANKING_POPULARITY_WEIGHT=0.3
    RANKING_FRESHNESS_WEIGHT=0.2
    RANKING_CATEGORY_MATCH_BOOST=1.5
    RANKING_B_TRAFFIC_FRACTION=0.1
    RANKING_FRESHNESS_DECAY_DAYS=30
    RANKING_RERANK_POOL_SIZE=100
    RANKING_LTR_ENABLED=false
"""

from __future__ import annotations

import json
import logging
import os
import threading
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

from news_ranking.errors import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "RANKING_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class RankingConfig:
    """
    Weighted-sum ranking parameters.

    final = (relevance_weight * relevance
             + popularity_weight * popularity
             + freshness_weight * freshness) * category_boost
    """

    relevance_weight: float = 1.0
    popularity_weight: float = 0.3
    freshness_weight: float = 0.2
    category_match_boost: float = 1.5
    b_traffic_fraction: float = 0.10  # share of traffic routed to variant B
    freshness_decay_days: float = 30.0  # age at which freshness halves
    rerank_pool_size: int = 100  # candidates fetched before re-ranking
    ltr_enabled: bool = False

    def __post_init__(self) -> None:
        if not 0.0 <= self.b_traffic_fraction <= 1.0:
            raise ConfigError(f"b_traffic_fraction must be in [0, 1], got {self.b_traffic_fraction}")
        if self.freshness_decay_days <= 0:
            raise ConfigError(f"freshness_decay_days must be > 0, got {self.freshness_decay_days}")
        if self.rerank_pool_size < 1:
            raise ConfigError(f"rerank_pool_size must be >= 1, got {self.rerank_pool_size}")
        if self.category_match_boost < 1.0:
            raise ConfigError(
                f"category_match_boost must be >= 1.0, got {self.category_match_boost}"
            )

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> RankingConfig:
        """Build a config from a mapping; unknown keys are rejected."""
        known = {f.name: f for f in fields(cls)}
        unknown = set(values) - set(known)
        if unknown:
            raise ConfigError(f"Unknown ranking config keys: {sorted(unknown)}")
        return cls(**{name: _coerce(known[name].type, value) for name, value in values.items()})

    @classmethod
    def from_json(cls, path: str | Path) -> RankingConfig:
        with open(path, encoding="utf-8") as f:
            return cls.from_mapping(json.load(f))

    @classmethod
    def from_env(
        cls, prefix: str = ENV_PREFIX, environ: Mapping[str, str] | None = None
    ) -> RankingConfig:
        """Defaults overridden by `<prefix><FIELD_NAME>` environment variables."""
        environ = os.environ if environ is None else environ
        values = {}
        for f in fields(cls):
            key = prefix + f.name.upper()
            if key in environ:
                values[f.name] = environ[key]
        return cls.from_mapping(values)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _coerce(type_name: Any, value: Any) -> Any:
    # Field types are strings because of `from __future__ import annotations`.
    type_name = getattr(type_name, "__name__", type_name)
    try:
        if type_name == "bool":
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text in _TRUE_VALUES:
                return True
            if text in _FALSE_VALUES:
                return False
            raise ValueError(value)
        if type_name == "int":
            return int(value)
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Cannot parse {value!r} as {type_name}") from e


class ConfigStore:
    """
    Versioned holder of the current `RankingConfig` snapshot.

    Readers call `snapshot()` without locking; writers are serialized so two
    concurrent partial updates cannot lose each other's fields.
    """

    def __init__(self, config: RankingConfig | None = None):
        self._config = config or RankingConfig()
        self._version = 0
        self._write_lock = threading.Lock()

    def snapshot(self) -> RankingConfig:
        return self._config

    @property
    def version(self) -> int:
        return self._version

    def update(self, **changes: Any) -> RankingConfig:
        """
        Apply a partial update. `None` values leave the field unchanged.

        Raises:
            ConfigError: For unknown fields or invalid values. The current
                snapshot is left untouched in that case.
        """
        changes = {name: value for name, value in changes.items() if value is not None}
        with self._write_lock:
            current = self._config
            merged = {**current.to_dict(), **changes}
            new_config = RankingConfig.from_mapping(merged)
            if new_config != current:
                self._config = new_config
                self._version += 1
                logger.info("Ranking config updated to version %d: %s", self._version, changes)
            return self._config

    def replace(self, config: RankingConfig) -> None:
        """Swap in a complete snapshot."""
        with self._write_lock:
            self._config = config
            self._version += 1


__all__ = ["ENV_PREFIX", "ConfigStore", "RankingConfig"]
