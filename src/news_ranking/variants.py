"""
A/B variant assignment.

Requests with a session key are bucketed deterministically: the key is hashed
to a stable non-negative integer, reduced modulo 100, and the request goes to
variant B iff bucket / 100 < b_traffic_fraction. The hash is an MD5 digest,
not Python's salted `hash()`, so a session keeps its variant across processes
and restarts. Anonymous requests are assigned at random with the same B
probability.
"""

from __future__ import annotations

import hashlib
import random
from enum import Enum

from news_ranking.config import ConfigStore, RankingConfig

BUCKET_COUNT = 100


class Variant(str, Enum):
    A = "A"  # weighted re-ranking
    B = "B"  # learning-to-rank when enabled


def session_bucket(session_key: str) -> int:
    """Stable bucket in [0, BUCKET_COUNT) for a session key."""
    digest = hashlib.md5(session_key.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") % BUCKET_COUNT


def assign_variant(
    session_key: str | None,
    b_traffic_fraction: float,
    rng: random.Random | None = None,
) -> Variant:
    if not session_key:
        draw = (rng or random).random()
        return Variant.B if draw < b_traffic_fraction else Variant.A

    bucket = session_bucket(session_key)
    return Variant.B if bucket / BUCKET_COUNT < b_traffic_fraction else Variant.A


class VariantAssigner:
    """Assigns variants using the traffic split of the current config snapshot."""

    def __init__(self, config_store: ConfigStore, rng: random.Random | None = None):
        self.config_store = config_store
        self.rng = rng

    def assign(self, session_key: str | None, config: RankingConfig | None = None) -> Variant:
        """Variant for `session_key`; pass the request's snapshot when one was already taken."""
        if config is None:
            config = self.config_store.snapshot()
        return assign_variant(session_key, config.b_traffic_fraction, self.rng)
