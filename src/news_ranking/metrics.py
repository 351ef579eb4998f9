from collections import Counter
from collections.abc import Iterable, Sequence

import numpy as np


def click_through_rate(clicks: int, searches: int) -> float:
    """
    Computes clicks per search.

    Args:
        clicks: Number of click events.
        searches: Number of search events.

    Returns:
        Clicks divided by searches, 0.0 when there were no searches.
    """
    if searches <= 0:
        return 0.0
    return clicks / searches


def no_click_rate(search_sessions: Iterable[str | None], click_sessions: Iterable[str | None]) -> float:
    """
    Computes the share of searching sessions that never clicked.

    Args:
        search_sessions: Session ids of search events (None ids are ignored).
        click_sessions: Session ids of click events (None ids are ignored).

    Returns:
        Fraction of distinct searching sessions without any click.
    """
    searched = {s for s in search_sessions if s is not None}
    if not searched:
        return 0.0
    clicked = {s for s in click_sessions if s is not None}
    return len(searched - clicked) / len(searched)


def reciprocal_rank(position: int) -> float:
    """
    Computes the reciprocal rank of a 1-based click position.

    Returns:
        1 / position, or 0.0 for non-positive positions.
    """
    if position <= 0:
        return 0.0
    return 1.0 / position


def mean_reciprocal_rank(positions: Sequence[int]) -> float:
    """
    Computes Mean Reciprocal Rank (MRR) over click positions.

    Args:
        positions: 1-based ranks at which results were clicked.

    Returns:
        Mean reciprocal rank, 0.0 when there are no clicks.
    """
    if not positions:
        return 0.0
    return float(np.mean([reciprocal_rank(p) for p in positions]))


def mean_or_zero(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return float(np.mean(values))


def position_distribution(positions: Iterable[int | None]) -> dict[int, int]:
    """Number of clicks per 1-based result position, sorted by position."""
    counts = Counter(p for p in positions if p is not None)
    return dict(sorted(counts.items()))
