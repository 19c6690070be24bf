"""
Item exposure control.

Pure maximum-information selection keeps handing out the same handful of
items. The randomesque rule (Kingsbury & Zara, 1989) draws uniformly from
the K best candidates instead, and ExposureMonitor keeps a process-wide tally
of how often each item is administered so over-used items can be reported.

See also Stocking & Lewis (1998) on conditional exposure control.
"""

import logging
import random
import threading
from collections import Counter
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from iqcat.core.cat.item_selection import ItemCandidate

logger = logging.getLogger(__name__)

DEFAULT_RANDOMESQUE_K = 5

# Share of all administrations above which an item counts as over-exposed
DEFAULT_EXPOSURE_ALERT_THRESHOLD = 0.15

# Per-item detail lines written for one alert
_MAX_ALERT_LINES = 10


def apply_randomesque(
    ranked: Sequence["ItemCandidate"],
    k: int = DEFAULT_RANDOMESQUE_K,
    rng: Optional[random.Random] = None,
    monitor: Optional["ExposureMonitor"] = None,
) -> "ItemCandidate":
    """
    Draw one candidate uniformly from the first ``k`` of ``ranked``.

    ``ranked`` must already be ordered best first. With ``k=1`` (or a single
    candidate) the top entry is returned without touching the rng. The chosen
    item is counted in ``monitor`` when one is given.

    Raises:
        ValueError: ``ranked`` is empty or ``k`` < 1.
    """
    if k < 1:
        raise ValueError(f"randomesque window must be at least 1, got k={k}")
    if len(ranked) == 0:
        raise ValueError("no ranked candidates to choose from")

    window = list(ranked[:k])
    chosen = window[0] if len(window) == 1 else (rng or random).choice(window)

    if monitor is not None:
        monitor.record_selection(chosen.item.id)

    logger.debug(
        f"Picked {chosen.item.id} out of {len(window)} leading candidates "
        f"(score={chosen.score:.4f})"
    )
    return chosen


class ExposureMonitor:
    """
    Counts administrations per item across sessions.

    An item's exposure rate is its count divided by the total number of
    recorded administrations. All methods take an internal lock, so a single
    monitor can be shared between concurrently running sessions.
    """

    def __init__(self, alert_threshold: float = DEFAULT_EXPOSURE_ALERT_THRESHOLD):
        if alert_threshold < 0.0 or alert_threshold > 1.0:
            raise ValueError(
                f"alert_threshold is a rate and must lie in [0, 1]; got {alert_threshold}"
            )
        self.alert_threshold = alert_threshold
        self._counts: Counter = Counter()
        self._lock = threading.Lock()

    def _snapshot(self) -> Tuple[Dict[str, int], int]:
        with self._lock:
            return dict(self._counts), sum(self._counts.values())

    def _over_threshold(self, counts: Dict[str, int], total: int) -> List[Tuple[str, float]]:
        if total == 0:
            return []
        flagged = []
        for item_id, count in counts.items():
            rate = count / total
            if rate > self.alert_threshold:
                flagged.append((item_id, rate))
        return sorted(flagged, key=lambda pair: (-pair[1], pair[0]))

    def record_selection(self, item_id: str) -> None:
        with self._lock:
            self._counts[item_id] += 1

    def get_exposure_rate(self, item_id: str) -> float:
        counts, total = self._snapshot()
        return counts.get(item_id, 0) / total if total else 0.0

    def get_exposure_rates(self) -> Dict[str, float]:
        """Rate for every item seen so far; empty before the first record."""
        counts, total = self._snapshot()
        if not total:
            return {}
        return {item_id: count / total for item_id, count in counts.items()}

    def get_overexposed_items(self) -> List[Tuple[str, float]]:
        """``(item_id, rate)`` above the threshold, highest rate first, ties by id."""
        return self._over_threshold(*self._snapshot())

    def check_and_alert(self) -> List[Tuple[str, float]]:
        """Same as get_overexposed_items, but also writes a warning per item."""
        counts, total = self._snapshot()
        flagged = self._over_threshold(counts, total)
        if not flagged:
            return flagged

        logger.warning(
            f"Over-exposure detected: {len(flagged)} item(s) above "
            f"{self.alert_threshold:.1%} of {total} administrations"
        )
        for item_id, rate in flagged[:_MAX_ALERT_LINES]:
            logger.warning(f"  {item_id}: {counts[item_id]} uses, rate {rate:.1%}")
        if len(flagged) > _MAX_ALERT_LINES:
            logger.warning(f"  ({len(flagged) - _MAX_ALERT_LINES} further items not listed)")
        return flagged

    @property
    def total_selections(self) -> int:
        return self._snapshot()[1]

    def reset(self) -> None:
        """Forget all counts, e.g. after the pool has been rotated."""
        with self._lock:
            self._counts.clear()
        logger.info("Exposure counts cleared")
