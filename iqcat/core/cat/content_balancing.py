"""
Content balancing for Computerized Adaptive Testing.

Every session receives a per-category item target (the "domain target") when
it starts. Targets are soft: the selector skips categories whose quota is
already met, but falls back to the whole remaining pool rather than stopping
when only exhausted categories still have items.

Targets are apportioned with the largest-remainder (Hamilton) method so they
always sum to exactly ``total_questions``:

    raw_i    = total_questions * w_i
    target_i = floor(raw_i) + (1 if i is among the largest fractional parts)

References:
    - van der Linden, W.J. (2005). Linear Models for Optimal Test Design.
    - Kingsbury, G.G., & Zara, A.R. (1991). A comparison of procedures for
      content-sensitive item selection in computerized adaptive tests.
"""

import logging
import math
from typing import Dict, Iterable, Mapping, Optional

from iqcat.domain_types import QuestionCategory

logger = logging.getLogger(__name__)


def build_domain_targets(
    total_questions: int,
    categories: Iterable[QuestionCategory],
    weights: Optional[Mapping[QuestionCategory, float]] = None,
) -> Dict[QuestionCategory, int]:
    """
    Apportion ``total_questions`` across the categories present in the pool.

    Args:
        total_questions: Test length to distribute (>= 0).
        categories: Categories present in the item pool. Duplicates are
            ignored; first-seen order breaks ties between equal remainders.
        weights: Optional target share per category. Weights of categories
            absent from the pool are dropped and the rest renormalized;
            categories without a weight receive none. Equal shares when
            omitted.

    Returns:
        Dict mapping category -> required item count, summing to
        ``total_questions`` (empty when there are no categories).

    Raises:
        ValueError: If total_questions is negative or a weight is negative.
    """
    if total_questions < 0:
        raise ValueError(f"total_questions must be non-negative, got {total_questions}")

    ordered = list(dict.fromkeys(categories))
    if not ordered:
        return {}

    if weights is not None:
        if any(w < 0 for w in weights.values()):
            raise ValueError("Domain weights must be non-negative")
        shares = {category: weights.get(category, 0.0) for category in ordered}
        weight_total = sum(shares.values())
        if weight_total <= 0:
            logger.warning(
                "Domain weights cover none of the pool categories; using equal weights"
            )
            shares = {category: 1.0 for category in ordered}
            weight_total = float(len(ordered))
    else:
        shares = {category: 1.0 for category in ordered}
        weight_total = float(len(ordered))

    raw = {c: total_questions * shares[c] / weight_total for c in ordered}
    targets = {c: math.floor(raw[c]) for c in ordered}

    leftover = total_questions - sum(targets.values())
    by_remainder = sorted(
        ordered, key=lambda c: (-(raw[c] - targets[c]), ordered.index(c))
    )
    for category in by_remainder[:leftover]:
        targets[category] += 1

    logger.debug(
        f"Domain targets for {total_questions} items: "
        f"{ {c.value: n for c, n in targets.items()} }"
    )
    return targets


def track_domain_coverage(responses: Iterable) -> Dict[QuestionCategory, int]:
    """
    Count answered items per category.

    Args:
        responses: Objects with a ``category`` attribute (responses or items).

    Returns:
        Dict mapping category -> number answered.
    """
    coverage: Dict[QuestionCategory, int] = {}
    for response in responses:
        coverage[response.category] = coverage.get(response.category, 0) + 1
    return coverage


def remaining_quota(
    target: Mapping[QuestionCategory, int],
    coverage: Mapping[QuestionCategory, int],
) -> Dict[QuestionCategory, int]:
    """Items still owed per category (never negative)."""
    return {
        category: max(0, required - coverage.get(category, 0))
        for category, required in target.items()
    }


def is_content_balanced(
    coverage: Mapping[QuestionCategory, int],
    target: Mapping[QuestionCategory, int],
) -> bool:
    """True when every category has met its target count."""
    for category, required in target.items():
        answered = coverage.get(category, 0)
        if answered < required:
            logger.debug(
                f"Content balance not met: '{category.value}' has "
                f"{answered}/{required} items"
            )
            return False
    return True
