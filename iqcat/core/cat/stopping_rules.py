"""
When to end an adaptive session.

Checked after each answer. Several conditions can hold at once; the reported
reason is the first match in this order:

    max_items       the configured number of questions has been asked
    se_threshold    SE(theta) has dropped to the target precision
    time_expired    no global time is left
    pool_exhausted  selection found nothing left to administer

Weiss & Kingsbury (1984) and van der Linden & Glas (2010) discuss fixed-length
versus variable-length termination.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from iqcat.domain_types import StopReason

logger = logging.getLogger(__name__)


@dataclass
class StoppingDecision:
    """
    Outcome of one stopping check.

    ``details`` keeps every individual criterion (item count, SE against
    target, remaining time, next-item availability) for logging and reports,
    including the ones that did not trigger.
    """

    should_stop: bool
    reason: Optional[StopReason]
    details: Dict[str, Any]


def check_stopping_criteria(
    num_items: int,
    se: float,
    remaining_time: float,
    total_questions: int,
    target_se: float,
    next_item_available: bool = True,
) -> StoppingDecision:
    """
    Decide whether the session ends after ``num_items`` answers.

    ``remaining_time`` is in seconds; zero or less counts as expired.

    Raises:
        ValueError: ``se`` or ``num_items`` below zero.
    """
    if se < 0:
        raise ValueError(f"se cannot be negative (got {se})")
    if num_items < 0:
        raise ValueError(f"num_items cannot be negative (got {num_items})")

    at_max_items = num_items >= total_questions
    se_met = se <= target_se
    time_expired = remaining_time <= 0

    details: Dict[str, Any] = {
        "num_items": num_items,
        "total_questions": total_questions,
        "at_max_items": at_max_items,
        "se": round(se, 4),
        "target_se": target_se,
        "se_met": se_met,
        "remaining_time": remaining_time,
        "time_expired": time_expired,
        "next_item_available": next_item_available,
    }

    reason: Optional[StopReason] = None
    if at_max_items:
        reason = StopReason.MAX_ITEMS
    elif se_met:
        reason = StopReason.SE_THRESHOLD
    elif time_expired:
        reason = StopReason.TIME_EXPIRED
    elif not next_item_available:
        reason = StopReason.POOL_EXHAUSTED

    if reason is not None:
        logger.debug(
            f"Stopping: reason={reason.value}, items={num_items}, SE={se:.4f}",
            extra={"stop_reason": reason.value, "standard_error": se},
        )

    return StoppingDecision(should_stop=reason is not None, reason=reason, details=details)
