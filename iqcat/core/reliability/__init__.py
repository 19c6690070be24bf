"""
Reliability diagnostics for adaptive test sessions.

Usage:
    from iqcat.core.reliability import calculate_session_alpha, interpret_alpha
"""

from ._constants import (
    ALPHA_THRESHOLDS,
    MIN_ITEMS_FOR_ALPHA,
    TARGET_ALPHA_THRESHOLD,
)
from .cronbach import calculate_session_alpha, interpret_alpha, meets_alpha_target

__all__ = [
    "ALPHA_THRESHOLDS",
    "MIN_ITEMS_FOR_ALPHA",
    "TARGET_ALPHA_THRESHOLD",
    "calculate_session_alpha",
    "interpret_alpha",
    "meets_alpha_target",
]
