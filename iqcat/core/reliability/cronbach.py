r"""
Cronbach's alpha for a single adaptive administration.

Formula:
    α = (k / (k-1)) × (1 - Σσ²ᵢ / σ²ₜ)

Where:
    k = number of items
    σ²ᵢ = variance of item i
    σ²ₜ = variance of total scores

A single adaptive session yields one response vector, so neither variance can
be observed directly. This module takes both from the model instead: for the
administered items, the 3PL response probabilities are averaged over the
prior ability distribution on the estimator's quadrature grid

    p̄ᵢ  = Σ_q w_q Pᵢ(θ_q)
    σ²ᵢ = p̄ᵢ (1 - p̄ᵢ)
    σ²ₜ = E[T²] - E[T]²,  E[T²] = Σ_q w_q (Σᵢ Pᵢq(1 - Pᵢq) + (Σᵢ Pᵢq)²)

which is the alpha the same item set would show across a population drawn
from the prior, assuming local independence. It is a documented heuristic,
not an estimate of split-sample reliability.
"""

import logging
from typing import Sequence

import numpy as np

from iqcat.core.cat import irt_model
from iqcat.core.cat.ability_estimation import posterior_distribution
from iqcat.core.cat.irt_model import IRTParameters

from ._constants import (
    ALPHA_THRESHOLDS,
    MIN_ITEMS_FOR_ALPHA,
    TARGET_ALPHA_THRESHOLD,
    AlphaInterpretation,
)

logger = logging.getLogger(__name__)


def interpret_alpha(alpha: float) -> AlphaInterpretation:
    """
    Get interpretation string for a Cronbach's alpha value.

    Returns:
        "excellent", "good", "acceptable", "questionable", "poor", or
        "unacceptable"
    """
    if alpha >= ALPHA_THRESHOLDS["excellent"]:
        return "excellent"
    elif alpha >= ALPHA_THRESHOLDS["good"]:
        return "good"
    elif alpha >= ALPHA_THRESHOLDS["acceptable"]:
        return "acceptable"
    elif alpha >= ALPHA_THRESHOLDS["questionable"]:
        return "questionable"
    elif alpha >= ALPHA_THRESHOLDS["poor"]:
        return "poor"
    else:
        return "unacceptable"


def meets_alpha_target(alpha: float) -> bool:
    """Whether alpha reaches the internal-consistency target (0.70)."""
    return alpha >= TARGET_ALPHA_THRESHOLD


def calculate_session_alpha(
    items: Sequence[IRTParameters],
    prior_mean: float = 0.0,
    prior_variance: float = 1.0,
) -> float:
    """
    Model-implied Cronbach's alpha of an administered item set.

    Args:
        items: Items administered in the session.
        prior_mean: Mean of the population ability distribution.
        prior_variance: Variance of the population ability distribution.

    Returns:
        Alpha clamped to [0, 1]; 0.0 for fewer than two items or a
        degenerate total-score variance.
    """
    k = len(items)
    if k < MIN_ITEMS_FOR_ALPHA:
        return 0.0

    grid = posterior_distribution([], prior_mean, prior_variance)
    nodes = np.array([theta for theta, _ in grid])
    weights = np.array([w for _, w in grid])

    # probs[q, i] = P_i(theta_q)
    probs = np.array(
        [[irt_model.probability(theta, item) for item in items] for theta in nodes]
    )

    p_bar = weights @ probs
    item_variance_sum = float(np.sum(p_bar * (1.0 - p_bar)))

    expected_total = float(np.sum(p_bar))
    conditional_var = np.sum(probs * (1.0 - probs), axis=1)
    conditional_mean = np.sum(probs, axis=1)
    expected_total_sq = float(weights @ (conditional_var + conditional_mean**2))
    total_variance = expected_total_sq - expected_total**2

    if total_variance <= 0:
        logger.warning(f"Degenerate total-score variance for {k} items; alpha=0")
        return 0.0

    alpha = (k / (k - 1)) * (1.0 - item_variance_sum / total_variance)
    return float(max(0.0, min(1.0, alpha)))
