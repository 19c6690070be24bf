"""
Ability (theta) estimation for Computerized Adaptive Testing.

Two interchangeable estimators over the 3PL model:

EAP (Expected A Posteriori), the running estimator of a session:
    theta_hat = sum(theta_q * L(theta_q) * prior(theta_q)) / sum(L(theta_q) * prior(theta_q))

    evaluated on 41 evenly spaced quadrature nodes over [-4, 4]. EAP is robust
    to all-correct / all-incorrect patterns that make MLE diverge, which is why
    it is the standard choice for short adaptive tests (Bock & Mislevy, 1982).
    SE is the posterior standard deviation.

MLE (Maximum Likelihood, Newton-Raphson), offered for calibration and
validation runs:
    theta <- theta - L'(theta) / L''(theta)

    at most 50 iterations, clamped to the ability bounds on every step,
    stopping when |delta theta| < 0.001. SE = 1 / sqrt(I(theta)).

Where L(theta) = product of P_i(theta)^u_i * (1 - P_i(theta))^(1 - u_i) over
all administered items.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from iqcat.core.cat import irt_model
from iqcat.core.cat.irt_model import IRTParameters
from iqcat.core.config import THETA_MAX, THETA_MIN, CATConfig
from iqcat.domain_types import EstimationMethod

logger = logging.getLogger(__name__)

# Quadrature configuration
QUADRATURE_POINTS = 41
QUADRATURE_RANGE = (THETA_MIN, THETA_MAX)

# Newton-Raphson configuration
MLE_MAX_ITERATIONS = 50
MLE_CONVERGENCE_CRITERION = 0.001
# Updates are skipped when |L''| falls below this value
MLE_SECOND_DERIVATIVE_FLOOR = 0.001

# Lower bound reported for any standard error
MIN_STANDARD_ERROR = 1e-6

ScoredResponse = Tuple[IRTParameters, bool]


@dataclass(frozen=True)
class AbilityEstimate:
    """A point estimate of ability. Replaced after every response, never mutated.

    Attributes:
        theta: Ability estimate, within the configured bounds.
        standard_error: Uncertainty of the estimate (> 0).
        posterior_variance: Posterior variance (EAP) or 1 / I(theta) (MLE).
        information_gained: Test information of the scored items at theta.
        method: Estimator that produced this estimate.
    """

    theta: float
    standard_error: float
    posterior_variance: float
    information_gained: float
    method: EstimationMethod = EstimationMethod.EAP


def quadrature_nodes(
    min_theta: float = THETA_MIN,
    max_theta: float = THETA_MAX,
    n_points: int = QUADRATURE_POINTS,
) -> List[float]:
    """Evenly spaced quadrature nodes over [min_theta, max_theta]."""
    step = (max_theta - min_theta) / (n_points - 1)
    return [min_theta + step * i for i in range(n_points)]


def _log_likelihood(theta: float, responses: Sequence[ScoredResponse]) -> float:
    # Probabilities are clamped by the model, so log() is always finite
    log_lik = 0.0
    for item, is_correct in responses:
        p = irt_model.probability(theta, item)
        log_lik += math.log(p) if is_correct else math.log(1.0 - p)
    return log_lik


def posterior_distribution(
    responses: Sequence[ScoredResponse],
    prior_mean: float = 0.0,
    prior_variance: float = 1.0,
    min_theta: float = THETA_MIN,
    max_theta: float = THETA_MAX,
) -> List[Tuple[float, float]]:
    """
    Normalized posterior over the quadrature grid.

    Args:
        responses: (item, is_correct) pairs.
        prior_mean: Mean of the Gaussian prior on theta.
        prior_variance: Variance of the Gaussian prior on theta (> 0).
        min_theta: Lower end of the quadrature range.
        max_theta: Upper end of the quadrature range.

    Returns:
        List of (theta_node, probability) pairs summing to 1.

    Raises:
        ValueError: If prior_variance is not positive.
    """
    if prior_variance <= 0:
        raise ValueError(f"prior_variance must be positive, got {prior_variance}")

    nodes = quadrature_nodes(min_theta, max_theta)

    # log N(theta | mu, sigma^2) up to a constant; constants cancel on normalization
    log_posteriors = [
        -((theta - prior_mean) ** 2) / (2.0 * prior_variance)
        + _log_likelihood(theta, responses)
        for theta in nodes
    ]

    # Normalize using log-sum-exp for numerical stability
    max_log_post = max(log_posteriors)
    weights = [math.exp(lp - max_log_post) for lp in log_posteriors]
    total = sum(weights)
    return [(theta, w / total) for theta, w in zip(nodes, weights)]


def estimate_ability_eap(
    responses: Sequence[ScoredResponse],
    prior_mean: float = 0.0,
    prior_variance: float = 1.0,
    min_theta: float = THETA_MIN,
    max_theta: float = THETA_MAX,
) -> AbilityEstimate:
    """
    Estimate ability using Expected A Posteriori (EAP) with numerical quadrature.

    The EAP estimate is the posterior mean:
        theta_hat = E[theta | responses] = sum(theta_q * p(theta_q | responses))

    Standard error is the posterior standard deviation:
        SE = sqrt(E[theta^2 | responses] - theta_hat^2)

    computed as the central second moment, which is the same quantity without
    the cancellation error of subtracting two nearly equal numbers.

    Args:
        responses: (item, is_correct) pairs for every administered item.
        prior_mean: Mean of the Gaussian prior on theta.
        prior_variance: Variance of the Gaussian prior on theta.
        min_theta: Lower end of the quadrature range.
        max_theta: Upper end of the quadrature range.

    Returns:
        AbilityEstimate with the posterior mean and posterior SD.
        With no responses the prior itself is returned.
    """
    if not responses:
        if prior_variance <= 0:
            raise ValueError(f"prior_variance must be positive, got {prior_variance}")
        return AbilityEstimate(
            theta=max(min_theta, min(max_theta, prior_mean)),
            standard_error=math.sqrt(prior_variance),
            posterior_variance=prior_variance,
            information_gained=0.0,
            method=EstimationMethod.EAP,
        )

    posterior = posterior_distribution(
        responses, prior_mean, prior_variance, min_theta, max_theta
    )

    theta_hat = sum(theta * prob for theta, prob in posterior)
    posterior_variance = sum((theta - theta_hat) ** 2 * prob for theta, prob in posterior)
    se = max(MIN_STANDARD_ERROR, math.sqrt(posterior_variance))

    items = [item for item, _ in responses]
    information = irt_model.test_information(theta_hat, items)

    logger.debug(
        f"EAP: n={len(responses)}, theta={theta_hat:.4f}, SE={se:.4f}, "
        f"info={information:.4f}"
    )

    return AbilityEstimate(
        theta=theta_hat,
        standard_error=se,
        posterior_variance=posterior_variance,
        information_gained=information,
        method=EstimationMethod.EAP,
    )


def _log_likelihood_derivatives(
    theta: float, responses: Sequence[ScoredResponse]
) -> Tuple[float, float]:
    """First and second derivatives of the 3PL log-likelihood at theta."""
    first = 0.0
    second = 0.0
    for item, is_correct in responses:
        p = irt_model.probability(theta, item)
        pq = p * (1.0 - p)
        p1 = irt_model.probability_derivative(theta, item)
        p2 = irt_model.probability_second_derivative(theta, item)
        residual = (1.0 if is_correct else 0.0) - p

        first += residual * p1 / pq
        second += (residual * p2 - p1 * p1) / pq - residual * p1 * p1 * (
            1.0 - 2.0 * p
        ) / (pq * pq)
    return first, second


def estimate_ability_mle(
    responses: Sequence[ScoredResponse],
    start_theta: float = 0.0,
    min_theta: float = THETA_MIN,
    max_theta: float = THETA_MAX,
    max_iterations: int = MLE_MAX_ITERATIONS,
    tolerance: float = MLE_CONVERGENCE_CRITERION,
) -> AbilityEstimate:
    """
    Estimate ability by Maximum Likelihood using Newton-Raphson.

    Extreme patterns (all correct / all incorrect) have no finite MLE; the
    estimate then runs to the nearest ability bound and stops there.

    Args:
        responses: (item, is_correct) pairs.
        start_theta: Starting point of the iteration.
        min_theta: Lower ability bound applied on every iteration.
        max_theta: Upper ability bound applied on every iteration.
        max_iterations: Iteration cap.
        tolerance: Convergence criterion on |delta theta|.

    Returns:
        AbilityEstimate with SE = 1 / sqrt(I(theta)).
    """
    theta = max(min_theta, min(max_theta, start_theta))

    if not responses:
        return AbilityEstimate(
            theta=theta,
            standard_error=1.0,
            posterior_variance=1.0,
            information_gained=0.0,
            method=EstimationMethod.MLE,
        )

    iterations = 0
    for iterations in range(1, max_iterations + 1):
        first, second = _log_likelihood_derivatives(theta, responses)

        if abs(second) < MLE_SECOND_DERIVATIVE_FLOOR:
            new_theta = theta
        else:
            new_theta = max(min_theta, min(max_theta, theta - first / second))

        delta = abs(new_theta - theta)
        theta = new_theta
        if delta < tolerance:
            break

    items = [item for item, _ in responses]
    information = irt_model.test_information(theta, items)
    se = irt_model.standard_error(theta, items)

    logger.debug(
        f"MLE: n={len(responses)}, theta={theta:.4f}, SE={se:.4f}, "
        f"iterations={iterations}"
    )

    return AbilityEstimate(
        theta=theta,
        standard_error=se,
        posterior_variance=1.0 / max(irt_model.INFORMATION_FLOOR, information),
        information_gained=information,
        method=EstimationMethod.MLE,
    )


class AbilityEstimator:
    """
    Configured ability estimator.

    Dispatches to EAP or MLE; both return an ``AbilityEstimate`` so callers
    can swap methods without other changes.
    """

    def __init__(
        self,
        method: EstimationMethod = EstimationMethod.EAP,
        prior_mean: float = 0.0,
        prior_variance: float = 1.0,
        min_theta: float = THETA_MIN,
        max_theta: float = THETA_MAX,
        start_theta: float = 0.0,
    ):
        if prior_variance <= 0:
            raise ValueError(f"prior_variance must be positive, got {prior_variance}")
        if min_theta >= max_theta:
            raise ValueError(f"min_theta ({min_theta}) must be below max_theta ({max_theta})")
        self.method = method
        self.prior_mean = prior_mean
        self.prior_variance = prior_variance
        self.min_theta = min_theta
        self.max_theta = max_theta
        self.start_theta = start_theta

    @classmethod
    def from_config(
        cls, config: CATConfig, method: EstimationMethod = EstimationMethod.EAP
    ) -> "AbilityEstimator":
        return cls(
            method=method,
            prior_mean=config.prior_mean,
            prior_variance=config.prior_variance,
            min_theta=config.min_ability,
            max_theta=config.max_ability,
            start_theta=config.starting_ability,
        )

    def estimate(self, responses: Sequence[ScoredResponse]) -> AbilityEstimate:
        if self.method == EstimationMethod.MLE:
            return estimate_ability_mle(
                responses,
                start_theta=self.start_theta,
                min_theta=self.min_theta,
                max_theta=self.max_theta,
            )
        return estimate_ability_eap(
            responses,
            prior_mean=self.prior_mean,
            prior_variance=self.prior_variance,
            min_theta=self.min_theta,
            max_theta=self.max_theta,
        )

    def posterior(self, responses: Sequence[ScoredResponse]) -> List[Tuple[float, float]]:
        """Posterior over the quadrature grid (prior when no responses)."""
        return posterior_distribution(
            responses,
            prior_mean=self.prior_mean,
            prior_variance=self.prior_variance,
            min_theta=self.min_theta,
            max_theta=self.max_theta,
        )
