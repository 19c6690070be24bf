"""
Three-parameter logistic (3PL) IRT model.

    P(theta) = c + (1 - c) / (1 + exp(-a * (theta - b)))

Where:
    a = discrimination, b = difficulty, c = pseudo-guessing asymptote.

Fisher information follows from the first derivative of P:

    P'(theta) = a * (1 - c) * s * (1 - s),   s = 1 / (1 + exp(-a * (theta - b)))
    I(theta)  = P'(theta)^2 / (P(theta) * (1 - P(theta)))

Probabilities are clamped to [0.001, 0.999] and information is floored at
0.001 so downstream log-likelihoods and standard errors never see log(0) or a
division by zero.

References:
    - Birnbaum, A. (1968). Some latent trait models and their use in
      inferring an examinee's ability.
    - Lord, F. M. (1980). Applications of item response theory to practical
      testing problems.
"""

import math
from typing import Iterable, Protocol

PROBABILITY_FLOOR = 0.001
PROBABILITY_CEILING = 0.999
INFORMATION_FLOOR = 0.001


class IRTParameters(Protocol):
    """Anything exposing 3PL item parameters."""

    @property
    def discrimination(self) -> float:
        ...

    @property
    def difficulty(self) -> float:
        ...

    @property
    def guessing(self) -> float:
        ...


def _sigmoid(logit: float) -> float:
    # Numerically stable logistic
    if logit >= 0:
        return 1.0 / (1.0 + math.exp(-logit))
    exp_logit = math.exp(logit)
    return exp_logit / (1.0 + exp_logit)


def probability(theta: float, item: IRTParameters) -> float:
    """
    Probability of a correct response under the 3PL model.

    Args:
        theta: Ability level.
        item: Item with discrimination, difficulty and guessing parameters.

    Returns:
        P(correct | theta), clamped to [0.001, 0.999].
    """
    a, b, c = item.discrimination, item.difficulty, item.guessing
    p = c + (1.0 - c) * _sigmoid(a * (theta - b))
    return max(PROBABILITY_FLOOR, min(PROBABILITY_CEILING, p))


def probability_derivative(theta: float, item: IRTParameters) -> float:
    """First derivative dP/dtheta of the unclamped 3PL curve."""
    a, b, c = item.discrimination, item.difficulty, item.guessing
    s = _sigmoid(a * (theta - b))
    return a * (1.0 - c) * s * (1.0 - s)


def probability_second_derivative(theta: float, item: IRTParameters) -> float:
    """Second derivative d2P/dtheta2 of the unclamped 3PL curve."""
    a, b, c = item.discrimination, item.difficulty, item.guessing
    s = _sigmoid(a * (theta - b))
    return a * a * (1.0 - c) * s * (1.0 - s) * (1.0 - 2.0 * s)


def information(theta: float, item: IRTParameters) -> float:
    """
    Fisher information of a 3PL item at a given ability level.

    Returns:
        I(theta) = P'^2 / (P * (1 - P)), floored at 0.001.
    """
    p = probability(theta, item)
    p_prime = probability_derivative(theta, item)
    return max(INFORMATION_FLOOR, (p_prime * p_prime) / (p * (1.0 - p)))


def test_information(theta: float, items: Iterable[IRTParameters]) -> float:
    """Test information: the sum of item information at theta."""
    return sum(information(theta, item) for item in items)


def standard_error(theta: float, items: Iterable[IRTParameters]) -> float:
    """Standard error of measurement, SE(theta) = 1 / sqrt(I(theta))."""
    return 1.0 / math.sqrt(max(INFORMATION_FLOOR, test_information(theta, items)))
