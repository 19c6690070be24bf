"""
Item selection for Computerized Adaptive Testing.

Selects the next item from the pool that maximizes a strategy score at the
current ability estimate. The default strategy is Maximum Fisher Information
under the 3PL model (see ``irt_model.information``).

The selection pipeline:
1. Filter out items already answered in this session
2. Apply soft content balancing (skip categories whose quota is met, unless
   that would leave nothing to select)
3. Score every eligible item with the selection strategy
4. Order by score descending, item id ascending
5. Apply exposure control via randomesque selection from the top-K items
6. Return the selected item, or None when the pool is exhausted

Strategies:
    MaxInfo:  I(theta_hat)
    Bayesian: E[I(theta)] under the ability posterior on the quadrature grid
    Hybrid:   w * Bayesian + (1 - w) * MaxInfo, w = min(1, SE^2 / prior variance)

References:
    - Lord, F. M. (1980). Applications of item response theory to practical
      testing problems.
    - van der Linden, W.J. (1998). Bayesian item selection criteria for
      adaptive testing.
"""

import logging
import random
from dataclasses import dataclass
from typing import (
    Collection,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Union,
    runtime_checkable,
)

from iqcat.core.cat import irt_model
from iqcat.core.cat.ability_estimation import MIN_STANDARD_ERROR, posterior_distribution
from iqcat.core.cat.exposure_control import ExposureMonitor, apply_randomesque
from iqcat.core.config import THETA_MAX, THETA_MIN, CATConfig
from iqcat.core.item_bank import Item
from iqcat.domain_types import QuestionCategory, SelectionMethod

logger = logging.getLogger(__name__)

# (theta_node, weight) pairs summing to 1, as built by posterior_distribution
Posterior = Sequence[Tuple[float, float]]


@dataclass
class ItemCandidate:
    """An item with its selection score."""

    item: Item
    score: float


@runtime_checkable
class SelectionStrategy(Protocol):
    """
    Scores candidate items at the current ability estimate.

    ``posterior`` is the ability posterior given the responses so far; strategies
    that only look at the point estimate ignore it.
    """

    method: SelectionMethod

    def score(
        self,
        theta: float,
        standard_error: float,
        items: Sequence[Item],
        posterior: Optional[Posterior] = None,
    ) -> List[float]:
        ...


class MaxInformationStrategy:
    """Maximum Fisher information at the point estimate."""

    method = SelectionMethod.MAX_INFO

    def score(
        self,
        theta: float,
        standard_error: float,
        items: Sequence[Item],
        posterior: Optional[Posterior] = None,
    ) -> List[float]:
        return [irt_model.information(theta, item) for item in items]


class BayesianInformationStrategy:
    """
    Fisher information integrated over the ability posterior.

    The session passes the posterior on the estimator's quadrature grid. Called
    without one (standalone selection with only theta and SE at hand), the
    posterior is approximated by Normal(theta, SE^2) on the same grid. Items that
    are informative across the plausible ability range win early in the test.
    """

    method = SelectionMethod.BAYESIAN

    def __init__(self, min_theta: float = THETA_MIN, max_theta: float = THETA_MAX):
        self.min_theta = min_theta
        self.max_theta = max_theta

    def score(
        self,
        theta: float,
        standard_error: float,
        items: Sequence[Item],
        posterior: Optional[Posterior] = None,
    ) -> List[float]:
        if posterior is not None:
            weights = list(posterior)
        else:
            variance = max(MIN_STANDARD_ERROR, standard_error) ** 2
            weights = posterior_distribution(
                [], theta, variance, self.min_theta, self.max_theta
            )
        return [
            sum(w * irt_model.information(node, item) for node, w in weights)
            for item in items
        ]


class HybridStrategy:
    """Blend of Bayesian and point information, shifting toward MaxInfo as SE shrinks."""

    method = SelectionMethod.HYBRID

    def __init__(
        self,
        prior_variance: float = 1.0,
        min_theta: float = THETA_MIN,
        max_theta: float = THETA_MAX,
    ):
        if prior_variance <= 0:
            raise ValueError(f"prior_variance must be positive, got {prior_variance}")
        self.prior_variance = prior_variance
        self._bayesian = BayesianInformationStrategy(min_theta, max_theta)
        self._max_info = MaxInformationStrategy()

    def bayesian_weight(self, standard_error: float) -> float:
        return min(1.0, standard_error**2 / self.prior_variance)

    def score(
        self,
        theta: float,
        standard_error: float,
        items: Sequence[Item],
        posterior: Optional[Posterior] = None,
    ) -> List[float]:
        w = self.bayesian_weight(standard_error)
        bayes = self._bayesian.score(theta, standard_error, items, posterior)
        point = self._max_info.score(theta, standard_error, items)
        return [w * b + (1.0 - w) * p for b, p in zip(bayes, point)]


def get_strategy(
    method: SelectionMethod,
    prior_variance: float = 1.0,
    min_theta: float = THETA_MIN,
    max_theta: float = THETA_MAX,
) -> SelectionStrategy:
    """Build the strategy registered for a selection method."""
    if method == SelectionMethod.BAYESIAN:
        return BayesianInformationStrategy(min_theta, max_theta)
    if method == SelectionMethod.HYBRID:
        return HybridStrategy(prior_variance, min_theta, max_theta)
    return MaxInformationStrategy()


def _apply_content_balancing(
    eligible: List[Item],
    domain_remaining: Optional[Mapping[QuestionCategory, int]],
) -> List[Item]:
    """
    Drop items whose category quota is already met.

    Categories missing from ``domain_remaining`` are treated as having no
    quota. When every eligible item belongs to an exhausted category the
    quotas are ignored.
    """
    if domain_remaining is None:
        return eligible

    open_items = [
        item for item in eligible if domain_remaining.get(item.category, 0) > 0
    ]
    if open_items:
        return open_items

    logger.debug(
        f"Content balancing: all quotas met for remaining {len(eligible)} items; "
        "ignoring quotas"
    )
    return eligible


def rank_candidates(
    theta: float,
    items: Sequence[Item],
    strategy: SelectionStrategy,
    standard_error: float = 1.0,
    posterior: Optional[Posterior] = None,
) -> List[ItemCandidate]:
    """Score items and order them by score descending, then item id ascending."""
    scores = strategy.score(theta, standard_error, items, posterior)
    candidates = [ItemCandidate(item=item, score=s) for item, s in zip(items, scores)]
    candidates.sort(key=lambda c: (-c.score, c.item.id))
    return candidates


def select_next_item(
    theta: float,
    pool: Sequence[Item],
    answered_ids: Collection[str],
    domain_remaining: Optional[Mapping[QuestionCategory, int]] = None,
    *,
    strategy: Union[SelectionMethod, SelectionStrategy] = SelectionMethod.MAX_INFO,
    standard_error: float = 1.0,
    posterior: Optional[Posterior] = None,
    exposure_k: int = 1,
    rng: Optional[random.Random] = None,
    monitor: Optional[ExposureMonitor] = None,
) -> Optional[Item]:
    """
    Select the next item to administer.

    Args:
        theta: Current ability estimate.
        pool: Validated item pool.
        answered_ids: Ids of items already answered in this session.
        domain_remaining: Remaining quota per category; None disables
            content balancing.
        strategy: Selection method or a strategy instance.
        standard_error: Current SE, used by the Bayesian and Hybrid strategies.
        posterior: Ability posterior over the quadrature grid for the Bayesian
            and Hybrid strategies; Normal(theta, SE^2) when omitted.
        exposure_k: Randomesque window; 1 means strict maximum score.
        rng: Random instance for the randomesque draw.
        monitor: Optional shared ExposureMonitor.

    Returns:
        The selected item, or None if no unanswered item remains.
    """
    if isinstance(strategy, SelectionMethod):
        strategy = get_strategy(strategy)

    answered = set(answered_ids)
    eligible = [item for item in pool if item.id not in answered]
    if not eligible:
        logger.info(
            f"No eligible items remaining. Pool size: {len(pool)}, "
            f"answered: {len(answered)}"
        )
        return None

    eligible = _apply_content_balancing(eligible, domain_remaining)

    candidates = rank_candidates(theta, eligible, strategy, standard_error, posterior)
    selected = apply_randomesque(candidates, k=exposure_k, rng=rng, monitor=monitor)

    logger.debug(
        f"Item selection: theta={theta:.3f}, method={strategy.method.value}, "
        f"eligible={len(candidates)}, selected {selected.item.id} "
        f"(a={selected.item.discrimination:.2f}, b={selected.item.difficulty:.2f}, "
        f"c={selected.item.guessing:.2f}, score={selected.score:.4f})",
        extra={"theta": theta, "item_id": selected.item.id},
    )
    return selected.item


class ItemSelector:
    """Session-bound item selector: a strategy plus exposure settings."""

    def __init__(
        self,
        strategy: Optional[SelectionStrategy] = None,
        exposure_k: int = 1,
        rng: Optional[random.Random] = None,
        monitor: Optional[ExposureMonitor] = None,
    ):
        if exposure_k < 1:
            raise ValueError(f"exposure_k must be >= 1, got {exposure_k}")
        self.strategy = strategy or MaxInformationStrategy()
        self.exposure_k = exposure_k
        self.rng = rng
        self.monitor = monitor

    @classmethod
    def from_config(
        cls,
        config: CATConfig,
        rng: Optional[random.Random] = None,
        monitor: Optional[ExposureMonitor] = None,
    ) -> "ItemSelector":
        return cls(
            strategy=get_strategy(
                config.selection_method,
                config.prior_variance,
                config.min_ability,
                config.max_ability,
            ),
            exposure_k=config.randomesque_k if config.exposure_control else 1,
            rng=rng,
            monitor=monitor,
        )

    def select(
        self,
        theta: float,
        pool: Sequence[Item],
        answered_ids: Collection[str],
        domain_remaining: Optional[Mapping[QuestionCategory, int]] = None,
        standard_error: float = 1.0,
        posterior: Optional[Posterior] = None,
    ) -> Optional[Item]:
        return select_next_item(
            theta,
            pool,
            answered_ids,
            domain_remaining,
            strategy=self.strategy,
            standard_error=standard_error,
            posterior=posterior,
            exposure_k=self.exposure_k,
            rng=self.rng,
            monitor=self.monitor,
        )
