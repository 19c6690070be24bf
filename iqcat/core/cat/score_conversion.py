"""
IRT-based score conversion for Computerized Adaptive Testing.

Converts the final theta (ability) estimate of a session into an IQ score,
confidence interval, percentile rank, per-domain analysis and reliability
diagnostics.

IQ Scale Transformation:
    IQ = round(100 + (θ × 15))

    Where:
        θ = ability estimate from EAP (mean 0, SD 1 on the latent trait scale)
        15 = IQ standard deviation (Wechsler convention)
        100 = IQ mean

Confidence Interval:
    CI = [IQ(θ - z × SE), IQ(θ + z × SE)],  z = 1.645 / 1.96 / 2.576

Percentile Rank:
    percentile = Φ(θ) × 100

    Φ is the standard normal CDF from scipy, exact to double precision.

Time weighting:
    A response is slow when it timed out or exceeded its time limit, and fast
    when answered in under 2 seconds. With the matching penalty flags set,

        time_adjusted_iq = IQ(θ - time_weight_factor × (slow share + fast share))

    The reported ``iq`` is never altered by time weighting.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from scipy.stats import norm

from iqcat.core.cat.ability_estimation import estimate_ability_eap
from iqcat.core.config import CATConfig
from iqcat.core.item_bank import Item
from iqcat.core.reliability import (
    calculate_session_alpha,
    interpret_alpha,
    meets_alpha_target,
)
from iqcat.domain_types import IQClassification, MasteryLevel, QuestionCategory, StopReason

if TYPE_CHECKING:
    from iqcat.core.cat.engine import Response, Session

logger = logging.getLogger(__name__)

# IQ scale parameters
IQ_MEAN = 100.0
IQ_POPULATION_SD = 15.0

# Two-sided z-scores for the supported confidence levels
Z_SCORES = {0.90: 1.645, 0.95: 1.96, 0.99: 2.576}
DEFAULT_CONFIDENCE_LEVEL = 0.95

# Responses faster than this are treated as rapid guessing
FAST_RESPONSE_THRESHOLD_MS = 2000.0

# Lower bounds of the IQ classification bands, highest first
IQ_CLASSIFICATION_BANDS: Tuple[Tuple[int, IQClassification], ...] = (
    (130, IQClassification.VERY_SUPERIOR),
    (120, IQClassification.SUPERIOR),
    (110, IQClassification.HIGH_AVERAGE),
    (90, IQClassification.AVERAGE),
    (80, IQClassification.LOW_AVERAGE),
    (70, IQClassification.BORDERLINE),
)

# Lower theta bounds of the mastery tiers, highest first
MASTERY_THRESHOLDS: Tuple[Tuple[float, MasteryLevel], ...] = (
    (2.0, MasteryLevel.EXPERT),
    (1.0, MasteryLevel.ADVANCED),
    (0.0, MasteryLevel.PROFICIENT),
    (-1.0, MasteryLevel.DEVELOPING),
)


@dataclass(frozen=True)
class ConfidenceInterval:
    """Confidence interval on the IQ scale."""

    lower: int
    upper: int
    level: float


@dataclass(frozen=True)
class DomainAnalysis:
    """Per-category ability analysis.

    Attributes:
        category: Content category.
        theta: EAP estimate from this category's responses only.
        standard_error: Posterior SD of that estimate.
        mastery_level: Tier derived from theta.
        questions_answered: Responses in this category.
        correct_count: Correct responses in this category.
        accuracy: Proportion correct (0.0 to 1.0).
    """

    category: QuestionCategory
    theta: float
    standard_error: float
    mastery_level: MasteryLevel
    questions_answered: int
    correct_count: int
    accuracy: float


@dataclass(frozen=True)
class ReliabilityMetrics:
    cronbach_alpha: float
    alpha_interpretation: str
    meets_alpha_target: bool
    measurement_precision: float
    test_reliability: float


@dataclass(frozen=True)
class ScoreReport:
    """Final result of a completed session. Derived; never stored on the session."""

    iq: int
    theta: float
    standard_error: float
    confidence_interval: ConfidenceInterval
    percentile: float
    classification: IQClassification
    domain_analysis: Dict[QuestionCategory, DomainAnalysis]
    reliability: ReliabilityMetrics
    correct_count: int
    accuracy: float
    average_response_time_ms: float
    items_administered: int
    stop_reason: Optional[StopReason]
    meets_precision_target: bool
    ability_progression: Tuple[float, ...] = field(default_factory=tuple)
    standard_error_progression: Tuple[float, ...] = field(default_factory=tuple)
    information_curve: Tuple[float, ...] = field(default_factory=tuple)
    response_time_progression: Tuple[float, ...] = field(default_factory=tuple)
    time_adjusted_iq: Optional[int] = None
    flagged_responses: int = 0


def ability_to_iq(theta: float) -> int:
    """
    Convert theta to the IQ scale.

    Examples:
        ability_to_iq(0.0)  -> 100
        ability_to_iq(1.0)  -> 115
        ability_to_iq(-2.0) -> 70
    """
    if math.isnan(theta) or math.isinf(theta):
        raise ValueError(f"theta must be finite, got {theta}")
    return int(round(IQ_MEAN + theta * IQ_POPULATION_SD))


def iq_to_ability(iq: float) -> float:
    """Inverse of ``ability_to_iq``: θ = (IQ - 100) / 15."""
    return (iq - IQ_MEAN) / IQ_POPULATION_SD


def ability_to_percentile(theta: float) -> float:
    """Percentile rank (0-100) of theta under the standard normal population."""
    return float(norm.cdf(theta) * 100.0)


def confidence_interval(
    theta: float, standard_error: float, level: float = DEFAULT_CONFIDENCE_LEVEL
) -> ConfidenceInterval:
    """
    Confidence interval for theta, expressed in IQ units.

    Args:
        theta: Ability estimate.
        standard_error: SE of the estimate (non-negative).
        level: 0.90, 0.95 or 0.99.

    Raises:
        ValueError: If level is unsupported or standard_error is negative.
    """
    if level not in Z_SCORES:
        raise ValueError(
            f"Unsupported confidence level {level}; expected one of {sorted(Z_SCORES)}"
        )
    if standard_error < 0:
        raise ValueError(f"standard_error must be non-negative, got {standard_error}")

    margin = Z_SCORES[level] * standard_error
    return ConfidenceInterval(
        lower=ability_to_iq(theta - margin),
        upper=ability_to_iq(theta + margin),
        level=level,
    )


def classify_iq(iq: int) -> IQClassification:
    for lower_bound, band in IQ_CLASSIFICATION_BANDS:
        if iq >= lower_bound:
            return band
    return IQClassification.EXTREMELY_LOW


def classify_mastery(theta: float) -> MasteryLevel:
    for lower_bound, level in MASTERY_THRESHOLDS:
        if theta >= lower_bound:
            return level
    return MasteryLevel.NOVICE


def effective_time_limit_seconds(item: Item, config: CATConfig) -> float:
    """Per-question time limit: the tighter of the item's and the configured one."""
    return min(item.time_limit_seconds, config.question_time_limit_seconds)


def analyze_domains(
    responses: Sequence["Response"],
    items: Mapping[str, Item],
    config: Optional[CATConfig] = None,
) -> Dict[QuestionCategory, DomainAnalysis]:
    """
    Per-category EAP analysis.

    Each category is re-estimated from its own responses only, with the
    session prior. Categories without responses are omitted; order follows
    first appearance in the session.

    Args:
        responses: Session responses in answer order.
        items: Item lookup by id.
        config: Session configuration (prior and ability bounds).
    """
    config = config or CATConfig()

    grouped: Dict[QuestionCategory, List["Response"]] = {}
    for response in responses:
        grouped.setdefault(response.category, []).append(response)

    analysis: Dict[QuestionCategory, DomainAnalysis] = {}
    for category, category_responses in grouped.items():
        estimate = estimate_ability_eap(
            [(items[r.item_id], r.is_correct) for r in category_responses],
            prior_mean=config.prior_mean,
            prior_variance=config.prior_variance,
            min_theta=config.min_ability,
            max_theta=config.max_ability,
        )
        correct = sum(1 for r in category_responses if r.is_correct)
        analysis[category] = DomainAnalysis(
            category=category,
            theta=estimate.theta,
            standard_error=estimate.standard_error,
            mastery_level=classify_mastery(estimate.theta),
            questions_answered=len(category_responses),
            correct_count=correct,
            accuracy=correct / len(category_responses),
        )
    return analysis


def _time_penalty(
    responses: Sequence["Response"], items: Mapping[str, Item], config: CATConfig
) -> float:
    if not responses:
        return 0.0

    slow = sum(
        1
        for r in responses
        if r.timed_out
        or r.response_time_ms > effective_time_limit_seconds(items[r.item_id], config) * 1000.0
    )
    fast = sum(
        1
        for r in responses
        if not r.timed_out and r.response_time_ms < FAST_RESPONSE_THRESHOLD_MS
    )

    share = 0.0
    if config.penalize_slow_answers:
        share += slow / len(responses)
    if config.penalize_fast_answers:
        share += fast / len(responses)
    return config.time_weight_factor * share


class ScoreReporter:
    """Builds the ``ScoreReport`` of a completed session."""

    def __init__(self, config: Optional[CATConfig] = None):
        self.config = config or CATConfig()

    def build_report(
        self, session: "Session", items: Mapping[str, Item] | Iterable[Item]
    ) -> ScoreReport:
        """
        Derive the final report from a session.

        Args:
            session: The session to report on. Not modified.
            items: The session's item pool, as a list or an id -> item mapping.

        Returns:
            ScoreReport for the session's current (final) estimate.
        """
        config = self.config
        lookup = items if isinstance(items, Mapping) else {item.id: item for item in items}
        responses = list(session.responses)

        theta = session.theta
        se = session.standard_error
        iq = ability_to_iq(theta)

        administered = [lookup[r.item_id] for r in responses]
        alpha = calculate_session_alpha(
            administered, config.prior_mean, config.prior_variance
        )
        reliability = ReliabilityMetrics(
            cronbach_alpha=alpha,
            alpha_interpretation=interpret_alpha(alpha),
            meets_alpha_target=meets_alpha_target(alpha),
            measurement_precision=1.0 / se,
            test_reliability=max(0.0, min(1.0, 1.0 - se**2 / config.prior_variance)),
        )

        correct = sum(1 for r in responses if r.is_correct)
        n = len(responses)

        time_adjusted_iq = None
        if config.penalize_slow_answers or config.penalize_fast_answers:
            time_adjusted_iq = ability_to_iq(theta - _time_penalty(responses, lookup, config))

        report = ScoreReport(
            iq=iq,
            theta=theta,
            standard_error=se,
            confidence_interval=confidence_interval(theta, se),
            percentile=ability_to_percentile(theta),
            classification=classify_iq(iq),
            domain_analysis=analyze_domains(responses, lookup, config),
            reliability=reliability,
            correct_count=correct,
            accuracy=correct / n if n else 0.0,
            average_response_time_ms=(
                sum(r.response_time_ms for r in responses) / n if n else 0.0
            ),
            items_administered=n,
            stop_reason=session.stop_reason,
            meets_precision_target=se <= config.max_standard_error,
            ability_progression=tuple(session.theta_history),
            standard_error_progression=tuple(session.se_history),
            information_curve=tuple(r.information_value for r in responses),
            response_time_progression=tuple(r.response_time_ms for r in responses),
            time_adjusted_iq=time_adjusted_iq,
            flagged_responses=sum(1 for r in responses if r.suspicion is not None),
        )

        logger.debug(
            f"Score report: theta={theta:.3f}, SE={se:.3f} -> IQ={iq}, "
            f"CI=[{report.confidence_interval.lower}, {report.confidence_interval.upper}], "
            f"percentile={report.percentile:.1f}"
        )
        return report
