"""
CAT (Computerized Adaptive Testing) core.

Note: engine, score_conversion and simulation are not imported at package
level to avoid circular imports with iqcat.core.reliability (which uses the
quadrature grid from ability_estimation). Import them directly:
from iqcat.core.cat.engine import SessionController
"""

from .ability_estimation import (
    AbilityEstimate,
    AbilityEstimator,
    estimate_ability_eap,
    estimate_ability_mle,
    posterior_distribution,
)
from .content_balancing import (
    build_domain_targets,
    is_content_balanced,
    remaining_quota,
    track_domain_coverage,
)
from .exposure_control import ExposureMonitor, apply_randomesque
from .irt_model import information, probability, standard_error
from .item_selection import (
    BayesianInformationStrategy,
    HybridStrategy,
    ItemSelector,
    MaxInformationStrategy,
    select_next_item,
)
from .stopping_rules import StoppingDecision, check_stopping_criteria

__all__ = [
    "AbilityEstimate",
    "AbilityEstimator",
    "estimate_ability_eap",
    "estimate_ability_mle",
    "posterior_distribution",
    "build_domain_targets",
    "track_domain_coverage",
    "remaining_quota",
    "is_content_balanced",
    "ExposureMonitor",
    "apply_randomesque",
    "probability",
    "information",
    "standard_error",
    "select_next_item",
    "ItemSelector",
    "MaxInformationStrategy",
    "BayesianInformationStrategy",
    "HybridStrategy",
    "check_stopping_criteria",
    "StoppingDecision",
]
