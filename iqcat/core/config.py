"""
Engine configuration.

Two layers:

* ``Settings`` holds process-level defaults loaded from environment variables
  (prefix ``IQCAT_``) or a ``.env`` file, including logging options.
* ``CATConfig`` is the immutable, validated configuration of one adaptive
  test session. Every session receives its own instance; nothing in the
  engine reads ``settings`` at answer time.
"""

from typing import Any, Dict, Literal, Optional, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from iqcat.core.exceptions import InvalidConfigurationError
from iqcat.domain_types import QuestionCategory, SelectionMethod

# Latent trait bounds shared by the estimators and the quadrature grid
THETA_MIN = -4.0
THETA_MAX = 4.0

# Tolerance for floating-point weight summation checks
_WEIGHT_SUM_TOLERANCE = 1e-6


class Settings(BaseSettings):
    """Process-level settings loaded from environment variables."""

    ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["text", "json", "auto"] = "auto"

    # Session defaults; kept equal to the CATConfig field defaults
    CAT_TOTAL_QUESTIONS: int = 30
    CAT_GLOBAL_TIME_LIMIT_SECONDS: float = 1800.0
    CAT_QUESTION_TIME_LIMIT_SECONDS: float = 60.0
    CAT_STARTING_ABILITY: float = 0.0
    CAT_TARGET_STANDARD_ERROR: float = 0.30
    CAT_MAX_STANDARD_ERROR: float = 0.50
    CAT_SELECTION_METHOD: SelectionMethod = SelectionMethod.MAX_INFO
    CAT_EXPOSURE_CONTROL: bool = False
    CAT_CONTENT_BALANCING: bool = True
    CAT_PRIOR_MEAN: float = 0.0
    CAT_PRIOR_VARIANCE: float = 1.0
    CAT_PENALIZE_SLOW_ANSWERS: bool = True
    CAT_PENALIZE_FAST_ANSWERS: bool = False
    CAT_TIME_WEIGHT_FACTOR: float = 0.1

    model_config = SettingsConfigDict(
        env_prefix="IQCAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


class CATConfig(BaseModel):
    """Validated configuration for a single adaptive test session."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    total_questions: int = Field(default=30, ge=1, le=500)
    global_time_limit_seconds: float = Field(default=1800.0, gt=0)
    question_time_limit_seconds: float = Field(default=60.0, gt=0)
    starting_ability: float = 0.0
    min_ability: float = Field(default=THETA_MIN, ge=THETA_MIN, le=THETA_MAX)
    max_ability: float = Field(default=THETA_MAX, ge=THETA_MIN, le=THETA_MAX)
    target_standard_error: float = Field(default=0.30, gt=0)
    max_standard_error: float = Field(default=0.50, gt=0)
    selection_method: SelectionMethod = SelectionMethod.MAX_INFO
    exposure_control: bool = False
    # Randomesque window used when exposure_control is enabled
    randomesque_k: int = Field(default=5, ge=1)
    content_balancing: bool = True
    # Target share of the test per category; equal split when omitted
    domain_weights: Optional[Dict[QuestionCategory, float]] = None
    prior_mean: float = 0.0
    prior_variance: float = Field(default=1.0, gt=0)
    penalize_slow_answers: bool = True
    penalize_fast_answers: bool = False
    time_weight_factor: float = Field(default=0.1, ge=0.0, le=1.0)
    random_seed: Optional[int] = None

    @model_validator(mode="after")
    def validate_ability_bounds(self) -> Self:
        """Starting ability must lie strictly inside the estimator bounds."""
        if self.min_ability >= self.max_ability:
            raise ValueError(
                f"min_ability ({self.min_ability}) must be below "
                f"max_ability ({self.max_ability})"
            )
        if not (self.min_ability <= self.starting_ability <= self.max_ability):
            raise ValueError(
                f"starting_ability {self.starting_ability} outside "
                f"[{self.min_ability}, {self.max_ability}]"
            )
        return self

    @model_validator(mode="after")
    def validate_standard_errors(self) -> Self:
        """Target precision cannot be looser than the acceptable ceiling."""
        if self.target_standard_error > self.max_standard_error:
            raise ValueError(
                f"target_standard_error ({self.target_standard_error}) must not "
                f"exceed max_standard_error ({self.max_standard_error})"
            )
        return self

    @model_validator(mode="after")
    def validate_domain_weights(self) -> Self:
        """Validate domain_weights: positive values summing to 1.0."""
        if self.domain_weights is None:
            return self
        non_positive = [k.value for k, v in self.domain_weights.items() if v <= 0]
        if non_positive:
            raise ValueError(
                f"All domain weights must be positive, got non-positive: {non_positive}"
            )
        total = sum(self.domain_weights.values())
        if abs(total - 1.0) > _WEIGHT_SUM_TOLERANCE:
            raise ValueError(f"domain_weights must sum to 1.0, got {total}")
        return self

    @property
    def prior_sd(self) -> float:
        return self.prior_variance**0.5

    @classmethod
    def from_settings(cls, source: Settings, **overrides: Any) -> "CATConfig":
        """Build a config from process settings, applying keyword overrides."""
        values: Dict[str, Any] = {
            "total_questions": source.CAT_TOTAL_QUESTIONS,
            "global_time_limit_seconds": source.CAT_GLOBAL_TIME_LIMIT_SECONDS,
            "question_time_limit_seconds": source.CAT_QUESTION_TIME_LIMIT_SECONDS,
            "starting_ability": source.CAT_STARTING_ABILITY,
            "target_standard_error": source.CAT_TARGET_STANDARD_ERROR,
            "max_standard_error": source.CAT_MAX_STANDARD_ERROR,
            "selection_method": source.CAT_SELECTION_METHOD,
            "exposure_control": source.CAT_EXPOSURE_CONTROL,
            "content_balancing": source.CAT_CONTENT_BALANCING,
            "prior_mean": source.CAT_PRIOR_MEAN,
            "prior_variance": source.CAT_PRIOR_VARIANCE,
            "penalize_slow_answers": source.CAT_PENALIZE_SLOW_ANSWERS,
            "penalize_fast_answers": source.CAT_PENALIZE_FAST_ANSWERS,
            "time_weight_factor": source.CAT_TIME_WEIGHT_FACTOR,
        }
        values.update(overrides)
        return load_config(**values)


def load_config(**values: Any) -> CATConfig:
    """
    Validate configuration values and build a ``CATConfig``.

    Raises:
        InvalidConfigurationError: If any option is out of range or the
            options are mutually inconsistent.
    """
    try:
        return CATConfig(**values)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) or "config" for err in e.errors()})
        raise InvalidConfigurationError(
            "Invalid adaptive test configuration",
            original_error=e,
            context={"fields": fields},
        ) from e


settings = Settings()
