"""
Pydantic export schemas for sessions and score reports.

These are the hand-off format for downstream export and reporting
collaborators: validate an engine object with ``model_validate`` and serialize
it with ``model_dump()`` / ``model_dump_json()``.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from iqcat.domain_types import (
    EstimationMethod,
    IQClassification,
    MasteryLevel,
    QuestionCategory,
    SessionState,
    StopReason,
    SuspicionSeverity,
)


class ResponseSchema(BaseModel):
    """One scored answer."""

    model_config = ConfigDict(from_attributes=True)

    item_id: str = Field(..., description="Item identifier")
    category: QuestionCategory = Field(..., description="Content category of the item")
    selected_option: Optional[int] = Field(None, description="Option chosen, if any")
    is_correct: bool = Field(..., description="Whether the answer was correct")
    response_time_ms: float = Field(..., ge=0, description="Response time in milliseconds")
    ability_before: float = Field(..., description="Theta before this answer")
    ability_after: float = Field(..., description="Theta after this answer")
    probability_correct_at_answer_time: float = Field(
        ..., gt=0, lt=1, description="Model probability of a correct answer at ability_before"
    )
    information_value: float = Field(
        ..., gt=0, description="Fisher information of the item at ability_before"
    )
    standard_error_before: float = Field(..., gt=0)
    standard_error_after: float = Field(..., gt=0)
    timed_out: bool = Field(False, description="Answer was recorded by the per-question timeout")
    suspicion: Optional[SuspicionSeverity] = Field(
        None, description="Cheat-detection annotation; does not affect scoring"
    )
    answered_at: datetime


class AbilityEstimateSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    theta: float = Field(..., ge=-4.0, le=4.0)
    standard_error: float = Field(..., gt=0)
    posterior_variance: float = Field(..., ge=0)
    information_gained: float = Field(..., ge=0)
    method: EstimationMethod


class ConfidenceIntervalSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    lower: int
    upper: int
    level: float


class DomainAnalysisSchema(BaseModel):
    """Per-category ability analysis."""

    model_config = ConfigDict(from_attributes=True)

    category: QuestionCategory
    theta: float
    standard_error: float = Field(..., gt=0)
    mastery_level: MasteryLevel
    questions_answered: int = Field(..., ge=1)
    correct_count: int = Field(..., ge=0)
    accuracy: float = Field(..., ge=0, le=1)


class ReliabilitySchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    cronbach_alpha: float = Field(..., ge=0, le=1)
    alpha_interpretation: str
    meets_alpha_target: bool
    measurement_precision: float = Field(..., gt=0, description="1 / SE")
    test_reliability: float = Field(..., ge=0, le=1)


class ScoreReportSchema(BaseModel):
    """Final score report of a completed session."""

    model_config = ConfigDict(from_attributes=True)

    iq: int = Field(..., description="IQ score, round(100 + 15 * theta)")
    theta: float
    standard_error: float = Field(..., gt=0)
    confidence_interval: ConfidenceIntervalSchema
    percentile: float = Field(..., ge=0, le=100)
    classification: IQClassification
    domain_analysis: Dict[QuestionCategory, DomainAnalysisSchema]
    reliability: ReliabilitySchema
    correct_count: int = Field(..., ge=0)
    accuracy: float = Field(..., ge=0, le=1)
    average_response_time_ms: float = Field(..., ge=0)
    items_administered: int = Field(..., ge=0)
    stop_reason: Optional[StopReason]
    meets_precision_target: bool
    ability_progression: List[float]
    standard_error_progression: List[float]
    information_curve: List[float]
    response_time_progression: List[float]
    time_adjusted_iq: Optional[int] = Field(
        None, description="IQ after time weighting; None when no penalty is enabled"
    )
    flagged_responses: int = Field(0, ge=0)


class SessionExportSchema(BaseModel):
    """Full session history for audit and export."""

    model_config = ConfigDict(from_attributes=True)

    session_id: str
    state: SessionState
    theta: float
    standard_error: float = Field(..., gt=0)
    remaining_global_time: float = Field(..., ge=0)
    domain_target: Dict[QuestionCategory, int]
    domain_coverage: Dict[QuestionCategory, int]
    responses: List[ResponseSchema]
    theta_history: List[float]
    se_history: List[float]
    estimates: List[AbilityEstimateSchema]
    stop_reason: Optional[StopReason] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    report: Optional[ScoreReportSchema] = None


def export_session(session, report=None) -> SessionExportSchema:
    """
    Build the export model for a session and, when completed, its report.

    Args:
        session: ``Session`` from a SessionController.
        report: Optional ``ScoreReport`` of the session.
    """
    export = SessionExportSchema.model_validate(session)
    if report is not None:
        export.report = ScoreReportSchema.model_validate(report)
    return export
