"""
Pydantic schemas for engine export.
"""

from .reports import (
    AbilityEstimateSchema,
    ConfidenceIntervalSchema,
    DomainAnalysisSchema,
    ReliabilitySchema,
    ResponseSchema,
    ScoreReportSchema,
    SessionExportSchema,
    export_session,
)

__all__ = [
    "AbilityEstimateSchema",
    "ConfidenceIntervalSchema",
    "DomainAnalysisSchema",
    "ReliabilitySchema",
    "ResponseSchema",
    "ScoreReportSchema",
    "SessionExportSchema",
    "export_session",
]
