"""Shared domain types for the adaptive testing engine.

This module is the single source of truth for enums used by the item bank,
the CAT core and the export schemas.

Usage:
    from iqcat.domain_types import QuestionCategory, SessionState
"""

import enum


class QuestionCategory(str, enum.Enum):
    """Cognitive domains an item can measure."""

    PATTERN_RECOGNITION = "pattern_recognition"
    SPATIAL_REASONING = "spatial_reasoning"
    LOGICAL_DEDUCTION = "logical_deduction"
    SHORT_TERM_MEMORY = "short_term_memory"
    NUMERICAL_REASONING = "numerical_reasoning"


class TaskType(str, enum.Enum):
    """Presentation format of an item.

    Only the tag matters to the engine; the format-specific payload is owned
    by the rendering collaborator.
    """

    MULTIPLE_CHOICE = "multiple_choice"
    MATRIX_REASONING = "matrix_reasoning"
    SPATIAL_ROTATION = "spatial_rotation"
    BLOCK_DESIGN = "block_design"
    FIGURE_WEIGHTS = "figure_weights"
    VISUAL_PUZZLE = "visual_puzzle"
    DIGIT_SPAN = "digit_span"
    WORKING_MEMORY = "working_memory"
    SYMBOL_CODING = "symbol_coding"
    PROCESSING_SPEED = "processing_speed"


class SessionState(str, enum.Enum):
    """Adaptive test session lifecycle state."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"


class SelectionMethod(str, enum.Enum):
    """Item selection strategy."""

    MAX_INFO = "MaxInfo"
    BAYESIAN = "Bayesian"
    HYBRID = "Hybrid"


class EstimationMethod(str, enum.Enum):
    """Ability estimation method."""

    MLE = "mle"
    EAP = "eap"


class StopReason(str, enum.Enum):
    """Why an adaptive session transitioned to COMPLETED."""

    MAX_ITEMS = "max_items"
    SE_THRESHOLD = "se_threshold"
    TIME_EXPIRED = "time_expired"
    POOL_EXHAUSTED = "pool_exhausted"
    FORCED = "forced"


class MasteryLevel(str, enum.Enum):
    """Per-domain mastery tier derived from the domain ability estimate."""

    EXPERT = "Expert"
    ADVANCED = "Advanced"
    PROFICIENT = "Proficient"
    DEVELOPING = "Developing"
    NOVICE = "Novice"


class IQClassification(str, enum.Enum):
    """Descriptive IQ bands (Wechsler convention)."""

    VERY_SUPERIOR = "Very Superior (130+)"
    SUPERIOR = "Superior (120-129)"
    HIGH_AVERAGE = "High Average (110-119)"
    AVERAGE = "Average (90-109)"
    LOW_AVERAGE = "Low Average (80-89)"
    BORDERLINE = "Borderline (70-79)"
    EXTREMELY_LOW = "Extremely Low (<70)"


class SuspicionSeverity(str, enum.Enum):
    """Severity attached to an answer by the cheat-detection collaborator."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
