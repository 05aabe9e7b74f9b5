"""
mastergate - Python Implementation

Cross-signal consistency, training distribution drift and processing
parameter conflict checks for a mastering and audio QA pipeline.
"""

from .gate import QualityGate, assess
from .types import (
    AssessmentOptions,
    AssessmentResult,
    ConfidenceAdjustment,
    Conflict,
    ConflictCategory,
    ConflictReport,
    ConflictSeverity,
    ConsistencyReport,
    ConsistencyStatus,
    DriftReport,
    DriftStatus,
    GateStatus,
    LayerResult,
    Severity,
)
from .confidence import apply_consistency_reduction, apply_drift_reduction, combine_adjustments
from .consistency import check_consistency
from .drift import detect_drift, check_multiple_models
from .conflicts import detect_conflicts, detect_parameter_conflicts, validate_parameters
from .fingerprint import Fingerprint

__version__ = "0.1.0"
__all__ = [
    "QualityGate",
    "assess",
    "AssessmentOptions",
    "AssessmentResult",
    "ConfidenceAdjustment",
    "Conflict",
    "ConflictCategory",
    "ConflictReport",
    "ConflictSeverity",
    "ConsistencyReport",
    "ConsistencyStatus",
    "DriftReport",
    "DriftStatus",
    "GateStatus",
    "LayerResult",
    "Severity",
    "apply_consistency_reduction",
    "apply_drift_reduction",
    "combine_adjustments",
    "check_consistency",
    "detect_drift",
    "check_multiple_models",
    "detect_conflicts",
    "detect_parameter_conflicts",
    "validate_parameters",
    "Fingerprint",
]
