"""Type definitions for mastergate."""
from __future__ import annotations
import numbers
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np


SignalValue = Union[float, int, str, bool, None]
SignalVector = Mapping[str, SignalValue]
ParameterSet = Mapping[str, Any]


class Severity(Enum):
    """Severity of a consistency rule violation."""
    NONE = "NONE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ConsistencyStatus(Enum):
    """Aggregate coherence of a signal vector."""
    CONSISTENT = "CONSISTENT"
    MINOR_INCONSISTENCY = "MINOR_INCONSISTENCY"
    INCONSISTENT = "INCONSISTENT"
    CONTRADICTORY = "CONTRADICTORY"


class DriftStatus(Enum):
    """Distance of a signal vector from a model's training distribution."""
    IN_DISTRIBUTION = "IN_DISTRIBUTION"
    MINOR_DRIFT = "MINOR_DRIFT"
    SIGNIFICANT_DRIFT = "SIGNIFICANT_DRIFT"
    OUT_OF_DISTRIBUTION = "OUT_OF_DISTRIBUTION"


class IndicatorSeverity(Enum):
    """Severity of a hard out-of-distribution indicator."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ConflictSeverity(Enum):
    """Severity of a processing parameter conflict."""
    NONE = "NONE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    BLOCKING = "BLOCKING"


class ConflictCategory(Enum):
    """Area of the processing chain a conflict belongs to."""
    DYNAMICS = "DYNAMICS"
    FREQUENCY = "FREQUENCY"
    STEREO = "STEREO"
    HEADROOM = "HEADROOM"
    INTENT = "INTENT"
    ACCUMULATION = "ACCUMULATION"


class GateStatus(Enum):
    """Overall verdict of a quality gate assessment."""
    TRUSTED = "trusted"
    DEGRADED = "degraded"
    UNTRUSTED = "untrusted"


def _value(member: Any) -> Any:
    return member.value if isinstance(member, Enum) else member


def to_native(value: Any) -> Any:
    """Unwrap numpy scalars into the matching Python scalar."""
    return value.item() if isinstance(value, np.generic) else value


def as_number(value: Any) -> Optional[Union[int, float]]:
    """Real number (Python or numpy) as a Python scalar, else None.

    Booleans are flags, not numbers, and give None.
    """
    value = to_native(value)
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return None
    return value


def as_flag(value: Any) -> Optional[bool]:
    """Python or numpy boolean as bool, else None."""
    value = to_native(value)
    return value if isinstance(value, bool) else None


# ---------------------------------------------------------------------------
# Consistency
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RuleOutcome:
    """What a rule's check function decides about a signal vector."""
    consistent: bool
    severity: Severity = Severity.NONE
    message: Optional[str] = None
    expected: Optional[str] = None
    actual: Optional[str] = None


@dataclass(frozen=True)
class Rule:
    """A declarative cross-signal consistency rule."""
    id: str
    description: str
    signals: Tuple[str, ...]
    check: Callable[[SignalVector], RuleOutcome]

    def metadata(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "signals": list(self.signals),
        }


@dataclass
class RuleResult:
    """Result of evaluating one rule against a signal vector."""
    rule_id: str
    checked: bool
    consistent: Optional[bool] = None
    severity: Optional[Severity] = None
    message: Optional[str] = None
    expected: Optional[str] = None
    actual: Optional[str] = None
    description: Optional[str] = None
    reason: Optional[str] = None
    missing_signals: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_violation(self) -> bool:
        return self.checked and self.consistent is False

    def to_dict(self) -> Dict[str, Any]:
        if not self.checked:
            out: Dict[str, Any] = {
                "ruleId": self.rule_id,
                "checked": False,
                "reason": self.reason,
            }
            if self.reason == "missing_signals":
                out["missingSignals"] = list(self.missing_signals)
            if self.error is not None:
                out["error"] = self.error
            return out
        return {
            "ruleId": self.rule_id,
            "checked": True,
            "consistent": self.consistent,
            "severity": _value(self.severity),
            "message": self.message,
            "expected": self.expected,
            "actual": self.actual,
            "description": self.description,
        }


@dataclass
class ConsistencySummary:
    total_rules: int
    checked: int
    passed: int
    failed: int
    skipped: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalRules": self.total_rules,
            "checked": self.checked,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
        }


@dataclass
class ConsistencyReport:
    """Aggregate of every consistency rule run against one signal vector."""
    status: ConsistencyStatus
    consistency_score: float
    confidence_reduction: float
    summary: ConsistencySummary
    violations: List[RuleResult] = field(default_factory=list)
    passed_rules: List[str] = field(default_factory=list)
    skipped_rules: List[Dict[str, Optional[str]]] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "consistencyScore": self.consistency_score,
            "confidenceReduction": self.confidence_reduction,
            "summary": self.summary.to_dict(),
            "violations": [v.to_dict() for v in self.violations],
            "passedRules": list(self.passed_rules),
            "skippedRules": [dict(s) for s in self.skipped_rules],
            "recommendations": list(self.recommendations),
        }


@dataclass
class RuleSetResult:
    """Result of running an explicit subset of consistency rules."""
    status: ConsistencyStatus
    results: List[RuleResult] = field(default_factory=list)
    violations: List[RuleResult] = field(default_factory=list)
    passed_rules: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "results": [r.to_dict() for r in self.results],
            "violations": [v.to_dict() for v in self.violations],
            "passedRules": list(self.passed_rules),
        }


# ---------------------------------------------------------------------------
# Drift
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SignalDistribution:
    """Expected distribution of one signal in a model's training data."""
    mean: float
    std: float
    min: float = float("-inf")
    max: float = float("inf")
    weight: float = 1.0


@dataclass(frozen=True)
class TrainingDistribution:
    """Per-model table of signal distributions."""
    model_id: str
    version: str
    training_size: int
    signals: Mapping[str, SignalDistribution]
    expected_genres: Tuple[str, ...] = ()


@dataclass(frozen=True)
class OODIndicator:
    """Hard out-of-distribution rule independent of any trained model."""
    id: str
    description: str
    severity: IndicatorSeverity
    check: Callable[[SignalVector], bool]


@dataclass
class BoundsCheck:
    in_bounds: bool
    violation: Optional[str] = None
    expected: Optional[str] = None
    actual: Optional[float] = None


@dataclass
class SignalAnalysis:
    """Drift statistics for a single signal."""
    signal: str
    value: float
    expected: Dict[str, float]
    z_score: float
    distance: float
    status: DriftStatus
    in_bounds: bool
    violation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signal": self.signal,
            "value": self.value,
            "expected": dict(self.expected),
            "zScore": self.z_score,
            "distance": self.distance,
            "status": self.status.value,
            "inBounds": self.in_bounds,
            "violation": self.violation,
        }


@dataclass
class TriggeredIndicator:
    id: str
    description: str
    severity: IndicatorSeverity

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "description": self.description,
            "severity": self.severity.value,
        }


@dataclass
class OODCheck:
    """Outcome of running every hard OOD indicator."""
    is_ood: bool
    indicators: List[TriggeredIndicator] = field(default_factory=list)
    critical_count: int = 0
    high_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isOOD": self.is_ood,
            "indicators": [i.to_dict() for i in self.indicators],
            "criticalCount": self.critical_count,
            "highCount": self.high_count,
        }


@dataclass
class BoundViolation:
    signal: str
    violation: str
    value: float
    expected: Dict[str, float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signal": self.signal,
            "violation": self.violation,
            "value": self.value,
            "expected": dict(self.expected),
        }


@dataclass
class DriftSummary:
    signals_analyzed: int = 0
    signals_in_distribution: int = 0
    signals_with_drift: int = 0
    bound_violations: int = 0
    chi_square: float = 0.0
    p_value: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signalsAnalyzed": self.signals_analyzed,
            "signalsInDistribution": self.signals_in_distribution,
            "signalsWithDrift": self.signals_with_drift,
            "boundViolations": self.bound_violations,
            "chiSquare": self.chi_square,
            "pValue": self.p_value,
        }


@dataclass
class DriftReport:
    """Drift analysis of one signal vector against one model."""
    status: DriftStatus
    should_trust_ml: bool
    confidence_reduction: float
    model_id: str
    training_version: Optional[str] = None
    per_signal: Dict[str, SignalAnalysis] = field(default_factory=dict)
    aggregate_distance: float = 0.0
    violations: List[BoundViolation] = field(default_factory=list)
    ood_indicators: List[TriggeredIndicator] = field(default_factory=list)
    summary: DriftSummary = field(default_factory=DriftSummary)
    recommendations: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "status": self.status.value,
            "shouldTrustML": self.should_trust_ml,
            "confidenceReduction": self.confidence_reduction,
            "modelId": self.model_id,
            "trainingVersion": self.training_version,
            "perSignal": {k: a.to_dict() for k, a in self.per_signal.items()},
            "aggregateDistance": self.aggregate_distance,
            "violations": [v.to_dict() for v in self.violations],
            "oodIndicators": [i.to_dict() for i in self.ood_indicators],
            "summary": self.summary.to_dict(),
            "recommendations": list(self.recommendations),
        }
        if self.error is not None:
            out["error"] = self.error
        return out


@dataclass
class MultiModelReport:
    by_model: Dict[str, DriftReport]
    overall_status: DriftStatus
    should_trust_any_ml: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "byModel": {k: r.to_dict() for k, r in self.by_model.items()},
            "overallStatus": self.overall_status.value,
            "shouldTrustAnyML": self.should_trust_any_ml,
        }


# ---------------------------------------------------------------------------
# Parameter conflicts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Condition:
    """A single comparison a conflict rule requires to hold."""
    param: str
    operator: str
    value: Any = None


@dataclass(frozen=True)
class ConflictRule:
    """A declarative rule over processing parameters."""
    id: str
    name: str
    category: ConflictCategory
    description: str
    conditions: Tuple[Condition, ...]
    get_severity: Callable[[ParameterSet], ConflictSeverity]
    recommendation: str

    @property
    def affected_params(self) -> List[str]:
        return [c.param for c in self.conditions]


@dataclass
class Conflict:
    rule_id: str
    name: str
    category: ConflictCategory
    severity: ConflictSeverity
    description: str
    recommendation: str
    affected_params: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ruleId": self.rule_id,
            "name": self.name,
            "category": self.category.value,
            "severity": self.severity.value,
            "description": self.description,
            "recommendation": self.recommendation,
            "affectedParams": list(self.affected_params),
        }


@dataclass
class ConflictReport:
    """Conflicts found in a merged parameter set."""
    conflicts: List[Conflict] = field(default_factory=list)
    by_category: Dict[ConflictCategory, List[Conflict]] = field(default_factory=dict)
    has_blocking_conflict: bool = False
    has_high_conflict: bool = False
    can_proceed: bool = True
    overall_severity: ConflictSeverity = ConflictSeverity.NONE
    recommendations: List[str] = field(default_factory=list)

    @property
    def conflict_count(self) -> int:
        return len(self.conflicts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conflicts": [c.to_dict() for c in self.conflicts],
            "conflictCount": self.conflict_count,
            "byCategory": {
                cat.value: [c.to_dict() for c in items]
                for cat, items in self.by_category.items()
            },
            "hasBlockingConflict": self.has_blocking_conflict,
            "hasHighConflict": self.has_high_conflict,
            "canProceed": self.can_proceed,
            "overallSeverity": self.overall_severity.value,
            "recommendations": list(self.recommendations),
        }


@dataclass
class ParameterValidation:
    """Conflict report plus validity flags."""
    report: ConflictReport
    is_valid: bool
    has_warnings: bool
    has_errors: bool

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "isValid": self.is_valid,
            "hasWarnings": self.has_warnings,
            "hasErrors": self.has_errors,
        }
        out.update(self.report.to_dict())
        return out


# ---------------------------------------------------------------------------
# Confidence and assessment
# ---------------------------------------------------------------------------

@dataclass
class ConfidenceAdjustment:
    """A confidence score before and after a status-driven penalty."""
    original: float
    adjusted: float
    reduction: float
    was_reduced: bool
    status: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original": self.original,
            "adjusted": self.adjusted,
            "reduction": self.reduction,
            "wasReduced": self.was_reduced,
            "status": self.status,
        }


@dataclass
class LayerResult:
    """Result from one layer of a quality gate assessment."""
    name: str
    passed: bool
    score: float
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "passed": self.passed,
            "score": self.score,
            "details": self.details,
        }


@dataclass
class AssessmentOptions:
    """Options for a quality gate assessment."""
    include_consistency: bool = True
    include_drift: bool = True
    model_ids: List[str] = field(default_factory=list)


@dataclass
class AssessmentResult:
    """Complete quality gate assessment of one signal vector."""
    status: GateStatus
    should_trust_ml: bool
    can_proceed: bool = True
    consistency: Optional[ConsistencyReport] = None
    drift: Dict[str, DriftReport] = field(default_factory=dict)
    confidence: Optional[ConfidenceAdjustment] = None
    layers: List[LayerResult] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    fingerprint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "shouldTrustML": self.should_trust_ml,
            "canProceed": self.can_proceed,
            "consistency": self.consistency.to_dict() if self.consistency else None,
            "drift": {k: r.to_dict() for k, r in self.drift.items()},
            "confidence": self.confidence.to_dict() if self.confidence else None,
            "layers": [layer.to_dict() for layer in self.layers],
            "warnings": list(self.warnings),
            "fingerprint": self.fingerprint,
        }
