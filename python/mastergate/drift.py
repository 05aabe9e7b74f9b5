"""
Signal drift detection.

Compares an incoming signal vector with the static training distribution of
an ML model. Signals far from the training data, measured in standard
deviations, make the model's output less trustworthy; hard indicators such
as silence or pure noise mark the input out of distribution outright.
"""
import logging
import math
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Tuple

import numpy as np
from scipy import stats

from .confidence import DRIFT_CONFIDENCE_REDUCTION, apply_drift_reduction  # noqa: F401
from .distributions import OOD_INDICATORS, describe_distribution, get_training_distribution
from .types import (
    BoundsCheck,
    BoundViolation,
    DriftReport,
    DriftStatus,
    DriftSummary,
    IndicatorSeverity,
    MultiModelReport,
    OODCheck,
    SignalAnalysis,
    SignalDistribution,
    SignalVector,
    TriggeredIndicator,
    as_number,
)

logger = logging.getLogger(__name__)

DRIFT_THRESHOLDS: Mapping[str, float] = MappingProxyType({
    "MINOR": 1.5,
    "SIGNIFICANT": 2.5,
    "OOD": 4.0,
})

# Stand-in for infinite z-scores and distances in reports
MAX_REPORTED_DISTANCE = 999.0

STATUS_ORDER = (
    DriftStatus.IN_DISTRIBUTION,
    DriftStatus.MINOR_DRIFT,
    DriftStatus.SIGNIFICANT_DRIFT,
    DriftStatus.OUT_OF_DISTRIBUTION,
)

STATUS_RECOMMENDATIONS: Mapping[DriftStatus, tuple] = MappingProxyType({
    DriftStatus.OUT_OF_DISTRIBUTION: (
        "Input significantly differs from training data",
        "Consider manual classification",
        "ML confidence has been reduced by 30%",
    ),
    DriftStatus.SIGNIFICANT_DRIFT: (
        "Some signals outside expected ranges",
        "ML predictions may be less reliable",
        "ML confidence has been reduced by 15%",
    ),
    DriftStatus.MINOR_DRIFT: (
        "Minor signal drift detected",
        "ML predictions should still be reasonable",
    ),
    DriftStatus.IN_DISTRIBUTION: (
        "Input within expected distribution",
    ),
})

HARD_OOD_RECOMMENDATIONS = (
    "Hard OOD indicators detected",
    "ML predictions should not be trusted",
    "Consider manual classification",
)

NO_DISTRIBUTION_ERROR = "No training distribution available for model"


def _reported(value: float) -> float:
    if not math.isfinite(value):
        return MAX_REPORTED_DISTANCE
    return round(min(value, MAX_REPORTED_DISTANCE), 2)


def calculate_z_score(value: float, mean: float, std: float) -> float:
    """Absolute number of standard deviations between value and mean.

    A zero std gives 0 when the value equals the mean and infinity otherwise.
    """
    if std == 0:
        return 0.0 if value == mean else math.inf
    return abs(value - mean) / std


def calculate_signal_distance(value: float, distribution: SignalDistribution) -> float:
    z_score = calculate_z_score(value, distribution.mean, distribution.std)
    return z_score * (distribution.weight or 1.0)


def get_drift_status_from_z_score(z_score: float) -> DriftStatus:
    if z_score >= DRIFT_THRESHOLDS["OOD"]:
        return DriftStatus.OUT_OF_DISTRIBUTION
    if z_score >= DRIFT_THRESHOLDS["SIGNIFICANT"]:
        return DriftStatus.SIGNIFICANT_DRIFT
    if z_score >= DRIFT_THRESHOLDS["MINOR"]:
        return DriftStatus.MINOR_DRIFT
    return DriftStatus.IN_DISTRIBUTION


def check_bounds(value: float, distribution: SignalDistribution) -> BoundsCheck:
    """Check a value against the inclusive hard bounds of a distribution."""
    if value < distribution.min:
        return BoundsCheck(
            in_bounds=False,
            violation="below_minimum",
            expected=f">= {distribution.min}",
            actual=value,
        )
    if value > distribution.max:
        return BoundsCheck(
            in_bounds=False,
            violation="above_maximum",
            expected=f"<= {distribution.max}",
            actual=value,
        )
    return BoundsCheck(in_bounds=True)


def check_ood_indicators(signals: SignalVector) -> OODCheck:
    """Run every hard OOD indicator.

    The input is out of distribution when any critical indicator fires or
    at least two high ones do.
    """
    triggered: List[TriggeredIndicator] = []
    for indicator in OOD_INDICATORS:
        try:
            fired = indicator.check(signals)
        except Exception as e:
            logger.warning(f"OOD indicator {indicator.id} failed: {e}")
            continue
        if fired:
            triggered.append(TriggeredIndicator(
                id=indicator.id,
                description=indicator.description,
                severity=indicator.severity,
            ))

    critical = sum(1 for t in triggered if t.severity == IndicatorSeverity.CRITICAL)
    high = sum(1 for t in triggered if t.severity == IndicatorSeverity.HIGH)
    return OODCheck(
        is_ood=critical > 0 or high >= 2,
        indicators=triggered,
        critical_count=critical,
        high_count=high,
    )


def analyze_signal(name: str, value: float, distribution: SignalDistribution) -> SignalAnalysis:
    """Z-score, weighted distance, drift status and bounds for one signal."""
    z_score = calculate_z_score(value, distribution.mean, distribution.std)
    bounds = check_bounds(value, distribution)
    return SignalAnalysis(
        signal=name,
        value=value,
        expected={
            "mean": distribution.mean,
            "std": distribution.std,
            "min": distribution.min,
            "max": distribution.max,
        },
        z_score=_reported(z_score),
        distance=_reported(calculate_signal_distance(value, distribution)),
        status=get_drift_status_from_z_score(z_score),
        in_bounds=bounds.in_bounds,
        violation=bounds.violation,
    )


def get_overall_drift_status(per_signal: Mapping[str, SignalAnalysis],
                             aggregate_distance: float,
                             violations: List[BoundViolation]) -> DriftStatus:
    """Fold per-signal analyses into one status.

    Three or more bound violations, or an aggregate distance at the OOD
    threshold, is out of distribution. A single OOD signal or two
    significant ones is significant drift; any other drift is minor.
    """
    if len(violations) >= 3:
        return DriftStatus.OUT_OF_DISTRIBUTION
    if aggregate_distance >= DRIFT_THRESHOLDS["OOD"]:
        return DriftStatus.OUT_OF_DISTRIBUTION

    counts = {status: 0 for status in DriftStatus}
    for analysis in per_signal.values():
        counts[analysis.status] += 1

    if counts[DriftStatus.OUT_OF_DISTRIBUTION] > 0:
        return DriftStatus.SIGNIFICANT_DRIFT
    if counts[DriftStatus.SIGNIFICANT_DRIFT] >= 2:
        return DriftStatus.SIGNIFICANT_DRIFT
    if counts[DriftStatus.SIGNIFICANT_DRIFT] > 0 or counts[DriftStatus.MINOR_DRIFT] > 0:
        return DriftStatus.MINOR_DRIFT
    return DriftStatus.IN_DISTRIBUTION


def build_drift_recommendations(status: DriftStatus,
                                violations: List[BoundViolation]) -> List[str]:
    recommendations = list(STATUS_RECOMMENDATIONS.get(status, ()))
    for violation in violations[:3]:
        recommendations.append(f"{violation.signal}: {violation.violation} ({violation.value})")
    return recommendations


def _numeric_signals(signals: SignalVector, names: Iterable[str]) -> Dict[str, float]:
    values = {}
    for name in names:
        raw = signals.get(name)
        if raw is None:
            continue
        value = as_number(raw)
        if value is None or math.isnan(value):
            logger.debug(f"Skipping non-numeric signal {name}={raw!r}")
            continue
        values[name] = value
    return values


def _chi_square(z_scores: List[float]) -> Tuple[float, float]:
    if not z_scores:
        return 0.0, 1.0
    statistic = float(np.sum(np.square(z_scores)))
    p_value = float(stats.chi2.sf(statistic, df=len(z_scores)))
    return round(statistic, 2), round(p_value, 4)


def detect_drift(signals: SignalVector, model_id: str) -> DriftReport:
    """Compare a signal vector with a model's training distribution.

    Args:
        signals: Signal vector. Missing, None and non-numeric values are
            not analysed.
        model_id: Key into the training distribution table.

    Returns:
        DriftReport. An unknown model yields a permissive IN_DISTRIBUTION
        report carrying an ``error`` string.
    """
    distribution = get_training_distribution(model_id)
    if distribution is None:
        logger.warning(f"No training distribution for model {model_id!r}")
        return DriftReport(
            status=DriftStatus.IN_DISTRIBUTION,
            should_trust_ml=True,
            confidence_reduction=0.0,
            model_id=model_id,
            error=NO_DISTRIBUTION_ERROR,
            recommendations=["No drift detection available for this model"],
        )

    ood = check_ood_indicators(signals)

    per_signal: Dict[str, SignalAnalysis] = {}
    violations: List[BoundViolation] = []
    for name, value in _numeric_signals(signals, distribution.signals).items():
        analysis = analyze_signal(name, value, distribution.signals[name])
        per_signal[name] = analysis
        if not analysis.in_bounds:
            violations.append(BoundViolation(
                signal=name,
                violation=analysis.violation,
                value=value,
                expected=analysis.expected,
            ))

    # Status uses the unrounded RMS; only the reported field is rounded
    distances = [
        calculate_signal_distance(a.value, distribution.signals[name])
        for name, a in per_signal.items()
    ]
    raw_aggregate = float(np.sqrt(np.mean(np.square(distances)))) if distances else 0.0
    aggregate = _reported(raw_aggregate)
    chi_square, p_value = _chi_square([a.z_score for a in per_signal.values()])

    if ood.is_ood:
        status = DriftStatus.OUT_OF_DISTRIBUTION
        recommendations = list(HARD_OOD_RECOMMENDATIONS)
    else:
        status = get_overall_drift_status(per_signal, raw_aggregate, violations)
        recommendations = build_drift_recommendations(status, violations)

    in_distribution = sum(1 for a in per_signal.values() if a.status == DriftStatus.IN_DISTRIBUTION)
    logger.debug(f"Drift check for {model_id}: {status.value}, aggregate {aggregate}")

    return DriftReport(
        status=status,
        should_trust_ml=status != DriftStatus.OUT_OF_DISTRIBUTION,
        confidence_reduction=DRIFT_CONFIDENCE_REDUCTION[status],
        model_id=model_id,
        training_version=distribution.version,
        per_signal=per_signal,
        aggregate_distance=aggregate,
        violations=violations,
        ood_indicators=ood.indicators,
        summary=DriftSummary(
            signals_analyzed=len(per_signal),
            signals_in_distribution=in_distribution,
            signals_with_drift=len(per_signal) - in_distribution,
            bound_violations=len(violations),
            chi_square=chi_square,
            p_value=p_value,
        ),
        recommendations=recommendations,
    )


def quick_check(signals: SignalVector, model_id: str) -> Dict[str, Any]:
    """Hard indicators plus the largest z-score, without a full report."""
    ood = check_ood_indicators(signals)
    if ood.is_ood:
        return {
            "status": DriftStatus.OUT_OF_DISTRIBUTION.value,
            "shouldTrustML": False,
            "hasOODIndicators": True,
            "indicatorCount": len(ood.indicators),
        }

    distribution = get_training_distribution(model_id)
    if distribution is None:
        return {
            "status": DriftStatus.IN_DISTRIBUTION.value,
            "shouldTrustML": True,
            "noDistributionAvailable": True,
        }

    values = _numeric_signals(signals, distribution.signals)
    max_z = 0.0
    for name, value in values.items():
        dist = distribution.signals[name]
        max_z = max(max_z, calculate_z_score(value, dist.mean, dist.std))

    status = get_drift_status_from_z_score(max_z)
    return {
        "status": status.value,
        "shouldTrustML": status != DriftStatus.OUT_OF_DISTRIBUTION,
        "maxZScore": _reported(max_z),
        "signalsChecked": len(values),
        "hasOODIndicators": len(ood.indicators) > 0,
    }


def analyze(signals: SignalVector, model_id: str) -> Dict[str, Any]:
    """Full drift report plus distribution metadata and thresholds."""
    report = detect_drift(signals, model_id)
    distribution = get_training_distribution(model_id)
    result: Dict[str, Any] = {"timestamp": datetime.now(timezone.utc).isoformat()}
    result.update(report.to_dict())
    result["distribution"] = describe_distribution(distribution) if distribution else None
    result["thresholds"] = dict(DRIFT_THRESHOLDS)
    result["confidenceReductions"] = {
        s.value: r for s, r in DRIFT_CONFIDENCE_REDUCTION.items()
    }
    return result


def worst_status(statuses: Iterable[DriftStatus]) -> DriftStatus:
    worst = DriftStatus.IN_DISTRIBUTION
    for status in statuses:
        if STATUS_ORDER.index(status) > STATUS_ORDER.index(worst):
            worst = status
    return worst


def check_multiple_models(signals: SignalVector, model_ids: Iterable[str]) -> MultiModelReport:
    """Run drift detection for several models.

    Args:
        signals: Signal vector.
        model_ids: Models to check. Duplicates are checked once.

    Returns:
        MultiModelReport with the worst status across models and whether
        at least one model's output can still be trusted.
    """
    if isinstance(model_ids, str):
        model_ids = (model_ids,)
    by_model: Dict[str, DriftReport] = {}
    for model_id in model_ids:
        if model_id not in by_model:
            by_model[model_id] = detect_drift(signals, model_id)

    return MultiModelReport(
        by_model=by_model,
        overall_status=worst_status(r.status for r in by_model.values()),
        should_trust_any_ml=any(r.should_trust_ml for r in by_model.values()),
    )
