"""
Cross-signal consistency checking.

Runs every registered rule against a signal vector and folds the violations
into a single status. Contradictory signals mean at least one estimator is
wrong, so the status carries a confidence penalty for downstream ML output.
"""
import logging
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .confidence import CONSISTENCY_CONFIDENCE_REDUCTION, apply_consistency_reduction  # noqa: F401
from .rules import CONSISTENCY_RULES, get_rule, has_required_signals, missing_signals
from .types import (
    ConsistencyReport,
    ConsistencyStatus,
    ConsistencySummary,
    Rule,
    RuleResult,
    RuleSetResult,
    Severity,
    SignalVector,
)

logger = logging.getLogger(__name__)

SEVERITY_WEIGHTS: Mapping[Severity, int] = MappingProxyType({
    Severity.NONE: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 5,
})

SEVERITY_RECOMMENDATIONS: Mapping[Severity, str] = MappingProxyType({
    Severity.CRITICAL: "Manual review required. Do not trust automated analysis.",
    Severity.HIGH: "Significant issue detected. Verify analysis results manually.",
    Severity.MEDIUM: "Notable inconsistency. Consider manual verification.",
    Severity.LOW: "Minor inconsistency. May be acceptable depending on context.",
})

STATUS_RECOMMENDATIONS: Mapping[ConsistencyStatus, tuple] = MappingProxyType({
    ConsistencyStatus.CONTRADICTORY: (
        "Critical signal contradictions detected",
        "At least one analysis result is incorrect",
        "Manual review strongly recommended",
        "ML confidence reduced by 30%",
    ),
    ConsistencyStatus.INCONSISTENT: (
        "Significant signal inconsistencies found",
        "Results may be unreliable",
        "ML confidence reduced by 15%",
    ),
    ConsistencyStatus.MINOR_INCONSISTENCY: (
        "Minor signal inconsistencies detected",
        "Results should still be usable",
    ),
    ConsistencyStatus.CONSISTENT: (
        "All checked signals are consistent",
    ),
})

# Violations echoed individually in the recommendations
MAX_VIOLATION_RECOMMENDATIONS = 3


def check_rule(rule: Rule, signals: SignalVector) -> RuleResult:
    """Evaluate one rule.

    Args:
        rule: Rule to evaluate.
        signals: Signal vector.

    Returns:
        RuleResult. Rules whose signals are missing are skipped with reason
        ``missing_signals``; a check that raises is skipped with reason
        ``check_error``.
    """
    if not has_required_signals(signals, rule.signals):
        return RuleResult(
            rule_id=rule.id,
            checked=False,
            reason="missing_signals",
            missing_signals=missing_signals(signals, rule.signals),
        )

    try:
        outcome = rule.check(signals)
    except Exception as e:
        logger.warning(f"Consistency rule {rule.id} failed: {e}")
        return RuleResult(
            rule_id=rule.id,
            checked=False,
            reason="check_error",
            error=str(e),
        )

    return RuleResult(
        rule_id=rule.id,
        checked=True,
        consistent=outcome.consistent,
        severity=outcome.severity,
        message=outcome.message,
        expected=outcome.expected,
        actual=outcome.actual,
        description=rule.description,
    )


def calculate_aggregate_status(violations: Iterable[RuleResult]) -> ConsistencyStatus:
    """Fold violations into one status.

    Any CRITICAL violation, or two or more HIGH ones, is contradictory. A
    weighted severity sum of 3 or more is inconsistent. Anything else that
    failed is a minor inconsistency.
    """
    severities = [v.severity or Severity.NONE for v in violations]
    if not severities:
        return ConsistencyStatus.CONSISTENT

    if Severity.CRITICAL in severities:
        return ConsistencyStatus.CONTRADICTORY
    if severities.count(Severity.HIGH) >= 2:
        return ConsistencyStatus.CONTRADICTORY

    weighted = sum(SEVERITY_WEIGHTS[s] for s in severities)
    if weighted >= 3:
        return ConsistencyStatus.INCONSISTENT
    return ConsistencyStatus.MINOR_INCONSISTENCY


def calculate_consistency_score(passed: int, failed: int, skipped: int = 0) -> float:
    """Fraction of checked rules that passed, rounded to 2 decimals.

    Skipped rules are excluded; with nothing checked the score is 1.0.
    """
    checked = passed + failed
    if checked == 0:
        return 1.0
    return round(passed / checked, 2)


def build_consistency_recommendations(status: ConsistencyStatus,
                                      violations: Sequence[RuleResult]) -> List[str]:
    recommendations = list(STATUS_RECOMMENDATIONS.get(status, ()))
    for violation in violations[:MAX_VIOLATION_RECOMMENDATIONS]:
        recommendations.append(f"{violation.rule_id}: {violation.message}")
    return recommendations


def check_consistency(signals: SignalVector) -> ConsistencyReport:
    """Run every registered rule against a signal vector.

    Args:
        signals: Mapping of signal name to value. Absent and None values
            are both treated as not evaluated.

    Returns:
        ConsistencyReport with status, score, confidence reduction and the
        violations, passed and skipped rules.
    """
    violations: List[RuleResult] = []
    passed: List[str] = []
    skipped: List[Dict[str, Optional[str]]] = []

    for rule in CONSISTENCY_RULES:
        result = check_rule(rule, signals)
        if not result.checked:
            skipped.append({"ruleId": result.rule_id, "reason": result.reason})
        elif result.consistent:
            passed.append(result.rule_id)
        else:
            violations.append(result)

    status = calculate_aggregate_status(violations)
    logger.debug(
        f"Consistency check: {status.value}, {len(violations)} violations, "
        f"{len(skipped)} skipped"
    )

    return ConsistencyReport(
        status=status,
        consistency_score=calculate_consistency_score(len(passed), len(violations), len(skipped)),
        confidence_reduction=CONSISTENCY_CONFIDENCE_REDUCTION[status],
        summary=ConsistencySummary(
            total_rules=len(CONSISTENCY_RULES),
            checked=len(passed) + len(violations),
            passed=len(passed),
            failed=len(violations),
            skipped=len(skipped),
        ),
        violations=violations,
        passed_rules=passed,
        skipped_rules=skipped,
        recommendations=build_consistency_recommendations(status, violations),
    )


def _worst_severity(violations: Iterable[RuleResult]) -> Severity:
    worst = Severity.NONE
    for violation in violations:
        severity = violation.severity or Severity.NONE
        if SEVERITY_WEIGHTS[severity] > SEVERITY_WEIGHTS[worst]:
            worst = severity
    return worst


def quick_check(signals: SignalVector) -> Dict[str, Any]:
    report = check_consistency(signals)
    return {
        "consistent": report.status == ConsistencyStatus.CONSISTENT,
        "status": report.status.value,
        "violationCount": len(report.violations),
        "worstSeverity": _worst_severity(report.violations).value,
    }


def analyze(signals: SignalVector) -> Dict[str, Any]:
    """Full consistency report plus the tables it was computed with."""
    report = check_consistency(signals)
    result: Dict[str, Any] = {"timestamp": datetime.now(timezone.utc).isoformat()}
    result.update(report.to_dict())
    result["availableRules"] = len(CONSISTENCY_RULES)
    result["severityWeights"] = {s.value: w for s, w in SEVERITY_WEIGHTS.items()}
    result["confidenceReductions"] = {
        s.value: r for s, r in CONSISTENCY_CONFIDENCE_REDUCTION.items()
    }
    return result


def check_specific_rules(signals: SignalVector, rule_ids: Iterable[str]) -> RuleSetResult:
    """Run only the named rules.

    Unknown ids produce a skipped result with reason ``rule_not_found``.
    """
    results: List[RuleResult] = []
    violations: List[RuleResult] = []
    passed: List[str] = []

    for rule_id in rule_ids:
        rule = get_rule(rule_id)
        if rule is None:
            results.append(RuleResult(rule_id=rule_id, checked=False, reason="rule_not_found"))
            continue

        result = check_rule(rule, signals)
        results.append(result)
        if result.is_violation:
            violations.append(result)
        elif result.checked:
            passed.append(result.rule_id)

    return RuleSetResult(
        status=calculate_aggregate_status(violations),
        results=results,
        violations=violations,
        passed_rules=passed,
    )


def get_contradictory_pairs(signals: SignalVector) -> List[Dict[str, Any]]:
    """Signals involved in CRITICAL violations, one entry per rule."""
    report = check_consistency(signals)
    pairs = []
    for violation in report.violations:
        if violation.severity != Severity.CRITICAL:
            continue
        rule = get_rule(violation.rule_id)
        pairs.append({
            "ruleId": violation.rule_id,
            "signals": list(rule.signals) if rule else [],
            "severity": violation.severity.value,
            "message": violation.message,
        })
    return pairs


def get_severity_recommendation(severity: Union[Severity, str, None]) -> str:
    if isinstance(severity, str):
        severity = Severity.__members__.get(severity)
    return SEVERITY_RECOMMENDATIONS.get(severity, "No action required.")


def explain_inconsistency(violation: RuleResult) -> Dict[str, Any]:
    """Human-readable explanation of a violation."""
    rule = get_rule(violation.rule_id)
    severity = violation.severity
    return {
        "ruleId": violation.rule_id,
        "description": rule.description if rule else "Unknown rule",
        "issue": violation.message,
        "expected": violation.expected,
        "actual": violation.actual,
        "severity": severity.value if severity else None,
        "recommendation": get_severity_recommendation(severity),
    }

