"""Confidence reduction shared by the consistency checker and drift detector.

Each report carries a status; callers turn an ML confidence score into an
adjusted one by subtracting the penalty tied to that status.
"""
import logging
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple, Union

from .types import ConfidenceAdjustment, ConsistencyStatus, DriftStatus

logger = logging.getLogger(__name__)

Status = Union[Enum, str, None]

CONSISTENCY_CONFIDENCE_REDUCTION: Mapping[ConsistencyStatus, float] = MappingProxyType({
    ConsistencyStatus.CONSISTENT: 0.0,
    ConsistencyStatus.MINOR_INCONSISTENCY: 0.05,
    ConsistencyStatus.INCONSISTENT: 0.15,
    ConsistencyStatus.CONTRADICTORY: 0.30,
})

DRIFT_CONFIDENCE_REDUCTION: Mapping[DriftStatus, float] = MappingProxyType({
    DriftStatus.IN_DISTRIBUTION: 0.0,
    DriftStatus.MINOR_DRIFT: 0.05,
    DriftStatus.SIGNIFICANT_DRIFT: 0.15,
    DriftStatus.OUT_OF_DISTRIBUTION: 0.30,
})


def _lookup(table: Mapping[Enum, float], status: Status) -> Tuple[float, Optional[str]]:
    if status is None:
        return 0.0, None
    if isinstance(status, Enum):
        return table.get(status, 0.0), status.value
    for key, reduction in table.items():
        if key.value == status:
            return reduction, status
    logger.debug(f"No confidence reduction defined for status {status!r}")
    return 0.0, str(status)


def apply_reduction(confidence: float, status: Status,
                    table: Mapping[Enum, float]) -> ConfidenceAdjustment:
    """Subtract the penalty for ``status`` from a confidence score.

    Args:
        confidence: Original confidence, normally in [0, 1].
        status: Report status, as an enum member or its string value.
            Unknown statuses carry no penalty.
        table: Status to reduction mapping.

    Returns:
        ConfidenceAdjustment with the adjusted score floored at 0 and
        rounded to 3 decimal places.
    """
    reduction, status_name = _lookup(table, status)
    adjusted = max(0.0, confidence - reduction)
    return ConfidenceAdjustment(
        original=confidence,
        adjusted=round(adjusted, 3),
        reduction=reduction,
        was_reduced=reduction > 0,
        status=status_name,
    )


def apply_consistency_reduction(confidence: float, status: Status) -> ConfidenceAdjustment:
    return apply_reduction(confidence, status, CONSISTENCY_CONFIDENCE_REDUCTION)


def apply_drift_reduction(confidence: float, status: Status) -> ConfidenceAdjustment:
    return apply_reduction(confidence, status, DRIFT_CONFIDENCE_REDUCTION)


def combine_adjustments(confidence: float,
                        consistency_status: Status = None,
                        drift_status: Status = None) -> ConfidenceAdjustment:
    """Apply the consistency penalty and then the drift penalty.

    Args:
        confidence: Original confidence.
        consistency_status: Status of a consistency report, or None to skip.
        drift_status: Status of a drift report, or None to skip.

    Returns:
        ConfidenceAdjustment whose ``reduction`` is the total subtracted and
        whose ``status`` lists the statuses that were applied.
    """
    first = apply_consistency_reduction(confidence, consistency_status)
    second = apply_drift_reduction(first.adjusted, drift_status)
    statuses = [s for s in (first.status, second.status) if s is not None]
    total = round(first.reduction + second.reduction, 3)
    return ConfidenceAdjustment(
        original=confidence,
        adjusted=second.adjusted,
        reduction=total,
        was_reduced=total > 0,
        status="+".join(statuses) if statuses else None,
    )
