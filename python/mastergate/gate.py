"""Main mastergate implementation.

Runs the consistency checker and the drift detector over one signal vector
and folds their reports into a single verdict, and gates job submission on
processing parameter conflicts.
"""
import copy
import logging
import threading
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional

from .confidence import combine_adjustments
from .conflicts import detect_parameter_conflicts
from .consistency import check_consistency
from .drift import check_multiple_models
from .fingerprint import Fingerprint
from .presets import resolve_parameters
from .types import (
    AssessmentOptions,
    AssessmentResult,
    ConflictReport,
    ConsistencyReport,
    ConsistencyStatus,
    DriftReport,
    DriftStatus,
    GateStatus,
    LayerResult,
    ParameterSet,
    SignalVector,
)

logger = logging.getLogger(__name__)


class QualityGate:
    """Main class for signal quality assessment."""

    def __init__(self, cache_size: int = 0):
        """Initialize QualityGate instance.

        Args:
            cache_size: Number of assessments kept in an LRU cache keyed by
                an input fingerprint. 0 disables caching.
        """
        if cache_size < 0:
            raise ValueError("cache_size must be >= 0")
        self.cache_size = cache_size
        self._cache: "OrderedDict[str, AssessmentResult]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def assess(
        self,
        signals: SignalVector,
        model_ids: Iterable[str] = (),
        confidence: Optional[float] = None,
        options: Optional[AssessmentOptions] = None
    ) -> AssessmentResult:
        """Assess a signal vector.

        Args:
            signals: Signal vector produced by the estimators
            model_ids: Models to check drift against; falls back to
                ``options.model_ids`` when empty
            confidence: Optional ML confidence to adjust
            options: Assessment options

        Returns:
            AssessmentResult with status, per-layer results and reports
        """
        if options is None:
            options = AssessmentOptions()

        if isinstance(model_ids, str):
            model_ids = (model_ids,)
        models = list(model_ids) or list(options.model_ids)
        try:
            key = Fingerprint.assessment_key(
                signals,
                models,
                confidence,
                {"consistency": options.include_consistency, "drift": options.include_drift},
            )
        except TypeError as e:
            logger.warning(f"Fingerprint failed, caching skipped: {e}")
            key = None

        if key is not None:
            cached = self._cache_get(key)
            if cached is not None:
                return cached

        result = self._assess(signals, models, confidence, options)
        result.fingerprint = key
        if key is not None:
            self._cache_put(key, result)
        return result

    def _assess(
        self,
        signals: SignalVector,
        models: List[str],
        confidence: Optional[float],
        options: AssessmentOptions
    ) -> AssessmentResult:
        layers = []
        warnings = []

        # Layer 1: Signal Consistency
        consistency: Optional[ConsistencyReport] = None
        if options.include_consistency:
            consistency = check_consistency(signals)
            layers.append(self._consistency_layer(consistency))
            if consistency.status != ConsistencyStatus.CONSISTENT:
                warnings.append(f"Signal consistency: {consistency.status.value}")

        # Layer 2: Drift, one per model
        drift: Dict[str, DriftReport] = {}
        drift_status: Optional[DriftStatus] = None
        trust_any = True
        if options.include_drift and models:
            multi = check_multiple_models(signals, models)
            drift = multi.by_model
            drift_status = multi.overall_status
            trust_any = multi.should_trust_any_ml
            for model_id, report in drift.items():
                layers.append(self._drift_layer(report))
                if report.error:
                    warnings.append(f"{model_id}: {report.error}")
                elif report.status != DriftStatus.IN_DISTRIBUTION:
                    warnings.append(f"{model_id}: {report.status.value}")

        can_proceed = (
            consistency is None
            or consistency.status != ConsistencyStatus.CONTRADICTORY
        )
        should_trust_ml = can_proceed and trust_any

        adjustment = None
        if confidence is not None:
            adjustment = combine_adjustments(
                confidence,
                consistency.status if consistency else None,
                drift_status,
            )

        degraded = (
            (consistency is not None and consistency.confidence_reduction > 0)
            or (drift_status is not None and drift_status != DriftStatus.IN_DISTRIBUTION)
        )
        if not should_trust_ml:
            status = GateStatus.UNTRUSTED
        elif degraded:
            status = GateStatus.DEGRADED
        else:
            status = GateStatus.TRUSTED

        logger.debug(f"Assessment: {status.value}, {len(layers)} layers")

        return AssessmentResult(
            status=status,
            should_trust_ml=should_trust_ml,
            can_proceed=can_proceed,
            consistency=consistency,
            drift=drift,
            confidence=adjustment,
            layers=layers,
            warnings=warnings,
        )

    def _consistency_layer(self, report: ConsistencyReport) -> LayerResult:
        return LayerResult(
            name="Signal Consistency",
            passed=report.status != ConsistencyStatus.CONTRADICTORY,
            score=round(report.consistency_score * 100, 1),
            details={
                "status": report.status.value,
                "violations": [v.rule_id for v in report.violations],
                "checked": report.summary.checked,
                "skipped": report.summary.skipped,
            }
        )

    def _drift_layer(self, report: DriftReport) -> LayerResult:
        return LayerResult(
            name=f"Drift: {report.model_id}",
            passed=report.should_trust_ml,
            score=round((1 - report.confidence_reduction) * 100, 1),
            details={
                "status": report.status.value,
                "aggregateDistance": report.aggregate_distance,
                "boundViolations": report.summary.bound_violations,
                "oodIndicators": [i.id for i in report.ood_indicators],
            }
        )

    def check_job(
        self,
        current: Optional[ParameterSet],
        proposed: Optional[ParameterSet],
        intent: Optional[ParameterSet] = None,
        preset_id: Optional[str] = None
    ) -> ConflictReport:
        """Check requested processing parameters before a job is queued.

        Args:
            current: Current analysis metrics
            proposed: Proposed processing parameters
            intent: Optional intent flags (preserveDynamics, monoCompatible, ...)
            preset_id: Optional preset whose defaults the proposal overrides

        Returns:
            ConflictReport; ``can_proceed`` is False on BLOCKING conflicts

        Raises:
            ValueError: If the preset is unknown or a proposed value is
                outside the preset's bounds
        """
        if preset_id is not None:
            proposed = resolve_parameters(preset_id, proposed)
        return detect_parameter_conflicts(current, proposed, intent)

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def _cache_get(self, key: str) -> Optional[AssessmentResult]:
        if not self.cache_size:
            return None
        with self._lock:
            result = self._cache.get(key)
            if result is None:
                self._misses += 1
                return None
            self._cache.move_to_end(key)
            self._hits += 1
        return copy.deepcopy(result)

    def _cache_put(self, key: str, result: AssessmentResult) -> None:
        if not self.cache_size:
            return
        stored = copy.deepcopy(result)
        with self._lock:
            self._cache[key] = stored
            self._cache.move_to_end(key)
            while len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)

    def cache_info(self) -> Dict[str, int]:
        with self._lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "size": len(self._cache),
                "maxSize": self.cache_size,
            }

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0


def assess(signals: SignalVector, model_ids: Iterable[str] = (),
           confidence: Optional[float] = None) -> AssessmentResult:
    """Assess a signal vector with an uncached gate."""
    return QualityGate().assess(signals, model_ids, confidence)
