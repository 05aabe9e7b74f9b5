"""Tests for training distribution drift detection."""

import json
import math

import numpy as np
import pytest

from mastergate.distributions import (
    OOD_INDICATORS,
    TRAINING_DISTRIBUTIONS,
    get_available_distributions,
    get_training_distribution,
)
from mastergate.drift import (
    MAX_REPORTED_DISTANCE,
    analyze,
    analyze_signal,
    apply_drift_reduction,
    calculate_signal_distance,
    calculate_z_score,
    check_bounds,
    check_multiple_models,
    check_ood_indicators,
    detect_drift,
    get_drift_status_from_z_score,
    quick_check,
    worst_status,
)
from mastergate.types import DriftStatus, IndicatorSeverity, SignalDistribution


class TestZScore:
    def test_at_mean(self):
        assert calculate_z_score(5, 5, 2) == 0

    def test_one_std(self):
        assert calculate_z_score(7, 5, 2) == 1
        assert calculate_z_score(3, 5, 2) == 1

    def test_zero_std(self):
        assert calculate_z_score(1, 1, 0) == 0
        assert math.isinf(calculate_z_score(2, 1, 0))

    def test_weighted_distance(self):
        dist = SignalDistribution(mean=0, std=1, weight=1.5)
        assert calculate_signal_distance(2, dist) == 3.0


class TestStatusFromZ:
    @pytest.mark.parametrize("z,status", [
        (0.0, DriftStatus.IN_DISTRIBUTION),
        (1.49, DriftStatus.IN_DISTRIBUTION),
        (1.5, DriftStatus.MINOR_DRIFT),
        (2.5, DriftStatus.SIGNIFICANT_DRIFT),
        (4.0, DriftStatus.OUT_OF_DISTRIBUTION),
        (math.inf, DriftStatus.OUT_OF_DISTRIBUTION),
    ])
    def test_thresholds(self, z, status):
        assert get_drift_status_from_z_score(z) == status


class TestBounds:
    def test_inclusive(self):
        dist = SignalDistribution(mean=0.5, std=0.2, min=0, max=1)
        assert check_bounds(0, dist).in_bounds
        assert check_bounds(1, dist).in_bounds

    def test_below(self):
        result = check_bounds(-0.1, SignalDistribution(mean=0.5, std=0.2, min=0, max=1))
        assert not result.in_bounds
        assert result.violation == "below_minimum"
        assert result.expected == ">= 0"

    def test_above(self):
        result = check_bounds(2, SignalDistribution(mean=0.5, std=0.2, min=0, max=1))
        assert result.violation == "above_maximum"

    def test_unbounded_default(self):
        assert check_bounds(1e9, SignalDistribution(mean=0, std=1)).in_bounds


class TestOODIndicators:
    def test_eight_indicators(self):
        assert len(OOD_INDICATORS) == 8

    def test_silence_is_ood(self):
        result = check_ood_indicators({"integratedLoudness": -60})
        assert result.is_ood
        assert result.critical_count == 1
        assert result.indicators[0].id == "SILENCE"

    def test_silence_from_rms_fallback(self):
        assert check_ood_indicators({"rmsLevel": -70}).is_ood

    def test_single_high_not_ood(self):
        result = check_ood_indicators({"duration": 2})
        assert not result.is_ood
        assert result.high_count == 1

    def test_two_high_is_ood(self):
        result = check_ood_indicators({"duration": 2, "phaseCorrelation": -0.9})
        assert result.is_ood
        assert result.high_count == 2

    def test_invalid_sample_rate(self):
        result = check_ood_indicators({"sampleRate": 22050})
        assert not result.is_ood
        assert result.indicators[0].severity == IndicatorSeverity.LOW

    def test_peak_fallback(self):
        result = check_ood_indicators({"truePeak": None, "peakLevel": 1})
        assert [i.id for i in result.indicators] == ["CLIPPED_AUDIO"]

    def test_non_numeric_ignored(self):
        assert check_ood_indicators({"truePeak": "loud", "bpm": "fast"}).indicators == []


class TestAnalyzeSignal:
    def test_zero_std_is_clamped(self):
        analysis = analyze_signal("x", 2, SignalDistribution(mean=1, std=0))
        assert analysis.z_score == MAX_REPORTED_DISTANCE
        assert analysis.distance == MAX_REPORTED_DISTANCE
        assert analysis.status == DriftStatus.OUT_OF_DISTRIBUTION
        assert analysis.in_bounds

    def test_rounding(self):
        analysis = analyze_signal("bpm", 140, TRAINING_DISTRIBUTIONS["subgenre_v2"].signals["bpm"])
        assert analysis.z_score == 0.6
        assert analysis.status == DriftStatus.IN_DISTRIBUTION


class TestDetectDrift:
    def test_clean_in_distribution(self, clean_signals):
        report = detect_drift(clean_signals, "subgenre_v2")
        assert report.status == DriftStatus.IN_DISTRIBUTION
        assert report.should_trust_ml
        assert report.confidence_reduction == 0.0
        assert report.training_version == "2.0.0"
        assert report.summary.signals_analyzed == 10
        assert report.summary.signals_in_distribution == 10
        assert report.summary.p_value > 0.05
        assert report.recommendations == ["Input within expected distribution"]

    def test_silence_is_ood(self):
        report = detect_drift({"integratedLoudness": -60}, "subgenre_v2")
        assert report.status == DriftStatus.OUT_OF_DISTRIBUTION
        assert not report.should_trust_ml
        assert report.confidence_reduction == 0.30
        assert report.recommendations[0] == "Hard OOD indicators detected"
        assert "integratedLoudness" in report.per_signal

    def test_unknown_model(self, clean_signals, caplog):
        report = detect_drift(clean_signals, "mystery_model")
        assert report.status == DriftStatus.IN_DISTRIBUTION
        assert report.should_trust_ml
        assert report.error == "No training distribution available for model"
        assert report.per_signal == {}
        assert "mystery_model" in caplog.text
        assert report.to_dict()["error"] == report.error

    def test_single_significant_is_minor(self, clean_signals):
        clean_signals["bpm"] = 190
        report = detect_drift(clean_signals, "subgenre_v2")
        assert report.per_signal["bpm"].status == DriftStatus.SIGNIFICANT_DRIFT
        assert report.status == DriftStatus.MINOR_DRIFT
        assert report.confidence_reduction == 0.05

    def test_two_significant(self, clean_signals):
        clean_signals["bpm"] = 190
        clean_signals["dynamicRange"] = 16
        report = detect_drift(clean_signals, "subgenre_v2")
        assert report.status == DriftStatus.SIGNIFICANT_DRIFT

    def test_single_ood_signal_is_significant(self, clean_signals):
        clean_signals["crestFactor"] = 25
        report = detect_drift(clean_signals, "subgenre_v2")
        assert report.per_signal["crestFactor"].status == DriftStatus.OUT_OF_DISTRIBUTION
        assert report.status == DriftStatus.SIGNIFICANT_DRIFT
        assert report.should_trust_ml

    def test_three_bound_violations(self):
        report = detect_drift(
            {"loudnessRange": 35, "shortTermMax": 5, "truePeak": 4},
            "loudness_analysis",
        )
        assert report.status == DriftStatus.OUT_OF_DISTRIBUTION
        assert report.summary.bound_violations == 3
        assert "loudnessRange: above_maximum (35)" in report.recommendations
        assert report.recommendations[0] == "Input significantly differs from training data"

    def test_non_numeric_skipped(self, clean_signals):
        clean_signals["bpm"] = "fast"
        clean_signals["crestFactor"] = float("nan")
        report = detect_drift(clean_signals, "subgenre_v2")
        assert "bpm" not in report.per_signal
        assert "crestFactor" not in report.per_signal
        assert report.summary.signals_analyzed == 8

    def test_empty_vector(self):
        report = detect_drift({}, "transient_analysis")
        assert report.status == DriftStatus.IN_DISTRIBUTION
        assert report.aggregate_distance == 0.0
        assert report.summary.chi_square == 0.0
        assert report.summary.p_value == 1.0

    def test_serializable(self, clean_signals):
        first = detect_drift(clean_signals, "subgenre_v2").to_dict()
        assert json.loads(json.dumps(first)) == first
        assert detect_drift(clean_signals, "subgenre_v2").to_dict() == first

    def test_aggregate_distance_alone_is_ood(self):
        report = detect_drift({"integratedLoudness": -40}, "loudness_analysis")
        assert report.status == DriftStatus.OUT_OF_DISTRIBUTION
        assert report.aggregate_distance == 6.5
        assert report.summary.bound_violations == 0
        assert report.ood_indicators == []

    def test_status_uses_unrounded_aggregate(self):
        # Distance 3.998 is reported as 4.0 but stays below the OOD threshold
        report = detect_drift({"integratedLoudness": -29.992}, "loudness_analysis")
        assert report.aggregate_distance == 4.0
        assert report.per_signal["integratedLoudness"].status == DriftStatus.SIGNIFICANT_DRIFT
        assert report.status == DriftStatus.MINOR_DRIFT

    def test_numpy_silence_is_ood(self):
        report = detect_drift({"integratedLoudness": np.float32(-60)}, "subgenre_v2")
        assert report.status == DriftStatus.OUT_OF_DISTRIBUTION
        assert "integratedLoudness" in report.per_signal

    def test_numpy_vector_serializes(self, clean_signals):
        signals = {
            k: np.float64(v) if isinstance(v, (int, float)) and not isinstance(v, bool) else v
            for k, v in clean_signals.items()
        }
        report = detect_drift(signals, "subgenre_v2")
        assert report.status == DriftStatus.IN_DISTRIBUTION
        assert report.summary.signals_analyzed == 10
        json.dumps(report.to_dict())


class TestQuickCheckAndAnalyze:
    def test_quick_check_clean(self, clean_signals):
        result = quick_check(clean_signals, "subgenre_v2")
        assert result["status"] == "IN_DISTRIBUTION"
        assert result["maxZScore"] == 0.6
        assert result["signalsChecked"] == 10

    def test_quick_check_ood(self, silent_signals):
        result = quick_check(silent_signals, "subgenre_v2")
        assert result == {
            "status": "OUT_OF_DISTRIBUTION",
            "shouldTrustML": False,
            "hasOODIndicators": True,
            "indicatorCount": 1,
        }

    def test_quick_check_unknown_model(self, clean_signals):
        assert quick_check(clean_signals, "nope")["noDistributionAvailable"]

    def test_analyze(self, clean_signals):
        result = analyze(clean_signals, "subgenre_v2")
        assert "timestamp" in result
        assert result["distribution"]["signalCount"] == 10
        assert result["thresholds"] == {"MINOR": 1.5, "SIGNIFICANT": 2.5, "OOD": 4.0}

    def test_analyze_unknown_model(self, clean_signals):
        assert analyze(clean_signals, "nope")["distribution"] is None


class TestMultipleModels:
    def test_deduplicates(self, clean_signals):
        report = check_multiple_models(clean_signals, ["subgenre_v2", "nope", "subgenre_v2"])
        assert list(report.by_model) == ["subgenre_v2", "nope"]
        assert report.overall_status == DriftStatus.IN_DISTRIBUTION
        assert report.should_trust_any_ml

    def test_single_model_string(self, clean_signals):
        report = check_multiple_models(clean_signals, "subgenre_v2")
        assert list(report.by_model) == ["subgenre_v2"]

    def test_all_untrusted(self, silent_signals):
        report = check_multiple_models(silent_signals, ["subgenre_v2", "loudness_analysis"])
        assert report.overall_status == DriftStatus.OUT_OF_DISTRIBUTION
        assert not report.should_trust_any_ml
        assert report.to_dict()["shouldTrustAnyML"] is False

    def test_no_models(self, clean_signals):
        report = check_multiple_models(clean_signals, [])
        assert report.overall_status == DriftStatus.IN_DISTRIBUTION
        assert not report.should_trust_any_ml

    def test_worst_status(self):
        assert worst_status([DriftStatus.MINOR_DRIFT, DriftStatus.SIGNIFICANT_DRIFT]) \
            == DriftStatus.SIGNIFICANT_DRIFT
        assert worst_status([]) == DriftStatus.IN_DISTRIBUTION


class TestDistributions:
    def test_available(self):
        available = get_available_distributions()
        assert set(available) == {"subgenre_v2", "loudness_analysis", "transient_analysis"}
        assert available["subgenre_v2"]["trainingSize"] == 10000
        assert "trap" in available["subgenre_v2"]["expectedGenres"]

    def test_lookup(self):
        assert get_training_distribution("loudness_analysis").version == "1.0.0"
        assert get_training_distribution("nope") is None

    def test_read_only(self):
        with pytest.raises(TypeError):
            TRAINING_DISTRIBUTIONS["new"] = None


class TestDriftReduction:
    def test_ood(self):
        assert apply_drift_reduction(0.9, DriftStatus.OUT_OF_DISTRIBUTION).adjusted == pytest.approx(0.6)
