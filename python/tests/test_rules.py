"""Tests for the consistency rule registry."""

import dataclasses

import numpy as np
import pytest

from mastergate.rules import (
    CONSISTENCY_RULES,
    get_available_rules,
    get_rule,
    has_required_signals,
)
from mastergate.types import Severity, as_flag, as_number


def run(rule_id, signals):
    return get_rule(rule_id).check(signals)


class TestRegistry:
    def test_twelve_rules(self):
        assert len(CONSISTENCY_RULES) == 12

    def test_ids_unique(self):
        ids = [r.id for r in CONSISTENCY_RULES]
        assert len(ids) == len(set(ids))

    def test_get_rule_round_trip(self):
        for meta in get_available_rules():
            assert get_rule(meta["id"]).id == meta["id"]

    def test_get_unknown_rule(self):
        assert get_rule("NOPE") is None

    def test_available_rules_have_no_check(self):
        for meta in get_available_rules():
            assert set(meta) == {"id", "description", "signals"}
            assert isinstance(meta["signals"], list)

    def test_rules_are_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            CONSISTENCY_RULES[0].id = "CHANGED"


class TestHasRequiredSignals:
    def test_all_present(self):
        assert has_required_signals({"a": 1, "b": 0}, ["a", "b"])

    def test_none_is_missing(self):
        assert not has_required_signals({"a": 1, "b": None}, ["a", "b"])

    def test_false_is_present(self):
        assert has_required_signals({"hasClipping": False}, ["hasClipping"])

    def test_empty_requirement(self):
        assert has_required_signals({}, [])


class TestLofiTransient:
    def test_boundary_passes(self):
        assert run("LOFI_TRANSIENT", {"subgenre": "lofi", "transientSharpness": 0.65}).consistent

    def test_just_above_fails(self):
        outcome = run("LOFI_TRANSIENT", {"subgenre": "lofi", "transientSharpness": 0.66})
        assert not outcome.consistent
        assert outcome.severity == Severity.MEDIUM

    def test_other_subgenre_ignored(self):
        assert run("LOFI_TRANSIENT", {"subgenre": "trap", "transientSharpness": 0.99}).consistent

    def test_non_numeric_sharpness(self):
        assert run("LOFI_TRANSIENT", {"subgenre": "lofi", "transientSharpness": "sharp"}).consistent


class TestLoudnessPeak:
    def test_peak_below_loudness_is_critical(self):
        outcome = run("LOUDNESS_PEAK", {"integratedLoudness": -14, "truePeak": -20})
        assert not outcome.consistent
        assert outcome.severity == Severity.CRITICAL
        assert outcome.expected == "truePeak >= integratedLoudness"
        assert outcome.actual == "truePeak = -20, integratedLoudness = -14"

    def test_equal_passes(self):
        assert run("LOUDNESS_PEAK", {"integratedLoudness": -14, "truePeak": -14}).consistent


class TestTrapBpm:
    @pytest.mark.parametrize("bpm", [60, 140, 180])
    def test_in_range(self, bpm):
        assert run("TRAP_BPM", {"subgenre": "trap", "bpm": bpm}).consistent

    @pytest.mark.parametrize("bpm", [59, 185])
    def test_out_of_range(self, bpm):
        outcome = run("TRAP_BPM", {"subgenre": "trap", "bpm": bpm})
        assert not outcome.consistent
        assert outcome.severity == Severity.LOW


class TestTwoBranchRules:
    def test_dual_mono_with_width(self):
        outcome = run("STEREO_MONO_TOPOLOGY", {"channelTopology": "DUAL_MONO", "stereoWidth": 0.2})
        assert outcome.severity == Severity.MEDIUM

    def test_true_stereo_without_width(self):
        outcome = run("STEREO_MONO_TOPOLOGY", {"channelTopology": "TRUE_STEREO", "stereoWidth": 0.01})
        assert outcome.severity == Severity.LOW

    def test_clipping_with_low_peak(self):
        outcome = run("CLIPPING_PEAK", {"hasClipping": True, "truePeak": -5})
        assert not outcome.consistent
        assert outcome.severity == Severity.HIGH

    def test_no_clipping_with_overs(self):
        outcome = run("CLIPPING_PEAK", {"hasClipping": False, "truePeak": 0.5})
        assert not outcome.consistent
        assert "exceeds 0dBFS" in outcome.message

    def test_clipping_at_zero_passes(self):
        assert run("CLIPPING_PEAK", {"hasClipping": False, "truePeak": 0}).consistent

    def test_not_silent_but_quiet(self):
        outcome = run("SILENCE_LOUDNESS", {"isSilent": False, "integratedLoudness": -55})
        assert outcome.severity == Severity.MEDIUM

    def test_silent_but_loud(self):
        outcome = run("SILENCE_LOUDNESS", {"isSilent": True, "integratedLoudness": -20})
        assert outcome.severity == Severity.HIGH


class TestOtherRules:
    def test_drill_bass(self):
        assert not run("DRILL_BASS", {"subgenre": "drill", "subBassEnergy": 0.3}).consistent
        assert run("DRILL_BASS", {"subgenre": "drill", "subBassEnergy": 0.4}).consistent

    def test_dynamic_compression(self):
        outcome = run("DYNAMIC_COMPRESSION", {"dynamicRange": 3, "crestFactor": 16})
        assert outcome.severity == Severity.HIGH
        assert run("DYNAMIC_COMPRESSION", {"dynamicRange": 3, "crestFactor": "high"}).consistent

    def test_bpm_transient_density(self):
        assert not run("BPM_TRANSIENT_DENSITY", {"bpm": 170, "transientDensity": 0.1}).consistent
        assert run("BPM_TRANSIENT_DENSITY", {"bpm": 160, "transientDensity": 0.1}).consistent

    def test_hybrid_requires_true(self):
        assert not run("CLASSIFICATION_CONFIDENCE_HYBRID",
                       {"subgenreConfidence": 0.9, "isHybrid": True}).consistent
        assert run("CLASSIFICATION_CONFIDENCE_HYBRID",
                   {"subgenreConfidence": 0.9, "isHybrid": 1}).consistent

    def test_sample_rate_content(self):
        assert not run("SAMPLE_RATE_FREQUENCY_CONTENT",
                       {"sampleRate": 44100, "highFrequencyPresence": 0.9}).consistent
        assert run("SAMPLE_RATE_FREQUENCY_CONTENT",
                   {"sampleRate": 48000, "highFrequencyPresence": 0.9}).consistent

    def test_dc_offset_uses_magnitude(self):
        outcome = run("DC_OFFSET_PHASE", {"dcOffset": -0.3, "phaseCorrelation": 0.99})
        assert outcome.severity == Severity.MEDIUM

    def test_passing_outcome_has_no_severity(self):
        outcome = run("DC_OFFSET_PHASE", {"dcOffset": 0.0, "phaseCorrelation": 0.99})
        assert outcome.consistent
        assert outcome.severity == Severity.NONE
        assert outcome.message is None


class TestNumpyScalars:
    def test_loudness_peak(self):
        outcome = run("LOUDNESS_PEAK", {
            "integratedLoudness": np.float32(-14),
            "truePeak": np.float32(-20),
        })
        assert outcome.severity == Severity.CRITICAL
        assert outcome.actual == "truePeak = -20.0, integratedLoudness = -14.0"

    def test_numpy_bool_flag(self):
        outcome = run("CLIPPING_PEAK", {"hasClipping": np.bool_(True), "truePeak": np.float64(-5)})
        assert not outcome.consistent
        assert outcome.severity == Severity.HIGH

    def test_trap_bpm(self):
        outcome = run("TRAP_BPM", {"subgenre": "trap", "bpm": np.int64(185)})
        assert not outcome.consistent

    def test_helpers(self):
        assert as_number(np.float32(1.5)) == 1.5
        assert type(as_number(np.int64(3))) is int
        assert as_number(np.bool_(True)) is None
        assert as_number(True) is None
        assert as_number("3") is None
        assert as_flag(np.bool_(False)) is False
        assert as_flag(1) is None
