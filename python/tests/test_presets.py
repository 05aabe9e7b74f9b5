"""Tests for job presets."""

import numpy as np
import pytest

from mastergate.presets import (
    PRESETS,
    get_default_parameters,
    get_preset,
    resolve_parameters,
    validate_preset_parameters,
)


class TestPresets:
    def test_seven_presets(self):
        assert len(PRESETS) == 7

    def test_defaults(self):
        assert get_default_parameters("master-standard") == {
            "loudness": -14,
            "truePeak": -1,
            "format": "WAV",
        }

    def test_unknown(self):
        assert get_preset("nope") is None
        assert get_default_parameters("nope") is None

    def test_to_dict(self):
        data = get_preset("convert-mp3").to_dict()
        assert data["category"] == "CONVERSION"
        assert data["parameters"]["bitrate"] == {
            "default": 320,
            "options": [128, 192, 256, 320],
            "unit": "kbps",
        }


class TestValidatePresetParameters:
    def test_valid(self):
        assert validate_preset_parameters("master-standard", {"loudness": -10}) == {
            "valid": True,
            "errors": [],
        }

    def test_numpy_values(self):
        assert validate_preset_parameters("master-standard", {"loudness": np.float64(-10)})["valid"]

    def test_unknown_preset(self):
        result = validate_preset_parameters("nope", {})
        assert result["errors"] == ["Unknown preset: nope"]

    def test_unknown_parameter(self):
        result = validate_preset_parameters("convert-mp3", {"loudness": -14})
        assert result["errors"] == ["Unknown parameter: loudness"]

    def test_bounds(self):
        result = validate_preset_parameters("master-standard", {"loudness": -30, "truePeak": 1})
        assert result["errors"] == ["loudness must be >= -24", "truePeak must be <= 0"]

    def test_options(self):
        result = validate_preset_parameters("convert-wav", {"bitDepth": 8})
        assert result["errors"] == ["bitDepth must be one of: 16, 24, 32"]

    def test_boolean(self):
        result = validate_preset_parameters("analyze-full", {"includePitch": "yes"})
        assert result["errors"] == ["includePitch must be a boolean"]


class TestResolveParameters:
    def test_processing_names(self):
        resolved = resolve_parameters("master-streaming")
        assert resolved["targetLoudness"] == -14
        assert resolved["limiterCeiling"] == -1
        assert resolved["targetFormat"] == "mp3"

    def test_overrides(self):
        resolved = resolve_parameters("convert-wav", {"bitDepth": 16, "dynamicRange": 25})
        assert resolved["targetBitDepth"] == 16
        assert resolved["dynamicRange"] == 25

    def test_explicit_processing_key_wins(self):
        resolved = resolve_parameters("master-standard", {"limiterCeiling": -2})
        assert resolved["limiterCeiling"] == -2

    def test_invalid_override(self):
        with pytest.raises(ValueError, match="format must be one of"):
            resolve_parameters("master-streaming", {"format": "WAV"})

    def test_unknown_preset(self):
        with pytest.raises(ValueError):
            resolve_parameters("nope")
