"""Shared pytest fixtures for mastergate tests."""

import json

import pytest

from mastergate import QualityGate


# ---------------------------------------------------------------------------
# Signal vector fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clean_signals():
    """A complete vector that passes every rule and sits inside subgenre_v2."""
    return {
        "subgenre": "trap",
        "subgenreConfidence": 0.7,
        "isHybrid": False,
        "bpm": 140,
        "transientSharpness": 0.55,
        "transientDensity": 0.6,
        "subBassEnergy": 0.6,
        "dynamicRange": 7,
        "crestFactor": 9,
        "integratedLoudness": -12,
        "truePeak": -1,
        "stereoWidth": 0.5,
        "channelTopology": "TRUE_STEREO",
        "sampleRate": 48000,
        "highFrequencyPresence": 0.5,
        "hasClipping": False,
        "dcOffset": 0.01,
        "phaseCorrelation": 0.6,
        "isSilent": False,
        "duration": 180,
        "temporalDensity": 0.6,
    }


@pytest.fixture()
def contradictory_signals(clean_signals):
    """Clean vector with a true peak below the integrated loudness."""
    signals = dict(clean_signals)
    signals["truePeak"] = -20
    signals["integratedLoudness"] = -14
    return signals


@pytest.fixture()
def silent_signals(clean_signals):
    """Clean vector whose loudness trips the SILENCE indicator."""
    signals = dict(clean_signals)
    signals["integratedLoudness"] = -60
    return signals


# ---------------------------------------------------------------------------
# Gate and file fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def gate():
    """Fresh uncached QualityGate."""
    return QualityGate()


@pytest.fixture()
def write_json(tmp_path):
    """Write a JSON document under tmp_path and return its path as str."""
    def _write(name, data):
        path = tmp_path / name
        path.write_text(json.dumps(data))
        return str(path)
    return _write
