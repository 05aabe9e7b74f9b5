"""Static training distributions and hard out-of-distribution indicators."""
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence

from .types import (
    IndicatorSeverity,
    OODIndicator,
    SignalDistribution,
    SignalVector,
    TrainingDistribution,
    as_number,
)


VALID_SAMPLE_RATES = (44100, 48000, 88200, 96000, 176400, 192000)


def _table(**signals: SignalDistribution) -> Mapping[str, SignalDistribution]:
    return MappingProxyType(dict(signals))


TRAINING_DISTRIBUTIONS: Mapping[str, TrainingDistribution] = MappingProxyType({
    "subgenre_v2": TrainingDistribution(
        model_id="subgenre_v2",
        version="2.0.0",
        training_size=10000,
        signals=_table(
            bpm=SignalDistribution(mean=125, std=25, min=60, max=200, weight=1.0),
            subBassEnergy=SignalDistribution(mean=0.55, std=0.18, min=0, max=1, weight=1.2),
            transientDensity=SignalDistribution(mean=0.55, std=0.20, min=0, max=1, weight=1.0),
            transientSharpness=SignalDistribution(mean=0.5, std=0.22, min=0, max=1, weight=0.8),
            dynamicRange=SignalDistribution(mean=7, std=3.5, min=0, max=20, weight=1.0),
            stereoWidth=SignalDistribution(mean=0.55, std=0.18, min=0, max=1, weight=0.7),
            integratedLoudness=SignalDistribution(mean=-14, std=4, min=-60, max=0, weight=1.0),
            truePeak=SignalDistribution(mean=-1, std=2, min=-60, max=3, weight=0.8),
            crestFactor=SignalDistribution(mean=8, std=4, min=1, max=25, weight=0.9),
            temporalDensity=SignalDistribution(mean=0.6, std=0.2, min=0, max=1, weight=0.8),
        ),
        expected_genres=(
            "rap", "hiphop", "trap", "drill", "lofi",
            "boom_bap", "cloud", "melodic", "aggressive", "experimental",
        ),
    ),
    "loudness_analysis": TrainingDistribution(
        model_id="loudness_analysis",
        version="1.0.0",
        training_size=5000,
        signals=_table(
            integratedLoudness=SignalDistribution(mean=-14, std=6, min=-60, max=0, weight=1.5),
            truePeak=SignalDistribution(mean=-1, std=3, min=-60, max=3, weight=1.2),
            loudnessRange=SignalDistribution(mean=8, std=4, min=0, max=30, weight=1.0),
            shortTermMax=SignalDistribution(mean=-10, std=5, min=-60, max=0, weight=0.8),
        ),
    ),
    "transient_analysis": TrainingDistribution(
        model_id="transient_analysis",
        version="1.0.0",
        training_size=5000,
        signals=_table(
            transientDensity=SignalDistribution(mean=0.5, std=0.25, min=0, max=1, weight=1.2),
            transientSharpness=SignalDistribution(mean=0.5, std=0.25, min=0, max=1, weight=1.2),
            attackTime=SignalDistribution(mean=20, std=15, min=0, max=100, weight=0.9),
            releaseTime=SignalDistribution(mean=100, std=60, min=0, max=500, weight=0.7),
        ),
    ),
})


def _first_number(signals: SignalVector, names: Sequence[str]) -> Optional[float]:
    # First non-None value among fallback names, ignoring non-numeric values
    for name in names:
        value = signals.get(name)
        if value is None:
            continue
        return as_number(value)
    return None


def _is_silent(signals: SignalVector) -> bool:
    loudness = _first_number(signals, ("integratedLoudness", "rmsLevel"))
    return loudness is not None and loudness < -55


def _is_noise_only(signals: SignalVector) -> bool:
    crest = _first_number(signals, ("crestFactor",))
    return crest is not None and crest < 2


def _has_extreme_duration(signals: SignalVector) -> bool:
    duration = _first_number(signals, ("duration",))
    return duration is not None and (duration < 5 or duration > 1800)


def _cancels_in_mono(signals: SignalVector) -> bool:
    correlation = _first_number(signals, ("phaseCorrelation", "stereoCorrelation"))
    return correlation is not None and correlation < -0.8


def _is_clipped(signals: SignalVector) -> bool:
    peak = _first_number(signals, ("truePeak", "peakLevel"))
    return peak is not None and peak > 0


def _has_dc_offset(signals: SignalVector) -> bool:
    offset = _first_number(signals, ("dcOffset", "dcBias"))
    return offset is not None and abs(offset) > 0.1


def _has_extreme_bpm(signals: SignalVector) -> bool:
    bpm = _first_number(signals, ("bpm",))
    return bpm is not None and (bpm < 40 or bpm > 250)


def _has_invalid_sample_rate(signals: SignalVector) -> bool:
    sample_rate = _first_number(signals, ("sampleRate",))
    return sample_rate is not None and sample_rate not in VALID_SAMPLE_RATES


OOD_INDICATORS = (
    OODIndicator("SILENCE", "Audio is effectively silent",
                 IndicatorSeverity.CRITICAL, _is_silent),
    OODIndicator("NOISE_ONLY", "Audio appears to be pure noise",
                 IndicatorSeverity.CRITICAL, _is_noise_only),
    OODIndicator("EXTREME_DURATION", "Duration outside expected range",
                 IndicatorSeverity.HIGH, _has_extreme_duration),
    OODIndicator("MONO_SUM_CANCELLATION", "Channels cancel when summed to mono",
                 IndicatorSeverity.HIGH, _cancels_in_mono),
    OODIndicator("CLIPPED_AUDIO", "Severe digital clipping detected",
                 IndicatorSeverity.MEDIUM, _is_clipped),
    OODIndicator("DC_OFFSET", "Significant DC offset present",
                 IndicatorSeverity.MEDIUM, _has_dc_offset),
    OODIndicator("EXTREME_BPM", "BPM outside expected range for music",
                 IndicatorSeverity.MEDIUM, _has_extreme_bpm),
    OODIndicator("INVALID_SAMPLE_RATE", "Non-standard sample rate",
                 IndicatorSeverity.LOW, _has_invalid_sample_rate),
)


def get_training_distribution(model_id: str) -> Optional[TrainingDistribution]:
    return TRAINING_DISTRIBUTIONS.get(model_id)


def describe_distribution(distribution: TrainingDistribution) -> Dict[str, Any]:
    return {
        "version": distribution.version,
        "trainingSize": distribution.training_size,
        "signalCount": len(distribution.signals),
        "signals": list(distribution.signals),
        "expectedGenres": list(distribution.expected_genres),
    }


def get_available_distributions() -> Dict[str, Dict[str, Any]]:
    """Summary of every known model distribution keyed by model id."""
    return {
        model_id: describe_distribution(dist)
        for model_id, dist in TRAINING_DISTRIBUTIONS.items()
    }
