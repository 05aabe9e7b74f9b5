"""Registry of cross-signal consistency rules.

Each rule names the signals it needs and a pure check over the signal
vector. A rule fires only when the signals contradict each other; values of
the wrong type never fire.
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .types import Rule, RuleOutcome, Severity, SignalVector, as_flag, as_number


PASS = RuleOutcome(consistent=True)

KNOWN_SIGNALS: Tuple[str, ...] = (
    "subgenre",
    "subgenreConfidence",
    "isHybrid",
    "bpm",
    "transientSharpness",
    "transientDensity",
    "subBassEnergy",
    "dynamicRange",
    "crestFactor",
    "integratedLoudness",
    "truePeak",
    "stereoWidth",
    "channelTopology",
    "sampleRate",
    "highFrequencyPresence",
    "hasClipping",
    "dcOffset",
    "phaseCorrelation",
    "isSilent",
    "duration",
    "rmsLevel",
    "peakLevel",
    "stereoCorrelation",
    "temporalDensity",
    "loudnessRange",
    "shortTermMax",
    "attackTime",
    "releaseTime",
)


def _fail(severity: Severity, message: str, expected: str, actual: str) -> RuleOutcome:
    return RuleOutcome(
        consistent=False,
        severity=severity,
        message=message,
        expected=expected,
        actual=actual,
    )


def _check_lofi_transient(signals: SignalVector) -> RuleOutcome:
    sharpness = as_number(signals.get("transientSharpness"))
    if signals.get("subgenre") == "lofi" and sharpness is not None and sharpness > 0.65:
        return _fail(
            Severity.MEDIUM,
            "Lo-fi classification but transients are sharp",
            "transientSharpness <= 0.65 for lo-fi",
            f"transientSharpness = {sharpness}",
        )
    return PASS


def _check_drill_bass(signals: SignalVector) -> RuleOutcome:
    sub_bass = as_number(signals.get("subBassEnergy"))
    if signals.get("subgenre") == "drill" and sub_bass is not None and sub_bass < 0.4:
        return _fail(
            Severity.LOW,
            "Drill classification but sub-bass is low",
            "subBassEnergy >= 0.4 for drill",
            f"subBassEnergy = {sub_bass}",
        )
    return PASS


def _check_trap_bpm(signals: SignalVector) -> RuleOutcome:
    bpm = as_number(signals.get("bpm"))
    if signals.get("subgenre") == "trap" and bpm is not None and (bpm < 60 or bpm > 180):
        return _fail(
            Severity.LOW,
            "Trap classification but BPM outside typical range",
            "BPM 60-180 for trap",
            f"bpm = {bpm}",
        )
    return PASS


def _check_dynamic_compression(signals: SignalVector) -> RuleOutcome:
    dynamic_range = as_number(signals.get("dynamicRange"))
    crest = as_number(signals.get("crestFactor"))
    if dynamic_range is None or crest is None:
        return PASS
    if dynamic_range < 4 and crest > 15:
        return _fail(
            Severity.HIGH,
            "Low dynamic range with high crest factor is physically inconsistent",
            "Correlated dynamic range and crest factor",
            f"dynamicRange = {dynamic_range}, crestFactor = {crest}",
        )
    return PASS


def _check_loudness_peak(signals: SignalVector) -> RuleOutcome:
    loudness = as_number(signals.get("integratedLoudness"))
    peak = as_number(signals.get("truePeak"))
    if loudness is None or peak is None:
        return PASS
    if peak < loudness:
        return _fail(
            Severity.CRITICAL,
            "True peak is lower than integrated loudness (physically impossible)",
            "truePeak >= integratedLoudness",
            f"truePeak = {peak}, integratedLoudness = {loudness}",
        )
    return PASS


def _check_bpm_transient_density(signals: SignalVector) -> RuleOutcome:
    bpm = as_number(signals.get("bpm"))
    density = as_number(signals.get("transientDensity"))
    if bpm is None or density is None:
        return PASS
    if bpm > 160 and density < 0.15:
        return _fail(
            Severity.LOW,
            "High BPM but very low transient density",
            "transientDensity > 0.15 for high BPM",
            f"bpm = {bpm}, transientDensity = {density}",
        )
    return PASS


def _check_stereo_mono_topology(signals: SignalVector) -> RuleOutcome:
    width = as_number(signals.get("stereoWidth"))
    topology = signals.get("channelTopology")
    if width is None:
        return PASS
    if topology == "DUAL_MONO" and width > 0.1:
        return _fail(
            Severity.MEDIUM,
            "Dual mono detected but stereo width is significant",
            "stereoWidth <= 0.1 for dual mono",
            f"stereoWidth = {width}",
        )
    if topology == "TRUE_STEREO" and width < 0.05:
        return _fail(
            Severity.LOW,
            "True stereo but stereo width is nearly zero",
            "stereoWidth > 0.05 for true stereo",
            f"stereoWidth = {width}",
        )
    return PASS


def _check_confidence_hybrid(signals: SignalVector) -> RuleOutcome:
    confidence = as_number(signals.get("subgenreConfidence"))
    if confidence is not None and confidence > 0.85 and as_flag(signals.get("isHybrid")) is True:
        return _fail(
            Severity.MEDIUM,
            "High subgenre confidence but marked as hybrid",
            "Either lower confidence or not hybrid",
            f"subgenreConfidence = {confidence}, isHybrid = true",
        )
    return PASS


def _check_sample_rate_content(signals: SignalVector) -> RuleOutcome:
    sample_rate = as_number(signals.get("sampleRate"))
    presence = as_number(signals.get("highFrequencyPresence"))
    if sample_rate is None or presence is None:
        return PASS
    if sample_rate == 44100 and presence > 0.8:
        return _fail(
            Severity.LOW,
            "High frequency presence detected but sample rate limits bandwidth",
            "Either higher sample rate or lower high frequency presence",
            f"sampleRate = {sample_rate}, highFrequencyPresence = {presence}",
        )
    return PASS


def _check_clipping_peak(signals: SignalVector) -> RuleOutcome:
    clipping = as_flag(signals.get("hasClipping"))
    peak = as_number(signals.get("truePeak"))
    if peak is None:
        return PASS
    if clipping is True and peak < -3:
        return _fail(
            Severity.HIGH,
            "Clipping detected but true peak is below -3dBFS",
            "truePeak >= -3 if clipping is present",
            f"hasClipping = true, truePeak = {peak}",
        )
    if clipping is False and peak > 0:
        return _fail(
            Severity.HIGH,
            "No clipping detected but true peak exceeds 0dBFS",
            "hasClipping = true when truePeak > 0",
            f"hasClipping = false, truePeak = {peak}",
        )
    return PASS


def _check_dc_offset_phase(signals: SignalVector) -> RuleOutcome:
    offset = as_number(signals.get("dcOffset"))
    correlation = as_number(signals.get("phaseCorrelation"))
    if offset is None or correlation is None:
        return PASS
    if abs(offset) > 0.2 and correlation > 0.95:
        return _fail(
            Severity.MEDIUM,
            "Severe DC offset but perfect phase correlation",
            "DC offset typically affects phase correlation",
            f"dcOffset = {offset}, phaseCorrelation = {correlation}",
        )
    return PASS


def _check_silence_loudness(signals: SignalVector) -> RuleOutcome:
    silent = as_flag(signals.get("isSilent"))
    loudness = as_number(signals.get("integratedLoudness"))
    if loudness is None:
        return PASS
    if silent is False and loudness < -50:
        return _fail(
            Severity.MEDIUM,
            "Not marked silent but loudness is very low",
            "integratedLoudness > -50 if not silent",
            f"isSilent = false, integratedLoudness = {loudness}",
        )
    if silent is True and loudness > -40:
        return _fail(
            Severity.HIGH,
            "Marked silent but loudness is audible",
            "integratedLoudness < -40 if silent",
            f"isSilent = true, integratedLoudness = {loudness}",
        )
    return PASS


CONSISTENCY_RULES: Tuple[Rule, ...] = (
    Rule(
        id="LOFI_TRANSIENT",
        description="Lo-fi subgenre should have soft transients",
        signals=("subgenre", "transientSharpness"),
        check=_check_lofi_transient,
    ),
    Rule(
        id="DRILL_BASS",
        description="Drill subgenre should have high sub-bass energy",
        signals=("subgenre", "subBassEnergy"),
        check=_check_drill_bass,
    ),
    Rule(
        id="TRAP_BPM",
        description="Trap subgenre should have characteristic BPM range",
        signals=("subgenre", "bpm"),
        check=_check_trap_bpm,
    ),
    Rule(
        id="DYNAMIC_COMPRESSION",
        description="Dynamic range and crest factor must correlate",
        signals=("dynamicRange", "crestFactor"),
        check=_check_dynamic_compression,
    ),
    Rule(
        id="LOUDNESS_PEAK",
        description="True peak cannot be lower than integrated loudness",
        signals=("integratedLoudness", "truePeak"),
        check=_check_loudness_peak,
    ),
    Rule(
        id="BPM_TRANSIENT_DENSITY",
        description="High BPM should correlate with transient presence",
        signals=("bpm", "transientDensity"),
        check=_check_bpm_transient_density,
    ),
    Rule(
        id="STEREO_MONO_TOPOLOGY",
        description="Stereo width must agree with channel topology",
        signals=("stereoWidth", "channelTopology"),
        check=_check_stereo_mono_topology,
    ),
    Rule(
        id="CLASSIFICATION_CONFIDENCE_HYBRID",
        description="High classification confidence excludes hybrid status",
        signals=("subgenreConfidence", "isHybrid"),
        check=_check_confidence_hybrid,
    ),
    Rule(
        id="SAMPLE_RATE_FREQUENCY_CONTENT",
        description="High frequency content requires adequate sample rate",
        signals=("sampleRate", "highFrequencyPresence"),
        check=_check_sample_rate_content,
    ),
    Rule(
        id="CLIPPING_PEAK",
        description="Clipping detection must agree with true peak",
        signals=("hasClipping", "truePeak"),
        check=_check_clipping_peak,
    ),
    Rule(
        id="DC_OFFSET_PHASE",
        description="DC offset should correlate with low frequency issues",
        signals=("dcOffset", "phaseCorrelation"),
        check=_check_dc_offset_phase,
    ),
    Rule(
        id="SILENCE_LOUDNESS",
        description="Silence detection must agree with loudness measurement",
        signals=("isSilent", "integratedLoudness"),
        check=_check_silence_loudness,
    ),
)

_RULES_BY_ID: Dict[str, Rule] = {rule.id: rule for rule in CONSISTENCY_RULES}


def get_available_rules() -> List[Dict[str, Any]]:
    """List rule metadata (id, description, signals) without the checks."""
    return [rule.metadata() for rule in CONSISTENCY_RULES]


def get_rule(rule_id: str) -> Optional[Rule]:
    return _RULES_BY_ID.get(rule_id)


def has_required_signals(signals: SignalVector, required: Sequence[str]) -> bool:
    """True when every required signal is present and not None."""
    return all(signals.get(name) is not None for name in required)


def missing_signals(signals: SignalVector, required: Sequence[str]) -> List[str]:
    return [name for name in required if signals.get(name) is None]
