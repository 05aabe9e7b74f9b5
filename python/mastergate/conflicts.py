"""
Processing parameter conflict detection.

Runs at job submission over the requested processing parameters and flags
combinations that will produce artifacts or contradict the stated intent,
e.g. aggressive EQ boost into a tight limiter, or wide stereo processing
with a mono compatibility requirement.
"""
import logging
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .types import (
    Condition,
    Conflict,
    ConflictCategory,
    ConflictReport,
    ConflictRule,
    ConflictSeverity,
    ParameterSet,
    ParameterValidation,
    as_number,
    to_native,
)

logger = logging.getLogger(__name__)


class ParameterType(Enum):
    """Processing parameters the detector knows about."""
    COMPRESSION_RATIO = "compressionRatio"
    COMPRESSION_THRESHOLD = "compressionThreshold"
    LIMITER_THRESHOLD = "limiterThreshold"
    LIMITER_CEILING = "limiterCeiling"
    LIMITER_COUNT = "limiterCount"
    TARGET_LOUDNESS = "targetLoudness"
    EQ_BOOST_MAX = "eqBoostMax"
    EQ_CUT_MAX = "eqCutMax"
    HIGH_SHELF_GAIN = "highShelfGain"
    LOW_SHELF_GAIN = "lowShelfGain"
    LOW_SHELF_FREQ = "lowShelfFreq"
    STEREO_WIDTH = "stereoWidth"
    MID_SIDE_BALANCE = "midSideBalance"
    MONO_BASS_FREQ = "monoBassFreq"
    SAMPLE_RATE = "sampleRate"
    SAMPLE_RATE_CONVERSIONS = "sampleRateConversions"
    BIT_DEPTH = "targetBitDepth"
    TARGET_FORMAT = "targetFormat"
    PRESERVE_DYNAMICS = "preserveDynamics"
    MONO_COMPATIBLE = "monoCompatible"
    MAXIMIZE_LOUDNESS = "maximizeLoudness"
    TARGET_SMALL_SPEAKERS = "targetSmallSpeakers"


SEVERITY_DESCRIPTIONS: Mapping[ConflictSeverity, str] = MappingProxyType({
    ConflictSeverity.NONE: "No conflicts detected",
    ConflictSeverity.LOW: "Minor parameter interaction - may slightly affect quality",
    ConflictSeverity.MEDIUM: "Moderate conflict - review parameter choices",
    ConflictSeverity.HIGH: "Significant conflict - will likely cause artifacts",
    ConflictSeverity.BLOCKING: "Critical conflict - cannot proceed without resolution",
})

SEVERITY_ORDER = (
    ConflictSeverity.BLOCKING,
    ConflictSeverity.HIGH,
    ConflictSeverity.MEDIUM,
    ConflictSeverity.LOW,
    ConflictSeverity.NONE,
)

THRESHOLDS: Mapping[str, Mapping[str, float]] = MappingProxyType({
    "EQ_BOOST": MappingProxyType({"SAFE": 3, "MODERATE": 6, "AGGRESSIVE": 9, "EXTREME": 12}),
    "COMPRESSION_RATIO": MappingProxyType({"GENTLE": 2, "MODERATE": 4, "HEAVY": 8, "LIMITING": 20}),
    "STEREO_WIDTH": MappingProxyType({"NARROW": 0.5, "NORMAL": 1.0, "WIDE": 1.3, "EXTREME": 1.8}),
    "LIMITER_THRESHOLD": MappingProxyType({"GENTLE": -6, "MODERATE": -3, "AGGRESSIVE": -1, "EXTREME": 0}),
})

PARAMETER_ALIASES: Mapping[str, str] = MappingProxyType({
    "eq_boost": "eqBoostMax",
    "eqBoost": "eqBoostMax",
    "boost": "eqBoostMax",
    "limiter_threshold": "limiterThreshold",
    "threshold": "limiterThreshold",
    "stereo_width": "stereoWidth",
    "width": "stereoWidth",
    "compression_ratio": "compressionRatio",
    "ratio": "compressionRatio",
    "mono_compatible": "monoCompatible",
    "mono": "monoCompatible",
    "preserve_dynamics": "preserveDynamics",
    "dynamic": "preserveDynamics",
    "maximize_loudness": "maximizeLoudness",
    "loudness_max": "maximizeLoudness",
    "limiter_ceiling": "limiterCeiling",
    "ceiling": "limiterCeiling",
    "target_format": "targetFormat",
    "format": "targetFormat",
    "high_shelf_gain": "highShelfGain",
    "hfGain": "highShelfGain",
    "low_shelf_gain": "lowShelfGain",
    "lfGain": "lowShelfGain",
    "target_bit_depth": "targetBitDepth",
    "bitDepth": "targetBitDepth",
})

DEFAULT_LIMITER_CEILING = -0.3
LOSSY_FORMATS = ("mp3", "aac", "ogg")


def _number(params: ParameterSet, key: str, default: float) -> float:
    value = as_number(params.get(key))
    return default if value is None else value


# ---------------------------------------------------------------------------
# Severity functions
# ---------------------------------------------------------------------------

def _eq_boost_limiting(params: ParameterSet) -> ConflictSeverity:
    boost = _number(params, "eqBoostMax", 0)
    threshold = _number(params, "limiterThreshold", -6)
    if boost > 12 and threshold > -2:
        return ConflictSeverity.BLOCKING
    if boost > 9 and threshold > -3:
        return ConflictSeverity.HIGH
    if boost > 6:
        return ConflictSeverity.MEDIUM
    return ConflictSeverity.LOW


def _stereo_mono(params: ParameterSet) -> ConflictSeverity:
    width = _number(params, "stereoWidth", 1.0)
    if width > 1.8:
        return ConflictSeverity.BLOCKING
    if width > 1.5:
        return ConflictSeverity.HIGH
    if width > 1.2:
        return ConflictSeverity.MEDIUM
    return ConflictSeverity.LOW


def _compression_dynamics(params: ParameterSet) -> ConflictSeverity:
    ratio = _number(params, "compressionRatio", 1)
    if ratio > 20:
        return ConflictSeverity.BLOCKING
    if ratio > 10:
        return ConflictSeverity.HIGH
    if ratio > 6:
        return ConflictSeverity.MEDIUM
    return ConflictSeverity.LOW


def _loudness_dynamics(params: ParameterSet) -> ConflictSeverity:
    return ConflictSeverity.HIGH


def _threshold_ceiling_gap(params: ParameterSet) -> ConflictSeverity:
    threshold = _number(params, "limiterThreshold", -6)
    ceiling = _number(params, "limiterCeiling", DEFAULT_LIMITER_CEILING)
    gap = abs(threshold - ceiling)
    if gap < 1:
        return ConflictSeverity.BLOCKING
    if gap < 2:
        return ConflictSeverity.HIGH
    if gap < 3:
        return ConflictSeverity.MEDIUM
    return ConflictSeverity.LOW


def _hf_boost_codec(params: ParameterSet) -> ConflictSeverity:
    gain = _number(params, "highShelfGain", 0)
    if gain > 6:
        return ConflictSeverity.HIGH
    if gain > 3:
        return ConflictSeverity.MEDIUM
    return ConflictSeverity.LOW


def _bass_small_speaker(params: ParameterSet) -> ConflictSeverity:
    gain = _number(params, "lowShelfGain", 0)
    freq = _number(params, "lowShelfFreq", 100)
    if freq < 60 and gain > 6:
        return ConflictSeverity.HIGH
    if freq < 80 and gain > 3:
        return ConflictSeverity.MEDIUM
    return ConflictSeverity.LOW


def _sample_rate_conversions(params: ParameterSet) -> ConflictSeverity:
    conversions = _number(params, "sampleRateConversions", 0)
    if conversions > 3:
        return ConflictSeverity.HIGH
    if conversions > 2:
        return ConflictSeverity.MEDIUM
    if conversions > 1:
        return ConflictSeverity.LOW
    return ConflictSeverity.NONE


def _bit_depth_dynamics(params: ParameterSet) -> ConflictSeverity:
    bit_depth = _number(params, "targetBitDepth", 24)
    dynamic_range = _number(params, "dynamicRange", 10)
    if bit_depth <= 16 and dynamic_range > 30:
        return ConflictSeverity.HIGH
    if bit_depth <= 16 and dynamic_range > 20:
        return ConflictSeverity.MEDIUM
    return ConflictSeverity.LOW


def _stacked_limiters(params: ParameterSet) -> ConflictSeverity:
    count = _number(params, "limiterCount", 0)
    if count > 3:
        return ConflictSeverity.BLOCKING
    if count > 2:
        return ConflictSeverity.HIGH
    if count > 1:
        return ConflictSeverity.MEDIUM
    return ConflictSeverity.NONE


CONFLICT_RULES = (
    ConflictRule(
        id="EQ_BOOST_LIMITING",
        name="EQ Boost vs Limiting Headroom",
        category=ConflictCategory.HEADROOM,
        description="Aggressive EQ boost combined with heavy limiting causes clipping on boosted frequencies",
        conditions=(
            Condition("eqBoostMax", "gt", 6),
            Condition("limiterThreshold", "gt", -3),
        ),
        get_severity=_eq_boost_limiting,
        recommendation="Reduce EQ boost or increase limiter headroom. "
                       "Consider applying limiting after EQ adjustment.",
    ),
    ConflictRule(
        id="STEREO_MONO_CONFLICT",
        name="Stereo Width vs Mono Compatibility",
        category=ConflictCategory.STEREO,
        description="Wide stereo processing contradicts mono compatibility requirement",
        conditions=(
            Condition("stereoWidth", "gt", 1.2),
            Condition("monoCompatible", "eq", True),
        ),
        get_severity=_stereo_mono,
        recommendation="Reduce stereo width or remove mono compatibility requirement. "
                       "Use M/S processing with mono-safe side content.",
    ),
    ConflictRule(
        id="COMPRESSION_DYNAMICS_CONFLICT",
        name="Heavy Compression vs Dynamics Preservation",
        category=ConflictCategory.DYNAMICS,
        description="Heavy compression ratio contradicts dynamics preservation intent",
        conditions=(
            Condition("compressionRatio", "gt", 6),
            Condition("preserveDynamics", "eq", True),
        ),
        get_severity=_compression_dynamics,
        recommendation="Use lower compression ratio (< 4:1) or disable dynamics preservation. "
                       "Consider parallel compression.",
    ),
    ConflictRule(
        id="LOUDNESS_DYNAMICS_CONFLICT",
        name="Loudness Maximization vs Dynamics Preservation",
        category=ConflictCategory.INTENT,
        description="Maximizing loudness inherently reduces dynamic range",
        conditions=(
            Condition("maximizeLoudness", "eq", True),
            Condition("preserveDynamics", "eq", True),
        ),
        get_severity=_loudness_dynamics,
        recommendation="Choose one goal: either maximize loudness OR preserve dynamics. "
                       "Cannot achieve both.",
    ),
    ConflictRule(
        id="LIMITING_THRESHOLD_CEILING",
        name="Limiter Threshold vs Ceiling Gap",
        category=ConflictCategory.HEADROOM,
        description="Insufficient gap between limiter threshold and ceiling causes distortion",
        conditions=(
            Condition("limiterThreshold", "present"),
        ),
        get_severity=_threshold_ceiling_gap,
        recommendation="Increase gap between limiter threshold and ceiling. "
                       "Aim for at least 3 dB gap for transparent limiting.",
    ),
    ConflictRule(
        id="HF_BOOST_CODEC_CONFLICT",
        name="HF Boost vs Lossy Codec",
        category=ConflictCategory.FREQUENCY,
        description="High-frequency boost exacerbates lossy codec artifacts",
        conditions=(
            Condition("highShelfGain", "gt", 3),
            Condition("targetFormat", "in", LOSSY_FORMATS),
        ),
        get_severity=_hf_boost_codec,
        recommendation="Reduce high-frequency boost before lossy encoding. "
                       "HF content is most affected by codec compression.",
    ),
    ConflictRule(
        id="BASS_SMALL_SPEAKER_CONFLICT",
        name="Sub-bass vs Small Speaker Target",
        category=ConflictCategory.FREQUENCY,
        description="Sub-bass emphasis is inaudible on target small speakers",
        conditions=(
            Condition("lowShelfGain", "gt", 3),
            Condition("lowShelfFreq", "lt", 80),
            Condition("targetSmallSpeakers", "eq", True),
        ),
        get_severity=_bass_small_speaker,
        recommendation="Shift bass emphasis to 100-200Hz range for small speaker audibility, "
                       "or remove small speaker target.",
    ),
    ConflictRule(
        id="SAMPLE_RATE_DOWNCONVERT",
        name="Sample Rate Downconversion Quality",
        category=ConflictCategory.ACCUMULATION,
        description="Multiple sample rate conversions accumulate quality loss",
        conditions=(
            Condition("sampleRateConversions", "gt", 1),
        ),
        get_severity=_sample_rate_conversions,
        recommendation="Minimize sample rate conversions. Convert once at the final stage of processing.",
    ),
    ConflictRule(
        id="BIT_DEPTH_DYNAMICS",
        name="Bit Depth Reduction vs Dynamic Content",
        category=ConflictCategory.DYNAMICS,
        description="Reducing bit depth on highly dynamic content may cause quantization noise",
        conditions=(
            Condition("targetBitDepth", "lt", 24),
            Condition("dynamicRange", "gt", 20),
        ),
        get_severity=_bit_depth_dynamics,
        recommendation="Apply dithering when reducing bit depth. "
                       "Consider noise-shaped dither for high dynamic range content.",
    ),
    ConflictRule(
        id="STACKED_LIMITERS",
        name="Stacked Limiters",
        category=ConflictCategory.ACCUMULATION,
        description="Multiple limiting stages cause cumulative distortion",
        conditions=(
            Condition("limiterCount", "gt", 1),
        ),
        get_severity=_stacked_limiters,
        recommendation="Consolidate to single limiting stage. "
                       "If multiple stages needed, use gentle settings on each.",
    ),
)


# ---------------------------------------------------------------------------
# Condition evaluation
# ---------------------------------------------------------------------------

def evaluate_condition(condition: Condition, params: ParameterSet) -> bool:
    """Evaluate one condition against a parameter set.

    Missing or None parameters never satisfy a condition. Ordering
    operators only compare numbers; ``eq`` against a boolean requires the
    same boolean, not a truthy value.
    """
    value = to_native(params.get(condition.param))
    if value is None:
        return False

    op = condition.operator
    expected = condition.value
    if op == "present":
        return True
    if op in ("gt", "gte", "lt", "lte"):
        if as_number(value) is None or as_number(expected) is None:
            return False
        if op == "gt":
            return value > expected
        if op == "gte":
            return value >= expected
        if op == "lt":
            return value < expected
        return value <= expected
    if op in ("eq", "neq"):
        if isinstance(expected, bool) or isinstance(value, bool):
            same = value is expected
        else:
            same = value == expected
        return same if op == "eq" else not same
    if op == "in":
        return isinstance(expected, (list, tuple, frozenset, set)) and value in expected

    logger.debug(f"Unknown condition operator {op!r} on {condition.param}")
    return False


def check_rule_conditions(rule: ConflictRule, params: ParameterSet) -> bool:
    return all(evaluate_condition(c, params) for c in rule.conditions)


def normalize_parameters(params: Optional[ParameterSet]) -> Dict[str, Any]:
    """Map alias parameter names onto canonical keys.

    An alias never overwrites a canonical key that is already present.
    """
    if not params:
        return {}
    normalized = dict(params)
    for alias, canonical in PARAMETER_ALIASES.items():
        if alias in params and canonical not in normalized:
            normalized[canonical] = params[alias]
    return normalized


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------

def detect_conflicts(params: Optional[ParameterSet]) -> List[Conflict]:
    """Detect conflicts in a parameter set, most severe first."""
    normalized = normalize_parameters(params)
    conflicts = []

    for rule in CONFLICT_RULES:
        if not check_rule_conditions(rule, normalized):
            continue
        try:
            severity = rule.get_severity(normalized)
        except Exception as e:
            logger.warning(f"Conflict rule {rule.id} failed: {e}")
            continue
        if severity == ConflictSeverity.NONE:
            continue
        conflicts.append(Conflict(
            rule_id=rule.id,
            name=rule.name,
            category=rule.category,
            severity=severity,
            description=rule.description,
            recommendation=rule.recommendation,
            affected_params=rule.affected_params,
        ))

    conflicts.sort(key=lambda c: SEVERITY_ORDER.index(c.severity))
    return conflicts


def _group_by_category(conflicts: Iterable[Conflict]) -> Dict[ConflictCategory, List[Conflict]]:
    grouped: Dict[ConflictCategory, List[Conflict]] = {}
    for conflict in conflicts:
        grouped.setdefault(conflict.category, []).append(conflict)
    return grouped


def detect_parameter_conflicts(current: Optional[ParameterSet],
                               proposed: Optional[ParameterSet],
                               intent: Optional[ParameterSet] = None) -> ConflictReport:
    """Detect conflicts in the merge of current state, proposal and intent.

    Args:
        current: Current analysis metrics or parameters.
        proposed: Proposed processing parameters; override ``current``.
        intent: Preset intent flags; override both.

    Returns:
        ConflictReport. ``can_proceed`` is False only for BLOCKING conflicts.
    """
    merged: Dict[str, Any] = {}
    for source in (current, proposed, intent):
        merged.update(normalize_parameters(source))

    conflicts = detect_conflicts(merged)
    has_blocking = any(c.severity == ConflictSeverity.BLOCKING for c in conflicts)
    has_high = any(c.severity == ConflictSeverity.HIGH for c in conflicts)

    if has_blocking:
        overall = ConflictSeverity.BLOCKING
    elif has_high:
        overall = ConflictSeverity.HIGH
    elif conflicts:
        overall = ConflictSeverity.MEDIUM
    else:
        overall = ConflictSeverity.NONE

    if conflicts:
        logger.debug(f"Parameter conflicts: {len(conflicts)}, overall {overall.value}")

    return ConflictReport(
        conflicts=conflicts,
        by_category=_group_by_category(conflicts),
        has_blocking_conflict=has_blocking,
        has_high_conflict=has_high,
        can_proceed=not has_blocking,
        overall_severity=overall,
        recommendations=[c.recommendation for c in conflicts],
    )


def validate_parameters(params: Optional[ParameterSet]) -> ParameterValidation:
    report = detect_parameter_conflicts(params, None, None)
    return ParameterValidation(
        report=report,
        is_valid=report.conflict_count == 0,
        has_warnings=report.conflict_count > 0 and not report.has_blocking_conflict,
        has_errors=report.has_blocking_conflict or report.has_high_conflict,
    )


def quick_check(params: Optional[ParameterSet]) -> Dict[str, Any]:
    conflicts = detect_conflicts(params)

    def count(severity: ConflictSeverity) -> int:
        return sum(1 for c in conflicts if c.severity == severity)

    return {
        "hasConflicts": len(conflicts) > 0,
        "conflictCount": len(conflicts),
        "blockingCount": count(ConflictSeverity.BLOCKING),
        "highCount": count(ConflictSeverity.HIGH),
        "mediumCount": count(ConflictSeverity.MEDIUM),
        "lowCount": count(ConflictSeverity.LOW),
        "canProceed": count(ConflictSeverity.BLOCKING) == 0,
        "topConflict": conflicts[0].to_dict() if conflicts else None,
    }


def check_pair_conflict(first_key: str, first_value: Any,
                        second_key: str, second_value: Any) -> Optional[Conflict]:
    """Most severe conflict produced by two parameters alone, if any."""
    conflicts = detect_conflicts({first_key: first_value, second_key: second_value})
    return conflicts[0] if conflicts else None


def get_rules_for_parameter(param: str) -> List[ConflictRule]:
    return [rule for rule in CONFLICT_RULES if param in rule.affected_params]


def generate_recommendations(conflicts: Optional[List[Conflict]]) -> List[str]:
    """Recommendations grouped by category, with a header for severe groups."""
    if not conflicts:
        return []

    recommendations = []
    for category, items in _group_by_category(conflicts).items():
        severities = {c.severity for c in items}
        if ConflictSeverity.BLOCKING in severities:
            recommendations.append(f"BLOCKING {category.value} conflicts must be resolved:")
        elif ConflictSeverity.HIGH in severities:
            recommendations.append(f"Review {category.value} parameters:")
        for conflict in items:
            recommendations.append(f"  - {conflict.recommendation}")
    return recommendations


def suggest_resolutions(params: Optional[ParameterSet],
                        conflicts: Iterable[Conflict]) -> Dict[str, Any]:
    """Deterministic parameter adjustments for known conflict rules.

    Args:
        params: Parameters the conflicts were detected on.
        conflicts: Conflicts to resolve.

    Returns:
        Dict with ``suggestions`` (parameter -> suggested value, plus an
        optional ``note``), ``hasSuggestions``, ``originalParams`` and
        ``resolvedConflictCount``.
    """
    conflicts = list(conflicts)
    normalized = normalize_parameters(params)
    suggestions: Dict[str, Any] = {}

    def exceeds(key: str, limit: float) -> bool:
        value = as_number(normalized.get(key))
        return value is not None and value > limit

    for conflict in conflicts:
        if conflict.rule_id == "EQ_BOOST_LIMITING":
            if exceeds("eqBoostMax", THRESHOLDS["EQ_BOOST"]["MODERATE"]):
                suggestions["eqBoostMax"] = THRESHOLDS["EQ_BOOST"]["MODERATE"]
            if exceeds("limiterThreshold", THRESHOLDS["LIMITER_THRESHOLD"]["GENTLE"]):
                suggestions["limiterThreshold"] = THRESHOLDS["LIMITER_THRESHOLD"]["GENTLE"]
        elif conflict.rule_id == "STEREO_MONO_CONFLICT":
            if exceeds("stereoWidth", 1.2):
                suggestions["stereoWidth"] = THRESHOLDS["STEREO_WIDTH"]["NORMAL"]
        elif conflict.rule_id == "COMPRESSION_DYNAMICS_CONFLICT":
            if exceeds("compressionRatio", 6):
                suggestions["compressionRatio"] = THRESHOLDS["COMPRESSION_RATIO"]["MODERATE"]
        elif conflict.rule_id == "LOUDNESS_DYNAMICS_CONFLICT":
            suggestions["note"] = "Choose either maximizeLoudness OR preserveDynamics, not both"
        elif conflict.rule_id == "STACKED_LIMITERS":
            suggestions["limiterCount"] = 1

    resolved = sum(
        1 for c in conflicts
        if any(key in c.affected_params for key in suggestions)
    )
    return {
        "suggestions": suggestions,
        "hasSuggestions": len(suggestions) > 0,
        "originalParams": dict(params or {}),
        "resolvedConflictCount": resolved,
    }
