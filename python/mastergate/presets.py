"""Job presets and resolution of preset parameters into processing parameters."""
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .types import as_flag, as_number

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParameterSpec:
    """Default and accepted values for one preset parameter."""
    default: Any
    min: Optional[float] = None
    max: Optional[float] = None
    options: Optional[Tuple[Any, ...]] = None
    unit: Optional[str] = None
    type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"default": self.default}
        if self.min is not None:
            out["min"] = self.min
        if self.max is not None:
            out["max"] = self.max
        if self.options is not None:
            out["options"] = list(self.options)
        if self.unit is not None:
            out["unit"] = self.unit
        if self.type is not None:
            out["type"] = self.type
        return out


@dataclass(frozen=True)
class Preset:
    id: str
    name: str
    category: str
    parameters: Mapping[str, ParameterSpec]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "parameters": {k: spec.to_dict() for k, spec in self.parameters.items()},
        }


def _preset(preset_id: str, name: str, category: str, **parameters: ParameterSpec) -> Preset:
    return Preset(preset_id, name, category, MappingProxyType(dict(parameters)))


PRESETS: Mapping[str, Preset] = MappingProxyType({
    p.id: p for p in (
        _preset(
            "master-standard", "Standard Mastering", "MASTERING",
            loudness=ParameterSpec(-14, min=-24, max=-6, unit="LUFS"),
            truePeak=ParameterSpec(-1, min=-3, max=0, unit="dBTP"),
            format=ParameterSpec("WAV", options=("WAV", "FLAC", "MP3")),
        ),
        _preset(
            "master-streaming", "Streaming Optimized", "MASTERING",
            loudness=ParameterSpec(-14, min=-16, max=-12, unit="LUFS"),
            truePeak=ParameterSpec(-1, min=-2, max=-1, unit="dBTP"),
            format=ParameterSpec("MP3", options=("MP3", "AAC")),
        ),
        _preset(
            "analyze-full", "Full Analysis", "ANALYSIS",
            includeSpectral=ParameterSpec(True, type="boolean"),
            includeLoudness=ParameterSpec(True, type="boolean"),
            includePitch=ParameterSpec(True, type="boolean"),
        ),
        _preset(
            "convert-wav", "Convert to WAV", "CONVERSION",
            sampleRate=ParameterSpec(48000, options=(44100, 48000, 96000)),
            bitDepth=ParameterSpec(24, options=(16, 24, 32)),
        ),
        _preset(
            "convert-mp3", "Convert to MP3", "CONVERSION",
            bitrate=ParameterSpec(320, options=(128, 192, 256, 320), unit="kbps"),
        ),
        _preset(
            "split-stems", "Split Stems", "EDITING",
            stemCount=ParameterSpec(4, options=(2, 4, 5)),
            quality=ParameterSpec("high", options=("fast", "balanced", "high")),
        ),
        _preset(
            "normalize-loudness", "Loudness Normalization", "MIXING",
            targetLufs=ParameterSpec(-16, min=-24, max=-6, unit="LUFS"),
        ),
    )
})

# Preset parameter names as the conflict detector knows them
PROCESSING_KEYS: Mapping[str, str] = MappingProxyType({
    "loudness": "targetLoudness",
    "targetLufs": "targetLoudness",
    "truePeak": "limiterCeiling",
    "format": "targetFormat",
    "bitDepth": "targetBitDepth",
})


def get_preset(preset_id: str) -> Optional[Preset]:
    return PRESETS.get(preset_id)


def get_default_parameters(preset_id: str) -> Optional[Dict[str, Any]]:
    preset = get_preset(preset_id)
    if preset is None:
        return None
    return {key: spec.default for key, spec in preset.parameters.items()}


def validate_preset_parameters(preset_id: str,
                               parameters: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Check parameters against a preset's bounds, options and types.

    Args:
        preset_id: Preset identifier.
        parameters: Parameter overrides to check.

    Returns:
        Dict with ``valid`` and the list of ``errors``.
    """
    preset = get_preset(preset_id)
    if preset is None:
        return {"valid": False, "errors": [f"Unknown preset: {preset_id}"]}

    errors = []
    for key, value in (parameters or {}).items():
        number = as_number(value)
        spec = preset.parameters.get(key)
        if spec is None:
            errors.append(f"Unknown parameter: {key}")
            continue

        if spec.min is not None and (number is None or number < spec.min):
            errors.append(f"{key} must be >= {spec.min}")
        if spec.max is not None and (number is None or number > spec.max):
            errors.append(f"{key} must be <= {spec.max}")
        if spec.options is not None and value not in spec.options:
            errors.append(f"{key} must be one of: {', '.join(str(o) for o in spec.options)}")
        if spec.type == "boolean" and as_flag(value) is None:
            errors.append(f"{key} must be a boolean")

    return {"valid": not errors, "errors": errors}


def resolve_parameters(preset_id: str,
                       overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Turn a preset plus overrides into processing parameters.

    Overrides for parameters the preset defines are validated against it;
    any other override is passed through untouched. Preset parameters are
    also exposed under the names the conflict detector uses.

    Args:
        preset_id: Preset identifier.
        overrides: Caller supplied parameter values.

    Returns:
        Dict of processing parameters.

    Raises:
        ValueError: If the preset is unknown or an override is out of bounds.
    """
    preset = get_preset(preset_id)
    if preset is None:
        raise ValueError(f"Unknown preset: {preset_id}")

    overrides = dict(overrides or {})
    checked = {k: v for k, v in overrides.items() if k in preset.parameters}
    validation = validate_preset_parameters(preset_id, checked)
    if not validation["valid"]:
        raise ValueError("; ".join(validation["errors"]))

    resolved = get_default_parameters(preset_id)
    resolved.update(overrides)

    for key, canonical in PROCESSING_KEYS.items():
        if key in resolved and canonical not in resolved:
            value = resolved[key]
            if canonical == "targetFormat" and isinstance(value, str):
                value = value.lower()
            resolved[canonical] = value

    logger.debug(f"Resolved preset {preset_id}: {sorted(resolved)}")
    return resolved
